"""Unit tests for the model loaders.

Tests cover:
- Data object label parsing
- PlantUML parsing, rendering and unsupported lines
- ArchiMate roles, actors and assignments
- BPMN graph loading and structural errors
- Process configuration, state model and side artifact loading
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from procforge.config import BpmnConfig
from procforge.errors import MalformedModelError, UnsupportedLineError
from procforge.loaders import (
    ArchimateLoader,
    BpmnLoader,
    DmnLoader,
    EmailLoader,
    FormSchemaLoader,
    PlantUmlParser,
    ProcessConfigLoader,
    RestLoader,
    render_plantuml,
)
from procforge.models.process import (
    BusinessRuleTask,
    DataObjectReference,
    ServiceTask,
    UserTask,
    parse_label,
    render_label,
)
from procforge.models.process_config import assignee_name, file_ref_basename


class TestDataObjectLabels:
    """Test the ``variable: Type\\n[state]`` label grammar."""

    def test_full_label(self) -> None:
        assert parse_label("req1: AbsenceRequest\n[submitted]") == ("req1", "AbsenceRequest", "submitted")

    def test_inline_state(self) -> None:
        assert parse_label("req1: AbsenceRequest[approved]") == ("req1", "AbsenceRequest", "approved")

    def test_empty_brackets_mean_no_state(self) -> None:
        assert parse_label("req1: AbsenceRequest\n[]") == ("req1", "AbsenceRequest", None)
        assert parse_label("req1: AbsenceRequest[  ]") == ("req1", "AbsenceRequest", None)

    def test_untyped_label(self) -> None:
        assert parse_label("notes") == ("notes", None, None)

    def test_whitespace_is_trimmed(self) -> None:
        assert parse_label("  req1 :  AbsenceRequest \n [ submitted ] ") == (
            "req1",
            "AbsenceRequest",
            "submitted",
        )

    def test_render_round_trip(self) -> None:
        for parts in [("req1", "AbsenceRequest", "submitted"), ("req1", "AbsenceRequest", None), ("x", None, None)]:
            assert parse_label(render_label(*parts)) == parts

    def test_from_label(self) -> None:
        ref = DataObjectReference.from_label("DataRef_1", "loan: Loan\n[open]", "DataObject_1")
        assert ref.variable_name == "loan"
        assert ref.type_name == "Loan"
        assert ref.state == "open"
        assert ref.data_object_ref == "DataObject_1"


class TestPlantUmlParser:
    """Test the restricted class-diagram grammar."""

    def test_fixture_model(self, business) -> None:
        assert list(business.classes) == ["AbsenceRequest", "Approval"]
        request = business.classes["AbsenceRequest"]
        assert request.field_names == ["reason", "days", "status", "entitled", "approval"]
        assert request.field("approval").type == "Approval"
        assert business.enums["AbsenceKind"].values == ("VACATION", "SICKNESS")
        composition = business.compositions[0]
        assert (composition.whole, composition.part) == ("AbsenceRequest", "Approval")

    def test_untyped_field(self) -> None:
        model = PlantUmlParser().parse("class Note {\n  text\n}")
        assert model.classes["Note"].fields[0].type is None

    def test_comments_and_blank_lines_are_ignored(self) -> None:
        model = PlantUmlParser().parse("@startuml\n\n' comment\nclass A {\n  name: String ' trailing\n}\n@enduml")
        assert model.classes["A"].field("name").type == "String"

    def test_unsupported_top_level_line(self) -> None:
        with pytest.raises(UnsupportedLineError) as exc_info:
            PlantUmlParser().parse("class A {\n}\ninterface B {\n}")
        assert exc_info.value.line_number == 3
        assert "interface B" in exc_info.value.line

    def test_unsupported_field_line(self) -> None:
        with pytest.raises(UnsupportedLineError) as exc_info:
            PlantUmlParser().parse("class A {\n  +name: String\n}")
        assert exc_info.value.line_number == 2

    def test_unclosed_block(self) -> None:
        with pytest.raises(UnsupportedLineError, match="unclosed block"):
            PlantUmlParser().parse("class A {\n  name: String\n")

    def test_render_then_parse_is_identity(self, business) -> None:
        assert PlantUmlParser().parse(render_plantuml(business)) == business

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(MalformedModelError) as exc_info:
            PlantUmlParser().load(tmp_path / "missing.puml")
        assert exc_info.value.artifact == "plantuml"

    def test_invalid_utf8(self, tmp_path: Path) -> None:
        path = tmp_path / "latin1.puml"
        path.write_bytes(b"class A {\n  na\xffme\n}\n")
        with pytest.raises(MalformedModelError, match="cannot read file"):
            PlantUmlParser().load(path)


class TestArchimateLoader:
    """Test organization loading."""

    def test_roles_and_actors(self, organization) -> None:
        assert [role.name for role in organization.roles] == ["Employee", "Manager"]
        assert [actor.name for actor in organization.role_named("Employee").actors] == ["alice"]
        assert organization.actor_names == ["alice", "bob"]

    def test_binding_prefers_roles(self, organization) -> None:
        assert organization.find_binding("Manager").kind == "role"
        assert organization.find_binding("bob").kind == "user"
        assert organization.find_binding("carol") is None

    def test_dangling_assignment_is_skipped(self) -> None:
        source = """<model xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">
          <element xsi:type="archimate:BusinessRole" name="Clerk" id="r1"/>
          <element xsi:type="archimate:AssignmentRelationship" id="rel" source="missing" target="r1"/>
        </model>"""
        model = ArchimateLoader().parse(source)
        assert model.role_named("Clerk").actors == ()

    def test_malformed_xml(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.archimate"
        path.write_text("<model><element></model>", encoding="utf-8")
        with pytest.raises(MalformedModelError, match="archimate"):
            ArchimateLoader().load(path)


class TestBpmnLoader:
    """Test BPMN graph loading."""

    def test_process_graph(self, bpmn) -> None:
        graph = bpmn.process("absenceRequest")
        assert graph is not None
        assert graph.is_executable
        assert [lane.name for lane in graph.lanes] == ["Employee", "Manager"]
        assert isinstance(graph.nodes["Task_Submit"], UserTask)
        assert isinstance(graph.nodes["Task_Notify"], ServiceTask)
        assert isinstance(graph.nodes["Task_Check"], BusinessRuleTask)
        assert bpmn.participants == {"absenceRequest": "Absence request"}

    def test_data_objects_and_associations(self, bpmn) -> None:
        graph = bpmn.process("absenceRequest")
        submitted = graph.data_objects["DataRef_Submitted"]
        assert (submitted.variable_name, submitted.type_name, submitted.state) == (
            "request",
            "AbsenceRequest",
            "submitted",
        )
        assert graph.outputs_of(graph.nodes["Task_Submit"]) == [submitted]

    def test_condition_expressions(self, bpmn) -> None:
        flow = bpmn.process("absenceRequest").flows["Flow_Approved"]
        assert flow.expression == "${~request.status~ == 'approved'}"
        assert flow.resolved_expression is None

    def test_unknown_flow_target(self) -> None:
        source = """<bpmn:definitions xmlns:bpmn="http://www.omg.org/spec/BPMN/20100524/MODEL">
          <bpmn:process id="p">
            <bpmn:startEvent id="s"/>
            <bpmn:sequenceFlow id="f" sourceRef="s" targetRef="nowhere"/>
          </bpmn:process>
        </bpmn:definitions>"""
        with pytest.raises(MalformedModelError, match="nowhere"):
            BpmnLoader().parse(source)

    def test_missing_process(self) -> None:
        source = '<bpmn:definitions xmlns:bpmn="http://www.omg.org/spec/BPMN/20100524/MODEL"/>'
        with pytest.raises(MalformedModelError, match="missing process"):
            BpmnLoader().parse(source)

    def test_collaboration_can_be_required(self) -> None:
        source = """<bpmn:definitions xmlns:bpmn="http://www.omg.org/spec/BPMN/20100524/MODEL">
          <bpmn:process id="p"/>
        </bpmn:definitions>"""
        assert BpmnLoader().parse(source).collaboration_id is None
        with pytest.raises(MalformedModelError, match="collaboration"):
            BpmnLoader(BpmnConfig(require_collaboration=True)).parse(source)

    def test_invalid_timer_duration(self) -> None:
        source = """<bpmn:definitions xmlns:bpmn="http://www.omg.org/spec/BPMN/20100524/MODEL">
          <bpmn:process id="p">
            <bpmn:intermediateCatchEvent id="t" name="Wait">
              <bpmn:timerEventDefinition><bpmn:timeDuration>soon</bpmn:timeDuration></bpmn:timerEventDefinition>
            </bpmn:intermediateCatchEvent>
          </bpmn:process>
        </bpmn:definitions>"""
        with pytest.raises(MalformedModelError, match="ISO-8601"):
            BpmnLoader().parse(source)

    def test_wrong_root(self) -> None:
        with pytest.raises(MalformedModelError, match="bpmn:definitions"):
            BpmnLoader().parse("<definitions/>")


class TestProcessConfigLoader:
    """Test the process configuration file."""

    def test_fixture_config(self, process_config) -> None:
        assert process_config.global_values == {"hrApiUrl": "https://hr.example.org/api"}
        process = process_config.process("absenceRequest")
        assert [lane.assignee_name for lane in process.config.lanes] == ["Employee", "Manager"]
        assert process_config.smtp_config.is_complete

    def test_reference_helpers(self) -> None:
        assert file_ref_basename("${file:forms/a/b.json}") == "b.json"
        assert file_ref_basename("forms\\c.json") == "c.json"
        assert file_ref_basename("  ") is None
        assert assignee_name("${ref:organization.Manager}") == "Manager"
        assert assignee_name("bob") == "bob"

    def test_duplicate_global_variables(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(
            json.dumps({"globalVariables": [{"name": "a", "value": "1"}, {"name": "a", "value": "2"}]}),
            encoding="utf-8",
        )
        with pytest.raises(MalformedModelError, match="duplicate global variables: a"):
            ProcessConfigLoader().load(path)

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(MalformedModelError):
            ProcessConfigLoader().load(path)


class TestArtifactLoaders:
    """Test forms, email, REST and DMN loading."""

    def test_form_properties(self, artifacts) -> None:
        form = artifacts.forms["submit_request.json"]
        assert form.title == "Submit request"
        assert form.required == ["reason", "days"]

    def test_form_properties_must_be_object(self, tmp_path: Path) -> None:
        path = tmp_path / "form.json"
        path.write_text(json.dumps({"properties": []}), encoding="utf-8")
        with pytest.raises(MalformedModelError, match="properties"):
            FormSchemaLoader().load(path)

    def test_email_template_placeholders_need_parameters(self, workspace: Path) -> None:
        template = workspace / "email" / "notify.ftl"
        template.write_text("Hello ${employee.name}", encoding="utf-8")
        with pytest.raises(MalformedModelError, match="employee"):
            EmailLoader().load(template, workspace / "email" / "notify.json")

    def test_email_pairs_template_and_config(self, artifacts) -> None:
        email = artifacts.emails["notify.json"]
        assert email.template_name == "notify.ftl"
        assert email.config.headers.from_ == "hr@example.org"

    def test_rest_requires_url(self, tmp_path: Path) -> None:
        path = tmp_path / "rest.json"
        path.write_text(json.dumps({"request": {"method": "POST"}}), encoding="utf-8")
        with pytest.raises(MalformedModelError, match="rest"):
            RestLoader().load(path)

    def test_email_template_invalid_utf8(self, workspace: Path) -> None:
        template = workspace / "email" / "notify.ftl"
        template.write_bytes(b"Hello \xff")
        with pytest.raises(MalformedModelError, match="cannot read file"):
            EmailLoader().load(template, workspace / "email" / "notify.json")

    def test_dmn_source_is_kept(self, artifacts) -> None:
        assert "decisionTable" in artifacts.dmn["entitlement.dmn"].text

    def test_dmn_without_decision(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.dmn"
        path.write_text('<definitions xmlns="https://www.omg.org/spec/DMN/20191111/MODEL/"/>', encoding="utf-8")
        with pytest.raises(MalformedModelError, match="no decision"):
            DmnLoader().load(path)
