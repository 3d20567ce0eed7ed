"""Unit tests for the Camunda 7 backend."""

from __future__ import annotations

import json

import pytest
from lxml import etree

from procforge.config import CamundaConfig
from procforge.errors import GenerationError
from procforge.generators.camunda import CamundaGenerator
from procforge.generators.camunda.bpmn import form_key
from procforge.generators.camunda.dmn import camunda_dmn
from procforge.generators.camunda.forms import camel_case, html_form_name, humanize
from procforge.pipeline import Pipeline

from tests.sample_design import DMN

BPMN_NS = "http://www.omg.org/spec/BPMN/20100524/MODEL"
CAMUNDA_NS = "http://camunda.org/schema/1.0/bpmn"
NS = {"bpmn": BPMN_NS, "camunda": CAMUNDA_NS}


def camunda(local: str) -> str:
    return f"{{{CAMUNDA_NS}}}{local}"


@pytest.fixture
def prepared(inputs, config):
    """Prepared model of the fixture design."""
    return Pipeline(inputs, config).prepare()


@pytest.fixture
def files(prepared) -> dict[str, str]:
    """Generated Camunda files keyed by relative path."""
    return {f.relative_path: f.content for f in CamundaGenerator().generate(prepared)}


@pytest.fixture
def document(files) -> etree._Element:
    return etree.fromstring(files["process.bpmn"].encode("utf-8"))


def node(document: etree._Element, node_id: str) -> etree._Element:
    return document.xpath(f"//*[@id='{node_id}']")[0]


class TestOutputLayout:
    def test_files(self, files) -> None:
        assert sorted(files) == [
            "config.json",
            "entitlement.dmn",
            "forms/review_request.html",
            "forms/submit_request.html",
            "notify.ftl",
            "notify.json",
            "post_absence.json",
            "process.bpmn",
        ]

    def test_generation_is_deterministic(self, prepared, files) -> None:
        again = {f.relative_path: f.content for f in CamundaGenerator().generate(prepared)}
        assert again == files


class TestBpmnAugmentation:
    def test_definitions_attributes(self, document) -> None:
        assert document.get("exporter") == "Camunda Modeler"
        process = document.find("bpmn:process", NS)
        assert process.get(camunda("historyTimeToLive")) == "P180D"
        assert process.get("isExecutable") == "true"

    def test_lane_and_task_assignment(self, document) -> None:
        assert node(document, "Lane_Manager").get(camunda("candidateGroups")) == "Manager"
        review = node(document, "Task_Review")
        assert review.get(camunda("candidateGroups")) == "Manager"
        assert review.get(camunda("assignee")) is None

    def test_form_key(self, document) -> None:
        assert node(document, "Task_Submit").get(camunda("formKey")) == "embedded:app:forms/submit_request.html"

    def test_email_service_task(self, document) -> None:
        notify = node(document, "Task_Notify")
        assert notify.get(camunda("delegateExpression")) == "${sendEmailDelegate}"
        parameters = {
            p.get("name"): p.text for p in notify.iterfind("bpmn:extensionElements/camunda:inputOutput/camunda:inputParameter", NS)
        }
        assert parameters == {"configJson": "notify.json", "templateFtl": "notify.ftl"}

    def test_rest_service_task(self, document) -> None:
        post = node(document, "Task_Post")
        assert post.get(camunda("delegateExpression")) == "${restCallDelegate}"

    def test_business_rule_task(self, document) -> None:
        check = node(document, "Task_Check")
        assert check.get(camunda("decisionRef")) == "entitlement"
        assert check.get(camunda("resultVariable")) == "request_entitled"
        assert check.get(camunda("mapDecisionResult")) == "singleEntry"

    def test_conditions_flattened(self, document) -> None:
        condition = node(document, "Flow_Approved").find("bpmn:conditionExpression", NS)
        assert condition.text == "${request_status == 'approved'}"

    def test_delegates_follow_config(self, prepared) -> None:
        config = CamundaConfig(email_delegate="${mailer}", history_time_to_live="P30D")
        files = {f.relative_path: f.content for f in CamundaGenerator(config).generate(prepared)}
        document = etree.fromstring(files["process.bpmn"].encode("utf-8"))
        assert node(document, "Task_Notify").get(camunda("delegateExpression")) == "${mailer}"
        assert document.find("bpmn:process", NS).get(camunda("historyTimeToLive")) == "P30D"

    def test_malformed_source_is_a_generation_error(self, prepared) -> None:
        broken = prepared.model_copy(update={"bpmn_source": "<definitions"})
        with pytest.raises(GenerationError, match="well-formed"):
            CamundaGenerator().generate(broken)


class TestSideFiles:
    def test_rest_keeps_global_resolution_and_flattens_paths(self, files) -> None:
        rest = json.loads(files["post_absence.json"])
        assert rest["request"]["url"] == "https://hr.example.org/api/absences"
        assert rest["request"]["body"] == {"reason": "${request_reason}", "days": "${request_days}"}

    def test_email_parameters(self, files) -> None:
        email = json.loads(files["notify.json"])
        assert email["body"]["parameters"] == {"reason": "${request_reason}", "days": "${request_days}"}
        assert files["notify.ftl"].startswith("<p>Your absence")

    def test_config_copied_verbatim(self, files, workspace) -> None:
        assert files["config.json"] == (workspace / "config.json").read_text(encoding="utf-8")

    def test_form_fields(self, files) -> None:
        html = files["forms/submit_request.html"]
        assert 'cam-variable-name="request_reason"' in html
        assert 'cam-variable-name="request_approval_comment"' in html
        assert "required" in html
        review = files["forms/review_request.html"]
        assert "<select" in review
        assert "approved" in review

    def test_missing_form_is_an_error(self, prepared) -> None:
        artifacts = prepared.artifacts.model_copy(update={"forms": {}})
        with pytest.raises(GenerationError, match="submit_request.json"):
            CamundaGenerator().generate(prepared.model_copy(update={"artifacts": artifacts}))


class TestDmn:
    def test_camunda_attributes(self) -> None:
        root = etree.fromstring(camunda_dmn(DMN, CamundaConfig()).encode("utf-8"))
        dmn_ns = root.nsmap[None]
        decision = root.find(f"{{{dmn_ns}}}decision")
        assert decision.get("{http://camunda.org/schema/1.0/dmn}historyTimeToLive") == "P180D"
        input_el = decision.find(f"{{{dmn_ns}}}decisionTable/{{{dmn_ns}}}input")
        assert input_el.get("{http://camunda.org/schema/1.0/dmn}inputVariable") == "request.days"

    def test_placeholders_flattened(self) -> None:
        text = DMN.replace("<text>request.days</text>", "<text>${request.days}</text>")
        assert "<text>request_days</text>" in camunda_dmn(text, CamundaConfig())

    def test_malformed_dmn_is_a_generation_error(self, prepared) -> None:
        dmn = prepared.artifacts.dmn["entitlement.dmn"].model_copy(update={"text": "<definitions"})
        artifacts = prepared.artifacts.model_copy(update={"dmn": {"entitlement.dmn": dmn}})
        with pytest.raises(GenerationError, match="dmn"):
            CamundaGenerator().generate(prepared.model_copy(update={"artifacts": artifacts}))


class TestFormHelpers:
    def test_names(self) -> None:
        assert humanize("startDate") == "Start Date"
        assert camel_case("Submit request") == "submitRequest"
        assert html_form_name("forms/a.json") == "a.html"
        assert form_key("submit.json") == "embedded:app:forms/submit.html"
