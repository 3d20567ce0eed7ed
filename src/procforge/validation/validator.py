"""Cross-model validator.

Enforces the consistency rules that no single artifact grammar can check:
lane assignees against the organization, node configs against the BPMN
graph, data objects against the business object and state models, forms
against classes and states, SMTP settings and reserved field names.

Every check runs to completion; violations are collected into one
ValidationReport rather than raised individually.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

import structlog

from procforge.errors import Rule, ValidationError, ValidationReport
from procforge.models.artifacts import FormSchema, InputArtifacts
from procforge.models.business import BusinessObjectModel, PumlClass, StateModel
from procforge.models.organization import OrganizationModel
from procforge.models.process import (
    BpmnModel,
    BusinessRuleTask,
    DataObjectReference,
    ServiceTask,
    UserTask,
)
from procforge.models.process_config import (
    NodeConfig,
    ProcessConfigFile,
    file_ref_basename,
)

logger = structlog.get_logger(__name__)

RESERVED_KEYWORDS = frozenset(
    {
        "timestamp", "date", "time", "datetime", "user", "group", "role", "order",
        "table", "index", "key", "value", "select", "insert", "update", "delete",
        "from", "where", "join", "left", "right", "inner", "outer", "on", "and",
        "or", "not", "null", "true", "false", "case", "when", "then", "else", "end",
    }
)


@dataclass(frozen=True)
class FormDataObjectPair:
    """A form bound to a node, paired with one data object the node writes."""

    form: FormSchema
    node_name: str
    data_object: DataObjectReference


class CrossModelValidator:
    """Run every cross-model rule over the loaded models.

    Args:
        bpmn: Loaded BPMN definitions
        organization: Roles and actors
        business: Business object model
        states: Business object state model
        process_config: Lane, task and event configuration
        artifacts: Forms, email, REST and DMN artifacts keyed by file name

    Example:
        >>> report = CrossModelValidator(bpmn, org, bom, states, config, artifacts).validate()
        >>> report.is_valid
        True
    """

    def __init__(
        self,
        bpmn: BpmnModel,
        organization: OrganizationModel,
        business: BusinessObjectModel,
        states: StateModel,
        process_config: ProcessConfigFile,
        artifacts: InputArtifacts | None = None,
    ):
        self.bpmn = bpmn
        self.organization = organization
        self.business = business
        self.states = states
        self.process_config = process_config
        self.artifacts = artifacts or InputArtifacts()
        self.logger = logger.bind(component="CrossModelValidator")

    @property
    def checks(self) -> list[Callable[[], list[ValidationError]]]:
        return [
            self.check_lane_assignees,
            self.check_node_names,
            self.check_node_kinds,
            self.check_artifact_references,
            self.check_form_data_outputs,
            self.check_data_object_types,
            self.check_data_object_states,
            self.check_state_required_fields,
            self.check_form_class_fields,
            self.check_form_state_fields,
            self.check_smtp_config,
            self.check_reserved_keywords,
        ]

    def validate(self) -> ValidationReport:
        report = ValidationReport()
        for check in self.checks:
            errors = check()
            if errors:
                self.logger.debug("check_failed", check=check.__name__, errors=len(errors))
            report.extend(errors)
        self.logger.info("validation_completed", errors=len(report), valid=report.is_valid)
        return report

    # Helpers

    def _graph_configs(self):
        """Yield (process config, matching graph or None)."""
        for process in self.process_config.processes:
            yield process, self.bpmn.process(process.id)

    def _matched_nodes(self):
        """Yield (graph, node config, node) for node configs naming exactly one node."""
        for process, graph in self._graph_configs():
            if graph is None:
                continue
            for node_config in process.config.nodes:
                matches = graph.nodes_named(node_config.name)
                if len(matches) == 1:
                    yield graph, node_config, matches[0]

    def form_data_object_pairs(self) -> list[FormDataObjectPair]:
        pairs = []
        for graph, node_config, node in self._matched_nodes():
            form = self.artifacts.forms.get(file_ref_basename(node_config.form_ref) or "")
            if form is None:
                continue
            for data_object in graph.outputs_of(node):
                pairs.append(FormDataObjectPair(form, node.name, data_object))
        return pairs

    # Checks

    def check_lane_assignees(self) -> list[ValidationError]:
        errors = []
        for process, graph in self._graph_configs():
            for lane_config in process.config.lanes:
                if graph is not None and graph.lane_named(lane_config.name) is None:
                    errors.append(
                        ValidationError(
                            Rule.LANE_ASSIGNEE,
                            f"Lane config {lane_config.name!r} matches no lane in process {process.id!r}",
                            (lane_config.name,),
                        )
                    )
                assignee = lane_config.assignee_name
                if assignee is None:
                    continue
                if self.organization.find_binding(assignee) is None:
                    errors.append(
                        ValidationError(
                            Rule.LANE_ASSIGNEE,
                            f"Lane {lane_config.name!r} assignee {assignee!r} matches no role "
                            "in the organization model",
                            (lane_config.name, assignee),
                        )
                    )
        return errors

    def check_node_names(self) -> list[ValidationError]:
        errors = []
        for process, graph in self._graph_configs():
            if graph is None:
                errors.append(
                    ValidationError(
                        Rule.NODE_NAME,
                        f"Process config {process.id!r} matches no BPMN process",
                        (process.id,),
                    )
                )
                continue
            for node_config in process.config.nodes:
                count = len(graph.nodes_named(node_config.name))
                if count != 1:
                    errors.append(
                        ValidationError(
                            Rule.NODE_NAME,
                            f"Node config {node_config.name!r} matches {count} nodes in process "
                            f"{process.id!r}, expected exactly one",
                            (process.id, node_config.name),
                        )
                    )
        return errors

    def check_node_kinds(self) -> list[ValidationError]:
        errors = []
        for _, node_config, node in self._matched_nodes():
            expected: list[tuple[str, type]] = []
            if node_config.form_ref:
                expected.append(("formRef", UserTask))
            if node_config.email_json_ref:
                expected.append(("emailJsonRef", ServiceTask))
            if node_config.rest_call_ref:
                expected.append(("restCallRef", ServiceTask))
            if node_config.dmn_ref:
                expected.append(("dmnRef", BusinessRuleTask))
            for key, node_type in expected:
                if not isinstance(node, node_type):
                    errors.append(
                        ValidationError(
                            Rule.NODE_KIND,
                            f"Node {node.name!r} of kind {node.kind} cannot carry {key}",
                            (node.name, key),
                        )
                    )
        return errors

    def check_artifact_references(self) -> list[ValidationError]:
        available: dict[str, Any] = {
            "formRef": self.artifacts.forms,
            "emailJsonRef": self.artifacts.emails,
            "emailFtlRef": self.artifacts.email_templates,
            "restCallRef": self.artifacts.rest,
            "dmnRef": self.artifacts.dmn,
        }
        errors = []
        for node_config in self.process_config.all_nodes():
            for key, ref in node_config.file_refs().items():
                name = file_ref_basename(ref)
                if name not in available[key]:
                    errors.append(
                        ValidationError(
                            Rule.ARTIFACT_REFERENCE,
                            f"Node {node_config.name!r} {key} {ref!r} does not resolve to a supplied file",
                            (node_config.name, name or ref),
                        )
                    )
        return errors

    def check_form_data_outputs(self) -> list[ValidationError]:
        errors = []
        for _, node_config, node in self._matched_nodes():
            if node_config.form_ref and not node.data_outputs:
                errors.append(
                    ValidationError(
                        Rule.FORM_DATA_OUTPUT,
                        f"Node {node.name!r} references form {file_ref_basename(node_config.form_ref)!r} "
                        "but has no data output association",
                        (node.name,),
                    )
                )
        return errors

    def check_data_object_types(self) -> list[ValidationError]:
        errors = []
        for graph in self.bpmn.processes:
            for data_object in graph.data_objects.values():
                type_name = data_object.type_name
                if type_name is not None and not self.business.has_type(type_name):
                    errors.append(
                        ValidationError(
                            Rule.DATA_OBJECT_TYPE,
                            f"Data object {data_object.variable_name!r} has unknown type {type_name!r}",
                            (data_object.variable_name, type_name),
                        )
                    )
        return errors

    def check_data_object_states(self) -> list[ValidationError]:
        errors = []
        for graph in self.bpmn.processes:
            for data_object in graph.data_objects.values():
                if data_object.state is None or data_object.type_name is None:
                    continue
                if self.states.state(data_object.type_name, data_object.state) is None:
                    errors.append(
                        ValidationError(
                            Rule.DATA_OBJECT_STATE,
                            f"Data object {data_object.variable_name!r} uses state "
                            f"{data_object.state!r} not declared for {data_object.type_name!r}",
                            (data_object.variable_name, data_object.type_name, data_object.state),
                        )
                    )
        return errors

    def check_state_required_fields(self) -> list[ValidationError]:
        errors = []
        for entry in self.states.classes:
            cls = self.business.classes.get(entry.class_name)
            if cls is None:
                errors.append(
                    ValidationError(
                        Rule.STATE_REQUIRED_FIELD,
                        f"State model class {entry.class_name!r} is not a business object class",
                        (entry.class_name,),
                    )
                )
                continue
            for state in entry.states:
                for field in state.required_fields:
                    if cls.field(field) is None:
                        errors.append(
                            ValidationError(
                                Rule.STATE_REQUIRED_FIELD,
                                f"State {state.name!r} of {cls.name!r} requires missing field {field!r}",
                                (cls.name, state.name, field),
                            )
                        )
        return errors

    def check_form_class_fields(self) -> list[ValidationError]:
        errors = []
        for pair in self.form_data_object_pairs():
            cls = self.business.classes.get(pair.data_object.type_name or "")
            if cls is None:
                continue
            errors.extend(self._form_against_class(pair.form, pair.form.document, cls, frozenset()))
        return errors

    def _form_against_class(
        self,
        form: FormSchema,
        schema: dict[str, Any],
        cls: PumlClass,
        visited: frozenset[str],
    ) -> list[ValidationError]:
        if cls.name in visited:
            return []
        visited = visited | {cls.name}

        errors = []
        properties = schema.get("properties") or {}
        missing = [name for name in properties if cls.field(name) is None]
        if missing:
            errors.append(
                ValidationError(
                    Rule.FORM_CLASS_FIELDS,
                    f"Form {form.name!r} has properties {missing} not defined on class {cls.name!r}",
                    (form.name, cls.name, *missing),
                )
            )

        for name, definition in properties.items():
            field = cls.field(name)
            if field is None or not isinstance(definition, dict):
                continue
            if "$ref" in definition:
                definition = form.resolve_ref(definition["$ref"]) or {}
            nested = self.business.classes.get(field.type or "")
            if definition.get("type") == "object" and nested is not None:
                errors.extend(self._form_against_class(form, definition, nested, visited))
        return errors

    def check_form_state_fields(self) -> list[ValidationError]:
        errors = []
        for pair in self.form_data_object_pairs():
            data_object = pair.data_object
            if data_object.type_name is None or data_object.state is None:
                continue
            state = self.states.state(data_object.type_name, data_object.state)
            if state is None:
                continue
            properties = pair.form.properties
            required = pair.form.required
            for field in state.required_fields:
                if field not in properties:
                    reason = "is not a form property"
                elif field not in required:
                    reason = "is not listed as required by the form"
                else:
                    continue
                errors.append(
                    ValidationError(
                        Rule.FORM_STATE_FIELDS,
                        f"Field {field!r} required by state {state.name!r} of "
                        f"{data_object.type_name!r} {reason} {pair.form.name!r}",
                        (pair.form.name, data_object.type_name, state.name, field),
                    )
                )
        return errors

    def check_smtp_config(self) -> list[ValidationError]:
        email_nodes = [n.name for n in self.process_config.all_nodes() if _has_email(n)]
        if not email_nodes:
            return []
        smtp = self.process_config.smtp_config
        if smtp is None:
            return [
                ValidationError(
                    Rule.SMTP_CONFIG,
                    f"SMTP configuration missing but email is used by {email_nodes}",
                    tuple(email_nodes),
                )
            ]
        if not smtp.is_complete:
            missing = [
                key
                for key in ("host", "port", "username", "password")
                if getattr(smtp, key) is None or not str(getattr(smtp, key)).strip()
            ]
            return [
                ValidationError(
                    Rule.SMTP_CONFIG,
                    f"SMTP configuration incomplete, missing {missing}",
                    tuple(missing),
                )
            ]
        return []

    def check_reserved_keywords(self) -> list[ValidationError]:
        errors = []
        for cls in self.business.classes.values():
            for field in cls.fields:
                if field.name.lower() in RESERVED_KEYWORDS:
                    errors.append(
                        ValidationError(
                            Rule.RESERVED_KEYWORD,
                            f"Field {field.name!r} of class {cls.name!r} is a reserved keyword",
                            (cls.name, field.name),
                        )
                    )
        return errors


def _has_email(node_config: NodeConfig) -> bool:
    return bool(node_config.email_json_ref and node_config.email_json_ref.strip())
