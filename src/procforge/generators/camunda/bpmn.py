"""Augment the source BPMN document with Camunda 7 execution attributes."""

from __future__ import annotations

from pathlib import PurePosixPath

import structlog
from lxml import etree

from procforge.config import CamundaConfig
from procforge.expressions.dialects import CamundaDialect
from procforge.loaders.bpmn import BPMN_NS
from procforge.loaders.xml import XSI_NS, local_name
from procforge.generators.xml_writer import ensure_namespaces, set_prefixed
from procforge.models.process import (
    ActorBinding,
    BpmnModel,
    BusinessRuleTask,
    Lane,
    ProcessGraph,
    ServiceTask,
    UserTask,
)

logger = structlog.get_logger(__name__)

CAMUNDA_NS = "http://camunda.org/schema/1.0/bpmn"
MODELER_NS = "http://camunda.org/schema/modeler/1.0"
DEFAULT_TARGET_NAMESPACE = "http://bpmn.io/schema/bpmn"


def _c(local: str) -> str:
    return f"{{{CAMUNDA_NS}}}{local}"


def _b(local: str) -> str:
    return f"{{{BPMN_NS}}}{local}"


def form_key(form_file: str) -> str:
    return f"embedded:app:forms/{PurePosixPath(form_file).with_suffix('.html').name}"


class CamundaBpmnAugmenter:
    """Write prepared bindings onto a copy of the BPMN document.

    Args:
        config: Camunda generator settings
        dialect: Expression dialect used for result variables
    """

    def __init__(self, config: CamundaConfig, dialect: CamundaDialect | None = None):
        self.config = config
        self.dialect = dialect or CamundaDialect()

    def augment(self, root: etree._Element, model: BpmnModel) -> etree._Element:
        root = ensure_namespaces(
            root, {"camunda": CAMUNDA_NS, "modeler": MODELER_NS, "xsi": XSI_NS}
        )
        for process_el in root.findall(_b("process")):
            graph = model.process(process_el.get("id") or "")
            if graph is not None:
                self._augment_process(process_el, graph)
            if process_el.get("isExecutable") is None:
                process_el.set("isExecutable", "true")
            process_el.set(_c("historyTimeToLive"), self.config.history_time_to_live)

        root.set("exporter", self.config.exporter)
        root.set("exporterVersion", self.config.exporter_version)
        root.set(f"{{{MODELER_NS}}}executionPlatform", "Camunda Platform")
        root.set(f"{{{MODELER_NS}}}executionPlatformVersion", self.config.execution_platform_version)
        if not root.get("targetNamespace"):
            root.set("targetNamespace", DEFAULT_TARGET_NAMESPACE)
        return root

    def _augment_process(self, process_el: etree._Element, graph: ProcessGraph) -> None:
        lanes = {lane.id: lane for lane in graph.lanes}
        for lane_el in process_el.iter(_b("lane")):
            lane = lanes.get(lane_el.get("id") or "")
            if lane is not None:
                self._augment_lane(lane_el, lane)

        for node_el in process_el:
            if not isinstance(node_el.tag, str):
                continue
            node = graph.nodes.get(node_el.get("id") or "")
            if node is None:
                continue
            if isinstance(node, UserTask):
                self._augment_user_task(node_el, node)
            for key, value in node.vendor_attributes.items():
                if "camunda" in key and key != "camunda:formKey":
                    set_prefixed(node_el, key, value)
            if isinstance(node, ServiceTask):
                self._augment_service_task(node_el, node)
            elif isinstance(node, BusinessRuleTask):
                self._augment_business_rule_task(node_el, node)

        for flow_el in process_el.findall(_b("sequenceFlow")):
            flow = graph.flows.get(flow_el.get("id") or "")
            if flow is not None and flow.resolved_expression:
                self._set_condition(flow_el, flow.resolved_expression)

    def _assign(self, element: etree._Element, actor: ActorBinding) -> None:
        if actor.kind == "role":
            element.set(_c("candidateGroups"), actor.name)
        else:
            element.set(_c("assignee"), actor.name)

    def _augment_lane(self, lane_el: etree._Element, lane: Lane) -> None:
        if lane.actor is not None:
            self._assign(lane_el, lane.actor)
        for key, value in lane.vendor_attributes.items():
            set_prefixed(lane_el, key, value)

    def _augment_user_task(self, node_el: etree._Element, node: UserTask) -> None:
        if node.actor is not None:
            self._assign(node_el, node.actor)
        if node.form_file:
            node_el.set(_c("formKey"), form_key(node.form_file))

    def _augment_service_task(self, node_el: etree._Element, node: ServiceTask) -> None:
        if node.email_config_file:
            node_el.set(_c("delegateExpression"), self.config.email_delegate)
            self._input_parameter(node_el, "configJson", node.email_config_file)
            if node.email_template_file:
                self._input_parameter(node_el, "templateFtl", node.email_template_file)
        if node.rest_call_file:
            node_el.set(_c("delegateExpression"), self.config.rest_delegate)
            self._input_parameter(node_el, "restCallConfig", node.rest_call_file)

    def _augment_business_rule_task(self, node_el: etree._Element, node: BusinessRuleTask) -> None:
        if node.dmn_file:
            node_el.set(_c("decisionRef"), PurePosixPath(node.dmn_file).stem)
        if node.dmn_result_variable:
            node_el.set(_c("resultVariable"), self.dialect.variable(node.dmn_result_variable))
            node_el.set(_c("mapDecisionResult"), "singleEntry")

    def _extension_elements(self, node_el: etree._Element) -> etree._Element:
        existing = node_el.find(_b("extensionElements"))
        if existing is not None:
            return existing
        extension = etree.Element(_b("extensionElements"))
        position = sum(
            1 for child in node_el if isinstance(child.tag, str) and local_name(child) == "documentation"
        )
        node_el.insert(position, extension)
        return extension

    def _input_parameter(self, node_el: etree._Element, name: str, value: str) -> None:
        extension = self._extension_elements(node_el)
        input_output = extension.find(_c("inputOutput"))
        if input_output is None:
            input_output = etree.SubElement(extension, _c("inputOutput"))
        for parameter in input_output.findall(_c("inputParameter")):
            if parameter.get("name") == name:
                parameter.text = value
                return
        parameter = etree.SubElement(input_output, _c("inputParameter"), name=name)
        parameter.text = value

    def _set_condition(self, flow_el: etree._Element, expression: str) -> None:
        condition = flow_el.find(_b("conditionExpression"))
        if condition is None:
            condition = etree.SubElement(flow_el, _b("conditionExpression"))
            prefix = next((p for p, uri in flow_el.nsmap.items() if uri == BPMN_NS), None)
            condition.set(f"{{{XSI_NS}}}type", f"{prefix}:tFormalExpression" if prefix else "tFormalExpression")
        condition.text = expression
