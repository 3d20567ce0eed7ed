"""Augment a Bonita process-definition (``.proc``) template with execution details.

The template is a diagram exported from Bonita Studio. Its elements are
matched to the prepared BPMN model by name, case-insensitively, and enriched
step by step: actors, business data, timers, flow conditions, contracts,
connectors, vendor fragments and DMN operations.
"""

from __future__ import annotations

import copy
import re

import structlog
from lxml import etree

from procforge.config import BonitaConfig
from procforge.errors import GenerationError, MalformedModelError
from procforge.expressions.dialects import BonitaDialect
from procforge.generators.bonita.connectors import ConnectorBuilder
from procforge.generators.bonita.groovy import (
    GroovyDecisionCompiler,
    last_segment,
    parse_decision_table,
    root_variable,
)
from procforge.generators.bonita.types import contract_type, is_class_reference, java_type
from procforge.generators.bonita.xmi import (
    PROC_NAMESPACES,
    XMI_ID,
    XMI_TYPE,
    BusinessObjectData,
    XmiFactory,
    children_named,
    remove_children,
    xmi_type,
)
from procforge.generators.base import PreparedModel
from procforge.generators.templates import TemplateLoader
from procforge.generators.xml_writer import IdFactory, ensure_namespaces
from procforge.loaders.xml import parse_xml
from procforge.models.artifacts import RestConfig
from procforge.models.business import BusinessObjectModel, PumlField
from procforge.models.process import BpmnModel, BusinessRuleTask, EventNode, ServiceTask, UserTask

logger = structlog.get_logger(__name__)

USER_TASK_TYPES = ("process:Task", "process:UserTask", "process:HumanTask")

# Child elements that must follow operations and connectors, in schema order.
INSERTION_ANCHORS = (
    "loopCondition",
    "loopMaximum",
    "cardinalityExpression",
    "iteratorExpression",
    "completionCondition",
    "BoundaryIntermediateEvents",
    "formMapping",
    "contract",
    "expectedDuration",
)

_DURATION = re.compile(
    r"^P(?:(?P<weeks>\d+)W)?(?:(?P<days>\d+)D)?"
    r"(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)


def duration_millis(value: str) -> int:
    """Convert a fixed-length ISO-8601 duration to milliseconds.

    Raises:
        ValueError: For calendar units (years, months) or malformed values
    """
    match = _DURATION.match(value.strip())
    if match is None or value.strip() in ("P", "PT"):
        raise ValueError(f"unsupported timer duration {value!r}")
    parts = {key: float(group) if group else 0.0 for key, group in match.groupdict().items()}
    seconds = (
        parts["weeks"] * 604800
        + parts["days"] * 86400
        + parts["hours"] * 3600
        + parts["minutes"] * 60
        + parts["seconds"]
    )
    return int(round(seconds * 1000))


def clock_label(millis: int) -> str:
    """``3723000`` -> ``01:02:03``."""
    seconds = millis // 1000
    return f"{seconds // 3600:02d}:{seconds % 3600 // 60:02d}:{seconds % 60:02d}"


def name_key(name: str | None) -> str:
    return (name or "").strip().lower()


def insert_before_anchor(task: etree._Element, element: etree._Element) -> None:
    for anchor_tag in INSERTION_ANCHORS:
        anchors = children_named(task, anchor_tag)
        if anchors:
            anchors[0].addprevious(element)
            return
    task.append(element)


class ProcDocument:
    """Lookup helpers over a parsed proc document.

    Args:
        root: Document root
        ids: Id source for new elements
    """

    def __init__(self, root: etree._Element, ids: IdFactory):
        self.root = root
        self.xmi = XmiFactory(ids)

    def elements(self, *types: str) -> list[etree._Element]:
        return [el for el in self.root.iter("elements") if not types or xmi_type(el) in types]

    @property
    def pool(self) -> etree._Element:
        pools = self.elements("process:Pool")
        if not pools:
            raise GenerationError("bonita", "no process:Pool element in proc template")
        return pools[0]

    def named(self, *types: str) -> dict[str, etree._Element]:
        """Elements by lowercased name; the first element wins on duplicates."""
        result: dict[str, etree._Element] = {}
        for element in self.elements(*types):
            key = name_key(element.get("name"))
            if key:
                result.setdefault(key, element)
        return result

    @property
    def business_object_type_id(self) -> str | None:
        for datatype in self.root.iter("datatypes"):
            if xmi_type(datatype) == "process:BusinessObjectType" and datatype.get(XMI_ID):
                return datatype.get(XMI_ID)
        return None

    def business_data(self) -> dict[str, BusinessObjectData]:
        result: dict[str, BusinessObjectData] = {}
        for data in self.root.iter("data"):
            if xmi_type(data) != "process:BusinessObjectData":
                continue
            name = (data.get("name") or "").strip()
            class_name = data.get("className")
            data_type = data.get("dataType")
            if name and class_name and data_type:
                result.setdefault(name, BusinessObjectData(name, class_name, data_type))
        return result


class BonitaProcAugmenter:
    """Apply the prepared model to a proc template.

    Args:
        config: Bonita generator settings
        templates: Template loader for the DMN Groovy script
        dialect: Expression dialect
    """

    def __init__(
        self,
        config: BonitaConfig,
        templates: TemplateLoader,
        dialect: BonitaDialect | None = None,
    ):
        self.config = config
        self.dialect = dialect or BonitaDialect()
        self.compiler = GroovyDecisionCompiler(templates)
        self.logger = logger.bind(component="BonitaProcAugmenter")

    def qualified(self, class_name: str) -> str:
        return f"{self.config.model_package}.{class_name}"

    def augment(self, root: etree._Element, prepared: PreparedModel, model: BpmnModel) -> ProcDocument:
        """Run every enrichment step over the template.

        Args:
            root: Parsed proc template
            prepared: Generator inputs
            model: Prepared BPMN model with Bonita-resolved flow expressions

        Returns:
            The augmented document

        Raises:
            GenerationError: If the template has no pool, a timer cannot be
                converted or a vendor fragment is not well-formed
        """
        root = ensure_namespaces(root, PROC_NAMESPACES)
        doc = ProcDocument(root, IdFactory(f"{prepared.proc_template_name}:{prepared.bpmn_name}"))
        pool = doc.pool

        self.add_actors(doc, pool)
        self.set_initiator(doc)
        self.add_business_data(doc, pool, model)
        self.add_timer_conditions(doc, model)
        self.add_flow_conditions(doc, model)
        self.add_contracts(doc, model, prepared.business)
        self.add_rest_connectors(doc, model, prepared)
        self.add_email_connectors(doc, model, prepared)
        self.append_vendor_fragments(doc, model)
        self.add_decision_operations(doc, model, prepared)
        self.convert_send_tasks(doc)
        self.logger.info("proc_augmented", pool=pool.get("name"))
        return doc

    def add_actors(self, doc: ProcDocument, pool: etree._Element) -> dict[str, str]:
        """One actor per distinct lane name; lanes reference their actor by id."""
        actor_ids: dict[str, str] = {}
        lanes = doc.elements("process:Lane")
        for lane in lanes:
            name = lane.get("name")
            if name and name not in actor_ids:
                actor = doc.xmi.element("actors", "process:Actor", name=name)
                pool.append(actor)
                actor_ids[name] = actor.get(XMI_ID)
        for lane in lanes:
            actor_id = actor_ids.get(lane.get("name") or "")
            if actor_id:
                lane.set("actor", actor_id)
        return actor_ids

    def set_initiator(self, doc: ProcDocument) -> None:
        for lane in doc.elements("process:Lane"):
            has_start = any("Start" in xmi_type(child) for child in children_named(lane, "elements"))
            actor_id = lane.get("actor")
            if not has_start or not actor_id:
                continue
            for actor in doc.root.iter("actors"):
                if xmi_type(actor) == "process:Actor" and actor.get(XMI_ID) == actor_id:
                    actor.set("initiator", "true")
                    return
            return

    def add_business_data(self, doc: ProcDocument, pool: etree._Element, model: BpmnModel) -> None:
        variables: dict[str, str] = {}
        for graph in model.processes:
            for data_object in graph.data_objects.values():
                if data_object.variable_name and data_object.type_name:
                    variables.setdefault(data_object.variable_name, data_object.type_name)
        if not variables:
            return
        datatype_id = doc.business_object_type_id
        if datatype_id is None:
            self.logger.warning("business_object_type_missing", variables=sorted(variables))
            return

        existing = {data.get("name") for data in pool.iter("data")}
        for name, type_name in variables.items():
            if name in existing:
                continue
            data = doc.xmi.element(
                "data",
                "process:BusinessObjectData",
                name=name,
                dataType=datatype_id,
                className=self.qualified(type_name),
            )
            data.append(doc.xmi.script("defaultValue", "", "", "java.lang.Object"))
            pool.append(data)

    def add_timer_conditions(self, doc: ProcDocument, model: BpmnModel) -> None:
        timers = {
            name_key(node.name): node.timer
            for graph in model.processes
            for node in graph.nodes.values()
            if isinstance(node, EventNode) and node.timer and node.name
        }
        if not timers:
            return
        for element in doc.root.iter():
            if not isinstance(element.tag, str) or "TimerEvent" not in xmi_type(element):
                continue
            timer = timers.get(name_key(element.get("name")))
            if timer is None:
                continue
            try:
                millis = duration_millis(timer)
            except ValueError as exc:
                raise GenerationError("bonita", f"timer {element.get('name')!r}: {exc}") from exc
            element.append(doc.xmi.script("condition", clock_label(millis), f"{millis}L", "java.lang.Long"))

    def add_flow_conditions(self, doc: ProcDocument, model: BpmnModel) -> None:
        flows = {
            name_key(flow.name): flow
            for graph in model.processes
            for flow in graph.flows.values()
            if flow.name and flow.resolved_expression and flow.resolved_expression.strip()
        }
        if not flows:
            return
        business_data = doc.business_data()
        for connection in doc.root.iter("connections"):
            if xmi_type(connection) != "process:SequenceFlow":
                continue
            flow = flows.get(name_key(connection.get("name")))
            if flow is None:
                continue
            expression = flow.resolved_expression
            conditions = children_named(connection, "condition")
            if conditions:
                condition = conditions[0]
            else:
                condition = doc.xmi.expression("condition")
                connection.append(condition)
            condition.set(XMI_TYPE, "expression:Expression")
            for key, value in (
                ("name", expression),
                ("content", expression),
                ("interpreter", "GROOVY"),
                ("type", "TYPE_READ_ONLY_SCRIPT"),
                ("returnType", "java.lang.Boolean"),
                ("returnTypeFixed", "true"),
                ("automaticDependencies", "false"),
            ):
                condition.set(key, value)
            remove_children(condition, "referencedElements")
            for name, data in business_data.items():
                if re.search(rf"\b{re.escape(name)}\b", expression):
                    condition.append(doc.xmi.business_object_ref(data))

    def add_contracts(self, doc: ProcDocument, model: BpmnModel, business: BusinessObjectModel) -> None:
        """Contract inputs and field operations for user tasks writing a business object."""
        tasks = doc.named(*USER_TASK_TYPES)
        datatype_id = doc.business_object_type_id
        if not tasks or datatype_id is None:
            return
        for graph in model.processes:
            for node in graph.nodes.values():
                if not isinstance(node, UserTask) or not node.data_outputs:
                    continue
                task = tasks.get(name_key(node.name))
                outputs = graph.outputs_of(node)
                if task is None or not outputs:
                    continue
                variable, type_name = outputs[0].variable_name, outputs[0].type_name
                if not variable or type_name not in business.classes:
                    continue

                contract = self._contract(doc, task)
                top = self._contract_input(doc, f"{variable}Input", type="COMPLEX", dataReference=variable)
                contract.append(top)
                self._contract_fields(doc, top, type_name, business, set())

                remove_children(task, "operations")
                data = BusinessObjectData(variable, self.qualified(type_name), datatype_id)
                for field in business.classes[type_name].fields:
                    insert_before_anchor(task, self._field_operation(doc, data, field, business))

    def _contract(self, doc: ProcDocument, task: etree._Element) -> etree._Element:
        existing = children_named(task, "contract")
        if existing:
            contract = existing[0]
            if not contract.get(XMI_TYPE):
                contract.set(XMI_TYPE, "process:Contract")
            for child in list(contract):
                contract.remove(child)
            return contract
        contract = doc.xmi.element("contract", "process:Contract")
        task.append(contract)
        return contract

    def _contract_input(self, doc: ProcDocument, name: str, **attributes: str) -> etree._Element:
        return doc.xmi.element("inputs", "process:ContractInput", name=name, createMode="false", **attributes)

    def _contract_fields(
        self,
        doc: ProcDocument,
        parent: etree._Element,
        class_name: str,
        business: BusinessObjectModel,
        visiting: set[str],
    ) -> None:
        if class_name in visiting or class_name not in business.classes:
            return
        visiting.add(class_name)
        for field in business.classes[class_name].fields:
            if is_class_reference(field.type, business):
                child = self._contract_input(doc, field.name, type="COMPLEX")
                parent.append(child)
                self._contract_fields(doc, child, field.type, business, visiting)
            else:
                kind = contract_type(field.type, business)
                attributes = {} if kind == "TEXT" else {"type": kind}
                parent.append(self._contract_input(doc, field.name, **attributes))
        visiting.discard(class_name)

    def _field_operation(
        self,
        doc: ProcDocument,
        data: BusinessObjectData,
        field: PumlField,
        business: BusinessObjectModel,
    ) -> etree._Element:
        input_name = f"{data.name}Input"
        class_ref = is_class_reference(field.type, business)
        operation = doc.xmi.element("operations", "expression:Operation")
        operation.append(doc.xmi.variable("leftOperand", data))

        if class_ref:
            content = self._composition_script(input_name, data.name, field, business)
            right = doc.xmi.script("rightOperand", f"{input_name}.{field.name}", content, self.qualified(field.type))
        else:
            content = _field_access(input_name, [field.name], field.type, business)
            right = doc.xmi.script(
                "rightOperand", f"{input_name}.{field.name}", content, java_type(field.type, business)
            )
        right.append(
            doc.xmi.element(
                "referencedElements",
                "process:ContractInput",
                name=input_name,
                type="COMPLEX",
                createMode="false",
            )
        )
        if class_ref:
            right.append(doc.xmi.business_object_ref(data))
        operation.append(right)

        input_type = (
            self.qualified(field.type) if class_ref else java_type(field.type, business) or "java.lang.String"
        )
        operation.append(self._setter(doc, field.name, input_type))
        return operation

    def _setter(self, doc: ProcDocument, field_name: str, input_type: str) -> etree._Element:
        operator = doc.xmi.element(
            "operator",
            "expression:Operator",
            type="JAVA_METHOD",
            expression="set" + field_name[:1].upper() + field_name[1:],
        )
        etree.SubElement(operator, "inputTypes").text = input_type
        return operator

    def _composition_script(
        self, input_name: str, variable: str, field: PumlField, business: BusinessObjectModel
    ) -> str:
        local = field.type[:1].lower() + field.type[1:] + "Var"
        lines = [
            f"if (!{input_name}?.{field.name}) {{",
            "\treturn null",
            "}",
            f"def {local} = {variable}.{field.name} ?: new {self.qualified(field.type)}()",
        ]
        for nested in business.classes[field.type].fields:
            if is_class_reference(nested.type, business):
                value = f"{input_name}?.{field.name}?.{nested.name}"
            else:
                value = _field_access(input_name, [field.name, nested.name], nested.type, business)
            lines.append(f"{local}.{nested.name} = {value}")
        lines.append(f"return {local}")
        return "\n".join(lines)

    def add_rest_connectors(self, doc: ProcDocument, model: BpmnModel, prepared: PreparedModel) -> None:
        tasks = doc.named("process:ServiceTask")
        if not tasks:
            return
        builder = ConnectorBuilder(doc.xmi, doc.business_data())
        for graph in model.processes:
            for node in graph.nodes.values():
                if not isinstance(node, ServiceTask) or not node.rest_call_file:
                    continue
                task = tasks.get(name_key(node.name))
                artifact = prepared.artifacts.rest.get(node.rest_call_file)
                if task is None or artifact is None:
                    continue
                try:
                    config = RestConfig.model_validate(self.dialect.rest(artifact.document))
                except ValueError as exc:
                    raise GenerationError("bonita", f"REST call {artifact.name!r}: {exc}") from exc
                if not config.request.url.strip():
                    continue
                remove_children(task, "connectors")
                insert_before_anchor(task, builder.rest(config, node.name))

    def add_email_connectors(self, doc: ProcDocument, model: BpmnModel, prepared: PreparedModel) -> None:
        smtp = prepared.process_config.smtp_config
        tasks = doc.named("process:ServiceTask")
        if smtp is None or not tasks:
            return
        builder = ConnectorBuilder(doc.xmi, doc.business_data())
        for graph in model.processes:
            for node in graph.nodes.values():
                if not isinstance(node, ServiceTask) or not node.email_config_file:
                    continue
                task = tasks.get(name_key(node.name))
                email = prepared.artifacts.emails.get(node.email_config_file)
                if task is None or email is None:
                    continue
                remove_children(task, "connectors")
                insert_before_anchor(task, builder.email(email, smtp, node.name))

    def append_vendor_fragments(self, doc: ProcDocument, model: BpmnModel) -> None:
        """Flow-node vendor attributes naming ``bonita`` hold XML fragments to append."""
        elements = doc.named()
        declarations = " ".join(f'xmlns:{prefix}="{uri}"' for prefix, uri in PROC_NAMESPACES.items())
        for graph in model.processes:
            for node in graph.nodes.values():
                target = elements.get(name_key(node.name))
                if target is None:
                    continue
                for key, value in node.vendor_attributes.items():
                    if "bonita" not in key or not value.strip():
                        continue
                    try:
                        wrapper = parse_xml(f"<wrapper {declarations}>{value}</wrapper>", "bonita fragment")
                    except MalformedModelError as exc:
                        raise GenerationError("bonita", f"vendor attribute {key!r} on {node.name!r}: {exc.detail}") from exc
                    for child in wrapper:
                        if isinstance(child.tag, str):
                            target.append(copy.deepcopy(child))

    def add_decision_operations(self, doc: ProcDocument, model: BpmnModel, prepared: PreparedModel) -> None:
        """Business-rule tasks set their result field from a compiled decision table."""
        elements = doc.named()
        business_data = doc.business_data()
        for graph in model.processes:
            for node in graph.nodes.values():
                if not isinstance(node, BusinessRuleTask) or not node.dmn_file:
                    continue
                artifact = prepared.artifacts.dmn.get(node.dmn_file)
                task = elements.get(name_key(node.name))
                if artifact is None or task is None:
                    continue
                try:
                    table = parse_decision_table(self.dialect.dmn_text(artifact.text))
                except MalformedModelError as exc:
                    raise GenerationError("bonita", f"decision {artifact.name!r}: {exc.detail}") from exc
                if table is None or not table.inputs or not table.rules:
                    self.logger.warning("decision_table_empty", dmn=artifact.name)
                    continue

                result = (node.dmn_result_variable or "").strip() or (table.output.name if table.output else None)
                if not result:
                    continue
                root = root_variable(result) if "." in result else None
                if root is None:
                    root = next((r for r in (root_variable(i.expression) for i in table.inputs) if r), None)
                data = business_data.get(root or "")
                if data is None:
                    self.logger.warning("decision_target_missing", dmn=artifact.name, variable=root)
                    continue

                operation = doc.xmi.element("operations", "expression:Operation")
                operation.append(doc.xmi.variable("leftOperand", data))
                right = doc.xmi.script("rightOperand", "newScript()", self.compiler.compile(table), table.result_type)
                right.append(doc.xmi.business_object_ref(data))
                operation.append(right)
                operation.append(self._setter(doc, last_segment(result), table.result_type))
                remove_children(task, "operations")
                insert_before_anchor(task, operation)

    def convert_send_tasks(self, doc: ProcDocument) -> None:
        for element in doc.elements("process:SendTask"):
            element.set(XMI_TYPE, "process:Activity")
            for attribute in ("overrideActorsOfTheLane", "priority"):
                element.attrib.pop(attribute, None)


def _field_access(input_name: str, path: list[str], type_name: str | None, business: BusinessObjectModel) -> str:
    safe = input_name + "".join(f"?.{part}" for part in path)
    direct = ".".join([input_name, *path])
    kind = "" if not type_name or type_name in business.enums else type_name.lower()
    if kind == "long":
        return f"{safe}?.trim() ? {direct}.toLong() : null"
    if kind == "float":
        return f"{safe}?.toFloat()"
    return safe
