"""BPMN 2.0 loader producing ProcessGraph models.

Only the subset used for lanes, tasks, events, gateways, data objects and
sequence flows is read. Everything else in the document is ignored.
"""

from __future__ import annotations

from pathlib import Path

import structlog
from lxml import etree
from pydantic import ValidationError as PydanticValidationError

from procforge.config import BpmnConfig, is_iso_duration
from procforge.errors import MalformedModelError
from procforge.loaders.xml import local_name, parse_xml, prefixed_name
from procforge.models.process import (
    NODE_KINDS,
    BpmnModel,
    DataInputAssociation,
    DataObjectReference,
    DataOutputAssociation,
    EventNode,
    Lane,
    ProcessGraph,
    SequenceFlow,
)

logger = structlog.get_logger(__name__)

BPMN_NS = "http://www.omg.org/spec/BPMN/20100524/MODEL"
NS = {"bpmn": BPMN_NS}


def _attr(element: etree._Element, name: str) -> str:
    return (element.get(name) or "").strip()


def _vendor_attributes(element: etree._Element) -> dict[str, str]:
    """Collect namespaced (non-BPMN) attributes as ``prefix:local`` -> value."""
    attributes: dict[str, str] = {}
    for key, value in element.attrib.items():
        qname = etree.QName(key)
        if qname.namespace is None or qname.namespace == BPMN_NS:
            continue
        attributes[prefixed_name(element, key)] = value
    return attributes


class BpmnLoader:
    """Parse a BPMN document into a BpmnModel.

    Example:
        >>> loader = BpmnLoader()
        >>> model = loader.load(Path("absence.bpmn"))
        >>> model.processes[0].lanes[0].name
        'Employee'
    """

    def __init__(self, config: BpmnConfig | None = None):
        self.config = config or BpmnConfig()
        self.logger = logger.bind(component="BpmnLoader")

    def load(self, path: Path) -> BpmnModel:
        """Load a BPMN file.

        Raises:
            MalformedModelError: If the file is unreadable, not well-formed or
                violates the process graph invariants
        """
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise MalformedModelError("bpmn", f"cannot read file: {exc}", path) from exc
        return self.parse(data, path)

    def parse(self, source: bytes | str, path: Path | None = None) -> BpmnModel:
        root = parse_xml(source, "bpmn", path)
        if local_name(root) != "definitions" or etree.QName(root).namespace != BPMN_NS:
            raise MalformedModelError("bpmn", "root element is not bpmn:definitions", path)

        collaboration = root.find("bpmn:collaboration", NS)
        if collaboration is None and self.config.require_collaboration:
            raise MalformedModelError("bpmn", "missing collaboration element", path)

        process_elements = root.findall("bpmn:process", NS)
        if not process_elements:
            raise MalformedModelError("bpmn", "missing process element", path)

        participants: dict[str, str] = {}
        if collaboration is not None:
            for participant in collaboration.findall("bpmn:participant", NS):
                process_ref = _attr(participant, "processRef")
                if process_ref:
                    participants[process_ref] = _attr(participant, "name")

        processes = tuple(self._parse_process(element, path) for element in process_elements)
        model = BpmnModel(
            id=root.get("id"),
            target_namespace=root.get("targetNamespace"),
            collaboration_id=collaboration.get("id") if collaboration is not None else None,
            participants=participants,
            processes=processes,
        )
        self.logger.info(
            "bpmn_loaded",
            path=str(path) if path else None,
            processes=len(processes),
            nodes=sum(len(p.nodes) for p in processes),
        )
        return model

    def _parse_process(self, element: etree._Element, path: Path | None) -> ProcessGraph:
        process_id = _attr(element, "id")
        if not process_id:
            raise MalformedModelError("bpmn", "process without id", path)

        data_objects: dict[str, DataObjectReference] = {}
        for ref in element.iter(f"{{{BPMN_NS}}}dataObjectReference"):
            ref_id = _attr(ref, "id")
            if ref_id in data_objects:
                raise MalformedModelError("bpmn", f"duplicate data object reference id {ref_id!r}", path)
            data_objects[ref_id] = DataObjectReference.from_label(
                ref_id, ref.get("name") or "", ref.get("dataObjectRef")
            )

        nodes = {}
        for child in element:
            if not isinstance(child.tag, str) or etree.QName(child).namespace != BPMN_NS:
                continue
            kind = local_name(child)
            if kind not in NODE_KINDS:
                continue
            node = self._parse_node(child, kind, path)
            if node.id in nodes:
                raise MalformedModelError("bpmn", f"duplicate node id {node.id!r}", path)
            nodes[node.id] = node

        flows: dict[str, SequenceFlow] = {}
        for flow in element.findall("bpmn:sequenceFlow", NS):
            condition = flow.find("bpmn:conditionExpression", NS)
            expression = condition.text.strip() if condition is not None and condition.text else None
            flows[_attr(flow, "id")] = SequenceFlow(
                id=_attr(flow, "id"),
                name=_attr(flow, "name"),
                source_ref=_attr(flow, "sourceRef"),
                target_ref=_attr(flow, "targetRef"),
                expression=expression,
            )

        lanes = tuple(
            Lane(
                id=_attr(lane, "id"),
                name=_attr(lane, "name"),
                node_refs=tuple(
                    (ref.text or "").strip() for ref in lane.findall("bpmn:flowNodeRef", NS)
                ),
                vendor_attributes=_vendor_attributes(lane),
            )
            for lane in element.iter(f"{{{BPMN_NS}}}lane")
        )

        try:
            return ProcessGraph(
                id=process_id,
                name=_attr(element, "name"),
                is_executable=_attr(element, "isExecutable").lower() == "true",
                nodes=nodes,
                flows=flows,
                data_objects=data_objects,
                lanes=lanes,
            )
        except PydanticValidationError as exc:
            detail = "; ".join(error["msg"] for error in exc.errors())
            raise MalformedModelError("bpmn", f"process {process_id!r}: {detail}", path) from exc

    def _parse_node(self, element: etree._Element, kind: str, path: Path | None):
        node_id = _attr(element, "id")
        if not node_id:
            raise MalformedModelError("bpmn", f"{kind} without id", path)

        fields: dict = {
            "id": node_id,
            "kind": kind,
            "name": _attr(element, "name"),
            "vendor_attributes": _vendor_attributes(element),
            "data_inputs": tuple(self._inputs(element)),
            "data_outputs": tuple(self._outputs(element)),
        }
        node_type = NODE_KINDS[kind]
        if node_type is EventNode:
            fields["timer"] = self._timer(element, path)
            fields["attached_to"] = element.get("attachedToRef")
        return node_type(**fields)

    def _inputs(self, element: etree._Element):
        for assoc in element.findall("bpmn:dataInputAssociation", NS):
            source = assoc.find("bpmn:sourceRef", NS)
            if source is not None and source.text:
                yield DataInputAssociation(id=_attr(assoc, "id"), source_ref=source.text.strip())

    def _outputs(self, element: etree._Element):
        for assoc in element.findall("bpmn:dataOutputAssociation", NS):
            target = assoc.find("bpmn:targetRef", NS)
            if target is not None and target.text:
                yield DataOutputAssociation(id=_attr(assoc, "id"), target_ref=target.text.strip())

    def _timer(self, element: etree._Element, path: Path | None) -> str | None:
        duration = element.find("bpmn:timerEventDefinition/bpmn:timeDuration", NS)
        if duration is None or not (duration.text or "").strip():
            return None
        value = duration.text.strip()
        if not is_iso_duration(value):
            raise MalformedModelError(
                "bpmn",
                f"event {element.get('id')!r} has invalid ISO-8601 duration {value!r}",
                path,
            )
        return value
