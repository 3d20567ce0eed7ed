"""Process graph intermediate representation.

Every entity here is a frozen Pydantic model. Later pipeline stages never
mutate a graph; they derive a new revision with ``model_copy(update=...)``
or the ``with_*`` helpers on ProcessGraph.
"""

from __future__ import annotations

import re
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

_TYPE_END = re.compile(r"[\n\[]")
_STATE = re.compile(r"\[([^\]]*)\]")


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class ActorBinding(_Frozen):
    """Resolved lane assignee.

    Attributes:
        kind: "role" when the assignee names an organization role,
            "user" when it names a single actor
        name: Role or actor name
    """

    kind: Literal["user", "role"]
    name: str


class DataInputAssociation(_Frozen):
    """A node reading a data object.

    Attributes:
        id: Association id
        source_ref: Id of the data object reference being read
    """

    id: str
    source_ref: str


class DataOutputAssociation(_Frozen):
    """A node writing a data object.

    Attributes:
        id: Association id
        target_ref: Id of the data object reference being written
    """

    id: str
    target_ref: str


class DataObjectReference(_Frozen):
    """A typed, optionally state-tagged variable slot.

    Attributes:
        id: Data object reference id
        label: Raw label, e.g. ``"req1: AbsenceRequest\\n[submitted]"``
        data_object_ref: Id of the underlying dataObject element
        variable_name: Text before the first colon
        type_name: Text after the colon up to a newline or ``[``
        state: Bracket content, None when absent or empty
    """

    id: str
    label: str
    data_object_ref: str | None = None
    variable_name: str
    type_name: str | None = None
    state: str | None = None

    @classmethod
    def from_label(cls, id: str, label: str, data_object_ref: str | None = None) -> DataObjectReference:
        variable, type_name, state = parse_label(label)
        return cls(
            id=id,
            label=label,
            data_object_ref=data_object_ref,
            variable_name=variable,
            type_name=type_name,
            state=state,
        )


def parse_label(label: str) -> tuple[str, str | None, str | None]:
    """Split a data object label into variable, type and state.

    Args:
        label: Label in the form ``variable: TypeName\\n[state]`` or
            ``variable: TypeName[state]``

    Returns:
        Tuple of (variable, type name or None, state or None)
    """
    variable, colon, rest = label.partition(":")
    if not colon:
        return label.strip(), None, None

    end = _TYPE_END.search(rest)
    type_part = rest[: end.start()] if end else rest
    type_name = type_part.strip() or None

    state = None
    if end is not None:
        match = _STATE.search(rest, end.start())
        if match is not None:
            state = match.group(1).strip() or None
    return variable.strip(), type_name, state


def render_label(variable: str, type_name: str | None, state: str | None) -> str:
    """Inverse of parse_label for well-formed parts."""
    if type_name is None:
        return variable
    if state is None:
        return f"{variable}: {type_name}"
    return f"{variable}: {type_name}\n[{state}]"


class _NodeBase(_Frozen):
    id: str
    name: str = ""
    vendor_attributes: dict[str, str] = Field(default_factory=dict)
    data_inputs: tuple[DataInputAssociation, ...] = ()
    data_outputs: tuple[DataOutputAssociation, ...] = ()


class UserTask(_NodeBase):
    """Human task assigned through its lane."""

    kind: Literal["userTask"] = "userTask"
    actor: ActorBinding | None = None
    form_file: str | None = None
    output_variable: str | None = None


class ServiceTask(_NodeBase):
    """Automated task, optionally bound to an email or REST artifact."""

    kind: Literal["serviceTask", "sendTask"] = "serviceTask"
    email_config_file: str | None = None
    email_template_file: str | None = None
    rest_call_file: str | None = None


class BusinessRuleTask(_NodeBase):
    """Task evaluating a DMN decision."""

    kind: Literal["businessRuleTask"] = "businessRuleTask"
    dmn_file: str | None = None
    dmn_result_variable: str | None = None


class EventNode(_NodeBase):
    """Start, end, intermediate or boundary event."""

    kind: Literal[
        "startEvent",
        "endEvent",
        "intermediateThrowEvent",
        "intermediateCatchEvent",
        "boundaryEvent",
    ]
    timer: str | None = None
    attached_to: str | None = None


class GatewayNode(_NodeBase):
    kind: Literal[
        "exclusiveGateway",
        "inclusiveGateway",
        "parallelGateway",
        "eventBasedGateway",
        "complexGateway",
    ]


class ActivityNode(_NodeBase):
    kind: Literal["task", "scriptTask", "receiveTask", "manualTask", "subProcess", "callActivity"]


FlowNode = Annotated[
    Union[UserTask, ServiceTask, BusinessRuleTask, EventNode, GatewayNode, ActivityNode],
    Field(discriminator="kind"),
]

NODE_KINDS: dict[str, type[_NodeBase]] = {
    "userTask": UserTask,
    "serviceTask": ServiceTask,
    "sendTask": ServiceTask,
    "businessRuleTask": BusinessRuleTask,
    "startEvent": EventNode,
    "endEvent": EventNode,
    "intermediateThrowEvent": EventNode,
    "intermediateCatchEvent": EventNode,
    "boundaryEvent": EventNode,
    "exclusiveGateway": GatewayNode,
    "inclusiveGateway": GatewayNode,
    "parallelGateway": GatewayNode,
    "eventBasedGateway": GatewayNode,
    "complexGateway": GatewayNode,
    "task": ActivityNode,
    "scriptTask": ActivityNode,
    "receiveTask": ActivityNode,
    "manualTask": ActivityNode,
    "subProcess": ActivityNode,
    "callActivity": ActivityNode,
}


class SequenceFlow(_Frozen):
    """Directed edge between two flow nodes.

    Attributes:
        id: Flow id
        name: Flow name, used to match target-engine connections
        source_ref: Source node id
        target_ref: Target node id
        expression: Raw conditionExpression text, kept as loaded
        resolved_expression: Expression after global-variable resolution, then
            rewritten per target; None until resolved
    """

    id: str
    name: str = ""
    source_ref: str
    target_ref: str
    expression: str | None = None
    resolved_expression: str | None = None

    @property
    def condition(self) -> str | None:
        """Most resolved form of the condition available."""
        return self.resolved_expression if self.resolved_expression is not None else self.expression


class Lane(_Frozen):
    """Pool subdivision owning a set of nodes.

    Attributes:
        id: Lane id
        name: Lane name, matched against lane configs
        node_refs: Ids of contained nodes in document order
        vendor_attributes: Extra attributes to emit on the lane
        actor: Resolved assignee, None until prepared
    """

    id: str
    name: str = ""
    node_refs: tuple[str, ...] = ()
    vendor_attributes: dict[str, str] = Field(default_factory=dict)
    actor: ActorBinding | None = None


class ProcessGraph(_Frozen):
    """One BPMN process as nodes, flows, lanes and data objects."""

    id: str
    name: str = ""
    is_executable: bool = False
    nodes: dict[str, FlowNode] = Field(default_factory=dict)
    flows: dict[str, SequenceFlow] = Field(default_factory=dict)
    data_objects: dict[str, DataObjectReference] = Field(default_factory=dict)
    lanes: tuple[Lane, ...] = ()

    @model_validator(mode="after")
    def check_references(self) -> ProcessGraph:
        """Ensure every flow, lane and association reference resolves."""
        for flow in self.flows.values():
            for ref in (flow.source_ref, flow.target_ref):
                if ref not in self.nodes:
                    raise ValueError(f"sequence flow {flow.id!r} references unknown node {ref!r}")
        for lane in self.lanes:
            for ref in lane.node_refs:
                if ref not in self.nodes:
                    raise ValueError(f"lane {lane.name or lane.id!r} references unknown node {ref!r}")
        for node in self.nodes.values():
            for inbound in node.data_inputs:
                if inbound.source_ref not in self.data_objects:
                    raise ValueError(
                        f"node {node.id!r} reads unknown data object {inbound.source_ref!r}"
                    )
            for outbound in node.data_outputs:
                if outbound.target_ref not in self.data_objects:
                    raise ValueError(
                        f"node {node.id!r} writes unknown data object {outbound.target_ref!r}"
                    )
            if isinstance(node, EventNode) and node.attached_to is not None:
                if node.attached_to not in self.nodes:
                    raise ValueError(
                        f"boundary event {node.id!r} attached to unknown node {node.attached_to!r}"
                    )
        return self

    def nodes_named(self, name: str) -> list[FlowNode]:
        return [node for node in self.nodes.values() if node.name == name]

    def lane_named(self, name: str) -> Lane | None:
        return next((lane for lane in self.lanes if lane.name == name), None)

    def outputs_of(self, node: FlowNode) -> list[DataObjectReference]:
        """Data objects written by a node, in association order."""
        return [self.data_objects[assoc.target_ref] for assoc in node.data_outputs]

    def with_node(self, node: FlowNode) -> ProcessGraph:
        return self.model_copy(update={"nodes": {**self.nodes, node.id: node}})

    def with_flow(self, flow: SequenceFlow) -> ProcessGraph:
        return self.model_copy(update={"flows": {**self.flows, flow.id: flow}})

    def with_lane(self, lane: Lane) -> ProcessGraph:
        lanes = tuple(lane if existing.id == lane.id else existing for existing in self.lanes)
        return self.model_copy(update={"lanes": lanes})


class BpmnModel(_Frozen):
    """A loaded BPMN definitions document.

    Attributes:
        id: Definitions id
        target_namespace: Definitions targetNamespace
        collaboration_id: Collaboration element id, if any
        participants: Participant name by process id
        processes: Process graphs in document order
    """

    id: str | None = None
    target_namespace: str | None = None
    collaboration_id: str | None = None
    participants: dict[str, str] = Field(default_factory=dict)
    processes: tuple[ProcessGraph, ...] = ()

    def process(self, process_id: str) -> ProcessGraph | None:
        return next((p for p in self.processes if p.id == process_id), None)

    def with_process(self, graph: ProcessGraph) -> BpmnModel:
        processes = tuple(graph if p.id == graph.id else p for p in self.processes)
        return self.model_copy(update={"processes": processes})
