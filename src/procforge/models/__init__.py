"""Typed models shared by every pipeline stage."""

from procforge.models.artifacts import (
    DmnArtifact,
    EmailArtifact,
    FormSchema,
    InputArtifacts,
    RestArtifact,
)
from procforge.models.business import (
    BusinessObjectModel,
    ClassStates,
    Composition,
    PumlClass,
    PumlEnum,
    PumlField,
    StateDefinition,
    StateModel,
)
from procforge.models.organization import Actor, OrganizationModel, Role
from procforge.models.process import (
    ActivityNode,
    ActorBinding,
    BpmnModel,
    BusinessRuleTask,
    DataInputAssociation,
    DataObjectReference,
    DataOutputAssociation,
    EventNode,
    FlowNode,
    GatewayNode,
    Lane,
    ProcessGraph,
    SequenceFlow,
    ServiceTask,
    UserTask,
)
from procforge.models.process_config import (
    LaneConfig,
    NodeConfig,
    ProcessConfigFile,
    SmtpSettings,
)

__all__ = [
    "ActivityNode",
    "Actor",
    "ActorBinding",
    "BpmnModel",
    "BusinessObjectModel",
    "BusinessRuleTask",
    "ClassStates",
    "Composition",
    "DataInputAssociation",
    "DataObjectReference",
    "DataOutputAssociation",
    "DmnArtifact",
    "EmailArtifact",
    "EventNode",
    "FlowNode",
    "FormSchema",
    "GatewayNode",
    "InputArtifacts",
    "Lane",
    "LaneConfig",
    "NodeConfig",
    "OrganizationModel",
    "ProcessConfigFile",
    "ProcessGraph",
    "PumlClass",
    "PumlEnum",
    "PumlField",
    "RestArtifact",
    "Role",
    "SequenceFlow",
    "ServiceTask",
    "SmtpSettings",
    "StateDefinition",
    "StateModel",
    "UserTask",
]
