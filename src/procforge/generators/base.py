"""Generator inputs and outputs shared by both backends."""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel, ConfigDict

from procforge.models.artifacts import InputArtifacts
from procforge.models.business import BusinessObjectModel
from procforge.models.organization import OrganizationModel
from procforge.models.process import BpmnModel
from procforge.models.process_config import ProcessConfigFile


class GeneratedFile(BaseModel):
    """One output document.

    Attributes:
        relative_path: Path below the target output directory
        content: Document text
    """

    model_config = ConfigDict(frozen=True)

    relative_path: str
    content: str


class PreparedModel(BaseModel):
    """Everything a generator consumes.

    Attributes:
        bpmn: Prepared BPMN model, sequence flows resolved by phase A only
        bpmn_name: File name of the source BPMN document
        bpmn_source: Source BPMN document text
        business: Business object model
        organization: Organization model
        process_config: Process configuration
        process_config_name: File name of the process configuration
        process_config_source: Source process configuration text
        artifacts: Side artifacts after phase A resolution
        proc_template: Bonita process-definition template text, if supplied
        proc_template_name: File name of the process-definition template
    """

    model_config = ConfigDict(frozen=True)

    bpmn: BpmnModel
    bpmn_name: str
    bpmn_source: str
    business: BusinessObjectModel
    organization: OrganizationModel
    process_config: ProcessConfigFile
    process_config_name: str = "config.json"
    process_config_source: str = ""
    artifacts: InputArtifacts = InputArtifacts()
    proc_template: str | None = None
    proc_template_name: str = "process.proc"


class Generator(Protocol):
    target: str

    def generate(self, prepared: PreparedModel) -> list[GeneratedFile]: ...
