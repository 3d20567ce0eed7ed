"""Process configuration file model.

JSON shape::

    {
      "globalVariables": [{"name": "baseUrl", "value": "https://..."}],
      "processes": [
        {"id": "absenceRequest", "name": "Absence request",
         "config": {"lanes": [...], "tasks": [...], "events": [...]}}
      ],
      "smtpConfig": {"host": "...", "port": 587, "username": "...", "password": "..."}
    }
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

_FILE_REF = re.compile(r"^\$\{file:(.+)\}$")
_ORG_REF = re.compile(r"^\$\{ref:organization\.([^}]+)\}$")


def file_ref_path(ref: str | None) -> str | None:
    """Path inside a ``${file:...}`` reference, or the bare value itself."""
    if ref is None or not ref.strip():
        return None
    match = _FILE_REF.match(ref.strip())
    return match.group(1).strip() if match else ref.strip()


def file_ref_basename(ref: str | None) -> str | None:
    path = file_ref_path(ref)
    return PurePosixPath(path.replace("\\", "/")).name if path else None


def assignee_name(assignee: str | None) -> str | None:
    """Target of a ``${ref:organization.NAME}`` assignee, or the literal name."""
    if assignee is None or not assignee.strip():
        return None
    match = _ORG_REF.match(assignee.strip())
    return match.group(1).strip() if match else assignee.strip()


class _ConfigModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class GlobalVariable(_ConfigModel):
    name: str
    value: str


class LaneConfig(_ConfigModel):
    """Lane assignment.

    Attributes:
        name: Lane name in the BPMN diagram
        assignee: ``${ref:organization.NAME}`` or a literal name
        vendor_attributes: Extra attributes for the generated lane
    """

    name: str
    assignee: str | None = None
    vendor_attributes: dict[str, Any] = Field(default_factory=dict, alias="vendor_specific_attributes")

    @property
    def assignee_name(self) -> str | None:
        return assignee_name(self.assignee)


class NodeConfig(_ConfigModel):
    """Task or event binding.

    Attributes:
        name: Node name in the BPMN diagram
        form_ref: Form schema reference
        email_json_ref: Email configuration reference
        email_ftl_ref: FreeMarker email template reference
        rest_call_ref: REST call configuration reference
        dmn_ref: DMN decision file reference
        dmn_result_variable: Variable receiving the decision result
        vendor_attributes: Extra attributes for the generated node
    """

    name: str
    form_ref: str | None = Field(default=None, alias="formRef")
    email_json_ref: str | None = Field(default=None, alias="emailJsonRef")
    email_ftl_ref: str | None = Field(default=None, alias="emailFtlRef")
    rest_call_ref: str | None = Field(default=None, alias="restCallRef")
    dmn_ref: str | None = Field(default=None, alias="dmnRef")
    dmn_result_variable: str | None = Field(default=None, alias="dmnResultVariable")
    vendor_attributes: dict[str, Any] = Field(default_factory=dict, alias="vendor_specific_attributes")

    def file_refs(self) -> dict[str, str]:
        """Non-empty file references keyed by their JSON property name."""
        refs = {
            "formRef": self.form_ref,
            "emailJsonRef": self.email_json_ref,
            "emailFtlRef": self.email_ftl_ref,
            "restCallRef": self.rest_call_ref,
            "dmnRef": self.dmn_ref,
        }
        return {key: value for key, value in refs.items() if value and value.strip()}


class ProcessSettings(_ConfigModel):
    lanes: tuple[LaneConfig, ...] = ()
    tasks: tuple[NodeConfig, ...] = ()
    events: tuple[NodeConfig, ...] = ()

    @property
    def nodes(self) -> tuple[NodeConfig, ...]:
        return self.tasks + self.events


class ProcessConfig(_ConfigModel):
    id: str
    name: str | None = None
    config: ProcessSettings = Field(default_factory=ProcessSettings)


class SmtpSettings(_ConfigModel):
    host: str | None = None
    port: int | None = None
    username: str | None = None
    password: str | None = None

    @property
    def is_complete(self) -> bool:
        return all(
            value is not None and str(value).strip()
            for value in (self.host, self.port, self.username, self.password)
        )


class ProcessConfigFile(_ConfigModel):
    """Root of the process configuration file."""

    global_variables: tuple[GlobalVariable, ...] = Field(default=(), alias="globalVariables")
    processes: tuple[ProcessConfig, ...] = ()
    smtp_config: SmtpSettings | None = Field(default=None, alias="smtpConfig")

    @property
    def global_values(self) -> dict[str, str]:
        return {variable.name: variable.value for variable in self.global_variables}

    def process(self, process_id: str) -> ProcessConfig | None:
        return next((p for p in self.processes if p.id == process_id), None)

    def all_nodes(self) -> list[NodeConfig]:
        return [node for process in self.processes for node in process.config.nodes]
