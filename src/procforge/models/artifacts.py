"""Side artifacts referenced from the process configuration.

Forms, email and REST payloads are kept as raw JSON documents so expression
resolution can rewrite every string leaf while preserving structure. Typed
views validate the parts the generators read.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FormSchema(BaseModel):
    """JSON form schema.

    Attributes:
        name: File basename, used as the reference key
        document: Parsed JSON schema
    """

    model_config = ConfigDict(frozen=True)

    name: str
    document: dict[str, Any]

    @property
    def title(self) -> str:
        return str(self.document.get("title") or "Form")

    @property
    def properties(self) -> dict[str, Any]:
        return self.document.get("properties") or {}

    @property
    def required(self) -> list[str]:
        return list(self.document.get("required") or [])

    def resolve_ref(self, ref: str) -> dict[str, Any] | None:
        """Follow a local ``#/a/b`` JSON pointer inside this schema."""
        if not ref.startswith("#/"):
            return None
        node: Any = self.document
        for part in ref[2:].split("/"):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node if isinstance(node, dict) else None


class EmailHeaders(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    from_: str | None = Field(default=None, alias="from")
    to: str | None = None
    subject: str | None = None
    cc: str | None = None
    bcc: str | None = None
    reply_to: str | None = Field(default=None, alias="replyTo")


class EmailBody(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    template_ref: str | None = Field(default=None, alias="templateRef")
    parameters: dict[str, Any] = Field(default_factory=dict)


class EmailConfig(BaseModel):
    """Email JSON: ``{"id", "headers": {...}, "body": {"templateRef", "parameters"}}``."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str | None = None
    headers: EmailHeaders = Field(default_factory=EmailHeaders)
    body: EmailBody = Field(default_factory=EmailBody)


class EmailArtifact(BaseModel):
    """An email configuration paired with its FreeMarker template.

    Attributes:
        name: JSON file basename
        template_name: FTL file basename
        document: Raw email JSON
        template_text: FTL template source
    """

    model_config = ConfigDict(frozen=True)

    name: str
    template_name: str
    document: dict[str, Any]
    template_text: str

    @property
    def config(self) -> EmailConfig:
        return EmailConfig.model_validate(self.document)


class RestRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    method: str = "POST"
    url: str
    headers: dict[str, Any] = Field(default_factory=dict)
    body: Any = None


class RestConfig(BaseModel):
    """REST JSON: ``{"id", "request": {"method", "url", "headers", "body"}}``."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str | None = None
    request: RestRequest


class RestArtifact(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    document: dict[str, Any]


class DmnArtifact(BaseModel):
    """DMN decision file.

    Attributes:
        name: File basename
        text: XML source
    """

    model_config = ConfigDict(frozen=True)

    name: str
    text: str


class InputArtifacts(BaseModel):
    """All side artifacts of one run, keyed by file basename."""

    model_config = ConfigDict(frozen=True)

    forms: dict[str, FormSchema] = Field(default_factory=dict)
    emails: dict[str, EmailArtifact] = Field(default_factory=dict)
    rest: dict[str, RestArtifact] = Field(default_factory=dict)
    dmn: dict[str, DmnArtifact] = Field(default_factory=dict)

    @property
    def email_templates(self) -> set[str]:
        return {email.template_name for email in self.emails.values()}
