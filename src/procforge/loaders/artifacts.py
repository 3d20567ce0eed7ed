"""Loaders for side artifacts: form schemas, email and REST payloads, DMN files."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from procforge.errors import MalformedModelError
from procforge.loaders.xml import local_name, namespace_of, parse_xml
from procforge.models.artifacts import (
    DmnArtifact,
    EmailArtifact,
    EmailConfig,
    FormSchema,
    RestArtifact,
    RestConfig,
)

logger = structlog.get_logger(__name__)

TEMPLATE_PLACEHOLDER = re.compile(r"\$\{\s*([A-Za-z_][\w.]*)\s*(?:[?!][^}]*)?\}")


def _read_text(path: Path, artifact: str) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise MalformedModelError(artifact, f"cannot read file: {exc}", path) from exc


def _read_json_object(path: Path, artifact: str) -> dict[str, Any]:
    try:
        document = json.loads(_read_text(path, artifact))
    except json.JSONDecodeError as exc:
        raise MalformedModelError(artifact, f"invalid JSON: {exc}", path) from exc
    if not isinstance(document, dict):
        raise MalformedModelError(artifact, "top-level JSON value must be an object", path)
    return document


def template_placeholders(template: str) -> list[str]:
    """Root variable names used by ``${...}`` interpolations of a FreeMarker template."""
    names: list[str] = []
    for match in TEMPLATE_PLACEHOLDER.finditer(template):
        name = match.group(1).split(".", 1)[0]
        if name not in names:
            names.append(name)
    return names


class FormSchemaLoader:
    def load(self, path: Path) -> FormSchema:
        document = _read_json_object(path, "form")
        properties = document.get("properties", {})
        if not isinstance(properties, dict):
            raise MalformedModelError("form", "'properties' must be an object", path)
        required = document.get("required", [])
        if not isinstance(required, list):
            raise MalformedModelError("form", "'required' must be an array", path)
        logger.debug("form_loaded", path=str(path), properties=len(properties))
        return FormSchema(name=path.name, document=document)


class EmailLoader:
    """Load an email configuration together with its FreeMarker template.

    The template must only interpolate names defined in ``body.parameters``.
    """

    def load(self, template_path: Path, json_path: Path) -> EmailArtifact:
        document = _read_json_object(json_path, "email")
        try:
            config = EmailConfig.model_validate(document)
        except PydanticValidationError as exc:
            raise MalformedModelError("email", str(exc), json_path) from exc
        if not isinstance(document.get("body", {}).get("parameters"), dict):
            raise MalformedModelError("email", "missing 'body.parameters' object", json_path)

        template_text = _read_text(template_path, "email-template")
        missing = [
            name for name in template_placeholders(template_text) if name not in config.body.parameters
        ]
        if missing:
            raise MalformedModelError(
                "email-template",
                f"template variables without parameters: {', '.join(missing)}",
                template_path,
            )

        logger.debug("email_loaded", json=str(json_path), template=str(template_path))
        return EmailArtifact(
            name=json_path.name,
            template_name=template_path.name,
            document=document,
            template_text=template_text,
        )


class RestLoader:
    def load(self, path: Path) -> RestArtifact:
        document = _read_json_object(path, "rest")
        try:
            RestConfig.model_validate(document)
        except PydanticValidationError as exc:
            raise MalformedModelError("rest", str(exc), path) from exc
        logger.debug("rest_loaded", path=str(path))
        return RestArtifact(name=path.name, document=document)


class DmnLoader:
    """Load a DMN file, checking the namespace and decision elements."""

    def load(self, path: Path) -> DmnArtifact:
        text = _read_text(path, "dmn")
        root = parse_xml(text.encode("utf-8"), "dmn", path)
        namespace = namespace_of(root) or ""
        if local_name(root) != "definitions" or "omg.org/spec/DMN" not in namespace:
            raise MalformedModelError("dmn", "root element is not a DMN definitions element", path)

        decisions = [el for el in root if isinstance(el.tag, str) and local_name(el) == "decision"]
        if not decisions:
            raise MalformedModelError("dmn", "no decision element", path)
        for decision in decisions:
            if not decision.get("id"):
                raise MalformedModelError("dmn", "decision without id", path)
            kinds = {local_name(child) for child in decision if isinstance(child.tag, str)}
            if not kinds & {"decisionTable", "literalExpression"}:
                raise MalformedModelError(
                    "dmn", f"decision {decision.get('id')!r} has no decisionTable", path
                )

        logger.debug("dmn_loaded", path=str(path), decisions=len(decisions))
        return DmnArtifact(name=path.name, text=text)
