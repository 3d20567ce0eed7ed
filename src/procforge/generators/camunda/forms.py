"""Embedded HTML forms for Camunda Tasklist, rendered from JSON form schemas."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any

from procforge.generators.templates import TemplateLoader
from procforge.models.artifacts import FormSchema
from procforge.models.process import UserTask

FORM_TEMPLATE = "camunda_form.html.j2"

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_NON_WORD = re.compile(r"[^0-9A-Za-z]+")


@dataclass(frozen=True)
class FormField:
    """One rendered form control.

    Attributes:
        name: Process variable name, ``<variable>_<path>``
        label: Human readable label
        required: Whether the control is required
        control: select, textarea or input
        input_type: HTML input type for ``input`` controls
        variable_type: Camunda variable type (String, Long, Double, Boolean)
        options: Enum values for ``select`` controls
    """

    name: str
    label: str
    required: bool
    control: str
    input_type: str = "text"
    variable_type: str = "String"
    options: tuple[str, ...] = field(default_factory=tuple)


def humanize(name: str) -> str:
    """``startDate`` -> ``Start Date``, ``end_date`` -> ``End date``."""
    text = _CAMEL_BOUNDARY.sub(" ", name).replace("_", " ").strip()
    return text[:1].upper() + text[1:]


def camel_case(text: str) -> str:
    words = [w for w in _NON_WORD.split(text) if w]
    if not words:
        return ""
    return words[0].lower() + "".join(w[:1].upper() + w[1:].lower() for w in words[1:])


def form_variable(node: UserTask) -> str:
    return node.output_variable or camel_case(node.name) or "task"


def html_form_name(form_file: str) -> str:
    return PurePosixPath(form_file).with_suffix(".html").name


def _field_for(name: str, label: str, definition: dict[str, Any], required: bool) -> FormField:
    json_type = definition.get("type", "string")
    if definition.get("enum"):
        return FormField(
            name, label, required, "select", options=tuple(str(v) for v in definition["enum"])
        )
    if json_type == "string" and "long" in str(definition.get("description", "")).lower():
        return FormField(name, label, required, "textarea")
    input_type, variable_type = {
        "integer": ("number", "Long"),
        "number": ("number", "Double"),
        "boolean": ("checkbox", "Boolean"),
    }.get(json_type, ("text", "String"))
    return FormField(name, label, required, "input", input_type, variable_type)


def form_fields(form: FormSchema, variable: str) -> list[FormField]:
    """Flatten a form schema into controls, following local ``$ref`` and nested objects."""
    fields: list[FormField] = []

    def walk(schema: dict[str, Any], prefix: str, visited: frozenset[str]) -> None:
        required = set(schema.get("required") or [])
        for prop_name, definition in (schema.get("properties") or {}).items():
            if not isinstance(definition, dict):
                continue
            path = f"{prefix}.{prop_name}" if prefix else prop_name
            ref = definition.get("$ref")
            if isinstance(ref, str):
                target = form.resolve_ref(ref)
                if target is not None and ref not in visited:
                    walk(target, path, visited | {ref})
                continue
            if definition.get("type") == "object" and definition.get("properties"):
                walk(definition, path, visited)
                continue
            name = f"{variable}_{path.replace('.', '_')}"
            label = definition.get("title") or humanize(prop_name)
            fields.append(_field_for(name, label, definition, prop_name in required))

    walk(form.document, "", frozenset())
    return fields


class CamundaFormRenderer:
    def __init__(self, templates: TemplateLoader):
        self.templates = templates

    def render(self, form: FormSchema, node: UserTask) -> str:
        fields = form_fields(form, form_variable(node))
        return self.templates.render(
            FORM_TEMPLATE,
            form_name=re.sub(r"\s+", "", form.title),
            fields=fields,
        )
