"""Compile a DMN decision table into a Groovy script.

Bonita has no DMN engine, so a business-rule task becomes an operation whose
right operand evaluates the rules in order and returns the first match:

    String status = (req1?.status as String)

    if (["submitted", "draft"].contains(status)) {
        return "review"
    }

    return null

Supported input entries: ``-`` or empty (always true), ``not(a, b)``,
comma lists, ``=x``, comparisons starting with ``<``, ``>`` or ``!=``,
booleans, numeric ranges ``a..b`` and plain literals. String literals are
quoted when the input's typeRef is ``string``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from procforge.generators.templates import TemplateLoader
from procforge.loaders.xml import local_name, parse_xml

GROOVY_TEMPLATE = "dmn_decision.groovy.j2"

_RANGE = re.compile(r"^(-?\d+(?:\.\d+)?)\s*\.\.\s*(-?\d+(?:\.\d+)?)$")
_NON_IDENTIFIER = re.compile(r"[^A-Za-z0-9_]")

GROOVY_TYPES = {
    "string": "String",
    "integer": "Integer",
    "long": "Long",
    "boolean": "Boolean",
    "double": "Double",
    "number": "Double",
}

RESULT_TYPES = {
    "string": "java.lang.String",
    "integer": "java.lang.Integer",
    "long": "java.lang.Long",
    "boolean": "java.lang.Boolean",
    "double": "java.lang.Double",
    "number": "java.lang.Double",
}


@dataclass(frozen=True)
class DecisionInput:
    expression: str
    type_ref: str | None = None


@dataclass(frozen=True)
class DecisionOutput:
    name: str | None = None
    type_ref: str | None = None


@dataclass(frozen=True)
class DecisionRule:
    input_entries: tuple[str, ...]
    output_entry: str | None = None


@dataclass
class DecisionTable:
    """First decision table of a DMN document.

    Attributes:
        inputs: Input expressions with their typeRefs
        output: First output column, None if the table declares none
        rules: Rules in document order
    """

    inputs: list[DecisionInput] = field(default_factory=list)
    output: DecisionOutput | None = None
    rules: list[DecisionRule] = field(default_factory=list)

    @property
    def result_type(self) -> str:
        return result_type(self.output.type_ref if self.output else None)


def _child(parent, name: str):
    if parent is None:
        return None
    return next(
        (child for child in parent if isinstance(child.tag, str) and local_name(child) == name),
        None,
    )


def _text(parent) -> str:
    if parent is None:
        return ""
    text_el = _child(parent, "text")
    source = text_el if text_el is not None else parent
    return "".join(source.itertext()).strip()


def parse_decision_table(text: str) -> DecisionTable | None:
    """Read the first decisionTable of a DMN document.

    Returns:
        The decision table, None when the document has none

    Raises:
        MalformedModelError: If the document is not well-formed
    """
    root = parse_xml(text, "dmn")
    element = next(
        (el for el in root.iter() if isinstance(el.tag, str) and local_name(el) == "decisionTable"),
        None,
    )
    if element is None:
        return None

    table = DecisionTable()
    for child in element:
        if not isinstance(child.tag, str):
            continue
        kind = local_name(child)
        if kind == "input":
            expression_el = _child(child, "inputExpression")
            table.inputs.append(
                DecisionInput(
                    expression=_text(expression_el),
                    type_ref=expression_el.get("typeRef") if expression_el is not None else None,
                )
            )
        elif kind == "output" and table.output is None:
            table.output = DecisionOutput(name=child.get("name"), type_ref=child.get("typeRef"))
        elif kind == "rule":
            entries = []
            output_entry = None
            for entry in child:
                if not isinstance(entry.tag, str):
                    continue
                if local_name(entry) == "inputEntry":
                    entries.append(_text(entry))
                elif local_name(entry) == "outputEntry":
                    output_entry = _text(entry)
            table.rules.append(DecisionRule(tuple(entries), output_entry))
    return table


def groovy_type(type_ref: str | None) -> str | None:
    return GROOVY_TYPES.get((type_ref or "").strip().lower())


def result_type(type_ref: str | None) -> str:
    return RESULT_TYPES.get((type_ref or "").strip().lower(), "java.lang.String")


def root_variable(expression: str | None) -> str | None:
    """``req1.status`` -> ``req1``."""
    if not expression or not expression.strip():
        return None
    return expression.strip().split(".", 1)[0] or None


def last_segment(expression: str | None) -> str | None:
    """``req1.status`` -> ``status``."""
    if not expression or not expression.strip():
        return None
    return expression.strip().rsplit(".", 1)[-1] or None


def safe_navigation(expression: str) -> str:
    return expression.strip().replace(".", "?.")


def local_name_for(expression: str, used: set[str]) -> str:
    base = _NON_IDENTIFIER.sub("_", last_segment(expression) or "") or "value"
    candidate = base
    counter = 1
    while candidate in used:
        candidate = f"{base}{counter}"
        counter += 1
    used.add(candidate)
    return candidate


def literal(value: str, type_ref: str | None) -> str:
    value = value.strip()
    if not value:
        return "null"
    if value[0] in ("'", '"'):
        return value
    if (type_ref or "").strip().lower() == "string":
        return f'"{value}"'
    return value


def list_literal(values: str, type_ref: str | None) -> str:
    items = [literal(item, type_ref) for item in values.split(",") if item.strip()]
    return "[" + ", ".join(items) + "]"


def _has_operator(text: str) -> bool:
    return any(op in text for op in (">", "<", "="))


def rule_condition(variable: str, type_ref: str | None, entry: str | None) -> str:
    """Translate one DMN input entry into a Groovy boolean expression."""
    test = (entry or "").strip()
    if not test or test == "-":
        return "true"
    if test.startswith("not(") and test.endswith(")"):
        return f"!({list_literal(test[4:-1], type_ref)}.contains({variable}))"
    if "," in test and not _has_operator(test):
        return f"{list_literal(test, type_ref)}.contains({variable})"
    if test.startswith("="):
        return f"{variable} == {test[1:].strip()}"
    if test.startswith((">", "<", "!=")):
        return f"{variable} {test}"
    if test.lower() in ("true", "false"):
        return f"{variable} == {test.lower()}"
    match = _RANGE.match(test)
    if match:
        start, end = match.groups()
        return f"({variable} >= {start} && {variable} <= {end})"
    return f"{variable} == {literal(test, type_ref)}"


@dataclass(frozen=True)
class _Local:
    name: str
    expression: str
    type_ref: str | None


class GroovyDecisionCompiler:
    """Render decision tables as Groovy scripts.

    Args:
        templates: Template loader providing the script template
    """

    def __init__(self, templates: TemplateLoader):
        self.templates = templates

    def compile(self, table: DecisionTable) -> str:
        used: set[str] = set()
        locals_ = [
            _Local(local_name_for(i.expression, used), i.expression.strip(), i.type_ref)
            for i in table.inputs
        ]

        declarations = []
        for local in locals_:
            if not local.expression:
                continue
            kind = groovy_type(local.type_ref)
            expr = safe_navigation(local.expression)
            if kind is None:
                declarations.append(f"def {local.name} = {expr}")
            else:
                declarations.append(f"{kind} {local.name} = ({expr} as {kind})")

        rules = []
        for rule in table.rules:
            conditions = []
            for index, local in enumerate(locals_):
                entry = rule.input_entries[index] if index < len(rule.input_entries) else ""
                condition = rule_condition(local.name, local.type_ref, entry)
                if condition != "true":
                    conditions.append(condition)
            rules.append(
                {
                    "condition": " && ".join(conditions) if conditions else "true",
                    "output": (rule.output_entry or "").strip() or "null",
                }
            )

        roots = list(dict.fromkeys(r for r in (root_variable(i.expression) for i in table.inputs) if r))
        outputs = list(
            dict.fromkeys(r.output_entry.strip() for r in table.rules if r.output_entry and r.output_entry.strip())
        )
        return self.templates.render(
            GROOVY_TEMPLATE,
            roots=roots,
            inputs=[
                {"expression": local.expression, "groovy_type": groovy_type(local.type_ref)}
                for local in locals_
                if local.expression
            ],
            outputs=outputs,
            declarations=declarations,
            rules=rules,
        )
