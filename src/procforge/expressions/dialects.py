"""Phase B of expression resolution: per-target dialect transforms.

Camunda evaluates JUEL against flat process variables, so dotted paths
(``req1.status``) are flattened to ``req1_status``. Bonita evaluates Groovy
scripts, which accept the dotted infix syntax unchanged, so only the
``${...}`` wrapper is removed.

Neither dialect raises. Text outside ``${...}`` and unmatched placeholders
pass through untouched.
"""

from __future__ import annotations

import json
import re
from typing import Any

PLACEHOLDER = re.compile(r"\$\{([^}]*)\}")
WHOLE_PLACEHOLDER = re.compile(r"^\s*\$\{([^}]*)\}\s*$")
# String literals and unresolved ``~globalVariables.NAME~`` tokens are never flattened.
PROTECTED = re.compile(r"""(~globalVariables\.[^~]*~|'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")""")
DOTTED_PATH = re.compile(r"(?<![\w.])([A-Za-z_]\w*(?:\.[A-Za-z_]\w*)+)")
WRAPPER = re.compile(r"^\$\{~?|~?\}$")


def flatten_paths(expression: str) -> str:
    """Replace dots in identifier paths with underscores, skipping string literals and unresolved globals."""
    parts = PROTECTED.split(expression)
    for index in range(0, len(parts), 2):
        parts[index] = DOTTED_PATH.sub(lambda m: m.group(1).replace(".", "_"), parts[index])
    return "".join(parts)


def strip_wrapper(text: str | None) -> str | None:
    """``${~loan.state~}`` or ``${loan.state}`` -> ``loan.state``."""
    if text is None:
        return None
    return WRAPPER.sub("", text.strip()).strip("~").strip()


def _map_strings(node: Any, transform) -> Any:
    if isinstance(node, str):
        return transform(node)
    if isinstance(node, dict):
        return {key: _map_strings(value, transform) for key, value in node.items()}
    if isinstance(node, list):
        return [_map_strings(value, transform) for value in node]
    return node


class CamundaDialect:
    """JUEL with flat variable names."""

    name = "camunda"

    def expression(self, text: str | None) -> str | None:
        if text is None or "${" not in text:
            return text
        return PLACEHOLDER.sub(lambda m: "${" + flatten_paths(m.group(1)) + "}", text)

    def dmn_text(self, text: str) -> str:
        """DMN expressions are bare FEEL/JUEL, so the wrapper is dropped as well."""
        if "${" not in text:
            return text
        return PLACEHOLDER.sub(lambda m: flatten_paths(m.group(1)), text)

    def variable(self, text: str | None) -> str | None:
        stripped = strip_wrapper(text)
        return stripped.replace(".", "_") if stripped else stripped

    def json(self, document: Any) -> Any:
        return _map_strings(document, self.expression)


class BonitaDialect:
    """Groovy scripts, dotted paths kept."""

    name = "bonita"

    def expression(self, text: str | None) -> str | None:
        if text is None:
            return None
        match = WHOLE_PLACEHOLDER.match(text)
        return match.group(1).strip() if match else text.strip()

    def dmn_text(self, text: str) -> str:
        if "${" not in text:
            return text
        return PLACEHOLDER.sub(lambda m: m.group(1), text)

    def variable(self, text: str | None) -> str | None:
        return strip_wrapper(text)

    def rest(self, document: Any) -> Any:
        """Whole-string placeholders become bare Groovy; JSON string bodies are recursed into."""

        def transform(node: Any, key: str | None = None) -> Any:
            if isinstance(node, dict):
                return {k: transform(v, k) for k, v in node.items()}
            if isinstance(node, list):
                return [transform(v) for v in node]
            if isinstance(node, str):
                if key == "body" and node.strip()[:1] in ("{", "["):
                    try:
                        parsed = json.loads(node)
                    except json.JSONDecodeError:
                        return node
                    return json.dumps(transform(parsed), ensure_ascii=False)
                match = WHOLE_PLACEHOLDER.match(node)
                return match.group(1).strip() if match else node
            return node

        return transform(document)
