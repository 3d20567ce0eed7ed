"""Phase A of expression resolution: global variable substitution.

Placeholders use a tilde-marked pre-runtime form:

- ``${~globalVariables.NAME~}`` is replaced by the literal value of NAME.
- ``${~expr~}`` for any other expr is normalized to ``${expr}``.
- Inside a larger ``${...}`` expression, ``~globalVariables.NAME~`` tokens
  are substituted and other ``~expr~`` tokens lose their tildes.

Unknown global names are left verbatim. Applying the resolver twice gives
the same result as applying it once.
"""

from __future__ import annotations

import copy
import re
from typing import Any

import structlog
from lxml import etree

from procforge.models.process import BpmnModel, ProcessGraph

logger = structlog.get_logger(__name__)

PLACEHOLDER = re.compile(r"\$\{([^}]*)\}")
WHOLE_TILDE = re.compile(r"^~([^~]+)~$")
TILDE_TOKEN = re.compile(r"~([^~]+)~")
GLOBAL_PREFIX = "globalVariables."


class GlobalVariableResolver:
    """Substitute global variable placeholders in text, JSON and XML trees.

    Args:
        variables: Global variable values by name

    Example:
        >>> resolver = GlobalVariableResolver({"baseUrl": "https://api.example.org"})
        >>> resolver.resolve_text("${~globalVariables.baseUrl~}/absences")
        'https://api.example.org/absences'
    """

    def __init__(self, variables: dict[str, str]):
        self.variables = dict(variables)
        self.unresolved: set[str] = set()

    def _global(self, expr: str) -> str | None:
        if not expr.startswith(GLOBAL_PREFIX):
            return None
        name = expr[len(GLOBAL_PREFIX):].strip()
        value = self.variables.get(name)
        if value is None:
            self.unresolved.add(name)
        return value

    def _placeholder(self, match: re.Match) -> str:
        content = match.group(1)
        whole = WHOLE_TILDE.match(content)
        if whole is not None:
            expr = whole.group(1)
            if expr.startswith(GLOBAL_PREFIX):
                value = self._global(expr)
                return match.group(0) if value is None else value
            return "${" + expr + "}"

        def token(inner: re.Match) -> str:
            expr = inner.group(1)
            if expr.startswith(GLOBAL_PREFIX):
                value = self._global(expr)
                return inner.group(0) if value is None else value
            return expr

        return "${" + TILDE_TOKEN.sub(token, content) + "}"

    def resolve_text(self, text: str | None) -> str | None:
        if text is None or "~" not in text:
            return text
        return PLACEHOLDER.sub(self._placeholder, text)

    def resolve_json(self, node: Any) -> Any:
        """Resolve every string leaf of a JSON tree, preserving structure."""
        if isinstance(node, str):
            return self.resolve_text(node)
        if isinstance(node, dict):
            return {key: self.resolve_json(value) for key, value in node.items()}
        if isinstance(node, list):
            return [self.resolve_json(value) for value in node]
        return node

    def resolve_xml(self, root: etree._Element) -> etree._Element:
        """Return a copy of an XML tree with attributes and text resolved."""
        resolved = copy.deepcopy(root)
        for element in resolved.iter():
            if not isinstance(element.tag, str):
                continue
            for key, value in element.attrib.items():
                if "~" in value:
                    element.set(key, self.resolve_text(value))
            if element.text and "~" in element.text:
                element.text = self.resolve_text(element.text)
            if element.tail and "~" in element.tail:
                element.tail = self.resolve_text(element.tail)
        return resolved

    def resolve_graph(self, graph: ProcessGraph) -> ProcessGraph:
        """Store resolved sequence-flow conditions in ``resolved_expression``.

        The raw ``expression`` is kept as loaded.
        """
        for flow in graph.flows.values():
            if flow.expression:
                graph = graph.with_flow(
                    flow.model_copy(update={"resolved_expression": self.resolve_text(flow.expression)})
                )
        return graph

    def resolve_bpmn(self, model: BpmnModel) -> BpmnModel:
        for graph in model.processes:
            model = model.with_process(self.resolve_graph(graph))
        if self.unresolved:
            logger.warning("unresolved_global_variables", names=sorted(self.unresolved))
        return model
