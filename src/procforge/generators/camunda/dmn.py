"""Camunda flavour of DMN decision files."""

from __future__ import annotations

from lxml import etree

from procforge.config import CamundaConfig
from procforge.expressions.dialects import CamundaDialect
from procforge.generators.xml_writer import ensure_namespaces, to_xml_text
from procforge.loaders.xml import local_name, namespace_of, parse_xml

CAMUNDA_DMN_NS = "http://camunda.org/schema/1.0/dmn"


def _apply_to_tree(root: etree._Element, transform) -> None:
    for element in root.iter():
        if not isinstance(element.tag, str):
            continue
        for key, value in element.attrib.items():
            if "${" in value:
                element.set(key, transform(value))
        if element.text and "${" in element.text:
            element.text = transform(element.text)


def camunda_dmn(text: str, config: CamundaConfig, dialect: CamundaDialect | None = None) -> str:
    """Flatten expressions, declare the camunda namespace and set Camunda attributes.

    Args:
        text: DMN source after global variable resolution
        config: Camunda settings (history time to live)
        dialect: Expression dialect

    Returns:
        Serialized DMN document
    """
    dialect = dialect or CamundaDialect()
    root = parse_xml(text, "dmn")
    _apply_to_tree(root, dialect.dmn_text)
    root = ensure_namespaces(root, {"camunda": CAMUNDA_DMN_NS})
    dmn_ns = namespace_of(root)

    for element in root.iter(f"{{{dmn_ns}}}input" if dmn_ns else "input"):
        text_el = element.find(
            f"{{{dmn_ns}}}inputExpression/{{{dmn_ns}}}text" if dmn_ns else "inputExpression/text"
        )
        if text_el is not None and (text_el.text or "").strip():
            element.set(f"{{{CAMUNDA_DMN_NS}}}inputVariable", text_el.text.strip())

    for decision in root:
        if isinstance(decision.tag, str) and local_name(decision) == "decision":
            decision.set(f"{{{CAMUNDA_DMN_NS}}}historyTimeToLive", config.history_time_to_live)

    return to_xml_text(root)
