"""Hardened lxml parsing shared by the XML loaders and generators."""

from __future__ import annotations

from pathlib import Path

from lxml import etree

from procforge.errors import MalformedModelError

XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"


def make_parser() -> etree.XMLParser:
    """XML parser with entity expansion, DTD loading and network access disabled."""
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        load_dtd=False,
        remove_blank_text=True,
        huge_tree=False,
    )


def parse_xml(source: bytes | str, artifact: str, path: Path | str | None = None) -> etree._Element:
    """Parse XML text into an element tree root.

    Args:
        source: Document bytes or text
        artifact: Artifact kind, used in error messages
        path: Originating file, used in error messages

    Returns:
        Root element

    Raises:
        MalformedModelError: If the document is not well-formed
    """
    data = source.encode("utf-8") if isinstance(source, str) else source
    try:
        return etree.fromstring(data, parser=make_parser())
    except etree.XMLSyntaxError as exc:
        raise MalformedModelError(artifact, f"not well-formed XML: {exc}", path) from exc


def read_xml(path: Path, artifact: str) -> etree._Element:
    """Read and parse an XML file.

    Raises:
        MalformedModelError: If the file is unreadable or not well-formed
    """
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise MalformedModelError(artifact, f"cannot read file: {exc}", path) from exc
    return parse_xml(data, artifact, path)


def local_name(element: etree._Element) -> str:
    return etree.QName(element).localname


def namespace_of(element: etree._Element) -> str | None:
    return etree.QName(element).namespace


def prefixed_name(element: etree._Element, attribute: str) -> str:
    """Render a Clark-notation attribute name as ``prefix:local`` using the element's nsmap."""
    qname = etree.QName(attribute)
    if qname.namespace is None:
        return qname.localname
    for prefix, uri in element.nsmap.items():
        if uri == qname.namespace and prefix:
            return f"{prefix}:{qname.localname}"
    return qname.localname
