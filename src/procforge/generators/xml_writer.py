"""lxml helpers shared by the backend generators."""

from __future__ import annotations

import hashlib
import string

import structlog
from lxml import etree

logger = structlog.get_logger(__name__)

_BASE62 = string.digits + string.ascii_uppercase + string.ascii_lowercase


def ensure_namespaces(root: etree._Element, namespaces: dict[str, str]) -> etree._Element:
    """Return a root declaring every prefix in ``namespaces``.

    lxml nsmaps are read-only, so a root missing a declaration is rebuilt with
    an extended nsmap and the original attributes and children moved over.
    Existing prefixes keep their URIs.
    """
    missing = {prefix: uri for prefix, uri in namespaces.items() if prefix not in root.nsmap}
    if not missing:
        return root
    nsmap = {**root.nsmap, **missing}
    rebuilt = etree.Element(root.tag, nsmap=nsmap)
    for key, value in root.attrib.items():
        rebuilt.set(key, value)
    rebuilt.text = root.text
    for child in list(root):
        rebuilt.append(child)
    return rebuilt


def qualify(element: etree._Element, name: str) -> str | None:
    """Turn ``prefix:local`` into Clark notation using the element's nsmap.

    Returns None when the prefix is not declared. Unprefixed names pass through.
    """
    if ":" not in name:
        return name
    prefix, local = name.split(":", 1)
    uri = element.nsmap.get(prefix)
    if uri is None:
        return None
    return f"{{{uri}}}{local}"


def set_prefixed(element: etree._Element, name: str, value: str) -> bool:
    """Set a ``prefix:local`` attribute. Returns False if the prefix is undeclared."""
    qualified = qualify(element, name)
    if qualified is None:
        logger.warning("undeclared_attribute_prefix", attribute=name, element=element.get("id"))
        return False
    element.set(qualified, value)
    return True


def to_xml_text(root: etree._Element, standalone: bool | None = None) -> str:
    """Serialize with an explicit UTF-8 declaration and pretty printing."""
    declaration = '<?xml version="1.0" encoding="UTF-8"'
    if standalone is not None:
        declaration += f' standalone="{"yes" if standalone else "no"}"'
    declaration += "?>\n"
    body = etree.tostring(root, encoding="unicode", pretty_print=True)
    return declaration + body


def to_ascii_xml(root: etree._Element) -> str:
    """Serialize as ASCII, non-ASCII characters as character references."""
    body = etree.tostring(root, encoding="ascii", xml_declaration=False, pretty_print=True)
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + body.decode("ascii")


def indent(root: etree._Element, space: str = "    ") -> etree._Element:
    etree.indent(root, space=space)
    return root


class IdFactory:
    """Deterministic XMI-style ids: ``_`` followed by 22 base62 characters.

    Ids derive from a SHA-1 of ``seed:counter`` so repeated runs over the same
    inputs produce identical documents.
    """

    def __init__(self, seed: str):
        self.seed = seed
        self.counter = 0

    def next(self) -> str:
        self.counter += 1
        digest = int.from_bytes(hashlib.sha1(f"{self.seed}:{self.counter}".encode()).digest(), "big")
        chars = []
        for _ in range(22):
            digest, remainder = divmod(digest, 62)
            chars.append(_BASE62[remainder])
        return "_" + "".join(chars)
