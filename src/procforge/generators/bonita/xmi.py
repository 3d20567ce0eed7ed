"""XMI element construction for Bonita process-definition documents.

Process documents use unqualified element names (``elements``, ``data``,
``connectors``) and carry their model type in an ``xmi:type`` attribute
whose value is a ``prefix:Type`` string.
"""

from __future__ import annotations

from dataclasses import dataclass

from lxml import etree

from procforge.generators.xml_writer import IdFactory

XMI_NS = "http://www.omg.org/XMI"
PROCESS_NS = "http://www.bonitasoft.org/ns/bpm/process"
EXPRESSION_NS = "http://www.bonitasoft.org/ns/bpm/expression"
CONNECTOR_CONFIGURATION_NS = "http://www.bonitasoft.org/model/connector/configuration"

PROC_NAMESPACES = {
    "xmi": XMI_NS,
    "process": PROCESS_NS,
    "expression": EXPRESSION_NS,
    "connectorconfiguration": CONNECTOR_CONFIGURATION_NS,
}

XMI_TYPE = f"{{{XMI_NS}}}type"
XMI_ID = f"{{{XMI_NS}}}id"


def xmi_type(element: etree._Element) -> str:
    return element.get(XMI_TYPE) or ""


def children_named(parent: etree._Element, tag: str) -> list[etree._Element]:
    return [child for child in parent if child.tag == tag]


def remove_children(parent: etree._Element, tag: str) -> None:
    for child in children_named(parent, tag):
        parent.remove(child)


@dataclass(frozen=True)
class BusinessObjectData:
    """A pool-level business variable.

    Attributes:
        name: Variable name
        class_name: Qualified business object class
        data_type: Id of the BusinessObjectType datatype
    """

    name: str
    class_name: str
    data_type: str


class XmiFactory:
    """Create XMI elements with deterministic ids.

    Args:
        ids: Id source shared by every element of one document
    """

    def __init__(self, ids: IdFactory):
        self.ids = ids

    def element(self, tag: str, type_name: str, **attributes: str) -> etree._Element:
        element = etree.Element(tag)
        element.set(XMI_TYPE, type_name)
        element.set(XMI_ID, self.ids.next())
        for key, value in attributes.items():
            element.set(key, value)
        return element

    def expression(self, tag: str = "expression", **attributes: str) -> etree._Element:
        return self.element(tag, "expression:Expression", **attributes)

    def simple(self, value: str) -> etree._Element:
        return self.expression(name=value, content=value, returnTypeFixed="true")

    def empty(self) -> etree._Element:
        return self.expression(content="", returnTypeFixed="true")

    def boolean(self, value: bool) -> etree._Element:
        text = "true" if value else "false"
        return self.expression(
            name=text, content=text, returnType="java.lang.Boolean", returnTypeFixed="true"
        )

    def integer(self, value: int | None) -> etree._Element:
        if value is None:
            return self.expression(content="", returnType="java.lang.Integer", returnTypeFixed="true")
        text = str(value)
        return self.expression(
            name=text, content=text, returnType="java.lang.Integer", returnTypeFixed="true"
        )

    def table_expression(self) -> etree._Element:
        return self.element("expression", "expression:TableExpression")

    def list_expression(self) -> etree._Element:
        return self.element("expression", "expression:ListExpression")

    def script(self, tag: str, name: str, content: str, return_type: str | None = None) -> etree._Element:
        """Read-only Groovy script expression."""
        attributes = {
            "name": name,
            "content": content,
            "interpreter": "GROOVY",
            "type": "TYPE_READ_ONLY_SCRIPT",
        }
        if return_type:
            attributes["returnType"] = return_type
        return self.expression(tag, **attributes)

    def business_object_ref(self, data: BusinessObjectData, tag: str = "referencedElements") -> etree._Element:
        return self.element(
            tag,
            "process:BusinessObjectData",
            name=data.name,
            dataType=data.data_type,
            className=data.class_name,
        )

    def variable(self, tag: str, data: BusinessObjectData) -> etree._Element:
        """``TYPE_VARIABLE`` expression referencing a business variable."""
        expression = self.expression(
            tag, name=data.name, content=data.name, type="TYPE_VARIABLE", returnType=data.class_name
        )
        expression.append(self.business_object_ref(data))
        return expression

    def connector_parameter(self, key: str, expression: etree._Element) -> etree._Element:
        parameter = self.element("parameters", "connectorconfiguration:ConnectorParameter", key=key)
        parameter.append(expression)
        return parameter
