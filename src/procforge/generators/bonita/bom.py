"""Business object model (``bom.xml``) for the Bonita business data repository."""

from __future__ import annotations

from lxml import etree

from procforge.config import BonitaConfig
from procforge.generators.bonita.types import bom_type, is_class_reference
from procforge.generators.xml_writer import indent, to_xml_text
from procforge.models.business import BusinessObjectModel, PumlClass, PumlField

BOM_NS = "http://documentation.bonitasoft.com/bdm-xml-schema/1.0"
FIELD_LENGTH = "255"


def _q(local: str) -> str:
    return f"{{{BOM_NS}}}{local}"


class BonitaBomGenerator:
    """Render PlantUML classes as Bonita business objects.

    Class-typed fields become lazy composition relations. Every other field
    is a nullable, single-valued column.
    """

    def __init__(self, config: BonitaConfig):
        self.config = config

    def render(self, business: BusinessObjectModel) -> str:
        root = etree.Element(_q("businessObjectModel"), nsmap={None: BOM_NS})
        root.set("modelVersion", "1.0")
        objects = etree.SubElement(root, _q("businessObjects"))
        for puml_class in business.classes.values():
            objects.append(self._business_object(puml_class, business))
        return to_xml_text(indent(root), standalone=True)

    def _business_object(self, puml_class: PumlClass, business: BusinessObjectModel) -> etree._Element:
        element = etree.Element(_q("businessObject"))
        element.set("qualifiedName", f"{self.config.model_package}.{puml_class.name}")
        fields = etree.SubElement(element, _q("fields"))
        for field in puml_class.fields:
            fields.append(self._field(field, business))
        for tag in ("uniqueConstraints", "queries", "indexes"):
            etree.SubElement(element, _q(tag))
        return element

    def _field(self, field: PumlField, business: BusinessObjectModel) -> etree._Element:
        if is_class_reference(field.type, business):
            element = etree.Element(_q("relationField"))
            element.set("type", "COMPOSITION")
            element.set("reference", f"{self.config.model_package}.{field.type}")
            element.set("fetchType", "LAZY")
        else:
            element = etree.Element(_q("field"))
            element.set("type", bom_type(field.type, business))
            element.set("length", FIELD_LENGTH)
        element.set("name", field.name)
        element.set("nullable", "true")
        element.set("collection", "false")
        return element
