"""Business-object type mappings for the Bonita documents.

Lookups are case-insensitive on the declared PlantUML type. Enum-typed
fields behave like strings everywhere.
"""

from __future__ import annotations

from procforge.models.business import BusinessObjectModel

BOM_TYPES = {
    "string": "STRING",
    "boolean": "BOOLEAN",
    "bool": "BOOLEAN",
    "localdate": "LOCALDATE",
    "localdatetime": "LOCALDATETIME",
    "offsetdatetime": "OFFSETDATETIME",
    "double": "DOUBLE",
    "float": "FLOAT",
    "integer": "INTEGER",
    "int": "INTEGER",
    "long": "LONG",
    "text": "TEXT",
}

CONTRACT_TYPES = {
    "boolean": "BOOLEAN",
    "bool": "BOOLEAN",
    "localdate": "LOCALDATE",
    "localdatetime": "LOCALDATETIME",
    "offsetdatetime": "OFFSETDATETIME",
    "double": "DECIMAL",
    "float": "DECIMAL",
    "integer": "INTEGER",
    "int": "INTEGER",
}

JAVA_TYPES = {
    "boolean": "java.lang.Boolean",
    "bool": "java.lang.Boolean",
    "localdate": "java.time.LocalDate",
    "localdatetime": "java.time.LocalDateTime",
    "offsetdatetime": "java.time.OffsetDateTime",
    "double": "java.lang.Double",
    "float": "java.lang.Float",
    "integer": "java.lang.Integer",
    "int": "java.lang.Integer",
    "long": "java.lang.Long",
}


def _lookup(table: dict[str, str], type_name: str | None, business: BusinessObjectModel) -> str | None:
    if not type_name or type_name in business.enums:
        return None
    return table.get(type_name.lower())


def is_class_reference(type_name: str | None, business: BusinessObjectModel) -> bool:
    return bool(type_name) and type_name in business.classes


def bom_type(type_name: str | None, business: BusinessObjectModel) -> str:
    return _lookup(BOM_TYPES, type_name, business) or "STRING"


def contract_type(type_name: str | None, business: BusinessObjectModel) -> str:
    return _lookup(CONTRACT_TYPES, type_name, business) or "TEXT"


def java_type(type_name: str | None, business: BusinessObjectModel) -> str | None:
    """Operation return type, None for strings and unknown types."""
    return _lookup(JAVA_TYPES, type_name, business)
