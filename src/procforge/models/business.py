"""Business object and business object state models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Multiplicity = Literal["1", "many"]

PRIMITIVE_TYPES = frozenset(
    name.lower()
    for name in (
        "String",
        "Text",
        "Integer",
        "int",
        "Long",
        "Boolean",
        "bool",
        "Double",
        "Float",
        "LocalDate",
        "LocalDateTime",
        "OffsetDateTime",
        "Date",
    )
)


def is_primitive(type_name: str | None) -> bool:
    return type_name is not None and type_name.lower() in PRIMITIVE_TYPES


class PumlField(BaseModel):
    """Class field, optionally typed.

    Attributes:
        name: Field name
        type: Declared type name, None when untyped
    """

    model_config = ConfigDict(frozen=True)

    name: str
    type: str | None = None


class PumlClass(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    fields: tuple[PumlField, ...] = ()

    def field(self, name: str) -> PumlField | None:
        return next((f for f in self.fields if f.name == name), None)

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]


class PumlEnum(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    values: tuple[str, ...] = ()


class Composition(BaseModel):
    """``Whole "1" *-- "many" Part`` relationship.

    Attributes:
        whole: Owning class name
        part: Owned class name
        whole_multiplicity: Multiplicity on the whole side
        part_multiplicity: Multiplicity on the part side
    """

    model_config = ConfigDict(frozen=True)

    whole: str
    part: str
    whole_multiplicity: Multiplicity = "1"
    part_multiplicity: Multiplicity = "1"


class BusinessObjectModel(BaseModel):
    """Classes, enums and compositions parsed from PlantUML.

    Mappings keep declaration order.
    """

    model_config = ConfigDict(frozen=True)

    classes: dict[str, PumlClass] = Field(default_factory=dict)
    enums: dict[str, PumlEnum] = Field(default_factory=dict)
    compositions: tuple[Composition, ...] = ()

    def has_type(self, type_name: str) -> bool:
        return type_name in self.classes or type_name in self.enums or is_primitive(type_name)


class StateDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    required_fields: tuple[str, ...] = Field(default=(), alias="requiredFields")


class ClassStates(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    class_name: str = Field(alias="name")
    states: tuple[StateDefinition, ...] = ()


class StateModel(BaseModel):
    """Lifecycle states of business object classes.

    JSON shape: ``{"classes": [{"name": C, "states": [{"name": S, "requiredFields": [...]}]}]}``
    """

    model_config = ConfigDict(frozen=True)

    classes: tuple[ClassStates, ...] = ()

    def state(self, class_name: str, state_name: str) -> StateDefinition | None:
        for entry in self.classes:
            if entry.class_name == class_name:
                for state in entry.states:
                    if state.name == state_name:
                        return state
        return None
