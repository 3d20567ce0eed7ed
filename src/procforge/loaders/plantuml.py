"""Line-oriented parser for the restricted PlantUML class-diagram dialect.

Supported grammar (one construct per line, ``'`` starts a comment):

    @startuml / @enduml
    class NAME {
        field
        field: Type
    }
    enum NAME {
        LITERAL,
    }
    Whole "1" *-- "many" Part
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

import structlog

from procforge.errors import MalformedModelError, UnsupportedLineError
from procforge.models.business import (
    BusinessObjectModel,
    Composition,
    PumlClass,
    PumlEnum,
    PumlField,
)

logger = structlog.get_logger(__name__)

CLASS_START = re.compile(r"^class\s+(\w+)\s*\{\s*$")
ENUM_START = re.compile(r"^enum\s+(\w+)\s*\{\s*$")
BLOCK_END = re.compile(r"^}\s*$")
COMPOSITION = re.compile(
    r'^(\w+)\s*(?:"(1|many)"\s*)?\*--\s*(?:"(1|many)"\s*)?(\w+)\s*$'
)
FIELD = re.compile(r"^([a-zA-Z_]\w*)(?:\s*:\s*([a-zA-Z_]\w*))?\s*$")
WRAPPERS = ("@startuml", "@enduml")


@dataclass
class _Block:
    kind: str
    name: str
    start_line: int
    items: list


class PlantUmlParser:
    """State machine over TopLevel, InClass and InEnum.

    Example:
        >>> model = PlantUmlParser().parse("class A {\\n  name: String\\n}")
        >>> model.classes["A"].fields[0].type
        'String'
    """

    def load(self, path: Path) -> BusinessObjectModel:
        """Parse a PlantUML file.

        Raises:
            MalformedModelError: If the file is unreadable or outside the grammar
        """
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise MalformedModelError("plantuml", f"cannot read file: {exc}", path) from exc
        model = self.parse(text, path)
        logger.info(
            "plantuml_loaded",
            path=str(path),
            classes=len(model.classes),
            enums=len(model.enums),
            compositions=len(model.compositions),
        )
        return model

    def parse(self, text: str, path: Path | None = None) -> BusinessObjectModel:
        classes: dict[str, PumlClass] = {}
        enums: dict[str, PumlEnum] = {}
        compositions: list[Composition] = []
        block: _Block | None = None

        for number, raw in enumerate(text.splitlines(), start=1):
            line = raw.split("'", 1)[0].strip()
            if not line:
                continue

            if block is None:
                if line in WRAPPERS:
                    continue
                if match := CLASS_START.match(line):
                    block = _Block("class", match.group(1), number, [])
                elif match := ENUM_START.match(line):
                    block = _Block("enum", match.group(1), number, [])
                elif match := COMPOSITION.match(line):
                    compositions.append(
                        Composition(
                            whole=match.group(1),
                            whole_multiplicity=match.group(2) or "1",
                            part_multiplicity=match.group(3) or "1",
                            part=match.group(4),
                        )
                    )
                else:
                    raise UnsupportedLineError(number, line, "unsupported top-level line", path)
                continue

            if BLOCK_END.match(line):
                if block.kind == "class":
                    classes[block.name] = PumlClass(name=block.name, fields=tuple(block.items))
                else:
                    enums[block.name] = PumlEnum(name=block.name, values=tuple(block.items))
                block = None
                continue

            if block.kind == "class":
                match = FIELD.match(line)
                if match is None:
                    raise UnsupportedLineError(
                        number, line, f"unsupported field in class {block.name}", path
                    )
                block.items.append(PumlField(name=match.group(1), type=match.group(2)))
            else:
                literal = line.replace(",", " ").replace(";", " ").split()
                if literal:
                    block.items.append(literal[0])

        if block is not None:
            raise UnsupportedLineError(
                block.start_line, f"{block.kind} {block.name} {{", "unclosed block", path
            )

        return BusinessObjectModel(classes=classes, enums=enums, compositions=tuple(compositions))


def render_plantuml(model: BusinessObjectModel) -> str:
    """Render a model back to the supported grammar, preserving declaration order."""
    lines = ["@startuml"]
    for cls in model.classes.values():
        lines.append(f"class {cls.name} {{")
        for field in cls.fields:
            lines.append(f"  {field.name}: {field.type}" if field.type else f"  {field.name}")
        lines.append("}")
    for enum in model.enums.values():
        lines.append(f"enum {enum.name} {{")
        lines.extend(f"  {value}" for value in enum.values)
        lines.append("}")
    for comp in model.compositions:
        lines.append(
            f'{comp.whole} "{comp.whole_multiplicity}" *-- "{comp.part_multiplicity}" {comp.part}'
        )
    lines.append("@enduml")
    return "\n".join(lines) + "\n"
