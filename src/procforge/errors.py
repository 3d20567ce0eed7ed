"""Error taxonomy for Procforge.

Three failure classes map onto the three pipeline stages:

- MalformedModelError: a single input artifact fails its own grammar.
  Fatal; loading stops at the first one.
- ValidationError: a cross-model consistency rule is violated. These are
  collected into a ValidationReport and reported together.
- GenerationError: a backend failed to produce its documents. Scoped to
  that backend only.
"""

from __future__ import annotations

from collections import defaultdict
from enum import Enum
from pathlib import Path


class ProcforgeError(Exception):
    """Base class for all Procforge errors."""


class MalformedModelError(ProcforgeError):
    """An input artifact could not be parsed.

    Attributes:
        artifact: Kind of artifact (bpmn, plantuml, archimate, ...)
        path: Source file path, if known
        detail: Human readable description of the problem
    """

    def __init__(self, artifact: str, detail: str, path: Path | str | None = None):
        self.artifact = artifact
        self.path = Path(path) if path is not None else None
        self.detail = detail
        location = f" ({self.path})" if self.path is not None else ""
        super().__init__(f"Malformed {artifact}{location}: {detail}")


class UnsupportedLineError(MalformedModelError):
    """A PlantUML line outside the supported grammar.

    Attributes:
        line_number: 1-based line number of the offending line
        line: The offending line, stripped
    """

    def __init__(self, line_number: int, line: str, detail: str, path: Path | str | None = None):
        self.line_number = line_number
        self.line = line
        super().__init__("plantuml", f"line {line_number}: {detail}: {line!r}", path)


class Rule(str, Enum):
    """Cross-model validation rule identifiers, in execution order."""

    LANE_ASSIGNEE = "lane-assignee"
    NODE_NAME = "node-name"
    NODE_KIND = "node-kind"
    ARTIFACT_REFERENCE = "artifact-reference"
    FORM_DATA_OUTPUT = "form-data-output"
    DATA_OBJECT_TYPE = "data-object-type"
    DATA_OBJECT_STATE = "data-object-state"
    STATE_REQUIRED_FIELD = "state-required-field"
    FORM_CLASS_FIELDS = "form-class-fields"
    FORM_STATE_FIELDS = "form-state-fields"
    SMTP_CONFIG = "smtp-config"
    RESERVED_KEYWORD = "reserved-keyword"


class ValidationError(ProcforgeError):
    """A violated cross-model rule.

    Instances are collected by the validator rather than raised one by one.

    Attributes:
        rule: Identifier of the violated rule
        message: Human readable description
        names: Offending names (lane, assignee, class, field, ...)
    """

    def __init__(self, rule: Rule, message: str, names: tuple[str, ...] | list[str] = ()):
        self.rule = rule
        self.message = message
        self.names = tuple(names)
        super().__init__(f"[{rule.value}] {message}")

    def __repr__(self) -> str:
        return f"ValidationError(rule={self.rule.value!r}, names={self.names!r})"


class ValidationReport:
    """Aggregated outcome of one validator run."""

    def __init__(self, errors: list[ValidationError] | None = None):
        self.errors: list[ValidationError] = list(errors or [])

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def extend(self, errors: list[ValidationError]) -> None:
        self.errors.extend(errors)

    def by_rule(self) -> dict[Rule, list[ValidationError]]:
        """Group errors by rule, preserving check order."""
        grouped: dict[Rule, list[ValidationError]] = defaultdict(list)
        for error in self.errors:
            grouped[error.rule].append(error)
        return dict(grouped)

    def raise_for_errors(self) -> None:
        """Raise ValidationFailedError if any rule was violated.

        Raises:
            ValidationFailedError: If the report holds at least one error
        """
        if self.errors:
            raise ValidationFailedError(self)

    def __len__(self) -> int:
        return len(self.errors)


class ValidationFailedError(ProcforgeError):
    """Raised when a validation report holds violations.

    Attributes:
        report: The complete report
    """

    def __init__(self, report: ValidationReport):
        self.report = report
        super().__init__(f"Validation failed with {len(report)} error(s)")


class GenerationError(ProcforgeError):
    """A backend generator failed.

    Attributes:
        target: Backend name (camunda or bonita)
        detail: Description of the failure
    """

    def __init__(self, target: str, detail: str):
        self.target = target
        self.detail = detail
        super().__init__(f"Generation failed for {target}: {detail}")
