"""Cross-model validation."""

from procforge.validation.validator import (
    RESERVED_KEYWORDS,
    CrossModelValidator,
    FormDataObjectPair,
)

__all__ = ["RESERVED_KEYWORDS", "CrossModelValidator", "FormDataObjectPair"]
