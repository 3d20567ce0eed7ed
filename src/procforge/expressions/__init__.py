"""Two-phase expression resolution."""

from procforge.expressions.dialects import (
    BonitaDialect,
    CamundaDialect,
    flatten_paths,
    strip_wrapper,
)
from procforge.expressions.globals import GlobalVariableResolver

__all__ = [
    "BonitaDialect",
    "CamundaDialect",
    "GlobalVariableResolver",
    "flatten_paths",
    "strip_wrapper",
]
