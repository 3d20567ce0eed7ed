"""Backend generators projecting the prepared model onto engine document formats."""

from procforge.generators.base import GeneratedFile, Generator, PreparedModel

__all__ = ["GeneratedFile", "Generator", "PreparedModel"]
