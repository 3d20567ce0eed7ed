"""Bonita backend generator."""

from procforge.generators.bonita.generator import BonitaGenerator

__all__ = ["BonitaGenerator"]
