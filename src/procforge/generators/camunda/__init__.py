"""Camunda 7 backend generator."""

from procforge.generators.camunda.generator import CamundaGenerator

__all__ = ["CamundaGenerator"]
