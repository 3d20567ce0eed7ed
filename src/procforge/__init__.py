"""Procforge - process-artifact compilation pipeline.

This package loads BPMN, DMN, PlantUML, ArchiMate and JSON process design
artifacts, cross-validates them, resolves their expressions and generates
deployable artifacts for the Camunda and Bonita workflow engines.
"""

__version__ = "0.1.0"
