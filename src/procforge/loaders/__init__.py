"""Model loaders turning raw artifacts into typed models."""

from procforge.loaders.archimate import ArchimateLoader
from procforge.loaders.artifacts import DmnLoader, EmailLoader, FormSchemaLoader, RestLoader
from procforge.loaders.bpmn import BpmnLoader
from procforge.loaders.config import ProcessConfigLoader, StateModelLoader
from procforge.loaders.plantuml import PlantUmlParser, render_plantuml

__all__ = [
    "ArchimateLoader",
    "BpmnLoader",
    "DmnLoader",
    "EmailLoader",
    "FormSchemaLoader",
    "PlantUmlParser",
    "ProcessConfigLoader",
    "RestLoader",
    "StateModelLoader",
    "render_plantuml",
]
