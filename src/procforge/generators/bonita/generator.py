"""Bonita backend: process definition, business objects, organization and process configuration."""

from __future__ import annotations

import structlog

from procforge.config import BonitaConfig
from procforge.errors import GenerationError, MalformedModelError
from procforge.expressions.dialects import BonitaDialect
from procforge.generators.base import GeneratedFile, PreparedModel
from procforge.generators.bonita.bom import BonitaBomGenerator
from procforge.generators.bonita.forms import BonitaFormGenerator
from procforge.generators.bonita.organization import BonitaOrganizationGenerator
from procforge.generators.bonita.proc import BonitaProcAugmenter
from procforge.generators.bonita.process_config import BonitaProcessConfigGenerator
from procforge.generators.bonita.xmi import XMI_ID
from procforge.generators.templates import TemplateLoader
from procforge.generators.xml_writer import to_xml_text
from procforge.loaders.xml import parse_xml
from procforge.models.process import BpmnModel

logger = structlog.get_logger(__name__)


class BonitaGenerator:
    """Produce the Bonita deployment files.

    Output layout (relative to the target directory):

    - ``Organization.xml``: users, roles and memberships
    - ``<template name>``: augmented process definition
    - ``bom.xml``: business object model
    - ``<poolId>.conf``: actor mappings and connector dependencies
    - ``forms/``: UI Designer pages for user tasks with a form and a contract

    A process-definition template is required.
    """

    target = "bonita"

    def __init__(self, config: BonitaConfig | None = None, templates: TemplateLoader | None = None):
        self.config = config or BonitaConfig()
        self.templates = templates or TemplateLoader()
        self.dialect = BonitaDialect()
        self.logger = logger.bind(component="BonitaGenerator")

    def resolve_flows(self, model: BpmnModel) -> BpmnModel:
        for graph in model.processes:
            for flow in graph.flows.values():
                if flow.condition:
                    graph = graph.with_flow(
                        flow.model_copy(update={"resolved_expression": self.dialect.expression(flow.condition)})
                    )
            model = model.with_process(graph)
        return model

    def generate(self, prepared: PreparedModel) -> list[GeneratedFile]:
        """Generate all Bonita files.

        Raises:
            GenerationError: If the proc template is missing or malformed,
                or the organization has no roles
        """
        if not prepared.proc_template:
            raise GenerationError(self.target, "a process-definition (.proc) template is required")

        files = [
            GeneratedFile(
                relative_path="Organization.xml",
                content=BonitaOrganizationGenerator(self.config).render(prepared.organization),
            )
        ]

        try:
            root = parse_xml(prepared.proc_template, "proc", prepared.proc_template_name)
        except MalformedModelError as exc:
            raise GenerationError(self.target, str(exc)) from exc
        model = self.resolve_flows(prepared.bpmn)
        doc = BonitaProcAugmenter(self.config, self.templates, self.dialect).augment(root, prepared, model)
        form_files = BonitaFormGenerator().generate(doc, prepared, model)
        files.append(GeneratedFile(relative_path=prepared.proc_template_name, content=to_xml_text(doc.root)))

        files.append(
            GeneratedFile(relative_path="bom.xml", content=BonitaBomGenerator(self.config).render(prepared.business))
        )

        pool_id = doc.pool.get(XMI_ID)
        if not pool_id:
            raise GenerationError(self.target, "process:Pool element has no xmi:id")
        files.append(
            GeneratedFile(
                relative_path=f"{pool_id}.conf",
                content=BonitaProcessConfigGenerator(self.config).render(model, prepared.organization),
            )
        )
        files.extend(form_files)
        self.logger.info("bonita_generated", files=len(files), pool_id=pool_id)
        return files
