"""Camunda 7 backend: augmented BPMN plus its runtime side files."""

from __future__ import annotations

import json
from pathlib import Path

import structlog

from procforge.config import CamundaConfig
from procforge.errors import GenerationError, MalformedModelError
from procforge.expressions.dialects import CamundaDialect
from procforge.generators.base import GeneratedFile, PreparedModel
from procforge.generators.camunda.bpmn import CamundaBpmnAugmenter
from procforge.generators.camunda.dmn import camunda_dmn
from procforge.generators.camunda.forms import CamundaFormRenderer, html_form_name
from procforge.generators.templates import TemplateLoader
from procforge.generators.xml_writer import to_xml_text
from procforge.loaders.xml import parse_xml
from procforge.models.process import BpmnModel, UserTask

logger = structlog.get_logger(__name__)


class CamundaGenerator:
    """Produce the Camunda deployment files.

    Output layout (relative to the target directory):

    - ``<bpmn name>``: augmented BPMN document
    - ``forms/<form>.html``: embedded task forms
    - ``<email>.json`` and ``<template>.ftl``: email configuration and template
    - ``<rest>.json``: REST call configuration
    - ``<decision>.dmn``: DMN decisions with Camunda attributes
    - ``<config name>``: copy of the process configuration
    """

    target = "camunda"

    def __init__(self, config: CamundaConfig | None = None, templates: TemplateLoader | None = None):
        self.config = config or CamundaConfig()
        self.templates = templates or TemplateLoader()
        self.dialect = CamundaDialect()
        self.logger = logger.bind(component="CamundaGenerator")

    def resolve_flows(self, model: BpmnModel) -> BpmnModel:
        for graph in model.processes:
            for flow in graph.flows.values():
                graph = graph.with_flow(
                    flow.model_copy(update={"resolved_expression": self.dialect.expression(flow.condition)})
                )
            model = model.with_process(graph)
        return model

    def generate(self, prepared: PreparedModel) -> list[GeneratedFile]:
        """Generate all Camunda files.

        Raises:
            GenerationError: If the BPMN document cannot be processed or a
                template is missing
        """
        model = self.resolve_flows(prepared.bpmn)
        files = [self._bpmn(prepared, model)]
        files.extend(self._forms(prepared, model))
        files.extend(self._emails(prepared))
        files.extend(self._rest(prepared))
        files.extend(self._dmn(prepared))
        if prepared.process_config_source:
            files.append(GeneratedFile(relative_path=prepared.process_config_name, content=prepared.process_config_source))
        self.logger.info("camunda_generated", files=len(files))
        return files

    def _bpmn(self, prepared: PreparedModel, model: BpmnModel) -> GeneratedFile:
        try:
            root = parse_xml(prepared.bpmn_source, "bpmn", prepared.bpmn_name)
        except MalformedModelError as exc:
            raise GenerationError(self.target, str(exc)) from exc
        root = CamundaBpmnAugmenter(self.config, self.dialect).augment(root, model)
        return GeneratedFile(relative_path=prepared.bpmn_name, content=to_xml_text(root))

    def _forms(self, prepared: PreparedModel, model: BpmnModel) -> list[GeneratedFile]:
        renderer = CamundaFormRenderer(self.templates)
        files: dict[str, GeneratedFile] = {}
        for graph in model.processes:
            for node in graph.nodes.values():
                if not isinstance(node, UserTask) or not node.form_file:
                    continue
                form = prepared.artifacts.forms.get(node.form_file)
                if form is None:
                    raise GenerationError(self.target, f"form {node.form_file!r} was not loaded")
                path = f"forms/{html_form_name(node.form_file)}"
                files[path] = GeneratedFile(relative_path=path, content=renderer.render(form, node))
        return list(files.values())

    def _emails(self, prepared: PreparedModel) -> list[GeneratedFile]:
        files = []
        for email in prepared.artifacts.emails.values():
            document = self.dialect.json(email.document)
            files.append(GeneratedFile(relative_path=email.name, content=_dump_json(document)))
            files.append(GeneratedFile(relative_path=email.template_name, content=email.template_text))
        return files

    def _rest(self, prepared: PreparedModel) -> list[GeneratedFile]:
        return [
            GeneratedFile(relative_path=rest.name, content=_dump_json(self.dialect.json(rest.document)))
            for rest in prepared.artifacts.rest.values()
        ]

    def _dmn(self, prepared: PreparedModel) -> list[GeneratedFile]:
        files = []
        for dmn in prepared.artifacts.dmn.values():
            try:
                content = camunda_dmn(dmn.text, self.config, self.dialect)
            except MalformedModelError as exc:
                raise GenerationError(self.target, str(exc)) from exc
            files.append(GeneratedFile(relative_path=Path(dmn.name).name, content=content))
        return files


def _dump_json(document) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"
