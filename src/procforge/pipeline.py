"""Pipeline orchestrator: load, validate, resolve, prepare and generate.

One run loads every input artifact, validates the models against each
other, applies global-variable resolution and the preparation chain once,
then hands the shared prepared model to each requested backend. Backends
run independently; a failing target is recorded and the others proceed.

Example:
    >>> inputs = PipelineInputs(bpmn=Path("process.bpmn"), ...)
    >>> result = Pipeline(inputs, load_config()).run([Target.CAMUNDA])
    >>> result.success
    True
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from uuid import uuid4

import structlog
from pydantic import BaseModel, ConfigDict, Field

from procforge.config import ProcforgeConfig
from procforge.errors import GenerationError, MalformedModelError, ValidationReport
from procforge.expressions.globals import GlobalVariableResolver
from procforge.generators.base import GeneratedFile, Generator, PreparedModel
from procforge.generators.bonita import BonitaGenerator
from procforge.generators.camunda import CamundaGenerator
from procforge.generators.templates import TemplateLoader
from procforge.generators.xml_writer import to_xml_text
from procforge.loaders import (
    ArchimateLoader,
    BpmnLoader,
    DmnLoader,
    EmailLoader,
    FormSchemaLoader,
    PlantUmlParser,
    ProcessConfigLoader,
    RestLoader,
    StateModelLoader,
)
from procforge.loaders.xml import parse_xml
from procforge.logging import bind_run_context
from procforge.models.artifacts import InputArtifacts
from procforge.models.business import BusinessObjectModel, StateModel
from procforge.models.organization import OrganizationModel
from procforge.models.process import BpmnModel
from procforge.models.process_config import ProcessConfigFile
from procforge.preparer import ArtifactPreparer
from procforge.validation import CrossModelValidator

logger = structlog.get_logger(__name__)


class Target(str, Enum):
    """Backend process engines."""

    CAMUNDA = "camunda"
    BONITA = "bonita"


class PipelineInputs(BaseModel):
    """Paths of every input artifact of one run.

    Attributes:
        bpmn: BPMN 2.0 process document
        plantuml: PlantUML class diagram of the business objects
        organization: ArchiMate model holding roles and actors
        process_config: Process configuration JSON
        states: Business object state model JSON
        forms: JSON form schemas
        dmn: DMN decision documents
        emails: (FreeMarker template, email JSON) pairs
        rest: REST call configurations
        proc_template: Bonita process-definition template
    """

    model_config = ConfigDict(frozen=True)

    bpmn: Path
    plantuml: Path
    organization: Path
    process_config: Path
    states: Path
    forms: list[Path] = Field(default_factory=list)
    dmn: list[Path] = Field(default_factory=list)
    emails: list[tuple[Path, Path]] = Field(default_factory=list)
    rest: list[Path] = Field(default_factory=list)
    proc_template: Path | None = None


class LoadedModels(BaseModel):
    """Typed models of one run, as loaded and before any resolution."""

    model_config = ConfigDict(frozen=True)

    bpmn: BpmnModel
    bpmn_source: str
    business: BusinessObjectModel
    organization: OrganizationModel
    process_config: ProcessConfigFile
    process_config_source: str
    states: StateModel
    artifacts: InputArtifacts


class TargetResult(BaseModel):
    """Outcome of one backend.

    Attributes:
        target: Backend that ran
        success: Whether every file was generated and written
        files: Written file paths
        error: Failure description when unsuccessful
    """

    target: Target
    success: bool
    files: list[Path] = Field(default_factory=list)
    error: str | None = None


class PipelineResult(BaseModel):
    run_id: str
    output_dir: Path
    targets: list[TargetResult] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(result.success for result in self.targets)


def _read_source(path: Path, artifact: str) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise MalformedModelError(artifact, f"cannot read file: {exc}", path) from exc


def _resolve_document(resolver: GlobalVariableResolver, source: str, artifact: str, path: Path | str) -> str:
    """Resolve globals on the parsed tree so substituted values are escaped on output."""
    if "~" not in source:
        return source
    return to_xml_text(resolver.resolve_xml(parse_xml(source, artifact, path)))


class Pipeline:
    """Drive one run over a fixed set of inputs.

    Models are loaded lazily on first use and cached for the lifetime of
    the pipeline.

    Args:
        inputs: Input artifact paths
        config: Procforge configuration
        output_dir: Overrides ``config.output.base_dir`` when given
    """

    def __init__(self, inputs: PipelineInputs, config: ProcforgeConfig, output_dir: Path | None = None):
        self.inputs = inputs
        self.config = config
        self.output_dir = output_dir or config.output.base_dir
        self.templates = TemplateLoader()
        self._models: LoadedModels | None = None
        self.logger = logger.bind(component="Pipeline")

    def load(self) -> LoadedModels:
        """Load and parse every input artifact.

        Raises:
            MalformedModelError: If any artifact cannot be read or parsed
        """
        if self._models is not None:
            return self._models

        inputs = self.inputs
        self.logger.info("loading_models", bpmn=str(inputs.bpmn))
        artifacts = InputArtifacts(
            forms={form.name: form for form in map(FormSchemaLoader().load, inputs.forms)},
            dmn={dmn.name: dmn for dmn in map(DmnLoader().load, inputs.dmn)},
            emails={
                email.name: email
                for email in (EmailLoader().load(template, json_path) for template, json_path in inputs.emails)
            },
            rest={rest.name: rest for rest in map(RestLoader().load, inputs.rest)},
        )
        self._models = LoadedModels(
            bpmn=BpmnLoader(self.config.bpmn).load(inputs.bpmn),
            bpmn_source=_read_source(inputs.bpmn, "bpmn"),
            business=PlantUmlParser().load(inputs.plantuml),
            organization=ArchimateLoader().load(inputs.organization),
            process_config=ProcessConfigLoader().load(inputs.process_config),
            process_config_source=_read_source(inputs.process_config, "config"),
            states=StateModelLoader().load(inputs.states),
            artifacts=artifacts,
        )
        self.logger.info(
            "models_loaded",
            processes=len(self._models.bpmn.processes),
            classes=len(self._models.business.classes),
            roles=len(self._models.organization.roles),
            forms=len(artifacts.forms),
            emails=len(artifacts.emails),
            rest=len(artifacts.rest),
            dmn=len(artifacts.dmn),
        )
        return self._models

    def validate(self) -> ValidationReport:
        models = self.load()
        return CrossModelValidator(
            models.bpmn,
            models.organization,
            models.business,
            models.states,
            models.process_config,
            models.artifacts,
        ).validate()

    def prepare(self) -> PreparedModel:
        """Apply global-variable resolution and the preparation chain.

        The result is shared by every backend; backend-specific expression
        rewriting happens inside each generator.
        """
        models = self.load()
        resolver = GlobalVariableResolver(models.process_config.global_values)
        artifacts = models.artifacts.model_copy(
            update={
                "forms": {
                    name: form.model_copy(update={"document": resolver.resolve_json(form.document)})
                    for name, form in models.artifacts.forms.items()
                },
                "emails": {
                    name: email.model_copy(
                        update={
                            "document": resolver.resolve_json(email.document),
                            "template_text": resolver.resolve_text(email.template_text),
                        }
                    )
                    for name, email in models.artifacts.emails.items()
                },
                "rest": {
                    name: rest.model_copy(update={"document": resolver.resolve_json(rest.document)})
                    for name, rest in models.artifacts.rest.items()
                },
                "dmn": {
                    name: dmn.model_copy(update={"text": _resolve_document(resolver, dmn.text, "dmn", dmn.name)})
                    for name, dmn in models.artifacts.dmn.items()
                },
            }
        )
        bpmn = resolver.resolve_bpmn(models.bpmn)
        bpmn = ArtifactPreparer(models.organization, models.process_config).prepare(bpmn)

        proc_template = None
        proc_template_name = "process.proc"
        if self.inputs.proc_template is not None:
            proc_template = _read_source(self.inputs.proc_template, "proc")
            proc_template_name = self.inputs.proc_template.name

        return PreparedModel(
            bpmn=bpmn,
            bpmn_name=self.inputs.bpmn.name,
            bpmn_source=_resolve_document(resolver, models.bpmn_source, "bpmn", self.inputs.bpmn),
            business=models.business,
            organization=models.organization,
            process_config=models.process_config,
            process_config_name=self.inputs.process_config.name,
            process_config_source=models.process_config_source,
            artifacts=artifacts,
            proc_template=proc_template,
            proc_template_name=proc_template_name,
        )

    def generator(self, target: Target) -> Generator:
        if target is Target.CAMUNDA:
            return CamundaGenerator(self.config.camunda, self.templates)
        return BonitaGenerator(self.config.bonita, self.templates)

    def target_dir(self, target: Target) -> Path:
        subdir = self.config.output.camunda_dir if target is Target.CAMUNDA else self.config.output.bonita_dir
        return self.output_dir / subdir

    def write(self, target: Target, files: list[GeneratedFile]) -> list[Path]:
        base = self.target_dir(target)
        written = []
        for generated in files:
            path = base / generated.relative_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(generated.content, encoding="utf-8")
            written.append(path)
        return written

    def run(self, targets: list[Target] | None = None) -> PipelineResult:
        """Validate, prepare and generate every requested target.

        Args:
            targets: Backends to run; both when omitted

        Returns:
            Per-target outcomes

        Raises:
            MalformedModelError: If an input cannot be loaded
            ValidationFailedError: If the models are inconsistent
        """
        targets = targets or list(Target)
        run_id = uuid4().hex[:12]
        bind_run_context(run_id)
        self.logger.info("run_started", targets=[t.value for t in targets])

        self.validate().raise_for_errors()
        prepared = self.prepare()

        result = PipelineResult(run_id=run_id, output_dir=self.output_dir)
        for target in targets:
            bind_run_context(run_id, target.value)
            result.targets.append(self._run_target(target, prepared))
        bind_run_context(run_id)

        self.logger.info(
            "run_completed",
            success=result.success,
            failed=[r.target.value for r in result.targets if not r.success],
        )
        return result

    def _run_target(self, target: Target, prepared: PreparedModel) -> TargetResult:
        try:
            files = self.generator(target).generate(prepared)
            written = self.write(target, files)
        except GenerationError as e:
            self.logger.error("target_failed", error=str(e), exc_info=True)
            return TargetResult(target=target, success=False, error=str(e))
        except OSError as e:
            self.logger.error("target_write_failed", error=str(e), exc_info=True)
            return TargetResult(target=target, success=False, error=f"Cannot write output: {e}")

        self.logger.info("target_completed", files=len(written), directory=str(self.target_dir(target)))
        return TargetResult(target=target, success=True, files=written)
