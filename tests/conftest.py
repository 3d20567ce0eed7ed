"""Shared fixtures: one consistent absence-request design written to ``tmp_path``.

The fixture set passes every cross-model rule. Tests that exercise a rule
violation rewrite a single file in the workspace before loading.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from procforge.config import OutputConfig, ProcforgeConfig
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
from procforge.models.artifacts import InputArtifacts
from procforge.pipeline import PipelineInputs

from tests.sample_design import FIXTURE_FILES


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Write the consistent fixture set into a temporary directory.

    Returns:
        Directory holding every input artifact
    """
    root = tmp_path / "inputs"
    for relative, content in FIXTURE_FILES.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def inputs(workspace: Path) -> PipelineInputs:
    """Pipeline inputs pointing at the fixture workspace."""
    return PipelineInputs(
        bpmn=workspace / "process.bpmn",
        plantuml=workspace / "model.puml",
        organization=workspace / "organization.archimate",
        process_config=workspace / "config.json",
        states=workspace / "states.json",
        forms=[workspace / "forms/submit_request.json", workspace / "forms/review_request.json"],
        dmn=[workspace / "dmn/entitlement.dmn"],
        emails=[(workspace / "email/notify.ftl", workspace / "email/notify.json")],
        rest=[workspace / "rest/post_absence.json"],
        proc_template=workspace / "bonita/absence.proc",
    )


@pytest.fixture
def config(tmp_path: Path) -> ProcforgeConfig:
    """Default configuration writing below the temporary directory."""
    return ProcforgeConfig(output=OutputConfig(base_dir=tmp_path / "out"))


@pytest.fixture
def bpmn(workspace: Path):
    """Loaded BPMN model of the fixture process."""
    return BpmnLoader().load(workspace / "process.bpmn")


@pytest.fixture
def business(workspace: Path):
    """Loaded business object model."""
    return PlantUmlParser().load(workspace / "model.puml")


@pytest.fixture
def organization(workspace: Path):
    """Loaded organization with Employee (alice) and Manager (bob)."""
    return ArchimateLoader().load(workspace / "organization.archimate")


@pytest.fixture
def process_config(workspace: Path):
    return ProcessConfigLoader().load(workspace / "config.json")


@pytest.fixture
def states(workspace: Path):
    return StateModelLoader().load(workspace / "states.json")


@pytest.fixture
def artifacts(workspace: Path) -> InputArtifacts:
    """Forms, email, REST and DMN artifacts keyed by file name."""
    forms = [
        FormSchemaLoader().load(workspace / name)
        for name in ("forms/submit_request.json", "forms/review_request.json")
    ]
    email = EmailLoader().load(workspace / "email/notify.ftl", workspace / "email/notify.json")
    rest = RestLoader().load(workspace / "rest/post_absence.json")
    dmn = DmnLoader().load(workspace / "dmn/entitlement.dmn")
    return InputArtifacts(
        forms={form.name: form for form in forms},
        emails={email.name: email},
        rest={rest.name: rest},
        dmn={dmn.name: dmn},
    )
