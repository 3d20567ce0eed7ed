"""Tests for the Typer command line interface."""

from __future__ import annotations

import copy
from pathlib import Path

import pytest
from typer.testing import CliRunner

from procforge.main import TargetChoice, app, get_app_context
from procforge.pipeline import Target

from tests.sample_design import PROCESS_CONFIG, write_json


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run every command from an empty directory so no procforge.toml is picked up."""
    cwd = tmp_path / "cwd"
    cwd.mkdir()
    monkeypatch.chdir(cwd)
    return cwd


@pytest.fixture
def model_args(workspace: Path) -> list[str]:
    """Options naming every input of the fixture design."""
    return [
        "--bpmn", str(workspace / "process.bpmn"),
        "--plantuml", str(workspace / "model.puml"),
        "--organization", str(workspace / "organization.archimate"),
        "--process-config", str(workspace / "config.json"),
        "--states", str(workspace / "states.json"),
        "--form", str(workspace / "forms/submit_request.json"),
        "--form", str(workspace / "forms/review_request.json"),
        "--dmn", str(workspace / "dmn/entitlement.dmn"),
        "--email", str(workspace / "email/notify.json"),
        "--email-template", str(workspace / "email/notify.ftl"),
        "--rest", str(workspace / "rest/post_absence.json"),
    ]


def test_target_choice() -> None:
    assert TargetChoice.ALL.targets() == [Target.CAMUNDA, Target.BONITA]
    assert TargetChoice.BONITA.targets() == [Target.BONITA]


class TestValidateCommand:
    def test_consistent_design(self, cli_runner, model_args) -> None:
        result = cli_runner.invoke(app, ["validate", *model_args])

        assert result.exit_code == 0
        assert "All models are consistent." in result.stdout

    def test_inconsistent_design(self, cli_runner, model_args, workspace: Path) -> None:
        document = copy.deepcopy(PROCESS_CONFIG)
        document.pop("smtpConfig")
        write_json(workspace / "config.json", document)

        result = cli_runner.invoke(app, ["validate", *model_args])

        assert result.exit_code == 1
        assert "Validation Errors (1)" in result.stdout
        assert "smtp-config" in result.stdout

    def test_malformed_input(self, cli_runner, model_args, workspace: Path) -> None:
        (workspace / "model.puml").write_text("interface Broken {\n}\n", encoding="utf-8")

        result = cli_runner.invoke(app, ["validate", *model_args])

        assert result.exit_code == 1
        assert "Error:" in result.stdout

    def test_unpaired_email(self, cli_runner, model_args) -> None:
        args = model_args[: model_args.index("--email-template")] + model_args[model_args.index("--rest"):]

        result = cli_runner.invoke(app, ["validate", *args])

        assert result.exit_code == 1
        assert "--email-template" in result.stdout

    def test_missing_file_is_a_usage_error(self, cli_runner, model_args, tmp_path: Path) -> None:
        args = list(model_args)
        args[args.index("--states") + 1] = str(tmp_path / "missing.json")

        result = cli_runner.invoke(app, ["validate", *args])

        assert result.exit_code == 2


@pytest.mark.integration
class TestGenerateCommand:
    def test_all_targets(self, cli_runner, model_args, workspace: Path, tmp_path: Path) -> None:
        out = tmp_path / "build"
        result = cli_runner.invoke(
            app,
            ["generate", *model_args, "--proc-template", str(workspace / "bonita/absence.proc"), "--out", str(out)],
        )

        assert result.exit_code == 0, result.stdout
        assert "Generation Run" in result.stdout
        assert (out / "camunda" / "process.bpmn").is_file()
        assert (out / "bonita" / "_pool.conf").is_file()

    def test_single_target_case_insensitive(self, cli_runner, model_args, tmp_path: Path) -> None:
        out = tmp_path / "build"
        result = cli_runner.invoke(app, ["generate", *model_args, "-t", "CAMUNDA", "-o", str(out)])

        assert result.exit_code == 0, result.stdout
        assert (out / "camunda" / "entitlement.dmn").is_file()
        assert not (out / "bonita").exists()

    def test_failed_target_exits_nonzero(self, cli_runner, model_args, tmp_path: Path) -> None:
        out = tmp_path / "build"
        result = cli_runner.invoke(app, ["generate", *model_args, "--out", str(out)])

        assert result.exit_code == 1
        assert "failed" in result.stdout
        assert (out / "camunda" / "process.bpmn").is_file()

    def test_validation_failure_writes_nothing(self, cli_runner, model_args, workspace: Path, tmp_path: Path) -> None:
        document = copy.deepcopy(PROCESS_CONFIG)
        document["processes"][0]["config"]["lanes"][0]["assignee"] = "${ref:organization.Clerk}"
        write_json(workspace / "config.json", document)
        out = tmp_path / "build"

        result = cli_runner.invoke(app, ["generate", *model_args, "--out", str(out)])

        assert result.exit_code == 1
        assert "lane-assignee" in result.stdout
        assert not out.exists()

    def test_config_file_sets_output_dir(self, cli_runner, model_args, tmp_path: Path) -> None:
        config_file = tmp_path / "procforge.toml"
        config_file.write_text(f'[output]\nbase_dir = "{(tmp_path / "configured").as_posix()}"\ncamunda_dir = "c7"\n')

        result = cli_runner.invoke(app, ["--config", str(config_file), "generate", *model_args, "-t", "camunda"])

        assert result.exit_code == 0, result.stdout
        assert (tmp_path / "configured" / "c7" / "process.bpmn").is_file()


class TestInspectCommand:
    def test_tables(self, cli_runner, workspace: Path) -> None:
        result = cli_runner.invoke(app, ["inspect", str(workspace / "process.bpmn")])

        assert result.exit_code == 0
        assert "Process absenceRequest" in result.stdout
        for title in ("Lanes", "Nodes", "Sequence Flows", "Data Objects"):
            assert title in result.stdout
        assert "Task_Submit" in result.stdout

    def test_malformed_document(self, cli_runner, tmp_path: Path) -> None:
        path = tmp_path / "broken.bpmn"
        path.write_text("<definitions/>", encoding="utf-8")

        result = cli_runner.invoke(app, ["inspect", str(path)])

        assert result.exit_code == 1


class TestGlobalOptions:
    def test_verbose_enables_debug_logging(self, cli_runner, workspace: Path) -> None:
        result = cli_runner.invoke(app, ["--verbose", "inspect", str(workspace / "process.bpmn")])

        assert result.exit_code == 0
        assert "Debug logging enabled" in result.stdout
        assert get_app_context().config.logging.level == "DEBUG"

    def test_invalid_config_file(self, cli_runner, workspace: Path, tmp_path: Path) -> None:
        config_file = tmp_path / "bad.toml"
        config_file.write_text('[camunda]\nhistory_time_to_live = "soon"\n')

        result = cli_runner.invoke(app, ["--config", str(config_file), "inspect", str(workspace / "process.bpmn")])

        assert result.exit_code == 1
        assert "Error loading configuration" in result.stdout
