"""Main CLI entry point for Procforge.

This module provides the Typer application that validates process design
artifacts and generates Camunda and Bonita deployables from them.

Usage:
    procforge validate --bpmn process.bpmn --plantuml model.puml ...
    procforge generate --bpmn process.bpmn ... --target camunda --out build
    procforge inspect process.bpmn
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from procforge.config import ProcforgeConfig, load_config
from procforge.errors import ProcforgeError, ValidationFailedError, ValidationReport
from procforge.loaders import BpmnLoader
from procforge.logging import setup_logging
from procforge.pipeline import Pipeline, PipelineInputs, PipelineResult, Target

app = typer.Typer(
    name="procforge",
    help="Procforge: cross-validate process artifacts and generate engine deployables",
    no_args_is_help=True,
)

console = Console()


class TargetChoice(str, Enum):
    CAMUNDA = "camunda"
    BONITA = "bonita"
    ALL = "all"

    def targets(self) -> list[Target]:
        if self is TargetChoice.ALL:
            return list(Target)
        return [Target(self.value)]


class AppContext:
    """Application context shared across CLI commands.

    Attributes:
        config: Loaded Procforge configuration
    """

    def __init__(self, config: ProcforgeConfig):
        self.config = config


# Global context holder
_app_context: AppContext | None = None


def get_app_context() -> AppContext:
    """Get the shared application context.

    Raises:
        RuntimeError: If context has not been initialized
    """
    if _app_context is None:
        raise RuntimeError("Application context not initialized. Call initialize_context first.")
    return _app_context


def initialize_context(config: ProcforgeConfig) -> AppContext:
    global _app_context
    _app_context = AppContext(config)
    return _app_context


_EXISTING_FILE = dict(exists=True, dir_okay=False, readable=True)

BpmnOption = Annotated[Path, typer.Option("--bpmn", help="BPMN 2.0 process document", **_EXISTING_FILE)]
PlantUmlOption = Annotated[Path, typer.Option("--plantuml", help="PlantUML business object model", **_EXISTING_FILE)]
OrganizationOption = Annotated[
    Path, typer.Option("--organization", help="ArchiMate model with roles and actors", **_EXISTING_FILE)
]
ProcessConfigOption = Annotated[
    Path, typer.Option("--process-config", help="Process configuration JSON", **_EXISTING_FILE)
]
StatesOption = Annotated[Path, typer.Option("--states", help="Business object state model JSON", **_EXISTING_FILE)]
FormsOption = Annotated[
    Optional[list[Path]], typer.Option("--form", help="JSON form schema (repeatable)", **_EXISTING_FILE)
]
DmnOption = Annotated[Optional[list[Path]], typer.Option("--dmn", help="DMN decision (repeatable)", **_EXISTING_FILE)]
EmailOption = Annotated[
    Optional[list[Path]], typer.Option("--email", help="Email configuration JSON (repeatable)", **_EXISTING_FILE)
]
EmailTemplateOption = Annotated[
    Optional[list[Path]],
    typer.Option(
        "--email-template",
        help="FreeMarker template, paired by position with --email (repeatable)",
        **_EXISTING_FILE,
    ),
]
RestOption = Annotated[
    Optional[list[Path]], typer.Option("--rest", help="REST call configuration JSON (repeatable)", **_EXISTING_FILE)
]


def build_inputs(
    bpmn: Path,
    plantuml: Path,
    organization: Path,
    process_config: Path,
    states: Path,
    forms: list[Path] | None,
    dmn: list[Path] | None,
    emails: list[Path] | None,
    email_templates: list[Path] | None,
    rest: list[Path] | None,
    proc_template: Path | None = None,
) -> PipelineInputs:
    emails = emails or []
    email_templates = email_templates or []
    if len(emails) != len(email_templates):
        console.print(
            f"[red]Each --email needs a matching --email-template[/red] "
            f"({len(emails)} configurations, {len(email_templates)} templates)"
        )
        raise typer.Exit(code=1)
    return PipelineInputs(
        bpmn=bpmn,
        plantuml=plantuml,
        organization=organization,
        process_config=process_config,
        states=states,
        forms=forms or [],
        dmn=dmn or [],
        emails=list(zip(email_templates, emails)),
        rest=rest or [],
        proc_template=proc_template,
    )


def print_report(report: ValidationReport) -> None:
    table = Table(title=f"Validation Errors ({len(report)})")
    table.add_column("Rule", style="cyan", no_wrap=True)
    table.add_column("Message")
    table.add_column("Names", style="dim")
    for error in report.errors:
        table.add_row(error.rule.value, error.message, ", ".join(error.names))
    console.print(table)


def print_result(result: PipelineResult) -> None:
    table = Table(title=f"Generation Run {result.run_id}")
    table.add_column("Target", style="cyan")
    table.add_column("Status")
    table.add_column("Files", justify="right")
    table.add_column("Error", style="red")
    for target in result.targets:
        status = "[green]ok[/green]" if target.success else "[red]failed[/red]"
        table.add_row(target.target.value, status, str(len(target.files)), target.error or "")
    console.print(table)


@app.command()
def validate(
    bpmn: BpmnOption,
    plantuml: PlantUmlOption,
    organization: OrganizationOption,
    process_config: ProcessConfigOption,
    states: StatesOption,
    forms: FormsOption = None,
    dmn: DmnOption = None,
    emails: EmailOption = None,
    email_templates: EmailTemplateOption = None,
    rest: RestOption = None,
) -> None:
    """Cross-validate the input artifacts without generating anything."""
    ctx = get_app_context()
    inputs = build_inputs(
        bpmn, plantuml, organization, process_config, states, forms, dmn, emails, email_templates, rest
    )
    try:
        report = Pipeline(inputs, ctx.config).validate()
    except ProcforgeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    if not report.is_valid:
        print_report(report)
        raise typer.Exit(code=1)
    console.print("[green]All models are consistent.[/green]")


@app.command()
def generate(
    bpmn: BpmnOption,
    plantuml: PlantUmlOption,
    organization: OrganizationOption,
    process_config: ProcessConfigOption,
    states: StatesOption,
    forms: FormsOption = None,
    dmn: DmnOption = None,
    emails: EmailOption = None,
    email_templates: EmailTemplateOption = None,
    rest: RestOption = None,
    target: Annotated[
        TargetChoice,
        typer.Option("--target", "-t", help="Backend to generate for", case_sensitive=False),
    ] = TargetChoice.ALL,
    out: Annotated[
        Optional[Path],
        typer.Option("--out", "-o", help="Output directory (defaults to the configured base_dir)", file_okay=False),
    ] = None,
    proc_template: Annotated[
        Optional[Path],
        typer.Option("--proc-template", help="Bonita process-definition (.proc) template", **_EXISTING_FILE),
    ] = None,
) -> None:
    """Validate the inputs and generate deployables for the selected targets."""
    ctx = get_app_context()
    inputs = build_inputs(
        bpmn,
        plantuml,
        organization,
        process_config,
        states,
        forms,
        dmn,
        emails,
        email_templates,
        rest,
        proc_template,
    )
    try:
        result = Pipeline(inputs, ctx.config, output_dir=out).run(target.targets())
    except ValidationFailedError as e:
        print_report(e.report)
        raise typer.Exit(code=1)
    except ProcforgeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    print_result(result)
    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def inspect(
    bpmn: Annotated[Path, typer.Argument(help="BPMN 2.0 process document", **_EXISTING_FILE)],
) -> None:
    """Print the processes, lanes, nodes, flows and data objects of a BPMN document."""
    try:
        model = BpmnLoader(get_app_context().config.bpmn).load(bpmn)
    except ProcforgeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    for graph in model.processes:
        console.print(f"[bold cyan]Process {graph.id}[/bold cyan] {graph.name}")

        lanes = Table(title="Lanes")
        lanes.add_column("ID", style="dim")
        lanes.add_column("Name")
        lanes.add_column("Nodes", justify="right")
        for lane in graph.lanes:
            lanes.add_row(lane.id, lane.name, str(len(lane.node_refs)))
        console.print(lanes)

        nodes = Table(title="Nodes")
        nodes.add_column("ID", style="dim")
        nodes.add_column("Kind", style="cyan")
        nodes.add_column("Name")
        for node in graph.nodes.values():
            nodes.add_row(node.id, node.kind, node.name)
        console.print(nodes)

        flows = Table(title="Sequence Flows")
        flows.add_column("ID", style="dim")
        flows.add_column("Source")
        flows.add_column("Target")
        flows.add_column("Condition")
        for flow in graph.flows.values():
            flows.add_row(flow.id, flow.source_ref, flow.target_ref, flow.expression or "")
        console.print(flows)

        data = Table(title="Data Objects")
        data.add_column("ID", style="dim")
        data.add_column("Variable")
        data.add_column("Type")
        data.add_column("State")
        for data_object in graph.data_objects.values():
            data.add_row(
                data_object.id, data_object.variable_name, data_object.type_name or "", data_object.state or ""
            )
        console.print(data)


@app.callback()
def main_callback(
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file (TOML format)",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Configure global options and initialize application context.

    Args:
        config_path: Optional path to TOML configuration file
        verbose: Enable debug-level logging
    """
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading configuration:[/red] {e}")
        raise typer.Exit(code=1)

    if verbose:
        config = config.model_copy(update={"logging": config.logging.model_copy(update={"level": "DEBUG"})})
    setup_logging(config.logging)
    initialize_context(config)

    if verbose:
        console.print("[dim]Debug logging enabled[/dim]")


if __name__ == "__main__":
    app()
