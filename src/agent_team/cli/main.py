"""Main CLI entry point for agent-team.

This module provides the command-line interface: running a team from a
configuration file, validating configurations and printing the status
machines.
"""

import asyncio
import json
from typing import Any

import click
from dotenv import load_dotenv
from tabulate import tabulate

from .. import __version__
from ..utils import get_logger

logger = get_logger(__name__)

ENTITIES = ["agent", "task", "workflow", "message"]


def parse_inputs(values: tuple[str, ...]) -> dict[str, str]:
    """Parse repeated ``key=value`` options.

    Raises:
        click.BadParameter: If a value has no ``=``
    """
    inputs: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected key=value, got '{item}'", param_hint="--input")
        inputs[key.strip()] = value
    return inputs


def _shorten(value: Any, width: int = 60) -> str:
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    text = " ".join(str(text).split())
    return text if len(text) <= width else text[: width - 3] + "..."


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--log-format", type=click.Choice(["text", "json"]), default="text", help="Log output format")
@click.pass_context
def main(ctx: click.Context, verbose: bool, log_format: str) -> None:
    """agent-team CLI.

    Orchestrate teams of LLM-backed agents working through a board of
    tasks, with pause/resume/stop controls and cost tracking.
    """
    from ..utils.logging import setup_logging

    load_dotenv()
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(level="DEBUG" if verbose else "WARNING", format_type=log_format)


@main.command()
@click.argument("team_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--input", "-i", "inputs", multiple=True, help="Workflow input as key=value (repeatable)")
@click.option("--format", "output_format", type=click.Choice(["table", "json"]), default="table", help="Output format")
@click.pass_context
def run(ctx: click.Context, team_file: str, inputs: tuple[str, ...], output_format: str) -> None:
    """Run the team defined in TEAM_FILE until its workflow settles."""
    from ..config.loader import load_team_config
    from ..execution import Team
    from ..models.status import WorkflowStatus
    from ..utils.errors import AgentTeamError, ValidationError
    from ..utils.logging import LoggerContext

    workflow_inputs = parse_inputs(inputs)
    try:
        config = load_team_config(team_file)
        team = Team.from_config(config)
    except ValidationError as e:
        click.echo(f"Invalid team configuration: {e.message}", err=True)
        for error in e.errors:
            click.echo(f"  - {error}", err=True)
        ctx.exit(1)
        return

    async def execute() -> Any:
        try:
            return await team.start(workflow_inputs)
        finally:
            await team.cleanup()

    try:
        with LoggerContext(logger, {"team": config.name}):
            result = asyncio.run(execute())
    except AgentTeamError as e:
        click.echo(e.pretty_message, err=True)
        ctx.exit(1)
        return

    tasks = team.get_tasks()
    if output_format == "json":
        output = {
            "team": config.name,
            "status": result.status.value,
            "result": result.result,
            "error": result.error,
            "blocked_task_id": result.blocked_task_id,
            "tasks": [
                {
                    "id": task.id,
                    "title": task.title,
                    "status": task.status.value,
                    "agent": task.agent.name if task.agent else None,
                    "result": task.result,
                    "error": task.error,
                }
                for task in tasks
            ],
            "stats": result.stats.model_dump(mode="json") if result.stats else None,
        }
        click.echo(json.dumps(output, indent=2, default=str))
    else:
        rows = [
            [
                task.id,
                task.label,
                task.agent.name if task.agent else "-",
                task.status.value,
                _shorten(task.result if task.result is not None else task.error or ""),
            ]
            for task in tasks
        ]
        click.echo(tabulate(rows, headers=["Task", "Title", "Agent", "Status", "Result"], tablefmt="grid"))
        click.echo(f"\nWorkflow: {result.status.value}")
        if result.error:
            click.echo(f"Error: {result.error}")
        if result.stats:
            usage = result.stats.llm_usage_stats
            click.echo(
                f"Duration: {result.stats.duration:.2f}s  Iterations: {result.stats.iteration_count}  "
                f"Tokens: {usage.input_tokens} in / {usage.output_tokens} out  "
                f"Cost: {result.stats.cost_details.total_cost}"
            )

    if result.status != WorkflowStatus.FINISHED:
        ctx.exit(1)


@main.command()
@click.argument("team_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def validate(ctx: click.Context, team_file: str) -> None:
    """Validate TEAM_FILE without calling any language model."""
    from ..config.loader import load_team_config
    from ..execution import build_task_graph
    from ..models.task import Task
    from ..utils.errors import ValidationError

    try:
        config = load_team_config(team_file)
        build_task_graph(
            [
                Task(id=tc.id, description=tc.description, depends_on=tc.depends_on)
                if tc.id
                else Task(description=tc.description, depends_on=tc.depends_on)
                for tc in config.tasks
            ]
        )
    except ValidationError as e:
        click.echo(f"✗ {e.message}", err=True)
        for error in e.errors:
            click.echo(f"  - {error}", err=True)
        ctx.exit(1)
        return

    rows = [[agent.name, agent.role, agent.llm_config.model, ", ".join(agent.tools) or "-"] for agent in config.agents]
    click.echo(tabulate(rows, headers=["Agent", "Role", "Model", "Tools"], tablefmt="grid"))
    rows = [
        [task.id or "-", task.title or _shorten(task.description, 40), task.agent or task.agent_role or "-",
         ", ".join(task.depends_on) or "-"]
        for task in config.tasks
    ]
    click.echo(tabulate(rows, headers=["Task", "Title", "Agent", "Depends on"], tablefmt="grid"))
    click.echo(f"\n✓ Team '{config.name}' is valid")


@main.command()
@click.argument("entity", type=click.Choice(ENTITIES))
@click.option(
    "--format", "output_format", type=click.Choice(["table", "mermaid", "dot"]), default="table", help="Output format"
)
def transitions(entity: str, output_format: str) -> None:
    """Print the allowed status transitions of ENTITY."""
    from ..models.status import StatusEntity
    from ..state import StatusRegistry

    graph = StatusRegistry().graph(StatusEntity(entity))
    if output_format != "table":
        click.echo(graph.visualize(output_format))
        return

    rows = [[status, ", ".join(graph.successors(status)) or "-"] for status in graph.graph.nodes]
    click.echo(tabulate(rows, headers=["From", "To"], tablefmt="grid"))


if __name__ == "__main__":
    main()
