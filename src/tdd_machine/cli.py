"""CLI commands for initialising and driving a TDD workspace."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import NoReturn

import typer

from .config import DEFAULT_CONFIG_NAME, ConfigError
from .models import LLMClientError
from .orchestrator import StepFailedError, StepOutcome
from .session import SessionError, gather_status, initialize_workspace, run_steps
from .tools.gates import RunnerConfigError
from .tools.history import StepLogError
from .tools.vcs import GitError

APP_HELP = "Red-green-refactor automation with Tester, Implementor and Refactorer agents."

app = typer.Typer(help=APP_HELP)

_CONFIG_OPTION_HELP = "Path to the tdd.yaml configuration file."

_HANDLED_ERRORS = (
    ConfigError,
    GitError,
    LLMClientError,
    RunnerConfigError,
    SessionError,
    StepFailedError,
    StepLogError,
    OSError,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _fail(message: str) -> NoReturn:
    typer.echo(message, err=True)
    raise typer.Exit(code=1)


def _render_step(outcome: StepOutcome) -> None:
    summary = outcome.commit_message.splitlines()[0] if outcome.commit_message else ""
    typer.echo(
        f"Step {outcome.step_index} ({outcome.role.value}) committed {outcome.commit_id[:12]}: {summary}"
    )


@app.command()
def init(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help=_CONFIG_OPTION_HELP,
    ),
) -> None:
    """Create tdd.yaml, the kata file and the workspace directories."""
    try:
        result = initialize_workspace(Path(config))
    except _HANDLED_ERRORS as error:
        _fail(f"Failed to initialise workspace: {error}")
    for message in result.messages:
        typer.echo(message)


@app.command()
def run(
    steps: int = typer.Option(1, "--steps", "-n", min=1, help="Number of steps to execute."),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help=_CONFIG_OPTION_HELP,
    ),
) -> None:
    """Execute up to N red-green-refactor steps."""
    try:
        summary = run_steps(Path(config), steps, on_step=_render_step)
    except _HANDLED_ERRORS as error:
        _fail(str(error))
    typer.echo(f"Executed {summary.executed} of {summary.requested} requested step(s).")


@app.command()
def step(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help=_CONFIG_OPTION_HELP,
    ),
) -> None:
    """Execute exactly one step for the next role."""
    try:
        run_steps(Path(config), 1, on_step=_render_step)
    except _HANDLED_ERRORS as error:
        _fail(str(error))


@app.command()
def status(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help=_CONFIG_OPTION_HELP,
    ),
) -> None:
    """Report the next role, the last commit and the latest step log."""
    try:
        report = gather_status(Path(config))
    except _HANDLED_ERRORS as error:
        _fail(str(error))
    for line in report.format_lines():
        typer.echo(line)


if __name__ == "__main__":
    app()
