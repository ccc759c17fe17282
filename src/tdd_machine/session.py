"""Workspace-level entry points: initialise, run N steps, report status."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Mapping, Optional

from .agents import Agent, build_agents
from .config import (
    DEFAULT_CONFIG_NAME,
    TddConfig,
    default_config_data,
    load_config,
    write_config,
)
from .models import LLMClient, create_client
from .orchestrator import Orchestrator, StepOutcome
from .policy.scope import is_test_path
from .roles import Role
from .tools.gates import CommandOutcome, VerificationCommands, VerificationRunner
from .tools.history import (
    RunnerLog,
    StepLogEntry,
    StepLogger,
    detect_plan_progress,
    latest_log_entry,
)
from .tools.vcs import CommitAuthor, GitRepository

LOGGER = logging.getLogger(__name__)

INITIAL_COMMIT_MESSAGE = "chore: initialize TDD workspace"

DEFAULT_KATA_CONTENT = """# Kata Description

Write a clear description of the kata you want to practice here.
The TDD machine uses it as context when generating tests and implementations.

## Example

Implement a string calculator that:
- Takes a string of comma-separated numbers and returns their sum
- Returns 0 for an empty string
- Handles newlines between numbers
- Supports custom delimiters
"""

AgentFactory = Callable[[LLMClient, Path], Mapping[Role, Agent]]
StepCallback = Callable[[StepOutcome], None]


class SessionError(RuntimeError):
    """Raised when a run cannot start or a workspace limit is reached."""


class BaselineTestError(SessionError):
    """Raised when pre-existing tests fail before the first step."""

    def __init__(self, outcome: CommandOutcome) -> None:
        super().__init__(
            "Baseline test check failed. Existing tests must pass before TDD steps can run.\n"
            "Fix the failing tests manually, then try again.\n\n"
            f"Exit code: {outcome.exit_code}\n"
            f"Stdout:\n{outcome.stdout}\n"
            f"Stderr:\n{outcome.stderr}"
        )
        self.outcome = outcome


@dataclass(slots=True)
class ExecutionSummary:
    requested: int
    executed: int
    outcomes: List[StepOutcome] = field(default_factory=list)


def resolve_root(config_path: Path) -> Path:
    return Path(config_path).resolve().parent


def ensure_workspace_dirs(root: Path, config: TddConfig) -> None:
    for directory in (config.workspace.plan_dir, config.workspace.log_dir):
        (root / directory).mkdir(parents=True, exist_ok=True)
    ignore_log_dir(root / config.workspace.log_dir)


def ignore_log_dir(log_dir: Path) -> None:
    """Keep step logs out of git; they are written after the step commit."""
    marker = log_dir / ".gitignore"
    if not marker.exists():
        marker.write_text("*\n", encoding="utf-8")


def build_runner(root: Path, config: TddConfig) -> VerificationRunner:
    commands = VerificationCommands.from_lists(
        fmt=config.ci.fmt,
        check=config.ci.check,
        test=config.ci.test,
    )
    return VerificationRunner(root, commands, timeout=config.ci.timeout_seconds)


def has_existing_tests(repo: GitRepository) -> bool:
    return any(
        is_test_path(path) and path.endswith(".py") for path in repo.list_workspace_files()
    )


def run_steps(
    config_path: Path | str,
    steps: int,
    *,
    client: Optional[LLMClient] = None,
    agent_factory: Optional[AgentFactory] = None,
    on_step: Optional[StepCallback] = None,
) -> ExecutionSummary:
    """Run up to ``steps`` orchestrator steps for the workspace owning ``config_path``.

    The number of steps is clamped to what remains of ``workspace.max_steps``.
    A step log is written after each committed step; the first failing step
    propagates its :class:`~tdd_machine.orchestrator.StepFailedError`.
    """
    if steps < 1:
        raise SessionError("requested steps must be at least 1")

    config_file = Path(config_path).resolve()
    config = load_config(config_file)
    root = resolve_root(config_file)
    ensure_workspace_dirs(root, config)

    repo = GitRepository.open_or_init(root)
    runner = build_runner(root, config)

    last_role, starting_step = detect_plan_progress(root / config.workspace.plan_dir)
    completed = starting_step - 1
    remaining = config.workspace.max_steps - completed
    if remaining <= 0:
        raise SessionError(
            f"workspace already reached configured max_steps ({config.workspace.max_steps})."
        )
    steps_to_run = min(steps, remaining)

    if starting_step == 1 and has_existing_tests(repo):
        LOGGER.info("Detected existing tests; running baseline check")
        outcome = runner.test()
        if not outcome.passed:
            raise BaselineTestError(outcome)

    if client is None:
        client = create_client(config)
    factory = agent_factory or build_agents
    orchestrator = Orchestrator(
        root=root,
        config=config,
        repo=repo,
        runner=runner,
        agents=factory(client, root),
        last_role=last_role,
        starting_step=starting_step,
    )

    logger = StepLogger(root / config.workspace.log_dir)
    summary = ExecutionSummary(requested=steps, executed=0)
    for _ in range(steps_to_run):
        outcome = orchestrator.next()
        logger.write(_log_entry(root, outcome))
        summary.outcomes.append(outcome)
        summary.executed += 1
        if on_step is not None:
            on_step(outcome)
    return summary


def _log_entry(root: Path, outcome: StepOutcome) -> StepLogEntry:
    try:
        plan_path = outcome.plan_path.relative_to(root).as_posix()
    except ValueError:
        plan_path = outcome.plan_path.as_posix()
    if outcome.runner is None:
        raise SessionError(f"step {outcome.step_index} was committed without verification results")
    return StepLogEntry(
        step_index=outcome.step_index,
        role=outcome.role,
        plan_path=plan_path,
        files_changed=list(outcome.files_changed),
        commit_id=outcome.commit_id,
        commit_message=outcome.commit_message,
        notes=outcome.notes,
        attempts=outcome.attempts,
        runner=RunnerLog.from_summary(outcome.runner),
    )


@dataclass(slots=True)
class StatusReport:
    next_role: Role
    next_step: int
    max_steps: int
    repo_clean: bool
    last_commit_id: Optional[str] = None
    last_commit_message: Optional[str] = None
    last_log: Optional[StepLogEntry] = None

    def format_lines(self) -> List[str]:
        lines = [
            f"Next role: {self.next_role.value} (step {self.next_step} of {self.max_steps})",
            f"Workspace clean: {'yes' if self.repo_clean else 'no'}",
        ]
        if self.last_commit_message and self.last_commit_id:
            lines.append(f"Last commit: {self.last_commit_message} ({self.last_commit_id})")
        elif self.last_commit_message:
            lines.append(f"Last commit: {self.last_commit_message}")
        elif self.last_commit_id:
            lines.append(f"Last commit id: {self.last_commit_id}")
        else:
            lines.append("Last commit: none")

        if self.last_log is not None:
            log = self.last_log
            lines.append(f"Last step: {log.role.value} #{log.step_index}, plan {log.plan_path}")
            lines.append(
                f"CI exit codes: fmt={log.runner.fmt.code}, "
                f"check={log.runner.check.code}, test={log.runner.test.code}"
            )
        else:
            lines.append("No step logs found.")
        return lines


def gather_status(config_path: Path | str) -> StatusReport:
    config_file = Path(config_path).resolve()
    config = load_config(config_file)
    root = resolve_root(config_file)
    repo = GitRepository.open_or_init(root)
    state = repo.state()
    last_log = latest_log_entry(root / config.workspace.log_dir)
    if last_log is not None:
        next_role, next_step = last_log.role.next(), last_log.step_index + 1
    else:
        next_role, next_step = Role.TESTER, 1

    summary_line = None
    if state.last_commit_message:
        summary_line = state.last_commit_message.splitlines()[0].strip() or None
    return StatusReport(
        next_role=next_role,
        next_step=next_step,
        max_steps=config.workspace.max_steps,
        repo_clean=state.is_clean,
        last_commit_id=state.head_commit,
        last_commit_message=summary_line,
        last_log=last_log,
    )


@dataclass(slots=True)
class InitResult:
    config_created: bool
    kata_created: bool
    directories_created: bool
    git_initialized: bool
    messages: List[str] = field(default_factory=list)


def initialize_workspace(config_path: Path | str = DEFAULT_CONFIG_NAME) -> InitResult:
    """Create ``tdd.yaml``, the kata file and the ``.tdd`` directories.

    Existing files are validated and kept. A repository without commits gets an
    initial commit holding the generated files.
    """
    config_file = Path(config_path).resolve()
    root = config_file.parent
    messages: List[str] = []

    repo = GitRepository.open_or_init(root)
    git_initialized = repo.state().is_empty
    messages.append(
        "Initialized new git repository" if git_initialized else "Using existing git repository"
    )

    config_created = not config_file.exists()
    if config_created:
        write_config(config_file, default_config_data())
        messages.append(f"Created {config_file.name}")
    else:
        messages.append(f"Using existing {config_file.name}")
    config = load_config(config_file)

    kata_path = root / config.workspace.kata_file
    kata_created = not kata_path.exists()
    if kata_created:
        kata_path.parent.mkdir(parents=True, exist_ok=True)
        kata_path.write_text(DEFAULT_KATA_CONTENT, encoding="utf-8")
        messages.append(f"Created {config.workspace.kata_file}")
    else:
        messages.append(f"Using existing {config.workspace.kata_file}")

    directories_created = False
    for directory in (config.workspace.plan_dir, config.workspace.log_dir):
        path = root / directory
        if not path.exists():
            path.mkdir(parents=True)
            directories_created = True
            messages.append(f"Created directory {directory}")
    ignore_log_dir(root / config.workspace.log_dir)

    if git_initialized and (config_created or kata_created or directories_created):
        repo.stage_all()
        author = CommitAuthor(name=config.commit_author.name, email=config.commit_author.email)
        repo.commit(INITIAL_COMMIT_MESSAGE, author)
        messages.append("Created initial commit")

    return InitResult(
        config_created=config_created,
        kata_created=kata_created,
        directories_created=directories_created,
        git_initialized=git_initialized,
        messages=messages,
    )


__all__ = [
    "BaselineTestError",
    "ExecutionSummary",
    "InitResult",
    "SessionError",
    "StatusReport",
    "gather_status",
    "initialize_workspace",
    "run_steps",
]
