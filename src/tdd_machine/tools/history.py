"""Plan files and structured step logs kept alongside the workspace.

Plan files (``step-<NNN>-<role>.md``) are written before any edit is attempted
and double as the resume marker: the highest-numbered plan file tells the
session which role acted last. Step logs (``step-<NNN>-<role>.json``) are only
written for committed steps and capture the verification output.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tdd_machine.roles import Role
from tdd_machine.tools.gates import CommandOutcome, RunnerOutcomeSummary

PLAN_SUFFIX = ".md"
LOG_SUFFIX = ".json"

_STEP_FILE_PATTERN = re.compile(r"^step-(?P<step>\d+)-(?P<role>[a-z]+)(?P<suffix>\.[a-z]+)$")


def utc_now() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def step_file_name(step_index: int, role: Role, suffix: str) -> str:
    return f"step-{step_index:03d}-{role.value}{suffix}"


def plan_file_name(step_index: int, role: Role) -> str:
    return step_file_name(step_index, role, PLAN_SUFFIX)


def parse_step_file_name(name: str, suffix: str) -> Optional[Tuple[int, Role]]:
    """Return ``(step_index, role)`` for a step file name, or ``None``."""
    match = _STEP_FILE_PATTERN.match(name)
    if match is None or match.group("suffix") != suffix:
        return None
    try:
        role = Role.parse(match.group("role"))
    except ValueError:
        return None
    return int(match.group("step")), role


def write_plan_file(plan_dir: Path, step_index: int, role: Role, plan_text: str) -> Path:
    """Persist the agent's plan for ``step_index`` and return its path."""
    plan_dir.mkdir(parents=True, exist_ok=True)
    path = plan_dir / plan_file_name(step_index, role)
    header = f"# Step {step_index:03d} - {role.value} plan"
    path.write_text(f"{header}\n\n{plan_text.strip()}\n", encoding="utf-8")
    return path


def _latest_step_file(directory: Path, suffix: str) -> Optional[Tuple[int, Role, Path]]:
    if not directory.is_dir():
        return None
    latest: Optional[Tuple[int, Role, Path]] = None
    for candidate in directory.iterdir():
        if not candidate.is_file():
            continue
        parsed = parse_step_file_name(candidate.name, suffix)
        if parsed is None:
            continue
        step_index, role = parsed
        if latest is None or step_index > latest[0]:
            latest = (step_index, role, candidate)
    return latest


def detect_plan_progress(plan_dir: Path) -> Tuple[Optional[Role], int]:
    """Return the last role that planned and the next step index."""
    latest = _latest_step_file(plan_dir, PLAN_SUFFIX)
    if latest is None:
        return None, 1
    step_index, role, _ = latest
    return role, step_index + 1


class RecordModel(BaseModel):
    """Base Pydantic model with strict field handling."""

    model_config = ConfigDict(extra="forbid", frozen=False)


class CommandLog(RecordModel):
    command: List[str] = Field(default_factory=list)
    code: int
    stdout: str = ""
    stderr: str = ""

    @classmethod
    def from_outcome(cls, outcome: CommandOutcome) -> "CommandLog":
        return cls(
            command=list(outcome.command),
            code=outcome.exit_code,
            stdout=outcome.stdout,
            stderr=outcome.stderr,
        )


class RunnerLog(RecordModel):
    fmt: CommandLog
    check: CommandLog
    test: CommandLog

    @classmethod
    def from_summary(cls, summary: RunnerOutcomeSummary) -> "RunnerLog":
        return cls(
            fmt=CommandLog.from_outcome(summary.fmt),
            check=CommandLog.from_outcome(summary.check),
            test=CommandLog.from_outcome(summary.test),
        )


class StepLogEntry(RecordModel):
    """Structured record of one committed step."""

    step_index: int
    role: Role
    plan_path: str
    files_changed: List[str] = Field(default_factory=list)
    commit_id: str
    commit_message: str
    notes: str = ""
    attempts: int = 1
    runner: RunnerLog
    recorded_at: datetime = Field(default_factory=utc_now)


class StepLogError(RuntimeError):
    """Raised when a stored step log cannot be decoded."""


class StepLogger:
    """Write one JSON document per committed step into ``log_dir``."""

    def __init__(self, log_dir: Path) -> None:
        self.log_dir = Path(log_dir)

    def path_for(self, step_index: int, role: Role) -> Path:
        return self.log_dir / step_file_name(step_index, role, LOG_SUFFIX)

    def write(self, entry: StepLogEntry) -> Path:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(entry.step_index, entry.role)
        path.write_text(entry.model_dump_json(indent=2) + "\n", encoding="utf-8")
        return path


def load_step_log(path: Path | str) -> StepLogEntry:
    """Load a structured step log from disk."""
    log_path = Path(path)
    try:
        with log_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        return StepLogEntry.model_validate(payload)
    except (OSError, json.JSONDecodeError, ValidationError) as error:
        raise StepLogError(f"Failed to load step log {log_path}: {error}") from error


def latest_log_entry(log_dir: Path) -> Optional[StepLogEntry]:
    latest = _latest_step_file(Path(log_dir), LOG_SUFFIX)
    if latest is None:
        return None
    return load_step_log(latest[2])


__all__ = [
    "CommandLog",
    "RunnerLog",
    "StepLogEntry",
    "StepLogError",
    "StepLogger",
    "detect_plan_progress",
    "latest_log_entry",
    "load_step_log",
    "parse_step_file_name",
    "plan_file_name",
    "write_plan_file",
]
