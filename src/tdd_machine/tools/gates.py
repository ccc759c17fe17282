"""Verification gate: the fmt, check and test commands run after every edit.

A step is only committed when all three commands exit with status zero. The
runner always executes every command so the commit message and step log can
record the full picture, even when the first one already failed.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import List

import logging
import shutil
import subprocess

LOGGER = logging.getLogger(__name__)

MISSING_EXECUTABLE_EXIT = 127
TIMEOUT_EXIT = 124
DEFAULT_TIMEOUT_SECONDS = 600.0


class RunnerConfigError(ValueError):
    """Raised when a verification command is configured without any argv."""


@dataclass(frozen=True, slots=True)
class CommandSpec:
    """Named argv for one verification command."""

    name: str
    argv: tuple[str, ...]

    @classmethod
    def from_parts(cls, name: str, parts: Sequence[str]) -> "CommandSpec":
        argv = tuple(str(part) for part in parts)
        if not argv or not argv[0].strip():
            raise RunnerConfigError(f"ci.{name} command must not be empty")
        return cls(name=name, argv=argv)

    def display(self) -> str:
        return " ".join(self.argv)


@dataclass(slots=True)
class CommandOutcome:
    """Result of executing a :class:`CommandSpec`."""

    name: str
    command: List[str]
    exit_code: int
    stdout: str
    stderr: str

    @property
    def passed(self) -> bool:
        return self.exit_code == 0

    def short_message(self) -> str:
        if self.passed:
            return f"{self.name}: passed"
        fallback = self.stderr.strip() or self.stdout.strip()
        snippet = fallback.splitlines()[0] if fallback else f"exit code {self.exit_code}"
        return f"{self.name}: failed ({snippet})"


@dataclass(slots=True)
class RunnerOutcomeSummary:
    """Outcomes of the three gate commands for one attempt."""

    fmt: CommandOutcome
    check: CommandOutcome
    test: CommandOutcome

    @property
    def outcomes(self) -> tuple[CommandOutcome, CommandOutcome, CommandOutcome]:
        return (self.fmt, self.check, self.test)

    @property
    def ok(self) -> bool:
        return all(outcome.passed for outcome in self.outcomes)

    def format_summary(self) -> str:
        """Return a human readable summary of the run."""

        return "\n".join(f"- {outcome.short_message()}" for outcome in self.outcomes)


class VerificationFailedError(RuntimeError):
    """Raised when at least one gate command exits non-zero."""

    def __init__(self, summary: RunnerOutcomeSummary) -> None:
        failed = ", ".join(outcome.name for outcome in summary.outcomes if not outcome.passed)
        super().__init__(f"verification failed ({failed})\n{summary.format_summary()}")
        self.summary = summary


@dataclass(frozen=True, slots=True)
class VerificationCommands:
    fmt: CommandSpec
    check: CommandSpec
    test: CommandSpec

    @classmethod
    def from_lists(
        cls,
        *,
        fmt: Sequence[str],
        check: Sequence[str],
        test: Sequence[str],
    ) -> "VerificationCommands":
        return cls(
            fmt=CommandSpec.from_parts("fmt", fmt),
            check=CommandSpec.from_parts("check", check),
            test=CommandSpec.from_parts("test", test),
        )


class VerificationRunner:
    """Execute the configured gate commands inside the workspace root."""

    def __init__(
        self,
        root: Path,
        commands: VerificationCommands,
        *,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.root = Path(root)
        self.commands = commands
        self.timeout = timeout

    def fmt(self) -> CommandOutcome:
        return self.run(self.commands.fmt)

    def check(self) -> CommandOutcome:
        return self.run(self.commands.check)

    def test(self) -> CommandOutcome:
        return self.run(self.commands.test)

    def run_all(self) -> RunnerOutcomeSummary:
        summary = RunnerOutcomeSummary(fmt=self.fmt(), check=self.check(), test=self.test())
        LOGGER.debug("Verification summary:\n%s", summary.format_summary())
        return summary

    def run(self, spec: CommandSpec) -> CommandOutcome:
        executable = spec.argv[0]
        if shutil.which(executable) is None and not (self.root / executable).is_file():
            return CommandOutcome(
                name=spec.name,
                command=list(spec.argv),
                exit_code=MISSING_EXECUTABLE_EXIT,
                stdout="",
                stderr=f"Executable not available: {executable}",
            )

        try:
            process = subprocess.run(  # noqa: S603  # command is sourced from tdd.yaml
                list(spec.argv),
                cwd=self.root,
                check=False,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as error:
            LOGGER.warning("%s timed out after %ss", spec.display(), self.timeout)
            return CommandOutcome(
                name=spec.name,
                command=list(spec.argv),
                exit_code=TIMEOUT_EXIT,
                stdout=_decode(error.stdout),
                stderr=f"{_decode(error.stderr)}\nTimed out after {self.timeout}s".strip(),
            )
        except OSError as error:
            return CommandOutcome(
                name=spec.name,
                command=list(spec.argv),
                exit_code=MISSING_EXECUTABLE_EXIT,
                stdout="",
                stderr=f"Failed to start {executable}: {error}",
            )

        return CommandOutcome(
            name=spec.name,
            command=list(spec.argv),
            exit_code=process.returncode,
            stdout=process.stdout,
            stderr=process.stderr,
        )


def _decode(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


__all__ = [
    "CommandOutcome",
    "CommandSpec",
    "RunnerConfigError",
    "RunnerOutcomeSummary",
    "VerificationCommands",
    "VerificationFailedError",
    "VerificationRunner",
]
