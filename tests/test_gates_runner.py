from __future__ import annotations

import sys
from pathlib import Path

import pytest

from tdd_machine.tools.gates import (
    CommandSpec,
    RunnerConfigError,
    VerificationCommands,
    VerificationFailedError,
    VerificationRunner,
)


def _commands(fmt: list[str], check: list[str], test: list[str]) -> VerificationCommands:
    return VerificationCommands.from_lists(fmt=fmt, check=check, test=test)


def test_empty_command_is_a_construction_error() -> None:
    with pytest.raises(RunnerConfigError):
        CommandSpec.from_parts("fmt", [])
    with pytest.raises(RunnerConfigError):
        _commands(["true"], [], ["true"])


def test_run_all_passes_when_every_command_succeeds(tmp_path: Path) -> None:
    runner = VerificationRunner(tmp_path, _commands(["true"], ["true"], ["true"]))

    summary = runner.run_all()

    assert summary.ok
    assert [outcome.name for outcome in summary.outcomes] == ["fmt", "check", "test"]


def test_run_all_runs_every_command_even_after_a_failure(tmp_path: Path) -> None:
    script = [sys.executable, "-c", "print('tests ran')"]
    runner = VerificationRunner(tmp_path, _commands(["false"], ["true"], script))

    summary = runner.run_all()

    assert not summary.ok
    assert summary.fmt.exit_code != 0
    assert summary.check.passed
    assert summary.test.stdout.strip() == "tests ran"
    error = VerificationFailedError(summary)
    assert "fmt" in str(error)


def test_commands_run_inside_the_workspace_root(tmp_path: Path) -> None:
    script = [sys.executable, "-c", "import os; print(os.getcwd())"]
    runner = VerificationRunner(tmp_path, _commands(["true"], ["true"], script))

    outcome = runner.test()

    assert Path(outcome.stdout.strip()).resolve() == tmp_path.resolve()


def test_missing_executable_reports_127(tmp_path: Path) -> None:
    runner = VerificationRunner(tmp_path, _commands(["definitely-not-a-real-tool-xyz"], ["true"], ["true"]))

    outcome = runner.fmt()

    assert outcome.exit_code == 127
    assert "definitely-not-a-real-tool-xyz" in outcome.stderr


def test_timeout_reports_124(tmp_path: Path) -> None:
    slow = [sys.executable, "-c", "import time; time.sleep(5)"]
    runner = VerificationRunner(tmp_path, _commands(["true"], ["true"], slow), timeout=0.5)

    outcome = runner.test()

    assert outcome.exit_code == 124
    assert not outcome.passed
