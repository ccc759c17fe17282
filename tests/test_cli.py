from __future__ import annotations

from typer.testing import CliRunner

from tdd_machine.cli import app
from tdd_machine.models import ScriptedLLMClient


def test_init_creates_workspace(tmp_path) -> None:
    config_path = tmp_path / "tdd.yaml"

    runner = CliRunner()
    result = runner.invoke(app, ["init", "--config", str(config_path)], catch_exceptions=False)

    assert result.exit_code == 0, result.output
    assert "Initialized new git repository" in result.output
    assert "Created tdd.yaml" in result.output
    assert "Created initial commit" in result.output
    assert (tmp_path / "kata.md").exists()


def test_status_reports_fresh_workspace(tdd_workspace) -> None:
    runner = CliRunner()
    result = runner.invoke(
        app,
        ["status", "--config", str(tdd_workspace.config_path)],
        catch_exceptions=False,
    )

    assert result.exit_code == 0, result.output
    assert "Next role: tester (step 1 of 10)" in result.output
    assert "No step logs found." in result.output


def test_run_executes_requested_steps(tdd_workspace, plan_json, monkeypatch) -> None:
    client = ScriptedLLMClient(
        [
            "- add a test",
            plan_json("test: add failing add test", {"tests/test_calc.py": "def test_add():\n    pass\n"}),
            "- implement",
            plan_json("feat: implement add", {"src/calc.py": "def add(a, b):\n    return a + b\n"}),
        ]
    )
    monkeypatch.setattr("tdd_machine.session.create_client", lambda config: client)

    runner = CliRunner()
    result = runner.invoke(
        app,
        ["run", "--steps", "2", "--config", str(tdd_workspace.config_path)],
        catch_exceptions=False,
    )

    assert result.exit_code == 0, result.output
    assert "Step 1 (tester) committed" in result.output
    assert "Step 2 (implementor) committed" in result.output
    assert "Executed 2 of 2 requested step(s)." in result.output
    assert tdd_workspace.commit_count() == 2


def test_step_without_api_key_fails_cleanly(tdd_workspace, monkeypatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    runner = CliRunner()
    result = runner.invoke(app, ["step", "--config", str(tdd_workspace.config_path)])

    assert result.exit_code == 1
    assert "OPENAI_API_KEY" in result.output
    assert tdd_workspace.commit_count() == 0


def test_invalid_config_is_reported(tdd_workspace) -> None:
    tdd_workspace.write_config(llm={"provider": "carrier-pigeon"})

    runner = CliRunner()
    result = runner.invoke(app, ["status", "--config", str(tdd_workspace.config_path)])

    assert result.exit_code == 1
    assert "invalid configuration" in result.output
