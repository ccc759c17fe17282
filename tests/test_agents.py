from __future__ import annotations

from pathlib import Path

import pytest

from tdd_machine.agents import ImplementorAgent, RefactorerAgent, TesterAgent, build_agents
from tdd_machine.models import ScriptedLLMClient
from tdd_machine.policy.scope import ScopeViolation
from tdd_machine.prompts import EDIT_PLAN_INSTRUCTIONS, render_context_payload
from tdd_machine.roles import Role
from tdd_machine.step import StepContext
from tdd_machine.tools.edit_plan import MalformedPlanError


def _context(role: Role, **overrides: object) -> StepContext:
    values: dict[str, object] = {
        "role": role,
        "step_index": 1,
        "kata_description": "# Kata\nAdd numbers.",
        "last_commit_message": "",
        "last_commit_diff": "",
        "workspace_files": ("kata.md",),
    }
    values.update(overrides)
    return StepContext(**values)  # type: ignore[arg-type]


def test_tester_plan_is_trimmed_and_reused_in_edit(tmp_path: Path, plan_json) -> None:
    client = ScriptedLLMClient(
        [
            "  - add test for empty string  \n",
            plan_json("test: add failing case", {"tests/test_math.py": "def test_x():\n    assert False\n"}, "Add coverage"),
        ]
    )
    agent = TesterAgent(client, tmp_path)
    context = _context(Role.TESTER)

    plan = agent.plan(context)
    result = agent.edit(context)

    assert plan == "- add test for empty string"
    assert result.files_changed == ["tests/test_math.py"]
    assert result.commit_message == "test: add failing case"
    assert result.notes == "Add coverage"
    assert (tmp_path / "tests" / "test_math.py").exists()

    edit_request = client.calls[1][1]
    assert edit_request[0].role == "system"
    assert "Previously proposed plan:\n- add test for empty string" in edit_request[1].content
    assert EDIT_PLAN_INSTRUCTIONS in edit_request[1].content


def test_tester_rejects_source_edits_without_writing(tmp_path: Path, plan_json) -> None:
    client = ScriptedLLMClient(["plan", plan_json("test: bad", {"src/lib.py": "x = 1\n"})])
    agent = TesterAgent(client, tmp_path)
    context = _context(Role.TESTER)
    agent.plan(context)

    with pytest.raises(ScopeViolation) as excinfo:
        agent.edit(context)

    assert "tests only" in str(excinfo.value)
    assert not (tmp_path / "src" / "lib.py").exists()


def test_implementor_surfaces_malformed_plans(tmp_path: Path) -> None:
    agent = ImplementorAgent(ScriptedLLMClient(["plan", "I would rather chat"]), tmp_path)
    context = _context(Role.IMPLEMENTOR)
    agent.plan(context)

    with pytest.raises(MalformedPlanError):
        agent.edit(context)


def test_refactorer_rejects_test_changes(tmp_path: Path, plan_json) -> None:
    client = ScriptedLLMClient(["plan", plan_json("refactor: tidy", {"src/a.py": "", "tests/test_a.py": ""})])
    agent = RefactorerAgent(client, tmp_path)
    context = _context(Role.REFACTORER)
    agent.plan(context)

    with pytest.raises(ScopeViolation):
        agent.edit(context)


def test_build_agents_registers_one_agent_per_role(tmp_path: Path) -> None:
    agents = build_agents(ScriptedLLMClient(), tmp_path)

    assert set(agents) == {Role.TESTER, Role.IMPLEMENTOR, Role.REFACTORER}
    assert all(agent.role is role for role, agent in agents.items())


def test_context_payload_truncates_and_lists_files() -> None:
    files = tuple(f"src/mod_{index:02d}.py" for index in range(40))
    context = _context(
        Role.IMPLEMENTOR,
        kata_description="k" * 2000,
        last_commit_message="test: add case",
        last_commit_diff="",
        workspace_files=files,
    )

    payload = render_context_payload("Do the thing.", context)

    assert payload.startswith("Instruction:\nDo the thing.\n")
    assert "Role: implementor" in payload
    assert "k" * 1200 + "…" in payload
    assert "Last commit message:\ntest: add case" in payload
    assert "Last diff snippet" not in payload
    assert "Tracked files (first 30):" in payload
    assert "- src/mod_29.py" in payload
    assert "src/mod_30.py" not in payload
