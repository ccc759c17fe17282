"""Deterministic commit message formatting for accepted steps.

Every commit produced by the orchestrator shares the same layout so the
history doubles as an audit trail::

    <summary>
    <optional body>

    Context:
    - Role: implementor
    - Step: 2
    - Kata goal: <first non-blank kata line>
    - Plan: .tdd/plan/step-002-implementor.md

    Rationale:
    - <one bullet per note line>

    Diff summary:
    - <one bullet per changed file>

    Verification:
    - fmt: exit 0
    - check: exit 0
    - test: exit 0 (<stdout preview>)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

from .roles import Role
from .tools.gates import CommandOutcome, RunnerOutcomeSummary

DEFAULT_SUMMARY = "chore: update"
NO_NOTES_PLACEHOLDER = "- Agent did not provide additional notes."
NO_FILES_PLACEHOLDER = "- No files reported"
PREVIEW_LIMIT = 200


@dataclass(slots=True)
class CommitMessageInputs:
    role: Role
    step_index: int
    agent_message: str
    notes: str
    kata_description: str
    plan_path: str
    files_changed: Sequence[str] = field(default_factory=list)
    runner: RunnerOutcomeSummary | None = None
    kata_file: str = "kata.md"


class CommitPolicy:
    """Render :class:`CommitMessageInputs` into the standard commit layout."""

    def format(self, inputs: CommitMessageInputs) -> str:
        summary, body = _split_agent_message(inputs.agent_message)
        goal = _first_non_blank(inputs.kata_description) or f"See {inputs.kata_file} for details"

        lines: List[str] = [summary]
        if body:
            lines.append(body)
        lines.extend(
            [
                "",
                "Context:",
                f"- Role: {inputs.role.value}",
                f"- Step: {inputs.step_index}",
                f"- Kata goal: {goal}",
                f"- Plan: {inputs.plan_path}",
                "",
                "Rationale:",
                *_bullets(inputs.notes.splitlines(), NO_NOTES_PLACEHOLDER),
                "",
                "Diff summary:",
                *_bullets(inputs.files_changed, NO_FILES_PLACEHOLDER),
                "",
                "Verification:",
                *_verification_lines(inputs.runner),
            ]
        )
        return "\n".join(lines) + "\n"


def _split_agent_message(message: str) -> tuple[str, str]:
    lines = message.splitlines()
    for index, line in enumerate(lines):
        if line.strip():
            body = "\n".join(lines[index + 1 :]).strip()
            return line.strip(), body
    return DEFAULT_SUMMARY, ""


def _first_non_blank(text: str) -> str:
    for line in text.splitlines():
        stripped = line.strip()
        if stripped:
            return stripped
    return ""


def _bullets(entries: Sequence[str], placeholder: str) -> List[str]:
    bullets = [f"- {entry.strip()}" for entry in entries if entry.strip()]
    return bullets or [placeholder]


def _verification_lines(runner: RunnerOutcomeSummary | None) -> List[str]:
    if runner is None:
        return ["- Verification commands were not run"]
    return [_verification_line(outcome) for outcome in runner.outcomes]


def _verification_line(outcome: CommandOutcome) -> str:
    preview = _preview(outcome.stdout)
    if preview:
        return f"- {outcome.name}: exit {outcome.exit_code} ({preview})"
    return f"- {outcome.name}: exit {outcome.exit_code}"


def _preview(text: str) -> str:
    collapsed = " ".join(text.split())
    if len(collapsed) > PREVIEW_LIMIT:
        return collapsed[:PREVIEW_LIMIT].rstrip() + "..."
    return collapsed


__all__ = ["CommitMessageInputs", "CommitPolicy", "DEFAULT_SUMMARY"]
