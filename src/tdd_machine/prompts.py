"""Prompt templates and helpers shared by the three agents."""

from __future__ import annotations

from typing import List, Optional

from .models.llm_client import ChatMessage
from .policy.scope import SCOPE_RULES
from .roles import Role
from .step import StepContext

KATA_LIMIT = 1200
COMMIT_MESSAGE_LIMIT = 600
DIFF_LIMIT = 1200
FILE_LIST_LIMIT = 30

EDIT_PLAN_INSTRUCTIONS = """Return **only** JSON matching this schema:
{
  "commit_message": "conventional commit summary",
  "notes": "bullet list or paragraph summarizing edits",
  "files": [
    { "path": "relative/path.py", "contents": "entire file contents" }
  ]
}
Every entry replaces the whole file. Paths are relative to the workspace root.
Do not include prose outside of the JSON object."""

PLAN_PROMPTS = {
    Role.TESTER: (
        "You are the Tester agent in a strict red-green-refactor loop.\n"
        "Focus on identifying the next failing test that reveals missing behavior.\n"
        "Respond with a concise plan (bullets encouraged) describing what test you will add and why.\n"
        "Do not describe implementation changes."
    ),
    Role.IMPLEMENTOR: (
        "You are the Implementor agent. The latest commit added a failing test.\n"
        "Plan the smallest production change that makes every test pass.\n"
        "Do not plan changes to tests."
    ),
    Role.REFACTORER: (
        "You are the Refactorer agent. Identify safe improvements that keep behavior and tests unchanged.\n"
        "Focus on cleanup, deduplication and clarity after the green step."
    ),
}

EDIT_PROMPTS = {
    Role.TESTER: (
        "You are the Tester agent applying changes.\n"
        "Only modify test files. Do not change production code.\n"
        "Return a JSON edit plan that adds or updates tests according to the schema.\n"
        "Ensure the resulting test fails for the current implementation."
    ),
    Role.IMPLEMENTOR: (
        "You are the Implementor agent applying changes.\n"
        "Modify production code so the failing test passes. Touch at most five files and never edit tests.\n"
        "Return the JSON edit plan per schema."
    ),
    Role.REFACTORER: (
        "Apply refactorings that do not modify any tests or change observable behavior.\n"
        "Only touch production code files and keep the edit set small.\n"
        "Return the JSON edit plan per schema."
    ),
}

PLAN_INSTRUCTIONS = {
    Role.TESTER: "Outline your next test strategy.",
    Role.IMPLEMENTOR: "Outline the minimal implementation that turns the failing test green.",
    Role.REFACTORER: "Outline the refactoring you will perform.",
}


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit] + "…"


def render_context_payload(instruction: str, context: StepContext) -> str:
    """Format the step context as the user message body."""
    sections: List[str] = [
        f"Instruction:\n{instruction}\n",
        f"Role: {context.role.value}",
        f"Step: {context.step_index}",
        f"Kata description:\n{truncate(context.kata_description, KATA_LIMIT)}\n",
    ]
    if context.last_commit_message.strip():
        sections.append(
            f"Last commit message:\n{truncate(context.last_commit_message, COMMIT_MESSAGE_LIMIT)}\n"
        )
    if context.last_commit_diff.strip():
        sections.append(f"Last diff snippet:\n{truncate(context.last_commit_diff, DIFF_LIMIT)}\n")
    if context.workspace_files:
        listing = "\n".join(f"- {path}" for path in context.workspace_files[:FILE_LIST_LIMIT])
        sections.append(f"Tracked files (first {FILE_LIST_LIMIT}):\n{listing}\n")
    return "\n".join(sections)


def plan_messages(context: StepContext) -> List[ChatMessage]:
    role = context.role
    return [
        ChatMessage.system(PLAN_PROMPTS[role]),
        ChatMessage.user(render_context_payload(PLAN_INSTRUCTIONS[role], context)),
    ]


def edit_messages(context: StepContext, cached_plan: Optional[str]) -> List[ChatMessage]:
    """Build the edit request, reusing the plan from the planning call when present."""
    instructions = ""
    if cached_plan:
        instructions += f"Previously proposed plan:\n{cached_plan}\n\n"
    instructions += EDIT_PLAN_INSTRUCTIONS
    instructions += "\n\nApply edits now using the repository context below."
    return [
        ChatMessage.system(f"{EDIT_PROMPTS[context.role]}\nScope rule: {SCOPE_RULES[context.role].detail}"),
        ChatMessage.user(render_context_payload(instructions, context)),
    ]


__all__ = [
    "EDIT_PLAN_INSTRUCTIONS",
    "EDIT_PROMPTS",
    "PLAN_PROMPTS",
    "edit_messages",
    "plan_messages",
    "render_context_payload",
    "truncate",
]
