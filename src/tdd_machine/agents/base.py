"""Shared agent behaviour: plan with the model, then parse, scope-check and apply."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from tdd_machine.models.llm_client import LLMClient
from tdd_machine.policy.scope import ScopePolicy
from tdd_machine.prompts import edit_messages, plan_messages
from tdd_machine.roles import Role
from tdd_machine.step import StepContext, StepResult
from tdd_machine.tools.edit_plan import EditPlan

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class Agent(Protocol):
    """Contract the orchestrator relies on for each role."""

    role: Role

    def plan(self, context: StepContext) -> str:
        ...

    def edit(self, context: StepContext) -> StepResult:
        ...


class LLMAgent:
    """Model-backed agent. Subclasses only pin the :attr:`role`."""

    role: Role

    def __init__(
        self,
        client: LLMClient,
        root: Path | str,
        *,
        scope_policy: Optional[ScopePolicy] = None,
    ) -> None:
        self.client = client
        self.root = Path(root)
        self.scope_policy = scope_policy or ScopePolicy()
        self.last_plan: Optional[str] = None

    def plan(self, context: StepContext) -> str:
        response = self.client.chat(self.role, plan_messages(context))
        plan = response.strip()
        self.last_plan = plan
        return plan

    def edit(self, context: StepContext) -> StepResult:
        """Request an edit plan, validate it and write it to the workspace.

        Raises :class:`~tdd_machine.tools.edit_plan.EditPlanError` for malformed
        plans or write failures and
        :class:`~tdd_machine.policy.scope.ScopeViolation` when the plan leaves
        the role's scope. Nothing is written unless parsing and scoping pass.
        """
        response = self.client.chat(self.role, edit_messages(context, self.last_plan))
        plan = EditPlan.parse(response)
        self.scope_policy.enforce(self.role, plan)
        files_changed = plan.apply(self.root)
        LOGGER.debug("%s wrote %d file(s)", self.role.value, len(files_changed))
        return StepResult(
            files_changed=files_changed,
            commit_message=plan.commit_message,
            notes=plan.notes,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(root={self.root.as_posix()!r})"


__all__ = ["Agent", "LLMAgent"]
