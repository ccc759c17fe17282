"""Step orchestration: one role acts per step, every accepted step is one commit.

:meth:`Orchestrator.next` drives a single step end to end::

    build context -> agent.plan -> write plan file
        -> attempt loop { agent.edit -> verification gate }
        -> stage -> format commit message -> commit -> advance role

Failures fall into two groups. Environment and planning failures (reading the
workspace, git, writing the plan file, model transport) end the step at once.
Attempt failures (malformed edit plans, scope violations, write errors, a red
verification gate) are retried with the same context and plan until the role's
attempt ceiling is reached. The Tester always gets exactly one attempt.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional

from .agents.base import Agent
from .commit_policy import CommitMessageInputs, CommitPolicy
from .config import TddConfig
from .models.llm_client import LLMClientError
from .policy.scope import ScopeViolation
from .roles import ROLE_SEQUENCE, Role, RoleCycle
from .step import StepContext, StepContextBuilder, StepContextError, StepResult
from .tools.edit_plan import EditPlanError
from .tools.gates import RunnerOutcomeSummary, VerificationFailedError, VerificationRunner
from .tools.history import write_plan_file
from .tools.vcs import CommitAuthor, GitError, GitRepository

LOGGER = logging.getLogger(__name__)

ATTEMPT_ERRORS = (EditPlanError, ScopeViolation, VerificationFailedError)


class AgentRegistryError(ValueError):
    """Raised when the orchestrator is not given exactly one agent per role."""


class StepFailedError(RuntimeError):
    """Terminal failure of a step; the underlying error is the ``__cause__``."""

    def __init__(self, role: Role, step_index: int, attempts: int, cause: BaseException) -> None:
        super().__init__(f"failed to execute {role.value} step {step_index}: {cause}")
        self.role = role
        self.step_index = step_index
        self.attempts = attempts
        self.cause = cause


@dataclass(slots=True)
class StepOutcome:
    """Summary of a committed step."""

    role: Role
    step_index: int
    commit_id: str
    commit_message: str
    plan_path: Path
    files_changed: List[str] = field(default_factory=list)
    notes: str = ""
    attempts: int = 1
    runner: Optional[RunnerOutcomeSummary] = None


def max_attempts_for(role: Role, configured: int) -> int:
    """Return the attempt ceiling for ``role``."""
    if role is Role.TESTER:
        return 1
    return max(configured, 1)


class Orchestrator:
    """Run red-green-refactor steps against a single workspace."""

    def __init__(
        self,
        *,
        root: Path,
        config: TddConfig,
        repo: GitRepository,
        runner: VerificationRunner,
        agents: Mapping[Role, Agent],
        last_role: Optional[Role] = None,
        starting_step: int = 1,
        commit_policy: Optional[CommitPolicy] = None,
        context_builder: Optional[StepContextBuilder] = None,
    ) -> None:
        missing = [role.value for role in ROLE_SEQUENCE if role not in agents]
        if missing:
            raise AgentRegistryError(f"no agent registered for role(s): {', '.join(missing)}")
        for role, agent in agents.items():
            declared = getattr(agent, "role", role)
            if declared != role:
                raise AgentRegistryError(
                    f"agent registered for {role.value} reports role "
                    f"{getattr(declared, 'value', declared)}"
                )

        self.root = Path(root)
        self.config = config
        self.repo = repo
        self.runner = runner
        self.agents = dict(agents)
        self.commit_policy = commit_policy or CommitPolicy()
        self.context_builder = context_builder or StepContextBuilder(
            self.root, config.workspace.kata_file, repo
        )
        self.plan_dir = self.root / config.workspace.plan_dir
        self.author = CommitAuthor(
            name=config.commit_author.name,
            email=config.commit_author.email,
        )

        workspace_is_empty = repo.state().is_empty
        self.cycle = RoleCycle.from_history(last_role, workspace_is_empty)
        self.step_index = max(starting_step, 1)

    def current_role(self) -> Role:
        return self.cycle.current()

    def max_attempts_for(self, role: Role) -> int:
        return max_attempts_for(role, self.config.workspace.max_attempts_per_agent)

    def next(self) -> StepOutcome:
        """Execute one step for the current role and commit the result."""
        role = self.cycle.current()
        step_index = self.step_index
        agent = self.agents[role]
        LOGGER.info("Step %d: %s", step_index, role.value)

        try:
            context = self.context_builder.build(role, step_index)
            plan_text = agent.plan(context)
            plan_path = write_plan_file(self.plan_dir, step_index, role, plan_text)
        except (StepContextError, GitError, LLMClientError, OSError) as error:
            raise StepFailedError(role, step_index, 0, error) from error
        LOGGER.debug("Wrote plan %s", plan_path)

        attempts = self.max_attempts_for(role)
        for attempt in range(1, attempts + 1):
            try:
                result = agent.edit(context)
                summary = self.runner.run_all()
                if not summary.ok:
                    raise VerificationFailedError(summary)
            except ATTEMPT_ERRORS as error:
                LOGGER.warning(
                    "%s attempt %d/%d failed: %s",
                    role.value,
                    attempt,
                    attempts,
                    error,
                )
                if attempt >= attempts:
                    raise StepFailedError(role, step_index, attempt, error) from error
                continue
            except LLMClientError as error:
                raise StepFailedError(role, step_index, attempt, error) from error

            return self._commit_step(context, result, summary, plan_path, attempt)

        raise AssertionError("attempt loop exited without a result")  # pragma: no cover

    def _commit_step(
        self,
        context: StepContext,
        result: StepResult,
        summary: RunnerOutcomeSummary,
        plan_path: Path,
        attempt: int,
    ) -> StepOutcome:
        role = context.role
        inputs = CommitMessageInputs(
            role=role,
            step_index=context.step_index,
            agent_message=result.commit_message,
            notes=result.notes,
            kata_description=context.kata_description,
            plan_path=self._relative(plan_path),
            files_changed=list(result.files_changed),
            runner=summary,
            kata_file=self.config.workspace.kata_file,
        )
        message = self.commit_policy.format(inputs)
        try:
            self.repo.stage_all()
            commit_id = self.repo.commit(message, self.author)
        except GitError as error:
            raise StepFailedError(role, context.step_index, attempt, error) from error

        LOGGER.info("Committed %s step %d as %s", role.value, context.step_index, commit_id[:12])
        self.cycle.advance()
        self.step_index += 1
        return StepOutcome(
            role=role,
            step_index=context.step_index,
            commit_id=commit_id,
            commit_message=message,
            plan_path=plan_path,
            files_changed=list(result.files_changed),
            notes=result.notes,
            attempts=attempt,
            runner=summary,
        )

    def _relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return path.as_posix()


__all__ = [
    "AgentRegistryError",
    "Orchestrator",
    "StepFailedError",
    "StepOutcome",
    "max_attempts_for",
]
