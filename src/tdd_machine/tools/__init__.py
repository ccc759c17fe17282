"""Workspace tooling used by the orchestrator."""

from .edit_plan import EditPlan, EditPlanError, FileEdit
from .gates import (
    CommandOutcome,
    CommandSpec,
    RunnerConfigError,
    RunnerOutcomeSummary,
    VerificationCommands,
    VerificationFailedError,
    VerificationRunner,
)
from .history import StepLogEntry, StepLogger, detect_plan_progress, latest_log_entry, write_plan_file
from .vcs import CommitAuthor, GitError, GitRepository, RepoState

__all__ = [
    "CommandOutcome",
    "CommandSpec",
    "CommitAuthor",
    "EditPlan",
    "EditPlanError",
    "FileEdit",
    "GitError",
    "GitRepository",
    "RepoState",
    "RunnerConfigError",
    "RunnerOutcomeSummary",
    "StepLogEntry",
    "StepLogger",
    "VerificationCommands",
    "VerificationFailedError",
    "VerificationRunner",
    "detect_plan_progress",
    "latest_log_entry",
    "write_plan_file",
]
