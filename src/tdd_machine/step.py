"""Per-step context snapshots handed to agents."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

from .roles import Role
from .tools.vcs import GitRepository

LOGGER = logging.getLogger(__name__)


class StepContextError(RuntimeError):
    """Raised when the workspace cannot be inspected for a step."""

    def __init__(self, path: Path, error: OSError) -> None:
        super().__init__(f"failed to read kata description {path}: {error}")
        self.path = path


@dataclass(frozen=True, slots=True)
class StepContext:
    """Immutable view of the workspace at the start of a step."""

    role: Role
    step_index: int
    kata_description: str
    last_commit_message: str
    last_commit_diff: str
    workspace_files: Tuple[str, ...] = ()


@dataclass(slots=True)
class StepResult:
    """What an agent reports after applying its edits."""

    files_changed: List[str] = field(default_factory=list)
    commit_message: str = ""
    notes: str = ""


class StepContextBuilder:
    """Assemble :class:`StepContext` values from the kata file and git state."""

    def __init__(self, root: Path, kata_file: Path | str, repo: GitRepository) -> None:
        self.root = Path(root)
        kata_path = Path(kata_file)
        self.kata_path = kata_path if kata_path.is_absolute() else self.root / kata_path
        self.repo = repo

    def build(self, role: Role, step_index: int) -> StepContext:
        state = self.repo.state()
        try:
            kata = self.kata_path.read_text(encoding="utf-8")
        except OSError as error:
            raise StepContextError(self.kata_path, error) from error
        files = self.repo.list_workspace_files()
        LOGGER.debug("Built context for %s step %d (%d files)", role.value, step_index, len(files))
        return StepContext(
            role=role,
            step_index=step_index,
            kata_description=kata,
            last_commit_message=state.last_commit_message,
            last_commit_diff=state.last_commit_diff,
            workspace_files=tuple(files),
        )


__all__ = ["StepContext", "StepContextBuilder", "StepContextError", "StepResult"]
