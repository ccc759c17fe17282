"""Minimal git helpers for the TDD workspace.

The orchestrator only needs a handful of operations: inspect the latest
commit, list the files an agent may see, stage everything, and record one
commit per accepted step. Each helper shells out to ``git`` and raises
:class:`GitError` with git's own diagnostic when a command fails.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

import subprocess


class GitError(RuntimeError):
    """Raised when a git command fails or the repository cannot be used."""


@dataclass(slots=True)
class RepoState:
    """Snapshot of the repository used to build a step context."""

    head_commit: str | None
    last_commit_message: str
    last_commit_diff: str
    is_clean: bool

    @property
    def is_empty(self) -> bool:
        return self.head_commit is None


@dataclass(slots=True)
class CommitAuthor:
    """Identity recorded on every step commit."""

    name: str
    email: str

    def signature(self) -> str:
        return f"{self.name} <{self.email}>"


class GitRepository:
    """Lightweight wrapper around ``git`` commands."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()
        if not (self.root / ".git").exists():
            raise GitError(f"Not a git repository: {self.root}")

    @classmethod
    def open_or_init(cls, root: Path | str) -> "GitRepository":
        """Open the repository at ``root``, running ``git init`` when needed."""

        path = Path(root).resolve()
        path.mkdir(parents=True, exist_ok=True)
        if not (path / ".git").exists():
            _run_git(path, ["init"])
        return cls(path)

    def ensure_initialized(self) -> None:
        if not (self.root / ".git").exists():
            self._run_git(["init"])

    # ------------------------------------------------------------------ git IO
    def _run_git(self, args: Sequence[str], *, check: bool = True) -> subprocess.CompletedProcess[str]:
        return _run_git(self.root, args, check=check)

    def git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        """Execute ``git`` with ``args`` relative to the repository root."""

        return self._run_git(list(args), check=check)

    # ------------------------------------------------------------------ state
    def head_commit(self) -> str | None:
        result = self._run_git(["rev-parse", "--verify", "--quiet", "HEAD"], check=False)
        if result.returncode != 0:
            return None
        sha = result.stdout.strip()
        return sha or None

    def state(self) -> RepoState:
        """Return HEAD, the last commit message and diff, and the clean flag."""

        head = self.head_commit()
        message = ""
        diff = ""
        if head is not None:
            message = self._run_git(["log", "-1", "--format=%B", head]).stdout.strip()
            diff = self._run_git(["show", "--no-color", "--format=", head]).stdout
        status = self._run_git(["status", "--porcelain"]).stdout
        return RepoState(
            head_commit=head,
            last_commit_message=message,
            last_commit_diff=diff,
            is_clean=not status.strip(),
        )

    def commit_count(self) -> int:
        if self.head_commit() is None:
            return 0
        result = self._run_git(["rev-list", "--count", "HEAD"])
        return int(result.stdout.strip() or "0")

    def list_workspace_files(self) -> List[str]:
        """Return tracked and untracked, non-ignored files in sorted order.

        Paths are relative to the repository root with ``/`` separators.
        Hidden entries (any segment starting with ``.``) and paths that no
        longer exist on disk are skipped.
        """

        result = self._run_git(
            ["ls-files", "--cached", "--others", "--exclude-standard", "-z"],
            check=False,
        )
        if result.returncode != 0:
            message = result.stderr.strip() or result.stdout.strip() or "unable to list workspace files"
            raise GitError(f"git ls-files failed: {message}")

        files: set[str] = set()
        for entry in result.stdout.split("\0"):
            if not entry:
                continue
            relative = entry.replace("\\", "/")
            if any(part.startswith(".") for part in relative.split("/")):
                continue
            if not (self.root / relative).is_file():
                continue
            files.add(relative)
        return sorted(files)

    # ---------------------------------------------------------------- commits
    def stage_all(self) -> None:
        self._run_git(["add", "--all"])

    def commit(self, message: str, author: CommitAuthor) -> str:
        """Record the staged changes as one commit and return its id.

        Empty commits are allowed so every accepted step is represented in
        history even when an agent rewrote files with identical contents.
        """

        self._run_git(
            [
                "-c",
                f"user.name={author.name}",
                "-c",
                f"user.email={author.email}",
                "commit",
                "--allow-empty",
                "--no-verify",
                f"--author={author.signature()}",
                "-m",
                message,
            ]
        )
        head = self.head_commit()
        if head is None:
            raise GitError("commit succeeded but HEAD could not be resolved")
        return head


def _run_git(root: Path, args: Sequence[str], *, check: bool = True) -> subprocess.CompletedProcess[str]:
    command = ["git", *args]
    process = subprocess.run(
        command,
        cwd=root,
        capture_output=True,
        text=False,
        check=False,
    )
    stdout = process.stdout.decode("utf-8", errors="replace") if process.stdout else ""
    stderr = process.stderr.decode("utf-8", errors="replace") if process.stderr else ""
    result = subprocess.CompletedProcess(process.args, process.returncode, stdout, stderr)
    if check and result.returncode != 0:
        message = result.stderr.strip() or result.stdout.strip() or "unknown git error"
        raise GitError(f"git {' '.join(args)} failed: {message}")
    return result


__all__ = ["CommitAuthor", "GitError", "GitRepository", "RepoState"]
