"""Parse and apply the complete-file edit plans produced by agents.

Model output is untrusted. :meth:`EditPlan.parse` is the single place where
raw text becomes a validated plan: the commit message is present, at least
one file is listed, and every path is relative, unique, and stays inside the
workspace. :meth:`EditPlan.apply` then writes each file in full.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError

_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:(/|$)")


class EditPlanError(RuntimeError):
    """Base error raised when an edit plan cannot be parsed or applied."""


class MalformedPlanError(EditPlanError):
    """Raised when the payload is not JSON or does not match the plan shape."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"invalid JSON edit plan: {detail}")
        self.detail = detail


class MissingCommitMessageError(EditPlanError):
    def __init__(self) -> None:
        super().__init__("commit_message field is required")


class EmptyPlanError(EditPlanError):
    def __init__(self) -> None:
        super().__init__("plan must include at least one file")


class InvalidPathError(EditPlanError):
    def __init__(self, path: str) -> None:
        super().__init__(f"file path {path!r} is invalid")
        self.path = path


class DuplicatePathError(EditPlanError):
    def __init__(self, path: str) -> None:
        super().__init__(f"duplicate entry for path {path!r}")
        self.path = path


class EditPlanWriteError(EditPlanError):
    """Raised when a file of an already validated plan cannot be written."""

    def __init__(self, path: str, error: Exception) -> None:
        super().__init__(f"failed to write {path}: {error}")
        self.path = path


class _RawFileEdit(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: str
    contents: str


class _RawEditPlan(BaseModel):
    model_config = ConfigDict(extra="ignore")

    commit_message: Optional[str] = None
    notes: Optional[str] = None
    files: List[_RawFileEdit]


@dataclass(frozen=True, slots=True)
class FileEdit:
    """Full replacement contents for a single workspace file."""

    path: str
    contents: str


@dataclass(frozen=True, slots=True)
class EditPlan:
    """Validated set of file rewrites plus the agent's commit message."""

    commit_message: str
    notes: str
    files: Tuple[FileEdit, ...]

    @property
    def paths(self) -> List[str]:
        return [edit.path for edit in self.files]

    @classmethod
    def parse(cls, raw_text: str) -> "EditPlan":
        """Validate ``raw_text`` (optionally wrapped in a Markdown fence)."""

        body = strip_code_fence(raw_text)
        try:
            payload = json.loads(body)
        except json.JSONDecodeError as error:
            raise MalformedPlanError(str(error)) from error
        try:
            raw = _RawEditPlan.model_validate(payload)
        except ValidationError as error:
            raise MalformedPlanError(_summarise_validation(error)) from error

        commit_message = (raw.commit_message or "").strip()
        if not commit_message:
            raise MissingCommitMessageError()
        if not raw.files:
            raise EmptyPlanError()

        seen: set[str] = set()
        files: List[FileEdit] = []
        for entry in raw.files:
            path = normalise_plan_path(entry.path)
            if path in seen:
                raise DuplicatePathError(path)
            try:
                entry.contents.encode("utf-8")
            except UnicodeEncodeError as error:
                raise MalformedPlanError(f"contents of {path!r} are not valid UTF-8: {error.reason}") from error
            seen.add(path)
            files.append(FileEdit(path=path, contents=entry.contents))

        return cls(
            commit_message=commit_message,
            notes=(raw.notes or "").strip(),
            files=tuple(files),
        )

    def apply(self, root: Path | str) -> List[str]:
        """Write every file under ``root`` in declared order.

        Parent directories are created as needed. The first failure aborts the
        remaining writes; files written before it stay on disk.
        """

        base = Path(root).resolve()
        written: List[str] = []
        for edit in self.files:
            target = base / edit.path
            try:
                inside = target.resolve().is_relative_to(base)
            except (OSError, ValueError) as error:
                raise EditPlanWriteError(edit.path, error) from error
            if not inside:
                raise InvalidPathError(edit.path)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                with target.open("w", encoding="utf-8", newline="") as handle:
                    handle.write(edit.contents)
            except (OSError, ValueError) as error:
                raise EditPlanWriteError(edit.path, error) from error
            written.append(edit.path)
        return written


def strip_code_fence(raw_text: str) -> str:
    """Remove a surrounding Markdown code fence, if present."""
    text = raw_text.strip()
    if not text.startswith("```"):
        return text
    lines = text.splitlines()[1:]
    if lines and lines[-1].strip().startswith("```"):
        lines = lines[:-1]
    return "\n".join(lines).strip()


def normalise_plan_path(raw: str) -> str:
    """Return the workspace-relative form of ``raw`` or raise :class:`InvalidPathError`."""
    candidate = raw.strip().replace("\\", "/")
    if not candidate:
        raise InvalidPathError(raw)
    if any(ord(char) < 32 or ord(char) == 127 for char in candidate):
        raise InvalidPathError(candidate)
    if candidate.startswith("/") or _DRIVE_PREFIX.match(candidate):
        raise InvalidPathError(candidate)
    parts = [part for part in candidate.split("/") if part not in ("", ".")]
    if not parts or any(part == ".." for part in parts):
        raise InvalidPathError(candidate)
    if any(part.lower() == ".git" for part in parts):
        raise InvalidPathError(candidate)
    return "/".join(parts)


def _summarise_validation(error: ValidationError) -> str:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "plan"
        messages.append(f"{location}: {item.get('msg', 'invalid value')}")
    return "; ".join(messages)


__all__ = [
    "DuplicatePathError",
    "EditPlan",
    "EditPlanError",
    "EditPlanWriteError",
    "EmptyPlanError",
    "FileEdit",
    "InvalidPathError",
    "MalformedPlanError",
    "MissingCommitMessageError",
    "normalise_plan_path",
    "strip_code_fence",
]
