"""Role scope rules for edit plans.

Each role may only touch a particular slice of the workspace:

``tester``
    Every edited path must be a test path.

``implementor``
    At least one source path, and no more than :data:`MAX_FILES_PER_PLAN`
    files in total.

``refactorer``
    Source paths only (never tests), at most :data:`MAX_FILES_PER_PLAN` files.

Rules are registered in :data:`SCOPE_RULES` and looked up through
:data:`RULE_DISPATCH`, so :class:`ScopePolicy` stays a thin wrapper that turns
the first failing rule into a :class:`ScopeDecision`.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Dict

from tdd_machine.roles import Role
from tdd_machine.tools.edit_plan import EditPlan

MAX_FILES_PER_PLAN = 5
MANIFEST_FILE = "pyproject.toml"
SOURCE_ROOTS = ("src/", "examples/")
SOURCE_SUFFIXES = (".py", ".pyi")
TEST_ROOTS = ("tests/", "test/")


def is_test_path(path: str) -> bool:
    """Return ``True`` when ``path`` looks like a test module or test fixture."""
    normalised = path.replace("\\", "/")
    if normalised.startswith(TEST_ROOTS):
        return True
    if "/tests/" in normalised or "/test/" in normalised:
        return True
    name = PurePosixPath(normalised).name
    if name == "conftest.py" or name.startswith("test_"):
        return True
    stem = PurePosixPath(name).stem
    return stem.endswith(("_test", "_tests"))


def is_source_path(path: str) -> bool:
    """Return ``True`` for production code and the project manifest."""
    normalised = path.replace("\\", "/")
    if is_test_path(normalised):
        return False
    if normalised.startswith(SOURCE_ROOTS) or normalised == MANIFEST_FILE:
        return True
    return normalised.endswith(SOURCE_SUFFIXES)


@dataclass(frozen=True, slots=True)
class ScopeDecision:
    """Outcome of a scope check: either allowed or rejected with a reason."""

    allowed: bool
    reason: str = ""

    @classmethod
    def allow(cls) -> "ScopeDecision":
        return cls(allowed=True)

    @classmethod
    def reject(cls, reason: str) -> "ScopeDecision":
        return cls(allowed=False, reason=reason)


class ScopeViolation(RuntimeError):
    """Raised when an edit plan falls outside the acting role's scope."""

    def __init__(self, role: Role, reason: str) -> None:
        super().__init__(reason)
        self.role = role
        self.reason = reason


@dataclass(slots=True)
class RuleDefinition:
    """Metadata describing a scope rule."""

    role: Role
    title: str
    detail: str


SCOPE_RULES: Dict[Role, RuleDefinition] = {
    Role.TESTER: RuleDefinition(
        role=Role.TESTER,
        title="Tests only",
        detail="Tester plans must edit at least one file and every file must be a test path.",
    ),
    Role.IMPLEMENTOR: RuleDefinition(
        role=Role.IMPLEMENTOR,
        title="Focused source change",
        detail=f"Implementor plans must touch a source file and at most {MAX_FILES_PER_PLAN} files.",
    ),
    Role.REFACTORER: RuleDefinition(
        role=Role.REFACTORER,
        title="Source-only restructuring",
        detail=f"Refactorer plans may only touch source files, at most {MAX_FILES_PER_PLAN}.",
    ),
}


def _check_tester(paths: Sequence[str]) -> ScopeDecision:
    if not paths:
        return ScopeDecision.reject("Tester plans must include at least one test file edit")
    outside = [path for path in paths if not is_test_path(path)]
    if outside:
        return ScopeDecision.reject(f"Tester edits must touch tests only (got {', '.join(outside)})")
    return ScopeDecision.allow()


def _check_implementor(paths: Sequence[str]) -> ScopeDecision:
    if not any(is_source_path(path) for path in paths):
        return ScopeDecision.reject("Implementor must modify at least one source file")
    if len(paths) > MAX_FILES_PER_PLAN:
        return ScopeDecision.reject(
            f"Implementor plan is too large ({len(paths)} files); "
            f"limit edits to at most {MAX_FILES_PER_PLAN} files"
        )
    return ScopeDecision.allow()


def _check_refactorer(paths: Sequence[str]) -> ScopeDecision:
    if not paths:
        return ScopeDecision.reject("Refactorer plans must modify at least one source file")
    if len(paths) > MAX_FILES_PER_PLAN:
        return ScopeDecision.reject(
            f"Refactorer plan touches too many files ({len(paths)}); limit to {MAX_FILES_PER_PLAN}"
        )
    tests = [path for path in paths if is_test_path(path)]
    if tests:
        return ScopeDecision.reject(f"Refactorer cannot modify test files ({', '.join(tests)})")
    others = [path for path in paths if not is_source_path(path)]
    if others:
        return ScopeDecision.reject(f"Refactorer may only modify source files ({', '.join(others)})")
    return ScopeDecision.allow()


RULE_DISPATCH: Dict[Role, Callable[[Sequence[str]], ScopeDecision]] = {
    Role.TESTER: _check_tester,
    Role.IMPLEMENTOR: _check_implementor,
    Role.REFACTORER: _check_refactorer,
}


class ScopePolicy:
    """Evaluate edit plans against the per-role rules."""

    def check(self, role: Role, plan: EditPlan) -> ScopeDecision:
        return self.check_paths(role, plan.paths)

    def check_paths(self, role: Role, paths: Sequence[str]) -> ScopeDecision:
        return RULE_DISPATCH[role](list(paths))

    def enforce(self, role: Role, plan: EditPlan) -> None:
        """Raise :class:`ScopeViolation` unless ``plan`` is within scope."""
        decision = self.check(role, plan)
        if not decision.allowed:
            raise ScopeViolation(role, decision.reason)


__all__ = [
    "MAX_FILES_PER_PLAN",
    "RULE_DISPATCH",
    "SCOPE_RULES",
    "ScopeDecision",
    "ScopePolicy",
    "ScopeViolation",
    "is_source_path",
    "is_test_path",
]
