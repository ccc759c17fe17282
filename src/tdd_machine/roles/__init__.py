"""Agent roles and the fixed red-green-refactor rotation."""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Enumeration of the agents that take turns on the workspace."""

    TESTER = "tester"
    IMPLEMENTOR = "implementor"
    REFACTORER = "refactorer"

    def next(self) -> "Role":
        """Return the role that acts after this one."""
        index = ROLE_SEQUENCE.index(self)
        return ROLE_SEQUENCE[(index + 1) % len(ROLE_SEQUENCE)]

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @classmethod
    def parse(cls, text: str) -> "Role":
        candidate = text.strip().lower()
        for role in cls:
            if role.value == candidate:
                return role
        raise ValueError(f"unknown role: {text!r}")


ROLE_SEQUENCE = [
    Role.TESTER,
    Role.IMPLEMENTOR,
    Role.REFACTORER,
]


class RoleCycle:
    """Cursor over :data:`ROLE_SEQUENCE` owned by a single orchestrator."""

    def __init__(self, start: Role = Role.TESTER) -> None:
        self._current = start

    @classmethod
    def from_history(cls, last_role: Role | None, workspace_is_empty: bool) -> "RoleCycle":
        """Resume the rotation after ``last_role``.

        A workspace without commits always restarts at the Tester, whatever the
        history claims. Otherwise the successor of ``last_role`` acts next, or the
        Tester when no previous role is known.
        """
        if workspace_is_empty or last_role is None:
            return cls(Role.TESTER)
        return cls(last_role.next())

    def current(self) -> Role:
        return self._current

    def advance(self) -> Role:
        """Move to the next role and return it."""
        self._current = self._current.next()
        return self._current

    def __repr__(self) -> str:
        return f"RoleCycle(current={self._current.value!r})"


__all__ = ["ROLE_SEQUENCE", "Role", "RoleCycle"]
