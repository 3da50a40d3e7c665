# src/taskboard/core/auth.py

from __future__ import annotations

from collections.abc import Iterable

from ..tasks.models import CurrentUser


class StaticAuthOracle:
    """AuthOracle for a single, pre-configured user (console sessions, tests)."""

    def __init__(self, user: CurrentUser, capabilities: Iterable[str] = ()) -> None:
        self._user = user
        self._capabilities = frozenset(c.strip() for c in capabilities if c.strip())

    def current_user(self) -> CurrentUser:
        return self._user

    def has_capability(self, name: str) -> bool:
        return name in self._capabilities
