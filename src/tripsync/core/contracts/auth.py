"""Authentication collaborator contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

AuthListener = Callable[[str | None], object]
"""Receives the new user id (``None`` on sign-out); may return an awaitable."""


class AuthProvider(ABC):
    @abstractmethod
    def current_user_id(self) -> str | None: ...  # pragma: no cover

    @abstractmethod
    def on_auth_change(self, listener: AuthListener) -> Callable[[], None]:
        """Register *listener* and return a callable that removes it."""
        ...  # pragma: no cover
