"""Static auth collaborator."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable

from tripsync.core.contracts.auth import AuthListener, AuthProvider
from tripsync.core.contracts.exceptions import InvalidParentError

logger = logging.getLogger(__name__)


class StaticAuthProvider(AuthProvider):
    """Auth collaborator whose identity is set explicitly.

    Used by the CLI (identity from config) and by tests. Listeners run in
    registration order; coroutine listeners are awaited by :meth:`sign_in`
    and :meth:`sign_out`.
    """

    def __init__(self, user_id: str | None = None) -> None:
        self._user_id = user_id
        self._listeners: list[AuthListener] = []

    def current_user_id(self) -> str | None:
        return self._user_id

    def on_auth_change(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def sign_in(self, user_id: str) -> None:
        resolved = user_id.strip()
        if not resolved:
            raise InvalidParentError("user id is empty")
        await self._change(resolved)

    async def sign_out(self) -> None:
        await self._change(None)

    async def _change(self, user_id: str | None) -> None:
        if user_id == self._user_id:
            return
        self._user_id = user_id
        logger.debug("auth changed: %s", user_id or "<signed out>")
        for listener in list(self._listeners):
            outcome = listener(user_id)
            if inspect.isawaitable(outcome):
                await outcome
