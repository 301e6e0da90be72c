"""Mutation-refresh coordinator.

Every mutating action runs through ``MutationRefreshCoordinator.run``:
guards first (workspace, actor), then the collaborator write, then
exactly one forced refresh of the workspace key. A failed write is
surfaced as ``WriteFailed`` with the collaborator's message and leaves
the cache untouched.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from .cache import CachedResourceStore
from .errors import InboxError, InvalidInput, UnresolvedActor, WriteFailed
from .workspace import workspace_cache_key

logger = logging.getLogger(__name__)

T = TypeVar("T")


def require_actor(actor_id: Any) -> str:
    """Return *actor_id* as a string or raise UnresolvedActor."""
    if actor_id is None:
        raise UnresolvedActor()
    actor = str(actor_id).strip()
    if not actor:
        raise UnresolvedActor()
    return actor


class MutationRefreshCoordinator:
    """Runs collaborator writes for one workspace and refreshes after each."""

    def __init__(self, store: CachedResourceStore, workspace_id: str | None) -> None:
        self._store = store
        self._workspace_id = str(workspace_id).strip() if workspace_id else ""

    @property
    def workspace_id(self) -> str:
        return self._workspace_id

    @property
    def cache_key(self) -> str:
        return workspace_cache_key(self._workspace_id)

    def require_workspace(self) -> str:
        if not self._workspace_id:
            raise InvalidInput("A workspace is required.")
        return self._workspace_id

    async def run(
        self,
        action: str,
        write: Callable[[str], Awaitable[T]],
        *,
        actor_id: Any,
    ) -> T:
        """Perform *write(actor)* and force one refresh on success.

        Args:
            action: Name used in logs.
            write: Coroutine factory receiving the resolved actor id.
            actor_id: Identity performing the action.

        Raises:
            InvalidInput: no workspace is bound.
            UnresolvedActor: no actor identity.
            WriteFailed: the collaborator rejected the write.
        """
        self.require_workspace()
        actor = require_actor(actor_id)

        try:
            result = await write(actor)
        except (InboxError, asyncio.CancelledError):
            raise
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            logger.warning(
                "%s failed for workspace %s: %s", action, self._workspace_id, message
            )
            raise WriteFailed(message) from exc

        logger.info("%s succeeded for workspace %s", action, self._workspace_id)
        await self.refresh()
        return result

    async def refresh(self) -> None:
        """Force one refresh of the workspace key."""
        await self._store.refresh(self.cache_key, force=True)
