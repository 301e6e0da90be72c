"""Per-workspace facade.

``InboxWorkspace`` binds one workspace id to a backend and a cache store,
registers the workspace fetcher and exposes the read model together with
every action. It also tracks which thread is selected and re-applies the
selection policy after each read.

Usage:
    inbox = InboxWorkspace("ws-1", backend, store)
    workspace = await inbox.read()
    await inbox.reply("thread-1", "user-1", "On it.")
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

from . import conventions
from .backend import InboxBackend
from .cache import CachedResourceStore, ResourceSnapshot
from .coordinator import MutationRefreshCoordinator
from .errors import FetchFailed, InvalidInput
from .models import (
    Automations,
    Preferences,
    RoutingRule,
    SavedReply,
    SupportCase,
    Thread,
    WorkspaceInbox,
)
from .registry import AutomationRegistry, PreferenceRegistry, SavedReplyRegistry
from .routing import RoutingRuleEngine, route
from .threads import ThreadLifecycle, next_selection
from .workspace import default_workspace, load_workspace, workspace_cache_key

logger = logging.getLogger(__name__)


class InboxWorkspace:
    """Read model and actions for one workspace."""

    def __init__(
        self,
        workspace_id: str | None,
        backend: InboxBackend,
        store: CachedResourceStore,
        *,
        ttl: float | None = None,
    ) -> None:
        self.workspace_id = str(workspace_id).strip() if workspace_id else ""
        self._backend = backend
        self._store = store
        self.selected_thread_id: str | None = None

        self.coordinator = MutationRefreshCoordinator(store, self.workspace_id)
        self.threads = ThreadLifecycle(backend, self.coordinator)
        self.routing = RoutingRuleEngine(backend, self.coordinator)
        self.saved_replies = SavedReplyRegistry(backend, self.coordinator)
        self.automations = AutomationRegistry(backend, self.coordinator)
        self.preferences = PreferenceRegistry(backend, self.coordinator)

        if self.workspace_id:
            store.register(self.cache_key, self._fetch, ttl=ttl)

    @property
    def cache_key(self) -> str:
        return workspace_cache_key(self.workspace_id)

    async def _fetch(self) -> WorkspaceInbox:
        return await load_workspace(self._backend, self.workspace_id)

    # --- Reads ---

    def snapshot(self) -> ResourceSnapshot:
        """Cache state without fetching."""
        if not self.workspace_id:
            return ResourceSnapshot(data=default_workspace())
        return self._store.peek(self.cache_key)

    @property
    def workspace(self) -> WorkspaceInbox:
        """Last known aggregate, or the default shape before the first fetch."""
        data = self.snapshot().data
        if isinstance(data, WorkspaceInbox):
            return data
        return default_workspace(self.workspace_id)

    async def load(
        self, force: bool = False, signal: asyncio.Event | None = None
    ) -> ResourceSnapshot:
        """Read through the cache and return the snapshot for this read."""
        if not self.workspace_id:
            snapshot = ResourceSnapshot(data=default_workspace())
        elif force:
            snapshot = await self._store.refresh(
                self.cache_key, force=True, signal=signal
            )
        else:
            snapshot = await self._store.get(self.cache_key, signal=signal)
        self.sync_selection()
        return snapshot

    async def read(
        self, force: bool = False, signal: asyncio.Event | None = None
    ) -> WorkspaceInbox:
        """Read through the cache. A failed fetch keeps the last known data."""
        await self.load(force, signal)
        return self.workspace

    async def refresh(self, signal: asyncio.Event | None = None) -> WorkspaceInbox:
        return await self.read(force=True, signal=signal)

    async def current(self) -> WorkspaceInbox:
        """The synced aggregate that read-modify-write actions build on.

        The cached aggregate is used while it is fresh; otherwise the
        workspace is fetched first. The default shape is never returned.

        Raises:
            FetchFailed: the workspace could not be read.
        """
        if self._store.is_fresh(self.cache_key):
            snapshot = self.snapshot()
        else:
            snapshot = await self._store.refresh(self.cache_key, force=True)
        data = snapshot.data
        if snapshot.error is not None or not isinstance(data, WorkspaceInbox):
            raise FetchFailed(
                snapshot.error or f"Workspace {self.workspace_id} is unavailable."
            )
        return data

    # --- Selection ---

    def select(self, thread_id: str | None) -> str | None:
        if thread_id is not None and self.workspace.find_thread(thread_id) is None:
            raise InvalidInput(f"Thread {thread_id} is not in this workspace.")
        self.selected_thread_id = thread_id
        return self.selected_thread_id

    def sync_selection(self) -> str | None:
        """Re-apply the selection policy to the current thread list."""
        previous = self.selected_thread_id
        self.selected_thread_id = next_selection(
            self.workspace.active_threads, previous
        )
        if previous is not None and previous != self.selected_thread_id:
            logger.debug(
                "Selected thread %s is gone; now %s", previous, self.selected_thread_id
            )
        return self.selected_thread_id

    @property
    def selected_thread(self) -> Thread | None:
        if self.selected_thread_id is None:
            return None
        return self.workspace.find_thread(self.selected_thread_id)

    # --- Thread actions ---

    async def mark_read(self, thread_id: str, actor_id: Any) -> None:
        await self.threads.mark_read(thread_id, actor_id)
        self.sync_selection()

    async def set_state(self, thread_id: str, actor_id: Any, state: str) -> None:
        await self.threads.set_state(thread_id, actor_id, state)
        self.sync_selection()

    async def toggle_archive(self, thread_id: str, actor_id: Any) -> str:
        """Flip the thread between active and archived from its last known state."""
        thread = self.workspace.find_thread(thread_id)
        if thread is None:
            raise InvalidInput(f"Thread {thread_id} is not in this workspace.")
        target = await self.threads.toggle_archive(thread, actor_id)
        self.sync_selection()
        return target

    async def escalate(
        self,
        thread_id: str,
        actor_id: Any,
        reason: str,
        priority: str = conventions.DEFAULT_ESCALATION_PRIORITY,
    ) -> SupportCase | None:
        return await self.threads.escalate(thread_id, actor_id, reason, priority)

    async def assign(
        self,
        thread_id: str,
        actor_id: Any,
        assignee_id: str | None,
        notify_agent: bool = True,
    ) -> None:
        await self.threads.assign(thread_id, actor_id, assignee_id, notify_agent)

    async def reply(self, thread_id: str, actor_id: Any, body: str) -> dict[str, Any]:
        return await self.threads.reply(thread_id, actor_id, body)

    async def create_thread(
        self,
        actor_id: Any,
        subject: str,
        channel_type: str,
        participant_ids: str | Iterable[Any] | None,
        initial_message: str | None = None,
    ) -> Thread:
        thread = await self.threads.create_thread(
            actor_id, subject, channel_type, participant_ids, initial_message
        )
        self.sync_selection()
        return thread

    async def pin(self, thread_id: str, actor_id: Any) -> tuple[str, ...]:
        return await self.threads.pin(thread_id, actor_id)

    async def unpin(self, thread_id: str, actor_id: Any) -> tuple[str, ...]:
        return await self.threads.unpin(thread_id, actor_id)

    async def reorder_pinned(
        self, thread_ids: Iterable[Any], actor_id: Any
    ) -> tuple[str, ...]:
        return await self.threads.reorder_pinned(thread_ids, actor_id)

    # --- Routing ---

    def route(self, thread_id: str) -> RoutingRule | None:
        """Evaluate the stored rules against one thread."""
        thread = self.workspace.find_thread(thread_id)
        if thread is None:
            raise InvalidInput(f"Thread {thread_id} is not in this workspace.")
        return route(thread, self.workspace.routing_rules)

    async def create_rule(
        self, actor_id: Any, payload: dict[str, Any]
    ) -> RoutingRule | None:
        return await self.routing.create_rule(actor_id, payload)

    async def update_rule(
        self, actor_id: Any, rule_id: str, payload: dict[str, Any]
    ) -> RoutingRule | None:
        return await self.routing.update_rule(actor_id, rule_id, payload)

    async def delete_rule(self, actor_id: Any, rule_id: str) -> None:
        await self.routing.delete_rule(actor_id, rule_id)

    # --- Saved replies, automations, preferences ---

    async def create_saved_reply(
        self, actor_id: Any, payload: dict[str, Any]
    ) -> SavedReply | None:
        return await self.saved_replies.create(actor_id, payload)

    async def update_saved_reply(
        self, actor_id: Any, reply_id: str, payload: dict[str, Any]
    ) -> SavedReply | None:
        return await self.saved_replies.update(actor_id, reply_id, payload)

    async def delete_saved_reply(self, actor_id: Any, reply_id: str) -> str | None:
        return await self.saved_replies.delete(actor_id, reply_id, self.current)

    async def save_automations(
        self, actor_id: Any, flags: dict[str, Any]
    ) -> Automations:
        return await self.automations.save(actor_id, flags, self.current)

    async def update_preferences(
        self, actor_id: Any, partial: dict[str, Any]
    ) -> Preferences:
        return await self.preferences.update(actor_id, partial, self.current)
