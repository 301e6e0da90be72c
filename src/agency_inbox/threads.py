"""Thread lifecycle engine.

States are derived from ``(state, unread)``::

    unread-active --mark_read--> read-active
    unread-active / read-active <--set_state--> archived

Escalation and assignment never change the state; they create a
support case or record an assignment. Every action is a collaborator
write followed by a forced refresh through the coordinator. The engine
holds no thread state of its own.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from . import conventions
from .backend import InboxBackend
from .coordinator import MutationRefreshCoordinator, require_actor
from .errors import InvalidAssignment, InvalidInput, PartialThreadCreation, WriteFailed
from .models import SupportCase, Thread, normalize_pinned_thread_ids

logger = logging.getLogger(__name__)


def lifecycle_state(thread: Thread) -> str:
    if thread.state == "archived":
        return conventions.LIFECYCLE_ARCHIVED
    if thread.unread:
        return conventions.LIFECYCLE_UNREAD_ACTIVE
    return conventions.LIFECYCLE_READ_ACTIVE


def parse_participant_ids(raw: str | Iterable[Any] | None) -> list[str]:
    """Split, trim and drop blanks. Accepts ``"a, b"`` or an iterable."""
    if raw is None:
        return []
    values = raw.split(",") if isinstance(raw, str) else raw
    result: list[str] = []
    for value in values:
        if value is None:
            continue
        participant_id = str(value).strip()
        if participant_id and participant_id not in result:
            result.append(participant_id)
    return result


def next_selection(threads: Sequence[Thread], selected_id: str | None) -> str | None:
    """Keep *selected_id* if still listed, else the first thread, else None."""
    if selected_id is not None and any(t.id == selected_id for t in threads):
        return selected_id
    return threads[0].id if threads else None


def _require_thread_id(thread_id: Any) -> str:
    if thread_id is None or not str(thread_id).strip():
        raise InvalidInput("A thread is required.")
    return str(thread_id).strip()


class ThreadLifecycle:
    """Thread actions for one workspace."""

    def __init__(
        self, backend: InboxBackend, coordinator: MutationRefreshCoordinator
    ) -> None:
        self._backend = backend
        self._coordinator = coordinator

    async def mark_read(self, thread_id: str, actor_id: Any) -> None:
        """unread-active -> read-active. Calls through even when already read."""
        thread_id = _require_thread_id(thread_id)

        async def write(actor: str) -> None:
            await self._backend.mark_thread_read(thread_id, actor)

        await self._coordinator.run("mark_read", write, actor_id=actor_id)

    async def set_state(self, thread_id: str, actor_id: Any, state: str) -> None:
        thread_id = _require_thread_id(thread_id)
        target = (state or "").strip().lower()
        if target not in conventions.THREAD_STATES:
            raise InvalidInput(
                f"Thread state must be one of: {', '.join(conventions.THREAD_STATES)}."
            )

        async def write(actor: str) -> None:
            await self._backend.update_thread_state(thread_id, actor, target)

        await self._coordinator.run("set_state", write, actor_id=actor_id)

    async def toggle_archive(self, thread: Thread, actor_id: Any) -> str:
        """Invert the last known state of *thread*. Returns the target state.

        The target comes from the caller's copy of the thread, so two
        concurrent togglers can race. Use ``set_state`` to be explicit.
        """
        target = "active" if thread.state == "archived" else "archived"
        await self.set_state(thread.id, actor_id, target)
        return target

    async def escalate(
        self,
        thread_id: str,
        actor_id: Any,
        reason: str,
        priority: str = conventions.DEFAULT_ESCALATION_PRIORITY,
    ) -> SupportCase | None:
        """Open a support case for the thread."""
        thread_id = _require_thread_id(thread_id)
        reason = (reason or "").strip()
        if not reason:
            raise InvalidInput("An escalation reason is required.")
        level = (priority or "").strip().lower()
        if level not in conventions.SUPPORT_PRIORITIES:
            raise InvalidInput(
                f"Priority must be one of: {', '.join(conventions.SUPPORT_PRIORITIES)}."
            )

        async def write(actor: str) -> dict[str, Any]:
            return await self._backend.escalate_thread(thread_id, actor, reason, level)

        case = await self._coordinator.run("escalate", write, actor_id=actor_id)
        return SupportCase.from_dict(case) if isinstance(case, dict) else None

    async def assign(
        self,
        thread_id: str,
        actor_id: Any,
        assignee_id: str | None,
        notify_agent: bool = True,
    ) -> None:
        thread_id = _require_thread_id(thread_id)
        require_actor(actor_id)
        assignee = str(assignee_id).strip() if assignee_id is not None else ""
        if not assignee:
            raise InvalidAssignment("An assignee is required.")

        async def write(actor: str) -> None:
            await self._backend.assign_support(thread_id, actor, assignee, notify_agent)

        await self._coordinator.run("assign", write, actor_id=actor_id)

    async def reply(self, thread_id: str, actor_id: Any, body: str) -> dict[str, Any]:
        """Send a trimmed, non-empty message to the thread."""
        thread_id = _require_thread_id(thread_id)
        text = (body or "").strip()
        if not text:
            raise InvalidInput("A message body is required.")

        async def write(actor: str) -> dict[str, Any]:
            return await self._backend.send_message(thread_id, actor, text)

        return await self._coordinator.run("reply", write, actor_id=actor_id) or {}

    async def create_thread(
        self,
        actor_id: Any,
        subject: str,
        channel_type: str,
        participant_ids: str | Iterable[Any] | None,
        initial_message: str | None = None,
    ) -> Thread:
        """Create a thread, then send *initial_message* as a second write.

        The two writes are not atomic. If the message fails, the created
        thread is attached to the raised PartialThreadCreation so the
        caller can retry ``reply`` against it.
        """
        subject = (subject or "").strip()
        if not subject:
            raise InvalidInput("A subject is required.")
        channel = (channel_type or "").strip().lower()
        if channel not in conventions.CHANNEL_TYPES:
            raise InvalidInput(
                f"Channel type must be one of: {', '.join(conventions.CHANNEL_TYPES)}."
            )
        participants = parse_participant_ids(participant_ids)
        if not participants:
            raise InvalidInput("At least one participant is required.")
        message = (initial_message or "").strip()
        workspace_id = self._coordinator.workspace_id

        async def write(actor: str) -> dict[str, Any]:
            return await self._backend.create_thread(
                actor, subject, channel, participants, workspace_id=workspace_id
            )

        created = await self._coordinator.run("create_thread", write, actor_id=actor_id)
        created = created if isinstance(created, dict) else {}
        thread = Thread.from_dict(
            {"subject": subject, "channelType": channel, **created}
        )
        if thread is None:
            raise WriteFailed("Thread was created without an id.")

        if message:
            try:
                await self.reply(thread.id, actor_id, message)
            except WriteFailed as exc:
                logger.warning(
                    "Thread %s created but its first message failed", thread.id
                )
                raise PartialThreadCreation(str(exc), thread) from exc
        return thread

    # --- Pins ---

    async def pin(self, thread_id: str, actor_id: Any) -> tuple[str, ...]:
        """Pin a thread. The newest pin goes first."""
        thread_id = _require_thread_id(thread_id)
        workspace_id = self._coordinator.workspace_id

        async def write(actor: str) -> dict[str, Any]:
            return await self._backend.pin_thread(workspace_id, actor, thread_id)

        stored = await self._coordinator.run("pin", write, actor_id=actor_id)
        return normalize_pinned_thread_ids((stored or {}).get("pinnedThreadIds"))

    async def unpin(self, thread_id: str, actor_id: Any) -> tuple[str, ...]:
        thread_id = _require_thread_id(thread_id)
        workspace_id = self._coordinator.workspace_id

        async def write(actor: str) -> dict[str, Any]:
            return await self._backend.unpin_thread(workspace_id, actor, thread_id)

        stored = await self._coordinator.run("unpin", write, actor_id=actor_id)
        return normalize_pinned_thread_ids((stored or {}).get("pinnedThreadIds"))

    async def reorder_pinned(
        self, thread_ids: Iterable[Any], actor_id: Any
    ) -> tuple[str, ...]:
        ordered = list(normalize_pinned_thread_ids(list(thread_ids or ())))
        workspace_id = self._coordinator.workspace_id

        async def write(actor: str) -> dict[str, Any]:
            return await self._backend.reorder_pinned_threads(
                workspace_id, actor, ordered
            )

        stored = await self._coordinator.run("reorder_pinned", write, actor_id=actor_id)
        return normalize_pinned_thread_ids((stored or {}).get("pinnedThreadIds"))
