"""Saved reply, automation and preference registries.

Each registry validates locally, writes through the collaborator and
forces one refresh via the coordinator. Automations and preferences are
always written as whole structs: the caller's partial input is merged
onto the synced workspace, which is read first when the cache cannot
vouch for it. Nothing is ever merged onto the default shape.

Deleting the workspace's default saved reply moves the default to the
first remaining reply in stored order, or clears it when none remain.
The delete and the preference write share one coordinated action. When
the preference write fails after the delete went through, the workspace
is refreshed and ``PartialSavedReplyDeletion`` is raised.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any

from . import conventions
from .backend import InboxBackend
from .coordinator import MutationRefreshCoordinator, require_actor
from .errors import InvalidInput, PartialSavedReplyDeletion
from .models import (
    Automations,
    Preferences,
    SavedReply,
    WorkspaceInbox,
    normalize_shortcuts,
)
from .workspace import merge_payload

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

# load_current() -> the synced workspace, raising FetchFailed
CurrentLoader = Callable[[], Awaitable[WorkspaceInbox]]


# ---------------------------------------------------------------------------
# Saved replies
# ---------------------------------------------------------------------------


def normalize_reply_payload(
    payload: dict[str, Any], *, partial: bool = False
) -> dict[str, Any]:
    """Validate a saved reply payload and return it in collaborator shape."""
    result: dict[str, Any] = {}
    for key, label in (("title", "A title"), ("body", "A body")):
        if not partial or key in payload:
            value = str(payload.get(key) or "").strip()
            if not value:
                raise InvalidInput(f"{label} is required for a saved reply.")
            result[key] = value

    if not partial or "category" in payload:
        category = str(
            payload.get("category") or conventions.DEFAULT_SAVED_REPLY_CATEGORY
        ).strip().lower()
        if category not in conventions.SAVED_REPLY_CATEGORIES:
            raise InvalidInput(
                "Category must be one of: "
                f"{', '.join(conventions.SAVED_REPLY_CATEGORIES)}."
            )
        result["category"] = category

    if "shortcut" in payload:
        shortcut = str(payload.get("shortcut") or "").strip().lower()
        result["shortcut"] = shortcut or None
    if "shortcuts" in payload:
        result["shortcuts"] = list(normalize_shortcuts(payload.get("shortcuts")))
    if "isDefault" in payload:
        result["isDefault"] = bool(payload["isDefault"])
    if payload.get("orderIndex") is not None:
        try:
            result["orderIndex"] = int(payload["orderIndex"])
        except (TypeError, ValueError) as exc:
            raise InvalidInput("orderIndex must be an integer.") from exc
    return result


class SavedReplyRegistry:
    """Saved reply CRUD for one workspace."""

    def __init__(
        self, backend: InboxBackend, coordinator: MutationRefreshCoordinator
    ) -> None:
        self._backend = backend
        self._coordinator = coordinator

    async def create(
        self, actor_id: Any, payload: dict[str, Any]
    ) -> SavedReply | None:
        workspace_id = self._coordinator.require_workspace()
        body = normalize_reply_payload(payload)

        async def write(actor: str) -> dict[str, Any]:
            return await self._backend.create_saved_reply(workspace_id, body)

        created = await self._coordinator.run(
            "create_saved_reply", write, actor_id=actor_id
        )
        return SavedReply.from_dict(created) if isinstance(created, dict) else None

    async def update(
        self, actor_id: Any, reply_id: str, payload: dict[str, Any]
    ) -> SavedReply | None:
        workspace_id = self._coordinator.require_workspace()
        if not reply_id:
            raise InvalidInput("A saved reply is required.")
        body = normalize_reply_payload(payload, partial=True)

        async def write(actor: str) -> dict[str, Any]:
            return await self._backend.update_saved_reply(workspace_id, reply_id, body)

        updated = await self._coordinator.run(
            "update_saved_reply", write, actor_id=actor_id
        )
        return SavedReply.from_dict(updated) if isinstance(updated, dict) else None

    async def delete(
        self, actor_id: Any, reply_id: str, load_current: CurrentLoader
    ) -> str | None:
        """Delete a reply. Returns the default reply id after the delete.

        Raises:
            FetchFailed: the workspace could not be read before deciding.
            PartialSavedReplyDeletion: the reply is gone but the default
                still points at it.
        """
        workspace_id = self._coordinator.require_workspace()
        if not reply_id:
            raise InvalidInput("A saved reply is required.")
        reply_id = str(reply_id)
        require_actor(actor_id)
        current = await load_current()
        preferences = current.preferences
        reply = current.find_saved_reply(reply_id)
        was_default = preferences.default_saved_reply_id == reply_id or (
            reply is not None and reply.is_default
        )
        remaining = sorted(
            (r for r in current.saved_replies if r.id != reply_id),
            key=lambda r: r.order_index,
        )
        next_default = remaining[0].id if remaining else None

        async def write(actor: str) -> str | None:
            await self._backend.delete_saved_reply(workspace_id, reply_id)
            if not was_default:
                return preferences.default_saved_reply_id
            logger.info(
                "Default saved reply %s deleted; default is now %s",
                reply_id,
                next_default,
            )
            stored = {**preferences.to_dict(), "defaultSavedReplyId": next_default}
            try:
                await self._backend.update_inbox_preferences(workspace_id, stored)
            except Exception as exc:
                message = str(exc) or exc.__class__.__name__
                logger.warning(
                    "Saved reply %s deleted but the default was not moved: %s",
                    reply_id,
                    message,
                )
                await self._coordinator.refresh()
                raise PartialSavedReplyDeletion(message, reply_id) from exc
            return next_default

        return await self._coordinator.run(
            "delete_saved_reply", write, actor_id=actor_id
        )


# ---------------------------------------------------------------------------
# Automations
# ---------------------------------------------------------------------------


class AutomationRegistry:
    """Automation toggles, always saved as the full struct."""

    def __init__(
        self, backend: InboxBackend, coordinator: MutationRefreshCoordinator
    ) -> None:
        self._backend = backend
        self._coordinator = coordinator

    async def save(
        self, actor_id: Any, flags: dict[str, Any], load_current: CurrentLoader
    ) -> Automations:
        workspace_id = self._coordinator.require_workspace()
        flags = dict(flags or {})
        for key, value in flags.items():
            if key in conventions.AUTOMATION_TOGGLES:
                if not isinstance(value, bool):
                    raise InvalidInput(f"{key} must be true or false.")
            elif key in conventions.AUTOMATION_EXTENSIONS:
                if not isinstance(value, dict):
                    raise InvalidInput(f"{key} must be an object.")
            else:
                raise InvalidInput(f"Unknown automation setting: {key}.")
        require_actor(actor_id)
        payload = {**(await load_current()).automations.to_dict(), **flags}

        async def write(actor: str) -> dict[str, Any]:
            return await self._backend.save_inbox_automations(workspace_id, payload)

        stored = await self._coordinator.run(
            "save_automations", write, actor_id=actor_id
        )
        return Automations.from_dict(stored if isinstance(stored, dict) else payload)


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------

_BOOL_PREFERENCES = (
    "notificationsEmail",
    "notificationsPush",
    "autoResponderEnabled",
)
_PREFERENCE_KEYS = frozenset(Preferences().to_dict())


def _validate_working_hours(raw: Any) -> None:
    if not isinstance(raw, dict):
        raise InvalidInput("workingHours must be an object.")
    availability = raw.get("availability", {})
    if not isinstance(availability, dict):
        raise InvalidInput("workingHours.availability must be an object.")
    for day, entry in availability.items():
        if day not in conventions.DAY_KEYS:
            raise InvalidInput(f"Unknown day in working hours: {day}.")
        if not isinstance(entry, dict):
            raise InvalidInput(f"Working hours for {day} must be an object.")
        for edge in ("start", "end"):
            value = entry.get(edge)
            if value is not None and not _TIME_RE.match(str(value)):
                raise InvalidInput(f"Working hours {day}.{edge} must be HH:MM.")


def validate_preferences(partial: dict[str, Any]) -> None:
    """Reject unknown keys and out-of-range values before any write."""
    for key, value in partial.items():
        if key not in _PREFERENCE_KEYS:
            raise InvalidInput(f"Unknown preference: {key}.")
        if key in _BOOL_PREFERENCES and not isinstance(value, bool):
            raise InvalidInput(f"{key} must be true or false.")
        if key == "timezone" and not (isinstance(value, str) and value.strip()):
            raise InvalidInput("timezone must be a non-empty string.")
        if key == "autoArchiveAfterDays" and value is not None:
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidInput("autoArchiveAfterDays must be zero or greater.")
        if key in ("escalationKeywords", "pinnedThreadIds") and not isinstance(
            value, (list, tuple)
        ):
            raise InvalidInput(f"{key} must be a list.")
        if key == "workingHours":
            _validate_working_hours(value)


class PreferenceRegistry:
    """Preferences, merged onto the current struct and written whole."""

    def __init__(
        self, backend: InboxBackend, coordinator: MutationRefreshCoordinator
    ) -> None:
        self._backend = backend
        self._coordinator = coordinator

    async def update(
        self, actor_id: Any, partial: dict[str, Any], load_current: CurrentLoader
    ) -> Preferences:
        workspace_id = self._coordinator.require_workspace()
        partial = dict(partial or {})
        validate_preferences(partial)
        require_actor(actor_id)
        current = await load_current()
        merged = merge_payload(current.preferences.to_dict(), partial, skip_none=False)
        default_id = merged.get("defaultSavedReplyId")
        if (
            "defaultSavedReplyId" not in partial
            and default_id is not None
            and current.find_saved_reply(str(default_id)) is None
        ):
            logger.info("Dropping dangling default saved reply %s", default_id)
            merged["defaultSavedReplyId"] = None
        payload = Preferences.from_dict(merged).to_dict()

        async def write(actor: str) -> dict[str, Any]:
            return await self._backend.update_inbox_preferences(workspace_id, payload)

        stored = await self._coordinator.run(
            "update_preferences", write, actor_id=actor_id
        )
        return Preferences.from_dict(stored if isinstance(stored, dict) else payload)
