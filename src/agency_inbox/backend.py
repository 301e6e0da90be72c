"""Collaborator service boundary.

The InboxBackend protocol is the REST-like persistence service the
workspace reads from and writes to. Payloads are camelCase JSON dicts.

Implementations:
- MemoryInboxBackend: in-memory store (testing, simulator mode). Records
  every call and recomputes the summary on each read, as the real
  service does.
- HttpInboxBackend: JSON over HTTP via httpx (production).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

import httpx

from . import conventions
from .models import normalize_pinned_thread_ids, normalize_shortcuts

logger = logging.getLogger(__name__)


@runtime_checkable
class InboxBackend(Protocol):
    """Protocol for the inbox collaborator service."""

    async def get_inbox_workspace(self, workspace_id: str) -> dict[str, Any]:
        """Fetch the composed workspace payload."""
        ...

    async def update_inbox_preferences(
        self, workspace_id: str, preferences: dict[str, Any]
    ) -> dict[str, Any]:
        """Write the whole preferences struct. Returns stored preferences."""
        ...

    async def create_saved_reply(
        self, workspace_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]: ...

    async def update_saved_reply(
        self, workspace_id: str, reply_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]: ...

    async def delete_saved_reply(self, workspace_id: str, reply_id: str) -> None: ...

    async def create_routing_rule(
        self, workspace_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]: ...

    async def update_routing_rule(
        self, workspace_id: str, rule_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]: ...

    async def delete_routing_rule(self, workspace_id: str, rule_id: str) -> None: ...

    async def save_inbox_automations(
        self, workspace_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]: ...

    async def create_thread(
        self,
        actor_id: str,
        subject: str,
        channel_type: str,
        participant_ids: list[str],
        workspace_id: str | None = None,
    ) -> dict[str, Any]:
        """Create a thread. Returns the thread (at least its id)."""
        ...

    async def send_message(
        self, thread_id: str, actor_id: str, body: str
    ) -> dict[str, Any]: ...

    async def mark_thread_read(self, thread_id: str, actor_id: str) -> None: ...

    async def update_thread_state(
        self, thread_id: str, actor_id: str, state: str
    ) -> None: ...

    async def escalate_thread(
        self, thread_id: str, actor_id: str, reason: str, priority: str
    ) -> dict[str, Any]:
        """Escalate a thread. Returns the created support case."""
        ...

    async def assign_support(
        self, thread_id: str, actor_id: str, agent_id: str, notify_agent: bool
    ) -> None: ...

    async def pin_thread(
        self, workspace_id: str, actor_id: str, thread_id: str
    ) -> dict[str, Any]:
        """Pin a thread. Returns the stored preferences."""
        ...

    async def unpin_thread(
        self, workspace_id: str, actor_id: str, thread_id: str
    ) -> dict[str, Any]: ...

    async def reorder_pinned_threads(
        self, workspace_id: str, actor_id: str, thread_ids: list[str]
    ) -> dict[str, Any]: ...


def _utc_now() -> str:
    return datetime.now(UTC).isoformat()


class MemoryInboxBackend:
    """In-memory collaborator for tests and simulator mode.

    Records all calls in ``calls`` for assertions. ``fail(method, exc)``
    makes the next call to *method* raise *exc*. Server-side rules mirror
    the real service: summaries are recomputed on every read, pinned
    threads sort first, and the first saved reply becomes the default.
    Deleting a saved reply does not touch preferences.
    """

    def __init__(self, clock: Callable[[], str] = _utc_now) -> None:
        self._clock = clock
        self._workspaces: dict[str, dict[str, Any]] = {}
        self._threads: dict[str, dict[str, Any]] = {}
        self._messages: dict[str, list[dict[str, Any]]] = {}
        self._directory: dict[str, dict[str, Any]] = {}
        self._counter = 0
        self._failures: dict[str, list[BaseException]] = {}
        self.calls: list[dict[str, Any]] = []

    # --- Test helpers ---

    def fail(self, method: str, exc: BaseException) -> None:
        """Make the next call to *method* raise *exc*."""
        self._failures.setdefault(method, []).append(exc)

    def seed_workspace(self, workspace_id: str, **fields: Any) -> dict[str, Any]:
        """Create or update a workspace record (camelCase fields)."""
        workspace = self._workspace(workspace_id)
        for key, value in fields.items():
            workspace[key] = value
        return workspace

    def seed_participant(self, participant_id: str, name: str, email: str = "") -> None:
        self._directory[participant_id] = {
            "id": participant_id,
            "name": name,
            "email": email or None,
        }

    def seed_thread(self, workspace_id: str, **fields: Any) -> dict[str, Any]:
        """Insert a thread record. ``participantIds`` resolve via the directory."""
        self._workspace(workspace_id)
        thread_id = str(fields.pop("id", None) or self._next_id("thread"))
        record: dict[str, Any] = {
            "id": thread_id,
            "workspaceId": workspace_id,
            "subject": "",
            "channelType": "direct",
            "state": "active",
            "unread": False,
            "priority": "standard",
            "participantIds": [],
            "lastMessageAt": None,
            "lastMessagePreview": "",
            "lastMessageBody": "",
            "awaitingReply": False,
            "supportCaseId": None,
            "assignedTo": None,
        }
        record.update(fields)
        self._threads[thread_id] = record
        self._messages.setdefault(thread_id, [])
        return record

    def inject_message(self, thread_id: str, sender_id: str, body: str) -> None:
        """Simulate an inbound message: the thread becomes unread and awaits reply."""
        thread = self._thread(thread_id)
        now = self._clock()
        self._messages[thread_id].append(
            {
                "threadId": thread_id,
                "senderId": sender_id,
                "body": body,
                "createdAt": now,
            }
        )
        thread.update(
            {
                "state": "active",
                "unread": True,
                "awaitingReply": True,
                "lastMessageAt": now,
                "lastMessagePreview": body[:140],
                "lastMessageBody": body,
            }
        )

    def messages(self, thread_id: str) -> list[dict[str, Any]]:
        return list(self._messages.get(thread_id, []))

    def write_calls(self) -> list[dict[str, Any]]:
        """Recorded calls other than workspace reads."""
        return [c for c in self.calls if c["method"] != "get_inbox_workspace"]

    # --- Internals ---

    def _record(self, method: str, **kwargs: Any) -> None:
        self.calls.append({"method": method, **kwargs})
        pending = self._failures.get(method)
        if pending:
            raise pending.pop(0)

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._counter}"

    def _workspace(self, workspace_id: str) -> dict[str, Any]:
        if workspace_id not in self._workspaces:
            self._workspaces[workspace_id] = {
                "preferences": {},
                "automations": {},
                "savedReplies": [],
                "routingRules": [],
                "supportCases": [],
                "assignments": {},
                "sentimentScore": None,
            }
        return self._workspaces[workspace_id]

    def _thread(self, thread_id: str) -> dict[str, Any]:
        thread = self._threads.get(str(thread_id))
        if thread is None:
            raise LookupError(f"Thread {thread_id} not found.")
        return thread

    @staticmethod
    def _find(
        items: list[dict[str, Any]], item_id: str, label: str
    ) -> dict[str, Any]:
        for item in items:
            if item["id"] == str(item_id):
                return item
        raise LookupError(f"{label} not found.")

    def _participant(self, participant_id: str) -> dict[str, Any]:
        return self._directory.get(
            participant_id,
            {"id": participant_id, "name": participant_id, "email": None},
        )

    @staticmethod
    def _set_default_reply(workspace: dict[str, Any], reply_id: str | None) -> None:
        for reply in workspace["savedReplies"]:
            reply["isDefault"] = reply["id"] == reply_id
        workspace["preferences"]["defaultSavedReplyId"] = reply_id

    def _render_thread(
        self, record: dict[str, Any], pinned: set[str]
    ) -> dict[str, Any]:
        workspace = self._workspace(record["workspaceId"])
        support_case = None
        if record.get("supportCaseId"):
            support_case = self._find(
                workspace["supportCases"], record["supportCaseId"], "Support case"
            )
        return {
            "id": record["id"],
            "subject": record["subject"],
            "channelType": record["channelType"],
            "state": record["state"],
            "unread": record["unread"] and record["state"] == "active",
            "priority": record["priority"],
            "participants": [self._participant(p) for p in record["participantIds"]],
            "lastMessageAt": record["lastMessageAt"],
            "lastMessagePreview": record["lastMessagePreview"],
            "lastMessageBody": record["lastMessageBody"],
            "awaitingReply": record["awaitingReply"],
            "pinned": record["id"] in pinned,
            "supportCase": dict(support_case) if support_case else None,
        }

    # --- Reads ---

    async def get_inbox_workspace(self, workspace_id: str) -> dict[str, Any]:
        self._record("get_inbox_workspace", workspace_id=workspace_id)
        workspace = self._workspace(workspace_id)
        preferences = dict(workspace["preferences"])
        pinned_ids = list(preferences.get("pinnedThreadIds") or [])
        pinned = set(pinned_ids)

        threads = [
            self._render_thread(t, pinned)
            for t in self._threads.values()
            if t["workspaceId"] == workspace_id
        ]
        threads.sort(key=lambda t: t["lastMessageAt"] or "", reverse=True)
        threads.sort(
            key=lambda t: pinned_ids.index(t["id"]) if t["pinned"] else len(pinned_ids)
        )

        cases = sorted(
            workspace["supportCases"],
            key=lambda c: c.get("updatedAt") or "",
            reverse=True,
        )
        open_cases = [
            c
            for c in cases
            if c.get("status") not in conventions.SUPPORT_CLOSED_STATUSES
        ]

        directory: dict[str, dict[str, Any]] = {}
        for thread in threads:
            for participant in thread["participants"]:
                directory.setdefault(participant["id"], participant)
        for participant_id, participant in self._directory.items():
            directory.setdefault(participant_id, participant)

        summary = {
            "unreadThreads": sum(1 for t in threads if t["unread"]),
            "awaitingReply": sum(1 for t in threads if t["awaitingReply"]),
            "avgResponseMinutes": None,
            "assignmentsActive": len(workspace["assignments"]),
            "openSupportCases": len(open_cases),
            "escalationsOpen": len(open_cases),
            "sentimentScore": workspace["sentimentScore"],
        }

        return {
            "workspaceId": workspace_id,
            "summary": summary,
            "preferences": preferences,
            "automations": dict(workspace["automations"]),
            "savedReplies": sorted(
                (dict(r) for r in workspace["savedReplies"]),
                key=lambda r: r.get("orderIndex", 0),
            ),
            "routingRules": [dict(r) for r in workspace["routingRules"]],
            "activeThreads": threads,
            "supportCases": [dict(c) for c in cases],
            "participantDirectory": list(directory.values()),
            "lastSyncedAt": self._clock(),
        }

    # --- Workspace configuration writes ---

    async def update_inbox_preferences(
        self, workspace_id: str, preferences: dict[str, Any]
    ) -> dict[str, Any]:
        self._record(
            "update_inbox_preferences",
            workspace_id=workspace_id,
            preferences=preferences,
        )
        workspace = self._workspace(workspace_id)
        default_id = preferences.get("defaultSavedReplyId")
        if default_id is not None:
            self._find(workspace["savedReplies"], default_id, "Saved reply")
        workspace["preferences"] = dict(preferences)
        if default_id is not None:
            self._set_default_reply(workspace, str(default_id))
        return dict(workspace["preferences"])

    async def create_saved_reply(
        self, workspace_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        self._record("create_saved_reply", workspace_id=workspace_id, payload=payload)
        workspace = self._workspace(workspace_id)
        shortcuts = list(normalize_shortcuts(payload.get("shortcuts")))
        shortcut = payload.get("shortcut")
        shortcut = str(shortcut).strip().lower() if shortcut else None
        if shortcut and shortcut not in shortcuts:
            shortcuts.insert(0, shortcut)
        reply = {
            "id": self._next_id("reply"),
            "title": payload["title"],
            "body": payload["body"],
            "shortcut": shortcut or (shortcuts[0] if shortcuts else None),
            "shortcuts": shortcuts,
            "category": payload.get("category")
            or conventions.DEFAULT_SAVED_REPLY_CATEGORY,
            "isDefault": False,
            "orderIndex": payload.get("orderIndex", len(workspace["savedReplies"])),
        }
        workspace["savedReplies"].append(reply)
        has_default = any(r["isDefault"] for r in workspace["savedReplies"])
        if payload.get("isDefault") or not has_default:
            self._set_default_reply(workspace, reply["id"])
        return dict(reply)

    async def update_saved_reply(
        self, workspace_id: str, reply_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        self._record(
            "update_saved_reply",
            workspace_id=workspace_id,
            reply_id=reply_id,
            payload=payload,
        )
        workspace = self._workspace(workspace_id)
        reply = self._find(workspace["savedReplies"], reply_id, "Saved reply")
        for key in ("title", "body", "category", "shortcut", "shortcuts", "orderIndex"):
            if key in payload:
                reply[key] = payload[key]
        if payload.get("isDefault") is True:
            self._set_default_reply(workspace, reply["id"])
        elif payload.get("isDefault") is False and reply["isDefault"]:
            self._set_default_reply(workspace, None)
        return dict(reply)

    async def delete_saved_reply(self, workspace_id: str, reply_id: str) -> None:
        self._record("delete_saved_reply", workspace_id=workspace_id, reply_id=reply_id)
        workspace = self._workspace(workspace_id)
        reply = self._find(workspace["savedReplies"], reply_id, "Saved reply")
        workspace["savedReplies"].remove(reply)

    async def create_routing_rule(
        self, workspace_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        self._record("create_routing_rule", workspace_id=workspace_id, payload=payload)
        rule = {"id": self._next_id("rule"), "enabled": True, **payload}
        self._workspace(workspace_id)["routingRules"].append(rule)
        return dict(rule)

    async def update_routing_rule(
        self, workspace_id: str, rule_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        self._record(
            "update_routing_rule",
            workspace_id=workspace_id,
            rule_id=rule_id,
            payload=payload,
        )
        rules = self._workspace(workspace_id)["routingRules"]
        rule = self._find(rules, rule_id, "Routing rule")
        rule.update(payload)
        rule["id"] = str(rule_id)
        return dict(rule)

    async def delete_routing_rule(self, workspace_id: str, rule_id: str) -> None:
        self._record("delete_routing_rule", workspace_id=workspace_id, rule_id=rule_id)
        rules = self._workspace(workspace_id)["routingRules"]
        rules.remove(self._find(rules, rule_id, "Routing rule"))

    async def save_inbox_automations(
        self, workspace_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        self._record(
            "save_inbox_automations", workspace_id=workspace_id, payload=payload
        )
        workspace = self._workspace(workspace_id)
        workspace["automations"] = dict(payload)
        return dict(payload)

    # --- Thread writes ---

    async def create_thread(
        self,
        actor_id: str,
        subject: str,
        channel_type: str,
        participant_ids: list[str],
        workspace_id: str | None = None,
    ) -> dict[str, Any]:
        self._record(
            "create_thread",
            actor_id=actor_id,
            subject=subject,
            channel_type=channel_type,
            participant_ids=list(participant_ids),
            workspace_id=workspace_id,
        )
        record = self.seed_thread(
            workspace_id or "",
            subject=subject,
            channelType=channel_type,
            participantIds=list(participant_ids),
            lastMessageAt=self._clock(),
        )
        return {"id": record["id"], "subject": subject, "channelType": channel_type}

    async def send_message(
        self, thread_id: str, actor_id: str, body: str
    ) -> dict[str, Any]:
        self._record("send_message", thread_id=thread_id, actor_id=actor_id, body=body)
        thread = self._thread(thread_id)
        now = self._clock()
        message = {
            "threadId": thread_id,
            "senderId": actor_id,
            "body": body,
            "createdAt": now,
        }
        self._messages[thread["id"]].append(message)
        thread.update(
            {
                "unread": False,
                "awaitingReply": False,
                "lastMessageAt": now,
                "lastMessagePreview": body[:140],
                "lastMessageBody": body,
            }
        )
        return dict(message)

    async def mark_thread_read(self, thread_id: str, actor_id: str) -> None:
        self._record("mark_thread_read", thread_id=thread_id, actor_id=actor_id)
        self._thread(thread_id)["unread"] = False

    async def update_thread_state(
        self, thread_id: str, actor_id: str, state: str
    ) -> None:
        self._record(
            "update_thread_state", thread_id=thread_id, actor_id=actor_id, state=state
        )
        if state not in conventions.THREAD_STATES:
            raise ValueError(f"Unsupported thread state: {state}")
        thread = self._thread(thread_id)
        thread["state"] = state
        if state == "archived":
            thread["unread"] = False

    async def escalate_thread(
        self, thread_id: str, actor_id: str, reason: str, priority: str
    ) -> dict[str, Any]:
        self._record(
            "escalate_thread",
            thread_id=thread_id,
            actor_id=actor_id,
            reason=reason,
            priority=priority,
        )
        thread = self._thread(thread_id)
        now = self._clock()
        case = {
            "id": self._next_id("case"),
            "threadId": thread["id"],
            "subject": thread["subject"],
            "priority": priority,
            "status": "open",
            "reason": reason,
            "summary": reason,
            "escalatedBy": actor_id,
            "createdAt": now,
            "updatedAt": now,
        }
        self._workspace(thread["workspaceId"])["supportCases"].append(case)
        thread["supportCaseId"] = case["id"]
        thread["priority"] = "high"
        return dict(case)

    async def assign_support(
        self, thread_id: str, actor_id: str, agent_id: str, notify_agent: bool
    ) -> None:
        self._record(
            "assign_support",
            thread_id=thread_id,
            actor_id=actor_id,
            agent_id=agent_id,
            notify_agent=notify_agent,
        )
        thread = self._thread(thread_id)
        workspace = self._workspace(thread["workspaceId"])
        workspace["assignments"][thread["id"]] = agent_id
        thread["assignedTo"] = agent_id
        if thread.get("supportCaseId"):
            case = self._find(
                workspace["supportCases"], thread["supportCaseId"], "Support case"
            )
            case["assignedTo"] = agent_id
            case["updatedAt"] = self._clock()

    # --- Pins ---

    def _pins(self, workspace_id: str) -> list[str]:
        preferences = self._workspace(workspace_id)["preferences"]
        return list(preferences.get("pinnedThreadIds") or [])

    def _store_pins(self, workspace_id: str, pinned: list[str]) -> dict[str, Any]:
        preferences = self._workspace(workspace_id)["preferences"]
        preferences["pinnedThreadIds"] = list(normalize_pinned_thread_ids(pinned))
        return dict(preferences)

    async def pin_thread(
        self, workspace_id: str, actor_id: str, thread_id: str
    ) -> dict[str, Any]:
        self._record(
            "pin_thread",
            workspace_id=workspace_id,
            actor_id=actor_id,
            thread_id=thread_id,
        )
        thread = self._thread(thread_id)
        if thread["workspaceId"] != workspace_id:
            raise PermissionError("You can only manage threads in your workspace.")
        current = self._pins(workspace_id)
        return self._store_pins(
            workspace_id, [thread["id"], *(t for t in current if t != thread["id"])]
        )

    async def unpin_thread(
        self, workspace_id: str, actor_id: str, thread_id: str
    ) -> dict[str, Any]:
        self._record(
            "unpin_thread",
            workspace_id=workspace_id,
            actor_id=actor_id,
            thread_id=thread_id,
        )
        current = self._pins(workspace_id)
        remaining = [t for t in current if t != str(thread_id)]
        return self._store_pins(workspace_id, remaining)

    async def reorder_pinned_threads(
        self, workspace_id: str, actor_id: str, thread_ids: list[str]
    ) -> dict[str, Any]:
        self._record(
            "reorder_pinned_threads",
            workspace_id=workspace_id,
            actor_id=actor_id,
            thread_ids=list(thread_ids),
        )
        accessible = {
            t["id"] for t in self._threads.values() if t["workspaceId"] == workspace_id
        }
        current = self._pins(workspace_id)
        requested = normalize_pinned_thread_ids(thread_ids)
        ordered = [t for t in requested if t in accessible]
        remainder = [t for t in current if t in accessible and t not in ordered]
        return self._store_pins(workspace_id, ordered + remainder if ordered else [])


def _error_message(response: httpx.Response) -> str:
    """Pull a human-readable message out of an error response."""
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        for key in ("message", "error", "detail"):
            if data.get(key):
                return str(data[key])
    text = response.text.strip()
    return text or f"HTTP {response.status_code}"


class HttpInboxBackend:
    """REST client for the inbox collaborator service.

    Uses httpx.AsyncClient per call. Non-2xx responses raise RuntimeError
    carrying the service's own message so callers can surface it verbatim.
    """

    def __init__(
        self,
        base_url: str,
        api_token: str = "",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = api_token
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _request(
        self, method: str, path: str, json: dict[str, Any] | None = None
    ) -> Any:
        async with httpx.AsyncClient(
            base_url=self._base_url, timeout=self._timeout, transport=self._transport
        ) as client:
            response = await client.request(
                method, path, json=json, headers=self._headers()
            )
        if response.status_code >= 400:
            message = _error_message(response)
            logger.warning("%s %s failed: %s", method, path, message)
            raise RuntimeError(message)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    @staticmethod
    def _inbox(workspace_id: str) -> str:
        return f"/agency/workspaces/{workspace_id}/inbox"

    async def get_inbox_workspace(self, workspace_id: str) -> dict[str, Any]:
        return await self._request("GET", self._inbox(workspace_id)) or {}

    async def update_inbox_preferences(
        self, workspace_id: str, preferences: dict[str, Any]
    ) -> dict[str, Any]:
        path = f"{self._inbox(workspace_id)}/preferences"
        return await self._request("PUT", path, preferences) or {}

    async def create_saved_reply(
        self, workspace_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        path = f"{self._inbox(workspace_id)}/saved-replies"
        return await self._request("POST", path, payload) or {}

    async def update_saved_reply(
        self, workspace_id: str, reply_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        path = f"{self._inbox(workspace_id)}/saved-replies/{reply_id}"
        return await self._request("PATCH", path, payload) or {}

    async def delete_saved_reply(self, workspace_id: str, reply_id: str) -> None:
        path = f"{self._inbox(workspace_id)}/saved-replies/{reply_id}"
        await self._request("DELETE", path)

    async def create_routing_rule(
        self, workspace_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        path = f"{self._inbox(workspace_id)}/routing-rules"
        return await self._request("POST", path, payload) or {}

    async def update_routing_rule(
        self, workspace_id: str, rule_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        path = f"{self._inbox(workspace_id)}/routing-rules/{rule_id}"
        return await self._request("PATCH", path, payload) or {}

    async def delete_routing_rule(self, workspace_id: str, rule_id: str) -> None:
        path = f"{self._inbox(workspace_id)}/routing-rules/{rule_id}"
        await self._request("DELETE", path)

    async def save_inbox_automations(
        self, workspace_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        path = f"{self._inbox(workspace_id)}/automations"
        return await self._request("PUT", path, payload) or {}

    async def create_thread(
        self,
        actor_id: str,
        subject: str,
        channel_type: str,
        participant_ids: list[str],
        workspace_id: str | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "userId": actor_id,
            "subject": subject,
            "channelType": channel_type,
            "participantIds": list(participant_ids),
        }
        if workspace_id:
            payload["workspaceId"] = workspace_id
        return await self._request("POST", "/messaging/threads", payload) or {}

    async def send_message(
        self, thread_id: str, actor_id: str, body: str
    ) -> dict[str, Any]:
        path = f"/messaging/threads/{thread_id}/messages"
        payload = {"userId": actor_id, "body": body}
        return await self._request("POST", path, payload) or {}

    async def mark_thread_read(self, thread_id: str, actor_id: str) -> None:
        await self._request(
            "POST", f"/messaging/threads/{thread_id}/read", {"userId": actor_id}
        )

    async def update_thread_state(
        self, thread_id: str, actor_id: str, state: str
    ) -> None:
        await self._request(
            "POST",
            f"/messaging/threads/{thread_id}/state",
            {"userId": actor_id, "state": state},
        )

    async def escalate_thread(
        self, thread_id: str, actor_id: str, reason: str, priority: str
    ) -> dict[str, Any]:
        path = f"/messaging/threads/{thread_id}/escalate"
        payload = {"userId": actor_id, "reason": reason, "priority": priority}
        return await self._request("POST", path, payload) or {}

    async def assign_support(
        self, thread_id: str, actor_id: str, agent_id: str, notify_agent: bool
    ) -> None:
        await self._request(
            "POST",
            f"/messaging/threads/{thread_id}/assign",
            {"userId": actor_id, "agentId": agent_id, "notifyAgent": notify_agent},
        )

    async def pin_thread(
        self, workspace_id: str, actor_id: str, thread_id: str
    ) -> dict[str, Any]:
        path = f"{self._inbox(workspace_id)}/pins/{thread_id}"
        return await self._request("POST", path, {"userId": actor_id}) or {}

    async def unpin_thread(
        self, workspace_id: str, actor_id: str, thread_id: str
    ) -> dict[str, Any]:
        path = f"{self._inbox(workspace_id)}/pins/{thread_id}"
        return await self._request("DELETE", path, {"userId": actor_id}) or {}

    async def reorder_pinned_threads(
        self, workspace_id: str, actor_id: str, thread_ids: list[str]
    ) -> dict[str, Any]:
        path = f"{self._inbox(workspace_id)}/pins"
        payload = {"userId": actor_id, "threadIds": list(thread_ids)}
        return await self._request("PUT", path, payload) or {}
