"""Data models for the inbox workspace read model.

The collaborator speaks camelCase JSON. Each model parses leniently with
``from_dict`` (unknown or malformed values fall back to defaults) and
serializes back with ``to_dict``. Models are frozen; collections are
tuples so a fetched aggregate can be shared between readers safely.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from . import conventions

_TIME_RE = re.compile(r"^\d{2}:\d{2}$")


def _opt_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _opt_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _int(value: Any, default: int = 0) -> int:
    parsed = _opt_int(value)
    return default if parsed is None else parsed


def _opt_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _choice(value: Any, allowed: tuple[str, ...], default: str) -> str:
    if isinstance(value, str) and value.strip().lower() in allowed:
        return value.strip().lower()
    return default


def _mapping(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, dict) else {}


# ---------------------------------------------------------------------------
# Normalizers shared by parsing and by the write paths
# ---------------------------------------------------------------------------


def normalize_shortcuts(values: Any) -> tuple[str, ...]:
    """Trim, lower-case and de-duplicate shortcuts, keeping the first 12."""
    if not isinstance(values, (list, tuple)):
        return ()
    result: list[str] = []
    for value in values:
        if not isinstance(value, str):
            continue
        trimmed = value.strip().lower()
        if trimmed and trimmed not in result:
            result.append(trimmed)
    return tuple(result[: conventions.SHORTCUT_LIMIT])


def normalize_pinned_thread_ids(values: Any) -> tuple[str, ...]:
    """Unique, non-empty thread ids in order, capped at the pin limit."""
    if not isinstance(values, (list, tuple)):
        return ()
    result: list[str] = []
    for value in values:
        if value is None or isinstance(value, bool):
            continue
        thread_id = str(value).strip()
        if thread_id and thread_id not in result:
            result.append(thread_id)
    return tuple(result[: conventions.PINNED_THREAD_LIMIT])


def normalize_keywords(values: Any) -> tuple[str, ...]:
    if not isinstance(values, (list, tuple, set, frozenset)):
        return ()
    result: list[str] = []
    for value in values:
        if isinstance(value, str) and value.strip() and value.strip() not in result:
            result.append(value.strip())
    return tuple(result)


# ---------------------------------------------------------------------------
# Directory & threads
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Participant:
    """An immutable directory entry. Threads reference it, never own it."""

    id: str
    name: str = ""
    email: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Participant | None:
        raw_id = data.get("id") or data.get("participantId") or data.get("userId")
        if raw_id is None or raw_id == "":
            return None
        email = _opt_str(data.get("email"))
        name = _opt_str(data.get("name")) or email or ""
        return cls(id=str(raw_id), name=name, email=email)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "email": self.email}


@dataclass(frozen=True)
class SupportCase:
    """A support case opened as the effect of an escalation."""

    id: str
    thread_id: str | None = None
    subject: str = ""
    priority: str = conventions.DEFAULT_ESCALATION_PRIORITY
    status: str = "open"
    summary: str = ""
    reason: str | None = None
    assigned_to: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_open(self) -> bool:
        closed = conventions.SUPPORT_CLOSED_STATUSES
        return bool(self.status) and self.status not in closed

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SupportCase | None:
        if data.get("id") is None:
            return None
        thread = _mapping(data.get("thread"))
        return cls(
            id=str(data["id"]),
            thread_id=_opt_str(data.get("threadId") or thread.get("id")),
            subject=str(
                data.get("subject") or data.get("title") or thread.get("subject") or ""
            ),
            priority=_choice(
                data.get("priority"),
                conventions.SUPPORT_PRIORITIES,
                conventions.DEFAULT_ESCALATION_PRIORITY,
            ),
            status=str(data.get("status") or "open"),
            summary=str(data.get("summary") or data.get("resolutionSummary") or ""),
            reason=_opt_str(data.get("reason")),
            assigned_to=_opt_str(data.get("assignedTo")),
            created_at=_opt_str(data.get("createdAt")),
            updated_at=_opt_str(data.get("updatedAt")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "threadId": self.thread_id,
            "subject": self.subject,
            "priority": self.priority,
            "status": self.status,
            "summary": self.summary,
            "reason": self.reason,
            "assignedTo": self.assigned_to,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True)
class Thread:
    """A conversation thread as seen by the workspace.

    Invariant: ``unread`` implies ``state == "active"``. Escalation is not
    a thread field; it shows up as ``priority="high"`` plus an open
    ``support_case``.
    """

    id: str
    subject: str = ""
    channel_type: str = "direct"
    state: str = "active"
    unread: bool = False
    priority: str = "standard"
    participants: tuple[Participant, ...] = ()
    last_message_at: str | None = None
    last_message_preview: str = ""
    last_message_body: str = ""
    awaiting_reply: bool = False
    pinned: bool = False
    support_case: SupportCase | None = None

    @property
    def is_escalated(self) -> bool:
        return (
            self.priority == "high"
            and self.support_case is not None
            and self.support_case.is_open
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Thread | None:
        if data.get("id") is None:
            return None
        state = _choice(data.get("state"), conventions.THREAD_STATES, "active")
        channel = data.get("channelType")
        last_message = _mapping(data.get("lastMessage"))
        participants = tuple(
            p
            for p in (
                Participant.from_dict(entry)
                for entry in data.get("participants") or ()
                if isinstance(entry, dict)
            )
            if p is not None
        )
        support_case = None
        if isinstance(data.get("supportCase"), dict):
            support_case = SupportCase.from_dict(data["supportCase"])
        return cls(
            id=str(data["id"]),
            subject=str(data.get("subject") or ""),
            channel_type=channel.strip().lower()
            if isinstance(channel, str) and channel.strip()
            else "direct",
            state=state,
            unread=bool(data.get("unread", False)) and state == "active",
            priority=_choice(
                data.get("priority"), conventions.THREAD_PRIORITIES, "standard"
            ),
            participants=participants,
            last_message_at=_opt_str(data.get("lastMessageAt")),
            last_message_preview=str(data.get("lastMessagePreview") or ""),
            last_message_body=str(
                data.get("lastMessageBody") or last_message.get("body") or ""
            ),
            awaiting_reply=bool(data.get("awaitingReply", False)),
            pinned=bool(data.get("pinned", False)),
            support_case=support_case,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "subject": self.subject,
            "channelType": self.channel_type,
            "state": self.state,
            "unread": self.unread,
            "priority": self.priority,
            "participants": [p.to_dict() for p in self.participants],
            "lastMessageAt": self.last_message_at,
            "lastMessagePreview": self.last_message_preview,
            "lastMessageBody": self.last_message_body,
            "awaitingReply": self.awaiting_reply,
            "pinned": self.pinned,
            "supportCase": self.support_case.to_dict() if self.support_case else None,
        }


# ---------------------------------------------------------------------------
# Saved replies & routing rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SavedReply:
    """A reusable canned response."""

    id: str
    title: str
    body: str
    shortcut: str | None = None
    shortcuts: tuple[str, ...] = ()
    category: str = conventions.DEFAULT_SAVED_REPLY_CATEGORY
    is_default: bool = False
    order_index: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SavedReply | None:
        if data.get("id") is None:
            return None
        shortcut = _opt_str(data.get("shortcut"))
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            body=str(data.get("body") or ""),
            shortcut=shortcut.strip().lower() if shortcut else None,
            shortcuts=normalize_shortcuts(data.get("shortcuts")),
            category=_choice(
                data.get("category"),
                conventions.SAVED_REPLY_CATEGORIES,
                conventions.DEFAULT_SAVED_REPLY_CATEGORY,
            ),
            is_default=bool(data.get("isDefault", False)),
            order_index=_int(data.get("orderIndex")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "body": self.body,
            "shortcut": self.shortcut,
            "shortcuts": list(self.shortcuts),
            "category": self.category,
            "isDefault": self.is_default,
            "orderIndex": self.order_index,
        }


@dataclass(frozen=True)
class RoutingCondition:
    """Tagged predicate. Only ``contains`` (case-insensitive substring) exists."""

    kind: str = "contains"
    value: str = ""

    @classmethod
    def from_value(cls, raw: Any) -> RoutingCondition:
        if isinstance(raw, RoutingCondition):
            return raw
        if isinstance(raw, dict):
            kind = raw.get("kind") or "contains"
            value = str(raw.get("value") or "")
            return cls(kind=str(kind).strip().lower(), value=value)
        if raw is None:
            return cls()
        return cls(value=str(raw))

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "value": self.value}


@dataclass(frozen=True)
class RoutingRule:
    """Maps a condition on thread text to an owning queue."""

    id: str
    name: str
    channels: tuple[str, ...] = ()  # empty = all channels
    condition: RoutingCondition = field(default_factory=RoutingCondition)
    target: str = "operations"
    priority: str = "medium"  # operator metadata; never a tie-break
    enabled: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RoutingRule | None:
        if data.get("id") is None:
            return None
        channels: list[str] = []
        for channel in data.get("channels") or ():
            if isinstance(channel, str) and channel.strip():
                value = channel.strip().lower()
                if value not in channels:
                    channels.append(value)
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            channels=tuple(channels),
            condition=RoutingCondition.from_value(
                data.get("condition", data.get("criteria"))
            ),
            target=_choice(
                data.get("target"), conventions.ROUTING_TARGETS, "operations"
            ),
            priority=_choice(
                data.get("priority"), conventions.RULE_PRIORITIES, "medium"
            ),
            enabled=bool(data.get("enabled", True)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "channels": list(self.channels),
            "condition": self.condition.to_dict(),
            "target": self.target,
            "priority": self.priority,
            "enabled": self.enabled,
        }


# ---------------------------------------------------------------------------
# Preferences & automations
# ---------------------------------------------------------------------------

_DEFAULT_DAY_HOURS: dict[str, tuple[bool, str, str]] = {
    "monday": (True, "09:00", "17:00"),
    "tuesday": (True, "09:00", "17:00"),
    "wednesday": (True, "09:00", "17:00"),
    "thursday": (True, "09:00", "17:00"),
    "friday": (True, "09:00", "16:00"),
    "saturday": (False, "10:00", "14:00"),
    "sunday": (False, "10:00", "14:00"),
}


def _valid_time(value: Any, fallback: str) -> str:
    candidate = value.strip() if isinstance(value, str) else ""
    if _TIME_RE.match(candidate):
        return candidate
    if _TIME_RE.match(fallback):
        return fallback
    return "09:00"


@dataclass(frozen=True)
class DayHours:
    day: str
    active: bool
    start: str
    end: str


@dataclass(frozen=True)
class WorkingHours:
    """Weekly availability used by the auto-responder."""

    timezone: str = conventions.DEFAULT_TIMEZONE
    days: tuple[DayHours, ...] = tuple(
        DayHours(day, *_DEFAULT_DAY_HOURS[day]) for day in conventions.DAY_KEYS
    )

    @classmethod
    def from_value(cls, raw: Any) -> WorkingHours:
        """Parse availability keyed by full or three-letter day names."""
        if not isinstance(raw, dict):
            return cls()
        tz = raw.get("timezone")
        timezone = conventions.DEFAULT_TIMEZONE
        if isinstance(tz, str) and tz.strip():
            timezone = tz.strip()
        availability = _mapping(raw.get("availability"))
        days = []
        for day in conventions.DAY_KEYS:
            entry = availability.get(day) or raw.get(day) or raw.get(day[:3])
            entry = entry if isinstance(entry, dict) else {}
            active, start, end = _DEFAULT_DAY_HOURS[day]
            active = bool(entry.get("active", entry.get("enabled", active)))
            days.append(
                DayHours(
                    day=day,
                    active=active,
                    start=_valid_time(entry.get("start"), start),
                    end=_valid_time(entry.get("end"), end),
                )
            )
        return cls(timezone=timezone, days=tuple(days))

    def to_dict(self) -> dict[str, Any]:
        return {
            "timezone": self.timezone,
            "availability": {
                d.day: {"active": d.active, "start": d.start, "end": d.end}
                for d in self.days
            },
        }


@dataclass(frozen=True)
class Preferences:
    timezone: str = conventions.DEFAULT_TIMEZONE
    working_hours: WorkingHours = field(default_factory=WorkingHours)
    notifications_email: bool = True
    notifications_push: bool = True
    auto_archive_after_days: int | None = None
    auto_responder_enabled: bool = False
    auto_responder_message: str | None = None
    escalation_keywords: tuple[str, ...] = ()
    default_saved_reply_id: str | None = None
    pinned_thread_ids: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Preferences:
        working_hours = WorkingHours.from_value(data.get("workingHours"))
        tz = data.get("timezone")
        return cls(
            timezone=tz.strip()
            if isinstance(tz, str) and tz.strip()
            else working_hours.timezone,
            working_hours=working_hours,
            notifications_email=bool(data.get("notificationsEmail", True)),
            notifications_push=bool(data.get("notificationsPush", True)),
            auto_archive_after_days=_opt_int(data.get("autoArchiveAfterDays")),
            auto_responder_enabled=bool(data.get("autoResponderEnabled", False)),
            auto_responder_message=_opt_str(data.get("autoResponderMessage")),
            escalation_keywords=normalize_keywords(data.get("escalationKeywords")),
            default_saved_reply_id=_opt_str(data.get("defaultSavedReplyId")),
            pinned_thread_ids=normalize_pinned_thread_ids(data.get("pinnedThreadIds")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timezone": self.timezone,
            "workingHours": self.working_hours.to_dict(),
            "notificationsEmail": self.notifications_email,
            "notificationsPush": self.notifications_push,
            "autoArchiveAfterDays": self.auto_archive_after_days,
            "autoResponderEnabled": self.auto_responder_enabled,
            "autoResponderMessage": self.auto_responder_message,
            "escalationKeywords": list(self.escalation_keywords),
            "defaultSavedReplyId": self.default_saved_reply_id,
            "pinnedThreadIds": list(self.pinned_thread_ids),
        }


@dataclass(frozen=True)
class Automations:
    """Boolean policy toggles plus free-form extension areas."""

    auto_escalate_urgent: bool = False
    share_daily_digest: bool = False
    notify_talent: bool = False
    escalation_matrix: dict[str, Any] = field(default_factory=dict)
    routing: dict[str, Any] = field(default_factory=dict)
    talent_alerts: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Automations:
        return cls(
            auto_escalate_urgent=bool(data.get("autoEscalateUrgent", False)),
            share_daily_digest=bool(data.get("shareDailyDigest", False)),
            notify_talent=bool(data.get("notifyTalent", False)),
            escalation_matrix=_mapping(data.get("escalationMatrix")),
            routing=_mapping(data.get("routing")),
            talent_alerts=_mapping(data.get("talentAlerts")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "autoEscalateUrgent": self.auto_escalate_urgent,
            "shareDailyDigest": self.share_daily_digest,
            "notifyTalent": self.notify_talent,
            "escalationMatrix": dict(self.escalation_matrix),
            "routing": dict(self.routing),
            "talentAlerts": dict(self.talent_alerts),
        }


@dataclass(frozen=True)
class Summary:
    """Server-computed counters. Reported, never authoritative."""

    unread_threads: int = 0
    awaiting_reply: int = 0
    avg_response_minutes: int | None = None
    assignments_active: int = 0
    open_support_cases: int = 0
    escalations_open: int = 0
    sentiment_score: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Summary:
        return cls(
            unread_threads=_int(data.get("unreadThreads")),
            awaiting_reply=_int(data.get("awaitingReply")),
            avg_response_minutes=_opt_int(data.get("avgResponseMinutes")),
            assignments_active=_int(data.get("assignmentsActive")),
            open_support_cases=_int(data.get("openSupportCases")),
            escalations_open=_int(data.get("escalationsOpen")),
            sentiment_score=_opt_float(data.get("sentimentScore")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "unreadThreads": self.unread_threads,
            "awaitingReply": self.awaiting_reply,
            "avgResponseMinutes": self.avg_response_minutes,
            "assignmentsActive": self.assignments_active,
            "openSupportCases": self.open_support_cases,
            "escalationsOpen": self.escalations_open,
            "sentimentScore": self.sentiment_score,
        }


# ---------------------------------------------------------------------------
# Aggregate root
# ---------------------------------------------------------------------------


def _parse_all(cls: Any, values: Any) -> tuple[Any, ...]:
    if not isinstance(values, (list, tuple)):
        return ()
    parsed = (cls.from_dict(v) for v in values if isinstance(v, dict))
    return tuple(item for item in parsed if item is not None)


@dataclass(frozen=True)
class WorkspaceInbox:
    """The composed read model for one workspace."""

    workspace_id: str | None = None
    summary: Summary = field(default_factory=Summary)
    preferences: Preferences = field(default_factory=Preferences)
    automations: Automations = field(default_factory=Automations)
    saved_replies: tuple[SavedReply, ...] = ()
    routing_rules: tuple[RoutingRule, ...] = ()
    active_threads: tuple[Thread, ...] = ()
    support_cases: tuple[SupportCase, ...] = ()
    participant_directory: tuple[Participant, ...] = ()
    last_synced_at: str | None = None

    def find_thread(self, thread_id: str) -> Thread | None:
        for thread in self.active_threads:
            if thread.id == str(thread_id):
                return thread
        return None

    def find_saved_reply(self, reply_id: str) -> SavedReply | None:
        for reply in self.saved_replies:
            if reply.id == str(reply_id):
                return reply
        return None

    @classmethod
    def from_dict(
        cls, workspace_id: str | None, data: dict[str, Any]
    ) -> WorkspaceInbox:
        return cls(
            workspace_id=workspace_id,
            summary=Summary.from_dict(_mapping(data.get("summary"))),
            preferences=Preferences.from_dict(_mapping(data.get("preferences"))),
            automations=Automations.from_dict(_mapping(data.get("automations"))),
            saved_replies=_parse_all(SavedReply, data.get("savedReplies")),
            routing_rules=_parse_all(RoutingRule, data.get("routingRules")),
            active_threads=_parse_all(Thread, data.get("activeThreads")),
            support_cases=_parse_all(SupportCase, data.get("supportCases")),
            participant_directory=_parse_all(
                Participant, data.get("participantDirectory")
            ),
            last_synced_at=_opt_str(data.get("lastSyncedAt")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "workspaceId": self.workspace_id,
            "summary": self.summary.to_dict(),
            "preferences": self.preferences.to_dict(),
            "automations": self.automations.to_dict(),
            "savedReplies": [r.to_dict() for r in self.saved_replies],
            "routingRules": [r.to_dict() for r in self.routing_rules],
            "activeThreads": [t.to_dict() for t in self.active_threads],
            "supportCases": [c.to_dict() for c in self.support_cases],
            "participantDirectory": [p.to_dict() for p in self.participant_directory],
            "lastSyncedAt": self.last_synced_at,
        }
