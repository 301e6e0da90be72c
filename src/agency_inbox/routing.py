"""Routing rule engine.

A rule matches a thread when it is enabled, its channel list is empty or
names the thread's channel, and its condition value occurs (ignoring
case) in the thread's searchable text: subject, last message and
participant names. ``route`` returns the first match in stored order.
A rule's priority is operator metadata and never breaks ties.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from . import conventions
from .backend import InboxBackend
from .coordinator import MutationRefreshCoordinator
from .errors import InvalidInput
from .models import RoutingCondition, RoutingRule, Thread

logger = logging.getLogger(__name__)


def searchable_fields(thread: Thread) -> list[str]:
    """Lowercased fields a condition is matched against, one at a time."""
    parts = [
        thread.subject,
        thread.last_message_body or thread.last_message_preview,
        *(p.name for p in thread.participants),
    ]
    return [part.lower() for part in parts if part]


def _condition_matches(condition: RoutingCondition, fields: list[str]) -> bool:
    if condition.kind == "contains":
        value = condition.value.strip().lower()
        return not value or any(value in field for field in fields)
    logger.debug("Unknown routing condition kind %r never matches", condition.kind)
    return False


def evaluate(rule: RoutingRule, thread: Thread) -> bool:
    if not rule.enabled:
        return False
    if rule.channels and thread.channel_type not in rule.channels:
        return False
    return _condition_matches(rule.condition, searchable_fields(thread))


def route(thread: Thread, rules: Iterable[RoutingRule]) -> RoutingRule | None:
    """First rule in stored order that matches *thread*, or None."""
    for rule in rules:
        if evaluate(rule, thread):
            return rule
    return None


def _choice(value: Any, allowed: tuple[str, ...], label: str) -> str:
    candidate = str(value).strip().lower() if value is not None else ""
    if candidate not in allowed:
        raise InvalidInput(f"{label} must be one of: {', '.join(allowed)}.")
    return candidate


def normalize_rule_payload(
    payload: dict[str, Any], *, partial: bool = False
) -> dict[str, Any]:
    """Validate a rule payload and return it in collaborator shape.

    With ``partial=True`` only the supplied fields are validated and
    returned (for updates).
    """
    result: dict[str, Any] = {}

    if not partial or "name" in payload:
        name = str(payload.get("name") or "").strip()
        if not name:
            raise InvalidInput("A rule name is required.")
        result["name"] = name

    if not partial or "condition" in payload:
        condition = RoutingCondition.from_value(payload.get("condition"))
        if condition.kind not in conventions.CONDITION_KINDS:
            raise InvalidInput(f"Unsupported condition kind: {condition.kind}.")
        value = condition.value.strip()
        if not value:
            raise InvalidInput("A rule condition is required.")
        result["condition"] = {"kind": condition.kind, "value": value}

    if not partial or "channels" in payload:
        raw = payload.get("channels") or []
        if isinstance(raw, str):
            raw = raw.split(",")
        channels: list[str] = []
        for channel in raw:
            value = str(channel).strip().lower()
            if not value or value == "all":
                continue
            if value not in conventions.CHANNEL_TYPES:
                raise InvalidInput(f"Unknown channel: {value}.")
            if value not in channels:
                channels.append(value)
        result["channels"] = channels

    if not partial or "target" in payload:
        result["target"] = _choice(
            payload.get("target", "operations"), conventions.ROUTING_TARGETS, "Target"
        )

    if not partial or "priority" in payload:
        result["priority"] = _choice(
            payload.get("priority", "medium"), conventions.RULE_PRIORITIES, "Priority"
        )

    if "enabled" in payload:
        result["enabled"] = bool(payload["enabled"])

    return result


class RoutingRuleEngine:
    """Rule CRUD for one workspace. Each write forces a refresh."""

    def __init__(
        self, backend: InboxBackend, coordinator: MutationRefreshCoordinator
    ) -> None:
        self._backend = backend
        self._coordinator = coordinator

    async def create_rule(
        self, actor_id: Any, payload: dict[str, Any]
    ) -> RoutingRule | None:
        workspace_id = self._coordinator.require_workspace()
        body = normalize_rule_payload(payload)

        async def write(actor: str) -> dict[str, Any]:
            return await self._backend.create_routing_rule(workspace_id, body)

        created = await self._coordinator.run("create_rule", write, actor_id=actor_id)
        return RoutingRule.from_dict(created) if isinstance(created, dict) else None

    async def update_rule(
        self, actor_id: Any, rule_id: str, payload: dict[str, Any]
    ) -> RoutingRule | None:
        workspace_id = self._coordinator.require_workspace()
        if not rule_id:
            raise InvalidInput("A routing rule is required.")
        body = normalize_rule_payload(payload, partial=True)

        async def write(actor: str) -> dict[str, Any]:
            return await self._backend.update_routing_rule(workspace_id, rule_id, body)

        updated = await self._coordinator.run("update_rule", write, actor_id=actor_id)
        return RoutingRule.from_dict(updated) if isinstance(updated, dict) else None

    async def delete_rule(self, actor_id: Any, rule_id: str) -> None:
        workspace_id = self._coordinator.require_workspace()
        if not rule_id:
            raise InvalidInput("A routing rule is required.")

        async def write(actor: str) -> None:
            await self._backend.delete_routing_rule(workspace_id, rule_id)

        await self._coordinator.run("delete_rule", write, actor_id=actor_id)
