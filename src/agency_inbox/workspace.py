"""Inbox workspace aggregate: default shape, merge-on-read and fetch.

A workspace payload from the collaborator may be partial. It is merged
onto the default shape so every field downstream is defined, and the
merge is deterministic: identical payloads give equal aggregates.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from . import conventions
from .backend import InboxBackend
from .cache import await_cancellable
from .errors import FetchCancelled, FetchFailed
from .models import WorkspaceInbox

logger = logging.getLogger(__name__)

EMPTY_WORKSPACE = WorkspaceInbox()


def workspace_cache_key(workspace_id: str) -> str:
    """Cache key for one workspace: ``agency:inbox-workspace:<id>``."""
    return f"{conventions.WORKSPACE_CACHE_NAMESPACE}:{workspace_id}"


def default_workspace(workspace_id: str | None = None) -> WorkspaceInbox:
    """Empty aggregate, stamped with *workspace_id* when given."""
    if not workspace_id:
        return EMPTY_WORKSPACE
    return WorkspaceInbox(workspace_id=str(workspace_id))


def merge_payload(
    base: dict[str, Any], override: dict[str, Any], *, skip_none: bool = True
) -> dict[str, Any]:
    """Deep-merge *override* onto *base*. Nested mappings merge key by key."""
    merged = dict(base)
    for key, value in override.items():
        if value is None and skip_none:
            continue
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_payload(merged[key], value, skip_none=skip_none)
        else:
            merged[key] = value
    return merged


def normalize_workspace(workspace_id: str | None, payload: Any) -> WorkspaceInbox:
    """Merge a collaborator payload onto the default shape.

    Response fields override defaults, missing or null fields keep them.
    A payload that is not a mapping yields the default aggregate.
    """
    base = default_workspace(workspace_id).to_dict()
    if not isinstance(payload, dict):
        return default_workspace(workspace_id)
    merged = merge_payload(base, payload)
    return WorkspaceInbox.from_dict(workspace_id or None, merged)


async def load_workspace(
    backend: InboxBackend,
    workspace_id: str,
    signal: asyncio.Event | None = None,
) -> WorkspaceInbox:
    """Fetch and normalize one workspace, raising on failure.

    Raises:
        FetchCancelled: *signal* was set before the response arrived.
        FetchFailed: the collaborator read failed.
    """
    try:
        payload = await await_cancellable(
            backend.get_inbox_workspace(workspace_id), signal
        )
    except (FetchCancelled, asyncio.CancelledError):
        raise
    except Exception as exc:
        raise FetchFailed(str(exc) or exc.__class__.__name__) from exc
    return normalize_workspace(workspace_id, payload)


async def fetch_workspace(
    backend: InboxBackend,
    workspace_id: str | None,
    signal: asyncio.Event | None = None,
) -> WorkspaceInbox:
    """Fetch one workspace, never raising except on cancellation.

    No workspace id means the empty aggregate. A failed read is logged
    and answered with the default aggregate for *workspace_id*.
    """
    if not workspace_id:
        return EMPTY_WORKSPACE
    try:
        return await load_workspace(backend, workspace_id, signal)
    except FetchFailed:
        logger.warning(
            "Unable to load inbox workspace %s", workspace_id, exc_info=True
        )
        return default_workspace(workspace_id)
