"""Agency Inbox Server - HTTP surface

Architecture:
    /api/health                                   - Health check
    /api/workspaces/{workspace_id}                - Read model (?force=, ?selected=)
    /api/workspaces/{workspace_id}/refresh        - Forced refresh
    /api/workspaces/{workspace_id}/threads/...    - Thread lifecycle actions
    /api/workspaces/{workspace_id}/pins           - Pinned thread order
    /api/workspaces/{workspace_id}/preferences    - Preferences (partial merge)
    /api/workspaces/{workspace_id}/automations    - Automation toggles
    /api/workspaces/{workspace_id}/saved-replies  - Saved reply CRUD
    /api/workspaces/{workspace_id}/routing-rules  - Routing rule CRUD

The acting identity comes from the X-Actor-Id header; this server never
authenticates actors. Mutation routes are guarded by an optional bearer
API key (``server.api_key``). Preference, automation, saved reply and
routing rule bodies use the collaborator's camelCase shape.

Shared services come from ``agency_inbox.services.get_services``.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from agency_inbox import __version__, conventions
from agency_inbox.errors import (
    FetchCancelled,
    FetchFailed,
    InboxError,
    InvalidInput,
    PartialSavedReplyDeletion,
    PartialThreadCreation,
    UnresolvedActor,
    WriteFailed,
)
from agency_inbox.inbox import InboxWorkspace
from agency_inbox.services import get_services
from agency_inbox.threads import next_selection

logger = logging.getLogger(__name__)

# Optional bearer token scheme (auto_error=False so a missing header
# doesn't raise before our logic runs).
_bearer_scheme = HTTPBearer(auto_error=False)
_bearer_dependency = Depends(_bearer_scheme)
_actor_header = Header(default=None, alias=conventions.ACTOR_HEADER)


async def verify_api_key(
    credentials: HTTPAuthorizationCredentials | None = _bearer_dependency,
) -> None:
    """FastAPI dependency that enforces bearer-token auth on mutation routes.

    - If no ``server.api_key`` is configured the request passes through.
    - If a key IS configured the caller must supply an
      ``Authorization: Bearer <key>`` header that matches.
    """
    api_key = get_services().config.server.api_key
    if not api_key:
        return

    if credentials is None or credentials.credentials != api_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


# --- Pydantic Models ---


class CreateThreadRequest(BaseModel):
    subject: str
    channel_type: str = "direct"
    participant_ids: list[str] | str = Field(default_factory=list)
    initial_message: str | None = None


class MessageRequest(BaseModel):
    body: str


class StateRequest(BaseModel):
    state: str


class EscalateRequest(BaseModel):
    reason: str = ""
    priority: str = conventions.DEFAULT_ESCALATION_PRIORITY


class AssignRequest(BaseModel):
    assignee_id: str | None = None
    notify_agent: bool = True


class PinOrderRequest(BaseModel):
    thread_ids: list[str]


# --- Error mapping ---

_ERROR_STATUS: tuple[tuple[type[InboxError], int], ...] = (
    (UnresolvedActor, 401),
    (InvalidInput, 422),
    (FetchCancelled, 499),
    (WriteFailed, 502),
    (FetchFailed, 502),
)


async def _inbox_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status = next(
        (code for kind, code in _ERROR_STATUS if isinstance(exc, kind)), 500
    )
    body: dict[str, Any] = {"error": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, PartialThreadCreation):
        body["thread"] = exc.thread.to_dict()
    if isinstance(exc, PartialSavedReplyDeletion):
        body["savedReplyId"] = exc.reply_id
    logger.info("%s %s -> %d %s", request.method, request.url.path, status, body)
    return JSONResponse(status_code=status, content=body)


# --- Helpers ---


async def _inbox(workspace_id: str) -> InboxWorkspace:
    """The workspace facade with its read model loaded through the cache."""
    inbox = get_services().workspace(workspace_id)
    await inbox.read()
    return inbox


def _view(
    inbox: InboxWorkspace, selected: str | None = None, **extra: Any
) -> dict[str, Any]:
    """Response body: the aggregate plus the caller's own thread selection."""
    snapshot = inbox.snapshot()
    workspace = inbox.workspace
    return {
        "workspace": workspace.to_dict(),
        "error": snapshot.error,
        "lastUpdated": snapshot.last_updated,
        "selectedThreadId": next_selection(workspace.active_threads, selected),
        **extra,
    }


# --- Routes ---

core_router = APIRouter(prefix="/api", tags=["core"])
read_router = APIRouter(prefix="/api/workspaces/{workspace_id}", tags=["inbox"])
write_router = APIRouter(
    prefix="/api/workspaces/{workspace_id}",
    tags=["inbox"],
    dependencies=[Depends(verify_api_key)],
)


@core_router.get("/health")
async def health() -> dict[str, Any]:
    """Health check endpoint."""
    services = get_services()
    return {
        "status": "ok",
        "version": __version__,
        "simulator": services.simulator_mode,
    }


@read_router.get("")
async def read_workspace(
    workspace_id: str, force: bool = False, selected: str | None = None
) -> dict[str, Any]:
    inbox = get_services().workspace(workspace_id)
    snapshot = await inbox.load(force=force)
    return _view(inbox, selected, fromCache=snapshot.from_cache)


@read_router.post("/threads/{thread_id}/route")
async def route_thread(workspace_id: str, thread_id: str) -> dict[str, Any]:
    """Which routing rule (if any) claims the thread."""
    inbox = await _inbox(workspace_id)
    rule = inbox.route(thread_id)
    return {"threadId": thread_id, "rule": rule.to_dict() if rule else None}


@write_router.post("/refresh")
async def refresh_workspace(workspace_id: str) -> dict[str, Any]:
    inbox = get_services().workspace(workspace_id)
    await inbox.refresh()
    return _view(inbox)


# --- Threads ---


@write_router.post("/threads", status_code=201)
async def create_thread(
    workspace_id: str,
    request: CreateThreadRequest,
    actor_id: str | None = _actor_header,
) -> dict[str, Any]:
    inbox = await _inbox(workspace_id)
    thread = await inbox.create_thread(
        actor_id,
        request.subject,
        request.channel_type,
        request.participant_ids,
        request.initial_message,
    )
    return _view(inbox, thread.id, thread=thread.to_dict())


@write_router.post("/threads/{thread_id}/messages")
async def send_message(
    workspace_id: str,
    thread_id: str,
    request: MessageRequest,
    actor_id: str | None = _actor_header,
) -> dict[str, Any]:
    inbox = await _inbox(workspace_id)
    message = await inbox.reply(thread_id, actor_id, request.body)
    return _view(inbox, thread_id, message=message)


@write_router.post("/threads/{thread_id}/read")
async def mark_read(
    workspace_id: str, thread_id: str, actor_id: str | None = _actor_header
) -> dict[str, Any]:
    inbox = await _inbox(workspace_id)
    await inbox.mark_read(thread_id, actor_id)
    return _view(inbox, thread_id)


@write_router.post("/threads/{thread_id}/state")
async def set_state(
    workspace_id: str,
    thread_id: str,
    request: StateRequest,
    actor_id: str | None = _actor_header,
) -> dict[str, Any]:
    inbox = await _inbox(workspace_id)
    await inbox.set_state(thread_id, actor_id, request.state)
    return _view(inbox, thread_id)


@write_router.post("/threads/{thread_id}/archive")
async def toggle_archive(
    workspace_id: str, thread_id: str, actor_id: str | None = _actor_header
) -> dict[str, Any]:
    inbox = await _inbox(workspace_id)
    state = await inbox.toggle_archive(thread_id, actor_id)
    return _view(inbox, thread_id, state=state)


@write_router.post("/threads/{thread_id}/escalate")
async def escalate(
    workspace_id: str,
    thread_id: str,
    request: EscalateRequest,
    actor_id: str | None = _actor_header,
) -> dict[str, Any]:
    inbox = await _inbox(workspace_id)
    case = await inbox.escalate(thread_id, actor_id, request.reason, request.priority)
    return _view(inbox, thread_id, supportCase=case.to_dict() if case else None)


@write_router.post("/threads/{thread_id}/assign")
async def assign(
    workspace_id: str,
    thread_id: str,
    request: AssignRequest,
    actor_id: str | None = _actor_header,
) -> dict[str, Any]:
    inbox = await _inbox(workspace_id)
    await inbox.assign(thread_id, actor_id, request.assignee_id, request.notify_agent)
    return _view(inbox, thread_id)


@write_router.post("/threads/{thread_id}/pin")
async def pin(
    workspace_id: str, thread_id: str, actor_id: str | None = _actor_header
) -> dict[str, Any]:
    inbox = await _inbox(workspace_id)
    pinned = await inbox.pin(thread_id, actor_id)
    return _view(inbox, thread_id, pinnedThreadIds=list(pinned))


@write_router.delete("/threads/{thread_id}/pin")
async def unpin(
    workspace_id: str, thread_id: str, actor_id: str | None = _actor_header
) -> dict[str, Any]:
    inbox = await _inbox(workspace_id)
    pinned = await inbox.unpin(thread_id, actor_id)
    return _view(inbox, thread_id, pinnedThreadIds=list(pinned))


@write_router.put("/pins")
async def reorder_pins(
    workspace_id: str,
    request: PinOrderRequest,
    actor_id: str | None = _actor_header,
) -> dict[str, Any]:
    inbox = await _inbox(workspace_id)
    pinned = await inbox.reorder_pinned(request.thread_ids, actor_id)
    return _view(inbox, pinnedThreadIds=list(pinned))


# --- Workspace configuration ---


@write_router.patch("/preferences")
async def update_preferences(
    workspace_id: str,
    payload: dict[str, Any],
    actor_id: str | None = _actor_header,
) -> dict[str, Any]:
    inbox = await _inbox(workspace_id)
    preferences = await inbox.update_preferences(actor_id, payload)
    return _view(inbox, preferences=preferences.to_dict())


@write_router.put("/automations")
async def save_automations(
    workspace_id: str,
    payload: dict[str, Any],
    actor_id: str | None = _actor_header,
) -> dict[str, Any]:
    inbox = await _inbox(workspace_id)
    automations = await inbox.save_automations(actor_id, payload)
    return _view(inbox, automations=automations.to_dict())


@write_router.post("/saved-replies", status_code=201)
async def create_saved_reply(
    workspace_id: str,
    payload: dict[str, Any],
    actor_id: str | None = _actor_header,
) -> dict[str, Any]:
    inbox = await _inbox(workspace_id)
    reply = await inbox.create_saved_reply(actor_id, payload)
    return _view(inbox, savedReply=reply.to_dict() if reply else None)


@write_router.patch("/saved-replies/{reply_id}")
async def update_saved_reply(
    workspace_id: str,
    reply_id: str,
    payload: dict[str, Any],
    actor_id: str | None = _actor_header,
) -> dict[str, Any]:
    inbox = await _inbox(workspace_id)
    reply = await inbox.update_saved_reply(actor_id, reply_id, payload)
    return _view(inbox, savedReply=reply.to_dict() if reply else None)


@write_router.delete("/saved-replies/{reply_id}")
async def delete_saved_reply(
    workspace_id: str, reply_id: str, actor_id: str | None = _actor_header
) -> dict[str, Any]:
    inbox = await _inbox(workspace_id)
    default_id = await inbox.delete_saved_reply(actor_id, reply_id)
    return _view(inbox, defaultSavedReplyId=default_id)


@write_router.post("/routing-rules", status_code=201)
async def create_routing_rule(
    workspace_id: str,
    payload: dict[str, Any],
    actor_id: str | None = _actor_header,
) -> dict[str, Any]:
    inbox = await _inbox(workspace_id)
    rule = await inbox.create_rule(actor_id, payload)
    return _view(inbox, routingRule=rule.to_dict() if rule else None)


@write_router.patch("/routing-rules/{rule_id}")
async def update_routing_rule(
    workspace_id: str,
    rule_id: str,
    payload: dict[str, Any],
    actor_id: str | None = _actor_header,
) -> dict[str, Any]:
    inbox = await _inbox(workspace_id)
    rule = await inbox.update_rule(actor_id, rule_id, payload)
    return _view(inbox, routingRule=rule.to_dict() if rule else None)


@write_router.delete("/routing-rules/{rule_id}")
async def delete_routing_rule(
    workspace_id: str, rule_id: str, actor_id: str | None = _actor_header
) -> dict[str, Any]:
    inbox = await _inbox(workspace_id)
    await inbox.delete_rule(actor_id, rule_id)
    return _view(inbox)


def create_app() -> FastAPI:
    """Build the FastAPI application. Services must be initialized first."""
    app = FastAPI(
        title="Agency Inbox",
        version=__version__,
        docs_url="/api/docs",
        openapi_url="/api/openapi.json",
    )
    app.add_exception_handler(InboxError, _inbox_error_handler)
    app.include_router(core_router)
    app.include_router(read_router)
    app.include_router(write_router)
    return app
