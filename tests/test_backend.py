"""Collaborator Backend Tests

Covers the in-memory collaborator used by tests and simulator mode, and
the httpx client against a mock transport.
"""

import json

import httpx
import pytest

from agency_inbox.backend import HttpInboxBackend, InboxBackend, MemoryInboxBackend

WORKSPACE_ID = "ws-1"


class TestProtocol:
    def test_both_backends_satisfy_protocol(self):
        assert isinstance(MemoryInboxBackend(), InboxBackend)
        assert isinstance(HttpInboxBackend("http://inbox.test"), InboxBackend)


class TestMemoryBackend:
    """Verify server-side rules of the in-memory collaborator."""

    async def test_summary_is_recomputed(self, backend):
        payload = await backend.get_inbox_workspace(WORKSPACE_ID)
        summary = payload["summary"]
        assert summary["unreadThreads"] == 1
        assert summary["awaitingReply"] == 1
        assert summary["openSupportCases"] == 0

        await backend.escalate_thread("thread-2", "user-1", "Scope creep", "high")
        summary = (await backend.get_inbox_workspace(WORKSPACE_ID))["summary"]
        assert summary["openSupportCases"] == 1
        assert summary["escalationsOpen"] == 1

    async def test_closed_cases_are_not_open(self, backend):
        case = await backend.escalate_thread("thread-2", "user-1", "x", "low")
        backend.seed_workspace(
            WORKSPACE_ID, supportCases=[{**case, "status": "resolved"}]
        )
        summary = (await backend.get_inbox_workspace(WORKSPACE_ID))["summary"]
        assert summary["openSupportCases"] == 0

    async def test_threads_newest_first_with_pins_on_top(self, backend):
        await backend.pin_thread(WORKSPACE_ID, "user-1", "thread-3")
        payload = await backend.get_inbox_workspace(WORKSPACE_ID)
        assert [t["id"] for t in payload["activeThreads"]] == [
            "thread-3",
            "thread-1",
            "thread-2",
        ]

    async def test_participants_resolve_from_directory(self, backend):
        payload = await backend.get_inbox_workspace(WORKSPACE_ID)
        thread = payload["activeThreads"][0]
        assert thread["participants"] == [
            {"id": "client-3", "name": "Casey Client", "email": "casey@client.test"}
        ]
        directory = {p["id"] for p in payload["participantDirectory"]}
        assert directory == {"agent-1", "client-3"}

    async def test_archived_thread_is_never_unread(self, backend):
        backend.inject_message("thread-3", "client-3", "Still there?")
        await backend.update_thread_state("thread-3", "user-1", "archived")
        payload = await backend.get_inbox_workspace(WORKSPACE_ID)
        archived = [t for t in payload["activeThreads"] if t["id"] == "thread-3"]
        assert archived[0]["unread"] is False

    async def test_invalid_state_is_rejected(self, backend):
        with pytest.raises(ValueError, match="Unsupported thread state"):
            await backend.update_thread_state("thread-1", "user-1", "snoozed")

    async def test_failures_are_one_shot(self, backend):
        backend.fail("mark_thread_read", RuntimeError("busy"))
        with pytest.raises(RuntimeError, match="busy"):
            await backend.mark_thread_read("thread-1", "user-1")
        await backend.mark_thread_read("thread-1", "user-1")
        assert [c["method"] for c in backend.calls] == [
            "mark_thread_read",
            "mark_thread_read",
        ]

    async def test_pins_are_workspace_scoped(self, backend):
        backend.seed_thread("ws-2", id="thread-9", subject="Elsewhere")
        with pytest.raises(PermissionError):
            await backend.pin_thread(WORKSPACE_ID, "user-1", "thread-9")

    async def test_reorder_drops_inaccessible_ids(self, backend):
        backend.seed_thread("ws-2", id="thread-9")
        stored = await backend.reorder_pinned_threads(
            WORKSPACE_ID, "user-1", ["thread-9", "thread-2"]
        )
        assert stored["pinnedThreadIds"] == ["thread-2"]

    async def test_delete_does_not_touch_preferences(self, backend):
        reply = await backend.create_saved_reply(
            WORKSPACE_ID, {"title": "t", "body": "b"}
        )
        await backend.delete_saved_reply(WORKSPACE_ID, reply["id"])
        payload = await backend.get_inbox_workspace(WORKSPACE_ID)
        assert payload["preferences"]["defaultSavedReplyId"] == reply["id"]
        assert payload["savedReplies"] == []


class Recorder:
    """httpx mock handler that records requests and replays responses."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.requests: list[httpx.Request] = []
        self.responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            return self.responses.pop(0)
        return httpx.Response(200, json={})


def _client(recorder: Recorder, token: str = "secret") -> HttpInboxBackend:
    return HttpInboxBackend(
        "http://inbox.test/api/",
        api_token=token,
        transport=httpx.MockTransport(recorder),
    )


class TestHttpBackend:
    """Verify paths, payloads and error passthrough."""

    async def test_get_workspace(self):
        recorder = Recorder(httpx.Response(200, json={"workspaceId": "ws-1"}))

        payload = await _client(recorder).get_inbox_workspace("ws-1")

        assert payload == {"workspaceId": "ws-1"}
        request = recorder.requests[0]
        assert request.method == "GET"
        assert request.url.path == "/api/agency/workspaces/ws-1/inbox"
        assert request.headers["Authorization"] == "Bearer secret"

    async def test_no_token_sends_no_authorization(self):
        recorder = Recorder()
        await _client(recorder, token="").get_inbox_workspace("ws-1")
        assert "Authorization" not in recorder.requests[0].headers

    async def test_create_thread_payload(self):
        recorder = Recorder(httpx.Response(201, json={"id": "t-1"}))

        created = await _client(recorder).create_thread(
            "user-1", "Launch", "direct", ["a", "b"], workspace_id="ws-1"
        )

        assert created == {"id": "t-1"}
        request = recorder.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/api/messaging/threads"
        assert json.loads(request.content) == {
            "userId": "user-1",
            "subject": "Launch",
            "channelType": "direct",
            "participantIds": ["a", "b"],
            "workspaceId": "ws-1",
        }

    @pytest.mark.parametrize(
        "call,method,path",
        [
            (
                lambda c: c.update_inbox_preferences("ws-1", {}),
                "PUT",
                "/api/agency/workspaces/ws-1/inbox/preferences",
            ),
            (
                lambda c: c.update_saved_reply("ws-1", "r-1", {}),
                "PATCH",
                "/api/agency/workspaces/ws-1/inbox/saved-replies/r-1",
            ),
            (
                lambda c: c.delete_routing_rule("ws-1", "rule-1"),
                "DELETE",
                "/api/agency/workspaces/ws-1/inbox/routing-rules/rule-1",
            ),
            (
                lambda c: c.save_inbox_automations("ws-1", {}),
                "PUT",
                "/api/agency/workspaces/ws-1/inbox/automations",
            ),
            (
                lambda c: c.escalate_thread("t-1", "u", "why", "high"),
                "POST",
                "/api/messaging/threads/t-1/escalate",
            ),
            (
                lambda c: c.pin_thread("ws-1", "u", "t-1"),
                "POST",
                "/api/agency/workspaces/ws-1/inbox/pins/t-1",
            ),
            (
                lambda c: c.reorder_pinned_threads("ws-1", "u", ["t-1"]),
                "PUT",
                "/api/agency/workspaces/ws-1/inbox/pins",
            ),
        ],
    )
    async def test_paths(self, call, method, path):
        recorder = Recorder()
        await call(_client(recorder))
        assert recorder.requests[0].method == method
        assert recorder.requests[0].url.path == path

    async def test_no_content_returns_none(self):
        recorder = Recorder(httpx.Response(204))
        result = await _client(recorder).mark_thread_read("t-1", "user-1")
        assert result is None
        assert json.loads(recorder.requests[0].content) == {"userId": "user-1"}

    @pytest.mark.parametrize(
        "response,message",
        [
            (
                httpx.Response(409, json={"message": "Thread is archived"}),
                "Thread is archived",
            ),
            (httpx.Response(400, json={"error": "Bad state"}), "Bad state"),
            (httpx.Response(422, json={"detail": "Missing body"}), "Missing body"),
            (httpx.Response(500, text="upstream exploded"), "upstream exploded"),
            (httpx.Response(503), "HTTP 503"),
        ],
    )
    async def test_error_message_passthrough(self, response, message):
        recorder = Recorder(response)
        with pytest.raises(RuntimeError) as excinfo:
            await _client(recorder).send_message("t-1", "user-1", "Hi")
        assert str(excinfo.value) == message
