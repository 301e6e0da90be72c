"""Inbox HTTP API Tests

Exit criteria verified:
1. GET /api/health reports version and simulator mode
2. The read endpoint serves the aggregate through the cache (fromCache)
3. Mutations return the refreshed view; create routes return 201
4. Inbox errors map to HTTP: 401 actor, 422 input, 502 collaborator
5. The optional API key guards mutation routes only
6. Thread selection belongs to each request, never to the shared facade
"""

from __future__ import annotations

import pytest
from starlette.testclient import TestClient

from agency_inbox import __version__
from agency_inbox.schema import InboxConfig, ServerConfig
from agency_inbox.server.app import create_app
from agency_inbox.services import init_services

BASE = "/api/workspaces/ws-1"
ACTOR = {"X-Actor-Id": "user-1"}


@pytest.fixture
def client(backend):
    init_services(config=InboxConfig(), backend=backend)
    with TestClient(create_app()) as client:
        yield client


@pytest.fixture
def guarded_client(backend):
    config = InboxConfig(server=ServerConfig(api_key="s3cret"))
    init_services(config=config, backend=backend)
    with TestClient(create_app()) as client:
        yield client


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "version": __version__,
            "simulator": True,
        }


class TestRead:
    """Verify the read model endpoint."""

    def test_read_workspace(self, client):
        data = client.get(BASE).json()

        workspace = data["workspace"]
        assert workspace["workspaceId"] == "ws-1"
        assert workspace["summary"]["unreadThreads"] == 1
        assert [t["id"] for t in workspace["activeThreads"]] == [
            "thread-1",
            "thread-2",
            "thread-3",
        ]
        assert data["selectedThreadId"] == "thread-1"
        assert data["error"] is None
        assert data["fromCache"] is False

    def test_second_read_is_cached(self, client, backend):
        client.get(BASE)
        data = client.get(BASE).json()
        assert data["fromCache"] is True
        reads = [c for c in backend.calls if c["method"] == "get_inbox_workspace"]
        assert len(reads) == 1

    def test_force_bypasses_cache(self, client, backend):
        client.get(BASE)
        data = client.get(BASE, params={"force": "true"}).json()
        assert data["fromCache"] is False
        reads = [c for c in backend.calls if c["method"] == "get_inbox_workspace"]
        assert len(reads) == 2

    def test_failed_fetch_reports_error(self, client, backend):
        backend.fail("get_inbox_workspace", RuntimeError("inbox service down"))
        data = client.get(BASE).json()
        assert data["error"] == "inbox service down"
        assert data["workspace"]["summary"]["unreadThreads"] == 0

    def test_route_endpoint(self, client):
        created = client.post(
            f"{BASE}/routing-rules",
            json={"name": "Refunds", "condition": "refund", "target": "finance"},
            headers=ACTOR,
        )
        assert created.status_code == 201

        data = client.post(f"{BASE}/threads/thread-1/route").json()
        assert data["threadId"] == "thread-1"
        assert data["rule"]["target"] == "finance"

        data = client.post(f"{BASE}/threads/thread-2/route").json()
        assert data["rule"] is None

    def test_route_unknown_thread(self, client):
        response = client.post(f"{BASE}/threads/thread-404/route")
        assert response.status_code == 422


class TestThreadActions:
    """Verify thread mutations return the refreshed view."""

    def test_mark_read(self, client):
        response = client.post(f"{BASE}/threads/thread-1/read", headers=ACTOR)
        assert response.status_code == 200
        assert response.json()["workspace"]["summary"]["unreadThreads"] == 0

    def test_create_thread(self, client, backend):
        response = client.post(
            f"{BASE}/threads",
            json={
                "subject": "Launch update",
                "channel_type": "direct",
                "participant_ids": "agent-1, client-3",
                "initial_message": "Kickoff soon",
            },
            headers=ACTOR,
        )

        assert response.status_code == 201
        thread = response.json()["thread"]
        assert thread["subject"] == "Launch update"
        methods = [c["method"] for c in backend.write_calls()]
        assert methods == ["create_thread", "send_message"]
        assert backend.messages(thread["id"])[0]["body"] == "Kickoff soon"

    def test_partial_creation_returns_thread(self, client, backend):
        backend.fail("send_message", RuntimeError("Message rejected"))
        response = client.post(
            f"{BASE}/threads",
            json={
                "subject": "Launch",
                "participant_ids": ["agent-1"],
                "initial_message": "Hi",
            },
            headers=ACTOR,
        )

        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "PartialThreadCreation"
        assert body["message"] == "Message rejected"
        assert body["thread"]["subject"] == "Launch"

    def test_archive_toggle(self, client):
        response = client.post(f"{BASE}/threads/thread-2/archive", headers=ACTOR)
        assert response.json()["state"] == "archived"

    def test_escalate(self, client):
        response = client.post(
            f"{BASE}/threads/thread-1/escalate",
            json={"reason": "Client threatening churn"},
            headers=ACTOR,
        )
        data = response.json()
        assert data["supportCase"]["priority"] == "high"
        assert data["workspace"]["summary"]["escalationsOpen"] == 1

    def test_pin_and_reorder(self, client):
        client.post(f"{BASE}/threads/thread-2/pin", headers=ACTOR)
        data = client.post(f"{BASE}/threads/thread-1/pin", headers=ACTOR).json()
        assert data["pinnedThreadIds"] == ["thread-1", "thread-2"]

        data = client.put(
            f"{BASE}/pins", json={"thread_ids": ["thread-2"]}, headers=ACTOR
        ).json()
        assert data["pinnedThreadIds"] == ["thread-2", "thread-1"]

        data = client.delete(f"{BASE}/threads/thread-2/pin", headers=ACTOR).json()
        assert data["pinnedThreadIds"] == ["thread-1"]


class TestConfigurationActions:
    def test_patch_preferences(self, client):
        response = client.patch(
            f"{BASE}/preferences", json={"timezone": "Europe/Rome"}, headers=ACTOR
        )
        assert response.status_code == 200
        assert response.json()["preferences"]["timezone"] == "Europe/Rome"

    def test_save_automations(self, client):
        response = client.put(
            f"{BASE}/automations", json={"notifyTalent": True}, headers=ACTOR
        )
        assert response.json()["automations"]["notifyTalent"] is True

    def test_saved_reply_default_cascade(self, client):
        first = client.post(
            f"{BASE}/saved-replies", json={"title": "A", "body": "a"}, headers=ACTOR
        )
        second = client.post(
            f"{BASE}/saved-replies",
            json={"title": "B", "body": "b", "orderIndex": 1},
            headers=ACTOR,
        )
        assert first.status_code == 201
        first_id = first.json()["savedReply"]["id"]
        second_id = second.json()["savedReply"]["id"]

        data = client.delete(f"{BASE}/saved-replies/{first_id}", headers=ACTOR).json()

        assert data["defaultSavedReplyId"] == second_id
        preferences = data["workspace"]["preferences"]
        assert preferences["defaultSavedReplyId"] == second_id


class TestSelection:
    """Verify selection comes from the request, not shared state."""

    def test_selection_is_per_request(self, client):
        data = client.get(BASE, params={"selected": "thread-2"}).json()
        assert data["selectedThreadId"] == "thread-2"
        assert client.get(BASE).json()["selectedThreadId"] == "thread-1"

    def test_unknown_selection_falls_back_to_first(self, client):
        data = client.get(BASE, params={"selected": "thread-404"}).json()
        assert data["selectedThreadId"] == "thread-1"

    def test_action_selects_its_thread_for_that_response_only(self, client):
        data = client.post(f"{BASE}/threads/thread-2/read", headers=ACTOR).json()
        assert data["selectedThreadId"] == "thread-2"
        assert client.get(BASE).json()["selectedThreadId"] == "thread-1"


class TestErrors:
    """Verify the error mapping."""

    def test_missing_actor_is_401(self, client, backend):
        response = client.post(f"{BASE}/threads/thread-1/read")
        assert response.status_code == 401
        assert response.json()["error"] == "UnresolvedActor"
        assert backend.write_calls() == []

    def test_invalid_input_is_422(self, client):
        response = client.post(
            f"{BASE}/threads/thread-1/escalate", json={"reason": " "}, headers=ACTOR
        )
        assert response.status_code == 422
        assert response.json()["error"] == "InvalidInput"

    def test_invalid_assignment_is_422(self, client):
        response = client.post(
            f"{BASE}/threads/thread-1/assign", json={}, headers=ACTOR
        )
        assert response.status_code == 422
        assert response.json()["error"] == "InvalidAssignment"

    def test_collaborator_failure_is_502(self, client, backend):
        backend.fail("send_message", RuntimeError("Thread is locked"))
        response = client.post(
            f"{BASE}/threads/thread-1/messages", json={"body": "Hi"}, headers=ACTOR
        )
        assert response.status_code == 502
        assert response.json() == {
            "error": "WriteFailed",
            "message": "Thread is locked",
        }


class TestApiKey:
    """Verify the optional bearer key on mutation routes."""

    def test_mutation_without_key_is_rejected(self, guarded_client, backend):
        response = guarded_client.post(f"{BASE}/threads/thread-1/read", headers=ACTOR)
        assert response.status_code == 401
        assert backend.write_calls() == []

    def test_mutation_with_wrong_key_is_rejected(self, guarded_client):
        response = guarded_client.post(
            f"{BASE}/threads/thread-1/read",
            headers={**ACTOR, "Authorization": "Bearer nope"},
        )
        assert response.status_code == 401

    def test_mutation_with_key_passes(self, guarded_client):
        response = guarded_client.post(
            f"{BASE}/threads/thread-1/read",
            headers={**ACTOR, "Authorization": "Bearer s3cret"},
        )
        assert response.status_code == 200

    def test_reads_are_not_guarded(self, guarded_client):
        assert guarded_client.get(BASE).status_code == 200
        assert guarded_client.get("/api/health").status_code == 200


class TestReadBeforeWrite:
    """Verify partial writes need a readable workspace."""

    def test_failed_read_blocks_preference_patch(self, client, backend):
        for _ in range(2):
            backend.fail("get_inbox_workspace", RuntimeError("inbox service down"))

        response = client.patch(
            f"{BASE}/preferences", json={"timezone": "Europe/Rome"}, headers=ACTOR
        )

        assert response.status_code == 502
        assert response.json() == {
            "error": "FetchFailed",
            "message": "inbox service down",
        }
        assert backend.write_calls() == []

    def test_partial_reply_deletion_is_502(self, client, backend):
        first = client.post(
            f"{BASE}/saved-replies", json={"title": "A", "body": "a"}, headers=ACTOR
        ).json()["savedReply"]["id"]
        client.post(
            f"{BASE}/saved-replies", json={"title": "B", "body": "b"}, headers=ACTOR
        )
        backend.fail("update_inbox_preferences", RuntimeError("Preferences locked"))

        response = client.delete(f"{BASE}/saved-replies/{first}", headers=ACTOR)

        assert response.status_code == 502
        assert response.json() == {
            "error": "PartialSavedReplyDeletion",
            "message": "Preferences locked",
            "savedReplyId": first,
        }
