"""Mutation-Refresh Coordinator Tests

Exit criteria verified:
1. Every mutating action is one write followed by exactly one forced refresh
2. A failed write raises WriteFailed with the collaborator's message verbatim,
   skips the refresh and leaves the cached aggregate untouched
3. Guards run in order (workspace, then actor) before the write
4. A write that lands while a read is in flight is visible to the next read
"""

import asyncio

import pytest

from agency_inbox.coordinator import MutationRefreshCoordinator, require_actor
from agency_inbox.errors import InvalidInput, UnresolvedActor, WriteFailed
from agency_inbox.workspace import workspace_cache_key

ACTOR = "user-1"


def _reads(backend) -> int:
    return sum(1 for c in backend.calls if c["method"] == "get_inbox_workspace")


class TestActorResolution:
    def test_require_actor(self):
        assert require_actor(" user-1 ") == "user-1"
        assert require_actor(42) == "42"

    @pytest.mark.parametrize("actor", [None, "", "   "])
    def test_require_actor_rejects_missing(self, actor):
        with pytest.raises(UnresolvedActor):
            require_actor(actor)


class TestGuards:
    """Verify the guards fire before any write."""

    async def test_workspace_is_checked_before_actor(self, store):
        coordinator = MutationRefreshCoordinator(store, None)
        calls = []

        async def write(actor):
            calls.append(actor)

        with pytest.raises(InvalidInput, match="workspace"):
            await coordinator.run("noop", write, actor_id=None)
        assert calls == []

    async def test_missing_actor(self, store):
        coordinator = MutationRefreshCoordinator(store, "ws-1")
        calls = []

        async def write(actor):
            calls.append(actor)

        with pytest.raises(UnresolvedActor):
            await coordinator.run("noop", write, actor_id="")
        assert calls == []

    async def test_write_receives_resolved_actor(self, store):
        async def fetcher():
            return "aggregate"

        store.register(workspace_cache_key("ws-1"), fetcher)
        coordinator = MutationRefreshCoordinator(store, "ws-1")

        async def write(actor):
            return f"written by {actor}"

        result = await coordinator.run("noop", write, actor_id=" user-1 ")

        assert result == "written by user-1"
        assert store.peek(coordinator.cache_key).data == "aggregate"


class TestWriteFailures:
    """Verify failed writes surface verbatim and skip the refresh."""

    async def test_message_is_passed_through(self, inbox, backend):
        before = await inbox.read()
        backend.calls.clear()
        backend.fail("mark_thread_read", RuntimeError("Thread is locked by an agent"))

        with pytest.raises(WriteFailed) as excinfo:
            await inbox.mark_read("thread-1", ACTOR)

        assert str(excinfo.value) == "Thread is locked by an agent"
        assert _reads(backend) == 0
        assert inbox.workspace is before

    async def test_empty_message_falls_back_to_type(self, store):
        coordinator = MutationRefreshCoordinator(store, "ws-1")

        async def write(actor):
            raise ConnectionError()

        with pytest.raises(WriteFailed, match="ConnectionError"):
            await coordinator.run("noop", write, actor_id=ACTOR)

    async def test_inbox_errors_are_not_wrapped(self, store):
        coordinator = MutationRefreshCoordinator(store, "ws-1")

        async def write(actor):
            raise InvalidInput("bad")

        with pytest.raises(InvalidInput):
            await coordinator.run("noop", write, actor_id=ACTOR)

    async def test_cancellation_propagates(self, store):
        coordinator = MutationRefreshCoordinator(store, "ws-1")

        async def write(actor):
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await coordinator.run("noop", write, actor_id=ACTOR)


async def _toggle(inbox):
    await inbox.toggle_archive("thread-2", ACTOR)


async def _unpin(inbox):
    await inbox.unpin("thread-1", ACTOR)


MUTATIONS = {
    "mark_read": lambda inbox: inbox.mark_read("thread-1", ACTOR),
    "set_state": lambda inbox: inbox.set_state("thread-2", ACTOR, "archived"),
    "toggle_archive": _toggle,
    "escalate": lambda inbox: inbox.escalate("thread-1", ACTOR, "Churn risk"),
    "assign": lambda inbox: inbox.assign("thread-1", ACTOR, "agent-1"),
    "reply": lambda inbox: inbox.reply("thread-1", ACTOR, "On it."),
    "create_thread": lambda inbox: inbox.create_thread(
        ACTOR, "Casting", "talent", ["client-3"]
    ),
    "pin": lambda inbox: inbox.pin("thread-1", ACTOR),
    "unpin": _unpin,
    "reorder_pinned": lambda inbox: inbox.reorder_pinned(["thread-2"], ACTOR),
    "create_rule": lambda inbox: inbox.create_rule(
        ACTOR, {"name": "Refunds", "condition": "refund"}
    ),
    "create_saved_reply": lambda inbox: inbox.create_saved_reply(
        ACTOR, {"title": "Hi", "body": "Hello there"}
    ),
    "save_automations": lambda inbox: inbox.save_automations(
        ACTOR, {"notifyTalent": True}
    ),
    "update_preferences": lambda inbox: inbox.update_preferences(
        ACTOR, {"notificationsPush": False}
    ),
}


class TestExactlyOneRefresh:
    """Verify each action triggers exactly one refresh after its write."""

    @pytest.mark.parametrize("action", sorted(MUTATIONS))
    async def test_one_refresh(self, inbox, backend, action):
        await inbox.read()
        backend.calls.clear()

        await MUTATIONS[action](inbox)

        assert len(backend.write_calls()) == 1
        assert _reads(backend) == 1
        assert backend.calls[-1]["method"] == "get_inbox_workspace"

    async def test_missing_actor_blocks_every_action(self, inbox, backend):
        with pytest.raises(UnresolvedActor):
            await inbox.reply("thread-1", None, "Hello")
        with pytest.raises(UnresolvedActor):
            await inbox.save_automations(None, {"notifyTalent": True})
        assert backend.calls == []


class TestWriteDuringRead:
    """Verify a write that lands mid-read is not hidden by the older read."""

    async def test_next_read_reflects_the_write(self, inbox, backend, monkeypatch):
        read_now = backend.get_inbox_workspace
        gate = asyncio.Event()
        first_read_done = asyncio.Event()

        async def slow_first_read(workspace_id):
            payload = await read_now(workspace_id)
            if not first_read_done.is_set():
                first_read_done.set()
                await gate.wait()
            return payload

        monkeypatch.setattr(backend, "get_inbox_workspace", slow_first_read)
        slow_read = asyncio.create_task(inbox.read())
        await first_read_done.wait()

        write = asyncio.create_task(inbox.mark_read("thread-1", ACTOR))
        await asyncio.sleep(0)
        gate.set()
        await asyncio.gather(slow_read, write)

        workspace = await inbox.read()
        assert workspace.summary.unread_threads == 0
        assert workspace.find_thread("thread-1").unread is False
        assert _reads(backend) == 2
