"""Shared test fixtures for the agency inbox tests."""

import itertools

import pytest

from agency_inbox.backend import MemoryInboxBackend
from agency_inbox.cache import CachedResourceStore
from agency_inbox.inbox import InboxWorkspace
from agency_inbox.services import reset_services

WORKSPACE_ID = "ws-1"
ACTOR_ID = "user-1"


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def iso_ticker():
    """Deterministic, strictly increasing ISO timestamps."""
    counter = itertools.count()

    def tick() -> str:
        n = next(counter)
        return f"2026-03-01T09:{n // 60:02d}:{n % 60:02d}+00:00"

    return tick


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path, monkeypatch):
    """Point ~ at a temp dir and clear AGENCY_INBOX_* overrides."""
    monkeypatch.setenv("HOME", str(tmp_path))
    for name in (
        "AGENCY_INBOX_BASE_URL",
        "AGENCY_INBOX_API_TOKEN",
        "AGENCY_INBOX_CACHE_TTL",
        "AGENCY_INBOX_SIMULATOR",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_services()
    yield
    reset_services()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> CachedResourceStore:
    return CachedResourceStore(clock=clock)


@pytest.fixture
def backend() -> MemoryInboxBackend:
    """In-memory collaborator seeded with one workspace and three threads."""
    backend = MemoryInboxBackend(clock=iso_ticker())
    backend.seed_participant("agent-1", "Avery Agent", "avery@agency.test")
    backend.seed_participant("client-3", "Casey Client", "casey@client.test")
    backend.seed_thread(
        WORKSPACE_ID,
        id="thread-1",
        subject="Invoice question",
        channelType="support",
        participantIds=["client-3"],
        lastMessageAt="2026-02-01T10:00:00+00:00",
        lastMessageBody="Can I get a refund for last month?",
        lastMessagePreview="Can I get a refund",
    )
    backend.inject_message("thread-1", "client-3", "Can I get a refund for last month?")
    backend.seed_thread(
        WORKSPACE_ID,
        id="thread-2",
        subject="Launch plan",
        channelType="project",
        participantIds=["agent-1"],
        lastMessageAt="2026-01-15T10:00:00+00:00",
        lastMessageBody="Draft attached.",
    )
    backend.seed_thread(
        WORKSPACE_ID,
        id="thread-3",
        subject="Old contract",
        channelType="direct",
        state="archived",
        participantIds=["client-3"],
        lastMessageAt="2025-12-01T10:00:00+00:00",
    )
    backend.calls.clear()
    return backend


@pytest.fixture
def inbox(backend, store) -> InboxWorkspace:
    return InboxWorkspace(WORKSPACE_ID, backend, store)

