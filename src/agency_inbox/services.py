"""Process-scoped shared services.

The host process (server or CLI) creates ONE set of services at startup:
the loaded config, the collaborator backend and the cache store. Every
workspace facade is built from them, so all readers in the process share
one cache.

Usage:
    # At startup:
    from agency_inbox.services import init_services
    services = init_services()

    # In route handlers:
    inbox = get_services().workspace("ws-1")
    await inbox.read()

    # In tests:
    services = init_services(backend=MemoryInboxBackend())
    # ... run tests ...
    reset_services()
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from .backend import HttpInboxBackend, InboxBackend, MemoryInboxBackend
from .cache import CachedResourceStore
from .config import load_config
from .inbox import InboxWorkspace
from .schema import InboxConfig

logger = logging.getLogger(__name__)

# Module-level singleton
_instance: InboxServices | None = None
_instance_lock = threading.Lock()


@dataclass
class InboxServices:
    """Shared services for one process.

    Attributes:
        config: Loaded configuration.
        backend: Collaborator service (MemoryInboxBackend or HttpInboxBackend).
        store: The cache every workspace facade reads through.
    """

    config: InboxConfig
    backend: InboxBackend
    store: CachedResourceStore
    _workspaces: dict[str, InboxWorkspace] = field(default_factory=dict)

    @property
    def simulator_mode(self) -> bool:
        return isinstance(self.backend, MemoryInboxBackend)

    def workspace(self, workspace_id: str) -> InboxWorkspace:
        """Return the facade for *workspace_id*, creating it on first use."""
        inbox = self._workspaces.get(workspace_id)
        if inbox is None:
            inbox = InboxWorkspace(
                workspace_id,
                self.backend,
                self.store,
                ttl=self.config.cache.ttl_seconds,
            )
            self._workspaces[workspace_id] = inbox
        return inbox


def build_backend(config: InboxConfig) -> InboxBackend:
    """Pick the backend from config: simulator or unconfigured means in-memory."""
    settings = config.backend
    if settings.simulator_mode or not settings.base_url:
        logger.info("Inbox services: using MemoryInboxBackend (simulator)")
        return MemoryInboxBackend()
    logger.info("Inbox services: using HttpInboxBackend at %s", settings.base_url)
    return HttpInboxBackend(
        settings.base_url,
        api_token=settings.api_token,
        timeout=settings.timeout_seconds,
    )


def init_services(
    *,
    config: InboxConfig | None = None,
    backend: InboxBackend | None = None,
    store: CachedResourceStore | None = None,
) -> InboxServices:
    """Initialize shared services. Called once at startup.

    Args:
        config: Override the loaded config.
        backend: Override the backend (for testing).
        store: Override the cache store (for testing).
    """
    global _instance

    if config is None:
        config = load_config()
    if backend is None:
        backend = build_backend(config)
    if store is None:
        store = CachedResourceStore(default_ttl=config.cache.ttl_seconds)

    with _instance_lock:
        _instance = InboxServices(config=config, backend=backend, store=store)
        return _instance


def get_services() -> InboxServices:
    """Get the shared services instance.

    Raises RuntimeError if services haven't been initialized.
    """
    with _instance_lock:
        if _instance is None:
            raise RuntimeError(
                "Inbox services not initialized. Call init_services() first."
            )
        return _instance


def reset_services() -> None:
    """Reset services (for testing). Not for production use."""
    global _instance
    with _instance_lock:
        if _instance is not None:
            _instance.store.clear()
        _instance = None
