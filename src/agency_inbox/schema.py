"""Pydantic schema for ~/.agency-inbox/config.yaml

Default values here MUST match the canonical constants in conventions.py.
"""

from pydantic import BaseModel, Field

from . import conventions


class BackendConfig(BaseModel):
    """Where the inbox collaborator service lives.

    An empty ``base_url`` or ``simulator_mode: true`` selects the
    in-memory backend.
    """

    base_url: str = ""
    api_token: str = ""
    timeout_seconds: float = Field(default=15.0, gt=0)
    simulator_mode: bool = False


class CacheConfig(BaseModel):
    # Source of truth: conventions.WORKSPACE_CACHE_TTL_SECONDS
    ttl_seconds: float = Field(default=conventions.WORKSPACE_CACHE_TTL_SECONDS, ge=0)


class ServerConfig(BaseModel):
    api_key: str = ""  # empty = mutations are not guarded
    host: str = "127.0.0.1"
    port: int = conventions.SERVER_DEFAULT_PORT


class InboxConfig(BaseModel):
    backend: BackendConfig = Field(default_factory=BackendConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
