"""Config I/O for config.yaml plus environment overrides.

Priority order (highest wins):
1. Environment variables (AGENCY_INBOX_*)
2. ~/.agency-inbox/config.yaml
3. Schema defaults
"""

import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from . import conventions
from .schema import InboxConfig

logger = logging.getLogger(__name__)

ENV_BASE_URL = "AGENCY_INBOX_BASE_URL"
ENV_API_TOKEN = "AGENCY_INBOX_API_TOKEN"
ENV_CACHE_TTL = "AGENCY_INBOX_CACHE_TTL"
ENV_SIMULATOR = "AGENCY_INBOX_SIMULATOR"


def config_path() -> Path:
    """Return the path to ~/.agency-inbox/config.yaml, expanded."""
    home = Path(conventions.AGENCY_INBOX_HOME).expanduser()
    return home / conventions.CONFIG_FILENAME


def load_config() -> InboxConfig:
    """Load and parse config.yaml, returning defaults if missing or invalid.

    Environment overrides are applied on top in every case.
    """
    return apply_env_overrides(_load_file())


def _load_file() -> InboxConfig:
    path = config_path()
    if not path.exists():
        return InboxConfig()

    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError):
        logger.warning("Failed to read %s. Using defaults.", path, exc_info=True)
        return InboxConfig()
    if not data:
        return InboxConfig()

    try:
        return InboxConfig(**data)
    except (ValidationError, TypeError) as exc:
        logger.warning(
            "Invalid config.yaml at %s: %s. Using defaults. "
            "Re-run 'agency-inbox config' to inspect.",
            path,
            exc,
        )
        return InboxConfig()


def apply_env_overrides(config: InboxConfig) -> InboxConfig:
    """Return a copy of *config* with AGENCY_INBOX_* variables applied."""
    backend = config.backend.model_copy()
    cache = config.cache.model_copy()

    base_url = os.environ.get(ENV_BASE_URL, "")
    if base_url:
        backend.base_url = base_url
    token = os.environ.get(ENV_API_TOKEN, "")
    if token:
        backend.api_token = token
    simulator = os.environ.get(ENV_SIMULATOR, "")
    if simulator:
        backend.simulator_mode = simulator.lower() in ("1", "true", "yes")
    ttl = os.environ.get(ENV_CACHE_TTL, "")
    if ttl:
        try:
            cache.ttl_seconds = max(0.0, float(ttl))
        except ValueError:
            logger.warning("Ignoring non-numeric %s=%r", ENV_CACHE_TTL, ttl)

    return config.model_copy(update={"backend": backend, "cache": cache})
