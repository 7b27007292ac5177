"""Load the promoter configuration from YAML and the environment.

Configuration file (all keys optional except ``state_store_url``)::

    state_store_url: https://github.com/acme/model-gitops.git
    staging_path: staging
    production_path: production
    approver_identity: release-manager
    credentials:
      username: ci-bot
      token: ...
    steps:
      - name: build
        command: make descriptor
      - name: e2e
        command: make e2e
        timeout_seconds: 900

Environment variables override the file:

    MODELSHIP_STATE_STORE_URL  -> state_store_url
    MODELSHIP_APPROVER         -> approver_identity
    MODELSHIP_GIT_USERNAME     -> credentials.username
    MODELSHIP_GIT_TOKEN        -> credentials.token
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from modelship.errors import ConfigurationError
from modelship.schemas.promotion import PromoterConfig

logger = structlog.get_logger(__name__)

ENV_STATE_STORE_URL = "MODELSHIP_STATE_STORE_URL"
ENV_APPROVER = "MODELSHIP_APPROVER"
ENV_GIT_USERNAME = "MODELSHIP_GIT_USERNAME"
ENV_GIT_TOKEN = "MODELSHIP_GIT_TOKEN"


def _read_file(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text())
    except OSError as e:
        raise ConfigurationError(f"cannot read {path}: {e.strerror or e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"{path} is not valid YAML: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping, got {type(data).__name__}")
    return data


def apply_environment(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Overlay MODELSHIP_* environment variables onto raw configuration data."""
    merged = dict(data)
    if environ.get(ENV_STATE_STORE_URL):
        merged["state_store_url"] = environ[ENV_STATE_STORE_URL]
    if environ.get(ENV_APPROVER):
        merged["approver_identity"] = environ[ENV_APPROVER]

    username = environ.get(ENV_GIT_USERNAME)
    token = environ.get(ENV_GIT_TOKEN)
    if username or token:
        credentials = merged.get("credentials")
        credentials = dict(credentials) if isinstance(credentials, dict) else {}
        if username:
            credentials["username"] = username
        if token:
            credentials["token"] = token
        merged["credentials"] = credentials
    return merged


def load_config(
    path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> PromoterConfig:
    """Build a PromoterConfig from an optional YAML file and the environment.

    Args:
        path: YAML configuration file; environment variables only when None.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        Validated PromoterConfig.

    Raises:
        ConfigurationError: If the file cannot be read or parsed, or the
            merged configuration does not validate.
    """
    environ = os.environ if environ is None else environ
    data = _read_file(path) if path is not None else {}
    data = apply_environment(data, environ)

    try:
        config = PromoterConfig.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'config'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(problems) from e

    logger.debug(
        "config_loaded",
        path=str(path) if path else None,
        environments=[env.name for env in config.environments],
        steps=len(config.steps),
    )
    return config


__all__ = [
    "ENV_APPROVER",
    "ENV_GIT_TOKEN",
    "ENV_GIT_USERNAME",
    "ENV_STATE_STORE_URL",
    "apply_environment",
    "load_config",
]
