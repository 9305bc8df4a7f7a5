"""Settings file support for the FHEVM SDK.

Loads settings from a YAML file, supports environment variable expansion,
and turns them into a ready :class:`~fhevm_sdk.core.FhevmConfig`.

Example ``fhevm.yaml``::

    chains: [11155111, 31337]
    mock_chains:
      31337: ${HARDHAT_RPC_URL}
    ssr: false
    auto_connect: true
    storage:
      enabled: true
      key: fhevm
      path: .fhevm/state.db
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from fhevm_sdk.core.fhevm_config import FhevmConfig, create_fhevm_config
from fhevm_sdk.storage.backends import get_default_storage
from fhevm_sdk.storage.persisted import DEFAULT_KEY_PREFIX, PersistedStore


# ---------------------------------------------------------------------------
# Environment-variable expansion helper
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with their environment values.

    Unset variables are left as-is so validation can report them.
    """

    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), match.group(0))

    return _ENV_VAR_RE.sub(_replace, value)


def _expand_env_recursive(obj: object) -> object:
    if isinstance(obj, str):
        return _expand_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _expand_env_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# Pydantic v2 models
# ---------------------------------------------------------------------------


class StorageSettings(BaseModel):
    """Where and whether to persist the selected chain."""

    enabled: bool = True
    key: str = DEFAULT_KEY_PREFIX
    path: Optional[Path] = None  # None = no durable storage (noop backend)


class FhevmSettings(BaseModel):
    """Root settings object."""

    chains: list[int]
    mock_chains: Optional[dict[int, str]] = None
    ssr: bool = False
    auto_connect: bool = True
    storage: StorageSettings = Field(default_factory=StorageSettings)

    @field_validator("chains")
    @classmethod
    def _non_empty(cls, value: list[int]) -> list[int]:
        if not value:
            raise ValueError("at least one chain is required")
        return value


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def load_settings(path: Path) -> FhevmSettings:
    """Load and validate settings from a YAML file.

    Environment variable placeholders (``${VAR}``) are expanded before
    validation.
    """
    raw_text = Path(path).read_text(encoding="utf-8")
    raw_data = yaml.safe_load(raw_text) or {}
    expanded = _expand_env_recursive(raw_data)
    return FhevmSettings.model_validate(expanded)


def save_settings(settings: FhevmSettings, path: Path) -> None:
    """Serialize :class:`FhevmSettings` to a YAML file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = settings.model_dump(mode="json", exclude_none=True)
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(data, fh, default_flow_style=False, sort_keys=False)


def config_from_settings(settings: FhevmSettings) -> FhevmConfig:
    """Create a :class:`FhevmConfig` described by *settings*."""
    storage: Optional[PersistedStore] = None
    if settings.storage.enabled:
        storage = PersistedStore(
            get_default_storage(settings.storage.path),
            key=settings.storage.key,
        )
    return create_fhevm_config(
        settings.chains,
        settings.mock_chains,
        storage,
        ssr=settings.ssr,
        auto_connect=settings.auto_connect,
    )
