"""FHEVM SDK core -- chain configuration, state, persistence and instance caching."""

from fhevm_sdk.actions import CancelToken, ChainContext, create_instance
from fhevm_sdk.chains import ChainRegistry
from fhevm_sdk.config import FhevmSettings, config_from_settings, load_settings
from fhevm_sdk.core import (
    FhevmConfig,
    HydrationCoordinator,
    State,
    Status,
    create_fhevm_config,
    hydrate,
)
from fhevm_sdk.errors import (
    ChainNotConfiguredError,
    EnvironmentNotSupportedError,
    FhevmAbortError,
    FhevmError,
)
from fhevm_sdk.storage import (
    MemoryStorage,
    NoopStorage,
    PersistedStore,
    SqliteStorage,
    create_storage,
    get_default_storage,
)

__version__ = "0.1.0"

__all__ = [
    "CancelToken",
    "ChainContext",
    "create_instance",
    "ChainRegistry",
    "FhevmSettings",
    "config_from_settings",
    "load_settings",
    "FhevmConfig",
    "HydrationCoordinator",
    "State",
    "Status",
    "create_fhevm_config",
    "hydrate",
    "ChainNotConfiguredError",
    "EnvironmentNotSupportedError",
    "FhevmAbortError",
    "FhevmError",
    "MemoryStorage",
    "NoopStorage",
    "PersistedStore",
    "SqliteStorage",
    "create_storage",
    "get_default_storage",
]
