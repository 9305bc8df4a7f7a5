"""FHEVM SDK storage layer -- codec, backends and the persisted-store façade."""

from fhevm_sdk.storage.backends import (
    BaseStorage,
    GuardedStorage,
    MemoryStorage,
    NoopStorage,
    SqliteStorage,
    get_default_storage,
    noop_storage,
)
from fhevm_sdk.storage.codec import deserialize, serialize
from fhevm_sdk.storage.models import PartializedState, PersistedEnvelope
from fhevm_sdk.storage.persisted import (
    DEFAULT_KEY_PREFIX,
    PersistedStore,
    create_storage,
)

__all__ = [
    "BaseStorage",
    "GuardedStorage",
    "MemoryStorage",
    "NoopStorage",
    "SqliteStorage",
    "get_default_storage",
    "noop_storage",
    "deserialize",
    "serialize",
    "PartializedState",
    "PersistedEnvelope",
    "DEFAULT_KEY_PREFIX",
    "PersistedStore",
    "create_storage",
]
