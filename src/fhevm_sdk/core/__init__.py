"""State, persistence, instance caching and hydration."""

from fhevm_sdk.core.fhevm_config import FhevmConfig, create_fhevm_config
from fhevm_sdk.core.hydrate import HydrationCoordinator, hydrate
from fhevm_sdk.core.instances import FhevmInstance, InstanceCache
from fhevm_sdk.core.persistence import (
    NoPersistence,
    PersistenceStrategy,
    StoragePersistence,
)
from fhevm_sdk.core.state import (
    Corrupt,
    State,
    StateStore,
    Status,
    Valid,
    validate_state,
)

__all__ = [
    "FhevmConfig",
    "create_fhevm_config",
    "HydrationCoordinator",
    "hydrate",
    "FhevmInstance",
    "InstanceCache",
    "NoPersistence",
    "PersistenceStrategy",
    "StoragePersistence",
    "Corrupt",
    "State",
    "StateStore",
    "Status",
    "Valid",
    "validate_state",
]
