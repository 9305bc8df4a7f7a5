from fhevm_sdk.actions.create_instance import (
    CancelToken,
    ChainContext,
    InstanceFactory,
    create_instance,
)
from fhevm_sdk.actions.rpc import RelayerMetadata

__all__ = [
    "CancelToken",
    "ChainContext",
    "InstanceFactory",
    "create_instance",
    "RelayerMetadata",
]
