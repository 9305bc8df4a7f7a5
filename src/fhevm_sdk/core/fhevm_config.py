"""The configuration object shared by every consumer of the SDK.

Create one with :func:`create_fhevm_config` when the application starts and
pass it to whatever needs it.  It owns the chain registry, the state store
and the instance cache.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Callable, Optional

from fhevm_sdk.chains import ChainRegistry
from fhevm_sdk.core.instances import InstanceCache
from fhevm_sdk.core.persistence import (
    NoPersistence,
    PersistenceStrategy,
    StoragePersistence,
)
from fhevm_sdk.core.state import State, StateStore, StateUpdate, Status
from fhevm_sdk.storage.backends import get_default_storage
from fhevm_sdk.storage.persisted import PersistedStore

logger = logging.getLogger("fhevm_sdk.core.fhevm_config")

_DEFAULT = object()


class FhevmConfig:
    """Chains, state and cached instances for one application.

    Hydration from *storage* starts on construction unless *ssr* is set.
    """

    def __init__(
        self,
        registry: ChainRegistry,
        storage: Optional[PersistedStore],
        *,
        ssr: bool = False,
        auto_connect: bool = True,
    ) -> None:
        self.registry = registry
        self.storage = storage
        self.ssr = ssr
        self.auto_connect = auto_connect

        persistence: PersistenceStrategy
        if storage is not None:
            persistence = StoragePersistence(storage, registry, skip_hydration=ssr)
        else:
            persistence = NoPersistence()

        self.state_store = StateStore(self._initial_state, persistence)
        self.instances = InstanceCache(lambda: self.state_store.state.chain_id)
        # Without a running loop this reads storage before returning.
        self.state_store.persist.start()

    def _initial_state(self) -> State:
        return State(
            chain_id=self.registry.default_chain,
            status=Status.IDLE,
            instance=None,
            error=None,
        )

    # ------------------------------------------------------------------
    # Chains
    # ------------------------------------------------------------------

    @property
    def chains(self) -> tuple[int, ...]:
        return self.registry.chains

    @property
    def mock_chains(self) -> Optional[Mapping[int, str]]:
        return self.registry.mock_chains

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> State:
        return self.state_store.state

    def set_state(self, update: StateUpdate) -> None:
        self.state_store.set_state(update)

    def subscribe(
        self,
        selector: Callable[[State], Any],
        listener: Callable[[Any, Any], None],
        *,
        equality_fn: Callable[[Any, Any], bool] | None = None,
        emit_immediately: bool = False,
    ) -> Callable[[], None]:
        return self.state_store.subscribe(
            selector,
            listener,
            equality_fn=equality_fn,
            emit_immediately=emit_immediately,
        )

    @property
    def persist(self) -> PersistenceStrategy:
        return self.state_store.persist

    async def wait_hydrated(self) -> None:
        """Wait for the start-up hydration scheduled on a running loop."""
        await self.persist.wait_hydrated()

    async def flush(self) -> None:
        """Wait until pending state writes have reached storage."""
        await self.persist.flush()

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------

    def get_instance(self, chain_id: Optional[int] = None) -> Any:
        """Return the cached instance for *chain_id* (default: current chain)."""
        return self.instances.get(chain_id)


def create_fhevm_config(
    chains: Iterable[int],
    mock_chains: Optional[Mapping[int, str]] = None,
    storage: Any = _DEFAULT,
    *,
    ssr: bool = False,
    auto_connect: bool = True,
) -> FhevmConfig:
    """Build a :class:`FhevmConfig`.

    Parameters
    ----------
    chains:
        Supported chain ids; the first is the default.  Must not be empty.
    mock_chains:
        Mock chain id to local RPC URL.
    storage:
        A :class:`PersistedStore`.  Omit it for the environment default, or
        pass ``None`` to disable persistence entirely.
    ssr:
        Server-side rendering: skip hydration until
        :class:`~fhevm_sdk.core.hydrate.HydrationCoordinator` asks for it.
    auto_connect:
        Hint for hosts to create an instance right after hydration.
    """
    if storage is _DEFAULT:
        storage = PersistedStore(get_default_storage())

    registry = ChainRegistry(chains, mock_chains)
    config = FhevmConfig(registry, storage, ssr=ssr, auto_connect=auto_connect)
    logger.debug(
        f"Created FHEVM config for chains {registry.describe()} "
        f"(ssr={ssr}, persistence={storage is not None})"
    )
    return config
