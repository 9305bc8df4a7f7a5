"""Strategies that mirror :class:`StateStore` contents to storage.

Only the chain id is ever written.  On reload the instance, error and
status are reset, because they describe the previous process and not this
one.  State committed while the start-up read is pending is kept as is.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Coroutine, Optional

from pydantic import ValidationError

from fhevm_sdk.chains import ChainRegistry
from fhevm_sdk.storage.models import (
    ENVELOPE_VERSION,
    STATE_STORAGE_KEY,
    PartializedState,
    PersistedEnvelope,
)
from fhevm_sdk.storage.persisted import PersistedStore

if TYPE_CHECKING:
    from fhevm_sdk.core.state import State, StateStore

logger = logging.getLogger("fhevm_sdk.core.persistence")


def run_or_schedule(coro: Coroutine[Any, Any, Any]) -> Optional[asyncio.Task]:
    """Schedule *coro* on the running loop, or run it to completion now.

    Returns the task when one was scheduled, ``None`` when the coroutine
    already finished.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        asyncio.run(coro)
        return None
    return loop.create_task(coro)


class PersistenceStrategy(ABC):
    """Interface injected into :class:`StateStore`."""

    def __init__(self) -> None:
        self._store: Optional["StateStore"] = None
        self._hydrated = False

    def bind(self, store: "StateStore") -> None:
        self._store = store

    @property
    def store(self) -> "StateStore":
        assert self._store is not None, "Persistence strategy is not bound to a store."
        return self._store

    @abstractmethod
    def write(self, state: "State") -> None:
        """Mirror a committed *state* to storage."""

    @abstractmethod
    async def rehydrate(self) -> None:
        """Merge stored state into the store and mark it hydrated."""

    def start(self) -> None:
        """Begin hydrating right away (the non-SSR path)."""

    def has_hydrated(self) -> bool:
        return self._hydrated

    def hydration_pending(self) -> bool:
        """True while a hydration started by :meth:`start` is still running."""
        return False

    async def wait_hydrated(self) -> None:
        """Wait for a hydration started by :meth:`start`, if any."""

    async def flush(self) -> None:
        """Wait until every scheduled write has reached storage."""


class NoPersistence(PersistenceStrategy):
    """Keeps state in memory only."""

    def write(self, state: "State") -> None:
        return None

    async def rehydrate(self) -> None:
        self._hydrated = True


class StoragePersistence(PersistenceStrategy):
    """Persist ``{chainId}`` through a :class:`PersistedStore`.

    Parameters
    ----------
    storage:
        Namespaced façade over the backend.
    registry:
        Used to validate the persisted chain id on reload.
    skip_hydration:
        When *True* (SSR), :meth:`start` does nothing and hydration only
        happens through an explicit :meth:`rehydrate`.
    """

    def __init__(
        self,
        storage: PersistedStore,
        registry: ChainRegistry,
        *,
        name: str = STATE_STORAGE_KEY,
        version: int = ENVELOPE_VERSION,
        skip_hydration: bool = False,
    ) -> None:
        super().__init__()
        self.storage = storage
        self.registry = registry
        self.name = name
        self.version = version
        self.skip_hydration = skip_hydration
        self._pending: Optional[asyncio.Task] = None
        self._hydration: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Projection and merge
    # ------------------------------------------------------------------

    @staticmethod
    def partialize(state: "State") -> dict:
        return {"chainId": state.chain_id}

    def merge(self, persisted: Optional[PartializedState], current: "State") -> "State":
        from fhevm_sdk.core.state import Status

        chain_id = current.chain_id
        if persisted is not None and self.registry.is_configured(persisted.chain_id):
            chain_id = persisted.chain_id
        elif not self.registry.is_configured(chain_id):
            chain_id = self.registry.default_chain
        return replace(
            current,
            chain_id=chain_id,
            status=Status.IDLE,
            instance=None,
            error=None,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def write(self, state: "State") -> None:
        # In SSR mode storage is not read yet; writing now would clobber it.
        if self.skip_hydration and not self._hydrated:
            return
        envelope = {"state": self.partialize(state), "version": self.version}
        self._pending = run_or_schedule(self._write_after(self._pending, envelope))

    async def _write_after(self, previous: Optional[asyncio.Task], envelope: dict) -> None:
        if (
            previous is not None
            and not previous.done()
            and previous.get_loop() is asyncio.get_running_loop()
        ):
            await asyncio.wait([previous])
        await self.storage.set_item(self.name, envelope)

    async def flush(self) -> None:
        pending = self._pending
        if pending is not None and pending.get_loop() is asyncio.get_running_loop():
            await pending

    # ------------------------------------------------------------------
    # Hydration
    # ------------------------------------------------------------------

    async def read_envelope(self) -> Optional[PersistedEnvelope]:
        """Load the stored envelope, treating anything unusable as absent."""
        try:
            raw = await self.storage.get_item(self.name)
        except ValueError as e:
            logger.warning(f"Discarding unreadable persisted state: {e}")
            return None
        if raw is None:
            return None
        try:
            envelope = PersistedEnvelope.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Discarding malformed persisted state: {e}")
            return None
        if envelope.version != self.version:
            logger.warning(
                f"Persisted state version {envelope.version} does not match "
                f"{self.version}, ignoring it"
            )
            return None
        return envelope

    async def _load(self) -> Optional[PersistedEnvelope]:
        try:
            return await self.read_envelope()
        except Exception as e:
            logger.warning(f"Rehydration failed, starting fresh: {e}")
            return None

    def _apply(self, envelope: Optional[PersistedEnvelope]) -> None:
        merged = self.merge(envelope.state if envelope else None, self.store.state)
        self.store.replace(merged, persist=False)
        self._hydrated = True
        logger.debug(f"Rehydrated state for chain {merged.chain_id}")

    async def rehydrate(self) -> None:
        self._apply(await self._load())

    async def _hydrate_from(self, version: int) -> None:
        envelope = await self._load()
        if self.store.version != version:
            # Committed while the read was pending; that state is newer.
            logger.debug(
                f"State changed during hydration, keeping chain {self.store.state.chain_id}"
            )
            self._hydrated = True
            return
        self._apply(envelope)

    def start(self) -> None:
        if self.skip_hydration:
            return
        self._hydration = run_or_schedule(self._hydrate_from(self.store.version))

    def hydration_pending(self) -> bool:
        return self._hydration is not None and not self._hydration.done()

    async def wait_hydrated(self) -> None:
        hydration = self._hydration
        if hydration is not None and hydration.get_loop() is asyncio.get_running_loop():
            await hydration
