"""Per-chain cache of FHEVM engine instances."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol

logger = logging.getLogger("fhevm_sdk.core.instances")


class FhevmInstance(Protocol):
    """The engine handle.  Treated as opaque by this package."""

    def get_public_key(self) -> Any: ...

    def create_encrypted_input(self, contract_address: str, user_address: str) -> Any: ...

    def user_decrypt(self, *args: Any, **kwargs: Any) -> Any: ...

    def public_decrypt(self, handles: list) -> Any: ...


class InstanceCache:
    """Maps chain ids to constructed instances.

    Construction is expensive (key download, engine start-up), so
    :meth:`get_or_create` lets only one build per chain run at a time and
    hands its outcome to every caller that asked while it was running.

    Parameters
    ----------
    current_chain:
        Returns the chain id to use when :meth:`get` is called without one.
    """

    def __init__(self, current_chain: Callable[[], int]) -> None:
        self._current_chain = current_chain
        self._instances: dict[int, Any] = {}
        self._in_flight: dict[int, asyncio.Future] = {}

    def get(self, chain_id: Optional[int] = None) -> Any:
        """Return the cached instance for *chain_id* (default: current chain)."""
        if chain_id is None:
            chain_id = self._current_chain()
        return self._instances.get(chain_id)

    def set(self, chain_id: int, instance: Any) -> None:
        self._instances[chain_id] = instance

    def invalidate(self, chain_id: int) -> None:
        if self._instances.pop(chain_id, None) is not None:
            logger.debug(f"Invalidated cached instance for chain {chain_id}")

    def clear(self) -> None:
        self._instances.clear()

    def is_building(self, chain_id: int) -> bool:
        return chain_id in self._in_flight

    def __contains__(self, chain_id: object) -> bool:
        return chain_id in self._instances

    def __len__(self) -> int:
        return len(self._instances)

    async def get_or_create(
        self,
        chain_id: int,
        build: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Return the cached instance or build it, at most once concurrently.

        If *build* raises, the chain is left uncached and the exception is
        raised to every waiting caller; the next call starts a fresh build.
        Cancelling one waiting caller does not cancel the shared build.
        """
        cached = self._instances.get(chain_id)
        if cached is not None:
            return cached

        flight = self._in_flight.get(chain_id)
        if flight is None:
            flight = asyncio.ensure_future(self._build(chain_id, build))
            flight.add_done_callback(self._consume_result)
            self._in_flight[chain_id] = flight
        else:
            logger.debug(f"Joining in-flight instance build for chain {chain_id}")
        return await asyncio.shield(flight)

    async def _build(self, chain_id: int, build: Callable[[], Awaitable[Any]]) -> Any:
        logger.info(f"Building FHEVM instance for chain {chain_id}")
        try:
            instance = await build()
        except BaseException:
            self._instances.pop(chain_id, None)
            raise
        else:
            self._instances[chain_id] = instance
            return instance
        finally:
            self._in_flight.pop(chain_id, None)

    @staticmethod
    def _consume_result(flight: asyncio.Future) -> None:
        # Every waiter may have been cancelled; mark the outcome as seen.
        if not flight.cancelled():
            flight.exception()
