"""Registry of the chains an FHEVM configuration is scoped to."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Callable

logger = logging.getLogger("fhevm_sdk.chains")

# Local Hardhat node, always treated as a mock construction path.
DEFAULT_MOCK_CHAINS: dict[int, str] = {
    31337: "http://localhost:8545",
}

ChainsListener = Callable[[tuple[int, ...], tuple[int, ...]], None]


class ChainRegistry:
    """Ordered, non-empty set of chain ids plus optional mock chains.

    Parameters
    ----------
    chains:
        The "real" chains, in preference order.  The first one is the
        default chain of a fresh state.
    mock_chains:
        Mapping of chain id to the RPC URL of a local node.  Mock chains are
        configured chains too, but instances for them are built through the
        lightweight mock path.
    """

    def __init__(
        self,
        chains: Iterable[int],
        mock_chains: Mapping[int, str] | None = None,
    ) -> None:
        chains = tuple(chains)
        if not chains:
            raise ValueError("At least one chain must be configured.")
        self._chains: tuple[int, ...] = chains
        self._mock_chains: dict[int, str] | None = (
            dict(mock_chains) if mock_chains is not None else None
        )
        self._listeners: list[ChainsListener] = []

    @property
    def chains(self) -> tuple[int, ...]:
        return self._chains

    @property
    def default_chain(self) -> int:
        return self._chains[0]

    @property
    def mock_chains(self) -> Mapping[int, str] | None:
        """Read-only view of the configured mock chains, or ``None``."""
        if self._mock_chains is None:
            return None
        return MappingProxyType(self._mock_chains)

    def replace(self, new_chains: Iterable[int]) -> None:
        """Swap in a new chain list.  An empty list is ignored."""
        new_chains = tuple(new_chains)
        if not new_chains:
            logger.debug("Ignoring empty chain list replacement")
            return
        previous = self._chains
        self._chains = new_chains
        for listener in list(self._listeners):
            try:
                listener(new_chains, previous)
            except Exception as e:
                logger.error(f"Chain listener error: {e}")

    def subscribe(self, listener: ChainsListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def is_configured(self, chain_id: object) -> bool:
        """Return *True* if *chain_id* is a configured or mock chain."""
        if isinstance(chain_id, bool) or not isinstance(chain_id, int):
            return False
        if chain_id in self._chains:
            return True
        return self._mock_chains is not None and chain_id in self._mock_chains

    def is_mock(self, chain_id: int) -> bool:
        return chain_id in self._merged_mock_chains()

    def mock_rpc_url(self, chain_id: int) -> str | None:
        """Return the bootstrap RPC URL for a mock chain, or ``None``."""
        return self._merged_mock_chains().get(chain_id)

    def _merged_mock_chains(self) -> dict[int, str]:
        return {**DEFAULT_MOCK_CHAINS, **(self._mock_chains or {})}

    def describe(self) -> str:
        text = f"[{', '.join(str(c) for c in self._chains)}]"
        if self._mock_chains:
            text += f", mock chains: [{', '.join(str(c) for c in self._mock_chains)}]"
        return text
