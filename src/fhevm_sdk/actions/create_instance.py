"""Build (or reuse) the FHEVM instance for a chain."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import httpx

from fhevm_sdk.actions.rpc import (
    RelayerMetadata,
    get_chain_id,
    try_fetch_hardhat_relayer_metadata,
)
from fhevm_sdk.core.fhevm_config import FhevmConfig
from fhevm_sdk.core.state import Status
from fhevm_sdk.errors import (
    ChainNotConfiguredError,
    EnvironmentNotSupportedError,
    FhevmAbortError,
)
from fhevm_sdk.storage.persisted import PersistedStore

logger = logging.getLogger("fhevm_sdk.actions.create_instance")


@dataclass(frozen=True)
class ChainContext:
    """Everything a factory gets to know about the chain it builds for."""

    chain_id: int
    rpc_url: Optional[str]
    is_mock: bool
    metadata: Optional[RelayerMetadata] = None
    storage: Optional[PersistedStore] = None


InstanceFactory = Callable[[ChainContext], Awaitable[Any]]


class CancelToken:
    """Cooperative cancellation flag checked between build steps."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise FhevmAbortError()


async def create_instance(
    config: FhevmConfig,
    factory: Optional[InstanceFactory] = None,
    *,
    mock_factory: Optional[InstanceFactory] = None,
    chain_id: Optional[int] = None,
    rpc_url: Optional[str] = None,
    cancel: Optional[CancelToken] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Any:
    """Return the instance for a chain, building it at most once.

    The chain is *chain_id* if given, otherwise whatever ``eth_chainId``
    reports at *rpc_url*.  Mock chains served by an FHEVM Hardhat node are
    built with *mock_factory* (falling back to *factory*); every other chain
    needs *factory*.

    Progress is mirrored in ``config.state``.  A build failure is stored as
    the state's error and re-raised unchanged.  Cancellation through
    *cancel* raises :class:`FhevmAbortError`, caches nothing and returns the
    state to ``idle``.

    Raises
    ------
    ValueError
        Neither *chain_id* nor *rpc_url* was given.
    ChainNotConfiguredError
        The chain is not part of the configuration.
    EnvironmentNotSupportedError
        A production instance was requested without an engine factory.
    """

    def throw_if_aborted() -> None:
        if cancel is not None:
            cancel.raise_if_cancelled()

    if chain_id is None:
        if rpc_url is None:
            raise ValueError("Either chain_id or rpc_url is required.")
        chain_id = await get_chain_id(rpc_url, transport=transport)
        throw_if_aborted()

    registry = config.registry
    if not registry.is_configured(chain_id):
        raise ChainNotConfiguredError(
            chain_id,
            f"Chain {chain_id} is not configured in FHEVM config. "
            f"Configured chains: {registry.describe()}",
        )

    is_mock = registry.is_mock(chain_id)
    if is_mock and rpc_url is None:
        rpc_url = registry.mock_rpc_url(chain_id)
    if not is_mock and factory is None:
        raise EnvironmentNotSupportedError(
            "ENGINE_NOT_AVAILABLE",
            f"Chain {chain_id} needs a production FHEVM engine, but no instance "
            "factory was provided. Use a mock chain or pass a factory.",
        )

    final_chain = chain_id
    config.set_state({
        "chain_id": final_chain,
        "status": Status.LOADING,
        "instance": None,
        "error": None,
    })

    async def build() -> Any:
        metadata = None
        if is_mock and rpc_url is not None:
            metadata = await try_fetch_hardhat_relayer_metadata(rpc_url, transport=transport)
            throw_if_aborted()
        chosen = (mock_factory or factory) if metadata is not None else factory
        if chosen is None:
            raise EnvironmentNotSupportedError(
                "ENGINE_NOT_AVAILABLE",
                f"{rpc_url} is not an FHEVM Hardhat node and no production "
                "instance factory was provided.",
            )
        context = ChainContext(
            chain_id=final_chain,
            rpc_url=rpc_url,
            is_mock=metadata is not None,
            metadata=metadata,
            storage=config.storage,
        )
        instance = await chosen(context)
        throw_if_aborted()
        return instance

    def settle(**fields: Any) -> None:
        # Another caller may have switched chains while this one was waiting.
        if config.state.chain_id != final_chain:
            return
        config.set_state({"chain_id": final_chain, **fields})

    try:
        instance = await config.instances.get_or_create(final_chain, build)
        throw_if_aborted()
    except FhevmAbortError:
        logger.info(f"Instance creation for chain {final_chain} was cancelled")
        settle(status=Status.IDLE, instance=None, error=None)
        raise
    except Exception as error:
        logger.warning(f"Instance creation for chain {final_chain} failed: {error}")
        settle(status=Status.ERROR, instance=None, error=error)
        raise

    settle(status=Status.READY, instance=instance, error=None)
    return instance
