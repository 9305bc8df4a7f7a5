"""Reconcile server-computed state with the client store, once."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional, Union

from fhevm_sdk.core.fhevm_config import FhevmConfig
from fhevm_sdk.core.state import State, Status

logger = logging.getLogger("fhevm_sdk.core.hydrate")

InitialState = Union[State, Mapping[str, Any]]


def _initial_chain_id(initial_state: InitialState) -> Any:
    if isinstance(initial_state, State):
        return initial_state.chain_id
    if "chain_id" in initial_state:
        return initial_state["chain_id"]
    return initial_state.get("chainId")


class HydrationCoordinator:
    """Drives hydration for client-only and SSR hosts.

    Client-only hosts get everything done by :meth:`install` when the store
    already read storage.  If that read is still pending on the running
    loop, awaiting :meth:`on_mount` completes it.  SSR hosts must
    call :meth:`on_mount` after the first client render; it rehydrates from
    storage exactly once and never raises.

    The coordinator only ever moves ``status`` to ``loading`` as a hint.
    Building the instance is left to the host.
    """

    def __init__(
        self,
        config: FhevmConfig,
        initial_state: Optional[InitialState] = None,
        auto_connect: Optional[bool] = None,
    ) -> None:
        self.config = config
        self.initial_state = initial_state
        self.auto_connect = bool(auto_connect)
        self.installed = False
        self.mounted = False

    def install(self) -> None:
        if self.installed:
            return
        self.installed = True
        if not self.config.ssr and self.config.persist.hydration_pending():
            # Storage is still being read on the running loop; on_mount
            # finishes the job once it has been.
            return
        if self.initial_state is not None and not self.config.persist.has_hydrated():
            self._apply_initial_state(self.initial_state)
        if not self.config.ssr:
            self._mount()

    async def on_mount(self) -> None:
        if not self.config.ssr:
            await self.config.wait_hydrated()
            self._mount()
            return
        if self.config.persist.has_hydrated():
            return
        try:
            await self.config.persist.rehydrate()
        except Exception as e:
            logger.warning(f"Hydration failed, keeping initial state: {e}")
        self._mount()

    def _mount(self) -> None:
        if self.mounted:
            return
        self.mounted = True
        if self.auto_connect and self.config.state.status is Status.IDLE:
            self.config.set_state(lambda s: {
                "chain_id": s.chain_id,
                "status": Status.LOADING,
                "instance": None,
                "error": None,
            })

    def _apply_initial_state(self, initial_state: InitialState) -> None:
        chain_id = _initial_chain_id(initial_state)
        if not self.config.registry.is_configured(chain_id):
            logger.debug(
                f"Initial chain {chain_id!r} is not configured, "
                f"using {self.config.registry.default_chain}"
            )
            chain_id = self.config.registry.default_chain
        self.config.set_state({
            "chain_id": chain_id,
            "status": Status.LOADING if self.auto_connect else Status.IDLE,
            "instance": None,
            "error": None,
        })


def hydrate(
    config: FhevmConfig,
    initial_state: Optional[InitialState] = None,
    auto_connect: Optional[bool] = None,
) -> HydrationCoordinator:
    """Create and install a :class:`HydrationCoordinator`."""
    coordinator = HydrationCoordinator(config, initial_state, auto_connect)
    coordinator.install()
    return coordinator
