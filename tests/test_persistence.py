"""Persistence tests: what is written, and how it is read back."""
import asyncio
import json

import pytest

from fhevm_sdk.chains import ChainRegistry
from fhevm_sdk.core import (
    FhevmConfig,
    NoPersistence,
    PersistenceStrategy,
    Status,
    create_fhevm_config,
)
from fhevm_sdk.storage import MemoryStorage, PersistedStore, serialize


def test_persisted_chain_outside_registry_falls_back(persisted_backend, store_for):
    config = create_fhevm_config([31337], storage=store_for(persisted_backend(9999)))
    assert config.state.chain_id == 31337
    assert config.persist.has_hydrated()


def test_persisted_configured_chain_is_accepted(persisted_backend, store_for):
    config = create_fhevm_config([31337, 1337], storage=store_for(persisted_backend(1337)))
    assert config.state.chain_id == 1337
    assert config.state.status is Status.IDLE


def test_persisted_mock_chain_is_accepted(persisted_backend, store_for):
    config = create_fhevm_config(
        [11155111],
        {31337: "http://localhost:8545"},
        storage=store_for(persisted_backend(31337)),
    )
    assert config.state.chain_id == 31337


def test_only_chain_id_is_written(backend, store_for):
    config = create_fhevm_config([31337, 1337], storage=store_for(backend))
    config.set_state({
        "chain_id": 1337,
        "status": "error",
        "instance": None,
        "error": RuntimeError("relayer down"),
    })
    assert json.loads(backend.data["fhevm.store"]) == {"state": {"chainId": 1337}, "version": 1}


def test_runtime_fields_never_survive_reload(backend, store_for):
    config = create_fhevm_config([31337, 1337], storage=store_for(backend))
    config.set_state({
        "chain_id": 1337,
        "status": "error",
        "instance": None,
        "error": RuntimeError("relayer down"),
    })

    reloaded = create_fhevm_config([31337, 1337], storage=store_for(backend))
    assert reloaded.state.chain_id == 1337
    assert reloaded.state.status is Status.IDLE
    assert reloaded.state.error is None
    assert reloaded.state.instance is None


def test_smuggled_runtime_fields_are_ignored(store_for):
    envelope = {
        "state": {"chainId": 1337, "status": "ready", "error": "boom", "instance": {}},
        "version": 1,
    }
    backend = MemoryStorage({"fhevm.store": json.dumps(envelope)})
    config = create_fhevm_config([31337, 1337], storage=store_for(backend))
    assert config.state.chain_id == 1337
    assert config.state.status is Status.IDLE
    assert config.state.error is None


def test_malformed_envelope_is_treated_as_absent(store_for):
    for raw in ("{not json", '"just a string"', '{"state": {"chainId": "x"}}', '{"state": {"chainId": true}}'):
        backend = MemoryStorage({"fhevm.store": raw})
        config = create_fhevm_config([31337, 1337], storage=store_for(backend))
        assert config.state.chain_id == 31337
        assert config.persist.has_hydrated()


def test_other_version_is_ignored(persisted_backend, store_for):
    config = create_fhevm_config([31337, 1337], storage=store_for(persisted_backend(1337, version=2)))
    assert config.state.chain_id == 31337


def test_ssr_skips_hydration_until_asked(persisted_backend, store_for):
    config = create_fhevm_config(
        [31337, 1337], storage=store_for(persisted_backend(1337)), ssr=True
    )
    assert config.state.chain_id == 31337
    assert not config.persist.has_hydrated()

    asyncio.run(config.persist.rehydrate())
    assert config.state.chain_id == 1337
    assert config.persist.has_hydrated()


def test_no_storage_means_no_persistence():
    config = create_fhevm_config([31337], storage=None)
    assert config.storage is None
    assert isinstance(config.persist, NoPersistence)


def test_hydration_and_writes_on_a_running_loop(persisted_backend):
    backend = persisted_backend(1337)

    async def main():
        config = create_fhevm_config([31337, 1337], storage=PersistedStore(backend))
        await config.wait_hydrated()
        assert config.state.chain_id == 1337

        for chain_id in (31337, 1337, 31337):
            config.set_state({"chain_id": chain_id, "status": "idle", "instance": None, "error": None})
        await config.flush()

    asyncio.run(main())
    assert json.loads(backend.data["fhevm.store"])["state"] == {"chainId": 31337}


def test_writes_are_applied_in_order_with_async_backend():
    class SlowFirstWrite:
        def __init__(self):
            self.data = {}
            self.writes = 0

        async def get_item(self, key):
            return self.data.get(key)

        async def set_item(self, key, value):
            self.writes += 1
            if self.writes == 1:
                await asyncio.sleep(0.01)
            self.data[key] = value

        async def remove_item(self, key):
            self.data.pop(key, None)

    backend = SlowFirstWrite()

    async def main():
        config = create_fhevm_config([31337, 1337], storage=PersistedStore(backend))
        await config.wait_hydrated()
        config.set_state({"chain_id": 1337, "status": "idle", "instance": None, "error": None})
        config.set_state({"chain_id": 31337, "status": "idle", "instance": None, "error": None})
        await config.flush()

    asyncio.run(main())
    assert json.loads(backend.data["fhevm.store"])["state"]["chainId"] == 31337


class SlowRead:
    """Async backend whose reads take a while to come back."""

    def __init__(self, chain_id):
        self.data = {"fhevm.store": serialize({"state": {"chainId": chain_id}, "version": 1})}

    async def get_item(self, key):
        value = self.data.get(key)
        await asyncio.sleep(0.01)
        return value

    async def set_item(self, key, value):
        self.data[key] = value

    async def remove_item(self, key):
        self.data.pop(key, None)


def test_state_committed_while_hydrating_is_kept():
    backend = SlowRead(1337)
    instance = object()

    async def main():
        config = create_fhevm_config([31337, 1337], storage=PersistedStore(backend))
        assert not config.persist.has_hydrated()
        config.set_state({"chain_id": 31337, "status": "ready", "instance": instance, "error": None})
        await config.wait_hydrated()
        return config

    config = asyncio.run(main())
    assert config.persist.has_hydrated()
    assert config.state.chain_id == 31337
    assert config.state.status is Status.READY
    assert config.state.instance is instance


def test_untouched_state_adopts_slow_read():
    async def main():
        config = create_fhevm_config([31337, 1337], storage=PersistedStore(SlowRead(1337)))
        await config.wait_hydrated()
        return config

    config = asyncio.run(main())
    assert config.state.chain_id == 1337
    assert config.state.status is Status.IDLE


def test_direct_construction_hydrates(persisted_backend, store_for):
    config = FhevmConfig(ChainRegistry([31337, 1337]), store_for(persisted_backend(1337)))
    assert config.persist.has_hydrated()
    assert config.state.chain_id == 1337


def test_direct_construction_with_ssr_waits(persisted_backend, store_for):
    config = FhevmConfig(ChainRegistry([31337, 1337]), store_for(persisted_backend(1337)), ssr=True)
    assert not config.persist.has_hydrated()
    assert config.state.chain_id == 31337


def test_strategy_must_implement_write_and_rehydrate():
    with pytest.raises(TypeError):
        PersistenceStrategy()

    class WriteOnly(PersistenceStrategy):
        def write(self, state):
            pass

    with pytest.raises(TypeError):
        WriteOnly()
