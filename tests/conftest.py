"""pytest fixtures for the FHEVM SDK tests."""
import pytest

from fhevm_sdk.storage import MemoryStorage, PersistedStore, serialize


@pytest.fixture
def backend():
    """Empty synchronous in-memory backend."""
    return MemoryStorage()


@pytest.fixture
def persisted_backend():
    """Return a factory for a backend already holding a persisted chain id."""

    def _make(chain_id, version=1):
        envelope = {"state": {"chainId": chain_id}, "version": version}
        return MemoryStorage({"fhevm.store": serialize(envelope)})

    return _make


@pytest.fixture
def store_for():
    """Wrap a backend in the default-prefixed façade."""

    def _make(backend):
        return PersistedStore(backend)

    return _make
