"""Namespaced storage façade used for persisted SDK state."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable

from fhevm_sdk.storage.backends import BaseStorage, noop_storage
from fhevm_sdk.storage.codec import deserialize as default_deserialize
from fhevm_sdk.storage.codec import serialize as default_serialize

logger = logging.getLogger("fhevm_sdk.storage.persisted")

DEFAULT_KEY_PREFIX = "fhevm"


async def _unwrap(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class PersistedStore:
    """Prefix every key and run values through the codec.

    Several configurations can share one backend as long as each uses its
    own *key* prefix: ``<prefix>.<key>``.
    """

    def __init__(
        self,
        storage: BaseStorage | None = None,
        key: str = DEFAULT_KEY_PREFIX,
        serialize: Callable[[Any], str] = default_serialize,
        deserialize: Callable[[str], Any] = default_deserialize,
    ) -> None:
        self.storage = storage if storage is not None else noop_storage
        self.key = key
        self._serialize = serialize
        self._deserialize = deserialize

    def storage_key(self, key: str) -> str:
        return f"{self.key}.{key}"

    async def get_item(self, key: str, default: Any = None) -> Any:
        """Return the decoded value for *key*, or *default*.

        A backend read failure counts as a missing value.  A stored value
        that cannot be decoded raises ``ValueError``.
        """
        storage_key = self.storage_key(key)
        try:
            raw = await _unwrap(self.storage.get_item(storage_key))
        except Exception as e:
            logger.warning(f"Storage read failed for '{storage_key}': {e}")
            raw = None
        if not raw:
            return default
        value = self._deserialize(raw)
        return default if value is None else value

    async def set_item(self, key: str, value: Any) -> None:
        """Store *value* under *key*; ``None`` removes the key."""
        storage_key = self.storage_key(key)
        if value is None:
            await _unwrap(self.storage.remove_item(storage_key))
        else:
            await _unwrap(self.storage.set_item(storage_key, self._serialize(value)))

    async def remove_item(self, key: str) -> None:
        await _unwrap(self.storage.remove_item(self.storage_key(key)))


def create_storage(
    storage: BaseStorage | None = None,
    key: str = DEFAULT_KEY_PREFIX,
    serialize: Callable[[Any], str] = default_serialize,
    deserialize: Callable[[str], Any] = default_deserialize,
) -> PersistedStore:
    """Convenience factory mirroring :class:`PersistedStore`'s signature."""
    return PersistedStore(
        storage=storage, key=key, serialize=serialize, deserialize=deserialize
    )
