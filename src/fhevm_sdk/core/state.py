"""Observable state container for an FHEVM configuration.

The store holds exactly one :class:`State` value.  Every mutation goes
through :meth:`StateStore.set_state`, which validates the candidate value
and falls back to the initial state when it is corrupt.  Subscribers observe
a projection of the state and are only called when that projection changes.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

if TYPE_CHECKING:
    from fhevm_sdk.core.persistence import PersistenceStrategy

logger = logging.getLogger("fhevm_sdk.core.state")


class Status(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class State:
    chain_id: int
    status: Status = Status.IDLE
    instance: Any = None
    error: Optional[BaseException] = None


STATE_KEYS = ("chain_id", "status", "instance", "error")

# camelCase spellings accepted from server-rendered payloads
_KEY_ALIASES = {"chainId": "chain_id"}


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Valid:
    state: State


@dataclass(frozen=True)
class Corrupt:
    reason: str


ValidationResult = Union[Valid, Corrupt]


def validate_state(value: object) -> ValidationResult:
    """Check that *value* is a complete, self-consistent state."""
    if isinstance(value, State):
        fields = {k: getattr(value, k) for k in STATE_KEYS}
    elif isinstance(value, Mapping):
        fields = {_KEY_ALIASES.get(k, k): v for k, v in value.items()}
        missing = [k for k in STATE_KEYS if k not in fields]
        if missing:
            return Corrupt(f"missing keys: {', '.join(missing)}")
    else:
        return Corrupt(f"not a state object: {type(value).__name__}")

    chain_id = fields["chain_id"]
    if isinstance(chain_id, bool) or not isinstance(chain_id, int):
        return Corrupt(f"invalid chain id: {chain_id!r}")
    try:
        status = Status(fields["status"])
    except ValueError:
        return Corrupt(f"unknown status: {fields['status']!r}")

    instance = fields["instance"]
    error = fields["error"]
    if status is Status.READY and (instance is None or error is not None):
        return Corrupt("ready state requires an instance and no error")
    if status is not Status.READY and instance is not None:
        return Corrupt(f"{status.value} state cannot hold an instance")
    if status is not Status.ERROR and error is not None:
        return Corrupt(f"{status.value} state cannot hold an error")

    return Valid(State(chain_id=chain_id, status=status, instance=instance, error=error))


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

StateUpdate = Union[State, Mapping[str, Any], Callable[[State], Any]]


def default_equality(a: Any, b: Any) -> bool:
    return a is b or a == b


@dataclass(eq=False)
class _Subscription:
    selector: Callable[[State], Any]
    listener: Callable[[Any, Any], None]
    equality_fn: Callable[[Any, Any], bool]
    last: Any = field(default=None)


class StateStore:
    """Holds the current :class:`State` and notifies subscribers.

    Parameters
    ----------
    initial_state:
        Factory producing the canonical initial state.  Called again on
        every corruption reset, so it always reflects the current chains.
    persistence:
        Strategy that mirrors committed states to storage.  Defaults to no
        persistence.
    """

    def __init__(
        self,
        initial_state: Callable[[], State],
        persistence: Optional["PersistenceStrategy"] = None,
    ) -> None:
        from fhevm_sdk.core.persistence import NoPersistence

        self._initial_state = initial_state
        self._state = initial_state()
        self._subscriptions: list[_Subscription] = []
        # Bumped on every commit; lets hydration tell whether the state moved.
        self.version = 0
        self.persist: PersistenceStrategy = persistence or NoPersistence()
        self.persist.bind(self)

    @property
    def state(self) -> State:
        return self._state

    def get_state(self) -> State:
        return self._state

    def get_initial_state(self) -> State:
        return self._initial_state()

    def set_state(self, update: StateUpdate) -> None:
        """Replace the state, or reset it if the new value is corrupt."""
        candidate = update(self._state) if callable(update) else update
        result = validate_state(candidate)
        if isinstance(result, Corrupt):
            logger.debug(f"Discarding corrupt state ({result.reason}), resetting")
            new_state = self._initial_state()
        else:
            new_state = result.state
        self.replace(new_state)

    def replace(self, state: State, *, persist: bool = True) -> None:
        """Commit an already validated *state* and notify subscribers."""
        self._state = state
        self.version += 1
        if persist:
            self.persist.write(state)
        self._notify(state)

    def subscribe(
        self,
        selector: Callable[[State], Any],
        listener: Callable[[Any, Any], None],
        *,
        equality_fn: Callable[[Any, Any], bool] | None = None,
        emit_immediately: bool = False,
    ) -> Callable[[], None]:
        """Call *listener(selected, previous)* when ``selector(state)`` changes.

        Returns a function that removes the subscription.
        """
        sub = _Subscription(
            selector=selector,
            listener=listener,
            equality_fn=equality_fn or default_equality,
            last=selector(self._state),
        )
        self._subscriptions.append(sub)
        if emit_immediately:
            self._call(sub, sub.last, sub.last)

        def unsubscribe() -> None:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

        return unsubscribe

    def _notify(self, state: State) -> None:
        for sub in list(self._subscriptions):
            # A listener committed a newer state, which notified everyone.
            if self._state is not state:
                return
            selected = sub.selector(state)
            if sub.equality_fn(sub.last, selected):
                continue
            previous, sub.last = sub.last, selected
            self._call(sub, selected, previous)

    @staticmethod
    def _call(sub: _Subscription, selected: Any, previous: Any) -> None:
        try:
            sub.listener(selected, previous)
        except Exception as e:
            logger.error(f"State listener error: {e}")
