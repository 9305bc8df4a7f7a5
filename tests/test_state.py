"""State store tests: validation, corruption guard and subscriptions."""
import json
import logging

from fhevm_sdk.core import Corrupt, State, Status, Valid, create_fhevm_config, validate_state
from fhevm_sdk.storage import MemoryStorage, PersistedStore


def make_config():
    return create_fhevm_config([31337, 1337], storage=None)


def test_initial_state():
    config = make_config()
    assert config.state == State(chain_id=31337, status=Status.IDLE, instance=None, error=None)


def test_set_state_with_full_mapping():
    config = make_config()
    config.set_state({"chain_id": 1337, "status": "loading", "instance": None, "error": None})
    assert config.state.chain_id == 1337
    assert config.state.status is Status.LOADING


def test_set_state_with_function():
    config = make_config()
    instance = object()
    config.set_state(lambda s: State(s.chain_id, Status.READY, instance, None))
    assert config.state.instance is instance
    assert config.get_instance() is None  # the cache is separate from state


def test_missing_key_resets_to_initial_state():
    config = make_config()
    config.set_state({"chain_id": 1337, "status": "loading", "instance": None, "error": None})
    config.set_state({"chain_id": 1337, "status": "idle"})
    assert config.state == config.state_store.get_initial_state()
    assert config.state.chain_id == 31337


def test_non_state_value_resets():
    config = make_config()
    config.set_state({"chain_id": 1337, "status": "idle", "instance": None, "error": None})
    config.set_state(lambda s: "garbage")
    assert config.state.chain_id == 31337


def test_inconsistent_combination_resets():
    config = make_config()
    config.set_state({"chain_id": 1337, "status": "idle", "instance": object(), "error": None})
    assert config.state.chain_id == 31337
    assert config.state.instance is None


def test_validate_state_results():
    assert isinstance(validate_state(State(1)), Valid)
    assert isinstance(validate_state({"chainId": 1, "status": "idle", "instance": None, "error": None}), Valid)
    assert isinstance(validate_state({"chain_id": 1}), Corrupt)
    assert isinstance(validate_state(None), Corrupt)
    assert isinstance(validate_state(State(1, Status.READY, None, None)), Corrupt)
    assert isinstance(validate_state(State(1, Status.IDLE, None, ValueError())), Corrupt)
    assert isinstance(validate_state({"chain_id": "1", "status": "idle", "instance": None, "error": None}), Corrupt)
    assert isinstance(validate_state({"chain_id": 1, "status": "done", "instance": None, "error": None}), Corrupt)
    assert isinstance(validate_state(State(1, Status.ERROR, None, ValueError())), Valid)


def test_subscriber_only_sees_projection_changes():
    config = make_config()
    seen = []
    config.subscribe(lambda s: s.chain_id, lambda new, old: seen.append((new, old)))

    config.set_state({"chain_id": 31337, "status": "loading", "instance": None, "error": None})
    config.set_state({"chain_id": 1337, "status": "loading", "instance": None, "error": None})
    config.set_state({"chain_id": 1337, "status": "idle", "instance": None, "error": None})
    config.set_state({"chain_id": 31337, "status": "idle", "instance": None, "error": None})

    assert seen == [(1337, 31337), (31337, 1337)]


def test_subscriber_sees_every_distinct_status_in_order():
    config = make_config()
    seen = []
    config.subscribe(lambda s: s.status, lambda new, old: seen.append(new))
    for status in ("loading", "loading", "error", "idle"):
        error = ValueError() if status == "error" else None
        config.set_state({"chain_id": 31337, "status": status, "instance": None, "error": error})
    assert seen == [Status.LOADING, Status.ERROR, Status.IDLE]


def test_emit_immediately_and_unsubscribe():
    config = make_config()
    seen = []
    unsubscribe = config.subscribe(
        lambda s: s.chain_id,
        lambda new, old: seen.append((new, old)),
        emit_immediately=True,
    )
    assert seen == [(31337, 31337)]
    unsubscribe()
    config.set_state({"chain_id": 1337, "status": "idle", "instance": None, "error": None})
    assert seen == [(31337, 31337)]


def test_custom_equality_fn():
    config = make_config()
    seen = []
    config.subscribe(
        lambda s: s.chain_id,
        lambda new, old: seen.append(new),
        equality_fn=lambda a, b: True,
    )
    config.set_state({"chain_id": 1337, "status": "idle", "instance": None, "error": None})
    assert seen == []


def test_listener_errors_are_logged_not_raised(caplog):
    config = make_config()

    def broken(new, old):
        raise RuntimeError("boom")

    config.subscribe(lambda s: s.chain_id, broken)
    with caplog.at_level(logging.ERROR, logger="fhevm_sdk.core.state"):
        config.set_state({"chain_id": 1337, "status": "idle", "instance": None, "error": None})
    assert config.state.chain_id == 1337
    assert "State listener error" in caplog.text


def test_listener_redirect_leaves_everyone_on_the_newest_state():
    backend = MemoryStorage()
    config = create_fhevm_config([31337, 1337, 8009], storage=PersistedStore(backend))
    seen = []

    def redirect(new, old):
        if new == 1337:
            config.set_state({"chain_id": 8009, "status": "idle", "instance": None, "error": None})

    config.subscribe(lambda s: s.chain_id, redirect)
    config.subscribe(lambda s: s.chain_id, lambda new, old: seen.append(new))

    config.set_state({"chain_id": 1337, "status": "idle", "instance": None, "error": None})

    assert config.state.chain_id == 8009
    assert seen == [8009]
    assert json.loads(backend.data["fhevm.store"])["state"] == {"chainId": 8009}
