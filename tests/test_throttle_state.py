"""Unit tests for the throttle ring buffer and its decision function."""

import pytest

from callgate.core.errors import ConfigurationMismatchError, InvalidConfigurationError
from callgate.schemas.throttle import ThrottleConfiguration, ThrottleState, advance_window


def test_initial_state_uses_requesting_config() -> None:
    config = ThrottleConfiguration(executions=3, interval_ms=1000)

    state = ThrottleState.initial(config)

    assert state.config == config
    assert state.timestamps == (0, 0, 0)
    assert state.cursor == 0


def test_fresh_key_is_permitted_and_records_now() -> None:
    config = ThrottleConfiguration(executions=2, interval_ms=1000)

    state, permitted = advance_window(None, config, now=5_000)

    assert permitted is True
    assert state.timestamps == (5_000, 0)
    assert state.cursor == 1


def test_full_window_rejects_without_mutation() -> None:
    config = ThrottleConfiguration(executions=2, interval_ms=1000)
    state = ThrottleState(config=config, timestamps=(5_000, 5_100), cursor=0)

    next_state, permitted = advance_window(state, config, now=5_500)

    assert permitted is False
    assert next_state is state


def test_window_boundary_is_exclusive() -> None:
    config = ThrottleConfiguration(executions=1, interval_ms=1000)
    state = ThrottleState(config=config, timestamps=(5_000,), cursor=0)

    _, at_boundary = advance_window(state, config, now=6_000)
    _, past_boundary = advance_window(state, config, now=6_001)

    assert at_boundary is False
    assert past_boundary is True


def test_cursor_wraps_and_tracks_oldest_slot() -> None:
    config = ThrottleConfiguration(executions=2, interval_ms=1000)
    state = ThrottleState.initial(config)

    state, _ = advance_window(state, config, now=10_000)
    state, _ = advance_window(state, config, now=10_400)
    assert state.cursor == 0
    assert state.oldest == 10_000

    state, permitted = advance_window(state, config, now=11_001)

    assert permitted is True
    assert state.timestamps == (11_001, 10_400)
    assert state.cursor == 1
    assert state.oldest == 10_400


def test_record_returns_a_copy() -> None:
    config = ThrottleConfiguration(executions=2, interval_ms=1000)
    state = ThrottleState.initial(config)

    state.record(42)

    assert state.timestamps == (0, 0)
    assert state.cursor == 0


@pytest.mark.parametrize(
    ("stored", "requested", "fragment"),
    [
        (
            ThrottleConfiguration(executions=2, interval_ms=1000),
            ThrottleConfiguration(executions=3, interval_ms=1000),
            "requested 3 executions, but existing config has 2",
        ),
        (
            ThrottleConfiguration(executions=2, interval_ms=1000),
            ThrottleConfiguration(executions=2, interval_ms=500),
            "requested 500ms interval, but existing config has 1000ms",
        ),
    ],
)
def test_mismatched_config_raises(
    stored: ThrottleConfiguration,
    requested: ThrottleConfiguration,
    fragment: str,
) -> None:
    state = ThrottleState.initial(stored)

    with pytest.raises(ConfigurationMismatchError) as exc_info:
        advance_window(state, requested, now=50_000)

    assert exc_info.value.code == "configuration_mismatch"
    assert "Configuration mismatch" in str(exc_info.value)
    assert fragment in str(exc_info.value)


def test_foreign_state_is_a_mismatch() -> None:
    config = ThrottleConfiguration(executions=2, interval_ms=1000)

    with pytest.raises(ConfigurationMismatchError):
        advance_window("some-debounce-token", config, now=1)


def test_accepts_serialized_state() -> None:
    config = ThrottleConfiguration(executions=2, interval_ms=1000)
    stored = ThrottleState(config=config, timestamps=(9_000, 9_500), cursor=0).to_dict()

    state, permitted = advance_window(stored, config, now=9_800)

    assert permitted is False
    assert isinstance(state, ThrottleState)
    assert state.timestamps == (9_000, 9_500)


def test_to_dict_shape() -> None:
    config = ThrottleConfiguration(executions=2, interval_ms=1000)
    state = ThrottleState(config=config, timestamps=(1, 2), cursor=1)

    assert state.to_dict() == {
        "config": {"executions": 2, "interval_ms": 1000},
        "timestamps": [1, 2],
        "cursor": 1,
    }


@pytest.mark.parametrize(
    "blob",
    [
        {"config": {"executions": 2, "interval_ms": 1000}, "timestamps": [0], "cursor": 0},
        {"config": {"executions": 2, "interval_ms": 1000}, "timestamps": [0, 0], "cursor": 2},
        {"timestamps": [0, 0], "cursor": 0},
    ],
)
def test_corrupt_serialized_state_is_a_mismatch(blob: dict) -> None:
    config = ThrottleConfiguration(executions=2, interval_ms=1000)

    with pytest.raises(ConfigurationMismatchError):
        advance_window(blob, config, now=1)


@pytest.mark.parametrize(
    ("config", "message"),
    [
        (ThrottleConfiguration(executions=0, interval_ms=1000), "Executions must be at least 1"),
        (ThrottleConfiguration(executions=1, interval_ms=0), "Interval must be at least 1ms"),
    ],
)
def test_validate_rejects_non_positive_fields(config: ThrottleConfiguration, message: str) -> None:
    with pytest.raises(InvalidConfigurationError, match=message):
        config.validate()


def test_is_compatible() -> None:
    a = ThrottleConfiguration(executions=2, interval_ms=1000)

    assert a.is_compatible(ThrottleConfiguration(executions=2, interval_ms=1000))
    assert not a.is_compatible(ThrottleConfiguration(executions=2, interval_ms=999))
