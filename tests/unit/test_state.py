"""Unit tests for ReceiverState."""

from __future__ import annotations

from onkyo_sync.state import SAFE_DEFAULTS, ReceiverState
from onkyo_sync.zones import StateField


class TestReceiverState:
    """Tests for the state snapshot."""

    def test_starts_unknown_with_safe_defaults(self, state: ReceiverState):
        assert state.snapshot() == {"power": None, "mute": None, "volume": None, "input": None}
        assert state.power is False
        assert state.mute is False
        assert state.volume == 0
        assert state.input == 0
        assert not any(state.is_known(field) for field in StateField)

    def test_update_marks_known(self, state: ReceiverState):
        assert state.update(StateField.VOLUME, 42) is True
        assert state.is_known(StateField.VOLUME)
        assert state.volume == 42
        assert state.snapshot()["volume"] == 42

    def test_first_value_equal_to_default_is_a_change(self, state: ReceiverState):
        assert state.update(StateField.POWER, False) is True

    def test_same_value_is_not_a_change(self, state: ReceiverState):
        _ = state.update(StateField.MUTE, True)
        assert state.update(StateField.MUTE, True) is False

    def test_observers_notified_only_on_change(self, state: ReceiverState):
        seen: list[tuple[StateField, bool | int]] = []
        _ = state.subscribe(lambda field, value: seen.append((field, value)))

        _ = state.update(StateField.POWER, True)
        _ = state.update(StateField.POWER, True)
        _ = state.update(StateField.INPUT, 2)

        assert seen == [(StateField.POWER, True), (StateField.INPUT, 2)]

    def test_unsubscribe(self, state: ReceiverState):
        seen: list[StateField] = []
        unsubscribe = state.subscribe(lambda field, _value: seen.append(field))
        unsubscribe()
        unsubscribe()

        _ = state.update(StateField.POWER, True)

        assert seen == []

    def test_failing_observer_does_not_block_others(self, state: ReceiverState):
        def broken(_field: StateField, _value: bool | int) -> None:
            raise RuntimeError("observer bug")

        seen: list[StateField] = []
        _ = state.subscribe(broken)
        _ = state.subscribe(lambda field, _value: seen.append(field))

        assert state.update(StateField.VOLUME, 10) is True
        assert seen == [StateField.VOLUME]

    def test_reset_unknown(self, state: ReceiverState):
        _ = state.update(StateField.POWER, True)
        _ = state.update(StateField.VOLUME, 30)

        state.reset_unknown()

        assert state.snapshot() == {"power": None, "mute": None, "volume": None, "input": None}
        assert state.get(StateField.VOLUME) == SAFE_DEFAULTS[StateField.VOLUME]
        # Known again after reset, even with the same value
        assert state.update(StateField.POWER, True) is True

    def test_reset_unknown_notifies_stale_fields(self, state: ReceiverState):
        _ = state.update(StateField.MUTE, True)
        _ = state.update(StateField.INPUT, 3)
        _ = state.update(StateField.VOLUME, 0)
        seen: list[tuple[StateField, bool | int]] = []
        _ = state.subscribe(lambda field, value: seen.append((field, value)))

        state.reset_unknown()

        # Volume already held its safe default, so there is nothing to push
        assert seen == [(StateField.MUTE, False), (StateField.INPUT, 0)]
        assert not state.is_known(StateField.MUTE)

    def test_repr_shows_unknown_fields(self, state: ReceiverState):
        _ = state.update(StateField.INPUT, 1)
        assert repr(state) == "ReceiverState(power=unknown, mute=unknown, volume=unknown, input=1)"
