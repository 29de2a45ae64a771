from __future__ import annotations

import math

import pytest

from core.derived_state import DerivedStateStore, absolute_humidity, compensation
from core.rolling import RollingWindow
from models.records import DerivedState


def test_window_keeps_only_most_recent_values() -> None:
    window: RollingWindow[int] = RollingWindow(3)
    for value in (1, 2, 3, 4, 5):
        window.push(value)

    assert window.values() == [3, 4, 5]
    assert len(window) == 3
    assert window.mean() == pytest.approx(4.0)


def test_integer_mean_floors() -> None:
    window: RollingWindow[int] = RollingWindow(60)
    for value in (400, 401, 401):
        window.push(value)

    assert window.integer_mean() == 400


def test_empty_window_has_no_mean() -> None:
    window: RollingWindow[int] = RollingWindow(5)
    window.push(7)
    window.clear()

    assert window.mean() is None
    assert window.integer_mean() is None


def test_window_rejects_non_positive_capacity() -> None:
    with pytest.raises(ValueError):
        RollingWindow(0)


def test_absolute_humidity_at_room_conditions() -> None:
    assert absolute_humidity(20.0, 50.0) == pytest.approx(8.639, abs=1e-3)


def test_compensation_skipped_until_pair_is_known() -> None:
    store = DerivedStateStore()
    assert store.read().known is False
    assert compensation(store.read()) is None
    assert compensation(DerivedState(temperature=21.0, humidity=math.nan)) is None

    store.publish(20.0, 50.0)

    state = store.read()
    assert (state.temperature, state.humidity) == (20.0, 50.0)
    assert compensation(state) == pytest.approx(8.639, abs=1e-3)
