import numpy as np
import pytest

from analysis.mapping import Coordinate
from analysis.smoothing import PositionSmoother


# ----------------------------------------------------------------------
# Warm-up (cumulative average)
# ----------------------------------------------------------------------

def test_no_position_before_first_update():
    sm = PositionSmoother(window=4)
    assert sm.current() is None
    assert len(sm) == 0


def test_first_update_is_the_coordinate():
    sm = PositionSmoother(window=4)
    out = sm.update((1.25, 2.5))
    assert out == Coordinate(1.25, 2.5)
    assert isinstance(out, Coordinate)


@pytest.mark.parametrize("window", [1, 2, 3, 5, 8])
def test_identical_coordinates_are_a_fixed_point(window):
    sm = PositionSmoother(window=window)
    for _ in range(window):
        out = sm.update((1.5, 2.25))
    assert out == Coordinate(1.5, 2.25)


def test_fewer_than_window_gives_plain_mean():
    coords = [(0.5, 1.0), (1.5, 2.0), (2.5, 0.5), (3.0, 1.75)]
    sm = PositionSmoother(window=10)
    for c in coords:
        out = sm.update(c)

    mean = np.mean(coords, axis=0)
    assert out.backness == pytest.approx(mean[0])
    assert out.height == pytest.approx(mean[1])


def test_window_minus_one_still_uses_cumulative_branch():
    # with window=3 the third coordinate fills the history through the
    # cumulative update, so the result is the plain mean of all three
    sm = PositionSmoother(window=3)
    sm.update((0.0, 0.0))
    sm.update((3.0, 0.0))
    out = sm.update((6.0, 3.0))
    assert len(sm) == 3
    assert out.backness == pytest.approx(3.0)
    assert out.height == pytest.approx(1.0)


# ----------------------------------------------------------------------
# Sliding window
# ----------------------------------------------------------------------

def test_slide_removes_oldest_proportionally():
    coords = [(0.0, 3.0), (1.0, 2.0), (2.0, 1.0), (4.0, 0.0)]
    sm = PositionSmoother(window=3)
    for c in coords[:3]:
        before = sm.update(c)

    out = sm.update(coords[3])

    # (new - oldest) / W
    assert out.backness == pytest.approx(before.backness + (4.0 - 0.0) / 3)
    assert out.height == pytest.approx(before.height + (0.0 - 3.0) / 3)

    direct = np.mean(coords[1:], axis=0)
    assert out.backness == pytest.approx(direct[0])
    assert out.height == pytest.approx(direct[1])


def test_long_run_tracks_mean_of_last_window():
    rng = np.random.default_rng(3)
    coords = rng.uniform(0, 4, size=(50, 2))
    sm = PositionSmoother(window=7)
    for c in coords:
        out = sm.update(c)
        assert len(sm) <= 7

    direct = coords[-7:].mean(axis=0)
    assert out.backness == pytest.approx(direct[0], abs=1e-9)
    assert out.height == pytest.approx(direct[1], abs=1e-9)


def test_window_of_one_follows_latest():
    sm = PositionSmoother(window=1)
    sm.update((1.0, 1.0))
    assert sm.update((2.0, 0.5)) == Coordinate(2.0, 0.5)
    assert sm.update((3.5, 2.0)) == Coordinate(3.5, 2.0)
    assert len(sm) == 1


def test_out_of_range_values_are_not_clamped():
    sm = PositionSmoother(window=2)
    out = sm.update((-1.0, 5.0))
    assert out == Coordinate(-1.0, 5.0)


# ----------------------------------------------------------------------
# Reset
# ----------------------------------------------------------------------

def test_reset_matches_fresh_smoother():
    coords = [(0.1, 0.2), (1.3, 2.9), (3.7, 1.1), (2.2, 2.2), (0.4, 0.9)]

    used = PositionSmoother(window=3)
    for c in [(9.0, 9.0), (8.0, 7.0), (1.0, 1.0), (5.0, 5.0)]:
        used.update(c)
    used.reset()
    assert used.current() is None
    assert len(used) == 0

    fresh = PositionSmoother(window=3)
    for c in coords:
        a = used.update(c)
        b = fresh.update(c)
        assert a == b


# ----------------------------------------------------------------------
# Window changes and validation
# ----------------------------------------------------------------------

def test_growing_window_continues_cumulative_average():
    sm = PositionSmoother(window=2)
    sm.update((0.0, 0.0))
    sm.update((2.0, 2.0))
    out = sm.update((4.0, 4.0), window=4)
    # history was full at 2; growing to 4 averages all three
    assert out.backness == pytest.approx(2.0)
    assert len(sm) == 3


def test_shrinking_window_trims_history():
    sm = PositionSmoother(window=5)
    for c in [(0.0, 0.0), (1.0, 1.0), (2.0, 2.0), (3.0, 3.0), (4.0, 4.0)]:
        sm.update(c)

    sm.set_window(2)
    assert len(sm) == 2
    assert sm.current().backness == pytest.approx(3.5)

    out = sm.update((5.0, 5.0))
    assert len(sm) == 2
    assert out.backness == pytest.approx(4.5)


@pytest.mark.parametrize("bad", [0, -3, 1.5, True])
def test_invalid_window_rejected(bad):
    with pytest.raises(ValueError):
        PositionSmoother(window=bad)


@pytest.mark.parametrize("bad", [(np.nan, 1.0), (1.0, np.inf), (1.0,), (1.0, 2.0, 3.0)])
def test_bad_coordinate_leaves_state_untouched(bad):
    sm = PositionSmoother(window=3)
    sm.update((1.0, 1.0))
    with pytest.raises(ValueError):
        sm.update(bad)
    assert sm.current() == Coordinate(1.0, 1.0)
    assert len(sm) == 1
