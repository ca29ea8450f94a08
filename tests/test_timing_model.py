"""Tests for the progress estimation model"""

import math

import pytest

from errors import InsufficientHistoryError
from timing import CalibrationSet, estimate, fallback_progress, progress, progress_curve
from timing.model import MAD_SCALE, PROGRESS_CEILING


class TestEstimate:
    def test_reference_history(self):
        est = estimate([100, 110, 95, 105])
        assert est.median == pytest.approx(102.5)
        assert est.mad == pytest.approx(5.0)
        assert est.t90 == pytest.approx(92.25)
        assert est.r0 == pytest.approx(10.25)
        expected_tau = 10.25 * (1 + MAD_SCALE * 5 / 102.5) / abs(math.log(10.25 / 50))
        assert est.tau == pytest.approx(expected_tau)
        assert est.tau > 0

    @pytest.mark.parametrize("history", [[], [120.0], [0, 0, 0]])
    def test_degenerate_history(self, history):
        with pytest.raises(InsufficientHistoryError):
            estimate(history)

    def test_tail_floor_boundary(self):
        # median 500 puts r0 exactly on the 50 ms floor
        est = estimate([500, 500])
        assert math.isfinite(est.tau)
        assert est.tau > 0


class TestProgress:
    def test_reference_points(self):
        est = estimate([100, 110, 95, 105])
        assert progress(est, 0) == 0
        assert progress(est, 50) == pytest.approx(50 / 102.5)
        late = progress(est, 200)
        assert 0.9 < late < 1

    @pytest.mark.parametrize("history", [
        [100, 110, 95, 105],
        [4000, 4200, 3900, 4100, 5200],
        [800, 1600],
        [2500, 2500, 2500],
    ])
    def test_exactly_ninety_percent_at_t90(self, history):
        est = estimate(history)
        assert progress(est, est.t90) == 0.9

    @pytest.mark.parametrize("history", [
        [100, 110, 95, 105],
        [4000, 4200, 3900, 4100, 5200],
        [800, 1600],
    ])
    def test_non_decreasing_and_below_one(self, history):
        est = estimate(history)
        previous = 0.0
        for step in range(0, 20000, 7):
            value = progress(est, float(step))
            assert previous <= value < 1
            previous = value
        assert progress(est, 1e12) < 1

    def test_creeps_towards_one(self):
        est = estimate([4000, 4200, 3900, 4100])
        assert progress(est, est.median) > 0.9
        assert progress(est, 3 * est.median) > progress(est, est.median)
        assert progress(est, 1e9) == PROGRESS_CEILING

    def test_fallback_ramp(self):
        assert fallback_progress(0, 5000) == 0
        assert fallback_progress(2500, 5000) == pytest.approx(0.5)
        assert fallback_progress(10000, 5000) < 1

    def test_curve_falls_back_on_short_history(self):
        curve = progress_curve([1200.0], default_duration=4000)
        assert curve(1000) == pytest.approx(0.25)

    def test_curve_uses_history(self):
        history = [1000, 1100, 900]
        curve = progress_curve(history, default_duration=4000)
        assert curve(500) == pytest.approx(progress(estimate(history), 500))


class TestCalibrationSet:
    def test_radio_set_is_fixed(self):
        calibration = CalibrationSet(["2.4G", "5G"])
        assert calibration.radios() == {"2.4G", "5G"}
        with pytest.raises(KeyError):
            calibration.record("6G", 10)

    def test_history_preserves_order(self):
        calibration = CalibrationSet(["5G"])
        for duration in (300, 100, 200):
            calibration.record("5G", duration)
        assert calibration.history_of("5G") == [300.0, 100.0, 200.0]

    def test_history_is_a_copy(self):
        calibration = CalibrationSet(["5G"])
        calibration.history_of("5G").append(1)
        assert calibration.history_of("5G") == []
