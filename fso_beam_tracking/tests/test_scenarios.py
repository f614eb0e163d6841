"""
End-to-end tracking scenarios against an analytic Gaussian beam.

The beam peaks at (0.03, -0.02) rad with S = exp(-r² / 0.0005); the map
covers ±0.1 rad at 5 mrad resolution.
"""

import pytest
import numpy as np
from fso_beam_tracking.core.errors import ConvergenceError, ErrorCode
from fso_beam_tracking.core.tracking.alignment import AlignmentState
from fso_beam_tracking.core.tracking.beam_tracker import BeamTracker

PEAK_AZ = 0.03
PEAK_EL = -0.02


def beam(azimuth, elevation, user_data=None):
    return float(np.exp(-((azimuth - PEAK_AZ) ** 2 + (elevation - PEAK_EL) ** 2) / 0.0005))


@pytest.fixture
def map_config():
    return {
        'map_az_resolution': 0.005,
        'map_el_resolution': 0.005,
        'step_size': 0.005,
        'step_min': 1e-4,
        'step_max': 0.02,
        'step_adapt_factor': 1.2,
        'momentum': 0.5,
        'convergence_threshold': 5,
    }


class TestGradientConvergence:
    """Gradient ascent on a pre-surveyed map."""

    def test_converges_near_peak(self, map_config):
        tracker = BeamTracker(map_config)
        snapshot = tracker.signal_map_snapshot()
        for el in snapshot['elevation']:
            for az in snapshot['azimuth']:
                tracker.update_map(az, el, beam(az, el))

        for _ in range(200):
            tracker.update(beam(tracker.azimuth, tracker.elevation))
            if tracker.is_converged():
                break

        assert tracker.is_converged()
        assert tracker.update_count < 200
        assert abs(tracker.azimuth - PEAK_AZ) < 0.005
        assert abs(tracker.elevation - PEAK_EL) < 0.005


class TestCalibration:
    """Coarse plus fine calibration from boresight."""

    def test_finds_peak_cell(self, map_config):
        tracker = BeamTracker(map_config)

        tracker.calibrate(0.2, 0.2, 0.02, 0.002, beam)

        assert tracker.azimuth == pytest.approx(PEAK_AZ, abs=0.002)
        assert tracker.elevation == pytest.approx(PEAK_EL, abs=0.002)
        assert tracker.signal_strength > 0.9
        assert tracker.scan_count == 2
        assert tracker.state is AlignmentState.TRACKING


class TestAlignmentSequence:
    """Threshold crossings during tracking."""

    @pytest.fixture
    def tracker(self, map_config):
        # Steps stay well inside one map cell so the set-point holds still
        map_config.update(step_size=0.001, step_min=1e-4, step_max=0.002,
                          signal_threshold=0.5)
        return BeamTracker(map_config)

    def test_loss_and_recovery(self, tracker):
        aligned = []
        for strength in [0.8, 0.7, 0.4, 0.45, 0.6]:
            tracker.update(strength)
            aligned.append(tracker.get_status().is_aligned)

        assert aligned == [True, True, False, False, True]
        assert len(tracker.transitions) == 2
        assert (tracker.azimuth, tracker.elevation) == (0.0, 0.0)

    def test_reacquire_after_loss(self, tracker):
        for strength in [0.8, 0.7, 0.4, 0.45, 0.6]:
            tracker.update(strength)
        tracker.update(0.1)
        assert tracker.misaligned

        result = tracker.reacquire(0.2, 0.2, 0.01, beam)

        assert (result.az_points, result.el_points) == (21, 21)
        assert tracker.signal_strength == pytest.approx(1.0)
        assert not tracker.misaligned
        assert not tracker.reacquisition_mode


class TestReacquisitionFailure:
    """No usable signal anywhere in the search window."""

    def test_weak_everywhere(self, map_config):
        tracker = BeamTracker(map_config)
        tracker.update(0.05)
        assert tracker.misaligned

        with pytest.raises(ConvergenceError) as excinfo:
            tracker.reacquire(0.1, 0.1, 0.01, lambda az, el, data: 0.05)

        assert excinfo.value.code == ErrorCode.CONVERGENCE
        assert tracker.misaligned
        assert not tracker.reacquisition_mode


class TestMapBoundary:
    """Tracking at the edge of the mapped field."""

    def test_update_at_azimuth_limit(self):
        tracker = BeamTracker({'initial_azimuth': 0.1})

        tracker.update(0.7)

        assert tracker.update_count == 1
        assert np.isfinite(tracker.azimuth)
        assert all(np.isfinite(tracker.estimate_gradient(0.005)))
