"""
Unit tests for the momentum gradient engine.

Tests verify:
1. Central-difference gradient and out-of-map fallback
2. Step size adaptation and clamping
3. Momentum update along the normalised ascent direction
4. Convergence counting
"""

import pytest
import numpy as np
from fso_beam_tracking.core.errors import InvalidParameterError
from fso_beam_tracking.core.mapping.signal_map import SignalMap
from fso_beam_tracking.core.tracking.gradient_ascent import MomentumGradientAscent


@pytest.fixture
def ramp_map():
    """Map with S = 0.5 + 2·az on every cell."""
    smap = SignalMap(-0.1, 0.1, -0.1, 0.1, 0.01, 0.01)
    for el in smap.elevation_axis():
        for az in smap.azimuth_axis():
            smap.set(az, el, 0.5 + 2.0 * az)
    return smap


@pytest.fixture
def engine():
    return MomentumGradientAscent(
        step_size=0.01, step_min=0.001, step_max=0.05,
        step_adapt_factor=1.5, momentum=0.5,
        convergence_epsilon=1e-4, convergence_threshold=3
    )


class TestGradientEstimate:
    """Test finite differences on the map."""

    def test_ramp_gradient(self, engine, ramp_map):
        g = engine.estimate_gradient(ramp_map, 0.0, 0.0, 0.01, fallback=0.0)
        assert g[0] == pytest.approx(2.0)
        assert g[1] == pytest.approx(0.0, abs=1e-9)

    def test_fallback_outside_map(self, engine, ramp_map):
        g = engine.estimate_gradient(ramp_map, 0.1, 0.0, 0.02, fallback=0.7)
        # S(0.12) is outside the map and falls back to 0.7; S(0.08) = 0.66
        assert g[0] == pytest.approx((0.7 - 0.66) / 0.04)

    def test_flat_map(self, engine):
        smap = SignalMap(-0.1, 0.1, -0.1, 0.1, 0.01, 0.01)
        g = engine.estimate_gradient(smap, 0.0, 0.0, 0.01, fallback=0.3)
        assert np.all(g == 0.0)

    @pytest.mark.parametrize("delta", [0.0, -0.01, np.nan])
    def test_invalid_delta(self, engine, ramp_map, delta):
        with pytest.raises(InvalidParameterError):
            engine.estimate_gradient(ramp_map, 0.0, 0.0, delta, fallback=0.0)


class TestStepAdaptation:
    """Test adaptive step policy."""

    def test_improvement_grows_step(self, engine):
        engine.convergence_count = 2
        engine.adapt_step_size(0.1)
        assert engine.step_size == pytest.approx(0.015)
        assert engine.convergence_count == 0

    def test_regression_shrinks_step(self, engine):
        engine.adapt_step_size(-0.1)
        assert engine.step_size == pytest.approx(0.01 / 1.5)
        assert engine.convergence_count == 0

    def test_small_regression_counts_toward_convergence(self, engine):
        engine.adapt_step_size(-1e-5)
        engine.adapt_step_size(0.0)
        assert engine.step_size == 0.01
        assert engine.convergence_count == 2

    def test_clamped_to_bounds(self, engine):
        for _ in range(20):
            engine.adapt_step_size(1.0)
        assert engine.step_size == 0.05
        for _ in range(40):
            engine.adapt_step_size(-1.0)
        assert engine.step_size == 0.001

    def test_converged_flag(self, engine):
        for _ in range(3):
            engine.adapt_step_size(0.0)
        assert engine.is_converged


class TestMomentumStep:
    """Test the velocity update."""

    def test_unit_direction(self, engine):
        displacement = engine.step(np.array([3.0, 4.0]))
        np.testing.assert_allclose(displacement, [0.006, 0.008])
        np.testing.assert_allclose(engine.velocity, [0.006, 0.008])

    def test_momentum_accumulates(self, engine):
        engine.step(np.array([1.0, 0.0]))
        displacement = engine.step(np.array([1.0, 0.0]))
        np.testing.assert_allclose(displacement, [0.015, 0.0])

    def test_flat_gradient_counts_and_holds(self, engine):
        engine.step(np.array([1.0, 0.0]))
        displacement = engine.step(np.zeros(2))

        assert np.all(displacement == 0.0)
        np.testing.assert_allclose(engine.velocity, [0.01, 0.0])
        assert engine.convergence_count == 1

    def test_large_velocity_resets_count(self, engine):
        engine.convergence_count = 2
        engine.step(np.array([0.0, 1.0]))
        assert engine.convergence_count == 0

    def test_reset(self, engine):
        engine.step(np.array([1.0, 1.0]))
        engine.adapt_step_size(1.0)
        engine.reset()

        assert np.all(engine.velocity == 0.0)
        assert engine.convergence_count == 0
        assert engine.step_size == pytest.approx(0.015)
