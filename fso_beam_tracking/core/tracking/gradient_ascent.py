"""
Momentum Gradient Ascent on the Signal Map

Local search engine that climbs the measured signal field toward the beam
peak between scans.

Update Law:
----------
    g     = [S(az+δ, el) - S(az-δ, el),  S(az, el+δ) - S(az, el-δ)] / 2δ
    v[k]  = β·v[k-1] + η·g/‖g‖
    p[k]  = p[k-1] + v[k]

where δ = η/2, η is the adaptive step size and β the momentum. The ascent
direction is normalised so that η is the angular length of one step: the
raw field gradient near a narrow optical beam is large (tens per radian)
and would otherwise overshoot by orders of magnitude.

Step Adaptation:
---------------
    improvement > 0      ->  η ← η·factor,  convergence count reset
    improvement < -ε     ->  η ← η/factor,  convergence count reset
    otherwise            ->  convergence count + 1

η is always clamped to [η_min, η_max]. The search is considered converged
once the count reaches the configured threshold.
"""

import logging
from typing import Dict

import numpy as np

from fso_beam_tracking.core.errors import InvalidParameterError, OutOfRangeError
from fso_beam_tracking.core.mapping.signal_map import SignalMap

logger = logging.getLogger(__name__)

# Gradient norm below which the field is treated as flat
GRADIENT_EPSILON = 1e-6


class MomentumGradientAscent:
    """
    Adaptive-step, momentum-augmented hill climber.

    Attributes
    ----------
    step_size : float
        Current step η [rad]
    velocity : np.ndarray
        Momentum state [vel_az, vel_el] [rad]
    convergence_count : int
        Consecutive non-improving or stationary ticks
    """

    def __init__(
        self,
        step_size: float = 0.01,
        step_min: float = 0.001,
        step_max: float = 0.1,
        step_adapt_factor: float = 1.1,
        momentum: float = 0.9,
        convergence_epsilon: float = 1e-4,
        convergence_threshold: int = 10
    ):
        if step_min <= 0.0 or step_min > step_max:
            raise InvalidParameterError(f"Invalid step bounds: [{step_min}, {step_max}]")
        if not 0.0 <= momentum < 1.0:
            raise InvalidParameterError(f"momentum must be in [0, 1), got {momentum}")

        self.step_min = float(step_min)
        self.step_max = float(step_max)
        self.step_size = float(np.clip(step_size, self.step_min, self.step_max))
        self.step_adapt_factor = float(step_adapt_factor)
        self.momentum = float(momentum)
        self.convergence_epsilon = float(convergence_epsilon)
        self.convergence_threshold = int(convergence_threshold)

        self.velocity = np.zeros(2)
        self.convergence_count = 0

    @property
    def is_converged(self) -> bool:
        return self.convergence_count >= self.convergence_threshold

    @staticmethod
    def _lookup(signal_map: SignalMap, az: float, el: float, fallback: float) -> float:
        try:
            return signal_map.get(az, el)
        except OutOfRangeError:
            return fallback

    def estimate_gradient(
        self,
        signal_map: SignalMap,
        azimuth: float,
        elevation: float,
        delta: float,
        fallback: float
    ) -> np.ndarray:
        """
        Central-difference gradient of the stored field.

        Parameters
        ----------
        signal_map : SignalMap
            Field to differentiate
        azimuth, elevation : float
            Evaluation point [rad]
        delta : float
            Half-width of the difference stencil [rad], > 0
        fallback : float
            Value substituted for lookups outside the map, normally the
            latest measured strength

        Returns
        -------
        np.ndarray
            [dS/daz, dS/del]
        """
        if not np.isfinite(delta) or delta <= 0.0:
            raise InvalidParameterError(f"Invalid gradient delta: {delta}")

        s_az_plus = self._lookup(signal_map, azimuth + delta, elevation, fallback)
        s_az_minus = self._lookup(signal_map, azimuth - delta, elevation, fallback)
        s_el_plus = self._lookup(signal_map, azimuth, elevation + delta, fallback)
        s_el_minus = self._lookup(signal_map, azimuth, elevation - delta, fallback)

        gradient = np.array([
            (s_az_plus - s_az_minus) / (2.0 * delta),
            (s_el_plus - s_el_minus) / (2.0 * delta),
        ])

        logger.debug("Gradient: az=%.6f, el=%.6f (delta=%.6f)",
                     gradient[0], gradient[1], delta)
        return gradient

    def adapt_step_size(self, improvement: float) -> None:
        """Grow the step on progress, shrink it on regression."""
        if improvement > 0.0:
            self.step_size *= self.step_adapt_factor
            self.convergence_count = 0
        elif improvement < -self.convergence_epsilon:
            self.step_size /= self.step_adapt_factor
            self.convergence_count = 0
        else:
            self.convergence_count += 1

        self.step_size = float(np.clip(self.step_size, self.step_min, self.step_max))
        logger.debug("Adapted step size: %.6f (improvement=%.6f)",
                     self.step_size, improvement)

    def step(self, gradient: np.ndarray) -> np.ndarray:
        """
        Advance the momentum state along the gradient.

        A flat gradient leaves the velocity untouched and counts toward
        convergence.

        Returns
        -------
        np.ndarray
            Displacement [d_az, d_el] to apply to the set-point
        """
        norm = float(np.linalg.norm(gradient))
        if norm < GRADIENT_EPSILON:
            self.convergence_count += 1
            return np.zeros(2)

        self.velocity = self.momentum * self.velocity + self.step_size * gradient / norm

        if np.linalg.norm(self.velocity) < self.convergence_epsilon:
            self.convergence_count += 1
        else:
            self.convergence_count = 0
        return self.velocity.copy()

    def reset(self) -> None:
        """Zero velocity and the convergence count; the step size is kept."""
        self.velocity = np.zeros(2)
        self.convergence_count = 0

    def get_state(self) -> Dict:
        return {
            'step_size': self.step_size,
            'velocity': self.velocity.copy(),
            'convergence_count': self.convergence_count,
        }

