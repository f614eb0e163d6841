"""
Pointing Disturbance Models for Free-Space Optical Links

This module generates the angular offsets that push the physical beam away
from the tracker's commanded set-point:

1. Drift: slow linear walk from thermal and mount creep
2. Wander: low-frequency beam wander from atmospheric refraction
3. Platform jitter: band-limited mechanical vibration of the terminal

All components use deterministic seeded random number generation for
reproducible simulation results.

Models:
------
- Drift: offset += drift_rate·dt
- Wander: first-order Gauss-Markov process
      x[k+1] = exp(-dt/T_c)·x[k] + w[k],  w ~ N(0, σ²(1 - exp(-2dt/T_c)))
- Jitter: white noise through a 2nd-order Butterworth band-pass, scaled so
  the steady-state output RMS approximates ``jitter_rms``

The combined offset is clamped to ±max_offset per axis.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np
import scipy.signal as signal


@dataclass
class DisturbanceState:
    """Container for pointing disturbance contributions [rad]."""

    drift_az: float = 0.0
    drift_el: float = 0.0

    wander_az: float = 0.0
    wander_el: float = 0.0

    jitter_az: float = 0.0
    jitter_el: float = 0.0

    # Combined, clamped offsets
    offset_az: float = 0.0
    offset_el: float = 0.0


class PointingDisturbances:
    """
    Combined drift, wander and jitter generator.

    Usage:
    ------
    >>> config = {
    ...     'drift_rate_az': 1e-4,   # rad/s
    ...     'wander_rms': 2e-4,      # rad
    ...     'jitter_rms': 5e-5,      # rad
    ...     'seed': 42
    ... }
    >>> disturbances = PointingDisturbances(config)
    >>> state = disturbances.step(dt=0.01)
    >>> actual_az = commanded_az + state.offset_az
    """

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize pointing disturbance generator.

        Parameters
        ----------
        config : Dict
            Configuration dictionary:
            Drift:
            - 'drift_rate_az', 'drift_rate_el': Drift rates [rad/s]
            - 'drift_enabled': Enable drift [bool]

            Wander:
            - 'wander_rms': RMS wander [rad]
            - 'wander_correlation_time': Correlation time [s]
            - 'wander_enabled': Enable wander [bool]

            Platform jitter:
            - 'jitter_rms': Target RMS jitter [rad]
            - 'jitter_freq_low', 'jitter_freq_high': Pass band [Hz]
            - 'jitter_enabled': Enable jitter [bool]

            General:
            - 'max_offset': Per-axis clamp on the combined offset [rad]
            - 'seed': Random seed for reproducibility
        """
        config = config or {}
        self.config = config

        self.seed = config.get('seed', 42)
        self.rng = np.random.default_rng(self.seed)

        self.drift_enabled = config.get('drift_enabled', True)
        self.wander_enabled = config.get('wander_enabled', True)
        self.jitter_enabled = config.get('jitter_enabled', True)

        self.drift_rate_az = config.get('drift_rate_az', 0.0)
        self.drift_rate_el = config.get('drift_rate_el', 0.0)

        self.wander_rms = config.get('wander_rms', 0.0)
        self.wander_correlation_time = config.get('wander_correlation_time', 1.0)
        if self.wander_correlation_time <= 0.0:
            raise ValueError(
                f"wander_correlation_time must be positive, "
                f"got {self.wander_correlation_time}"
            )

        self.jitter_rms = config.get('jitter_rms', 0.0)
        self.jitter_freq_low = config.get('jitter_freq_low', 5.0)    # Hz
        self.jitter_freq_high = config.get('jitter_freq_high', 40.0)  # Hz

        self.max_offset = config.get('max_offset', 0.01)  # rad
        if self.max_offset <= 0.0:
            raise ValueError(f"max_offset must be positive, got {self.max_offset}")

        self._reset_states()

    def _reset_states(self) -> None:
        self.drift_state = np.zeros(2)
        self.wander_state = np.zeros(2)
        # Filter designed on first step, once the sample rate is known
        self.jitter_filter: Optional[Tuple[np.ndarray, np.ndarray]] = None
        self.jitter_zi: Optional[np.ndarray] = None
        self.jitter_gain = 1.0
        self.iteration = 0

    def _design_jitter_filter(self, fs: float) -> None:
        nyquist = 0.5 * fs
        low = max(0.001, min(self.jitter_freq_low / nyquist, 0.999))
        high = max(low + 0.001, min(self.jitter_freq_high / nyquist, 0.999))

        b, a = signal.butter(2, [low, high], btype='band')
        self.jitter_filter = (b, a)
        # One filter state per axis
        zi = signal.lfilter_zi(b, a)
        self.jitter_zi = np.zeros((2, zi.size))

        # Unit-variance white noise through the band-pass has output
        # variance equal to the filter's noise gain, sum(h[n]^2)
        impulse = np.zeros(4096)
        impulse[0] = 1.0
        h = signal.lfilter(b, a, impulse)
        noise_gain = float(np.sum(h ** 2))
        self.jitter_gain = 1.0 / np.sqrt(noise_gain) if noise_gain > 0.0 else 1.0

    def _compute_drift(self, dt: float) -> np.ndarray:
        if not self.drift_enabled:
            return np.zeros(2)
        self.drift_state = self.drift_state + np.array(
            [self.drift_rate_az, self.drift_rate_el]
        ) * dt
        return self.drift_state.copy()

    def _compute_wander(self, dt: float) -> np.ndarray:
        """
        Atmospheric beam wander as a first-order Gauss-Markov process.

        Parameters
        ----------
        dt : float
            Time step [s]

        Returns
        -------
        np.ndarray
            [wander_az, wander_el] [rad]
        """
        if not self.wander_enabled or self.wander_rms == 0.0:
            return np.zeros(2)

        phi = np.exp(-dt / self.wander_correlation_time)
        noise_std = self.wander_rms * np.sqrt(1.0 - phi ** 2)
        self.wander_state = phi * self.wander_state + self.rng.normal(0.0, noise_std, 2)
        return self.wander_state.copy()

    def _compute_jitter(self, dt: float) -> np.ndarray:
        if not self.jitter_enabled or self.jitter_rms == 0.0:
            return np.zeros(2)

        if self.jitter_filter is None:
            self._design_jitter_filter(1.0 / dt)
        b, a = self.jitter_filter

        jitter = np.zeros(2)
        for axis in range(2):
            noise = self.rng.normal(0.0, self.jitter_rms * self.jitter_gain)
            y, self.jitter_zi[axis] = signal.lfilter(b, a, [noise], zi=self.jitter_zi[axis])
            jitter[axis] = y[0]
        return jitter

    def step(self, dt: float) -> DisturbanceState:
        """
        Compute all pointing disturbances for the current timestep.

        Parameters
        ----------
        dt : float
            Time step [s], positive

        Returns
        -------
        DisturbanceState
            Per-component and combined offsets
        """
        if dt <= 0.0:
            raise ValueError(f"Time step must be positive, got {dt}")

        state = DisturbanceState()

        drift = self._compute_drift(dt)
        wander = self._compute_wander(dt)
        jitter = self._compute_jitter(dt)

        state.drift_az, state.drift_el = float(drift[0]), float(drift[1])
        state.wander_az, state.wander_el = float(wander[0]), float(wander[1])
        state.jitter_az, state.jitter_el = float(jitter[0]), float(jitter[1])

        total = np.clip(drift + wander + jitter, -self.max_offset, self.max_offset)
        state.offset_az, state.offset_el = float(total[0]), float(total[1])

        self.iteration += 1
        return state

    def get_diagnostics(self) -> Dict:
        return {
            'iteration': self.iteration,
            'drift_enabled': self.drift_enabled,
            'drift_rate': (self.drift_rate_az, self.drift_rate_el),
            'wander_enabled': self.wander_enabled,
            'wander_rms': self.wander_rms,
            'jitter_enabled': self.jitter_enabled,
            'jitter_rms': self.jitter_rms,
            'jitter_freq_range': (self.jitter_freq_low, self.jitter_freq_high),
            'max_offset': self.max_offset,
        }

    def reset(self) -> None:
        """Reset to initial conditions and reseed for repeatability."""
        self._reset_states()
        self.rng = np.random.default_rng(self.seed)


# Named severity levels for quick scenario setup
DISTURBANCE_PROFILES: Dict[str, Dict] = {
    'none': {
        'drift_enabled': False,
        'wander_enabled': False,
        'jitter_enabled': False,
    },
    'calm': {
        'drift_rate_az': 2e-5,
        'drift_rate_el': -1e-5,
        'wander_rms': 5e-5,
        'wander_correlation_time': 2.0,
        'jitter_enabled': False,
    },
    'turbulent': {
        'drift_rate_az': 1e-4,
        'drift_rate_el': -5e-5,
        'wander_rms': 3e-4,
        'wander_correlation_time': 0.5,
        'jitter_rms': 5e-5,
    },
    'platform_jitter': {
        'drift_enabled': False,
        'wander_enabled': False,
        'jitter_rms': 2e-4,
        'jitter_freq_low': 5.0,
        'jitter_freq_high': 40.0,
    },
}


def create_pointing_disturbances(
    profile: str = 'calm',
    seed: int = 42,
    **overrides
) -> PointingDisturbances:
    """
    Factory for the predefined disturbance profiles.

    Parameters
    ----------
    profile : str
        One of 'none', 'calm', 'turbulent', 'platform_jitter'
    seed : int
        Random seed
    **overrides
        Configuration keys replacing the profile values

    Returns
    -------
    PointingDisturbances
    """
    if profile not in DISTURBANCE_PROFILES:
        raise ValueError(
            f"Unknown disturbance profile: {profile} "
            f"(expected one of {sorted(DISTURBANCE_PROFILES)})"
        )
    config = dict(DISTURBANCE_PROFILES[profile])
    config['seed'] = seed
    config.update(overrides)
    return PointingDisturbances(config)
