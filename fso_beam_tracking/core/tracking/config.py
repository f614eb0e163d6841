"""
Tracker Configuration

Every option the beam tracker recognises lives in ``TrackerConfig``. The
defaults reproduce the field-proven initialisation of the FSO terminal
tracker (21x21 map over ±0.1 rad, 10 mrad initial step, heavy momentum,
Kp/Ki/Kd = 1.0/0.1/0.05 at 100 Hz).

Configurations can be built directly, from a plain dictionary (the form
used by the simulation components), or from a JSON file.
"""

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Union

import numpy as np

from fso_beam_tracking.core.errors import InvalidParameterError


@dataclass
class TrackerConfig:
    """Configuration block for ``BeamTracker``."""

    # Starting set-point [rad]
    initial_azimuth: float = 0.0
    initial_elevation: float = 0.0

    # Signal map bounds and resolution [rad]
    map_az_min: float = -0.1
    map_az_max: float = 0.1
    map_el_min: float = -0.1
    map_el_max: float = 0.1
    map_az_resolution: float = 0.01
    map_el_resolution: float = 0.01

    # Gradient step policy [rad]
    step_size: float = 0.01
    step_min: float = 0.001
    step_max: float = 0.1
    step_adapt_factor: float = 1.1

    # Velocity retention, in [0, 1)
    momentum: float = 0.9

    # Convergence heuristic
    convergence_epsilon: float = 1e-4
    convergence_threshold: int = 10

    # Misalignment boundary, in [0, 1]
    signal_threshold: float = 0.1

    # Optional PID (disabled when all gains are zero)
    pid_kp: float = 1.0
    pid_ki: float = 0.1
    pid_kd: float = 0.05
    pid_update_rate: float = 100.0   # Hz
    pid_output_min: float = -np.inf
    pid_output_max: float = np.inf
    pid_integral_min: float = -1.0
    pid_integral_max: float = 1.0

    @property
    def pid_enabled(self) -> bool:
        return not (self.pid_kp == 0.0 and self.pid_ki == 0.0 and self.pid_kd == 0.0)

    def validate(self) -> None:
        """
        Check every option.

        Raises
        ------
        InvalidParameterError
            On the first inconsistent option
        """
        for name in ('initial_azimuth', 'initial_elevation', 'map_az_min', 'map_az_max',
                     'map_el_min', 'map_el_max', 'step_size', 'step_min', 'step_max',
                     'step_adapt_factor', 'momentum', 'convergence_epsilon',
                     'signal_threshold', 'pid_kp', 'pid_ki', 'pid_kd', 'pid_update_rate'):
            if not np.isfinite(getattr(self, name)):
                raise InvalidParameterError(f"{name} must be finite")

        if self.map_az_max <= self.map_az_min or self.map_el_max <= self.map_el_min:
            raise InvalidParameterError("Map bounds must satisfy min < max")
        if self.map_az_resolution <= 0.0 or self.map_el_resolution <= 0.0:
            raise InvalidParameterError("Map resolutions must be positive")

        if self.step_min <= 0.0 or self.step_min > self.step_max:
            raise InvalidParameterError(
                f"Invalid step bounds: [{self.step_min}, {self.step_max}]"
            )
        if not self.step_min <= self.step_size <= self.step_max:
            raise InvalidParameterError(
                f"step_size {self.step_size} outside [{self.step_min}, {self.step_max}]"
            )
        if not self.step_adapt_factor > 1.0:
            raise InvalidParameterError(
                f"step_adapt_factor must be > 1, got {self.step_adapt_factor}"
            )
        if not 0.0 <= self.momentum < 1.0:
            raise InvalidParameterError(f"momentum must be in [0, 1), got {self.momentum}")
        if self.convergence_epsilon < 0.0:
            raise InvalidParameterError("convergence_epsilon must be non-negative")
        if int(self.convergence_threshold) != self.convergence_threshold \
                or self.convergence_threshold < 1:
            raise InvalidParameterError(
                f"convergence_threshold must be a positive integer, "
                f"got {self.convergence_threshold}"
            )
        if not 0.0 <= self.signal_threshold <= 1.0:
            raise InvalidParameterError(
                f"signal_threshold must be in [0, 1], got {self.signal_threshold}"
            )

        if self.pid_update_rate <= 0.0:
            raise InvalidParameterError(f"Invalid PID update rate: {self.pid_update_rate}")
        if self.pid_output_min > self.pid_output_max:
            raise InvalidParameterError("PID output limits must satisfy min <= max")
        if self.pid_integral_min > self.pid_integral_max:
            raise InvalidParameterError("PID integral limits must satisfy min <= max")

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'TrackerConfig':
        """
        Build a configuration from a flat dictionary.

        Unknown keys are rejected so that typos do not silently fall back
        to defaults.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(config) - known)
        if unknown:
            raise InvalidParameterError(f"Unknown tracker option(s): {unknown}")
        return cls(**config)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_tracker_config(path: Union[str, Path]) -> TrackerConfig:
    """
    Load and validate a tracker configuration from a JSON file.

    The file holds either the flat option dictionary or an object with a
    ``"tracker"`` key containing it.
    """
    config_path = Path(path)
    try:
        with open(config_path, 'r') as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise InvalidParameterError(
            f"Failed to parse JSON config at {config_path}: {exc}"
        ) from exc

    if isinstance(data, dict) and isinstance(data.get('tracker'), dict):
        data = data['tracker']
    if not isinstance(data, dict):
        raise InvalidParameterError(f"Tracker config at {config_path} must be an object")

    config = TrackerConfig.from_dict(data)
    config.validate()
    return config
