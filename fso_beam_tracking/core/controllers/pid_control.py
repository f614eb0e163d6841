"""
PID Position Control for Beam Pointing

This module implements the optional feedback controller that drives the
beam set-point toward an externally supplied target direction.

Control Law:
-----------
    I[k] = clamp(I[k-1] + e[k]·dt, I_min, I_max)
    D[k] = (e[k] - e[k-1]) / dt            (0 when dt = 0)
    u[k] = clamp(Kp·e[k] + Ki·I[k] + Kd·D[k], u_min, u_max)

Integral clamping prevents wind-up while the loop is open for many steps,
for example during a reacquisition scan. The tracker resets the controller
on calibration and on reacquisition entry.
"""

from abc import ABC, abstractmethod
from typing import Dict, Tuple

import numpy as np

from fso_beam_tracking.core.errors import InvalidParameterError


class BaseController(ABC):
    """
    Abstract base class for pointing controllers.

    Defines the step-wise interface shared by the single-axis and the
    dual-axis controller.
    """

    @abstractmethod
    def reset(self) -> None:
        """Reset controller to initial state."""

    @abstractmethod
    def get_state(self) -> Dict:
        """
        Get current controller state for logging/debugging.

        Returns
        -------
        Dict
            Dictionary containing controller state variables
        """


def _check_limits(name: str, lower: float, upper: float) -> None:
    if np.isnan(lower) or np.isnan(upper) or lower > upper:
        raise InvalidParameterError(f"Invalid {name} limits: [{lower}, {upper}]")


class PIDController(BaseController):
    """
    Single-axis PID controller with output and integral clamping.

    Attributes
    ----------
    kp, ki, kd : float
        Proportional, integral and derivative gains
    integral : float
        Clamped error accumulator
    last_error : float
        Error seen on the previous step
    output_min, output_max : float
        Output saturation limits
    integral_min, integral_max : float
        Anti-windup limits on the accumulator
    """

    def __init__(
        self,
        kp: float = 1.0,
        ki: float = 0.0,
        kd: float = 0.0,
        output_min: float = -np.inf,
        output_max: float = np.inf,
        integral_min: float = -1.0,
        integral_max: float = 1.0
    ):
        _check_limits("output", output_min, output_max)
        _check_limits("integral", integral_min, integral_max)

        self.kp: float = float(kp)
        self.ki: float = float(ki)
        self.kd: float = float(kd)
        self.output_min: float = float(output_min)
        self.output_max: float = float(output_max)
        self.integral_min: float = float(integral_min)
        self.integral_max: float = float(integral_max)

        self.integral: float = 0.0
        self.last_error: float = 0.0

    @property
    def enabled(self) -> bool:
        """False when every gain is zero."""
        return not (self.kp == 0.0 and self.ki == 0.0 and self.kd == 0.0)

    def step(self, error: float, dt: float) -> float:
        """
        Advance the controller by one sample.

        Parameters
        ----------
        error : float
            Current error (target - measurement)
        dt : float
            Time since the previous sample [s], non-negative

        Returns
        -------
        float
            Saturated control output
        """
        if not np.isfinite(error):
            raise InvalidParameterError(f"Invalid PID error: {error}")
        if not np.isfinite(dt) or dt < 0.0:
            raise InvalidParameterError(f"Invalid PID time step: {dt}")

        self.integral = float(np.clip(
            self.integral + error * dt, self.integral_min, self.integral_max
        ))

        derivative = (error - self.last_error) / dt if dt > 0.0 else 0.0

        raw = self.kp * error + self.ki * self.integral + self.kd * derivative
        output = float(np.clip(raw, self.output_min, self.output_max))

        self.last_error = float(error)
        return output

    def reset(self) -> None:
        """Zero the accumulator and the stored error."""
        self.integral = 0.0
        self.last_error = 0.0

    def get_state(self) -> Dict:
        return {
            'kp': self.kp,
            'ki': self.ki,
            'kd': self.kd,
            'integral': self.integral,
            'last_error': self.last_error,
        }


class DualAxisPIDController(BaseController):
    """
    Azimuth/elevation PID pair with shared gains.

    The tracker owns one instance when PID control is enabled. Each axis
    keeps its own integral and error history; gains, clamps and the update
    rate are common to both.

    Usage:
    ------
    >>> pid = DualAxisPIDController(kp=0.5, ki=0.05, kd=0.0, update_rate=100.0)
    >>> out_az, out_el = pid.step(0.01, -0.02)
    """

    def __init__(
        self,
        kp: float = 1.0,
        ki: float = 0.1,
        kd: float = 0.05,
        update_rate: float = 100.0,
        output_min: float = -np.inf,
        output_max: float = np.inf,
        integral_min: float = -1.0,
        integral_max: float = 1.0
    ):
        """
        Parameters
        ----------
        kp, ki, kd : float
            Gains applied to both axes
        update_rate : float
            Control rate [Hz]; the step interval is 1 / update_rate
        output_min, output_max : float
            Per-axis output limits [rad]
        integral_min, integral_max : float
            Per-axis integral limits
        """
        if not np.isfinite(update_rate) or update_rate <= 0.0:
            raise InvalidParameterError(f"Invalid PID update rate: {update_rate} Hz")

        self.update_rate: float = float(update_rate)
        self.axis_az = PIDController(kp, ki, kd, output_min, output_max,
                                     integral_min, integral_max)
        self.axis_el = PIDController(kp, ki, kd, output_min, output_max,
                                     integral_min, integral_max)

    @property
    def dt(self) -> float:
        """Nominal step interval [s]."""
        return 1.0 / self.update_rate

    @property
    def enabled(self) -> bool:
        return self.axis_az.enabled

    @property
    def gains(self) -> Tuple[float, float, float]:
        return self.axis_az.kp, self.axis_az.ki, self.axis_az.kd

    def configure(
        self,
        kp: float,
        ki: float,
        kd: float,
        update_rate: float,
        integral_limit: float
    ) -> None:
        """
        Replace gains, rate and a symmetric integral limit, then reset.

        Validation happens before anything changes.
        """
        if not np.isfinite(update_rate) or update_rate <= 0.0:
            raise InvalidParameterError(f"Invalid PID update rate: {update_rate} Hz")
        if not np.isfinite(integral_limit) or integral_limit < 0.0:
            raise InvalidParameterError(f"Invalid PID integral limit: {integral_limit}")

        self.update_rate = float(update_rate)
        for axis in (self.axis_az, self.axis_el):
            axis.kp = float(kp)
            axis.ki = float(ki)
            axis.kd = float(kd)
            axis.integral_min = -float(integral_limit)
            axis.integral_max = float(integral_limit)
        self.reset()

    def step(self, error_az: float, error_el: float) -> Tuple[float, float]:
        """
        Compute (control_az, control_el) for one control period.

        Both errors are validated before either axis is advanced.
        """
        if not (np.isfinite(error_az) and np.isfinite(error_el)):
            raise InvalidParameterError(
                f"Invalid PID error: az={error_az}, el={error_el}"
            )
        return self.axis_az.step(error_az, self.dt), self.axis_el.step(error_el, self.dt)

    def reset(self) -> None:
        self.axis_az.reset()
        self.axis_el.reset()

    def get_state(self) -> Dict:
        return {
            'update_rate': self.update_rate,
            'integral': np.array([self.axis_az.integral, self.axis_el.integral]),
            'previous_error': np.array([self.axis_az.last_error, self.axis_el.last_error]),
            'gains': self.gains,
        }
