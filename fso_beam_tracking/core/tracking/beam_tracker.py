"""
Adaptive Beam Tracker

Closed-loop pointing controller that keeps an optical beam on a peer
terminal. The tracker owns its signal map, gradient engine, alignment state
machine and optional PID pair; callers feed it measurements and read back
the (azimuth, elevation) set-point for the external actuator.

Operating Modes:
---------------
1. Calibration: coarse raster scan over a wide field, then a fine scan of
   four coarse cells around the coarse peak.
2. Tracking: one gradient-ascent tick per measurement (``update``).
3. Reacquisition: raster scan around the last position after loss of lock.
4. Set-point tracking: PID drive toward an externally supplied direction
   (``pid_update``), an alternative to gradient tracking.

Failure Semantics:
-----------------
Invalid arguments raise ``InvalidParameterError`` before anything changes.
A calibration or reacquisition that ends without a peak at or above the
signal threshold raises ``ConvergenceError`` and leaves the tracker
MISALIGNED.

Usage:
------
>>> tracker = BeamTracker({'signal_threshold': 0.3})
>>> tracker.calibrate(0.2, 0.2, 0.02, 0.002, measure)
>>> while link_up:
...     tracker.update(measure(tracker.azimuth, tracker.elevation, None))
...     actuator.point(tracker.azimuth, tracker.elevation)
"""

import logging
import warnings
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np

from fso_beam_tracking.core.controllers.pid_control import DualAxisPIDController
from fso_beam_tracking.core.errors import (
    ConvergenceError,
    InvalidParameterError,
    NotInitializedError,
)
from fso_beam_tracking.core.mapping.signal_map import SignalMap
from fso_beam_tracking.core.tracking.alignment import AlignmentMonitor, AlignmentState
from fso_beam_tracking.core.tracking.config import TrackerConfig
from fso_beam_tracking.core.tracking.gradient_ascent import MomentumGradientAscent
from fso_beam_tracking.core.tracking.scanner import (
    MeasurementCallback,
    RasterScanner,
    ScanResult,
    validate_scan_request,
)

logger = logging.getLogger(__name__)

# Fine scan extent in coarse cells
FINE_SCAN_CELLS = 4.0


@dataclass(frozen=True)
class TrackerStatus:
    """Summary flags reported to the radio stack."""
    is_aligned: bool
    is_converged: bool
    is_reacquiring: bool


def _validate_strength(strength: float) -> float:
    if strength is None or not np.isfinite(strength) or strength < 0.0:
        raise InvalidParameterError(f"Invalid signal strength: {strength}")
    return float(strength)


class BeamTracker:
    """
    Single-beam adaptive tracker.

    Instances are not safe for concurrent mutation; callers serialise
    access. Independent trackers share no state.

    Attributes
    ----------
    azimuth, elevation : float
        Current set-point [rad]
    signal_strength : float
        Most recent measurement or scan peak
    scan_count : int
        Completed (non-cancelled) scans
    update_count : int
        Tracking ticks processed
    """

    def __init__(self, config: Optional[Union[TrackerConfig, Dict[str, Any]]] = None):
        """
        Parameters
        ----------
        config : TrackerConfig or dict, optional
            Tracker options; defaults when omitted

        Raises
        ------
        InvalidParameterError
            If the configuration is inconsistent
        TrackerMemoryError
            If the signal map cannot be allocated
        """
        if config is None:
            config = TrackerConfig()
        elif isinstance(config, dict):
            config = TrackerConfig.from_dict(config)
        config.validate()
        self.config = config

        self._map = SignalMap(
            config.map_az_min, config.map_az_max,
            config.map_el_min, config.map_el_max,
            config.map_az_resolution, config.map_el_resolution,
        )
        self._scanner = RasterScanner(self._map)
        self._gradient = MomentumGradientAscent(
            step_size=config.step_size,
            step_min=config.step_min,
            step_max=config.step_max,
            step_adapt_factor=config.step_adapt_factor,
            momentum=config.momentum,
            convergence_epsilon=config.convergence_epsilon,
            convergence_threshold=config.convergence_threshold,
        )
        self._alignment = AlignmentMonitor(config.signal_threshold)

        self._pid: Optional[DualAxisPIDController] = None
        if config.pid_enabled:
            self._pid = DualAxisPIDController(
                kp=config.pid_kp,
                ki=config.pid_ki,
                kd=config.pid_kd,
                update_rate=config.pid_update_rate,
                output_min=config.pid_output_min,
                output_max=config.pid_output_max,
                integral_min=config.pid_integral_min,
                integral_max=config.pid_integral_max,
            )

        self.azimuth: float = float(config.initial_azimuth)
        self.elevation: float = float(config.initial_elevation)
        self.signal_strength: float = 0.0
        self.scan_count: int = 0
        self.update_count: int = 0

        logger.info(
            "Beam tracker initialized: map %s, step=%.4f, momentum=%.2f, "
            "threshold=%.2f, PID %s",
            self._map, self.step_size, config.momentum, config.signal_threshold,
            "enabled" if self._pid is not None else "disabled"
        )

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def state(self) -> AlignmentState:
        return self._alignment.state

    @property
    def misaligned(self) -> bool:
        return self._alignment.misaligned

    @property
    def reacquisition_mode(self) -> bool:
        return self._alignment.reacquisition_mode

    @property
    def transitions(self):
        """Recorded alignment state changes (oldest first)."""
        return list(self._alignment.transitions)

    @property
    def signal_threshold(self) -> float:
        return self._alignment.threshold

    @property
    def step_size(self) -> float:
        return self._gradient.step_size

    @property
    def velocity(self) -> Tuple[float, float]:
        return float(self._gradient.velocity[0]), float(self._gradient.velocity[1])

    @property
    def convergence_count(self) -> int:
        return self._gradient.convergence_count

    @property
    def pid(self) -> Optional[DualAxisPIDController]:
        return self._pid

    def is_converged(self) -> bool:
        return self._gradient.is_converged

    def get_status(self) -> TrackerStatus:
        return TrackerStatus(
            is_aligned=not self.misaligned,
            is_converged=self.is_converged(),
            is_reacquiring=self.reacquisition_mode,
        )

    def get_state(self) -> Dict:
        """
        Get tracker state for logging/telemetry.

        Returns
        -------
        Dict
            Position, strength, gradient engine and PID state, counters
        """
        state = {
            'azimuth': self.azimuth,
            'elevation': self.elevation,
            'signal_strength': self.signal_strength,
            'state': self.state.value,
            'misaligned': self.misaligned,
            'reacquisition_mode': self.reacquisition_mode,
            'signal_threshold': self.signal_threshold,
            'scan_count': self.scan_count,
            'update_count': self.update_count,
            'converged': self.is_converged(),
        }
        state.update(self._gradient.get_state())
        if self._pid is not None:
            state['pid'] = self._pid.get_state()
        return state

    def signal_map_snapshot(self) -> Dict[str, np.ndarray]:
        """
        Copy of the signal map for plotting and analysis.

        Returns
        -------
        Dict[str, np.ndarray]
            'values' (el_samples x az_samples), 'azimuth' and 'elevation'
            grid axes, 'peak' as [az, el, strength]
        """
        return {
            'values': self._map.to_array(),
            'azimuth': self._map.azimuth_axis(),
            'elevation': self._map.elevation_axis(),
            'peak': np.array(self._map.peak()),
        }

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_threshold(self, threshold: float) -> None:
        """Set the misalignment threshold, in [0, 1]."""
        self._alignment.set_threshold(threshold)

    def configure_pid(
        self,
        kp: float,
        ki: float,
        kd: float,
        update_rate: float,
        integral_limit: float
    ) -> None:
        """
        Set PID gains, rate and symmetric integral limit.

        All-zero gains disable the controller. Changing gains resets the
        controller state.
        """
        for name, value in (('kp', kp), ('ki', ki), ('kd', kd)):
            if not np.isfinite(value):
                raise InvalidParameterError(f"Invalid PID gain {name}: {value}")
        if not np.isfinite(update_rate) or update_rate <= 0.0:
            raise InvalidParameterError(f"Invalid PID update rate: {update_rate} Hz")
        if not np.isfinite(integral_limit) or integral_limit < 0.0:
            raise InvalidParameterError(f"Invalid PID integral limit: {integral_limit}")

        if kp == 0.0 and ki == 0.0 and kd == 0.0:
            self._pid = None
            logger.info("PID control disabled")
            return

        if self._pid is None:
            self._pid = DualAxisPIDController(
                kp=kp, ki=ki, kd=kd, update_rate=update_rate,
                output_min=self.config.pid_output_min,
                output_max=self.config.pid_output_max,
                integral_min=-integral_limit,
                integral_max=integral_limit,
            )
        else:
            self._pid.configure(kp, ki, kd, update_rate, integral_limit)

        logger.info("Configured PID: Kp=%.3f, Ki=%.3f, Kd=%.3f, rate=%.1f Hz",
                    kp, ki, kd, update_rate)

    def reset_pid(self) -> None:
        if self._pid is None:
            raise NotInitializedError("PID controller is not configured")
        self._pid.reset()

    # ------------------------------------------------------------------
    # Map access
    # ------------------------------------------------------------------

    def update_map(self, azimuth: float, elevation: float, strength: float) -> None:
        """Deposit an external measurement into the signal map."""
        self._map.set(azimuth, elevation, strength)

    def find_peak(self) -> Tuple[float, float, float]:
        """(azimuth, elevation, strength) of the strongest map cell."""
        return self._map.peak()

    def _record_sample(self, strength: float) -> None:
        if self._map.contains(self.azimuth, self.elevation):
            self._map.set(self.azimuth, self.elevation, strength)
        else:
            logger.warning(
                "Failed to update signal map at az=%.4f, el=%.4f (outside map)",
                self.azimuth, self.elevation
            )

    # ------------------------------------------------------------------
    # Gradient tracking
    # ------------------------------------------------------------------

    def estimate_gradient(self, delta: float) -> Tuple[float, float]:
        """Map gradient at the current set-point, falling back to the last strength."""
        gradient = self._gradient.estimate_gradient(
            self._map, self.azimuth, self.elevation, delta, self.signal_strength
        )
        return float(gradient[0]), float(gradient[1])

    def adapt_step_size(self, improvement: float) -> None:
        if not np.isfinite(improvement):
            raise InvalidParameterError(f"Invalid improvement: {improvement}")
        self._gradient.adapt_step_size(improvement)

    def check_misalignment(self, strength: float) -> bool:
        """
        Store a measurement and classify it against the threshold.

        Returns
        -------
        bool
            True when the measurement is below the threshold
        """
        strength = _validate_strength(strength)
        self.signal_strength = strength
        return self._alignment.check(strength)

    def update(self, strength: float) -> None:
        """
        Process one measurement taken at the current set-point.

        The measurement is stored in the map, checked for misalignment and
        used to adapt the step size; unless converged the set-point then
        moves one momentum step up the map gradient.

        Parameters
        ----------
        strength : float
            Measured signal strength, finite and non-negative
        """
        strength = _validate_strength(strength)

        improvement = strength - self.signal_strength
        self.signal_strength = strength
        self._record_sample(strength)
        self._alignment.check(strength)

        self._gradient.adapt_step_size(improvement)

        if self._gradient.is_converged:
            self.update_count += 1
            logger.debug("Converged at az=%.6f, el=%.6f (count=%d)",
                         self.azimuth, self.elevation, self.convergence_count)
            return

        delta = self.step_size / 2.0
        gradient = self._gradient.estimate_gradient(
            self._map, self.azimuth, self.elevation, delta, self.signal_strength
        )
        displacement = self._gradient.step(gradient)
        self.azimuth += float(displacement[0])
        self.elevation += float(displacement[1])
        self.update_count += 1

        logger.debug(
            "Update %d: pos=(%.6f, %.6f), strength=%.4f, step=%.6f",
            self.update_count, self.azimuth, self.elevation, strength, self.step_size
        )

    # ------------------------------------------------------------------
    # PID set-point tracking
    # ------------------------------------------------------------------

    def pid_update(
        self,
        target_az: float,
        target_el: float,
        strength: float
    ) -> Tuple[float, float]:
        """
        Drive the set-point toward a target direction with the PID pair.

        Parameters
        ----------
        target_az, target_el : float
            Desired pointing direction [rad]
        strength : float
            Measurement at the current set-point

        Returns
        -------
        Tuple[float, float]
            Control outputs applied to (azimuth, elevation)
        """
        if self._pid is None:
            raise NotInitializedError("PID controller is not configured")
        if not (np.isfinite(target_az) and np.isfinite(target_el)):
            raise InvalidParameterError(f"Invalid PID target: ({target_az}, {target_el})")
        strength = _validate_strength(strength)

        self.signal_strength = strength
        self._record_sample(strength)

        control_az, control_el = self._pid.step(
            target_az - self.azimuth, target_el - self.elevation
        )
        self.azimuth += control_az
        self.elevation += control_el

        if np.hypot(control_az, control_el) < self._gradient.convergence_epsilon:
            self._gradient.convergence_count += 1
        else:
            self._gradient.convergence_count = 0
        self.update_count += 1

        return control_az, control_el

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def _run_scan(
        self,
        az_range: float,
        el_range: float,
        resolution: float,
        callback: MeasurementCallback,
        user_data: Any
    ) -> ScanResult:
        result = self._scanner.scan(
            self.azimuth, self.elevation, az_range, el_range,
            resolution, callback, user_data
        )
        if not result.cancelled:
            self.azimuth = result.peak_azimuth
            self.elevation = result.peak_elevation
            self.signal_strength = result.peak_strength
            self.scan_count += 1
        return result

    def scan(
        self,
        az_range: float,
        el_range: float,
        resolution: float,
        callback: MeasurementCallback,
        user_data: Any = None
    ) -> ScanResult:
        """
        Raster scan centred on the current set-point, then move to the peak.

        A negative callback value cancels the scan and leaves the set-point
        and strength untouched.
        """
        validate_scan_request(az_range, el_range, resolution, callback)
        if callback is None:
            raise InvalidParameterError("Measurement callback is required")
        return self._run_scan(az_range, el_range, resolution, callback, user_data)

    def calibrate(
        self,
        az_range: float,
        el_range: float,
        coarse_res: float,
        fine_res: float,
        callback: MeasurementCallback,
        user_data: Any = None
    ) -> ScanResult:
        """
        Two-phase calibration: coarse scan of the full field, fine scan
        around the coarse peak.

        Parameters
        ----------
        az_range, el_range : float
            Coarse scan extent [rad]
        coarse_res, fine_res : float
            Scan resolutions [rad]; fine_res should be smaller
        callback : MeasurementCallback
            Signal measurement function
        user_data : Any
            Passed through to the callback

        Returns
        -------
        ScanResult
            The fine scan, or the coarse scan when the fine scan was cancelled

        Raises
        ------
        ConvergenceError
            Coarse scan cancelled, or final strength below the threshold
        """
        if callback is None:
            raise InvalidParameterError("Measurement callback is required")
        validate_scan_request(az_range, el_range, coarse_res, callback)
        fine_range = FINE_SCAN_CELLS * coarse_res
        validate_scan_request(fine_range, fine_range, fine_res)
        if fine_res >= coarse_res:
            warnings.warn(
                f"Fine resolution ({fine_res}) >= coarse resolution ({coarse_res})",
                UserWarning
            )

        logger.info("Starting calibration: range=(%.4f, %.4f), coarse=%.4f, fine=%.4f",
                    az_range, el_range, coarse_res, fine_res)

        coarse = self._run_scan(az_range, el_range, coarse_res, callback, user_data)
        if coarse.cancelled:
            self._alignment.mark_calibrated(False, self.signal_strength)
            raise ConvergenceError("Coarse calibration scan cancelled")

        coarse_peak = (self.azimuth, self.elevation, self.signal_strength)
        logger.info("Coarse scan peak: az=%.4f, el=%.4f, strength=%.4f", *coarse_peak)

        result = self._run_scan(fine_range, fine_range, fine_res, callback, user_data)
        if result.cancelled:
            logger.warning("Fine scan cancelled, using coarse scan result")
            self.azimuth, self.elevation, self.signal_strength = coarse_peak
            result = coarse

        if self.signal_strength < self.signal_threshold:
            logger.warning(
                "Calibration weak signal: strength=%.3f < threshold=%.3f",
                self.signal_strength, self.signal_threshold
            )
            self._alignment.mark_calibrated(False, self.signal_strength)
            raise ConvergenceError(
                f"Calibration peak {self.signal_strength:.3f} below threshold "
                f"{self.signal_threshold:.3f}"
            )

        if self._pid is not None:
            self._pid.reset()
        self._gradient.reset()
        self._alignment.mark_calibrated(True, self.signal_strength)

        logger.info("Calibration complete: az=%.4f, el=%.4f, strength=%.4f",
                    self.azimuth, self.elevation, self.signal_strength)
        return result

    def reacquire(
        self,
        az_search: float,
        el_search: float,
        resolution: float,
        callback: MeasurementCallback,
        user_data: Any = None
    ) -> ScanResult:
        """
        Search around the current set-point after loss of lock.

        Raises
        ------
        ConvergenceError
            Scan cancelled, or peak below the threshold; the tracker is
            left MISALIGNED at its pre-scan set-point and strength
        """
        if callback is None:
            raise InvalidParameterError("Measurement callback is required")
        validate_scan_request(az_search, el_search, resolution, callback)

        logger.info("Starting reacquisition: search=(%.4f, %.4f), res=%.4f",
                    az_search, el_search, resolution)

        self._alignment.begin_reacquisition()
        if self._pid is not None:
            self._pid.reset()
        self._gradient.reset()
        last_position = (self.azimuth, self.elevation, self.signal_strength)

        try:
            result = self._run_scan(az_search, el_search, resolution, callback, user_data)
        except Exception:
            self._alignment.complete_reacquisition(False, self.signal_strength)
            raise

        if result.cancelled:
            self._alignment.complete_reacquisition(False, self.signal_strength)
            raise ConvergenceError("Reacquisition scan cancelled")

        if self.signal_strength < self.signal_threshold:
            logger.warning("Reacquisition failed: strength=%.3f < threshold=%.3f",
                           self.signal_strength, self.signal_threshold)
            peak_strength = self.signal_strength
            # Keep searching around the last known position
            self.azimuth, self.elevation, self.signal_strength = last_position
            self._alignment.complete_reacquisition(False, peak_strength)
            raise ConvergenceError(
                f"Reacquisition peak {peak_strength:.3f} below threshold "
                f"{self.signal_threshold:.3f}"
            )

        self._alignment.complete_reacquisition(True, self.signal_strength)
        logger.info("Reacquisition successful: az=%.4f, el=%.4f, strength=%.4f",
                    self.azimuth, self.elevation, self.signal_strength)
        return result
