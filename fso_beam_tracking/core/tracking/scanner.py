"""
Raster Scanner

Sweeps a rectangular region centred on the current pointing direction,
measuring the received signal at each grid point through the measurement
callback and writing the results into the signal map.

Scan Pattern:
------------
    for each elevation row (bottom to top):
        for each azimuth column (left to right):
            strength = callback(az, el, user_data)

    points per axis = ceil(range / resolution) + 1

The raster order is deterministic, so the map contents and the peak found
after a scan are reproducible for a given callback. Calibration (wide) and
reacquisition (wider, around the last known position) share this routine.

Callback Contract:
-----------------
``callback(azimuth, elevation, user_data) -> strength``. A non-negative
value is a measurement, a negative value asks the scanner to stop. Scan
points that fall outside the map are measured but not stored.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

import numpy as np

from fso_beam_tracking.core.errors import InvalidParameterError
from fso_beam_tracking.core.mapping.signal_map import GRID_TOLERANCE, SignalMap

logger = logging.getLogger(__name__)

MeasurementCallback = Callable[[float, float, Any], float]


@dataclass
class ScanResult:
    """
    Outcome of one raster scan.

    Attributes
    ----------
    center_azimuth, center_elevation : float
        Scan centre [rad]
    az_points, el_points : int
        Grid points per axis
    probes : int
        Callback invocations made
    points_scanned : int
        Measurements stored in the map
    cancelled : bool
        True when the callback aborted the scan
    peak_azimuth, peak_elevation, peak_strength : Optional[float]
        Map peak after the scan (None when cancelled)
    """
    center_azimuth: float
    center_elevation: float
    az_points: int
    el_points: int
    probes: int = 0
    points_scanned: int = 0
    cancelled: bool = False
    peak_azimuth: Optional[float] = None
    peak_elevation: Optional[float] = None
    peak_strength: Optional[float] = None

    @property
    def completed(self) -> bool:
        return not self.cancelled


def scan_points(span: float, resolution: float) -> int:
    """Raster points covering ``span``: ceil(span / resolution) + 1."""
    return int(np.ceil(span / resolution - GRID_TOLERANCE)) + 1


def validate_scan_request(
    az_range: float,
    el_range: float,
    resolution: float,
    callback: Optional[MeasurementCallback] = None
) -> None:
    """
    Reject malformed scan parameters.

    Raises
    ------
    InvalidParameterError
        Non-positive or non-finite range/resolution, or a missing callback
    """
    if not (np.isfinite(az_range) and np.isfinite(el_range)) \
            or az_range <= 0.0 or el_range <= 0.0:
        raise InvalidParameterError(
            f"Invalid scan range: az={az_range}, el={el_range}"
        )
    if not np.isfinite(resolution) or resolution <= 0.0:
        raise InvalidParameterError(f"Invalid scan resolution: {resolution}")
    if callback is not None and not callable(callback):
        raise InvalidParameterError("Measurement callback must be callable")


class RasterScanner:
    """
    Deterministic raster scan over a signal map.

    The scanner owns no state of its own; it clears and refills the map it
    is given and reports where the peak ended up. Moving the beam to that
    peak is left to the tracker.
    """

    def __init__(self, signal_map: SignalMap):
        self.signal_map = signal_map

    def scan(
        self,
        center_az: float,
        center_el: float,
        az_range: float,
        el_range: float,
        resolution: float,
        callback: MeasurementCallback,
        user_data: Any = None
    ) -> ScanResult:
        """
        Scan a region centred on (center_az, center_el).

        Parameters
        ----------
        center_az, center_el : float
            Scan centre [rad]
        az_range, el_range : float
            Full extent per axis [rad]
        resolution : float
            Probe spacing [rad]
        callback : MeasurementCallback
            Signal measurement function
        user_data : Any
            Passed through to the callback

        Returns
        -------
        ScanResult
            Scan statistics and, unless cancelled, the map peak
        """
        if callback is None:
            raise InvalidParameterError("Measurement callback is required")
        validate_scan_request(az_range, el_range, resolution, callback)

        az_min = center_az - az_range / 2.0
        el_min = center_el - el_range / 2.0
        az_points = scan_points(az_range, resolution)
        el_points = scan_points(el_range, resolution)

        logger.info(
            "Starting beam scan: %dx%d points, az=[%.4f, %.4f], el=[%.4f, %.4f], res=%.6f",
            az_points, el_points,
            az_min, az_min + az_range, el_min, el_min + el_range, resolution
        )

        result = ScanResult(
            center_azimuth=center_az,
            center_elevation=center_el,
            az_points=az_points,
            el_points=el_points,
        )

        self.signal_map.clear()

        for el_idx in range(el_points):
            elevation = el_min + el_idx * resolution
            for az_idx in range(az_points):
                azimuth = az_min + az_idx * resolution

                strength = float(callback(azimuth, elevation, user_data))
                result.probes += 1

                if np.isnan(strength):
                    logger.warning(
                        "Discarding non-finite measurement at az=%.4f, el=%.4f",
                        azimuth, elevation
                    )
                    continue
                if strength < 0.0:
                    result.cancelled = True
                    logger.info(
                        "Scan cancelled by callback at point [%d,%d] after %d probes",
                        az_idx, el_idx, result.probes
                    )
                    return result
                if np.isinf(strength):
                    logger.warning(
                        "Discarding non-finite measurement at az=%.4f, el=%.4f",
                        azimuth, elevation
                    )
                    continue

                if not self.signal_map.contains(azimuth, elevation):
                    logger.debug(
                        "Scan point [%d,%d] outside map: az=%.4f, el=%.4f",
                        az_idx, el_idx, azimuth, elevation
                    )
                    continue
                self.signal_map.set(azimuth, elevation, strength)
                result.points_scanned += 1

                logger.debug(
                    "Scan point [%d,%d]: az=%.4f, el=%.4f, strength=%.4f",
                    az_idx, el_idx, azimuth, elevation, strength
                )

        peak_az, peak_el, peak_strength = self.signal_map.peak()
        result.peak_azimuth = peak_az
        result.peak_elevation = peak_el
        result.peak_strength = peak_strength

        logger.info(
            "Scan complete: %d points stored, peak az=%.4f, el=%.4f, strength=%.4f",
            result.points_scanned, peak_az, peak_el, peak_strength
        )
        return result
