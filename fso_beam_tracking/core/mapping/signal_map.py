"""
Signal Strength Map for Beam Tracking

This module implements the fixed-resolution 2-D scalar field over
(azimuth, elevation) that the tracker uses to remember where the received
optical power has been measured.

Grid Definition:
---------------
    az_i = az_min + i * az_resolution,   i = 0 .. az_samples - 1
    el_j = el_min + j * el_resolution,   j = 0 .. el_samples - 1

    samples = floor((max - min) / resolution) + 1

Values are stored row-major (one row per elevation), so the flat index of
cell (i, j) is ``j * az_samples + i``. Peak search walks this order, which
makes ties resolve to the lowest (el, az) index.

Lookup Policy:
-------------
Coordinates map to the nearest grid cell, ``round((c - min) / res)``. A
coordinate more than half a cell outside the grid extent is out of range
and the access fails instead of clamping. Nearest-cell lookup (rather than
interpolation) keeps gradient estimation and peak search consistent with
the raster scan grid.
"""

import logging
from typing import Optional, Tuple

import numpy as np

from fso_beam_tracking.core.errors import (
    InvalidParameterError,
    OutOfRangeError,
    TrackerMemoryError,
)

logger = logging.getLogger(__name__)

# Absorbs representation error in span / resolution (e.g. 0.2 / 0.005)
GRID_TOLERANCE = 1e-9


def grid_points(span: float, resolution: float) -> int:
    """Number of grid samples covering ``span`` at ``resolution``."""
    return int(np.floor(span / resolution + GRID_TOLERANCE)) + 1


class SignalMap:
    """
    Dense 2-D signal strength map over azimuth and elevation.

    The map is created once with fixed bounds and resolution and is never
    resized. All stored strengths are non-negative.

    Usage:
    ------
    >>> smap = SignalMap(-0.1, 0.1, -0.1, 0.1, 0.005, 0.005)
    >>> smap.set(0.03, -0.02, 0.97)
    >>> smap.get(0.03, -0.02)
    0.97
    >>> smap.peak()
    (0.03..., -0.02..., 0.97)
    """

    def __init__(
        self,
        az_min: float,
        az_max: float,
        el_min: float,
        el_max: float,
        az_resolution: float,
        el_resolution: float
    ):
        """
        Create an all-zero signal map.

        Parameters
        ----------
        az_min, az_max : float
            Azimuth bounds [rad]
        el_min, el_max : float
            Elevation bounds [rad]
        az_resolution, el_resolution : float
            Grid spacing per axis [rad]

        Raises
        ------
        InvalidParameterError
            If a range or a resolution is not strictly positive
        TrackerMemoryError
            If the buffer cannot be allocated
        """
        values = (az_min, az_max, el_min, el_max, az_resolution, el_resolution)
        if not all(np.isfinite(v) for v in values):
            raise InvalidParameterError(f"Non-finite map parameter in {values}")
        if az_max - az_min <= 0.0 or el_max - el_min <= 0.0:
            raise InvalidParameterError(
                f"Invalid map range: az=[{az_min}, {az_max}], "
                f"el=[{el_min}, {el_max}]"
            )
        if az_resolution <= 0.0 or el_resolution <= 0.0:
            raise InvalidParameterError(
                f"Invalid map resolution: az={az_resolution}, el={el_resolution}"
            )

        self.az_min: float = float(az_min)
        self.az_max: float = float(az_max)
        self.el_min: float = float(el_min)
        self.el_max: float = float(el_max)
        self.az_resolution: float = float(az_resolution)
        self.el_resolution: float = float(el_resolution)
        self.az_samples: int = grid_points(az_max - az_min, az_resolution)
        self.el_samples: int = grid_points(el_max - el_min, el_resolution)

        try:
            self._data = np.zeros((self.el_samples, self.az_samples), dtype=np.float64)
        except MemoryError as exc:
            raise TrackerMemoryError(
                f"Failed to allocate signal map "
                f"({self.az_samples}x{self.el_samples} samples)"
            ) from exc

        logger.debug(
            "Created signal map: %dx%d samples, az=[%.4f, %.4f], el=[%.4f, %.4f]",
            self.az_samples, self.el_samples,
            self.az_min, self.grid_az_max, self.el_min, self.grid_el_max
        )

    @classmethod
    def from_center(
        cls,
        center_az: float,
        center_el: float,
        az_range: float,
        el_range: float,
        az_samples: int,
        el_samples: int
    ) -> 'SignalMap':
        """
        Build a map with a given sample count centred on a pointing direction.

        The map spans ``center ± range / 2`` on each axis with resolution
        ``range / (samples - 1)``.

        Parameters
        ----------
        center_az, center_el : float
            Map centre [rad]
        az_range, el_range : float
            Full angular extent per axis [rad]
        az_samples, el_samples : int
            Grid points per axis (at least 2)

        Returns
        -------
        SignalMap
        """
        if az_samples < 2 or el_samples < 2:
            raise InvalidParameterError(
                f"Map dimensions too small: {az_samples}x{el_samples}"
            )
        if az_range <= 0.0 or el_range <= 0.0:
            raise InvalidParameterError(
                f"Invalid map range: az_range={az_range}, el_range={el_range}"
            )
        return cls(
            center_az - az_range / 2.0,
            center_az + az_range / 2.0,
            center_el - el_range / 2.0,
            center_el + el_range / 2.0,
            az_range / (az_samples - 1),
            el_range / (el_samples - 1),
        )

    @property
    def grid_az_max(self) -> float:
        """Azimuth of the last grid column [rad]."""
        return self.az_min + (self.az_samples - 1) * self.az_resolution

    @property
    def grid_el_max(self) -> float:
        """Elevation of the last grid row [rad]."""
        return self.el_min + (self.el_samples - 1) * self.el_resolution

    @property
    def shape(self) -> Tuple[int, int]:
        """Buffer shape as (el_samples, az_samples)."""
        return self._data.shape

    @staticmethod
    def _axis_index(
        value: float,
        axis_min: float,
        resolution: float,
        samples: int
    ) -> Optional[int]:
        # Half-cell tolerance around the grid extent, then clamp
        raw = (value - axis_min) / resolution
        if not np.isfinite(raw) or raw < -0.5 or raw > (samples - 1) + 0.5:
            return None
        index = int(np.floor(raw + 0.5))
        return min(max(index, 0), samples - 1)

    def cell_index(self, azimuth: float, elevation: float) -> Optional[Tuple[int, int]]:
        """
        Nearest grid cell for a pointing direction.

        Returns
        -------
        Optional[Tuple[int, int]]
            (az_index, el_index), or None when out of range
        """
        az_idx = self._axis_index(azimuth, self.az_min, self.az_resolution, self.az_samples)
        el_idx = self._axis_index(elevation, self.el_min, self.el_resolution, self.el_samples)
        if az_idx is None or el_idx is None:
            return None
        return az_idx, el_idx

    def contains(self, azimuth: float, elevation: float) -> bool:
        """True when (azimuth, elevation) resolves to a grid cell."""
        return self.cell_index(azimuth, elevation) is not None

    def cell_center(self, az_index: int, el_index: int) -> Tuple[float, float]:
        """Grid-aligned coordinates of cell (az_index, el_index)."""
        return (
            self.az_min + az_index * self.az_resolution,
            self.el_min + el_index * self.el_resolution,
        )

    def set(self, azimuth: float, elevation: float, strength: float) -> None:
        """
        Store a strength at the nearest grid cell.

        Raises
        ------
        InvalidParameterError
            If strength is negative or not finite, or the coordinate lies
            outside the grid
        """
        if not np.isfinite(strength) or strength < 0.0:
            raise InvalidParameterError(f"Invalid signal strength: {strength}")
        cell = self.cell_index(azimuth, elevation)
        if cell is None:
            raise InvalidParameterError(
                f"Angle out of map bounds: az={azimuth:.6f}, el={elevation:.6f}"
            )
        az_idx, el_idx = cell
        self._data[el_idx, az_idx] = strength

    def get(self, azimuth: float, elevation: float) -> float:
        """
        Read the strength stored in the nearest grid cell.

        Raises
        ------
        OutOfRangeError
            If the coordinate lies outside the grid
        """
        cell = self.cell_index(azimuth, elevation)
        if cell is None:
            raise OutOfRangeError(
                f"Angle out of map bounds: az={azimuth:.6f}, el={elevation:.6f}"
            )
        az_idx, el_idx = cell
        return float(self._data[el_idx, az_idx])

    def clear(self) -> None:
        """Zero every cell."""
        self._data.fill(0.0)

    def peak(self) -> Tuple[float, float, float]:
        """
        Locate the strongest cell.

        Returns
        -------
        Tuple[float, float, float]
            (azimuth, elevation, strength) of the argmax cell. Ties resolve
            to the lowest flat index (smaller elevation row first).
        """
        flat_index = int(np.argmax(self._data))
        el_idx, az_idx = divmod(flat_index, self.az_samples)
        azimuth, elevation = self.cell_center(az_idx, el_idx)
        return azimuth, elevation, float(self._data[el_idx, az_idx])

    def azimuth_axis(self) -> np.ndarray:
        """Grid azimuths [rad]."""
        return self.az_min + np.arange(self.az_samples) * self.az_resolution

    def elevation_axis(self) -> np.ndarray:
        """Grid elevations [rad]."""
        return self.el_min + np.arange(self.el_samples) * self.el_resolution

    def to_array(self) -> np.ndarray:
        """Copy of the buffer, shape (el_samples, az_samples)."""
        return self._data.copy()

    def __repr__(self) -> str:
        return (
            f"SignalMap(az=[{self.az_min:.4f}, {self.grid_az_max:.4f}] x{self.az_samples}, "
            f"el=[{self.el_min:.4f}, {self.grid_el_max:.4f}] x{self.el_samples})"
        )
