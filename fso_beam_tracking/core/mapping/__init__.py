"""Signal strength map over (azimuth, elevation)."""

from .signal_map import SignalMap, grid_points

__all__ = [
    'SignalMap',
    'grid_points',
]
