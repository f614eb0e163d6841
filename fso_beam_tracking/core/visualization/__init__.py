"""
Visualization for beam tracking.

Modules:
--------
- tracking_plots: signal map heat maps and tracking timelines
"""

from .tracking_plots import TrackingPlotter

__all__ = [
    'TrackingPlotter',
]
