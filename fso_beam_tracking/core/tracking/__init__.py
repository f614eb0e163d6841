"""
Beam tracking package.

Modules:
--------
- config: tracker options and JSON loading
- scanner: raster scan through the measurement callback
- gradient_ascent: adaptive-step momentum hill climbing on the map
- alignment: calibration / misalignment / reacquisition state machine
- beam_tracker: the tracker facade tying the above together
"""

from .alignment import AlignmentEvent, AlignmentMonitor, AlignmentState
from .beam_tracker import BeamTracker, TrackerStatus
from .config import TrackerConfig, load_tracker_config
from .gradient_ascent import MomentumGradientAscent
from .scanner import RasterScanner, ScanResult

__all__ = [
    'AlignmentEvent',
    'AlignmentMonitor',
    'AlignmentState',
    'BeamTracker',
    'TrackerStatus',
    'TrackerConfig',
    'load_tracker_config',
    'MomentumGradientAscent',
    'RasterScanner',
    'ScanResult',
]
