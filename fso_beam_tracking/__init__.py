"""
Adaptive beam tracking core for free-space optical (FSO) terminals.

Keeps a directional optical beam pointed at a peer terminal with a 2-D
signal-strength map, momentum gradient ascent, an optional PID set-point
controller and a calibration / misalignment / reacquisition state machine.
"""

__version__ = "0.1.0"
