"""
Core components of the beam tracking package.

Subpackages:
-----------
- mapping: signal strength map
- controllers: PID set-point control
- tracking: scanner, gradient engine, alignment state machine, tracker
- disturbances: pointing drift, wander and platform jitter
- simulation: link faults, closed-loop simulation, performance metrics
- visualization: signal map and timeline plots
"""

from .errors import (
    BeamTrackingError,
    ConvergenceError,
    ErrorCode,
    InvalidParameterError,
    NotInitializedError,
    OutOfRangeError,
    TrackerMemoryError,
    error_code_for,
)

__all__ = [
    'BeamTrackingError',
    'ConvergenceError',
    'ErrorCode',
    'InvalidParameterError',
    'NotInitializedError',
    'OutOfRangeError',
    'TrackerMemoryError',
    'error_code_for',
]
