"""
Error Codes and Exceptions for the Beam Tracking Core

The surrounding radio stack consumes tracker failures as stable numeric
codes, while Python callers get ordinary exceptions. Every exception raised
by the tracking core carries its code so both views stay consistent.

Taxonomy:
--------
- INVALID_PARAM: malformed input (negative range, threshold outside [0, 1],
  negative strength). Raised before any state is touched.
- OUT_OF_RANGE: map coordinate outside the defined grid. The caller decides
  whether to fall back.
- MEMORY: buffer allocation failure. Fatal to the current call only.
- NOT_INITIALIZED: optional component (PID) requested but not configured.
- CONVERGENCE: calibration or reacquisition found no peak at or above the
  misalignment threshold. The tracker is left misaligned.
"""

from enum import IntEnum


class ErrorCode(IntEnum):
    """Numeric result codes shared with the radio stack."""
    SUCCESS = 0
    INVALID_PARAM = -1
    MEMORY = -2
    NOT_INITIALIZED = -3
    CONVERGENCE = -4
    OUT_OF_RANGE = -7


class BeamTrackingError(Exception):
    """Base class for all tracking core failures."""

    code: ErrorCode = ErrorCode.INVALID_PARAM

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message}"


class InvalidParameterError(BeamTrackingError, ValueError):
    """Malformed argument or configuration value."""
    code = ErrorCode.INVALID_PARAM


class OutOfRangeError(BeamTrackingError, LookupError):
    """Coordinate lies outside the signal map grid."""
    code = ErrorCode.OUT_OF_RANGE


class TrackerMemoryError(BeamTrackingError, MemoryError):
    """Signal map or controller buffers could not be allocated."""
    code = ErrorCode.MEMORY


class NotInitializedError(BeamTrackingError, RuntimeError):
    """An optional component was used before being configured."""
    code = ErrorCode.NOT_INITIALIZED


class ConvergenceError(BeamTrackingError, RuntimeError):
    """No usable signal peak was found by a calibration or reacquisition."""
    code = ErrorCode.CONVERGENCE


def error_code_for(exc: BaseException) -> ErrorCode:
    """
    Map an exception onto the error code reported to the radio stack.

    Parameters
    ----------
    exc : BaseException
        Exception raised by a tracker call

    Returns
    -------
    ErrorCode
        The carried code for tracking errors, MEMORY for bare
        ``MemoryError`` and INVALID_PARAM for anything else
    """
    if isinstance(exc, BeamTrackingError):
        return exc.code
    if isinstance(exc, MemoryError):
        return ErrorCode.MEMORY
    return ErrorCode.INVALID_PARAM
