"""
Alignment State Machine

Tracks whether the link is locked and which activity currently owns the
beam set-point.

State Diagram:
-------------
    UNCALIBRATED --calibrate ok--> TRACKING
         |                            |   ^
     weak sample                weak sample  strong sample
         v                            v   |
         +----------------------> MISALIGNED
                                   |      ^
                              reacquire   peak below threshold
                                   v      |
                                 REACQUIRING --peak ok--> TRACKING

Misalignment checks are edge-triggered: a transition is logged and recorded
once, repeated samples on the same side of the threshold report nothing.
The boolean ``misaligned`` and ``reacquisition_mode`` views are derived
from the single state value, so illegal flag combinations cannot occur.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

import numpy as np

from fso_beam_tracking.core.errors import InvalidParameterError

logger = logging.getLogger(__name__)


class AlignmentState(Enum):
    """Operating states of the beam tracker."""
    UNCALIBRATED = "uncalibrated"
    TRACKING = "tracking"
    MISALIGNED = "misaligned"
    REACQUIRING = "reacquiring"


@dataclass
class AlignmentEvent:
    """
    One recorded state change.

    Attributes
    ----------
    previous : AlignmentState
        State before the change
    current : AlignmentState
        State after the change
    strength : float
        Signal strength that triggered the change (NaN if not sample-driven)
    reason : str
        Short description ('signal_lost', 'signal_restored', ...)
    """
    previous: AlignmentState
    current: AlignmentState
    strength: float
    reason: str


def validate_threshold(threshold: float) -> float:
    if not np.isfinite(threshold) or threshold < 0.0 or threshold > 1.0:
        raise InvalidParameterError(
            f"Invalid threshold: {threshold} (must be 0.0-1.0)"
        )
    return float(threshold)


class AlignmentMonitor:
    """
    Edge-triggered misalignment detector and tracker mode holder.

    Usage:
    ------
    >>> monitor = AlignmentMonitor(threshold=0.5)
    >>> monitor.check(0.8)
    False
    >>> monitor.check(0.3)
    True
    >>> monitor.state
    <AlignmentState.MISALIGNED: 'misaligned'>
    """

    def __init__(self, threshold: float = 0.1):
        self.threshold: float = validate_threshold(threshold)
        self.state: AlignmentState = AlignmentState.UNCALIBRATED
        self.transitions: List[AlignmentEvent] = []
        self._entered_reacquisition_misaligned = False

    @property
    def misaligned(self) -> bool:
        if self.state is AlignmentState.MISALIGNED:
            return True
        return (self.state is AlignmentState.REACQUIRING
                and self._entered_reacquisition_misaligned)

    @property
    def reacquisition_mode(self) -> bool:
        return self.state is AlignmentState.REACQUIRING

    @property
    def is_aligned(self) -> bool:
        return not self.misaligned

    @property
    def calibrated(self) -> bool:
        return self.state is not AlignmentState.UNCALIBRATED

    def set_threshold(self, threshold: float) -> None:
        self.threshold = validate_threshold(threshold)
        logger.info("Set misalignment threshold: %.3f", self.threshold)

    def _transition(
        self,
        new_state: AlignmentState,
        reason: str,
        strength: Optional[float] = None
    ) -> None:
        if new_state is self.state:
            return
        event = AlignmentEvent(
            previous=self.state,
            current=new_state,
            strength=float('nan') if strength is None else float(strength),
            reason=reason,
        )
        self.transitions.append(event)
        logger.debug("Alignment state %s -> %s (%s)",
                     self.state.value, new_state.value, reason)
        self.state = new_state

    def check(self, strength: float) -> bool:
        """
        Classify one sample against the threshold.

        Parameters
        ----------
        strength : float
            Measured signal strength

        Returns
        -------
        bool
            True when the sample is below the threshold
        """
        below = strength < self.threshold

        if self.state is AlignmentState.REACQUIRING:
            # Scan owns the set-point; the outcome decides the next state
            return below

        if below:
            if not self.misaligned:
                logger.warning(
                    "Misalignment detected: strength=%.3f < threshold=%.3f",
                    strength, self.threshold
                )
                self._transition(AlignmentState.MISALIGNED, 'signal_lost', strength)
        elif self.state is AlignmentState.MISALIGNED:
            logger.info(
                "Alignment restored: strength=%.3f >= threshold=%.3f",
                strength, self.threshold
            )
            self._transition(AlignmentState.TRACKING, 'signal_restored', strength)
        return below

    def mark_calibrated(self, success: bool, strength: float) -> None:
        """Record the outcome of a calibration."""
        if success:
            self._transition(AlignmentState.TRACKING, 'calibrated', strength)
        else:
            self._transition(AlignmentState.MISALIGNED, 'calibration_weak', strength)

    def begin_reacquisition(self) -> None:
        self._entered_reacquisition_misaligned = self.misaligned
        self._transition(AlignmentState.REACQUIRING, 'reacquisition_started')

    def complete_reacquisition(self, success: bool, strength: float) -> None:
        """Leave REACQUIRING according to the scan outcome."""
        if success:
            self._transition(AlignmentState.TRACKING, 'reacquired', strength)
        else:
            self._transition(AlignmentState.MISALIGNED, 'reacquisition_failed', strength)
        self._entered_reacquisition_misaligned = False
