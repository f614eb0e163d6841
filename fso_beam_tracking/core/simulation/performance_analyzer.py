"""
Tracking Performance Analyzer for FSO Links

Computes link-level tracking metrics from simulation or field telemetry.

Key Metrics:
-----------
1. RMS / peak / mean pointing error (µrad)
2. Link availability: fraction of samples at or above the signal threshold
3. Time to first lock (s)
4. Misalignment episodes and the longest outage (s)
5. Reacquisition count
"""

import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import numpy as np
import pandas as pd


@dataclass
class TrackingMetrics:
    """
    Container for computed tracking metrics.

    Angular errors in microradians (µrad), times in seconds.
    """
    # Pointing
    rms_pointing_error: float = 0.0   # µrad
    peak_pointing_error: float = 0.0  # µrad
    mean_pointing_error: float = 0.0  # µrad

    # Link
    mean_signal_strength: float = 0.0
    availability: float = 0.0         # fraction
    time_to_first_lock: float = float('nan')  # s
    misalignment_episodes: int = 0
    longest_outage: float = 0.0       # s
    reacquisition_count: int = 0

    # Time-domain stats
    total_duration: float = 0.0       # s
    sample_count: int = 0

    # Pass/fail flags
    meets_rms_requirement: bool = False
    meets_availability_requirement: bool = False

    metadata: Dict[str, Any] = field(default_factory=dict)


def _runs(mask: np.ndarray):
    """Yield (start, length) of consecutive True runs."""
    padded = np.concatenate(([False], mask, [False]))
    edges = np.flatnonzero(np.diff(padded.astype(int)))
    for start, stop in zip(edges[::2], edges[1::2]):
        yield int(start), int(stop - start)


class TrackingPerformanceAnalyzer:
    """
    Link tracking performance analysis.

    Usage:
    ------
    >>> analyzer = TrackingPerformanceAnalyzer(
    ...     rms_requirement=2000.0,        # µrad
    ...     availability_requirement=0.95
    ... )
    >>> metrics = analyzer.analyze(result.telemetry, signal_threshold=0.3)
    >>> print(analyzer.generate_report(metrics))
    """

    def __init__(
        self,
        rms_requirement: float = 2000.0,  # µrad
        availability_requirement: float = 0.95,
        signal_threshold: float = 0.1
    ):
        """
        Parameters
        ----------
        rms_requirement : float
            Maximum allowed RMS pointing error [µrad]
        availability_requirement : float
            Minimum fraction of samples at or above the threshold
        signal_threshold : float
            Default misalignment threshold for availability
        """
        self.rms_requirement = rms_requirement
        self.availability_requirement = availability_requirement
        self.signal_threshold = signal_threshold

    def analyze(
        self,
        telemetry: Union[Dict[str, Any], pd.DataFrame],
        signal_threshold: Optional[float] = None,
        start_time: float = 0.0,
        end_time: Optional[float] = None
    ) -> TrackingMetrics:
        """
        Compute tracking metrics from telemetry.

        Parameters
        ----------
        telemetry : Dict or pd.DataFrame
            Required keys:
            - 'time': Time vector [s]
            - 'signal_strength': Measured strength
            Optional keys:
            - 'pointing_error' [rad], or 'pointing_error_az'/'pointing_error_el'
            - 'aligned': Tracker alignment flag per sample
            - 'reacquisition': True on ticks that ran a reacquisition
        signal_threshold : float, optional
            Availability threshold; the analyzer default when omitted
        start_time, end_time : float
            Analysis window [s]

        Returns
        -------
        TrackingMetrics

        Raises
        ------
        ValueError
            Missing required keys or empty telemetry
        """
        if isinstance(telemetry, pd.DataFrame):
            telemetry = {col: telemetry[col].to_numpy() for col in telemetry.columns}

        for key in ('time', 'signal_strength'):
            if key not in telemetry:
                raise ValueError(f"Telemetry must contain '{key}' key")

        time = np.asarray(telemetry['time'], dtype=float)
        if time.size == 0:
            raise ValueError("Telemetry is empty")

        threshold = self.signal_threshold if signal_threshold is None else signal_threshold
        metrics = TrackingMetrics()

        if end_time is None:
            end_time = time[-1]
        mask = (time >= start_time) & (time <= end_time)
        time_window = time[mask]
        if time_window.size == 0:
            warnings.warn("Empty time window, returning zero metrics")
            return metrics

        dt = float(np.median(np.diff(time_window))) if time_window.size > 1 else 0.0
        metrics.total_duration = float(time_window[-1] - time_window[0])
        metrics.sample_count = int(time_window.size)

        self._compute_pointing_metrics(telemetry, mask, metrics)

        strength = np.asarray(telemetry['signal_strength'], dtype=float)[mask]
        metrics.mean_signal_strength = float(np.mean(strength))
        metrics.availability = float(np.mean(strength >= threshold))

        if 'aligned' in telemetry:
            aligned = np.asarray(telemetry['aligned'], dtype=bool)[mask]
        else:
            aligned = strength >= threshold
        self._compute_link_metrics(aligned, time_window, dt, metrics)

        if 'reacquisition' in telemetry:
            metrics.reacquisition_count = int(
                np.sum(np.asarray(telemetry['reacquisition'], dtype=bool)[mask])
            )

        metrics.metadata['signal_threshold'] = threshold
        return self._assess_requirements(metrics)

    def _compute_pointing_metrics(
        self,
        telemetry: Dict,
        mask: np.ndarray,
        metrics: TrackingMetrics
    ) -> None:
        if 'pointing_error' in telemetry:
            radial = np.abs(np.asarray(telemetry['pointing_error'], dtype=float)[mask])
        elif 'pointing_error_az' in telemetry and 'pointing_error_el' in telemetry:
            err_az = np.asarray(telemetry['pointing_error_az'], dtype=float)[mask]
            err_el = np.asarray(telemetry['pointing_error_el'], dtype=float)[mask]
            radial = np.hypot(err_az, err_el)
        else:
            warnings.warn("No pointing error data found")
            return

        radial = radial * 1e6  # rad -> µrad
        metrics.rms_pointing_error = float(np.sqrt(np.mean(radial ** 2)))
        metrics.peak_pointing_error = float(np.max(radial))
        metrics.mean_pointing_error = float(np.mean(radial))

    def _compute_link_metrics(
        self,
        aligned: np.ndarray,
        time_window: np.ndarray,
        dt: float,
        metrics: TrackingMetrics
    ) -> None:
        locked = np.flatnonzero(aligned)
        if locked.size > 0:
            metrics.time_to_first_lock = float(time_window[locked[0]] - time_window[0])

        outages = list(_runs(~aligned))
        metrics.misalignment_episodes = len(outages)
        if outages:
            metrics.longest_outage = max(length for _, length in outages) * dt

    def _assess_requirements(self, metrics: TrackingMetrics) -> TrackingMetrics:
        metrics.meets_rms_requirement = metrics.rms_pointing_error <= self.rms_requirement
        metrics.meets_availability_requirement = (
            metrics.availability >= self.availability_requirement
        )
        return metrics

    def generate_report(self, metrics: TrackingMetrics) -> str:
        """Human-readable metrics summary."""
        def verdict(ok: bool) -> str:
            return 'PASS' if ok else 'FAIL'

        report = [
            "=" * 70,
            "BEAM TRACKING PERFORMANCE REPORT",
            "=" * 70,
            "",
            "POINTING:",
            f"  RMS Pointing Error:    {metrics.rms_pointing_error:10.2f} µrad  "
            f"[Req: {self.rms_requirement:.1f}] {verdict(metrics.meets_rms_requirement)}",
            f"  Peak Pointing Error:   {metrics.peak_pointing_error:10.2f} µrad",
            f"  Mean Pointing Error:   {metrics.mean_pointing_error:10.2f} µrad",
            "",
            "LINK:",
            f"  Mean Signal Strength:  {metrics.mean_signal_strength:10.4f}",
            f"  Availability:          {metrics.availability * 100:10.2f} %     "
            f"[Req: {self.availability_requirement * 100:.1f}%] "
            f"{verdict(metrics.meets_availability_requirement)}",
            f"  Time to First Lock:    {metrics.time_to_first_lock:10.4f} s",
            f"  Misalignment Episodes: {metrics.misalignment_episodes:10d}",
            f"  Longest Outage:        {metrics.longest_outage:10.4f} s",
            f"  Reacquisitions:        {metrics.reacquisition_count:10d}",
            "",
            f"  Duration:              {metrics.total_duration:10.4f} s",
            f"  Samples:               {metrics.sample_count:10d}",
            "=" * 70,
        ]
        return "\n".join(report)

    def to_dataframe(self, metrics: TrackingMetrics) -> pd.DataFrame:
        """Single-row DataFrame for batch comparison."""
        data = {
            'rms_pointing_error': metrics.rms_pointing_error,
            'peak_pointing_error': metrics.peak_pointing_error,
            'mean_pointing_error': metrics.mean_pointing_error,
            'mean_signal_strength': metrics.mean_signal_strength,
            'availability': metrics.availability,
            'time_to_first_lock': metrics.time_to_first_lock,
            'misalignment_episodes': metrics.misalignment_episodes,
            'longest_outage': metrics.longest_outage,
            'reacquisition_count': metrics.reacquisition_count,
            'meets_rms_req': metrics.meets_rms_requirement,
            'meets_availability_req': metrics.meets_availability_requirement,
        }
        return pd.DataFrame([data])
