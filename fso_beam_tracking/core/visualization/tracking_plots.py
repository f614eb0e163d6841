"""
Beam Tracking Plots

Visual diagnostics for the tracker:

- Signal map heat map with the peak cell marked
- Synchronized timeline of signal strength, pointing error and alignment
  state, with outages shaded

Each plot answers one debugging question: where does the tracker think the
beam is, and when (and for how long) did it lose the link?
"""

from typing import Dict, List, Optional, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd


class TrackingPlotter:
    """
    Plotter for signal maps and tracking telemetry.

    Usage:
    ------
    >>> plotter = TrackingPlotter()
    >>> fig, ax = plotter.plot_signal_map(tracker.signal_map_snapshot())
    >>> fig, axes = plotter.plot_tracking_timeline(result.telemetry, signal_threshold=0.3)
    >>> fig.savefig('tracking_timeline.png', dpi=150)
    """

    def __init__(
        self,
        figure_size: Tuple[int, int] = (12, 9),
        angle_unit: str = 'mrad',  # 'mrad' or 'rad'
    ):
        self.figure_size = figure_size
        self.angle_scale = 1000.0 if angle_unit == 'mrad' else 1.0
        self.angle_label = angle_unit

    def plot_signal_map(
        self,
        snapshot: Dict[str, np.ndarray],
        title: Optional[str] = None,
        ax: Optional[plt.Axes] = None
    ) -> Tuple[plt.Figure, plt.Axes]:
        """
        Heat map of a signal map snapshot.

        Parameters
        ----------
        snapshot : dict
            Output of ``BeamTracker.signal_map_snapshot()``: 'values',
            'azimuth', 'elevation', 'peak'
        title : str, optional
            Plot title
        ax : plt.Axes, optional
            Existing axes

        Returns
        -------
        fig : plt.Figure
        ax : plt.Axes
        """
        if ax is None:
            fig, ax = plt.subplots(figsize=(8, 7))
        else:
            fig = ax.figure

        az = np.asarray(snapshot['azimuth']) * self.angle_scale
        el = np.asarray(snapshot['elevation']) * self.angle_scale
        values = np.asarray(snapshot['values'])

        mesh = ax.pcolormesh(az, el, values, shading='nearest', cmap='viridis')
        fig.colorbar(mesh, ax=ax, label='Signal strength')

        if 'peak' in snapshot:
            peak_az, peak_el, peak_strength = snapshot['peak']
            ax.plot(peak_az * self.angle_scale, peak_el * self.angle_scale, 'r+',
                    markersize=14, markeredgewidth=2,
                    label=f'Peak ({peak_strength:.3f})')
            ax.legend(loc='upper right', fontsize=9)

        ax.set_xlabel(f'Azimuth ({self.angle_label})', fontsize=11, fontweight='bold')
        ax.set_ylabel(f'Elevation ({self.angle_label})', fontsize=11, fontweight='bold')
        ax.set_title(title or 'Signal Strength Map', fontsize=13, fontweight='bold')
        ax.set_aspect('equal')

        return fig, ax

    def plot_tracking_timeline(
        self,
        telemetry: Union[Dict, pd.DataFrame],
        signal_threshold: Optional[float] = None,
        time_window: Optional[Tuple[float, float]] = None,
        title: Optional[str] = None
    ) -> Tuple[plt.Figure, np.ndarray]:
        """
        Three-panel timeline: strength, pointing error, alignment state.

        Parameters
        ----------
        telemetry : dict or DataFrame
            Simulation telemetry ('time', 'signal_strength',
            'pointing_error', 'aligned', optional 'reacquisition')
        signal_threshold : float, optional
            Drawn on the strength panel when given
        time_window : tuple, optional
            (start, end) time range [s]
        title : str, optional
            Figure title

        Returns
        -------
        fig : plt.Figure
        axes : array of plt.Axes
        """
        df = self._to_dataframe(telemetry, time_window)
        time = df['time'].values

        fig, axes = plt.subplots(3, 1, figsize=self.figure_size, sharex=True)

        aligned = df['aligned'].values.astype(bool) if 'aligned' in df else None
        outages = self._get_contiguous_regions(~aligned) if aligned is not None else []

        # Panel 1: signal strength
        axes[0].plot(time, df['signal_strength'].values, 'b-', linewidth=1.2,
                     label='Measured strength')
        if signal_threshold is not None:
            axes[0].axhline(signal_threshold, color='r', linestyle='--', linewidth=1.2,
                            label=f'Threshold ({signal_threshold:.2f})')
        if 'reacquisition' in df:
            reacq = df['reacquisition'].values.astype(bool)
            if np.any(reacq):
                axes[0].plot(time[reacq], df['signal_strength'].values[reacq], 'kx',
                             markersize=6, label='Reacquisition')
        axes[0].set_ylabel('Strength', fontsize=11, fontweight='bold')
        axes[0].set_ylim(-0.05, 1.05)
        axes[0].legend(loc='lower right', fontsize=9)
        axes[0].grid(True, alpha=0.3)
        axes[0].set_title(title or 'Beam Tracking Timeline', fontsize=13, fontweight='bold')

        # Panel 2: pointing error
        if 'pointing_error' in df:
            axes[1].plot(time, df['pointing_error'].values * self.angle_scale, 'g-',
                         linewidth=1.2, label='Radial error')
            axes[1].legend(loc='upper right', fontsize=9)
        axes[1].set_ylabel(f'Pointing error ({self.angle_label})', fontsize=11,
                           fontweight='bold')
        axes[1].grid(True, alpha=0.3)

        # Panel 3: alignment
        if aligned is not None:
            axes[2].step(time, aligned.astype(int), 'k-', where='post', linewidth=1.2)
        axes[2].set_yticks([0, 1])
        axes[2].set_yticklabels(['Misaligned', 'Aligned'])
        axes[2].set_xlabel('Time (s)', fontsize=11, fontweight='bold')
        axes[2].grid(True, alpha=0.3)

        for start, end in outages:
            t_end = time[min(end, len(time) - 1)]
            for axis in axes:
                axis.axvspan(time[start], t_end, alpha=0.15, color='red')

        plt.tight_layout()
        return fig, axes

    def _to_dataframe(
        self,
        telemetry: Union[Dict, pd.DataFrame],
        time_window: Optional[Tuple[float, float]]
    ) -> pd.DataFrame:
        if isinstance(telemetry, dict):
            df = pd.DataFrame(telemetry)
        else:
            df = telemetry.copy()

        if time_window is not None:
            mask = (df['time'] >= time_window[0]) & (df['time'] <= time_window[1])
            df = df[mask].reset_index(drop=True)
        return df

    def _get_contiguous_regions(self, condition: np.ndarray) -> List[Tuple[int, int]]:
        """(start_idx, end_idx) of each run where condition is True."""
        d = np.diff(np.concatenate(([False], condition, [False])).astype(int))
        starts = np.where(d == 1)[0]
        ends = np.where(d == -1)[0]
        return list(zip(starts, ends))
