"""
Demo: Adaptive Beam Tracking

Walks through the tracker life cycle against a simulated peer terminal:
calibration, gradient tracking, loss of lock and reacquisition, then a
closed-loop simulation with disturbances and a deep fade. Plots are written
to ./beam_tracking_output (or the directory given as first argument).
"""

import logging
import sys
from pathlib import Path

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np

from fso_beam_tracking.core.errors import ConvergenceError
from fso_beam_tracking.core.simulation.link_faults import LinkFaultType
from fso_beam_tracking.core.simulation.performance_analyzer import TrackingPerformanceAnalyzer
from fso_beam_tracking.core.simulation.tracking_simulation import (
    TrackingSimulation,
    TrackingSimulationConfig,
)
from fso_beam_tracking.core.tracking.beam_tracker import BeamTracker
from fso_beam_tracking.core.visualization.tracking_plots import TrackingPlotter

TARGET_AZ = 0.03    # rad
TARGET_EL = -0.02   # rad


def make_beam(noise_std: float = 0.02, seed: int = 42):
    """Noisy Gaussian beam centred on the peer direction."""
    rng = np.random.default_rng(seed)

    def measure(azimuth, elevation, user_data=None):
        offset = user_data or (0.0, 0.0)
        r2 = (azimuth + offset[0] - TARGET_AZ) ** 2 + (elevation + offset[1] - TARGET_EL) ** 2
        strength = np.exp(-r2 / 0.0005) + rng.normal(0.0, noise_std)
        return float(np.clip(strength, 0.0, 1.0))

    return measure


def demo_calibrate_and_track(output_dir: Path) -> None:
    print("=" * 70)
    print("DEMO 1: Calibration and Gradient Tracking")
    print("=" * 70)

    tracker = BeamTracker({
        'map_az_resolution': 0.005,
        'map_el_resolution': 0.005,
        'step_size': 0.005,
        'step_min': 1e-4,
        'step_max': 0.02,
        'step_adapt_factor': 1.2,
        'momentum': 0.5,
        'convergence_threshold': 5,
        'signal_threshold': 0.3,
    })
    measure = make_beam()

    result = tracker.calibrate(0.2, 0.2, 0.02, 0.002, measure)
    print(f"\nCalibrated: az={tracker.azimuth:.4f}, el={tracker.elevation:.4f}, "
          f"strength={tracker.signal_strength:.3f} "
          f"({result.points_scanned} fine points, {tracker.scan_count} scans)")

    for _ in range(50):
        tracker.update(measure(tracker.azimuth, tracker.elevation))
    status = tracker.get_status()
    print(f"After 50 updates: az={tracker.azimuth:.4f}, el={tracker.elevation:.4f}, "
          f"aligned={status.is_aligned}, converged={status.is_converged}")

    print("\nPlatform shock: beam pushed 15 mrad off the peer...")
    shock = (0.015, 0.0)
    tracker.update(measure(tracker.azimuth, tracker.elevation, shock))
    print(f"  misaligned={tracker.misaligned}, state={tracker.state.value}")

    try:
        tracker.reacquire(0.05, 0.05, 0.0025, measure, shock)
        print(f"  Reacquired: az={tracker.azimuth:.4f}, el={tracker.elevation:.4f}, "
              f"strength={tracker.signal_strength:.3f}")
    except ConvergenceError as exc:
        print(f"  Reacquisition failed: {exc}")

    plotter = TrackingPlotter()
    fig, _ = plotter.plot_signal_map(tracker.signal_map_snapshot(),
                                     title='Signal Map After Reacquisition')
    fig.savefig(output_dir / 'signal_map.png', dpi=150, bbox_inches='tight')
    plt.close(fig)


def demo_closed_loop(output_dir: Path) -> None:
    print("\n" + "=" * 70)
    print("DEMO 2: Closed-Loop Simulation with Disturbances and a Deep Fade")
    print("=" * 70)

    config = TrackingSimulationConfig(
        duration=5.0,
        update_rate=100.0,
        measurement_noise_std=0.02,
        disturbance_config={
            'drift_rate_az': 5e-4,
            'drift_rate_el': -2e-4,
            'wander_rms': 3e-4,
            'wander_correlation_time': 0.5,
            'jitter_rms': 1e-4,
        },
        fault_config={'faults': [
            {'type': LinkFaultType.SIGNAL_FADE.value, 'start_time': 2.0, 'duration': 0.3,
             'parameters': {'attenuation': 0.05}},
            {'type': LinkFaultType.POINTING_STEP.value, 'start_time': 3.5,
             'parameters': {'offset_az': 0.008}},
        ]},
    )

    sim = TrackingSimulation(config)
    result = sim.run_simulation()

    print(f"\nCalibration succeeded: {result.calibration_succeeded}")
    print(f"Reacquisitions: {result.reacquisition_attempts} "
          f"({result.reacquisition_successes} ok, {result.reacquisition_failures} failed)")

    analyzer = TrackingPerformanceAnalyzer(rms_requirement=5000.0,
                                           availability_requirement=0.9)
    metrics = analyzer.analyze(result.telemetry, signal_threshold=result.signal_threshold)
    print()
    print(analyzer.generate_report(metrics))

    result.to_dataframe().to_csv(output_dir / 'telemetry.csv', index=False)

    plotter = TrackingPlotter()
    fig, _ = plotter.plot_tracking_timeline(result.telemetry,
                                            signal_threshold=result.signal_threshold)
    fig.savefig(output_dir / 'tracking_timeline.png', dpi=150, bbox_inches='tight')
    plt.close(fig)


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO,
                        format='%(asctime)s %(name)s %(levelname)s: %(message)s')
    # Per-scan detail is noisy at INFO for a demo
    logging.getLogger('fso_beam_tracking.core.tracking.scanner').setLevel(logging.WARNING)

    output_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else Path('beam_tracking_output')
    output_dir.mkdir(parents=True, exist_ok=True)

    demo_calibrate_and_track(output_dir)
    demo_closed_loop(output_dir)

    print("\n" + "=" * 70)
    print(f"Plots and telemetry written to {output_dir.resolve()}")
    print("=" * 70)
