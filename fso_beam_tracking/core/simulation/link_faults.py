"""
Link Fault Injection for Beam Tracking Robustness Testing

Deterministic, time-scheduled impairments of the optical link used to
exercise misalignment detection and reacquisition:

1. Signal dropout: receiver reports no power (cloud, obstruction)
2. Signal fade: multiplicative attenuation (scintillation, haze)
3. Noise burst: extra additive measurement noise (background light)
4. Pointing step: sudden platform offset (shock, re-mount)

Usage Pattern:
-------------
The simulation queries the injector every tick. Measurement faults are
applied to the detector output, pointing steps are added to the beam
pointing error.

Example:
--------
>>> config = {
...     'faults': [
...         {'type': 'signal_fade', 'start_time': 2.0, 'duration': 0.5,
...          'parameters': {'attenuation': 0.05}},
...         {'type': 'pointing_step', 'start_time': 4.0,
...          'parameters': {'offset_az': 0.01}}
...     ]
... }
>>> injector = LinkFaultInjector(config)
>>> strength = injector.apply_to_measurement(0.9, current_time=2.3)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import numpy as np


class LinkFaultType(Enum):
    """Enumeration of supported link fault types."""
    SIGNAL_DROPOUT = "signal_dropout"
    SIGNAL_FADE = "signal_fade"
    NOISE_BURST = "noise_burst"
    POINTING_STEP = "pointing_step"


@dataclass
class LinkFaultEvent:
    """
    Definition of a single link fault.

    Attributes
    ----------
    fault_type : LinkFaultType
        Type of fault to inject
    start_time : float
        Simulation time when the fault activates [s]
    duration : float
        How long the fault persists [s] (None = permanent)
    parameters : Dict
        Fault-specific parameters ('attenuation', 'noise_std',
        'offset_az', 'offset_el')
    """
    fault_type: LinkFaultType
    start_time: float
    duration: Optional[float] = None
    parameters: Dict[str, Any] = field(default_factory=dict)

    def is_active(self, current_time: float) -> bool:
        if current_time < self.start_time:
            return False
        if self.duration is None:
            return True
        return current_time < (self.start_time + self.duration)


class LinkFaultInjector:
    """
    Deterministic link fault schedule.

    Faults are sorted by start time and evaluated against the simulation
    clock; overlapping faults of the same type combine (fades multiply,
    noise variances add, pointing steps add).
    """

    def __init__(self, config: Optional[Dict] = None):
        """
        Parameters
        ----------
        config : Dict
            - 'faults': List of fault definitions, each with 'type',
              'start_time', optional 'duration' and 'parameters'
            - 'seed': Random seed for noise bursts
        """
        config = config or {}
        self.config = config
        self.seed = config.get('seed', 42)
        self.rng = np.random.default_rng(self.seed)

        self.fault_events: List[LinkFaultEvent] = []
        self._parse_fault_schedule(config.get('faults', []))

    def _parse_fault_schedule(self, fault_list: List[Dict]) -> None:
        for fault_dict in fault_list:
            fault_type_str = fault_dict.get('type', '')
            try:
                fault_type = LinkFaultType(fault_type_str)
            except ValueError:
                raise ValueError(
                    f"Unknown link fault type: {fault_type_str}. "
                    f"Valid types: {[ft.value for ft in LinkFaultType]}"
                )

            duration = fault_dict.get('duration')
            if duration is not None and duration < 0.0:
                raise ValueError(f"Fault duration must be non-negative, got {duration}")

            self.fault_events.append(LinkFaultEvent(
                fault_type=fault_type,
                start_time=fault_dict.get('start_time', 0.0),
                duration=duration,
                parameters=dict(fault_dict.get('parameters', {})),
            ))

        self.fault_events.sort(key=lambda e: e.start_time)

    def get_active_faults(self, current_time: float) -> Dict[str, List[LinkFaultEvent]]:
        """
        Active faults grouped by type value.

        Returns
        -------
        Dict[str, List[LinkFaultEvent]]
            e.g. {'signal_fade': [LinkFaultEvent(...)]}
        """
        active: Dict[str, List[LinkFaultEvent]] = {}
        for event in self.fault_events:
            if event.is_active(current_time):
                active.setdefault(event.fault_type.value, []).append(event)
        return active

    def apply_to_measurement(
        self,
        strength: float,
        current_time: float,
        rng: Optional[np.random.Generator] = None
    ) -> float:
        """
        Impair a detector measurement with the faults active at current_time.

        Parameters
        ----------
        strength : float
            Unimpaired measurement
        current_time : float
            Simulation time [s]
        rng : np.random.Generator, optional
            Noise source; the injector's own generator when omitted

        Returns
        -------
        float
            Impaired measurement, never negative
        """
        active = self.get_active_faults(current_time)
        if not active:
            return strength

        if LinkFaultType.SIGNAL_DROPOUT.value in active:
            return 0.0

        for event in active.get(LinkFaultType.SIGNAL_FADE.value, []):
            strength *= event.parameters.get('attenuation', 0.1)

        noise_var = sum(
            event.parameters.get('noise_std', 0.1) ** 2
            for event in active.get(LinkFaultType.NOISE_BURST.value, [])
        )
        if noise_var > 0.0:
            rng = rng if rng is not None else self.rng
            strength += rng.normal(0.0, np.sqrt(noise_var))

        return max(0.0, strength)

    def get_pointing_offset(self, current_time: float) -> Tuple[float, float]:
        """Summed (az, el) offset of active pointing steps [rad]."""
        offset_az = 0.0
        offset_el = 0.0
        for event in self.get_active_faults(current_time).get(
                LinkFaultType.POINTING_STEP.value, []):
            offset_az += event.parameters.get('offset_az', 0.0)
            offset_el += event.parameters.get('offset_el', 0.0)
        return offset_az, offset_el

    def get_fault_summary(self) -> Dict:
        return {
            'total_faults': len(self.fault_events),
            'fault_types': sorted({e.fault_type.value for e in self.fault_events}),
            'first_fault_time': self.fault_events[0].start_time if self.fault_events else None,
        }

    def reset(self) -> None:
        self.rng = np.random.default_rng(self.seed)


def create_link_fault_injector(scenario: str = 'none', **kwargs) -> LinkFaultInjector:
    """
    Factory function for pre-configured link fault scenarios.

    Parameters
    ----------
    scenario : str
        Scenario name:
        - 'none': No faults
        - 'dropout': Complete signal loss ('start_time', 'duration')
        - 'deep_fade': Attenuated signal ('start_time', 'duration', 'attenuation')
        - 'custom': User-provided fault list ('faults')
    **kwargs
        Scenario-specific parameters and 'seed'

    Returns
    -------
    LinkFaultInjector

    Example
    -------
    >>> injector = create_link_fault_injector('deep_fade', start_time=3.0)
    """
    seed = kwargs.get('seed', 42)
    if scenario == 'none':
        faults = []
    elif scenario == 'dropout':
        faults = [{
            'type': LinkFaultType.SIGNAL_DROPOUT.value,
            'start_time': kwargs.get('start_time', 2.0),
            'duration': kwargs.get('duration', 0.2),
        }]
    elif scenario == 'deep_fade':
        faults = [{
            'type': LinkFaultType.SIGNAL_FADE.value,
            'start_time': kwargs.get('start_time', 2.0),
            'duration': kwargs.get('duration', 0.5),
            'parameters': {'attenuation': kwargs.get('attenuation', 0.05)},
        }]
    elif scenario == 'custom':
        faults = kwargs.get('faults', [])
    else:
        raise ValueError(
            f"Unknown scenario: {scenario}. "
            f"Valid: 'none', 'dropout', 'deep_fade', 'custom'"
        )

    return LinkFaultInjector({'seed': seed, 'faults': faults})
