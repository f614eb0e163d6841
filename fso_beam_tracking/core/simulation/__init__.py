"""Link faults, closed-loop tracking simulation and performance metrics."""

from .link_faults import (
    LinkFaultEvent,
    LinkFaultInjector,
    LinkFaultType,
    create_link_fault_injector,
)
from .performance_analyzer import TrackingMetrics, TrackingPerformanceAnalyzer
from .tracking_simulation import (
    TrackingSimulation,
    TrackingSimulationConfig,
    TrackingSimulationResult,
)

__all__ = [
    'LinkFaultEvent',
    'LinkFaultInjector',
    'LinkFaultType',
    'create_link_fault_injector',
    'TrackingMetrics',
    'TrackingPerformanceAnalyzer',
    'TrackingSimulation',
    'TrackingSimulationConfig',
    'TrackingSimulationResult',
]
