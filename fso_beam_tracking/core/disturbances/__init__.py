"""
Pointing disturbance models for FSO beam tracking.

Disturbances are expressed as angular offsets [rad] added to the commanded
beam direction: linear drift, Gauss-Markov beam wander and band-limited
platform jitter.
"""

from .pointing_disturbances import (
    DISTURBANCE_PROFILES,
    DisturbanceState,
    PointingDisturbances,
    create_pointing_disturbances,
)

__all__ = [
    'DISTURBANCE_PROFILES',
    'DisturbanceState',
    'PointingDisturbances',
    'create_pointing_disturbances',
]
