"""Pointing controllers."""

from .pid_control import BaseController, DualAxisPIDController, PIDController

__all__ = [
    'BaseController',
    'DualAxisPIDController',
    'PIDController',
]
