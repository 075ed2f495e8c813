"""
Orrery Core Module
==================

Clock, configuration, mode coordination and the per-tick driver.
"""

from .simulator import Simulator, SimulationState
from .clock import SimulationClock
from .config import OrreryConfig
from .context import PhysicsMode, SimulationContext
from .coordinator import ModeCoordinator

__all__ = [
    'Simulator',
    'SimulationState',
    'SimulationClock',
    'OrreryConfig',
    'PhysicsMode',
    'SimulationContext',
    'ModeCoordinator',
]
