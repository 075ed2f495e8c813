"""
Simulation Context
==================

Explicit per-simulation state shared by the clock, the mode coordinator
and the propagation strategies.
"""

from dataclasses import dataclass
from enum import Enum


class PhysicsMode(Enum):
    """Active propagation model."""
    KEPLER = 'kepler'
    NBODY = 'nbody'
    
    @property
    def other(self) -> 'PhysicsMode':
        return PhysicsMode.NBODY if self is PhysicsMode.KEPLER else PhysicsMode.KEPLER


@dataclass
class SimulationContext:
    """Clock, configuration and active mode of one simulation."""
    clock: 'SimulationClock'
    config: 'OrreryConfig'
    mode: PhysicsMode = PhysicsMode.NBODY
    
    @property
    def au_scale(self) -> float:
        """Scene units per AU."""
        return self.config.scene.au_scale
