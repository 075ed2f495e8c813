"""
Orrery
======

Dual-mode orbital-mechanics engine for solar-system visualizers.

Every tick it computes parent-relative and world-space states for a
hierarchy of celestial bodies under one of two interchangeable models:
- Analytic Kepler propagation from orbital elements
- Numerical n-body gravitational integration

Components:
- Body catalog, validating hierarchy builder and world-transform composer
- Kepler propagator and osculating-element fit
- Fixed-step n-body integrators (leapfrog, symplectic Euler, RK4)
- Simulation clock with speed control (1x to 6,553,600x)
- Physics mode coordinator with continuous hand-over
"""

__version__ = "1.0.0"

from orrery.core.simulator import Simulator
from orrery.core.clock import SimulationClock
from orrery.core.config import OrreryConfig
from orrery.core.context import PhysicsMode

__all__ = [
    'Simulator',
    'SimulationClock',
    'OrreryConfig',
    'PhysicsMode',
]
