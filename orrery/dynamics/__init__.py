"""
Dynamics Module
===============

Kepler propagation, n-body integration and the propagation strategies.
"""

from .kepler import kepler_position, kepler_state, solve_kepler, elements_from_state, OrbitFitError
from .integrators import LeapfrogIntegrator, FixedStepAccumulator, create_integrator
from .nbody import NBodySystem
from .propagation import KeplerStrategy, NBodyStrategy, PropagationStrategy

__all__ = [
    'kepler_position',
    'kepler_state',
    'solve_kepler',
    'elements_from_state',
    'OrbitFitError',
    'LeapfrogIntegrator',
    'FixedStepAccumulator',
    'create_integrator',
    'NBodySystem',
    'KeplerStrategy',
    'NBodyStrategy',
    'PropagationStrategy',
]
