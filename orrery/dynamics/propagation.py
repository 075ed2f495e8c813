"""
Propagation Strategies
======================

The two interchangeable ways of advancing every body's parent-relative
state by one tick:

- KeplerStrategy: analytic two-body motion from orbital elements
- NBodyStrategy: fixed-step gravitational integration

Both write PhysicsState in scene units (position) and scene units per
simulated year (velocity), so the composer and every consumer read the
same data whichever strategy is active.
"""

import logging
import numpy as np
from dataclasses import dataclass
from typing import Dict, Optional

from .integrators import CompensatedSum, FixedStepAccumulator
from .kepler import (
    KEPLER_EQUATION_ITERATIONS,
    TWO_PI,
    OrbitFitError,
    elements_from_state,
    kepler_state,
    mean_motion,
)
from .nbody import NBodySystem
from ..bodies.celestial import OrbitalElements, PhysicsState
from ..constants import GRAVITATIONAL_CONSTANT

logger = logging.getLogger(__name__)


class PropagationStrategy:
    """
    Interface shared by the propagation strategies.
    
    A strategy is bound to one hierarchy, owns its own propagation time
    (simulated years) and is entered at the time handed over by the
    strategy it replaces.
    """
    
    name = 'base'
    
    def __init__(self):
        self.time = CompensatedSum()
    
    @property
    def current_time(self) -> float:
        return self.time.value
    
    def bind(self, hierarchy):
        """Prepare per-body data for a hierarchy and restart at t = 0."""
        raise NotImplementedError
    
    def enter(self, hierarchy, context, time: float):
        """Take over the current physics states at the given time."""
        raise NotImplementedError
    
    def advance(self, hierarchy, context):
        """Advance every body by the context clock's delta for this strategy."""
        raise NotImplementedError


@dataclass
class KeplerOrbit:
    """Per-body Kepler phase bookkeeping."""
    elements: OrbitalElements
    mean_motion: float  # rad/yr
    epoch: float = 0.0  # Simulated years
    mean_anomaly_at_epoch: float = 0.0  # rad
    
    def mean_anomaly(self, t: float) -> float:
        return self.mean_anomaly_at_epoch + self.mean_motion * (t - self.epoch)
    
    def rebase(self, t: float):
        """Move the epoch to t, folding accumulated phase into [0, 2*pi)."""
        self.mean_anomaly_at_epoch = self.mean_anomaly(t) % TWO_PI
        self.epoch = t


class KeplerStrategy(PropagationStrategy):
    """
    Analytic propagation from per-body orbital elements.
    
    Mean anomaly is tracked as M = M_epoch + n (t - epoch). The epoch is
    moved forward every `rebase_interval_years` so that n (t - epoch)
    stays small and the phase keeps full precision over long runs.
    """
    
    name = 'kepler'
    
    def __init__(self,
                 iterations: int = KEPLER_EQUATION_ITERATIONS,
                 rebase_interval_years: float = 1000.0):
        """
        Initialize Kepler strategy.
        
        Args:
            iterations: Newton-Raphson iterations for Kepler's equation
            rebase_interval_years: Maximum |t - epoch| before rebasing
        """
        super().__init__()
        if iterations < 1:
            raise ValueError(f"Iteration count must be at least 1: {iterations}")
        if not rebase_interval_years > 0:
            raise ValueError(f"Rebase interval must be positive: {rebase_interval_years}")
        self.iterations = iterations
        self.rebase_interval_years = rebase_interval_years
        self.orbits: Dict[int, KeplerOrbit] = {}
        self.failed_fits = 0
    
    def bind(self, hierarchy):
        self.time.reset()
        self.orbits = {}
        for node in hierarchy.iter_nodes():
            if node.parent is None:
                continue
            elements = node.body.elements
            self.orbits[node.index] = KeplerOrbit(
                elements=elements,
                mean_motion=mean_motion(elements.semi_major_axis_au, node.mu),
                epoch=0.0,
                mean_anomaly_at_epoch=elements.mean_anomaly_rad,
            )
        self.failed_fits = 0
    
    def enter(self, hierarchy, context, time: float):
        """
        Re-fit osculating elements to the current states at `time`.
        
        A body whose state cannot be fitted (unbound, degenerate or
        non-finite) keeps its previous elements and is logged.
        """
        self.time.reset(time)
        au_scale = context.au_scale
        
        for node in hierarchy.iter_nodes():
            orbit = self.orbits.get(node.index)
            if orbit is None:
                continue
            
            # States are stored in ecliptic axes; fit in the parent's plane
            position = node.frame_rotation.T @ node.state.position / au_scale
            velocity = node.frame_rotation.T @ node.state.velocity / au_scale
            try:
                elements = elements_from_state(position, velocity, node.mu)
            except OrbitFitError as exc:
                self.failed_fits += 1
                logger.warning("Keeping previous elements for '%s': %s", node.name, exc)
                continue
            
            self.orbits[node.index] = KeplerOrbit(
                elements=elements,
                mean_motion=mean_motion(elements.semi_major_axis_au, node.mu),
                epoch=time,
                mean_anomaly_at_epoch=elements.mean_anomaly_rad,
            )
        
        self.evaluate(hierarchy, au_scale)
    
    def advance(self, hierarchy, context):
        self.time.add(context.clock.kepler_delta)
        self.evaluate(hierarchy, context.au_scale)
    
    def evaluate(self, hierarchy, au_scale: float):
        """
        Write every body's state at the current strategy time.
        
        A body whose evaluation fails keeps its last state.
        """
        t = self.time.value
        for node in hierarchy.iter_nodes():
            orbit = self.orbits.get(node.index)
            if orbit is None:
                continue
            
            if abs(t - orbit.epoch) > self.rebase_interval_years:
                orbit.rebase(t)
            
            try:
                position, velocity = kepler_state(
                    orbit.elements, node.mu, t, au_scale,
                    iterations=self.iterations,
                    mean_anomaly=orbit.mean_anomaly(t),
                )
            except (ArithmeticError, ValueError) as exc:
                logger.error("Kepler evaluation failed for '%s': %s", node.name, exc)
                continue
            
            state = PhysicsState(node.frame_rotation @ position, node.frame_rotation @ velocity, t)
            if not state.is_finite():
                logger.error("Non-finite Kepler state for '%s' at t=%.6f yr", node.name, t)
                continue
            
            node.state.position = state.position
            node.state.velocity = state.velocity
            node.state.time = t
    
    def elements_of(self, index: int) -> Optional[OrbitalElements]:
        orbit = self.orbits.get(index)
        return None if orbit is None else orbit.elements


class NBodyStrategy(PropagationStrategy):
    """
    Fixed-step n-body propagation.
    
    Each tick feeds its simulated time into a fixed-timestep accumulator
    and runs the whole steps that fall due; the step size never depends
    on the speed multiplier.
    """
    
    name = 'nbody'
    
    def __init__(self,
                 step_years: float = 2.0**-16,
                 max_steps_per_tick: int = 2048,
                 method: str = 'leapfrog',
                 frame: str = 'local',
                 softening_au: float = 0.0,
                 g: float = GRAVITATIONAL_CONSTANT):
        """
        Initialize n-body strategy.
        
        Args:
            step_years: Fixed integration step h
            max_steps_per_tick: Cap on steps per tick
            method: Integrator name
            frame: 'local' or 'global' subsystem partitioning
            softening_au: Plummer softening length
            g: Gravitational constant
        """
        super().__init__()
        self.accumulator = FixedStepAccumulator(step_years, max_steps_per_tick)
        self.method = method
        self.frame = frame
        self.softening_au = softening_au
        self.g = g
        self.system: Optional[NBodySystem] = None
    
    @property
    def step_years(self) -> float:
        return self.accumulator.step
    
    def bind(self, hierarchy):
        self.system = NBodySystem(hierarchy, frame=self.frame, method=self.method,
                                  g=self.g, softening=self.softening_au)
        self.time.reset()
        self.accumulator.reset()
    
    def enter(self, hierarchy, context, time: float):
        """
        Load the current states into the integrator.
        
        Bodies without a finite velocity start from rest.
        """
        if self.system is None or self.system.hierarchy is not hierarchy:
            self.bind(hierarchy)
        
        for node in hierarchy.iter_nodes():
            if node.parent is None:
                continue
            if not np.all(np.isfinite(node.state.velocity)):
                logger.warning("Non-finite velocity for '%s' on n-body entry, using zero", node.name)
                node.state.velocity = np.zeros(3)
        
        self.system.load(context.au_scale)
        self.time.reset(time)
        self.accumulator.reset()
    
    def advance(self, hierarchy, context):
        steps = self.accumulator.add(context.clock.nbody_delta)
        if steps == 0:
            return
        
        h = self.accumulator.step
        for _ in range(steps):
            self.system.step(h)
        
        bad = ~np.all(np.isfinite(self.system.positions) & np.isfinite(self.system.velocities), axis=1)
        if np.any(bad):
            names = [hierarchy.nodes[i].name for i in np.flatnonzero(bad)]
            logger.error("Non-finite n-body state for %s, restoring last states", ', '.join(names))
            self.system.load(context.au_scale)
            return
        
        self.time.add(steps * h)
        self.system.store(context.au_scale, self.time.value)
    
    def energy(self) -> float:
        """Total subsystem energy, or nan before binding."""
        if self.system is None:
            return float('nan')
        return self.system.energy()
