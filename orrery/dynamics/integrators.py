"""
Numerical Integrators
=====================

Fixed-step integration methods for the n-body system, and the
fixed-timestep accumulator that decouples frame rate from step size.

All integrators advance a second-order system r'' = a(r) given as
position/velocity arrays of any shape.
"""

import logging
import numpy as np
from typing import Callable, Tuple

logger = logging.getLogger(__name__)

AccelerationFunc = Callable[[np.ndarray], np.ndarray]


class LeapfrogIntegrator:
    """
    Kick-drift-kick leapfrog (velocity Verlet).
    
    Symplectic and time-reversible: energy error stays bounded over long
    runs instead of drifting.
    """
    
    def __init__(self, acceleration_func: AccelerationFunc):
        """
        Initialize integrator.
        
        Args:
            acceleration_func: a = f(r)
        """
        self.acceleration = acceleration_func
    
    def step(self, r: np.ndarray, v: np.ndarray, dt: float) -> Tuple[np.ndarray, np.ndarray]:
        """
        Perform single leapfrog step.
        
        Args:
            r: Positions
            v: Velocities
            dt: Time step
        
        Returns:
            Tuple of (new_positions, new_velocities)
        """
        v_half = v + 0.5 * dt * self.acceleration(r)
        r_new = r + dt * v_half
        v_new = v_half + 0.5 * dt * self.acceleration(r_new)
        return r_new, v_new


class SymplecticEuler:
    """
    Symplectic Euler integrator for Hamiltonian systems.
    
    Preserves phase space volume (first order).
    """
    
    def __init__(self, acceleration_func: AccelerationFunc):
        self.acceleration = acceleration_func
    
    def step(self, r: np.ndarray, v: np.ndarray, dt: float) -> Tuple[np.ndarray, np.ndarray]:
        # Semi-implicit: update velocity first, then position
        v_new = v + self.acceleration(r) * dt
        r_new = r + v_new * dt
        
        return r_new, v_new


class RK4Integrator:
    """
    4th order Runge-Kutta integrator.
    
    Classic fixed-step RK4 on the (r, v) system. Not symplectic; kept for
    accuracy comparisons over short spans.
    """
    
    def __init__(self, acceleration_func: AccelerationFunc):
        self.acceleration = acceleration_func
    
    def step(self, r: np.ndarray, v: np.ndarray, dt: float) -> Tuple[np.ndarray, np.ndarray]:
        k1_r, k1_v = v, self.acceleration(r)
        k2_r, k2_v = v + 0.5*dt*k1_v, self.acceleration(r + 0.5*dt*k1_r)
        k3_r, k3_v = v + 0.5*dt*k2_v, self.acceleration(r + 0.5*dt*k2_r)
        k4_r, k4_v = v + dt*k3_v, self.acceleration(r + dt*k3_r)
        
        r_new = r + (dt/6) * (k1_r + 2*k2_r + 2*k3_r + k4_r)
        v_new = v + (dt/6) * (k1_v + 2*k2_v + 2*k3_v + k4_v)
        return r_new, v_new


INTEGRATORS = {
    'leapfrog': LeapfrogIntegrator,
    'symplectic_euler': SymplecticEuler,
    'rk4': RK4Integrator,
}


def create_integrator(method: str, acceleration_func: AccelerationFunc):
    """
    Create an integrator by name.
    
    Args:
        method: 'leapfrog', 'symplectic_euler' or 'rk4'
        acceleration_func: a = f(r)
    
    Returns:
        Integrator instance
    """
    try:
        cls = INTEGRATORS[method]
    except KeyError:
        raise ValueError(f"Unknown integration method: {method}") from None
    return cls(acceleration_func)


class FixedStepAccumulator:
    """
    Fixed-timestep accumulator.
    
    Each tick adds its (already scaled) simulated time; whole steps of
    size `step` are then taken out, at most `max_steps_per_tick` per tick.
    A backlog beyond the cap is discarded so a stall never triggers an
    unbounded catch-up.
    
    The steps due are counted from the compensated total of all added
    time, not from a running remainder, so a burst of deltas summing to
    N * step yields N steps however it is split across ticks.
    """
    
    def __init__(self, step: float, max_steps_per_tick: int = 2048, tolerance: float = 1e-9):
        """
        Args:
            step: Fixed step size h (simulated years)
            max_steps_per_tick: Upper bound on steps per add()
            tolerance: Fraction of a step treated as rounding error
        """
        if not step > 0:
            raise ValueError(f"Step must be positive: {step}")
        if max_steps_per_tick < 1:
            raise ValueError(f"Step cap must be at least 1: {max_steps_per_tick}")
        self.step = step
        self.max_steps_per_tick = max_steps_per_tick
        self.tolerance = tolerance
        self._added = CompensatedSum()
        self._consumed = 0  # Steps taken or dropped
        self.accumulator = 0.0
        self.total_steps = 0
        self.dropped_steps = 0
    
    def add(self, delta: float) -> int:
        """
        Accumulate time and count the steps due.
        
        Args:
            delta: Simulated time to add (negative values are ignored)
        
        Returns:
            Number of fixed steps to run this tick
        """
        if delta > 0:
            self._added.add(delta)
        
        due = int(np.floor(self._added.value / self.step + self.tolerance)) - self._consumed
        due = max(due, 0)
        steps = min(due, self.max_steps_per_tick)
        
        if due > steps:
            backlog = due - steps
            self.dropped_steps += backlog
            logger.debug("Step cap %d reached, dropped %d steps of backlog",
                         self.max_steps_per_tick, backlog)
        
        self._consumed += due
        self.accumulator = max(self._added.value - self._consumed * self.step, 0.0)
        self.total_steps += steps
        return steps
    
    @property
    def alpha(self) -> float:
        """Fraction of a step left in the accumulator."""
        return self.accumulator / self.step
    
    def reset(self):
        """Clear accumulated time and counters."""
        self._added.reset()
        self._consumed = 0
        self.accumulator = 0.0
        self.total_steps = 0
        self.dropped_steps = 0


class CompensatedSum:
    """
    Kahan-compensated running sum.
    
    Keeps long-run simulated time accurate when many small per-tick deltas
    are added to a large total.
    """
    
    def __init__(self, value: float = 0.0):
        self.value = float(value)
        self._compensation = 0.0
    
    def add(self, delta: float) -> float:
        """Add delta and return the new total."""
        y = delta - self._compensation
        total = self.value + y
        self._compensation = (total - self.value) - y
        self.value = total
        return self.value
    
    def reset(self, value: float = 0.0):
        self.value = float(value)
        self._compensation = 0.0
    
    def __float__(self) -> float:
        return self.value
    
    def __repr__(self) -> str:
        return f"CompensatedSum({self.value!r})"
