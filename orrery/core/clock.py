"""
Simulation Clock
================

Single source of truth for simulated time.

Turns real frame time into per-system simulated deltas:
- physics_delta: simulated years for orbital propagation
- kepler_delta / nbody_delta: physics_delta with per-mode calibration
- rotation_delta: simulated seconds for body spin
- effects_delta: real seconds for visual effects
"""

import logging
import numpy as np
from collections import deque
from typing import Optional

from .config import ClockParameters
from ..constants import SECONDS_PER_YEAR
from ..dynamics.integrators import CompensatedSum

logger = logging.getLogger(__name__)


class SimulationClock:
    """
    Manages simulation time and speed.
    
    Provides:
    - Capped (optionally smoothed) frame delta
    - Speed multiplier clamped to configured limits
    - Compensated accumulation of simulated years
    - Pause / resume
    """
    
    def __init__(self, params: ClockParameters = None):
        """
        Initialize clock.
        
        Args:
            params: Clock parameters
        """
        self.params = params or ClockParameters()
        p = self.params
        
        self.speed_multiplier = min(max(p.initial_speed, p.min_speed), p.max_speed)
        self.time_scale = p.time_scale
        self.orbital_time_scale = p.orbital_time_scale
        self.rotation_time_scale = p.rotation_time_scale
        self.effects_time_scale = p.effects_time_scale
        self.kepler_time_scale = p.kepler_time_scale
        self.nbody_time_scale = p.nbody_time_scale
        self.max_delta_seconds = p.max_delta_seconds
        
        self.is_paused = False
        self._simulation_time = CompensatedSum()
        self.real_time = 0.0
        self.delta_time = 0.0
        self.last_timestamp: Optional[float] = None
        self.frame_count = 0
        
        self.smoothed_delta = 1.0 / 60.0
        self._frame_history = deque(maxlen=p.history_length)
    
    # === Frame input ===
    
    def start(self, timestamp: float):
        """
        Start the clock at a wall-clock timestamp (seconds).
        
        Clears accumulated time and resumes.
        """
        self.reset()
        self.last_timestamp = timestamp
        self.is_paused = False
        logger.debug("Clock started at %.3f", timestamp)
    
    def measure(self, timestamp: float) -> float:
        """
        Raw real delta since the previous timestamp (seconds).
        
        The first measurement assumes one 60 Hz frame.
        """
        if self.last_timestamp is None:
            raw = 1.0 / 60.0
        else:
            raw = timestamp - self.last_timestamp
        self.last_timestamp = timestamp
        return raw
    
    def update(self, timestamp: float) -> float:
        """Advance by the real time elapsed since the last timestamp."""
        return self.advance(self.measure(timestamp))
    
    def advance(self, real_dt: float) -> float:
        """
        Advance the clock by one frame.
        
        Args:
            real_dt: Real frame time in seconds (capped, negatives ignored)
        
        Returns:
            Effective frame delta in seconds (0 while paused)
        """
        if not np.isfinite(real_dt) or real_dt < 0:
            real_dt = 0.0
        real_dt = min(real_dt, self.max_delta_seconds)
        
        if self.is_paused:
            self.delta_time = 0.0
            return 0.0
        
        self.real_time += real_dt
        self.delta_time = self._smooth(real_dt) if self.params.adaptive_timestep else real_dt
        self._simulation_time.add(self.physics_delta)
        self.frame_count += 1
        return self.delta_time
    
    def _smooth(self, real_dt: float) -> float:
        p = self.params
        self._frame_history.append(real_dt)
        average = sum(self._frame_history) / len(self._frame_history)
        
        # Slow frames move toward a larger step, fast frames toward the average
        if average > p.performance_threshold:
            target = min(average * 0.8, p.max_timestep)
        else:
            target = max(average, p.min_timestep)
        
        smoothed = self.smoothed_delta + (target - self.smoothed_delta) * p.adaptation_rate
        smoothed = min(max(smoothed, p.min_timestep), p.max_timestep)
        self.smoothed_delta = (1.0 - p.smoothing_factor) * smoothed + p.smoothing_factor * real_dt
        return self.smoothed_delta
    
    # === Speed control ===
    
    def set_speed_multiplier(self, multiplier: float) -> float:
        """
        Set speed multiplier, clamped to [min_speed, max_speed].
        
        Returns:
            Applied multiplier
        """
        if not np.isfinite(multiplier):
            logger.warning("Ignoring non-finite speed multiplier %r", multiplier)
            return self.speed_multiplier
        p = self.params
        self.speed_multiplier = float(min(max(multiplier, p.min_speed), p.max_speed))
        logger.debug("Speed multiplier set to %gx", self.speed_multiplier)
        return self.speed_multiplier
    
    def increase_speed(self) -> float:
        return self.set_speed_multiplier(self.speed_multiplier * self.params.speed_factor)
    
    def decrease_speed(self) -> float:
        return self.set_speed_multiplier(self.speed_multiplier / self.params.speed_factor)
    
    def reset_speed(self) -> float:
        return self.set_speed_multiplier(self.params.min_speed)
    
    # === Deltas ===
    
    @property
    def physics_delta(self) -> float:
        """Simulated years for this frame."""
        return (self.delta_time * self.speed_multiplier * self.time_scale
                * self.orbital_time_scale / SECONDS_PER_YEAR)
    
    @property
    def kepler_delta(self) -> float:
        return self.physics_delta * self.kepler_time_scale
    
    @property
    def nbody_delta(self) -> float:
        return self.physics_delta * self.nbody_time_scale
    
    @property
    def rotation_delta(self) -> float:
        """Simulated seconds of body spin for this frame."""
        return self.delta_time * self.speed_multiplier * self.rotation_time_scale
    
    @property
    def effects_delta(self) -> float:
        """Real seconds for visual effects (independent of speed)."""
        return self.delta_time * self.effects_time_scale
    
    @property
    def simulation_time(self) -> float:
        """Accumulated simulated years."""
        return self._simulation_time.value
    
    # === Pause ===
    
    def pause(self):
        if not self.is_paused:
            self.is_paused = True
            logger.debug("Clock paused")
    
    def resume(self):
        if self.is_paused:
            self.is_paused = False
            logger.debug("Clock resumed")
    
    def toggle(self) -> bool:
        """Toggle pause; returns True when now paused."""
        if self.is_paused:
            self.resume()
        else:
            self.pause()
        return self.is_paused
    
    def reset(self):
        """Reset accumulated time. Speed and scales are kept."""
        self._simulation_time.reset()
        self.real_time = 0.0
        self.delta_time = 0.0
        self.last_timestamp = None
        self.frame_count = 0
        self.smoothed_delta = 1.0 / 60.0
        self._frame_history.clear()
        logger.debug("Clock reset")
    
    def __repr__(self) -> str:
        return (f"SimulationClock(t={self.simulation_time:.6f} yr, speed={self.speed_multiplier:g}x, "
                f"paused={self.is_paused})")
