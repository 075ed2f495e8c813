"""
Main Simulator
==============

Per-tick driver tying the clock, mode coordinator, propagation strategies
and hierarchy composer together.
"""

import logging
import numpy as np
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Union

from .clock import SimulationClock
from .config import OrreryConfig
from .context import PhysicsMode, SimulationContext
from .coordinator import ModeCoordinator
from ..bodies.catalog import solar_system
from ..bodies.celestial import CelestialBody
from ..bodies.hierarchy import BodyHierarchy, build_hierarchy, compose
from ..dynamics.propagation import KeplerStrategy, NBodyStrategy

logger = logging.getLogger(__name__)


@dataclass
class SimulationState:
    """Snapshot of one tick for logging."""
    time_years: float = 0.0
    real_time_s: float = 0.0
    mode: PhysicsMode = PhysicsMode.NBODY
    speed_multiplier: float = 1.0
    paused: bool = False
    positions: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))  # World, scene units


class Simulator:
    """
    Orrery simulation engine.
    
    Each tick:
    1. Advance the clock
    2. Apply a pending physics-mode switch
    3. Propagate with the active strategy (skipped while paused)
    4. Compose world transforms
    5. Notify consumers (step callbacks)
    """
    
    def __init__(self,
                 config: OrreryConfig = None,
                 bodies: Optional[Iterable[CelestialBody]] = None):
        """
        Initialize simulator.
        
        Args:
            config: Orrery configuration
            bodies: Body records (default: built-in solar system)
        """
        self.config = config or OrreryConfig()
        cfg = self.config
        
        self.hierarchy: BodyHierarchy = build_hierarchy(
            solar_system() if bodies is None else bodies,
            g=cfg.integrator.gravitational_constant,
        )
        
        self.clock = SimulationClock(cfg.clock)
        self.context = SimulationContext(clock=self.clock, config=cfg, mode=cfg.initial_mode)
        
        self.kepler = KeplerStrategy(
            iterations=cfg.kepler.iterations,
            rebase_interval_years=cfg.kepler.rebase_interval_years,
        )
        self.nbody = NBodyStrategy(
            step_years=cfg.integrator.step_years,
            max_steps_per_tick=cfg.integrator.max_steps_per_tick,
            method=cfg.integrator.method,
            frame=cfg.integrator.frame,
            softening_au=cfg.integrator.softening_au,
            g=cfg.integrator.gravitational_constant,
        )
        self.coordinator = ModeCoordinator(self.kepler, self.nbody,
                                           tolerance=cfg.kepler.continuity_tolerance)
        self.coordinator.initialize(self.hierarchy, self.context)
        
        # Simulation state
        self.is_running = False
        self.step_count = 0
        
        # Data logging
        self.history: List[SimulationState] = []
        
        # Consumers, called after composition
        self.step_callbacks: List[Callable] = []
    
    # === Tick ===
    
    def tick(self, real_dt: float) -> SimulationState:
        """
        Advance the simulation by one frame.
        
        Args:
            real_dt: Real frame time in seconds
        
        Returns:
            Current simulation state
        """
        self.clock.advance(real_dt)
        self.coordinator.apply_pending(self.hierarchy, self.context)
        
        if not self.clock.is_paused:
            self.coordinator.propagate(self.hierarchy, self.context)
        
        compose(self.hierarchy)
        
        state = SimulationState(
            time_years=self.simulation_time,
            real_time_s=self.clock.real_time,
            mode=self.context.mode,
            speed_multiplier=self.clock.speed_multiplier,
            paused=self.clock.is_paused,
            positions=np.array([node.world_position for node in self.hierarchy.nodes]),
        )
        
        # Log state
        if len(self.history) == 0 or \
           (state.real_time_s - self.history[-1].real_time_s) >= (1.0 / self.config.output_rate_hz):
            self.history.append(state)
        
        for callback in self.step_callbacks:
            callback(self, state)
        
        self.step_count += 1
        return state
    
    def frame(self, timestamp: float) -> Optional[SimulationState]:
        """
        Animation-frame entry point.
        
        Args:
            timestamp: Wall-clock time in seconds
        
        Returns:
            Current state, or None if the tick failed (the failure is
            logged and the next frame proceeds normally)
        """
        try:
            return self.tick(self.clock.measure(timestamp))
        except Exception:
            logger.exception("Tick %d failed", self.step_count)
            return None
    
    def run(self,
            duration_seconds: float = None,
            frame_rate: float = None,
            progress_callback: Callable = None) -> List[SimulationState]:
        """
        Run headless at a fixed frame rate.
        
        Args:
            duration_seconds: Real seconds to simulate (default: config)
            frame_rate: Frames per real second (default: config)
            progress_callback: Called with progress (0-1)
        
        Returns:
            List of logged states
        """
        duration = duration_seconds or self.config.duration_seconds
        rate = frame_rate or self.config.frame_rate_hz
        frames = int(round(duration * rate))
        
        self.is_running = True
        for i in range(frames):
            self.tick(1.0 / rate)
            if progress_callback and (i + 1) % 100 == 0:
                progress_callback((i + 1) / frames)
        self.is_running = False
        
        if self.config.verbose:
            logger.info("Simulation complete: %d frames, %.6f yr simulated, %d logged states",
                        frames, self.simulation_time, len(self.history))
        
        return self.history
    
    def add_step_callback(self, callback: Callable):
        """Add callback to be called each tick with (simulator, state)."""
        self.step_callbacks.append(callback)
    
    # === Commands ===
    
    def increase_speed(self) -> float:
        return self.clock.increase_speed()
    
    def decrease_speed(self) -> float:
        return self.clock.decrease_speed()
    
    def reset_speed(self) -> float:
        return self.clock.reset_speed()
    
    def set_speed_multiplier(self, multiplier: float) -> float:
        return self.clock.set_speed_multiplier(multiplier)
    
    def toggle_physics_mode(self):
        """Switch mode at the next tick."""
        self.coordinator.toggle(self.context)
    
    def set_physics_mode(self, mode: Union[PhysicsMode, str]):
        """Request a specific mode for the next tick ('kepler' or 'nbody')."""
        self.coordinator.request_mode(PhysicsMode(mode))
    
    def pause(self):
        self.clock.pause()
    
    def resume(self):
        self.clock.resume()
    
    def toggle_pause(self) -> bool:
        return self.clock.toggle()
    
    def reset(self):
        """Reset time and re-seed every body from its catalog elements."""
        self.clock.reset()
        self.coordinator.initialize(self.hierarchy, self.context)
        self.history.clear()
        self.step_count = 0
    
    # === Outputs ===
    
    @property
    def physics_mode(self) -> PhysicsMode:
        return self.context.mode
    
    @property
    def speed_multiplier(self) -> float:
        return self.clock.speed_multiplier
    
    @property
    def simulation_time(self) -> float:
        """Propagation time of the active strategy (years)."""
        return self.coordinator.current_time(self.context)
    
    def world_position(self, name: str) -> np.ndarray:
        return self.hierarchy.world_position(name)
    
    def world_velocity(self, name: str) -> np.ndarray:
        return self.hierarchy.node(name).world_velocity.copy()
    
    def orbit_normal(self, name: str) -> np.ndarray:
        return self.hierarchy.node(name).orbit_normal.copy()
    
    def get_telemetry(self) -> Dict:
        """
        Get current telemetry data.
        
        Returns:
            Dictionary of telemetry values
        """
        telemetry = {
            'time_years': self.simulation_time,
            'clock_time_years': self.clock.simulation_time,
            'real_time_s': self.clock.real_time,
            'mode': self.context.mode.value,
            'speed_multiplier': self.clock.speed_multiplier,
            'paused': self.clock.is_paused,
            'step_count': self.step_count,
            'mode_switches': self.coordinator.switch_count,
            'bodies': {
                node.name: node.world_position.tolist() for node in self.hierarchy.nodes
            },
        }
        if self.context.mode is PhysicsMode.NBODY:
            telemetry['nbody_energy'] = self.nbody.energy()
            telemetry['nbody_steps'] = self.nbody.accumulator.total_steps
            telemetry['nbody_dropped_steps'] = self.nbody.accumulator.dropped_steps
        return telemetry
    
    def export_trajectory(self, filename: str = None) -> np.ndarray:
        """
        Export logged world positions.
        
        Columns: time_years, real_time_s, mode (0 Kepler, 1 n-body), then
        x, y, z for every body in hierarchy order.
        
        Args:
            filename: Optional CSV filename
        
        Returns:
            Trajectory data array
        """
        if not self.history:
            return np.array([])
        
        n = len(self.hierarchy)
        data = np.zeros((len(self.history), 3 + 3 * n))
        
        for i, state in enumerate(self.history):
            data[i, 0] = state.time_years
            data[i, 1] = state.real_time_s
            data[i, 2] = 1.0 if state.mode is PhysicsMode.NBODY else 0.0
            data[i, 3:] = state.positions.reshape(-1)
        
        if filename:
            columns = ["time_years", "real_time_s", "mode"]
            for name in self.hierarchy.names:
                columns += [f"{name}_x", f"{name}_y", f"{name}_z"]
            np.savetxt(filename, data, delimiter=',', header=','.join(columns))
        
        return data
