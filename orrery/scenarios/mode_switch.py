"""
Mode Switch Scenario
====================

Repeated Kepler / n-body hand-overs under time compression.
"""

import logging
import numpy as np
from typing import Dict, List, Optional
from dataclasses import dataclass

from ..bodies.catalog import solar_system
from ..core.config import ClockParameters, OrreryConfig
from ..core.context import PhysicsMode
from ..core.simulator import Simulator

logger = logging.getLogger(__name__)


@dataclass
class ModeSwitchScenarioConfig:
    """Configuration for mode switch scenario."""
    duration_seconds: float = 20.0  # Real seconds
    frame_rate_hz: float = 30.0
    switch_interval_frames: int = 30
    speed_multiplier: float = 86400.0 * 10  # Ten days per second
    initial_mode: str = 'kepler'


class ModeSwitchScenario:
    """
    Mode switch continuity scenario.
    
    Tests:
    - World-position continuity across every switch
    - Osculating-element re-fit on return to Kepler mode
    - Velocity hand-over into n-body mode
    """
    
    def __init__(self, config: ModeSwitchScenarioConfig = None, bodies=None):
        """
        Initialize mode switch scenario.
        
        Args:
            config: Scenario configuration
            bodies: Body records (default: built-in solar system)
        """
        self.config = config or ModeSwitchScenarioConfig()
        self.bodies = bodies if bodies is not None else solar_system()
        
        self.sim_config = OrreryConfig(
            initial_mode=PhysicsMode(self.config.initial_mode),
            duration_seconds=self.config.duration_seconds,
            frame_rate_hz=self.config.frame_rate_hz,
            clock=ClockParameters(initial_speed=self.config.speed_multiplier),
            verbose=False,
        )
        
        self.simulator: Optional[Simulator] = None
        self.results: Dict = {}
        self.switch_events: List[Dict] = []
        self.history: List = []
    
    def setup(self):
        """Setup scenario."""
        self.simulator = Simulator(self.sim_config, bodies=self.bodies)
        self.switch_events.clear()
        self._switches_seen = 0
        
        self.simulator.add_step_callback(self._switch_monitor)
    
    def _switch_monitor(self, sim: Simulator, state):
        """Record the previous switch and queue the next one."""
        coordinator = sim.coordinator
        if coordinator.switch_count != self._switches_seen:
            self._switches_seen = coordinator.switch_count
            self.switch_events.append({
                'time_years': state.time_years,
                'mode': state.mode.value,
                'drift': coordinator.last_drift,
            })
            logger.debug("Switched to %s at t=%.4f yr, drift %.3e",
                         state.mode.value, state.time_years, coordinator.last_drift)
        
        if (sim.step_count + 1) % self.config.switch_interval_frames == 0:
            sim.toggle_physics_mode()
    
    def run(self, progress_callback=None) -> Dict:
        """
        Run mode switch scenario.
        
        Returns:
            Results dictionary
        """
        if self.simulator is None:
            self.setup()
        
        logger.info("Running Mode Switch Scenario: %.1f s at %gx",
                    self.config.duration_seconds, self.config.speed_multiplier)
        
        history = self.simulator.run(progress_callback=progress_callback)
        self.history = history
        self.results = self._analyze_results()
        
        return self.results
    
    def _analyze_results(self) -> Dict:
        """Analyze scenario results."""
        drifts = [event['drift'] for event in self.switch_events]
        sim = self.simulator
        
        return {
            'duration_years': sim.simulation_time,
            'num_switches': len(self.switch_events),
            'max_drift': max(drifts) if drifts else 0.0,
            'mean_drift': float(np.mean(drifts)) if drifts else 0.0,
            'failed_fits': sim.kepler.failed_fits,
            'final_mode': sim.physics_mode.value,
            'within_tolerance': all(d <= self.sim_config.kepler.continuity_tolerance for d in drifts),
        }
    
    def get_summary(self) -> str:
        """Get human-readable summary."""
        if not self.results:
            return "Scenario not yet run."
        
        return f"""
Mode Switch Scenario Summary
============================
Simulated: {self.results['duration_years']:.4f} yr
Switches: {self.results['num_switches']}

Continuity:
  Max drift: {self.results['max_drift']:.3e} scene units
  Mean drift: {self.results['mean_drift']:.3e} scene units
  Within tolerance: {'YES' if self.results['within_tolerance'] else 'NO'}
  Failed element fits: {self.results['failed_fits']}

Final mode: {self.results['final_mode']}
"""
