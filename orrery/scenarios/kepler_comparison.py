"""
Kepler Comparison Scenario
==========================

Runs the analytic and numerical models side by side from the same
initial state and tracks how far their world positions separate.
"""

import logging
import numpy as np
from typing import Dict, List, Optional
from dataclasses import dataclass

from ..bodies.catalog import sun_earth_moon
from ..core.config import ClockParameters, OrreryConfig
from ..core.context import PhysicsMode
from ..core.simulator import Simulator

logger = logging.getLogger(__name__)


@dataclass
class KeplerComparisonScenarioConfig:
    """Configuration for Kepler comparison scenario."""
    duration_seconds: float = 10.0  # Real seconds
    frame_rate_hz: float = 30.0
    speed_multiplier: float = 86400.0 * 4  # Four days per second


class KeplerComparisonScenario:
    """
    Kepler vs n-body comparison scenario.
    
    Tests:
    - Agreement of the two models for nearly Keplerian bodies
    - Growth of the separation from sibling perturbations
    """
    
    def __init__(self, config: KeplerComparisonScenarioConfig = None, bodies=None):
        """Initialize comparison scenario."""
        self.config = config or KeplerComparisonScenarioConfig()
        self.bodies = bodies if bodies is not None else sun_earth_moon()
        
        self.kepler_sim: Optional[Simulator] = None
        self.nbody_sim: Optional[Simulator] = None
        self.results: Dict = {}
        self.time_history: List[float] = []
        self.separation_history: List[np.ndarray] = []
    
    def _config(self, mode: PhysicsMode) -> OrreryConfig:
        return OrreryConfig(
            initial_mode=mode,
            duration_seconds=self.config.duration_seconds,
            frame_rate_hz=self.config.frame_rate_hz,
            clock=ClockParameters(initial_speed=self.config.speed_multiplier),
            verbose=False,
        )
    
    def setup(self):
        """Setup scenario."""
        self.kepler_sim = Simulator(self._config(PhysicsMode.KEPLER), bodies=self.bodies)
        self.nbody_sim = Simulator(self._config(PhysicsMode.NBODY), bodies=self.bodies)
        self.time_history.clear()
        self.separation_history.clear()
    
    def run(self, progress_callback=None) -> Dict:
        """
        Run both models frame by frame.
        
        Returns:
            Results dictionary
        """
        if self.kepler_sim is None:
            self.setup()
        
        logger.info("Running Kepler Comparison Scenario: %.1f s at %gx",
                    self.config.duration_seconds, self.config.speed_multiplier)
        
        dt = 1.0 / self.config.frame_rate_hz
        frames = int(round(self.config.duration_seconds * self.config.frame_rate_hz))
        for i in range(frames):
            k = self.kepler_sim.tick(dt)
            n = self.nbody_sim.tick(dt)
            self.time_history.append(k.time_years)
            self.separation_history.append(np.linalg.norm(k.positions - n.positions, axis=1))
            
            if progress_callback and (i + 1) % 100 == 0:
                progress_callback((i + 1) / frames)
        
        self.results = self._analyze_results()
        return self.results
    
    def _analyze_results(self) -> Dict:
        """Analyze scenario results."""
        if not self.separation_history:
            return {}
        
        separation = np.array(self.separation_history)
        names = self.kepler_sim.hierarchy.names
        return {
            'duration_years': self.time_history[-1],
            'max_separation': {name: float(separation[:, i].max()) for i, name in enumerate(names)},
            'final_separation': {name: float(separation[-1, i]) for i, name in enumerate(names)},
        }
    
    def get_summary(self) -> str:
        """Get human-readable summary."""
        if not self.results:
            return "Scenario not yet run."
        
        lines = [
            "",
            "Kepler Comparison Scenario Summary",
            "==================================",
            f"Simulated: {self.results['duration_years']:.4f} yr",
            "",
            "Max separation (scene units):",
        ]
        for name, value in self.results['max_separation'].items():
            lines.append(f"  {name}: {value:.3e}")
        return "\n".join(lines) + "\n"
