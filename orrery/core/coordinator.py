"""
Physics Mode Coordinator
========================

Owns the Kepler and n-body strategies and switches between them at tick
boundaries, handing the current physics states across so world positions
stay continuous.
"""

import logging
import numpy as np
from typing import Dict, Optional

from .context import PhysicsMode
from ..bodies.hierarchy import compose
from ..dynamics.propagation import KeplerStrategy, NBodyStrategy, PropagationStrategy

logger = logging.getLogger(__name__)


class ModeCoordinator:
    """
    Two-state machine over PhysicsMode.
    
    Mode requests are queued and applied by apply_pending() at the start
    of the next tick, never during propagation.
    """
    
    def __init__(self,
                 kepler: KeplerStrategy,
                 nbody: NBodyStrategy,
                 tolerance: float = 1e-3):
        """
        Initialize coordinator.
        
        Args:
            kepler: Analytic strategy
            nbody: Numerical strategy
            tolerance: World-position drift (scene units) logged on a switch
        """
        self.strategies: Dict[PhysicsMode, PropagationStrategy] = {
            PhysicsMode.KEPLER: kepler,
            PhysicsMode.NBODY: nbody,
        }
        self.tolerance = tolerance
        self.pending: Optional[PhysicsMode] = None
        self.switch_count = 0
        self.last_drift = 0.0
        self.max_drift = 0.0
    
    @property
    def kepler(self) -> KeplerStrategy:
        return self.strategies[PhysicsMode.KEPLER]
    
    @property
    def nbody(self) -> NBodyStrategy:
        return self.strategies[PhysicsMode.NBODY]
    
    def active(self, context) -> PropagationStrategy:
        return self.strategies[context.mode]
    
    def initialize(self, hierarchy, context):
        """
        Seed every body from its catalog elements at t = 0.
        
        Both strategies are bound to the hierarchy; the Kepler solution
        provides the initial positions and velocities, which the n-body
        strategy takes over when it is the starting mode.
        """
        self.pending = None
        self.kepler.bind(hierarchy)
        self.nbody.bind(hierarchy)
        
        self.kepler.evaluate(hierarchy, context.au_scale)
        if context.mode is PhysicsMode.NBODY:
            self.nbody.enter(hierarchy, context, self.kepler.current_time)
        
        compose(hierarchy)
        logger.info("Physics initialized in %s mode for %d bodies",
                    context.mode.value, len(hierarchy))
    
    def request_mode(self, mode: PhysicsMode):
        """Queue a mode change for the next tick boundary."""
        self.pending = PhysicsMode(mode)
        logger.debug("Requested %s mode", self.pending.value)
    
    def toggle(self, context):
        """Queue a switch to the other mode (relative to any pending request)."""
        current = self.pending if self.pending is not None else context.mode
        self.request_mode(current.other)
    
    def apply_pending(self, hierarchy, context) -> bool:
        """
        Apply a queued mode change.
        
        Returns:
            True if the mode changed
        """
        if self.pending is None:
            return False
        target, self.pending = self.pending, None
        if target is context.mode:
            return False
        
        before = np.array([node.world_position for node in hierarchy.nodes])
        
        outgoing = self.strategies[context.mode]
        incoming = self.strategies[target]
        switch_time = outgoing.current_time
        incoming.enter(hierarchy, context, switch_time)
        compose(hierarchy)
        
        after = np.array([node.world_position for node in hierarchy.nodes])
        drift = float(np.max(np.linalg.norm(after - before, axis=1))) if len(before) else 0.0
        self.last_drift = drift
        self.max_drift = max(self.max_drift, drift)
        if not np.isfinite(drift) or drift > self.tolerance:
            logger.warning("Mode switch %s -> %s moved bodies by %.3e scene units (tolerance %.1e)",
                           context.mode.value, target.value, drift, self.tolerance)
        
        logger.info("Physics mode %s -> %s at t=%.6f yr", context.mode.value, target.value, switch_time)
        context.mode = target
        self.switch_count += 1
        return True
    
    def propagate(self, hierarchy, context):
        """Advance the active strategy by one tick."""
        self.active(context).advance(hierarchy, context)
    
    def current_time(self, context) -> float:
        """Propagation time of the active strategy (years)."""
        return self.active(context).current_time
