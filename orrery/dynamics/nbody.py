"""
N-Body Gravitational Dynamics
=============================

Pairwise gravity for bodies orbiting a common central body, integrated in
the central body's frame.

For members i of a subsystem with central mass M, positions r_i relative
to the centre:

    a_i = -G (M + m_i) r_i / |r_i|^3
          + sum_{j != i} G m_j [ (r_j - r_i) / |r_j - r_i|^3 - r_j / |r_j|^3 ]

The second bracket holds the direct pull of sibling j and the indirect
term from the acceleration j imparts on the centre. Body-body distances
carry Plummer softening.

Frame partitioning:
- 'local': each parent's children form one subsystem in the parent's frame
- 'global': all non-root bodies form a single subsystem around the root
"""

import logging
import numpy as np
from dataclasses import dataclass
from typing import List

from .integrators import create_integrator
from .kepler import gravitational_parameter
from ..constants import GRAVITATIONAL_CONSTANT

logger = logging.getLogger(__name__)

FRAMES = ('local', 'global')


def central_accelerations(positions: np.ndarray,
                          masses: np.ndarray,
                          central_mass: float,
                          g: float = GRAVITATIONAL_CONSTANT,
                          softening: float = 0.0) -> np.ndarray:
    """
    Accelerations of bodies around a central mass, in the central frame.
    
    Args:
        positions: (N, 3) positions relative to the centre [AU]
        masses: (N,) masses [Msun]
        central_mass: Mass of the centre [Msun]
        g: Gravitational constant
        softening: Plummer softening length for body-body terms [AU]
    
    Returns:
        (N, 3) accelerations [AU/yr^2]
    """
    r = positions
    r2 = np.sum(r * r, axis=1)
    inv_r3 = 1.0 / (r2 * np.sqrt(r2))
    
    acc = -(gravitational_parameter(central_mass, g, masses) * inv_r3)[:, None] * r
    
    if len(masses) > 1:
        d = r[None, :, :] - r[:, None, :]  # d[i, j] = r_j - r_i
        dist2 = np.sum(d * d, axis=2) + softening**2
        np.fill_diagonal(dist2, np.inf)
        weights = masses[None, :] * dist2**-1.5
        acc += g * np.einsum('ij,ijk->ik', weights, d)
        
        # Indirect term, excluding each body's own contribution
        pull = (masses * inv_r3)[:, None] * r
        acc -= g * (np.sum(pull, axis=0)[None, :] - pull)
    
    return acc


def subsystem_energy(positions: np.ndarray,
                     velocities: np.ndarray,
                     masses: np.ndarray,
                     central_mass: float,
                     g: float = GRAVITATIONAL_CONSTANT,
                     softening: float = 0.0) -> float:
    """
    Total barycentric energy of a centre plus its members.
    
    Conserved by the exact dynamics; used to monitor integrator drift.
    """
    total_mass = central_mass + np.sum(masses)
    v_cm = np.sum(masses[:, None] * velocities, axis=0) / total_mass
    
    # Potential is translation invariant, only velocities need the barycentre
    u = velocities - v_cm
    kinetic = 0.5 * central_mass * np.dot(v_cm, v_cm) + 0.5 * np.sum(masses * np.sum(u * u, axis=1))
    
    potential = -g * central_mass * np.sum(masses / np.linalg.norm(positions, axis=1))
    n = len(masses)
    for i in range(n):
        for j in range(i + 1, n):
            dist = np.sqrt(np.sum((positions[j] - positions[i])**2) + softening**2)
            potential -= g * masses[i] * masses[j] / dist
    
    return float(kinetic + potential)


@dataclass
class Subsystem:
    """Bodies integrated together around one central body."""
    center: int
    members: np.ndarray  # Node indices
    masses: np.ndarray
    central_mass: float


class NBodySystem:
    """
    Stateful fixed-step n-body integrator over a body hierarchy.
    
    Keeps positions and velocities in AU and AU/yr, indexed like the
    hierarchy arena. In 'local' frame each row is relative to the body's
    parent; in 'global' frame each row is relative to the root.
    """
    
    def __init__(self,
                 hierarchy,
                 frame: str = 'local',
                 method: str = 'leapfrog',
                 g: float = GRAVITATIONAL_CONSTANT,
                 softening: float = 0.0):
        """
        Initialize n-body system.
        
        Args:
            hierarchy: BodyHierarchy to integrate
            frame: 'local' or 'global'
            method: Integration method name
            g: Gravitational constant
            softening: Plummer softening length [AU]
        """
        if frame not in FRAMES:
            raise ValueError(f"Unknown n-body frame: {frame}")
        
        self.hierarchy = hierarchy
        self.frame = frame
        self.method = method
        self.g = g
        self.softening = softening
        
        n = len(hierarchy)
        self.positions = np.zeros((n, 3))
        self.velocities = np.zeros((n, 3))
        
        self.subsystems = self._partition()
        self._integrators = [
            create_integrator(method, self._acceleration_func(sub)) for sub in self.subsystems
        ]
        
        logger.debug("N-body system: %d subsystems in %s frame (%s)",
                     len(self.subsystems), frame, method)
    
    def _partition(self) -> List[Subsystem]:
        h = self.hierarchy
        masses = np.array([node.body.mass for node in h.nodes])
        
        if self.frame == 'global':
            members = np.array([node.index for node in h.nodes if node.index != h.root], dtype=int)
            groups = [(h.root, members)] if len(members) else []
        else:
            groups = [
                (node.index, np.array(node.children, dtype=int))
                for node in h.iter_nodes() if node.children
            ]
        
        return [
            Subsystem(center=center, members=members,
                      masses=masses[members], central_mass=float(masses[center]))
            for center, members in groups
        ]
    
    def _acceleration_func(self, sub: Subsystem):
        def acceleration(r):
            return central_accelerations(r, sub.masses, sub.central_mass, self.g, self.softening)
        return acceleration
    
    def load(self, au_scale: float):
        """
        Read the hierarchy's physics states into the integrator arrays.
        
        Args:
            au_scale: Scene units per AU
        """
        h = self.hierarchy
        for node in h.nodes:
            self.positions[node.index] = node.state.position / au_scale
            self.velocities[node.index] = node.state.velocity / au_scale
        
        if self.frame == 'global':
            # Parent-relative -> root-relative, parents first
            for node in h.iter_nodes():
                if node.parent is not None and node.parent != h.root:
                    self.positions[node.index] += self.positions[node.parent]
                    self.velocities[node.index] += self.velocities[node.parent]
        
        self.positions[h.root] = 0.0
        self.velocities[h.root] = 0.0
    
    def step(self, dt: float):
        """Advance every subsystem by one fixed step dt (years)."""
        for sub, integrator in zip(self.subsystems, self._integrators):
            r_new, v_new = integrator.step(self.positions[sub.members], self.velocities[sub.members], dt)
            self.positions[sub.members] = r_new
            self.velocities[sub.members] = v_new
    
    def store(self, au_scale: float, time: float):
        """
        Write integrator arrays back to parent-relative physics states.
        
        Args:
            au_scale: Scene units per AU
            time: Simulation time of the state (years)
        """
        h = self.hierarchy
        for node in h.nodes:
            position = self.positions[node.index]
            velocity = self.velocities[node.index]
            if self.frame == 'global' and node.parent is not None and node.parent != h.root:
                position = position - self.positions[node.parent]
                velocity = velocity - self.velocities[node.parent]
            node.state.position = position * au_scale
            node.state.velocity = velocity * au_scale
            node.state.time = time
    
    def energy(self) -> float:
        """Sum of subsystem energies (Msun AU^2 / yr^2)."""
        return sum(
            subsystem_energy(self.positions[sub.members], self.velocities[sub.members],
                             sub.masses, sub.central_mass, self.g, self.softening)
            for sub in self.subsystems
        )
