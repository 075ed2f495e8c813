"""
Celestial Body Model
====================

Static orbital data and the dynamic per-body physics state.

Units:
- Distances in AU, masses in solar masses, angles in degrees (static data)
- Physics state in scene units and scene units per simulated year
"""

import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class OrbitalElements:
    """Classical Keplerian elements at epoch."""
    semi_major_axis_au: float
    eccentricity: float = 0.0
    inclination_deg: float = 0.0
    longitude_of_ascending_node_deg: float = 0.0  # Omega
    argument_of_periapsis_deg: float = 0.0  # omega
    mean_anomaly_deg: float = 0.0  # M0
    
    @property
    def inclination_rad(self) -> float:
        return np.radians(self.inclination_deg)
    
    @property
    def longitude_of_ascending_node_rad(self) -> float:
        return np.radians(self.longitude_of_ascending_node_deg)
    
    @property
    def argument_of_periapsis_rad(self) -> float:
        return np.radians(self.argument_of_periapsis_deg)
    
    @property
    def mean_anomaly_rad(self) -> float:
        return np.radians(self.mean_anomaly_deg)
    
    def problems(self) -> List[str]:
        """
        Check the elements for values the propagators cannot handle.
        
        Returns:
            List of human-readable problems (empty when valid)
        """
        issues = []
        values = (
            self.semi_major_axis_au, self.eccentricity, self.inclination_deg,
            self.longitude_of_ascending_node_deg, self.argument_of_periapsis_deg,
            self.mean_anomaly_deg,
        )
        if not all(np.isfinite(v) for v in values):
            issues.append("non-finite orbital element")
            return issues
        if self.semi_major_axis_au <= 0:
            issues.append(f"semi-major axis must be positive (a={self.semi_major_axis_au})")
        if not 0.0 <= self.eccentricity < 1.0:
            issues.append(f"eccentricity must be in [0, 1) (e={self.eccentricity})")
        return issues
    
    @classmethod
    def from_dict(cls, data: dict) -> 'OrbitalElements':
        """Create from a record using the short keys a, e, i, omega, w, M0."""
        return cls(
            semi_major_axis_au=float(data['a']),
            eccentricity=float(data.get('e', 0.0)),
            inclination_deg=float(data.get('i', 0.0)),
            longitude_of_ascending_node_deg=float(data.get('omega', 0.0)),
            argument_of_periapsis_deg=float(data.get('w', 0.0)),
            mean_anomaly_deg=float(data.get('M0', 0.0)),
        )


@dataclass(frozen=True)
class CelestialBody:
    """
    Static description of one body in the system.
    
    `ecliptic` controls the reference plane of this body's children:
    True puts them in the ecliptic, False in this body's equatorial plane
    (tilted by `axial_tilt_deg`).
    """
    name: str
    mass: float  # Solar masses
    elements: Optional[OrbitalElements] = None  # None only for the root
    parent: Optional[str] = None
    radius_scale: float = 1.0
    axial_tilt_deg: float = 0.0
    ecliptic: bool = False
    
    @property
    def is_root(self) -> bool:
        return self.parent is None
    
    def problems(self) -> List[str]:
        """Validation problems for this body (empty when valid)."""
        issues = []
        if not self.name:
            issues.append("missing name")
        if not np.isfinite(self.mass) or self.mass <= 0:
            issues.append(f"mass must be positive (mass={self.mass})")
        if self.parent is not None:
            if self.elements is None:
                issues.append("missing orbital elements")
            else:
                issues.extend(self.elements.problems())
        return issues


@dataclass
class PhysicsState:
    """Parent-relative dynamic state of a body."""
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    time: float = 0.0  # Simulation years at last update
    
    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))
    
    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self.position)) and np.all(np.isfinite(self.velocity)))
    
    def copy(self) -> 'PhysicsState':
        return PhysicsState(
            position=self.position.copy(),
            velocity=self.velocity.copy(),
            time=self.time,
        )


def equatorial_rotation(axial_tilt_deg: float) -> np.ndarray:
    """
    Rotation from a body's equatorial frame into the ecliptic frame.
    
    Args:
        axial_tilt_deg: Obliquity of the body's equator to the ecliptic
    
    Returns:
        3x3 rotation about the x axis
    """
    tilt = np.radians(axial_tilt_deg)
    c, s = np.cos(tilt), np.sin(tilt)
    return np.array([
        [1.0, 0.0, 0.0],
        [0.0, c, -s],
        [0.0, s, c],
    ])
