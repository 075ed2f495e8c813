"""
Bodies Module
=============

Static body data, the body hierarchy and world-transform composition.
"""

from .celestial import CelestialBody, OrbitalElements, PhysicsState
from .hierarchy import BodyHierarchy, HierarchyError, HierarchyNode, build_hierarchy, compose
from .catalog import load_catalog, solar_system, sun_earth_moon

__all__ = [
    'CelestialBody',
    'OrbitalElements',
    'PhysicsState',
    'BodyHierarchy',
    'HierarchyError',
    'HierarchyNode',
    'build_hierarchy',
    'compose',
    'load_catalog',
    'solar_system',
    'sun_earth_moon',
]
