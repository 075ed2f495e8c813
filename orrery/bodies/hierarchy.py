"""
Body Hierarchy
==============

Arena of hierarchy nodes addressed by stable indices, the validating
tree builder, and the composer that turns parent-relative states into
world-space transforms.

Nodes are stored in depth-first preorder, so iterating the arena visits
every parent before its children.
"""

import logging
import numpy as np
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .celestial import CelestialBody, PhysicsState, equatorial_rotation
from ..constants import GRAVITATIONAL_CONSTANT

logger = logging.getLogger(__name__)

Z_AXIS = np.array([0.0, 0.0, 1.0])


class HierarchyError(ValueError):
    """Raised when no usable hierarchy can be built."""
    pass


@dataclass
class HierarchyNode:
    """One body in the arena with its dynamic state and derived transforms."""
    index: int
    body: CelestialBody
    state: PhysicsState = field(default_factory=PhysicsState)
    parent: Optional[int] = None
    children: List[int] = field(default_factory=list)
    depth: int = 0
    
    # Rotation of the parent's reference plane into the ecliptic
    frame_rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    # G * (M_parent + m) in AU^3/yr^2 (0 for the root)
    mu: float = 0.0
    
    # Derived every tick by compose()
    world_position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    world_velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    orbit_normal: np.ndarray = field(default_factory=lambda: Z_AXIS.copy())
    
    @property
    def name(self) -> str:
        return self.body.name
    
    @property
    def is_root(self) -> bool:
        return self.parent is None


class BodyHierarchy:
    """
    Validated body tree.
    
    Provides:
    - Index and name lookup
    - Parent-before-children traversal
    - Read accessors for consumers of world transforms
    """
    
    def __init__(self, nodes: List[HierarchyNode], excluded: List[Tuple[str, str]] = None):
        self.nodes = nodes
        self.root = 0
        self.excluded = list(excluded or [])  # (name, reason)
        self._index = {node.name: node.index for node in nodes}
    
    def __len__(self) -> int:
        return len(self.nodes)
    
    def __contains__(self, name: str) -> bool:
        return name in self._index
    
    def iter_nodes(self) -> Iterator[HierarchyNode]:
        """Iterate nodes parents-first."""
        return iter(self.nodes)
    
    @property
    def names(self) -> List[str]:
        return [node.name for node in self.nodes]
    
    def index_of(self, name: str) -> int:
        try:
            return self._index[name]
        except KeyError:
            raise KeyError(f"Unknown body: {name}") from None
    
    def node(self, name: str) -> HierarchyNode:
        return self.nodes[self.index_of(name)]
    
    def parent_of(self, name: str) -> Optional[HierarchyNode]:
        node = self.node(name)
        return None if node.parent is None else self.nodes[node.parent]
    
    def children_of(self, name: str) -> List[HierarchyNode]:
        return [self.nodes[i] for i in self.node(name).children]
    
    def world_position(self, name: str) -> np.ndarray:
        """World position of a body (copy, scene units)."""
        return self.node(name).world_position.copy()
    
    def snapshot(self) -> Dict[str, Dict[str, np.ndarray]]:
        """Copies of every body's world transform, keyed by name."""
        return {
            node.name: {
                'position': node.world_position.copy(),
                'velocity': node.world_velocity.copy(),
                'orbit_normal': node.orbit_normal.copy(),
            }
            for node in self.nodes
        }
    
    def __repr__(self) -> str:
        return f"BodyHierarchy(bodies={len(self.nodes)}, excluded={len(self.excluded)})"


def _exclude(excluded: List[Tuple[str, str]], name: str, reason: str):
    excluded.append((name, reason))
    logger.warning("Excluding body '%s': %s", name, reason)


def build_hierarchy(bodies: Iterable[CelestialBody],
                    g: float = GRAVITATIONAL_CONSTANT) -> BodyHierarchy:
    """
    Build the node arena from static body data.
    
    Invalid bodies, duplicate names, extra roots, orphans and cycles are
    excluded and logged; bodies below an excluded body are excluded too.
    
    Args:
        bodies: Static body records, in any order
        g: Gravitational constant used for each node's mu
    
    Returns:
        BodyHierarchy
    
    Raises:
        HierarchyError: No valid root body
    """
    excluded: List[Tuple[str, str]] = []
    candidates: Dict[str, CelestialBody] = {}
    
    for body in bodies:
        issues = body.problems()
        if issues:
            _exclude(excluded, body.name or '<unnamed>', '; '.join(issues))
            continue
        if body.name in candidates:
            _exclude(excluded, body.name, "duplicate name")
            continue
        candidates[body.name] = body
    
    roots = [body for body in candidates.values() if body.parent is None]
    if not roots:
        raise HierarchyError("No valid root body (a body with no parent) in hierarchy")
    root = roots[0]
    for extra in roots[1:]:
        _exclude(excluded, extra.name, f"second root (root is '{root.name}')")
        del candidates[extra.name]
    
    children: Dict[str, List[str]] = {}
    for body in candidates.values():
        if body.parent is not None:
            children.setdefault(body.parent, []).append(body.name)
    
    # Depth-first preorder from the root; a visited set stops cycles
    nodes: List[HierarchyNode] = []
    visited = set()
    stack = [(root.name, None, 0)]
    while stack:
        name, parent_index, depth = stack.pop()
        if name in visited:
            continue
        visited.add(name)
        
        body = candidates[name]
        node = HierarchyNode(index=len(nodes), body=body, parent=parent_index, depth=depth)
        if parent_index is not None:
            parent = nodes[parent_index]
            parent.children.append(node.index)
            node.mu = g * (parent.body.mass + body.mass)  # Relative two-body motion
            if not parent.body.ecliptic and parent.body.axial_tilt_deg != 0.0:
                node.frame_rotation = equatorial_rotation(parent.body.axial_tilt_deg)
        nodes.append(node)
        
        for child in reversed(children.get(name, [])):
            stack.append((child, node.index, depth + 1))
    
    for name, body in candidates.items():
        if name in visited:
            continue
        if any(body.parent == name_ for name_, _ in excluded):
            reason = f"parent '{body.parent}' was excluded"
        elif body.parent not in candidates:
            reason = f"parent '{body.parent}' not found"
        else:
            reason = "not reachable from root (cycle or excluded ancestor)"
        _exclude(excluded, name, reason)
    
    hierarchy = BodyHierarchy(nodes, excluded)
    logger.info("Built hierarchy rooted at '%s' with %d bodies (%d excluded)",
                root.name, len(nodes), len(excluded))
    return hierarchy


def compose(hierarchy: BodyHierarchy):
    """
    Compute world transforms from parent-relative states.
    
    Parents are finalized before their children by traversal order:
    world(node) = world(parent) + local(node). The root stays at the
    origin with local == world. The orbit normal is the unit angular
    momentum direction of the local state; it keeps its last value when
    the state is degenerate.
    """
    for node in hierarchy.iter_nodes():
        if node.parent is None:
            node.state.position = np.zeros(3)
            node.state.velocity = np.zeros(3)
            node.world_position = np.zeros(3)
            node.world_velocity = np.zeros(3)
            continue
        
        parent = hierarchy.nodes[node.parent]
        node.world_position = parent.world_position + node.state.position
        node.world_velocity = parent.world_velocity + node.state.velocity
        
        h = np.cross(node.state.position, node.state.velocity)
        h_mag = np.linalg.norm(h)
        if h_mag > 0 and np.isfinite(h_mag):
            node.orbit_normal = h / h_mag
