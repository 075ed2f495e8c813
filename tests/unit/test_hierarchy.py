import logging

import numpy as np
import pytest

from orrery.bodies.catalog import solar_system, sun_earth_moon
from orrery.bodies.celestial import CelestialBody, OrbitalElements, equatorial_rotation
from orrery.bodies.hierarchy import HierarchyError, build_hierarchy, compose
from orrery.constants import GRAVITATIONAL_CONSTANT
from orrery.dynamics.kepler import gravitational_parameter


def _moon(name, parent, a=0.01, mass=1e-9):
    return CelestialBody(name, mass, OrbitalElements(a), parent=parent)


def test_solar_system_builds_parents_first():
    hierarchy = build_hierarchy(solar_system())

    assert hierarchy.names[0] == 'Sun'
    assert len(hierarchy) == len(solar_system())
    assert hierarchy.excluded == []
    for node in hierarchy.iter_nodes():
        if node.parent is not None:
            assert node.parent < node.index
            assert node.index in hierarchy.nodes[node.parent].children


def test_moon_depth_and_parent_lookup():
    hierarchy = build_hierarchy(solar_system())

    assert hierarchy.node('Moon').depth == 2
    assert hierarchy.parent_of('Moon').name == 'Earth'
    assert {n.name for n in hierarchy.children_of('Jupiter')} == {'Io', 'Europa', 'Ganymede', 'Callisto'}


def test_mu_covers_parent_and_body_mass():
    hierarchy = build_hierarchy(sun_earth_moon())

    assert hierarchy.node('Earth').mu == gravitational_parameter(1.0, GRAVITATIONAL_CONSTANT, 3.00348e-6)
    assert np.isclose(hierarchy.node('Moon').mu, GRAVITATIONAL_CONSTANT * (3.00348e-6 + 3.69396e-8))


def test_equatorial_parents_rotate_child_frames():
    hierarchy = build_hierarchy(solar_system())

    np.testing.assert_allclose(hierarchy.node('Moon').frame_rotation, np.eye(3))
    np.testing.assert_allclose(hierarchy.node('Io').frame_rotation, equatorial_rotation(3.13))


def test_invalid_bodies_are_excluded_and_logged(caplog):
    bodies = [
        CelestialBody('Sun', 1.0),
        _moon('Good', 'Sun'),
        CelestialBody('Heavy', -1.0, OrbitalElements(1.0), parent='Sun'),
        CelestialBody('Open', 1e-9, OrbitalElements(1.0, eccentricity=1.2), parent='Sun'),
        _moon('Good', 'Sun', a=0.02),
        _moon('Lost', 'Nowhere'),
        _moon('Below', 'Heavy'),
        CelestialBody('Star2', 1.0),
    ]

    with caplog.at_level(logging.WARNING):
        hierarchy = build_hierarchy(bodies)

    assert hierarchy.names == ['Sun', 'Good']
    assert hierarchy.node('Good').body.elements.semi_major_axis_au == 0.01
    excluded = {name for name, _ in hierarchy.excluded}
    assert excluded == {'Heavy', 'Open', 'Good', 'Lost', 'Below', 'Star2'}
    assert "Excluding body 'Lost'" in caplog.text


def test_cycles_are_excluded():
    bodies = [CelestialBody('Sun', 1.0), _moon('A', 'B'), _moon('B', 'A')]

    hierarchy = build_hierarchy(bodies)

    assert hierarchy.names == ['Sun']
    assert {name for name, _ in hierarchy.excluded} == {'A', 'B'}


def test_missing_root_raises():
    with pytest.raises(HierarchyError):
        build_hierarchy([_moon('A', 'B'), _moon('B', 'A')])


def test_compose_adds_parent_world_position():
    hierarchy = build_hierarchy(sun_earth_moon())
    hierarchy.node('Earth').state.position = np.array([10.0, 0.0, 0.0])
    hierarchy.node('Earth').state.velocity = np.array([0.0, 2.0, 0.0])
    hierarchy.node('Moon').state.position = np.array([0.0, 1.0, 0.0])
    hierarchy.node('Moon').state.velocity = np.array([-0.5, 0.0, 0.0])

    compose(hierarchy)

    np.testing.assert_array_equal(hierarchy.world_position('Sun'), [0.0, 0.0, 0.0])
    np.testing.assert_array_equal(hierarchy.world_position('Earth'), [10.0, 0.0, 0.0])
    np.testing.assert_array_equal(hierarchy.world_position('Moon'), [10.0, 1.0, 0.0])
    np.testing.assert_array_equal(hierarchy.node('Moon').world_velocity, [-0.5, 2.0, 0.0])
    np.testing.assert_allclose(hierarchy.node('Earth').orbit_normal, [0.0, 0.0, 1.0])


def test_compose_keeps_orbit_normal_for_degenerate_state():
    hierarchy = build_hierarchy(sun_earth_moon())
    earth = hierarchy.node('Earth')
    earth.state.position = np.array([0.0, 1.0, 0.0])
    earth.state.velocity = np.array([0.0, 0.0, 1.0])
    compose(hierarchy)
    normal = earth.orbit_normal.copy()

    earth.state.velocity = np.zeros(3)
    compose(hierarchy)

    np.testing.assert_array_equal(earth.orbit_normal, normal)


def test_world_position_returns_a_copy():
    hierarchy = build_hierarchy(sun_earth_moon())
    compose(hierarchy)

    pos = hierarchy.world_position('Earth')
    pos[0] = 99.0

    assert hierarchy.world_position('Earth')[0] != 99.0
