import numpy as np
import pytest

from orrery.bodies.celestial import OrbitalElements
from orrery.constants import GRAVITATIONAL_CONSTANT
from orrery.dynamics.kepler import (
    OrbitFitError,
    elements_from_state,
    kepler_position,
    kepler_residual,
    kepler_state,
    orbit_normal,
    orbital_period,
    solve_kepler,
)

MU_SUN = GRAVITATIONAL_CONSTANT
AU_SCALE = 215.5 * 0.1


def test_circular_orbit_starts_on_x_axis():
    elements = OrbitalElements(semi_major_axis_au=1.0)

    pos = kepler_position(elements, MU_SUN, 0.0, AU_SCALE)

    np.testing.assert_allclose(pos, [21.55, 0.0, 0.0], atol=1e-12)


def test_circular_orbit_quarter_period_reaches_y_axis():
    elements = OrbitalElements(semi_major_axis_au=1.0)
    assert np.isclose(orbital_period(1.0, MU_SUN), 1.0)

    pos = kepler_position(elements, MU_SUN, 0.25, AU_SCALE)

    np.testing.assert_allclose(pos, [0.0, 21.55, 0.0], atol=1e-9)


def test_position_is_periodic():
    elements = OrbitalElements(1.7, 0.3, 10.0, 40.0, 75.0, 12.0)
    period = orbital_period(elements.semi_major_axis_au, MU_SUN)

    p0 = kepler_position(elements, MU_SUN, 0.37, AU_SCALE)
    p1 = kepler_position(elements, MU_SUN, 0.37 + period, AU_SCALE)

    np.testing.assert_allclose(p0, p1, atol=1e-6)


@pytest.mark.parametrize("e", [0.0, 0.1, 0.5, 0.9])
def test_solver_converges_for_moderate_eccentricity(e):
    for m in np.linspace(-np.pi, np.pi, 37):
        E = solve_kepler(m, e)
        assert kepler_residual(m, e, E) < 1e-12


def test_solver_residual_is_bounded_but_nonzero_near_parabolic():
    # Ten fixed iterations do not fully converge for e -> 1 at M = 0
    e = 0.99999
    E = solve_kepler(0.0, e)

    residual = kepler_residual(0.0, e, E)
    assert 1e-6 < residual < 1e-3


def test_solver_is_deterministic():
    assert solve_kepler(1.234, 0.7) == solve_kepler(1.234, 0.7)


def test_velocity_at_periapsis_matches_vis_viva():
    elements = OrbitalElements(semi_major_axis_au=1.0, eccentricity=0.5)

    pos, vel = kepler_state(elements, MU_SUN, 0.0)

    r = 0.5
    expected_speed = np.sqrt(MU_SUN * (2.0 / r - 1.0))
    np.testing.assert_allclose(pos, [r, 0.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(vel, [0.0, expected_speed, 0.0], atol=1e-9)


def test_orbit_normal_of_polar_orbit():
    elements = OrbitalElements(semi_major_axis_au=1.0, inclination_deg=90.0)

    np.testing.assert_allclose(orbit_normal(elements), [0.0, -1.0, 0.0], atol=1e-12)


def test_fitted_elements_reproduce_state():
    elements = OrbitalElements(2.0, 0.2, 30.0, 40.0, 60.0, 100.0)
    pos, vel = kepler_state(elements, MU_SUN, 0.3)

    fitted = elements_from_state(pos, vel, MU_SUN, t=0.3)

    assert np.isclose(fitted.semi_major_axis_au, 2.0, rtol=1e-9)
    assert np.isclose(fitted.eccentricity, 0.2, rtol=1e-9)
    assert np.isclose(fitted.inclination_deg, 30.0, rtol=1e-9)
    assert np.isclose(fitted.longitude_of_ascending_node_deg, 40.0, rtol=1e-9)
    assert np.isclose(fitted.argument_of_periapsis_deg, 60.0, rtol=1e-9)
    np.testing.assert_allclose(kepler_position(fitted, MU_SUN, 0.3), pos, atol=1e-9)


def test_fit_of_equatorial_circular_state_uses_conventions():
    fitted = elements_from_state(np.array([1.0, 0.0, 0.0]), np.array([0.0, 2 * np.pi, 0.0]), MU_SUN)

    assert np.isclose(fitted.semi_major_axis_au, 1.0)
    assert fitted.eccentricity < 1e-9
    assert fitted.longitude_of_ascending_node_deg == 0.0
    assert np.isclose(fitted.mean_anomaly_deg % 360.0, 0.0, atol=1e-9) or \
        np.isclose(fitted.mean_anomaly_deg, 360.0, atol=1e-9)


@pytest.mark.parametrize("velocity", [
    [0.0, 10.0, 0.0],  # Unbound
    [1.0, 0.0, 0.0],  # Radial
    [np.nan, 0.0, 0.0],
])
def test_fit_rejects_unusable_states(velocity):
    with pytest.raises(OrbitFitError):
        elements_from_state(np.array([1.0, 0.0, 0.0]), np.array(velocity), MU_SUN)
