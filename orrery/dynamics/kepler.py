"""
Kepler Propagator
=================

Analytic two-body propagation of orbital elements.

Units: AU, years, solar masses, G = 4*pi^2 (AU^3 / (Msun yr^2)).
Positions are returned in scene units (AU times the scene AU scale).
"""

import numpy as np
from typing import Optional, Tuple

from ..bodies.celestial import OrbitalElements
from ..constants import GRAVITATIONAL_CONSTANT, KEPLER_EQUATION_ITERATIONS

TWO_PI = 2.0 * np.pi


class OrbitFitError(ValueError):
    """Raised when a state vector cannot be expressed as a bound Kepler orbit."""
    pass


def gravitational_parameter(parent_mass: float,
                            g: float = GRAVITATIONAL_CONSTANT,
                            body_mass: float = 0.0) -> float:
    """
    Gravitational parameter of a body orbiting its parent.
    
    mu = G (M + m) governs the relative two-body motion. The hierarchy
    gives every node this mu and the n-body central term uses the same
    expression, so a pair handed from one mode to the other keeps its
    orbit. Only the parent is attracting; siblings are ignored here.
    """
    return g * (parent_mass + body_mass)


def mean_motion(semi_major_axis_au: float, mu: float) -> float:
    """Mean motion in rad/year."""
    return np.sqrt(mu / semi_major_axis_au**3)


def orbital_period(semi_major_axis_au: float, mu: float) -> float:
    """Orbital period in years (Kepler's third law)."""
    return TWO_PI / mean_motion(semi_major_axis_au, mu)


def wrap_angle(angle: float) -> float:
    """Wrap an angle to [-pi, pi)."""
    return (angle + np.pi) % TWO_PI - np.pi


def solve_kepler(mean_anomaly: float,
                 eccentricity: float,
                 iterations: int = KEPLER_EQUATION_ITERATIONS) -> float:
    """
    Solve Kepler's equation M = E - e*sin(E) for the eccentric anomaly.
    
    Newton-Raphson with a fixed iteration count. The mean anomaly is
    wrapped to [-pi, pi] and the solve runs on |M| from E0 = pi, where
    the iteration converges monotonically for every e < 1. Convergence is
    slow for e close to 1 and the fixed count then leaves a residual.
    
    Args:
        mean_anomaly: Mean anomaly in radians
        eccentricity: Orbital eccentricity in [0, 1)
        iterations: Number of Newton steps
    
    Returns:
        Eccentric anomaly in radians, in the same revolution as the
        wrapped mean anomaly
    """
    m = wrap_angle(mean_anomaly)
    sign = -1.0 if m < 0 else 1.0
    m = abs(m)
    
    E = np.pi
    for _ in range(iterations):
        E = E - (E - eccentricity * np.sin(E) - m) / (1.0 - eccentricity * np.cos(E))
    
    return sign * E


def kepler_residual(mean_anomaly: float, eccentricity: float, eccentric_anomaly: float) -> float:
    """|M - (E - e*sin E)| with M wrapped to the revolution of E."""
    return abs(wrap_angle(mean_anomaly - (eccentric_anomaly - eccentricity * np.sin(eccentric_anomaly))))


def true_anomaly(eccentric_anomaly: float, eccentricity: float) -> float:
    """Convert eccentric anomaly to true anomaly."""
    half = eccentric_anomaly / 2.0
    return 2.0 * np.arctan2(np.sqrt(1.0 + eccentricity) * np.sin(half),
                            np.sqrt(1.0 - eccentricity) * np.cos(half))


def perifocal_rotation(inclination: float,
                       longitude_of_ascending_node: float,
                       argument_of_periapsis: float) -> np.ndarray:
    """
    3-1-3 rotation from the perifocal frame to the reference plane.
    
    R = Rz(Omega) * Rx(i) * Rz(omega)
    """
    cO, sO = np.cos(longitude_of_ascending_node), np.sin(longitude_of_ascending_node)
    ci, si = np.cos(inclination), np.sin(inclination)
    cw, sw = np.cos(argument_of_periapsis), np.sin(argument_of_periapsis)
    
    return np.array([
        [cO*cw - sO*sw*ci, -cO*sw - sO*cw*ci, sO*si],
        [sO*cw + cO*sw*ci, -sO*sw + cO*cw*ci, -cO*si],
        [sw*si, cw*si, ci],
    ])


def _rotation(elements: OrbitalElements) -> np.ndarray:
    return perifocal_rotation(
        elements.inclination_rad,
        elements.longitude_of_ascending_node_rad,
        elements.argument_of_periapsis_rad,
    )


def mean_anomaly_at(elements: OrbitalElements, mu: float, t: float) -> float:
    """Mean anomaly M(t) = M0 + n*t in radians."""
    return elements.mean_anomaly_rad + mean_motion(elements.semi_major_axis_au, mu) * t


def orbital_plane_state(semi_major_axis_au: float,
                        eccentricity: float,
                        mean_anomaly: float,
                        mu: float,
                        iterations: int = KEPLER_EQUATION_ITERATIONS) -> Tuple[np.ndarray, np.ndarray]:
    """
    Position and velocity in the perifocal frame.
    
    Velocity comes from the vis-viva speed split along the flight-path
    angle: v^2 = mu*(2/r - 1/a), tan(gamma) = e*sin(nu) / (1 + e*cos(nu)).
    
    Returns:
        Tuple of (position_au, velocity_au_per_year)
    """
    a, e = semi_major_axis_au, eccentricity
    E = solve_kepler(mean_anomaly, e, iterations)
    nu = true_anomaly(E, e)
    r = a * (1.0 - e * np.cos(E))
    
    cos_nu, sin_nu = np.cos(nu), np.sin(nu)
    position = np.array([r * cos_nu, r * sin_nu, 0.0])
    
    speed = np.sqrt(mu * (2.0 / r - 1.0 / a))
    gamma = np.arctan2(e * sin_nu, 1.0 + e * cos_nu)
    v_radial = speed * np.sin(gamma)
    v_transverse = speed * np.cos(gamma)
    velocity = np.array([
        v_radial * cos_nu - v_transverse * sin_nu,
        v_radial * sin_nu + v_transverse * cos_nu,
        0.0,
    ])
    
    return position, velocity


def kepler_state(elements: OrbitalElements,
                 mu: float,
                 t: float,
                 au_scale: float = 1.0,
                 iterations: int = KEPLER_EQUATION_ITERATIONS,
                 mean_anomaly: Optional[float] = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Parent-relative position and velocity at time t.
    
    Args:
        elements: Orbital elements
        mu: Gravitational parameter of the parent (AU^3/yr^2)
        t: Time since epoch in years
        au_scale: Scene units per AU
        iterations: Kepler solver iteration count
        mean_anomaly: Precomputed mean anomaly (overrides M0 + n*t)
    
    Returns:
        Tuple of (position, velocity) in scene units and scene units/year
    """
    if mean_anomaly is None:
        mean_anomaly = mean_anomaly_at(elements, mu, t)
    
    r_pf, v_pf = orbital_plane_state(
        elements.semi_major_axis_au, elements.eccentricity, mean_anomaly, mu, iterations
    )
    R = _rotation(elements)
    return (R @ r_pf) * au_scale, (R @ v_pf) * au_scale


def kepler_position(elements: OrbitalElements,
                    mu: float,
                    t: float,
                    au_scale: float = 1.0,
                    iterations: int = KEPLER_EQUATION_ITERATIONS) -> np.ndarray:
    """Parent-relative position at time t in scene units."""
    position, _ = kepler_state(elements, mu, t, au_scale, iterations)
    return position


def orbit_normal(elements: OrbitalElements) -> np.ndarray:
    """Unit normal of the orbital plane in the reference frame."""
    return _rotation(elements)[:, 2].copy()


def elements_from_state(position_au: np.ndarray,
                        velocity_au_yr: np.ndarray,
                        mu: float,
                        t: float = 0.0,
                        tolerance: float = 1e-10) -> OrbitalElements:
    """
    Osculating orbital elements from a state vector.
    
    The returned elements have their mean anomaly referred to epoch t,
    i.e. propagating them by (t' - t) reproduces the state at t'.
    Undefined angles fall back to conventions: Omega = 0 for equatorial
    orbits, omega = 0 for circular orbits.
    
    Args:
        position_au: Parent-relative position [AU]
        velocity_au_yr: Parent-relative velocity [AU/yr]
        mu: Gravitational parameter of the parent
        t: Epoch of the state in years
        tolerance: Threshold for degenerate node/eccentricity vectors
    
    Returns:
        OrbitalElements
    
    Raises:
        OrbitFitError: State is non-finite, degenerate or unbound
    """
    r = np.asarray(position_au, dtype=float)
    v = np.asarray(velocity_au_yr, dtype=float)
    if not (np.all(np.isfinite(r)) and np.all(np.isfinite(v))) or mu <= 0:
        raise OrbitFitError("non-finite state or gravitational parameter")
    
    r_mag = np.linalg.norm(r)
    v_mag = np.linalg.norm(v)
    if r_mag < tolerance:
        raise OrbitFitError("position coincides with the parent")
    
    # Specific angular momentum
    h = np.cross(r, v)
    h_mag = np.linalg.norm(h)
    if h_mag < tolerance * max(r_mag * v_mag, 1.0):
        raise OrbitFitError("radial trajectory has no orbital plane")
    h_hat = h / h_mag
    
    # Semi-major axis from energy
    energy = v_mag**2 / 2 - mu / r_mag
    if energy >= 0:
        raise OrbitFitError("state is not bound")
    a = -mu / (2 * energy)
    
    # Eccentricity vector
    e_vec = ((v_mag**2 - mu / r_mag) * r - np.dot(r, v) * v) / mu
    e = np.linalg.norm(e_vec)
    if e >= 1.0:
        raise OrbitFitError(f"eccentricity {e:.6f} is not elliptic")
    
    # Inclination
    i = np.arccos(np.clip(h_hat[2], -1.0, 1.0))
    
    # Node line (x axis for equatorial orbits)
    n = np.cross([0.0, 0.0, 1.0], h)
    n_mag = np.linalg.norm(n)
    node_hat = n / n_mag if n_mag > tolerance * h_mag else np.array([1.0, 0.0, 0.0])
    Omega = np.arctan2(node_hat[1], node_hat[0])
    
    # Periapsis direction (node line for circular orbits)
    peri_hat = e_vec / e if e > tolerance else node_hat
    omega = np.arctan2(np.dot(h_hat, np.cross(node_hat, peri_hat)), np.dot(node_hat, peri_hat))
    nu = np.arctan2(np.dot(h_hat, np.cross(peri_hat, r)), np.dot(peri_hat, r))
    
    # True -> eccentric -> mean anomaly
    E = 2.0 * np.arctan2(np.sqrt(1.0 - e) * np.sin(nu / 2), np.sqrt(1.0 + e) * np.cos(nu / 2))
    M = E - e * np.sin(E)
    M0 = M - mean_motion(a, mu) * t
    
    return OrbitalElements(
        semi_major_axis_au=float(a),
        eccentricity=float(e),
        inclination_deg=float(np.degrees(i)),
        longitude_of_ascending_node_deg=float(np.degrees(Omega) % 360.0),
        argument_of_periapsis_deg=float(np.degrees(omega) % 360.0),
        mean_anomaly_deg=float(np.degrees(wrap_angle(M0)) % 360.0),
    )
