import logging

import numpy as np

from orrery.bodies.catalog import sun_earth_moon
from orrery.bodies.celestial import CelestialBody, OrbitalElements
from orrery.core.config import ClockParameters, KeplerParameters, OrreryConfig, create_high_speed_config
from orrery.core.context import PhysicsMode
from orrery.core.simulator import Simulator


def _circular_system():
    return [
        CelestialBody('Sun', 1.0),
        CelestialBody('Planet', 1e-12, OrbitalElements(1.0), parent='Sun'),
    ]


def test_circular_orbit_at_start_in_scene_units():
    sim = Simulator(OrreryConfig(initial_mode=PhysicsMode.KEPLER, verbose=False), bodies=_circular_system())

    np.testing.assert_allclose(sim.world_position('Planet'), [21.55, 0.0, 0.0], atol=1e-9)
    np.testing.assert_array_equal(sim.world_position('Sun'), [0.0, 0.0, 0.0])


def test_circular_orbit_keeps_radius_under_time_compression():
    config = OrreryConfig(initial_mode=PhysicsMode.KEPLER, verbose=False,
                          clock=ClockParameters(initial_speed=6553600.0))
    sim = Simulator(config, bodies=_circular_system())

    for _ in range(50):
        pos = sim.tick(0.1).positions[1]
        assert np.isclose(np.linalg.norm(pos), 21.55, rtol=1e-12)
        assert abs(pos[2]) < 1e-12

    assert np.isclose(sim.simulation_time, 50 * 0.1 * 6553600.0 / (365.25 * 86400.0))


def test_sun_earth_moon_moon_follows_earth():
    config = OrreryConfig(initial_mode=PhysicsMode.KEPLER, verbose=False,
                          clock=ClockParameters(initial_speed=86400.0 * 10))
    sim = Simulator(config, bodies=sun_earth_moon())
    a_moon = 0.00257 * 21.55

    for _ in range(60):
        sim.tick(1 / 30)
        separation = np.linalg.norm(sim.world_position('Moon') - sim.world_position('Earth'))
        assert a_moon * (1 - 0.0549) - 1e-9 <= separation <= a_moon * (1 + 0.0549) + 1e-9

    moon = sim.hierarchy.node('Moon')
    np.testing.assert_allclose(sim.world_position('Moon'),
                               sim.world_position('Earth') + moon.state.position, atol=1e-12)


def test_sun_earth_moon_composes_exactly_at_start():
    sim = Simulator(OrreryConfig(initial_mode=PhysicsMode.KEPLER, verbose=False), bodies=sun_earth_moon())
    sun, earth, moon = (sim.hierarchy.node(name) for name in ('Sun', 'Earth', 'Moon'))

    np.testing.assert_array_equal(sun.world_position, np.zeros(3))
    np.testing.assert_array_equal(moon.world_position,
                                  sun.world_position + earth.state.position + moon.state.position)
    np.testing.assert_array_equal(earth.world_position, earth.state.position)
    assert 0.0 < np.linalg.norm(moon.state.position) < 0.00257 * 21.55 * 1.06


def test_pause_skips_propagation():
    sim = Simulator(OrreryConfig(verbose=False), bodies=sun_earth_moon())
    sim.tick(1 / 60)
    before = sim.world_position('Earth')
    t = sim.simulation_time

    sim.pause()
    for _ in range(10):
        sim.tick(1 / 60)

    np.testing.assert_array_equal(sim.world_position('Earth'), before)
    assert sim.simulation_time == t
    assert sim.toggle_pause() is False


def test_speed_commands_delegate_to_clock():
    sim = Simulator(OrreryConfig(verbose=False), bodies=sun_earth_moon())

    assert sim.increase_speed() == 2.0
    assert sim.set_speed_multiplier(1e12) == 6553600.0
    assert sim.decrease_speed() == 3276800.0
    assert sim.reset_speed() == 1.0
    assert sim.speed_multiplier == 1.0


def test_frame_logs_failures_and_continues(caplog):
    sim = Simulator(OrreryConfig(verbose=False), bodies=sun_earth_moon())
    calls = []

    def flaky(simulator, state):
        calls.append(state)
        if len(calls) == 1:
            raise RuntimeError("consumer failed")

    sim.add_step_callback(flaky)
    with caplog.at_level(logging.ERROR):
        assert sim.frame(0.0) is None
    assert "failed" in caplog.text

    assert sim.frame(1 / 60) is not None
    assert len(calls) == 2


def test_reset_restores_initial_positions():
    config = OrreryConfig(initial_mode=PhysicsMode.KEPLER, verbose=False,
                          clock=ClockParameters(initial_speed=86400.0))
    sim = Simulator(config, bodies=sun_earth_moon())
    start = sim.world_position('Earth')
    for _ in range(20):
        sim.tick(1 / 60)
    assert not np.allclose(sim.world_position('Earth'), start)

    sim.reset()

    np.testing.assert_allclose(sim.world_position('Earth'), start, atol=1e-12)
    assert sim.simulation_time == 0.0
    assert sim.history == []
    assert sim.speed_multiplier == 86400.0


def test_rebasing_does_not_move_bodies():
    def make(interval):
        config = OrreryConfig(initial_mode=PhysicsMode.KEPLER, verbose=False,
                              kepler=KeplerParameters(rebase_interval_years=interval),
                              clock=ClockParameters(initial_speed=6553600.0))
        return Simulator(config, bodies=sun_earth_moon())

    plain, rebased = make(1000.0), make(0.01)
    for _ in range(30):
        plain.tick(0.1)
        rebased.tick(0.1)

    for name in ('Earth', 'Moon'):
        np.testing.assert_allclose(rebased.world_position(name), plain.world_position(name), atol=1e-8)


def test_run_logs_history_at_output_rate():
    config = OrreryConfig(verbose=False, duration_seconds=2.0, frame_rate_hz=30.0, output_rate_hz=5.0)
    sim = Simulator(config, bodies=sun_earth_moon())

    history = sim.run()

    assert sim.step_count == 60
    assert 9 <= len(history) <= 11
    assert history[0].positions.shape == (3, 3)


def test_export_trajectory_writes_csv(tmp_path):
    config = OrreryConfig(verbose=False, output_rate_hz=60.0,
                          clock=ClockParameters(initial_speed=86400.0))
    sim = Simulator(config, bodies=sun_earth_moon())
    sim.run(duration_seconds=0.5, frame_rate=20.0)

    path = tmp_path / "trajectory.csv"
    data = sim.export_trajectory(str(path))

    assert data.shape == (10, 3 + 3 * 3)
    assert "Moon_x" in path.read_text().splitlines()[0]
    np.testing.assert_allclose(np.loadtxt(path, delimiter=','), data)


def test_telemetry_reports_mode_and_energy():
    sim = Simulator(OrreryConfig(verbose=False), bodies=sun_earth_moon())
    sim.tick(1 / 60)

    telemetry = sim.get_telemetry()

    assert telemetry['mode'] == 'nbody'
    assert np.isfinite(telemetry['nbody_energy'])
    assert set(telemetry['bodies']) == {'Sun', 'Earth', 'Moon'}


def test_high_speed_config_starts_at_maximum():
    sim = Simulator(create_high_speed_config(), bodies=sun_earth_moon())

    assert sim.speed_multiplier == 6553600.0
    sim.tick(0.1)
    assert sim.nbody.accumulator.dropped_steps == 0
