import numpy as np

from orrery.constants import MAX_SPEED_MULTIPLIER, SECONDS_PER_YEAR
from orrery.core.clock import SimulationClock
from orrery.core.config import ClockParameters


def test_speed_multiplier_is_clamped():
    clock = SimulationClock()

    assert clock.set_speed_multiplier(1e9) == MAX_SPEED_MULTIPLIER
    assert clock.increase_speed() == MAX_SPEED_MULTIPLIER
    assert clock.set_speed_multiplier(0.5) == 1.0
    assert clock.decrease_speed() == 1.0


def test_speed_steps_by_factor_two():
    clock = SimulationClock()

    assert clock.increase_speed() == 2.0
    assert clock.increase_speed() == 4.0
    assert clock.decrease_speed() == 2.0
    assert clock.reset_speed() == 1.0


def test_max_speed_is_reached_by_doubling():
    clock = SimulationClock()
    for _ in range(30):
        clock.increase_speed()

    assert clock.speed_multiplier == 6553600.0


def test_non_finite_speed_is_ignored():
    clock = SimulationClock()
    clock.set_speed_multiplier(8.0)

    assert clock.set_speed_multiplier(float('nan')) == 8.0


def test_frame_delta_is_capped():
    clock = SimulationClock()

    assert clock.advance(5.0) == 0.1
    assert clock.real_time == 0.1


def test_physics_delta_in_years():
    clock = SimulationClock()
    clock.set_speed_multiplier(4096.0)
    clock.advance(0.05)

    assert np.isclose(clock.physics_delta, 0.05 * 4096.0 / SECONDS_PER_YEAR)
    assert np.isclose(clock.simulation_time, clock.physics_delta)
    assert clock.kepler_delta == clock.physics_delta
    assert clock.nbody_delta == clock.physics_delta


def test_rotation_and_effects_deltas():
    clock = SimulationClock()
    clock.set_speed_multiplier(100.0)
    clock.advance(0.05)

    assert np.isclose(clock.rotation_delta, 0.05 * 100.0 * 0.1)
    assert np.isclose(clock.effects_delta, 0.05)


def test_mode_calibration_scales_deltas():
    clock = SimulationClock(ClockParameters(kepler_time_scale=2.0))
    clock.advance(0.05)

    assert np.isclose(clock.kepler_delta, 2.0 * clock.nbody_delta)


def test_pause_freezes_simulation_time():
    clock = SimulationClock()
    clock.advance(0.05)
    t = clock.simulation_time

    clock.pause()
    assert clock.advance(0.05) == 0.0
    assert clock.physics_delta == 0.0
    assert clock.simulation_time == t

    assert clock.toggle() is False
    clock.advance(0.05)
    assert clock.simulation_time > t


def test_update_uses_timestamps():
    clock = SimulationClock()
    clock.start(100.0)

    clock.update(100.05)

    assert np.isclose(clock.delta_time, 0.05)
    assert np.isclose(clock.real_time, 0.05)


def test_first_update_assumes_one_frame():
    clock = SimulationClock()

    clock.update(12.0)

    assert np.isclose(clock.delta_time, 1.0 / 60.0)


def test_reset_keeps_speed_and_scales():
    clock = SimulationClock()
    clock.set_speed_multiplier(64.0)
    clock.time_scale = 0.5
    clock.advance(0.05)

    clock.reset()

    assert clock.simulation_time == 0.0
    assert clock.real_time == 0.0
    assert clock.speed_multiplier == 64.0
    assert clock.time_scale == 0.5


def test_adaptive_smoothing_stays_within_bounds():
    params = ClockParameters(adaptive_timestep=True)
    clock = SimulationClock(params)

    for dt in [1 / 60] * 20 + [0.09] * 20 + [1 / 144] * 20:
        delta = clock.advance(dt)
        assert params.min_timestep * 0.9 <= delta <= 0.1
