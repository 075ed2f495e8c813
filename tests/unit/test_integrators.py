import numpy as np
import pytest

from orrery.dynamics.integrators import (
    CompensatedSum,
    FixedStepAccumulator,
    LeapfrogIntegrator,
    RK4Integrator,
    SymplecticEuler,
    create_integrator,
)


def _spring(r):
    return -r


def test_unknown_method_raises_value_error():
    with pytest.raises(ValueError):
        create_integrator('euler_forward', _spring)


def test_create_integrator_by_name():
    assert isinstance(create_integrator('leapfrog', _spring), LeapfrogIntegrator)
    assert isinstance(create_integrator('rk4', _spring), RK4Integrator)


def test_leapfrog_energy_stays_bounded():
    integrator = LeapfrogIntegrator(_spring)
    r, v = np.array([1.0]), np.array([0.0])

    energies = []
    for _ in range(1000):
        r, v = integrator.step(r, v, 0.1)
        energies.append(0.5 * (r[0]**2 + v[0]**2))

    assert max(abs(e - 0.5) for e in energies) < 1e-2


def test_rk4_tracks_harmonic_oscillator():
    integrator = RK4Integrator(_spring)
    r, v = np.array([1.0]), np.array([0.0])

    for _ in range(100):
        r, v = integrator.step(r, v, 0.01)

    assert abs(r[0] - np.cos(1.0)) < 1e-6
    assert abs(v[0] + np.sin(1.0)) < 1e-6


def test_symplectic_euler_updates_velocity_first():
    r, v = SymplecticEuler(_spring).step(np.array([1.0]), np.array([0.0]), 0.1)

    assert np.isclose(v[0], -0.1)
    assert np.isclose(r[0], 0.99)


def test_accumulator_counts_whole_steps_and_keeps_remainder():
    acc = FixedStepAccumulator(0.25)

    assert acc.add(0.125) == 0
    assert acc.add(0.375) == 2
    assert acc.add(0.0625) == 0
    assert acc.accumulator == 0.0625
    assert acc.alpha == 0.25
    assert acc.total_steps == 2


def test_accumulator_is_deterministic():
    deltas = [0.125, 0.375, 0.5, 0.0625, 1.0, 0.1875]
    a, b = FixedStepAccumulator(0.25), FixedStepAccumulator(0.25)

    assert [a.add(d) for d in deltas] == [b.add(d) for d in deltas]
    # Every added interval is either stepped or still pending
    assert a.total_steps * 0.25 + a.accumulator == sum(deltas)


def test_accumulator_step_count_does_not_depend_on_chunking():
    even, uneven = FixedStepAccumulator(0.25), FixedStepAccumulator(0.25)

    assert sum(even.add(d) for d in [0.5] * 4) == 8
    assert sum(uneven.add(d) for d in [0.125, 0.875, 1.0]) == 8
    assert even.accumulator == uneven.accumulator == 0.0


def test_accumulator_counts_uneven_bursts_exactly():
    h = 2.0**-16
    weights = [1.1828, 0.3126, 0.7093, 1.4471, 0.0517, 0.9362, 1.2589, 0.6604]
    deltas = [w * h for w in weights]
    deltas.append(9 * h - sum(deltas))
    assert sum(deltas) == 9 * h

    single, chunked = FixedStepAccumulator(h), FixedStepAccumulator(h)

    assert single.add(9 * h) == 9
    for burst in range(1000):
        assert sum(chunked.add(d) for d in deltas) == 9, burst
    assert chunked.total_steps == 9000
    assert chunked.accumulator < h


def test_accumulator_rejects_invalid_arguments():
    with pytest.raises(ValueError):
        FixedStepAccumulator(0.0)
    with pytest.raises(ValueError):
        FixedStepAccumulator(0.25, max_steps_per_tick=0)


def test_accumulator_caps_steps_and_drops_backlog():
    acc = FixedStepAccumulator(0.25, max_steps_per_tick=4)

    assert acc.add(10.0) == 4
    assert acc.dropped_steps == 36
    assert acc.accumulator == 0.0
    assert acc.add(0.0) == 0


def test_accumulator_ignores_negative_time():
    acc = FixedStepAccumulator(0.25)

    assert acc.add(-1.0) == 0
    assert acc.accumulator == 0.0


def test_compensated_sum_keeps_small_increments():
    total = CompensatedSum(1e8)
    naive = 1e8
    for _ in range(100000):
        total.add(1e-3)
        naive += 1e-3

    assert abs(total.value - (1e8 + 100.0)) < 1e-6
    assert abs(naive - (1e8 + 100.0)) > 1e-5
