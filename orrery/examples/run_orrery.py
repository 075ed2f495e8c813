#!/usr/bin/env python3
"""
Orrery Example
==============

Example script demonstrating the orrery engine.
"""

import logging
import time

# Add parent directory to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from orrery.core.config import ClockParameters, OrreryConfig
from orrery.core.context import PhysicsMode
from orrery.core.simulator import Simulator


def run_quick_simulation(plot_file: str = None):
    """Run one simulated year of the solar system at 30 days per second."""
    print("=" * 60)
    print("Orrery Quick Simulation")
    print("=" * 60)
    
    config = OrreryConfig(
        duration_seconds=365.25 / 30.0,
        frame_rate_hz=60.0,
        clock=ClockParameters(initial_speed=86400.0 * 30),
        output_rate_hz=30.0,
    )
    sim = Simulator(config)
    
    print(f"\nSimulation Configuration:")
    print(f"  Bodies: {len(sim.hierarchy)}")
    print(f"  Mode: {sim.physics_mode.value}")
    print(f"  Speed: {sim.speed_multiplier:g}x")
    print(f"  N-body step: {config.integrator.step_years * 365.25 * 24:.2f} h")
    
    print("\nRunning simulation...")
    start_time = time.time()
    history = sim.run()
    elapsed = time.time() - start_time
    
    print(f"\nSimulation complete in {elapsed:.2f}s")
    print(f"  Simulated {sim.simulation_time:.4f} yr in {len(history)} logged states")
    
    telemetry = sim.get_telemetry()
    print(f"\nFinal State:")
    print(f"  Mode: {telemetry['mode']}")
    print(f"  N-body energy: {telemetry.get('nbody_energy', float('nan')):.6e}")
    for name in ('Earth', 'Mars', 'Jupiter'):
        pos = sim.world_position(name)
        print(f"  {name}: [{pos[0]:8.3f}, {pos[1]:8.3f}, {pos[2]:8.3f}]")
    
    if plot_file:
        plot_trajectories(sim, plot_file)


def run_mode_switch_demo():
    """Toggle between Kepler and n-body physics and report continuity."""
    print("\n" + "=" * 60)
    print("Mode Switch Scenario")
    print("=" * 60)
    
    from orrery.scenarios.mode_switch import ModeSwitchScenario, ModeSwitchScenarioConfig
    
    scenario = ModeSwitchScenario(ModeSwitchScenarioConfig(duration_seconds=10.0))
    scenario.run()
    print(scenario.get_summary())


def run_time_compression_demo():
    """Report integrator behaviour across speed multipliers."""
    print("\n" + "=" * 60)
    print("Time Compression Scenario")
    print("=" * 60)
    
    from orrery.scenarios.time_compression import TimeCompressionScenario
    
    scenario = TimeCompressionScenario()
    scenario.run()
    print(scenario.get_summary())


def demonstrate_speed_control():
    """Walk the speed multiplier through its range."""
    print("\n" + "=" * 60)
    print("Speed Control")
    print("=" * 60)
    
    sim = Simulator(OrreryConfig(initial_mode=PhysicsMode.KEPLER, verbose=False))
    
    print(f"\n{'Step':>6} {'Speed':>12} {'Days/s':>10}")
    for step in range(0, 24, 4):
        print(f"{step:>6} {sim.speed_multiplier:>12g} {sim.speed_multiplier / 86400.0:>10.3f}")
        for _ in range(4):
            sim.increase_speed()
    print(f"  Clamped at {sim.speed_multiplier:g}x")


def plot_trajectories(sim: Simulator, filename: str):
    """Plot logged world positions in the ecliptic plane."""
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt
    
    data = sim.export_trajectory()
    if data.size == 0:
        return
    
    fig, ax = plt.subplots(figsize=(8, 8))
    for i, name in enumerate(sim.hierarchy.names):
        x = data[:, 3 + 3 * i]
        y = data[:, 4 + 3 * i]
        ax.plot(x, y, linewidth=0.8, label=name if sim.hierarchy.node(name).depth <= 1 else None)
    ax.set_aspect('equal')
    ax.set_xlabel("x (scene units)")
    ax.set_ylabel("y (scene units)")
    ax.set_title(f"Orrery trajectories ({sim.simulation_time:.2f} yr)")
    ax.legend(fontsize=7, loc='upper right')
    ax.grid(True)
    fig.tight_layout()
    fig.savefig(filename, dpi=160)
    plt.close(fig)
    print(f"\nTrajectory plot written to {filename}")


if __name__ == "__main__":
    import argparse
    
    parser = argparse.ArgumentParser(description="Orrery Examples")
    parser.add_argument('--all', action='store_true', help='Run all examples')
    parser.add_argument('--quick', action='store_true', help='Run quick simulation')
    parser.add_argument('--switch', action='store_true', help='Run mode switch scenario')
    parser.add_argument('--compression', action='store_true', help='Run time compression scenario')
    parser.add_argument('--speed', action='store_true', help='Demonstrate speed control')
    parser.add_argument('--plot', default=None, help='Write trajectory plot (PNG) from the quick run')
    parser.add_argument('--log-level', default='WARNING', help='Logging level')
    
    args = parser.parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING),
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    
    # Default to quick if no args
    if not any((args.all, args.quick, args.switch, args.compression, args.speed)):
        args.quick = True
    
    if args.all or args.quick:
        run_quick_simulation(args.plot)
    
    if args.all or args.switch:
        run_mode_switch_demo()
    
    if args.all or args.compression:
        run_time_compression_demo()
    
    if args.all or args.speed:
        demonstrate_speed_control()

