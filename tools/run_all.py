#!/usr/bin/env python3
"""Run *complete* orrery validations.

This script executes:
- Python unit tests (pytest)
- Quick simulation + scenarios

It writes full logs + data + images into build/reports/.

Usage:
  python3 tools/run_all.py
  python3 tools/run_all.py --out build/reports
"""

from __future__ import annotations

import argparse
import csv
import json
import logging
import os
import shutil
import subprocess
import sys
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Optional

# Force headless plotting
import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np


REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_OUT_ROOT = REPO_ROOT / "build" / "reports"


def _utc_stamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%SZ")


def _run_cmd(
    cmd: list[str],
    *,
    cwd: Path,
    log_path: Path,
    env: Optional[dict[str, str]] = None,
) -> int:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with log_path.open("w", encoding="utf-8") as f:
        f.write(f"$ {' '.join(cmd)}\n")
        f.write(f"cwd={cwd}\n\n")
        f.flush()
        proc = subprocess.Popen(
            cmd,
            cwd=str(cwd),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            env=env,
        )
        assert proc.stdout is not None
        for line in proc.stdout:
            f.write(line)
        return proc.wait()


def _git_info() -> dict[str, Any]:
    def _git(args: list[str]) -> str:
        try:
            return subprocess.check_output(["git", *args], cwd=str(REPO_ROOT), text=True,
                                           stderr=subprocess.DEVNULL).strip()
        except (OSError, subprocess.CalledProcessError):
            return ""

    return {
        "commit": _git(["rev-parse", "HEAD"]),
        "branch": _git(["rev-parse", "--abbrev-ref", "HEAD"]),
        "status_porcelain": _git(["status", "--porcelain"]),
    }


def _write_json(path: Path, obj: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)

    def _default(o: Any):
        # Numpy types
        if isinstance(o, np.ndarray):
            return o.tolist()
        if isinstance(o, np.generic):
            return o.item()
        if isinstance(o, Enum):
            return o.value
        # Dataclasses
        if is_dataclass(o):
            return asdict(o)
        return str(o)

    path.write_text(json.dumps(obj, indent=2, sort_keys=True, default=_default) + "\n", encoding="utf-8")


def _history_to_rows(history: Iterable[Any], names: list[str]) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for s in history:
        row: dict[str, Any] = {
            "time_years": float(s.time_years),
            "real_time_s": float(s.real_time_s),
            "mode": s.mode.value,
            "speed_multiplier": float(s.speed_multiplier),
        }
        for i, name in enumerate(names):
            x, y, z = s.positions[i]
            row[f"{name}_x"] = float(x)
            row[f"{name}_y"] = float(y)
            row[f"{name}_z"] = float(z)
        rows.append(row)
    return rows


def _write_csv(path: Path, rows: list[dict[str, Any]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if not rows:
        path.write_text("", encoding="utf-8")
        return
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        writer.writerows(rows)


def _plot_orbits(rows: list[dict[str, Any]], names: list[str], out_png: Path, title: str) -> None:
    out_png.parent.mkdir(parents=True, exist_ok=True)
    if not rows:
        return

    fig, ax = plt.subplots(figsize=(9, 9))
    fig.suptitle(title)
    for name in names:
        x = np.array([r[f"{name}_x"] for r in rows])
        y = np.array([r[f"{name}_y"] for r in rows])
        ax.plot(x, y, linewidth=0.8, label=name)
    ax.set_aspect("equal")
    ax.set_xlabel("x (scene units)")
    ax.set_ylabel("y (scene units)")
    ax.legend(fontsize=6, loc="upper right", ncol=2)
    ax.grid(True)

    fig.tight_layout(rect=(0, 0, 1, 0.96))
    fig.savefig(out_png, dpi=160)
    plt.close(fig)


def _plot_separation(scenario, out_png: Path) -> None:
    if not scenario.separation_history:
        return
    t = np.array(scenario.time_history)
    separation = np.array(scenario.separation_history)

    fig, ax = plt.subplots(figsize=(12, 6))
    for i, name in enumerate(scenario.kepler_sim.hierarchy.names):
        if i == 0:
            continue
        ax.semilogy(t, np.maximum(separation[:, i], 1e-12), label=name)
    ax.set_xlabel("Time (yr)")
    ax.set_ylabel("Kepler vs n-body separation (scene units)")
    ax.set_title("Model separation")
    ax.legend()
    ax.grid(True, which="both")
    fig.tight_layout()
    out_png.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_png, dpi=160)
    plt.close(fig)


def _capture_logs(log_path: Path, fn):
    """Run fn with the package loggers written to log_path."""
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_path, mode="w", encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logger = logging.getLogger("orrery")
    previous_level = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    try:
        return fn()
    finally:
        logger.removeHandler(handler)
        logger.setLevel(previous_level)
        handler.close()


def _run_simulation_bundle(out_dir: Path, *, profile: str) -> dict[str, Any]:
    # Import here so repo root is on sys.path
    sys.path.insert(0, str(REPO_ROOT))

    from orrery.core.config import ClockParameters, OrreryConfig
    from orrery.core.simulator import Simulator
    from orrery.scenarios.kepler_comparison import KeplerComparisonScenario, KeplerComparisonScenarioConfig
    from orrery.scenarios.mode_switch import ModeSwitchScenario, ModeSwitchScenarioConfig
    from orrery.scenarios.time_compression import TimeCompressionScenario, TimeCompressionScenarioConfig

    results: dict[str, Any] = {}

    # Quick sim
    def quick():
        if profile == "full":
            duration_s, speed = 365.25 / 30.0, 86400.0 * 30
        else:
            duration_s, speed = 5.0, 86400.0 * 30

        config = OrreryConfig(
            duration_seconds=duration_s,
            frame_rate_hz=60.0,
            clock=ClockParameters(initial_speed=speed),
            output_rate_hz=20.0,
        )
        sim = Simulator(config)
        history = sim.run()
        return {"config": {"duration_seconds": duration_s, "speed_multiplier": speed},
                "history": history, "names": sim.hierarchy.names, "telemetry": sim.get_telemetry()}

    quick_out = _capture_logs(out_dir / "logs" / "simulation_quick.log", quick)
    quick_rows = _history_to_rows(quick_out["history"], quick_out["names"])
    _write_csv(out_dir / "data" / "quick_timeseries.csv", quick_rows)
    _plot_orbits(quick_rows, quick_out["names"], out_dir / "images" / "quick_orbits.png", "Quick Simulation")
    results["quick"] = {"samples": len(quick_rows), **quick_out["config"], "telemetry": quick_out["telemetry"]}

    if profile == "full":
        switch_cfg = ModeSwitchScenarioConfig(duration_seconds=60.0)
        compression_cfg = TimeCompressionScenarioConfig(frames_per_speed=600)
        comparison_cfg = KeplerComparisonScenarioConfig(duration_seconds=90.0)
    elif profile == "standard":
        switch_cfg = ModeSwitchScenarioConfig(duration_seconds=20.0)
        compression_cfg = TimeCompressionScenarioConfig(frames_per_speed=240)
        comparison_cfg = KeplerComparisonScenarioConfig(duration_seconds=30.0)
    else:
        # Smoke profile: fast, still generates complete artifacts (logs/CSV/PNG) for every scenario.
        switch_cfg = ModeSwitchScenarioConfig(duration_seconds=4.0, switch_interval_frames=15)
        compression_cfg = TimeCompressionScenarioConfig(frames_per_speed=60)
        comparison_cfg = KeplerComparisonScenarioConfig(duration_seconds=5.0)

    scenarios = {
        "mode_switch": ModeSwitchScenario(switch_cfg),
        "time_compression": TimeCompressionScenario(compression_cfg),
        "kepler_comparison": KeplerComparisonScenario(comparison_cfg),
    }

    for name, scenario in scenarios.items():
        res = _capture_logs(out_dir / "logs" / f"simulation_{name}.log", scenario.run)
        results[name] = res
        _write_json(out_dir / "data" / f"{name}_results.json", res)
        (out_dir / "logs" / f"simulation_{name}_summary.txt").write_text(scenario.get_summary(), encoding="utf-8")

        history = getattr(scenario, "history", None)
        simulator = getattr(scenario, "simulator", None)
        if history and simulator is not None:
            names = simulator.hierarchy.names
            rows = _history_to_rows(history, names)
            _write_csv(out_dir / "data" / f"{name}_timeseries.csv", rows)
            _plot_orbits(rows, names, out_dir / "images" / f"{name}_orbits.png", f"Scenario: {name}")

        # Comparison has an extra separation plot
        if name == "kepler_comparison":
            _plot_separation(scenario, out_dir / "images" / "kepler_comparison_separation.png")

    return results


def main() -> int:
    parser = argparse.ArgumentParser(description="Run complete tests + simulations and write artifacts into build/")
    parser.add_argument("--out", default=str(DEFAULT_OUT_ROOT), help="Output root (default: build/reports)")
    parser.add_argument("--skip-pytests", action="store_true", help="Skip pytest")
    parser.add_argument("--skip-sim", action="store_true", help="Skip simulations")
    parser.add_argument(
        "--profile",
        choices=["smoke", "standard", "full"],
        default="smoke",
        help="Simulation workload profile (default: smoke)",
    )
    args = parser.parse_args()

    out_root = Path(args.out)
    stamp = _utc_stamp()
    run_dir = out_root / stamp
    latest_dir = out_root / "latest"

    run_dir.mkdir(parents=True, exist_ok=True)
    (run_dir / "logs").mkdir(exist_ok=True)
    (run_dir / "data").mkdir(exist_ok=True)
    (run_dir / "images").mkdir(exist_ok=True)

    meta = {
        "timestamp_utc": stamp,
        "python": sys.version,
        "repo": str(REPO_ROOT),
        "git": _git_info(),
    }
    _write_json(run_dir / "meta.json", meta)

    summary: dict[str, Any] = {"meta": meta, "steps": {}}

    # Pytests
    if not args.skip_pytests:
        code = _run_cmd(
            [
                sys.executable,
                "-m",
                "pytest",
                "-q",
                "--disable-warnings",
                "--maxfail=1",
                f"--junitxml={str(run_dir / 'data' / 'pytest-junit.xml')}",
                "tests",
            ],
            cwd=REPO_ROOT,
            log_path=run_dir / "logs" / "pytest.log",
            env={**os.environ, "PYTHONPATH": str(REPO_ROOT)},
        )
        summary["steps"]["pytest"] = {"exit_code": code}

    # Simulations
    if not args.skip_sim:
        try:
            sim_results = _run_simulation_bundle(run_dir, profile=args.profile)
            _write_json(run_dir / "data" / "simulation_summary.json", sim_results)
            summary["steps"]["simulations"] = {"ok": True, "scenarios": list(sim_results.keys())}
        except KeyboardInterrupt:
            (run_dir / "logs" / "simulation_runner_error.log").write_text("KeyboardInterrupt\n", encoding="utf-8")
            summary["steps"]["simulations"] = {"ok": False, "error": "KeyboardInterrupt"}
        except Exception as e:
            (run_dir / "logs" / "simulation_runner_error.log").write_text(str(e) + "\n", encoding="utf-8")
            summary["steps"]["simulations"] = {"ok": False, "error": str(e)}

    _write_json(run_dir / "summary.json", summary)

    # Human-readable summary
    lines = [
        f"Orrery Validation Report ({stamp})",
        f"Output: {run_dir}",
        "",
        "Steps:",
    ]
    for k, v in summary["steps"].items():
        lines.append(f"- {k}: {v}")
    (run_dir / "summary.txt").write_text("\n".join(lines) + "\n", encoding="utf-8")

    # Refresh latest/
    if latest_dir.exists():
        shutil.rmtree(latest_dir)
    shutil.copytree(run_dir, latest_dir)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
