#!/usr/bin/env python3
"""
Standalone script to visualize drivetrain telemetry from recorded runs.

Loads telemetry.csv from a run directory and plots the estimated pose trace
against the path target, and the heading over time.
"""

import argparse
import logging
import math
import sys
from pathlib import Path
from typing import Dict

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.figure import Figure

from .config import MONUMENTAL_BLUE, MONUMENTAL_ORANGE, TERM_BLUE, TERM_RESET
from .plot_styles import add_branded_legend, load_csv_to_dict, save_figure, style_axis

POSE_COLUMNS = ("drivetrain/pose.x", "drivetrain/pose.y", "drivetrain/pose.heading")
TARGET_COLUMNS = ("drivetrain/path_target.x", "drivetrain/path_target.y", "drivetrain/path_target.heading")


def find_latest_run(results_dir: Path) -> Path:
    """Find the most recent run directory.

    Args:
        results_dir: Path to the results directory.

    Returns:
        Path to the most recent run directory.

    Raises:
        FileNotFoundError: If no run directories are found.
    """
    if not results_dir.exists():
        raise FileNotFoundError(f"Results directory not found: {results_dir}")

    run_dirs = sorted(
        [d for d in results_dir.iterdir() if d.is_dir() and d.name.startswith("run_")]
    )

    if not run_dirs:
        raise FileNotFoundError(f"No run directories found in {results_dir}")

    return run_dirs[-1]


def list_available_runs(results_dir: Path) -> None:
    if not results_dir.exists():
        logging.error(f"Results directory not found: {results_dir}")
        return

    run_dirs = sorted(
        [d for d in results_dir.iterdir() if d.is_dir() and d.name.startswith("run_")]
    )

    if not run_dirs:
        logging.info(f"No run directories found in {results_dir}")
        return

    logging.info("Available runs:")
    for i, run_dir in enumerate(run_dirs, 1):
        logging.info(f"  {i}. {run_dir.name}")


def plot_pose_trace(data: Dict[str, np.ndarray]) -> Figure:
    """Plot the field pose trace and heading over time.

    Args:
        data: Telemetry columns as loaded by load_csv_to_dict

    Returns:
        Figure with a field-view axis and a heading axis

    Raises:
        KeyError: If the pose columns are missing
    """
    missing = [c for c in POSE_COLUMNS if c not in data]
    if missing:
        raise KeyError(f"Telemetry is missing pose columns: {missing}")

    t = data["timestamp"]
    x, y, heading = (data[c] for c in POSE_COLUMNS)

    fig, (ax_field, ax_heading) = plt.subplots(1, 2, figsize=(14, 6))

    if all(c in data for c in TARGET_COLUMNS):
        ax_field.plot(
            data[TARGET_COLUMNS[0]], data[TARGET_COLUMNS[1]], "--",
            color=MONUMENTAL_ORANGE, linewidth=1.5, label="Path target",
        )
        ax_heading.plot(
            t, np.degrees(data[TARGET_COLUMNS[2]]), "--",
            color=MONUMENTAL_ORANGE, linewidth=1.5, label="Path target",
        )

    ax_field.plot(x, y, color=MONUMENTAL_BLUE, linewidth=2, label="Estimated pose")
    ax_field.plot(x[0], y[0], "o", color=MONUMENTAL_BLUE, markersize=8, label="Start")
    ax_field.plot(x[-1], y[-1], "s", color=MONUMENTAL_BLUE, markersize=8, label="End")

    # Heading arrows every second
    step = max(1, int(round(1.0 / np.median(np.diff(t))))) if len(t) > 1 else 1
    for i in range(0, len(t), step):
        ax_field.arrow(
            x[i], y[i], 0.2 * math.cos(heading[i]), 0.2 * math.sin(heading[i]),
            head_width=0.05, color=MONUMENTAL_BLUE, alpha=0.6,
        )

    ax_field.set_aspect("equal", adjustable="datalim")
    style_axis(ax_field, title="Field Pose", xlabel="X (m)", ylabel="Y (m)")
    add_branded_legend(ax_field)

    ax_heading.plot(t, np.degrees(heading), color=MONUMENTAL_BLUE, linewidth=2, label="Estimated heading")
    style_axis(ax_heading, title="Heading", xlabel="Time (s)", ylabel="Heading (°)")
    add_branded_legend(ax_heading)

    fig.tight_layout()
    return fig


def plot_run_summary(run_dir: Path, save_plots: bool = False, show_plots: bool = True) -> None:
    data = load_csv_to_dict(run_dir / "telemetry.csv")
    fig = plot_pose_trace(data)

    if save_plots:
        save_figure(fig, run_dir / "pose_trace.png")
    if show_plots:
        plt.show()
    plt.close(fig)


def main() -> None:
    """Main entry point for the plotting script."""
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    parser = argparse.ArgumentParser(
        description="Visualize drivetrain telemetry from recorded runs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Plot the most recent run
  python -m swerve_control.plot_results

  # Plot a specific run by name
  python -m swerve_control.plot_results --run run_20251114_184704

  # Save figures to the run directory without showing them
  python -m swerve_control.plot_results --save --no-show
        """,
    )
    parser.add_argument(
        "--run",
        type=str,
        default=None,
        help="Name of the run directory to plot (e.g., run_20251114_184704). "
        "If not specified, plots the most recent run.",
    )
    parser.add_argument(
        "--results-dir",
        type=str,
        default="results",
        help="Path to the results directory (default: results)",
    )
    parser.add_argument(
        "--save", action="store_true", help="Save plots as PNG files in the run directory"
    )
    parser.add_argument(
        "--no-show",
        action="store_true",
        help="Do not display plots interactively (useful with --save)",
    )
    parser.add_argument("--list", action="store_true", help="List all available runs and exit")

    args = parser.parse_args()
    results_dir = Path(args.results_dir)

    if args.list:
        list_available_runs(results_dir)
        return

    if args.run:
        run_dir = results_dir / args.run
        if not run_dir.exists():
            logging.error(f"Error: Run directory not found: {run_dir}")
            list_available_runs(results_dir)
            sys.exit(1)
    else:
        try:
            run_dir = find_latest_run(results_dir)
            logging.info(f"{TERM_BLUE}Plotting most recent run: {run_dir}{TERM_RESET}")
        except FileNotFoundError as e:
            logging.error(f"Error: {e}")
            sys.exit(1)

    try:
        plot_run_summary(run_dir=run_dir, save_plots=args.save, show_plots=not args.no_show)
    except (FileNotFoundError, KeyError) as e:
        logging.error(f"Error: {e}")
        logging.info(f"Make sure {run_dir} contains a telemetry.csv recorded by swerve_control")
        sys.exit(1)


if __name__ == "__main__":
    main()
