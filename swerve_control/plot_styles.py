"""Shared plotting utilities and styles for drivetrain telemetry plots.

This module provides:
- Brand colors
- CSV telemetry loading
- Common axis, legend and figure-saving helpers
"""

import csv
import logging
from pathlib import Path
from typing import Dict, List

import numpy as np
from matplotlib.axes import Axes
from matplotlib.figure import Figure

from .config import (
    MONUMENTAL_BLUE,
    MONUMENTAL_CREAM,
    MONUMENTAL_DARK_BLUE,
    MONUMENTAL_ORANGE,
    MONUMENTAL_TAUPE,
)

__all__ = [
    "MONUMENTAL_ORANGE",
    "MONUMENTAL_BLUE",
    "MONUMENTAL_CREAM",
    "MONUMENTAL_TAUPE",
    "MONUMENTAL_DARK_BLUE",
    "load_csv_to_dict",
    "style_axis",
    "add_branded_legend",
    "save_figure",
]


def load_csv_to_dict(csv_path: Path) -> Dict[str, np.ndarray]:
    """Load CSV file into dictionary of numpy arrays.

    Non-numeric or empty values become NaN.

    Args:
        csv_path: Path to CSV file.

    Returns:
        Dictionary mapping column names to numpy arrays.

    Raises:
        FileNotFoundError: If the CSV file does not exist.

    Example:
        >>> data = load_csv_to_dict(Path("results/run_20251114_184704/telemetry.csv"))
        >>> data["drivetrain/pose.x"].shape
        (750,)
    """
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    with open(csv_path, newline="") as f:
        reader = csv.DictReader(f)
        data: Dict[str, List[float]] = {}
        for row in reader:
            for key, value in row.items():
                if key not in data:
                    data[key] = []
                try:
                    data[key].append(float(value))
                except (ValueError, TypeError):
                    data[key].append(np.nan)

    return {key: np.array(values) for key, values in data.items()}


def style_axis(
    ax: Axes,
    title: str = "",
    xlabel: str = "",
    ylabel: str = "",
    grid: bool = True,
    dark_mode: bool = False,
) -> None:
    """Apply consistent styling to a matplotlib axis.

    Args:
        ax: Matplotlib axis to style.
        title: Plot title (optional).
        xlabel: X-axis label (optional).
        ylabel: Y-axis label (optional).
        grid: Whether to show grid lines (default: True).
        dark_mode: Whether to use dark mode styling (default: False).
    """
    # Light mode keeps matplotlib's default text color
    text_style = {"color": MONUMENTAL_CREAM} if dark_mode else {}

    if title:
        ax.set_title(title, fontweight="bold", **text_style)
    if xlabel:
        ax.set_xlabel(xlabel, **text_style)
    if ylabel:
        ax.set_ylabel(ylabel, **text_style)

    if grid:
        ax.grid(True, alpha=0.3, linestyle="--", linewidth=0.5)

    if dark_mode:
        ax.set_facecolor(MONUMENTAL_DARK_BLUE)
        ax.tick_params(colors=MONUMENTAL_CREAM)
        for spine in ax.spines.values():
            spine.set_edgecolor(MONUMENTAL_TAUPE)


def add_branded_legend(ax: Axes, loc: str = "best", dark_mode: bool = False, **kwargs) -> None:
    """Add a legend with brand styling.

    Args:
        ax: Matplotlib axis to add legend to.
        loc: Legend location (default: "best").
        dark_mode: Whether to use dark mode styling (default: False).
        **kwargs: Additional keyword arguments passed to ax.legend().
    """
    legend_kwargs = {
        "loc": loc,
        "framealpha": 0.9,
        "edgecolor": MONUMENTAL_TAUPE,
    }
    if dark_mode:
        legend_kwargs["facecolor"] = MONUMENTAL_DARK_BLUE
        legend_kwargs["labelcolor"] = MONUMENTAL_CREAM

    legend_kwargs.update(kwargs)
    ax.legend(**legend_kwargs)


def save_figure(fig: Figure, filepath: Path, dpi: int = 300, bbox_inches: str = "tight") -> None:
    """Save figure with consistent settings."""
    fig.savefig(filepath, dpi=dpi, bbox_inches=bbox_inches)
    logging.info(f"Saved figure to {filepath}")
