# ──────────────────────────────────────────────────────────────────────
# CoreOps — Operation History Export
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""Tabular and plotted views of an operation's step snapshots."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

import pandas as pd

from coreops.core.results import ResultSnapshot


def history_frame(results: Iterable[ResultSnapshot]) -> pd.DataFrame:
    """One row per step, rod positions as ``rod_<id>`` columns."""
    rows = [r.summary() for r in results]
    frame = pd.DataFrame(rows)
    if not frame.empty:
        frame.insert(0, "step", range(1, len(frame) + 1))
    return frame


def write_history_csv(results: Iterable[ResultSnapshot], path: Union[str, Path]) -> pd.DataFrame:
    frame = history_frame(results)
    frame.to_csv(path, index=False)
    return frame


def plot_history(
    results: Iterable[ResultSnapshot],
    output_path: Union[str, Path],
    title: str = "Operation history",
) -> Tuple[bool, Optional[str]]:
    """Plot power, boron, ASI and rods against time; returns ``(saved, error)``."""
    frame = history_frame(results)
    if frame.empty:
        return False, "no steps to plot"
    try:
        import matplotlib

        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
    except ImportError as exc:
        return False, f"matplotlib unavailable: {exc}"

    hours = frame["time_s"] / 3600.0
    fig, axes = plt.subplots(4, 1, figsize=(8, 10), sharex=True)
    axes[0].plot(hours, frame["power_fraction"] * 100.0, color="tab:red")
    axes[0].set_ylabel("Power [%]")
    axes[1].plot(hours, frame["ppm"], color="tab:blue")
    axes[1].set_ylabel("Boron [ppm]")
    axes[2].plot(hours, frame["asi"], color="tab:green")
    axes[2].set_ylabel("ASI [-]")
    for col in [c for c in frame.columns if c.startswith("rod_")]:
        axes[3].plot(hours, frame[col], label=col[4:])
    axes[3].set_ylabel("Rod [cm]")
    axes[3].set_xlabel("Time [h]")
    if any(c.startswith("rod_") for c in frame.columns):
        axes[3].legend(loc="best", fontsize=8)
    for ax in axes:
        ax.grid(True, alpha=0.3)
    fig.suptitle(title)
    fig.tight_layout()
    try:
        fig.savefig(output_path, dpi=120)
    except OSError as exc:
        return False, str(exc)
    finally:
        plt.close(fig)
    return True, None
