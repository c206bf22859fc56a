from __future__ import annotations

from typing import Optional

import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.figure import Figure

from portfolio_var.var import VaRResult


def plot_return_histogram(
    portfolio_returns: pd.Series, result: VaRResult, bins: int = 50
) -> Optional[Figure]:
    """Plot histogram of portfolio returns with the VaR threshold marked."""
    if portfolio_returns is None or portfolio_returns.empty:
        return None
    fig, ax = plt.subplots(figsize=(8, 4))
    ax.hist(portfolio_returns.values, bins=bins, color="#69b3a2", alpha=0.7)
    ax.axvline(
        -result.var_pct,
        color="red",
        linestyle="--",
        label=f"{result.method.title()} VaR @ {result.confidence:.2%}",
    )
    ax.set_title("Distribution of Portfolio Daily Returns")
    ax.set_xlabel("Return per day")
    ax.set_ylabel("Count")
    ax.legend(loc="best")
    fig.tight_layout()
    return fig


def plot_contributions(
    result: VaRResult, names_map: Optional[dict] = None
) -> Optional[Figure]:
    """Bar chart of per-instrument contributions to VaR in currency."""
    if not result.contributions:
        return None
    labels = [
        names_map.get(s, s) if names_map else s for s in result.contributions
    ]
    fig, ax = plt.subplots(figsize=(8, 4))
    ax.bar(labels, list(result.contributions.values()), color="#404080")
    ax.axhline(0, color="black", linewidth=0.8)
    ax.set_title(f"VaR Contributions ({result.method})")
    ax.set_ylabel("Currency")
    fig.tight_layout()
    return fig
