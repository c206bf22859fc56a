from __future__ import annotations

from collections.abc import Mapping, Sequence

import numpy as np
import pandas as pd


def daily_returns(prices: Sequence[float]) -> list[float]:
    """Compute simple day-over-day returns from chronologically sorted prices.

    A zero price on the previous day yields a return of exactly 0 (flat day)
    instead of a division error. Fewer than two prices give an empty list.
    """
    returns: list[float] = []
    for i in range(1, len(prices)):
        prev = float(prices[i - 1])
        today = float(prices[i])
        if prev == 0:
            returns.append(0.0)
        else:
            returns.append((today - prev) / prev)
    return returns


def align_returns(
    returns: Mapping[str, Sequence[float]], symbols: Sequence[str]
) -> pd.DataFrame:
    """Align per-symbol return series by position into one frame.

    The overlapping range is the most recent `L` observations, where `L` is
    the length of the shortest non-empty series. Symbols with an empty or
    missing series get a column of zeros. Columns follow `symbols` order.
    """
    columns = list(dict.fromkeys(symbols))
    series = {s: list(returns.get(s) or ()) for s in columns}
    lengths = [len(v) for v in series.values() if v]
    common = min(lengths) if lengths else 0
    data = {
        s: np.asarray(v[len(v) - common :], dtype=float) if v else np.zeros(common)
        for s, v in series.items()
    }
    return pd.DataFrame(data, index=pd.RangeIndex(common), columns=columns)


def exposure_weights(exposures: pd.Series) -> pd.Series:
    """Normalize currency exposures by gross exposure.

    Short positions keep their negative sign. A zero gross exposure gives zeros.
    """
    gross = float(exposures.abs().sum())
    if gross == 0:
        return exposures * 0.0
    return exposures / gross


def portfolio_return_series(
    asset_returns: pd.DataFrame, exposures: pd.Series
) -> pd.Series:
    """Compute portfolio percent return series from asset returns and currency exposures."""
    common = asset_returns.columns.intersection(exposures.index)
    if common.empty or asset_returns.empty:
        return pd.Series(dtype=float)
    weights = exposure_weights(exposures[common])
    return asset_returns[common].dot(weights)


def returns_statistics(returns: Mapping[str, Sequence[float]]) -> pd.DataFrame:
    """Compute per-symbol statistics: observations, mean, std, skew, kurtosis.

    Values are per-day. Symbols without history show zero observations and NaN moments.
    """
    rows = {}
    for symbol, values in returns.items():
        s = pd.Series(list(values), dtype=float)
        rows[symbol] = {
            "observations": int(s.shape[0]),
            "mu": s.mean(),
            "sigma": s.std(ddof=1),
            "skew": s.skew(),
            "kurtosis": s.kurtosis(),
        }
    return pd.DataFrame.from_dict(
        rows,
        orient="index",
        columns=["observations", "mu", "sigma", "skew", "kurtosis"],
    )
