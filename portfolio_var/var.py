"""Portfolio Value-at-Risk engine.

Two methods are supported:

- parametric (variance-covariance): normal returns, VaR = z * sigma_p
- historical simulation: empirical left-tail quantile of portfolio returns

Both are expressed as a positive loss, first as a fraction of gross
exposure (``var_pct``) and then in currency (``var_abs``). Holding periods
longer than one day are scaled by the square root of time.

Instruments arrive already filtered to the included ones. Return series are
aligned with :func:`portfolio_var.returns.align_returns`, so empty or short
series degrade to zero contributions instead of raising.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, fields
from enum import Enum
from types import MappingProxyType

import numpy as np
import pandas as pd
from loguru import logger

from portfolio_var.config import (
    get_settings,
    validate_confidence_level,
    validate_holding_period,
)
from portfolio_var.portfolio import Instrument
from portfolio_var.returns import align_returns, exposure_weights

# Portfolio volatility below this is treated as numerical noise.
_SIGMA_FLOOR = 1e-12


class VaRMethod(str, Enum):
    """Closed set of VaR methodologies."""

    PARAMETRIC = "parametric"
    HISTORICAL = "historical"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            key = value.strip().lower()
            for member in cls:
                if member.value == key:
                    return member
        return None


@dataclass(frozen=True, slots=True)
class VaRResult:
    """Container for VaR results."""

    method: str
    confidence: float
    holding_period: int
    var_pct: float
    var_abs: float
    portfolio_value: float
    observations: int
    contributions: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # read-only copy, never aliased with the caller's dict
        object.__setattr__(self, "contributions", MappingProxyType(dict(self.contributions)))

    def to_dict(self) -> dict[str, object]:
        """Plain, JSON-serializable representation."""
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out["contributions"] = dict(self.contributions)
        return out


def _inv_norm_cdf(p: float) -> float:
    """Acklam's approximation for inverse CDF of standard normal (no scipy)."""
    a = [
        -39.6968302866538,
        220.946098424521,
        -275.928510446969,
        138.357751867269,
        -30.6647980661472,
        2.50662827745924,
    ]
    b = [
        -54.4760987982241,
        161.585836858041,
        -155.698979859887,
        66.8013118877197,
        -13.2806815528857,
    ]
    c = [
        -0.00778489400243029,
        -0.322396458041136,
        -2.40075827716184,
        -2.54973253934373,
        4.37466414146497,
        2.93816398269878,
    ]
    d = [0.00778469570904146, 0.32246712907004, 2.445134137143, 3.75440866190742]
    plow = 0.02425
    phigh = 1 - plow
    if p < plow:
        q = np.sqrt(-2 * np.log(p))
        return (((((c[0] * q + c[1]) * q + c[2]) * q + c[3]) * q + c[4]) * q + c[5]) / (
            (((d[0] * q + d[1]) * q + d[2]) * q + d[3]) * q + 1
        )
    if phigh < p:
        q = np.sqrt(-2 * np.log(1 - p))
        return -(
            ((((c[0] * q + c[1]) * q + c[2]) * q + c[3]) * q + c[4]) * q + c[5]
        ) / ((((d[0] * q + d[1]) * q + d[2]) * q + d[3]) * q + 1)
    q = p - 0.5
    r = q * q
    return (
        (((((a[0] * r + a[1]) * r + a[2]) * r + a[3]) * r + a[4]) * r + a[5])
        * q
        / (((((b[0] * r + b[1]) * r + b[2]) * r + b[3]) * r + b[4]) * r + 1)
    )


def z_score(confidence: float) -> float:
    """One-sided z for the loss tail, e.g. 1.645 at 95% and 2.326 at 99%."""
    return float(-_inv_norm_cdf(1.0 - float(confidence)))


def _exposures(instruments: Sequence[Instrument]) -> pd.Series:
    """Quantity per symbol, summing repeated symbols, in first-seen order."""
    exposures: dict[str, float] = {}
    for inst in instruments:
        exposures[inst.symbol] = exposures.get(inst.symbol, 0.0) + float(inst.quantity)
    return pd.Series(exposures, dtype=float)


def _parametric(
    aligned: pd.DataFrame, weights: np.ndarray, confidence: float
) -> tuple[float, np.ndarray]:
    """Variance-covariance VaR as a fraction of exposure, plus Euler contributions."""
    n = aligned.shape[1]
    if aligned.shape[0] < 2:
        sigma = np.zeros((n, n))
    else:
        sigma = np.atleast_2d(np.cov(aligned.to_numpy(), rowvar=False, ddof=1))
    variance = float(weights @ sigma @ weights)
    sigma_p = float(np.sqrt(max(variance, 0.0)))
    if sigma_p < _SIGMA_FLOOR:
        return 0.0, np.zeros(n)
    z = z_score(confidence)
    marginal = (sigma @ weights) / sigma_p
    return z * sigma_p, z * weights * marginal


def _historical(
    aligned: pd.DataFrame, weights: np.ndarray, confidence: float
) -> tuple[float, np.ndarray]:
    """Empirical-quantile VaR as a fraction of exposure, plus scenario-day contributions.

    The quantile is the smallest portfolio return whose empirical CDF reaches
    the tail probability, so small samples select an actual observation.
    """
    n_obs, n = aligned.shape
    if n_obs == 0:
        return 0.0, np.zeros(n)
    values = aligned.to_numpy()
    pnl = values @ weights
    order = np.argsort(pnl, kind="stable")
    alpha = 1.0 - float(confidence)
    k = min(max(int(np.ceil(round(alpha * n_obs, 9))) - 1, 0), n_obs - 1)
    day = order[k]
    loss = -float(pnl[day])
    if loss <= 0:
        return 0.0, np.zeros(n)
    return loss, -weights * values[day]


_STRATEGIES: dict[VaRMethod, Callable[[pd.DataFrame, np.ndarray, float], tuple[float, np.ndarray]]] = {
    VaRMethod.PARAMETRIC: _parametric,
    VaRMethod.HISTORICAL: _historical,
}


def calculate_var(
    instruments: Sequence[Instrument],
    returns: Mapping[str, Sequence[float]],
    method: VaRMethod | str,
    confidence: float | None = None,
    holding_period: int | None = None,
) -> VaRResult:
    """Compute portfolio VaR for the included instruments.

    Parameters
    ----------
    instruments:
            Non-empty list of instruments, already filtered to included ones.
    returns:
            Daily return series per symbol, as produced by
            `portfolio_var.data.get_historical_data`. Missing or empty series
            count as zero returns.
    method:
            A `VaRMethod` or its string value. Anything else raises ValueError.
    confidence, holding_period:
            Default to the configured settings.

    Returns
    -------
    VaRResult
            Non-negative VaR with per-symbol contributions summing to `var_abs`.
    """
    method = VaRMethod(method)
    settings = get_settings()
    confidence = validate_confidence_level(
        settings.confidence if confidence is None else confidence
    )
    holding_period = validate_holding_period(
        settings.holding_period if holding_period is None else holding_period
    )
    if not instruments:
        raise ValueError("calculate_var requires at least one included instrument")

    exposures = _exposures(instruments)
    symbols = list(exposures.index)
    weights = exposure_weights(exposures).to_numpy()
    portfolio_value = float(exposures.abs().sum())
    aligned = align_returns(returns, symbols)

    var_pct, contrib = _STRATEGIES[method](aligned, weights, confidence)
    scale = float(np.sqrt(holding_period))
    var_pct = float(max(0.0, var_pct * scale))
    contrib = contrib * scale * portfolio_value

    result = VaRResult(
        method=method.value,
        confidence=confidence,
        holding_period=holding_period,
        var_pct=var_pct,
        var_abs=var_pct * portfolio_value,
        portfolio_value=portfolio_value,
        observations=int(aligned.shape[0]),
        contributions={s: float(c) for s, c in zip(symbols, contrib)},
    )
    logger.debug(
        f"{method.value} VaR: {result.var_pct:.4%} of {portfolio_value:,.2f} "
        f"over {result.observations} obs"
    )
    return result


def summarize_var(
    instruments: Sequence[Instrument],
    returns: Mapping[str, Sequence[float]],
    confidence: float | None = None,
    holding_period: int | None = None,
) -> dict[VaRMethod, VaRResult]:
    """Compute VaR under every method for side-by-side display."""
    return {
        m: calculate_var(instruments, returns, m, confidence, holding_period)
        for m in VaRMethod
    }
