"""Glue between an instrument list, the price source and the VaR engine."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import IO, Optional

from loguru import logger

from portfolio_var.data import get_historical_data
from portfolio_var.portfolio import Instrument, Portfolio
from portfolio_var.var import VaRMethod, VaRResult, calculate_var

CALCULATION_FAILED_MESSAGE = (
    "Could not complete the VaR calculation. "
    "Check if the data file is present and correctly formatted."
)


def run_calculation(
    instruments: Iterable[Instrument],
    method: VaRMethod | str,
    source: str | Path | IO[str] | None = None,
) -> Optional[VaRResult]:
    """Run the full pipeline for the included instruments.

    Returns None without touching the price source when no instrument is
    included. Engine faults propagate.
    """
    active = [i for i in instruments if i.included]
    if not active:
        logger.debug("No included instruments; skipping VaR calculation")
        return None
    returns = get_historical_data(active, source)
    return calculate_var(active, returns, method)


class VaRSession:
    """Holds the state a presentation layer binds to.

    Parameters
    ----------
    portfolio:
            The editable instrument list.
    method:
            Selected methodology; strings are validated on each recalculation.
    source:
            Price source; defaults to the configured data path.
    """

    def __init__(
        self,
        portfolio: Optional[Portfolio] = None,
        method: VaRMethod | str = VaRMethod.PARAMETRIC,
        source: str | Path | IO[str] | None = None,
    ):
        self.portfolio = portfolio if portfolio is not None else Portfolio()
        self.method = method
        self.source = source
        self.result: Optional[VaRResult] = None
        self.error: Optional[str] = None
        self.is_calculating = False

    def recalculate(self) -> Optional[VaRResult]:
        """Recompute the result, clearing it and recording a generic error on failure."""
        self.is_calculating = True
        try:
            self.result = run_calculation(self.portfolio.included(), self.method, self.source)
            self.error = None
        except Exception:
            logger.exception("Failed to calculate VaR")
            self.result = None
            self.error = CALCULATION_FAILED_MESSAGE
        finally:
            self.is_calculating = False
        return self.result
