"""Portfolio Value-at-Risk from historical prices.

Modules:
- config: settings (confidence, holding period, data path)
- logging_config: loguru console sink
- portfolio: instruments and the editable instrument list
- data: price CSV parsing, historical return series, yfinance download
- returns: daily returns, alignment, portfolio series, statistics
- var: parametric and historical VaR, contributions
- calculation: pipeline runner and session state
- plotting: charts and visualizations
"""

__all__ = [
    "config",
    "logging_config",
    "portfolio",
    "data",
    "returns",
    "var",
    "calculation",
    "plotting",
]
