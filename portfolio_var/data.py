from dataclasses import dataclass
from collections.abc import Iterable
from pathlib import Path
from typing import IO

import numpy as np
import pandas as pd
import yfinance as yf
from loguru import logger

from portfolio_var.config import get_settings
from portfolio_var.portfolio import Instrument, normalize_symbol
from portfolio_var.returns import daily_returns

COLUMNS = ["date", "symbol", "price"]

# Return value for a symbol without usable history.
NO_DATA: tuple[float, ...] = ()


@dataclass(frozen=True, slots=True)
class PriceRecord:
    """A single dated price observation."""

    date: pd.Timestamp
    price: float


def _clean_field(value: object) -> object:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return np.nan


def _read_source(source: str | Path | IO[str]) -> pd.DataFrame:
    """Read the whole source in one pass and keep the first three fields of each row.

    Undecodable bytes are replaced, so only the rows they touch are lost.
    Fields stay as text; missing or blank fields become NaN.
    """
    if hasattr(source, "read"):
        text = source.read()
    else:
        with open(source, encoding="utf-8", errors="replace") as fh:
            text = fh.read()
    rows = [line for line in text.splitlines()[1:] if line.strip()]
    if not rows:
        return pd.DataFrame(columns=COLUMNS, dtype=object)
    fields = pd.Series(rows, dtype=object).str.split(",", expand=True)
    fields = fields.reindex(columns=range(len(COLUMNS))).astype(object)
    fields.columns = COLUMNS
    return fields.apply(lambda col: col.map(_clean_field))


def load_price_records(source: str | Path | IO[str]) -> dict[str, list[PriceRecord]]:
    """Parse `date,symbol,price` rows into date-sorted records per symbol.

    Rows with a missing field, an unparseable date, or a non-numeric or
    negative price are skipped. If the source cannot be read at all an empty
    mapping is returned: an unreadable source and an empty one mean the same
    thing to callers.
    """
    try:
        raw = _read_source(source)
    except (OSError, ValueError) as exc:
        logger.warning(f"Price source {source!r} could not be read: {exc}")
        return {}

    frame = raw.dropna(how="any").copy()
    # Offsets are normalised to UTC so mixed zones never fail the whole column
    frame["date"] = pd.to_datetime(
        frame["date"], errors="coerce", format="mixed", utc=True
    ).dt.tz_localize(None)
    frame["price"] = pd.to_numeric(frame["price"], errors="coerce").astype(float)
    valid = (
        frame["date"].notna()
        & np.isfinite(frame["price"])
        & (frame["price"] >= 0)
    )
    skipped = len(raw) - int(valid.sum())
    if skipped:
        logger.debug(f"Skipped {skipped} incomplete or malformed price rows")
    frame = frame[valid].sort_values("date", kind="mergesort")

    records: dict[str, list[PriceRecord]] = {}
    for symbol, group in frame.groupby("symbol", sort=True):
        records[str(symbol)] = [
            PriceRecord(date=d, price=float(p))
            for d, p in zip(group["date"], group["price"])
        ]
    return records


def get_historical_data(
    instruments: Iterable[Instrument],
    source: str | Path | IO[str] | None = None,
) -> dict[str, list[float]]:
    """Return daily returns for every requested instrument, keyed by symbol.

    Every symbol gets an entry. A symbol absent from the source, or with
    fewer than two valid observations, maps to an empty list (`NO_DATA`).
    """
    if source is None:
        source = get_settings().data_path
    all_prices = load_price_records(source)

    returns_data: dict[str, list[float]] = {}
    for inst in instruments:
        history = all_prices.get(inst.symbol)
        if history and len(history) > 1:
            returns_data[inst.symbol] = daily_returns([r.price for r in history])
        else:
            logger.debug(f"No usable price history for {inst.symbol}")
            returns_data[inst.symbol] = list(NO_DATA)
    return returns_data


def coverage_table(records: dict[str, list[PriceRecord]]) -> pd.DataFrame:
    """Return a table with coverage info per symbol."""
    rows: list[dict[str, object]] = []
    for symbol, history in records.items():
        rows.append(
            {
                "Symbol": symbol,
                "Start": history[0].date if history else None,
                "End": history[-1].date if history else None,
                "Observations": len(history),
            }
        )
    return pd.DataFrame(rows, columns=["Symbol", "Start", "End", "Observations"])


def _normalize_close(df: pd.DataFrame | pd.Series, tickers: list[str]) -> pd.DataFrame:
    """Ensure we return a DataFrame with columns as tickers containing close values."""
    match df:
        case pd.Series():
            return df.to_frame(name=tickers[0])
        case pd.DataFrame() if df.columns.nlevels == 1:
            if "Close" in df.columns and len(tickers) == 1:
                return df[["Close"]].rename(columns={"Close": tickers[0]})
            return df
        case pd.DataFrame():
            for level in ("Adj Close", "Close"):
                if level in df.columns.get_level_values(0):
                    close = df[level].copy()
                    close.columns.name = None
                    return close
            raise ValueError(
                "Expected 'Adj Close' or 'Close' in yfinance download result"
            )
        case _:
            raise TypeError("Expected a pandas Series or DataFrame")


def download_price_history(
    tickers: Iterable[str],
    dest: str | Path | IO[str],
    start: str | pd.Timestamp | None = None,
    end: str | pd.Timestamp | None = None,
    progress: bool = False,
) -> pd.DataFrame:
    """Fetch closing prices with yfinance and write them as `date,symbol,price` rows.

    Parameters
    ----------
    tickers: iterable of str
            Ticker symbols resolvable by yfinance.
    dest: path or text buffer
            Where the CSV is written, in the format `load_price_records` reads.
    start, end: optional
            Date range for the fetch. If omitted, yfinance defaults are used.

    Returns
    -------
    DataFrame
            The long-format rows that were written.
    """
    unique: list[str] = sorted(
        {normalize_symbol(t) for t in tickers if t and str(t).strip()}
    )
    long = pd.DataFrame(columns=COLUMNS)
    if unique:
        data = yf.download(
            tickers=unique,
            start=start,
            end=end,
            progress=progress,
            auto_adjust=False,
            actions=False,
            group_by="column",
        )
        if data is not None and len(data) > 0:
            close = _normalize_close(data, unique)
            close = close[[t for t in unique if t in close.columns]]
            close.index = pd.to_datetime(close.index)
            close = close.replace([np.inf, -np.inf], np.nan)
            stacked = close.stack().dropna()
            if not stacked.empty:
                stacked = stacked.reset_index()
                stacked.columns = COLUMNS
                stacked["date"] = stacked["date"].dt.strftime("%Y-%m-%d")
                long = stacked.sort_values(["date", "symbol"], kind="mergesort").reset_index(drop=True)
        else:
            logger.warning(f"yfinance returned no data for {unique}")

    long.to_csv(dest, index=False)
    logger.info(f"Wrote {len(long)} price rows for {len(unique)} tickers")
    return long
