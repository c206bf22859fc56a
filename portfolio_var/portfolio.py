from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence

import pandas as pd
from loguru import logger


class DuplicateInstrumentError(ValueError):
    """Raised when adding a symbol that is already in the portfolio."""


def normalize_symbol(symbol: str) -> str:
    """Return the ticker stripped and upper-cased."""
    return str(symbol).strip().upper()


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Instrument:
    """Represents a single instrument in the portfolio selection.

    Attributes
    ----------
    symbol: str
            Market ticker, unique within a portfolio (e.g., "AAPL").
    name: str
            Friendly display name.
    quantity: float
            Currency exposure held in the instrument. Weights are
            quantities normalized by gross exposure.
    included: bool
            Whether the instrument takes part in the VaR calculation.
    id: str
            Unique identifier, generated when not supplied.
    """

    symbol: str
    name: str = ""
    quantity: float = 1.0
    included: bool = True
    id: str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        object.__setattr__(self, "symbol", normalize_symbol(self.symbol))
        object.__setattr__(self, "quantity", float(self.quantity))


class Portfolio:
    """The editable instrument list feeding the VaR pipeline.

    Parameters
    ----------
    instruments:
            Initial `Instrument` values. Symbols must be unique.
    """

    def __init__(self, instruments: Optional[Sequence[Instrument]] = None):
        self.instruments: List[Instrument] = []
        for inst in instruments or ():
            self._append(inst)

    def __len__(self) -> int:
        return len(self.instruments)

    def __iter__(self):
        return iter(self.instruments)

    def _append(self, instrument: Instrument) -> Instrument:
        if self.find(instrument.symbol) is not None:
            raise DuplicateInstrumentError(
                f"An instrument with the symbol {instrument.symbol} is already in the portfolio."
            )
        self.instruments.append(instrument)
        return instrument

    def find(self, symbol: str) -> Optional[Instrument]:
        """Return the instrument with this symbol, if present."""
        key = normalize_symbol(symbol)
        for inst in self.instruments:
            if inst.symbol == key:
                return inst
        return None

    def add(self, symbol: str, name: str = "", quantity: float = 1.0) -> Instrument:
        """Add a new included instrument; duplicate symbols are rejected."""
        inst = self._append(Instrument(symbol=symbol, name=name, quantity=quantity))
        logger.debug(f"Added instrument {inst.symbol} ({inst.id})")
        return inst

    def remove(self, instrument_id: str) -> None:
        """Remove the instrument with this id. Unknown ids are ignored."""
        self.instruments = [i for i in self.instruments if i.id != instrument_id]

    def toggle(self, instrument_id: str) -> Instrument:
        """Flip the included flag of an instrument and return the new value."""
        for pos, inst in enumerate(self.instruments):
            if inst.id == instrument_id:
                updated = replace(inst, included=not inst.included)
                self.instruments[pos] = updated
                return updated
        raise KeyError(instrument_id)

    def included(self) -> List[Instrument]:
        """Return the instruments flagged for calculation."""
        return [i for i in self.instruments if i.included]

    def symbols(self) -> List[str]:
        """Return symbols for all instruments."""
        return [i.symbol for i in self.instruments]

    def exposures(self) -> pd.Series:
        """Return a Series of quantities indexed by symbol for included instruments."""
        return pd.Series({i.symbol: i.quantity for i in self.included()}, dtype=float)

    def names_map(self) -> Dict[str, str]:
        """Map symbol to friendly name, falling back to the symbol."""
        return {i.symbol: i.name or i.symbol for i in self.instruments}

    def holdings_table(self) -> pd.DataFrame:
        """Return a holdings summary table with weights over included instruments.

        Weights are normalized by gross exposure, matching the VaR engine.
        """
        rows = []
        for i in self.instruments:
            rows.append(
                {
                    "Symbol": i.symbol,
                    "Name": i.name,
                    "Quantity": i.quantity,
                    "Included": i.included,
                }
            )
        df = pd.DataFrame(rows, columns=["Symbol", "Name", "Quantity", "Included"])
        active = df["Quantity"].where(df["Included"], 0.0)
        total = float(active.abs().sum()) if not df.empty else 0.0
        df["Weight"] = active / total if total else 0.0
        return df
