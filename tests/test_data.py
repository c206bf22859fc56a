"""
Unit tests for the price CSV provider and the yfinance download helper
Run with: pytest tests/test_data.py -v
"""

import io

import numpy as np
import pandas as pd
import pytest

from portfolio_var import data
from portfolio_var.data import (
    coverage_table,
    download_price_history,
    get_historical_data,
    load_price_records,
)
from portfolio_var.portfolio import Instrument


def _instruments(*symbols):
    return [Instrument(symbol=s) for s in symbols]


class TestLoadPriceRecords:
    """Tests for CSV parsing"""

    def test_groups_and_sorts_by_date(self, sample_csv):
        records = load_price_records(sample_csv)
        assert set(records) == {"AAA", "BBB", "CCC"}
        assert [r.price for r in records["AAA"]] == [100.0, 105.0, 98.7]
        dates = [r.date for r in records["AAA"]]
        assert dates == sorted(dates)

    def test_skips_incomplete_and_malformed_rows(self, write_csv, log_messages):
        path = write_csv(
            [
                "2024-01-01,AAA,100",
                "2024-01-02,AAA,",
                ",AAA,101",
                "2024-01-03,,102",
                "2024-01-04,AAA",
                "2024-01-05,AAA,abc",
                "not-a-date,AAA,103",
                "2024-01-06,AAA,-5",
                "",
                "2024-01-07,AAA,104",
            ]
        )
        records = load_price_records(path)
        assert [r.price for r in records["AAA"]] == [100.0, 104.0]
        assert any("Skipped" in m for m in log_messages)

    def test_offset_dated_row_among_naive_rows(self, write_csv):
        path = write_csv(
            ["2024-01-01T00:00:00+01:00,A,100", "2024-01-02,A,105", "2024-01-03,A,98.7"]
        )
        records = load_price_records(path)
        assert [r.price for r in records["A"]] == [100.0, 105.0, 98.7]
        assert records["A"][0].date == pd.Timestamp("2023-12-31 23:00")
        assert records["A"][0].date.tzinfo is None

    @pytest.mark.parametrize("bad", ["inf", "-inf", "1e400", "nan"])
    def test_non_finite_prices_are_dropped(self, write_csv, bad):
        path = write_csv(["2024-01-01,A,100", f"2024-01-02,A,{bad}", "2024-01-03,A,101"])
        assert [r.price for r in load_price_records(path)["A"]] == [100.0, 101.0]

    def test_extra_fields_are_ignored(self, write_csv):
        path = write_csv(["2024-01-01,A,100", "2024-01-02,A,105,x", "2024-01-03,A,98.7,,"])
        assert [r.price for r in load_price_records(path)["A"]] == [100.0, 105.0, 98.7]

    def test_undecodable_bytes_only_lose_their_row(self, tmp_path):
        path = tmp_path / "prices.csv"
        path.write_bytes(
            b"date,symbol,price\n"
            b"2024-01-01,A,100\n"
            b"2024-01-02,A,105\n"
            b"2024-01-03,\xff\xfeB,1\n"
        )
        assert [r.price for r in load_price_records(path)["A"]] == [100.0, 105.0]
        assert get_historical_data(_instruments("A"), path)["A"] == pytest.approx([0.05])

    def test_na_is_a_ticker(self, write_csv):
        path = write_csv(["2024-01-01,NA,10", "2024-01-02,NA,11"])
        assert [r.price for r in load_price_records(path)["NA"]] == [10.0, 11.0]

    def test_reads_text_buffer(self):
        buffer = io.StringIO("date,symbol,price\n2024-01-01,AAA,1\n2024-01-02,AAA,2\n")
        assert len(load_price_records(buffer)["AAA"]) == 2

    def test_missing_file_gives_empty_mapping(self, tmp_path, log_messages):
        assert load_price_records(tmp_path / "missing.csv") == {}
        assert any("could not be read" in m for m in log_messages)

    def test_empty_file_gives_empty_mapping(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("", encoding="utf-8")
        assert load_price_records(path) == {}

    def test_header_only(self, write_csv):
        assert load_price_records(write_csv([])) == {}


class TestGetHistoricalData:
    """Tests for the symbol -> return series contract"""

    def test_end_to_end_returns(self, write_csv):
        path = write_csv(["2024-01-01,A,100", "2024-01-02,A,105", "2024-01-03,A,98.7"])
        returns = get_historical_data(_instruments("A"), path)
        assert returns["A"] == pytest.approx([0.05, -0.06])

    def test_reverse_order_gives_identical_series(self, write_csv):
        rows = [f"2024-01-{d:02d},AAA,{p}" for d, p in zip(range(1, 8), [10, 11, 10.5, 12, 0, 3, 4])]
        forward = get_historical_data(_instruments("AAA"), write_csv(rows, name="fwd.csv"))
        backward = get_historical_data(
            _instruments("AAA"), write_csv(list(reversed(rows)), name="rev.csv")
        )
        assert forward == backward
        assert len(forward["AAA"]) == 6

    def test_infinite_price_never_reaches_returns(self, write_csv):
        path = write_csv(["2024-01-01,A,100", "2024-01-02,A,inf", "2024-01-03,A,101"])
        returns = get_historical_data(_instruments("A"), path)
        assert returns["A"] == pytest.approx([0.01])

    def test_mixed_timezone_dates_do_not_raise(self, write_csv):
        path = write_csv(
            ["2024-01-01T00:00:00+01:00,A,100", "2024-01-02,A,105", "2024-01-03,A,98.7"]
        )
        assert get_historical_data(_instruments("A"), path)["A"] == pytest.approx([0.05, -0.06])

    def test_zero_price_yields_zero_return(self, write_csv):
        path = write_csv(["2024-01-01,Z,0", "2024-01-02,Z,5", "2024-01-03,Z,6"])
        assert get_historical_data(_instruments("Z"), path)["Z"] == pytest.approx([0.0, 0.2])

    def test_missing_and_short_symbols_map_to_empty(self, sample_csv):
        returns = get_historical_data(_instruments("AAA", "CCC", "ZZZ"), sample_csv)
        assert set(returns) == {"AAA", "CCC", "ZZZ"}
        assert returns["CCC"] == []
        assert returns["ZZZ"] == []

    def test_unreadable_source_maps_every_symbol_to_empty(self, tmp_path):
        returns = get_historical_data(_instruments("AAA", "BBB"), tmp_path / "nope.csv")
        assert returns == {"AAA": [], "BBB": []}

    def test_empty_series_are_not_shared(self, tmp_path):
        returns = get_historical_data(_instruments("AAA", "BBB"), tmp_path / "nope.csv")
        returns["AAA"].append(0.1)
        assert returns["BBB"] == []

    def test_defaults_to_configured_path(self, write_csv, monkeypatch):
        path = write_csv(["2024-01-01,AAA,1", "2024-01-02,AAA,2"])
        monkeypatch.setenv("VAR_DATA_PATH", str(path))
        data.get_settings.cache_clear()
        assert get_historical_data(_instruments("AAA")) == {"AAA": [1.0]}


class TestCoverageTable:
    def test_coverage(self, sample_csv):
        table = coverage_table(load_price_records(sample_csv)).set_index("Symbol")
        assert table.loc["AAA", "Observations"] == 3
        assert table.loc["CCC", "Observations"] == 1
        assert table.loc["AAA", "Start"] == pd.Timestamp("2024-01-01")
        assert table.loc["AAA", "End"] == pd.Timestamp("2024-01-03")


class TestDownloadPriceHistory:
    """Tests for the yfinance seeding helper (network is mocked)"""

    @pytest.fixture
    def fake_download(self, monkeypatch):
        calls = []
        index = pd.DatetimeIndex(["2024-01-02", "2024-01-03"], name="Date")
        columns = pd.MultiIndex.from_product([["Adj Close", "Close"], ["AAA", "BBB"]])
        frame = pd.DataFrame(
            [[10.0, 20.0, 10.5, 20.5], [11.0, np.nan, 11.5, np.nan]],
            index=index,
            columns=columns,
        )

        def _download(**kwargs):
            calls.append(kwargs)
            return frame

        monkeypatch.setattr(data.yf, "download", _download)
        return calls

    def test_writes_long_format(self, tmp_path, fake_download):
        dest = tmp_path / "prices.csv"
        long = download_price_history(["aaa", "BBB", "AAA"], dest)
        assert fake_download[0]["tickers"] == ["AAA", "BBB"]
        assert list(long.columns) == ["date", "symbol", "price"]
        assert len(long) == 3
        records = load_price_records(dest)
        assert [r.price for r in records["AAA"]] == [10.0, 11.0]
        assert [r.price for r in records["BBB"]] == [20.0]

    def test_no_tickers_writes_header_only(self, tmp_path, fake_download):
        dest = tmp_path / "prices.csv"
        long = download_price_history([], dest)
        assert long.empty
        assert fake_download == []
        assert dest.read_text(encoding="utf-8").strip() == "date,symbol,price"
