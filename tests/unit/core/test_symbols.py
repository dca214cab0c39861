"""Tests for papertrader.core.symbols."""

from __future__ import annotations

import pytest

from papertrader.core.exceptions import ValidationError
from papertrader.core.symbols import normalize_market, to_market, to_symbol


class TestConversion:
    def test_to_market(self) -> None:
        assert to_market("btc") == "KRW-BTC"
        assert to_market("ETH", quote="BTC") == "BTC-ETH"

    def test_to_symbol(self) -> None:
        assert to_symbol("KRW-BTC") == "BTC"
        assert to_symbol(" sol ") == "SOL"

    @pytest.mark.parametrize("raw", ["BTC", "btc", "krw-btc", " KRW-BTC "])
    def test_normalize_market(self, raw: str) -> None:
        assert normalize_market(raw) == "KRW-BTC"

    @pytest.mark.parametrize("raw", ["", "   ", "KRW-", "-BTC", "BT C", "KRW-B$C"])
    def test_normalize_rejects_malformed(self, raw: str) -> None:
        with pytest.raises(ValidationError):
            normalize_market(raw)

    def test_normalize_rejects_non_string(self) -> None:
        with pytest.raises(ValidationError):
            normalize_market(None)  # type: ignore[arg-type]
