"""
TCMB exchange-rate client: parsing, caching and fallback.
"""

from datetime import date, timedelta
from decimal import Decimal

import httpx
import pytest

from teknoroma.errors import ValidationError
from teknoroma.services.exchange_rate_service import (
    FALLBACK_RATES,
    ExchangeRateFeedError,
    ExchangeRateService,
    exchange_rates,
    normalize_currency,
    parse_tcmb_xml,
)
from teknoroma.time_utils import utcnow

from conftest import TCMB_XML


# =============================================================================
# PARSING
# =============================================================================


class TestParse:

    def test_rates_per_unit(self):
        rates = parse_tcmb_xml(TCMB_XML)
        assert rates["USD"] == Decimal("34.5000")
        assert rates["EUR"] == Decimal("37.2000")
        # Comma decimal separator and Unit=100
        assert rates["JPY"] == Decimal("0.2215")

    def test_malformed_xml(self):
        with pytest.raises(ExchangeRateFeedError):
            parse_tcmb_xml("<Tarih_Date><Currency")

    def test_no_rates(self):
        with pytest.raises(ExchangeRateFeedError):
            parse_tcmb_xml("<Tarih_Date></Tarih_Date>")

    @pytest.mark.parametrize("raw,expected", [("usd", "USD"), (" TL ", "TRY"), ("TRY", "TRY")])
    def test_normalize_currency(self, raw, expected):
        assert normalize_currency(raw) == expected

    def test_unsupported_currency(self):
        with pytest.raises(ValidationError):
            normalize_currency("XYZ")


# =============================================================================
# FEED ACCESS
# =============================================================================


class TestRates:

    def test_current_rate_from_feed(self, app, rate_feed):
        assert exchange_rates.get_current_rate("USD") == Decimal("34.5000")
        assert rate_feed.requests[0].endswith("/kurlar/today.xml")

    def test_today_table_is_cached(self, app, rate_feed):
        exchange_rates.get_current_rate("USD")
        exchange_rates.get_current_rate("EUR")
        exchange_rates.get_all_current_rates()
        assert len(rate_feed.requests) == 1

    def test_try_needs_no_request(self, app, rate_feed):
        assert exchange_rates.get_current_rate("TRY") == Decimal("1")
        assert rate_feed.requests == []

    def test_all_current_rates(self, app):
        rates = exchange_rates.get_all_current_rates()
        assert set(rates) == {"TRY", "USD", "EUR", "GBP"}
        assert rates["TRY"] == Decimal("1")

    def test_http_error_falls_back_and_is_not_cached(self, app, rate_feed):
        rate_feed.status_code = 500

        table = exchange_rates.get_rate_table()
        assert table.source == "fallback"
        assert table.rates["USD"] == FALLBACK_RATES["USD"]

        exchange_rates.get_rate_table()
        assert len(rate_feed.requests) == 2

    def test_garbage_body_falls_back(self, app, rate_feed):
        rate_feed.body = "<html>maintenance</html>"
        assert exchange_rates.get_current_rate("EUR") == FALLBACK_RATES["EUR"]

    def test_missing_currency_filled_from_fallback(self, app, rate_feed):
        rate_feed.body = """<Tarih_Date>
          <Currency Kod="USD"><Unit>1</Unit><ForexBuying>35.0000</ForexBuying></Currency>
        </Tarih_Date>"""
        table = exchange_rates.get_rate_table()
        assert table.source == "tcmb"
        assert table.rates["USD"] == Decimal("35.0000")
        assert table.rates["GBP"] == FALLBACK_RATES["GBP"]

    def test_historical_url(self, app, rate_feed):
        rate = exchange_rates.get_historical_rate("GBP", date(2025, 1, 15))
        assert rate == Decimal("43.1000")
        assert rate_feed.requests[0].endswith("/kurlar/202501/15012025.xml")

    def test_future_date_rejected(self, app):
        with pytest.raises(ValidationError):
            exchange_rates.get_rate_table(utcnow().date() + timedelta(days=2))

    def test_conversions_round_half_up(self, app):
        assert exchange_rates.convert_to_try("100", "USD") == Decimal("3450.00")
        assert exchange_rates.convert_from_try("3450", "USD") == Decimal("100.00")
        # 0.015 USD * 34.5 = 0.5175 -> 0.52
        assert exchange_rates.convert_to_try("0.015", "USD") == Decimal("0.52")

    def test_table_to_dict(self, app):
        data = exchange_rates.get_rate_table().to_dict()
        assert data["base"] == "TRY"
        assert data["source"] == "tcmb"
        assert data["rates"]["USD"] == "34.5000"


class TestCacheExpiry:

    def test_today_ttl(self, rate_feed):
        clock = {"now": 0.0}
        service = ExchangeRateService(
            transport=httpx.MockTransport(rate_feed.handler),
            clock=lambda: clock["now"],
        )

        service.get_current_rate("USD")
        clock["now"] = 3599.0
        service.get_current_rate("USD")
        assert len(rate_feed.requests) == 1

        clock["now"] = 3601.0
        service.get_current_rate("USD")
        assert len(rate_feed.requests) == 2
