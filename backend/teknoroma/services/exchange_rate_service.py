# Overview: TCMB exchange-rate client with TTL cache and static fallback rates.

"""
Exchange rates from the Central Bank of the Republic of Türkiye (TCMB).

Feed: https://www.tcmb.gov.tr/kurlar/today.xml, historical days under
/kurlar/YYYYMM/DDMMYYYY.xml. Each <Currency Kod="USD"> element carries a
<ForexBuying> value with either '.' or ',' as decimal separator and a <Unit>
(e.g. 100 for JPY).

Today's table is cached for EXCHANGE_RATE_TODAY_TTL seconds, historical
tables for EXCHANGE_RATE_HISTORY_TTL. Any network, HTTP or parse failure is
logged and answered with FALLBACK_RATES; fallbacks are not cached so the
next call tries the feed again.
"""

from __future__ import annotations

import logging
import threading
import time
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

import httpx

from ..errors import ValidationError
from ..time_utils import utcnow

logger = logging.getLogger(__name__)

BASE_CURRENCY = "TRY"
TRACKED_CURRENCIES = ("USD", "EUR", "GBP")

FALLBACK_RATES = {
    "USD": Decimal("34.50"),
    "EUR": Decimal("37.20"),
    "GBP": Decimal("43.50"),
}

CENT = Decimal("0.01")
RATE_PLACES = Decimal("0.0001")

DEFAULT_TODAY_URL = "https://www.tcmb.gov.tr/kurlar/today.xml"
DEFAULT_HISTORY_URL = "https://www.tcmb.gov.tr/kurlar/{yyyymm}/{ddmmyyyy}.xml"


class ExchangeRateFeedError(Exception):
    """The TCMB feed could not be fetched or parsed."""


@dataclass(frozen=True)
class RateTable:
    rates: dict
    source: str  # "tcmb" or "fallback"
    rate_date: date | None = None

    def to_dict(self) -> dict:
        return {
            "base": BASE_CURRENCY,
            "date": self.rate_date.isoformat() if self.rate_date else None,
            "source": self.source,
            "rates": {code: str(rate) for code, rate in sorted(self.rates.items())},
        }


def normalize_currency(currency) -> str:
    code = getattr(currency, "value", currency)
    code = str(code or "").strip().upper()
    if code == "TL":
        code = BASE_CURRENCY
    if code != BASE_CURRENCY and code not in TRACKED_CURRENCIES:
        allowed = ", ".join((BASE_CURRENCY,) + TRACKED_CURRENCIES)
        raise ValidationError(f"Unsupported currency: {currency!r}. Supported: {allowed}")
    return code


def parse_tcmb_xml(content: bytes | str) -> dict[str, Decimal]:
    """Parse a TCMB kurlar document into {code: TRY per 1 unit}."""
    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        raise ExchangeRateFeedError(f"Malformed TCMB XML: {exc}") from exc

    rates: dict[str, Decimal] = {}
    for node in root.iter("Currency"):
        code = (node.get("Kod") or node.get("CurrencyCode") or "").strip().upper()
        raw = (node.findtext("ForexBuying") or "").strip()
        if not code or not raw:
            continue
        try:
            rate = Decimal(raw.replace(",", "."))
            unit = Decimal((node.findtext("Unit") or "1").strip() or "1")
        except InvalidOperation:
            logger.warning("Skipping unparsable TCMB rate for %s: %r", code, raw)
            continue
        if rate <= 0 or unit <= 0:
            continue
        rates[code] = (rate / unit).quantize(RATE_PLACES, rounding=ROUND_HALF_UP)

    if not rates:
        raise ExchangeRateFeedError("TCMB XML contained no ForexBuying rates")
    return rates


class ExchangeRateService:
    """
    Flask-extension style service; call init_app() to pick up config.

    transport lets tests plug in httpx.MockTransport; clock returns seconds
    for cache expiry (time.monotonic by default).
    """

    def __init__(self, app=None, *, transport: httpx.BaseTransport | None = None, clock=None):
        self.today_url = DEFAULT_TODAY_URL
        self.history_url = DEFAULT_HISTORY_URL
        self.timeout = 10.0
        self.today_ttl = 3600
        self.history_ttl = 7 * 24 * 3600
        self._transport = transport
        self._clock = clock or time.monotonic
        self._lock = threading.Lock()
        self._cache: dict[str, tuple[float, RateTable]] = {}
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        self.today_url = app.config.get("EXCHANGE_RATE_URL", DEFAULT_TODAY_URL)
        self.history_url = app.config.get("EXCHANGE_RATE_HISTORY_URL", DEFAULT_HISTORY_URL)
        self.timeout = float(app.config.get("EXCHANGE_RATE_TIMEOUT", 10.0))
        self.today_ttl = int(app.config.get("EXCHANGE_RATE_TODAY_TTL", 3600))
        self.history_ttl = int(app.config.get("EXCHANGE_RATE_HISTORY_TTL", 7 * 24 * 3600))
        transport = app.config.get("EXCHANGE_RATE_TRANSPORT")
        if transport is not None:
            self._transport = transport
        self.clear_cache()
        app.extensions["exchange_rates"] = self

    # ------------------------------------------------------------------
    # Feed access
    # ------------------------------------------------------------------

    def _fetch(self, url: str) -> dict[str, Decimal]:
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ExchangeRateFeedError(f"TCMB request failed: {exc}") from exc
        return parse_tcmb_xml(response.content)

    def _history_url_for(self, day: date) -> str:
        return self.history_url.format(
            yyyymm=day.strftime("%Y%m"),
            ddmmyyyy=day.strftime("%d%m%Y"),
        )

    def get_rate_table(self, on_date: date | None = None) -> RateTable:
        """Rates for today (on_date None or today) or a historical day."""
        today = utcnow().date()
        historical = on_date is not None and on_date != today
        if historical and on_date > today:
            raise ValidationError("Exchange rates are not available for future dates")

        key = on_date.isoformat() if historical else "today"
        now = self._clock()
        with self._lock:
            cached = self._cache.get(key)
            if cached and cached[0] > now:
                return cached[1]

        url = self._history_url_for(on_date) if historical else self.today_url
        try:
            rates = self._fetch(url)
        except ExchangeRateFeedError as exc:
            logger.warning("Using fallback exchange rates (%s): %s", key, exc)
            return RateTable(rates=dict(FALLBACK_RATES), source="fallback", rate_date=on_date or today)

        for code, fallback in FALLBACK_RATES.items():
            if code not in rates:
                logger.warning("TCMB feed has no %s rate, using fallback %s", code, fallback)
                rates[code] = fallback

        table = RateTable(rates=rates, source="tcmb", rate_date=on_date or today)
        ttl = self.history_ttl if historical else self.today_ttl
        with self._lock:
            self._cache[key] = (now + ttl, table)
        return table

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_current_rate(self, currency) -> Decimal:
        code = normalize_currency(currency)
        if code == BASE_CURRENCY:
            return Decimal("1")
        return self.get_rate_table().rates[code]

    def get_historical_rate(self, currency, on_date: date) -> Decimal:
        code = normalize_currency(currency)
        if code == BASE_CURRENCY:
            return Decimal("1")
        return self.get_rate_table(on_date).rates[code]

    def get_all_current_rates(self) -> dict[str, Decimal]:
        table = self.get_rate_table()
        rates = {code: table.rates[code] for code in TRACKED_CURRENCIES}
        rates[BASE_CURRENCY] = Decimal("1")
        return rates

    def convert_to_try(self, amount, currency, on_date: date | None = None) -> Decimal:
        """amount in currency -> TRY, rounded half-up to 2 places."""
        rate = self._rate(currency, on_date)
        return (Decimal(str(amount)) * rate).quantize(CENT, rounding=ROUND_HALF_UP)

    def convert_from_try(self, amount, currency, on_date: date | None = None) -> Decimal:
        """TRY amount -> currency, rounded half-up to 2 places."""
        rate = self._rate(currency, on_date)
        return (Decimal(str(amount)) / rate).quantize(CENT, rounding=ROUND_HALF_UP)

    def _rate(self, currency, on_date: date | None) -> Decimal:
        if on_date is None:
            return self.get_current_rate(currency)
        return self.get_historical_rate(currency, on_date)


exchange_rates = ExchangeRateService()
