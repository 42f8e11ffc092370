"""Currency conversion backed by a fiat exchange rate API and Coin Gecko."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Mapping

import requests

from tdexa.coingecko import CoinGeckoService
from tdexa.ratelimit import RateLimiter

HTTP_TIMEOUT = 10.0
EXCHANGE_RATE_API_URL = "https://open.er-api.com/v6/latest"
COIN_GECKO_BTC_ID = "bitcoin"
BTC_SYMBOL = "btc"
LBTC_SYMBOL = "lbtc"

DEFAULT_COIN_GECKO_REFRESH_INTERVAL = 5 * 60.0
DEFAULT_COIN_GECKO_NUM_OF_CALLS_PER_MIN = 50
DEFAULT_COIN_GECKO_WAIT_DURATION = HTTP_TIMEOUT

_FIAT_CACHE_TTL = 24 * 60 * 60.0


class CoinGeckoWaitDurationError(Exception):
    """The rate limiter did not allow a Coin Gecko call within the wait duration."""

    def __init__(self, message: str = "coin gecko wait duration exceeded") -> None:
        super().__init__(message)


class CurrencyNotFoundError(Exception):
    """No rate is known for the requested currency."""

    def __init__(self, message: str = "currency not found") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class RateResponse:
    """Fiat rates for one base currency."""

    base: str
    date: str
    rates: dict[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class _CachedRate:
    rate: Decimal
    refreshed_at: float


def _decimal_from_float(value: float) -> Decimal:
    return Decimal(repr(float(value)))


def fetch_rates(session: requests.Session, base: str) -> RateResponse:
    """Fetch the latest fiat rates for ``base``; symbols come back lower case."""
    url = f"{EXCHANGE_RATE_API_URL}/{base.upper()}"
    resp = session.get(url, timeout=HTTP_TIMEOUT)
    if resp.status_code != 200:
        raise ValueError(f"unexpected status code: {resp.status_code}, error: {resp.text}")

    body = resp.json()
    if not isinstance(body, dict):
        raise ValueError("unexpected response body")
    base_code = body.get("base_code")
    if not isinstance(base_code, str):
        raise ValueError("base code not found")
    date = body.get("time_last_update_utc")
    if not isinstance(date, str):
        raise ValueError("date not found")
    raw_rates = body.get("rates")
    if not isinstance(raw_rates, dict):
        raise ValueError("rates list not found")

    rates: dict[str, Decimal] = {}
    for symbol, rate in raw_rates.items():
        if isinstance(rate, bool) or not isinstance(rate, (int, float)):
            raise ValueError(f"invalid rate for {symbol}: {rate!r}")
        rates[symbol.lower()] = _decimal_from_float(rate)

    return RateResponse(base=base_code.lower(), date=date, rates=rates)


def fetch_symbols(session: requests.Session) -> frozenset[str]:
    """Return the lower-case fiat symbols the exchange rate API supports."""
    return frozenset(symbol.lower() for symbol in fetch_rates(session, "usd").rates)


class ExchangeRateClient:
    """Converts fiat and crypto currencies, caching what it fetches."""

    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        coin_gecko: CoinGeckoService | None = None,
        refresh_interval: float = DEFAULT_COIN_GECKO_REFRESH_INTERVAL,
        wait_duration: float = DEFAULT_COIN_GECKO_WAIT_DURATION,
        asset_currency_symbol_pair: Mapping[str, str] | None = None,
        symbols: frozenset[str] | set[str] | None = None,
        rate_limiter: RateLimiter | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.session = session or requests.Session()
        self.coin_gecko = coin_gecko or CoinGeckoService(self.session)
        self.refresh_interval = refresh_interval
        self.wait_duration = wait_duration
        self.asset_currency_symbol_pair = dict(asset_currency_symbol_pair or {})
        self.symbols = frozenset(s.lower() for s in (symbols or ()))
        self.rate_limiter = rate_limiter or RateLimiter(
            60.0, DEFAULT_COIN_GECKO_NUM_OF_CALLS_PER_MIN
        )
        self._clock = clock

        self._exchange_rates: dict[str, dict[str, _CachedRate]] = {}
        self._exchange_rates_lock = threading.Lock()
        self._coins: dict[str, str] = {}
        self._coins_refreshed_at = 0.0
        self._coins_lock = threading.Lock()
        self._fiat_cache: dict[str, tuple[dict[str, Decimal], float]] = {}
        self._fiat_lock = threading.Lock()

    def convert_currency(self, source: str, target: str) -> Decimal:
        """Return how many units of ``target`` one unit of ``source`` is worth."""
        source = source.lower()
        target = target.lower()
        if source in (BTC_SYMBOL, LBTC_SYMBOL):
            source = COIN_GECKO_BTC_ID

        if source == target:
            return Decimal(1)

        if self.is_fiat_symbol_supported(source):
            return self.fiat_to_fiat_rate(source, target)

        try:
            is_crypto = self.is_crypto_symbol(source, self.wait_duration)
        except (CoinGeckoWaitDurationError, requests.RequestException, ValueError):
            is_crypto = False
        if not is_crypto:
            raise CurrencyNotFoundError(
                f"{source} is not a supported fiat nor crypto symbol"
            )

        return self.crypto_to_fiat_rate(source, target)

    def is_fiat_symbol_supported(self, symbol: str) -> bool:
        """Tell whether ``symbol`` is a known fiat currency."""
        return symbol.lower() in self.symbols

    def get_asset_currency(self, asset_id: str) -> str:
        """Return the currency configured for ``asset_id``."""
        try:
            return self.asset_currency_symbol_pair[asset_id]
        except KeyError:
            raise LookupError(f"asset {asset_id} not found") from None

    def is_crypto_symbol(self, symbol: str, wait_duration: float | None = None) -> bool:
        """Tell whether ``symbol`` is a Coin Gecko coin id, refreshing the list if stale."""
        if wait_duration is None:
            wait_duration = self.wait_duration
        symbol = symbol.lower()

        if not self._coins:
            self._reload_coin_list(wait_duration)

        found = symbol in self._coins
        stale = self._coins_refreshed_at + self.refresh_interval < self._clock()
        if stale or not found:
            self._reload_coin_list(wait_duration)
            return symbol in self._coins
        return found

    def crypto_to_fiat_rate(self, source: str, target: str) -> Decimal:
        """Return the price of one ``source`` coin in ``target``, cached for the refresh interval."""
        quote = source.lower()
        base = target.lower()

        cached = self._exchange_rates.get(quote, {}).get(base)
        if cached is None or cached.refreshed_at + self.refresh_interval < self._clock():
            self._reload_quote_base_pair(self.wait_duration, quote, base)
            return self._exchange_rates[quote][base].rate
        return cached.rate

    def fiat_to_fiat_rate(self, source: str, target: str) -> Decimal:
        """Return the fiat rate from ``source`` to ``target``, refreshed once a day.

        A missing target gives zero; a failed refresh falls back to the old rates.
        """
        with self._fiat_lock:
            cached = self._fiat_cache.get(source)
            now = self._clock()
            if cached is None or now - cached[1] >= _FIAT_CACHE_TTL:
                try:
                    data = fetch_rates(self.session, source)
                except (requests.RequestException, ValueError):
                    if cached is None:
                        raise
                    return cached[0].get(target, Decimal(0))
                self._fiat_cache[source] = (data.rates, self._clock())
            return self._fiat_cache[source][0].get(target, Decimal(0))

    def _acquire(self, wait_duration: float) -> None:
        if self.rate_limiter.allow():
            return
        try:
            self.rate_limiter.wait(wait_duration)
        except (TimeoutError, ValueError):
            raise CoinGeckoWaitDurationError() from None

    def _reload_coin_list(self, wait_duration: float) -> None:
        with self._coins_lock:
            self._acquire(wait_duration)
            coins = self.coin_gecko.coins_list()
            if coins is None:
                raise ValueError("coin list returned empty list")
            self._coins = {coin.id: coin.symbol for coin in coins}
            self._coins_refreshed_at = self._clock()

    def _reload_quote_base_pair(self, wait_duration: float, quote: str, base: str) -> None:
        with self._exchange_rates_lock:
            self._acquire(wait_duration)
            prices = self.coin_gecko.simple_price([quote], [base])
            value = float((prices or {}).get(quote, {}).get(base, 0.0))
            if value == 0:
                raise CurrencyNotFoundError()
            self._exchange_rates.setdefault(quote, {})[base] = _CachedRate(
                rate=_decimal_from_float(value), refreshed_at=self._clock()
            )


def new_exchange_rate_client(
    asset_currency_symbol_pair: Mapping[str, str] | None = None,
    coin_gecko_num_of_calls_per_min: int | None = None,
    coin_gecko_refresh_interval: float | None = None,
    coin_gecko_wait_duration: float | None = None,
) -> ExchangeRateClient:
    """Build a client, loading the supported fiat symbols up front."""
    session = requests.Session()
    calls_per_min = (
        DEFAULT_COIN_GECKO_NUM_OF_CALLS_PER_MIN
        if coin_gecko_num_of_calls_per_min is None
        else coin_gecko_num_of_calls_per_min
    )
    refresh_interval = (
        DEFAULT_COIN_GECKO_REFRESH_INTERVAL
        if coin_gecko_refresh_interval is None
        else coin_gecko_refresh_interval
    )
    wait_duration = (
        DEFAULT_COIN_GECKO_WAIT_DURATION
        if coin_gecko_wait_duration is None
        else coin_gecko_wait_duration
    )

    try:
        symbols = fetch_symbols(session)
    except (requests.RequestException, ValueError) as exc:
        raise RuntimeError(f"failed to fetch symbols: {exc}") from exc

    return ExchangeRateClient(
        session=session,
        coin_gecko=CoinGeckoService(session, timeout=HTTP_TIMEOUT),
        refresh_interval=refresh_interval,
        wait_duration=wait_duration,
        asset_currency_symbol_pair=asset_currency_symbol_pair,
        symbols=symbols,
        rate_limiter=RateLimiter(60.0, calls_per_min),
    )