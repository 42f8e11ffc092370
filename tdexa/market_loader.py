"""Discover liquidity providers and load market balances and prices from them."""

from __future__ import annotations

import http.client
import json
import logging
import math
import socket
import ssl
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any
from urllib.parse import urlsplit

import requests

log = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30.0

_ONION = "onion"

_LIST_MARKETS_V2 = "{}/v2/markets"
_MARKET_BALANCE_V2 = "{}/v2/market/balance"
_MARKET_PRICE_V2 = "{}/v2/market/price"
_LIST_MARKETS_V1 = "{}/v1/markets"
_MARKET_BALANCE_V1 = "{}/v1/market/balance"
_MARKET_PRICE_V1 = "{}/v1/market/price"
_TRADE_PREVIEW_V1 = "{}/v1/trade/preview"

_DIVISION_PLACES = Decimal(1).scaleb(-16)
_PRICE_PLACES = Decimal(1).scaleb(-8)


class MarketLoaderError(Exception):
    """A provider or the registry could not be reached or gave a bad reply."""


@dataclass(frozen=True)
class Market:
    """A market offered by a liquidity provider."""

    url: str = ""
    quote_asset: str = ""
    base_asset: str = ""


@dataclass
class LiquidityProvider:
    """A provider listed in the registry, with the markets it offers."""

    name: str = ""
    endpoint: str = ""
    markets: list[Market] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> LiquidityProvider:
        """Build a provider from one registry entry."""
        if not isinstance(data, dict):
            raise MarketLoaderError(f"invalid liquidity provider entry: {data!r}")
        return cls(name=str(data.get("name", "")), endpoint=str(data.get("endpoint", "")))


@dataclass(frozen=True)
class Balance:
    """Amounts of base and quote asset held by a market."""

    base_balance: Decimal
    quote_balance: Decimal


@dataclass(frozen=True)
class Price:
    """Price of a market expressed both ways."""

    base_price: Decimal
    quote_price: Decimal


def _recv_exact(sock: socket.socket, size: int) -> bytes:
    data = b""
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            raise MarketLoaderError("socks5 proxy closed the connection")
        data += chunk
    return data


def _split_host_port(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise MarketLoaderError(f"invalid proxy address: {address}")
    return host.strip("[]"), int(port)


def _socks5_connect(proxy: str, host: str, port: int, timeout: float | None) -> socket.socket:
    proxy_host, proxy_port = _split_host_port(proxy)
    try:
        sock = socket.create_connection((proxy_host, proxy_port), timeout)
    except OSError as exc:
        raise MarketLoaderError(f"cannot reach socks5 proxy {proxy}: {exc}") from exc
    try:
        sock.sendall(b"\x05\x01\x00")
        if _recv_exact(sock, 2) != b"\x05\x00":
            raise MarketLoaderError("socks5 proxy refused the authentication method")
        host_bytes = host.encode("idna")
        sock.sendall(
            b"\x05\x01\x00\x03"
            + bytes([len(host_bytes)])
            + host_bytes
            + port.to_bytes(2, "big")
        )
        reply = _recv_exact(sock, 4)
        if reply[1] != 0:
            raise MarketLoaderError(f"socks5 connect failed with reply code {reply[1]}")
        address_type = reply[3]
        if address_type == 1:
            _recv_exact(sock, 4 + 2)
        elif address_type == 4:
            _recv_exact(sock, 16 + 2)
        elif address_type == 3:
            _recv_exact(sock, _recv_exact(sock, 1)[0] + 2)
        else:
            raise MarketLoaderError(f"socks5 proxy sent unknown address type {address_type}")
    except OSError as exc:
        sock.close()
        raise MarketLoaderError(f"socks5 handshake failed: {exc}") from exc
    except MarketLoaderError:
        sock.close()
        raise
    return sock


class _SocksHTTPConnection(http.client.HTTPConnection):
    def __init__(self, host: str, port: int, proxy: str) -> None:
        super().__init__(host, port, timeout=REQUEST_TIMEOUT)
        self._proxy = proxy

    def connect(self) -> None:
        self.sock = _socks5_connect(self._proxy, self.host, self.port, self.timeout)


class _SocksHTTPSConnection(http.client.HTTPSConnection):
    def __init__(self, host: str, port: int, proxy: str) -> None:
        self._tls_context = ssl.create_default_context()
        super().__init__(host, port, timeout=REQUEST_TIMEOUT, context=self._tls_context)
        self._proxy = proxy

    def connect(self) -> None:
        sock = _socks5_connect(self._proxy, self.host, self.port, self.timeout)
        self.sock = self._tls_context.wrap_socket(sock, server_hostname=self.host)


def _socks_request(
    url: str, socks_url: str, method: str, payload: bytes, headers: dict[str, str]
) -> tuple[int, bytes]:
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise MarketLoaderError(f"invalid url: {url}")
    secure = parts.scheme == "https"
    port = parts.port or (443 if secure else 80)
    path = parts.path or "/"
    if parts.query:
        path = f"{path}?{parts.query}"
    connection_class = _SocksHTTPSConnection if secure else _SocksHTTPConnection
    conn = connection_class(parts.hostname, port, socks_url)
    try:
        conn.request(method, path, body=payload, headers=headers)
        resp = conn.getresponse()
        return resp.status, resp.read()
    except (OSError, http.client.HTTPException) as exc:
        raise MarketLoaderError(f"request to {url} failed: {exc}") from exc
    finally:
        conn.close()


def http1_request(url: str, socks_url: str, method: str, payload: bytes) -> bytes:
    """Send a JSON request and return the body; onion hosts go through the SOCKS5 proxy."""
    headers = {"Content-Type": "application/json"}
    if _ONION in url:
        status, body = _socks_request(url, socks_url, method, payload, headers)
    else:
        try:
            resp = requests.request(
                method, url, data=payload, headers=headers, timeout=REQUEST_TIMEOUT
            )
        except requests.RequestException as exc:
            raise MarketLoaderError(f"request to {url} failed: {exc}") from exc
        status, body = resp.status_code, resp.content

    if status != 200:
        raise MarketLoaderError(
            f"unexpected status code: {status}, error: {body.decode('utf-8', 'replace')}"
        )
    return body


def _decode_object(body: bytes) -> dict[str, Any]:
    try:
        data = json.loads(body)
    except ValueError as exc:
        raise MarketLoaderError(f"invalid json reply: {exc}") from exc
    if not isinstance(data, dict):
        raise MarketLoaderError("json reply is not an object")
    return data


def _obj(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _uint(value: Any) -> int:
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise MarketLoaderError(f"invalid amount: {value!r}") from exc


def _decimal_from_float(value: Any) -> Decimal:
    if value is None:
        return Decimal(0)
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise MarketLoaderError(f"invalid number: {value!r}") from exc
    if not math.isfinite(number):
        raise MarketLoaderError(f"number is not finite: {value!r}")
    return Decimal(repr(number))


def _divide(numerator: Decimal, denominator: Decimal) -> Decimal:
    if denominator == 0:
        raise MarketLoaderError("division by zero price")
    with localcontext() as ctx:
        ctx.prec = 60
        return (numerator / denominator).quantize(_DIVISION_PLACES, rounding=ROUND_HALF_UP)


def _average(values: list[Decimal]) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = 60
        mean = _divide(sum(values, Decimal(0)), Decimal(len(values)))
        return mean.quantize(_PRICE_PLACES, rounding=ROUND_HALF_UP)


def _market_message(market: Market) -> dict[str, Any]:
    fields = {"baseAsset": market.base_asset, "quoteAsset": market.quote_asset}
    return {"market": {k: v for k, v in fields.items() if v}}


def _price_from_spot(spot: Any) -> Price:
    quote_price = _decimal_from_float(spot)
    if quote_price == 0:
        raise MarketLoaderError("market spot price is zero")
    return Price(base_price=_divide(Decimal(1), quote_price), quote_price=quote_price)


class MarketLoaderService:
    """Loads providers from the registry and queries their markets over HTTP."""

    def __init__(self, tor_proxy_url: str, registry_url: str, price_amount: int) -> None:
        self.tor_proxy_url = tor_proxy_url
        self.registry_url = registry_url
        self.price_amount = price_amount

    def fetch_providers_markets(self) -> list[LiquidityProvider]:
        """Return every registered provider whose markets could be listed."""
        providers = []
        for provider in self._fetch_liquidity_providers():
            try:
                markets = self._fetch_provider_markets(provider)
            except MarketLoaderError as exc:
                log.error(
                    "error while trying to fetch markets for liquidity provider: %s, err: %s",
                    provider.name,
                    exc,
                )
                continue
            providers.append(
                LiquidityProvider(name=provider.name, endpoint=provider.endpoint, markets=markets)
            )
        return providers

    def fetch_balance(self, market: Market) -> Balance:
        """Return the market's balance, trying the v2 interface before v1."""
        try:
            return self._balance_v2(market)
        except MarketLoaderError:
            return self._balance_v1(market)

    def fetch_price(self, market: Market) -> Price:
        """Return the market's price, trying the v2 interface before v1."""
        try:
            return self._price_v2(market)
        except MarketLoaderError:
            return self._price_v1(market)

    def _post(self, url: str, message: dict[str, Any]) -> dict[str, Any]:
        body = http1_request(url, self.tor_proxy_url, "POST", json.dumps(message).encode())
        return _decode_object(body)

    def _fetch_liquidity_providers(self) -> list[LiquidityProvider]:
        try:
            resp = requests.get(self.registry_url, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as exc:
            raise MarketLoaderError(f"cannot reach registry: {exc}") from exc
        if resp.status_code != 200:
            raise MarketLoaderError(f"status: {resp.status_code}, err: {resp.text}")
        try:
            entries = resp.json()
        except ValueError as exc:
            raise MarketLoaderError(f"invalid registry: {exc}") from exc
        if not isinstance(entries, list):
            raise MarketLoaderError("registry is not a list of liquidity providers")
        return [LiquidityProvider.from_dict(entry) for entry in entries]

    def _fetch_provider_markets(self, provider: LiquidityProvider) -> list[Market]:
        try:
            return self._list_markets(_LIST_MARKETS_V2.format(provider.endpoint))
        except MarketLoaderError:
            return self._list_markets(_LIST_MARKETS_V1.format(provider.endpoint))

    def _list_markets(self, url: str) -> list[Market]:
        data = self._post(url, {})
        markets = []
        for entry in data.get("markets") or []:
            market = _obj(_obj(entry).get("market"))
            markets.append(
                Market(
                    quote_asset=str(market.get("quoteAsset", "")),
                    base_asset=str(market.get("baseAsset", "")),
                )
            )
        return markets

    def _balance_v2(self, market: Market) -> Balance:
        data = self._post(_MARKET_BALANCE_V2.format(market.url), _market_message(market))
        balance = _obj(data.get("balance"))
        return Balance(
            base_balance=Decimal(_uint(balance.get("baseAmount"))),
            quote_balance=Decimal(_uint(balance.get("quoteAmount"))),
        )

    def _balance_v1(self, market: Market) -> Balance:
        data = self._post(_MARKET_BALANCE_V1.format(market.url), _market_message(market))
        balance = _obj(_obj(data.get("balance")).get("balance"))
        return Balance(
            base_balance=Decimal(_uint(balance.get("baseAmount"))),
            quote_balance=Decimal(_uint(balance.get("quoteAmount"))),
        )

    def _price_v2(self, market: Market) -> Price:
        data = self._post(_MARKET_PRICE_V2.format(market.url), _market_message(market))
        return _price_from_spot(data.get("spotPrice"))

    def _price_v1(self, market: Market) -> Price:
        payload = json.dumps(_market_message(market)).encode()
        try:
            body = http1_request(
                _MARKET_PRICE_V1.format(market.url), self.tor_proxy_url, "POST", payload
            )
        except MarketLoaderError:
            return self._preview_price(market)
        return _price_from_spot(_decode_object(body).get("spotPrice"))

    def _preview_price(self, market: Market) -> Price:
        message = _market_message(market)
        message["type"] = "TRADE_TYPE_SELL"
        message["amount"] = str(self.price_amount)
        if market.base_asset:
            message["asset"] = market.base_asset
        data = self._post(_TRADE_PREVIEW_V1.format(market.url), message)

        previews = [_obj(_obj(p).get("price")) for p in data.get("previews") or []]
        if not previews:
            raise MarketLoaderError("trade preview returned no prices")
        base_prices = [_decimal_from_float(p.get("basePrice")) for p in previews]
        quote_prices = [_decimal_from_float(p.get("quotePrice")) for p in previews]
        return Price(base_price=_average(base_prices), quote_price=_average(quote_prices))