"""Minimal client for the coin list and simple price endpoints of Coin Gecko."""

from __future__ import annotations

from dataclasses import dataclass

import requests

DEFAULT_BASE_URL = "https://api.coingecko.com/api/v3"
DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class Coin:
    """A coin known to Coin Gecko."""

    id: str
    symbol: str
    name: str


class CoinGeckoService:
    """Fetches the coin list and simple prices over HTTP."""

    def __init__(
        self,
        session: requests.Session | None = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _get(self, path: str, params: dict[str, str] | None = None):
        resp = self.session.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def coins_list(self) -> list[Coin]:
        """Return every coin Coin Gecko knows about."""
        return [
            Coin(id=item.get("id", ""), symbol=item.get("symbol", ""), name=item.get("name", ""))
            for item in self._get("/coins/list")
        ]

    def simple_price(
        self, ids: list[str], vs_currencies: list[str]
    ) -> dict[str, dict[str, float]]:
        """Return prices keyed by coin id, then by currency."""
        data = self._get(
            "/simple/price",
            {"ids": ",".join(ids), "vs_currencies": ",".join(vs_currencies)},
        )
        return {
            coin: {currency: float(value) for currency, value in prices.items()}
            for coin, prices in data.items()
        }