import pytest
import requests
import responses
from responses import matchers

from tdexa.coingecko import Coin, CoinGeckoService

BASE = "http://gecko.test/api"


@pytest.fixture
def rsps():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as mock:
        yield mock


def test_coins_list_parses_coins(rsps):
    rsps.add(
        responses.GET,
        f"{BASE}/coins/list",
        json=[
            {"id": "bitcoin", "symbol": "btc", "name": "Bitcoin"},
            {"id": "tether", "symbol": "usdt", "name": "Tether"},
        ],
    )
    coins = CoinGeckoService(base_url=BASE).coins_list()
    assert coins == [
        Coin("bitcoin", "btc", "Bitcoin"),
        Coin("tether", "usdt", "Tether"),
    ]


def test_simple_price_sends_joined_params(rsps):
    rsps.add(
        responses.GET,
        f"{BASE}/simple/price",
        match=[matchers.query_param_matcher({"ids": "bitcoin", "vs_currencies": "eur,usd"})],
        json={"bitcoin": {"eur": 21347, "usd": 22000.5}},
    )
    prices = CoinGeckoService(base_url=BASE).simple_price(["bitcoin"], ["eur", "usd"])
    assert prices == {"bitcoin": {"eur": 21347.0, "usd": 22000.5}}


def test_simple_price_unknown_coin_is_empty(rsps):
    rsps.add(responses.GET, f"{BASE}/simple/price", json={})
    assert CoinGeckoService(base_url=BASE).simple_price(["nope"], ["eur"]) == {}


def test_http_error_raises(rsps):
    rsps.add(responses.GET, f"{BASE}/coins/list", status=429, json={"error": "limit"})
    with pytest.raises(requests.HTTPError):
        CoinGeckoService(base_url=BASE).coins_list()


def test_trailing_slash_in_base_url(rsps):
    rsps.add(responses.GET, f"{BASE}/coins/list", json=[])
    assert CoinGeckoService(base_url=BASE + "/").coins_list() == []