# tdexa

Tools for collecting analytics about TDEX liquidity providers:

- **Market loader** (`tdexa.market_loader`): reads the provider registry,
  lists each provider's markets and fetches market balances and prices over
  HTTP/JSON. It tries the v2 API first and falls back to v1; for prices the
  v1 path falls back again to averaging a sell trade preview. Onion hosts are
  reached through a SOCKS5 proxy.
- **Exchange rates** (`tdexa.rater`): converts between fiat currencies and
  from crypto coins to fiat. Fiat rates are cached for a day, coin lists and
  crypto prices for the refresh interval. Calls to Coin Gecko
  (`tdexa.coingecko`) go through a token-bucket limiter
  (`tdexa.ratelimit.RateLimiter`).
- **Layered errors** (`tdexa.hexerr`): `HexagonalError` tagged with a `Layer`
  and a `Code`, created by `interface_layer_error`, `application_layer_error`,
  `domain_layer_error` and `infrastructure_layer_error`. Each records where it
  was created; `details()` and `stack_trace()` format that information.
- **Test data generator** (`tdexa.datagen`): writes InfluxDB line-protocol
  price and balance samples covering the last four months.

## Installation

```
pip install .
```

With what the test suite needs:

```
pip install ".[test]"
```

## Usage

### Converting currencies

```python
from tdexa.rater import new_exchange_rate_client

client = new_exchange_rate_client(
    {"<asset id>": "bitcoin"},
    None,  # calls per minute (default 50)
    None,  # refresh interval in seconds (default 300)
    None,  # limiter wait duration in seconds (default 10)
)
rate = client.convert_currency("EUR", "USD")
btc_eur = client.convert_currency("lbtc", "eur")
currency = client.get_asset_currency("<asset id>")
```

`new_exchange_rate_client` loads the supported fiat symbols at once and raises
`RuntimeError` if it cannot. `btc` and `lbtc` are treated as `bitcoin`. A
symbol that is neither a supported fiat currency nor a known coin raises
`CurrencyNotFoundError`, as does a coin price of zero. If the limiter cannot
grant a Coin Gecko call within the wait duration, `CoinGeckoWaitDurationError`
is raised. A fiat target that is not in the rates gives `Decimal(0)`.

`ExchangeRateClient` can also be built directly, with its own session,
`CoinGeckoService`, `RateLimiter`, symbol set and clock.

### Loading markets

```python
from dataclasses import replace

from tdexa.market_loader import MarketLoaderService

service = MarketLoaderService("127.0.0.1:9050", "<registry url>", 1000)
for provider in service.fetch_providers_markets():
    for market in provider.markets:
        market = replace(market, url=provider.endpoint)
        print(provider.name, service.fetch_balance(market), service.fetch_price(market))
```

Listed markets carry only their assets; set `url` to the provider's endpoint
before asking for a balance or a price. Providers whose markets cannot be
listed are logged and skipped. Failures raise `MarketLoaderError`.

### Rate limiting

```python
from tdexa.ratelimit import RateLimiter

limiter = RateLimiter(60.0, 50)   # one token a minute, bucket of 50
if not limiter.allow():
    limiter.wait(timeout=10.0)    # raises TimeoutError if it would take longer
```

### Generating sample data

```
tdexa-datagen
```

This appends a point every five minutes for the last four months, for
markets `1` and `2`, to `./script/prices.txt` and `./script/balances.txt`.
Use `--prices` and `--balances` to choose other files and `--now` to give the
reference time in nanoseconds.

## What this package does not do

It only fetches data. It does not store prices or balances in a database,
does not run a server or scheduled collection jobs, and talks to providers
over HTTP/JSON only, not gRPC.

## Running the tests

```
pytest
```