"""Generate sample market price and balance data in line protocol."""

from __future__ import annotations

import argparse
import time
from pathlib import Path

_PRICE_TEMPLATE = "market_price,market_id={} base_price=51,quote_price=501 {}\n"
_BALANCE_TEMPLATE = "market_balance,market_id={} base_balance=52,quote_balance=502 {}\n"

_MINUTE_NS = 60 * 1_000_000_000
_STEP_NS = 5 * _MINUTE_NS
_FOUR_MONTHS_NS = 24 * 30 * 4 * 60 * _MINUTE_NS
_MARKET_IDS = (1, 2)


def price_line(market_id, timestamp_ns: int) -> str:
    """Return one market price point in line protocol."""
    return _PRICE_TEMPLATE.format(market_id, timestamp_ns)


def balance_line(market_id, timestamp_ns: int) -> str:
    """Return one market balance point in line protocol."""
    return _BALANCE_TEMPLATE.format(market_id, timestamp_ns)


def generate(
    prices_path: str | Path,
    balances_path: str | Path,
    now: int | None = None,
) -> int:
    """Append about four months of five-minute points before ``now`` (ns).

    Returns the number of timestamps written per market.
    """
    start = time.time_ns() if now is None else now
    counter = start
    written = 0
    with open(prices_path, "a", encoding="utf-8") as prices, open(
        balances_path, "a", encoding="utf-8"
    ) as balances:
        while start - counter <= _FOUR_MONTHS_NS:
            counter -= _STEP_NS
            prices.writelines(price_line(m, counter) for m in _MARKET_IDS)
            balances.writelines(balance_line(m, counter) for m in _MARKET_IDS)
            written += 1
    return written


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Generate prices and balances data for the previous four months."
    )
    parser.add_argument("--prices", default="./script/prices.txt")
    parser.add_argument("--balances", default="./script/balances.txt")
    parser.add_argument("--now", type=int, default=None, help="reference time in ns")
    args = parser.parse_args(argv)
    generate(args.prices, args.balances, args.now)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())