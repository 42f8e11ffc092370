from tdexa.datagen import balance_line, generate, main, price_line

NOW = 1_700_000_000_000_000_000


def _timestamps(path):
    return [int(line.rsplit(" ", 1)[1]) for line in path.read_text().splitlines()]


def test_price_line_format():
    assert price_line(1, 42) == "market_price,market_id=1 base_price=51,quote_price=501 42\n"


def test_balance_line_format():
    assert (
        balance_line(2, 42)
        == "market_balance,market_id=2 base_balance=52,quote_balance=502 42\n"
    )


def test_generate_writes_pairs_for_both_markets(tmp_path):
    prices = tmp_path / "prices.txt"
    balances = tmp_path / "balances.txt"
    count = generate(prices, balances, NOW)
    price_lines = prices.read_text().splitlines()
    balance_lines = balances.read_text().splitlines()
    assert len(price_lines) == 2 * count
    assert len(balance_lines) == 2 * count
    assert price_lines[0].startswith("market_price,market_id=1 ")
    assert price_lines[1].startswith("market_price,market_id=2 ")
    assert balance_lines[0].startswith("market_balance,market_id=1 ")


def test_generate_timestamps_step_back_evenly(tmp_path):
    prices = tmp_path / "prices.txt"
    generate(prices, tmp_path / "balances.txt", NOW)
    stamps = _timestamps(prices)[::2]
    steps = {a - b for a, b in zip(stamps, stamps[1:])}
    assert len(steps) == 1
    step = steps.pop()
    assert step > 0
    assert stamps[0] == NOW - step
    assert all(s < NOW for s in stamps)


def test_generate_spans_about_four_months(tmp_path):
    prices = tmp_path / "prices.txt"
    generate(prices, tmp_path / "balances.txt", NOW)
    stamps = _timestamps(prices)[::2]
    four_months_ns = 24 * 30 * 4 * 3600 * 10**9
    assert NOW - stamps[-1] > four_months_ns
    assert NOW - stamps[-2] <= four_months_ns


def test_generate_appends(tmp_path):
    prices = tmp_path / "prices.txt"
    balances = tmp_path / "balances.txt"
    count = generate(prices, balances, NOW)
    generate(prices, balances, NOW)
    assert len(prices.read_text().splitlines()) == 4 * count


def test_main_writes_given_paths(tmp_path):
    prices = tmp_path / "p.txt"
    balances = tmp_path / "b.txt"
    rc = main(["--prices", str(prices), "--balances", str(balances), "--now", str(NOW)])
    assert rc == 0
    assert _timestamps(prices) == _timestamps(balances)