from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from tradedesk.services.calculator import (
    BookSnapshot,
    CounterpartyAggregate,
    PriorDayBalances,
    RawTick,
    adjust_pln,
    book_pnl,
    company_pln,
    compute_daily_pl,
    counterparty_pnl,
    is_empty_record,
    merge_totals,
    sum_totals,
)
from tradedesk.services.parsing import round_money, to_decimal


def D(value: str) -> Decimal:
    return Decimal(value)


def _reference_tick(**overrides) -> RawTick:
    values = dict(
        symbol="XAUUSD",
        observed_at=datetime(2024, 9, 10, 0, 5),
        market_price=D("105"),
        company_book=BookSnapshot(buy_size=D("10"), buy_price=D("100"), sell_size=D("6"), sell_price=D("110")),
        cp_book=BookSnapshot(buy_size=D("6"), buy_price=D("109"), sell_size=D("10"), sell_price=D("101")),
        company_balance=D("5000"),
        company_equity=D("5200"),
        company_floating=D("200"),
    )
    values.update(overrides)
    return RawTick(**values)


def test_reference_trade_matches_expected_values():
    record = compute_daily_pl(_reference_tick(), None, PriorDayBalances())

    assert record.company_realized == D("60.00")
    assert record.company_unrealized == D("20.00")
    assert record.cp_realized == D("48.00")
    assert record.cp_unrealized == D("16.00")
    assert record.daily_company_total == D("80.00")
    assert record.daily_cp_total == D("64.00")
    assert record.daily_grand_total == D("16.00")
    assert record.trade_date == date(2024, 9, 10)


def test_realized_requires_both_sides_and_prices():
    one_sided = BookSnapshot(buy_size=D("5"), buy_price=D("100"))
    assert book_pnl(one_sided, D("110")).realized == 0

    missing_price = BookSnapshot(buy_size=D("5"), buy_price=D("0"), sell_size=D("5"), sell_price=D("120"))
    assert book_pnl(missing_price, D("110")).realized == 0


def test_short_position_unrealized_uses_sell_price():
    book = BookSnapshot(buy_size=D("2"), buy_price=D("50"), sell_size=D("5"), sell_price=D("60"))
    result = book_pnl(book, D("55"))
    assert result.realized == D("20")
    assert result.unrealized == D("15")


@pytest.mark.parametrize(
    "size, buy_price, sell_price, market",
    [
        ("1", "100", "90", "500"),
        ("3.5", "0", "12", "0"),
        ("250", "1.2345", "1.2001", "0.5"),
    ],
)
def test_balanced_book_has_no_unrealized(size, buy_price, sell_price, market):
    book = BookSnapshot(buy_size=D(size), buy_price=D(buy_price), sell_size=D(size), sell_price=D(sell_price))
    assert book_pnl(book, D(market)).unrealized == 0
    assert counterparty_pnl(book, D(market)).unrealized == 0


@pytest.mark.parametrize(
    "book",
    [
        BookSnapshot(buy_size=D("10"), buy_price=D("100"), sell_size=D("6"), sell_price=D("110")),
        BookSnapshot(buy_size=D("6"), buy_price=D("109"), sell_size=D("10"), sell_price=D("101")),
        BookSnapshot(buy_size=D("0"), buy_price=D("0"), sell_size=D("3"), sell_price=D("12.5")),
    ],
)
def test_counterparty_book_mirrors_company_book(book):
    company = book_pnl(book, D("105"))
    mirror = counterparty_pnl(book, D("105"))
    assert mirror.realized == -company.realized
    assert mirror.unrealized == -company.unrealized


@pytest.mark.parametrize(
    "equity, prior_equity, deposit, withdrawal",
    [
        ("5200", "5000", "0", "0"),
        ("5200", "5000", "100", "40"),
        ("1234.56", "2000.01", "0.33", "999.99"),
    ],
)
def test_pln_reconciles_with_equity_change(equity, prior_equity, deposit, withdrawal):
    tick = _reference_tick(company_equity=D(equity))
    record = compute_daily_pl(
        tick,
        None,
        PriorDayBalances(company_equity=D(prior_equity)),
        deposit=D(deposit),
        withdrawal=D(withdrawal),
    )
    assert record.company_pln + record.company_deposit - record.company_withdrawal == D(equity) - D(prior_equity)


def test_counterparty_pln_and_account_profit_use_prior_balances():
    aggregate = CounterpartyAggregate(
        symbol="XAUUSD",
        as_of=date(2024, 9, 10),
        balance=D("3000"),
        equity=D("3100"),
        floating=D("100"),
        pnl=D("25"),
    )
    prior = PriorDayBalances(
        company_balance=D("4900"),
        company_equity=D("5000"),
        cp_balance=D("2950"),
        cp_floating=D("70"),
    )
    record = compute_daily_pl(_reference_tick(), aggregate, prior)

    assert record.cp_pln == D("30.00")
    assert record.cp_profit_loss == D("25.00")
    assert record.account_profit == D("50.00")
    assert record.company_pln == D("200.00")
    assert record.prior_cp_floating == D("70.00")


def test_adjust_pln_rederives_from_stored_equities():
    record = compute_daily_pl(_reference_tick(), None, PriorDayBalances(company_equity=D("5000")))
    adjusted = adjust_pln(record, D("100"), D("40"))
    assert adjusted.company_pln == D("140.00")
    assert adjusted.company_deposit == D("100.00")
    assert adjusted.company_withdrawal == D("40.00")
    assert adjusted.daily_grand_total == record.daily_grand_total
    assert company_pln(D("5200"), D("5000"), D("100"), D("40")) == D("140")


def test_empty_record_detection():
    idle = RawTick(symbol="EURUSD", observed_at=datetime(2024, 9, 10))
    assert is_empty_record(idle, None)
    active_cp = CounterpartyAggregate(symbol="EURUSD", as_of=date(2024, 9, 10), floating=D("1"))
    assert not is_empty_record(idle, active_cp)
    assert not is_empty_record(_reference_tick(), None)


def test_rounding_is_half_away_from_zero():
    assert round_money(D("0.125")) == D("0.13")
    assert round_money(D("-0.125")) == D("-0.13")
    assert round_money(D("2.674999")) == D("2.67")


def test_totals_round_once_after_summing():
    first = compute_daily_pl(_reference_tick(), None, PriorDayBalances())
    second = compute_daily_pl(_reference_tick(symbol="EURUSD"), None, PriorDayBalances())
    partial = sum_totals([first])
    merged = merge_totals(partial, sum_totals([second]), {"company_pln": D("0.004")})
    assert merged["daily_grand_total"] == D("32.00")
    assert merged["company_pln"] == D("10400.00")
    assert set(merged) == set(partial)


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, D("0")),
        ("", D("0")),
        ("  ", D("0")),
        ("abc", D("0")),
        ("NaN", D("0")),
        (float("inf"), D("0")),
        ("1,234.50", D("1234.50")),
        (0.1, D("0.1")),
        (7, D("7")),
    ],
)
def test_to_decimal_defaults_absent_values(raw, expected):
    assert to_decimal(raw) == expected
