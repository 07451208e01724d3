from __future__ import annotations

import pytest

from tradeloop.errors import InsufficientBalanceError, LedgerError, LiveTradingUnavailableError, NotFoundError
from tradeloop.ledger import DemoLedger, bracket_prices
from tradeloop.models import Action, OrderSide, PositionSide, PositionStatus
from tradeloop.notifier import POSITION_CLOSED, POSITION_OPENED, TRADE_EXECUTED


@pytest.fixture
def ledger(store, config, hub):
    return DemoLedger("sess-1", store, config, hub=hub, venue="fake")


def test_bracket_prices():
    sl, tp = bracket_prices(Action.BUY, 100.0, 1.5, 3.0)
    assert sl == pytest.approx(98.5)
    assert tp == pytest.approx(103.0)

    sl, tp = bracket_prices(Action.SELL, 100.0, 1.5, 3.0)
    assert sl == pytest.approx(101.5)
    assert tp == pytest.approx(97.0)


def test_risk_based_size(ledger):
    # 10000 * 2% * 80% / |100 - 98|
    assert ledger.calculate_size(100.0, 80.0, 98.0) == pytest.approx(80.0)
    with pytest.raises(LedgerError):
        ledger.calculate_size(100.0, 80.0, 100.0)


def test_open_charges_fee_and_publishes(ledger, store, events):
    position = ledger.open("BTC", Action.BUY, 100.0, 80.0, "test", stop_loss=98.0, take_profit=104.0)

    assert position.side == PositionSide.LONG
    assert position.size == pytest.approx(80.0)
    assert ledger.balance == pytest.approx(10000 - 80 * 100 * 0.0005)
    assert store.count_open_positions("sess-1") == 1

    types = [e['type'] for e in events]
    assert POSITION_OPENED in types
    assert TRADE_EXECUTED in types


def test_same_direction_returns_existing(ledger, store):
    first = ledger.open("BTC", Action.BUY, 100.0, 80.0, "a", size=1.0)
    second = ledger.open("BTC", Action.BUY, 101.0, 80.0, "b", size=2.0)

    assert second.id == first.id
    assert len(ledger.open_positions("BTC")) == 1
    assert len(store.list_trades("sess-1")) == 1


def test_opposing_signal_flips_single_net_position(ledger, store, events):
    long = ledger.open("BTC", Action.BUY, 100.0, 80.0, "long", size=1.0)
    short = ledger.open("BTC", Action.SELL, 110.0, 80.0, "short", size=1.0)

    open_positions = ledger.open_positions("BTC")
    assert [p.id for p in open_positions] == [short.id]
    assert short.side == PositionSide.SHORT

    closed = store.get_position(long.id)
    assert closed.status == PositionStatus.CLOSED
    assert closed.realized_pnl == pytest.approx(10.0)
    assert POSITION_CLOSED in [e['type'] for e in events]

    closing = [t for t in store.list_trades("sess-1") if t.pnl is not None]
    assert closing[0].reason == "Closed by opposing signal"


def test_close_realizes_pnl_net_of_fees(ledger, store):
    position = ledger.open("BTC", Action.SELL, 100.0, 80.0, "short", size=2.0)
    trade = ledger.close(position.id, 90.0, "manual")

    assert trade.pnl == pytest.approx(20.0)
    open_fee = 2.0 * 100.0 * 0.0005
    close_fee = 2.0 * 90.0 * 0.0005
    assert ledger.balance == pytest.approx(10000 + 20.0 - open_fee - close_fee)
    assert store.realized_pnl("sess-1") == pytest.approx(ledger.balance - 10000)

    with pytest.raises(LedgerError):
        ledger.close(position.id, 90.0, "again")
    with pytest.raises(NotFoundError):
        ledger.close("missing", 90.0, "nope")


def test_balance_rehydrates_from_trades(ledger, store, config):
    position = ledger.open("BTC", Action.BUY, 100.0, 80.0, "a", size=1.0)
    ledger.close(position.id, 120.0, "b")

    reloaded = DemoLedger("sess-1", store, config)
    assert reloaded.balance == pytest.approx(ledger.balance)


def test_unrealized_pnl_is_idempotent_for_same_price(ledger):
    ledger.open("BTC", Action.BUY, 100.0, 80.0, "a", size=3.0)

    ledger.update_all("BTC", 105.0)
    first = ledger.current_position("BTC").unrealized_pnl
    ledger.update_all("BTC", 105.0)
    second = ledger.current_position("BTC").unrealized_pnl

    assert first == second == pytest.approx(15.0)


@pytest.mark.parametrize("action, price, reason", [
    (Action.BUY, 104.0, "Take Profit Hit"),
    (Action.BUY, 97.0, "Stop Loss Hit"),
    (Action.SELL, 96.0, "Take Profit Hit"),
    (Action.SELL, 103.0, "Stop Loss Hit"),
])
def test_brackets_close_at_tick_price(ledger, store, action, price, reason):
    sl, tp = bracket_prices(action, 100.0, 2.0, 4.0)
    ledger.open("BTC", action, 100.0, 80.0, "entry", stop_loss=sl, take_profit=tp, size=1.0)

    closed = ledger.update_all("BTC", price)

    assert len(closed) == 1
    assert closed[0].status == PositionStatus.CLOSED
    trade = [t for t in store.list_trades("sess-1") if t.pnl is not None][0]
    assert trade.reason == reason
    assert trade.price == price


def test_insufficient_balance_blocks_open_but_not_close(store, config):
    config['ledger']['initial_balance'] = 1500.0
    ledger = DemoLedger("sess-2", store, config)

    position = ledger.open("BTC", Action.BUY, 100.0, 80.0, "a", size=10.0)
    ledger.close(position.id, 40.0, "crash")
    assert ledger.balance < ledger.min_balance

    with pytest.raises(InsufficientBalanceError):
        ledger.open("BTC", Action.BUY, 40.0, 80.0, "b", size=1.0)


def test_close_all(ledger, store):
    ledger.open("BTC", Action.BUY, 100.0, 80.0, "a", size=1.0)
    ledger.open("ETH", Action.SELL, 10.0, 80.0, "b", size=1.0)

    trades = ledger.close_all(100.0, "Session stopped")
    assert len(trades) == 2
    assert ledger.open_positions() == []


def test_stats(ledger):
    position = ledger.open("BTC", Action.BUY, 100.0, 80.0, "a", size=1.0)
    ledger.close(position.id, 110.0, "win")
    stats = ledger.get_stats()
    assert stats['closed_trades'] == 1
    assert stats['winning_trades'] == 1
    assert stats['win_rate'] == 100.0
    assert stats['open_positions'] == 0


def test_router_sees_every_fill_before_it_is_recorded(store, config):
    routed = []
    ledger = DemoLedger("sess-3", store, config, router=lambda *order: routed.append(order))

    position = ledger.open("BTC", Action.BUY, 100.0, 80.0, "a", size=2.0)
    ledger.open("BTC", Action.BUY, 101.0, 80.0, "again", size=2.0)
    ledger.close(position.id, 110.0, "exit")

    assert routed == [
        ("BTC", OrderSide.BUY, 2.0, 100.0, False),
        ("BTC", OrderSide.SELL, 2.0, 110.0, True),
    ]
    assert len(store.list_trades("sess-3")) == len(routed)


def test_refused_close_leaves_position_open(store, config):
    refuse = []

    def router(symbol, side, size, price, reduce_only):
        if refuse:
            raise LiveTradingUnavailableError("venue down")

    ledger = DemoLedger("sess-4", store, config, router=router)
    position = ledger.open("BTC", Action.BUY, 100.0, 80.0, "a", size=1.0)
    balance = ledger.balance

    refuse.append(True)
    with pytest.raises(LiveTradingUnavailableError):
        ledger.close(position.id, 90.0, "exit")

    assert ledger.balance == balance
    assert store.get_position(position.id).status == PositionStatus.OPEN
    assert len(store.list_trades("sess-4")) == 1
