from __future__ import annotations

from datetime import timedelta

from tradeloop.models import (
    OrderSide,
    Position,
    PositionSide,
    PositionStatus,
    Session,
    SessionLog,
    SessionStatus,
    StrategyRecord,
    Trade,
    TradingMode,
)
from tradeloop.storage import Store

from conftest import NOW, make_candles


def test_models_are_copied(store):
    strategy = store.save_strategy(StrategyRecord(name="A", code="momentum"))
    strategy.name = "changed"
    assert store.get_strategy(strategy.id).name == "A"

    fetched = store.get_strategy(strategy.id)
    fetched.enabled = False
    assert store.get_strategy(strategy.id).enabled is True


def test_snapshot_round_trip(tmp_path):
    path = tmp_path / "db" / "tradeloop.json"
    store = Store(str(path))
    strategy = store.save_strategy(StrategyRecord(name="A", code="momentum"))
    session = store.save_session(Session(strategy_id=strategy.id, mode=TradingMode.DEMO,
                                         venue="fake", symbol="BTC"))
    store.add_trade(Trade(session_id=session.id, symbol="BTC", side=OrderSide.SELL,
                          size=1, price=10, pnl=5.0, fee=0.5))
    store.close()

    reloaded = Store(str(path))
    assert reloaded.get_strategy(strategy.id).name == "A"
    assert reloaded.get_session(session.id).status == SessionStatus.RUNNING
    assert reloaded.realized_pnl(session.id) == 4.5


def test_session_status_filter(store):
    running = store.save_session(Session(strategy_id="s", mode=TradingMode.DEMO, venue="v", symbol="BTC"))
    store.save_session(Session(strategy_id="s", mode=TradingMode.DEMO, venue="v", symbol="BTC",
                               status=SessionStatus.STOPPED))
    assert [s.id for s in store.list_sessions([SessionStatus.RUNNING])] == [running.id]
    assert len(store.list_sessions()) == 2


def test_open_position_queries(store):
    for symbol, status in [("BTC", PositionStatus.OPEN), ("ETH", PositionStatus.OPEN),
                           ("BTC", PositionStatus.CLOSED)]:
        store.save_position(Position(session_id="s1", symbol=symbol, side=PositionSide.LONG,
                                     size=1, entry_price=1, current_price=1, status=status))
    assert store.count_open_positions("s1") == 2
    assert len(store.list_positions("s1", status=PositionStatus.OPEN, symbol="BTC")) == 1
    assert store.count_open_positions("other") == 0


def test_trades_since(store):
    store.add_trade(Trade(session_id="s1", symbol="BTC", side=OrderSide.BUY, size=1, price=1,
                          fee=1.0, executed_at=NOW - timedelta(days=2)))
    store.add_trade(Trade(session_id="s1", symbol="BTC", side=OrderSide.SELL, size=1, price=1,
                          pnl=10.0, fee=1.0, executed_at=NOW))
    assert store.realized_pnl("s1") == 8.0
    assert store.realized_pnl("s1", since=NOW - timedelta(hours=1)) == 9.0


def test_logs_newest_first_with_limit(store):
    for i in range(5):
        store.add_log(SessionLog(session_id="s1", message=f"m{i}", timestamp=NOW + timedelta(seconds=i)))
    assert [entry.message for entry in store.list_logs("s1", limit=2)] == ["m4", "m3"]


def test_candle_cache_window(store):
    candles = make_candles([1.0, 2.0, 3.0, 4.0])
    store.save_candles("fake", "BTC", "1h", candles)
    window = store.get_candles("fake", "BTC", "1h", candles[1].timestamp, candles[2].timestamp)
    assert [c.close for c in window] == [2.0, 3.0]
    assert store.get_candles("fake", "ETH", "1h", candles[0].timestamp, candles[-1].timestamp) == []


def test_snapshot_writes_are_batched(tmp_path):
    path = tmp_path / "tradeloop.json"
    now = [0.0]
    store = Store(str(path), flush_interval_seconds=10, clock=lambda: now[0])

    first = store.save_strategy(StrategyRecord(name="A", code="momentum"))
    assert Store(str(path)).get_strategy(first.id) is not None

    # Within the interval the change stays in memory only
    second = store.save_strategy(StrategyRecord(name="B", code="momentum"))
    assert Store(str(path)).get_strategy(second.id) is None

    now[0] = 10.0
    store.add_log(SessionLog(session_id="s1", message="later"))
    assert Store(str(path)).get_strategy(second.id) is not None

    now[0] = 11.0
    third = store.save_strategy(StrategyRecord(name="C", code="momentum"))
    store.flush()
    assert Store(str(path)).get_strategy(third.id) is not None


def test_session_logs_are_capped_per_session(tmp_path):
    path = tmp_path / "tradeloop.json"
    store = Store(str(path), max_logs_per_session=3)
    for i in range(5):
        store.add_log(SessionLog(session_id="s1", message=f"m{i}", timestamp=NOW + timedelta(seconds=i)))
    store.add_log(SessionLog(session_id="s2", message="other", timestamp=NOW))

    assert [entry.message for entry in store.list_logs("s1", limit=10)] == ["m4", "m3", "m2"]
    assert len(store.list_logs("s2")) == 1

    store.close()
    reloaded = Store(str(path), max_logs_per_session=2)
    assert [entry.message for entry in reloaded.list_logs("s1", limit=10)] == ["m4", "m3"]


def test_candles_persist_to_parquet(tmp_path):
    candles_dir = tmp_path / "candles"
    candles = make_candles([1.0, 2.0, 3.0, 4.0])
    store = Store(candles_dir=str(candles_dir), max_candles_per_series=3)
    store.save_candles("fake", "BTC", "1h", candles)

    assert (candles_dir / "venue=fake" / "symbol=BTC" / "1h.parquet").exists()

    reloaded = Store(candles_dir=str(candles_dir))
    window = reloaded.get_candles("fake", "BTC", "1h", candles[0].timestamp, candles[-1].timestamp)
    # Only the newest three were kept
    assert [c.close for c in window] == [2.0, 3.0, 4.0]
    assert window[0].timestamp == candles[1].timestamp
    assert window[0].symbol == "BTC"


def test_candles_default_beside_snapshot(tmp_path):
    store = Store(str(tmp_path / "db" / "tradeloop.json"))
    assert store.candles_dir == tmp_path / "db" / "candles"
    assert Store().candles_dir is None
