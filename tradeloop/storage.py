"""
Persistence layer for strategies, sessions, positions, trades, logs,
backtests and cached candles.

Everything lives in memory behind one lock. When a db path is configured a
JSON snapshot of the records is reloaded at startup and rewritten at most
once per flush interval (and on flush()/close()). Candles are written to
Parquet files partitioned by venue and symbol, one file per interval.
"""
import json
import threading
import time
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Tuple, Type, TypeVar

import pandas as pd
from loguru import logger
from pydantic import BaseModel

from tradeloop.models import (
    BacktestRecord,
    Candle,
    Position,
    PositionStatus,
    Session,
    SessionLog,
    SessionStatus,
    StrategyRecord,
    Trade,
)

M = TypeVar('M', bound=BaseModel)

# collection name -> model type, in snapshot order
COLLECTIONS: Dict[str, Type[BaseModel]] = {
    'strategies': StrategyRecord,
    'sessions': Session,
    'positions': Position,
    'trades': Trade,
    'session_logs': SessionLog,
    'backtests': BacktestRecord,
}

CandleKey = Tuple[str, str, str]


class Store:
    """
    Thread-safe repository. Models are copied on the way in and out so
    callers never share mutable state through the store.
    """

    def __init__(
        self,
        db_path: Optional[str] = None,
        candles_dir: Optional[str] = None,
        flush_interval_seconds: float = 1.0,
        max_logs_per_session: int = 1000,
        max_candles_per_series: int = 5000,
        compression: str = 'snappy',
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize store.

        Args:
            db_path: JSON snapshot file; empty or None keeps records in memory only
            candles_dir: Parquet candle directory; defaults to `candles/` beside
                the snapshot, memory only without either
            flush_interval_seconds: Minimum time between snapshot rewrites
            max_logs_per_session: Oldest session log entries beyond this are dropped
            max_candles_per_series: Newest candles kept per (venue, symbol, interval)
            compression: Parquet compression codec
            clock: Monotonic seconds, for flush pacing
        """
        self.db_path = Path(db_path) if db_path else None
        if candles_dir:
            self.candles_dir = Path(candles_dir)
        elif self.db_path:
            self.candles_dir = self.db_path.parent / 'candles'
        else:
            self.candles_dir = None
        self.flush_interval = float(flush_interval_seconds)
        self.max_logs_per_session = max(1, int(max_logs_per_session))
        self.max_candles = max(1, int(max_candles_per_series))
        self.compression = compression
        self.clock = clock

        self._lock = threading.RLock()
        self._data: Dict[str, Dict[str, BaseModel]] = {name: {} for name in COLLECTIONS}
        # session id -> log ids, oldest first
        self._log_ids: Dict[str, Deque[str]] = {}
        # (venue, symbol, interval) -> timestamp -> candle
        self._candles: Dict[CandleKey, Dict[datetime, Candle]] = {}
        self._dirty = False
        self._last_flush: Optional[float] = None

        if self.db_path and self.db_path.exists():
            self._load()

        logger.info(
            f"Store initialized | "
            f"Path: {self.db_path or 'memory'}, Candles: {self.candles_dir or 'memory'}, "
            f"Strategies: {len(self._data['strategies'])}, Sessions: {len(self._data['sessions'])}"
        )

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "Store":
        storage = config.get('storage', {})
        return cls(
            db_path=storage.get('db_path') or None,
            candles_dir=storage.get('candles_dir') or None,
            flush_interval_seconds=float(storage.get('flush_interval_seconds', 1.0)),
            max_logs_per_session=int(storage.get('max_logs_per_session', 1000)),
            max_candles_per_series=int(storage.get('max_candles_per_series', 5000)),
            compression=storage.get('compression', 'snappy'),
        )

    @property
    def persistent(self) -> bool:
        return self.db_path is not None

    # ------------------------------------------------------------------
    # snapshot
    # ------------------------------------------------------------------

    def _load(self) -> None:
        with open(self.db_path, 'r', encoding='utf-8') as f:
            raw = json.load(f)

        for name, model in COLLECTIONS.items():
            for item in raw.get(name, []):
                obj = model.model_validate(item)
                self._data[name][obj.id] = obj

        logs = sorted(self._data['session_logs'].values(), key=lambda entry: entry.timestamp)
        for entry in logs:
            self._track_log(entry)

        logger.info(f"Loaded snapshot from {self.db_path}")

    def flush(self) -> None:
        """Write the snapshot now if anything changed since the last write."""
        with self._lock:
            if self._dirty:
                self._write_snapshot()

    def close(self) -> None:
        self.flush()

    def _maybe_flush(self) -> None:
        if not self.db_path:
            return
        self._dirty = True
        now = self.clock()
        if self._last_flush is None or now - self._last_flush >= self.flush_interval:
            self._write_snapshot()

    def _write_snapshot(self) -> None:
        if not self.db_path:
            self._dirty = False
            return

        snapshot = {
            name: [obj.model_dump(mode='json') for obj in items.values()]
            for name, items in self._data.items()
        }
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.db_path.with_suffix(self.db_path.suffix + '.tmp')
        with open(tmp, 'w', encoding='utf-8') as f:
            json.dump(snapshot, f)
        tmp.replace(self.db_path)

        self._dirty = False
        self._last_flush = self.clock()

    def _put(self, collection: str, obj: M) -> M:
        with self._lock:
            self._data[collection][obj.id] = obj.model_copy(deep=True)
            self._maybe_flush()
        return obj

    def _get(self, collection: str, obj_id: str) -> Optional[BaseModel]:
        with self._lock:
            obj = self._data[collection].get(obj_id)
            return obj.model_copy(deep=True) if obj is not None else None

    def _all(self, collection: str) -> List[BaseModel]:
        with self._lock:
            return [obj.model_copy(deep=True) for obj in self._data[collection].values()]

    # ------------------------------------------------------------------
    # strategies
    # ------------------------------------------------------------------

    def save_strategy(self, strategy: StrategyRecord) -> StrategyRecord:
        return self._put('strategies', strategy)

    def get_strategy(self, strategy_id: str) -> Optional[StrategyRecord]:
        return self._get('strategies', strategy_id)

    def get_strategy_by_name(self, name: str) -> Optional[StrategyRecord]:
        for strategy in self._all('strategies'):
            if strategy.name == name:
                return strategy
        return None

    def list_strategies(self) -> List[StrategyRecord]:
        return sorted(self._all('strategies'), key=lambda s: s.created_at, reverse=True)

    # ------------------------------------------------------------------
    # sessions
    # ------------------------------------------------------------------

    def save_session(self, session: Session) -> Session:
        return self._put('sessions', session)

    def get_session(self, session_id: str) -> Optional[Session]:
        return self._get('sessions', session_id)

    def list_sessions(self, statuses: Optional[Iterable[SessionStatus]] = None) -> List[Session]:
        sessions = self._all('sessions')
        if statuses is not None:
            wanted = set(statuses)
            sessions = [s for s in sessions if s.status in wanted]
        return sorted(sessions, key=lambda s: s.started_at, reverse=True)

    # ------------------------------------------------------------------
    # positions and trades
    # ------------------------------------------------------------------

    def save_position(self, position: Position) -> Position:
        return self._put('positions', position)

    def get_position(self, position_id: str) -> Optional[Position]:
        return self._get('positions', position_id)

    def list_positions(
        self,
        session_id: str,
        status: Optional[PositionStatus] = None,
        symbol: Optional[str] = None
    ) -> List[Position]:
        positions = [
            p for p in self._all('positions')
            if p.session_id == session_id
            and (status is None or p.status == status)
            and (symbol is None or p.symbol == symbol)
        ]
        return sorted(positions, key=lambda p: p.opened_at)

    def count_open_positions(self, session_id: str) -> int:
        return len(self.list_positions(session_id, status=PositionStatus.OPEN))

    def add_trade(self, trade: Trade) -> Trade:
        return self._put('trades', trade)

    def list_trades(self, session_id: str, since: Optional[datetime] = None) -> List[Trade]:
        trades = [
            t for t in self._all('trades')
            if t.session_id == session_id and (since is None or t.executed_at >= since)
        ]
        return sorted(trades, key=lambda t: t.executed_at)

    def realized_pnl(self, session_id: str, since: Optional[datetime] = None) -> float:
        """Sum of trade PnL net of fees, optionally from a point in time."""
        return sum((t.pnl or 0.0) - t.fee for t in self.list_trades(session_id, since))

    # ------------------------------------------------------------------
    # session logs
    # ------------------------------------------------------------------

    def add_log(self, entry: SessionLog) -> SessionLog:
        """Append a log entry, dropping the session's oldest beyond the cap."""
        with self._lock:
            self._data['session_logs'][entry.id] = entry.model_copy(deep=True)
            self._track_log(entry)
            self._maybe_flush()
        return entry

    def _track_log(self, entry: SessionLog) -> None:
        ids = self._log_ids.setdefault(entry.session_id, deque())
        ids.append(entry.id)
        while len(ids) > self.max_logs_per_session:
            self._data['session_logs'].pop(ids.popleft(), None)

    def list_logs(self, session_id: str, limit: int = 100) -> List[SessionLog]:
        """Most recent entries first."""
        logs = [entry for entry in self._all('session_logs') if entry.session_id == session_id]
        logs.sort(key=lambda entry: entry.timestamp, reverse=True)
        return logs[:max(0, limit)]

    # ------------------------------------------------------------------
    # backtests
    # ------------------------------------------------------------------

    def save_backtest(self, record: BacktestRecord) -> BacktestRecord:
        return self._put('backtests', record)

    def get_backtest(self, backtest_id: str) -> Optional[BacktestRecord]:
        return self._get('backtests', backtest_id)

    def list_backtests(self, strategy_id: Optional[str] = None) -> List[BacktestRecord]:
        records = [
            r for r in self._all('backtests')
            if strategy_id is None or r.strategy_id == strategy_id
        ]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    # ------------------------------------------------------------------
    # candle cache
    # ------------------------------------------------------------------

    def _candle_file(self, key: CandleKey) -> Optional[Path]:
        if self.candles_dir is None:
            return None
        venue, symbol, interval = key
        safe_symbol = symbol.replace('/', '-')
        return self.candles_dir / f"venue={venue}" / f"symbol={safe_symbol}" / f"{interval}.parquet"

    def _candle_bucket(self, key: CandleKey) -> Dict[datetime, Candle]:
        """In-memory series for a key, read from its Parquet file on first use."""
        bucket = self._candles.get(key)
        if bucket is not None:
            return bucket

        bucket = {}
        path = self._candle_file(key)
        if path is not None and path.exists():
            df = pd.read_parquet(path)
            for row in df.to_dict('records'):
                row['timestamp'] = pd.Timestamp(row['timestamp']).to_pydatetime()
                row = {k: (None if k in ('venue', 'symbol') and pd.isna(v) else v) for k, v in row.items()}
                candle = Candle.model_validate(row)
                bucket[candle.timestamp] = candle
            logger.debug(f"Loaded {len(bucket)} candles from {path}")

        self._candles[key] = bucket
        return bucket

    def save_candles(self, venue: str, symbol: str, interval: str, candles: List[Candle]) -> None:
        """
        Merge candles into the series, keep the newest `max_candles_per_series`
        and rewrite the series file.
        """
        key = (venue, symbol, interval)
        with self._lock:
            bucket = self._candle_bucket(key)
            for candle in candles:
                bucket[candle.timestamp] = candle.model_copy()

            if len(bucket) > self.max_candles:
                for ts in sorted(bucket)[:len(bucket) - self.max_candles]:
                    del bucket[ts]

            path = self._candle_file(key)
            if path is None or not bucket:
                return

            path.parent.mkdir(parents=True, exist_ok=True)
            df = pd.DataFrame([bucket[ts].model_dump() for ts in sorted(bucket)])
            df.to_parquet(path, compression=self.compression, index=False)

        logger.debug(f"Saved {len(bucket)} candles to {path}")

    def get_candles(
        self,
        venue: str,
        symbol: str,
        interval: str,
        start: datetime,
        end: datetime
    ) -> List[Candle]:
        with self._lock:
            bucket = self._candle_bucket((venue, symbol, interval))
            rows = [c.model_copy() for ts, c in bucket.items() if start <= ts <= end]
        return sorted(rows, key=lambda c: c.timestamp)
