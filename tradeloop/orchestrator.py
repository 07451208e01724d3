"""
Session orchestrator: owns running trading sessions and drives each
session's periodic decision loop.

Per tick: price and candle window from the venue, current position as
context, ensemble (or reasoning provider) decision, risk gate, ledger
execution, mark-to-market, session log entry, publication.
"""
import functools
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from tradeloop.ensemble import StrategyEnsemble
from tradeloop.errors import (
    ClientInputError,
    DataUnavailableError,
    InsufficientBalanceError,
    KillSwitchTriggered,
    LiveTradingUnavailableError,
    NotFoundError,
    RiskRejected,
    SessionAlreadyRunningError,
    SessionStateError,
    TransientIOError,
    UnknownStrategyError,
)
from tradeloop.ledger import DemoLedger, bracket_prices
from tradeloop.logging_utils import log_error_with_context
from tradeloop.models import (
    Action,
    LogLevel,
    OrderSide,
    Session,
    SessionLog,
    SessionStatus,
    Signal,
    StrategyRecord,
    TradingMode,
    utcnow,
)
from tradeloop.notifier import EventHub, SESSION_STATUS, SIGNAL_UPDATE, TICK
from tradeloop.reasoning import ReasoningClient
from tradeloop.risk_manager import RiskManager
from tradeloop.scheduler import SessionScheduler
from tradeloop.storage import Store
from tradeloop.strategies import ENSEMBLE_CODE, StrategyContext, build_strategies, is_known
from tradeloop.venues.market_data import MarketDataService

STORE_FLUSH_JOB = "store-flush"

DEFAULT_STRATEGIES = [
    {
        'name': 'SMA Crossover',
        'description': 'Simple Moving Average crossover strategy',
        'category': 'Trend',
        'code': 'sma_crossover',
        'parameters': {'fast_period': 10, 'slow_period': 30},
        'markets': ['hyperliquid'],
    },
    {
        'name': 'RSI Mean Reversion',
        'description': 'RSI-based mean reversion strategy',
        'category': 'Mean Reversion',
        'code': 'rsi_mean_reversion',
        'parameters': {'rsi_period': 14, 'oversold': 30, 'overbought': 70},
        'markets': ['hyperliquid'],
    },
    {
        'name': 'Momentum',
        'description': 'Momentum-based trend following',
        'category': 'Momentum',
        'code': 'momentum',
        'parameters': {'lookback': 20, 'threshold': 0.02},
        'markets': ['hyperliquid'],
    },
    {
        'name': 'Strategy Ensemble',
        'description': 'Weighted vote across every built-in strategy',
        'category': 'Ensemble',
        'code': ENSEMBLE_CODE,
        'parameters': {},
        'markets': ['hyperliquid'],
    },
]

ACTIVE_STATUSES = (SessionStatus.RUNNING, SessionStatus.PAUSED)


def parse_mode(mode: Any) -> TradingMode:
    try:
        return TradingMode(str(mode).upper())
    except ValueError:
        raise ClientInputError("Invalid mode. Must be DEMO or LIVE")


@dataclass
class SessionHandle:
    """Everything a running session's tick needs."""
    session: Session
    job_id: str
    ledger: DemoLedger
    ensemble: StrategyEnsemble
    strategy_code: str = ""
    # Held for the whole tick; stop() acquires it to wait for an in-flight tick
    lock: threading.RLock = field(default_factory=threading.RLock)
    last_price: Optional[float] = None
    tick_count: int = 0


class SessionRegistry:
    """
    Session id -> handle for every scheduled session. Insert and remove are
    atomic across threads.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._handles: Dict[str, SessionHandle] = {}

    def add(self, handle: SessionHandle) -> None:
        """
        Raises:
            SessionAlreadyRunningError: If the id is already registered
        """
        with self._lock:
            if handle.session.id in self._handles:
                raise SessionAlreadyRunningError(f"Session already running: {handle.session.id}")
            self._handles[handle.session.id] = handle

    def remove(self, session_id: str) -> Optional[SessionHandle]:
        with self._lock:
            return self._handles.pop(session_id, None)

    def get(self, session_id: str) -> Optional[SessionHandle]:
        with self._lock:
            return self._handles.get(session_id)

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._handles)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._handles

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)


class SessionOrchestrator:
    """
    Starts, stops, pauses and ticks trading sessions.
    """

    def __init__(
        self,
        config: Dict,
        store: Store,
        market_data: MarketDataService,
        risk_manager: RiskManager,
        scheduler: SessionScheduler,
        hub: Optional[EventHub] = None,
        reasoning: Optional[ReasoningClient] = None,
        registry: Optional[SessionRegistry] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize orchestrator.

        Args:
            config: Application configuration
            store: Persistence
            market_data: Venue access
            risk_manager: Risk gate shared by all sessions
            scheduler: Tick scheduler
            hub: Event hub for published updates
            reasoning: Optional external decision provider
            registry: Running-session registry (a fresh one by default)
            clock: Returns current UTC time
        """
        self.config = config
        self.store = store
        self.market_data = market_data
        self.risk = risk_manager
        self.scheduler = scheduler
        self.hub = hub
        self.reasoning = reasoning
        self.registry = registry or SessionRegistry()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        session_config = config.get('session', {})
        self.tick_interval = float(session_config.get('tick_interval_seconds', 5))
        self.history_hours = float(session_config.get('history_hours', 24))
        self.candle_interval = session_config.get('candle_interval', '1h')
        self.stop_loss_pct = float(session_config.get('default_stop_loss_pct', 1.5))
        self.take_profit_pct = float(session_config.get('default_take_profit_pct', 3.0))

        logger.info(
            f"SessionOrchestrator initialized | "
            f"Tick: {self.tick_interval}s, Window: {self.history_hours}h {self.candle_interval}, "
            f"SL/TP: {self.stop_loss_pct}%/{self.take_profit_pct}%"
        )

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def initialize(self, start_scheduler: bool = True) -> None:
        """Seed default strategies, resume persisted sessions and start ticking."""
        self.seed_default_strategies()

        for session in self.store.list_sessions(statuses=ACTIVE_STATUSES):
            try:
                self._register(session)
                if session.status == SessionStatus.PAUSED:
                    self.scheduler.pause(self._job_id(session.id))
                logger.info(f"Resumed session {session.id} ({session.status.value})")
            except Exception as e:
                log_error_with_context(e, "Failed to resume session", session=session.id)
                self._finish(session, SessionStatus.ERROR, f"Resume failed: {e}")

        if self.store.persistent:
            # Picks up snapshot writes deferred by the flush interval
            self.scheduler.schedule(STORE_FLUSH_JOB, self.store.flush,
                                    max(self.store.flush_interval, 1.0), run_immediately=False)

        if start_scheduler:
            self.scheduler.start()

    def shutdown(self) -> None:
        """
        Stop ticking without closing positions. Sessions stay RUNNING in the
        store and are resumed by the next initialize().
        """
        for session_id in self.registry.ids():
            handle = self.registry.remove(session_id)
            if handle is not None:
                self.scheduler.cancel(handle.job_id)
        self.scheduler.cancel(STORE_FLUSH_JOB)
        self.scheduler.shutdown(wait=True)
        self.store.close()
        logger.info("SessionOrchestrator shut down")

    # ------------------------------------------------------------------
    # strategies
    # ------------------------------------------------------------------

    def seed_default_strategies(self) -> int:
        created = 0
        for defaults in DEFAULT_STRATEGIES:
            if self.store.get_strategy_by_name(defaults['name']) is None:
                self.store.save_strategy(StrategyRecord(**defaults))
                created += 1
        if created:
            logger.info(f"Seeded {created} default strategies")
        return created

    def create_strategy(
        self,
        name: str,
        description: str,
        category: str,
        code: str,
        parameters: Optional[Dict] = None,
        markets: Optional[List[str]] = None,
        weight: float = 1.0
    ) -> StrategyRecord:
        """
        Raises:
            ClientInputError: Duplicate name or unregistered code
        """
        if self.store.get_strategy_by_name(name) is not None:
            raise ClientInputError(f"Strategy name already exists: {name}")
        if not is_known(code):
            raise ClientInputError(f"Unknown strategy code: {code}")

        record = StrategyRecord(
            name=name,
            description=description,
            category=category,
            code=code,
            parameters=parameters or {},
            markets=markets or [],
            weight=weight,
        )
        self.store.save_strategy(record)
        logger.info(f"Strategy created | {record.name} ({record.code})")
        return record

    def update_strategy(self, strategy_id: str, enabled: Optional[bool] = None,
                        weight: Optional[float] = None) -> StrategyRecord:
        record = self.store.get_strategy(strategy_id)
        if record is None:
            raise NotFoundError(f"Strategy not found: {strategy_id}")
        if enabled is not None:
            record.enabled = enabled
        if weight is not None:
            record.weight = max(0.0, min(1.0, float(weight)))
        self.store.save_strategy(record)
        return record

    # ------------------------------------------------------------------
    # sessions
    # ------------------------------------------------------------------

    def start(
        self,
        strategy_id: str,
        mode: Any,
        venue: str,
        symbol: str,
        parameters: Optional[Dict] = None
    ) -> str:
        """
        Create a session and schedule its ticks.

        Returns:
            New session id

        Raises:
            ClientInputError: Bad mode, venue, symbol or strategy code
            NotFoundError: Unknown strategy
        """
        trading_mode = parse_mode(mode)
        self.market_data.adapter(venue)
        if not symbol:
            raise ClientInputError("symbol is required")

        strategy = self.store.get_strategy(strategy_id)
        if strategy is None:
            raise NotFoundError(f"Strategy not found: {strategy_id}")
        if not strategy.enabled:
            raise ClientInputError(f"Strategy is disabled: {strategy.name}")
        if not is_known(strategy.code):
            raise ClientInputError(f"Unknown strategy code: {strategy.code}")

        session = Session(
            strategy_id=strategy_id,
            mode=trading_mode,
            venue=venue,
            symbol=symbol,
            parameters=parameters or {},
            started_at=self.clock(),
        )
        self.store.save_session(session)
        self._register(session)

        self._log(session.id, LogLevel.INFO, f"Session started: {strategy.name} on {venue}:{symbol} ({trading_mode.value})")
        self._publish_status(session)
        return session.id

    def resume_session(self, session_id: str) -> None:
        """
        Re-attach a persisted RUNNING session to the scheduler.

        Raises:
            NotFoundError: Unknown session
            SessionAlreadyRunningError: Already registered
            SessionStateError: Session is not RUNNING
        """
        session = self._require_session(session_id)
        if session_id in self.registry:
            raise SessionAlreadyRunningError(f"Session already running: {session_id}")
        if session.status != SessionStatus.RUNNING:
            raise SessionStateError(f"Session is {session.status.value}, not RUNNING")
        self._register(session)

    def stop(self, session_id: str) -> Session:
        """
        Cancel future ticks, wait for an in-flight tick, close all open
        positions at the current price and mark the session STOPPED.

        Raises:
            NotFoundError: Unknown session
            SessionStateError: Session already STOPPED or ERROR
        """
        session = self._require_session(session_id)
        if session.status not in ACTIVE_STATUSES:
            raise SessionStateError(f"Session is not running: {session_id}")
        return self._halt(session_id, SessionStatus.STOPPED, "Session stopped")

    def pause(self, session_id: str) -> Session:
        session = self._require_session(session_id)
        handle = self.registry.get(session_id)
        if session.status != SessionStatus.RUNNING or handle is None:
            raise SessionStateError(f"Only RUNNING sessions can be paused: {session_id}")

        with handle.lock:
            self.scheduler.pause(handle.job_id)
            session.status = SessionStatus.PAUSED
            handle.session = session
            self.store.save_session(session)

        self._log(session_id, LogLevel.INFO, "Session paused")
        self._publish_status(session)
        return session

    def resume(self, session_id: str) -> Session:
        session = self._require_session(session_id)
        if session.status != SessionStatus.PAUSED:
            raise SessionStateError(f"Only PAUSED sessions can be resumed: {session_id}")

        handle = self.registry.get(session_id)
        session.status = SessionStatus.RUNNING
        self.store.save_session(session)
        if handle is None:
            self._register(session)
        else:
            handle.session = session
            self.scheduler.resume(handle.job_id)

        self._log(session_id, LogLevel.INFO, "Session resumed")
        self._publish_status(session)
        return session

    def list(self, include_history: bool = False) -> List[Dict]:
        statuses = None if include_history else ACTIVE_STATUSES
        return [self._summary(s) for s in self.store.list_sessions(statuses=statuses)]

    def get(self, session_id: str) -> Dict:
        """
        Session with its open positions and cumulative PnL.

        Raises:
            NotFoundError: Unknown session
        """
        session = self._require_session(session_id)
        summary = self._summary(session)
        handle = self.registry.get(session_id)
        ledger = handle.ledger if handle else DemoLedger(session_id, self.store, self.config)
        summary['open_positions'] = [p.model_dump(mode='json') for p in ledger.open_positions()]
        summary['stats'] = ledger.get_stats()
        summary['risk'] = self.risk.get_risk_summary(session_id)
        return summary

    def logs(self, session_id: str, limit: int = 100) -> List[SessionLog]:
        self._require_session(session_id)
        return self.store.list_logs(session_id, limit)

    # ------------------------------------------------------------------
    # tick
    # ------------------------------------------------------------------

    def tick(self, session_id: str) -> Optional[Dict]:
        """
        Run one decision cycle for a session.

        Never raises: failures are written to the session log. Only a
        kill switch or an unrecoverable strategy error changes the
        session status.

        Returns:
            Tick outcome, or None if the session is not scheduled or a tick
            is already in flight
        """
        handle = self.registry.get(session_id)
        if handle is None:
            return None

        if not handle.lock.acquire(blocking=False):
            logger.debug(f"Tick skipped, previous tick still running | session={session_id}")
            return None

        try:
            if session_id not in self.registry or handle.session.status != SessionStatus.RUNNING:
                return None
            handle.tick_count += 1
            return self._run_tick(handle)
        except UnknownStrategyError as e:
            self._log(session_id, LogLevel.ERROR, f"Unrecoverable strategy error: {e}")
            self._halt(session_id, SessionStatus.ERROR, "Strategy error")
        except InsufficientBalanceError as e:
            self._log(session_id, LogLevel.WARN, str(e))
        except LiveTradingUnavailableError as e:
            self._log(session_id, LogLevel.ERROR, f"Order refused: {e}")
        except (TransientIOError, DataUnavailableError) as e:
            self._log(session_id, LogLevel.ERROR, f"Market data unavailable: {e}")
        except Exception as e:
            log_error_with_context(e, "Tick failed", session=session_id)
            self._log(session_id, LogLevel.ERROR, f"Tick error: {type(e).__name__}: {e}")
        finally:
            handle.lock.release()
        return None

    def _run_tick(self, handle: SessionHandle) -> Dict:
        session = handle.session
        venue, symbol = session.venue, session.symbol
        self._sync_members(handle)

        # 1. Market data
        price = self.market_data.get_current_price(venue, symbol)
        handle.last_price = price
        end = self.clock()
        start = end - timedelta(hours=self.history_hours)
        candles = self.market_data.get_candles(venue, symbol, start, end, self.candle_interval)
        funding = self._funding(venue, symbol)

        # 2. Position context
        position_size, entry_price = handle.ledger.signed_size(symbol)
        context = StrategyContext(
            price_history=[c.close for c in candles] or [price],
            volume_history=[c.volume for c in candles] or None,
            funding_rate=funding,
            position_size=position_size,
            entry_price=entry_price,
        )

        # 3. Decision
        decision = handle.ensemble.decide(price, context, symbol)
        signal = Signal(
            action=decision.action,
            confidence=decision.confidence,
            strength=decision.confidence,
            reasoning="; ".join(decision.reasoning),
            metadata={'breakdown': [v.model_dump(mode='json') for v in decision.breakdown]},
        )
        if self.reasoning is not None and self.reasoning.enabled:
            external = self.reasoning.decide(symbol, price, context, decision)
            if external is not None:
                signal = external

        self._prepare_order(handle, signal, price)
        if self.hub is not None:
            self.hub.publish(SIGNAL_UPDATE, {'session_id': session.id, **signal.model_dump(mode='json')},
                             symbol=symbol, venue=venue)

        outcome = {
            'session_id': session.id,
            'tick': handle.tick_count,
            'price': price,
            'action': signal.action.value,
            'confidence': signal.confidence,
            'executed': False,
        }

        # 4. Risk gate
        try:
            self.risk.enforce(session.id, signal, price)
        except KillSwitchTriggered as e:
            outcome['rejected'] = e.reason
            self._log(session.id, LogLevel.ERROR, f"Kill switch triggered: {e.reason}", outcome)
            self._halt(session.id, SessionStatus.ERROR, f"Kill switch: {e.reason}")
            return outcome
        except RiskRejected as e:
            outcome['rejected'] = e.reason
            self._log(session.id, LogLevel.WARN, f"Risk check failed: {e.reason}", outcome)
        else:
            # 5. Execution
            if signal.action in (Action.BUY, Action.SELL):
                self._execute(handle, signal, price)
                outcome['executed'] = True
            elif signal.action == Action.CLOSE:
                trades = handle.ledger.close_all(price, f"Strategy exit: {signal.reasoning}", symbol=symbol)
                outcome['executed'] = bool(trades)

        # 6. Mark to market
        closed = handle.ledger.update_all(symbol, price)
        outcome['closed_by_bracket'] = [p.id for p in closed]
        outcome['balance'] = handle.ledger.balance

        self._log(session.id, LogLevel.INFO,
                  f"Tick {handle.tick_count}: {signal.action.value} @ {price:.4f} ({signal.confidence:.0f}%)",
                  outcome)
        if self.hub is not None:
            self.hub.publish(TICK, outcome, symbol=symbol, venue=venue)
        return outcome

    def _prepare_order(self, handle: SessionHandle, signal: Signal, price: float) -> None:
        """Attach default brackets and a risk-based size to directional signals."""
        if signal.action not in (Action.BUY, Action.SELL):
            return
        default_sl, default_tp = bracket_prices(signal.action, price, self.stop_loss_pct, self.take_profit_pct)
        if signal.stop_loss is None or signal.stop_loss == price:
            signal.stop_loss = default_sl
        if signal.take_profit is None:
            signal.take_profit = default_tp
        if signal.target is None:
            signal.target = signal.take_profit
        if signal.size is None:
            signal.size = handle.ledger.calculate_size(price, signal.confidence, signal.stop_loss)

    def _execute(self, handle: SessionHandle, signal: Signal, price: float) -> None:
        session = handle.session
        position = handle.ledger.open(
            session.symbol,
            signal.action,
            price,
            signal.confidence,
            signal.reasoning,
            take_profit=signal.take_profit,
            stop_loss=signal.stop_loss,
            target=signal.target,
            size=signal.size,
        )
        self._log(session.id, LogLevel.INFO,
                  f"{position.side.value} position {position.id} @ {position.entry_price:.4f}, size {position.size:.6f}",
                  {'position_id': position.id})

    def _funding(self, venue: str, symbol: str) -> Optional[float]:
        try:
            return self.market_data.get_funding_rate(venue, symbol)
        except TransientIOError as e:
            logger.warning(f"Funding rate unavailable for {venue}:{symbol}: {e}")
            return None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _job_id(session_id: str) -> str:
        return f"session-{session_id}"

    def _require_session(self, session_id: str) -> Session:
        session = self.store.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session not found: {session_id}")
        return session

    def _register(self, session: Session) -> SessionHandle:
        strategy = self.store.get_strategy(session.strategy_id)
        if strategy is None:
            raise NotFoundError(f"Strategy not found: {session.strategy_id}")

        params = {**strategy.parameters, **session.parameters}
        strategies = build_strategies(strategy.code, params)
        if len(strategies) == 1:
            strategies[0].set_weight(strategy.weight)

        handle = SessionHandle(
            session=session,
            job_id=self._job_id(session.id),
            ledger=self._ledger(session),
            ensemble=StrategyEnsemble(strategies, self.config),
            strategy_code=strategy.code,
        )
        self._sync_members(handle)
        self.registry.add(handle)
        self.scheduler.schedule(handle.job_id, lambda: self.tick(session.id), self.tick_interval)
        return handle

    def _ledger(self, session: Session) -> DemoLedger:
        """Ledger for a session; live sessions route every fill to the venue."""
        router = functools.partial(self._place_order, session) if session.mode == TradingMode.LIVE else None
        return DemoLedger(session.id, self.store, self.config, hub=self.hub,
                          venue=session.venue, mode=session.mode, router=router)

    def _place_order(self, session: Session, symbol: str, side: OrderSide, size: float,
                     price: float, reduce_only: bool) -> Any:
        adapter = self.market_data.adapter(session.venue)
        logger.info(
            f"ORDER | {side.value} | {symbol} | size={size:.6f} | "
            f"reduce_only={reduce_only} | session={session.id}"
        )
        return adapter.place_order(symbol, side, size, price, reduce_only=reduce_only)

    def _sync_members(self, handle: SessionHandle) -> None:
        """
        Apply the operator's enabled flag and weight from each member's stored
        record to an ensemble session. Runs every tick, so updates reach
        sessions that are already running.
        """
        if handle.strategy_code != ENSEMBLE_CODE:
            return

        # Oldest record per code, i.e. the seeded default
        records: Dict[str, StrategyRecord] = {}
        for record in reversed(self.store.list_strategies()):
            records.setdefault(record.code, record)

        for member in handle.ensemble.strategies:
            record = records.get(member.code)
            if record is not None:
                member.enabled = record.enabled
                member.set_weight(record.weight)

    def _halt(self, session_id: str, status: SessionStatus, reason: str) -> Session:
        """
        Unschedule a session, close its positions and record the final status.
        Safe to call from inside the session's own tick. A session that
        already reached STOPPED or ERROR keeps that status.
        """
        handle = self.registry.remove(session_id)

        if handle is None:
            session = self._require_session(session_id)
            if session.status not in ACTIVE_STATUSES:
                return session
            self._close_positions(session, self._ledger(session), None, reason)
        else:
            self.scheduler.cancel(handle.job_id)
            with handle.lock:
                # Re-read under the lock; a racing halt may have finished first
                session = self._require_session(session_id)
                if session.status not in ACTIVE_STATUSES:
                    return session
                self._close_positions(session, handle.ledger, handle.last_price, reason)

        return self._finish(session, status, reason)

    def _close_positions(self, session: Session, ledger: DemoLedger,
                         last_price: Optional[float], reason: str) -> None:
        positions = ledger.open_positions()
        if not positions:
            return

        try:
            price = self.market_data.get_current_price(session.venue, session.symbol)
        except (TransientIOError, DataUnavailableError, ClientInputError) as e:
            logger.warning(f"Closing at last known price, current price unavailable: {e}")
            price = last_price

        for position in positions:
            try:
                ledger.close(position.id, price if price is not None else position.current_price, reason)
            except (LiveTradingUnavailableError, TransientIOError) as e:
                self._log(session.id, LogLevel.ERROR,
                          f"Could not close position {position.id} at the venue: {e}",
                          {'position_id': position.id})

    def _finish(self, session: Session, status: SessionStatus, reason: str) -> Session:
        session.status = status
        session.stopped_at = self.clock()
        self.store.save_session(session)

        level = LogLevel.INFO if status == SessionStatus.STOPPED else LogLevel.ERROR
        self._log(session.id, level, f"Session {status.value.lower()}: {reason}")
        self._publish_status(session)
        return session

    def _summary(self, session: Session) -> Dict:
        strategy = self.store.get_strategy(session.strategy_id)
        data = session.model_dump(mode='json')
        data['strategy_name'] = strategy.name if strategy else None
        data['total_pnl'] = self.store.realized_pnl(session.id)
        data['scheduled'] = session.id in self.registry
        return data

    def _log(self, session_id: str, level: LogLevel, message: str, data: Optional[Dict] = None) -> None:
        self.store.add_log(SessionLog(session_id=session_id, level=level, message=message,
                                      data=data or {}, timestamp=utcnow()))
        log = {LogLevel.INFO: logger.info, LogLevel.WARN: logger.warning, LogLevel.ERROR: logger.error}[level]
        log(f"Session {session_id} | {message}")

    def _publish_status(self, session: Session) -> None:
        if self.hub is not None:
            self.hub.publish(SESSION_STATUS, session.model_dump(mode='json'),
                             symbol=session.symbol, venue=session.venue)
