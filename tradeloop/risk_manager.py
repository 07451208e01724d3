"""
Risk gate with pre-trade checks and kill-switch signalling.
"""
from datetime import datetime
from typing import Callable, Dict, Optional

from loguru import logger

from tradeloop.errors import KillSwitchTriggered, RiskRejected
from tradeloop.models import Action, RiskCheckResult, RiskLimits, Signal, TradingMode
from tradeloop.storage import Store


def local_midnight(now: datetime) -> datetime:
    """Start of the calendar day containing `now`, in now's timezone."""
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


class RiskManager:
    """
    Validates a proposed signal against process-wide limits before execution.

    The limits are shared by all sessions; the PnL and open-position figures
    they are compared against are per session.
    """

    def __init__(
        self,
        config: Dict,
        store: Store,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize risk manager.

        Args:
            config: Application configuration (reads the `risk` section)
            store: Store holding sessions, trades and positions
            clock: Returns the current time; defaults to local wall clock
        """
        risk_config = config.get('risk', {})
        self.store = store
        self.clock = clock or (lambda: datetime.now().astimezone())

        self.live_trading_enabled = bool(risk_config.get('enable_live_trading', False))
        self.limits = RiskLimits(
            max_position_notional=float(risk_config.get('max_position_notional', 10000)),
            max_daily_loss=float(risk_config.get('max_daily_loss', 1000)),
            max_open_positions=int(risk_config.get('max_open_positions', 5)),
        )

        logger.info(
            f"RiskManager initialized | "
            f"Max notional: ${self.limits.max_position_notional:,.0f}, "
            f"Max daily loss: ${self.limits.max_daily_loss:,.0f}, "
            f"Max open: {self.limits.max_open_positions}, "
            f"Live trading: {self.live_trading_enabled}"
        )

    def daily_pnl(self, session_id: str) -> float:
        """Realized PnL net of fees since local midnight."""
        return self.store.realized_pnl(session_id, since=local_midnight(self.clock()))

    def check(self, session_id: str, signal: Signal, current_price: float) -> RiskCheckResult:
        """
        Run the ordered risk checks; the first failure wins.

        Args:
            session_id: Session proposing the trade
            signal: Proposed signal (size in base units, may be None)
            current_price: Price the trade would execute at

        Returns:
            RiskCheckResult; kill_switch=True means the session must halt
        """
        # 1. Daily loss
        daily_pnl = self.daily_pnl(session_id)
        if daily_pnl < -self.limits.max_daily_loss:
            return self._reject(
                session_id,
                f"Daily loss limit exceeded: ${daily_pnl:,.2f} < -${self.limits.max_daily_loss:,.2f}",
                kill_switch=True,
            )

        # 2. Position notional
        if signal.size is not None:
            notional = signal.size * current_price
            if notional > self.limits.max_position_notional:
                return self._reject(
                    session_id,
                    f"Position size ${notional:,.2f} exceeds max ${self.limits.max_position_notional:,.2f}",
                )

        # 3. Open position count
        if signal.action in (Action.BUY, Action.SELL):
            open_count = self.store.count_open_positions(session_id)
            if open_count >= self.limits.max_open_positions:
                return self._reject(
                    session_id,
                    f"Max open positions ({self.limits.max_open_positions}) reached",
                )

        # 4. Live trading flag
        session = self.store.get_session(session_id)
        if session is not None and session.mode == TradingMode.LIVE and not self.live_trading_enabled:
            return self._reject(session_id, "Live trading is not enabled", kill_switch=True)

        return RiskCheckResult(allowed=True)

    def enforce(self, session_id: str, signal: Signal, current_price: float) -> None:
        """
        Run check() and raise on rejection.

        Raises:
            KillSwitchTriggered: If the session must halt
            RiskRejected: If the trade is blocked
        """
        result = self.check(session_id, signal, current_price)
        if result.allowed:
            return
        if result.kill_switch:
            raise KillSwitchTriggered(result.reason)
        raise RiskRejected(result.reason)

    def _reject(self, session_id: str, reason: str, kill_switch: bool = False) -> RiskCheckResult:
        if kill_switch:
            logger.critical(f"KILL SWITCH | session={session_id} | {reason}")
        else:
            logger.warning(f"Trade rejected | session={session_id} | {reason}")
        return RiskCheckResult(allowed=False, reason=reason, kill_switch=kill_switch)

    def update_limits(self, **changes) -> RiskLimits:
        """
        Override one or more limits.

        Raises:
            ValueError: On unknown or non-positive limits
        """
        for key, value in changes.items():
            if key not in RiskLimits.model_fields:
                raise ValueError(f"Unknown risk limit: {key}")
            if value is None or value <= 0:
                raise ValueError(f"Risk limit {key} must be > 0")

        self.limits = self.limits.model_copy(update=changes)
        logger.info(f"Risk limits updated | {self.limits.model_dump()}")
        return self.limits

    def get_limits(self) -> RiskLimits:
        return self.limits.model_copy()

    def get_risk_summary(self, session_id: str) -> Dict:
        return {
            'daily_pnl': self.daily_pnl(session_id),
            'open_positions': self.store.count_open_positions(session_id),
            'limits': self.limits.model_dump(),
            'live_trading_enabled': self.live_trading_enabled,
        }
