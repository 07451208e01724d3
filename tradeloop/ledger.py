"""
Demo position/trade ledger.

Simulates fills for one session: sizes and opens positions, keeps a single
net position per symbol, marks positions to market and closes them on
take-profit, stop-loss, opposing signals or operator request.
"""
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from loguru import logger

from tradeloop.errors import InsufficientBalanceError, LedgerError, NotFoundError
from tradeloop.logging_utils import log_trade
from tradeloop.models import (
    Action,
    OrderSide,
    Position,
    PositionSide,
    PositionStatus,
    Trade,
    TradingMode,
    compute_pnl,
    utcnow,
)
from tradeloop.notifier import (
    EventHub,
    PNL_UPDATED,
    POSITION_CLOSED,
    POSITION_OPENED,
    POSITION_UPDATED,
    TRADE_EXECUTED,
)
from tradeloop.storage import Store

# (symbol, side, size, price, reduce_only) -> venue acknowledgement
OrderRouter = Callable[[str, OrderSide, float, float, bool], Any]


def bracket_prices(
    action: Action,
    price: float,
    stop_loss_pct: float,
    take_profit_pct: float
) -> Tuple[float, float]:
    """
    Default stop-loss and take-profit around an entry.

    Args:
        action: BUY (long) or SELL (short)
        price: Entry price
        stop_loss_pct: Stop distance in percent
        take_profit_pct: Target distance in percent

    Returns:
        Tuple of (stop_loss, take_profit)
    """
    if action == Action.BUY:
        return price * (1 - stop_loss_pct / 100), price * (1 + take_profit_pct / 100)
    return price * (1 + stop_loss_pct / 100), price * (1 - take_profit_pct / 100)


class DemoLedger:
    """
    Simulated execution and bookkeeping for one session.

    The balance is cash plus realized PnL net of fees; open positions do not
    reserve margin. With a router (live sessions) every fill is sent to the
    venue before it is recorded, so a refused order leaves the ledger as it
    was.
    """

    def __init__(
        self,
        session_id: str,
        store: Store,
        config: Dict,
        hub: Optional[EventHub] = None,
        venue: Optional[str] = None,
        mode: TradingMode = TradingMode.DEMO,
        router: Optional[OrderRouter] = None
    ):
        """
        Initialize ledger, rehydrating balance from stored trades.

        Args:
            session_id: Owning session
            store: Persistence for positions and trades
            config: Application configuration (reads the `ledger` section)
            hub: Event hub for position/trade notifications
            venue: Venue name attached to published events
            mode: Mode recorded on trades
            router: Places each opening and closing order at the venue
        """
        ledger_config = config.get('ledger', {})
        self.session_id = session_id
        self.store = store
        self.hub = hub
        self.venue = venue
        self.mode = mode
        self.router = router

        self.initial_balance = float(ledger_config.get('initial_balance', 10000.0))
        self.min_balance = float(ledger_config.get('min_balance', 1000.0))
        self.risk_per_trade_pct = float(ledger_config.get('risk_per_trade_pct', 2.0))
        self.fee_rate = float(ledger_config.get('fee_rate', 0.0005))

        self._lock = threading.RLock()
        self.balance = self.initial_balance + store.realized_pnl(session_id)

        logger.info(
            f"DemoLedger initialized | session={session_id} | "
            f"Balance: ${self.balance:,.2f}, Fee: {self.fee_rate * 100:.3f}%"
        )

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------

    def open_positions(self, symbol: Optional[str] = None) -> List[Position]:
        return self.store.list_positions(self.session_id, status=PositionStatus.OPEN, symbol=symbol)

    def current_position(self, symbol: str) -> Optional[Position]:
        positions = self.open_positions(symbol)
        return positions[0] if positions else None

    def signed_size(self, symbol: str) -> Tuple[float, Optional[float]]:
        """Signed size (positive long) and entry price of the open position."""
        position = self.current_position(symbol)
        if position is None:
            return 0.0, None
        sign = 1.0 if position.side == PositionSide.LONG else -1.0
        return sign * position.size, position.entry_price

    def total_return_pct(self) -> float:
        return (self.balance - self.initial_balance) / self.initial_balance * 100

    def get_stats(self) -> Dict:
        open_positions = self.open_positions()
        closing = [t for t in self.store.list_trades(self.session_id) if t.pnl is not None]
        wins = [t for t in closing if t.pnl - t.fee > 0]
        return {
            'balance': self.balance,
            'initial_balance': self.initial_balance,
            'total_return': self.total_return_pct(),
            'open_positions': len(open_positions),
            'unrealized_pnl': sum(p.unrealized_pnl for p in open_positions),
            'closed_trades': len(closing),
            'winning_trades': len(wins),
            'win_rate': len(wins) / len(closing) * 100 if closing else 0.0,
        }

    # ------------------------------------------------------------------
    # sizing
    # ------------------------------------------------------------------

    def calculate_size(self, price: float, confidence: float, stop_loss: float) -> float:
        """
        Risk-based position size.

        Risk amount = balance * risk% * confidence/100, divided by the stop
        distance.

        Raises:
            LedgerError: If the stop equals the entry price
        """
        stop_distance = abs(price - stop_loss)
        if stop_distance == 0:
            raise LedgerError("Stop loss equals entry price")
        risk_amount = self.balance * (self.risk_per_trade_pct / 100) * (confidence / 100)
        return risk_amount / stop_distance

    # ------------------------------------------------------------------
    # mutations
    # ------------------------------------------------------------------

    def open(
        self,
        symbol: str,
        action: Action,
        price: float,
        confidence: float,
        reasoning: str,
        take_profit: Optional[float] = None,
        stop_loss: Optional[float] = None,
        target: Optional[float] = None,
        size: Optional[float] = None
    ) -> Position:
        """
        Open a position, closing an opposing one first.

        A same-direction open position is returned unchanged.

        Args:
            symbol: Instrument
            action: BUY opens long, SELL opens short
            price: Fill price
            confidence: Signal confidence, scales risk-based size
            reasoning: Reason recorded on the trade
            take_profit: Optional take-profit price
            stop_loss: Stop price; required unless size is given
            target: Optional informational target
            size: Explicit size in base units

        Returns:
            The open position

        Raises:
            InsufficientBalanceError: If balance is below the minimum after
                any opposing close
            LedgerError: On non-directional action or invalid size
            LiveTradingUnavailableError: If the router refuses the order
        """
        if action not in (Action.BUY, Action.SELL):
            raise LedgerError(f"Cannot open a position on {action.value}")

        side = PositionSide.LONG if action == Action.BUY else PositionSide.SHORT

        with self._lock:
            existing = self.current_position(symbol)
            if existing is not None:
                if existing.side == side:
                    logger.debug(f"Already {side.value} {symbol}, keeping position {existing.id}")
                    return existing
                self.close(existing.id, price, "Closed by opposing signal")

            if self.balance < self.min_balance:
                raise InsufficientBalanceError(
                    f"Insufficient balance: ${self.balance:,.2f} < ${self.min_balance:,.2f}"
                )

            if size is None:
                if stop_loss is None:
                    raise LedgerError("Either size or stop_loss is required")
                size = self.calculate_size(price, confidence, stop_loss)
            if size <= 0:
                raise LedgerError(f"Invalid position size: {size}")

            order_side = OrderSide.BUY if side == PositionSide.LONG else OrderSide.SELL
            self._route(symbol, order_side, size, price, reduce_only=False)

            fee = size * price * self.fee_rate
            self.balance -= fee

            position = Position(
                session_id=self.session_id,
                symbol=symbol,
                side=side,
                size=size,
                entry_price=price,
                current_price=price,
                take_profit=take_profit,
                stop_loss=stop_loss,
                target=target,
            )
            trade = Trade(
                session_id=self.session_id,
                position_id=position.id,
                symbol=symbol,
                side=order_side,
                size=size,
                price=price,
                fee=fee,
                reason=reasoning,
                mode=self.mode,
            )
            self.store.save_position(position)
            self.store.add_trade(trade)

        log_trade(trade.side.value, symbol, size, price, session=self.session_id, fee=f"{fee:.4f}",
                  tp=take_profit, sl=stop_loss)
        self._publish(POSITION_OPENED, position.model_dump(mode='json'), symbol)
        self._publish(TRADE_EXECUTED, trade.model_dump(mode='json'), symbol)
        return position

    def close(self, position_id: str, price: float, reason: str) -> Trade:
        """
        Close an open position at a price, realizing its PnL.

        Raises:
            NotFoundError: Unknown position
            LedgerError: Position already closed or owned by another session
            LiveTradingUnavailableError: If the router refuses the order
        """
        with self._lock:
            position = self.store.get_position(position_id)
            if position is None or position.session_id != self.session_id:
                raise NotFoundError(f"Position not found: {position_id}")
            if position.status != PositionStatus.OPEN:
                raise LedgerError(f"Position {position_id} is already closed")

            closing_side = OrderSide.SELL if position.side == PositionSide.LONG else OrderSide.BUY
            self._route(position.symbol, closing_side, position.size, price, reduce_only=True)

            pnl = compute_pnl(position.side, position.size, position.entry_price, price)
            fee = position.size * price * self.fee_rate
            self.balance += pnl - fee

            position.status = PositionStatus.CLOSED
            position.current_price = price
            position.realized_pnl = pnl
            position.unrealized_pnl = 0.0
            position.closed_at = utcnow()

            trade = Trade(
                session_id=self.session_id,
                position_id=position.id,
                symbol=position.symbol,
                side=closing_side,
                size=position.size,
                price=price,
                fee=fee,
                pnl=pnl,
                reason=reason,
                mode=self.mode,
            )
            self.store.save_position(position)
            self.store.add_trade(trade)

        log_trade(trade.side.value, position.symbol, position.size, price, session=self.session_id,
                  pnl=f"{pnl:.2f}", reason=reason)
        logger.info(
            f"Position closed | {position.side.value} {position.symbol} | "
            f"PnL: ${pnl:,.2f} | Balance: ${self.balance:,.2f} ({self.total_return_pct():+.2f}%)"
        )
        self._publish(POSITION_CLOSED, position.model_dump(mode='json'), position.symbol)
        self._publish(TRADE_EXECUTED, trade.model_dump(mode='json'), position.symbol)
        self._publish(PNL_UPDATED, self.get_stats(), position.symbol)
        return trade

    def update_all(self, symbol: str, price: float) -> List[Position]:
        """
        Mark every open position in a symbol to the price and close those
        whose take-profit or stop-loss has been crossed.

        Args:
            symbol: Instrument
            price: Current tick price

        Returns:
            Positions closed by this update
        """
        closed: List[Position] = []

        with self._lock:
            for position in self.open_positions(symbol):
                position.mark(price)
                self.store.save_position(position)
                self._publish(POSITION_UPDATED, position.model_dump(mode='json'), symbol)

                reason = self._exit_reason(position, price)
                if reason:
                    self.close(position.id, price, reason)
                    closed.append(self.store.get_position(position.id))

        if not closed:
            self._publish(PNL_UPDATED, self.get_stats(), symbol)
        return closed

    def close_all(self, price: float, reason: str, symbol: Optional[str] = None) -> List[Trade]:
        with self._lock:
            return [self.close(p.id, price, reason) for p in self.open_positions(symbol)]

    @staticmethod
    def _exit_reason(position: Position, price: float) -> Optional[str]:
        if position.side == PositionSide.LONG:
            if position.take_profit is not None and price >= position.take_profit:
                return "Take Profit Hit"
            if position.stop_loss is not None and price <= position.stop_loss:
                return "Stop Loss Hit"
        else:
            if position.take_profit is not None and price <= position.take_profit:
                return "Take Profit Hit"
            if position.stop_loss is not None and price >= position.stop_loss:
                return "Stop Loss Hit"
        return None

    def _route(self, symbol: str, side: OrderSide, size: float, price: float, reduce_only: bool) -> None:
        if self.router is not None:
            self.router(symbol, side, size, price, reduce_only)

    def _publish(self, event_type: str, data: Dict, symbol: str) -> None:
        if self.hub is not None:
            self.hub.publish(event_type, {'session_id': self.session_id, **data},
                             symbol=symbol, venue=self.venue)
