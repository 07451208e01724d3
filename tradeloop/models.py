"""
Data models for strategies, sessions, positions, trades and backtests.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Action(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"
    CLOSE = "CLOSE"  # flatten; emitted by position-aware strategies only


class TradingMode(str, Enum):
    DEMO = "DEMO"
    LIVE = "LIVE"


class SessionStatus(str, Enum):
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    STOPPED = "STOPPED"
    ERROR = "ERROR"


class PositionSide(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"


class PositionStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class LogLevel(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class BacktestStatus(str, Enum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


def compute_pnl(side: PositionSide, size: float, entry_price: float, price: float) -> float:
    """
    Mark-to-market PnL of a position at a given price.

    Args:
        side: LONG or SHORT
        size: Position size in base units
        entry_price: Average entry price
        price: Mark price

    Returns:
        PnL in quote currency
    """
    if side == PositionSide.LONG:
        return size * (price - entry_price)
    return size * (entry_price - price)


class Candle(BaseModel):
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    venue: Optional[str] = None
    symbol: Optional[str] = None


class Signal(BaseModel):
    """Output of one strategy evaluation. Never persisted on its own."""
    action: Action
    confidence: float = Field(ge=0, le=100)
    strength: float = Field(default=50.0, ge=0, le=100)
    reasoning: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
    size: Optional[float] = None
    take_profit: Optional[float] = None
    stop_loss: Optional[float] = None
    target: Optional[float] = None

    @classmethod
    def hold(cls, reasoning: str, **metadata) -> "Signal":
        return cls(action=Action.HOLD, confidence=0.0, strength=0.0,
                   reasoning=reasoning, metadata=metadata)


class StrategyRecord(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    description: str = ""
    category: str = "general"
    code: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    markets: List[str] = Field(default_factory=list)
    enabled: bool = True
    weight: float = 1.0
    min_history: int = 20
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator('weight')
    @classmethod
    def _clamp_weight(cls, v: float) -> float:
        return max(0.0, min(1.0, v))


class Session(BaseModel):
    id: str = Field(default_factory=new_id)
    strategy_id: str
    mode: TradingMode
    venue: str
    symbol: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    status: SessionStatus = SessionStatus.RUNNING
    started_at: datetime = Field(default_factory=utcnow)
    stopped_at: Optional[datetime] = None


class Position(BaseModel):
    id: str = Field(default_factory=new_id)
    session_id: str
    symbol: str
    side: PositionSide
    size: float = Field(gt=0)
    entry_price: float
    current_price: float
    unrealized_pnl: float = 0.0
    realized_pnl: float = 0.0
    status: PositionStatus = PositionStatus.OPEN
    take_profit: Optional[float] = None
    stop_loss: Optional[float] = None
    target: Optional[float] = None
    opened_at: datetime = Field(default_factory=utcnow)
    closed_at: Optional[datetime] = None

    def mark(self, price: float) -> float:
        """Update current price and unrealized PnL; returns the new PnL."""
        self.current_price = price
        self.unrealized_pnl = compute_pnl(self.side, self.size, self.entry_price, price)
        return self.unrealized_pnl


class Trade(BaseModel):
    id: str = Field(default_factory=new_id)
    session_id: str
    position_id: Optional[str] = None
    symbol: str
    side: OrderSide
    size: float
    price: float
    fee: float = 0.0
    pnl: Optional[float] = None
    reason: str = ""
    mode: TradingMode = TradingMode.DEMO
    executed_at: datetime = Field(default_factory=utcnow)


class SessionLog(BaseModel):
    id: str = Field(default_factory=new_id)
    session_id: str
    level: LogLevel = LogLevel.INFO
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)


class RiskLimits(BaseModel):
    max_position_notional: float = 10000.0
    max_daily_loss: float = 1000.0
    max_open_positions: int = 5


class RiskCheckResult(BaseModel):
    allowed: bool
    reason: Optional[str] = None
    kill_switch: bool = False


class StrategyVote(BaseModel):
    name: str
    action: Action
    confidence: float
    strength: float
    weight: float
    reasoning: str = ""


class EnsembleDecision(BaseModel):
    action: Action
    confidence: float
    reasoning: List[str] = Field(default_factory=list)
    breakdown: List[StrategyVote] = Field(default_factory=list)
    buy_ratio: float = 0.0
    sell_ratio: float = 0.0


class BacktestConfig(BaseModel):
    strategy_code: str
    symbol: str
    venue: str = "hyperliquid"
    start_date: datetime
    end_date: datetime
    initial_capital: float = 10000.0
    parameters: Dict[str, Any] = Field(default_factory=dict)
    fee_rate: float = 0.0005
    slippage_rate: float = 0.0001
    interval: str = "1h"


class BacktestTrade(BaseModel):
    timestamp: datetime
    side: OrderSide
    size: float
    price: float
    fee: float
    pnl: Optional[float] = None
    reason: str = ""


class EquityPoint(BaseModel):
    timestamp: datetime
    equity: float


class DrawdownPoint(BaseModel):
    timestamp: datetime
    drawdown: float


class BacktestResult(BaseModel):
    total_return: float
    sharpe_ratio: Optional[float] = None
    sortino_ratio: Optional[float] = None
    max_drawdown: float = 0.0
    win_rate: float = 0.0
    total_trades: int = 0
    profitable_trades: int = 0
    average_win: float = 0.0
    average_loss: float = 0.0
    final_equity: float = 0.0
    equity_curve: List[EquityPoint] = Field(default_factory=list)
    drawdown_curve: List[DrawdownPoint] = Field(default_factory=list)
    trades: List[BacktestTrade] = Field(default_factory=list)


class BacktestRecord(BaseModel):
    id: str = Field(default_factory=new_id)
    strategy_id: str
    symbol: str
    venue: str
    start_date: datetime
    end_date: datetime
    parameters: Dict[str, Any] = Field(default_factory=dict)
    status: BacktestStatus = BacktestStatus.RUNNING
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    result: Optional[BacktestResult] = None
