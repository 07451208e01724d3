"""
Exception types raised across the engine.

HTTP handlers map these onto status codes; the session tick loop uses them to
decide whether a failure halts a session or is just logged.
"""


class TradeLoopError(Exception):
    """Base class for all engine errors."""


class ClientInputError(TradeLoopError):
    """Malformed or missing caller input."""


class NotFoundError(TradeLoopError):
    """Referenced strategy, session, backtest or position does not exist."""


class SessionStateError(TradeLoopError):
    """Operation not valid in the session's current state."""


class SessionAlreadyRunningError(SessionStateError):
    """A tick handle is already registered for this session id."""


class DataUnavailableError(TradeLoopError):
    """Market data could not be obtained for the requested window."""


class TransientIOError(TradeLoopError):
    """Retryable failure talking to a venue or external service."""


class UnknownStrategyError(TradeLoopError):
    """Strategy code is not present in the registry."""


class LedgerError(TradeLoopError):
    """Invalid ledger operation (bad size, closed position, ...)."""


class InsufficientBalanceError(LedgerError):
    """Simulated balance is below the minimum required to open."""


class LiveTradingUnavailableError(TradeLoopError):
    """Live order routing is disabled or the venue cannot sign orders."""


class RiskRejected(TradeLoopError):
    """
    A proposed trade failed the risk gate.

    Args:
        reason: Human-readable rejection reason
        kill_switch: Whether the session must be halted
    """

    def __init__(self, reason: str, kill_switch: bool = False):
        super().__init__(reason)
        self.reason = reason
        self.kill_switch = kill_switch


class KillSwitchTriggered(RiskRejected):
    """Risk rejection that halts the session."""

    def __init__(self, reason: str):
        super().__init__(reason, kill_switch=True)
