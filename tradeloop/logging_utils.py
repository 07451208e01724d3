"""
Loguru sink setup and structured log helpers for trades, signals and errors.

The trades sink only receives messages carrying the TRADE or ORDER marker that
log_trade() and the orchestrator's order routing write.
"""
import sys
from pathlib import Path
from typing import Any, Dict

from loguru import logger

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"
CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{module}</cyan>:<cyan>{function}</cyan> | "
    "<level>{message}</level>"
)
TRADE_MARKERS = ("TRADE", "ORDER")


def _is_trade_record(record) -> bool:
    return any(marker in record["message"] for marker in TRADE_MARKERS)


def setup_logging(
    logs_dir: str,
    level: str = "INFO",
    rotation: str = "1 day",
    retention: str = "30 days",
    format_type: str = "text",
    enable_console: bool = True
) -> None:
    """
    Replace loguru's default handler with console and rotating file sinks.

    Files written under logs_dir: runtime.log (INFO+), errors.log (ERROR+),
    trades.log (fills and orders) and, at DEBUG level, debug.log.

    Args:
        logs_dir: Directory for log files
        level: Console level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        rotation: When to rotate files (e.g. "1 day", "500 MB")
        retention: How long to keep runtime logs
        format_type: "json" serializes records, anything else is plain text
        enable_console: Also log to stdout
    """
    log_path = Path(logs_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    serialize = format_type == "json"

    logger.remove()

    if enable_console:
        logger.add(sys.stdout, format=CONSOLE_FORMAT, level=level,
                   colorize=not serialize, serialize=serialize, enqueue=True)

    # file name -> (minimum level, retention, record filter)
    sinks: Dict[str, tuple] = {
        "runtime.log": ("INFO", retention, None),
        "errors.log": ("ERROR", "60 days", None),
        "trades.log": ("INFO", "90 days", _is_trade_record),
    }
    if level == "DEBUG":
        sinks["debug.log"] = ("DEBUG", "7 days", None)

    for filename, (sink_level, sink_retention, sink_filter) in sinks.items():
        logger.add(
            str(log_path / filename),
            format=FILE_FORMAT,
            level=sink_level,
            rotation=rotation,
            retention=sink_retention,
            compression="zip",
            enqueue=True,
            serialize=serialize,
            filter=sink_filter,
        )

    logger.info(f"Logging initialized | Level: {level}, Dir: {logs_dir}, Format: {format_type}")


def setup_from_config(config: Dict[str, Any]) -> None:
    """Configure sinks from the `logging` section of a loaded config."""
    cfg = config.get('logging', {})
    setup_logging(
        logs_dir=cfg.get('logs_dir', './logs'),
        level=str(cfg.get('level', 'INFO')).upper(),
        rotation=cfg.get('rotation', '1 day'),
        retention=cfg.get('retention', '30 days'),
        format_type=cfg.get('format_type', 'text'),
        enable_console=bool(cfg.get('enable_console', True)),
    )


def _fields(kwargs: Dict[str, Any]) -> str:
    return "".join(f" | {k}={v}" for k, v in kwargs.items() if v is not None)


def log_trade(action: str, symbol: str, size: float, price: float, **kwargs) -> None:
    """
    Log a simulated or routed fill.

    Args:
        action: BUY or SELL
        symbol: Instrument
        size: Quantity in base units
        price: Fill price
        **kwargs: Extra key=value fields (session, fee, pnl, ...)
    """
    logger.info(f"TRADE | {action} | {symbol} | size={size:.6f} | price={price:.4f}{_fields(kwargs)}")


def log_signal(strategy: str, symbol: str, action: str, strength: float, confidence: float, reason: str) -> None:
    logger.debug(
        f"SIGNAL | {strategy} | {symbol} | {action} | "
        f"strength={strength:.1f} | confidence={confidence:.1f} | {reason}"
    )


def log_error_with_context(error: Exception, context: str, **kwargs) -> None:
    """
    Log an exception with its traceback and key=value context.

    Args:
        error: The exception
        context: What was being attempted
        **kwargs: Identifiers such as session or backtest id
    """
    logger.opt(exception=error).error(f"{context} | {type(error).__name__}: {error}{_fields(kwargs)}")
