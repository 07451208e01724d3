"""
Strategy registry. Strategies register themselves under a code; sessions and
backtests refer to strategies by that code.
"""
from typing import Callable, Dict, List, Optional, Type

from tradeloop.errors import UnknownStrategyError
from tradeloop.strategies.base import Strategy

# Pseudo-code selecting every registered strategy as one ensemble
ENSEMBLE_CODE = "ensemble"

_REGISTRY: Dict[str, Type[Strategy]] = {}


def register_strategy(code: str) -> Callable[[Type[Strategy]], Type[Strategy]]:
    """Class decorator adding a strategy implementation under `code`."""
    def decorator(cls: Type[Strategy]) -> Type[Strategy]:
        if code == ENSEMBLE_CODE:
            raise ValueError(f"'{ENSEMBLE_CODE}' is reserved")
        cls.code = code
        _REGISTRY[code] = cls
        return cls
    return decorator


def available_strategies() -> List[str]:
    return sorted(_REGISTRY)


def is_known(code: str) -> bool:
    return code == ENSEMBLE_CODE or code in _REGISTRY


def build_strategy(code: str, params: Optional[Dict] = None) -> Strategy:
    """
    Instantiate a registered strategy.

    Args:
        code: Registry key
        params: Strategy parameters

    Returns:
        Strategy instance

    Raises:
        UnknownStrategyError: If nothing is registered under `code`
    """
    cls = _REGISTRY.get(code)
    if cls is None:
        raise UnknownStrategyError(f"Unknown strategy: {code}")
    return cls(params or {})


def build_strategies(code: str, params: Optional[Dict] = None) -> List[Strategy]:
    """Strategies behind a code; the ensemble code expands to all of them."""
    if code == ENSEMBLE_CODE:
        return [build_strategy(c, params) for c in available_strategies()]
    return [build_strategy(code, params)]
