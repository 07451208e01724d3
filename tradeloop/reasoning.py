"""
Optional external reasoning provider.

When an API key is configured the provider is asked for a JSON trading
decision based on a compact market summary. Any failure returns None and the
caller keeps the rule-based ensemble decision.
"""
import json
import re
from typing import Any, Dict, Optional

import httpx
from loguru import logger
from pydantic import ValidationError

from tradeloop.models import Action, EnsembleDecision, Signal
from tradeloop.strategies.base import StrategyContext
from tradeloop.utils import rsi, sma

JSON_OBJECT = re.compile(r'\{.*\}', re.DOTALL)

PROMPT_TEMPLATE = """You are a disciplined crypto trading assistant.

Market: {symbol}
Current price: {price:.4f}
SMA(20): {sma20}
RSI(14): {rsi14}
Funding rate: {funding}
Open position size (signed): {position}
Rule-based ensemble: {ensemble_action} at {ensemble_confidence:.0f}% confidence
Ensemble reasoning: {ensemble_reasoning}

Reply with only a JSON object:
{{"action": "BUY|SELL|HOLD", "confidence": 0-100, "reasoning": "...",
  "takeProfit": number|null, "stopLoss": number|null, "target": number|null}}"""


class ReasoningClient:
    """
    Client for an Anthropic-compatible messages endpoint.
    """

    def __init__(self, config: Dict[str, Any], transport: Optional[httpx.BaseTransport] = None):
        """
        Initialize reasoning client.

        Args:
            config: Application configuration (reads the `reasoning` section)
            transport: Optional httpx transport for tests
        """
        reasoning_config = config.get('reasoning', {})
        self.api_key = reasoning_config.get('api_key') or None
        self.api_url = reasoning_config.get('api_url', 'https://api.anthropic.com/v1/messages')
        self.model = reasoning_config.get('model', 'claude-sonnet-4-5')
        self.timeout = float(reasoning_config.get('timeout_seconds', 30))
        self.max_tokens = int(reasoning_config.get('max_tokens', 1024))
        self.enabled = bool(self.api_key)
        self._transport = transport

        if self.enabled:
            logger.info(f"ReasoningClient initialized | Model: {self.model}")
        else:
            logger.info("ReasoningClient disabled (no API key), using rule-based decisions")

    def build_prompt(
        self,
        symbol: str,
        current_price: float,
        context: StrategyContext,
        ensemble: EnsembleDecision
    ) -> str:
        closes = context.closes()
        sma20 = sma(closes, 20).iloc[-1] if len(closes) >= 20 else None
        rsi14 = rsi(closes, 14).iloc[-1] if len(closes) >= 15 else None
        return PROMPT_TEMPLATE.format(
            symbol=symbol,
            price=current_price,
            sma20=f"{sma20:.4f}" if sma20 is not None else "n/a",
            rsi14=f"{rsi14:.1f}" if rsi14 is not None else "n/a",
            funding=context.funding_rate if context.funding_rate is not None else "n/a",
            position=context.position_size,
            ensemble_action=ensemble.action.value,
            ensemble_confidence=ensemble.confidence,
            ensemble_reasoning="; ".join(ensemble.reasoning) or "none",
        )

    def parse_decision(self, text: str) -> Optional[Signal]:
        """
        Extract the first JSON object from the model's reply.

        Returns:
            Signal, or None when the reply has no usable decision
        """
        match = JSON_OBJECT.search(text or "")
        if not match:
            return None
        try:
            raw = json.loads(match.group(0))
            action = Action(str(raw.get('action', 'HOLD')).upper())
            if action == Action.CLOSE:
                action = Action.HOLD
            confidence = max(0.0, min(100.0, float(raw.get('confidence', 0))))
            return Signal(
                action=action,
                confidence=confidence,
                strength=confidence,
                reasoning=str(raw.get('reasoning', '')),
                take_profit=raw.get('takeProfit'),
                stop_loss=raw.get('stopLoss'),
                target=raw.get('target'),
                metadata={'source': 'reasoning'},
            )
        except (ValueError, TypeError, ValidationError) as e:
            logger.warning(f"Unparseable reasoning reply: {e}")
            return None

    def decide(
        self,
        symbol: str,
        current_price: float,
        context: StrategyContext,
        ensemble: EnsembleDecision
    ) -> Optional[Signal]:
        """
        Ask the provider for a decision.

        Returns:
            Signal, or None if disabled or the call fails
        """
        if not self.enabled:
            return None

        prompt = self.build_prompt(symbol, current_price, context, ensemble)
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(
                    self.api_url,
                    headers={
                        'x-api-key': self.api_key,
                        'anthropic-version': '2023-06-01',
                        'content-type': 'application/json',
                    },
                    json={
                        'model': self.model,
                        'max_tokens': self.max_tokens,
                        'messages': [{'role': 'user', 'content': prompt}],
                    },
                )
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Reasoning request failed, falling back to ensemble: {e}")
            return None

        text = "".join(
            block.get('text', '') for block in body.get('content', []) if block.get('type') == 'text'
        )
        signal = self.parse_decision(text)
        if signal is not None:
            logger.info(f"Reasoning decision | {symbol} | {signal.action.value} ({signal.confidence:.0f}%)")
        return signal
