from __future__ import annotations

import json

import httpx
import pytest

from tradeloop.models import Action, EnsembleDecision
from tradeloop.reasoning import ReasoningClient
from tradeloop.strategies import StrategyContext


@pytest.fixture
def ensemble():
    return EnsembleDecision(action=Action.BUY, confidence=72.0, reasoning=["SMA Crossover: BUY"])


@pytest.fixture
def context():
    return StrategyContext(price_history=[100.0 + i for i in range(30)], funding_rate=0.0001)


def _client(handler):
    config = {'reasoning': {'api_key': 'test-key', 'api_url': 'https://reasoning.test/v1/messages'}}
    return ReasoningClient(config, transport=httpx.MockTransport(handler))


def test_disabled_without_key(context, ensemble):
    client = ReasoningClient({})
    assert not client.enabled
    assert client.decide("BTC", 130.0, context, ensemble) is None


def test_decision_from_reply(context, ensemble):
    seen = {}

    def handler(request):
        seen['headers'] = request.headers
        seen['body'] = json.loads(request.content)
        text = 'Sure. {"action": "sell", "confidence": 140, "reasoning": "overextended", "stopLoss": 133}'
        return httpx.Response(200, json={'content': [{'type': 'text', 'text': text}]})

    signal = _client(handler).decide("BTC", 130.0, context, ensemble)

    assert seen['headers']['x-api-key'] == 'test-key'
    assert "Market: BTC" in seen['body']['messages'][0]['content']
    assert signal.action == Action.SELL
    assert signal.confidence == 100.0
    assert signal.stop_loss == 133
    assert signal.metadata['source'] == 'reasoning'


def test_failure_falls_back(context, ensemble):
    client = _client(lambda request: httpx.Response(500))
    assert client.decide("BTC", 130.0, context, ensemble) is None


@pytest.mark.parametrize("text", ["no json here", '{"action": "MOON"}', '{"confidence": "high"}'])
def test_unusable_replies(text):
    assert ReasoningClient({}).parse_decision(text) is None


def test_close_is_not_accepted_from_provider():
    signal = ReasoningClient({}).parse_decision('{"action": "CLOSE", "confidence": 60}')
    assert signal.action == Action.HOLD
