from __future__ import annotations

from pathlib import Path

import pytest

from tradeloop.config import get_config_value, load_config, resolve_env_vars


def test_resolve_env_vars_types_single_placeholders(monkeypatch):
    monkeypatch.setenv("MAX_OPEN_POSITIONS", "7")
    monkeypatch.setenv("ENABLE_LIVE_TRADING", "true")
    monkeypatch.delenv("MISSING_VAR", raising=False)

    resolved = resolve_env_vars({
        'count': "${MAX_OPEN_POSITIONS:5}",
        'live': "${ENABLE_LIVE_TRADING:false}",
        'fallback': "${MISSING_VAR:0.25}",
        'url': "http://${MISSING_VAR:localhost}:8000",
        'items': ["${MISSING_VAR:}"],
    })

    assert resolved == {
        'count': 7,
        'live': True,
        'fallback': 0.25,
        'url': "http://localhost:8000",
        'items': [""],
    }


def test_load_config_merges_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("MAX_DAILY_LOSS_USD", "250")
    path = tmp_path / "config.yaml"
    path.write_text(
        "risk:\n"
        "  max_daily_loss: ${MAX_DAILY_LOSS_USD:1000}\n"
        "ledger:\n"
        "  initial_balance: 5000\n",
        encoding="utf-8",
    )

    config = load_config(str(path), load_env_file=False)

    assert config['risk']['max_daily_loss'] == 250
    assert config['risk']['max_open_positions'] == 5
    assert config['ledger']['initial_balance'] == 5000
    assert get_config_value(config, 'ensemble.vote_floor') == 0.35
    assert get_config_value(config, 'ensemble.nope', 'x') == 'x'


def test_missing_explicit_config_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nope.yaml"), load_env_file=False)


def test_invalid_limits_rejected(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("risk:\n  max_open_positions: 0\n", encoding="utf-8")
    with pytest.raises(ValueError, match="max_open_positions"):
        load_config(str(path), load_env_file=False)


def test_shipped_config_loads(monkeypatch):
    monkeypatch.delenv("TRADELOOP_CONFIG", raising=False)
    config = load_config(str(Path(__file__).parent.parent / "config" / "config.yaml"), load_env_file=False)
    assert config['venues']['hyperliquid']['api_url'].startswith("http")
    assert config['session']['tick_interval_seconds'] == 5
