"""Tests de validación de Settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from backend.shared.config.settings import Settings, normalize_symbol


class TestNormalizeSymbol:
    @pytest.mark.parametrize("raw, expected", [
        ("ETHUSDT", "ethusdt"),
        ("  btcusdt ", "btcusdt"),
        ("eth-usdt", None),
        ("eth", None),
        ("", None),
        (None, None),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_symbol(raw) == expected


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.symbol == "ethusdt"
        assert settings.interval == "1m"
        assert settings.historical_limit == 300
        assert settings.max_candles_buffer == 500
        assert settings.ws_reconnect_delay == 3.0
        assert settings.signal_policy == "threshold"
        assert settings.seed_with_provisional is False

    def test_symbol_lowercased_and_added_to_instruments(self):
        settings = Settings(_env_file=None, symbol="ADAUSDT", available_instruments=["btcusdt"])
        assert settings.symbol == "adausdt"
        assert settings.available_instruments == ["adausdt", "btcusdt"]

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("EMA_SHORT_PERIOD", "5")
        monkeypatch.setenv("SIGNAL_POLICY", "strict")
        settings = Settings(_env_file=None)
        assert settings.ema_short_period == 5
        assert settings.signal_policy == "strict"

    @pytest.mark.parametrize("overrides", [
        {"ema_short_period": 21, "ema_long_period": 9},
        {"rsi_period": 0},
        {"rsi_buy_ceiling": 120.0},
        {"rsi_band_low": 70.0, "rsi_band_high": 50.0},
        {"interval": "7m"},
        {"symbol": "not a symbol"},
        {"historical_limit": 5000},
        {"risk_stop_pct": 1.5},
        {"signal_policy": "aggressive"},
        {"pattern_min_history": 20},
    ])
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **overrides)

    def test_pattern_history_above_window_accepted(self):
        assert Settings(_env_file=None, pattern_min_history=80).pattern_min_history == 80
