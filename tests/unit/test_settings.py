"""Unit tests for settings configuration."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from genplan.config.settings import CoreSettings, Settings, load_settings


class TestCoreSettings:
    """Test CoreSettings instantiation and defaults."""

    def test_default_values(self):
        """Test that CoreSettings has sensible defaults."""
        clean_env = {k: v for k, v in os.environ.items() if k not in ("LOG_LEVEL", "JSON_LOGS")}
        with patch.dict(os.environ, clean_env, clear=True):
            settings = CoreSettings()
            assert settings.gemini_api_key is None
            assert settings.ai_model_pro == "gemini-2.5-pro"
            assert settings.ai_model_imagen == "imagen-4.0-generate-001"
            assert settings.ai_model_speech == "gemini-2.5-flash-preview-tts"
            assert settings.default_max_output_tokens == 8192
            assert settings.default_thinking_budget == 8192
            assert settings.retry_max_attempts == 3
            assert settings.retry_initial_delay == 2.0
            assert settings.poll_interval_seconds == 10.0
            assert settings.poll_max_attempts is None
            assert settings.log_level == "INFO"
            assert settings.json_logs is False

    def test_settings_is_core_settings(self):
        assert Settings is CoreSettings

    def test_load_settings(self):
        assert isinstance(load_settings(), CoreSettings)

    def test_gemini_api_key_preferred(self):
        with patch.dict(os.environ, {"GEMINI_API_KEY": "primary", "API_KEY": "fallback"}):
            assert load_settings().gemini_api_key == "primary"

    def test_api_key_fallback(self):
        with patch.dict(os.environ, {"API_KEY": "fallback"}):
            assert load_settings().gemini_api_key == "fallback"

    def test_repr_masks_key(self):
        with patch.dict(os.environ, {"GEMINI_API_KEY": "super-secret-value"}):
            settings = load_settings()
        assert "super-secret-value" not in repr(settings)
        assert "super-secret-value" not in str(settings)
        assert "<18 chars>" in repr(settings)

    def test_log_level_normalized(self):
        with patch.dict(os.environ, {"LOG_LEVEL": " warning "}):
            assert load_settings().log_level == "WARNING"

    def test_invalid_log_level(self):
        with patch.dict(os.environ, {"LOG_LEVEL": "VERBOSE"}):
            with pytest.raises(ValidationError):
                load_settings()

    @pytest.mark.parametrize("value,expected", [("true", True), ("1", True), ("no", False), ("", False)])
    def test_json_logs_parsing(self, value, expected):
        with patch.dict(os.environ, {"JSON_LOGS": value}):
            assert load_settings().json_logs is expected

    def test_empty_poll_max_attempts_is_unset(self):
        with patch.dict(os.environ, {"POLL_MAX_ATTEMPTS": ""}):
            assert load_settings().poll_max_attempts is None

    def test_poll_max_attempts_from_env(self):
        with patch.dict(os.environ, {"POLL_MAX_ATTEMPTS": "60"}):
            assert load_settings().poll_max_attempts == 60

    def test_token_budget_lower_bound(self):
        with patch.dict(os.environ, {"DEFAULT_MAX_OUTPUT_TOKENS": "10"}):
            with pytest.raises(ValidationError):
                load_settings()
