"""
Tests for config/settings.py

Run with: pytest tests/test_settings.py
"""

import pytest

from config.settings import Settings
from market_brief.extractors import ExtractionLimits


class TestSettings:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("KEY_FACT_LIMIT", "5")
        monkeypatch.setenv("FLASK_DEBUG", "1")
        monkeypatch.setenv("SUMMARY_MODEL", "claude-test")
        settings = Settings()
        assert settings.key_fact_limit == 5
        assert settings.debug is True
        assert settings.summary_model == "claude-test"

    def test_limits_flow_into_extraction(self):
        settings = Settings(key_fact_limit=2, pricing_limit=1, section_limit=4, bullet_limit=6)
        limits = ExtractionLimits.from_settings(settings)
        assert (limits.key_facts, limits.pricing_highlights) == (2, 1)
        assert (limits.sections, limits.bullets_per_section) == (4, 6)

    def test_missing_key_fails_validation(self):
        with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
            Settings(anthropic_api_key="").validate()

    def test_non_positive_limit_fails_validation(self):
        with pytest.raises(ValueError, match="section_limit"):
            Settings(anthropic_api_key="k", section_limit=0).validate()

    def test_valid_settings_pass(self):
        Settings(anthropic_api_key="k").validate()
