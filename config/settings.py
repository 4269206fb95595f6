"""Market Brief configuration, read from the process environment.

``web/app.py`` calls ``load_dotenv()`` first, so a local ``.env`` file
(see ``.env.example``) feeds the same variables.

Usage:
    from config.settings import Settings
    settings = Settings()
    settings.validate()   # ValueError on a missing key or a bad limit
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, field


def _env_int(name: str, default: int) -> Callable[[], int]:
    return lambda: int(os.environ.get(name, str(default)))


@dataclass
class Settings:
    """Runtime configuration for research, extraction and the web server.

    Every field is resolved when the instance is created, so tests can
    patch ``os.environ`` or pass values directly.
    """

    # ── Credentials ─────────────────────────────────────────────────────────
    anthropic_api_key: str = field(
        default_factory=lambda: os.environ.get("ANTHROPIC_API_KEY", "")
    )

    # ── Web server ──────────────────────────────────────────────────────────
    debug: bool = field(
        default_factory=lambda: os.environ.get("FLASK_DEBUG", "0") == "1"
    )
    port: int = field(default_factory=_env_int("PORT", 5001))

    # ── Research pass ───────────────────────────────────────────────────────
    #: Cap on web sources kept per research run and hits fed to a summary.
    max_search_hits: int = field(default_factory=_env_int("MAX_SEARCH_HITS", 10))
    #: ``max_uses`` given to the web_search tool.
    max_web_searches: int = field(default_factory=_env_int("MAX_WEB_SEARCHES", 3))
    research_max_tokens: int = field(default_factory=_env_int("RESEARCH_MAX_TOKENS", 1500))
    summary_max_tokens: int = field(default_factory=_env_int("SUMMARY_MAX_TOKENS", 1200))

    # ── Brief extraction ────────────────────────────────────────────────────
    key_fact_limit: int = field(default_factory=_env_int("KEY_FACT_LIMIT", 8))
    pricing_limit: int = field(default_factory=_env_int("PRICING_LIMIT", 4))
    section_limit: int = field(default_factory=_env_int("SECTION_LIMIT", 3))
    bullet_limit: int = field(default_factory=_env_int("BULLET_LIMIT", 5))

    # ── Models ──────────────────────────────────────────────────────────────
    research_model: str = field(
        default_factory=lambda: os.environ.get("RESEARCH_MODEL", "claude-haiku-4-5")
    )
    summary_model: str = field(
        default_factory=lambda: os.environ.get("SUMMARY_MODEL", "claude-haiku-4-5")
    )

    def validate(self) -> None:
        """Raise ``ValueError`` if the API key is missing or a limit is not positive."""
        if not self.anthropic_api_key:
            raise ValueError(
                "ANTHROPIC_API_KEY environment variable is not set. "
                "Copy .env.example to .env and add your key."
            )
        for name in ("key_fact_limit", "pricing_limit", "section_limit", "bullet_limit"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1, got {getattr(self, name)}")
