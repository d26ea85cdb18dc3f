"""
GEO Tracker Configuration
=========================

All settings come from environment variables or a .env file.
Values are read when the config object is created, so tests can
build a fresh TrackerConfig after patching the environment.
"""

import os
import re
from dataclasses import dataclass, field
from typing import Optional
from dotenv import load_dotenv
import structlog

logger = structlog.get_logger(__name__)

load_dotenv()

DEFAULT_PLAUSIBLE_ENDPOINT = "https://plausible.io/api/event"
DEFAULT_TRACKED_DOMAIN = "developmentseed.org"
DEFAULT_CSV_PATH = "data/geo-tracking.csv"

_DOMAIN_PATTERN = re.compile(r"^[a-zA-Z0-9]([a-zA-Z0-9-]*\.)+[a-zA-Z]{2,}$")


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


@dataclass
class TrackerConfig:
    """Configuration for a tracking run"""

    # LLM providers
    perplexity_api_key: str = field(default_factory=lambda: os.getenv("PERPLEXITY_API_KEY", ""))
    google_ai_api_key: str = field(default_factory=lambda: os.getenv("GOOGLE_AI_API_KEY", ""))
    openai_api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    anthropic_api_key: str = field(default_factory=lambda: os.getenv("ANTHROPIC_API_KEY", ""))

    # Plausible analytics
    plausible_domain: str = field(default_factory=lambda: os.getenv("PLAUSIBLE_DOMAIN", ""))
    plausible_endpoint: str = field(
        default_factory=lambda: os.getenv("PLAUSIBLE_API_ENDPOINT", DEFAULT_PLAUSIBLE_ENDPOINT)
    )

    # Brand being measured
    tracked_domain: str = field(
        default_factory=lambda: os.getenv("TRACKED_DOMAIN", DEFAULT_TRACKED_DOMAIN)
    )

    # Output
    csv_path: str = field(default_factory=lambda: os.getenv("GEO_CSV_PATH", DEFAULT_CSV_PATH))

    # Query every search term instead of only the first one
    per_term_expansion: bool = field(default_factory=lambda: _env_flag("PER_TERM_EXPANSION"))

    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    @property
    def enabled_providers(self) -> list[str]:
        """Names of providers whose API key is present"""
        keys = {
            "Perplexity": self.perplexity_api_key,
            "Gemini": self.google_ai_api_key,
            "ChatGPT": self.openai_api_key,
            "Claude": self.anthropic_api_key,
        }
        return [name for name, key in keys.items() if key]

    def errors(self) -> list[str]:
        """Return every configuration problem found"""
        errors = []

        if not self.plausible_domain:
            errors.append("PLAUSIBLE_DOMAIN is required")
        elif not _DOMAIN_PATTERN.match(self.plausible_domain):
            errors.append(f"Invalid PLAUSIBLE_DOMAIN format: {self.plausible_domain!r}")

        if not self.tracked_domain:
            errors.append("TRACKED_DOMAIN must not be empty")

        if not self.csv_path:
            errors.append("GEO_CSV_PATH must not be empty")

        return errors

    def validate(self) -> bool:
        """Validate configuration.

        Returns:
            True if configuration is valid
        """
        errors = self.errors()
        if errors:
            for error in errors:
                logger.error("config_validation_error", error=error)
            return False

        logger.info("config_validated")
        return True

    def log_configuration(self):
        """Log configuration (with secrets masked)."""
        logger.info(
            "configuration_loaded",
            perplexity_api_key=self._mask_secret(self.perplexity_api_key),
            google_ai_api_key=self._mask_secret(self.google_ai_api_key),
            openai_api_key=self._mask_secret(self.openai_api_key),
            anthropic_api_key=self._mask_secret(self.anthropic_api_key),
            plausible_domain=self.plausible_domain or "(not configured)",
            plausible_endpoint=self.plausible_endpoint,
            tracked_domain=self.tracked_domain,
            csv_path=self.csv_path,
            per_term_expansion=self.per_term_expansion,
            log_level=self.log_level,
        )

    @staticmethod
    def _mask_secret(value: str) -> str:
        """Mask secret values for logging.

        Args:
            value: Secret value

        Returns:
            Masked value (first 4 chars + ***)
        """
        if not value:
            return ""
        if len(value) <= 4:
            return "***"
        return f"{value[:4]}***"


# Global configuration instance
_config: Optional[TrackerConfig] = None


def get_config() -> TrackerConfig:
    """Get the tracker configuration singleton"""
    global _config
    if _config is None:
        _config = TrackerConfig()
    return _config


def reset_config() -> None:
    """Reset configuration (useful for testing)"""
    global _config
    _config = None
