"""
Centralized configuration with environment variable overrides.

Authentication policy, handoff timing, routing thresholds and model
settings all live here. Nothing is hardcoded in router or state machine
logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from billing_assistant.logging_context import session_log_handler

load_dotenv()

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(name)s] [%(session_id)s] %(levelname)s: %(message)s"


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class BusinessConfig:
    """Utility-specific settings loaded from environment or defaults."""

    name: str = os.getenv("BUSINESS_NAME", "Anytown Power & Light")
    support_line: str = os.getenv("SUPPORT_LINE", "1-800-555-0199")
    callback_sla_minutes: int = _safe_int("CALLBACK_SLA_MINUTES", "30")


@dataclass(frozen=True)
class ModelConfig:
    """LLM settings for the model-backed classifier and summarizer."""

    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    llm_temperature: float = _safe_float("LLM_TEMPERATURE", "0.0")


@dataclass(frozen=True)
class AuthConfig:
    """In-band identity verification policy."""

    max_attempts: int = _safe_int("AUTH_MAX_ATTEMPTS", "3")
    required_factors: int = _safe_int("AUTH_REQUIRED_FACTORS", "1")
    session_minutes: int = _safe_int("AUTH_SESSION_MINUTES", "30")


@dataclass(frozen=True)
class HandoffConfig:
    """Human handoff queue timing."""

    wait_seconds: float = _safe_float("HANDOFF_WAIT_SECONDS", "30.0")
    default_department: str = os.getenv("HANDOFF_DEFAULT_DEPARTMENT", "Customer Service")


@dataclass(frozen=True)
class RouterConfig:
    """Classification routing thresholds."""

    low_confidence_threshold: float = _safe_float("LOW_CONFIDENCE_THRESHOLD", "0.3")
    history_window: int = _safe_int("ROUTER_HISTORY_WINDOW", "6")
    suggestion_timeout_seconds: float = _safe_float("SUGGESTION_TIMEOUT_SECONDS", "5.0")


@dataclass(frozen=True)
class SessionConfig:
    """Session cache and durable store settings."""

    idle_ttl_minutes: int = _safe_int("SESSION_IDLE_TTL_MINUTES", "60")
    sqlite_path: str = os.getenv("SESSION_DB_PATH", "data/sessions.db")
    sweep_interval_seconds: int = _safe_int("SESSION_SWEEP_INTERVAL_SECONDS", "60")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    handoff: HandoffConfig = field(default_factory=HandoffConfig)
    router: RouterConfig = field(default_factory=RouterConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    assistant_name: str = os.getenv("ASSISTANT_NAME", "billing-assistant")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if not 0.0 <= config.model.llm_temperature <= 2.0:
        raise ValueError(
            f"LLM_TEMPERATURE must be between 0.0 and 2.0, got {config.model.llm_temperature}"
        )
    if config.auth.max_attempts < 1:
        raise ValueError(
            f"AUTH_MAX_ATTEMPTS must be >= 1, got {config.auth.max_attempts}"
        )
    if config.auth.required_factors < 1:
        raise ValueError(
            f"AUTH_REQUIRED_FACTORS must be >= 1, got {config.auth.required_factors}"
        )
    if config.auth.session_minutes < 1:
        raise ValueError(
            f"AUTH_SESSION_MINUTES must be >= 1, got {config.auth.session_minutes}"
        )
    if config.handoff.wait_seconds < 0:
        raise ValueError(
            f"HANDOFF_WAIT_SECONDS must be >= 0, got {config.handoff.wait_seconds}"
        )
    if not 0.0 <= config.router.low_confidence_threshold <= 1.0:
        raise ValueError(
            "LOW_CONFIDENCE_THRESHOLD must be between 0.0 and 1.0, "
            f"got {config.router.low_confidence_threshold}"
        )
    if config.router.history_window < 0:
        raise ValueError(
            f"ROUTER_HISTORY_WINDOW must be >= 0, got {config.router.history_window}"
        )
    if config.session.idle_ttl_minutes < 1:
        raise ValueError(
            f"SESSION_IDLE_TTL_MINUTES must be >= 1, got {config.session.idle_ttl_minutes}"
        )
    if config.session.sweep_interval_seconds < 0:
        raise ValueError(
            "SESSION_SWEEP_INTERVAL_SECONDS must be >= 0, "
            f"got {config.session.sweep_interval_seconds}"
        )
    if config.router.suggestion_timeout_seconds <= 0:
        raise ValueError(
            "SUGGESTION_TIMEOUT_SECONDS must be > 0, "
            f"got {config.router.suggestion_timeout_seconds}"
        )
    if config.business.callback_sla_minutes < 1:
        raise ValueError(
            f"CALLBACK_SLA_MINUTES must be >= 1, got {config.business.callback_sla_minutes}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[session_log_handler()],
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for '%s'", config.business.name)
    return config


# Singleton instance
settings = load_config()
