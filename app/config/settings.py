"""
Process-wide configuration for the call relay.

Settings are read once at startup from the environment (after loading a local
``.env`` file) and returned as frozen dataclasses. The relay and the HTTP layer
receive them explicitly instead of looking up environment variables themselves.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from app.config.constants import (
    DEFAULT_BASE_DELAY,
    DEFAULT_HANDSHAKE_TIMEOUT,
    DEFAULT_HOST,
    DEFAULT_MAX_DELAY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_PORT,
    DEFAULT_REALTIME_MODEL,
    DEFAULT_REALTIME_URL,
    DEFAULT_SYSTEM_MESSAGE,
    DEFAULT_TEMPERATURE,
    DEFAULT_VOICE,
    MAX_TEMPERATURE,
    MIN_TEMPERATURE,
)


class ConfigurationError(ValueError):
    """Raised when required configuration is missing or malformed."""


@dataclass(frozen=True)
class RealtimeSettings:
    """Upstream OpenAI Realtime API configuration."""

    api_key: str
    model: str = DEFAULT_REALTIME_MODEL
    url: str = DEFAULT_REALTIME_URL
    organization: Optional[str] = None
    voice: str = DEFAULT_VOICE
    instructions: str = DEFAULT_SYSTEM_MESSAGE
    temperature: float = DEFAULT_TEMPERATURE
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    handshake_timeout: float = DEFAULT_HANDSHAKE_TIMEOUT


@dataclass(frozen=True)
class TwilioSettings:
    """Twilio credentials and the public domain Twilio should call back."""

    account_sid: Optional[str] = None
    auth_token: Optional[str] = None
    phone_number_from: Optional[str] = None
    domain: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.phone_number_from)


@dataclass(frozen=True)
class Settings:
    """Top-level application settings."""

    realtime: RealtimeSettings
    twilio: TwilioSettings = TwilioSettings()
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"


def _first(env: Mapping[str, str], *keys: str) -> Optional[str]:
    for key in keys:
        value = env.get(key)
        if value:
            return value.strip()
    return None


def _get_int(env: Mapping[str, str], key: str, default: int) -> int:
    value = env.get(key)
    if not value:
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be an integer, got {value!r}") from e


def _get_float(env: Mapping[str, str], key: str, default: float) -> float:
    value = env.get(key)
    if not value:
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be a number, got {value!r}") from e


def _normalize_domain(value: Optional[str]) -> Optional[str]:
    """Strip any scheme and trailing slash so the value can be used in wss:// and https:// URLs."""
    if not value:
        return None
    for prefix in ("https://", "http://", "wss://", "ws://"):
        if value.startswith(prefix):
            value = value[len(prefix):]
    return value.rstrip("/") or None


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build the application settings.

    Args:
        env: Mapping to read from. Defaults to ``os.environ`` after loading ``.env``.

    Returns:
        Settings: The validated, immutable settings

    Raises:
        ConfigurationError: If OPENAI_API_KEY is missing or a numeric value is malformed
            or out of range
    """
    if env is None:
        env_path = Path(".") / ".env"
        if env_path.exists():
            load_dotenv(env_path)
        env = os.environ

    api_key = _first(env, "OPENAI_API_KEY")
    if not api_key:
        raise ConfigurationError("OPENAI_API_KEY is required")

    max_retries = _get_int(env, "UPSTREAM_MAX_RETRIES", DEFAULT_MAX_RETRIES)
    if max_retries < 1:
        raise ConfigurationError("UPSTREAM_MAX_RETRIES must be at least 1")

    temperature = _get_float(env, "TEMPERATURE", DEFAULT_TEMPERATURE)
    if not MIN_TEMPERATURE <= temperature <= MAX_TEMPERATURE:
        raise ConfigurationError(
            f"TEMPERATURE must be between {MIN_TEMPERATURE} and {MAX_TEMPERATURE}, got {temperature}"
        )

    realtime = RealtimeSettings(
        api_key=api_key,
        model=_first(env, "OPENAI_REALTIME_MODEL") or DEFAULT_REALTIME_MODEL,
        url=_first(env, "OPENAI_REALTIME_URL") or DEFAULT_REALTIME_URL,
        organization=_first(env, "OPENAI_ORG_ID"),
        voice=_first(env, "VOICE") or DEFAULT_VOICE,
        instructions=_first(env, "SYSTEM_MESSAGE") or DEFAULT_SYSTEM_MESSAGE,
        temperature=temperature,
        max_retries=max_retries,
        base_delay=_get_float(env, "UPSTREAM_BASE_DELAY", DEFAULT_BASE_DELAY),
        max_delay=_get_float(env, "UPSTREAM_MAX_DELAY", DEFAULT_MAX_DELAY),
        handshake_timeout=_get_float(env, "UPSTREAM_HANDSHAKE_TIMEOUT", DEFAULT_HANDSHAKE_TIMEOUT),
    )

    twilio = TwilioSettings(
        account_sid=_first(env, "TWILIO_ACCOUNT_SID"),
        auth_token=_first(env, "TWILIO_AUTH_TOKEN"),
        phone_number_from=_first(env, "PHONE_NUMBER_FROM", "TWILIO_PHONE_NUMBER"),
        domain=_normalize_domain(_first(env, "DOMAIN", "SERVER_URL")),
    )

    return Settings(
        realtime=realtime,
        twilio=twilio,
        host=_first(env, "HOST") or DEFAULT_HOST,
        port=_get_int(env, "PORT", DEFAULT_PORT),
        log_level=(_first(env, "LOG_LEVEL") or "INFO").upper(),
    )
