"""Process configuration loaded from the environment (and a local ``.env``)."""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://simplyconvert.com/api/v2"

# 150 creates per minute
DEFAULT_PACE_MS = 400
DEFAULT_PAGE_SIZE = 100
DEFAULT_PAGE_DELAY_MS = 200
DEFAULT_MAX_PAGES = 100
DEFAULT_TIMEOUT = 30
DEFAULT_LOOKUP_WORKERS = 10


class ConfigurationError(ValueError):
    """Raised when required configuration is missing or malformed."""


@dataclass(frozen=True)
class DefaultOverrides:
    """Values forced onto every outgoing case payload.

    Each value is optional; only present (non-empty) values are applied and
    they replace whatever the row supplied.
    """

    company_uuid: Optional[str] = None
    referred_from_company_uuid: Optional[str] = None
    tags: Optional[str] = None
    counsel: Optional[str] = None
    feesplit: Optional[str] = None
    totalfee: Optional[str] = None

    def as_payload(self) -> dict:
        """Payload keys contributed by the configured overrides."""
        payload: dict = {}
        if self.company_uuid:
            payload["company_uuid"] = self.company_uuid
        if self.referred_from_company_uuid:
            payload["referred_from_company_uuid"] = self.referred_from_company_uuid
        if self.tags:
            payload["tags"] = [self.tags]
        if self.counsel:
            payload["counsel"] = self.counsel
        if self.feesplit:
            payload["feesplit"] = self.feesplit
        if self.totalfee:
            payload["totalfee"] = self.totalfee
        return payload

    @classmethod
    def from_env(cls) -> "DefaultOverrides":
        return cls(
            company_uuid=_env_str("COMPANY_UUID"),
            referred_from_company_uuid=_env_str("REFERRED_FROM_COMPANY_UUID"),
            tags=_env_str("TAGS"),
            counsel=_env_str("COUNSEL"),
            feesplit=_env_str("FEESPLIT"),
            totalfee=_env_str("TOTALFEE"),
        )


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the case bridge."""

    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    overrides: DefaultOverrides = field(default_factory=DefaultOverrides)
    pace_ms: int = DEFAULT_PACE_MS
    page_size: int = DEFAULT_PAGE_SIZE
    page_delay_ms: int = DEFAULT_PAGE_DELAY_MS
    max_pages: int = DEFAULT_MAX_PAGES
    timeout: int = DEFAULT_TIMEOUT
    lookup_workers: int = DEFAULT_LOOKUP_WORKERS


def _env_str(name: str) -> Optional[str]:
    """Read an env var, treating blank values as unset."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = _env_str(name)
    if value is None:
        return default
    try:
        number = int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if number < 0:
        raise ConfigurationError(f"{name} must not be negative, got {number}")
    return number


def load_settings(require_api_key: bool = True, env_file: Optional[str] = None) -> Settings:
    """Load settings from the environment.

    Args:
        require_api_key: Fail if CASE_API_KEY is not set
        env_file: Optional explicit .env path (defaults to dotenv discovery)

    Returns:
        Settings instance

    Raises:
        ConfigurationError: If a required value is missing or malformed
    """
    load_dotenv(env_file)

    api_key = _env_str("CASE_API_KEY")
    if require_api_key and not api_key:
        raise ConfigurationError("CASE_API_KEY is required")

    settings = Settings(
        api_key=api_key,
        base_url=_env_str("CASE_API_BASE_URL") or DEFAULT_BASE_URL,
        overrides=DefaultOverrides.from_env(),
        pace_ms=_env_int("RATE_LIMIT_DELAY_MS", DEFAULT_PACE_MS),
        page_size=_env_int("PAGE_SIZE", DEFAULT_PAGE_SIZE),
        page_delay_ms=_env_int("PAGE_DELAY_MS", DEFAULT_PAGE_DELAY_MS),
        max_pages=_env_int("MAX_PAGES", DEFAULT_MAX_PAGES),
        timeout=_env_int("REQUEST_TIMEOUT", DEFAULT_TIMEOUT),
        lookup_workers=_env_int("LOOKUP_WORKERS", DEFAULT_LOOKUP_WORKERS),
    )

    if settings.page_size == 0:
        raise ConfigurationError("PAGE_SIZE must be at least 1")
    if settings.max_pages == 0:
        raise ConfigurationError("MAX_PAGES must be at least 1")

    logger.debug(
        "Settings loaded",
        extra={
            "base_url": settings.base_url,
            "pace_ms": settings.pace_ms,
            "page_size": settings.page_size,
            "max_pages": settings.max_pages,
            "overrides": sorted(settings.overrides.as_payload()),
        },
    )
    return settings
