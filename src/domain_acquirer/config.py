"""
Configuration dataclasses for the domain acquisition pipeline.

This module defines the configuration structures used throughout the system:
registrar access, rate limiting, retry logic, persistence, logging and the
acquisition workflow itself.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .enums import PrefixRetryPolicy


DYNADOT_API_URL = "https://api.dynadot.com/api3.xml"

DEFAULT_EMAIL_PREFIXES: tuple[str, ...] = (
    "sekretariat",
    "verwaltung",
    "info",
    "kontakt",
    "poststelle",
    "schulleitung",
    "rektorat",
    "rektor",
    "direktion",
    "schulverwaltung",
    "buero",
    "schule",
)

DEFAULT_VARIANT_PREFIXES: tuple[str, ...] = ("das-", "der-", "die-", "mein-")


@dataclass
class RegistrarConfig:
    """Registrar (Dynadot) API access."""

    api_key: str = ""
    base_url: str = DYNADOT_API_URL
    timeout_seconds: float = 30.0
    registration_years: int = 1


@dataclass
class RateLimitRule:
    """A single rate limit rule."""

    max_requests: int
    window_seconds: float
    min_delay_seconds: float = 0.0


@dataclass
class RateLimitConfig:
    """Rate limits for registrar commands."""

    per_command: dict[str, RateLimitRule] = field(default_factory=dict)
    global_limit: Optional[RateLimitRule] = None


@dataclass
class RetryConfig:
    """Retry behavior for idempotent registrar lookups."""

    max_retries: int = 2
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    retryable_errors: list[str] = field(
        default_factory=lambda: ["timeout", "server_error", "rate_limited", "network_error"]
    )


@dataclass
class PersistenceConfig:
    """Record store configuration."""

    store_file_path: Path
    hmac_secret: str


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class AcquisitionConfig:
    """Settings of the variant search and provisioning workflow."""

    default_tld: str = "de"
    min_domain_length: int = 4
    variant_prefixes: tuple[str, ...] = DEFAULT_VARIANT_PREFIXES
    email_prefixes: tuple[str, ...] = DEFAULT_EMAIL_PREFIXES
    bulk_forward_alias: str = "info"
    permanent_redirect: bool = True
    retry_prefix_policy: PrefixRetryPolicy = PrefixRetryPolicy.REUSE


@dataclass
class SystemConfig:
    """Main system configuration combining all sub-configurations."""

    registrar: RegistrarConfig
    rate_limits: RateLimitConfig
    retry: RetryConfig
    persistence: PersistenceConfig
    logging: LoggingConfig
    acquisition: AcquisitionConfig = field(default_factory=AcquisitionConfig)
    language: str = "de"  # 'de' or 'en'
    simulation_mode: bool = False
