"""
Enumeration types for the domain acquisition pipeline.
"""

from enum import Enum


class DomainStatus(Enum):
    """Lifecycle status of an imported domain record."""

    PENDING = "pending"
    SEARCHING = "searching"
    FOUND = "found"
    NO_VARIANT = "no_variant"
    PURCHASING = "purchasing"
    CONFIGURING_EMAIL = "configuring_email"
    CONFIGURING_URL = "configuring_url"
    DONE = "done"
    ERROR = "error"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class RegistrarErrorCode(Enum):
    """Error codes for registrar client operations."""

    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    PARSE_ERROR = "parse_error"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    API_ERROR = "api_error"
    CONFIG_ERROR = "config_error"


class PrefixRetryPolicy(Enum):
    """How a configuration retry chooses the email prefix."""

    REUSE = "reuse"
    REPICK = "repick"
