"""
Domain Acquirer - bulk domain variant search, purchase and forwarding.

This package imports organization names, finds an available spelling variant
of each organization's domain at the registrar (Dynadot), and after operator
approval purchases it and configures email and URL forwarding.
"""

__version__ = "0.1.0"
__author__ = "Domain Acquirer Team"

from domain_acquirer.exceptions import (
    AcquisitionError,
    ValidationError,
    RegistrarError,
    NotFoundError,
    StoreError,
    TamperingError,
)
from domain_acquirer.enums import (
    DomainStatus,
    LogLevel,
    RegistrarErrorCode,
    PrefixRetryPolicy,
)
from domain_acquirer.config import (
    RegistrarConfig,
    RateLimitRule,
    RateLimitConfig,
    RetryConfig,
    PersistenceConfig,
    LoggingConfig,
    AcquisitionConfig,
    SystemConfig,
)
from domain_acquirer.models import (
    ImportedDomain,
    OperatorSettings,
    SearchResult,
    OperationResult,
    RegisteredDomain,
    EmailForward,
    BatchSearchResult,
    BulkForwardEntry,
    BulkForwardResult,
    ImportSummary,
)
from domain_acquirer.normalizer import (
    normalize_org_name,
    is_import_worthy,
)
from domain_acquirer.variants import (
    split_domain,
    generate_variants,
)
from domain_acquirer.audit_logger import (
    AuditLogger,
    LogEntry,
)
from domain_acquirer.rate_limiter import (
    RateLimiter,
    RateLimitStatus,
)
from domain_acquirer.retry_manager import (
    RetryManager,
    RetryOutcome,
)
from domain_acquirer.registrar_client import (
    Registrar,
    DynadotClient,
)
from domain_acquirer.prober import (
    AvailabilityProber,
    ProbeOutcome,
)
from domain_acquirer.prefix_selector import (
    EmailPrefixSelector,
)
from domain_acquirer.record_store import (
    RecordStore,
    InMemoryRecordStore,
    JsonRecordStore,
)
from domain_acquirer.state_machine import (
    AcquisitionStateMachine,
    ALLOWED_TRANSITIONS,
)
from domain_acquirer.importer import (
    CsvTable,
    DomainImporter,
    parse_csv,
)
from domain_acquirer.batch import (
    BatchCoordinator,
)
from domain_acquirer.i18n import (
    get_message,
    status_label,
    get_missing_translations,
    validate_translations,
    TRANSLATIONS,
    SUPPORTED_LANGUAGES,
    DEFAULT_LANGUAGE,
)
from domain_acquirer.cli import (
    main as cli_main,
    create_parser,
    create_default_config,
    load_config_from_file,
    save_config_to_file,
)

__all__ = [
    # Exceptions
    "AcquisitionError",
    "ValidationError",
    "RegistrarError",
    "NotFoundError",
    "StoreError",
    "TamperingError",
    # Enums
    "DomainStatus",
    "LogLevel",
    "RegistrarErrorCode",
    "PrefixRetryPolicy",
    # Configuration
    "RegistrarConfig",
    "RateLimitRule",
    "RateLimitConfig",
    "RetryConfig",
    "PersistenceConfig",
    "LoggingConfig",
    "AcquisitionConfig",
    "SystemConfig",
    # Models
    "ImportedDomain",
    "OperatorSettings",
    "SearchResult",
    "OperationResult",
    "RegisteredDomain",
    "EmailForward",
    "BatchSearchResult",
    "BulkForwardEntry",
    "BulkForwardResult",
    "ImportSummary",
    # Normalization and variants
    "normalize_org_name",
    "is_import_worthy",
    "split_domain",
    "generate_variants",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # Rate Limiter
    "RateLimiter",
    "RateLimitStatus",
    # Retry Manager
    "RetryManager",
    "RetryOutcome",
    # Registrar
    "Registrar",
    "DynadotClient",
    # Prober
    "AvailabilityProber",
    "ProbeOutcome",
    # Prefix Selector
    "EmailPrefixSelector",
    # Record Store
    "RecordStore",
    "InMemoryRecordStore",
    "JsonRecordStore",
    # State Machine
    "AcquisitionStateMachine",
    "ALLOWED_TRANSITIONS",
    # Importer
    "CsvTable",
    "DomainImporter",
    "parse_csv",
    # Batch Coordinator
    "BatchCoordinator",
    # I18n
    "get_message",
    "status_label",
    "get_missing_translations",
    "validate_translations",
    "TRANSLATIONS",
    "SUPPORTED_LANGUAGES",
    "DEFAULT_LANGUAGE",
    # CLI
    "cli_main",
    "create_parser",
    "create_default_config",
    "load_config_from_file",
    "save_config_to_file",
]
