"""
Command-line interface for the domain acquisition pipeline.

This module provides the main CLI entry point with commands for:
- import, list, search, search-all, approve, retry, set-forwarding, delete,
  reset: the imported-domain workflow
- lookup, register, email-forward, url-forward, list-domains,
  email-forward-all: direct registrar operations
- config: Configuration management

Business failures exit with code 1, unexpected failures with code 2.
"""

import argparse
import asyncio
import json
import os
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Optional

from dotenv import load_dotenv

from . import __version__
from .audit_logger import AuditLogger
from .batch import BatchCoordinator
from .config import (
    DEFAULT_EMAIL_PREFIXES,
    DEFAULT_VARIANT_PREFIXES,
    DYNADOT_API_URL,
    AcquisitionConfig,
    LoggingConfig,
    PersistenceConfig,
    RateLimitConfig,
    RateLimitRule,
    RegistrarConfig,
    RetryConfig,
    SystemConfig,
)
from .enums import DomainStatus, PrefixRetryPolicy
from .exceptions import AcquisitionError, NotFoundError, ValidationError
from .i18n import get_message, status_label
from .models import EmailForward, ImportedDomain, OperationResult
from .rate_limiter import RateLimiter
from .record_store import JsonRecordStore
from .registrar_client import DynadotClient
from .state_machine import validate_email_address

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_UNEXPECTED = 2

API_KEY_ENV = "DYNADOT_API_KEY"
DEFAULT_HMAC_SECRET = "default-secret-change-me"


def default_config_path() -> Path:
    return Path.home() / ".domain_acquirer" / "config.json"


def default_store_path() -> Path:
    return Path.home() / ".domain_acquirer" / "records.json"


def create_default_config(
    simulation_mode: bool = False,
    language: str = "de",
    store_file: Optional[Path] = None,
    hmac_secret: str = DEFAULT_HMAC_SECRET,
) -> SystemConfig:
    """
    Create a default system configuration.

    Args:
        simulation_mode: Enable simulation mode (no real registrar calls)
        language: Output language ('de' or 'en')
        store_file: Path to the record store file
        hmac_secret: Secret for HMAC protection of the store file

    Returns:
        SystemConfig with default settings
    """
    return SystemConfig(
        registrar=RegistrarConfig(),
        rate_limits=RateLimitConfig(
            per_command={
                "search": RateLimitRule(max_requests=60, window_seconds=60.0),
            },
            global_limit=RateLimitRule(
                max_requests=120,
                window_seconds=60.0,
                min_delay_seconds=0.5,
            ),
        ),
        retry=RetryConfig(),
        persistence=PersistenceConfig(
            store_file_path=store_file or default_store_path(),
            hmac_secret=hmac_secret,
        ),
        logging=LoggingConfig(level="warn", output_format="text"),
        acquisition=AcquisitionConfig(),
        language=language,
        simulation_mode=simulation_mode,
    )


def _parse_rule(data: Optional[dict]) -> Optional[RateLimitRule]:
    if not data:
        return None
    return RateLimitRule(
        max_requests=data["max_requests"],
        window_seconds=data["window_seconds"],
        min_delay_seconds=data.get("min_delay_seconds", 0.0),
    )


def _rule_to_dict(rule: Optional[RateLimitRule]) -> Optional[dict]:
    if rule is None:
        return None
    return {
        "max_requests": rule.max_requests,
        "window_seconds": rule.window_seconds,
        "min_delay_seconds": rule.min_delay_seconds,
    }


def load_config_from_file(config_path: Path) -> Optional[SystemConfig]:
    """
    Load configuration from a JSON file.

    Missing sections and keys fall back to the defaults.

    Args:
        config_path: Path to the configuration file

    Returns:
        SystemConfig if successful, None otherwise
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        defaults = create_default_config()

        registrar_data = data.get("registrar", {})
        registrar = RegistrarConfig(
            api_key=registrar_data.get("api_key", ""),
            base_url=registrar_data.get("base_url", DYNADOT_API_URL),
            timeout_seconds=registrar_data.get("timeout_seconds", 30.0),
            registration_years=registrar_data.get("registration_years", 1),
        )

        rate_limits_data = data.get("rate_limits")
        if rate_limits_data is None:
            rate_limits = defaults.rate_limits
        else:
            rate_limits = RateLimitConfig(
                per_command={
                    command: _parse_rule(rule)
                    for command, rule in rate_limits_data.get("per_command", {}).items()
                    if rule
                },
                global_limit=_parse_rule(rate_limits_data.get("global_limit")),
            )

        retry_data = data.get("retry", {})
        retry = RetryConfig(
            max_retries=retry_data.get("max_retries", 2),
            base_delay_seconds=retry_data.get("base_delay_seconds", 1.0),
            max_delay_seconds=retry_data.get("max_delay_seconds", 30.0),
            retryable_errors=retry_data.get("retryable_errors", RetryConfig().retryable_errors),
        )

        persistence_data = data.get("persistence", {})
        store_file_path = persistence_data.get("store_file_path")
        persistence = PersistenceConfig(
            store_file_path=Path(store_file_path) if store_file_path else default_store_path(),
            hmac_secret=persistence_data.get("hmac_secret", DEFAULT_HMAC_SECRET),
        )

        logging_data = data.get("logging", {})
        logging_config = LoggingConfig(
            level=logging_data.get("level", "warn"),
            output_format=logging_data.get("output_format", "text"),
        )

        acquisition_data = data.get("acquisition", {})
        acquisition = AcquisitionConfig(
            default_tld=acquisition_data.get("default_tld", "de"),
            min_domain_length=acquisition_data.get("min_domain_length", 4),
            variant_prefixes=tuple(acquisition_data.get("variant_prefixes", DEFAULT_VARIANT_PREFIXES)),
            email_prefixes=tuple(acquisition_data.get("email_prefixes", DEFAULT_EMAIL_PREFIXES)),
            bulk_forward_alias=acquisition_data.get("bulk_forward_alias", "info"),
            permanent_redirect=acquisition_data.get("permanent_redirect", True),
            retry_prefix_policy=PrefixRetryPolicy(
                acquisition_data.get("retry_prefix_policy", PrefixRetryPolicy.REUSE.value)
            ),
        )

        return SystemConfig(
            registrar=registrar,
            rate_limits=rate_limits,
            retry=retry,
            persistence=persistence,
            logging=logging_config,
            acquisition=acquisition,
            language=data.get("language", "de"),
            simulation_mode=data.get("simulation_mode", False),
        )

    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return None
    except FileNotFoundError:
        return None


def save_config_to_file(config: SystemConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Args:
        config: SystemConfig to save
        config_path: Path to save the configuration

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "registrar": {
                "api_key": config.registrar.api_key,
                "base_url": config.registrar.base_url,
                "timeout_seconds": config.registrar.timeout_seconds,
                "registration_years": config.registrar.registration_years,
            },
            "rate_limits": {
                "per_command": {
                    command: _rule_to_dict(rule)
                    for command, rule in config.rate_limits.per_command.items()
                },
                "global_limit": _rule_to_dict(config.rate_limits.global_limit),
            },
            "retry": {
                "max_retries": config.retry.max_retries,
                "base_delay_seconds": config.retry.base_delay_seconds,
                "max_delay_seconds": config.retry.max_delay_seconds,
                "retryable_errors": list(config.retry.retryable_errors),
            },
            "persistence": {
                "store_file_path": str(config.persistence.store_file_path),
                "hmac_secret": config.persistence.hmac_secret,
            },
            "logging": {
                "level": config.logging.level,
                "output_format": config.logging.output_format,
            },
            "acquisition": {
                "default_tld": config.acquisition.default_tld,
                "min_domain_length": config.acquisition.min_domain_length,
                "variant_prefixes": list(config.acquisition.variant_prefixes),
                "email_prefixes": list(config.acquisition.email_prefixes),
                "bulk_forward_alias": config.acquisition.bulk_forward_alias,
                "permanent_redirect": config.acquisition.permanent_redirect,
                "retry_prefix_policy": config.acquisition.retry_prefix_policy.value,
            },
            "language": config.language,
            "simulation_mode": config.simulation_mode,
        }

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        return True

    except (OSError, TypeError) as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False


def resolve_config(args: argparse.Namespace) -> Optional[SystemConfig]:
    """
    Build the effective configuration for a command.

    The config file (or the defaults when it does not exist) is overlaid with
    the API key from the environment (``.env`` is honored) and the command
    line flags.
    """
    config_path = Path(args.config) if args.config else default_config_path()
    if config_path.exists():
        config = load_config_from_file(config_path)
        if config is None:
            print(get_message("config.load_failed", args.language or "de", path=config_path), file=sys.stderr)
            return None
    else:
        config = create_default_config()

    load_dotenv()
    api_key = os.getenv(API_KEY_ENV, "").strip()
    if api_key:
        config.registrar.api_key = api_key

    if args.language:
        config.language = args.language
    if args.dry_run:
        config.simulation_mode = True
    if args.verbose:
        config.logging.level = "debug"

    return config


@dataclass
class Runtime:
    """Components wired together for one CLI invocation."""

    config: SystemConfig
    store: JsonRecordStore
    registrar: DynadotClient
    coordinator: BatchCoordinator
    logger: AuditLogger


@asynccontextmanager
async def open_runtime(config: SystemConfig) -> AsyncIterator[Runtime]:
    """Create store, registrar client and coordinator; close the client on exit."""
    logger = AuditLogger(
        output_format=config.logging.output_format,
        level=config.logging.level,
    )
    store = JsonRecordStore(
        file_path=config.persistence.store_file_path,
        hmac_secret=config.persistence.hmac_secret,
    )
    async with DynadotClient(
        config=config.registrar,
        rate_limiter=RateLimiter(config.rate_limits),
        logger=logger,
        simulation_mode=config.simulation_mode,
    ) as registrar:
        coordinator = BatchCoordinator(store, registrar, config, logger)
        yield Runtime(
            config=config,
            store=store,
            registrar=registrar,
            coordinator=coordinator,
            logger=logger,
        )


def emit(args: argparse.Namespace, payload: dict, text: str) -> None:
    """Print ``payload`` as JSON with --json, else ``text``."""
    if args.json:
        print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))
    else:
        print(text)


def emit_operation(args: argparse.Namespace, result: OperationResult) -> int:
    """Print a registrar operation result and map it to an exit code."""
    payload = {"success": result.success, "message": result.message}
    if args.json:
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        print(result.message, file=sys.stdout if result.success else sys.stderr)
    return EXIT_OK if result.success else EXIT_FAILURE


def format_price(price: Optional[float], currency: Optional[str]) -> str:
    if price is None:
        return "-"
    return f"{price:.2f} {currency or ''}".strip()


def resolve_record(store: JsonRecordStore, reference: str) -> ImportedDomain:
    """
    Find a record by full id, unique id prefix or original domain.

    Raises:
        NotFoundError: If nothing matches
        ValidationError: If an id prefix matches more than one record
    """
    records = store.list_all()
    for record in records:
        if record.id == reference or record.original_domain == reference.lower():
            return record

    matches = [r for r in records if r.id.startswith(reference)]
    if len(matches) > 1:
        raise ValidationError(
            code="ambiguous_id",
            message=f"Id prefix {reference} matches {len(matches)} records",
        )
    if not matches:
        raise NotFoundError(
            code="record_not_found",
            message=f"Domain not found: {reference}",
            details={"reference": reference},
        )
    return matches[0]


def emit_record_outcome(args: argparse.Namespace, record: ImportedDomain) -> int:
    """Report the end state of an approve, retry or forwarding run."""
    language = args.language_effective
    if record.status == DomainStatus.ERROR:
        emit(
            args,
            {"success": False, "message": record.error, "record": record.to_dict()},
            get_message("cli.record_failed", language,
                        domain=record.purchased_domain or record.original_domain, error=record.error),
        )
        return EXIT_FAILURE

    emit(
        args,
        {"success": True, "message": record.status.value, "record": record.to_dict()},
        get_message(
            "cli.record_done",
            language,
            domain=record.purchased_domain,
            email=f"{record.email_prefix}@{record.purchased_domain} -> {record.email_forward_to}",
            url=record.effective_forward_url,
        ),
    )
    return EXIT_OK


async def run_import(args: argparse.Namespace, rt: Runtime) -> int:
    language = args.language_effective
    try:
        text = Path(args.file).read_text(encoding="utf-8-sig")
    except FileNotFoundError:
        print(get_message("cli.file_not_found", language, path=args.file), file=sys.stderr)
        return EXIT_FAILURE

    if args.forward_to:
        rt.coordinator.set_default_forward_to(args.forward_to)

    summary = rt.coordinator.import_csv(text, args.column, args.forward_to)
    emit(
        args,
        {
            "success": True,
            "created": summary.created,
            "skipped_duplicate": summary.skipped_duplicate,
            "skipped_short": summary.skipped_short,
            "skipped_empty": summary.skipped_empty,
            "domains": summary.domains,
        },
        get_message(
            "cli.imported",
            language,
            created=summary.created,
            duplicates=summary.skipped_duplicate,
            short=summary.skipped_short,
            empty=summary.skipped_empty,
        ),
    )
    return EXIT_OK


async def run_list(args: argparse.Namespace, rt: Runtime) -> int:
    language = args.language_effective
    records = rt.store.list_all()
    if args.status:
        records = [r for r in records if r.status.value == args.status]

    if args.json:
        print(json.dumps([r.to_dict() for r in records], indent=2, ensure_ascii=False))
        return EXIT_OK

    if not records:
        print(get_message("cli.no_records", language))
        return EXIT_OK

    for record in records:
        print(
            f"{record.id[:8]}  {status_label(record.status, language):<16} "
            f"{record.original_domain:<32} {record.purchased_domain or '-':<32} "
            f"{format_price(record.price, record.currency)}"
        )
        if record.error:
            print(f"          {record.error}")
    print(get_message("cli.record_count", language, count=len(records)))
    return EXIT_OK


async def run_search(args: argparse.Namespace, rt: Runtime) -> int:
    language = args.language_effective
    record = resolve_record(rt.store, args.id)
    if not args.json:
        print(get_message("cli.searching", language, domain=record.original_domain))

    record = await rt.coordinator.machine.search(record.id)
    if record.status == DomainStatus.FOUND:
        text = get_message(
            "cli.variant_found",
            language,
            domain=record.purchased_domain,
            price=format_price(record.price, record.currency),
        )
    else:
        text = get_message("cli.no_variant", language, domain=record.original_domain)

    emit(args, {"success": True, "record": record.to_dict()}, text)
    return EXIT_OK


async def run_search_all(args: argparse.Namespace, rt: Runtime) -> int:
    result = await rt.coordinator.search_pending()
    text = get_message(
        "cli.search_summary",
        args.language_effective,
        found=len(result.found),
        no_variant=len(result.no_variant),
        failed=len(result.failed),
    )
    for domain, message in result.failed.items():
        text += f"\n  {domain}: {message}"

    emit(
        args,
        {
            "success": not result.failed,
            "found": result.found,
            "no_variant": result.no_variant,
            "failed": result.failed,
        },
        text,
    )
    return EXIT_FAILURE if result.failed else EXIT_OK


async def run_approve(args: argparse.Namespace, rt: Runtime) -> int:
    record = resolve_record(rt.store, args.id)
    record = await rt.coordinator.machine.approve(record.id, forward_to=args.forward_to)
    return emit_record_outcome(args, record)


async def run_retry(args: argparse.Namespace, rt: Runtime) -> int:
    record = resolve_record(rt.store, args.id)
    record = await rt.coordinator.machine.retry_configuration(record.id, forward_to=args.forward_to)
    return emit_record_outcome(args, record)


async def run_set_forwarding(args: argparse.Namespace, rt: Runtime) -> int:
    record = resolve_record(rt.store, args.id)
    record = await rt.coordinator.machine.update_forwarding(
        record.id,
        forward_url=args.url,
        email_forward_to=args.email,
    )
    if record.status == DomainStatus.ERROR:
        return emit_record_outcome(args, record)

    emit(
        args,
        {"success": True, "record": record.to_dict()},
        get_message("cli.forwarding_saved", args.language_effective, domain=record.original_domain),
    )
    return EXIT_OK


async def run_delete(args: argparse.Namespace, rt: Runtime) -> int:
    record = resolve_record(rt.store, args.id)
    rt.store.delete(record.id)
    emit(
        args,
        {"success": True, "deleted": record.id},
        get_message("cli.deleted", args.language_effective, domain=record.original_domain),
    )
    return EXIT_OK


async def run_reset(args: argparse.Namespace, rt: Runtime) -> int:
    language = args.language_effective
    if not args.yes:
        print(get_message("cli.reset_confirm", language), file=sys.stderr)
        return EXIT_FAILURE

    count = rt.store.delete_all()
    emit(args, {"success": True, "deleted": count}, get_message("cli.reset_done", language, count=count))
    return EXIT_OK


async def run_lookup(args: argparse.Namespace, rt: Runtime) -> int:
    language = args.language_effective
    result = await rt.coordinator.prober.probe(args.domain)
    if result.available:
        text = get_message(
            "cli.available", language,
            domain=result.domain, price=format_price(result.price, result.currency),
        )
    else:
        text = get_message("cli.taken", language, domain=result.domain)

    emit(
        args,
        {
            "success": True,
            "domain": result.domain,
            "available": result.available,
            "price": result.price,
            "currency": result.currency,
        },
        text,
    )
    return EXIT_OK


async def run_register(args: argparse.Namespace, rt: Runtime) -> int:
    years = args.years or rt.config.registrar.registration_years
    result = await rt.registrar.register_domain(args.domain, duration_years=years)
    return emit_operation(args, result)


async def run_email_forward(args: argparse.Namespace, rt: Runtime) -> int:
    destination = validate_email_address(args.to)
    result = await rt.registrar.set_email_forward(
        args.domain,
        [EmailForward(username=args.username, forward_to=destination)],
    )
    return emit_operation(args, result)


async def run_url_forward(args: argparse.Namespace, rt: Runtime) -> int:
    result = await rt.registrar.set_url_forwarding(
        args.domain,
        args.url,
        is_permanent=not args.temporary,
    )
    return emit_operation(args, result)


async def run_list_domains(args: argparse.Namespace, rt: Runtime) -> int:
    domains = await rt.coordinator.list_registered_domains()
    if args.json:
        print(json.dumps(
            [{"domain": d.domain, "expiration": d.expiration, "status": d.status} for d in domains],
            indent=2,
            ensure_ascii=False,
        ))
        return EXIT_OK

    if not domains:
        print(get_message("cli.no_domains", args.language_effective))
        return EXIT_OK

    for registered in domains:
        print(f"{registered.domain:<40} {registered.expiration or '-':<12} {registered.status or '-'}")
    return EXIT_OK


async def run_email_forward_all(args: argparse.Namespace, rt: Runtime) -> int:
    result = await rt.coordinator.bulk_email_forward(args.to, alias=args.alias)
    text = get_message(
        "cli.bulk_summary",
        args.language_effective,
        success=result.success_count,
        total=result.total,
    )
    for entry in result.results:
        if not entry.success:
            text += f"\n  {entry.domain}: {entry.message}"

    emit(
        args,
        {
            "success": result.success,
            "message": result.message,
            "success_count": result.success_count,
            "total": result.total,
            "results": [
                {"domain": e.domain, "success": e.success, "message": e.message}
                for e in result.results
            ],
        },
        text,
    )
    return EXIT_OK if result.success else EXIT_FAILURE


def run_with_runtime(args: argparse.Namespace) -> int:
    """Resolve the configuration and run the command's coroutine."""
    config = resolve_config(args)
    if config is None:
        return EXIT_FAILURE
    args.language_effective = config.language

    if config.simulation_mode and not args.json:
        print(get_message("simulation.enabled", config.language), file=sys.stderr)

    async def _run() -> int:
        async with open_runtime(config) as rt:
            return await args.handler(args, rt)

    return asyncio.run(_run())


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.config) if args.config else default_config_path()
    language = args.language or "de"

    if args.action == "show":
        config = load_config_from_file(config_path)
        if config is None:
            print(get_message("config.not_found", language, path=config_path))
            print(get_message("config.use_init", language))
            return EXIT_FAILURE

        print(f"Configuration from: {config_path}")
        print(f"  Language: {config.language}")
        print(f"  Simulation mode: {config.simulation_mode}")
        print(f"  API key: {'configured' if config.registrar.api_key else 'not set (use ' + API_KEY_ENV + ')'}")
        print(f"  Registration years: {config.registrar.registration_years}")
        print(f"  Store file: {config.persistence.store_file_path}")
        print(f"  Log level: {config.logging.level}")
        print(f"  Variant prefixes: {', '.join(config.acquisition.variant_prefixes)}")
        print(f"  Email prefixes: {', '.join(config.acquisition.email_prefixes)}")
        print(f"  Retry prefix policy: {config.acquisition.retry_prefix_policy.value}")
        return EXIT_OK

    elif args.action == "init":
        if config_path.exists() and not args.force:
            print(get_message("config.exists", language, path=config_path))
            return EXIT_FAILURE

        config = create_default_config(language=language)
        if save_config_to_file(config, config_path):
            print(get_message("config.created", language, path=config_path))
            return EXIT_OK
        return EXIT_FAILURE

    elif args.action == "validate":
        config = load_config_from_file(config_path)
        if config is None:
            print(get_message("config.load_failed", language, path=config_path), file=sys.stderr)
            return EXIT_FAILURE

        load_dotenv()
        if not (config.registrar.api_key or os.getenv(API_KEY_ENV)):
            print(get_message("config.api_key_missing", language), file=sys.stderr)
        print(get_message("config.valid", language, path=config_path))
        return EXIT_OK

    return EXIT_FAILURE


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    common.add_argument(
        "--language", "-l",
        choices=["de", "en"],
        default=None,
        help="Output language (default: from config, else de)",
    )
    common.add_argument(
        "--dry-run",
        action="store_true",
        help="Simulation mode - no real registrar calls",
    )
    common.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )
    common.add_argument(
        "--json",
        action="store_true",
        help="Print machine-readable JSON",
    )

    parser = argparse.ArgumentParser(
        prog="domain-acquirer",
        description="Bulk domain variant search, purchase and forwarding via Dynadot",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    def add_command(name: str, handler, help_text: str) -> argparse.ArgumentParser:
        sub = subparsers.add_parser(name, parents=[common], help=help_text)
        sub.set_defaults(func=run_with_runtime, handler=handler)
        return sub

    import_parser = add_command("import", run_import, "Import organization names from a CSV file")
    import_parser.add_argument("file", help="Path to the CSV file")
    import_parser.add_argument(
        "--column",
        required=True,
        help="Column holding the names (header name or zero-based index)",
    )
    import_parser.add_argument("--forward-to", help="Destination mailbox for the imported batch")

    list_parser = add_command("list", run_list, "List imported domains")
    list_parser.add_argument(
        "--status",
        choices=[s.value for s in DomainStatus],
        help="Only show records with this status",
    )

    search_parser = add_command("search", run_search, "Search an available variant for one record")
    search_parser.add_argument("id", help="Record id, id prefix or original domain")

    add_command("search-all", run_search_all, "Search variants for every pending record")

    approve_parser = add_command("approve", run_approve, "Purchase the found variant and configure forwarding")
    approve_parser.add_argument("id", help="Record id, id prefix or original domain")
    approve_parser.add_argument("--forward-to", help="Destination mailbox")

    retry_parser = add_command("retry", run_retry, "Retry forwarding configuration of a purchased record")
    retry_parser.add_argument("id", help="Record id, id prefix or original domain")
    retry_parser.add_argument("--forward-to", help="Destination mailbox")

    forwarding_parser = add_command("set-forwarding", run_set_forwarding, "Edit forwarding targets of a record")
    forwarding_parser.add_argument("id", help="Record id, id prefix or original domain")
    forwarding_parser.add_argument("--url", help="Forward URL (empty string resets to the original domain)")
    forwarding_parser.add_argument("--email", help="Destination mailbox (empty string clears it)")

    delete_parser = add_command("delete", run_delete, "Delete one imported record")
    delete_parser.add_argument("id", help="Record id, id prefix or original domain")

    reset_parser = add_command("reset", run_reset, "Delete all imported records")
    reset_parser.add_argument("--yes", action="store_true", help="Confirm deletion")

    lookup_parser = add_command("lookup", run_lookup, "Check availability and price of a domain")
    lookup_parser.add_argument("domain", help="Domain to check (e.g., example.de)")

    register_parser = add_command("register", run_register, "Register a domain")
    register_parser.add_argument("domain", help="Domain to register")
    register_parser.add_argument("--years", type=int, help="Registration period in years")

    email_parser = add_command("email-forward", run_email_forward, "Set an email forward on a domain")
    email_parser.add_argument("domain", help="Domain in the account")
    email_parser.add_argument("--to", required=True, help="Destination mailbox")
    email_parser.add_argument("--username", default="info", help="Alias on the domain (default: info)")

    url_parser = add_command("url-forward", run_url_forward, "Set URL forwarding on a domain")
    url_parser.add_argument("domain", help="Domain in the account")
    url_parser.add_argument("url", help="Target URL (https:// is added when missing)")
    url_parser.add_argument("--temporary", action="store_true", help="Use a temporary (302) redirect")

    add_command("list-domains", run_list_domains, "List domains in the registrar account")

    bulk_parser = add_command("email-forward-all", run_email_forward_all, "Set one email forward on every account domain")
    bulk_parser.add_argument("to", help="Destination mailbox")
    bulk_parser.add_argument("--alias", help="Alias on each domain (default: from config)")

    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    args.language_effective = args.language or "de"
    try:
        return args.func(args)
    except AcquisitionError as e:
        if args.json:
            print(json.dumps({"success": False, "message": e.message, "error": e.to_dict()},
                             indent=2, ensure_ascii=False, default=str))
        else:
            print(get_message("cli.error", args.language_effective, error=e.message), file=sys.stderr)
        return EXIT_FAILURE
    except Exception as e:
        envelope = {
            "success": False,
            "error": {"error_type": type(e).__name__, "message": str(e)},
        }
        if args.json:
            print(json.dumps(envelope, indent=2, ensure_ascii=False))
        else:
            print(get_message("cli.unexpected_error", args.language_effective, error=e), file=sys.stderr)
        return EXIT_UNEXPECTED


if __name__ == "__main__":
    sys.exit(main())
