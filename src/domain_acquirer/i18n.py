"""
Internationalization (i18n) module for the domain acquisition pipeline.

Provides German (de) and English (en) translations for CLI output and the
record status labels.
"""

from typing import Optional

from .enums import DomainStatus


# Supported languages
SUPPORTED_LANGUAGES = frozenset({"de", "en"})
DEFAULT_LANGUAGE = "de"


# Structure: {message_key: {language_code: translated_message}}
TRANSLATIONS: dict[str, dict[str, str]] = {
    # Record status labels
    "status.pending": {
        "de": "Wartend",
        "en": "Pending",
    },
    "status.searching": {
        "de": "Suche...",
        "en": "Searching...",
    },
    "status.found": {
        "de": "Gefunden",
        "en": "Found",
    },
    "status.no_variant": {
        "de": "Keine Variante",
        "en": "No variant",
    },
    "status.purchasing": {
        "de": "Kaufe...",
        "en": "Purchasing...",
    },
    "status.configuring_email": {
        "de": "Email...",
        "en": "Email...",
    },
    "status.configuring_url": {
        "de": "URL...",
        "en": "URL...",
    },
    "status.done": {
        "de": "Fertig",
        "en": "Done",
    },
    "status.error": {
        "de": "Fehler",
        "en": "Error",
    },

    # Import
    "cli.imported": {
        "de": "{created} Domain(s) importiert ({duplicates} Duplikate, {short} zu kurz, {empty} leer)",
        "en": "Imported {created} domain(s) ({duplicates} duplicates, {short} too short, {empty} empty)",
    },
    "cli.file_not_found": {
        "de": "Datei nicht gefunden: {path}",
        "en": "File not found: {path}",
    },

    # Record listing
    "cli.no_records": {
        "de": "Keine Domains importiert",
        "en": "No domains imported",
    },
    "cli.record_count": {
        "de": "{count} Domain(s)",
        "en": "{count} domain(s)",
    },

    # Search
    "cli.searching": {
        "de": "Suche Varianten für {domain}...",
        "en": "Searching variants for {domain}...",
    },
    "cli.variant_found": {
        "de": "Variante gefunden: {domain} ({price})",
        "en": "Variant found: {domain} ({price})",
    },
    "cli.no_variant": {
        "de": "Keine verfügbare Variante für {domain}",
        "en": "No available variant for {domain}",
    },
    "cli.search_summary": {
        "de": "{found} gefunden, {no_variant} ohne Variante, {failed} fehlgeschlagen",
        "en": "{found} found, {no_variant} without variant, {failed} failed",
    },

    # Approval and configuration
    "cli.record_done": {
        "de": "{domain} gekauft und konfiguriert (E-Mail: {email}, Weiterleitung: {url})",
        "en": "{domain} purchased and configured (email: {email}, forward: {url})",
    },
    "cli.record_failed": {
        "de": "{domain} fehlgeschlagen: {error}",
        "en": "{domain} failed: {error}",
    },
    "cli.forwarding_saved": {
        "de": "Weiterleitung für {domain} gespeichert",
        "en": "Forwarding for {domain} saved",
    },
    "cli.deleted": {
        "de": "Domain {domain} gelöscht",
        "en": "Domain {domain} deleted",
    },
    "cli.reset_done": {
        "de": "{count} Domain(s) gelöscht",
        "en": "{count} domain(s) deleted",
    },
    "cli.reset_confirm": {
        "de": "Alle importierten Domains werden gelöscht. Mit --yes bestätigen.",
        "en": "All imported domains will be deleted. Confirm with --yes.",
    },

    # Direct registrar commands
    "cli.available": {
        "de": "{domain} ist verfügbar ({price})",
        "en": "{domain} is available ({price})",
    },
    "cli.taken": {
        "de": "{domain} ist nicht verfügbar",
        "en": "{domain} is not available",
    },
    "cli.no_domains": {
        "de": "Keine Domains im Konto",
        "en": "No domains in account",
    },
    "cli.bulk_summary": {
        "de": "E-Mail-Weiterleitung für {success}/{total} Domains gesetzt",
        "en": "Email forwarding set for {success}/{total} domains",
    },

    # General
    "cli.error": {
        "de": "Fehler: {error}",
        "en": "Error: {error}",
    },
    "cli.unexpected_error": {
        "de": "Unerwarteter Fehler: {error}",
        "en": "Unexpected error: {error}",
    },
    "simulation.enabled": {
        "de": "Simulationsmodus aktiv - keine echten Registrar-Aufrufe",
        "en": "Simulation mode enabled - no real registrar calls",
    },

    # Configuration management
    "config.not_found": {
        "de": "Keine Konfiguration gefunden unter: {path}",
        "en": "No configuration found at: {path}",
    },
    "config.use_init": {
        "de": "Mit 'config init' eine Standardkonfiguration anlegen.",
        "en": "Use 'config init' to create a default configuration.",
    },
    "config.exists": {
        "de": "Konfiguration existiert bereits unter: {path} (--force zum Überschreiben)",
        "en": "Configuration already exists at: {path} (use --force to overwrite)",
    },
    "config.created": {
        "de": "Konfiguration erstellt unter: {path}",
        "en": "Configuration created at: {path}",
    },
    "config.valid": {
        "de": "Konfiguration unter {path} ist gültig.",
        "en": "Configuration at {path} is valid.",
    },
    "config.load_failed": {
        "de": "Konfiguration konnte nicht geladen werden: {path}",
        "en": "Could not load configuration from {path}",
    },
    "config.api_key_missing": {
        "de": "DYNADOT_API_KEY ist nicht gesetzt",
        "en": "DYNADOT_API_KEY is not set",
    },
}


def get_message(key: str, language: str = DEFAULT_LANGUAGE, **kwargs) -> str:
    """
    Get a translated message.

    Falls back to the default language, then to the key itself. Placeholders
    are filled from ``kwargs``; a missing placeholder leaves the message
    unformatted.

    Args:
        key: Message key (e.g. "status.found")
        language: Language code ('de' or 'en')
        **kwargs: Format arguments for placeholders

    Returns:
        Translated and formatted message string.
    """
    translations = TRANSLATIONS.get(key)
    if translations is None:
        return key

    message = translations.get(language) or translations.get(DEFAULT_LANGUAGE)
    if message is None:
        return key

    if kwargs:
        try:
            message = message.format(**kwargs)
        except KeyError:
            pass

    return message


def status_label(status: DomainStatus, language: Optional[str] = None) -> str:
    """Human-readable label of a record status."""
    return get_message(f"status.{status.value}", language or DEFAULT_LANGUAGE)


def get_all_message_keys() -> set[str]:
    """Get all available message keys."""
    return set(TRANSLATIONS.keys())


def get_missing_translations(language: str) -> set[str]:
    """
    Get all message keys that are missing translations for a language.

    Args:
        language: The language code to check

    Returns:
        Set of message keys missing translations for the specified language.
    """
    return {key for key, translations in TRANSLATIONS.items() if language not in translations}


def validate_translations() -> dict[str, set[str]]:
    """
    Validate that all languages have all translations.

    Returns:
        Dictionary mapping language codes to sets of missing message keys.
        Empty sets indicate complete translations.
    """
    return {language: get_missing_translations(language) for language in SUPPORTED_LANGUAGES}
