"""
Name normalization for imported organization names.

Turns a free-text organization name into a candidate base domain. The
transformation is deterministic and needs no network access.
"""

import re

DEFAULT_TLD = "de"
MIN_DOMAIN_LENGTH = 4

# Everything outside this set is dropped from organization names
_DISALLOWED_CHARS = re.compile(r"[^a-z0-9äöüß-]")

_TRANSLITERATION = (
    ("ä", "ae"),
    ("ö", "oe"),
    ("ü", "ue"),
    ("ß", "ss"),
)


def normalize_org_name(label: str, default_tld: str = DEFAULT_TLD) -> str:
    """
    Convert an organization name to a base domain.

    Text that already contains a dot is taken as a complete domain and only
    trimmed and lowercased. Anything else is reduced to ``[a-z0-9-]`` with
    German umlauts transliterated, and the default TLD is appended.

    Examples:
        >>> normalize_org_name("  Grundschule Müller ")
        'grundschulemueller.de'
        >>> normalize_org_name("Example.COM")
        'example.com'
    """
    cleaned = label.strip().lower()

    if "." in cleaned:
        return cleaned

    name = _DISALLOWED_CHARS.sub("", cleaned)
    for umlaut, replacement in _TRANSLITERATION:
        name = name.replace(umlaut, replacement)

    return f"{name}.{default_tld.lstrip('.')}"


def is_import_worthy(domain: str, min_length: int = MIN_DOMAIN_LENGTH) -> bool:
    """Return True if a normalized domain is long enough to be imported."""
    return len(domain) >= min_length
