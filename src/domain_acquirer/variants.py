"""
Variant generation for base domains.

Variants are produced in a fixed order because the prober consumes them in
that order and stops at the first available one.
"""

from typing import Iterable

from .config import DEFAULT_VARIANT_PREFIXES


def split_domain(domain: str) -> tuple[str, str]:
    """
    Split a domain into name and TLD at the first dot.

    The TLD may itself contain dots (``co.uk``). Returns ``("", "")`` when
    there is no dot.
    """
    if "." not in domain:
        return "", ""
    name, tld = domain.split(".", 1)
    return name, tld


def generate_variants(
    domain: str,
    prefixes: Iterable[str] = DEFAULT_VARIANT_PREFIXES,
) -> list[str]:
    """
    Generate alternate spellings of a base domain.

    First every hyphenated split of the name (``a-bcd``, ``ab-cd``, ...) in
    increasing split position, then every article prefix (``das-abcd``, ...).
    All variants keep the original TLD. A domain without a dot has no
    variants.
    """
    name, tld = split_domain(domain)
    if not tld:
        return []

    candidates = [f"{name[:i]}-{name[i:]}.{tld}" for i in range(1, len(name))]
    candidates.extend(f"{prefix}{name}.{tld}" for prefix in prefixes)

    # Names that already contain hyphens can produce the same string twice
    seen: set[str] = set()
    variants = []
    for candidate in candidates:
        if candidate not in seen:
            seen.add(candidate)
            variants.append(candidate)
    return variants
