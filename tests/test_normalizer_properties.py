"""
Property-based tests for name normalization and variant generation.
"""

import re

from hypothesis import given, settings
from hypothesis import strategies as st

from domain_acquirer.normalizer import is_import_worthy, normalize_org_name
from domain_acquirer.variants import generate_variants, split_domain


NAME_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789 -_&äöüÄÖÜß."

org_names = st.text(alphabet=NAME_ALPHABET, min_size=0, max_size=40)

labels = st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789", min_size=1, max_size=20)


class TestNormalizer:
    """Tests for normalize_org_name."""

    @given(name=org_names)
    @settings(max_examples=200)
    def test_normalization_is_idempotent(self, name: str) -> None:
        once = normalize_org_name(name)
        assert normalize_org_name(once) == once

    @given(name=org_names.filter(lambda s: "." not in s))
    @settings(max_examples=200)
    def test_plain_names_reduce_to_domain_charset(self, name: str) -> None:
        result = normalize_org_name(name)
        assert re.fullmatch(r"[a-z0-9-]*\.de", result), result

    @given(label=labels, tld=st.sampled_from(["de", "COM", "co.uk"]))
    def test_dotted_input_is_only_trimmed_and_lowercased(self, label: str, tld: str) -> None:
        raw = f"  {label.upper()}.{tld}  "
        assert normalize_org_name(raw) == f"{label}.{tld}".lower()

    def test_umlauts_are_transliterated(self) -> None:
        assert normalize_org_name("  Grundschule Müller ") == "grundschulemueller.de"
        assert normalize_org_name("Große Straße") == "grossestrasse.de"
        assert normalize_org_name("Höhere Übungsschule") == "hoehereuebungsschule.de"

    def test_default_tld_is_configurable(self) -> None:
        assert normalize_org_name("Schule Nord", default_tld="at") == "schulenord.at"
        assert normalize_org_name("Schule Nord", default_tld=".ch") == "schulenord.ch"

    def test_short_names_are_not_import_worthy(self) -> None:
        assert not is_import_worthy(normalize_org_name("!!!"))
        assert not is_import_worthy("a.b")
        assert is_import_worthy("a.de")
        assert is_import_worthy("abc.de", min_length=6)
        assert not is_import_worthy("abc.de", min_length=7)


class TestVariantGenerator:
    """Tests for generate_variants."""

    def test_four_letter_name_yields_seven_variants(self) -> None:
        assert generate_variants("abcd.de") == [
            "a-bcd.de",
            "ab-cd.de",
            "abc-d.de",
            "das-abcd.de",
            "der-abcd.de",
            "die-abcd.de",
            "mein-abcd.de",
        ]

    def test_output_is_stable(self) -> None:
        assert generate_variants("abcd.de") == generate_variants("abcd.de")

    @given(value=st.text(alphabet="abcdefghijklmnopqrstuvwxyz-", max_size=20))
    def test_no_dot_yields_nothing(self, value: str) -> None:
        assert generate_variants(value) == []
        assert split_domain(value) == ("", "")

    @given(name=labels, tld=st.sampled_from(["de", "com", "co.uk"]))
    @settings(max_examples=200)
    def test_variant_count_and_order(self, name: str, tld: str) -> None:
        variants = generate_variants(f"{name}.{tld}")

        hyphenated = [f"{name[:i]}-{name[i:]}.{tld}" for i in range(1, len(name))]
        prefixed = [f"{p}{name}.{tld}" for p in ("das-", "der-", "die-", "mein-")]
        assert variants == hyphenated + prefixed
        assert f"{name}.{tld}" not in variants

    @given(name=st.text(alphabet="ab-", min_size=1, max_size=12))
    def test_variants_are_unique(self, name: str) -> None:
        variants = generate_variants(f"{name}.de")
        assert len(variants) == len(set(variants))
        assert all(v.endswith(".de") for v in variants)

    def test_tld_with_dots_is_kept(self) -> None:
        variants = generate_variants("schule.co.uk")
        assert variants[0] == "s-chule.co.uk"
        assert variants[-1] == "mein-schule.co.uk"
        assert split_domain("schule.co.uk") == ("schule", "co.uk")

    def test_custom_prefixes(self) -> None:
        assert generate_variants("ab.de", prefixes=("unsere-",)) == ["a-b.de", "unsere-ab.de"]
