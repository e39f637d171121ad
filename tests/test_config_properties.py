"""
Property-based tests for configuration loading and saving.
"""

import json
import tempfile
from pathlib import Path

from hypothesis import given, settings
from hypothesis import strategies as st

from domain_acquirer.cli import (
    create_default_config,
    load_config_from_file,
    save_config_to_file,
)
from domain_acquirer.config import (
    DEFAULT_EMAIL_PREFIXES,
    DEFAULT_VARIANT_PREFIXES,
    AcquisitionConfig,
    RateLimitConfig,
    RateLimitRule,
    RetryConfig,
)
from domain_acquirer.enums import PrefixRetryPolicy


prefix_word = st.text(alphabet="abcdefghijklmnopqrstuvwxyz", min_size=2, max_size=12)


@st.composite
def rate_limit_rule_strategy(draw) -> RateLimitRule:
    return RateLimitRule(
        max_requests=draw(st.integers(min_value=1, max_value=500)),
        window_seconds=draw(st.floats(min_value=1.0, max_value=3600.0)),
        min_delay_seconds=draw(st.floats(min_value=0.0, max_value=5.0)),
    )


@st.composite
def acquisition_config_strategy(draw) -> AcquisitionConfig:
    return AcquisitionConfig(
        default_tld=draw(st.sampled_from(["de", "com", "at", "ch"])),
        min_domain_length=draw(st.integers(min_value=1, max_value=10)),
        variant_prefixes=tuple(draw(st.lists(prefix_word.map(lambda w: f"{w}-"), min_size=1, max_size=5))),
        email_prefixes=tuple(draw(st.lists(prefix_word, min_size=2, max_size=6, unique=True))),
        bulk_forward_alias=draw(prefix_word),
        permanent_redirect=draw(st.booleans()),
        retry_prefix_policy=draw(st.sampled_from(list(PrefixRetryPolicy))),
    )


class TestConfigRoundTrip:
    """Saved configuration loads back unchanged."""

    @given(
        acquisition=acquisition_config_strategy(),
        search_rule=rate_limit_rule_strategy(),
        global_rule=st.one_of(st.none(), rate_limit_rule_strategy()),
        max_retries=st.integers(min_value=0, max_value=5),
        years=st.integers(min_value=1, max_value=10),
        language=st.sampled_from(["de", "en"]),
        simulation=st.booleans(),
    )
    @settings(max_examples=50)
    def test_save_then_load(
        self,
        acquisition: AcquisitionConfig,
        search_rule: RateLimitRule,
        global_rule,
        max_retries: int,
        years: int,
        language: str,
        simulation: bool,
    ) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            config_path = Path(tmp_dir) / "nested" / "config.json"
            config = create_default_config(
                simulation_mode=simulation,
                language=language,
                store_file=Path(tmp_dir) / "records.json",
                hmac_secret="round-trip-secret",
            )
            config.acquisition = acquisition
            config.rate_limits = RateLimitConfig(per_command={"search": search_rule}, global_limit=global_rule)
            config.retry = RetryConfig(max_retries=max_retries)
            config.registrar.registration_years = years
            config.registrar.api_key = "stored-key"

            assert save_config_to_file(config, config_path)
            loaded = load_config_from_file(config_path)

            assert loaded is not None
            assert loaded.acquisition == acquisition
            assert loaded.rate_limits == config.rate_limits
            assert loaded.retry == config.retry
            assert loaded.registrar == config.registrar
            assert loaded.persistence == config.persistence
            assert loaded.logging == config.logging
            assert loaded.language == language
            assert loaded.simulation_mode == simulation


class TestConfigDefaults:
    """Missing keys fall back to defaults; broken files are rejected."""

    def test_minimal_file_uses_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            config_path = Path(tmp_dir) / "config.json"
            config_path.write_text(json.dumps({"language": "en"}), encoding="utf-8")

            config = load_config_from_file(config_path)

            assert config is not None
            assert config.language == "en"
            assert config.simulation_mode is False
            assert config.registrar.registration_years == 1
            assert config.acquisition.variant_prefixes == DEFAULT_VARIANT_PREFIXES
            assert config.acquisition.email_prefixes == DEFAULT_EMAIL_PREFIXES
            assert config.acquisition.retry_prefix_policy == PrefixRetryPolicy.REUSE
            assert config.rate_limits == create_default_config().rate_limits
            assert config.logging.level == "warn"

    def test_missing_file_returns_none(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            assert load_config_from_file(Path(tmp_dir) / "absent.json") is None

    @given(garbage=st.sampled_from(["{", "not json", "[1, 2", '{"retry_prefix_policy": }']))
    def test_invalid_json_returns_none(self, garbage: str) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            config_path = Path(tmp_dir) / "config.json"
            config_path.write_text(garbage, encoding="utf-8")
            assert load_config_from_file(config_path) is None

    def test_unknown_retry_policy_is_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            config_path = Path(tmp_dir) / "config.json"
            config_path.write_text(
                json.dumps({"acquisition": {"retry_prefix_policy": "sometimes"}}),
                encoding="utf-8",
            )
            assert load_config_from_file(config_path) is None
