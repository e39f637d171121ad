"""
Property-based tests for the Availability Prober.
"""

import asyncio

from hypothesis import given, settings
from hypothesis import strategies as st

from domain_acquirer.config import RetryConfig
from domain_acquirer.exceptions import RegistrarError
from domain_acquirer.prober import AvailabilityProber
from domain_acquirer.retry_manager import RetryManager
from domain_acquirer.variants import generate_variants

from fakes import FakeRegistrar, quiet_logger


def no_wait_retry(max_retries: int = 2) -> RetryManager:
    return RetryManager(RetryConfig(max_retries=max_retries, base_delay_seconds=0.0, max_delay_seconds=0.0))


class TestFirstFit:
    """The scan stops at the first available candidate."""

    def test_fourth_variant_is_used_after_four_probes(self) -> None:
        candidates = generate_variants("abcd.de")
        registrar = FakeRegistrar(available={candidates[3], candidates[5]})
        prober = AvailabilityProber(registrar)

        outcome = asyncio.run(prober.find_first_available(candidates))

        assert outcome.found
        assert outcome.candidate == "das-abcd.de"
        assert outcome.result.price == 7.99
        assert outcome.probed == candidates[:4]
        assert [c[1] for c in registrar.calls_of("search")] == candidates[:4]

    @given(
        total=st.integers(min_value=1, max_value=12),
        data=st.data(),
    )
    @settings(max_examples=100)
    def test_stops_at_first_hit(self, total: int, data: st.DataObject) -> None:
        candidates = [f"cand{i}.de" for i in range(total)]
        hits = data.draw(st.sets(st.sampled_from(candidates)))
        registrar = FakeRegistrar(available=hits)

        outcome = asyncio.run(AvailabilityProber(registrar).find_first_available(candidates))

        if hits:
            first = min(candidates.index(h) for h in hits)
            assert outcome.candidate == candidates[first]
            assert len(outcome.probed) == first + 1
        else:
            assert not outcome.found
            assert outcome.probed == candidates

    def test_empty_candidate_list(self) -> None:
        outcome = asyncio.run(AvailabilityProber(FakeRegistrar()).find_first_available([]))
        assert not outcome.found
        assert outcome.probed == []


class TestProbeFailures:
    """A failed lookup counts as unavailable and the scan continues."""

    def test_failed_lookup_is_skipped(self) -> None:
        registrar = FakeRegistrar(available={"b.de"}, failing_searches={"a.de"})
        logger = quiet_logger()
        prober = AvailabilityProber(registrar, logger=logger)

        outcome = asyncio.run(prober.find_first_available(["a.de", "b.de", "c.de"]))

        assert outcome.candidate == "b.de"
        assert outcome.failures == {"a.de": "lookup failed for a.de"}
        assert any(e.message == "Error checking a.de" for e in logger.entries)

    def test_unexpected_exception_is_skipped(self) -> None:
        registrar = FakeRegistrar(available={"c.de"})
        registrar.crashing_searches["a.de"] = KeyError("boom")
        registrar.crashing_searches["b.de"] = RuntimeError()
        logger = quiet_logger()
        prober = AvailabilityProber(registrar, logger=logger)

        outcome = asyncio.run(prober.find_first_available(["a.de", "b.de", "c.de"]))

        assert outcome.candidate == "c.de"
        assert outcome.failures == {"a.de": "'boom'", "b.de": "RuntimeError"}
        errors = [e for e in logger.entries if e.message == "Error checking a.de"]
        assert errors[0].data["error_type"] == "KeyError"

    def test_all_failing_yields_no_hit(self) -> None:
        registrar = FakeRegistrar(failing_searches={"a.de", "b.de"})
        outcome = asyncio.run(AvailabilityProber(registrar).find_first_available(["a.de", "b.de"]))
        assert not outcome.found
        assert set(outcome.failures) == {"a.de", "b.de"}

    def test_transient_errors_are_retried(self) -> None:
        registrar = FakeRegistrar(available={"a.de"})
        registrar.transient_search_errors["a.de"] = 2
        prober = AvailabilityProber(registrar, retry_manager=no_wait_retry(max_retries=2))

        result = asyncio.run(prober.probe("a.de"))

        assert result.available
        assert len(registrar.calls_of("search")) == 3

    def test_retries_are_bounded(self) -> None:
        registrar = FakeRegistrar(available={"a.de"})
        registrar.transient_search_errors["a.de"] = 5
        prober = AvailabilityProber(registrar, retry_manager=no_wait_retry(max_retries=1))

        outcome = asyncio.run(prober.find_first_available(["a.de"]))

        assert not outcome.found
        assert len(registrar.calls_of("search")) == 2

    def test_api_errors_are_not_retried(self) -> None:
        registrar = FakeRegistrar(failing_searches={"a.de"})
        prober = AvailabilityProber(registrar, retry_manager=no_wait_retry())

        try:
            asyncio.run(prober.probe("a.de"))
            assert False, "expected RegistrarError"
        except RegistrarError as e:
            assert e.code == "api_error"

        assert len(registrar.calls_of("search")) == 1
