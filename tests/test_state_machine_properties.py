"""
Property-based tests for the Acquisition State Machine.
"""

import asyncio
import random
from typing import Optional

from hypothesis import given, settings
from hypothesis import strategies as st

from domain_acquirer.config import AcquisitionConfig, DEFAULT_EMAIL_PREFIXES
from domain_acquirer.enums import DomainStatus, PrefixRetryPolicy
from domain_acquirer.exceptions import RegistrarError, ValidationError
from domain_acquirer.models import OperatorSettings
from domain_acquirer.prefix_selector import EmailPrefixSelector
from domain_acquirer.prober import AvailabilityProber
from domain_acquirer.record_store import InMemoryRecordStore
from domain_acquirer.state_machine import (
    ALLOWED_TRANSITIONS,
    AcquisitionStateMachine,
    validate_email_address,
)

from fakes import FakeRegistrar, quiet_logger


MAILBOX = "office@example.org"


def build_machine(
    registrar: FakeRegistrar,
    store: Optional[InMemoryRecordStore] = None,
    seed: int = 0,
    config: Optional[AcquisitionConfig] = None,
):
    store = store or InMemoryRecordStore()
    logger = quiet_logger()
    machine = AcquisitionStateMachine(
        store=store,
        registrar=registrar,
        prober=AvailabilityProber(registrar, logger=logger),
        prefix_selector=EmailPrefixSelector(rng=random.Random(seed)),
        config=config,
        registration_years=1,
        logger=logger,
    )
    return machine, store, logger


def found_record(store: InMemoryRecordStore, domain: str = "abcd.de", variant: str = "das-abcd.de"):
    record = store.create(domain, email_forward_to=MAILBOX)
    store.update(record.id, status=DomainStatus.SEARCHING)
    return store.update(
        record.id,
        status=DomainStatus.FOUND,
        purchased_domain=variant,
        price=7.99,
        currency="USD",
    )


def expect_validation_error(coro, code: str) -> ValidationError:
    try:
        asyncio.run(coro)
    except ValidationError as e:
        assert e.code == code, e.code
        return e
    raise AssertionError(f"Expected ValidationError({code})")


class TestTransitionTable:
    """The table covers every state."""

    def test_every_status_has_an_entry(self) -> None:
        assert set(ALLOWED_TRANSITIONS) == set(DomainStatus)

    def test_found_is_never_left_without_approval(self) -> None:
        assert ALLOWED_TRANSITIONS[DomainStatus.FOUND] == frozenset({DomainStatus.PURCHASING})

    def test_done_only_reconfigures(self) -> None:
        assert DomainStatus.PURCHASING not in ALLOWED_TRANSITIONS[DomainStatus.DONE]


class TestSearch:
    """Variant search moves records to found or no_variant."""

    def test_first_available_variant_is_recorded(self) -> None:
        registrar = FakeRegistrar(available={"das-abcd.de", "mein-abcd.de"})
        machine, store, logger = build_machine(registrar)
        record = store.create("abcd.de")

        result = asyncio.run(machine.search(record.id))

        assert result.status == DomainStatus.FOUND
        assert result.purchased_domain == "das-abcd.de"
        assert result.price == 7.99
        assert result.currency == "USD"
        assert len(registrar.calls_of("search")) == 4
        messages = [e.message for e in logger.entries]
        assert "abcd.de: pending -> searching" in messages
        assert "abcd.de: searching -> found" in messages

    def test_exhaustion_leaves_no_variant(self) -> None:
        registrar = FakeRegistrar()
        machine, store, _ = build_machine(registrar)
        record = store.create("abcd.de")

        result = asyncio.run(machine.search(record.id))

        assert result.status == DomainStatus.NO_VARIANT
        assert result.purchased_domain is None
        probed = [c[1] for c in registrar.calls_of("search")]
        assert len(probed) == 7
        assert "abcd.de" not in probed
        assert registrar.calls_of("register") == []

    def test_failed_probes_do_not_fail_the_search(self) -> None:
        registrar = FakeRegistrar(available={"ab-cd.de"}, failing_searches={"a-bcd.de"})
        machine, store, _ = build_machine(registrar)
        record = store.create("abcd.de")

        result = asyncio.run(machine.search(record.id))

        assert result.status == DomainStatus.FOUND
        assert result.purchased_domain == "ab-cd.de"

    def test_no_variant_can_be_searched_again(self) -> None:
        registrar = FakeRegistrar()
        machine, store, _ = build_machine(registrar)
        record = store.create("abcd.de")
        asyncio.run(machine.search(record.id))

        registrar.available.add("mein-abcd.de")
        result = asyncio.run(machine.search(record.id))

        assert result.status == DomainStatus.FOUND
        assert result.purchased_domain == "mein-abcd.de"

    def test_stale_searching_record_can_be_rerun(self) -> None:
        registrar = FakeRegistrar(available={"a-bcd.de"})
        machine, store, _ = build_machine(registrar)
        record = store.create("abcd.de")
        store.update(record.id, status=DomainStatus.SEARCHING)

        assert asyncio.run(machine.search(record.id)).status == DomainStatus.FOUND

    def test_found_record_cannot_be_searched(self) -> None:
        machine, store, _ = build_machine(FakeRegistrar())
        record = found_record(store)

        expect_validation_error(machine.search(record.id), "invalid_transition")
        assert store.get(record.id).status == DomainStatus.FOUND

    def test_domain_without_dot_has_no_variant(self) -> None:
        registrar = FakeRegistrar()
        machine, store, _ = build_machine(registrar)
        record = store.create("localhost")

        assert asyncio.run(machine.search(record.id)).status == DomainStatus.NO_VARIANT
        assert registrar.calls == []


class TestApprove:
    """Purchase followed by email and URL configuration."""

    def test_happy_path_ends_done(self) -> None:
        registrar = FakeRegistrar()
        machine, store, _ = build_machine(registrar)
        record = found_record(store)

        result = asyncio.run(machine.approve(record.id))

        assert result.status == DomainStatus.DONE
        assert result.purchased_at is not None
        assert result.error is None
        assert result.email_prefix in DEFAULT_EMAIL_PREFIXES
        assert [c[0] for c in registrar.calls] == ["register", "email", "url"]
        assert registrar.calls_of("register")[0] == ("register", "das-abcd.de", 1)

        forwards = registrar.calls_of("email")[0][2]
        assert forwards[0].username == result.email_prefix
        assert forwards[0].forward_to == MAILBOX
        assert registrar.calls_of("url")[0] == ("url", "das-abcd.de", "https://abcd.de", True)

    def test_custom_forward_url_is_used(self) -> None:
        registrar = FakeRegistrar()
        machine, store, _ = build_machine(registrar)
        record = found_record(store)
        store.update(record.id, forward_url="https://schule.example/start")

        asyncio.run(machine.approve(record.id))

        assert registrar.calls_of("url")[0][2] == "https://schule.example/start"

    def test_missing_mailbox_changes_nothing(self) -> None:
        registrar = FakeRegistrar()
        machine, store, _ = build_machine(registrar)
        record = found_record(store)
        store.update(record.id, email_forward_to=None)

        expect_validation_error(machine.approve(record.id), "missing_forward_to")

        assert store.get(record.id).status == DomainStatus.FOUND
        assert registrar.calls == []

    def test_mailbox_falls_back_to_operator_settings(self) -> None:
        registrar = FakeRegistrar()
        machine, store, _ = build_machine(registrar)
        record = found_record(store)
        store.update(record.id, email_forward_to=None)
        store.save_settings(OperatorSettings(email_forward_to="batch@example.org"))

        result = asyncio.run(machine.approve(record.id))

        assert result.status == DomainStatus.DONE
        assert result.email_forward_to == "batch@example.org"

    def test_argument_mailbox_wins(self) -> None:
        registrar = FakeRegistrar()
        machine, store, _ = build_machine(registrar)
        record = found_record(store)

        result = asyncio.run(machine.approve(record.id, forward_to="direct@example.org"))

        assert result.email_forward_to == "direct@example.org"
        assert registrar.calls_of("email")[0][2][0].forward_to == "direct@example.org"

    def test_purchase_failure_skips_configuration(self) -> None:
        registrar = FakeRegistrar()
        registrar.register_failure = "Insufficient account balance"
        machine, store, _ = build_machine(registrar)
        record = found_record(store)

        result = asyncio.run(machine.approve(record.id))

        assert result.status == DomainStatus.ERROR
        assert result.error == "Insufficient account balance"
        assert result.purchased_at is None
        assert registrar.calls_of("email") == []
        assert registrar.calls_of("url") == []

    def test_raised_registrar_error_is_recorded(self) -> None:
        registrar = FakeRegistrar()
        registrar.register_raises = RegistrarError(code="timeout", message="Registrar request timed out")
        machine, store, _ = build_machine(registrar)
        record = found_record(store)

        result = asyncio.run(machine.approve(record.id))

        assert result.status == DomainStatus.ERROR
        assert result.error == "Registrar request timed out"
        assert len(registrar.calls_of("register")) == 1

    def test_failed_purchase_can_be_approved_again(self) -> None:
        registrar = FakeRegistrar()
        registrar.register_failure = "Insufficient account balance"
        machine, store, _ = build_machine(registrar)
        record = found_record(store)
        asyncio.run(machine.approve(record.id))

        registrar.register_failure = None
        result = asyncio.run(machine.approve(record.id))

        assert result.status == DomainStatus.DONE
        assert len(registrar.calls_of("register")) == 2

    def test_email_failure_skips_url(self) -> None:
        registrar = FakeRegistrar()
        registrar.email_failures["das-abcd.de"] = "Email forwarding not allowed"
        machine, store, _ = build_machine(registrar)
        record = found_record(store)

        result = asyncio.run(machine.approve(record.id))

        assert result.status == DomainStatus.ERROR
        assert result.error == "Email forwarding not allowed"
        assert result.purchased_at is not None
        assert registrar.calls_of("url") == []

    def test_url_failure_is_recorded(self) -> None:
        registrar = FakeRegistrar()
        registrar.url_failure = "Invalid URL"
        machine, store, _ = build_machine(registrar)
        record = found_record(store)

        result = asyncio.run(machine.approve(record.id))

        assert result.status == DomainStatus.ERROR
        assert result.error == "Invalid URL"
        assert result.purchased_at is not None
        assert len(registrar.calls_of("email")) == 1
        assert len(registrar.calls_of("url")) == 1
        assert store.get(record.id).status == DomainStatus.ERROR

    def test_pending_record_cannot_be_approved(self) -> None:
        registrar = FakeRegistrar()
        machine, store, _ = build_machine(registrar)
        record = store.create("abcd.de", email_forward_to=MAILBOX)

        expect_validation_error(machine.approve(record.id), "invalid_transition")
        assert registrar.calls == []

    def test_purchased_error_record_cannot_be_approved(self) -> None:
        registrar = FakeRegistrar()
        registrar.url_failure = "Invalid URL"
        machine, store, _ = build_machine(registrar)
        record = found_record(store)
        asyncio.run(machine.approve(record.id))

        expect_validation_error(machine.approve(record.id), "invalid_transition")
        assert len(registrar.calls_of("register")) == 1

    @given(
        approvals=st.integers(min_value=2, max_value=8),
        seed=st.integers(min_value=0, max_value=10_000),
    )
    @settings(max_examples=50)
    def test_consecutive_approvals_never_repeat_prefix(self, approvals: int, seed: int) -> None:
        registrar = FakeRegistrar()
        machine, store, _ = build_machine(registrar, seed=seed)
        records = [found_record(store, f"schule{i}.de", f"das-schule{i}.de") for i in range(approvals)]

        prefixes = []
        for record in records:
            prefixes.append(asyncio.run(machine.approve(record.id)).email_prefix)

        for previous, current in zip(prefixes, prefixes[1:]):
            assert previous != current


class TestRetryConfiguration:
    """Retrying configuration after a failed forwarding step."""

    def _failed_after_purchase(self, config: Optional[AcquisitionConfig] = None, seed: int = 0):
        registrar = FakeRegistrar()
        registrar.email_failure_once = "Temporary email backend failure"
        machine, store, logger = build_machine(registrar, seed=seed, config=config)
        record = found_record(store)
        failed = asyncio.run(machine.approve(record.id))
        assert failed.status == DomainStatus.ERROR
        return machine, store, registrar, failed

    def test_retry_reaches_done_without_registering(self) -> None:
        machine, store, registrar, failed = self._failed_after_purchase()

        result = asyncio.run(machine.retry_configuration(failed.id))

        assert result.status == DomainStatus.DONE
        assert result.error is None
        assert len(registrar.calls_of("register")) == 1
        assert len(registrar.calls_of("email")) == 2
        assert len(registrar.calls_of("url")) == 1

    def test_retry_reuses_prefix_by_default(self) -> None:
        machine, store, registrar, failed = self._failed_after_purchase()

        result = asyncio.run(machine.retry_configuration(failed.id))

        assert result.email_prefix == failed.email_prefix
        assert registrar.calls_of("email")[1][2][0].username == failed.email_prefix

    @given(seed=st.integers(min_value=0, max_value=10_000))
    @settings(max_examples=30)
    def test_repick_policy_chooses_new_prefix(self, seed: int) -> None:
        config = AcquisitionConfig(retry_prefix_policy=PrefixRetryPolicy.REPICK)
        machine, store, registrar, failed = self._failed_after_purchase(config=config, seed=seed)

        result = asyncio.run(machine.retry_configuration(failed.id))

        assert result.status == DomainStatus.DONE
        assert result.email_prefix != failed.email_prefix

    def test_retry_requires_completed_purchase(self) -> None:
        registrar = FakeRegistrar()
        registrar.register_failure = "Domain not available"
        machine, store, _ = build_machine(registrar)
        record = found_record(store)
        asyncio.run(machine.approve(record.id))

        expect_validation_error(machine.retry_configuration(record.id), "purchase_incomplete")
        assert store.get(record.id).status == DomainStatus.ERROR

    def test_retry_requires_error_state(self) -> None:
        registrar = FakeRegistrar()
        machine, store, _ = build_machine(registrar)
        record = found_record(store)
        asyncio.run(machine.approve(record.id))

        expect_validation_error(machine.retry_configuration(record.id), "invalid_transition")


class TestUpdateForwarding:
    """Operator edits of forwarding targets."""

    def _done_record(self):
        registrar = FakeRegistrar()
        machine, store, _ = build_machine(registrar)
        record = found_record(store)
        asyncio.run(machine.approve(record.id))
        registrar.calls.clear()
        return machine, store, registrar, record

    def test_url_change_on_done_record_reapplies_url(self) -> None:
        machine, store, registrar, record = self._done_record()

        result = asyncio.run(machine.update_forwarding(record.id, forward_url="neu.example"))

        assert result.status == DomainStatus.DONE
        assert result.forward_url == "neu.example"
        assert [c[0] for c in registrar.calls] == ["url"]

    def test_email_change_on_done_record_reapplies_both(self) -> None:
        machine, store, registrar, record = self._done_record()
        prefix = store.get(record.id).email_prefix

        result = asyncio.run(machine.update_forwarding(record.id, email_forward_to="new@example.org"))

        assert result.status == DomainStatus.DONE
        assert [c[0] for c in registrar.calls] == ["email", "url"]
        assert registrar.calls[0][2][0].forward_to == "new@example.org"
        assert result.email_prefix == prefix

    def test_unchanged_values_make_no_calls(self) -> None:
        machine, store, registrar, record = self._done_record()

        asyncio.run(machine.update_forwarding(record.id, email_forward_to=MAILBOX))

        assert registrar.calls == []

    def test_edit_before_approval_only_stores(self) -> None:
        registrar = FakeRegistrar()
        machine, store, _ = build_machine(registrar)
        record = found_record(store)

        result = asyncio.run(machine.update_forwarding(
            record.id, forward_url="https://ziel.example", email_forward_to="x@example.org",
        ))

        assert result.status == DomainStatus.FOUND
        assert result.forward_url == "https://ziel.example"
        assert result.email_forward_to == "x@example.org"
        assert registrar.calls == []

    def test_invalid_address_is_rejected(self) -> None:
        machine, store, registrar, record = self._done_record()
        expect_validation_error(
            machine.update_forwarding(record.id, email_forward_to="not-an-address"),
            "invalid_email",
        )


class TestSingleFlight:
    """Only one record is processed at a time."""

    def test_concurrent_operation_fails_fast(self) -> None:
        registrar = FakeRegistrar()
        machine, store, _ = build_machine(registrar)
        first = found_record(store)
        second = store.create("zweite.de")

        async def scenario() -> None:
            registrar.register_gate = asyncio.Event()
            registrar.register_started = asyncio.Event()
            approval = asyncio.create_task(machine.approve(first.id))
            await registrar.register_started.wait()

            assert machine.processing_id == first.id
            try:
                await machine.search(second.id)
                assert False, "Expected ValidationError"
            except ValidationError as e:
                assert e.code == "operation_in_flight"
                assert e.details["processing_id"] == first.id

            registrar.register_gate.set()
            result = await approval
            assert result.status == DomainStatus.DONE

        asyncio.run(scenario())

        assert machine.processing_id is None
        assert store.get(second.id).status == DomainStatus.PENDING


class TestEmailValidation:
    """validate_email_address accepts plain addresses only."""

    def test_valid_addresses(self) -> None:
        assert validate_email_address("  office@example.org ") == "office@example.org"

    def test_invalid_addresses(self) -> None:
        for value, code in (
            (None, "missing_forward_to"),
            ("   ", "missing_forward_to"),
            ("office", "invalid_email"),
            ("a@b", "invalid_email"),
            ("a b@example.org", "invalid_email"),
        ):
            try:
                validate_email_address(value)
                assert False, f"Expected ValidationError for {value!r}"
            except ValidationError as e:
                assert e.code == code
