"""
Acquisition State Machine.

Drives one imported-domain record through search, purchase and forwarding
configuration. Every transition is validated against ALLOWED_TRANSITIONS and
persisted through the record store before the next registrar call is made, so
an interrupted run leaves the record in the step it was executing.

Only one record is processed at a time; a second operation started while
another is in flight fails fast instead of queuing.
"""

import asyncio
import re
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional

from .audit_logger import AuditLogger
from .config import AcquisitionConfig
from .enums import DomainStatus, PrefixRetryPolicy
from .exceptions import RegistrarError, ValidationError
from .models import EmailForward, ImportedDomain, OperationResult, utc_now
from .prefix_selector import EmailPrefixSelector
from .prober import AvailabilityProber
from .record_store import RecordStore
from .registrar_client import Registrar
from .variants import generate_variants

COMPONENT = "StateMachine"

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

ALLOWED_TRANSITIONS: dict[DomainStatus, frozenset[DomainStatus]] = {
    DomainStatus.PENDING: frozenset({DomainStatus.SEARCHING}),
    # searching -> searching re-runs a scan that was interrupted
    DomainStatus.SEARCHING: frozenset({
        DomainStatus.FOUND,
        DomainStatus.NO_VARIANT,
        DomainStatus.SEARCHING,
    }),
    DomainStatus.NO_VARIANT: frozenset({DomainStatus.SEARCHING}),
    DomainStatus.FOUND: frozenset({DomainStatus.PURCHASING}),
    DomainStatus.PURCHASING: frozenset({DomainStatus.CONFIGURING_EMAIL, DomainStatus.ERROR}),
    DomainStatus.CONFIGURING_EMAIL: frozenset({DomainStatus.CONFIGURING_URL, DomainStatus.ERROR}),
    DomainStatus.CONFIGURING_URL: frozenset({DomainStatus.DONE, DomainStatus.ERROR}),
    DomainStatus.ERROR: frozenset({DomainStatus.CONFIGURING_EMAIL, DomainStatus.PURCHASING}),
    DomainStatus.DONE: frozenset({DomainStatus.CONFIGURING_EMAIL, DomainStatus.CONFIGURING_URL}),
}

SEARCHABLE_STATUSES = frozenset({
    DomainStatus.PENDING,
    DomainStatus.SEARCHING,
    DomainStatus.NO_VARIANT,
})


def validate_email_address(address: Optional[str]) -> str:
    """
    Return the trimmed address.

    Raises:
        ValidationError: If the address is missing or malformed
    """
    value = (address or "").strip()
    if not value:
        raise ValidationError(
            code="missing_forward_to",
            message="No email forwarding address configured",
        )
    if not EMAIL_PATTERN.match(value):
        raise ValidationError(
            code="invalid_email",
            message=f"Invalid email address: {value}",
            details={"address": value},
        )
    return value


class AcquisitionStateMachine:
    """Search, purchase and forwarding workflow for single records."""

    def __init__(
        self,
        store: RecordStore,
        registrar: Registrar,
        prober: AvailabilityProber,
        prefix_selector: EmailPrefixSelector,
        config: Optional[AcquisitionConfig] = None,
        registration_years: int = 1,
        logger: Optional[AuditLogger] = None,
        on_prefix_picked: Optional[Callable[[str], None]] = None,
    ) -> None:
        """
        Args:
            store: Record store holding the records
            registrar: Registrar used for purchase and forwarding calls
            prober: Prober used for the variant scan
            prefix_selector: Shared alias picker
            config: Workflow settings
            registration_years: Registration period for purchases
            logger: Optional audit logger
            on_prefix_picked: Called with every freshly picked alias
        """
        self._store = store
        self._registrar = registrar
        self._prober = prober
        self._prefix_selector = prefix_selector
        self._config = config or AcquisitionConfig()
        self._registration_years = registration_years
        self._logger = logger
        self._on_prefix_picked = on_prefix_picked
        self._lock = asyncio.Lock()
        self._processing_id: Optional[str] = None

    @property
    def processing_id(self) -> Optional[str]:
        """Id of the record currently being processed, if any."""
        return self._processing_id

    @asynccontextmanager
    async def _single_flight(self, record_id: str) -> AsyncIterator[None]:
        if self._lock.locked():
            raise ValidationError(
                code="operation_in_flight",
                message="Another operation is already in progress",
                details={"processing_id": self._processing_id, "record_id": record_id},
            )
        async with self._lock:
            self._processing_id = record_id
            try:
                yield
            finally:
                self._processing_id = None

    async def search(self, record_id: str) -> ImportedDomain:
        """
        Scan the record's variants and stop at the first available one.

        The base domain itself is not probed. A hit moves the record to
        ``found`` with the variant and its price; exhaustion moves it to
        ``no_variant``.

        Raises:
            NotFoundError: If the record does not exist
            ValidationError: If the record is not searchable or another
                             operation is in flight
        """
        async with self._single_flight(record_id):
            record = self._store.get(record_id)
            if record.status not in SEARCHABLE_STATUSES:
                raise self._invalid_transition(record, DomainStatus.SEARCHING)

            record = self._transition(record, DomainStatus.SEARCHING, error=None)
            candidates = generate_variants(record.original_domain, self._config.variant_prefixes)
            outcome = await self._prober.find_first_available(candidates)

            if outcome.found:
                return self._transition(
                    record,
                    DomainStatus.FOUND,
                    purchased_domain=outcome.candidate,
                    price=outcome.result.price,
                    currency=outcome.result.currency,
                )

            if self._logger:
                self._logger.info(COMPONENT, f"No variant available for {record.original_domain}", {
                    "record_id": record.id,
                    "probed": len(outcome.probed),
                    "failures": len(outcome.failures),
                })
            return self._transition(
                record,
                DomainStatus.NO_VARIANT,
                purchased_domain=None,
                price=None,
                currency=None,
            )

    async def approve(self, record_id: str, forward_to: Optional[str] = None) -> ImportedDomain:
        """
        Purchase the found variant, then configure email and URL forwarding.

        The registration call is never retried. A failed step moves the record
        to ``error`` with the registrar's message and no later step runs.

        Raises:
            NotFoundError: If the record does not exist
            ValidationError: If the record cannot be approved or no
                             destination mailbox is known
        """
        async with self._single_flight(record_id):
            record = self._store.get(record_id)
            approvable = record.status == DomainStatus.FOUND or (
                record.status == DomainStatus.ERROR and not record.is_purchased
            )
            if not approvable:
                raise self._invalid_transition(record, DomainStatus.PURCHASING)
            if not record.purchased_domain:
                raise ValidationError(
                    code="no_variant_selected",
                    message=f"No available variant recorded for {record.original_domain}",
                    details={"record_id": record.id},
                )

            destination = self._resolve_destination(record, forward_to)
            record = self._transition(
                record,
                DomainStatus.PURCHASING,
                email_forward_to=destination,
                error=None,
            )

            result = await self._call(
                self._registrar.register_domain(
                    record.purchased_domain,
                    duration_years=self._registration_years,
                )
            )
            if not result.success:
                return self._fail(record, result.message, "register")

            record = self._store.update(record.id, purchased_at=utc_now())
            if self._logger:
                self._logger.info(COMPONENT, f"Purchased {record.purchased_domain}", {
                    "record_id": record.id,
                    "price": record.price,
                    "currency": record.currency,
                })

            return await self._configure_email(record, destination, repick=True)

    async def retry_configuration(
        self, record_id: str, forward_to: Optional[str] = None
    ) -> ImportedDomain:
        """
        Re-run email and URL configuration for a purchased record in ``error``.

        Never registers. The alias is reused or re-picked according to the
        configured PrefixRetryPolicy.

        Raises:
            NotFoundError: If the record does not exist
            ValidationError: If the record is not in ``error`` or was never
                             purchased
        """
        async with self._single_flight(record_id):
            record = self._store.get(record_id)
            if record.status != DomainStatus.ERROR:
                raise self._invalid_transition(record, DomainStatus.CONFIGURING_EMAIL)
            if not record.is_purchased:
                raise ValidationError(
                    code="purchase_incomplete",
                    message=f"{record.original_domain} was never purchased; approve it again",
                    details={"record_id": record.id},
                )

            destination = self._resolve_destination(record, forward_to)
            repick = self._config.retry_prefix_policy == PrefixRetryPolicy.REPICK
            return await self._configure_email(record, destination, repick=repick)

    async def update_forwarding(
        self,
        record_id: str,
        forward_url: Optional[str] = None,
        email_forward_to: Optional[str] = None,
    ) -> ImportedDomain:
        """
        Store operator edits of the forwarding targets.

        An empty string clears a field. For a ``done`` record the affected
        configuration is applied again: an email change re-runs email and
        URL configuration, a URL-only change re-runs URL configuration.
        """
        async with self._single_flight(record_id):
            record = self._store.get(record_id)

            changes = {}
            if forward_url is not None:
                changes["forward_url"] = forward_url.strip() or None
            if email_forward_to is not None:
                changes["email_forward_to"] = (
                    validate_email_address(email_forward_to) if email_forward_to.strip() else None
                )
            if not changes:
                return record

            email_changed = (
                "email_forward_to" in changes
                and changes["email_forward_to"] != record.email_forward_to
            )
            url_changed = "forward_url" in changes and changes["forward_url"] != record.forward_url

            record = self._store.update(record.id, **changes)
            if self._logger:
                self._logger.info(COMPONENT, f"Forwarding settings updated for {record.original_domain}", {
                    "record_id": record.id,
                    "fields": sorted(changes),
                })

            if record.status != DomainStatus.DONE:
                return record
            if email_changed and record.email_forward_to:
                return await self._configure_email(record, record.email_forward_to, repick=False)
            if email_changed or url_changed:
                return await self._configure_url(record)
            return record

    async def _configure_email(
        self, record: ImportedDomain, destination: str, repick: bool
    ) -> ImportedDomain:
        if repick or not record.email_prefix:
            prefix = self._pick_prefix()
        else:
            prefix = record.email_prefix

        # Alias is persisted before the call so a crash keeps it
        record = self._transition(
            record,
            DomainStatus.CONFIGURING_EMAIL,
            email_prefix=prefix,
            email_forward_to=destination,
            error=None,
        )

        result = await self._call(
            self._registrar.set_email_forward(
                record.purchased_domain,
                [EmailForward(username=prefix, forward_to=destination)],
            )
        )
        if not result.success:
            return self._fail(record, result.message, "email_forward")

        return await self._configure_url(record)

    async def _configure_url(self, record: ImportedDomain) -> ImportedDomain:
        record = self._transition(record, DomainStatus.CONFIGURING_URL)

        result = await self._call(
            self._registrar.set_url_forwarding(
                record.purchased_domain,
                record.effective_forward_url,
                is_permanent=self._config.permanent_redirect,
            )
        )
        if not result.success:
            return self._fail(record, result.message, "url_forward")

        return self._transition(record, DomainStatus.DONE)

    async def _call(self, operation: Awaitable[OperationResult]) -> OperationResult:
        """Await a mutating registrar call, folding raised errors into a failed result."""
        try:
            return await operation
        except (RegistrarError, ValidationError) as e:
            return OperationResult(False, e.message)

    def _fail(self, record: ImportedDomain, message: str, step: str) -> ImportedDomain:
        if self._logger:
            self._logger.log_error(
                COMPONENT,
                f"{step} failed for {record.purchased_domain or record.original_domain}",
                record_id=record.id,
                additional_data={"step": step, "registrar_message": message},
            )
        return self._transition(record, DomainStatus.ERROR, error=message)

    def _pick_prefix(self) -> str:
        prefix = self._prefix_selector.pick()
        if self._on_prefix_picked:
            self._on_prefix_picked(prefix)
        return prefix

    def _resolve_destination(self, record: ImportedDomain, forward_to: Optional[str]) -> str:
        """Destination mailbox: argument, then record, then operator settings."""
        candidate = (
            forward_to
            or record.email_forward_to
            or self._store.load_settings().email_forward_to
        )
        return validate_email_address(candidate)

    def _transition(
        self, record: ImportedDomain, target: DomainStatus, **changes
    ) -> ImportedDomain:
        if target not in ALLOWED_TRANSITIONS.get(record.status, frozenset()):
            raise self._invalid_transition(record, target)

        updated = self._store.update(record.id, status=target, **changes)
        if self._logger:
            self._logger.info(
                COMPONENT,
                f"{record.original_domain}: {record.status.value} -> {target.value}",
                {"record_id": record.id, "from": record.status.value, "to": target.value},
            )
        return updated

    @staticmethod
    def _invalid_transition(record: ImportedDomain, target: DomainStatus) -> ValidationError:
        return ValidationError(
            code="invalid_transition",
            message=(
                f"Cannot move {record.original_domain} from "
                f"{record.status.value} to {target.value}"
            ),
            details={
                "record_id": record.id,
                "from": record.status.value,
                "to": target.value,
            },
        )
