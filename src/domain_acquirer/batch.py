"""
Batch Coordinator.

Runs the acquisition workflow over many records: searching every pending
record, bulk email forwarding across the whole registrar account and CSV
import. Records are processed strictly one at a time and a failure of one
record never aborts the batch.
"""

import random
from typing import Optional, Union

from .audit_logger import AuditLogger
from .config import SystemConfig
from .enums import DomainStatus
from .exceptions import AcquisitionError, RegistrarError, ValidationError
from .importer import DomainImporter
from .models import (
    BatchSearchResult,
    BulkForwardEntry,
    BulkForwardResult,
    EmailForward,
    ImportSummary,
    OperatorSettings,
    RegisteredDomain,
)
from .prefix_selector import EmailPrefixSelector
from .prober import AvailabilityProber
from .record_store import RecordStore
from .registrar_client import Registrar
from .retry_manager import RetryManager
from .state_machine import AcquisitionStateMachine, validate_email_address

COMPONENT = "BatchCoordinator"


class BatchCoordinator:
    """
    Owns the shared acquisition state and runs batch operations.

    The coordinator builds the email prefix selector from the persisted
    operator settings and writes the selector's last pick back after every
    pick, so the no-repeat rule holds across restarts.
    """

    def __init__(
        self,
        store: RecordStore,
        registrar: Registrar,
        config: SystemConfig,
        logger: Optional[AuditLogger] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._store = store
        self._registrar = registrar
        self._config = config
        self._logger = logger

        settings = store.load_settings()
        self._prefix_selector = EmailPrefixSelector(
            vocabulary=config.acquisition.email_prefixes,
            last_prefix=settings.last_email_prefix,
            rng=rng,
        )
        self._retry_manager = RetryManager(config.retry)
        self._prober = AvailabilityProber(registrar, self._retry_manager, logger)
        self._importer = DomainImporter(store, config.acquisition, logger)
        self._machine = AcquisitionStateMachine(
            store=store,
            registrar=registrar,
            prober=self._prober,
            prefix_selector=self._prefix_selector,
            config=config.acquisition,
            registration_years=config.registrar.registration_years,
            logger=logger,
            on_prefix_picked=self._remember_prefix,
        )

    @property
    def machine(self) -> AcquisitionStateMachine:
        return self._machine

    @property
    def prober(self) -> AvailabilityProber:
        return self._prober

    @property
    def prefix_selector(self) -> EmailPrefixSelector:
        return self._prefix_selector

    def _remember_prefix(self, prefix: str) -> None:
        settings = self._store.load_settings()
        settings.last_email_prefix = prefix
        self._store.save_settings(settings)

    def set_default_forward_to(self, address: Optional[str]) -> OperatorSettings:
        """Store the batch-wide destination mailbox; empty clears it."""
        settings = self._store.load_settings()
        settings.email_forward_to = validate_email_address(address) if address and address.strip() else None
        self._store.save_settings(settings)
        return settings

    async def search_pending(self) -> BatchSearchResult:
        """
        Search every record that is ``pending`` when the call starts.

        Records are searched one at a time to completion. Nothing is
        purchased; found records wait for approval.
        """
        pending = [r for r in self._store.list_all() if r.status == DomainStatus.PENDING]
        result = BatchSearchResult()

        if self._logger:
            self._logger.info(COMPONENT, f"Searching {len(pending)} pending domain(s)", {
                "count": len(pending),
            })

        for record in pending:
            try:
                searched = await self._machine.search(record.id)
            except AcquisitionError as e:
                result.failed[record.original_domain] = e.message
                if self._logger:
                    self._logger.log_error(
                        COMPONENT,
                        f"Search failed for {record.original_domain}",
                        error=e,
                        record_id=record.id,
                    )
                continue
            except Exception as e:
                result.failed[record.original_domain] = str(e) or type(e).__name__
                if self._logger:
                    self._logger.log_error(
                        COMPONENT,
                        f"Search crashed for {record.original_domain}",
                        error=e,
                        record_id=record.id,
                    )
                continue

            if searched.status == DomainStatus.FOUND:
                result.found.append(record.original_domain)
            else:
                result.no_variant.append(record.original_domain)

        if self._logger:
            self._logger.info(COMPONENT, "Batch search completed", {
                "found": len(result.found),
                "no_variant": len(result.no_variant),
                "failed": len(result.failed),
            })

        return result

    async def list_registered_domains(self) -> list[RegisteredDomain]:
        """List the registrar account's domains, retrying transient failures."""
        return await self._retry_manager.call(self._registrar.list_domains)

    async def bulk_email_forward(
        self, forward_to: str, alias: Optional[str] = None
    ) -> BulkForwardResult:
        """
        Forward one alias on every domain in the registrar account.

        Each domain is configured independently; failures are tallied and the
        loop continues.

        Raises:
            ValidationError: If the address is invalid or the account holds no
                             domains
            RegistrarError: If the domain list cannot be fetched
        """
        destination = validate_email_address(forward_to)
        username = (alias or self._config.acquisition.bulk_forward_alias).strip()
        if not username:
            raise ValidationError(code="missing_alias", message="Email alias must not be empty")

        domains = await self.list_registered_domains()
        if not domains:
            raise ValidationError(code="no_domains", message="No domains found in account")

        entries = []
        for registered in domains:
            try:
                outcome = await self._registrar.set_email_forward(
                    registered.domain,
                    [EmailForward(username=username, forward_to=destination)],
                )
                entry = BulkForwardEntry(registered.domain, outcome.success, outcome.message)
            except (RegistrarError, ValidationError) as e:
                entry = BulkForwardEntry(registered.domain, False, e.message)

            if not entry.success and self._logger:
                self._logger.log_error(
                    COMPONENT,
                    f"Email forward failed for {registered.domain}",
                    additional_data={"domain": registered.domain, "registrar_message": entry.message},
                )
            entries.append(entry)

        success_count = sum(1 for e in entries if e.success)
        message = f"Email forwarding set for {success_count}/{len(entries)} domains"
        if self._logger:
            self._logger.info(COMPONENT, message, {
                "alias": username,
                "success_count": success_count,
                "total": len(entries),
            })

        return BulkForwardResult(
            success=success_count > 0,
            message=message,
            success_count=success_count,
            total=len(entries),
            results=entries,
        )

    def import_csv(
        self,
        text: str,
        column: Union[str, int],
        email_forward_to: Optional[str] = None,
    ) -> ImportSummary:
        """Import a CSV column; the batch mailbox defaults to the stored one."""
        destination = email_forward_to or self._store.load_settings().email_forward_to
        if destination:
            destination = validate_email_address(destination)
        return self._importer.import_text(text, column, destination)
