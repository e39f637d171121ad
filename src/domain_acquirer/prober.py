"""
Availability Prober.

Wraps the registrar's availability search: single lookups with retries on
transient failures, and the first-fit scan over an ordered candidate list.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from .audit_logger import AuditLogger
from .exceptions import RegistrarError, ValidationError
from .models import SearchResult
from .registrar_client import Registrar
from .retry_manager import RetryManager

COMPONENT = "Prober"


@dataclass
class ProbeOutcome:
    """Result of scanning a candidate list."""

    result: Optional[SearchResult] = None
    candidate: Optional[str] = None
    probed: list[str] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def found(self) -> bool:
        return self.result is not None


class AvailabilityProber:
    """Queries the registrar for availability, one candidate at a time."""

    def __init__(
        self,
        registrar: Registrar,
        retry_manager: Optional[RetryManager] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._registrar = registrar
        self._retry_manager = retry_manager
        self._logger = logger

    async def probe(self, domain: str) -> SearchResult:
        """
        Look up one domain.

        Raises:
            RegistrarError: If the lookup failed after all retries
        """
        if self._retry_manager is None:
            return await self._registrar.search_domain(domain)
        return await self._retry_manager.call(lambda: self._registrar.search_domain(domain))

    async def find_first_available(self, candidates: Iterable[str]) -> ProbeOutcome:
        """
        Probe candidates in order and stop at the first available one.

        A failed lookup counts as "not available"; it is logged and the scan
        continues with the next candidate.
        """
        outcome = ProbeOutcome()

        for candidate in candidates:
            outcome.probed.append(candidate)
            try:
                result = await self.probe(candidate)
            except (RegistrarError, ValidationError) as e:
                self._record_failure(outcome, candidate, e.message, e)
                continue
            except Exception as e:
                self._record_failure(outcome, candidate, str(e) or type(e).__name__, e)
                continue

            if result.available:
                outcome.result = result
                outcome.candidate = candidate
                if self._logger:
                    self._logger.info(COMPONENT, f"Available variant found: {candidate}", {
                        "candidate": candidate,
                        "price": result.price,
                        "currency": result.currency,
                        "probed": len(outcome.probed),
                    })
                break

        return outcome

    def _record_failure(
        self, outcome: ProbeOutcome, candidate: str, message: str, error: Exception
    ) -> None:
        outcome.failures[candidate] = message
        if self._logger:
            self._logger.log_error(
                COMPONENT,
                f"Error checking {candidate}",
                error=error,
                additional_data={"candidate": candidate},
            )
