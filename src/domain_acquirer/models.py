"""
Data models for the domain acquisition pipeline.

This module defines the imported-domain record, the operator settings that
persist between runs, the typed registrar response schema and the result
types returned by batch operations.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Optional

from .enums import DomainStatus


def utc_now() -> str:
    """Current UTC time as ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ImportedDomain:
    """One organization's domain on its way through the acquisition pipeline."""

    id: str
    original_domain: str
    status: DomainStatus = DomainStatus.PENDING
    purchased_domain: Optional[str] = None
    price: Optional[float] = None
    currency: Optional[str] = None
    forward_url: Optional[str] = None
    email_prefix: Optional[str] = None
    email_forward_to: Optional[str] = None
    error: Optional[str] = None
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)
    purchased_at: Optional[str] = None

    @property
    def effective_forward_url(self) -> str:
        """Forward target: the operator's URL, else the original domain over HTTPS."""
        return self.forward_url or f"https://{self.original_domain}"

    @property
    def is_purchased(self) -> bool:
        return self.purchased_at is not None

    def to_dict(self) -> dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImportedDomain":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values["status"] = DomainStatus(values.get("status", DomainStatus.PENDING.value))
        return cls(**values)


# Fields an update may touch; id and created_at are immutable.
MUTABLE_FIELDS = frozenset({
    "status",
    "purchased_domain",
    "price",
    "currency",
    "forward_url",
    "email_prefix",
    "email_forward_to",
    "error",
    "purchased_at",
})


@dataclass
class OperatorSettings:
    """Batch-wide operator settings that survive restarts."""

    email_forward_to: Optional[str] = None
    last_email_prefix: Optional[str] = None


@dataclass
class SearchResult:
    """Availability of one domain as quoted by the registrar."""

    domain: str
    available: bool
    price: Optional[float] = None
    currency: Optional[str] = None


@dataclass
class OperationResult:
    """Outcome of a mutating registrar call."""

    success: bool
    message: str


@dataclass
class RegisteredDomain:
    """A domain held in the registrar account."""

    domain: str
    expiration: Optional[str] = None
    status: Optional[str] = None


@dataclass
class EmailForward:
    """One mailbox alias forward: username@domain -> forward_to."""

    username: str
    forward_to: str


@dataclass
class BatchSearchResult:
    """Result of searching all pending records."""

    found: list[str] = field(default_factory=list)
    no_variant: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def processed(self) -> int:
        return len(self.found) + len(self.no_variant) + len(self.failed)


@dataclass
class BulkForwardEntry:
    """Per-domain result of a bulk email forward."""

    domain: str
    success: bool
    message: str


@dataclass
class BulkForwardResult:
    """Aggregate result of a bulk email forward."""

    success: bool
    message: str
    success_count: int
    total: int
    results: list[BulkForwardEntry] = field(default_factory=list)


@dataclass
class ImportSummary:
    """Outcome of a CSV import."""

    created: int = 0
    skipped_duplicate: int = 0
    skipped_short: int = 0
    skipped_empty: int = 0
    domains: list[str] = field(default_factory=list)
