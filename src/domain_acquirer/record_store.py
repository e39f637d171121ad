"""
Record Store module for imported-domain records.

Defines the RecordStore protocol consumed by the acquisition pipeline, an
in-memory implementation, and a JSON file implementation protected by an
HMAC so that manual edits of the file are detected.
"""

import hashlib
import hmac
import json
import uuid
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Optional, Protocol, Sequence, runtime_checkable

from .enums import DomainStatus
from .exceptions import NotFoundError, StoreError, TamperingError, ValidationError
from .models import MUTABLE_FIELDS, ImportedDomain, OperatorSettings, utc_now


@runtime_checkable
class RecordStore(Protocol):
    """Keyed storage for ImportedDomain records and operator settings."""

    def create(self, original_domain: str, email_forward_to: Optional[str] = None) -> ImportedDomain:
        ...

    def create_many(
        self, original_domains: Sequence[str], email_forward_to: Optional[str] = None
    ) -> list[ImportedDomain]:
        ...

    def get(self, record_id: str) -> ImportedDomain:
        ...

    def list_all(self) -> list[ImportedDomain]:
        ...

    def update(self, record_id: str, **changes: Any) -> ImportedDomain:
        ...

    def delete(self, record_id: str) -> None:
        ...

    def delete_all(self) -> int:
        ...

    def load_settings(self) -> OperatorSettings:
        ...

    def save_settings(self, settings: OperatorSettings) -> None:
        ...


class InMemoryRecordStore:
    """
    Record store held in process memory.

    Records are kept in insertion order; ``list_all`` returns them newest
    first. Every method returns copies, so callers never mutate stored state.
    """

    def __init__(self) -> None:
        self._records: dict[str, ImportedDomain] = {}
        self._settings = OperatorSettings()

    def create(self, original_domain: str, email_forward_to: Optional[str] = None) -> ImportedDomain:
        return self.create_many([original_domain], email_forward_to)[0]

    def create_many(
        self, original_domains: Sequence[str], email_forward_to: Optional[str] = None
    ) -> list[ImportedDomain]:
        """
        Create one pending record per domain.

        Raises:
            ValidationError: If a domain is empty or already stored; nothing
                             is created in that case
        """
        existing = {r.original_domain for r in self._records.values()}
        batch: set[str] = set()
        for domain in original_domains:
            if not domain or not domain.strip():
                raise ValidationError(
                    code="empty_domain",
                    message="Original domain must not be empty",
                )
            if domain in existing or domain in batch:
                raise ValidationError(
                    code="duplicate_domain",
                    message=f"Domain {domain} already exists",
                    details={"original_domain": domain},
                )
            batch.add(domain)

        now = utc_now()
        created = []
        for domain in original_domains:
            record = ImportedDomain(
                id=uuid.uuid4().hex,
                original_domain=domain,
                email_forward_to=email_forward_to or None,
                status=DomainStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            self._records[record.id] = record
            created.append(replace(record))

        self._commit()
        return created

    def get(self, record_id: str) -> ImportedDomain:
        return replace(self._get(record_id))

    def list_all(self) -> list[ImportedDomain]:
        # Stable sort over reversed insertion order keeps batch-created
        # records (same timestamp) newest-inserted first
        records = sorted(
            reversed(list(self._records.values())),
            key=lambda r: r.created_at,
            reverse=True,
        )
        return [replace(r) for r in records]

    def update(self, record_id: str, **changes: Any) -> ImportedDomain:
        """
        Apply a partial update. A value of None clears the field.

        Raises:
            NotFoundError: If the record does not exist
            ValidationError: If a field is unknown or immutable
        """
        record = self._get(record_id)

        unknown = set(changes) - MUTABLE_FIELDS
        if unknown:
            raise ValidationError(
                code="invalid_field",
                message=f"Cannot update field(s): {', '.join(sorted(unknown))}",
                details={"fields": sorted(unknown)},
            )

        if "status" in changes and not isinstance(changes["status"], DomainStatus):
            try:
                changes["status"] = DomainStatus(changes["status"])
            except ValueError:
                raise ValidationError(
                    code="invalid_status",
                    message=f"Unknown status: {changes['status']}",
                )

        updated = replace(record, **changes, updated_at=utc_now())
        self._records[record_id] = updated
        self._commit()
        return replace(updated)

    def delete(self, record_id: str) -> None:
        self._get(record_id)
        del self._records[record_id]
        self._commit()

    def delete_all(self) -> int:
        count = len(self._records)
        self._records.clear()
        self._commit()
        return count

    def load_settings(self) -> OperatorSettings:
        return replace(self._settings)

    def save_settings(self, settings: OperatorSettings) -> None:
        self._settings = replace(settings)
        self._commit()

    def _get(self, record_id: str) -> ImportedDomain:
        record = self._records.get(record_id)
        if record is None:
            raise NotFoundError(
                code="record_not_found",
                message="Domain not found",
                details={"record_id": record_id},
            )
        return record

    def _commit(self) -> None:
        """Hook called after every mutation."""
        pass


class JsonRecordStore(InMemoryRecordStore):
    """
    Record store persisted to a JSON file with HMAC protection.

    The file is written after every mutation so each state transition is
    durable. Loading a file whose HMAC does not match raises TamperingError.
    """

    VERSION = 1

    def __init__(self, file_path: Path, hmac_secret: str) -> None:
        """
        Initialize the store and load the file if it exists.

        Args:
            file_path: Path to the store file (JSON format)
            hmac_secret: Secret key for HMAC computation
        """
        super().__init__()
        self._file_path = Path(file_path)
        self._hmac_secret = hmac_secret.encode("utf-8")
        self.load()

    @property
    def file_path(self) -> Path:
        return self._file_path

    def load(self) -> None:
        """
        Replace in-memory state with the file's content.

        Raises:
            TamperingError: If HMAC validation fails
            StoreError: If the file cannot be read or parsed
        """
        if not self._file_path.exists():
            self._records = {}
            self._settings = OperatorSettings()
            return

        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                raw_data = json.load(f)
        except json.JSONDecodeError as e:
            raise StoreError(
                code="parse_error",
                message=f"Failed to parse store file: {e}",
                details={"file_path": str(self._file_path)},
            )
        except OSError as e:
            raise StoreError(
                code="io_error",
                message=f"Failed to read store file: {e}",
                details={"file_path": str(self._file_path)},
            )

        stored_hmac = raw_data.get("hmac", "")
        computed_hmac = self.compute_hmac(self._signed_payload(raw_data))
        if not hmac.compare_digest(stored_hmac, computed_hmac):
            raise TamperingError(
                code="hmac_mismatch",
                message="HMAC validation failed - data may have been tampered with",
                details={"file_path": str(self._file_path)},
            )

        try:
            records = [ImportedDomain.from_dict(item) for item in raw_data.get("records", [])]
            settings = OperatorSettings(**raw_data.get("settings", {}))
        except (TypeError, ValueError) as e:
            raise StoreError(
                code="parse_error",
                message=f"Invalid record in store file: {e}",
                details={"file_path": str(self._file_path)},
            )

        self._records = {record.id: record for record in records}
        self._settings = settings

    def save(self) -> None:
        """
        Write all records and settings to the file.

        Raises:
            StoreError: If the file cannot be written
        """
        payload = {
            "version": self.VERSION,
            "records": [record.to_dict() for record in self._records.values()],
            "settings": asdict(self._settings),
            "last_updated": utc_now(),
        }
        output = dict(payload, hmac=self.compute_hmac(payload))

        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._file_path.with_suffix(self._file_path.suffix + ".tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(output, f, indent=2, sort_keys=True, ensure_ascii=False)
            tmp_path.replace(self._file_path)
        except OSError as e:
            raise StoreError(
                code="io_error",
                message=f"Failed to write store file: {e}",
                details={"file_path": str(self._file_path)},
            )

    def compute_hmac(self, data: dict) -> str:
        """HMAC-SHA256 over the canonical JSON serialization of ``data``."""
        serialized = json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
        return hmac.new(
            self._hmac_secret,
            serialized.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    @staticmethod
    def _signed_payload(raw_data: dict) -> dict:
        return {
            "version": raw_data.get("version"),
            "records": raw_data.get("records", []),
            "settings": raw_data.get("settings", {}),
            "last_updated": raw_data.get("last_updated"),
        }

    def _commit(self) -> None:
        self.save()
