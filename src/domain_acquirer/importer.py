"""
CSV import of organization names.

Reads a spreadsheet export, normalizes the chosen column into base domains
and creates one pending record per new domain.
"""

import csv
from dataclasses import dataclass, field
from typing import Optional, Union

from .audit_logger import AuditLogger
from .config import AcquisitionConfig
from .exceptions import ValidationError
from .models import ImportSummary
from .normalizer import is_import_worthy, normalize_org_name
from .record_store import RecordStore

COMPONENT = "Importer"


@dataclass
class CsvTable:
    """Parsed CSV: header row plus data rows."""

    headers: list[str] = field(default_factory=list)
    rows: list[list[str]] = field(default_factory=list)


def parse_csv(text: str) -> CsvTable:
    """
    Parse CSV text whose first non-blank line is the header row.

    Commas inside quoted cells are kept; cells are trimmed and stray quote
    characters removed.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        return CsvTable()

    # Quote state never spans lines
    parsed = [
        [cell.strip().replace('"', "") for cell in next(csv.reader([line], skipinitialspace=True))]
        for line in lines
    ]
    return CsvTable(headers=parsed[0], rows=parsed[1:])


def resolve_column(headers: list[str], column: Union[str, int]) -> int:
    """
    Resolve a column given by header name or zero-based index.

    Raises:
        ValidationError: If the column does not exist
    """
    if isinstance(column, str) and column in headers:
        return headers.index(column)

    # Numeric strings from the CLI are treated as indexes
    if isinstance(column, int) or column.isdigit():
        index = int(column)
        if 0 <= index < len(headers):
            return index

    raise ValidationError(
        code="unknown_column",
        message=f"Column not found: {column}",
        details={"column": column, "headers": headers},
    )


class DomainImporter:
    """Creates pending records from tabular organization names."""

    def __init__(
        self,
        store: RecordStore,
        config: Optional[AcquisitionConfig] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._store = store
        self._config = config or AcquisitionConfig()
        self._logger = logger

    def import_text(
        self,
        text: str,
        column: Union[str, int],
        email_forward_to: Optional[str] = None,
    ) -> ImportSummary:
        """Parse CSV text and import one column of it."""
        return self.import_table(parse_csv(text), column, email_forward_to)

    def import_table(
        self,
        table: CsvTable,
        column: Union[str, int],
        email_forward_to: Optional[str] = None,
    ) -> ImportSummary:
        """
        Import one column of a parsed table.

        Empty cells, names that normalize to fewer than the minimum length and
        domains that already exist (in the store or earlier in the same table)
        are skipped. Survivors are created in a single batch.
        """
        index = resolve_column(table.headers, column)
        summary = ImportSummary()
        seen = {record.original_domain for record in self._store.list_all()}

        for row in table.rows:
            cell = row[index].strip() if index < len(row) else ""
            if not cell:
                summary.skipped_empty += 1
                continue

            domain = normalize_org_name(cell, self._config.default_tld)
            if not is_import_worthy(domain, self._config.min_domain_length):
                summary.skipped_short += 1
                continue
            if domain in seen:
                summary.skipped_duplicate += 1
                continue

            seen.add(domain)
            summary.domains.append(domain)

        if summary.domains:
            created = self._store.create_many(summary.domains, email_forward_to or None)
            summary.created = len(created)

        if self._logger:
            self._logger.info(COMPONENT, f"Imported {summary.created} domain(s)", {
                "column": column,
                "rows": len(table.rows),
                "created": summary.created,
                "skipped_empty": summary.skipped_empty,
                "skipped_short": summary.skipped_short,
                "skipped_duplicate": summary.skipped_duplicate,
            })

        return summary
