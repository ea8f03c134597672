"""CSV import/export of column records."""

import csv
import io
import uuid
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from .models import DEFAULT_NDMO_CLASSIFICATION, FLAG_FIELDS, ColumnRecord

EXPORT_HEADERS = (
    "ID",
    "Column Name",
    "Description",
    "NDMO Classification",
    "reason_ndmo",
    "PII",
    "PHI",
    "PFI",
    "PSI",
    "PCI",
)

# Accepted header spellings per field, in lookup order.
HEADER_ALIASES: Dict[str, Sequence[str]] = {
    "id": ("ID", "id", "Id"),
    "column_name": ("Column Name", "column_name", "columnName"),
    "description": ("Description", "description"),
    "ndmo_classification": ("NDMO Classification", "ndmo_classification", "ndmoClassification"),
    "reason_ndmo": ("reason_ndmo", "reasonNdmo", "Reason NDMO"),
}
HEADER_ALIASES.update({flag: (flag.upper(), flag) for flag in FLAG_FIELDS})

TRUE_VALUES = ("true", "yes", "1")


class CsvImportError(ValueError):
    """Raised when a CSV file cannot be turned into column records."""


def to_boolean(value: Any) -> bool:
    """Permissive CSV boolean: true/yes/1 (any case, trimmed) are true."""
    if value is None:
        return False
    return str(value).strip().lower() in TRUE_VALUES


def _lookup(row: Dict[str, Any], field: str) -> Optional[str]:
    for header in HEADER_ALIASES[field]:
        value = row.get(header)
        if value is not None and str(value).strip():
            return str(value)
    return None


def parse_columns_csv(text: str) -> List[ColumnRecord]:
    """Parse CSV text (with header row) into column records.

    Rows without a column name are skipped. Missing ids are generated and a
    missing classification defaults to Public.
    """
    reader = csv.DictReader(io.StringIO((text or "").lstrip("\ufeff")))
    records: List[ColumnRecord] = []
    for row in reader:
        column_name = _lookup(row, "column_name")
        if not column_name or not column_name.strip():
            continue
        values: Dict[str, Any] = {
            "id": (_lookup(row, "id") or "").strip() or str(uuid.uuid4()),
            "column_name": column_name.strip(),
            "description": _lookup(row, "description") or "",
            "ndmo_classification": _lookup(row, "ndmo_classification") or DEFAULT_NDMO_CLASSIFICATION,
            "reason_ndmo": _lookup(row, "reason_ndmo"),
        }
        for flag in FLAG_FIELDS:
            values[flag] = to_boolean(_lookup(row, flag))
        try:
            records.append(ColumnRecord(**values))
        except ValidationError as e:
            raise CsvImportError(f"Line {reader.line_num}: {e.errors()[0]['msg']}") from e
    return records


def columns_to_csv(records: Iterable[ColumnRecord]) -> str:
    """Export records with the fixed header order; booleans as true/false."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\r\n")
    writer.writerow(EXPORT_HEADERS)
    for record in records:
        writer.writerow([
            record.id or "",
            record.column_name,
            record.description,
            record.ndmo_classification or DEFAULT_NDMO_CLASSIFICATION,
            record.reason_ndmo or "",
            *("true" if getattr(record, flag) else "false" for flag in FLAG_FIELDS),
        ])
    return buffer.getvalue()
