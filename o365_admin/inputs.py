"""Input table ingestion and command line parameter validation."""
from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .errors import ConfigError, InputError
from .models import GuidRecord, LicenseRecord, Tenant, normalize_tenant_name

logger = logging.getLogger(__name__)

PRINCIPAL_COLUMNS = ("userprincipalname", "upn", "principalname", "primarysmtpaddress", "email")
GUID_COLUMNS = ("exchangeguid", "mailboxguid", "guid")
LICENSE_COLUMNS = ("license", "licensecode", "sku")
USAGE_LOCATION_COLUMNS = ("usagelocation", "country")


def validate_tenant(name: Optional[str]) -> Tenant:
    """Return the tenant addressed by ``name`` or fail when it is blank."""

    cleaned = normalize_tenant_name(name or "")
    if not cleaned:
        raise ConfigError("Tenant name must not be blank.")
    return Tenant(name=cleaned)


def _is_blank(row: Dict[str, str]) -> bool:
    return not any(isinstance(value, str) and value.strip() for value in row.values())


def read_table(path: Path) -> List[Dict[str, str]]:
    """Read a CSV file with a header row into a list of row mappings."""

    path = Path(path)
    if not path.is_file():
        raise InputError(f"Input file '{path}' does not exist.")

    # utf-8-sig so files saved by Excel don't carry the BOM into the first header.
    with path.open("r", encoding="utf-8-sig", newline="") as handle:
        reader = csv.DictReader(handle)
        headers = list(reader.fieldnames or [])
        rows = [row for row in reader if not _is_blank(row)]

    if not headers or not rows:
        raise InputError(f"Input file '{path}' contains no records.")
    logger.debug("Read %s rows from %s", len(rows), path)
    return rows


def _find_column(headers: Iterable[str], aliases: Sequence[str]) -> Optional[str]:
    lookup = {str(header).strip().lower(): header for header in headers if header}
    for alias in aliases:
        if alias in lookup:
            return lookup[alias]
    return None


def _require_column(path: Path, headers: Iterable[str], aliases: Sequence[str], label: str) -> str:
    column = _find_column(headers, aliases)
    if column is None:
        raise InputError(
            f"Input file '{path}' has no {label} column. Expected one of: {', '.join(aliases)}."
        )
    return column


def _cell(row: Dict[str, str], column: Optional[str]) -> str:
    if column is None:
        return ""
    return (row.get(column) or "").strip()


def load_guid_records(path: Path) -> List[GuidRecord]:
    """Load principal names and their declared mailbox GUIDs."""

    rows = read_table(path)
    headers = rows[0].keys()
    principal_column = _require_column(path, headers, PRINCIPAL_COLUMNS, "principal name")
    guid_column = _require_column(path, headers, GUID_COLUMNS, "GUID")
    return [
        GuidRecord(principal_name=_cell(row, principal_column), declared_guid=_cell(row, guid_column))
        for row in rows
    ]


def load_license_records(path: Path) -> List[LicenseRecord]:
    """Load principal names with the license code each should hold."""

    rows = read_table(path)
    headers = rows[0].keys()
    principal_column = _require_column(path, headers, PRINCIPAL_COLUMNS, "principal name")
    license_column = _require_column(path, headers, LICENSE_COLUMNS, "license")
    location_column = _find_column(headers, USAGE_LOCATION_COLUMNS)
    return [
        LicenseRecord(
            principal_name=_cell(row, principal_column),
            license_code=_cell(row, license_column),
            usage_location=_cell(row, location_column).upper() or None,
        )
        for row in rows
    ]


def load_principals(path: Path) -> List[str]:
    """Load the principal name column only."""

    rows = read_table(path)
    principal_column = _require_column(path, rows[0].keys(), PRINCIPAL_COLUMNS, "principal name")
    return [_cell(row, principal_column) for row in rows]


__all__ = [
    "load_guid_records",
    "load_license_records",
    "load_principals",
    "read_table",
    "validate_tenant",
]
