"""Mailbox GUID normalization and classification."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from .errors import RemoteLookupError
from .models import Classification, GuidRecord

GuidLookup = Callable[[str], Optional[str]]


def normalize_guid(value: Optional[str]) -> str:
    """Strip braces and surrounding whitespace, then fold to uppercase."""

    return (value or "").strip().replace("{", "").replace("}", "").strip().upper()


@dataclass(frozen=True)
class GuidCheck:
    """Result of comparing one record against the live remote GUID."""

    classification: Classification
    declared: str
    remote: Optional[str] = None
    detail: str = ""


def check_record(record: GuidRecord, remote_lookup: GuidLookup) -> GuidCheck:
    """Fetch the remote GUID for ``record`` and compare it to the declared one.

    A lookup that returns ``None`` or raises :class:`RemoteLookupError` is an
    ``ERROR``. Otherwise the record is a ``CHANGE`` when the normalized
    strings differ and a ``MATCH`` when they are equal.
    """

    declared = normalize_guid(record.declared_guid)
    try:
        remote_raw = remote_lookup(record.principal_name)
    except RemoteLookupError as exc:
        return GuidCheck(Classification.ERROR, declared, detail=str(exc))

    if remote_raw is None:
        return GuidCheck(
            Classification.ERROR,
            declared,
            detail=f"{record.principal_name or '<blank>'} was not found",
        )

    remote = normalize_guid(remote_raw)
    if declared != remote:
        return GuidCheck(Classification.CHANGE, declared, remote)
    return GuidCheck(Classification.MATCH, declared, remote)


def classify(record: GuidRecord, remote_lookup: GuidLookup) -> Classification:
    return check_record(record, remote_lookup).classification


__all__ = ["GuidCheck", "GuidLookup", "check_record", "classify", "normalize_guid"]
