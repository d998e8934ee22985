"""Data models for tenants, input records and per-record outcomes."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


TENANT_DOMAIN_SUFFIX = ".onmicrosoft.com"


def normalize_tenant_name(raw: str) -> str:
    cleaned = (raw or "").strip().lower()
    if cleaned.endswith(TENANT_DOMAIN_SUFFIX):
        cleaned = cleaned[: -len(TENANT_DOMAIN_SUFFIX)]
    return cleaned


@dataclass(frozen=True)
class Tenant:
    """An Office 365 tenant addressed by its initial domain prefix."""

    name: str

    @property
    def domain(self) -> str:
        return f"{self.name}{TENANT_DOMAIN_SUFFIX}"

    @property
    def sharepoint_admin_url(self) -> str:
        return f"https://{self.name}-admin.sharepoint.com"


@dataclass(frozen=True)
class GuidRecord:
    """A mailbox whose Exchange GUID should equal the declared value."""

    principal_name: str
    declared_guid: str


@dataclass(frozen=True)
class LicenseRecord:
    """A user that should hold the license identified by ``license_code``."""

    principal_name: str
    license_code: str
    usage_location: Optional[str] = None


class Classification(str, Enum):
    MATCH = "match"
    CHANGE = "change"
    ERROR = "error"


class Phase(str, Enum):
    ANALYSIS = "analysis"
    ACTION = "action"


class Step(str, Enum):
    """What happened to a record at the point an outcome was emitted."""

    CLASSIFIED = "classified"
    ATTEMPT = "attempt"
    UPDATED = "updated"
    UPDATE_FAILED = "update_failed"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class RecordOutcome:
    """A single observable event for one record during a run."""

    phase: Phase
    step: Step
    principal: str
    classification: Classification
    declared: Optional[str] = None
    remote: Optional[str] = None
    detail: str = ""

    @property
    def is_error(self) -> bool:
        return self.step is Step.UPDATE_FAILED or self.classification is Classification.ERROR


__all__ = [
    "Classification",
    "GuidRecord",
    "LicenseRecord",
    "Phase",
    "RecordOutcome",
    "Step",
    "Tenant",
    "normalize_tenant_name",
]
