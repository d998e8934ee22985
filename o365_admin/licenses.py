"""License code decision table and bulk license assignment."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

import requests

from .errors import AuthError, ConnectError, InputError
from .m365_client import M365Client, M365GraphError
from .models import Classification, LicenseRecord, Phase, RecordOutcome, Step, Tenant
from .reporting import OutcomeSink

logger = logging.getLogger(__name__)

# Short license codes used in input sheets mapped to SKU part numbers.
LICENSE_CODES: Dict[str, str] = {
    "E1": "STANDARDPACK",
    "E3": "ENTERPRISEPACK",
    "E5": "ENTERPRISEPREMIUM",
    "F3": "DESKLESSPACK",
    "K1": "DESKLESSPACK",
    "M365E3": "SPE_E3",
    "M365E5": "SPE_E5",
    "BB": "O365_BUSINESS_ESSENTIALS",
    "BS": "O365_BUSINESS_PREMIUM",
    "BP": "SPB",
    "EXO1": "EXCHANGESTANDARD",
    "EXO2": "EXCHANGEENTERPRISE",
}

USER_SELECT = "id,userPrincipalName,usageLocation,assignedLicenses"


def resolve_part_number(code: str, overrides: Optional[Mapping[str, str]] = None) -> str:
    """Map a license code to its SKU part number.

    Codes are case-insensitive. Configured overrides win over the built-in
    table, and a value that already is a known part number passes through.
    """

    cleaned = (code or "").strip().upper()
    if not cleaned:
        raise InputError("License code is blank.")
    table = dict(LICENSE_CODES)
    table.update({key.upper(): value for key, value in (overrides or {}).items()})
    if cleaned in table:
        return table[cleaned]
    if cleaned in {value.upper() for value in table.values()}:
        return cleaned
    raise InputError(f"Unknown license code '{code}'.")


def account_sku_id(tenant: Tenant, code: str, overrides: Optional[Mapping[str, str]] = None) -> str:
    """Render the classic ``tenant:PARTNUMBER`` account SKU identifier."""

    return f"{tenant.name}:{resolve_part_number(code, overrides)}"


def build_sku_index(catalog: Iterable[Dict[str, Any]]) -> Dict[str, str]:
    index: Dict[str, str] = {}
    for sku in catalog:
        part = str(sku.get("skuPartNumber") or "").strip().upper()
        sku_id = str(sku.get("skuId") or "").strip()
        if part and sku_id:
            index[part] = sku_id
    return index


def resolve_sku_id(part_number: str, catalog: Iterable[Dict[str, Any]]) -> Optional[str]:
    return build_sku_index(catalog).get((part_number or "").strip().upper())


@dataclass
class LicenseReport:
    assigned: int = 0
    already_licensed: int = 0
    failed: int = 0
    skipped: int = 0


class LicenseAssigner:
    """Assign one license per input record, continuing past per-record failures."""

    def __init__(
        self,
        client: M365Client,
        tenant: Tenant,
        emit: OutcomeSink,
        overrides: Optional[Mapping[str, str]] = None,
        default_usage_location: Optional[str] = None,
    ) -> None:
        self._client = client
        self._tenant = tenant
        self._emit = emit
        self._overrides = dict(overrides or {})
        self._default_usage_location = default_usage_location

    def run(self, records: Sequence[LicenseRecord]) -> LicenseReport:
        try:
            index = build_sku_index(self._client.list_subscribed_skus())
        except (M365GraphError, requests.RequestException) as exc:
            raise ConnectError(f"Unable to read subscribed SKUs for {self._tenant.domain}: {exc}") from exc
        logger.info("Tenant %s has %s subscribed SKUs", self._tenant.domain, len(index))

        report = LicenseReport()
        for record in records:
            self._process(record, index, report)
        return report

    def _outcome(
        self,
        record: LicenseRecord,
        step: Step,
        classification: Classification,
        detail: str,
        sku: Optional[str] = None,
    ) -> None:
        self._emit(
            RecordOutcome(
                phase=Phase.ACTION,
                step=step,
                principal=record.principal_name,
                classification=classification,
                declared=sku,
                detail=detail,
            )
        )

    def _skip(self, record: LicenseRecord, report: LicenseReport, detail: str) -> None:
        report.skipped += 1
        self._outcome(record, Step.SKIPPED, Classification.ERROR, f"ERROR {detail}")

    def _process(self, record: LicenseRecord, index: Dict[str, str], report: LicenseReport) -> None:
        principal = record.principal_name or "<blank>"
        try:
            part_number = resolve_part_number(record.license_code, self._overrides)
        except InputError as exc:
            self._skip(record, report, f"for {principal}: {exc}")
            return

        label = account_sku_id(self._tenant, part_number, self._overrides)
        sku_id = index.get(part_number.upper())
        if not sku_id:
            self._skip(record, report, f"for {principal}: tenant has no subscription for {label}")
            return

        try:
            user = self._client.find_user(record.principal_name, select=USER_SELECT)
        except (AuthError, M365GraphError, requests.RequestException) as exc:
            self._skip(record, report, f"looking up {principal}: {exc}")
            return
        if not user:
            self._skip(record, report, f"looking up {principal}: user was not found")
            return

        assigned = {str(entry.get("skuId")) for entry in user.get("assignedLicenses") or []}
        if sku_id in assigned:
            report.already_licensed += 1
            self._outcome(
                record, Step.UNCHANGED, Classification.MATCH, f"{principal} already has {label}", label
            )
            return

        self._outcome(
            record, Step.ATTEMPT, Classification.CHANGE, f"Attempting to assign {label} to {principal}", label
        )
        location = record.usage_location or self._default_usage_location
        try:
            if location and user.get("usageLocation") != location:
                self._client.update_user(user["id"], usageLocation=location)
            self._client.assign_license(user["id"], sku_id)
        except (AuthError, M365GraphError, requests.RequestException) as exc:
            report.failed += 1
            self._outcome(
                record,
                Step.UPDATE_FAILED,
                Classification.CHANGE,
                f"ERROR assigning {label} to {principal}: {exc}",
                label,
            )
            return

        report.assigned += 1
        self._outcome(record, Step.UPDATED, Classification.CHANGE, f"{principal} licensed with {label}", label)


__all__ = [
    "LICENSE_CODES",
    "LicenseAssigner",
    "LicenseReport",
    "account_sku_id",
    "build_sku_index",
    "resolve_part_number",
    "resolve_sku_id",
]
