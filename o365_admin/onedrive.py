"""OneDrive for Business storage quota auditing."""
from __future__ import annotations

import csv
import logging
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import requests

from .errors import AuthError
from .m365_client import M365Client, M365GraphError

logger = logging.getLogger(__name__)

GIB = 1024 ** 3
ALERT_STATES = {"nearing", "critical", "exceeded"}
REPORT_FIELDS = (
    "principal",
    "status",
    "used_gb",
    "total_gb",
    "remaining_gb",
    "percent_used",
    "state",
    "web_url",
    "detail",
)


class QuotaStatus(str, Enum):
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class QuotaReport:
    principal: str
    status: QuotaStatus
    used_gb: Optional[float] = None
    total_gb: Optional[float] = None
    remaining_gb: Optional[float] = None
    percent_used: Optional[float] = None
    state: Optional[str] = None
    web_url: Optional[str] = None
    detail: str = ""

    def describe(self) -> str:
        if self.status is QuotaStatus.ERROR:
            return f"ERROR {self.principal}: {self.detail}"
        return (
            f"{self.principal}: {self.used_gb:.2f} GB of {self.total_gb:.2f} GB used "
            f"({self.percent_used:.1f}%), state {self.state or 'unknown'}"
        )


def _gigabytes(value: Optional[int]) -> float:
    return round(float(value or 0) / GIB, 2)


def evaluate_quota(principal: str, drive: dict, warn_percent: float) -> QuotaReport:
    """Turn a Graph ``drive`` resource into an audit line."""

    quota = drive.get("quota") or {}
    used = int(quota.get("used") or 0)
    total = int(quota.get("total") or 0)
    remaining = quota.get("remaining")
    state = (quota.get("state") or "").strip().lower() or None
    percent = round(used / total * 100, 1) if total else 0.0

    if total and percent >= warn_percent:
        status = QuotaStatus.WARNING
    elif state in ALERT_STATES:
        status = QuotaStatus.WARNING
    else:
        status = QuotaStatus.OK

    return QuotaReport(
        principal=principal,
        status=status,
        used_gb=_gigabytes(used),
        total_gb=_gigabytes(total),
        remaining_gb=_gigabytes(remaining if remaining is not None else max(total - used, 0)),
        percent_used=percent,
        state=state,
        web_url=drive.get("webUrl"),
    )


def audit_quota(client: M365Client, principal: str, warn_percent: float) -> QuotaReport:
    cleaned = (principal or "").strip()
    if not cleaned:
        return QuotaReport(principal="<blank>", status=QuotaStatus.ERROR, detail="principal name is blank")
    try:
        drive = client.get_user_drive(cleaned)
    except (AuthError, M365GraphError, requests.RequestException) as exc:
        return QuotaReport(principal=cleaned, status=QuotaStatus.ERROR, detail=str(exc))
    if drive is None:
        return QuotaReport(principal=cleaned, status=QuotaStatus.ERROR, detail="OneDrive is not provisioned")
    return evaluate_quota(cleaned, drive, warn_percent)


def audit_quotas(
    client: M365Client,
    principals: Iterable[str],
    warn_percent: float,
    emit: Optional[Callable[[QuotaReport], None]] = None,
) -> List[QuotaReport]:
    reports: List[QuotaReport] = []
    for principal in principals:
        report = audit_quota(client, principal, warn_percent)
        logger.debug("Quota for %s: %s", report.principal, report.status.value)
        if emit:
            emit(report)
        reports.append(report)
    return reports


def write_report(path: Path, reports: Iterable[QuotaReport]) -> Path:
    """Write audit results as CSV, returning the path written."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=REPORT_FIELDS)
        writer.writeheader()
        for report in reports:
            row = asdict(report)
            row["status"] = report.status.value
            writer.writerow({key: "" if row[key] is None else row[key] for key in REPORT_FIELDS})
    return path


__all__ = [
    "QuotaReport",
    "QuotaStatus",
    "audit_quota",
    "audit_quotas",
    "evaluate_quota",
    "write_report",
]
