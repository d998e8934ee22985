import csv
from pathlib import Path

from o365_admin.m365_client import M365GraphError
from o365_admin.onedrive import QuotaStatus, audit_quotas, evaluate_quota, write_report

GIB = 1024 ** 3


def _drive(used_gb, total_gb, state="normal"):
    return {
        "webUrl": "https://contoso-my.sharepoint.com/personal/a_contoso_com",
        "quota": {"used": used_gb * GIB, "total": total_gb * GIB, "state": state},
    }


class FakeDriveGraph:
    def __init__(self, drives):
        self.drives = drives

    def get_user_drive(self, user):
        value = self.drives.get(user)
        if isinstance(value, Exception):
            raise value
        return value


def test_drive_under_threshold_is_ok():
    report = evaluate_quota("a@contoso.com", _drive(10, 1024), warn_percent=90)
    assert report.status is QuotaStatus.OK
    assert report.used_gb == 10.0
    assert report.total_gb == 1024.0
    assert report.remaining_gb == 1014.0
    assert report.percent_used == 1.0


def test_drive_over_threshold_is_warning():
    report = evaluate_quota("a@contoso.com", _drive(95, 100), warn_percent=90)
    assert report.status is QuotaStatus.WARNING
    assert "95.0%" in report.describe()


def test_service_quota_state_raises_warning():
    report = evaluate_quota("a@contoso.com", _drive(10, 100, state="Nearing"), warn_percent=90)
    assert report.status is QuotaStatus.WARNING
    assert report.state == "nearing"


def test_audit_reports_errors_per_user_and_continues():
    graph = FakeDriveGraph(
        {
            "a@contoso.com": _drive(1, 1024),
            "b@contoso.com": None,
            "c@contoso.com": M365GraphError(403, "accessDenied", "Access denied"),
        }
    )
    seen = []
    reports = audit_quotas(graph, ["a@contoso.com", "b@contoso.com", "c@contoso.com", ""], 90, emit=seen.append)

    assert [r.status for r in reports] == [
        QuotaStatus.OK,
        QuotaStatus.ERROR,
        QuotaStatus.ERROR,
        QuotaStatus.ERROR,
    ]
    assert reports[1].detail == "OneDrive is not provisioned"
    assert "Access denied" in reports[2].describe()
    assert seen == reports


def test_write_report(tmp_path: Path):
    graph = FakeDriveGraph({"a@contoso.com": _drive(50, 100), "b@contoso.com": None})
    reports = audit_quotas(graph, ["a@contoso.com", "b@contoso.com"], 40)

    path = write_report(tmp_path / "out" / "quota.csv", reports)

    with path.open(encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))
    assert rows[0]["principal"] == "a@contoso.com"
    assert rows[0]["status"] == "warning"
    assert rows[0]["percent_used"] == "50.0"
    assert rows[1]["status"] == "error"
    assert rows[1]["used_gb"] == ""
