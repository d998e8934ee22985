"""Command line interface for the Office 365 administration toolkit."""
from __future__ import annotations

from pathlib import Path
from typing import NoReturn, Optional

import typer

from .auth import GRAPH_SCOPE, InteractiveTokenProvider
from .config import AppConfig, load_config
from .connect import connect_all, service_endpoints
from .errors import AuthError, ConfigError, ConnectError, InputError, O365AdminError
from .inputs import load_guid_records, load_license_records, load_principals, validate_tenant
from .licenses import LicenseAssigner
from .m365_client import M365Client
from .models import Classification
from .onedrive import QuotaReport, QuotaStatus, audit_quotas, write_report
from .reconcile import ReconcileState, ReconciliationReport, reconcile
from .reporting import ConsoleReporter, RunLog, broadcast, setup_logging
from .session import ExchangeSessionProvider

app = typer.Typer(help="Administrative commands for Microsoft Office 365 tenants.")

ConfigOption = typer.Option(None, "--config", help="Path to a specific settings file (overrides default).")


def _fail(exc: Exception) -> NoReturn:
    typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _load_configuration(config_path: Optional[Path]) -> AppConfig:
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        _fail(exc)
    setup_logging(config.logging.level)
    return config


def _graph_client(tenant, config: AppConfig) -> M365Client:
    tokens = InteractiveTokenProvider(tenant, config.auth.client_id, config.auth)
    try:
        tokens.acquire(GRAPH_SCOPE)
    except AuthError as exc:
        _fail(exc)
    return M365Client(tokens.token_source(GRAPH_SCOPE))


@app.command("match-guids")
def match_guids(
    file_path: Path = typer.Argument(..., help="CSV with UserPrincipalName and ExchangeGuid columns."),
    tenant_name: str = typer.Argument(..., help="Tenant name, e.g. contoso or contoso.onmicrosoft.com."),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Compare mail user ExchangeGuids with a CSV and fix mismatches after confirmation."""

    config = _load_configuration(config_path)
    try:
        tenant = validate_tenant(tenant_name)
        records = load_guid_records(file_path)
    except (ConfigError, InputError) as exc:
        _fail(exc)

    console = ConsoleReporter()
    console.banner(f"Connecting to Exchange Online for {tenant.domain}...")
    try:
        session = ExchangeSessionProvider(tenant, config).connect()
    except (AuthError, ConnectError) as exc:
        _fail(exc)

    def _confirm(report: ReconciliationReport) -> bool:
        typer.echo(
            f"Analysis complete: {report.analysis[Classification.MATCH]} match, "
            f"{report.pending_changes} to change, {report.analysis[Classification.ERROR]} errors."
        )
        try:
            return typer.confirm("Proceed with changes?", default=False)
        except typer.Abort:
            # End of input or Ctrl-C at the prompt declines the changes.
            typer.echo()
            return False

    console.banner(f"Analyzing {len(records)} records...")
    with RunLog("match_guids", config.logging.log_dir) as run_log:
        report = reconcile(records, session, [console, run_log], _confirm)

    if report.state is ReconcileState.ABORTED:
        typer.echo("Aborted. No changes were made.")
        return

    typer.secho(
        f"Done: {report.updated} changed, {report.unchanged} unchanged, "
        f"{report.failed} failed, {report.skipped} skipped.",
        bold=True,
    )
    if run_log.created:
        typer.echo(f"Log written to {run_log.path}")


@app.command("assign-licenses")
def assign_licenses(
    file_path: Path = typer.Argument(..., help="CSV with UserPrincipalName, License and optional UsageLocation."),
    tenant_name: str = typer.Argument(..., help="Tenant name, e.g. contoso or contoso.onmicrosoft.com."),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Assign the license named in each row to its user."""

    config = _load_configuration(config_path)
    try:
        tenant = validate_tenant(tenant_name)
        records = load_license_records(file_path)
    except (ConfigError, InputError) as exc:
        _fail(exc)

    console = ConsoleReporter()
    console.banner(f"Connecting to Microsoft Graph for {tenant.domain}...")
    client = _graph_client(tenant, config)

    with RunLog("assign_licenses", config.logging.log_dir) as run_log:
        assigner = LicenseAssigner(
            client,
            tenant,
            broadcast([console, run_log]),
            overrides=config.licenses.codes,
            default_usage_location=config.licenses.default_usage_location,
        )
        try:
            report = assigner.run(records)
        except O365AdminError as exc:
            _fail(exc)

    typer.secho(
        f"Done: {report.assigned} assigned, {report.already_licensed} already licensed, "
        f"{report.failed} failed, {report.skipped} skipped.",
        bold=True,
    )
    if run_log.created:
        typer.echo(f"Log written to {run_log.path}")


_QUOTA_COLORS = {
    QuotaStatus.OK: typer.colors.GREEN,
    QuotaStatus.WARNING: typer.colors.YELLOW,
    QuotaStatus.ERROR: typer.colors.RED,
}


def _render_quota(report: QuotaReport) -> None:
    typer.secho(report.describe(), fg=_QUOTA_COLORS[report.status])


@app.command("onedrive-quota")
def onedrive_quota(
    file_path: Path = typer.Argument(..., help="CSV with a UserPrincipalName column."),
    tenant_name: str = typer.Argument(..., help="Tenant name, e.g. contoso or contoso.onmicrosoft.com."),
    output: Optional[Path] = typer.Option(None, "--output", help="Write the audit to this CSV file."),
    warn_percent: Optional[float] = typer.Option(
        None, "--warn-percent", help="Flag drives using at least this share of their quota."
    ),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Audit OneDrive for Business storage quotas for the listed users."""

    config = _load_configuration(config_path)
    try:
        tenant = validate_tenant(tenant_name)
        principals = load_principals(file_path)
    except (ConfigError, InputError) as exc:
        _fail(exc)

    threshold = warn_percent if warn_percent is not None else config.onedrive.warn_percent
    typer.secho(f"Connecting to Microsoft Graph for {tenant.domain}...", bold=True)
    client = _graph_client(tenant, config)

    reports = audit_quotas(client, principals, threshold, emit=_render_quota)
    warnings = sum(1 for report in reports if report.status is QuotaStatus.WARNING)
    errors = sum(1 for report in reports if report.status is QuotaStatus.ERROR)
    typer.secho(
        f"Audited {len(reports)} drives: {warnings} at or above {threshold:g}% or flagged, {errors} errors.",
        bold=True,
    )
    if output:
        typer.echo(f"Report written to {write_report(output, reports)}")


@app.command("connect")
def connect(
    tenant_name: str = typer.Argument(..., help="Tenant name, e.g. contoso or contoso.onmicrosoft.com."),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Sign in once and open a session to every Office 365 admin endpoint."""

    config = _load_configuration(config_path)
    try:
        tenant = validate_tenant(tenant_name)
    except ConfigError as exc:
        _fail(exc)

    results = connect_all(service_endpoints(tenant, config))
    for result in results:
        if result.connected:
            typer.secho(f"[ OK ] {result.name} ({result.url})", fg=typer.colors.GREEN)
        else:
            typer.secho(f"[FAIL] {result.name} ({result.url}): {result.detail}", fg=typer.colors.RED)

    if not any(result.connected for result in results):
        raise typer.Exit(code=1)


def run():
    app()


if __name__ == "__main__":
    run()
