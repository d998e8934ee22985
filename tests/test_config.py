import os
from pathlib import Path

import pytest

from o365_admin.config import (
    EXCHANGE_POWERSHELL_CLIENT_ID,
    GRAPH_POWERSHELL_CLIENT_ID,
    load_config,
)
from o365_admin.errors import ConfigError


@pytest.fixture(autouse=True)
def _isolated(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("O365_ADMIN_"):
            monkeypatch.delenv(key)


def test_defaults_without_settings_file():
    config = load_config()
    assert config.auth.client_id == GRAPH_POWERSHELL_CLIENT_ID
    assert config.auth.exchange_client_id == EXCHANGE_POWERSHELL_CLIENT_ID
    assert config.auth.flow == "interactive"
    assert config.logging.log_dir == Path.home() / ".o365_admin" / "logs"
    assert config.onedrive.warn_percent == 90.0
    assert config.exchange.timeout is None


def test_explicit_missing_file_is_an_error(tmp_path: Path):
    with pytest.raises(ConfigError, match="does not exist"):
        load_config(tmp_path / "missing.yaml")


def test_settings_file_is_loaded(tmp_path: Path):
    path = tmp_path / "settings.yaml"
    path.write_text(
        "auth:\n"
        "  flow: device_code\n"
        "  login_hint: admin@contoso.onmicrosoft.com\n"
        "logging:\n"
        f"  log_dir: {tmp_path / 'logs'}\n"
        "  level: debug\n"
        "licenses:\n"
        "  default_usage_location: GB\n"
        "  codes:\n"
        "    visio: VISIOCLIENT\n"
        "onedrive:\n"
        "  warn_percent: 75\n"
        "exchange:\n"
        "  base_url: https://outlook.office365.com/\n"
        "  timeout: 60\n",
        encoding="utf-8",
    )
    config = load_config(path)
    assert config.auth.flow == "device_code"
    assert config.auth.login_hint == "admin@contoso.onmicrosoft.com"
    assert config.logging.log_dir == tmp_path / "logs"
    assert config.logging.level == "DEBUG"
    assert config.licenses.codes == {"VISIO": "VISIOCLIENT"}
    assert config.licenses.default_usage_location == "GB"
    assert config.onedrive.warn_percent == 75.0
    assert config.exchange.base_url == "https://outlook.office365.com"
    assert config.exchange.timeout == 60.0


def test_environment_overrides_file(tmp_path: Path, monkeypatch):
    path = tmp_path / "settings.yaml"
    path.write_text("onedrive:\n  warn_percent: 75\n", encoding="utf-8")
    monkeypatch.setenv("O365_ADMIN_CONFIG", str(path))
    monkeypatch.setenv("O365_ADMIN_ONEDRIVE__WARN_PERCENT", "80")
    monkeypatch.setenv("O365_ADMIN_LOGGING__LOG_DIR", str(tmp_path / "env-logs"))

    config = load_config()

    assert config.onedrive.warn_percent == 80.0
    assert config.logging.log_dir == tmp_path / "env-logs"


def test_unknown_auth_flow_is_rejected(tmp_path: Path):
    path = tmp_path / "settings.yaml"
    path.write_text("auth:\n  flow: password\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="auth flow"):
        load_config(path)


def test_non_numeric_threshold_is_rejected(monkeypatch):
    monkeypatch.setenv("O365_ADMIN_ONEDRIVE__WARN_PERCENT", "lots")
    with pytest.raises(ConfigError, match="warn_percent"):
        load_config()
