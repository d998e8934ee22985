"""Configuration loading utilities for the Office 365 administration toolkit."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError


DEFAULT_CONFIG_PATH = Path("config/settings.yaml")
ENV_CONFIG_PATH = "O365_ADMIN_CONFIG"
ENV_PREFIX = "O365_ADMIN_"

# Public client registrations published by Microsoft for the Graph and
# Exchange Online PowerShell modules.
GRAPH_POWERSHELL_CLIENT_ID = "14d82eec-204b-4c2f-b7e8-296a70dab67e"
EXCHANGE_POWERSHELL_CLIENT_ID = "fb78d390-0c51-40cd-8e17-fdbfab77341b"

AUTH_FLOWS = ("interactive", "device_code")


def _default_log_dir() -> Path:
    return Path.home() / ".o365_admin" / "logs"


@dataclass
class AuthConfig:
    """Settings for interactive Entra ID sign-in."""

    client_id: str = GRAPH_POWERSHELL_CLIENT_ID
    exchange_client_id: str = EXCHANGE_POWERSHELL_CLIENT_ID
    flow: str = "interactive"
    login_hint: Optional[str] = None
    authority_host: str = "https://login.microsoftonline.com"


@dataclass
class LoggingConfig:
    """Where run logs are written and how verbose diagnostics are."""

    log_dir: Path = field(default_factory=_default_log_dir)
    level: str = "WARNING"


@dataclass
class LicenseConfig:
    """Extra license codes and defaults for license assignment."""

    codes: Dict[str, str] = field(default_factory=dict)
    default_usage_location: Optional[str] = None


@dataclass
class OneDriveConfig:
    warn_percent: float = 90.0


@dataclass
class ExchangeConfig:
    """Settings for the Exchange Online admin REST endpoint."""

    base_url: str = "https://outlook.office365.com"
    timeout: Optional[float] = None


@dataclass
class AppConfig:
    """Aggregate configuration for the toolkit."""

    auth: AuthConfig = field(default_factory=AuthConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    licenses: LicenseConfig = field(default_factory=LicenseConfig)
    onedrive: OneDriveConfig = field(default_factory=OneDriveConfig)
    exchange: ExchangeConfig = field(default_factory=ExchangeConfig)


def _load_from_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Configuration file '{path}' does not exist.")
    try:
        with path.open("r", encoding="utf-8") as file:
            payload = yaml.safe_load(file) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Configuration file '{path}' is not valid YAML: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError(f"Configuration file '{path}' must contain a mapping.")
    return payload


def _apply_environment_overrides(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Override configuration values with environment variables."""

    overrides: Dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX) or key == ENV_CONFIG_PATH:
            continue
        path = key[len(ENV_PREFIX) :].lower().split("__")
        node = overrides
        for part in path[:-1]:
            node = node.setdefault(part, {})
        node[path[-1]] = value

    if overrides:
        config_dict = _deep_merge(config_dict, overrides)
    return config_dict


def _deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            result[key] = _deep_merge(base[key], value)
        else:
            result[key] = value
    return result


def _resolve_config_path(path: Optional[Path] = None) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.environ.get(ENV_CONFIG_PATH)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def _load_config_dict(path: Optional[Path] = None) -> Dict[str, Any]:
    resolved_path = _resolve_config_path(path)
    if resolved_path == DEFAULT_CONFIG_PATH and not resolved_path.exists():
        config_dict: Dict[str, Any] = {}
    else:
        config_dict = _load_from_file(resolved_path)
    return _apply_environment_overrides(config_dict)


def _section(config_dict: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = config_dict.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Configuration section '{key}' must be a mapping.")
    return value


def _to_float(value: Any, name: str) -> float:
    try:
        return float(str(value).strip())
    except ValueError as exc:
        raise ConfigError(f"Configuration value '{name}' must be a number, got {value!r}.") from exc


def _optional_float(value: Any, name: str) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return _to_float(value, name)


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return str(value)


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load toolkit configuration from disk and environment variables."""

    config_dict = _load_config_dict(path)
    defaults = AppConfig()

    auth_section = _section(config_dict, "auth")
    flow = str(auth_section.get("flow") or defaults.auth.flow).strip().lower()
    if flow not in AUTH_FLOWS:
        raise ConfigError(f"Unknown auth flow '{flow}'. Expected one of: {', '.join(AUTH_FLOWS)}.")
    auth_config = AuthConfig(
        client_id=_optional_str(auth_section.get("client_id")) or defaults.auth.client_id,
        exchange_client_id=(
            _optional_str(auth_section.get("exchange_client_id")) or defaults.auth.exchange_client_id
        ),
        flow=flow,
        login_hint=_optional_str(auth_section.get("login_hint")),
        authority_host=(
            _optional_str(auth_section.get("authority_host")) or defaults.auth.authority_host
        ).rstrip("/"),
    )

    logging_section = _section(config_dict, "logging")
    log_dir_raw = _optional_str(logging_section.get("log_dir"))
    logging_config = LoggingConfig(
        log_dir=Path(log_dir_raw).expanduser() if log_dir_raw else defaults.logging.log_dir,
        level=(_optional_str(logging_section.get("level")) or defaults.logging.level).upper(),
    )

    licenses_section = _section(config_dict, "licenses")
    codes_raw = licenses_section.get("codes") or {}
    if not isinstance(codes_raw, dict):
        raise ConfigError("Configuration value 'licenses.codes' must be a mapping.")
    license_config = LicenseConfig(
        codes={str(code).strip().upper(): str(sku).strip() for code, sku in codes_raw.items()},
        default_usage_location=_optional_str(licenses_section.get("default_usage_location")),
    )

    onedrive_section = _section(config_dict, "onedrive")
    onedrive_config = OneDriveConfig(
        warn_percent=_to_float(
            onedrive_section.get("warn_percent", defaults.onedrive.warn_percent),
            "onedrive.warn_percent",
        ),
    )

    exchange_section = _section(config_dict, "exchange")
    exchange_config = ExchangeConfig(
        base_url=(
            _optional_str(exchange_section.get("base_url")) or defaults.exchange.base_url
        ).rstrip("/"),
        timeout=_optional_float(exchange_section.get("timeout"), "exchange.timeout"),
    )

    return AppConfig(
        auth=auth_config,
        logging=logging_config,
        licenses=license_config,
        onedrive=onedrive_config,
        exchange=exchange_config,
    )


__all__ = [
    "AppConfig",
    "AuthConfig",
    "ExchangeConfig",
    "LicenseConfig",
    "LoggingConfig",
    "OneDriveConfig",
    "load_config",
]
