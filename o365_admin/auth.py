"""Interactive Entra ID sign-in built on MSAL public client applications."""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence

import msal
import requests
import typer

from .config import AuthConfig
from .errors import AuthError
from .models import Tenant

logger = logging.getLogger(__name__)

GRAPH_SCOPE = ["https://graph.microsoft.com/.default"]
EXCHANGE_SCOPE = ["https://outlook.office365.com/.default"]


def sharepoint_admin_scope(tenant: Tenant) -> List[str]:
    return [f"{tenant.sharepoint_admin_url}/.default"]


class InteractiveTokenProvider:
    """Acquire delegated tokens for one public client, prompting at most once.

    The first call signs the operator in (browser or device code). Later
    calls, including calls for other resources, are served silently from the
    in-memory token cache using the signed-in account.
    """

    def __init__(
        self,
        tenant: Tenant,
        client_id: str,
        auth: AuthConfig,
        echo: Callable[[str], None] = typer.echo,
        app: Optional[Any] = None,
    ) -> None:
        self._tenant = tenant
        self._auth = auth
        self._echo = echo
        self._app = app or msal.PublicClientApplication(
            client_id=client_id,
            authority=f"{auth.authority_host}/{tenant.domain}",
        )
        self._account: Optional[Dict[str, Any]] = None
        self._token_lock = threading.Lock()

    def acquire(self, scopes: Sequence[str]) -> str:
        scopes = list(scopes)
        with self._token_lock:
            result = self._acquire_silent(scopes)
            if not result:
                result = self._acquire_interactive(scopes)

        if not result or "access_token" not in result:
            error = (result or {}).get("error", "token_error")
            description = (result or {}).get("error_description", "No access token returned.")
            raise AuthError(f"Sign-in to {self._tenant.domain} failed: {error} - {description}")

        if self._account is None:
            accounts = self._app.get_accounts(username=self._auth.login_hint)
            self._account = accounts[0] if accounts else None
        return str(result["access_token"])

    def token_source(self, scopes: Sequence[str]) -> Callable[[], str]:
        """Return a zero-argument callable yielding a token for ``scopes``."""

        return lambda: self.acquire(scopes)

    def _acquire_silent(self, scopes: List[str]) -> Optional[Dict[str, Any]]:
        account = self._account
        if account is None:
            accounts = self._app.get_accounts(username=self._auth.login_hint)
            account = accounts[0] if accounts else None
        if account is None:
            return None
        return self._app.acquire_token_silent(scopes, account=account)

    def _acquire_interactive(self, scopes: List[str]) -> Optional[Dict[str, Any]]:
        logger.info("Prompting for %s sign-in to %s", self._auth.flow, self._tenant.domain)
        try:
            if self._auth.flow == "device_code":
                flow = self._app.initiate_device_flow(scopes=scopes)
                if "user_code" not in flow:
                    raise AuthError(
                        f"Device code sign-in could not start: {flow.get('error_description', flow)}"
                    )
                self._echo(flow["message"])
                return self._app.acquire_token_by_device_flow(flow)
            return self._app.acquire_token_interactive(
                scopes=scopes,
                login_hint=self._auth.login_hint,
                prompt="select_account",
            )
        except (requests.RequestException, OSError, ValueError) as exc:
            raise AuthError(f"Sign-in to {self._tenant.domain} failed: {exc}") from exc


__all__ = [
    "EXCHANGE_SCOPE",
    "GRAPH_SCOPE",
    "InteractiveTokenProvider",
    "sharepoint_admin_scope",
]
