"""Exchange Online admin REST client used for mail user GUID lookups and updates."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from .errors import AuthError, O365AdminError, RemoteLookupError, UpdateError
from .models import Tenant

logger = logging.getLogger(__name__)

EXCHANGE_BASE_URL = "https://outlook.office365.com"
# Arbitration mailbox every tenant has; anchors the request to the tenant's forest.
ANCHOR_MAILBOX = "SystemMailbox{bb558c35-97f1-4cb9-8ff7-d53741dc928c}"
NOT_FOUND_MARKERS = ("ManagementObjectNotFoundException", "couldn't be found", "could not be found")


class ExchangeAdminError(O365AdminError):
    """Raised when the Exchange admin endpoint returns an error."""

    def __init__(self, status_code: int, error: str, description: str) -> None:
        super().__init__(f"{status_code}: {error} - {description}")
        self.status_code = status_code
        self.error = error
        self.description = description

    @property
    def not_found(self) -> bool:
        if self.status_code == 404:
            return True
        text = f"{self.error} {self.description}"
        return any(marker in text for marker in NOT_FOUND_MARKERS)


def _error_fields(response: requests.Response) -> Tuple[str, str]:
    """Pull a code and message out of an error response of any shape."""

    fallback = response.text or "Unknown Exchange error."
    try:
        payload = response.json()
    except ValueError:
        return "ExchangeError", fallback

    error = payload.get("error") if isinstance(payload, dict) else None
    if not isinstance(error, dict):
        # OAuth style bodies carry the code as a bare string.
        code = str(error) if error else "ExchangeError"
        description = payload.get("error_description") if isinstance(payload, dict) else None
        return code, str(description or fallback)

    code = str(error.get("code") or "ExchangeError")
    message = str(error.get("message") or fallback)
    details = error.get("details")
    if isinstance(details, list) and details and isinstance(details[0], dict) and details[0].get("message"):
        message = f"{message} {details[0]['message']}"
    return code, message


class ExchangeAdminClient:
    """Run Exchange cmdlets through the ``InvokeCommand`` admin REST endpoint."""

    def __init__(
        self,
        tenant: Tenant,
        token_source: Callable[[], str],
        base_url: str = EXCHANGE_BASE_URL,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._tenant = tenant
        self._token_source = token_source
        self._url = f"{base_url.rstrip('/')}/adminapi/beta/{tenant.domain}/InvokeCommand"
        self._timeout = timeout
        self._session = session or requests.Session()

    def invoke(self, cmdlet: str, parameters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        payload = {"CmdletInput": {"CmdletName": cmdlet, "Parameters": dict(parameters or {})}}
        headers = {
            "Authorization": f"Bearer {self._token_source()}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "X-AnchorMailbox": f"UPN:{ANCHOR_MAILBOX}@{self._tenant.domain}",
            "X-ResponseFormat": "json",
        }
        logger.debug("Invoking %s with %s", cmdlet, parameters)
        response = self._session.post(self._url, json=payload, headers=headers, timeout=self._timeout)

        if response.status_code == 204:
            return []

        if response.status_code >= 400:
            code, message = _error_fields(response)
            raise ExchangeAdminError(response.status_code, code, message)

        if not response.content:
            return []
        body = response.json()
        value = body.get("value", []) if isinstance(body, dict) else body
        return list(value or [])

    def probe(self) -> None:
        """Issue a read-only call to confirm the session is authorised."""

        self.invoke("Get-OrganizationConfig")

    # ------------------------------------------------------------------ #
    # Mail user GUID helpers                                             #
    # ------------------------------------------------------------------ #
    def get_mailbox_guid(self, principal: str) -> Optional[str]:
        """Return the ExchangeGuid of ``principal`` or ``None`` if it doesn't exist."""

        cleaned = (principal or "").strip()
        if not cleaned:
            return None
        try:
            rows = self.invoke("Get-MailUser", {"Identity": cleaned})
        except ExchangeAdminError as exc:
            if exc.not_found:
                return None
            raise RemoteLookupError(f"Lookup of {cleaned} failed: {exc}") from exc
        except (AuthError, requests.RequestException) as exc:
            raise RemoteLookupError(f"Lookup of {cleaned} failed: {exc}") from exc

        if not rows or not isinstance(rows[0], dict):
            return None
        guid = rows[0].get("ExchangeGuid")
        return str(guid) if guid else None

    def set_mailbox_guid(self, principal: str, guid: str) -> None:
        try:
            self.invoke("Set-MailUser", {"Identity": principal, "ExchangeGuid": guid})
        except (AuthError, ExchangeAdminError, requests.RequestException) as exc:
            raise UpdateError(str(exc)) from exc


__all__ = ["ExchangeAdminClient", "ExchangeAdminError"]
