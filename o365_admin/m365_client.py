"""Microsoft 365 Graph helper utilities."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

import requests

from .errors import O365AdminError

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
REQUEST_TIMEOUT = 30


class M365GraphError(O365AdminError):
    """Raised when the Microsoft Graph API returns an error."""

    def __init__(self, status_code: int, error: str, description: str) -> None:
        super().__init__(f"{status_code}: {error} - {description}")
        self.status_code = status_code
        self.error = error
        self.description = description


class M365Client:
    """Lightweight Microsoft Graph client authenticated with a delegated token."""

    def __init__(
        self,
        token_source: Callable[[], str],
        session: Optional[requests.Session] = None,
        base_url: str = GRAPH_BASE_URL,
    ) -> None:
        self._token_source = token_source
        self._session = session or requests.Session()
        self._base_url = base_url.rstrip("/")

    # ------------------------------------------------------------------ #
    # HTTP helpers                                                       #
    # ------------------------------------------------------------------ #
    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        url = self._base_url + path
        headers = kwargs.pop("headers", {}) or {}
        headers.setdefault("Authorization", f"Bearer {self._token_source()}")
        headers.setdefault("Accept", "application/json")
        if "json" in kwargs:
            headers.setdefault("Content-Type", "application/json")

        response = self._session.request(
            method,
            url,
            timeout=REQUEST_TIMEOUT,
            headers=headers,
            **kwargs,
        )
        if response.status_code == 204:
            return {}

        if response.status_code >= 400:
            try:
                payload = response.json()
                error = payload.get("error") if isinstance(payload, dict) else None
                if isinstance(error, dict):
                    code = str(error.get("code") or "GraphError")
                    message = str(error.get("message") or response.text)
                else:
                    code = str(error) if error else "GraphError"
                    message = response.text or "Unknown Graph error."
            except ValueError:
                code = "GraphError"
                message = response.text or "Unknown Graph error."
            raise M365GraphError(response.status_code, code, message)

        if not response.content:
            return {}
        return response.json()

    def probe(self) -> None:
        self._request("GET", "/organization", params={"$select": "id"})

    # ------------------------------------------------------------------ #
    # License helpers                                                    #
    # ------------------------------------------------------------------ #
    def list_subscribed_skus(self) -> List[Dict[str, Any]]:
        result = self._request(
            "GET",
            "/subscribedSkus",
            params={"$select": "skuId,skuPartNumber,capabilityStatus,prepaidUnits,consumedUnits"},
        )
        return result.get("value", [])

    def assign_license(
        self,
        user_id: str,
        sku_id: str,
        disabled_plans: Optional[Iterable[str]] = None,
        remove_skus: Optional[Iterable[str]] = None,
    ) -> Dict[str, Any]:
        payload = {
            "addLicenses": [
                {
                    "skuId": sku_id,
                    "disabledPlans": list(disabled_plans or []),
                }
            ],
            "removeLicenses": list(remove_skus or []),
        }
        return self._request("POST", f"/users/{user_id}/assignLicense", json=payload)

    # ------------------------------------------------------------------ #
    # User helpers                                                       #
    # ------------------------------------------------------------------ #
    def find_user(self, query: str, select: Optional[str] = None) -> Optional[Dict[str, Any]]:
        cleaned = (query or "").strip()
        if not cleaned:
            return None
        escaped = cleaned.replace("'", "''")
        filters = [
            f"userPrincipalName eq '{escaped}'",
            f"mail eq '{escaped}'",
        ]
        params = {"$filter": " or ".join(filters)}
        if select:
            params["$select"] = select
        result = self._request("GET", "/users", params=params)
        values = result.get("value") or []
        return values[0] if values else None

    def update_user(self, user_id: str, **fields: Any) -> Dict[str, Any]:
        payload = {key: value for key, value in fields.items() if value is not None}
        if not payload:
            return {}
        return self._request("PATCH", f"/users/{user_id}", json=payload)

    # ------------------------------------------------------------------ #
    # OneDrive helpers                                                   #
    # ------------------------------------------------------------------ #
    def get_user_drive(self, user: str) -> Optional[Dict[str, Any]]:
        """Return the user's OneDrive with its quota facet, or ``None`` if unprovisioned."""

        try:
            return self._request("GET", f"/users/{user}/drive", params={"$select": "id,webUrl,quota"})
        except M365GraphError as exc:
            if exc.status_code == 404:
                return None
            raise


__all__ = ["M365Client", "M365GraphError", "GRAPH_BASE_URL"]
