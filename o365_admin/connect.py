"""Bulk connection check against every Office 365 admin endpoint."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import requests

from .auth import EXCHANGE_SCOPE, GRAPH_SCOPE, InteractiveTokenProvider, sharepoint_admin_scope
from .config import AppConfig
from .errors import AuthError, ConnectError
from .exchange_client import ExchangeAdminClient, ExchangeAdminError
from .m365_client import M365Client, M365GraphError
from .models import Tenant

logger = logging.getLogger(__name__)

Probe = Callable[[Callable[[], str]], None]


@dataclass(frozen=True)
class ServiceEndpoint:
    name: str
    url: str
    scopes: Sequence[str]
    tokens: InteractiveTokenProvider
    probe: Optional[Probe] = None


@dataclass(frozen=True)
class ConnectionResult:
    name: str
    url: str
    connected: bool
    detail: str = ""


def service_endpoints(
    tenant: Tenant,
    config: AppConfig,
    graph_tokens: Optional[InteractiveTokenProvider] = None,
    exchange_tokens: Optional[InteractiveTokenProvider] = None,
) -> List[ServiceEndpoint]:
    """Describe the endpoints a tenant administrator normally connects to."""

    graph_tokens = graph_tokens or InteractiveTokenProvider(tenant, config.auth.client_id, config.auth)
    exchange_tokens = exchange_tokens or InteractiveTokenProvider(
        tenant, config.auth.exchange_client_id, config.auth
    )

    def _graph_probe(token_source: Callable[[], str]) -> None:
        M365Client(token_source).probe()

    def _exchange_probe(token_source: Callable[[], str]) -> None:
        ExchangeAdminClient(
            tenant, token_source, base_url=config.exchange.base_url, timeout=config.exchange.timeout
        ).probe()

    return [
        ServiceEndpoint("Microsoft Graph", "https://graph.microsoft.com", GRAPH_SCOPE, graph_tokens, _graph_probe),
        ServiceEndpoint(
            "Exchange Online", config.exchange.base_url, EXCHANGE_SCOPE, exchange_tokens, _exchange_probe
        ),
        ServiceEndpoint(
            "SharePoint Online admin",
            tenant.sharepoint_admin_url,
            sharepoint_admin_scope(tenant),
            graph_tokens,
        ),
    ]


def connect_endpoint(endpoint: ServiceEndpoint) -> ConnectionResult:
    try:
        endpoint.tokens.acquire(endpoint.scopes)
        if endpoint.probe:
            endpoint.probe(endpoint.tokens.token_source(endpoint.scopes))
    except (AuthError, ConnectError, M365GraphError, ExchangeAdminError, requests.RequestException) as exc:
        logger.warning("Connection to %s failed: %s", endpoint.name, exc)
        return ConnectionResult(endpoint.name, endpoint.url, False, str(exc))
    return ConnectionResult(endpoint.name, endpoint.url, True)


def connect_all(endpoints: Sequence[ServiceEndpoint]) -> List[ConnectionResult]:
    """Connect to each endpoint in turn; one failure never stops the others."""

    return [connect_endpoint(endpoint) for endpoint in endpoints]


__all__ = [
    "ConnectionResult",
    "ServiceEndpoint",
    "connect_all",
    "connect_endpoint",
    "service_endpoints",
]
