"""Session providers that turn interactive credentials into remote sessions."""
from __future__ import annotations

import logging
from typing import Optional, Protocol

import requests

from .auth import EXCHANGE_SCOPE, InteractiveTokenProvider
from .config import AppConfig
from .errors import AuthError, ConnectError
from .exchange_client import ExchangeAdminClient, ExchangeAdminError
from .models import Tenant

logger = logging.getLogger(__name__)


class MailboxSession(Protocol):
    """Operations the reconciliation workflow needs from a directory session."""

    def get_mailbox_guid(self, principal: str) -> Optional[str]:
        ...

    def set_mailbox_guid(self, principal: str, guid: str) -> None:
        ...


class SessionProvider(Protocol):
    def connect(self) -> MailboxSession:
        ...


class ExchangeSessionProvider:
    """Sign in once and open a single Exchange Online admin session."""

    def __init__(
        self,
        tenant: Tenant,
        config: AppConfig,
        token_provider: Optional[InteractiveTokenProvider] = None,
    ) -> None:
        self._tenant = tenant
        self._config = config
        self._token_provider = token_provider or InteractiveTokenProvider(
            tenant, config.auth.exchange_client_id, config.auth
        )

    def connect(self) -> ExchangeAdminClient:
        # Fail fast on sign-in before any record is touched.
        self._token_provider.acquire(EXCHANGE_SCOPE)

        client = ExchangeAdminClient(
            self._tenant,
            self._token_provider.token_source(EXCHANGE_SCOPE),
            base_url=self._config.exchange.base_url,
            timeout=self._config.exchange.timeout,
        )
        try:
            client.probe()
        except ExchangeAdminError as exc:
            if exc.status_code in (401, 403):
                raise AuthError(f"Exchange Online rejected the signed-in account: {exc}") from exc
            raise ConnectError(f"Unable to open an Exchange Online session: {exc}") from exc
        except requests.RequestException as exc:
            raise ConnectError(f"Unable to reach Exchange Online: {exc}") from exc
        logger.info("Connected to Exchange Online for %s", self._tenant.domain)
        return client


__all__ = ["ExchangeSessionProvider", "MailboxSession", "SessionProvider"]
