from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pytest

from o365_admin.config import AuthConfig
from o365_admin.errors import RemoteLookupError, UpdateError
from o365_admin.m365_client import M365GraphError


class FakeMailboxSession:
    """In-memory stand-in for an Exchange Online admin session."""

    def __init__(
        self,
        guids: Dict[str, str],
        failing_lookups: Iterable[str] = (),
        failing_updates: Iterable[str] = (),
    ) -> None:
        self.guids = dict(guids)
        self.failing_lookups = set(failing_lookups)
        self.failing_updates = set(failing_updates)
        self.lookups: List[str] = []
        self.updates: List[tuple] = []

    def get_mailbox_guid(self, principal: str) -> Optional[str]:
        self.lookups.append(principal)
        if principal in self.failing_lookups:
            raise RemoteLookupError(f"Lookup of {principal} failed: session dropped")
        return self.guids.get(principal)

    def set_mailbox_guid(self, principal: str, guid: str) -> None:
        self.updates.append((principal, guid))
        if principal in self.failing_updates:
            raise UpdateError("400: InvalidOperation - ExchangeGuid is already in use")
        self.guids[principal] = guid


class FakeGraph:
    """Minimal stand-in for :class:`M365Client` used by the license workflow."""

    def __init__(self, users=None, skus=None, failing_assignments=(), catalog_error=None) -> None:
        self.users = {key.lower(): value for key, value in (users or {}).items()}
        self.skus = skus if skus is not None else []
        self.failing_assignments = set(failing_assignments)
        self.catalog_error = catalog_error
        self.assignments: List[tuple] = []
        self.updates: List[tuple] = []

    def list_subscribed_skus(self):
        if self.catalog_error:
            raise self.catalog_error
        return list(self.skus)

    def find_user(self, query, select=None):
        return self.users.get((query or "").lower())

    def update_user(self, user_id, **fields):
        self.updates.append((user_id, fields))
        return {}

    def assign_license(self, user_id, sku_id, disabled_plans=None, remove_skus=None):
        self.assignments.append((user_id, sku_id))
        if user_id in self.failing_assignments:
            raise M365GraphError(400, "Request_BadRequest", "License assignment cannot be done")
        return {"id": user_id}


class FakeMsalApp:
    """Records calls made by :class:`InteractiveTokenProvider`."""

    def __init__(self, interactive_result=None, device_flow=None, silent_result=None) -> None:
        self.interactive_result = interactive_result or {"access_token": "token-1"}
        self.device_flow = device_flow or {"user_code": "ABC123", "message": "Go to https://microsoft.com/devicelogin"}
        self.silent_result = silent_result or {"access_token": "token-silent"}
        self.accounts: List[dict] = []
        self.calls: List[str] = []

    def get_accounts(self, username=None):
        return list(self.accounts)

    def acquire_token_silent(self, scopes, account=None):
        self.calls.append("silent")
        return self.silent_result

    def acquire_token_interactive(self, scopes, login_hint=None, prompt=None):
        self.calls.append("interactive")
        if "access_token" in self.interactive_result:
            self.accounts = [{"username": "admin@contoso.onmicrosoft.com"}]
        return self.interactive_result

    def initiate_device_flow(self, scopes=None):
        self.calls.append("device_flow")
        return self.device_flow

    def acquire_token_by_device_flow(self, flow):
        self.calls.append("device_token")
        self.accounts = [{"username": "admin@contoso.onmicrosoft.com"}]
        return {"access_token": "token-device"}


def write_csv(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def guid_csv(tmp_path: Path) -> Path:
    return write_csv(
        tmp_path / "guids.csv",
        "UserPrincipalName,ExchangeGuid\n"
        "a@contoso.com,{AAAA}\n"
        "b@contoso.com,BBBB\n",
    )


@pytest.fixture
def two_row_session() -> FakeMailboxSession:
    return FakeMailboxSession({"a@contoso.com": "aaaa", "b@contoso.com": "CCCC"})


@pytest.fixture
def auth_config() -> AuthConfig:
    return AuthConfig()
