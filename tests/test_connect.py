from o365_admin.config import AppConfig
from o365_admin.connect import ServiceEndpoint, connect_all, service_endpoints
from o365_admin.errors import AuthError
from o365_admin.exchange_client import ExchangeAdminError
from o365_admin.models import Tenant

TENANT = Tenant("contoso")


class FakeTokens:
    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.requested = []

    def acquire(self, scopes):
        scope = list(scopes)[0]
        self.requested.append(scope)
        if scope in self.fail_for:
            raise AuthError(f"consent required for {scope}")
        return "tok"

    def token_source(self, scopes):
        return lambda: self.acquire(scopes)


def test_default_endpoints_cover_graph_exchange_and_sharepoint():
    tokens = FakeTokens()
    endpoints = service_endpoints(TENANT, AppConfig(), graph_tokens=tokens, exchange_tokens=tokens)
    assert [endpoint.name for endpoint in endpoints] == [
        "Microsoft Graph",
        "Exchange Online",
        "SharePoint Online admin",
    ]
    assert endpoints[2].scopes == ["https://contoso-admin.sharepoint.com/.default"]


def test_one_failing_endpoint_does_not_stop_the_others():
    tokens = FakeTokens(fail_for={"https://contoso-admin.sharepoint.com/.default"})
    probed = []

    def _failing_probe(token_source):
        token_source()
        raise ExchangeAdminError(403, "Forbidden", "not an Exchange administrator")

    endpoints = [
        ServiceEndpoint("Microsoft Graph", "https://graph.microsoft.com", ["g/.default"], tokens, probed.append),
        ServiceEndpoint("Exchange Online", "https://outlook.office365.com", ["e/.default"], tokens, _failing_probe),
        ServiceEndpoint(
            "SharePoint Online admin",
            TENANT.sharepoint_admin_url,
            ["https://contoso-admin.sharepoint.com/.default"],
            tokens,
        ),
    ]

    results = connect_all(endpoints)

    assert [result.connected for result in results] == [True, False, False]
    assert "not an Exchange administrator" in results[1].detail
    assert "consent required" in results[2].detail
    assert len(probed) == 1
