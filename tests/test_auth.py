import pytest

from conftest import FakeMsalApp

from o365_admin.auth import EXCHANGE_SCOPE, GRAPH_SCOPE, InteractiveTokenProvider
from o365_admin.config import AuthConfig
from o365_admin.errors import AuthError
from o365_admin.models import Tenant

TENANT = Tenant("contoso")


def test_first_call_prompts_then_later_calls_are_silent(auth_config):
    app = FakeMsalApp()
    provider = InteractiveTokenProvider(TENANT, "client", auth_config, app=app)

    assert provider.acquire(EXCHANGE_SCOPE) == "token-1"
    assert provider.acquire(GRAPH_SCOPE) == "token-silent"
    assert app.calls == ["interactive", "silent"]


def test_device_code_flow_prints_instructions():
    app = FakeMsalApp()
    messages = []
    provider = InteractiveTokenProvider(
        TENANT, "client", AuthConfig(flow="device_code"), echo=messages.append, app=app
    )

    assert provider.acquire(GRAPH_SCOPE) == "token-device"
    assert messages == ["Go to https://microsoft.com/devicelogin"]
    assert app.calls == ["device_flow", "device_token"]


def test_device_flow_that_cannot_start_is_auth_error():
    app = FakeMsalApp(device_flow={"error": "invalid_client", "error_description": "bad client"})
    provider = InteractiveTokenProvider(TENANT, "client", AuthConfig(flow="device_code"), app=app)
    with pytest.raises(AuthError, match="bad client"):
        provider.acquire(GRAPH_SCOPE)


def test_cancelled_sign_in_is_auth_error(auth_config):
    app = FakeMsalApp(interactive_result={"error": "access_denied", "error_description": "User cancelled"})
    provider = InteractiveTokenProvider(TENANT, "client", auth_config, app=app)

    with pytest.raises(AuthError, match="contoso.onmicrosoft.com.*User cancelled"):
        provider.acquire(EXCHANGE_SCOPE)


def test_token_source_defers_acquisition(auth_config):
    app = FakeMsalApp()
    provider = InteractiveTokenProvider(TENANT, "client", auth_config, app=app)

    source = provider.token_source(GRAPH_SCOPE)
    assert app.calls == []
    assert source() == "token-1"
