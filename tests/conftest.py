"""
Shared fixtures: a stand-in for GraphClient that serves canned users and
authentication methods without touching msal or the network
"""

from typing import Any, Dict, List, Optional

import pytest  # type:ignore

from core import utils
from core.utils import fncSetDebug
from handlers.graph.client import GraphError

FIDO2 = {"@odata.type": "#microsoft.graph.fido2AuthenticationMethod", "id": "fido"}
PASSWORD = {"@odata.type": "#microsoft.graph.passwordAuthenticationMethod", "id": "pw"}
PHONE = {"@odata.type": "#microsoft.graph.phoneAuthenticationMethod", "id": "ph"}
HELLO = {"@odata.type": "#microsoft.graph.windowsHelloForBusinessAuthenticationMethod", "id": "whfb"}


class FakeGraphClient:
    """Serves `users` and per-user `methods`; ids in `failing` raise GraphError"""

    def __init__(
        self,
        users: List[Dict[str, Any]],
        methods: Dict[str, List[Dict[str, Any]]],
        failing=(),
        list_error: Optional[str] = None,
    ):
        self.users = users
        self.methods = methods
        self.failing = set(failing)
        self.list_error = list_error
        self.calls: List[tuple] = []
        self.close_count = 0

    def get_all(self, endpoint, params=None, headers=None):
        self.calls.append((endpoint, params, headers))
        if endpoint == "users":
            if self.list_error:
                raise GraphError(self.list_error, status=403)
            return [dict(u) for u in self.users]
        uid = endpoint.split("/")[1]
        if uid in self.failing:
            raise GraphError(
                "Graph API request failed with status 404: Request_ResourceNotFound: "
                f"Resource '{uid}' does not exist",
                status=404,
            )
        return list(self.methods.get(uid, []))

    def close(self):
        self.close_count += 1

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


@pytest.fixture(autouse=True)
def reset_debug():
    yield
    fncSetDebug(False)
    utils._PROGRESS_OPEN = False


@pytest.fixture
def tenant_users():
    # Retrieval order matters for the tie-break on identical display names
    return [
        {"id": "u-bob-1", "displayName": "Bob", "userPrincipalName": "bob1@contoso.com"},
        {"id": "u-amy", "displayName": "amy", "userPrincipalName": "amy@contoso.com"},
        {"id": "u-carol", "displayName": "Carol", "userPrincipalName": "carol@contoso.com"},
        {"id": "u-bob-2", "displayName": "Bob", "userPrincipalName": "bob2@contoso.com"},
        {"id": "u-dave", "displayName": "Dave", "userPrincipalName": "dave@contoso.com"},
    ]


@pytest.fixture
def tenant_methods():
    # carol has a security key; dave only has Windows Hello, which is not FIDO2
    return {
        "u-bob-1": [PASSWORD],
        "u-amy": [],
        "u-carol": [PASSWORD, FIDO2],
        "u-bob-2": [PASSWORD, PHONE],
        "u-dave": [PASSWORD, HELLO],
    }


@pytest.fixture
def fake_client(tenant_users, tenant_methods):
    return FakeGraphClient(tenant_users, tenant_methods)


@pytest.fixture
def make_client():
    return FakeGraphClient
