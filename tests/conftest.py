"""
Shared test fixtures and configuration for azsession tests.

This module provides common fixtures used across all test types:
- A fake az CLI backend recording every call
- Sample subscriptions and login contexts
- Isolation from the real ~/.azsession config and Azure env vars
"""

import os
from unittest.mock import Mock

import pytest

from azsession.azure_auth import AuthenticationError
from azsession.config import SessionConfig
from azsession.models import LoginContext, ServicePrincipalCredential, SubscriptionInfo
from azsession.session_manager import AzureSession

DEV_ID = "11111111-1111-1111-1111-111111111111"
PROD_ID = "22222222-2222-2222-2222-222222222222"
TENANT_ID = "33333333-3333-3333-3333-333333333333"
CLIENT_ID = "44444444-4444-4444-4444-444444444444"


# ============================================================================
# ENVIRONMENT ISOLATION
# ============================================================================


@pytest.fixture(autouse=True)
def isolate_environment(tmp_path, monkeypatch):
    """Keep tests away from real config files and credentials."""
    for var in list(os.environ):
        if var.startswith("AZSESSION_") or var in (
            "AZURE_CLIENT_ID",
            "AZURE_CLIENT_SECRET",
            "AZURE_TENANT_ID",
        ):
            monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(SessionConfig, "DEFAULT_CONFIG_FILE", tmp_path / "no-config.toml")


# ============================================================================
# SAMPLE DATA
# ============================================================================


def make_subscription(name: str, sub_id: str, is_default: bool = False) -> SubscriptionInfo:
    return SubscriptionInfo(
        name=name, id=sub_id, tenant_id=TENANT_ID, is_default=is_default, user="dev@example.com"
    )


def make_context(subscription: SubscriptionInfo) -> LoginContext:
    return LoginContext(subscription=subscription, user_name="dev@example.com", user_type="user")


@pytest.fixture
def subscription_factory():
    """Build SubscriptionInfo records in the shared test tenant."""
    return make_subscription


@pytest.fixture
def dev_subscription():
    return make_subscription("Dev", DEV_ID, is_default=True)


@pytest.fixture
def prod_subscription():
    return make_subscription("Prod", PROD_ID)


@pytest.fixture
def sp_credential():
    return ServicePrincipalCredential(
        client_id=CLIENT_ID, client_secret="super-secret-value", tenant_id=TENANT_ID
    )


# ============================================================================
# FAKE AZ CLI BACKEND
# ============================================================================


class FakeBackend:
    """In-memory stand-in for AzureCliClient.

    Subscriptions are keyed by name; login activates the requested
    subscription, or the first one when none is requested.
    """

    def __init__(self, subscriptions: list[SubscriptionInfo]):
        self.subscriptions = list(subscriptions)
        self.active: SubscriptionInfo | None = None
        self.available = True
        self.login_error: Exception | None = None
        self.list_error: Exception | None = None
        self.switch_error: Exception | None = None
        self.login_calls: list[dict] = []
        self.list_calls = 0
        self.switch_calls: list[str] = []

    def login(self, **kwargs) -> LoginContext:
        self.login_calls.append(kwargs)
        if self.login_error:
            raise self.login_error
        name = kwargs.get("subscription_name")
        self.active = self._find(name) if name else self.subscriptions[0]
        return make_context(self.active)

    def list_subscriptions(self) -> list[SubscriptionInfo]:
        self.list_calls += 1
        if self.list_error:
            raise self.list_error
        return list(self.subscriptions)

    def switch_subscription(self, name: str) -> LoginContext:
        self.switch_calls.append(name)
        if self.switch_error:
            raise self.switch_error
        self.active = self._find(name)
        return make_context(self.active)

    def check_az_cli_available(self) -> bool:
        return self.available

    def _find(self, name: str) -> SubscriptionInfo:
        for sub in self.subscriptions:
            if sub.name == name:
                return sub
        raise AuthenticationError(f"Subscription '{name}' doesn't exist in cloud 'AzureCloud'.")


@pytest.fixture
def backend(dev_subscription, prod_subscription):
    """Fake backend with subscriptions Dev and Prod."""
    return FakeBackend([dev_subscription, prod_subscription])


@pytest.fixture
def prompt_installer():
    """Mock PromptInstaller capturing installed prompt text."""
    return Mock()


@pytest.fixture
def session(backend, prompt_installer):
    """Disconnected session wired to the fake backend."""
    return AzureSession(backend=backend, prompt_installer=prompt_installer)


@pytest.fixture
def connected_session(session):
    """Session after a successful login to Dev."""
    session.establish()
    return session

