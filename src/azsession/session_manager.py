"""Azure session state manager.

AzureSession owns the state of one interactive Azure session:
- whether a login succeeded
- the login context returned by the last login/switch
- the cached subscription list (and the name index derived from it)
- the active subscription name

Philosophy:
- Explicit object, held by the CLI/shell (no module-level state)
- Collaborator injected, so tests never touch az CLI
- Login failures surface, lookups degrade with a warning,
  prompt installation never interferes
"""

import logging
from collections.abc import Callable
from typing import Protocol

from azsession.azure_auth import AuthenticationError, AzureCliClient, AzureCliError
from azsession.models import LoginContext, ServicePrincipalCredential, SubscriptionInfo
from azsession.prompt import PromptInstaller, derive_prompt_text

logger = logging.getLogger(__name__)


class SessionError(Exception):
    """Base class for session state errors."""

    pass


class NotConnectedError(SessionError):
    """Raised when an operation needs a prior successful login."""

    pass


class InvalidSelectionError(SessionError):
    """Raised when a subscription name is not in the cached list."""

    pass


class RefreshError(SessionError):
    """Raised when the subscription list cannot be fetched."""

    pass


class SubscriptionBackend(Protocol):
    """Collaborator interface implemented by AzureCliClient."""

    def login(
        self,
        credential: ServicePrincipalCredential | None = None,
        subscription_name: str | None = None,
    ) -> LoginContext: ...

    def list_subscriptions(self) -> list[SubscriptionInfo]: ...

    def switch_subscription(self, name: str) -> LoginContext: ...

    def check_az_cli_available(self) -> bool: ...


class AzureSession:
    """State of one Azure session, lost when the process exits.

    Example:
        >>> session = AzureSession()
        >>> session.establish(subscription_name="Dev")
        >>> session.select_active_subscription("Prod")
        >>> session.prompt_text()
        'PS [Azure:\\\\Prod] /home/user> '
    """

    NOT_CONNECTED_MESSAGE = "Not connected to Azure. Run 'azsession login' first."

    def __init__(
        self,
        backend: SubscriptionBackend | None = None,
        prompt_installer: PromptInstaller | None = None,
    ):
        self.backend = backend if backend is not None else AzureCliClient()
        self.prompt_installer = prompt_installer or PromptInstaller()
        self.connected = False
        self.login_context: LoginContext | None = None
        self.active_subscription_name = ""
        self._subscriptions: list[SubscriptionInfo] = []

    @property
    def subscription_list(self) -> list[SubscriptionInfo]:
        """Copy of the cached subscription list."""
        return list(self._subscriptions)

    @property
    def subscription_names(self) -> frozenset[str]:
        """Names in the cached subscription list."""
        return frozenset(sub.name for sub in self._subscriptions)

    def establish(
        self,
        credential: ServicePrincipalCredential | None = None,
        subscription_name: str | None = None,
    ) -> LoginContext:
        """Log in and populate the subscription cache.

        Args:
            credential: Service principal credentials (interactive login if None)
            subscription_name: Subscription to activate after login

        Returns:
            The new LoginContext

        Raises:
            AuthenticationError: If login fails (state unchanged)
            RefreshError: If the subscription listing fails (state unchanged)
        """
        kwargs = {}
        if credential is not None:
            kwargs["credential"] = credential
        if subscription_name:
            kwargs["subscription_name"] = subscription_name

        context = self.backend.login(**kwargs)
        try:
            subscriptions = self.backend.list_subscriptions()
        except AuthenticationError:
            raise
        except AzureCliError as e:
            raise RefreshError(f"Logged in, but listing subscriptions failed: {e}") from e

        self.login_context = context
        self._subscriptions = list(subscriptions)
        self.connected = True
        self.active_subscription_name = context.subscription_name
        logger.info(
            f"Connected to Azure subscription '{self.active_subscription_name}' "
            f"({len(self._subscriptions)} available)"
        )

        self.refresh_prompt()
        return context

    def get_active_subscription(self) -> LoginContext | None:
        """Return the current login context, or None with a warning."""
        if not self.connected or self.login_context is None:
            logger.warning(self.NOT_CONNECTED_MESSAGE)
            return None
        return self.login_context

    def get_available_subscriptions(self, refresh: bool = False) -> list[SubscriptionInfo]:
        """Return cached subscriptions, optionally re-fetching first.

        A failed refresh keeps the previous cache and logs a warning.
        Without refresh, no remote call is made.
        """
        if not refresh:
            return self.subscription_list

        if not self.connected:
            logger.warning(self.NOT_CONNECTED_MESSAGE)
            return self.subscription_list

        try:
            subscriptions = self.backend.list_subscriptions()
        except AzureCliError as e:
            logger.warning(f"Could not refresh subscriptions, keeping cached list: {e}")
            return self.subscription_list

        self._subscriptions = list(subscriptions)
        logger.debug(f"Refreshed subscription cache: {len(self._subscriptions)} entries")
        return self.subscription_list

    def validate_subscription_name(self, name: str) -> str:
        """Check `name` against the live cache.

        Raises:
            NotConnectedError: If no session is established
            InvalidSelectionError: If name is not a cached subscription
        """
        if not self.connected:
            raise NotConnectedError(self.NOT_CONNECTED_MESSAGE)
        names = self.subscription_names
        if name not in names:
            available = ", ".join(sorted(names)) or "none"
            raise InvalidSelectionError(
                f"Subscription '{name}' not found. Available subscriptions: {available}"
            )
        return name

    def subscription_name_validator(self) -> Callable[[str], str]:
        """Validator bound to this session, evaluated at call time."""
        return self.validate_subscription_name

    def select_active_subscription(self, name: str) -> LoginContext:
        """Switch the active subscription.

        Raises:
            NotConnectedError: If no session is established
            InvalidSelectionError: If name is not cached (state unchanged)
            AuthenticationError: If az CLI rejects the switch (state unchanged)
        """
        self.validate_subscription_name(name)

        context = self.backend.switch_subscription(name)
        self.login_context = context
        self.active_subscription_name = context.subscription_name
        logger.info(f"Active subscription: {self.active_subscription_name}")

        self.refresh_prompt()
        return context

    def prompt_text(self, cwd: str | None = None) -> str:
        """Prompt string for the current state."""
        return derive_prompt_text(self.active_subscription_name, cwd)

    def refresh_prompt(self) -> None:
        """Push new prompt text to the installer; failures are ignored."""
        try:
            self.prompt_installer.install(self.prompt_text())
        except Exception as e:
            logger.debug(f"Prompt installation failed: {e}")


__all__ = [
    "AzureSession",
    "InvalidSelectionError",
    "NotConnectedError",
    "RefreshError",
    "SessionError",
    "SubscriptionBackend",
]
