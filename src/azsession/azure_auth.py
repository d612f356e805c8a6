"""Azure authentication handler module.

This module logs in and switches subscriptions by delegating to the
Azure CLI. It NEVER stores credentials - tokens are kept by az CLI in
~/.azure/ and service principal secrets are only passed through to
`az login` for the duration of the call.

Security:
- No credential storage
- Delegates to az CLI
- Secrets masked in every logged command line and error message
"""

import json
import logging
import subprocess
from typing import Any

from azsession.log_sanitizer import LogSanitizer
from azsession.models import LoginContext, ServicePrincipalCredential, SubscriptionInfo

logger = logging.getLogger(__name__)


class AzureCliError(Exception):
    """Raised when an az CLI command fails."""

    pass


class AuthenticationError(AzureCliError):
    """Raised when Azure authentication fails."""

    pass


class AzureCliClient:
    """Thin wrapper around the `az account` / `az login` commands.

    Each method is a single synchronous call-and-wait on the az CLI; the
    timeout is the only failure policy applied here.
    """

    def __init__(self, az_path: str = "az", timeout: int = 120):
        """Initialize client.

        Args:
            az_path: Path or name of the az executable
            timeout: Timeout in seconds for each az invocation
        """
        self.az_path = az_path
        self.timeout = timeout

    def _run(self, args: list[str], error_cls: type[AzureCliError] = AzureCliError) -> Any:
        """Run an az command and parse its JSON output.

        Args:
            args: Arguments after the az executable
            error_cls: Exception class to raise on failure

        Returns:
            Parsed JSON (None when the command prints nothing)

        Raises:
            error_cls: On missing CLI, timeout, non-zero exit or bad JSON
        """
        cmd = [self.az_path, *args, "--output", "json"]
        logger.debug(f"Running: {LogSanitizer.sanitize_command(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=True,
            )
        except FileNotFoundError as e:
            raise error_cls(
                "Azure CLI not found. Please install Azure CLI:\n"
                "https://docs.microsoft.com/en-us/cli/azure/install-azure-cli"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise error_cls(
                f"Azure CLI command timed out after {self.timeout} seconds: "
                f"{LogSanitizer.sanitize_command(cmd)}"
            ) from e
        except subprocess.CalledProcessError as e:
            error_msg = e.stderr.strip() if e.stderr else "Unknown error"
            raise error_cls(f"Azure CLI error: {LogSanitizer.sanitize(error_msg)}") from e

        if not result.stdout or not result.stdout.strip():
            return None

        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise error_cls(f"Could not parse Azure CLI output: {e}") from e

    def check_az_cli_available(self) -> bool:
        """Check if Azure CLI is available.

        Returns:
            True if az CLI is installed and working
        """
        try:
            result = subprocess.run(
                [self.az_path, "--version"], capture_output=True, text=True, timeout=5
            )
            return result.returncode == 0
        except (FileNotFoundError, subprocess.TimeoutExpired):
            return False

    def login(
        self,
        credential: ServicePrincipalCredential | None = None,
        subscription_name: str | None = None,
    ) -> LoginContext:
        """Log in and return the resulting context.

        Interactive `az login` is used when no credential is supplied;
        otherwise a service principal login. When subscription_name is
        given, it becomes the active subscription before the context is read.

        Raises:
            AuthenticationError: On bad credentials, network failure or CLI errors
        """
        args = ["login"]
        if credential is not None:
            args += [
                "--service-principal",
                "--username",
                credential.client_id,
                "--password",
                credential.client_secret,
                "--tenant",
                credential.tenant_id,
            ]
        self._run(args, AuthenticationError)
        logger.info("Azure login succeeded")

        if subscription_name:
            self._run(["account", "set", "--subscription", subscription_name], AuthenticationError)

        return self.show_account()

    def show_account(self) -> LoginContext:
        """Return the az CLI's current account as a LoginContext."""
        data = self._run(["account", "show"], AuthenticationError)
        if not isinstance(data, dict):
            raise AuthenticationError("az account show returned no account. Please run: az login")
        try:
            return LoginContext.from_az(data)
        except ValueError as e:
            raise AuthenticationError(f"Unexpected az account show output: {e}") from e

    def list_subscriptions(self) -> list[SubscriptionInfo]:
        """List every subscription visible to the signed-in principal.

        Raises:
            AzureCliError: If the listing fails
        """
        data = self._run(["account", "list", "--all"])
        if data is None:
            return []
        if not isinstance(data, list):
            raise AzureCliError(f"Unexpected az account list output type: {type(data).__name__}")

        subscriptions = []
        for entry in data:
            try:
                subscriptions.append(SubscriptionInfo.from_az(entry))
            except ValueError as e:
                logger.debug(f"Skipping malformed subscription entry: {e}")
        return subscriptions

    def switch_subscription(self, name: str) -> LoginContext:
        """Make `name` the az CLI's active subscription.

        Raises:
            AuthenticationError: If az CLI rejects the switch
        """
        self._run(["account", "set", "--subscription", name], AuthenticationError)
        logger.debug(f"Switched Azure CLI subscription to '{name}'")
        return self.show_account()


__all__ = ["AuthenticationError", "AzureCliClient", "AzureCliError"]
