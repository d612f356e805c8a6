"""Data models for azsession.

This module defines the records exchanged with the Azure CLI:
- SubscriptionInfo: one entry of `az account list`
- LoginContext: the result of `az login` / `az account show`
- ServicePrincipalCredential: client credentials for non-interactive login

Security features:
- Frozen dataclasses for immutability
- Client secret masked in repr()
- No secret serialization
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class SubscriptionInfo:
    """Single Azure subscription as reported by the Azure CLI.

    Attributes:
        name: Display name (e.g., "Dev", "Prod")
        id: Subscription ID (UUID)
        tenant_id: Tenant (directory) ID
        state: Subscription state ("Enabled", "Disabled", ...)
        is_default: Whether az CLI considers it the default subscription
        user: Signed-in principal name, if reported
    """

    name: str
    id: str
    tenant_id: str = ""
    state: str = "Enabled"
    is_default: bool = False
    user: str | None = None

    @classmethod
    def from_az(cls, data: dict[str, Any]) -> "SubscriptionInfo":
        """Create SubscriptionInfo from az CLI JSON.

        Args:
            data: One object from `az account list -o json`

        Returns:
            SubscriptionInfo instance

        Raises:
            ValueError: If the name or id field is missing
        """
        if "name" not in data or "id" not in data:
            raise ValueError(f"Subscription record missing name/id: {sorted(data)}")

        user = data.get("user") or {}
        return cls(
            name=data["name"],
            id=data["id"],
            tenant_id=data.get("tenantId", ""),
            state=data.get("state", "Enabled"),
            is_default=bool(data.get("isDefault", False)),
            user=user.get("name"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for display/JSON output."""
        return {
            "name": self.name,
            "id": self.id,
            "tenantId": self.tenant_id,
            "state": self.state,
            "isDefault": self.is_default,
            "user": self.user,
        }


@dataclass(frozen=True)
class LoginContext:
    """Opaque result of a successful login or subscription switch.

    Carries the current subscription plus metadata about the signed-in
    principal and cloud environment.
    """

    subscription: SubscriptionInfo
    environment: str = "AzureCloud"
    user_name: str | None = None
    user_type: str | None = None

    @property
    def subscription_name(self) -> str:
        """Display name of the current subscription."""
        return self.subscription.name

    @classmethod
    def from_az(cls, data: dict[str, Any]) -> "LoginContext":
        """Create LoginContext from `az account show -o json` output."""
        user = data.get("user") or {}
        return cls(
            subscription=SubscriptionInfo.from_az(data),
            environment=data.get("environmentName", "AzureCloud"),
            user_name=user.get("name"),
            user_type=user.get("type"),
        )


@dataclass(frozen=True)
class ServicePrincipalCredential:
    """Service principal client credentials.

    Note: client_secret must come from the environment or an interactive
    prompt. It is never written to disk by azsession.
    """

    client_id: str
    client_secret: str
    tenant_id: str

    def __post_init__(self):
        """Validate required fields."""
        if not self.client_id:
            raise ValueError("client_id cannot be empty")
        if not self.tenant_id:
            raise ValueError("tenant_id cannot be empty")
        if not self.client_secret:
            raise ValueError("client_secret cannot be empty")

    def __repr__(self) -> str:
        """Return string representation with masked secret."""
        return (
            f"ServicePrincipalCredential("
            f"client_id={self.client_id}, "
            f"client_secret=****, "
            f"tenant_id={self.tenant_id})"
        )

    __str__ = __repr__


__all__ = ["LoginContext", "ServicePrincipalCredential", "SubscriptionInfo"]
