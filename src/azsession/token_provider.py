"""Bearer token acquisition for the Azure billing API.

Two protocols are supported, both yielding {"Authorization": "Bearer ..."}:
- tenant: client-credential exchange against the tenant authority
  through the Azure Identity SDK (ClientSecretCredential)
- oauth: OAuth2 client_credentials grant POSTed to a token endpoint

Security:
- No token storage - callers hold the header for as long as they need it
- Error messages sanitized (no secrets or tokens in output)
"""

import logging

import requests
from azure.identity import ClientSecretCredential

from azsession.azure_auth import AuthenticationError
from azsession.log_sanitizer import LogSanitizer
from azsession.models import ServicePrincipalCredential

logger = logging.getLogger(__name__)

DEFAULT_RESOURCE = "https://management.azure.com/"
DEFAULT_TOKEN_ENDPOINT = "https://login.microsoftonline.com/{tenant_id}/oauth2/token"
TOKEN_METHODS = ("tenant", "oauth")


def _scope_for(resource: str) -> str:
    """Translate a v1 resource URI into a v2 `.default` scope."""
    return resource.rstrip("/") + "/.default"


def get_tenant_token(
    credential: ServicePrincipalCredential, resource: str = DEFAULT_RESOURCE
) -> dict[str, str]:
    """Acquire a token from the tenant authority with client credentials.

    Args:
        credential: Service principal credentials
        resource: Resource the token is issued for

    Returns:
        {"Authorization": "Bearer <token>"}

    Raises:
        AuthenticationError: If the token request fails
    """
    try:
        sdk_credential = ClientSecretCredential(
            tenant_id=credential.tenant_id,
            client_id=credential.client_id,
            client_secret=credential.client_secret,
        )
        access_token = sdk_credential.get_token(_scope_for(resource))
    except Exception as e:
        safe_error = LogSanitizer.create_safe_error_message(e, "Tenant token request failed")
        raise AuthenticationError(safe_error) from e

    logger.debug(f"Acquired tenant token for {resource} (tenant {credential.tenant_id})")
    return {"Authorization": f"Bearer {access_token.token}"}


def get_oauth_token(
    credential: ServicePrincipalCredential,
    resource: str = DEFAULT_RESOURCE,
    token_endpoint: str = DEFAULT_TOKEN_ENDPOINT,
    timeout: int = 30,
) -> dict[str, str]:
    """Acquire a token with an OAuth2 client_credentials grant.

    Args:
        credential: Service principal credentials
        resource: Resource the token is issued for
        token_endpoint: Token URL; "{tenant_id}" is substituted
        timeout: HTTP timeout in seconds

    Returns:
        {"Authorization": "Bearer <token>"}

    Raises:
        AuthenticationError: If the endpoint rejects the request
    """
    url = token_endpoint.replace("{tenant_id}", credential.tenant_id)
    if not url.startswith("https://"):
        raise AuthenticationError(f"Token endpoint must use HTTPS: {url}")

    form = {
        "grant_type": "client_credentials",
        "client_id": credential.client_id,
        "client_secret": credential.client_secret,
        "resource": resource,
    }

    try:
        response = requests.post(url, data=form, timeout=timeout)
    except requests.RequestException as e:
        raise AuthenticationError(
            LogSanitizer.create_safe_error_message(e, "Token request failed")
        ) from e

    try:
        body = response.json()
    except ValueError:
        body = None

    if response.status_code != 200:
        error_msg = None
        if isinstance(body, dict):
            error_msg = body.get("error_description") or body.get("error")
        error_msg = error_msg or response.text or "Unknown error"
        raise AuthenticationError(
            f"Token request failed: {response.status_code} - {LogSanitizer.sanitize(error_msg)}"
        )

    if not isinstance(body, dict) or not body.get("access_token"):
        raise AuthenticationError("Token response did not contain an access_token")
    token = body["access_token"]

    token_type = body.get("token_type", "Bearer")
    logger.debug(f"Acquired OAuth token for {resource} from {url}")
    return {"Authorization": f"{token_type} {token}"}


def get_auth_header(
    credential: ServicePrincipalCredential,
    method: str = "tenant",
    resource: str = DEFAULT_RESOURCE,
    token_endpoint: str = DEFAULT_TOKEN_ENDPOINT,
    timeout: int = 30,
) -> dict[str, str]:
    """Acquire an Authorization header using the named protocol."""
    if method == "tenant":
        return get_tenant_token(credential, resource=resource)
    if method == "oauth":
        return get_oauth_token(
            credential, resource=resource, token_endpoint=token_endpoint, timeout=timeout
        )
    raise ValueError(f"Unknown token method: {method} (expected one of {', '.join(TOKEN_METHODS)})")


__all__ = [
    "DEFAULT_RESOURCE",
    "DEFAULT_TOKEN_ENDPOINT",
    "TOKEN_METHODS",
    "get_auth_header",
    "get_oauth_token",
    "get_tenant_token",
]
