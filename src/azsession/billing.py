"""Azure billing REST client.

Wraps the two Microsoft.Commerce billing endpoints:
- UsageAggregates: metered usage for a time window (daily or hourly buckets)
- RateCard: meter prices for an offer/currency/locale/region

Responses are returned as parsed JSON, unmodified; only the query
parameters are validated and normalized here.

Security Requirements:
- HTTPS only for API calls
- Input validation before any request
- Timeout on API calls
"""

import logging
import re
from datetime import UTC, date, datetime
from typing import Any

import requests

logger = logging.getLogger(__name__)

GRANULARITIES = ("Daily", "Hourly")
OFFER_ID_PATTERN = re.compile(r"^MS-AZR-[A-Z0-9-]+$", re.IGNORECASE)
CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$", re.IGNORECASE)
LOCALE_PATTERN = re.compile(r"^[a-z]{2}-[A-Z]{2}$", re.IGNORECASE)
REGION_PATTERN = re.compile(r"^[A-Z]{2}$", re.IGNORECASE)
SUBSCRIPTION_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


class BillingError(Exception):
    """Raised when a billing API call fails."""

    pass


def normalize_timestamp(value: datetime | date | str, granularity: str) -> datetime:
    """Truncate a timestamp to the bucket boundary the usage API expects.

    Daily queries need midnight, hourly queries need the top of the hour.
    Naive datetimes are taken as UTC; aware ones are converted to UTC.

    Args:
        value: datetime, date, or ISO-8601 string
        granularity: "Daily" or "Hourly"

    Returns:
        Timezone-aware UTC datetime on the bucket boundary

    Raises:
        ValueError: On unknown granularity or unparseable string
    """
    granularity = _normalize_granularity(granularity)

    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    elif not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)

    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    else:
        value = value.astimezone(UTC)

    if granularity == "Daily":
        return value.replace(hour=0, minute=0, second=0, microsecond=0)
    return value.replace(minute=0, second=0, microsecond=0)


def _normalize_granularity(granularity: str) -> str:
    for known in GRANULARITIES:
        if granularity.lower() == known.lower():
            return known
    raise ValueError(f"Invalid granularity: {granularity} (expected Daily or Hourly)")


def _validate_subscription_id(subscription_id: str) -> None:
    if not subscription_id or not SUBSCRIPTION_ID_PATTERN.match(subscription_id):
        raise ValueError(
            f"Invalid subscription ID format: {subscription_id}\n"
            "Subscription ID must be a valid UUID (xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx)"
        )


class BillingClient:
    """Client for the Azure Commerce billing API."""

    API_BASE = "https://management.azure.com"
    API_TIMEOUT = 30

    def __init__(
        self,
        auth_header: dict[str, str],
        base_url: str = API_BASE,
        timeout: int = API_TIMEOUT,
        usage_api_version: str = "2015-06-01-preview",
        ratecard_api_version: str = "2016-08-31-preview",
    ):
        """Initialize billing client.

        Args:
            auth_header: {"Authorization": "Bearer ..."} from token_provider
            base_url: Resource manager endpoint
            timeout: HTTP timeout in seconds
            usage_api_version: api-version for UsageAggregates
            ratecard_api_version: api-version for RateCard

        Raises:
            ValueError: If auth_header lacks Authorization or base_url is not HTTPS
        """
        if not auth_header or not auth_header.get("Authorization"):
            raise ValueError("auth_header must contain an Authorization value")
        if not base_url.startswith("https://"):
            raise ValueError(f"Billing API base URL must use HTTPS: {base_url}")

        self.auth_header = dict(auth_header)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.usage_api_version = usage_api_version
        self.ratecard_api_version = ratecard_api_version

    def get_usage(
        self,
        subscription_id: str,
        start: datetime | date | str,
        end: datetime | date | str,
        granularity: str = "Daily",
        show_details: bool = True,
        api_version: str | None = None,
    ) -> dict[str, Any]:
        """Query usage aggregates for a subscription.

        All result pages are fetched; the returned body has every record
        under "value".

        Args:
            subscription_id: Subscription ID (UUID)
            start: Reported start time (inclusive)
            end: Reported end time (exclusive)
            granularity: "Daily" or "Hourly"
            show_details: Include instance-level details
            api_version: Override the configured api-version

        Returns:
            Provider JSON: {"value": [...]}

        Raises:
            ValueError: If inputs are invalid
            BillingError: If the API call fails
        """
        _validate_subscription_id(subscription_id)
        granularity = _normalize_granularity(granularity)
        start_dt = normalize_timestamp(start, granularity)
        end_dt = normalize_timestamp(end, granularity)
        if start_dt >= end_dt:
            raise ValueError(
                f"Start time {start_dt.isoformat()} must be before end time {end_dt.isoformat()}"
            )

        url = (
            f"{self.base_url}/subscriptions/{subscription_id}"
            "/providers/Microsoft.Commerce/UsageAggregates"
        )
        params: dict[str, str] | None = {
            "api-version": api_version or self.usage_api_version,
            "reportedStartTime": start_dt.isoformat(),
            "reportedEndTime": end_dt.isoformat(),
            "aggregationGranularity": granularity,
            "showDetails": "true" if show_details else "false",
        }

        records: list[Any] = []
        first_body: dict[str, Any] | None = None
        next_url: str | None = url
        while next_url:
            body = self._get(next_url, params)
            if first_body is None:
                first_body = body
            records.extend(body.get("value", []))
            next_url = body.get("nextLink")
            # nextLink already carries the query string
            params = None

        result = dict(first_body or {})
        result.pop("nextLink", None)
        result["value"] = records
        logger.debug(f"Fetched {len(records)} usage records for {subscription_id}")
        return result

    def get_rate_card(
        self,
        subscription_id: str,
        offer_id: str,
        currency: str = "USD",
        locale: str = "en-US",
        region: str = "US",
        api_version: str | None = None,
    ) -> dict[str, Any]:
        """Query the rate card for an offer.

        Args:
            subscription_id: Subscription ID (UUID)
            offer_id: Offer durable ID (e.g., "MS-AZR-0003P")
            currency: ISO currency code, 3 letters
            locale: Culture name (e.g., "en-US")
            region: ISO country code, 2 letters
            api_version: Override the configured api-version

        Returns:
            Provider JSON (Meters, Currency, Locale, ...)

        Raises:
            ValueError: If inputs are invalid
            BillingError: If the API call fails
        """
        _validate_subscription_id(subscription_id)
        if not OFFER_ID_PATTERN.match(offer_id or ""):
            raise ValueError(f"Invalid offer ID: {offer_id} (expected MS-AZR-*, e.g. MS-AZR-0003P)")
        if not CURRENCY_PATTERN.match(currency or ""):
            raise ValueError(f"Invalid currency: {currency} (expected 3 letters, e.g. USD)")
        if not LOCALE_PATTERN.match(locale or ""):
            raise ValueError(f"Invalid locale: {locale} (expected xx-XX, e.g. en-US)")
        if not REGION_PATTERN.match(region or ""):
            raise ValueError(f"Invalid region: {region} (expected 2 letters, e.g. US)")

        url = f"{self.base_url}/subscriptions/{subscription_id}/providers/Microsoft.Commerce/RateCard"
        params = {
            "api-version": api_version or self.ratecard_api_version,
            "$filter": (
                f"OfferDurableId eq '{offer_id.upper()}' and Currency eq '{currency.upper()}' "
                f"and Locale eq '{locale}' and RegionInfo eq '{region.upper()}'"
            ),
        }
        return self._get(url, params)

    def _get(self, url: str, params: dict[str, str] | None) -> dict[str, Any]:
        """GET a billing URL and return its JSON body.

        Raises:
            BillingError: On network failure or non-200 status
        """
        headers = {**self.auth_header, "Accept": "application/json"}
        try:
            response = requests.get(url, headers=headers, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise BillingError(f"Billing API request failed: {e}") from e

        if response.status_code == 200:
            try:
                body = response.json()
            except ValueError as e:
                raise BillingError(f"Billing API returned invalid JSON: {e}") from e
            if not isinstance(body, dict):
                raise BillingError(
                    f"Billing API returned unexpected body type: {type(body).__name__}"
                )
            return body

        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and body.get("error"):
            error = body["error"]
            error_msg = error.get("message", "Unknown error") if isinstance(error, dict) else error
        else:
            error_msg = response.text or "Unknown error"
        raise BillingError(f"Billing API error: {response.status_code} - {error_msg}")


__all__ = [
    "GRANULARITIES",
    "BillingClient",
    "BillingError",
    "normalize_timestamp",
]
