"""Tests for the Azure billing REST client.

Tests cover:
- Timestamp normalization per granularity
- Usage aggregate query parameters and paging
- Rate card filter construction and input validation
- Error handling
"""

from datetime import UTC, date, datetime, timedelta, timezone
from unittest.mock import Mock, patch

import pytest
import requests

from azsession.billing import BillingClient, BillingError, normalize_timestamp

SUB_ID = "11111111-1111-1111-1111-111111111111"
AUTH = {"Authorization": "Bearer test-token-abcdef"}


def ok(body: dict) -> Mock:
    return Mock(status_code=200, json=Mock(return_value=body))


class TestNormalizeTimestamp:
    """Test timestamp truncation."""

    def test_daily_truncates_to_midnight(self):
        result = normalize_timestamp(datetime(2024, 3, 5, 17, 42, 10), "Daily")
        assert result == datetime(2024, 3, 5, tzinfo=UTC)

    def test_hourly_truncates_to_top_of_hour(self):
        result = normalize_timestamp(datetime(2024, 3, 5, 17, 42, 10, 999), "Hourly")
        assert result == datetime(2024, 3, 5, 17, tzinfo=UTC)

    def test_granularity_is_case_insensitive(self):
        result = normalize_timestamp(datetime(2024, 3, 5, 17, 42), "hourly")
        assert result.hour == 17 and result.minute == 0

    def test_aware_datetime_converted_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        result = normalize_timestamp(datetime(2024, 3, 5, 1, 30, tzinfo=plus_two), "Hourly")
        assert result == datetime(2024, 3, 4, 23, tzinfo=UTC)

    def test_date_and_string_inputs(self):
        assert normalize_timestamp(date(2024, 3, 5), "Daily") == datetime(2024, 3, 5, tzinfo=UTC)
        assert normalize_timestamp("2024-03-05T10:15:00Z", "Hourly") == datetime(
            2024, 3, 5, 10, tzinfo=UTC
        )

    def test_unknown_granularity(self):
        with pytest.raises(ValueError, match="Invalid granularity"):
            normalize_timestamp(datetime(2024, 3, 5), "Weekly")


class TestBillingClientInit:
    """Test client construction checks."""

    def test_requires_authorization(self):
        with pytest.raises(ValueError, match="Authorization"):
            BillingClient({})

    def test_requires_https(self):
        with pytest.raises(ValueError, match="HTTPS"):
            BillingClient(AUTH, base_url="http://management.azure.com")


class TestGetUsage:
    """Test usage aggregate queries."""

    @patch("requests.get")
    def test_daily_query_parameters(self, mock_get):
        """Test URL and normalized query parameters."""
        mock_get.return_value = ok({"value": [{"id": "u1"}]})

        result = BillingClient(AUTH).get_usage(
            SUB_ID, datetime(2024, 1, 1, 13, 5), datetime(2024, 1, 31, 8, 0)
        )

        url = mock_get.call_args.args[0]
        params = mock_get.call_args.kwargs["params"]
        headers = mock_get.call_args.kwargs["headers"]
        assert url == (
            f"https://management.azure.com/subscriptions/{SUB_ID}"
            "/providers/Microsoft.Commerce/UsageAggregates"
        )
        assert params == {
            "api-version": "2015-06-01-preview",
            "reportedStartTime": "2024-01-01T00:00:00+00:00",
            "reportedEndTime": "2024-01-31T00:00:00+00:00",
            "aggregationGranularity": "Daily",
            "showDetails": "true",
        }
        assert headers["Authorization"] == "Bearer test-token-abcdef"
        assert mock_get.call_args.kwargs["timeout"] == 30
        assert result == {"value": [{"id": "u1"}]}

    @patch("requests.get")
    def test_hourly_without_details(self, mock_get):
        """Test hourly granularity keeps the hour and disables details."""
        mock_get.return_value = ok({"value": []})

        BillingClient(AUTH).get_usage(
            SUB_ID,
            datetime(2024, 1, 1, 13, 5),
            datetime(2024, 1, 1, 18, 59),
            granularity="Hourly",
            show_details=False,
        )

        params = mock_get.call_args.kwargs["params"]
        assert params["reportedStartTime"] == "2024-01-01T13:00:00+00:00"
        assert params["reportedEndTime"] == "2024-01-01T18:00:00+00:00"
        assert params["aggregationGranularity"] == "Hourly"
        assert params["showDetails"] == "false"

    @patch("requests.get")
    def test_follows_next_link(self, mock_get):
        """Test all pages are concatenated and nextLink is dropped."""
        next_link = "https://management.azure.com/next?continuationToken=abc"
        mock_get.side_effect = [
            ok({"value": [{"id": "u1"}], "nextLink": next_link}),
            ok({"value": [{"id": "u2"}]}),
        ]

        result = BillingClient(AUTH).get_usage(SUB_ID, date(2024, 1, 1), date(2024, 1, 3))

        assert result == {"value": [{"id": "u1"}, {"id": "u2"}]}
        second_call = mock_get.call_args_list[1]
        assert second_call.args[0] == next_link
        assert second_call.kwargs["params"] is None

    def test_start_must_precede_end(self):
        """Test windows that collapse after normalization are rejected."""
        with pytest.raises(ValueError, match="must be before"):
            BillingClient(AUTH).get_usage(
                SUB_ID, datetime(2024, 1, 1, 3), datetime(2024, 1, 1, 20)
            )

    def test_invalid_subscription_id(self):
        with pytest.raises(ValueError, match="Invalid subscription ID"):
            BillingClient(AUTH).get_usage("not-a-uuid", date(2024, 1, 1), date(2024, 1, 2))

    @patch("requests.get")
    def test_api_error(self, mock_get):
        """Test provider error message is surfaced."""
        mock_get.return_value = Mock(
            status_code=403,
            json=Mock(return_value={"error": {"code": "AuthorizationFailed", "message": "denied"}}),
        )

        with pytest.raises(BillingError, match="403 - denied"):
            BillingClient(AUTH).get_usage(SUB_ID, date(2024, 1, 1), date(2024, 1, 2))

    @patch("requests.get")
    def test_network_error(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(BillingError, match="connection refused"):
            BillingClient(AUTH).get_usage(SUB_ID, date(2024, 1, 1), date(2024, 1, 2))


class TestGetRateCard:
    """Test rate card queries."""

    @patch("requests.get")
    def test_rate_card_filter(self, mock_get):
        """Test filter expression and passthrough of the body."""
        body = {"Meters": [], "Currency": "EUR", "Locale": "de-DE"}
        mock_get.return_value = ok(body)

        result = BillingClient(AUTH).get_rate_card(
            SUB_ID, "MS-AZR-0003p", currency="eur", locale="de-DE", region="de"
        )

        url = mock_get.call_args.args[0]
        params = mock_get.call_args.kwargs["params"]
        assert url.endswith(f"/subscriptions/{SUB_ID}/providers/Microsoft.Commerce/RateCard")
        assert params["api-version"] == "2016-08-31-preview"
        assert params["$filter"] == (
            "OfferDurableId eq 'MS-AZR-0003P' and Currency eq 'EUR' "
            "and Locale eq 'de-DE' and RegionInfo eq 'DE'"
        )
        assert result == body

    @pytest.mark.parametrize(
        "kwargs, match",
        [
            ({"offer_id": "AZR-0003P"}, "Invalid offer ID"),
            ({"offer_id": "MS-AZR-0003P", "currency": "US"}, "Invalid currency"),
            ({"offer_id": "MS-AZR-0003P", "locale": "english"}, "Invalid locale"),
            ({"offer_id": "MS-AZR-0003P", "region": "USA"}, "Invalid region"),
        ],
    )
    @patch("requests.get")
    def test_invalid_inputs_rejected_before_request(self, mock_get, kwargs, match):
        with pytest.raises(ValueError, match=match):
            BillingClient(AUTH).get_rate_card(SUB_ID, **kwargs)
        mock_get.assert_not_called()

    @pytest.mark.parametrize(
        "body",
        ["Service Unavailable", ["Service", "Unavailable"], ValueError("not json")],
    )
    @patch("requests.get")
    def test_error_body_not_an_object(self, mock_get, body):
        """Test non-object error bodies fall back to the response text."""
        response = Mock(status_code=503, text="Service Unavailable")
        if isinstance(body, Exception):
            response.json.side_effect = body
        else:
            response.json.return_value = body
        mock_get.return_value = response

        with pytest.raises(BillingError, match="503 - Service Unavailable"):
            BillingClient(AUTH).get_rate_card(SUB_ID, "MS-AZR-0003P")

    @patch("requests.get")
    def test_success_body_not_an_object(self, mock_get):
        mock_get.return_value = ok(["meter"])

        with pytest.raises(BillingError, match="unexpected body type: list"):
            BillingClient(AUTH).get_rate_card(SUB_ID, "MS-AZR-0003P")

    @patch("requests.get")
    def test_api_version_override(self, mock_get):
        mock_get.return_value = ok({})

        BillingClient(AUTH, ratecard_api_version="2015-06-01-preview").get_rate_card(
            SUB_ID, "MS-AZR-0017P"
        )

        assert mock_get.call_args.kwargs["params"]["api-version"] == "2015-06-01-preview"
