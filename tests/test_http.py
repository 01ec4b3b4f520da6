"""Unit tests for the rate-limit aware request helper."""
import pytest
import requests
from unittest.mock import Mock, call
from src.data_access.http import parse_retry_after, request_with_rate_limit


@pytest.fixture
def session():
    """Session whose request method is replaced per test."""
    session = requests.Session()
    session.request = Mock()
    return session


class TestParseRetryAfter:
    """Test Retry-After header parsing."""

    def test_numeric_header(self):
        assert parse_retry_after("3") == 3.0

    def test_missing_header_uses_default(self):
        assert parse_retry_after(None) == 2.0

    def test_non_numeric_header_uses_default(self):
        assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") == 2.0

    def test_negative_header_uses_default(self):
        assert parse_retry_after("-1") == 2.0


class TestRequestWithRateLimit:
    """Test request_with_rate_limit."""

    def test_success_returns_immediately(self, session, make_response):
        session.request.return_value = make_response(200, {"ok": True})
        sleep = Mock()

        response = request_with_rate_limit(session, "GET", "https://api.test/x", sleep=sleep)

        assert response.status_code == 200
        sleep.assert_not_called()
        session.request.assert_called_once_with("GET", "https://api.test/x")

    def test_429_waits_and_replays_same_request(self, session, make_response):
        """Test Retry-After: 3 causes a 3 second wait and an identical second call."""
        session.request.side_effect = [
            make_response(429, headers={"Retry-After": "3"}),
            make_response(200, {"ok": True}),
        ]
        sleep = Mock()

        response = request_with_rate_limit(
            session, "POST", "https://api.test/feedback", sleep=sleep, json={"id": "gladly_1"}
        )

        assert response.status_code == 200
        sleep.assert_called_once_with(3.0)
        assert session.request.call_args_list == [
            call("POST", "https://api.test/feedback", json={"id": "gladly_1"}),
            call("POST", "https://api.test/feedback", json={"id": "gladly_1"}),
        ]

    def test_429_without_header_waits_default(self, session, make_response):
        session.request.side_effect = [make_response(429), make_response(200, {})]
        sleep = Mock()

        request_with_rate_limit(session, "GET", "https://api.test/x", sleep=sleep)

        sleep.assert_called_once_with(2.0)

    def test_every_429_is_handled(self, session, make_response):
        """Test repeated rate limiting keeps waiting."""
        session.request.side_effect = [
            make_response(429, headers={"Retry-After": "1"}),
            make_response(429, headers={"Retry-After": "4"}),
            make_response(200, {}),
        ]
        sleep = Mock()

        request_with_rate_limit(session, "GET", "https://api.test/x", sleep=sleep)

        assert sleep.call_args_list == [call(1.0), call(4.0)]
        assert session.request.call_count == 3

    def test_other_errors_are_returned_unchanged(self, session, make_response):
        session.request.return_value = make_response(500)
        sleep = Mock()

        response = request_with_rate_limit(session, "GET", "https://api.test/x", sleep=sleep)

        assert response.status_code == 500
        sleep.assert_not_called()

    def test_transport_errors_propagate(self, session):
        session.request.side_effect = requests.ConnectionError("refused")
        with pytest.raises(requests.ConnectionError):
            request_with_rate_limit(session, "GET", "https://api.test/x", sleep=Mock())
