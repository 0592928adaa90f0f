"""HTTP tests for the public tracking routes: every outcome is a redirect."""

from typing import Any

from fastapi.testclient import TestClient

FALLBACK = "https://quotes.example.test/"


def _token(services: dict[str, Any], quote_id: str) -> str:
    return services["token_service"].issue_token(quote_id)


def _mark_sent(services: dict[str, Any], quote_id: str) -> None:
    services["quote_service"].record_email_delivered(quote_id, "msg-1")


class TestClick:
    """GET /api/tracking/click."""

    def test_valid_token_redirects_to_booking_page(
        self, client: TestClient, services, created: dict[str, Any]
    ):
        _mark_sent(services, created["id"])
        token = _token(services, created["id"])

        response = client.get(
            "/api/tracking/click", params={"t": token}, follow_redirects=False
        )

        assert response.status_code == 307
        assert response.headers["location"] == services["token_service"].booking_interest_url(token)
        assert services["quote_service"].require_quote(created["id"]).status == "viewed"

    def test_invalid_token_redirects_to_fallback(self, client: TestClient):
        response = client.get(
            "/api/tracking/click", params={"t": "forged.token"}, follow_redirects=False
        )
        assert response.status_code == 307
        assert response.headers["location"] == FALLBACK

    def test_missing_token_redirects_to_fallback(self, client: TestClient):
        response = client.get("/api/tracking/click", follow_redirects=False)
        assert response.status_code == 307
        assert response.headers["location"] == FALLBACK


class TestBookingInterest:
    """POST /api/tracking/booking-interest."""

    def test_records_interest_with_details(
        self, client: TestClient, services, created: dict[str, Any]
    ):
        token = _token(services, created["id"])

        response = client.post(
            "/api/tracking/booking-interest",
            params={"t": token},
            json={"contact_name": "Jamie", "urgency": "this-week"},
            follow_redirects=False,
        )

        assert response.status_code == 303
        assert response.headers["location"].endswith("&submitted=1")
        interest = services["quote_service"].require_quote(created["id"]).booking_interest
        assert interest.expressed is True
        assert interest.details.contact_name == "Jamie"

    def test_invalid_details_are_ignored(
        self, client: TestClient, services, created: dict[str, Any]
    ):
        token = _token(services, created["id"])

        response = client.post(
            "/api/tracking/booking-interest",
            params={"t": token},
            json={"urgency": "someday", "unexpected": True},
            follow_redirects=False,
        )

        assert response.status_code == 303
        interest = services["quote_service"].require_quote(created["id"]).booking_interest
        assert interest.expressed is True
        assert interest.details is None

    def test_invalid_token(self, client: TestClient):
        response = client.post(
            "/api/tracking/booking-interest", params={"t": "nope"}, follow_redirects=False
        )
        assert response.status_code == 303
        assert response.headers["location"] == FALLBACK
