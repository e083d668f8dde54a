"""
Tests for the challenge HTTP endpoints.

GET /api/challenge must keep its exact wire format: the five challenge
fields on success, a fixed 429 message once the quota is used, and a
generic 500 that reveals nothing about the failure.
"""

import time

from sqlalchemy import text

from linkgate.api.dependencies import get_settings
from linkgate.core.security import verify_signature
from linkgate.services.challenge_service import compute_proof
from tests.conftest import TEST_CHALLENGE_SECRET, make_settings

CHALLENGE_FIELDS = {"challenge_id", "nonce", "rotating_secret", "signature", "expiresAt"}
RATE_LIMIT_BODY = {"error": "Rate limit exceeded. Maximum 10 challenges per minute."}


def solve(payload: dict, difficulty: int, timing: int, entropy: str) -> tuple[int, str]:
    counter = 0
    while True:
        proof = compute_proof(
            payload["challenge_id"], payload["nonce"], payload["rotating_secret"],
            timing, entropy, counter,
        )
        if proof.startswith("0" * difficulty):
            return counter, proof
        counter += 1


class TestIssueChallengeEndpoint:
    """Tests for GET /api/challenge."""

    def test_returns_challenge_fields(self, client):
        response = client.get("/api/challenge")

        assert response.status_code == 200
        body = response.json()
        assert set(body) == CHALLENGE_FIELDS
        assert isinstance(body["expiresAt"], int)
        assert body["expiresAt"] > int(time.time() * 1000)

    def test_signature_verifies(self, client):
        body = client.get("/api/challenge").json()
        assert verify_signature(TEST_CHALLENGE_SECRET, body)

    def test_eleventh_request_is_rate_limited(self, client):
        """Ten requests succeed; the eleventh gets the fixed 429 body."""
        for _ in range(10):
            assert client.get("/api/challenge").status_code == 200

        response = client.get("/api/challenge")
        assert response.status_code == 429
        assert response.json() == RATE_LIMIT_BODY

    def test_forwarded_clients_are_limited_separately(self, client):
        for _ in range(10):
            client.get("/api/challenge", headers={"X-Forwarded-For": "198.51.100.1"})
        blocked = client.get("/api/challenge", headers={"X-Forwarded-For": "198.51.100.1"})
        other = client.get("/api/challenge", headers={"X-Forwarded-For": "198.51.100.2, 10.0.0.1"})

        assert blocked.status_code == 429
        assert other.status_code == 200

    def test_cloudflare_header_takes_precedence(self, client, sync_engine):
        client.get(
            "/api/challenge",
            headers={"cf-connecting-ip": "192.0.2.44", "X-Forwarded-For": "198.51.100.3"},
        )
        with sync_engine.connect() as connection:
            ips = connection.execute(text("SELECT ip FROM challenges")).scalars().all()
        assert ips == ["192.0.2.44"]

    def test_failure_returns_generic_error(self, app, client):
        """A missing server key yields 500 without leaking the cause."""
        app.dependency_overrides[get_settings] = lambda: make_settings(CHALLENGE_SECRET=None)

        response = client.get("/api/challenge")

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to generate challenge"}
        assert "CHALLENGE_SECRET" not in response.text


class TestVerifyChallengeEndpoint:
    """Tests for POST /api/challenge/verify."""

    def test_valid_proof_accepted_once(self, client):
        payload = client.get("/api/challenge").json()
        timing = int(time.time() * 1000)
        entropy = "pointer-trace-1234"
        counter, proof = solve(payload, 2, timing, entropy)
        submission = {
            "challenge_id": payload["challenge_id"],
            "proof": proof,
            "timing": timing,
            "entropy": entropy,
            "counter": counter,
        }

        first = client.post("/api/challenge/verify", json=submission)
        second = client.post("/api/challenge/verify", json=submission)

        assert first.status_code == 200
        assert first.json() == {"valid": True}
        assert second.status_code == 403
        assert second.json() == {"error": "Challenge not found or expired"}

    def test_rejection_flags_client_ip(self, client, sync_engine):
        """A failed verification records the client as suspicious."""
        response = client.post(
            "/api/challenge/verify",
            json={
                "challenge_id": "a" * 32,
                "proof": "0" * 64,
                "timing": int(time.time() * 1000),
                "entropy": "pointer-trace-1234",
                "counter": 1,
            },
            headers={"X-Forwarded-For": "203.0.113.66"},
        )

        assert response.status_code == 403
        with sync_engine.connect() as connection:
            rows = connection.execute(
                text("SELECT ip_address, reason FROM suspicious_ips")
            ).all()
        assert [tuple(row) for row in rows] == [("203.0.113.66", "Challenge not found or expired")]

    def test_user_agent_binding(self, app, client):
        """With binding on, a proof from another User-Agent is refused."""
        app.dependency_overrides[get_settings] = lambda: make_settings(CHALLENGE_BIND_USER_AGENT=True)
        payload = client.get("/api/challenge", headers={"User-Agent": "browser/1.0"}).json()
        timing = int(time.time() * 1000)
        entropy = "pointer-trace-1234"
        counter, proof = solve(payload, 2, timing, entropy)
        submission = {
            "challenge_id": payload["challenge_id"],
            "proof": proof,
            "timing": timing,
            "entropy": entropy,
            "counter": counter,
        }

        other = client.post("/api/challenge/verify", json=submission, headers={"User-Agent": "script/2.0"})
        same = client.post("/api/challenge/verify", json=submission, headers={"User-Agent": "browser/1.0"})

        assert other.status_code == 403
        assert other.json() == {"error": "User-Agent mismatch"}
        assert same.status_code == 200

    def test_malformed_body_rejected(self, client):
        response = client.post("/api/challenge/verify", json={"challenge_id": "x"})

        assert response.status_code == 422
        assert response.json() == {"error": "Invalid request"}


class TestHealthEndpoints:

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_unknown_route_uses_error_shape(self, client):
        response = client.get("/nope")
        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}
