"""
End-to-end tests for the HTTP API against an in-memory database.
"""

import httpx
import pytest

from conftest import REDIRECT_LIMIT
from linkrotator.core.exceptions import CounterStoreError
from linkrotator.core.limiter_manager import get_rate_limiter
from linkrotator.core.setting import settings
from linkrotator.main import app
from linkrotator.services.counter_store import CounterStore
from linkrotator.services.rate_limiter import RateLimiter

PRIMARY = "https://a.example/landing"
SECONDARY = "https://b.example/offer"
PROXY_IP = "127.0.0.1"  # peer address httpx.ASGITransport reports by default


async def create_rule(client, **overrides):
    payload = {"primary_destination": PRIMARY, "secondary_destinations": []}
    payload.update(overrides)
    response = await client.post("/rules", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def client_from(peer_ip: str) -> httpx.AsyncClient:
    """API client whose connections come from ``peer_ip``."""
    transport = httpx.ASGITransport(app=app, client=(peer_ip, 51000))
    return httpx.AsyncClient(transport=transport, base_url="http://test")


class UnavailableStore(CounterStore):

    async def increment_and_check(self, key, window_seconds, max_requests):
        raise CounterStoreError("database is locked")

    async def prune(self, window_seconds):
        raise CounterStoreError("database is locked")


@pytest.mark.asyncio
async def test_health(client):
    """Test the health endpoint and the timing header set by the middleware."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
    assert "X-Process-Time" in response.headers


@pytest.mark.asyncio
async def test_root_banner(client):
    """Test that the banner reports the configured counter backend."""
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["rate_limit_backend"] == settings.RATE_LIMIT_BACKEND.value


class TestRuleAuthoring:
    """Rule creation and read-back."""

    @pytest.mark.asyncio
    async def test_create_mints_link_id(self, client):
        """Test that a rule without an id gets an lnk- id and a tracking URL."""
        rule = await create_rule(
            client,
            secondary_destinations=[{"destination_url": SECONDARY, "weight_percent": 40, "order_index": 0}],
        )
        assert rule["id"].startswith("lnk-")
        assert len(rule["id"]) == 12
        assert rule["tracking_url"] == f"{settings.BASE_URL}/{rule['id']}"
        assert rule["status"] == "enabled"
        assert rule["rotation_enabled"] is True
        assert rule["secondary_destinations"][0]["weight_percent"] == 40

    @pytest.mark.asyncio
    async def test_create_with_custom_id_and_read_back(self, client):
        """Test that an operator-chosen id is stored and readable."""
        await create_rule(client, id="spring-sale", rotation_enabled=False)

        response = await client.get("/rules/spring-sale")
        assert response.status_code == 200
        assert response.json()["id"] == "spring-sale"
        assert response.json()["rotation_enabled"] is False

    @pytest.mark.asyncio
    async def test_duplicate_id_conflicts(self, client):
        """Test that reusing an id returns 409."""
        await create_rule(client, id="taken")
        response = await client.post("/rules", json={"id": "taken", "primary_destination": PRIMARY})
        assert response.status_code == 409

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"primary_destination": "javascript:alert(1)"},
        {"primary_destination": "ftp://a.example"},
        {"primary_destination": PRIMARY, "id": "bad id!"},
        {
            "primary_destination": PRIMARY,
            "secondary_destinations": [{"destination_url": "not-a-url", "weight_percent": 10}],
        },
    ])
    async def test_invalid_input_is_rejected(self, client, payload):
        """Test that bad URLs and malformed ids return 400."""
        response = await client.post("/rules", json=payload)
        assert response.status_code == 400

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rule_id", ["health", "docs", "redoc"])
    async def test_ids_shadowed_by_service_routes_are_rejected(self, client, rule_id):
        """Test that ids the app serves itself cannot be taken by a rule."""
        response = await client.post("/rules", json={"id": rule_id, "primary_destination": PRIMARY})
        assert response.status_code == 400
        assert "reserved" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_weights_over_one_hundred_are_rejected(self, client):
        """Test that secondaries summing above 100% fail validation."""
        response = await client.post("/rules", json={
            "primary_destination": PRIMARY,
            "secondary_destinations": [
                {"destination_url": SECONDARY, "weight_percent": 70, "order_index": 0},
                {"destination_url": "https://c.example", "weight_percent": 40, "order_index": 1},
            ],
        })
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_rule(self, client):
        """Test that reading a missing rule returns 404."""
        response = await client.get("/rules/lnk-missing1")
        assert response.status_code == 404


class TestRedirect:
    """Live redirect endpoint."""

    @pytest.mark.asyncio
    async def test_rotation_disabled_redirects_to_primary(self, client):
        """Test that a rule with rotation off always goes to the primary."""
        rule = await create_rule(
            client,
            rotation_enabled=False,
            secondary_destinations=[{"destination_url": SECONDARY, "weight_percent": 100}],
        )
        response = await client.get(f"/{rule['id']}")
        assert response.status_code == 307
        assert response.headers["location"] == PRIMARY
        assert response.headers["X-RateLimit-Limit"] == str(REDIRECT_LIMIT)

    @pytest.mark.asyncio
    async def test_full_weight_secondary_always_wins(self, client):
        """Test that a 100% secondary receives every redirect."""
        rule = await create_rule(
            client,
            secondary_destinations=[{"destination_url": SECONDARY, "weight_percent": 100}],
        )
        for _ in range(REDIRECT_LIMIT):
            response = await client.get(f"/{rule['id']}")
            assert response.headers["location"] == SECONDARY

    @pytest.mark.asyncio
    async def test_utm_parameters_are_carried_over(self, client):
        """Test that utm_* parameters are appended to the destination."""
        rule = await create_rule(client)
        response = await client.get(f"/{rule['id']}?utm_source=google&utm_campaign=spring&ref=x")
        assert response.status_code == 307
        assert response.headers["location"] == f"{PRIMARY}?utm_source=google&utm_campaign=spring"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rule_status", ["disabled", "expired"])
    async def test_inactive_rule_is_gone(self, client, rule_status):
        """Test that disabled and expired rules return 410."""
        rule = await create_rule(client, status=rule_status)
        response = await client.get(f"/{rule['id']}")
        assert response.status_code == 410

    @pytest.mark.asyncio
    async def test_unknown_rule(self, client):
        """Test that an unknown rule id returns 404."""
        response = await client.get("/lnk-nothere1")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_malformed_rule_id(self, client):
        """Test that a malformed rule id returns 400."""
        response = await client.get("/bad--id")
        assert response.status_code == 400


class TestRedirectAdmission:
    """Per-client rate limiting of the redirect endpoint."""

    @pytest.mark.asyncio
    async def test_client_over_limit_gets_429(self, client):
        """Test that the request after the limit is denied while other peers pass."""
        rule = await create_rule(client)

        for _ in range(REDIRECT_LIMIT):
            response = await client.get(f"/{rule['id']}")
            assert response.status_code == 307

        response = await client.get(f"/{rule['id']}")
        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) >= 1
        assert response.headers["X-RateLimit-Remaining"] == "0"

        async with client_from("198.51.100.9") as other:
            assert (await other.get(f"/{rule['id']}")).status_code == 307

    @pytest.mark.asyncio
    async def test_forwarded_for_from_untrusted_peer_is_ignored(self, client, monkeypatch):
        """Test that rotating X-Forwarded-For does not give a client a fresh quota."""
        monkeypatch.setattr(settings, "TRUSTED_PROXIES", [])
        rule = await create_rule(client)

        statuses = [
            (await client.get(f"/{rule['id']}", headers={"X-Forwarded-For": f"203.0.113.{i}"})).status_code
            for i in range(REDIRECT_LIMIT * 10)
        ]
        assert statuses[:REDIRECT_LIMIT] == [307] * REDIRECT_LIMIT
        assert set(statuses[REDIRECT_LIMIT:]) == {429}

    @pytest.mark.asyncio
    async def test_forwarded_for_from_trusted_proxy_keys_the_client(self, client, monkeypatch):
        """Test that clients behind a trusted proxy are limited separately."""
        monkeypatch.setattr(settings, "TRUSTED_PROXIES", [PROXY_IP])
        rule = await create_rule(client)

        for _ in range(REDIRECT_LIMIT):
            response = await client.get(f"/{rule['id']}", headers={"X-Forwarded-For": "203.0.113.1"})
            assert response.status_code == 307
        denied = await client.get(f"/{rule['id']}", headers={"X-Forwarded-For": "203.0.113.1, 10.0.0.1"})
        assert denied.status_code == 429

        other = await client.get(f"/{rule['id']}", headers={"X-Forwarded-For": "203.0.113.2"})
        assert other.status_code == 307

    @pytest.mark.asyncio
    async def test_denied_request_skips_rule_lookup(self, client):
        """Test that admission runs before the rule lookup."""
        for _ in range(REDIRECT_LIMIT):
            await client.get("/lnk-nothere1")
        response = await client.get("/lnk-nothere1")
        assert response.status_code == 429

    @pytest.mark.asyncio
    async def test_counter_store_outage_fails_open(self, client):
        """Test that redirects keep working while the counter store is down."""
        rule = await create_rule(client)
        outage_limiter = RateLimiter(UnavailableStore(), window_seconds=10, max_requests=REDIRECT_LIMIT)
        app.dependency_overrides[get_rate_limiter] = lambda: outage_limiter

        for _ in range(REDIRECT_LIMIT * 5):
            response = await client.get(f"/{rule['id']}")
            assert response.status_code == 307


class TestSimulation:
    """Simulation endpoints."""

    @pytest.mark.asyncio
    async def test_simulate_stored_rule(self, client):
        """Test simulation of a stored 60/40 rule."""
        rule = await create_rule(
            client,
            secondary_destinations=[{"destination_url": SECONDARY, "weight_percent": 40}],
        )
        response = await client.post(f"/rules/{rule['id']}/simulate?iterations=5000")
        assert response.status_code == 200

        results = response.json()
        assert [r["url"] for r in results] == [PRIMARY, SECONDARY]
        assert [r["configured_weight"] for r in results] == [60, 40]
        assert sum(r["actual_hits"] for r in results) == 5000
        assert results[1]["actual_percentage"] == pytest.approx(40, abs=4)

    @pytest.mark.asyncio
    async def test_simulation_uses_default_iterations(self, client):
        """Test that omitting iterations uses the configured default."""
        rule = await create_rule(client)
        response = await client.post(f"/rules/{rule['id']}/simulate")
        results = response.json()
        assert results[0]["actual_hits"] == settings.SIMULATION_DEFAULT_ITERATIONS
        assert results[0]["actual_percentage"] == 100.0

    @pytest.mark.asyncio
    async def test_simulate_unsaved_configuration(self, client):
        """Test ad-hoc simulation of a configuration that is not stored."""
        response = await client.post("/simulate", json={
            "primary_destination": PRIMARY,
            "secondary_destinations": [
                {"destination_url": SECONDARY, "weight_percent": 50, "order_index": 0},
                {"destination_url": "https://c.example", "weight_percent": 50, "order_index": 1},
            ],
            "iterations": 2000,
        })
        assert response.status_code == 200
        results = response.json()
        assert [r["url"] for r in results] == [SECONDARY, "https://c.example"]
        assert not any(r["is_primary"] for r in results)

    @pytest.mark.asyncio
    async def test_zero_iterations_gives_empty_result(self, client):
        """Test that zero iterations return an empty list."""
        response = await client.post("/simulate", json={"primary_destination": PRIMARY, "iterations": 0})
        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_too_many_iterations(self, client):
        """Test that iterations above the maximum return 400."""
        response = await client.post(
            "/simulate",
            json={"primary_destination": PRIMARY, "iterations": settings.SIMULATION_MAX_ITERATIONS + 1},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_simulating_unknown_rule(self, client):
        """Test that simulating a missing rule returns 404."""
        response = await client.post("/rules/lnk-nothere1/simulate")
        assert response.status_code == 404
