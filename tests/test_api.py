"""Tests for the HTTP API."""

from decimal import Decimal
from typing import AsyncGenerator
from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from paystub_engine.api.app import create_app
from paystub_engine.calculators import CompensationProfile, HoursWorked
from paystub_engine.services.collaborators import in_memory_collaborators
from paystub_engine.services.pay_stub_store import stub_id_for

PERIOD = {"period_start": "2026-03-02", "period_end": "2026-03-08", "pay_date": "2026-03-13"}


@pytest.fixture
async def client(
    test_settings, session_factory, collaborators, registry
) -> AsyncGenerator[AsyncClient, None]:
    app = create_app(
        settings=test_settings,
        session_factory=session_factory,
        collaborators=collaborators,
        registry=registry,
    )
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-User-ID": str(uuid4()), "X-User-Role": "admin"}


@pytest.fixture
def employee_id(directory):
    profile = CompensationProfile(uuid4(), "hourly", hourly_rate=Decimal("20"))
    return directory.add_employee(profile, hours=HoursWorked(regular=Decimal("45")))


async def create_period(client, headers) -> str:
    response = await client.post("/api/v1/payroll-periods", json=PERIOD, headers=headers)
    assert response.status_code == 201
    return response.json()["payroll_period_id"]


class TestHealth:
    """Tests for health endpoints."""

    async def test_health(self, client):
        """Health reports the database state."""
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["database"] == "healthy"
        assert response.json()["payroll_config"] == "configured"
        assert response.json()["engine_version"] == "1.0.0"

    async def test_probes(self, client):
        """Ready with an active payroll configuration; always alive."""
        assert (await client.get("/ready")).json() == {"status": "ready"}
        assert (await client.get("/live")).json() == {"status": "alive"}

    async def test_not_ready_without_config(
        self, test_settings, session_factory, directory, registry
    ):
        """Readiness fails while the Settings Provider has no configuration."""
        app = create_app(
            settings=test_settings,
            session_factory=session_factory,
            collaborators=in_memory_collaborators(directory, None),
            registry=registry,
        )
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            ready = await ac.get("/ready")
            health = await ac.get("/health")

        assert ready.status_code == 503
        assert ready.json() == {"status": "not_ready", "payroll_config": "unavailable"}
        assert health.status_code == 200
        assert health.json()["payroll_config"] == "unavailable"


class TestAuthHeaders:
    """Tests for caller identity headers."""

    async def test_missing_user(self, client):
        """Requests without X-User-ID are rejected."""
        response = await client.get("/api/v1/payroll-periods")

        assert response.status_code == 401

    async def test_malformed_user(self, client):
        """X-User-ID must be a UUID."""
        response = await client.get("/api/v1/payroll-periods", headers={"X-User-ID": "bob"})

        assert response.status_code == 400

    async def test_default_role_is_employee(self, client):
        """Without a role header the caller cannot create periods."""
        response = await client.post(
            "/api/v1/payroll-periods", json=PERIOD, headers={"X-User-ID": str(uuid4())}
        )

        assert response.status_code == 403
        assert response.json()["code"] == "ACCESS_DENIED"


class TestPayrollPeriodEndpoints:
    """Tests for period endpoints."""

    async def test_create_and_get(self, client, admin_headers):
        """A created period can be fetched and listed."""
        period_id = await create_period(client, admin_headers)

        fetched = await client.get(f"/api/v1/payroll-periods/{period_id}", headers=admin_headers)
        listed = await client.get("/api/v1/payroll-periods", headers=admin_headers)

        assert fetched.status_code == 200
        assert fetched.json()["status"] == "draft"
        assert fetched.json()["period_start"] == "2026-03-02"
        assert listed.json()["total"] == 1
        assert listed.json()["items"][0]["payroll_period_id"] == period_id

    async def test_invalid_dates(self, client, admin_headers):
        """Inconsistent dates map to 422."""
        body = dict(PERIOD, pay_date="2026-03-01")

        response = await client.post("/api/v1/payroll-periods", json=body, headers=admin_headers)

        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_INPUT"

    async def test_unknown_period(self, client, admin_headers):
        """Unknown periods map to 404."""
        response = await client.get(f"/api/v1/payroll-periods/{uuid4()}", headers=admin_headers)

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    async def test_patch_draft(self, client, admin_headers):
        """Only the fields sent are changed."""
        period_id = await create_period(client, admin_headers)

        response = await client.patch(
            f"/api/v1/payroll-periods/{period_id}",
            json={"department": "Sales"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["department"] == "Sales"
        assert response.json()["pay_date"] == "2026-03-13"

    async def test_process_approve_lifecycle(self, client, admin_headers, employee_id):
        """Process, inspect and approve a period over HTTP."""
        period_id = await create_period(client, admin_headers)
        base = f"/api/v1/payroll-periods/{period_id}"

        processed = await client.post(f"{base}/process", headers=admin_headers)
        totals = await client.get(f"{base}/totals", headers=admin_headers)
        stub = await client.get(f"{base}/paystubs/{employee_id}", headers=admin_headers)
        approved = await client.post(f"{base}/approve", headers=admin_headers)

        assert processed.status_code == 200
        report = processed.json()
        assert report["status"] == "processing"
        assert report["succeeded"] == [str(employee_id)]
        assert report["written"] == 1
        assert Decimal(report["totals"]["total_net_pay"]) == Decimal("827.32")

        assert Decimal(totals.json()["total_gross_pay"]) == Decimal("950.00")
        assert totals.json()["employee_count"] == 1

        assert stub.status_code == 200
        assert Decimal(stub.json()["net_pay"]) == Decimal("827.32")
        assert stub.json()["taxes"]["total"] == "72.68"

        assert approved.status_code == 200
        assert approved.json()["status"] == "completed"

    async def test_targeted_process(self, client, admin_headers, employee_id):
        """A process body can name the employees to re-run."""
        period_id = await create_period(client, admin_headers)

        response = await client.post(
            f"/api/v1/payroll-periods/{period_id}/process",
            json={"employee_ids": [str(employee_id)]},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["succeeded"] == [str(employee_id)]

    async def test_terminal_period_conflict(self, client, admin_headers, employee_id):
        """Mutating a completed period maps to 409."""
        period_id = await create_period(client, admin_headers)
        base = f"/api/v1/payroll-periods/{period_id}"
        await client.post(f"{base}/process", headers=admin_headers)
        await client.post(f"{base}/approve", headers=admin_headers)

        reprocess = await client.post(f"{base}/process", headers=admin_headers)
        cancel = await client.post(f"{base}/cancel", headers=admin_headers)

        assert reprocess.status_code == 409
        assert reprocess.json()["code"] == "INVALID_TRANSITION"
        assert cancel.status_code == 409

    async def test_empty_roster_conflict(self, client, admin_headers):
        """Processing with nobody on the roster maps to 409."""
        period_id = await create_period(client, admin_headers)

        response = await client.post(
            f"/api/v1/payroll-periods/{period_id}/process", headers=admin_headers
        )

        assert response.status_code == 409

    async def test_cancel(self, client, admin_headers):
        """Drafts can be cancelled."""
        period_id = await create_period(client, admin_headers)

        response = await client.post(
            f"/api/v1/payroll-periods/{period_id}/cancel", headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    async def test_current_period_without_pay_day(self, client, admin_headers):
        """Without a configured pay day the caller must create the period."""
        current = await client.get("/api/v1/payroll-periods/current", headers=admin_headers)
        next_pay = await client.get("/api/v1/payroll-periods/next-pay-date", headers=admin_headers)

        assert current.status_code == 200
        assert current.json() == {"period": None, "requires_manual_creation": True}
        assert next_pay.json() == {"next_pay_date": None}


class TestPayStubEndpoints:
    """Tests for pay stub endpoints."""

    async def test_stub_and_calculation(self, client, admin_headers, employee_id):
        """Stubs and their calculation detail are readable by ID."""
        period_id = await create_period(client, admin_headers)
        await client.post(f"/api/v1/payroll-periods/{period_id}/process", headers=admin_headers)
        paystub_id = stub_id_for(UUID(period_id), employee_id)

        listed = await client.get(
            "/api/v1/paystubs", params={"payroll_period_id": period_id}, headers=admin_headers
        )
        stub = await client.get(f"/api/v1/paystubs/{paystub_id}", headers=admin_headers)
        calculation = await client.get(
            f"/api/v1/paystubs/{paystub_id}/calculation", headers=admin_headers
        )

        assert listed.json()["total"] == 1
        assert stub.json()["employee_id"] == str(employee_id)
        assert calculation.status_code == 200
        assert calculation.json()["calculation_id"] == stub.json()["calculation_id"]
        assert calculation.json()["hours"]["overtime"] == "5.00"

    async def test_employee_self_service(self, client, admin_headers, employee_id, directory):
        """Employees read their own stubs only."""
        other = directory.add_employee(
            CompensationProfile(uuid4(), "hourly", hourly_rate=Decimal("30")),
            hours=HoursWorked(regular=Decimal("40")),
        )
        period_id = await create_period(client, admin_headers)
        await client.post(f"/api/v1/payroll-periods/{period_id}/process", headers=admin_headers)
        me = {"X-User-ID": str(employee_id), "X-User-Role": "employee"}

        own = await client.get("/api/v1/paystubs", headers=me)
        theirs = await client.get(
            f"/api/v1/payroll-periods/{period_id}/paystubs/{other}", headers=me
        )

        assert own.json()["total"] == 1
        assert own.json()["items"][0]["employee_id"] == str(employee_id)
        assert theirs.status_code == 403

    async def test_unknown_stub(self, client, admin_headers):
        """Unknown stubs map to 404."""
        response = await client.get(f"/api/v1/paystubs/{uuid4()}", headers=admin_headers)

        assert response.status_code == 404

