from __future__ import annotations

from datetime import date, timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from equipcare.apps.api.main import create_app
from equipcare.services.compliance import utc_today
from equipcare.tests.utils.factories import seed_equipment, seed_site, seed_ticket


def _headers(role: str, **extra: str) -> dict[str, str]:
    headers = {"X-Role": role, "X-Actor-Id": f"actor-{role}"}
    for key, value in extra.items():
        headers[f"X-{key.replace('_', '-').title()}"] = value
    return headers


@pytest.fixture
async def client():
    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as api:
        yield api


@pytest.mark.asyncio
async def test_health_envelope(client) -> None:
    response = await client.get("/v1/health", headers={"X-Request-Id": "req-123"})
    assert response.status_code == 200
    body = response.json()
    assert body["data"] == {"status": "ok"}
    assert body["meta"] == {"request_id": "req-123", "api_version": "v1"}
    assert response.headers["X-Request-Id"] == "req-123"


@pytest.mark.asyncio
async def test_missing_and_unknown_roles(client) -> None:
    missing = await client.get("/v1/tickets")
    assert missing.status_code == 401
    assert missing.json()["error"]["code"] == "AUTH_UNAUTHORIZED"

    unknown = await client.get("/v1/tickets", headers={"X-Role": "auditor"})
    assert unknown.status_code == 400
    assert unknown.json()["error"]["code"] == "AUTH_INVALID_ROLE"

    forbidden = await client.post("/v1/admin/jobs/compliance-refresh", headers=_headers("vendor"))
    assert forbidden.status_code == 403
    assert forbidden.json()["error"]["code"] == "AUTH_FORBIDDEN"


@pytest.mark.asyncio
async def test_ticket_lifecycle_over_http(client) -> None:
    site = await seed_site(interval_days=30)
    equipment_id = await seed_equipment(site, next_maintenance_date=date(2020, 1, 1))
    vendor = _headers("vendor", vendor_id=site.vendor_id)

    created = await client.post(
        "/v1/tickets",
        json={"issue_description": "Occlusion alarm fires with no blockage", "equipment_id": equipment_id},
        headers=vendor,
    )
    assert created.status_code == 201
    ticket = created.json()["data"]
    assert ticket["status"] == "open"
    assert ticket["vendor_id"] == site.vendor_id

    early_close = await client.post(f"/v1/tickets/{ticket['id']}/close", headers=vendor)
    assert early_close.status_code == 409
    error = early_close.json()["error"]
    assert error["code"] == "INVALID_STATE_TRANSITION"
    assert error["details"]["current_status"] == "open"

    bad = await client.post(
        f"/v1/tickets/{ticket['id']}/resolve",
        json={"resolution_description": "Replaced the pressure sensor", "actual_hours": 0},
        headers=vendor,
    )
    assert bad.status_code == 422
    assert bad.json()["error"]["code"] == "VALIDATION_ERROR"
    assert bad.json()["error"]["details"]["field"] == "actual_hours"

    resolved = await client.post(
        f"/v1/tickets/{ticket['id']}/resolve",
        json={"resolution_description": "Replaced the pressure sensor", "actual_hours": 1.5},
        headers=vendor,
    )
    assert resolved.status_code == 200
    assert resolved.json()["data"]["status"] == "resolved"

    compliance = await client.get(f"/v1/equipment/{equipment_id}/compliance", headers=vendor)
    data = compliance.json()["data"]
    today = utc_today()
    assert data["compliance_status"] == "compliant"
    assert data["in_reminder_window"] is True
    assert data["last_maintenance_date"] == today.isoformat()
    assert data["next_maintenance_date"] == (today + timedelta(days=30)).isoformat()

    closed = await client.post(f"/v1/tickets/{ticket['id']}/close", headers=vendor)
    assert closed.json()["data"]["status"] == "closed"

    client_view = await client.get("/v1/tickets", headers=_headers("client", client_id=site.client_id))
    assert [item["id"] for item in client_view.json()["data"]["items"]] == [ticket["id"]]
    other_vendor = await client.get("/v1/tickets", headers=_headers("vendor", vendor_id="someone-else"))
    assert other_vendor.json()["data"]["items"] == []


@pytest.mark.asyncio
async def test_clients_cannot_resolve(client) -> None:
    site = await seed_site()
    ticket_id = await seed_ticket(site, equipment_id=None)
    response = await client.post(
        f"/v1/tickets/{ticket_id}/resolve",
        json={"resolution_description": "Replaced the pressure sensor", "actual_hours": 1},
        headers=_headers("client", client_id=site.client_id),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unknown_ticket_is_404(client) -> None:
    response = await client.post("/v1/tickets/nope/close", headers=_headers("admin"))
    assert response.status_code == 404
    assert response.json()["error"]["details"] == {"entity_type": "maintenance_ticket", "entity_id": "nope"}


@pytest.mark.asyncio
async def test_deletion_check_and_blocked_delete(client) -> None:
    site = await seed_site()
    await seed_equipment(site)
    admin = _headers("admin")

    check = await client.get(f"/v1/vendors/{site.vendor_id}/deletion-check", headers=admin)
    assert check.status_code == 200
    report = check.json()["data"]
    assert report["can_delete"] is False
    assert report["counts"]["equipment_count"] == 1

    blocked = await client.delete(f"/v1/vendors/{site.vendor_id}", headers=admin)
    assert blocked.status_code == 409
    error = blocked.json()["error"]
    assert error["code"] == "DELETE_BLOCKED"
    assert error["details"]["counts"]["clients_count"] == 1
    assert error["message"].startswith("Cannot delete vendor")

    vendor_attempt = await client.delete(f"/v1/vendors/{site.vendor_id}", headers=_headers("vendor"))
    assert vendor_attempt.status_code == 403


@pytest.mark.asyncio
async def test_admin_triggers_reminder_job_and_lists_records(client) -> None:
    site = await seed_site()
    await seed_equipment(site, next_maintenance_date=utc_today() + timedelta(days=3))
    admin = _headers("admin")

    first = await client.post("/v1/admin/jobs/maintenance-reminders", headers=admin)
    assert first.status_code == 200
    assert first.json()["data"]["succeeded"] == 1
    second = await client.post("/v1/admin/jobs/maintenance-reminders", headers=admin)
    assert second.json()["data"]["skipped"] == 1

    records = await client.get("/v1/admin/jobs/reminder-records", headers=admin)
    [record] = records.json()["data"]["items"]
    assert record["status"] == "dispatched"
    assert record["kind"] == "maintenance_due"

    metrics = await client.get("/v1/ops/metrics", headers=admin)
    assert metrics.json()["data"]["counters"]["reminders_maintenance_due_succeeded_total"] == 1


@pytest.mark.asyncio
async def test_notifications_inbox_and_routes(client) -> None:
    site = await seed_site()
    await seed_equipment(site, next_maintenance_date=utc_today() + timedelta(days=3))
    await client.post("/v1/admin/jobs/maintenance-reminders", headers=_headers("admin"))

    me = {"X-Role": "client", "X-Actor-Id": site.client_user_id}
    inbox = await client.get("/v1/notifications", headers=me)
    data = inbox.json()["data"]
    assert data["unread_count"] == 1
    [item] = data["items"]
    assert item["category"] == "maintenance"
    assert item["action_url"] == "/clients/analytics"

    read = await client.post(f"/v1/notifications/{item['id']}/read", headers=me)
    assert read.status_code == 200
    after = await client.get("/v1/notifications", headers=me)
    assert after.json()["data"]["unread_count"] == 0

    # Another user cannot mark someone else's notification.
    stranger = await client.post(
        f"/v1/notifications/{item['id']}/read",
        headers={"X-Role": "vendor", "X-Actor-Id": site.vendor_user_id},
    )
    assert stranger.status_code == 404

    resolved = await client.get(
        "/v1/notifications/route",
        params={"category": "service_request", "role": "client"},
        headers=me,
    )
    assert resolved.json()["data"]["path"] == "/service-requests"
    fallback = await client.get("/v1/notifications/route", params={"category": "mystery"}, headers=me)
    assert fallback.json()["data"]["path"] == "/dashboard"


@pytest.mark.asyncio
async def test_vendor_cannot_touch_another_vendors_records(client) -> None:
    site = await seed_site()
    equipment_id = await seed_equipment(site)
    ticket_id = await seed_ticket(site, equipment_id=equipment_id)
    outsider = _headers("vendor", vendor_id="vendor-elsewhere")

    resolve = await client.post(
        f"/v1/tickets/{ticket_id}/resolve",
        json={"resolution_description": "Replaced the pressure sensor", "actual_hours": 1},
        headers=outsider,
    )
    assert resolve.status_code == 403
    assert resolve.json()["error"]["code"] == "AUTH_FORBIDDEN"
    close = await client.post(f"/v1/tickets/{ticket_id}/close", headers=outsider)
    assert close.status_code == 403

    check = await client.get(f"/v1/clients/{site.client_id}/deletion-check", headers=outsider)
    assert check.status_code == 403
    delete = await client.delete(f"/v1/clients/{site.client_id}", headers=outsider)
    assert delete.status_code == 403

    owner = _headers("vendor", vendor_id=site.vendor_id)
    own_check = await client.get(f"/v1/clients/{site.client_id}/deletion-check", headers=owner)
    assert own_check.status_code == 200
    assert own_check.json()["data"]["can_delete"] is False
