"""
Route-level tests for the outfitter CRM surface: staff, guides, dashboard,
settings, documents, payments and the audit trail they write.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from guidebook.models import AuditLog


def _future(days: int) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).strftime("%Y-%m-%dT%H:%M:%SZ")


# ────────────────────────────────────────────────────────────────
# Staff
# ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_list_users_by_role(client, headers):
    response = await client.get("/api/users?role=guide", headers=headers["admin_a"])

    assert response.status_code == 200
    assert sorted(u["id"] for u in response.json()) == ["guide2_a", "guide_a"]


@pytest.mark.asyncio
async def test_list_users_requires_admin(client, headers):
    response = await client.get("/api/users", headers=headers["guide_a"])

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_duplicate_staff_email_conflicts(client, headers):
    response = await client.post(
        "/api/users", json={"email": "guide_b@example.test"}, headers=headers["admin_a"]
    )

    assert response.status_code == 409
    assert response.json()["code"] == "CONFLICT"


# ────────────────────────────────────────────────────────────────
# Guide assignments and guide views
# ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_experience_guides_flow_to_bookings(client, headers, make_experience, make_customer):
    experience = await make_experience(headers["admin_a"])
    customer = await make_customer(headers["admin_a"])

    assigned = await client.post(
        f"/api/experiences/{experience['id']}/guides",
        json={"guide_id": "guide_a", "is_primary": True},
        headers=headers["admin_a"],
    )
    assert assigned.status_code == 201

    duplicate = await client.post(
        f"/api/experiences/{experience['id']}/guides",
        json={"guide_id": "guide_a"},
        headers=headers["admin_a"],
    )
    assert duplicate.status_code == 409

    booking = await client.post(
        "/api/bookings",
        json={
            "experience_id": experience["id"],
            "customer_id": customer["id"],
            "start_date": _future(10),
            "end_date": _future(12),
            "status": "confirmed",
            "group_size": 2,
        },
        headers=headers["admin_a"],
    )
    assert booking.status_code == 201
    assert booking.json()["total_amount"] in ("3000.00", "3000")

    guides = await client.get(f"/api/bookings/{booking.json()['id']}/guides", headers=headers["admin_a"])
    assert [g["guide_id"] for g in guides.json()] == ["guide_a"]

    removed = await client.delete(
        f"/api/experiences/{experience['id']}/guides/{assigned.json()['id']}", headers=headers["admin_a"]
    )
    assert removed.status_code == 204

    remaining = await client.get(f"/api/experiences/{experience['id']}/guides", headers=headers["admin_a"])
    assert remaining.json() == []


@pytest.mark.asyncio
async def test_booking_guide_assignment(client, headers, make_booking):
    booking = await make_booking(headers["admin_a"])

    added = await client.post(
        f"/api/bookings/{booking['id']}/guides", json={"guide_id": "guide2_a"}, headers=headers["admin_a"]
    )
    foreign = await client.post(
        f"/api/bookings/{booking['id']}/guides", json={"guide_id": "guide_b"}, headers=headers["admin_a"]
    )
    assert added.status_code == 201
    assert foreign.status_code == 400

    removed = await client.delete(f"/api/bookings/{booking['id']}/guides/guide2_a", headers=headers["admin_a"])
    again = await client.delete(f"/api/bookings/{booking['id']}/guides/guide2_a", headers=headers["admin_a"])
    assert removed.status_code == 204
    assert again.status_code == 404


@pytest.mark.asyncio
async def test_guide_views_own_records(client, headers, make_experience, make_customer):
    experience = await make_experience(headers["admin_a"])
    customer = await make_customer(headers["admin_a"])
    await client.post(
        f"/api/experiences/{experience['id']}/guides", json={"guide_id": "guide_a"}, headers=headers["admin_a"]
    )
    await client.post(
        "/api/bookings",
        json={
            "experience_id": experience["id"],
            "customer_id": customer["id"],
            "start_date": _future(5),
            "end_date": _future(6),
            "status": "confirmed",
        },
        headers=headers["admin_a"],
    )

    experiences = await client.get("/api/guides/guide_a/experiences", headers=headers["guide_a"])
    bookings = await client.get("/api/guides/guide_a/bookings", headers=headers["guide_a"])
    stats = await client.get("/api/guides/guide_a/stats", headers=headers["guide_a"])

    assert [e["id"] for e in experiences.json()] == [experience["id"]]
    assert len(bookings.json()) == 1
    assert stats.json() == {"assigned_experiences": 1, "upcoming_bookings": 1, "completed_trips": 0}


@pytest.mark.asyncio
async def test_guide_cannot_view_other_guides(client, headers):
    colleague = await client.get("/api/guides/guide2_a/stats", headers=headers["guide_a"])
    foreign = await client.get("/api/guides/guide_b/stats", headers=headers["guide_a"])
    missing = await client.get("/api/guides/nobody/stats", headers=headers["guide_a"])
    as_admin = await client.get("/api/guides/guide2_a/stats", headers=headers["admin_a"])

    assert colleague.status_code == 403
    assert foreign.status_code == missing.status_code == 404
    assert foreign.json() == missing.json()
    assert as_admin.status_code == 200


# ────────────────────────────────────────────────────────────────
# Dashboard
# ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_dashboard_counts_only_own_tenant(client, headers, make_booking):
    booking_a = await make_booking(headers["admin_a"], start=_future(3), end=_future(4), status="confirmed")
    await make_booking(headers["admin_b"], start=_future(3), end=_future(4), status="confirmed")
    await make_booking(headers["admin_b"], start=_future(8), end=_future(9), status="confirmed")

    payment = await client.post(
        "/api/payments",
        json={"booking_id": booking_a["id"], "amount": "500.00", "status": "completed"},
        headers=headers["admin_a"],
    )
    assert payment.status_code == 201

    stats = await client.get("/api/dashboard/stats", headers=headers["admin_a"])

    assert stats.status_code == 200
    assert stats.json() == {
        "upcoming_bookings": 1,
        "monthly_revenue": 500.0,
        "active_customers": 1,
        "completed_trips": 0,
    }

    stats_b = await client.get("/api/dashboard/stats", headers=headers["admin_b"])
    assert stats_b.json()["upcoming_bookings"] == 2
    assert stats_b.json()["monthly_revenue"] == 0.0


@pytest.mark.asyncio
async def test_upcoming_bookings(client, headers, make_booking):
    later = await make_booking(headers["admin_a"], start=_future(20), end=_future(21))
    sooner = await make_booking(headers["admin_a"], start=_future(2), end=_future(3))
    await make_booking(headers["admin_b"], start=_future(1), end=_future(2))

    response = await client.get("/api/dashboard/upcoming-bookings?limit=5", headers=headers["guide_a"])

    assert response.status_code == 200
    rows = response.json()
    assert [r["id"] for r in rows] == [sooner["id"], later["id"]]
    assert rows[0]["customer_last_name"] == "Thompson"
    assert rows[0]["experience_name"] == "3-Day Elk Hunt"


@pytest.mark.asyncio
async def test_upcoming_bookings_limit_is_bounded(client, headers):
    response = await client.get("/api/dashboard/upcoming-bookings?limit=500", headers=headers["admin_a"])

    assert response.status_code == 400


# ────────────────────────────────────────────────────────────────
# Settings
# ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_settings_are_per_tenant(client, headers, tenants):
    updated = await client.put(
        "/api/settings",
        json={"company_phone": "555-0199", "outfitter_id": tenants["b"].id},
        headers=headers["admin_a"],
    )
    assert updated.status_code == 200
    assert updated.json()["outfitter_id"] == tenants["a"].id
    assert updated.json()["company_phone"] == "555-0199"

    settings_b = await client.get("/api/settings", headers=headers["admin_b"])
    assert settings_b.json()["company_name"] == "Blue Water Guides"
    assert settings_b.json()["company_phone"] is None


@pytest.mark.asyncio
async def test_settings_update_requires_admin(client, headers):
    read = await client.get("/api/settings", headers=headers["guide_a"])
    write = await client.put("/api/settings", json={"company_name": "x"}, headers=headers["guide_a"])

    assert read.status_code == 200
    assert write.status_code == 403


# ────────────────────────────────────────────────────────────────
# Documents and payments
# ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_document_links_must_be_in_tenant(client, headers, make_customer):
    own = await make_customer(headers["admin_a"])
    foreign = await make_customer(headers["admin_b"])
    body = {"name": "License", "path": "docs/license.pdf", "type": "application/pdf", "size": 2048}

    ok = await client.post("/api/documents", json={**body, "customer_id": own["id"]}, headers=headers["guide_a"])
    bad = await client.post(
        "/api/documents", json={**body, "customer_id": foreign["id"]}, headers=headers["guide_a"]
    )
    assert ok.status_code == 201
    assert bad.status_code == 400

    relink = await client.patch(
        f"/api/documents/{ok.json()['id']}", json={"customer_id": foreign["id"]}, headers=headers["guide_a"]
    )
    assert relink.status_code == 400

    listed = await client.get(f"/api/documents?customer_id={own['id']}", headers=headers["guide_a"])
    assert [d["id"] for d in listed.json()] == [ok.json()["id"]]


@pytest.mark.asyncio
async def test_payment_for_foreign_booking_is_rejected(client, headers, make_booking):
    foreign_booking = await make_booking(headers["admin_b"])

    response = await client.post(
        "/api/payments", json={"booking_id": foreign_booking["id"], "amount": "10.00"}, headers=headers["admin_a"]
    )

    assert response.status_code == 400
    assert (await client.get("/api/payments", headers=headers["admin_a"])).json() == []


@pytest.mark.asyncio
async def test_guides_cannot_record_payments(client, headers, make_booking):
    booking = await make_booking(headers["admin_a"])

    response = await client.post(
        "/api/payments", json={"booking_id": booking["id"], "amount": "10.00"}, headers=headers["guide_a"]
    )

    assert response.status_code == 403


# ────────────────────────────────────────────────────────────────
# Audit trail
# ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_mutations_write_audit_rows(client, headers, make_customer, async_session, tenants):
    customer = await make_customer(headers["admin_a"])
    await client.patch(f"/api/customers/{customer['id']}", json={"notes": "x"}, headers=headers["admin_a"])
    await client.delete(f"/api/customers/{customer['id']}", headers=headers["admin_a"])

    rows = (
        await async_session.scalars(
            select(AuditLog).where(AuditLog.target_type == "customer").order_by(AuditLog.id)
        )
    ).all()

    assert [r.action for r in rows] == ["customer.created", "customer.updated", "customer.deleted"]
    assert {r.outfitter_id for r in rows} == {tenants["a"].id}
    assert {r.actor_user_id for r in rows} == {"admin_a"}
    assert {r.target_id for r in rows} == {str(customer["id"])}


@pytest.mark.asyncio
async def test_failed_mutation_writes_no_audit_row(client, headers, make_customer, async_session):
    foreign = await make_customer(headers["admin_b"])

    response = await client.delete(f"/api/customers/{foreign['id']}", headers=headers["admin_a"])
    assert response.status_code == 404

    rows = (
        await async_session.scalars(select(AuditLog).where(AuditLog.action == "customer.deleted"))
    ).all()
    assert rows == []


# ────────────────────────────────────────────────────────────────
# Partial updates and referential integrity
# ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
@pytest.mark.parametrize(
    "resource, field",
    [
        ("customers", "first_name"),
        ("customers", "email"),
        ("locations", "name"),
        ("locations", "is_active"),
        ("experiences", "price"),
        ("experiences", "description"),
        ("bookings", "experience_id"),
        ("bookings", "customer_id"),
        ("bookings", "start_date"),
        ("bookings", "status"),
    ],
)
async def test_patch_cannot_clear_required_field(client, headers, make_booking, make_location, resource, field):
    booking = await make_booking(headers["admin_a"])
    location = await make_location(headers["admin_a"])
    ids = {
        "customers": booking["customer_id"],
        "experiences": booking["experience_id"],
        "bookings": booking["id"],
        "locations": location["id"],
    }
    url = f"/api/{resource}/{ids[resource]}"

    response = await client.patch(url, json={field: None}, headers=headers["admin_a"])

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"
    assert field in response.json()["message"]

    current = await client.get(url, headers=headers["admin_a"])
    assert current.json()[field] is not None


@pytest.mark.asyncio
async def test_patch_can_clear_optional_field(client, headers, make_customer):
    customer = await make_customer(headers["admin_a"], notes="bring waders")

    response = await client.patch(
        f"/api/customers/{customer['id']}", json={"notes": None}, headers=headers["admin_a"]
    )

    assert response.status_code == 200
    assert response.json()["notes"] is None


@pytest.mark.asyncio
async def test_document_payment_and_settings_reject_cleared_fields(client, headers, make_booking):
    booking = await make_booking(headers["admin_a"])
    document = await client.post(
        "/api/documents",
        json={"name": "Waiver", "path": "docs/waiver.pdf", "type": "application/pdf", "size": 10},
        headers=headers["admin_a"],
    )
    payment = await client.post(
        "/api/payments", json={"booking_id": booking["id"], "amount": "100.00"}, headers=headers["admin_a"]
    )

    cleared_name = await client.patch(
        f"/api/documents/{document.json()['id']}", json={"name": None}, headers=headers["admin_a"]
    )
    cleared_status = await client.patch(
        f"/api/payments/{payment.json()['id']}", json={"status": None}, headers=headers["admin_a"]
    )
    cleared_company = await client.put("/api/settings", json={"company_name": None}, headers=headers["admin_a"])

    assert cleared_name.status_code == 400
    assert cleared_status.status_code == 400
    assert cleared_company.status_code == 400

    settings = await client.get("/api/settings", headers=headers["admin_a"])
    assert settings.json()["company_name"] == "Ridge Line Outfitters"


@pytest.mark.asyncio
async def test_booking_dates_stay_ordered_on_partial_update(client, headers, make_booking):
    booking = await make_booking(
        headers["admin_a"], start="2030-10-01T08:00:00Z", end="2030-10-03T17:00:00Z"
    )
    url = f"/api/bookings/{booking['id']}"

    ends_early = await client.patch(url, json={"end_date": "2020-01-01T00:00:00Z"}, headers=headers["admin_a"])
    starts_late = await client.patch(url, json={"start_date": "2030-10-05T08:00:00Z"}, headers=headers["admin_a"])
    assert ends_early.status_code == 400
    assert starts_late.status_code == 400
    assert ends_early.json()["code"] == "VALIDATION_ERROR"

    unchanged = await client.get(url, headers=headers["admin_a"])
    assert unchanged.json()["start_date"] == booking["start_date"]
    assert unchanged.json()["end_date"] == booking["end_date"]

    moved = await client.patch(
        url,
        json={"start_date": "2030-10-05T08:00:00Z", "end_date": "2030-10-06T17:00:00Z"},
        headers=headers["admin_a"],
    )
    extended = await client.patch(url, json={"end_date": "2030-10-08T17:00:00Z"}, headers=headers["admin_a"])
    assert moved.status_code == 200
    assert extended.status_code == 200


@pytest.mark.asyncio
async def test_delete_referenced_customer_conflicts(client, headers, make_booking, async_session):
    booking = await make_booking(headers["admin_a"])

    response = await client.delete(f"/api/customers/{booking['customer_id']}", headers=headers["admin_a"])

    assert response.status_code == 409
    assert response.json()["code"] == "CONFLICT"

    customer = await client.get(f"/api/customers/{booking['customer_id']}", headers=headers["admin_a"])
    still_booked = await client.get(f"/api/bookings/{booking['id']}", headers=headers["admin_a"])
    assert customer.status_code == 200
    assert still_booked.json()["customer_id"] == booking["customer_id"]

    rows = (
        await async_session.scalars(select(AuditLog).where(AuditLog.action == "customer.deleted"))
    ).all()
    assert rows == []


@pytest.mark.asyncio
async def test_delete_experience_with_bookings_conflicts(client, headers, make_booking):
    booking = await make_booking(headers["admin_a"])

    response = await client.delete(f"/api/experiences/{booking['experience_id']}", headers=headers["admin_a"])

    assert response.status_code == 409
    experience = await client.get(f"/api/experiences/{booking['experience_id']}", headers=headers["admin_a"])
    assert experience.status_code == 200
