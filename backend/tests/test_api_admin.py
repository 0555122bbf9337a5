from __future__ import annotations

from datetime import datetime, timedelta, timezone

from laptop_checkout.models import Checkout, NotificationLog

API = "/api/v1"


def test_health_and_root(client) -> None:
    assert client.get(f"{API}/system/health").json()["status"] == "ok"
    assert client.get("/").json()["docs"] == "/docs"


def test_admin_registers_laptop_with_qr_code(client, make_user, auth_headers) -> None:
    admin = make_user(role="admin")

    response = client.post(
        f"{API}/laptops",
        json={"serialNumber": "SN-1", "make": "Lenovo", "model": "ThinkPad T14"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 201
    laptop = response.json()["data"]
    assert laptop["uniqueId"].startswith("LAP-")
    assert laptop["status"] == "available"
    assert laptop["qrCodeUrl"].startswith("data:image/png;base64,")

    png = client.get(f"{API}/laptops/{laptop['id']}/qr-code", headers=auth_headers(admin))
    assert png.status_code == 200
    assert png.headers["content-type"] == "image/png"
    assert png.content.startswith(b"\x89PNG")
    assert f'{laptop["uniqueId"]}-qr.png' in png.headers["content-disposition"]

    by_unique = client.get(f"{API}/laptops/unique/{laptop['uniqueId']}", headers=auth_headers(admin))
    assert by_unique.json()["data"]["id"] == laptop["id"]


def test_interviewer_cannot_manage_laptops(client, make_user, make_laptop, auth_headers) -> None:
    interviewer = make_user()
    laptop = make_laptop()

    created = client.post(
        f"{API}/laptops",
        json={"serialNumber": "SN-1", "make": "Lenovo", "model": "T14"},
        headers=auth_headers(interviewer),
    )
    assert created.status_code == 403
    assert created.json()["error"]["code"] == "PERM_ADMIN_REQUIRED"

    deleted = client.delete(f"{API}/laptops/{laptop.id}", headers=auth_headers(interviewer))
    assert deleted.status_code == 403

    listed = client.get(f"{API}/laptops", headers=auth_headers(interviewer))
    assert listed.status_code == 200


def test_laptop_update_list_and_soft_delete(client, make_user, make_laptop, auth_headers) -> None:
    admin = make_user(role="admin")
    laptop = make_laptop(unique_id="LAP-0001")
    make_laptop(unique_id="LAP-0002", status="retired")

    updated = client.patch(
        f"{API}/laptops/{laptop.id}",
        json={"model": "Latitude 7440", "uniqueId": "LAP-HACKED"},
        headers=auth_headers(admin),
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["model"] == "Latitude 7440"
    assert updated.json()["data"]["uniqueId"] == "LAP-0001"

    visible = client.get(f"{API}/laptops", headers=auth_headers(admin)).json()["data"]
    assert [l["uniqueId"] for l in visible] == ["LAP-0001"]
    everything = client.get(f"{API}/laptops", params={"includeRetired": "true"}, headers=auth_headers(admin)).json()
    assert {l["uniqueId"] for l in everything["data"]} == {"LAP-0001", "LAP-0002"}

    assert client.delete(f"{API}/laptops/{laptop.id}", headers=auth_headers(admin)).status_code == 200
    gone = client.get(f"{API}/laptops/{laptop.id}", headers=auth_headers(admin))
    assert gone.status_code == 404
    assert gone.json()["error"]["code"] == "NOT_FOUND_LAPTOP"


def test_laptop_history(client, make_user, make_laptop, auth_headers) -> None:
    admin = make_user(role="admin")
    user = make_user()
    laptop = make_laptop(unique_id="LAP-0001")
    client.post(
        f"{API}/checkouts/checkout",
        json={"laptopUniqueId": "LAP-0001", "userId": str(user.id)},
        headers=auth_headers(user),
    )

    history = client.get(f"{API}/laptops/{laptop.id}/history", headers=auth_headers(admin)).json()["data"]

    assert history["laptop"]["uniqueId"] == "LAP-0001"
    assert [c["userId"] for c in history["checkouts"]] == [str(user.id)]


def test_user_admin_crud(client, make_user, auth_headers) -> None:
    admin = make_user(role="admin")

    created = client.post(
        f"{API}/users",
        json={"email": "new@example.com", "password": "password123", "name": "New Person", "groupName": "Field"},
        headers=auth_headers(admin),
    )
    assert created.status_code == 201
    user = created.json()["data"]
    assert user["role"] == "interviewer"
    assert user["groupName"] == "Field"
    assert "passwordHash" not in user

    duplicate = client.post(
        f"{API}/users",
        json={"email": "new@example.com", "password": "password123", "name": "Again"},
        headers=auth_headers(admin),
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["error"]["code"] == "BIZ_EMAIL_ALREADY_EXISTS"

    weak = client.post(
        f"{API}/users",
        json={"email": "weak@example.com", "password": "short", "name": "Weak"},
        headers=auth_headers(admin),
    )
    assert weak.status_code == 400

    patched = client.patch(f"{API}/users/{user['id']}", json={"team": "East"}, headers=auth_headers(admin))
    assert patched.json()["data"]["team"] == "East"

    assert client.delete(f"{API}/users/{user['id']}", headers=auth_headers(admin)).status_code == 200
    assert client.get(f"{API}/users/{user['id']}", headers=auth_headers(admin)).status_code == 404


def test_self_profile_update(client, make_user, auth_headers) -> None:
    user = make_user(name="Old Name")

    response = client.patch(f"{API}/users/me", json={"name": "New Name"}, headers=auth_headers(user))

    assert response.status_code == 200
    assert response.json()["data"]["name"] == "New Name"
    assert client.get(f"{API}/users", headers=auth_headers(user)).status_code == 403


def test_dashboard_summary_and_lists(client, session_factory, make_user, make_laptop, auth_headers) -> None:
    admin = make_user(role="admin")
    holder = make_user()
    late = make_user()
    make_laptop(unique_id="LAP-0001")
    overdue_laptop = make_laptop(unique_id="LAP-0002", status="checked_out")
    make_laptop(unique_id="LAP-0003", status="maintenance")
    make_laptop(unique_id="LAP-0004")
    client.post(
        f"{API}/checkouts/checkout",
        json={"laptopUniqueId": "LAP-0004", "userId": str(holder.id)},
        headers=auth_headers(holder),
    )
    with session_factory() as db:
        db.add(Checkout(
            laptop_id=overdue_laptop.id,
            user_id=late.id,
            checked_out_at=datetime.now(timezone.utc) - timedelta(days=3),
            status="active",
        ))
        db.commit()

    summary = client.get(f"{API}/dashboard/summary", headers=auth_headers(admin)).json()["data"]
    assert summary == {
        "totalLaptops": 4,
        "availableLaptops": 1,
        "checkedOutLaptops": 2,
        "overdueLaptops": 1,
    }

    active = client.get(f"{API}/dashboard/active-checkouts", headers=auth_headers(admin)).json()["data"]
    assert len(active) == 2
    overdue = client.get(f"{API}/dashboard/overdue", headers=auth_headers(admin)).json()["data"]
    assert [c["userId"] for c in overdue] == [str(late.id)]
    assert client.get(f"{API}/dashboard/lost-found", headers=auth_headers(admin)).json()["data"] == []

    assert client.get(f"{API}/dashboard/summary", headers=auth_headers(holder)).status_code == 403


def test_notification_admin_endpoints(
    client, session_factory, queue_hooks, make_user, make_laptop, auth_headers,
) -> None:
    admin = make_user(role="admin")
    late = make_user()
    laptop = make_laptop(unique_id="LAP-0001", status="checked_out")
    with session_factory() as db:
        checkout = Checkout(
            laptop_id=laptop.id,
            user_id=late.id,
            checked_out_at=datetime.now(timezone.utc) - timedelta(days=2),
            status="active",
        )
        db.add(checkout)
        db.add(NotificationLog(
            notification_type="lost_found", recipient_email="a@example.com", subject="s", status="pending",
        ))
        db.add(NotificationLog(
            notification_type="lost_found", recipient_email="b@example.com", subject="s",
            status="failed", retry_count=1, error_message="HTTP_500",
        ))
        db.commit()
        checkout_id = checkout.id

    swept = client.post(f"{API}/notifications/check-overdue", headers=auth_headers(admin)).json()["data"]
    assert swept == {"overdueCount": 1, "queued": 1}
    assert queue_hooks.enqueue_overdue.calls == [checkout_id]

    processed = client.post(f"{API}/notifications/process-lost-found", headers=auth_headers(admin)).json()["data"]
    assert processed == {"processed": 1}

    retried = client.post(f"{API}/notifications/retry-failed", headers=auth_headers(admin)).json()["data"]
    assert retried == {"retried": 1}
    assert len(queue_hooks.enqueue_email.calls) == 2

    stats = client.get(f"{API}/notifications/stats", headers=auth_headers(admin)).json()["data"]
    assert stats == {"total": 2, "sent": 0, "failed": 0, "pending": 2, "byType": {"lost_found": 2}}

    history = client.get(
        f"{API}/notifications/history", params={"limit": 1}, headers=auth_headers(admin),
    ).json()["data"]
    assert history["total"] == 2
    assert history["limit"] == 1
    assert len(history["notifications"]) == 1

    bad_filter = client.get(
        f"{API}/notifications/history", params={"status": "exploded"}, headers=auth_headers(admin),
    )
    assert bad_filter.status_code == 400

    assert client.get(f"{API}/notifications/stats", headers=auth_headers(late)).status_code == 403
