from __future__ import annotations

from uuid import uuid4

from laptop_checkout.models import NotificationLog

API = "/api/v1"


def _checkout(client, headers, *, laptop_unique_id: str, user_id):
    return client.post(
        f"{API}/checkouts/checkout",
        json={"laptopUniqueId": laptop_unique_id, "userId": str(user_id)},
        headers=headers,
    )


def test_login_returns_tokens_and_profile(client, make_user) -> None:
    user = make_user(email="ada@example.com")

    response = client.post(f"{API}/auth/login", json={"email": "ada@example.com", "password": "password123"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["tokenType"] == "bearer"
    assert data["accessToken"]
    assert data["refreshToken"]
    assert data["user"]["id"] == str(user.id)

    me = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {data['accessToken']}"})
    assert me.json()["data"]["email"] == "ada@example.com"


def test_login_with_wrong_password(client, make_user) -> None:
    make_user(email="ada@example.com")

    response = client.post(f"{API}/auth/login", json={"email": "ada@example.com", "password": "nope-nope"})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "AUTH_INVALID_CREDENTIALS"


def test_login_is_rate_limited_per_ip(client, make_user) -> None:
    make_user(email="ada@example.com")
    body = {"email": "ada@example.com", "password": "nope-nope"}

    statuses = [client.post(f"{API}/auth/login", json=body).status_code for _ in range(11)]

    assert statuses[:10] == [401] * 10
    assert statuses[10] == 429
    limited = client.post(f"{API}/auth/login", json=body)
    assert limited.json()["error"]["code"] == "AUTH_RATE_LIMITED"
    assert limited.json()["error"]["details"]["retryAfterSeconds"] == 60


def test_refresh_token_exchange(client, make_user) -> None:
    make_user(email="ada@example.com")
    tokens = client.post(
        f"{API}/auth/login", json={"email": "ada@example.com", "password": "password123"},
    ).json()["data"]

    refreshed = client.post(f"{API}/auth/refresh-token", json={"refreshToken": tokens["refreshToken"]})
    assert refreshed.status_code == 200
    assert refreshed.json()["data"]["accessToken"]

    misuse = client.post(f"{API}/auth/refresh-token", json={"refreshToken": tokens["accessToken"]})
    assert misuse.status_code == 401


def test_requests_without_token_are_rejected(client) -> None:
    response = client.get(f"{API}/checkouts/my-current")

    assert response.status_code == 401
    assert response.json()["success"] is False
    assert response.json()["error"]["code"] == "AUTH_INVALID_TOKEN"


def test_checkout_flow_through_api(client, make_user, make_laptop, auth_headers) -> None:
    user_a = make_user()
    user_b = make_user()
    make_laptop(unique_id="LAP-0001")

    created = _checkout(client, auth_headers(user_a), laptop_unique_id="LAP-0001", user_id=user_a.id)
    assert created.status_code == 201
    body = created.json()
    assert body["success"] is True
    assert body["message"] == "Laptop checked out successfully"
    assert body["data"]["status"] == "active"
    assert body["data"]["laptop"]["uniqueId"] == "LAP-0001"
    assert body["data"]["laptop"]["status"] == "checked_out"
    assert body["data"]["user"]["id"] == str(user_a.id)

    taken = _checkout(client, auth_headers(user_b), laptop_unique_id="LAP-0001", user_id=user_b.id)
    assert taken.status_code == 400
    assert taken.json()["error"]["code"] == "VAL_LAPTOP_NOT_AVAILABLE"
    assert "LAP-0001" in taken.json()["error"]["message"]
    assert "checked_out" in taken.json()["error"]["message"]

    status_for_b = client.get(f"{API}/checkouts/status/LAP-0001", headers=auth_headers(user_b)).json()["data"]
    assert status_for_b["availableActions"] == {
        "canCheckout": False,
        "canCheckin": False,
        "canReportLost": False,
        "canReportFound": True,
    }

    forbidden = client.post(
        f"{API}/checkouts/checkin", json={"laptopUniqueId": "LAP-0001"}, headers=auth_headers(user_b),
    )
    assert forbidden.status_code == 403
    assert forbidden.json()["error"]["code"] == "VAL_UNAUTHORIZED_CHECKIN"

    current = client.get(f"{API}/checkouts/my-current", headers=auth_headers(user_a)).json()
    assert current["data"]["laptop"]["uniqueId"] == "LAP-0001"

    returned = client.post(
        f"{API}/checkouts/checkin", json={"laptopUniqueId": "LAP-0001"}, headers=auth_headers(user_a),
    )
    assert returned.status_code == 200
    assert returned.json()["data"]["status"] == "completed"
    assert returned.json()["data"]["checkedInAt"]

    none_current = client.get(f"{API}/checkouts/my-current", headers=auth_headers(user_a)).json()
    assert none_current["data"] is None
    assert none_current["message"] == "No active checkout found"


def test_one_laptop_per_user_through_api(client, make_user, make_laptop, auth_headers) -> None:
    user = make_user()
    make_laptop(unique_id="LAP-0001")
    make_laptop(unique_id="LAP-0002")
    _checkout(client, auth_headers(user), laptop_unique_id="LAP-0001", user_id=user.id)

    second = _checkout(client, auth_headers(user), laptop_unique_id="LAP-0002", user_id=user.id)

    assert second.status_code == 409
    assert second.json()["error"]["code"] == "BIZ_USER_HAS_ACTIVE_CHECKOUT"
    assert "LAP-0001" in second.json()["error"]["message"]


def test_checkout_unknown_laptop_is_404(client, make_user, auth_headers) -> None:
    user = make_user()

    response = _checkout(client, auth_headers(user), laptop_unique_id="LAP-MISSING", user_id=user.id)

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND_LAPTOP"


def test_checkout_payload_validation(client, make_user, auth_headers) -> None:
    user = make_user()

    response = client.post(
        f"{API}/checkouts/checkout", json={"laptopUniqueId": "LAP-0001", "userId": "nope"}, headers=auth_headers(user),
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VAL_INVALID_INPUT"


def test_lost_and_found_through_api(
    client, session_factory, api_enqueued, make_user, make_laptop, auth_headers,
) -> None:
    owner = make_user(name="Owner")
    finder = make_user(name="Finder")
    make_laptop(unique_id="LAP-0001")
    _checkout(client, auth_headers(owner), laptop_unique_id="LAP-0001", user_id=owner.id)

    lost = client.post(
        f"{API}/checkouts/report-lost", json={"laptopUniqueId": "LAP-0001"}, headers=auth_headers(owner),
    )
    assert lost.status_code == 200
    assert lost.json()["data"]["message"] == "Laptop reported as lost. Admin has been notified."
    assert lost.json()["data"]["laptop"]["status"] == "maintenance"
    assert len(api_enqueued.calls) == 1

    found = client.post(
        f"{API}/checkouts/report-found",
        json={"laptopUniqueId": "LAP-0001", "finderUserId": str(finder.id)},
        headers=auth_headers(finder),
    )
    assert found.status_code == 200
    event = found.json()["data"]
    assert event["originalUserId"] == str(owner.id)
    assert event["finderUserId"] == str(finder.id)
    assert event["durationMinutes"] >= 0
    assert event["laptop"]["status"] == "available"
    assert len(api_enqueued.calls) == 3

    with session_factory() as db:
        assert db.query(NotificationLog).filter_by(notification_type="lost_found", status="pending").count() == 3


def test_report_found_without_checkout_is_400(client, make_user, make_laptop, auth_headers) -> None:
    finder = make_user()
    make_laptop(unique_id="LAP-0001")

    response = client.post(
        f"{API}/checkouts/report-found",
        json={"laptopUniqueId": "LAP-0001", "finderUserId": str(finder.id)},
        headers=auth_headers(finder),
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "NOT_FOUND_CHECKOUT"


def test_active_and_history_lists(client, make_user, make_laptop, auth_headers) -> None:
    user = make_user()
    laptop = make_laptop(unique_id="LAP-0001")
    _checkout(client, auth_headers(user), laptop_unique_id="LAP-0001", user_id=user.id)

    active = client.get(f"{API}/checkouts/active", headers=auth_headers(user)).json()["data"]
    assert [c["user"]["id"] for c in active] == [str(user.id)]

    filtered = client.get(
        f"{API}/checkouts/active", params={"userId": str(uuid4())}, headers=auth_headers(user),
    ).json()["data"]
    assert filtered == []

    history = client.get(
        f"{API}/checkouts/history", params={"laptopId": str(laptop.id)}, headers=auth_headers(user),
    ).json()["data"]
    assert len(history) == 1


def test_admin_only_checkout_views(client, make_user, auth_headers) -> None:
    interviewer = make_user()
    admin = make_user(role="admin")

    denied = client.get(f"{API}/checkouts/overdue", headers=auth_headers(interviewer))
    assert denied.status_code == 403
    assert denied.json()["error"]["code"] == "PERM_ADMIN_REQUIRED"

    allowed = client.get(f"{API}/checkouts/overdue", params={"threshold": 0}, headers=auth_headers(admin))
    assert allowed.status_code == 200
    assert allowed.json()["data"] == []

    events = client.get(f"{API}/checkouts/lost-found-events", headers=auth_headers(admin))
    assert events.status_code == 200
