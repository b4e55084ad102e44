from datetime import timedelta

from conftest import ADMIN_HEADERS

from barbershop.core.auth import create_access_token
from barbershop.core.clock import now_local


def _future_day(days=2):
    return (now_local().date() + timedelta(days=days)).isoformat()


def _book(client, phone="0501234567", code="123456", name="Dana", day=None, time="10:00"):
    return client.post(
        "/api/v1/booking",
        json={"phone": phone, "code": code, "name": name, "date": day or _future_day(), "time": time},
    )


def test_request_code_sends_sms(client, notifications):
    response = client.post("/api/v1/verification/request", json={"phone": "0529876543"})
    assert response.status_code == 200
    assert response.json() == {"ok": True}

    phone, kind, payload = notifications.calls[0]
    assert phone == "+972529876543"
    assert kind == "verification_code"
    assert len(payload["code"]) == 6


def test_request_code_rejects_bad_phone(client):
    response = client.post("/api/v1/verification/request", json={"phone": "12345"})
    assert response.status_code == 400
    assert response.json()["error"] == "ValidationFailed"


def test_request_code_rate_limit(client):
    for _ in range(3):
        assert client.post("/api/v1/verification/request", json={"phone": "0529876543"}).status_code == 200

    response = client.post("/api/v1/verification/request", json={"phone": "0529876543"})
    assert response.status_code == 429
    body = response.json()
    assert body["error"] == "RateLimited"
    assert 0 < body["retryAfter"] <= 3600
    assert response.headers["Retry-After"] == str(body["retryAfter"])


def test_book_with_code_then_reuse_fails(client, test_account, notifications):
    assert client.post("/api/v1/verification/request", json={"phone": test_account}).status_code == 200
    assert notifications.calls == []

    response = _book(client)
    assert response.status_code == 200
    booking = response.json()["booking"]
    assert booking["customer_phone"] == "0501234567"
    assert booking["booking_time"] == "10:00"
    assert booking["status"] == "confirmed"
    assert notifications.kinds() == ["booking_confirmation"]

    again = _book(client, time="10:40")
    assert again.status_code == 400
    assert again.json()["error"] == "BadCode"


def test_book_taken_slot(client, test_account):
    day = _future_day()
    created = client.post(
        "/api/v1/admin/bookings",
        json={"name": "Yossi", "phone": "0529876543", "date": day, "time": "10:00"},
        headers=ADMIN_HEADERS,
    )
    assert created.status_code == 200

    client.post("/api/v1/verification/request", json={"phone": test_account})
    response = _book(client, day=day)
    assert response.status_code == 409
    assert response.json()["error"] == "SlotTaken"

    # the conflict left the code usable
    assert _book(client, day=day, time="10:40").status_code == 200


def test_book_closed_day(client, test_account):
    day = _future_day()
    closed = client.post(
        "/api/v1/admin/slots/close", json={"date": day, "reason": "vacation"}, headers=ADMIN_HEADERS
    )
    assert closed.status_code == 200
    assert closed.json()["closed_time"] is None

    client.post("/api/v1/verification/request", json={"phone": test_account})
    response = _book(client, day=day, time="13:20")
    assert response.status_code == 409
    assert response.json()["error"] == "SlotClosed"


def test_book_validation_errors(client):
    response = _book(client, phone="0401234567")
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "ValidationFailed"
    assert body["detail"][0]["field"] == "phone"

    assert _book(client, code="").status_code == 400


def test_slots_overview(client):
    day = _future_day()
    client.post(
        "/api/v1/admin/bookings",
        json={"name": "Yossi", "phone": "0529876543", "date": day, "time": "11:20"},
        headers=ADMIN_HEADERS,
    )
    response = client.get(f"/api/v1/booking/slots?date={day}")
    assert response.status_code == 200
    slots = {row["time"]: row for row in response.json()["slots"]}
    assert len(slots) == 11
    assert slots["10:00"]["available"] is True
    assert slots["11:20"] == {"time": "11:20", "available": False, "reason": "SlotTaken"}

    assert client.get("/api/v1/booking/slots?date=soon").status_code == 400


def test_admin_requires_credentials(client):
    response = client.get("/api/v1/admin/bookings")
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"

    wrong = client.get("/api/v1/admin/bookings", headers={"X-Admin-Token": "nope"})
    assert wrong.status_code == 401


def test_admin_basic_auth(client):
    response = client.get("/api/v1/admin/bookings", auth=("owner@example.com", "barber-secret"))
    assert response.status_code == 200
    assert response.json() == []


def test_admin_bearer_token(client):
    token_response = client.post(
        "/api/v1/auth/token", data={"username": "owner@example.com", "password": "barber-secret"}
    )
    assert token_response.status_code == 200
    token = token_response.json()["access_token"]

    response = client.get("/api/v1/admin/bookings", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json() == {"username": "owner@example.com", "is_admin": True}


def test_admin_bearer_token_without_role_is_forbidden(client):
    token = create_access_token(data={"sub": "someone", "role": "viewer"})
    response = client.get("/api/v1/admin/bookings", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 403


def test_login_with_wrong_password(client):
    response = client.post(
        "/api/v1/auth/token", data={"username": "owner@example.com", "password": "guess"}
    )
    assert response.status_code == 401


def test_admin_booking_lifecycle(client, notifications):
    day = _future_day(3)
    created = client.post(
        "/api/v1/admin/bookings",
        json={"name": "Yossi", "phone": "0529876543", "date": day, "time": "12:00"},
        headers=ADMIN_HEADERS,
    )
    booking_id = created.json()["booking"]["id"]

    listed = client.get(f"/api/v1/admin/bookings?date={day}", headers=ADMIN_HEADERS).json()
    assert [b["id"] for b in listed] == [booking_id]

    patched = client.patch(
        f"/api/v1/admin/bookings/{booking_id}",
        json={"time": "12:40", "name": "Yossi Cohen"},
        headers=ADMIN_HEADERS,
    )
    assert patched.status_code == 200
    assert patched.json()["booking"]["booking_time"] == "12:40"
    assert patched.json()["booking"]["customer_name"] == "Yossi Cohen"

    deleted = client.delete(f"/api/v1/admin/bookings/{booking_id}", headers=ADMIN_HEADERS)
    assert deleted.json() == {"ok": True}
    assert client.get("/api/v1/admin/bookings", headers=ADMIN_HEADERS).json() == []
    assert notifications.kinds() == ["booking_confirmation", "booking_updated", "booking_cancelled"]

    missing = client.delete(f"/api/v1/admin/bookings/{booking_id}", headers=ADMIN_HEADERS)
    assert missing.status_code == 404
    assert missing.json()["error"] == "NotFound"


def test_open_slot_is_idempotent(client):
    day = _future_day()
    closed = client.post(
        "/api/v1/admin/slots/close", json={"date": day, "time": "14:00"}, headers=ADMIN_HEADERS
    ).json()

    listed = client.get(f"/api/v1/admin/slots/closed?date_from={day}", headers=ADMIN_HEADERS).json()
    assert [s["id"] for s in listed] == [closed["id"]]

    for _ in range(2):
        response = client.post(
            "/api/v1/admin/slots/open", json={"id": closed["id"]}, headers=ADMIN_HEADERS
        )
        assert response.json() == {"ok": True}
    assert client.get("/api/v1/admin/slots/closed", headers=ADMIN_HEADERS).json() == []


def test_sms_webhook_cancels_booking(client):
    day = _future_day()
    client.post(
        "/api/v1/admin/bookings",
        json={"name": "Dana", "phone": "0501234567", "date": day, "time": "15:00"},
        headers=ADMIN_HEADERS,
    )

    response = client.post(
        "/api/v1/sms/webhook",
        json={"event": "sms:received", "payload": {"phoneNumber": "+972501234567", "message": "0"}},
    )
    assert response.json() == {"received": True}
    assert client.get("/api/v1/admin/bookings", headers=ADMIN_HEADERS).json() == []


def test_sms_webhook_acknowledges_garbage(client):
    assert client.post("/api/v1/sms/webhook", json=["nope"]).json() == {"received": True}
    assert client.post("/api/v1/sms/webhook", data={"from": "0501234567"}).json() == {"received": True}


def test_reminders_endpoint(client, gateway):
    tomorrow = _future_day(1)
    client.post(
        "/api/v1/admin/bookings",
        json={"name": "Dana", "phone": "0501234567", "date": tomorrow, "time": "10:00"},
        headers=ADMIN_HEADERS,
    )

    assert client.post("/api/v1/reminders/send").status_code == 401

    response = client.post("/api/v1/reminders/send", headers={"X-Cron-Token": "test-cron-token"})
    assert response.status_code == 200
    assert response.json()["sent"] == 1
    assert len(gateway.messages) == 1

    again = client.post("/api/v1/reminders/send", headers=ADMIN_HEADERS)
    assert again.json()["total"] == 0


def test_unversioned_prefix(client):
    day = _future_day()
    response = client.get(f"/api/booking/slots?date={day}")
    assert response.status_code == 200


def test_verify_code_endpoint(client, test_account):
    client.post("/api/v1/verification/request", json={"phone": test_account})

    wrong = client.post("/api/v1/verification/verify", json={"phone": test_account, "code": "000000"})
    assert wrong.status_code == 400
    assert wrong.json()["error"] == "BadCode"

    ok = client.post("/api/v1/verification/verify", json={"phone": test_account, "code": "123456"})
    assert ok.json() == {"ok": True}

    reused = client.post("/api/v1/verification/verify", json={"phone": test_account, "code": "123456"})
    assert reused.status_code == 400


def test_taken_slot_on_a_fixed_date_reports_slot_taken(client, test_account):
    created = client.post(
        "/api/v1/admin/bookings",
        json={"name": "Yossi", "phone": "0529876543", "date": "2025-03-10", "time": "11:20"},
        headers=ADMIN_HEADERS,
    )
    assert created.status_code == 200

    client.post("/api/v1/verification/request", json={"phone": test_account})
    response = _book(client, day="2025-03-10", time="11:20")
    assert response.status_code == 409
    assert response.json()["error"] == "SlotTaken"
