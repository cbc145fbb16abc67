from datetime import timedelta

import pytest


@pytest.fixture
def staff(librarian, auth_headers):
    return auth_headers(librarian)


def _pickup(now, hours=1):
    return (now() + timedelta(hours=hours)).isoformat()


def test_health(client):
    assert client.get("/health").get_json() == {"ok": True}


def test_last_copy_flow(client, make_book, make_user, staff, auth_headers, now):
    book = make_book(quantity=1)
    u1, u2 = make_user(), make_user()
    h1, h2 = auth_headers(u1), auth_headers(u2)

    r = client.post("/appointments/", json={
        "book_id": book.id, "pickup_time": _pickup(now), "agreed_to_terms": True,
    }, headers=h1)
    assert r.status_code == 201
    appt_id = r.get_json()["id"]

    r = client.post("/appointments/", json={
        "book_id": book.id, "pickup_time": _pickup(now), "agreed_to_terms": True,
    }, headers=h2)
    assert r.status_code == 409
    assert r.get_json()["code"] == "out_of_stock"
    assert r.get_json()["success"] is False

    r = client.post("/reservations/", json={"book_id": book.id}, headers=h2)
    assert r.status_code == 201
    assert r.get_json()["position"] == 1
    reservation_id = r.get_json()["id"]

    now.advance(hours=1, minutes=30)
    r = client.post(f"/appointments/{appt_id}/confirm", headers=staff)
    assert r.status_code == 200
    borrowal_id = r.get_json()["borrowal_id"]

    now.advance(days=5)
    r = client.post(f"/borrowals/{borrowal_id}/return", headers=h1)
    assert r.status_code == 200

    r = client.get("/reservations/", headers=h2)
    mine = r.get_json()["data"]
    assert [(x["id"], x["status"]) for x in mine] == [(reservation_id, "ready")]

    r = client.post(f"/reservations/{reservation_id}/fulfill", headers=staff)
    assert r.status_code == 200

    audit = client.get(f"/books/{book.id}/audit", headers=staff).get_json()["data"]
    assert audit["consistent"] is True
    assert audit["available"] == 0
    assert audit["open_borrowals"] == 1


def test_readers_cannot_confirm(client, make_book, reader, auth_headers, now):
    book = make_book(quantity=1)
    headers = auth_headers(reader)
    r = client.post("/appointments/", json={
        "book_id": book.id, "pickup_time": _pickup(now), "agreed_to_terms": True,
    }, headers=headers)

    r = client.post(f"/appointments/{r.get_json()['id']}/confirm", headers=headers)
    assert r.status_code == 403


def test_readers_cannot_act_for_others(client, make_book, make_user, auth_headers, now):
    book = make_book(quantity=1)
    me, other = make_user(), make_user()
    r = client.post("/appointments/", json={
        "book_id": book.id, "user_id": other.id,
        "pickup_time": _pickup(now), "agreed_to_terms": True,
    }, headers=auth_headers(me))
    assert r.status_code == 403
    assert r.get_json()["code"] == "forbidden"


def test_late_confirm_reports_too_late(client, make_book, reader, staff, auth_headers, now):
    book = make_book(quantity=1)
    r = client.post("/appointments/", json={
        "book_id": book.id, "pickup_time": _pickup(now), "agreed_to_terms": True,
    }, headers=auth_headers(reader))
    appt_id = r.get_json()["id"]

    now.advance(hours=4)
    r = client.post(f"/appointments/{appt_id}/confirm", headers=staff)
    assert r.status_code == 400
    assert r.get_json()["code"] == "too_late"
    assert client.get(f"/books/{book.id}").get_json()["data"]["available"] == 1


def test_bad_payloads(client, make_book, reader, auth_headers, now):
    book = make_book(quantity=1)
    headers = auth_headers(reader)

    r = client.post("/appointments/", json={"book_id": book.id, "agreed_to_terms": True}, headers=headers)
    assert (r.status_code, r.get_json()["code"]) == (400, "invalid_input")

    r = client.post("/appointments/", json={
        "book_id": book.id, "pickup_time": "tomorrow-ish", "agreed_to_terms": True,
    }, headers=headers)
    assert (r.status_code, r.get_json()["code"]) == (400, "invalid_input")

    r = client.post("/reservations/", json={"book_id": book.id}, headers=headers)
    assert (r.status_code, r.get_json()["code"]) == (400, "book_available")

    r = client.get("/books/999")
    assert (r.status_code, r.get_json()["code"]) == (404, "not_found")


def test_renewal_over_http(client, make_book, reader, staff, auth_headers, now):
    book = make_book(quantity=1)
    r = client.post("/borrowals/", json={
        "book_id": book.id, "user_id": reader.id, "due_date": "2024-01-10T00:00:00",
    }, headers=staff)
    assert r.status_code == 201
    borrowal_id = r.get_json()["borrowal_id"]

    r = client.post("/renewals/", json={"borrowal_id": borrowal_id, "requested_days": 14},
                    headers=auth_headers(reader))
    assert r.status_code == 201

    r = client.post(f"/renewals/{r.get_json()['id']}/approve", headers=staff)
    assert r.get_json()["new_due_date"] == "2024-01-24T00:00:00"


def test_readers_cannot_borrow_directly(client, make_book, reader, auth_headers, now):
    book = make_book(quantity=1)
    r = client.post("/borrowals/", json={"book_id": book.id, "user_id": reader.id},
                    headers=auth_headers(reader))
    assert r.status_code == 403


def test_notifications_inbox(client, make_book, reader, auth_headers, now):
    book = make_book(quantity=1)
    headers = auth_headers(reader)
    client.post("/appointments/", json={
        "book_id": book.id, "pickup_time": _pickup(now), "agreed_to_terms": True,
    }, headers=headers)

    data = client.get("/notifications/?unread=1", headers=headers).get_json()["data"]
    assert [n["kind"] for n in data] == ["appointment_created"]
    assert data[0]["payload"]["book_title"] == "Dune"

    assert client.post("/notifications/mark-all-read", headers=headers).get_json()["updated"] == 1
    assert client.get("/notifications/?unread=1", headers=headers).get_json()["data"] == []


def test_cron_endpoints_need_the_secret(client, make_book, reader, now):
    assert client.post("/scheduled/sweep").status_code == 401
    assert client.post("/scheduled/sweep", headers={"Authorization": "Bearer wrong"}).status_code == 401

    r = client.post("/scheduled/sweep", headers={"Authorization": "Bearer test-cron-secret"})
    assert r.status_code == 200
    assert r.get_json()["data"]["skipped"] == 0

    r = client.post("/scheduled/overdue-check", headers={"Authorization": "Bearer test-cron-secret"})
    assert r.get_json()["data"] == {"newly_overdue": 0, "overdue_sent": 0, "due_soon_sent": 0}


def test_librarian_triggers_sweep(client, make_book, reader, staff, auth_headers, now):
    book = make_book(quantity=1)
    r = client.post("/appointments/", json={
        "book_id": book.id, "pickup_time": _pickup(now), "agreed_to_terms": True,
    }, headers=auth_headers(reader))
    appt_id = r.get_json()["id"]

    now.advance(hours=5)
    assert client.post("/appointments/sweep", headers=auth_headers(reader)).status_code == 403

    r = client.post("/appointments/sweep", headers=staff)
    assert r.get_json()["data"]["expired_appointments"] == [appt_id]
    assert client.get(f"/books/{book.id}").get_json()["data"]["status"] == "Available"
