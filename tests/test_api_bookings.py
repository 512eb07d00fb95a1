# Import testing tools
from decimal import Decimal

from fastapi.testclient import TestClient

from tourbook import models


def _booking_json(package_id, travelers):
    return {"package_id": package_id, "departure_date": "2026-12-01", "num_travelers": travelers}


def _seats(db_session, package_id):
    return db_session.query(models.Package.seats_available).filter(models.Package.id == package_id).scalar()


# --- Packages ---

def test_public_catalogue(client: TestClient, make_package):
    make_package(title="Kyoto Temples", featured=True)
    make_package(title="Retired Tour", active=False)

    response = client.get("/packages/")

    assert response.status_code == 200
    assert [p["title"] for p in response.json()] == ["Kyoto Temples"]

    response = client.get("/packages/kyoto-temples")
    assert response.status_code == 200
    assert response.json()["slug"] == "kyoto-temples"

    assert client.get("/packages/retired-tour").status_code == 404


def test_admin_creates_package(client: TestClient, admin, auth_headers):
    payload = {
        "title": "Bali Island Escape",
        "destination": "Bali",
        "price": "1200.00",
        "duration_days": 5,
        "duration_nights": 4,
        "seats_total": 12,
    }

    response = client.post("/packages/", json=payload, headers=auth_headers(admin))
    assert response.status_code == 201
    body = response.json()
    assert body["slug"] == "bali-island-escape"
    assert body["seats_available"] == 12

    response = client.post("/packages/", json=payload, headers=auth_headers(admin))
    assert response.status_code == 409
    assert response.json()["code"] == "duplicate_slug"


def test_user_cannot_create_package(client: TestClient, user, auth_headers):
    response = client.post(
        "/packages/",
        json={"title": "X", "destination": "Y", "price": "1", "duration_days": 1, "seats_total": 1},
        headers=auth_headers(user),
    )
    assert response.status_code == 403


def test_seat_counts_cannot_be_updated(client: TestClient, admin, make_package, auth_headers):
    package = make_package()

    response = client.put(f"/packages/{package.id}", json={"seats_total": 50}, headers=auth_headers(admin))

    assert response.status_code == 422


def test_partial_package_update(client: TestClient, admin, make_package, auth_headers):
    package = make_package()

    response = client.put(f"/packages/{package.id}", json={"price": "180.00"}, headers=auth_headers(admin))

    assert response.status_code == 200
    assert Decimal(response.json()["price"]) == Decimal("180.00")
    assert response.json()["title"] == "Bali Island Escape"


def test_delete_package(client: TestClient, admin, make_package, auth_headers):
    package = make_package()

    response = client.delete(f"/packages/{package.id}", headers=auth_headers(admin))

    assert response.status_code == 204
    assert client.delete(f"/packages/{package.id}", headers=auth_headers(admin)).status_code == 404


# --- Bookings ---

def test_booking_flow(client: TestClient, db_session, user, other_user, make_package, auth_headers):
    package = make_package(seats_total=5, price=Decimal("100.00"))
    package_id = package.id

    response = client.post("/user/bookings", json=_booking_json(package_id, 3), headers=auth_headers(user))
    assert response.status_code == 201
    booking = response.json()
    assert booking["status"] == "pending"
    assert Decimal(booking["total_price"]) == Decimal("300.00")
    assert _seats(db_session, package_id) == 2

    response = client.post("/user/bookings", json=_booking_json(package_id, 3), headers=auth_headers(other_user))
    assert response.status_code == 400
    assert response.json() == {"detail": "Only 2 seats available", "code": "insufficient_seats"}

    response = client.post(f"/user/bookings/{booking['id']}/cancel", headers=auth_headers(user))
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert _seats(db_session, package_id) == 5

    response = client.post(f"/user/bookings/{booking['id']}/cancel", headers=auth_headers(user))
    assert response.status_code == 400
    assert response.json()["detail"] == "Booking already cancelled"
    assert _seats(db_session, package_id) == 5


def test_zero_travelers_is_a_validation_error(client: TestClient, user, make_package, auth_headers):
    package = make_package()

    response = client.post("/user/bookings", json=_booking_json(package.id, 0), headers=auth_headers(user))

    assert response.status_code == 422


def test_user_booking_views(client: TestClient, user, other_user, make_package, auth_headers):
    package = make_package(title="Kyoto Temples")
    booking = client.post("/user/bookings", json=_booking_json(package.id, 1), headers=auth_headers(user)).json()

    listing = client.get("/user/bookings", headers=auth_headers(user)).json()
    assert listing["pagination"]["total"] == 1
    assert listing["items"][0]["package_title"] == "Kyoto Temples"

    assert client.get(f"/user/bookings/{booking['id']}", headers=auth_headers(user)).status_code == 200
    assert client.get(f"/user/bookings/{booking['id']}", headers=auth_headers(other_user)).status_code == 404


def test_admin_moves_booking_status(client: TestClient, user, admin, make_package, auth_headers):
    package = make_package()
    booking = client.post("/user/bookings", json=_booking_json(package.id, 1), headers=auth_headers(user)).json()

    response = client.patch(
        f"/admin/bookings/{booking['id']}/status", json={"status": "confirmed"}, headers=auth_headers(admin)
    )
    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"

    response = client.patch(
        f"/admin/bookings/{booking['id']}/status", json={"status": "pending"}, headers=auth_headers(admin)
    )
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_transition"

    listing = client.get("/admin/bookings?status=confirmed", headers=auth_headers(admin)).json()
    assert [b["id"] for b in listing["items"]] == [booking["id"]]


# --- Payment proofs ---

def _proof_json(request_id, **overrides):
    data = {
        "request_id": request_id,
        "file_name": "receipt.pdf",
        "file_path": "payment-proofs/2026/receipt.pdf",
        "file_size": 2048,
        "mime_type": "application/pdf",
    }
    data.update(overrides)
    return data


def test_payment_proof_upload_and_listing(client: TestClient, user, guide, make_request, auth_headers):
    db_request = make_request(user, status=models.RequestStatus.ASSIGNED, guide=guide)

    response = client.post("/payment/proofs", json=_proof_json(db_request.id), headers=auth_headers(user))
    assert response.status_code == 201
    assert response.json()["user_id"] == user.id

    for viewer in (user, guide):
        response = client.get(f"/payment/request/{db_request.id}", headers=auth_headers(viewer))
        assert response.status_code == 200
        assert [p["file_name"] for p in response.json()] == ["receipt.pdf"]


def test_payment_proof_rejects_bad_files(client: TestClient, user, make_request, auth_headers):
    db_request = make_request(user)

    response = client.post(
        "/payment/proofs", json=_proof_json(db_request.id, mime_type="text/html"), headers=auth_headers(user)
    )
    assert response.status_code == 400

    response = client.post(
        "/payment/proofs", json=_proof_json(db_request.id, file_size=6 * 1024 * 1024), headers=auth_headers(user)
    )
    assert response.status_code == 400


def test_payment_proofs_hidden_from_strangers(client: TestClient, user, other_user, make_request, auth_headers):
    db_request = make_request(user)

    response = client.post("/payment/proofs", json=_proof_json(db_request.id), headers=auth_headers(other_user))
    assert response.status_code == 404

    response = client.get(f"/payment/request/{db_request.id}", headers=auth_headers(other_user))
    assert response.status_code == 404
