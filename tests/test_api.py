from datetime import timedelta

from conftest import NOW, auth_headers, make_user, make_user_coupon
from eventhub.models.user import UserRole


def checkout_body(tier, **overrides):
    body = {"event_id": tier.event_id, "ticket_tier_id": tier.id, "quantity": 1}
    body.update(overrides)
    return body


def pay(client, customer, tier, **overrides):
    response = client.post("/transactions", json=checkout_body(tier, **overrides), headers=auth_headers(customer))
    assert response.status_code == 201
    transaction_id = response.json()["id"]

    response = client.post(
        f"/transactions/{transaction_id}/payment-proof",
        json={"payment_proof_ref": "proofs/receipt.jpg"},
        headers=auth_headers(customer)
    )
    assert response.status_code == 200
    return transaction_id


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["Cache-Control"] == "no-store"
    assert response.headers["X-Request-ID"]


def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "trace-123"})

    assert response.headers["X-Request-ID"] == "trace-123"


def test_register_login_and_me(client):
    response = client.post("/auth/register", json={
        "email": "sari@example.com", "name": "Sari", "password": "secret123"
    })
    assert response.status_code == 201
    assert response.json()["role"] == "customer"

    response = client.post("/auth/login", json={"email": "sari@example.com", "password": "secret123"})
    assert response.status_code == 200
    token = response.json()["access_token"]
    assert "access_token" in response.cookies

    response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.json()["email"] == "sari@example.com"


def test_register_with_unknown_referral_code(client):
    response = client.post("/auth/register", json={
        "email": "sari@example.com", "name": "Sari", "password": "secret123", "referral_code": "MISSING"
    })

    assert response.status_code == 409
    assert response.json()["code"] == "invalid_referral_code"


def test_login_with_wrong_password(client, customer):
    response = client.post("/auth/login", json={"email": customer.email, "password": "wrong-password"})

    assert response.status_code == 400


def test_checkout_requires_login(client, tier):
    response = client.post("/transactions", json=checkout_body(tier))

    assert response.status_code == 401


def test_checkout(client, customer, tier):
    response = client.post(
        "/transactions", json=checkout_body(tier, points_used=25000), headers=auth_headers(customer)
    )

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "waiting_payment"
    assert data["total_amount"] == 299000
    assert data["discount_amount"] == 25000
    assert data["final_amount"] == 274000
    assert data["tickets"][0]["quantity"] == 1


def test_checkout_validation_error(client, customer, tier):
    response = client.post(
        "/transactions", json=checkout_body(tier, quantity=0), headers=auth_headers(customer)
    )

    assert response.status_code == 400
    assert response.json()["code"] == "validation_failed"


def test_checkout_with_used_coupon(client, db, customer, tier):
    user_coupon = make_user_coupon(db, customer)
    user_coupon.is_used = True
    db.commit()

    response = client.post(
        "/transactions", json=checkout_body(tier, coupon_id=user_coupon.id), headers=auth_headers(customer)
    )

    assert response.status_code == 409
    assert response.json()["code"] == "coupon_already_used"


def test_checkout_sold_out(client, customer, tier):
    response = client.post(
        "/transactions", json=checkout_body(tier, quantity=11), headers=auth_headers(customer)
    )

    assert response.status_code == 409
    assert response.json()["code"] == "insufficient_inventory"


def test_availability_follows_checkout(client, customer, event, tier):
    client.post("/transactions", json=checkout_body(tier, quantity=3), headers=auth_headers(customer))

    response = client.get(f"/events/{event.id}/availability")

    assert response.status_code == 200
    assert response.json()["available_seats"] == 7
    assert response.json()["tiers"][0]["available"] == 7


def test_unknown_event(client):
    response = client.get("/events/999")

    assert response.status_code == 404
    assert response.json()["code"] == "event_not_found"


def test_create_event_as_organizer(client, organizer):
    response = client.post("/events", headers=auth_headers(organizer), json={
        "title": "Bandung Indie Fest",
        "start_date": (NOW + timedelta(days=10)).isoformat(),
        "end_date": (NOW + timedelta(days=11)).isoformat(),
        "total_seats": 150,
        "tiers": [{"name": "Regular", "price": 150000, "quantity": 100}, {"name": "VIP", "price": 400000, "quantity": 50}]
    })

    assert response.status_code == 201
    assert [tier["available"] for tier in response.json()["tiers"]] == [100, 50]


def test_create_event_as_customer(client, customer):
    response = client.post("/events", headers=auth_headers(customer), json={
        "title": "Nope",
        "start_date": (NOW + timedelta(days=10)).isoformat(),
        "end_date": (NOW + timedelta(days=11)).isoformat(),
        "total_seats": 10,
        "tiers": [{"name": "Regular", "price": 1000, "quantity": 10}]
    })

    assert response.status_code == 403


def test_confirm_endpoint(client, admin, customer, tier):
    transaction_id = pay(client, customer, tier, points_used=25000)

    response = client.post(f"/admin/transactions/{transaction_id}/confirm", headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.json()["transaction"]["status"] == "confirmed"
    assert response.json()["points_awarded"] == 13700

    response = client.post(f"/admin/transactions/{transaction_id}/confirm", headers=auth_headers(admin))
    assert response.status_code == 400
    assert response.json()["code"] == "not_awaiting_confirmation"


def test_reject_endpoint(client, organizer, customer, tier):
    transaction_id = pay(client, customer, tier, points_used=25000)

    response = client.post(
        f"/admin/transactions/{transaction_id}/reject",
        json={"reason": "blurry proof"},
        headers=auth_headers(organizer)
    )

    assert response.status_code == 200
    assert response.json()["transaction"]["status"] == "rejected"
    assert response.json()["points_restored"] == 25000

    response = client.get("/users/me/points", headers=auth_headers(customer))
    assert response.json()["balance"] == 25000
    assert response.json()["entries"][0]["kind"] == "restored"


def test_reject_without_reason(client, admin, customer, tier):
    transaction_id = pay(client, customer, tier)

    response = client.post(
        f"/admin/transactions/{transaction_id}/reject", json={"reason": ""}, headers=auth_headers(admin)
    )

    assert response.status_code == 400
    assert response.json()["code"] == "validation_failed"


def test_customer_cannot_confirm(client, customer, tier):
    transaction_id = pay(client, customer, tier)

    response = client.post(f"/admin/transactions/{transaction_id}/confirm", headers=auth_headers(customer))

    assert response.status_code == 403


def test_other_organizer_cannot_confirm(client, db, customer, tier):
    rival = make_user(db, "rival@example.com", role=UserRole.ORGANIZER)
    transaction_id = pay(client, customer, tier)

    response = client.post(f"/admin/transactions/{transaction_id}/confirm", headers=auth_headers(rival))

    assert response.status_code == 403
    assert response.json()["code"] == "permission_denied"


def test_cancel_endpoint(client, customer, tier):
    response = client.post(
        "/transactions", json=checkout_body(tier, points_used=10000), headers=auth_headers(customer)
    )
    transaction_id = response.json()["id"]

    response = client.post(f"/transactions/{transaction_id}/cancel", headers=auth_headers(customer))

    assert response.status_code == 200
    assert response.json()["transaction"]["status"] == "canceled"
    assert response.json()["points_restored"] == 10000


def test_transaction_hidden_from_other_customers(client, db, customer, tier):
    stranger = make_user(db, "stranger@example.com")
    response = client.post("/transactions", json=checkout_body(tier), headers=auth_headers(customer))
    transaction_id = response.json()["id"]

    assert client.get(f"/transactions/{transaction_id}", headers=auth_headers(customer)).status_code == 200
    assert client.get(f"/transactions/{transaction_id}", headers=auth_headers(stranger)).status_code == 404


def test_list_my_transactions(client, customer, tier):
    for _ in range(3):
        client.post("/transactions", json=checkout_body(tier), headers=auth_headers(customer))

    response = client.get("/transactions?limit=2", headers=auth_headers(customer))

    assert response.json()["total"] == 3
    assert response.json()["total_pages"] == 2
    assert len(response.json()["transactions"]) == 2


def test_admin_status(client, admin, customer, tier):
    client.post("/transactions", json=checkout_body(tier), headers=auth_headers(customer))

    response = client.get("/admin/status", headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.json()["transactions"]["waiting_payment"] == 1
    assert response.json()["scheduler_running"] is False


def test_my_coupons(client, db, customer):
    make_user_coupon(db, customer)

    response = client.get("/users/me/coupons", headers=auth_headers(customer))

    assert response.status_code == 200
    assert response.json()[0]["coupon"]["code"] == "SAVE50K"
