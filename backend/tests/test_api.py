from decimal import Decimal

from storefront.errors import WriteFailure
from storefront.models.order import Order
from storefront.models.pending_payment import PendingPayment
from storefront.services.mirror_service import CheckoutMirror
from storefront.services.pending_payment_service import PendingPaymentService

from conftest import TestingSessionLocal, USER_ID


def _count(model):
    session = TestingSessionLocal()
    try:
        return session.query(model).count()
    finally:
        session.close()


def _start_session(client, checkout_payload, headers):
    response = client.post("/api/checkout/upi/session", json=checkout_payload, headers=headers)
    assert response.status_code == 200
    return response.json()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_quote(client, checkout_payload):
    response = client.post("/api/checkout/quote", json={"items": checkout_payload["items"]})

    body = response.json()
    assert Decimal(body["subtotal"]) == 850
    assert Decimal(body["shipping"]) == 1
    assert Decimal(body["total"]) == 851


def test_cod_checkout(client, checkout_payload, headers, mocker):
    send = mocker.patch(
        "storefront.routes.checkout.NotificationService.send_order_confirmation", return_value=False,
    )

    response = client.post("/api/checkout/cod", json=checkout_payload, headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["payment_pending"] is False
    assert body["order"]["status"] == "confirmed"
    assert body["order"]["payment_status"] == "pending"
    assert Decimal(body["order"]["total_amount"]) == 851
    assert len(body["order"]["items"]) == 2
    assert body["confirmation_path"] == f"/order-confirmation/{body['order']['id']}"
    send.assert_called_once()


def test_invalid_phone_writes_nothing(client, checkout_payload, headers):
    checkout_payload["shipping"]["phone"] = "12345"

    response = client.post("/api/checkout/cod", json=checkout_payload, headers=headers)

    assert response.status_code == 400
    assert response.json()["error_code"] == "VALIDATION_ERROR"
    assert _count(Order) == 0


def test_cod_accepts_any_nonempty_email(client, checkout_payload, headers, mocker):
    mocker.patch("storefront.routes.checkout.NotificationService.send_order_confirmation")
    checkout_payload["shipping"]["email"] = "kaviya@localhost"

    response = client.post("/api/checkout/cod", json=checkout_payload, headers=headers)

    assert response.status_code == 200
    assert _count(Order) == 1


def test_missing_fields_write_nothing(client, checkout_payload, headers):
    checkout_payload["shipping"]["city"] = ""

    response = client.post("/api/checkout/upi/session", json=checkout_payload, headers=headers)

    assert response.status_code == 400
    assert "city is required" in response.json()["errors"]
    assert _count(PendingPayment) == 0


def test_missing_user_header_is_rejected(client, checkout_payload):
    response = client.post("/api/checkout/cod", json=checkout_payload)

    assert response.status_code == 422


def test_upi_session_persists_recovery_record(client, checkout_payload, headers):
    body = _start_session(client, checkout_payload, headers)

    session_id = body["session"]["session_id"]
    assert session_id.startswith("sess_")
    assert body["window_seconds"] == 120
    assert "am=851.00" in body["payment_uri"]
    assert body["qr_data_url"].startswith("data:image/png;base64,")

    lookup = client.get(f"/api/recovery/{session_id}")
    assert lookup.status_code == 200
    assert lookup.json()["status"] == "pending"
    assert lookup.json()["user_id"] == USER_ID


def test_upi_rotate_issues_new_session(client, checkout_payload, headers):
    started = _start_session(client, checkout_payload, headers)

    response = client.post("/api/checkout/upi/rotate", json={"session": started["session"]}, headers=headers)

    assert response.status_code == 200
    rotated = response.json()
    assert rotated["session"]["session_id"] != started["session"]["session_id"]
    assert rotated["window_seconds"] == 120
    assert rotated["session"]["session_id"] in rotated["payment_uri"]


def test_upi_claim_then_recover(client, checkout_payload, headers, mocker):
    mocker.patch("storefront.routes.checkout.NotificationService.send_order_confirmation")
    session_id = _start_session(client, checkout_payload, headers)["session"]["session_id"]

    claim = client.post(
        "/api/checkout/upi/claim", json={"session_id": session_id, **checkout_payload}, headers=headers,
    )
    assert claim.status_code == 200
    assert claim.json()["payment_pending"] is True
    assert claim.json()["order"]["status"] == "payment_review"
    assert claim.json()["order"]["payment_status"] == "pending_verification"

    verify = client.post("/api/recovery/verify", json={"session_id": session_id})
    assert verify.status_code == 200
    assert verify.json()["order_id"] == claim.json()["order"]["id"]

    order = client.get(f"/api/orders/{verify.json()['order_id']}", headers=headers).json()
    assert order["status"] == "confirmed"
    assert order["payment_status"] == "paid"
    assert _count(Order) == 1

    again = client.post("/api/recovery/verify", json={"session_id": session_id})
    assert again.status_code == 404
    assert again.json()["error_code"] == "PAYMENT_SESSION_NOT_FOUND"


def test_duplicate_claim_is_conflict(client, checkout_payload, headers, mocker):
    mocker.patch("storefront.routes.checkout.NotificationService.send_order_confirmation")
    session_id = _start_session(client, checkout_payload, headers)["session"]["session_id"]
    payload = {"session_id": session_id, **checkout_payload}

    client.post("/api/checkout/upi/claim", json=payload, headers=headers)
    response = client.post("/api/checkout/upi/claim", json=payload, headers=headers)

    assert response.status_code == 409
    assert _count(Order) == 1


def test_recovery_lookup_unknown_session(client):
    response = client.get("/api/recovery/sess_0_doesnotexist")

    assert response.status_code == 404
    assert response.json()["session_id"] == "sess_0_doesnotexist"


def test_recovery_is_rate_limited(client):
    for _ in range(10):
        assert client.post("/api/recovery/verify", json={"session_id": "sess_0_nope"}).status_code == 404

    response = client.post("/api/recovery/verify", json={"session_id": "sess_0_nope"})

    assert response.status_code == 429
    assert "retry_after" in response.json()


def test_webhook_records_reference(client, checkout_payload, headers):
    session_id = _start_session(client, checkout_payload, headers)["session"]["session_id"]

    ignored = client.post("/api/recovery/webhook", json={"session_id": session_id, "reference": "R1", "status": "FAILED"})
    recorded = client.post("/api/recovery/webhook", json={"session_id": session_id, "reference": "UTR42"})

    assert ignored.json()["recorded"] is False
    assert recorded.json()["recorded"] is True


def test_order_list_and_cancel(client, checkout_payload, headers, mocker):
    mocker.patch("storefront.routes.checkout.NotificationService.send_order_confirmation")
    order_id = client.post("/api/checkout/cod", json=checkout_payload, headers=headers).json()["order"]["id"]

    listing = client.get("/api/orders", headers=headers).json()
    assert listing["total"] == 1
    assert listing["orders"][0]["id"] == order_id
    assert client.get("/api/orders", headers={"x-user-id": "someone-else"}).json()["total"] == 0

    cancelled = client.post(f"/api/orders/{order_id}/cancel", json={"reason": "Changed my mind"}, headers=headers)
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"

    history = client.get(f"/api/orders/{order_id}/history", headers=headers).json()
    assert [h["status"] for h in history] == ["confirmed", "cancelled"]

    again = client.post(f"/api/orders/{order_id}/cancel", json={}, headers=headers)
    assert again.status_code == 409


def test_admin_status_updates_and_dashboard(client, checkout_payload, headers, mocker):
    mocker.patch("storefront.routes.checkout.NotificationService.send_order_confirmation")
    order_id = client.post("/api/checkout/cod", json=checkout_payload, headers=headers).json()["order"]["id"]

    shipped = client.put(f"/api/admin/orders/{order_id}/status", json={"status": "shipped", "note": "AWB 1234"})
    assert shipped.json()["status"] == "shipped"
    bad = client.put(f"/api/admin/orders/{order_id}/status", json={"status": "teleported"})
    assert bad.status_code == 400

    paid = client.put(f"/api/admin/orders/{order_id}/payment-status", json={"payment_status": "paid"})
    assert paid.json()["payment_status"] == "paid"

    dashboard = client.get("/api/admin/dashboard").json()
    assert dashboard["total_orders"] == 1
    assert Decimal(dashboard["total_revenue"]) == 851


def test_admin_pending_payments_and_expiry(client, checkout_payload, headers):
    _start_session(client, checkout_payload, headers)

    pending = client.get(f"/api/admin/pending-payments/{USER_ID}").json()
    assert len(pending) == 1

    # nothing has passed its 24 hour expiry yet
    assert client.post("/api/admin/pending-payments/expire").json() == {"expired": 0}


def test_upi_session_survives_pending_record_failure(client, checkout_payload, headers, mocker):
    mocker.patch.object(
        PendingPaymentService, "create_pending_payment", side_effect=WriteFailure("Failed to store payment session"),
    )

    body = _start_session(client, checkout_payload, headers)

    assert body["session"]["session_id"].startswith("sess_")
    assert body["payment_uri"].startswith("upi://pay?")
    assert _count(PendingPayment) == 0


def test_upi_claim_survives_pending_record_failure(client, checkout_payload, headers, mocker):
    mocker.patch("storefront.routes.checkout.NotificationService.send_order_confirmation")
    mocker.patch.object(
        PendingPaymentService, "create_pending_payment", side_effect=WriteFailure("Failed to store payment session"),
    )

    claim = client.post(
        "/api/checkout/upi/claim",
        json={"session_id": "sess_1709287200000_abcdefghi", **checkout_payload},
        headers=headers,
    )

    assert claim.status_code == 200
    assert claim.json()["order"]["status"] == "payment_review"
    assert claim.json()["order"]["payment_session_id"] == "sess_1709287200000_abcdefghi"
    assert _count(Order) == 1
    assert _count(PendingPayment) == 0


def test_recovery_refuses_cancelled_order(client, checkout_payload, headers, mocker):
    mocker.patch("storefront.routes.checkout.NotificationService.send_order_confirmation")
    session_id = _start_session(client, checkout_payload, headers)["session"]["session_id"]
    order_id = client.post(
        "/api/checkout/upi/claim", json={"session_id": session_id, **checkout_payload}, headers=headers,
    ).json()["order"]["id"]
    client.post(f"/api/orders/{order_id}/cancel", json={}, headers=headers)

    response = client.post("/api/recovery/verify", json={"session_id": session_id})

    assert response.status_code == 409
    assert response.json()["error_code"] == "INVALID_STATUS_TRANSITION"
    order = client.get(f"/api/orders/{order_id}", headers=headers).json()
    assert order["status"] == "cancelled"
    assert order["payment_status"] == "pending_verification"
    assert client.get(f"/api/recovery/{session_id}").json()["status"] == "pending"


def test_device_mirror_follows_upi_checkout(client, checkout_payload, headers, mocker):
    mocker.patch("storefront.routes.checkout.NotificationService.send_order_confirmation")
    device = {**headers, "x-device-id": "tablet-1"}
    mirror = CheckoutMirror(device_id="tablet-1")

    started = client.post("/api/checkout/upi/session", json=checkout_payload, headers=device).json()
    assert mirror.load().session_id == started["session"]["session_id"]

    resumed = client.get("/api/checkout/upi/resume", headers=device)
    assert resumed.status_code == 200
    assert resumed.json()["session"]["session_id"] == started["session"]["session_id"]

    rotated = client.post("/api/checkout/upi/rotate", json={"session": started["session"]}, headers=device).json()
    assert mirror.load().session_id == rotated["session"]["session_id"]

    claim = client.post(
        "/api/checkout/upi/claim",
        json={"session_id": started["session"]["session_id"], **checkout_payload},
        headers=device,
    )
    assert claim.status_code == 200
    assert mirror.load() is None
    assert client.get("/api/checkout/upi/resume", headers=device).status_code == 404


def test_cod_clears_device_mirror(client, checkout_payload, headers, mocker):
    mocker.patch("storefront.routes.checkout.NotificationService.send_order_confirmation")
    device = {**headers, "x-device-id": "laptop-2"}
    client.post("/api/checkout/upi/session", json=checkout_payload, headers=device)

    client.post("/api/checkout/cod", json=checkout_payload, headers=device)

    assert CheckoutMirror(device_id="laptop-2").load() is None


def test_declined_resume_forgets_session(client, checkout_payload, headers):
    device = {**headers, "x-device-id": "phone-3"}
    client.post("/api/checkout/upi/session", json=checkout_payload, headers=device)

    assert client.delete("/api/checkout/upi/resume", headers=device).json() == {"ok": True}
    assert client.get("/api/checkout/upi/resume", headers=device).status_code == 404


def test_session_without_device_writes_no_mirror(client, checkout_payload, headers):
    _start_session(client, checkout_payload, headers)

    assert client.get("/api/checkout/upi/resume").status_code == 400
    assert CheckoutMirror(device_id="default").load() is None


def test_device_id_must_be_a_plain_token(client, checkout_payload, headers):
    response = client.post(
        "/api/checkout/upi/session", json=checkout_payload, headers={**headers, "x-device-id": "../../etc"},
    )

    assert response.status_code == 400
    assert _count(PendingPayment) == 0
