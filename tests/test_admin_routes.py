from sqlmodel import Session, select

from receiptdesk.database import engine
from receiptdesk.models.payment import Payment
from receiptdesk.models.receipt import Receipt
from receiptdesk.models.reminder import Reminder
from receiptdesk.services.payment_service import record_qr_submission


def test_login_rejects_bad_password(client, admin_headers):
    response = client.post("/admin/login", json={"username": "admin", "password": "wrong"})
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Invalid credentials", "error": None}


def test_login_by_email(client, admin_headers):
    response = client.post(
        "/admin/login", json={"username": "admin@example.com", "password": "s3cret-pass"}
    )
    assert response.status_code == 200
    assert response.json()["admin"]["username"] == "admin"


def test_console_requires_admin_token(client, session, make_payment):
    assert client.get("/admin/payments").status_code == 401

    from receiptdesk.utils.token import CUSTOMER_SCOPE, create_access_token

    customer_token = create_access_token({"user_id": 1, "scope": CUSTOMER_SCOPE})
    response = client.get("/admin/payments", headers={"Authorization": f"Bearer {customer_token}"})
    assert response.status_code == 403


def test_list_and_filter_payments(client, admin_headers, session, make_payment):
    from receiptdesk.services.payment_service import admin_set_status

    paid = make_payment(amount=500)
    make_payment(amount=300)
    admin_set_status(session, paid, "completed")
    # legacy spelling written before normalization
    legacy = make_payment(amount=200)
    legacy.status = "success"
    session.add(legacy)
    session.commit()

    everything = client.get("/admin/payments", headers=admin_headers).json()
    assert everything["total_items"] == 3

    completed = client.get(
        "/admin/payments", params={"status": "completed"}, headers=admin_headers
    ).json()
    assert {p["id"] for p in completed["results"]} == {paid.id, legacy.id}
    assert completed["results"][0]["user"]["email"] == "asha@example.com"

    search = client.get(
        "/admin/payments", params={"search": paid.receipt_number}, headers=admin_headers
    ).json()
    assert [p["id"] for p in search["results"]] == [paid.id]


def test_stats(client, admin_headers, session, make_payment):
    from receiptdesk.services.payment_service import admin_set_status

    admin_set_status(session, make_payment(amount=500), "completed")
    make_payment(amount=100)

    overview = client.get("/admin/stats", headers=admin_headers).json()["overview"]
    assert overview["total_payments"] == 2
    assert overview["successful_payments"] == 1
    assert overview["total_revenue"] == 500
    assert overview["success_rate"] == 50


def test_status_override_issues_receipt(client, admin_headers, make_payment, outbox):
    payment = make_payment()

    response = client.patch(
        f"/admin/payments/{payment.id}/status", json={"status": "paid"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["payment"]["status"] == "completed"

    with Session(engine) as s:
        assert s.exec(select(Receipt).where(Receipt.payment_id == payment.id)).first()
    assert len(outbox) == 2

    invalid = client.patch(
        f"/admin/payments/{payment.id}/status", json={"status": "refunded"}, headers=admin_headers
    )
    assert invalid.status_code == 400


def test_approve_qr_payment(client, admin_headers, session, customer):
    payment = record_qr_submission(session, user=customer, amount=900, utr="UTR1234567890")

    response = client.post(f"/admin/payments/{payment.id}/approve", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["payment"]["status"] == "completed"

    again = client.post(f"/admin/payments/{payment.id}/approve", headers=admin_headers)
    assert again.json()["message"] == "Payment already approved"

    detail = client.get(f"/admin/payments/{payment.id}", headers=admin_headers).json()
    assert detail["receipt"]["payment_id"] == payment.id


def test_resend_receipt(client, admin_headers, session, make_payment, outbox):
    payment = make_payment()
    pending = client.post(f"/admin/payments/{payment.id}/resend-receipt", headers=admin_headers)
    assert pending.status_code == 400

    from receiptdesk.services.payment_service import admin_set_status

    admin_set_status(session, payment, "completed")
    response = client.post(f"/admin/payments/{payment.id}/resend-receipt", headers=admin_headers)
    assert response.status_code == 200
    assert [m["to"] for m in outbox] == ["asha@example.com", "operator@example.com"]

    receipts = client.get("/admin/receipts", headers=admin_headers).json()
    assert receipts["total_items"] == 1


def test_send_reminder(client, admin_headers, make_payment):
    payment = make_payment()

    missing = client.post(
        "/admin/send-reminder",
        json={"payment_id": 999, "channel": "email", "message": "Pay up"},
        headers=admin_headers,
    )
    assert missing.status_code == 400
    assert missing.json()["message"] == "Invalid payment id"

    whatsapp = client.post(
        "/admin/send-reminder",
        json={"payment_id": payment.id, "channel": "whatsapp", "message": "Pay up"},
        headers=admin_headers,
    )
    assert whatsapp.status_code == 200
    assert whatsapp.json()["success"] is False
    assert whatsapp.json()["reminder"]["status"] == "error"

    email = client.post(
        "/admin/send-reminder",
        json={"payment_id": payment.id, "channel": "email", "message": "Pay up"},
        headers=admin_headers,
    )
    assert email.json()["success"] is True

    log = client.get(
        "/admin/reminders", params={"payment_id": payment.id}, headers=admin_headers
    ).json()
    assert log["total_items"] == 2
    with Session(engine) as s:
        assert len(s.exec(select(Reminder)).all()) == 2


def test_user_management(client, admin_headers):
    created = client.post(
        "/admin/users",
        json={"name": "Ravi", "email": "ravi@example.com", "phone": "9123456780"},
        headers=admin_headers,
    ).json()["user"]
    assert created["mobile"] == "9123456780"

    same = client.post(
        "/admin/users",
        json={"name": "Ravi K", "email": "ravi@example.com", "phone": "9123456780"},
        headers=admin_headers,
    ).json()["user"]
    assert same["id"] == created["id"]

    updated = client.put(
        f"/admin/users/{created['id']}", json={"phone": "9000011111"}, headers=admin_headers
    ).json()["user"]
    assert updated["phone"] == updated["mobile"] == "9000011111"
    assert updated["name"] == "Ravi K"

    listing = client.get("/admin/users", params={"search": "ravi"}, headers=admin_headers).json()
    assert listing["total_items"] == 1

    assert client.put("/admin/users/999", json={"name": "x"}, headers=admin_headers).status_code == 404


def test_direct_receipt(client, admin_headers, outbox):
    response = client.post(
        "/admin/direct-receipt",
        json={
            "name": "Meera",
            "email": "meera@example.com",
            "phone": "9876501234",
            "amount": 1200,
            "payment_mode": "upi",
            "description": "Annual fee",
            "send_email": True,
        },
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")
    assert [m["to"] for m in outbox] == ["meera@example.com", "operator@example.com"]

    with Session(engine) as s:
        payment = s.exec(select(Payment)).one()
        assert payment.status == "completed"
        assert payment.details["description"] == "Annual fee"
        assert s.exec(select(Receipt).where(Receipt.payment_id == payment.id)).one()
