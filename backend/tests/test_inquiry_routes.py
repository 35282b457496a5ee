from app import models
from app.core.security import create_access_token_for_subject
from app.models.domain import InquiryStatus


def _create_via_api(client, parties, **overrides):
    body = {
        "supplierOrgId": parties.supplier.org_id,
        "marketplaceProductId": parties.product_id,
        "subject": "Recycled cells",
        "message": "Do you have stock?",
        "quantity": 1000,
        "targetPrice": 2.35,
        "targetCurrency": "usd",
    }
    body.update(overrides)
    return client.post("/api/inquiries", json=body)


def test_create_inquiry_returns_camel_case_detail(client, parties, login_as):
    login_as(parties.buyer)

    r = _create_via_api(client, parties)

    assert r.status_code == 201, r.text
    data = r.json()
    assert data["inquiryCode"].startswith("INQ-")
    assert data["status"] == "PENDING"
    assert data["buyerOrgId"] == parties.buyer.org_id
    assert data["supplierOrgId"] == parties.supplier.org_id
    assert data["targetCurrency"] == "USD"
    assert data["supplierOrg"]["code"] == "SUP"
    assert data["marketplaceProduct"]["inquiryCount"] == 1
    assert data["initiatedByUser"]["email"] == parties.buyer.email
    assert len(data["messages"]) == 1
    assert data["messages"][0]["messageType"] == "MESSAGE"
    assert data["messages"][0]["isRead"] is False


def test_create_inquiry_accepts_snake_case_body(client, parties, login_as):
    login_as(parties.buyer)

    r = client.post(
        "/api/inquiries",
        json={"supplier_org_id": parties.supplier.org_id, "subject": "Snake"},
    )

    assert r.status_code == 201, r.text
    assert r.json()["subject"] == "Snake"


def test_create_inquiry_validation_errors(client, parties, login_as):
    login_as(parties.buyer)

    r = client.post("/api/inquiries", json={"supplierOrgId": parties.supplier.org_id})
    assert r.status_code == 422

    r = _create_via_api(client, parties, targetCurrency="dollars")
    assert r.status_code == 422

    r = _create_via_api(client, parties, supplierOrgId=parties.buyer.org_id)
    assert r.status_code == 400
    assert r.json()["detail"] == "Cannot send inquiry to your own organization"


def test_get_inquiry_marks_counterpart_messages_read(client, parties, login_as):
    login_as(parties.buyer)
    inquiry_id = _create_via_api(client, parties).json()["id"]

    login_as(parties.supplier)
    assert client.get("/api/inquiries/unread-count").json() == {"unreadCount": 1}

    r = client.get(f"/api/inquiries/{inquiry_id}")
    assert r.status_code == 200
    messages = r.json()["messages"]
    assert messages[0]["isRead"] is True
    assert messages[0]["readAt"] is not None

    assert client.get("/api/inquiries/unread-count").json() == {"unreadCount": 0}


def test_third_organization_is_forbidden(client, parties, login_as):
    login_as(parties.buyer)
    inquiry_id = _create_via_api(client, parties).json()["id"]

    login_as(parties.outsider)
    assert client.get(f"/api/inquiries/{inquiry_id}").status_code == 403
    assert client.get(f"/api/inquiries/{inquiry_id}/messages").status_code == 403
    assert (
        client.post(
            f"/api/inquiries/{inquiry_id}/messages",
            json={"messageType": "MESSAGE", "content": "hi"},
        ).status_code
        == 403
    )
    assert client.get("/api/inquiries").json() == []


def test_missing_inquiry_is_not_found(client, parties, login_as):
    login_as(parties.buyer)
    r = client.get("/api/inquiries/9999")
    assert r.status_code == 404
    assert r.json()["detail"] == "Inquiry not found"


def test_received_requires_operator_or_admin(client, parties, login_as):
    login_as(parties.buyer)
    _create_via_api(client, parties)
    assert client.get("/api/inquiries/received").status_code == 403

    sent = client.get("/api/inquiries/sent")
    assert sent.status_code == 200
    assert len(sent.json()) == 1

    login_as(parties.supplier)
    received = client.get("/api/inquiries/received")
    assert received.status_code == 200
    assert [i["buyerOrg"]["code"] for i in received.json()] == ["BYR"]


def test_message_flow_drives_status(client, parties, login_as):
    login_as(parties.buyer)
    inquiry_id = _create_via_api(client, parties).json()["id"]

    login_as(parties.supplier)
    r = client.post(
        f"/api/inquiries/{inquiry_id}/messages",
        json={
            "messageType": "QUOTE",
            "content": "2.50 per cell",
            "quotePrice": 2.5,
            "quoteCurrency": "usd",
            "quotedLeadTimeDays": 14,
        },
    )
    assert r.status_code == 201, r.text
    assert r.json()["quoteCurrency"] == "USD"
    assert r.json()["senderOrgId"] == parties.supplier.org_id

    detail = client.get(f"/api/inquiries/{inquiry_id}").json()
    assert detail["status"] == InquiryStatus.RESPONDED.value
    assert detail["respondedAt"] is not None

    login_as(parties.buyer)
    r = client.post(
        f"/api/inquiries/{inquiry_id}/messages", json={"messageType": "ACCEPTANCE"}
    )
    assert r.status_code == 201

    detail = client.get(f"/api/inquiries/{inquiry_id}").json()
    assert detail["status"] == "ACCEPTED"
    assert detail["closedAt"] is not None

    r = client.post(
        f"/api/inquiries/{inquiry_id}/messages",
        json={"messageType": "MESSAGE", "content": "one more thing"},
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Cannot send messages to a closed inquiry"

    messages = client.get(f"/api/inquiries/{inquiry_id}/messages").json()
    assert [m["messageType"] for m in messages] == ["MESSAGE", "QUOTE", "ACCEPTANCE"]


def test_update_status_endpoint(client, parties, login_as):
    login_as(parties.buyer)
    inquiry_id = _create_via_api(client, parties).json()["id"]

    r = client.patch(f"/api/inquiries/{inquiry_id}/status", json={"status": "ACCEPTED"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Cannot transition from PENDING to ACCEPTED"

    r = client.patch(
        f"/api/inquiries/{inquiry_id}/status",
        json={"status": "REJECTED", "closeReason": "Found another supplier"},
    )
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "REJECTED"
    assert r.json()["closeReason"] == "Found another supplier"
    assert r.json()["closedAt"] is not None

    r = client.patch(f"/api/inquiries/{inquiry_id}/status", json={"status": "BOGUS"})
    assert r.status_code == 422


def test_mark_read_endpoint_returns_success(client, parties, login_as):
    login_as(parties.buyer)
    inquiry_id = _create_via_api(client, parties).json()["id"]

    login_as(parties.supplier)
    r = client.patch(f"/api/inquiries/{inquiry_id}/messages/read")
    assert r.status_code == 200
    assert r.json() == {"success": True}

    # Idempotent.
    r = client.patch(f"/api/inquiries/{inquiry_id}/messages/read")
    assert r.json() == {"success": True}


def test_list_all_inquiries_newest_first(client, parties, login_as):
    login_as(parties.buyer)
    first = _create_via_api(client, parties, subject="First").json()["id"]
    second = _create_via_api(client, parties, subject="Second").json()["id"]

    login_as(parties.supplier)
    r = client.get("/api/inquiries")
    assert r.status_code == 200
    assert [i["id"] for i in r.json()] == [second, first]


def test_requests_without_token_are_unauthorized(client, parties):
    assert client.get("/api/inquiries").status_code == 401
    assert client.get("/api/inquiries/unread-count").status_code == 401


def test_bearer_token_resolves_user_and_organization(client, parties, db_session):
    token = create_access_token_for_subject(parties.buyer.email)

    r = client.post(
        "/api/inquiries",
        json={"supplierOrgId": parties.supplier.org_id, "subject": "Token flow"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert r.status_code == 201, r.text
    assert r.json()["initiatedByUserId"] == parties.buyer.user_id

    r = client.get("/api/inquiries/sent", headers={"X-Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert len(r.json()) == 1

    r = client.get("/api/inquiries", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_user_without_organization_is_forbidden(client, parties, db_session):
    user = db_session.query(models.User).filter(models.User.email == parties.outsider.email).one()
    user.organization_id = None
    db_session.commit()

    token = create_access_token_for_subject(parties.outsider.email)
    r = client.get("/api/inquiries", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 403


def test_audit_rows_carry_the_response_request_id(client, parties, login_as, db_session):
    login_as(parties.buyer)

    generated = _create_via_api(client, parties)
    assert generated.status_code == 201
    supplied = client.post(
        "/api/inquiries",
        json={"supplierOrgId": parties.supplier.org_id, "subject": "Tagged"},
        headers={"X-Request-ID": "req-inq-7"},
    )
    assert supplied.status_code == 201

    db_session.expire_all()
    by_inquiry = {
        log.inquiry_id: log.request_id
        for log in db_session.query(models.AuditLog)
        .filter(models.AuditLog.action == "inquiry.created")
        .all()
    }
    assert by_inquiry[generated.json()["id"]] == generated.headers["X-Request-ID"]
    assert by_inquiry[generated.json()["id"]] is not None
    assert by_inquiry[supplied.json()["id"]] == "req-inq-7"
