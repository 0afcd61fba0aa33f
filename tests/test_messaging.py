import pytest


@pytest.fixture
def conversation(client, customer):
    resp = client.post(
        "/api/messaging/conversations",
        json={"subject": "Order help", "message": "Where is my GPU?"},
        headers=customer["headers"],
    )
    assert resp.status_code == 201
    return resp.json()["conversation"]


def test_start_conversation(client, customer, conversation):
    assert conversation["status"] == "pending"
    assert conversation["last_message"] == "Where is my GPU?"
    assert conversation["last_message_sender"] == "customer"

    listing = client.get("/api/messaging/conversations", headers=customer["headers"]).json()
    assert [c["id"] for c in listing] == [conversation["id"]]
    assert listing[0]["unread_count"] == 0


def test_start_requires_subject_and_message(client, customer):
    resp = client.post("/api/messaging/conversations", json={"subject": "Hi"}, headers=customer["headers"])
    assert resp.status_code == 400


def test_staff_reply_activates_and_counts_as_unread(client, customer, gm, conversation):
    resp = client.post(
        f"/api/messaging/admin/conversations/{conversation['id']}/messages",
        json={"message_text": "It ships tomorrow."},
        headers=gm["headers"],
    )
    assert resp.status_code == 201
    assert resp.json()["sender_type"] == "admin"
    assert resp.json()["sender_name"] == "Staff GM001"

    listing = client.get("/api/messaging/conversations", headers=customer["headers"]).json()
    assert listing[0]["status"] == "active"
    assert listing[0]["assigned_to"] == gm["id"]
    assert listing[0]["unread_count"] == 1

    thread = client.get(f"/api/messaging/conversations/{conversation['id']}/messages", headers=customer["headers"])
    assert [m["sender_type"] for m in thread.json()] == ["customer", "admin"]
    listing = client.get("/api/messaging/conversations", headers=customer["headers"]).json()
    assert listing[0]["unread_count"] == 0


def test_non_participant_is_forbidden(client, make_user, conversation):
    other = make_user("mallory")
    path = f"/api/messaging/conversations/{conversation['id']}/messages"
    assert client.get(path, headers=other["headers"]).status_code == 403
    assert client.post(path, json={"message_text": "hi"}, headers=other["headers"]).status_code == 403


def test_customer_follow_up_and_staff_inbox(client, customer, gm, conversation):
    path = f"/api/messaging/conversations/{conversation['id']}/messages"
    resp = client.post(path, json={"message": "Any update?"}, headers=customer["headers"])
    assert resp.status_code == 201

    inbox = client.get("/api/messaging/admin/conversations", params={"status": "pending"}, headers=gm["headers"]).json()
    assert inbox[0]["unread_count"] == 2
    assert inbox[0]["customer_name"] == "alice"

    thread = client.get(f"/api/messaging/admin/conversations/{conversation['id']}", headers=gm["headers"]).json()
    assert [m["message_text"] for m in thread["messages"]] == ["Where is my GPU?", "Any update?"]
    inbox = client.get("/api/messaging/admin/conversations", headers=gm["headers"]).json()
    assert inbox[0]["unread_count"] == 0


def test_closed_conversation_rejects_messages(client, customer, gm, conversation):
    resp = client.patch(
        f"/api/messaging/admin/conversations/{conversation['id']}",
        json={"status": "closed", "priority": "high"},
        headers=gm["headers"],
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "closed"

    path = f"/api/messaging/conversations/{conversation['id']}/messages"
    assert client.post(path, json={"message_text": "hello?"}, headers=customer["headers"]).status_code == 400
    assert client.patch(
        f"/api/messaging/admin/conversations/{conversation['id']}", json={"status": "pending"}, headers=gm["headers"]
    ).status_code == 400


def test_direct_message_needs_linked_support_admin(client, customer, make_user, make_admin):
    resp = client.post("/api/messaging/send", json={"message_text": "Hello"}, headers=customer["headers"])
    assert resp.status_code == 503

    support_user = make_user("support")
    make_admin("SUP001", "ORDER_MANAGER", user_id=support_user["id"])
    resp = client.post(
        "/api/messaging/send", json={"message_text": "Hello", "subject": "Refund"}, headers=customer["headers"]
    )
    assert resp.status_code == 201
    message_id = resp.json()["data"]["id"]
    assert resp.json()["data"]["receiver_id"] == support_user["id"]

    inbox = client.get("/api/messaging/messages", headers=support_user["headers"]).json()
    assert [m["id"] for m in inbox] == [message_id]
    # only the receiver may mark it read
    assert client.patch(f"/api/messaging/messages/{message_id}/read", headers=customer["headers"]).status_code == 404
    resp = client.patch(f"/api/messaging/messages/{message_id}/read", headers=support_user["headers"])
    assert resp.json()["seen_status"] is True


def test_linked_user_token_reaches_staff_endpoints(client, make_user, make_admin, conversation):
    support_user = make_user("support")
    make_admin("SUP001", "ORDER_MANAGER", user_id=support_user["id"])
    resp = client.get("/api/messaging/admin/conversations", headers=support_user["headers"])
    assert resp.status_code == 200
    assert len(resp.json()) == 1


def test_linked_user_token_stays_out_of_the_admin_console(client, make_user, make_admin):
    support_user = make_user("support")
    make_admin("SUP001", "ORDER_MANAGER", user_id=support_user["id"])
    assert client.get("/api/admin/validate", headers=support_user["headers"]).status_code == 403
    assert client.get("/api/admin/orders", headers=support_user["headers"]).status_code == 403
    assert client.get("/api/qa/admin/stats", headers=support_user["headers"]).status_code == 200
