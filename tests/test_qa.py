import pytest


@pytest.fixture
def question(client, customer, make_product):
    product_id = make_product(name="B650 board")
    resp = client.post(
        f"/api/qa/product/{product_id}/questions",
        json={"question_text": "  Does it support DDR5?  ", "category": "compatibility"},
        headers=customer["headers"],
    )
    assert resp.status_code == 201
    return resp.json()["question"]


def test_new_question_is_pending_and_hidden(client, question):
    assert question["status"] == "pending"
    assert question["question_text"] == "Does it support DDR5?"
    assert question["customer_name"] == "alice"
    assert client.get(f"/api/qa/product/{question['product_id']}").json() == []


def test_question_validation(client, customer, make_product):
    product_id = make_product()
    resp = client.post(f"/api/qa/product/{product_id}/questions", json={"question_text": " "}, headers=customer["headers"])
    assert resp.status_code == 400
    resp = client.post("/api/qa/product/999/questions", json={"question_text": "Hi?"}, headers=customer["headers"])
    assert resp.status_code == 404


def test_unknown_category_falls_back_to_general(client, customer, make_product):
    product_id = make_product()
    resp = client.post(
        f"/api/qa/product/{product_id}/questions",
        json={"question_text": "Colour?", "category": "aesthetics"},
        headers=customer["headers"],
    )
    assert resp.json()["question"]["category"] == "general"


def test_published_answer_shows_on_product_page(client, gm, question):
    resp = client.post(
        f"/api/qa/admin/questions/{question['id']}/answer",
        json={"answer_text": "Yes, DDR5 only.", "is_published": True},
        headers=gm["headers"],
    )
    assert resp.status_code == 201
    assert resp.json()["answer"]["admin_name"] == "Staff GM001"

    page = client.get(f"/api/qa/product/{question['product_id']}").json()
    assert len(page) == 1
    assert page[0]["status"] == "published"
    assert [a["answer_text"] for a in page[0]["answers"]] == ["Yes, DDR5 only."]

    found = client.get("/api/qa/published", params={"search": "ddr5"}).json()
    assert [q["id"] for q in found] == [question["id"]]


def test_private_answer_reaches_only_the_asker(client, customer, gm, question):
    client.post(
        f"/api/qa/admin/questions/{question['id']}/answer",
        json={"answer_text": "Check the manual.", "send_to_customer": True},
        headers=gm["headers"],
    )
    assert client.get(f"/api/qa/product/{question['product_id']}").json() == []

    mine = client.get("/api/qa/my-questions", headers=customer["headers"]).json()
    assert mine[0]["status"] == "answered"
    assert [a["answer_text"] for a in mine[0]["answers"]] == ["Check the manual."]
    assert client.get("/api/qa/customer/questions", headers=customer["headers"]).json() == mine

    notes = client.get(
        "/api/notifications", params={"notification_type": "qa_answered"}, headers=customer["headers"]
    ).json()
    assert notes[0]["data"]["question_id"] == question["id"]


def test_unpublished_unsent_answer_is_hidden_from_asker(client, customer, gm, question):
    client.post(
        f"/api/qa/admin/questions/{question['id']}/answer", json={"answer_text": "Draft"}, headers=gm["headers"]
    )
    mine = client.get("/api/qa/my-questions", headers=customer["headers"]).json()
    assert mine[0]["answers"] == []


def test_publishing_an_answer_later_publishes_the_question(client, customer, gm, question):
    answer = client.post(
        f"/api/qa/admin/questions/{question['id']}/answer", json={"answer_text": "Draft"}, headers=gm["headers"]
    ).json()["answer"]
    resp = client.patch(
        f"/api/qa/admin/answers/{answer['id']}",
        json={"answer_text": "Final", "is_published": True, "send_to_customer": True},
        headers=gm["headers"],
    )
    assert resp.status_code == 200
    page = client.get(f"/api/qa/product/{question['product_id']}").json()
    assert page[0]["answers"][0]["answer_text"] == "Final"
    assert client.get("/api/notifications/unread-count", headers=customer["headers"]).json()["unread_count"] == 1


def test_staff_queue_and_stats(client, gm, question):
    assert client.patch(
        f"/api/qa/admin/questions/{question['id']}", json={"priority": "extreme"}, headers=gm["headers"]
    ).status_code == 400
    client.patch(f"/api/qa/admin/questions/{question['id']}", json={"priority": "urgent"}, headers=gm["headers"])

    queue = client.get("/api/qa/admin/pending", headers=gm["headers"]).json()
    assert [q["priority"] for q in queue] == ["urgent"]
    assert client.get("/api/qa/admin/pending", params={"priority": "low"}, headers=gm["headers"]).json() == []

    stats = client.get("/api/qa/admin/stats", headers=gm["headers"]).json()
    assert stats["pending"] == 1
    assert stats["high_priority_pending"] == 1
    assert stats["by_category"] == {"compatibility": 1}


def test_staff_endpoints_need_staff_token(client, customer):
    assert client.get("/api/qa/admin/pending", headers=customer["headers"]).status_code == 403
