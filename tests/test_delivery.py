import pytest


@pytest.fixture
def ready(make_user, make_product, make_order):
    seller = make_user("seller")
    customer = make_user()
    product = make_product(seller)
    return {
        "customer": customer,
        "seller": seller,
        "product": product,
        "agent": make_user("delivery_agent"),
        "order": make_order(customer, product, order_status="ready_for_pickup"),
    }


def test_available_lists_unassigned_ready_orders(client, ready, make_order, auth):
    make_order(ready["customer"], ready["product"], order_status="pending")
    data = client.get("/api/delivery/available", headers=auth(ready["agent"])).json()["data"]
    assert data["total"] == 1
    assert data["orders"][0]["id"] == str(ready["order"]["_id"])


def test_available_requires_agent(client, ready, auth):
    assert client.get("/api/delivery/available", headers=auth(ready["customer"])).status_code == 403


def test_unapproved_agent_blocked(client, make_user, auth):
    agent = make_user("delivery_agent", is_approved=False)
    response = client.get("/api/delivery/available", headers=auth(agent))
    assert response.status_code == 403


def test_full_delivery_flow(client, db, ready, auth):
    headers = auth(ready["agent"])
    order_id = ready["order"]["_id"]

    accepted = client.post(f"/api/delivery/{order_id}/accept", headers=headers)
    assert accepted.status_code == 200
    assert accepted.json()["data"]["order_status"] == "dispatched"

    location = client.put(f"/api/delivery/{order_id}/location",
                          json={"latitude": 9.31, "longitude": 42.12}, headers=headers)
    assert location.status_code == 200

    picked = client.put(f"/api/delivery/{order_id}/status", json={"status": "picked_up"}, headers=headers)
    assert picked.json()["data"]["order_status"] == "in_transit"

    done = client.post(f"/api/delivery/{order_id}/complete",
                       json={"delivery_notes": "Left with the guard"}, headers=headers)
    assert done.status_code == 200
    order = done.json()["data"]
    assert order["order_status"] == "delivered"
    assert order["payment_status"] == "paid"
    assert order["actual_delivery_time"]
    assert order["notes"]["delivery"] == "Left with the guard"
    statuses = [u["status"] for u in order["tracking_updates"]]
    assert statuses == ["dispatched", "location_update", "in_transit", "delivered"]

    agent = db.users.find_one({"_id": ready["agent"]["_id"]})
    assert agent["earnings"] == {"total": 40.0, "deliveries": 1}


def test_accept_twice(client, ready, make_user, auth):
    order_id = ready["order"]["_id"]
    client.post(f"/api/delivery/{order_id}/accept", headers=auth(ready["agent"]))
    response = client.post(f"/api/delivery/{order_id}/accept", headers=auth(make_user("delivery_agent")))
    assert response.status_code == 400


def test_accept_not_ready(client, ready, make_order, auth):
    order = make_order(ready["customer"], ready["product"], order_status="preparing")
    response = client.post(f"/api/delivery/{order['_id']}/accept", headers=auth(ready["agent"]))
    assert response.status_code == 400
    assert response.json()["message"] == "Order is not ready for pickup"


def test_only_assigned_agent_updates(client, ready, make_user, auth):
    order_id = ready["order"]["_id"]
    client.post(f"/api/delivery/{order_id}/accept", headers=auth(ready["agent"]))
    other = make_user("delivery_agent")
    response = client.put(f"/api/delivery/{order_id}/status", json={"status": "picked_up"}, headers=auth(other))
    assert response.status_code == 403


def test_complete_requires_in_transit(client, db, ready, auth):
    order_id = ready["order"]["_id"]
    headers = auth(ready["agent"])
    client.post(f"/api/delivery/{order_id}/accept", headers=headers)
    response = client.post(f"/api/delivery/{order_id}/complete", headers=headers)
    assert response.status_code == 400
    assert db.users.find_one({"_id": ready["agent"]["_id"]})["earnings"]["deliveries"] == 0


def test_failed_is_recorded_and_escalated(client, db, ready, make_user, auth):
    admin = make_user("admin")
    order_id = ready["order"]["_id"]
    headers = auth(ready["agent"])
    client.post(f"/api/delivery/{order_id}/accept", headers=headers)

    response = client.put(f"/api/delivery/{order_id}/status",
                          json={"status": "failed", "notes": "Nobody home"}, headers=headers)
    assert response.status_code == 200
    order = response.json()["data"]
    assert order["order_status"] == "dispatched"
    assert order["tracking_updates"][-1]["status"] == "delivery_failed"
    assert db.notifications.count_documents({"user": admin["_id"], "type": "delivery_failed"}) == 1


def test_delivered_via_status_credits_agent(client, db, ready, auth):
    order_id = ready["order"]["_id"]
    headers = auth(ready["agent"])
    client.post(f"/api/delivery/{order_id}/accept", headers=headers)
    client.put(f"/api/delivery/{order_id}/status", json={"status": "in_transit"}, headers=headers)
    client.put(f"/api/orders/{order_id}/delivery-status", json={"status": "delivered"}, headers=headers)
    assert db.orders.find_one({"_id": order_id})["order_status"] == "delivered"
    assert db.users.find_one({"_id": ready["agent"]["_id"]})["earnings"]["total"] == 40.0


def test_report_issue(client, db, ready, make_user, auth):
    admin = make_user("admin")
    order_id = ready["order"]["_id"]
    headers = auth(ready["agent"])
    client.post(f"/api/delivery/{order_id}/accept", headers=headers)

    response = client.post(f"/api/delivery/{order_id}/issue",
                           json={"type": "address_issue", "description": "Gate number does not exist"},
                           headers=headers)
    assert response.status_code == 200
    order = db.orders.find_one({"_id": order_id})
    assert order["issues"][0]["status"] == "open"
    assert db.notifications.count_documents({"user": admin["_id"], "type": "delivery_issue"}) == 1


def test_availability(client, db, ready, auth):
    response = client.put("/api/delivery/availability",
                          json={"is_available": False, "working_hours": {"start": "08:00", "end": "17:30"}},
                          headers=auth(ready["agent"]))
    assert response.status_code == 200
    agent = db.users.find_one({"_id": ready["agent"]["_id"]})
    assert agent["is_available"] is False
    assert agent["working_hours"] == {"start": "08:00", "end": "17:30"}


def test_history_stats_and_earnings(client, ready, auth):
    headers = auth(ready["agent"])
    order_id = ready["order"]["_id"]
    client.post(f"/api/delivery/{order_id}/accept", headers=headers)
    client.put(f"/api/delivery/{order_id}/status", json={"status": "picked_up"}, headers=headers)
    client.post(f"/api/delivery/{order_id}/complete", headers=headers)

    history = client.get("/api/delivery/history", headers=headers).json()["data"]
    assert history["total"] == 1
    assert client.get("/api/delivery/stats", headers=headers).status_code == 200
    assert client.get("/api/delivery/earnings?period=7d", headers=headers).status_code == 200
    assert client.get("/api/delivery/stats?period=1y", headers=headers).status_code == 400


def test_assigned_agent_accepts_and_delivers(client, db, ready, make_user, auth):
    admin = make_user("admin")
    order_id = ready["order"]["_id"]
    client.put(f"/api/admin/orders/{order_id}/status",
               json={"delivery_agent_id": str(ready["agent"]["_id"])}, headers=auth(admin))

    other = client.post(f"/api/delivery/{order_id}/accept", headers=auth(make_user("delivery_agent")))
    assert other.status_code == 400

    headers = auth(ready["agent"])
    accepted = client.post(f"/api/delivery/{order_id}/accept", headers=headers)
    assert accepted.status_code == 200
    assert accepted.json()["data"]["order_status"] == "dispatched"

    picked = client.put(f"/api/delivery/{order_id}/status", json={"status": "picked_up"}, headers=headers)
    assert picked.json()["data"]["order_status"] == "in_transit"
    assert client.post(f"/api/delivery/{order_id}/complete", headers=headers).status_code == 200
    assert db.orders.find_one({"_id": order_id})["order_status"] == "delivered"
