from datetime import timedelta

from bson import ObjectId

from eastlink.services.notifications_service import MAX_PER_USER, create_notification, unread_count
from eastlink.utils.serializers import utcnow


def test_keeps_newest_per_user(db):
    user_id = ObjectId()
    other = ObjectId()
    create_notification(db, other, "system", "Hi", "untouched")
    for i in range(MAX_PER_USER + 5):
        create_notification(db, user_id, "system", f"Note {i}", "message")

    assert db.notifications.count_documents({"user": user_id}) == MAX_PER_USER
    titles = {n["title"] for n in db.notifications.find({"user": user_id})}
    assert "Note 0" not in titles
    assert f"Note {MAX_PER_USER + 4}" in titles
    assert db.notifications.count_documents({"user": other}) == 1


def test_list_and_mark_read(client, db, make_user, auth):
    user = make_user()
    headers = auth(user)
    now = utcnow()
    for i in range(3):
        db.notifications.insert_one({"user": user["_id"], "type": "system", "title": f"N{i}", "message": "m",
                                     "data": {}, "is_read": False, "read_at": None,
                                     "created_at": now + timedelta(seconds=i)})

    data = client.get("/api/notifications/?limit=2", headers=headers).json()["data"]
    assert [n["title"] for n in data["notifications"]] == ["N2", "N1"]
    assert data["has_more"] is True
    assert data["unread_count"] == 3

    first = data["notifications"][0]["id"]
    assert client.put(f"/api/notifications/{first}/read", headers=headers).status_code == 200
    assert unread_count(db, user["_id"]) == 2

    unread = client.get("/api/notifications/?unread_only=true", headers=headers).json()["data"]
    assert unread["total"] == 2

    marked = client.put("/api/notifications/mark-all-read", headers=headers).json()["data"]
    assert marked["updated"] == 2
    assert unread_count(db, user["_id"]) == 0


def test_cannot_touch_others_notifications(client, db, make_user, auth):
    owner, stranger = make_user(), make_user()
    note = create_notification(db, owner["_id"], "system", "Private", "m")
    response = client.put(f"/api/notifications/{note['_id']}/read", headers=auth(stranger))
    assert response.status_code == 404
    response = client.delete(f"/api/notifications/{note['_id']}", headers=auth(stranger))
    assert response.status_code == 404


def test_delete_notification(client, db, make_user, auth):
    user = make_user()
    note = create_notification(db, user["_id"], "system", "Bye", "m")
    assert client.delete(f"/api/notifications/{note['_id']}", headers=auth(user)).status_code == 200
    assert db.notifications.count_documents({}) == 0


def test_user_notification_aliases(client, db, make_user, auth):
    user = make_user()
    note = create_notification(db, user["_id"], "system", "Alias", "m")
    data = client.get("/api/users/notifications", headers=auth(user)).json()["data"]
    assert data["total"] == 1
    assert client.put(f"/api/users/notifications/{note['_id']}/read", headers=auth(user)).status_code == 200
