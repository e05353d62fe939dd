import pytest

from crm.models import Notification
from crm.services.notifications import notify

pytestmark = pytest.mark.django_db

BASE = "/api/push-notification"


def test_list_and_mark_read(clinic_owner, agent, client_for):
    first = notify(clinic_owner, "First")
    notify(clinic_owner, "Second", type="lead", related_id=7)
    notify(agent, "Not yours")
    client = client_for(clinic_owner)

    r = client.get(f"{BASE}/reply-notifications")
    assert r.data["unreadCount"] == 2
    assert [n["message"] for n in r.data["notifications"]] == ["Second", "First"]
    assert r.data["notifications"][0]["relatedId"] == "7"

    r = client.post(f"{BASE}/mark-read", {"ids": [first.id]}, format="json")
    assert r.data["updated"] == 1
    r = client.get(f"{BASE}/reply-notifications", {"unread": "true"})
    assert [n["message"] for n in r.data["notifications"]] == ["Second"]

    client.post(f"{BASE}/mark-read", {}, format="json")
    assert client.get(f"{BASE}/reply-notifications").data["unreadCount"] == 0
    assert Notification.objects.filter(user=agent, is_read=False).count() == 1


def test_mark_read_validates_ids(clinic_owner, client_for):
    r = client_for(clinic_owner).post(f"{BASE}/mark-read", {"ids": "1,2"}, format="json")
    assert r.status_code == 400
    assert r.data["message"] == "ids must be an array"


def test_delete_notification(clinic_owner, agent, client_for):
    mine = notify(clinic_owner, "Mine")
    theirs = notify(agent, "Theirs")
    client = client_for(clinic_owner)
    assert client.delete(f"{BASE}/delete-notification?id={theirs.id}").status_code == 404
    assert client.delete(f"{BASE}/delete-notification?id={mine.id}").status_code == 200
    assert client.delete(f"{BASE}/delete-notification").status_code == 400
    assert Notification.objects.filter(id=theirs.id).exists()


def test_clear_all(clinic_owner, agent, client_for):
    notify(clinic_owner, "One")
    notify(clinic_owner, "Two")
    notify(agent, "Keep")
    r = client_for(clinic_owner).delete(f"{BASE}/clearAll-notification")
    assert r.data["deleted"] == 2
    assert Notification.objects.count() == 1


def test_notifications_require_authentication(client_for):
    assert client_for().get(f"{BASE}/reply-notifications").status_code in (401, 403)
