"""
Notification inbox tests.

Verifies:
- Inbox is per account, newest first, with an unread count
- Marking read is scoped to the owner
- Admin fan-out reaches every active admin
"""

import pytest

from conftest import make_user
from sugarsphere.errors import ValidationError
from sugarsphere.extensions import db
from sugarsphere.models import Notification
from sugarsphere.models.auth import ROLE_ADMIN
from sugarsphere.services import notification_service


@pytest.fixture
def inbox(buyer, other_buyer):
    for i in range(3):
        notification_service.create_notification(buyer.id, "order", f"Title {i}", f"Message {i}")
    notification_service.create_notification(other_buyer.id, "system", "Welcome", "Hello Otto")
    return db.session.query(Notification).filter_by(user_id=buyer.id).order_by(Notification.id.asc()).all()


class TestInbox:

    def test_lists_own_notifications_newest_first(self, client, buyer_headers, inbox):
        resp = client.get('/api/notifications', headers=buyer_headers)
        assert resp.status_code == 200

        data = resp.get_json()["data"]
        assert [n["title"] for n in data["notifications"]] == ["Title 2", "Title 1", "Title 0"]
        assert data["unreadCount"] == 3
        assert all(n["read"] is False for n in data["notifications"])

    def test_requires_auth(self, client):
        assert client.get('/api/notifications').status_code == 401

    def test_mark_one_read(self, client, buyer_headers, inbox):
        resp = client.post(f'/api/notifications/read/{inbox[0].id}', headers=buyer_headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["read"] is True

        data = client.get('/api/notifications', headers=buyer_headers).get_json()["data"]
        assert data["unreadCount"] == 2

    def test_cannot_mark_someone_elses(self, client, other_headers, inbox):
        resp = client.post(f'/api/notifications/read/{inbox[0].id}', headers=other_headers)
        assert resp.status_code == 404
        assert resp.get_json()["message"] == "Notification not found"

        db.session.expire_all()
        assert db.session.get(Notification, inbox[0].id).is_read is False

    def test_mark_all_read(self, client, buyer_headers, other_buyer, inbox):
        resp = client.post('/api/notifications/read-all', headers=buyer_headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"updated": 3}

        again = client.post('/api/notifications/read-all', headers=buyer_headers)
        assert again.get_json()["data"] == {"updated": 0}

        # other accounts untouched
        assert db.session.query(Notification).filter_by(user_id=other_buyer.id, is_read=False).count() == 1


class TestFanOut:

    def test_notify_admins_reaches_active_admins_only(self, app, admin):
        second = make_user("Second Admin", "admin2@example.com", role=ROLE_ADMIN)
        retired = make_user("Retired Admin", "admin3@example.com", role=ROLE_ADMIN)
        retired.is_active = False
        db.session.commit()

        created = notification_service.notify_admins("inventory", "Low Stock Alert", "Fudge is running low (2 left)")

        assert sorted(n.user_id for n in created) == sorted([admin.id, second.id])
        assert db.session.query(Notification).filter_by(user_id=retired.id).count() == 0

    def test_rejects_unknown_type(self, app, buyer):
        with pytest.raises(ValidationError):
            notification_service.create_notification(buyer.id, "marketing", "Sale", "50% off")
        db.session.rollback()
