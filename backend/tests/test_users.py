"""
Admin account management tests.

Verifies:
- Only admins can list and edit accounts
- Admins cannot demote or block themselves
- Blocking signs the account out everywhere
- Every change leaves a before/after audit record
"""

import pytest

from conftest import PASSWORD, auth_headers, login
from sugarsphere.extensions import db
from sugarsphere.models import AuditLog, User


def _audit_entries(user_id):
    return db.session.query(AuditLog).filter_by(resource_type="user", resource_id=user_id).order_by(AuditLog.id).all()


class TestListUsers:

    def test_admin_lists_with_role_filter(self, client, admin_headers, buyer, other_buyer):
        resp = client.get('/api/users?role=user', headers=admin_headers)
        assert resp.status_code == 200

        data = resp.get_json()["data"]
        assert {u["email"] for u in data["users"]} == {buyer.email, other_buyer.email}
        assert data["pagination"]["total"] == 2

    def test_invalid_role_filter(self, client, admin_headers):
        resp = client.get('/api/users?role=superuser', headers=admin_headers)
        assert resp.status_code == 400

    def test_buyer_forbidden(self, client, buyer_headers):
        assert client.get('/api/users', headers=buyer_headers).status_code == 403

    def test_get_user(self, client, admin_headers, buyer):
        resp = client.get(f'/api/users/{buyer.id}', headers=admin_headers)
        assert resp.get_json()["data"]["email"] == buyer.email
        assert client.get('/api/users/999999', headers=admin_headers).status_code == 404


class TestEditUsers:

    def test_update_is_audited(self, client, admin, admin_headers, buyer):
        resp = client.put(f'/api/users/{buyer.id}', json={'name': 'Bella Renamed', 'isVerified': False},
                          headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["name"] == "Bella Renamed"

        entries = _audit_entries(buyer.id)
        assert len(entries) == 1
        entry = entries[0].to_dict()
        assert entry["action"] == "update"
        assert entry["actorUserId"] == admin.id
        assert entry["before"]["name"] == "Bella Buyer"
        assert entry["after"]["name"] == "Bella Renamed"
        assert entry["after"]["isVerified"] is False

    def test_change_role(self, client, admin_headers, buyer):
        resp = client.put(f'/api/users/{buyer.id}/role', json={'role': 'admin'}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["role"] == "admin"
        assert _audit_entries(buyer.id)[0].to_dict()["before"]["role"] == "user"

    @pytest.mark.parametrize("role", ["owner", "", None, 3])
    def test_change_role_invalid(self, client, admin_headers, buyer, role):
        resp = client.put(f'/api/users/{buyer.id}/role', json={'role': role}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Invalid role"

    def test_cannot_change_own_role(self, client, admin, admin_headers):
        resp = client.put(f'/api/users/{admin.id}/role', json={'role': 'user'}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Cannot change your own role"
        assert _audit_entries(admin.id) == []


class TestBlocking:

    def test_block_signs_out_and_unblock_restores(self, client, admin_headers, buyer):
        tokens = login(client, buyer.email)

        resp = client.put(f'/api/users/{buyer.id}/status', json={'isActive': False}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["message"] == "User blocked successfully"

        assert client.get('/api/auth/me', headers=auth_headers(tokens["accessToken"])).status_code == 401
        assert client.post('/api/auth/refresh', json={'refreshToken': tokens["refreshToken"]}).status_code == 401
        blocked_login = client.post('/api/auth/login', json={'email': buyer.email, 'password': PASSWORD})
        assert blocked_login.status_code == 403

        resp = client.put(f'/api/users/{buyer.id}/status', json={'isActive': True}, headers=admin_headers)
        assert resp.status_code == 200
        login(client, buyer.email)

        assert [e.action for e in _audit_entries(buyer.id)] == ["block", "unblock"]

    def test_cannot_block_self(self, client, admin, admin_headers):
        resp = client.put(f'/api/users/{admin.id}/status', json={'isActive': False}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Cannot block your own account"

        db.session.expire_all()
        assert db.session.get(User, admin.id).is_active is True

    def test_status_must_be_boolean(self, client, admin_headers, buyer):
        resp = client.put(f'/api/users/{buyer.id}/status', json={'isActive': 'no'}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "isActive must be a boolean"
