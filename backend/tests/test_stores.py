"""
Store administration tests: super admin store lifecycle and the health
endpoint.
"""

import pytest

from storefront.errors import BadRequestError, ConflictError
from storefront.extensions import db
from storefront.models import Admin, SecurityEvent, Store, StoreStatus
from storefront.services import store_service

from conftest import auth_headers, get_admin_token


def _new_store_payload(**overrides):
    payload = {
        'name': 'Bright Books',
        'slug': 'bright-books',
        'admin_name': 'Bright Owner',
        'admin_email': 'owner@bright.test',
    }
    payload.update(overrides)
    return payload


# =============================================================================
# CREATE
# =============================================================================

class TestCreateStore:

    def test_create_with_generated_password(self, client, super_admin):
        token = get_admin_token(client, super_admin.email)
        response = client.post('/api/stores', json=_new_store_payload(), headers=auth_headers(token))

        assert response.status_code == 201
        body = response.json
        assert body["store"]["status"] == StoreStatus.PENDING
        assert body["store"]["settings"]["commission_rate"] == 8.0
        assert body["admin"]["store_id"] == body["store"]["id"]
        assert body["generated_password"]

        login = client.post('/api/auth/admin/login', json={
            'email': 'owner@bright.test',
            'password': body["generated_password"],
        })
        assert login.status_code == 200

    def test_supplied_password_is_not_echoed(self, client, super_admin):
        token = get_admin_token(client, super_admin.email)
        response = client.post(
            '/api/stores',
            json=_new_store_payload(admin_password='Chosen123!'),
            headers=auth_headers(token),
        )
        assert response.status_code == 201
        assert "generated_password" not in response.json

    def test_missing_fields_rejected(self, client, super_admin):
        token = get_admin_token(client, super_admin.email)
        response = client.post('/api/stores', json={'name': 'X'}, headers=auth_headers(token))
        assert response.status_code == 400

    @pytest.mark.parametrize("name,slug", [
        ("acme", "fresh-slug"),
        ("Fresh Name", "acme"),
    ])
    def test_duplicate_name_or_slug_conflicts(self, store_a, name, slug):
        with pytest.raises(ConflictError) as exc:
            store_service.create_store(
                name=name, slug=slug, admin_name="Owner", admin_email="o@fresh.test"
            )
        assert exc.value.message == "Store with this name or slug already exists"

    @pytest.mark.parametrize("slug", ["has spaces", "-leading", "trailing-", ""])
    def test_invalid_slug_rejected(self, db_session, slug):
        with pytest.raises(BadRequestError):
            store_service.create_store(
                name="Fresh", slug=slug, admin_name="Owner", admin_email="o@fresh.test"
            )

    def test_duplicate_admin_email_conflicts(self, admin_a):
        with pytest.raises(ConflictError):
            store_service.create_store(
                name="Fresh", slug="fresh", admin_name="Owner", admin_email=admin_a.email.upper()
            )
        assert db.session.query(Store).filter_by(slug="fresh").count() == 0


# =============================================================================
# STATUS, DELETE, PASSWORD RESET
# =============================================================================

class TestStoreLifecycle:

    def test_activate_pending_store(self, client, super_admin, pending_store):
        token = get_admin_token(client, super_admin.email)
        response = client.patch(
            f'/api/stores/{pending_store.id}/status',
            json={'status': 'active'},
            headers=auth_headers(token),
        )
        assert response.status_code == 200
        assert client.get('/api/stores/public/pending-shop').status_code == 200

    def test_invalid_status_rejected(self, client, super_admin, store_a):
        token = get_admin_token(client, super_admin.email)
        response = client.patch(
            f'/api/stores/{store_a.id}/status',
            json={'status': 'archived'},
            headers=auth_headers(token),
        )
        assert response.status_code == 400

    def test_delete_store_with_customers_conflicts(self, client, super_admin, customer_a):
        token = get_admin_token(client, super_admin.email)
        response = client.delete(f'/api/stores/{customer_a.store_id}', headers=auth_headers(token))
        assert response.status_code == 409
        assert db.session.get(Store, customer_a.store_id) is not None

    def test_delete_empty_store_removes_admins(self, client, super_admin, admin_a, product_a):
        store_id = admin_a.store_id
        admin_token = get_admin_token(client, admin_a.email)
        token = get_admin_token(client, super_admin.email)

        response = client.delete(f'/api/stores/{store_id}', headers=auth_headers(token))
        assert response.status_code == 200
        assert response.json["deleted_admins"] == 1

        db.session.expire_all()
        assert db.session.get(Store, store_id) is None
        assert db.session.query(Admin).filter_by(store_id=store_id).count() == 0
        assert client.get('/api/products', headers=auth_headers(admin_token)).status_code == 401

    def test_reset_password_revokes_sessions(self, client, super_admin, admin_a):
        old_token = get_admin_token(client, admin_a.email)
        token = get_admin_token(client, super_admin.email)

        response = client.post(f'/api/stores/{admin_a.store_id}/reset-password', headers=auth_headers(token))
        assert response.status_code == 200
        new_password = response.json["new_password"]

        assert client.get('/api/products', headers=auth_headers(old_token)).status_code == 401
        assert get_admin_token(client, admin_a.email, password=new_password)

        events = db.session.query(SecurityEvent).filter_by(event_type="ADMIN_PASSWORD_RESET").all()
        assert len(events) == 1
        assert events[0].admin_id == super_admin.id

    def test_list_and_search(self, client, super_admin, store_a, store_b, pending_store):
        token = get_admin_token(client, super_admin.email)
        response = client.get('/api/stores?status=pending', headers=auth_headers(token))
        assert [s["slug"] for s in response.json["items"]] == ["pending-shop"]

        response = client.get('/api/stores?search=acm', headers=auth_headers(token))
        assert [s["slug"] for s in response.json["items"]] == ["acme"]


# =============================================================================
# HEALTH
# =============================================================================

class TestHealth:

    def test_health_reports_checks(self, client, store_a):
        response = client.get('/api/health')
        assert response.status_code == 200
        assert response.json["status"] == "healthy"
        assert response.json["checks"]["database"]["details"]["active_stores"] == 1
        assert response.json["checks"]["session_service"]["status"] == "healthy"
