"""
Pytest fixtures for storefront backend tests.

Provides an in-memory database, two tenants ("acme" and "other") each with an
admin, a customer and a product, a super admin, and token helpers.
"""

import pytest

from storefront import create_app
from storefront.extensions import db
from storefront.models import Customer, CustomerBankDetail, Product, Store, StoreStatus
from storefront.permissions import AdminRole
from storefront.services import auth_service
from storefront.services.tenant_service import Principal, StoreContext

PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'STORE_FALLBACK_ENABLED': False,
        'API_SUBDOMAIN': 'api',
        'PAYMENT_WEBHOOK_SECRET': 'whsec_test',
        'PAYMENT_KEY_ID': 'rzp_test_key',
        'PAYMENT_KEY_SECRET': 'key_secret_test',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _store(db_session, name, slug, status=StoreStatus.ACTIVE):
    store = Store(
        name=name,
        slug=slug,
        status=status,
        settings={"currency": "INR", "timezone": "Asia/Kolkata", "language": "en", "commission_rate": 8.0},
        seo={},
    )
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def store_a(db_session):
    """Tenant A: Acme (active)."""
    return _store(db_session, "Acme", "acme")


@pytest.fixture(scope='function')
def store_b(db_session):
    """Tenant B: Other (active)."""
    return _store(db_session, "Other", "other")


@pytest.fixture(scope='function')
def pending_store(db_session):
    return _store(db_session, "Pending Shop", "pending-shop", status=StoreStatus.PENDING)


def _admin(db_session, email, store_id, role=AdminRole.ADMIN, permissions=None):
    admin = auth_service.create_admin(
        name=email.split("@")[0],
        email=email,
        password=PASSWORD,
        store_id=store_id,
        role=role,
        permissions=permissions,
    )
    db_session.commit()
    return admin


@pytest.fixture(scope='function')
def admin_a(db_session, store_a):
    """Store admin of Acme with every permission."""
    return _admin(db_session, "admin@acme.test", store_a.id)


@pytest.fixture(scope='function')
def admin_b(db_session, store_b):
    return _admin(db_session, "admin@other.test", store_b.id)


@pytest.fixture(scope='function')
def limited_admin_a(db_session, store_a):
    """Acme admin that may only manage products."""
    return _admin(db_session, "catalog@acme.test", store_a.id, permissions=["products"])


@pytest.fixture(scope='function')
def super_admin(db_session):
    return _admin(db_session, "root@storefront.test", None, role=AdminRole.SUPER_ADMIN)


def _customer(db_session, store, email, first_name):
    customer = Customer(
        store_id=store.id,
        first_name=first_name,
        last_name="Tester",
        email=email,
        password_hash=auth_service.hash_password(PASSWORD),
        addresses=[],
    )
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def customer_a(db_session, store_a):
    return _customer(db_session, store_a, "alice@example.com", "Alice")


@pytest.fixture(scope='function')
def customer_b(db_session, store_b):
    return _customer(db_session, store_b, "bob@example.com", "Bob")


@pytest.fixture(scope='function')
def bank_detail_a(db_session, customer_a):
    detail = CustomerBankDetail(
        customer_id=customer_a.id,
        account_holder_name="Alice Tester",
        bank_name="State Bank",
        account_number="123456789012",
        ifsc_code="SBIN0000001",
        is_default=True,
    )
    db_session.add(detail)
    db_session.commit()
    return detail


def _product(db_session, store, sku, name, price_cents, quantity, track_quantity=True):
    product = Product(
        store_id=store.id,
        sku=sku,
        name=name,
        price_cents=price_cents,
        stock_quantity=quantity,
        track_quantity=track_quantity,
        status="active",
        images=[],
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_a(db_session, store_a):
    """Tracked product in Acme: 10 in stock at 1000 cents."""
    return _product(db_session, store_a, "ACME-001", "Acme Anvil", 1000, 10)


@pytest.fixture(scope='function')
def product_a2(db_session, store_a):
    return _product(db_session, store_a, "ACME-002", "Acme Rocket", 500, 4)


@pytest.fixture(scope='function')
def untracked_product_a(db_session, store_a):
    return _product(db_session, store_a, "ACME-DIGI", "Acme Manual (PDF)", 200, 0, track_quantity=False)


@pytest.fixture(scope='function')
def product_b(db_session, store_b):
    return _product(db_session, store_b, "OTHER-001", "Other Widget", 2000, 5)


@pytest.fixture(scope='function')
def ctx_a(admin_a):
    """Service-level context for Acme's admin."""
    return StoreContext(admin_a.store_id, Principal.ADMIN, admin=admin_a, source="credential")


@pytest.fixture(scope='function')
def ctx_b(admin_b):
    return StoreContext(admin_b.store_id, Principal.ADMIN, admin=admin_b, source="credential")


def get_admin_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get an admin token."""
    response = client.post('/api/auth/admin/login', json={
        'email': email,
        'password': password,
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def get_customer_token(client, store_slug: str, email: str, password: str = PASSWORD) -> str:
    """Helper to get a customer token for a storefront."""
    response = client.post(f'/api/auth/customer/login?store={store_slug}', json={
        'email': email,
        'password': password,
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str, store_id: int | None = None) -> dict:
    """Helper to create Authorization headers."""
    headers = {'Authorization': f'Bearer {token}'}
    if store_id is not None:
        headers['X-Store-ID'] = str(store_id)
    return headers
