"""
Pytest fixtures for SugarSphere backend tests.

Provides an in-memory database, a test client, account and product
fixtures, a fake payment gateway (real HMAC checks, no network) and an
email outbox.
"""

import hashlib
import hmac
import itertools
import json

import pytest

from sugarsphere import create_app
from sugarsphere.extensions import db, limiter
from sugarsphere.models import Product
from sugarsphere.models.auth import ROLE_ADMIN
from sugarsphere.services import auth_service, email_service
from sugarsphere.services.payment_gateway import PaymentGateway

TEST_KEY_SECRET = "test_key_secret"
TEST_WEBHOOK_SECRET = "test_webhook_secret"
PASSWORD = "Password123"


class FakeGateway(PaymentGateway):
    """Issues charge intents locally. Signature checks are inherited unchanged."""

    def __init__(self):
        super().__init__(
            key_id="rzp_test_key",
            key_secret=TEST_KEY_SECRET,
            webhook_secret=TEST_WEBHOOK_SECRET,
        )
        self._ids = itertools.count(1)
        self.intents = []
        self.fail_with = None

    def reset(self):
        self.intents = []
        self.fail_with = None
        self.webhook_secret = TEST_WEBHOOK_SECRET

    def create_charge_intent(self, *, amount_cents, currency, receipt, notes=None):
        if self.fail_with is not None:
            raise self.fail_with
        intent = {
            "id": f"order_test_{next(self._ids)}",
            "amount": amount_cents,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
            "status": "created",
        }
        self.intents.append(intent)
        return intent


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'APP_ENV': 'testing',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'BCRYPT_ROUNDS': 4,
        'MAIL_SERVER': 'smtp.test.local',
        'MAIL_SUPPRESS_SEND': False,
        'MAIL_ASYNC': False,
        'WEBHOOK_ALLOW_UNSIGNED': False,
        'RATELIMIT_APPLICATION': '10000 per minute',
        'AUTH_RATE_LIMIT': '10000 per minute',
    })
    app.extensions["payment_gateway"] = FakeGateway()

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh data for each test."""
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    app.extensions["payment_gateway"].reset()
    limiter.reset()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def gateway(app):
    return app.extensions["payment_gateway"]


@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    """Capture outgoing email instead of talking SMTP."""
    sent = []
    monkeypatch.setattr(email_service, "_deliver", lambda app, message: sent.append(message))
    return sent


def make_user(name, email, *, role="user", password=PASSWORD):
    user = auth_service.create_user(name=name, email=email, password=password, role=role, is_verified=True)
    db.session.commit()
    return user


@pytest.fixture(scope='function')
def buyer(db_session):
    return make_user("Bella Buyer", "buyer@example.com")


@pytest.fixture(scope='function')
def other_buyer(db_session):
    return make_user("Otto Other", "other@example.com")


@pytest.fixture(scope='function')
def admin(db_session):
    return make_user("Ada Admin", "admin@example.com", role=ROLE_ADMIN)


def login(client, email, password=PASSWORD) -> dict:
    """Returns the tokens dict from a successful login."""
    response = client.post('/api/auth/login', json={'email': email, 'password': password})
    assert response.status_code == 200, response.get_json()
    return response.get_json()["data"]["tokens"]


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def buyer_headers(client, buyer):
    return auth_headers(login(client, buyer.email)["accessToken"])


@pytest.fixture(scope='function')
def other_headers(client, other_buyer):
    return auth_headers(login(client, other_buyer.email)["accessToken"])


@pytest.fixture(scope='function')
def admin_headers(client, admin):
    return auth_headers(login(client, admin.email)["accessToken"])


@pytest.fixture(scope='function')
def make_product(db_session):
    def _make(name="Dark Chocolate Bar", *, price_cents=100, quantity=5, category="chocolates", is_active=True):
        product = Product(
            name=name,
            category=category,
            price_cents=price_cents,
            quantity=quantity,
            is_active=is_active,
        )
        db.session.add(product)
        db.session.commit()
        return product
    return _make


def checkout_signature(intent_id: str, payment_id: str, secret: str = TEST_KEY_SECRET) -> str:
    return hmac.new(secret.encode(), f"{intent_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


def webhook_body(event: str, entity_kind: str, entity: dict) -> bytes:
    return json.dumps({"event": event, "payload": {entity_kind: {"entity": entity}}}).encode()


def webhook_headers(body: bytes, secret: str = TEST_WEBHOOK_SECRET) -> dict:
    signature = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return {"X-Razorpay-Signature": signature, "Content-Type": "application/json"}


def create_order(client, headers, items) -> dict:
    response = client.post('/api/orders/create', json={'items': items}, headers=headers)
    assert response.status_code == 201, response.get_json()
    return response.get_json()["data"]


def verify_order(client, headers, order_data: dict, payment_id: str = "pay_test_1", signature: str | None = None):
    if signature is None:
        signature = checkout_signature(order_data["chargeIntentId"], payment_id)
    return client.post('/api/orders/verify', json={
        'orderId': order_data["orderId"],
        'paymentId': payment_id,
        'signature': signature,
    }, headers=headers)
