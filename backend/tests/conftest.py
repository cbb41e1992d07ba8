import json
import time

import httpx
import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app
from models.product import Product
from models.users import User
from services.catalog import ensure_unique_slug
from utils.hashing import get_password_hash
from utils.payment_client import StripeClient, compute_signature
from utils.tokenJWT import create_access_token

WEBHOOK_SECRET = "whsec_test_secret"
ADMIN_PASSWORD = "admin-pass"
PASSWORD = "secret123"

CUSTOMER = {
    "name": "Ana Pop",
    "address": "Str. Florilor 1",
    "phone": "0712345678",
    "city": "Cluj-Napoca",
    "county": "Cluj",
    "postalCode": "400001",
}


class StripeStub:
    """Stands in for the Stripe API behind an httpx.MockTransport."""

    def __init__(self):
        self.requests = []
        self.fail = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail:
            return httpx.Response(502, json={"error": {"message": "Stripe is down"}})
        session_id = f"cs_test_{len(self.requests)}"
        return httpx.Response(200, json={"id": session_id, "url": f"https://checkout.stripe.test/c/{session_id}"})

    @property
    def last_session_id(self) -> str:
        return f"cs_test_{len(self.requests)}"


class RecordingMailer:
    def __init__(self):
        self.order_confirmations = []
        self.email_confirmations = []
        self.fail = False

    async def send_order_confirmation(self, *, to, order):
        if self.fail:
            raise RuntimeError("SMTP unavailable")
        self.order_confirmations.append((to, order))

    async def send_confirmation_email(self, *, to, token):
        if self.fail:
            raise RuntimeError("SMTP unavailable")
        self.email_confirmations.append((to, token))


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        APP_ENV="test",
        DATABASE_URL=f"sqlite:///{tmp_path / 'shop.db'}",
        SECRET_KEY="test-secret",
        ADMIN_PASSWORD=ADMIN_PASSWORD,
        FRONTEND_URL="http://shop.test",
        BACKEND_URL="http://api.test",
        STRIPE_API_URL="https://stripe.test",
        STRIPE_SECRET_KEY="sk_test_123",
        STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET,
        REQUIRE_EMAIL_VERIFICATION=True,
    )


@pytest.fixture
def stripe_stub():
    return StripeStub()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def app(settings, stripe_stub, mailer):
    payment_client = StripeClient(settings, transport=httpx.MockTransport(stripe_stub.handler))
    return create_app(settings, payment_client=payment_client, mailer=mailer)


@pytest.fixture
def client(app):
    # Entering the client runs the lifespan, which creates the tables
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db(client, app):
    session = app.state.session_factory()
    yield session
    session.close()


@pytest.fixture
def make_product(db):
    def _make(name="Balon latex rosu", price_cents=300, stock=5, **fields):
        product = Product(
            name=name,
            slug=fields.pop("slug", None) or ensure_unique_slug(db, name),
            price_cents=price_cents,
            stock=stock,
            **fields,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture
def stock_of(db):
    def _stock(product_id):
        db.expire_all()
        return db.get(Product, product_id).stock

    return _stock


@pytest.fixture
def make_user(db):
    def _make(email="ana@example.com", password=PASSWORD, verified=True):
        user = User(email=email, password_hash=get_password_hash(password), email_verified=verified)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_headers(settings, make_user):
    def _headers(email="ana@example.com"):
        user = make_user(email=email)
        return {"Authorization": f"Bearer {create_access_token(settings, {'sub': user.id})}"}

    return _headers


@pytest.fixture
def user_headers(auth_headers):
    return auth_headers()


@pytest.fixture
def admin_headers(client):
    response = client.post("/admin/login", json={"password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


def sign(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp=None) -> str:
    timestamp = int(time.time()) if timestamp is None else timestamp
    return f"t={timestamp},v1={compute_signature(secret, timestamp, payload)}"


def session_event(event_type, order_id, session_id, payment_intent="pi_test_1"):
    return {
        "id": f"evt_{session_id}_{event_type}",
        "type": event_type,
        "data": {
            "object": {
                "id": session_id,
                "client_reference_id": order_id,
                "metadata": {"orderId": order_id},
                "payment_intent": payment_intent,
            }
        },
    }


@pytest.fixture
def post_webhook(client):
    def _post(event, secret=WEBHOOK_SECRET, signature=None):
        payload = json.dumps(event).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        header = signature if signature is not None else sign(payload, secret)
        if header:
            headers["Stripe-Signature"] = header
        return client.post("/payments/stripe/webhook", content=payload, headers=headers)

    return _post
