import hashlib
import hmac
import json
import os
import tempfile
import time

# Config antes de importar la app (settings se lee al importar)
_DB_DIR = tempfile.mkdtemp(prefix="featured-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_DB_DIR, "test.db").replace("\\", "/")
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["SITE_URL"] = "https://dir.test"
os.environ["CURRENCY"] = "sgd"

import pytest
from fastapi.testclient import TestClient

from featured_listings.db import Base, SessionLocal, engine
from featured_listings.main import app
from featured_listings.models.business import Business
from featured_listings.models.coupon import Coupon
from featured_listings.services.payment_gateway import CheckoutSession, get_gateway

WEBHOOK_SECRET = os.environ["STRIPE_WEBHOOK_SECRET"]
OWNER = "user-owner-1"


class FakeGateway:
    provider_name = "fake"

    def __init__(self):
        self.calls = []
        self.fail = None
        self.sessions = []

    def create_checkout_session(self, params):
        if self.fail is not None:
            raise self.fail
        self.calls.append(params)
        n = len(self.calls)
        return CheckoutSession(session_id=f"cs_test_{n}", url=f"https://checkout.stripe.test/c/{n}")

    def list_paid_sessions(self, since):
        return iter(self.sessions)


def sign(payload: str, secret: str = WEBHOOK_SECRET, ts=None) -> str:
    ts = int(ts if ts is not None else time.time())
    mac = hmac.new(secret.encode("utf-8"), f"{ts}.{payload}".encode("utf-8"), hashlib.sha256)
    return f"t={ts},v1={mac.hexdigest()}"


def checkout_session_obj(
    session_id="cs_test_a",
    business_id=1,
    user_id=OWNER,
    months=3,
    amount=7500,
    payment_intent="pi_test_a",
    coupon="",
    discount=0,
    payment_status="paid",
):
    return {
        "id": session_id,
        "object": "checkout.session",
        "payment_status": payment_status,
        "amount_total": amount,
        "currency": "sgd",
        "payment_intent": payment_intent,
        "total_details": {"amount_discount": discount},
        "metadata": {
            "business_id": str(business_id),
            "user_id": user_id,
            "duration_months": str(months),
            "coupon_code": coupon,
            "discount_amount": str(discount),
        },
    }


def charge_obj(
    charge_id="ch_test_a",
    business_id=1,
    user_id=OWNER,
    months=3,
    amount=7500,
    payment_intent="pi_test_a",
    coupon="",
):
    return {
        "id": charge_id,
        "object": "charge",
        "amount": amount,
        "amount_captured": amount,
        "currency": "sgd",
        "payment_intent": payment_intent,
        "metadata": {
            "business_id": str(business_id),
            "user_id": user_id,
            "duration_months": str(months),
            "coupon_code": coupon,
            "discount_amount": "0",
        },
    }


def event(event_type, obj, event_id=None):
    return {
        "id": event_id or f"evt_{obj['id']}_{event_type}",
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }


def to_payload(evt) -> str:
    return json.dumps(evt, separators=(",", ":"))


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db(fresh_db):
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(gateway):
    app.dependency_overrides[get_gateway] = lambda: gateway
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_business():
    def _make(status="approved", claimed_by=OWNER, website="https://biz.test", name="Warung Test"):
        with SessionLocal() as s:
            n = s.query(Business).count() + 1
            b = Business(
                name=f"{name} {n}",
                slug=f"warung-test-{n}",
                website=website,
                status=status,
                claimed_by=claimed_by,
            )
            s.add(b)
            s.commit()
            return b.id

    return _make


@pytest.fixture
def make_coupon():
    def _make(code="SAVE10", discount_type="percentage", value=10, **kw):
        with SessionLocal() as s:
            c = Coupon(
                code=code,
                discount_type=discount_type,
                discount_value=value,
                times_used=kw.pop("times_used", 0),
                is_active=kw.pop("is_active", True),
                **kw,
            )
            s.add(c)
            s.commit()
            return c.id

    return _make


@pytest.fixture
def post_webhook(client):
    def _post(evt, secret=WEBHOOK_SECRET, signature=None):
        payload = to_payload(evt)
        headers = {"Stripe-Signature": signature if signature is not None else sign(payload, secret)}
        r = client.post("/stripe/webhook", content=payload, headers=headers)
        try:
            js = r.json()
        except Exception:
            js = {}
        return r.status_code, js

    return _post
