import json
import os

# must be set before payrelay.config is imported
os.environ["DATABASE_URL"] = os.environ.get("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ["RATE_LIMIT_ENABLED"] = "false"

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import payrelay.models  # noqa: F401  registers tables on the metadata
from payrelay.auth.tokens import issue_access_token
from payrelay.billing.deps import get_processor, get_relay_sender
from payrelay.billing.processor import PaymentProcessorClient
from payrelay.db import Base, get_db
from payrelay.main import create_app
from payrelay.models.profile import Profile
from payrelay.models.webhook_subscription import WebhookSubscription
from payrelay.relay.sender import RelaySender

PROCESSOR_URL = "https://processor.test"

class FakeProcessor:
    """In-memory stand-in for the payment processor REST API."""

    def __init__(self):
        self.payments: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self.handle)

    def add_payment(self, payment_id: str, **fields) -> dict:
        payment = {"id": payment_id, **fields}
        self.payments[str(payment_id)] = payment
        return payment

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "GET" and path.startswith("/v1/payments/"):
            payment = self.payments.get(path.rsplit("/", 1)[-1])
            if payment is None:
                return httpx.Response(404, json={"message": "payment not found"})
            return httpx.Response(200, json=payment)
        if request.method == "POST" and path == "/checkout/preferences":
            body = json.loads(request.content)
            return httpx.Response(
                201,
                json={
                    "id": "pref_123",
                    "init_point": "https://processor.test/checkout/pref_123",
                    "external_reference": body.get("external_reference"),
                },
            )
        return httpx.Response(404)

class FakeSubscriber:
    """Scripted subscriber endpoint: each entry is a status code or an exception."""

    def __init__(self):
        self.script: list = []
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self.handle)

    def respond_with(self, *outcomes) -> None:
        self.script.extend(outcomes)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.script.pop(0) if self.script else 200
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, tuple):
            status, text = outcome
            return httpx.Response(status, text=text)
        return httpx.Response(outcome, text="ok" if outcome < 300 else "error")

    def payloads(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]

class SleepRecorder:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

@pytest.fixture()
def db_session() -> Session:
    database_url = os.environ["DATABASE_URL"]
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(database_url, pool_pre_ping=True)

    Base.metadata.create_all(engine)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session: Session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()

@pytest.fixture()
def processor() -> FakeProcessor:
    return FakeProcessor()

@pytest.fixture()
def subscriber() -> FakeSubscriber:
    return FakeSubscriber()

@pytest.fixture()
def sleeper() -> SleepRecorder:
    return SleepRecorder()

@pytest.fixture()
def processor_client(processor) -> PaymentProcessorClient:
    return PaymentProcessorClient("TEST-token", PROCESSOR_URL, transport=processor.transport)

@pytest.fixture()
def sender(db_session, subscriber, sleeper) -> RelaySender:
    return RelaySender(db_session, transport=subscriber.transport, sleep=sleeper)

@pytest.fixture()
def client(db_session: Session, processor_client, sender) -> TestClient:
    app = create_app()

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_processor] = lambda: processor_client
    app.dependency_overrides[get_relay_sender] = lambda: sender
    return TestClient(app)

@pytest.fixture()
def make_profile(db_session):
    def _make(email: str, *, webhook_url: str | None = None, active: bool = True) -> Profile:
        profile = Profile(email=email, full_name=email.split("@")[0])
        db_session.add(profile)
        db_session.flush()
        if webhook_url:
            db_session.add(WebhookSubscription(user_id=profile.id, webhook_url=webhook_url, is_active=active))
        db_session.commit()
        return profile

    return _make

def auth(profile: Profile) -> dict[str, str]:
    return {"authorization": f"bearer {issue_access_token(profile.id)}"}
