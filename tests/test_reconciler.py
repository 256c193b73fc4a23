import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from payrelay.billing.ledger import upsert_payment
from payrelay.billing.processor import PaymentProcessorClient
from payrelay.billing.reconciler import PaymentReconciler, build_relay_payload
from payrelay.errors import PersistenceWarning, UpstreamLookupError, ValidationError
from payrelay.models.payment import PaymentRecord

@pytest.fixture()
def reconciler(db_session, processor_client, sender) -> PaymentReconciler:
    return PaymentReconciler(db_session, processor_client, sender)

async def test_rejects_non_object_notification(reconciler):
    with pytest.raises(ValidationError):
        await reconciler.reconcile(["payment"])

async def test_lookup_failure_raises(reconciler, db_session):
    with pytest.raises(UpstreamLookupError) as exc:
        await reconciler.reconcile({"type": "payment", "data": {"id": "nope"}})

    assert exc.value.upstream_status == 404
    assert db_session.scalars(select(PaymentRecord)).all() == []

async def test_upsert_failure_is_a_warning_not_an_abort(
    reconciler, db_session, processor, subscriber, make_profile, monkeypatch
):
    owner = make_profile("a@b.com", webhook_url="https://subscriber.test/hook")
    processor.add_payment("PMT1", status="approved", payer={"email": "a@b.com"}, transaction_amount=39.0)

    def _boom(*args, **kwargs):
        raise IntegrityError("insert", {}, Exception("constraint"))

    monkeypatch.setattr("payrelay.billing.reconciler.upsert_payment", _boom)

    with pytest.warns(PersistenceWarning):
        ack = await reconciler.reconcile({"type": "payment", "data": {"id": "PMT1"}})

    assert ack == {"success": True}
    db_session.refresh(owner)
    assert owner.is_premium is True
    assert len(subscriber.requests) == 1

def test_relay_payload_falls_back_to_email_reference():
    payload = build_relay_payload(
        {
            "id": 99,
            "status": "approved",
            "external_reference": "buyer@example.com",
            "transaction_amount": 39.0,
            "payment_method_id": "pix",
        }
    )

    assert payload["event_type"] == "payment_success"
    assert payload["payment_id"] == "99"
    assert payload["email"] == "buyer@example.com"
    assert payload["payment_method"] == "pix"
    assert payload["timestamp"].endswith("+00:00")

def test_relay_payload_never_uses_profile_id_as_email(make_profile):
    owner = make_profile("owner@example.com")
    payment = {"id": "PMT2", "status": "approved", "external_reference": str(owner.id)}

    assert build_relay_payload(payment)["email"] is None
    assert build_relay_payload(payment, owner)["email"] == "owner@example.com"

async def test_unreadable_amount_is_a_warning_not_an_abort(
    reconciler, db_session, processor, subscriber, make_profile
):
    owner = make_profile("a@b.com", webhook_url="https://subscriber.test/hook")
    processor.add_payment("PMT3", status="approved", payer={"email": "a@b.com"}, transaction_amount="n/a")

    with pytest.warns(PersistenceWarning):
        ack = await reconciler.reconcile({"type": "payment", "data": {"id": "PMT3"}})

    assert ack == {"success": True}
    assert db_session.scalars(select(PaymentRecord)).all() == []
    db_session.refresh(owner)
    assert owner.is_premium is True
    assert len(subscriber.requests) == 1

async def test_non_object_processor_body_is_a_lookup_failure():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=["PMT1"]))
    client = PaymentProcessorClient("TEST-token", "https://processor.test", transport=transport)

    with pytest.raises(UpstreamLookupError):
        await client.fetch_payment("PMT1")

async def test_non_object_processor_body_writes_nothing(db_session, sender):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json="approved"))
    client = PaymentProcessorClient("TEST-token", "https://processor.test", transport=transport)
    reconciler = PaymentReconciler(db_session, client, sender)

    with pytest.raises(UpstreamLookupError):
        await reconciler.reconcile({"type": "payment", "data": {"id": "PMT1"}})
    assert db_session.scalars(select(PaymentRecord)).all() == []

def test_upsert_overwrites_in_place(db_session):
    first = upsert_payment(
        db_session,
        payment_id="PMT9",
        email="a@b.com",
        status="pending",
        amount=10,
        payment_method=None,
        user_id=None,
    )
    second = upsert_payment(
        db_session,
        payment_id="PMT9",
        email="a@b.com",
        status="approved",
        amount=12.5,
        payment_method="credit_card",
        user_id=None,
    )

    assert first.id == second.id
    assert second.status == "approved"
    assert float(second.amount) == 12.5
    assert len(db_session.scalars(select(PaymentRecord)).all()) == 1
