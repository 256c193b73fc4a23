import httpx
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from payrelay.models.webhook_log import WebhookDeliveryLog
from payrelay.relay.sender import DeliveryResult, RelaySender, backoff_ms

URL = "https://subscriber.test/hook"

def _payload() -> dict:
    return {"event_type": "payment_success", "payment_id": "PMT1", "amount": 39.0}

def _rows(db_session) -> list[WebhookDeliveryLog]:
    return list(db_session.scalars(select(WebhookDeliveryLog)).all())

def test_backoff_doubles_per_attempt():
    assert backoff_ms(1, 1000) == 2000
    assert backoff_ms(2, 1000) == 4000

async def test_first_attempt_success_logs_once(db_session, sender, subscriber, sleeper, make_profile):
    owner = make_profile("owner@example.com")

    result = await sender.deliver(URL, _payload(), owner.id, payment_id="PMT1")

    assert result == DeliveryResult(success=True, status=200, body="ok")
    assert len(subscriber.requests) == 1
    assert subscriber.requests[0].headers["content-type"] == "application/json"
    assert subscriber.payloads() == [_payload()]
    assert sleeper.calls == []

    rows = _rows(db_session)
    assert len(rows) == 1
    assert rows[0].success is True
    assert rows[0].response_status == 200
    assert rows[0].event_type == "payment_success"
    assert rows[0].source == "mercado_pago"
    assert rows[0].payment_id == "PMT1"
    assert rows[0].user_id == owner.id

async def test_two_failures_then_success(db_session, sender, subscriber, sleeper, make_profile):
    owner = make_profile("owner@example.com")
    subscriber.respond_with(500, 503, 200)

    result = await sender.deliver(URL, _payload(), owner.id)

    assert result.success is True
    assert result.status == 200
    assert len(subscriber.requests) == 3
    assert sleeper.calls == [2.0, 4.0]

    rows = _rows(db_session)
    assert len(rows) == 3
    assert sorted(r.success for r in rows) == [False, False, True]
    assert sorted(r.response_status for r in rows) == [200, 500, 503]

async def test_exhausted_retries_return_last_failure(db_session, sender, subscriber, sleeper, make_profile):
    owner = make_profile("owner@example.com")
    subscriber.respond_with(500, 500, (502, "bad gateway"))

    result = await sender.deliver(URL, _payload(), owner.id)

    assert result == DeliveryResult(success=False, status=502, body="bad gateway")
    assert len(subscriber.requests) == 3
    # no wait after the final attempt
    assert sleeper.calls == [2.0, 4.0]

    rows = _rows(db_session)
    assert len(rows) == 3
    assert all(r.success is False for r in rows)

async def test_transport_error_uses_status_zero(db_session, sender, subscriber, make_profile):
    owner = make_profile("owner@example.com")
    subscriber.respond_with(
        httpx.ConnectError("connection refused"),
        httpx.ConnectError("connection refused"),
        httpx.ConnectError("connection refused"),
    )

    result = await sender.deliver(URL, _payload(), owner.id)

    assert result.success is False
    assert result.status == 0
    assert result.body == "connection refused"

    rows = _rows(db_session)
    assert len(rows) == 3
    assert {r.response_status for r in rows} == {0}

async def test_response_body_truncated_to_limit(db_session, sender, subscriber, make_profile):
    owner = make_profile("owner@example.com")
    subscriber.respond_with((200, "x" * 5000))

    result = await sender.deliver(URL, _payload(), owner.id)

    assert len(result.body) == 1000
    row = _rows(db_session)[0]
    assert len(row.response_body) == 1000

async def test_attempt_budget_is_configurable(db_session, subscriber, sleeper, make_profile):
    owner = make_profile("owner@example.com")
    subscriber.respond_with(500, 500)
    sender = RelaySender(
        db_session,
        max_attempts=2,
        backoff_base_ms=10,
        transport=subscriber.transport,
        sleep=sleeper,
    )

    result = await sender.deliver(URL, _payload(), owner.id)

    assert result.success is False
    assert len(subscriber.requests) == 2
    assert sleeper.calls == [0.02]

async def test_audit_write_failure_does_not_break_delivery(
    db_session, sender, subscriber, make_profile, monkeypatch
):
    owner = make_profile("owner@example.com")

    def _boom(*args, **kwargs):
        raise OperationalError("insert", {}, Exception("db down"))

    monkeypatch.setattr("payrelay.relay.sender.append_delivery_log", _boom)

    result = await sender.deliver(URL, _payload(), owner.id)

    assert result.success is True
    assert _rows(db_session) == []
