"""ReconciliationService 상태 전이 테스트"""
import pytest

from core.responses import MalformedPayloadError
from services.event_classifier import EventKind, classify_event
from services.reconciliation_service import ReconciliationService

SCENARIO_PAYLOAD = {
    "id": "inv_1",
    "status": "PAID",
    "amount": 199,
    "customer": {"given_names": "A", "surname": "B", "email": "a@b.com"},
}


def _service(db, clock, mailer=None):
    return ReconciliationService(db, mail_service=mailer, clock=clock)


async def _reconcile(service, payload):
    return await service.reconcile(classify_event(payload), payload)


@pytest.mark.asyncio
async def test_paid_webhook_creates_user_and_subscription(db, clock, mailer):
    service = _service(db, clock, mailer)

    result = await _reconcile(service, SCENARIO_PAYLOAD)

    assert result.to_response() == {"status": "success"}
    assert result.created is True
    record = db.subscription_by_invoice("inv_1")
    assert (record["plan_id"], record["status"], record["payment_status"]) == ("basic", "active", "paid")
    assert len(mailer.confirmations) == 1
    assert mailer.confirmations[0][1]["email"] == "a@b.com"


@pytest.mark.asyncio
async def test_duplicate_paid_delivery_is_noop(db, clock, mailer):
    service = _service(db, clock, mailer)
    await _reconcile(service, SCENARIO_PAYLOAD)
    before = dict(db.subscription_by_invoice("inv_1"))

    result = await _reconcile(service, SCENARIO_PAYLOAD)

    assert result.to_response() == {"status": "already_processed"}
    assert db.subscription_by_invoice("inv_1") == before
    assert len(db.subscriptions) == 1
    assert len(mailer.confirmations) == 1


@pytest.mark.asyncio
async def test_paid_event_marks_pending_subscription(db, clock, mailer):
    user = db.seed_user(email="x@y.com", first_name="X", last_name="Y")
    db.seed_subscription(external_invoice_id="inv_2", user_id=user["id"], plan_id="pro")
    service = _service(db, clock, mailer)

    result = await _reconcile(service, {"event": "invoice.paid", "id": "inv_2", "payment_id": "pay_9"})

    assert result.status == "success"
    record = db.subscription_by_invoice("inv_2")
    assert (record["status"], record["payment_status"]) == ("active", "paid")
    assert record["external_payment_id"] == "pay_9"
    assert mailer.confirmations[0][2].id == "pro"


@pytest.mark.asyncio
async def test_concurrent_paid_update_reports_already_processed(db, clock):
    db.seed_subscription(external_invoice_id="inv_3")
    service = _service(db, clock)
    stale = await db.get_subscription_by_invoice_id("inv_3")
    # 다른 요청이 먼저 paid로 바꾼 뒤 조건부 갱신이 0건이 되는 경우
    db.subscription_by_invoice("inv_3")["payment_status"] = "paid"

    assert await service.apply_paid_transition(stale, "pay_1") is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "event, status, payment_status",
    [
        ("invoice.expired", "expired", "expired"),
        ("invoice.cancelled", "cancelled", "cancelled"),
        ("invoice.voided", "voided", "voided"),
        ("payment.failed", "failed", "failed"),
        ("payment.pending", "pending", "pending"),
    ],
)
async def test_status_transitions_overwrite(db, clock, event, status, payment_status):
    db.seed_subscription(external_invoice_id="inv_4", status="active", payment_status="paid")
    service = _service(db, clock)

    result = await _reconcile(service, {"event": event, "id": "inv_4"})

    assert result.status == "success"
    record = db.subscription_by_invoice("inv_4")
    assert (record["status"], record["payment_status"]) == (status, payment_status)


@pytest.mark.asyncio
async def test_expired_status_payload_flips_existing_subscription(db, clock):
    db.seed_subscription(external_invoice_id="inv_5")
    service = _service(db, clock)

    result = await _reconcile(service, {"id": "inv_5", "status": "EXPIRED"})

    assert result.to_response() == {"status": "success"}
    record = db.subscription_by_invoice("inv_5")
    assert (record["status"], record["payment_status"]) == ("expired", "expired")


@pytest.mark.asyncio
async def test_paid_after_expiry_reactivates(db, clock):
    db.seed_subscription(external_invoice_id="inv_6", status="expired", payment_status="expired")
    service = _service(db, clock)

    result = await _reconcile(service, {"event": "payment.after_expiry", "id": "inv_6"})

    assert result.status == "success"
    assert db.subscription_by_invoice("inv_6")["status"] == "active"


@pytest.mark.asyncio
async def test_status_change_for_unknown_invoice_creates_nothing(db, clock):
    service = _service(db, clock)

    result = await _reconcile(service, {"id": "inv_missing", "status": "EXPIRED"})

    assert result.status == "success"
    assert db.subscriptions == {}


@pytest.mark.asyncio
async def test_unknown_event_is_ignored(db, clock):
    result = await _reconcile(_service(db, clock), {"id": "inv_1", "foo": "bar"})

    assert result.event_kind == EventKind.UNKNOWN
    assert result.to_response() == {"status": "ignored"}


@pytest.mark.asyncio
async def test_refund_is_logged_only(db, clock):
    db.seed_subscription(external_invoice_id="inv_7", status="active", payment_status="paid")
    service = _service(db, clock)

    result = await _reconcile(service, {"id": "inv_7", "status": "COMPLETED", "type": "REFUND"})

    assert result.status == "success"
    assert db.subscription_updates == []
    assert db.logged_events[-1]["event_type"] == "refund.completed"


@pytest.mark.asyncio
async def test_missing_invoice_id_raises(db, clock):
    with pytest.raises(MalformedPayloadError):
        await _reconcile(_service(db, clock), {"status": "PAID", "amount": 199, "currency": "PHP"})


@pytest.mark.asyncio
async def test_uncreatable_paid_event_is_not_found(db, clock):
    result = await _reconcile(_service(db, clock), {"event": "invoice.paid", "id": "inv_8"})

    assert result.http_status == 404
    assert result.to_response() == {"error": "Subscription not found"}


@pytest.mark.asyncio
async def test_mail_failure_does_not_roll_back(db, clock, failing_mailer):
    service = _service(db, clock, failing_mailer)

    result = await _reconcile(service, SCENARIO_PAYLOAD)

    assert result.status == "success"
    assert db.subscription_by_invoice("inv_1")["payment_status"] == "paid"


@pytest.mark.asyncio
async def test_subscription_without_user_skips_mail(db, clock, mailer):
    service = _service(db, clock, mailer)

    result = await _reconcile(service, {"id": "inv_9", "status": "PAID", "amount": 399})

    assert result.status == "success"
    assert mailer.confirmations == []
