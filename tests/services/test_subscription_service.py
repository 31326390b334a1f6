"""SubscriptionService 구매/재확인 테스트"""
from types import SimpleNamespace

import pytest

from core.responses import ExternalServiceException, NotFoundException, ValidationException
from services.reconciliation_service import ReconciliationService
from services.subscription_service import SubscriptionService
from services.webhook_archive import InvoiceArchive
from services.xendit_client import XenditAPIError


class DummyXenditClient:
    def __init__(self, statuses=None, fail_create=False):
        self.statuses = statuses or {}
        self.fail_create = fail_create
        self.created = []

    async def create_invoice(self, payload):
        if self.fail_create:
            raise XenditAPIError("Xendit API server error.", 500)
        self.created.append(payload)
        return {"id": "inv_new", "invoice_url": "https://checkout.xendit.co/inv_new", **payload}

    async def get_invoice_snapshot(self, invoice_id):
        return {"status": self.statuses.get(invoice_id, "UNKNOWN"), "payment_id": f"pay_{invoice_id}"}


def _service(db, clock, client=None, mailer=None, archive=None):
    reconciliation = ReconciliationService(db, mail_service=mailer, clock=clock)
    return SubscriptionService(
        db,
        reconciliation,
        xendit_client=client,
        mail_service=mailer,
        invoice_archive=archive,
        clock=clock,
        success_redirect_url="https://app/success",
        failure_redirect_url="https://app/failure",
    )


def _auth_user(email="buyer@example.com", **metadata):
    return SimpleNamespace(id="auth-1", email=email, user_metadata=metadata)


def test_list_plans(db, clock):
    plans = _service(db, clock).list_plans()

    assert [p["id"] for p in plans] == ["basic", "pro", "enterprise"]
    assert plans[1]["price"] == 399.0


@pytest.mark.asyncio
async def test_create_subscription_builds_invoice_and_pending_row(db, clock, mailer, tmp_path):
    client = DummyXenditClient()
    service = _service(db, clock, client, mailer, InvoiceArchive(tmp_path, clock=clock))

    result = await service.create_subscription(_auth_user(full_name="Jane Doe"), "pro")

    invoice = client.created[0]
    assert invoice["external_id"].startswith("subscription-")
    assert invoice["amount"] == 399.0
    assert invoice["currency"] == "PHP"
    assert invoice["invoice_duration"] == 86400
    assert invoice["customer"] == {"given_names": "Jane", "surname": "Doe", "email": "buyer@example.com"}
    assert invoice["items"][0]["name"] == "Pro Plan"
    assert invoice["success_redirect_url"] == "https://app/success"

    subscription = result["subscription"]
    assert result["invoice_url"] == "https://checkout.xendit.co/inv_new"
    assert (subscription["status"], subscription["payment_status"]) == ("pending", "pending")
    assert subscription["external_invoice_id"] == "inv_new"
    assert len(mailer.invoices) == 1
    assert len(list(tmp_path.iterdir())) == 1


@pytest.mark.asyncio
async def test_create_subscription_unknown_plan(db, clock):
    with pytest.raises(ValidationException):
        await _service(db, clock, DummyXenditClient()).create_subscription(_auth_user(), "platinum")


@pytest.mark.asyncio
async def test_create_subscription_gateway_failure(db, clock):
    service = _service(db, clock, DummyXenditClient(fail_create=True))

    with pytest.raises(ExternalServiceException) as excinfo:
        await service.create_subscription(_auth_user(), "basic")

    assert excinfo.value.status_code == 502
    assert db.subscriptions == {}


@pytest.mark.asyncio
async def test_check_payment_marks_paid(db, clock, mailer):
    user = db.seed_user(email="a@b.com")
    record = db.seed_subscription(external_invoice_id="inv_1", user_id=user["id"])
    service = _service(db, clock, DummyXenditClient({"inv_1": "PAID"}), mailer)

    result = await service.check_payment_status(record["id"])

    assert result["outcome"] == "paid"
    assert result["subscription"]["payment_status"] == "paid"
    assert result["subscription"]["external_payment_id"] == "pay_inv_1"
    assert len(mailer.confirmations) == 1


@pytest.mark.asyncio
async def test_check_payment_already_paid(db, clock):
    record = db.seed_subscription(external_invoice_id="inv_1", status="active", payment_status="paid")

    result = await _service(db, clock, DummyXenditClient()).check_payment_status(record["id"])

    assert result["outcome"] == "already_paid"
    assert result["message"] == "Subscription is already paid"


@pytest.mark.asyncio
@pytest.mark.parametrize("status, outcome", [("PENDING", "pending"), ("UNKNOWN", "unknown")])
async def test_check_payment_not_paid(db, clock, status, outcome):
    record = db.seed_subscription(external_invoice_id="inv_1")
    service = _service(db, clock, DummyXenditClient({"inv_1": status}))

    result = await service.check_payment_status(record["id"])

    assert result["outcome"] == outcome
    assert db.subscription_by_invoice("inv_1")["payment_status"] == "pending"


@pytest.mark.asyncio
async def test_check_payment_not_found(db, clock):
    with pytest.raises(NotFoundException):
        await _service(db, clock, DummyXenditClient()).check_payment_status(404)


@pytest.mark.asyncio
async def test_check_payment_limited_to_owner(db, clock):
    owner = db.seed_user(email="a@b.com")
    record = db.seed_subscription(external_invoice_id="inv_1", user_id=owner["id"])
    service = _service(db, clock, DummyXenditClient({"inv_1": "PAID"}))

    with pytest.raises(NotFoundException):
        await service.check_payment_status(record["id"], auth_user=SimpleNamespace(id="x", email="c@d.com"))
    assert db.subscription_by_invoice("inv_1")["payment_status"] == "pending"

    result = await service.check_payment_status(record["id"], auth_user=SimpleNamespace(id="y", email="A@B.com"))
    assert result["outcome"] == "paid"


@pytest.mark.asyncio
async def test_fix_pending_all(db, clock):
    db.seed_subscription(external_invoice_id="inv_a")
    db.seed_subscription(external_invoice_id="inv_b")
    db.seed_subscription(external_invoice_id="inv_c", status="active", payment_status="paid")
    service = _service(db, clock, DummyXenditClient({"inv_a": "PAID", "inv_b": "EXPIRED"}))

    results = await service.fix_pending()

    outcomes = {row["external_invoice_id"]: row["outcome"] for row in results}
    assert outcomes == {"inv_a": "paid", "inv_b": "pending"}


@pytest.mark.asyncio
async def test_fix_pending_without_client_reports_unknown(db, clock):
    db.seed_subscription(external_invoice_id="inv_a")

    results = await _service(db, clock, client=None).fix_pending()

    assert results[0]["outcome"] == "unknown"


@pytest.mark.asyncio
async def test_resend_confirmation_requires_paid(db, clock, mailer):
    user = db.seed_user(email="a@b.com")
    pending = db.seed_subscription(external_invoice_id="inv_1", user_id=user["id"])
    paid = db.seed_subscription(external_invoice_id="inv_2", user_id=user["id"], payment_status="paid")
    service = _service(db, clock, mailer=mailer)

    with pytest.raises(ValidationException):
        await service.resend_payment_confirmation(pending["id"])

    assert await service.resend_payment_confirmation(paid["id"]) is True
    assert len(mailer.confirmations) == 1
