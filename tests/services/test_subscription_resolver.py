"""SubscriptionResolver 테스트"""
from datetime import datetime, timezone

import pytest

from services.event_classifier import classify_event
from services.payload_extractors import CustomerName
from services.subscription_resolver import SubscriptionResolver, add_one_month

PAID = classify_event({"event": "invoice.paid"})
EXPIRED = classify_event({"event": "invoice.expired"})


def test_add_one_month_clamps_to_month_end():
    assert add_one_month(datetime(2024, 1, 31, tzinfo=timezone.utc)) == datetime(2024, 2, 29, tzinfo=timezone.utc)
    assert add_one_month(datetime(2023, 12, 15)) == datetime(2024, 1, 15)


@pytest.mark.asyncio
async def test_existing_subscription_is_returned(db, clock):
    existing = db.seed_subscription(external_invoice_id="inv_1")
    resolver = SubscriptionResolver(db, clock=clock)

    resolved = await resolver.resolve(PAID, {"id": "inv_1"}, "inv_1")

    assert resolved.record["id"] == existing["id"]
    assert resolved.created is False


@pytest.mark.asyncio
async def test_non_paid_event_never_creates(db, clock):
    resolver = SubscriptionResolver(db, clock=clock)

    assert await resolver.resolve(EXPIRED, {"id": "inv_1", "amount": 199}, "inv_1") is None
    assert db.subscriptions == {}


@pytest.mark.asyncio
async def test_creates_user_and_subscription_from_paid_payload(db, clock):
    resolver = SubscriptionResolver(db, clock=clock)
    payload = {
        "id": "inv_1",
        "status": "PAID",
        "amount": 199,
        "customer": {"given_names": "A", "surname": "B", "email": "A@b.com"},
    }

    resolved = await resolver.resolve(PAID, payload, "inv_1")

    assert resolved.created is True
    record = resolved.record
    assert record["plan_id"] == "basic"
    assert record["status"] == "active"
    assert record["payment_status"] == "paid"
    assert record["external_payment_id"] == "inv_1"
    assert record["currency"] == "PHP"
    assert record["start_date"] == "2024-01-31T09:30:00+00:00"
    assert record["end_date"] == "2024-02-29T09:30:00+00:00"

    user = await db.get_user_by_email("a@b.com")
    assert (user["first_name"], user["last_name"]) == ("A", "B")
    assert user["password"].startswith("!")
    assert record["user_id"] == user["id"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, plan",
    [
        ({"amount": 399}, "pro"),
        ({"amount": 999}, "enterprise"),
        ({"amount": 100000, "currency": "IDR"}, "pro"),
        ({"amount": 123}, "unknown"),
        ({"amount": 199, "items": [{"name": "ENTERPRISE plan"}]}, "enterprise"),
        ({"amount": 999, "items": [{"name": "Pro Plan"}]}, "pro"),
        ({"amount": 999, "items": [{"name": "Subscription Product"}]}, "enterprise"),
        ({"amount": 199, "items": [{"name": "Promo bundle"}]}, "basic"),
    ],
)
async def test_plan_inference(db, clock, payload, plan):
    resolver = SubscriptionResolver(db, clock=clock)

    resolved = await resolver.create_from_webhook({"id": "inv_x", **payload}, "inv_x")

    assert resolved.record["plan_id"] == plan


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [None, 0, -5, "abc", "NaN", "sNaN", "Infinity"])
async def test_creation_refused_without_positive_amount(db, clock, amount):
    resolver = SubscriptionResolver(db, clock=clock)

    assert await resolver.create_from_webhook({"id": "inv_1", "amount": amount}, "inv_1") is None
    assert db.subscriptions == {}


@pytest.mark.asyncio
async def test_no_email_creates_subscription_without_user(db, clock):
    resolver = SubscriptionResolver(db, clock=clock)

    resolved = await resolver.create_from_webhook({"id": "inv_1", "amount": 199}, "inv_1")

    assert resolved.record["user_id"] is None
    assert db.users == {}


@pytest.mark.asyncio
async def test_concurrent_insert_rereads_winner(db, clock):
    resolver = SubscriptionResolver(db, clock=clock)
    winner = db.seed_subscription(external_invoice_id="inv_1", payment_status="paid", status="active")

    # find()가 못 본 사이에 다른 요청이 먼저 저장한 상황
    resolved = await resolver.create_from_webhook({"id": "inv_1", "amount": 199}, "inv_1")

    assert resolved.created is False
    assert resolved.record["id"] == winner["id"]
    assert len(db.subscriptions) == 1


@pytest.mark.asyncio
async def test_existing_user_only_empty_names_filled(db, clock):
    user = db.seed_user(email="a@b.com", first_name="Alice", last_name="")
    resolver = SubscriptionResolver(db, clock=clock)

    result = await resolver.ensure_user("a@b.com", CustomerName("Zed", "Smith"))

    assert result["id"] == user["id"]
    assert result["first_name"] == "Alice"
    assert result["last_name"] == "Smith"
    assert result["email"] == "a@b.com"


@pytest.mark.asyncio
async def test_placeholder_name_never_written_to_existing_user(db, clock):
    db.seed_user(email="a@b.com", first_name=None, last_name=None)
    resolver = SubscriptionResolver(db, clock=clock)

    result = await resolver.ensure_user("a@b.com", CustomerName("Unknown", "User", is_placeholder=True))

    assert result["first_name"] is None
    assert result["last_name"] is None
