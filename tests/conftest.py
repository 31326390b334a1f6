"""공통 테스트 더블과 픽스처"""
import os

# core.config는 임포트 시점에 설정을 검증하므로 먼저 채워 둔다
os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("XENDIT_CALLBACK_TOKEN", "test-callback-token")
os.environ.setdefault("MAIL_ENABLED", "false")
os.environ.setdefault("WEBHOOK_ARCHIVE_ENABLED", "false")

import copy
from datetime import datetime, timezone
from itertools import count

import pytest

from core.responses import ConflictException, TransientDownstreamError

FIXED_NOW = datetime(2024, 1, 31, 9, 30, tzinfo=timezone.utc)


class StubDbHelper:
    """users/subscriptions 테이블 인메모리 더블 (유니크 제약 포함)"""

    def __init__(self):
        self.users = {}
        self.subscriptions = {}
        self.logged_events = []
        self.subscription_updates = []
        self._ids = count(1)

    # seed helpers
    def seed_user(self, **fields):
        user = {"id": next(self._ids), "first_name": None, "last_name": None, "password": "!", **fields}
        self.users[user["id"]] = user
        return copy.deepcopy(user)

    def seed_subscription(self, **fields):
        record = {
            "id": next(self._ids),
            "user_id": None,
            "plan_id": "basic",
            "status": "pending",
            "payment_status": "pending",
            "external_payment_id": None,
            "amount": 199.0,
            "currency": "PHP",
            **fields,
        }
        self.subscriptions[record["id"]] = record
        return copy.deepcopy(record)

    def subscription_by_invoice(self, invoice_id):
        for record in self.subscriptions.values():
            if record["external_invoice_id"] == invoice_id:
                return record
        return None

    # IDatabaseHelper
    async def get_user(self, user_id):
        user = self.users.get(user_id)
        return copy.deepcopy(user) if user else None

    async def get_user_by_email(self, email):
        for user in self.users.values():
            if user["email"] == email.lower():
                return copy.deepcopy(user)
        return None

    async def create_user(self, user_data):
        if any(u["email"] == user_data["email"].lower() for u in self.users.values()):
            raise ConflictException("user already exists")
        return self.seed_user(**{**user_data, "email": user_data["email"].lower()})

    async def update_user(self, user_id, fields):
        user = self.users.get(user_id)
        if user is None:
            return None
        user.update({k: v for k, v in fields.items() if k != "email"})
        return copy.deepcopy(user)

    async def get_subscription(self, subscription_id):
        record = self.subscriptions.get(subscription_id)
        if record is None and isinstance(subscription_id, str) and subscription_id.isdigit():
            record = self.subscriptions.get(int(subscription_id))
        return copy.deepcopy(record) if record else None

    async def get_subscription_by_invoice_id(self, invoice_id):
        record = self.subscription_by_invoice(invoice_id)
        return copy.deepcopy(record) if record else None

    async def list_subscriptions_by_payment_status(self, payment_status):
        return [copy.deepcopy(r) for r in self.subscriptions.values() if r["payment_status"] == payment_status]

    async def create_subscription(self, subscription_data):
        if self.subscription_by_invoice(subscription_data["external_invoice_id"]):
            raise ConflictException("subscription already exists")
        return self.seed_subscription(**subscription_data)

    async def update_subscription(self, subscription_id, fields):
        record = self.subscriptions.get(subscription_id)
        if record is None:
            return None
        record.update(fields)
        self.subscription_updates.append((subscription_id, dict(fields)))
        return copy.deepcopy(record)

    async def mark_subscription_paid(self, invoice_id, fields):
        record = self.subscription_by_invoice(invoice_id)
        if record is None or record["payment_status"] == "paid":
            return None
        record.update(fields)
        self.subscription_updates.append((record["id"], dict(fields)))
        return copy.deepcopy(record)

    async def log_system_event(self, event_type="info", event_data=None, user_id=None):
        self.logged_events.append({"event_type": event_type, "event_data": event_data or {}, "user_id": user_id})
        return True


class StubMailer:
    """보낸 메일을 기록하는 메일러 더블"""

    def __init__(self, fail=False):
        self.fail = fail
        self.confirmations = []
        self.invoices = []

    async def send_payment_confirmation(self, subscription, user, plan):
        if self.fail:
            raise TransientDownstreamError("smtp", "connection refused")
        self.confirmations.append((subscription, user, plan))
        return True

    async def send_invoice(self, subscription, user, plan, invoice_url):
        if self.fail:
            raise TransientDownstreamError("smtp", "connection refused")
        self.invoices.append((subscription, user, plan, invoice_url))
        return True


@pytest.fixture
def db():
    return StubDbHelper()


@pytest.fixture
def mailer():
    return StubMailer()


@pytest.fixture
def failing_mailer():
    return StubMailer(fail=True)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW
