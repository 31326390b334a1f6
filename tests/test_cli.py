"""운영 CLI 테스트"""
import pytest

import cli
from core.factory import ServiceFactory
from core.interfaces import IDatabaseHelper
from core.responses import NotFoundException
from services.subscription_service import SubscriptionService


class DummySubscriptionService:
    def __init__(self, sent=True):
        self.sent = sent
        self.fix_calls = []

    async def fix_pending(self, subscription_id=None):
        self.fix_calls.append(subscription_id)
        return [{"subscription_id": 1, "external_invoice_id": "inv_1", "outcome": "paid",
                 "invoice_status": "PAID", "message": "Payment status updated to paid"}]

    async def resend_payment_confirmation(self, subscription_id):
        if subscription_id == "404":
            raise NotFoundException("Subscription not found")
        return self.sent


@pytest.fixture
def service():
    dummy = DummySubscriptionService()
    ServiceFactory.reset()
    ServiceFactory.register(SubscriptionService, dummy)
    # is_configured()가 참이 되도록 DB 헬퍼 자리도 채움
    ServiceFactory.register(IDatabaseHelper, object())
    yield dummy
    ServiceFactory.reset()


def test_fix_pending_requires_target(service, capsys):
    assert cli.main(["fix-pending"]) == 1
    assert "--subscription-id" in capsys.readouterr().err
    assert service.fix_calls == []


def test_fix_pending_all(service, capsys):
    assert cli.main(["fix-pending", "--all"]) == 0
    assert service.fix_calls == [None]
    assert "checked=1 fixed=1" in capsys.readouterr().out


def test_fix_pending_single(service):
    assert cli.main(["fix-pending", "--subscription-id", "42"]) == 0
    assert service.fix_calls == ["42"]


def test_send_confirmation(service, capsys):
    assert cli.main(["send-payment-confirmation", "1"]) == 0
    assert cli.main(["send-payment-confirmation", "404"]) == 1
    assert "Subscription not found" in capsys.readouterr().err


def test_send_confirmation_not_sent(service):
    service.sent = False
    assert cli.main(["send-payment-confirmation", "1"]) == 1
