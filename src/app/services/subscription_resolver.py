"""
웹훅 → 구독 조회/생성

인보이스 ID로 기존 구독을 찾고, 결제 완료 이벤트인데 로컬 구독이 없으면
페이로드만으로 사용자와 구독을 만든다.
"""
import calendar
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from core.base_service import Clock, utc_now
from core.interfaces import IDatabaseHelper
from core.responses import ConflictException
from core.subscription_config import (
    PaymentStatus,
    PlanId,
    SubscriptionConfig,
    SubscriptionStatus,
)
from services.event_classifier import ClassifiedEvent
from services.payload_extractors import (
    CustomerName,
    extract_amount,
    extract_currency,
    extract_customer_name,
    extract_item_names,
    extract_payer_email,
    extract_payment_id,
)

logger = logging.getLogger(__name__)


def add_one_month(start: datetime) -> datetime:
    """한 달 뒤 같은 날 (말일은 다음 달 말일로 맞춤)"""
    year = start.year + (start.month // 12)
    month = start.month % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def unusable_password() -> str:
    """로그인에 쓸 수 없는 비밀번호 자리표시자"""
    return "!" + secrets.token_urlsafe(32)


@dataclass
class ResolvedSubscription:
    record: Dict[str, Any]
    created: bool = False


class SubscriptionResolver:
    """구독 lookup-or-create"""

    def __init__(
        self,
        db_helper: IDatabaseHelper,
        clock: Optional[Clock] = None,
        default_currency: str = "PHP",
    ):
        self.db_helper = db_helper
        self.clock = clock or utc_now
        self.default_currency = default_currency

    async def find(self, invoice_id: str) -> Optional[Dict[str, Any]]:
        return await self.db_helper.get_subscription_by_invoice_id(invoice_id)

    async def resolve(
        self,
        event: ClassifiedEvent,
        payload: Dict[str, Any],
        invoice_id: str,
    ) -> Optional[ResolvedSubscription]:
        """기존 구독 반환, 없으면 결제 완료 이벤트일 때만 생성"""
        existing = await self.find(invoice_id)
        if existing:
            return ResolvedSubscription(existing, created=False)

        if not event.is_paid_equivalent:
            return None

        return await self.create_from_webhook(payload, invoice_id)

    def resolve_plan(self, payload: Dict[str, Any], amount: Optional[Decimal]) -> PlanId:
        """상품명 키워드 우선, 없으면 금액표"""
        plan_id = SubscriptionConfig.plan_from_item_names(extract_item_names(payload))
        if plan_id is not None:
            return plan_id
        return SubscriptionConfig.plan_from_amount(amount)

    async def create_from_webhook(
        self,
        payload: Dict[str, Any],
        invoice_id: str,
    ) -> Optional[ResolvedSubscription]:
        amount = extract_amount(payload)
        if amount is None or amount <= 0:
            logger.warning(
                "[XENDIT] cannot create subscription without a positive amount: invoice_id=%s amount=%s",
                invoice_id,
                amount,
            )
            return None

        plan_id = self.resolve_plan(payload, amount)
        user = await self.resolve_user(payload)

        now = self.clock()
        subscription_data = {
            "user_id": user["id"] if user else None,
            "plan_id": plan_id.value,
            "status": SubscriptionStatus.ACTIVE.value,
            "payment_status": PaymentStatus.PAID.value,
            "external_invoice_id": invoice_id,
            "external_payment_id": extract_payment_id(payload),
            "amount": float(amount),
            "currency": extract_currency(payload, self.default_currency),
            "start_date": now.isoformat(),
            "end_date": add_one_month(now).isoformat(),
        }

        try:
            created = await self.db_helper.create_subscription(subscription_data)
        except ConflictException:
            # 동시에 들어온 같은 인보이스가 먼저 생성함
            winner = await self.find(invoice_id)
            if winner is None:
                raise
            logger.info("[XENDIT] subscription created concurrently: invoice_id=%s", invoice_id)
            return ResolvedSubscription(winner, created=False)

        logger.info(
            "[XENDIT] subscription created from webhook: id=%s invoice_id=%s plan=%s user_id=%s",
            created.get("id"),
            invoice_id,
            plan_id.value,
            subscription_data["user_id"],
        )
        return ResolvedSubscription(created, created=True)

    async def resolve_user(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        email = extract_payer_email(payload)
        if not email:
            logger.info("[XENDIT] no payer email in payload; subscription will have no user")
            return None
        return await self.ensure_user(email, extract_customer_name(payload))

    async def ensure_user(self, email: str, name: CustomerName) -> Dict[str, Any]:
        """이메일로 사용자 조회, 없으면 생성. 기존 사용자는 비어 있는 이름만 채움"""
        user = await self.db_helper.get_user_by_email(email)
        if user:
            return await self._fill_empty_names(user, name)

        try:
            user = await self.db_helper.create_user({
                "email": email,
                "first_name": name.first_name,
                "last_name": name.last_name,
                "password": unusable_password(),
            })
        except ConflictException:
            user = await self.db_helper.get_user_by_email(email)
            if user is None:
                raise
            return await self._fill_empty_names(user, name)

        logger.info("[XENDIT] user created from webhook: id=%s", user.get("id"))
        return user

    async def _fill_empty_names(self, user: Dict[str, Any], name: CustomerName) -> Dict[str, Any]:
        if name.is_placeholder:
            return user

        fields = {}
        if not (user.get("first_name") or "").strip():
            fields["first_name"] = name.first_name
        if not (user.get("last_name") or "").strip():
            fields["last_name"] = name.last_name
        if not fields:
            return user

        updated = await self.db_helper.update_user(user["id"], fields)
        logger.info("[XENDIT] filled empty name fields for user %s: %s", user["id"], sorted(fields))
        return updated or {**user, **fields}
