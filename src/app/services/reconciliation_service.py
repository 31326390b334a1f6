"""
웹훅 이벤트 → 구독 상태 전이

결제 완료 계열 이벤트는 저장소의 조건부 갱신(payment_status <> 'paid')으로
한 번만 적용되고, 그 외 전이는 무조건 덮어쓴다.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from core.base_service import BaseService, Clock
from core.interfaces import IDatabaseHelper, IMailService
from core.responses import MalformedPayloadError, TransientDownstreamError
from core.subscription_config import PaymentStatus, SubscriptionConfig, SubscriptionStatus
from services.event_classifier import ClassifiedEvent, EventKind
from services.payload_extractors import extract_invoice_id, extract_payment_id
from services.subscription_resolver import SubscriptionResolver

RESULT_SUCCESS = "success"
RESULT_IGNORED = "ignored"
RESULT_ALREADY_PROCESSED = "already_processed"
RESULT_NOT_FOUND = "not_found"

PAID_TRANSITION: Tuple[SubscriptionStatus, PaymentStatus] = (SubscriptionStatus.ACTIVE, PaymentStatus.PAID)

TRANSITIONS: Dict[EventKind, Tuple[SubscriptionStatus, PaymentStatus]] = {
    EventKind.INVOICE_PAID: PAID_TRANSITION,
    EventKind.PAYMENT_COMPLETED: PAID_TRANSITION,
    EventKind.PAYMENT_SUCCEEDED: PAID_TRANSITION,
    EventKind.PAYMENT_AFTER_EXPIRY: PAID_TRANSITION,
    EventKind.INVOICE_EXPIRED: (SubscriptionStatus.EXPIRED, PaymentStatus.EXPIRED),
    EventKind.INVOICE_CANCELLED: (SubscriptionStatus.CANCELLED, PaymentStatus.CANCELLED),
    EventKind.INVOICE_VOIDED: (SubscriptionStatus.VOIDED, PaymentStatus.VOIDED),
    EventKind.PAYMENT_FAILED: (SubscriptionStatus.FAILED, PaymentStatus.FAILED),
    EventKind.PAYMENT_PENDING: (SubscriptionStatus.PENDING, PaymentStatus.PENDING),
}


@dataclass
class ReconciliationResult:
    """웹훅 처리 결과"""
    status: str
    event_kind: EventKind
    invoice_id: Optional[str] = None
    subscription_id: Any = None
    http_status: int = 200
    created: bool = False
    error: Optional[str] = None

    def to_response(self) -> Dict[str, Any]:
        if self.error:
            return {"error": self.error}
        return {"status": self.status}


class ReconciliationService(BaseService):
    """구독 상태 전이 처리기"""

    def __init__(
        self,
        db_helper: IDatabaseHelper,
        resolver: Optional[SubscriptionResolver] = None,
        mail_service: Optional[IMailService] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(db_helper, clock)
        self.resolver = resolver or SubscriptionResolver(db_helper, clock=self.clock)
        self.mail_service = mail_service

    async def reconcile(self, event: ClassifiedEvent, payload: Dict[str, Any]) -> ReconciliationResult:
        kind = event.kind

        if kind == EventKind.UNKNOWN:
            self.logger.info("[XENDIT] unhandled webhook event ignored: raw_event=%s", event.raw_event)
            return ReconciliationResult(RESULT_IGNORED, kind)

        if event.is_log_only:
            self.logger.info(
                "[XENDIT] %s received: id=%s status=%s amount=%s",
                kind.value,
                payload.get("id"),
                payload.get("status"),
                payload.get("amount"),
            )
            await self.log_event(kind.value, {"payload_id": payload.get("id"), "status": payload.get("status")})
            return ReconciliationResult(RESULT_SUCCESS, kind)

        invoice_id = extract_invoice_id(payload)
        if not invoice_id:
            self.logger.warning("[XENDIT] no invoice id in %s payload", kind.value)
            raise MalformedPayloadError()

        if event.is_paid_equivalent:
            return await self._handle_paid(event, payload, invoice_id)
        return await self._handle_status_change(kind, invoice_id)

    async def _handle_paid(
        self,
        event: ClassifiedEvent,
        payload: Dict[str, Any],
        invoice_id: str,
    ) -> ReconciliationResult:
        kind = event.kind
        resolved = await self.resolver.resolve(event, payload, invoice_id)
        if resolved is None:
            self.logger.warning("[XENDIT] subscription not found and not creatable: invoice_id=%s", invoice_id)
            return ReconciliationResult(
                RESULT_NOT_FOUND,
                kind,
                invoice_id=invoice_id,
                http_status=404,
                error="Subscription not found",
            )

        subscription = resolved.record
        if resolved.created:
            await self.log_event(
                "subscription_created_from_webhook",
                {"invoice_id": invoice_id, "subscription_id": subscription.get("id"), "event": kind.value},
                user_id=subscription.get("user_id"),
            )
            await self._send_confirmation(subscription)
            return ReconciliationResult(
                RESULT_SUCCESS, kind, invoice_id=invoice_id, subscription_id=subscription.get("id"), created=True
            )

        updated = await self.apply_paid_transition(subscription, extract_payment_id(payload))
        if updated is None:
            return ReconciliationResult(
                RESULT_ALREADY_PROCESSED, kind, invoice_id=invoice_id, subscription_id=subscription.get("id")
            )
        return ReconciliationResult(RESULT_SUCCESS, kind, invoice_id=invoice_id, subscription_id=updated.get("id"))

    async def apply_paid_transition(
        self,
        subscription: Dict[str, Any],
        payment_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """결제 완료 적용. 이미 paid면 None (웹훅과 수동 재확인이 공유)"""
        invoice_id = subscription.get("external_invoice_id")
        if subscription.get("payment_status") == PaymentStatus.PAID.value:
            self.logger.info("[XENDIT] subscription already paid: invoice_id=%s", invoice_id)
            return None

        status, payment_status = PAID_TRANSITION
        fields: Dict[str, Any] = {
            "status": status.value,
            "payment_status": payment_status.value,
            "updated_at": self.now().isoformat(),
        }
        if payment_id:
            fields["external_payment_id"] = payment_id

        updated = await self.db_helper.mark_subscription_paid(invoice_id, fields)
        if updated is None:
            # 조건부 갱신이 0건: 다른 요청이 먼저 paid로 바꿈
            self.logger.info("[XENDIT] paid transition already applied concurrently: invoice_id=%s", invoice_id)
            return None

        self.logger.info(
            "[XENDIT] subscription %s marked paid: invoice_id=%s previous=%s/%s",
            updated.get("id"),
            invoice_id,
            subscription.get("status"),
            subscription.get("payment_status"),
        )
        await self.log_event(
            "subscription_paid",
            {"invoice_id": invoice_id, "subscription_id": updated.get("id")},
            user_id=updated.get("user_id"),
        )
        await self._send_confirmation(updated)
        return updated

    async def _handle_status_change(self, kind: EventKind, invoice_id: str) -> ReconciliationResult:
        subscription = await self.resolver.find(invoice_id)
        if subscription is None:
            self.logger.info("[XENDIT] %s for unknown invoice %s; nothing to update", kind.value, invoice_id)
            return ReconciliationResult(RESULT_SUCCESS, kind, invoice_id=invoice_id)

        status, payment_status = TRANSITIONS[kind]
        await self.db_helper.update_subscription(subscription["id"], {
            "status": status.value,
            "payment_status": payment_status.value,
            "updated_at": self.now().isoformat(),
        })
        self.logger.info(
            "[XENDIT] subscription %s: %s/%s -> %s/%s (%s)",
            subscription["id"],
            subscription.get("status"),
            subscription.get("payment_status"),
            status.value,
            payment_status.value,
            kind.value,
        )
        return ReconciliationResult(RESULT_SUCCESS, kind, invoice_id=invoice_id, subscription_id=subscription["id"])

    async def _send_confirmation(self, subscription: Dict[str, Any]) -> bool:
        """결제 확인 메일 (실패해도 상태 변경은 유지)"""
        if self.mail_service is None:
            self.logger.warning("[XENDIT] mail service not configured; skipping payment confirmation")
            return False

        user_id = subscription.get("user_id")
        if not user_id:
            return False

        try:
            user = await self.db_helper.get_user(user_id)
            if not user or not user.get("email"):
                self.logger.info("[XENDIT] user %s has no email; skipping payment confirmation", user_id)
                return False
            plan = SubscriptionConfig.get_plan_details(subscription.get("plan_id"))
            return await self.mail_service.send_payment_confirmation(subscription, user, plan)
        except TransientDownstreamError as e:
            self.logger.warning("[XENDIT] payment confirmation mail failed: %s", e)
        except Exception as e:
            self.logger.error("[XENDIT] payment confirmation mail failed: %s", e, exc_info=True)
        return False
