"""
구독 구매 및 수동 결제 재확인 서비스
플랜 조회, Xendit 인보이스 생성, 대기 중 구독의 결제 상태 재확인
"""
import logging
from typing import Any, Dict, List, Optional
from uuid import uuid4

from core.base_service import BaseService, Clock
from core.interfaces import IDatabaseHelper, IMailService
from core.responses import (
    BusinessException,
    ExternalServiceException,
    NotFoundException,
    TransientDownstreamError,
    ValidationException,
)
from core.subscription_config import PaymentStatus, SubscriptionConfig, SubscriptionStatus
from services.payload_extractors import CustomerName, DEFAULT_FIRST_NAME, DEFAULT_LAST_NAME
from services.reconciliation_service import ReconciliationService
from services.subscription_resolver import SubscriptionResolver, add_one_month
from services.webhook_archive import InvoiceArchive
from services.xendit_client import UNKNOWN_STATUS, XenditAPIError, XenditClient

logger = logging.getLogger(__name__)

# 재확인 결과
OUTCOME_PAID = "paid"
OUTCOME_ALREADY_PAID = "already_paid"
OUTCOME_PENDING = "pending"
OUTCOME_UNKNOWN = "unknown"


def _name_from_auth_user(auth_user: Any) -> CustomerName:
    metadata = getattr(auth_user, "user_metadata", None) or {}
    first = (metadata.get("first_name") or metadata.get("given_names") or "").strip()
    last = (metadata.get("last_name") or metadata.get("surname") or "").strip()
    if not (first or last):
        full_name = (metadata.get("full_name") or metadata.get("name") or "").strip()
        if full_name:
            parts = full_name.split(None, 1)
            first = parts[0]
            last = parts[1] if len(parts) > 1 else ""
    if not (first or last):
        return CustomerName(DEFAULT_FIRST_NAME, DEFAULT_LAST_NAME, is_placeholder=True)
    return CustomerName(first or DEFAULT_FIRST_NAME, last or DEFAULT_LAST_NAME)


class SubscriptionService(BaseService):
    """구독 구매/재확인 서비스"""

    def __init__(
        self,
        db_helper: IDatabaseHelper,
        reconciliation_service: ReconciliationService,
        xendit_client: Optional[XenditClient] = None,
        mail_service: Optional[IMailService] = None,
        invoice_archive: Optional[InvoiceArchive] = None,
        clock: Optional[Clock] = None,
        *,
        currency: str = "PHP",
        invoice_duration: int = 86400,
        success_redirect_url: Optional[str] = None,
        failure_redirect_url: Optional[str] = None,
    ):
        super().__init__(db_helper, clock)
        self.reconciliation_service = reconciliation_service
        self.resolver = SubscriptionResolver(db_helper, clock=self.clock, default_currency=currency)
        self.xendit_client = xendit_client
        self.mail_service = mail_service
        self.invoice_archive = invoice_archive
        self.currency = currency
        self.invoice_duration = invoice_duration
        self.success_redirect_url = success_redirect_url
        self.failure_redirect_url = failure_redirect_url

    def list_plans(self) -> List[Dict[str, Any]]:
        return SubscriptionConfig.list_plans()

    def _require_client(self) -> XenditClient:
        if self.xendit_client is None:
            raise ExternalServiceException("Xendit", "Xendit client is not configured")
        return self.xendit_client

    def build_invoice_payload(self, plan, user: Dict[str, Any]) -> Dict[str, Any]:
        price = float(plan.price)
        payload: Dict[str, Any] = {
            "external_id": f"subscription-{uuid4().hex}",
            "amount": price,
            "description": f"Subscription to {plan.name}",
            "invoice_duration": self.invoice_duration,
            "customer": {
                "given_names": user.get("first_name") or DEFAULT_FIRST_NAME,
                "surname": user.get("last_name") or DEFAULT_LAST_NAME,
                "email": user.get("email"),
            },
            "currency": self.currency,
            "items": [
                {
                    "name": plan.name,
                    "quantity": 1,
                    "price": price,
                    "category": "Subscription",
                }
            ],
        }
        if self.success_redirect_url:
            payload["success_redirect_url"] = self.success_redirect_url
        if self.failure_redirect_url:
            payload["failure_redirect_url"] = self.failure_redirect_url
        return payload

    async def create_subscription(self, auth_user: Any, plan_id: str) -> Dict[str, Any]:
        """인보이스 생성 후 pending 구독 저장

        Returns:
            {"subscription": ..., "invoice_url": ...}
        """
        plan = SubscriptionConfig.get_plan(plan_id)
        if plan is None:
            raise ValidationException(f"Unknown plan: {plan_id}")

        email = (getattr(auth_user, "email", None) or "").strip().lower()
        if not email:
            raise ValidationException("User email is required to subscribe")

        user = await self.resolver.ensure_user(email, _name_from_auth_user(auth_user))
        client = self._require_client()

        try:
            invoice = await client.create_invoice(self.build_invoice_payload(plan, user))
        except XenditAPIError as e:
            self.logger.error(
                "[XENDIT] invoice creation failed: user_id=%s plan=%s status=%s code=%s",
                user.get("id"),
                plan.id,
                e.status_code,
                e.code,
            )
            raise ExternalServiceException("Xendit", f"Failed to create payment invoice: {e}") from e

        if self.invoice_archive is not None:
            self.invoice_archive.archive(invoice, user, plan.to_dict())

        now = self.now()
        subscription = await self.db_helper.create_subscription({
            "user_id": user["id"],
            "plan_id": plan.id,
            "status": SubscriptionStatus.PENDING.value,
            "payment_status": PaymentStatus.PENDING.value,
            "external_invoice_id": invoice["id"],
            "amount": float(plan.price),
            "currency": self.currency,
            "start_date": now.isoformat(),
            "end_date": add_one_month(now).isoformat(),
        })
        self.logger.info(
            "[XENDIT] pending subscription created: id=%s invoice_id=%s plan=%s",
            subscription.get("id"),
            invoice["id"],
            plan.id,
        )

        invoice_url = invoice.get("invoice_url")
        await self._send_invoice_mail(subscription, user, plan, invoice_url)
        return {"subscription": subscription, "invoice_url": invoice_url}

    async def _send_invoice_mail(self, subscription, user, plan, invoice_url: Optional[str]) -> None:
        if self.mail_service is None or not invoice_url:
            return
        try:
            await self.mail_service.send_invoice(subscription, user, plan, invoice_url)
        except TransientDownstreamError as e:
            self.logger.warning("[XENDIT] invoice mail failed for subscription %s: %s", subscription.get("id"), e)

    async def check_payment_status(self, subscription_id: Any, auth_user: Any = None) -> Dict[str, Any]:
        """Xendit에 인보이스 상태를 직접 확인하고 PAID면 결제 완료 처리

        auth_user가 주어지면 본인 구독만 조회 가능 (타인 구독은 404)
        """
        subscription = await self.db_helper.get_subscription(subscription_id)
        if not subscription:
            raise NotFoundException("Subscription not found")
        if auth_user is not None and not await self._is_owner(subscription, auth_user):
            self.logger.warning(
                "[XENDIT] check-payment denied: subscription_id=%s auth_user=%s",
                subscription_id,
                getattr(auth_user, "id", None),
            )
            raise NotFoundException("Subscription not found")
        return await self._recheck(subscription)

    async def _is_owner(self, subscription: Dict[str, Any], auth_user: Any) -> bool:
        email = (getattr(auth_user, "email", None) or "").strip().lower()
        if not email or subscription.get("user_id") is None:
            return False
        user = await self.db_helper.get_user_by_email(email)
        return bool(user) and str(user.get("id")) == str(subscription.get("user_id"))

    async def _recheck(self, subscription: Dict[str, Any]) -> Dict[str, Any]:
        if subscription.get("payment_status") == PaymentStatus.PAID.value:
            return {
                "outcome": OUTCOME_ALREADY_PAID,
                "message": "Subscription is already paid",
                "subscription": subscription,
                "invoice_status": None,
            }

        client = self._require_client()
        snapshot = await client.get_invoice_snapshot(subscription["external_invoice_id"])
        invoice_status = snapshot["status"]

        if invoice_status == "PAID":
            updated = await self.reconciliation_service.apply_paid_transition(
                subscription, snapshot.get("payment_id")
            )
            if updated is None:
                fresh = await self.db_helper.get_subscription(subscription["id"])
                return {
                    "outcome": OUTCOME_ALREADY_PAID,
                    "message": "Subscription is already paid",
                    "subscription": fresh or subscription,
                    "invoice_status": invoice_status,
                }
            return {
                "outcome": OUTCOME_PAID,
                "message": "Payment status updated to paid",
                "subscription": updated,
                "invoice_status": invoice_status,
            }

        if invoice_status == UNKNOWN_STATUS:
            return {
                "outcome": OUTCOME_UNKNOWN,
                "message": "Could not check payment status; retry later",
                "subscription": subscription,
                "invoice_status": invoice_status,
            }

        return {
            "outcome": OUTCOME_PENDING,
            "message": "Payment is still pending",
            "subscription": subscription,
            "invoice_status": invoice_status,
        }

    async def fix_pending(self, subscription_id: Any = None) -> List[Dict[str, Any]]:
        """대기 중 구독 재확인 (하나 또는 전체)"""
        if subscription_id is not None:
            subscription = await self.db_helper.get_subscription(subscription_id)
            if not subscription:
                raise NotFoundException("Subscription not found")
            subscriptions = [subscription]
        else:
            subscriptions = await self.db_helper.list_subscriptions_by_payment_status(PaymentStatus.PENDING.value)

        self.logger.info("[XENDIT] rechecking %s pending subscription(s)", len(subscriptions))

        results: List[Dict[str, Any]] = []
        for subscription in subscriptions:
            try:
                result = await self._recheck(subscription)
            except BusinessException as e:
                self.logger.error("[XENDIT] recheck failed for subscription %s: %s", subscription.get("id"), e)
                result = {"outcome": OUTCOME_UNKNOWN, "message": e.message, "invoice_status": None}
            results.append({
                "subscription_id": subscription.get("id"),
                "external_invoice_id": subscription.get("external_invoice_id"),
                "outcome": result["outcome"],
                "invoice_status": result.get("invoice_status"),
                "message": result["message"],
            })
        return results

    async def resend_payment_confirmation(self, subscription_id: Any) -> bool:
        """결제 완료된 구독의 확인 메일 재발송"""
        subscription = await self.db_helper.get_subscription(subscription_id)
        if not subscription:
            raise NotFoundException("Subscription not found")
        if subscription.get("payment_status") != PaymentStatus.PAID.value:
            raise ValidationException("Subscription is not paid")

        user = await self.db_helper.get_user(subscription["user_id"]) if subscription.get("user_id") else None
        if not user or not user.get("email"):
            raise ValidationException("Subscription has no user email")
        if self.mail_service is None:
            raise ExternalServiceException("Mail", "Mail service is not configured")

        plan = SubscriptionConfig.get_plan_details(subscription.get("plan_id"))
        try:
            return await self.mail_service.send_payment_confirmation(subscription, user, plan)
        except TransientDownstreamError as e:
            raise ExternalServiceException("Mail", str(e)) from e
