"""
Xendit 웹훅 이벤트 분류기

명시적 event 필드 > data.event > status/type 조합 > 결제 필드 휴리스틱 순으로
시도하고, 아무것도 맞지 않으면 UNKNOWN으로 분류한다.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    INVOICE_PAID = "invoice.paid"
    INVOICE_EXPIRED = "invoice.expired"
    INVOICE_CANCELLED = "invoice.cancelled"
    INVOICE_VOIDED = "invoice.voided"
    PAYMENT_COMPLETED = "payment.completed"
    PAYMENT_SUCCEEDED = "payment.succeeded"
    PAYMENT_FAILED = "payment.failed"
    PAYMENT_PENDING = "payment.pending"
    PAYMENT_AFTER_EXPIRY = "payment.after_expiry"
    DISBURSEMENT_COMPLETED = "disbursement.completed"
    DISBURSEMENT_FAILED = "disbursement.failed"
    REFUND_COMPLETED = "refund.completed"
    REFUND_FAILED = "refund.failed"
    UNKNOWN = "unknown"

    @classmethod
    def from_event_name(cls, name: Any) -> "EventKind":
        if not isinstance(name, str):
            return cls.UNKNOWN
        normalized = name.strip().lower()
        normalized = EVENT_NAME_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            return cls.UNKNOWN


EVENT_NAME_ALIASES = {
    "invoice.canceled": "invoice.cancelled",
    "payment.success": "payment.succeeded",
}

PAID_EQUIVALENT_KINDS = frozenset({
    EventKind.INVOICE_PAID,
    EventKind.PAYMENT_COMPLETED,
    EventKind.PAYMENT_SUCCEEDED,
    EventKind.PAYMENT_AFTER_EXPIRY,
})

LOG_ONLY_KINDS = frozenset({
    EventKind.DISBURSEMENT_COMPLETED,
    EventKind.DISBURSEMENT_FAILED,
    EventKind.REFUND_COMPLETED,
    EventKind.REFUND_FAILED,
})


def is_paid_equivalent(kind: EventKind) -> bool:
    return kind in PAID_EQUIVALENT_KINDS


def is_log_only(kind: EventKind) -> bool:
    return kind in LOG_ONLY_KINDS


@dataclass(frozen=True)
class ClassifiedEvent:
    kind: EventKind
    raw_event: Optional[str] = None
    strategy: Optional[str] = None

    @property
    def is_paid_equivalent(self) -> bool:
        return is_paid_equivalent(self.kind)

    @property
    def is_log_only(self) -> bool:
        return is_log_only(self.kind)


PAID_STATUSES = frozenset({"PAID", "SUCCEEDED", "COMPLETED"})
FAILED_STATUSES = frozenset({"FAILED", "DECLINED"})
CANCELLED_STATUSES = frozenset({"CANCELLED", "CANCELED"})

PAID_KIND_BY_TYPE = {
    "INVOICE": EventKind.INVOICE_PAID,
    "PAYMENT": EventKind.PAYMENT_COMPLETED,
    "DISBURSEMENT": EventKind.DISBURSEMENT_COMPLETED,
    "REFUND": EventKind.REFUND_COMPLETED,
}

FAILED_KIND_BY_TYPE = {
    "INVOICE": EventKind.PAYMENT_FAILED,
    "PAYMENT": EventKind.PAYMENT_FAILED,
    "DISBURSEMENT": EventKind.DISBURSEMENT_FAILED,
    "REFUND": EventKind.REFUND_FAILED,
}

# 결제가 실제로 일어났음을 보여주는 필드
PAYMENT_SHAPED_FIELDS = ("payment_method", "payer_email", "paid_at", "paid_amount")


def _upper(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip().upper()
    return None


def _status_and_type(payload: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    status = _upper(payload.get("status")) or _upper(data.get("status"))
    event_type = _upper(payload.get("type")) or _upper(data.get("type"))
    return status, event_type


def _from_explicit_event(payload: Dict[str, Any]) -> Optional[str]:
    event = payload.get("event")
    return event if isinstance(event, str) and event.strip() else None


def _from_nested_event(payload: Dict[str, Any]) -> Optional[str]:
    data = payload.get("data")
    if not isinstance(data, dict):
        return None
    event = data.get("event")
    return event if isinstance(event, str) and event.strip() else None


def _from_status_and_type(payload: Dict[str, Any]) -> Optional[str]:
    status, event_type = _status_and_type(payload)
    if not status:
        return None

    if event_type in ("DISBURSEMENT", "REFUND"):
        if status in PAID_STATUSES:
            return PAID_KIND_BY_TYPE[event_type].value
        if status in FAILED_STATUSES:
            return FAILED_KIND_BY_TYPE[event_type].value
        return None

    if event_type not in (None, "INVOICE", "PAYMENT"):
        return None

    if status in PAID_STATUSES:
        # type 없는 결제 완료 상태는 휴리스틱 단계에서 판단
        return PAID_KIND_BY_TYPE[event_type].value if event_type else None
    if status == "EXPIRED":
        return EventKind.INVOICE_EXPIRED.value
    if status in CANCELLED_STATUSES:
        return EventKind.INVOICE_CANCELLED.value
    if status == "VOIDED":
        return EventKind.INVOICE_VOIDED.value
    if status in FAILED_STATUSES:
        return EventKind.PAYMENT_FAILED.value
    if status == "PENDING":
        return EventKind.PAYMENT_PENDING.value
    return None


def _from_payment_fields(payload: Dict[str, Any]) -> Optional[str]:
    status, event_type = _status_and_type(payload)
    if event_type or status not in PAID_STATUSES:
        return None
    if any(payload.get(field) not in (None, "") for field in PAYMENT_SHAPED_FIELDS):
        return EventKind.INVOICE_PAID.value
    return None


def _from_untyped_paid_status(payload: Dict[str, Any]) -> Optional[str]:
    # 인보이스 콜백은 type 없이 오는 것이 기본 형태
    status, event_type = _status_and_type(payload)
    if event_type is None and status in PAID_STATUSES:
        return EventKind.INVOICE_PAID.value
    return None


ClassifierStrategy = Callable[[Dict[str, Any]], Optional[str]]

STRATEGIES: Sequence[Tuple[str, ClassifierStrategy]] = (
    ("event", _from_explicit_event),
    ("data.event", _from_nested_event),
    ("status_type", _from_status_and_type),
    ("payment_fields", _from_payment_fields),
    ("untyped_paid", _from_untyped_paid_status),
)


def classify_event(payload: Dict[str, Any]) -> ClassifiedEvent:
    """페이로드에서 이벤트 종류 추론 (첫 번째로 매칭된 전략 사용)"""
    if not isinstance(payload, dict):
        return ClassifiedEvent(EventKind.UNKNOWN)

    for name, strategy in STRATEGIES:
        raw = strategy(payload)
        if raw is None:
            continue
        kind = EventKind.from_event_name(raw)
        logger.debug("[XENDIT] event classified: raw=%s kind=%s strategy=%s", raw, kind.value, name)
        return ClassifiedEvent(kind=kind, raw_event=raw, strategy=name)

    return ClassifiedEvent(EventKind.UNKNOWN)
