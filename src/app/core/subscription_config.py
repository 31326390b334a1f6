"""
구독 플랜 카탈로그 및 상태값 관리
"""
import re
from decimal import Decimal, InvalidOperation
from typing import Dict, Any, Iterable, List, Optional
from dataclasses import dataclass, field
from enum import Enum


class PlanId(str, Enum):
    """구독 플랜"""
    BASIC = "basic"
    PRO = "pro"
    ENTERPRISE = "enterprise"
    UNKNOWN = "unknown"


class SubscriptionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    FAILED = "failed"
    VOIDED = "voided"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    FAILED = "failed"
    VOIDED = "voided"


@dataclass(frozen=True)
class PlanDetails:
    """플랜별 가격 및 기능"""
    id: str
    name: str
    price: Decimal
    features: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "price": float(self.price),
            "features": list(self.features),
        }


class SubscriptionConfig:
    """구독 플랜 설정 관리자"""

    PLANS: Dict[PlanId, PlanDetails] = {
        PlanId.BASIC: PlanDetails(
            id="basic",
            name="Basic Plan",
            price=Decimal("199"),
            features=["Basic features", "Email support", "1 user"],
        ),
        PlanId.PRO: PlanDetails(
            id="pro",
            name="Pro Plan",
            price=Decimal("399"),
            features=["All Basic features", "Priority support", "5 users", "Advanced features"],
        ),
        PlanId.ENTERPRISE: PlanDetails(
            id="enterprise",
            name="Enterprise Plan",
            price=Decimal("999"),
            features=["All Pro features", "24/7 support", "Unlimited users", "Custom features"],
        ),
    }

    # 결제 금액 → 플랜 (PHP 정가 + IDR 환산가, 정확히 일치할 때만)
    AMOUNT_TO_PLAN: Dict[Decimal, PlanId] = {
        Decimal("199"): PlanId.BASIC,
        Decimal("399"): PlanId.PRO,
        Decimal("999"): PlanId.ENTERPRISE,
        Decimal("50000"): PlanId.BASIC,
        Decimal("100000"): PlanId.PRO,
        Decimal("250000"): PlanId.ENTERPRISE,
    }

    # 상품명 키워드 검사 순서 (앞에서부터 첫 매칭, 단어 단위)
    ITEM_NAME_KEYWORDS = (
        (re.compile(r"\benterprise\b"), PlanId.ENTERPRISE),
        (re.compile(r"\bbasic\b"), PlanId.BASIC),
        (re.compile(r"\bpro\b"), PlanId.PRO),
    )

    @classmethod
    def get_plan(cls, plan_id: str) -> Optional[PlanDetails]:
        """판매 중인 플랜 조회 (없으면 None)"""
        try:
            return cls.PLANS.get(PlanId(plan_id))
        except ValueError:
            return None

    @classmethod
    def get_plan_details(cls, plan_id: Optional[str]) -> PlanDetails:
        """메일/리포트용 플랜 정보 - 카탈로그에 없는 플랜도 이름을 만들어 반환"""
        plan = cls.get_plan(plan_id or "")
        if plan:
            return plan
        raw = plan_id or PlanId.UNKNOWN.value
        return PlanDetails(id=raw, name=f"{raw.capitalize()} Plan", price=Decimal("0"))

    @classmethod
    def list_plans(cls) -> List[Dict[str, Any]]:
        return [plan.to_dict() for plan in cls.PLANS.values()]

    @classmethod
    def plan_from_amount(cls, amount: Any) -> PlanId:
        """금액 기준 플랜 추론 (일치하는 금액이 없으면 UNKNOWN)"""
        if amount is None:
            return PlanId.UNKNOWN
        try:
            value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
        except (InvalidOperation, ValueError):
            return PlanId.UNKNOWN
        if not value.is_finite():
            return PlanId.UNKNOWN
        return cls.AMOUNT_TO_PLAN.get(value, PlanId.UNKNOWN)

    @classmethod
    def plan_from_item_names(cls, names: Iterable[str]) -> Optional[PlanId]:
        """상품명에 플랜 키워드가 포함되어 있으면 해당 플랜 반환 (대소문자 무시)"""
        for name in names:
            if not isinstance(name, str):
                continue
            lowered = name.lower()
            for pattern, plan_id in cls.ITEM_NAME_KEYWORDS:
                if pattern.search(lowered):
                    return plan_id
        return None
