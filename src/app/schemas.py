"""
구독/결제 API 요청·응답 스키마
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Literal, Any
from datetime import datetime

# Status Types
PlanIdType = Literal["basic", "pro", "enterprise", "unknown"]
SubscriptionStatusType = Literal["pending", "active", "expired", "cancelled", "failed", "voided"]
PaymentStatusType = Literal["pending", "paid", "expired", "cancelled", "failed", "voided"]
RecheckOutcome = Literal["paid", "already_paid", "pending", "unknown"]


class PlanResponse(BaseModel):
    """판매 중인 플랜"""
    id: str = Field(..., description="플랜 ID")
    name: str = Field(..., description="플랜 이름")
    price: float = Field(..., description="가격 (PHP)")
    features: List[str] = Field(default_factory=list, description="포함 기능")


class SubscriptionCreateRequest(BaseModel):
    """구독 구매 요청"""
    plan_id: Literal["basic", "pro", "enterprise"] = Field(..., description="구매할 플랜")


class SubscriptionRecord(BaseModel):
    """subscriptions 테이블 행"""
    id: Any = Field(..., description="구독 ID")
    user_id: Optional[Any] = Field(None, description="사용자 ID")
    plan_id: PlanIdType = Field(..., description="플랜 ID")
    status: SubscriptionStatusType = Field(..., description="구독 상태")
    payment_status: PaymentStatusType = Field(..., description="결제 상태")
    external_invoice_id: str = Field(..., description="Xendit 인보이스 ID")
    external_payment_id: Optional[str] = Field(None, description="Xendit 결제 ID")
    amount: float = Field(..., description="결제 금액")
    currency: str = Field(default="PHP", min_length=3, max_length=3, description="통화")
    start_date: Optional[datetime] = Field(None, description="시작일")
    end_date: Optional[datetime] = Field(None, description="종료일")
    created_at: Optional[datetime] = Field(None, description="생성 시간")
    updated_at: Optional[datetime] = Field(None, description="수정 시간")

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"


class SubscriptionCreateResponse(BaseModel):
    """구독 구매 응답 (결제 페이지 URL 포함)"""
    subscription: SubscriptionRecord
    invoice_url: Optional[str] = Field(None, description="Xendit 결제 페이지")


class PaymentCheckResponse(BaseModel):
    """결제 상태 재확인 결과"""
    outcome: RecheckOutcome = Field(..., description="재확인 결과")
    message: str = Field(..., description="안내 메시지")
    invoice_status: Optional[str] = Field(None, description="Xendit 인보이스 상태")
    subscription: SubscriptionRecord
