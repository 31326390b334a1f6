"""
구독 관련 API 라우터
플랜 조회, 구독 구매(인보이스 생성), 결제 상태 재확인 엔드포인트 제공
"""
import logging

from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.factory import ServiceFactory
from core.responses import success_response
from schemas import (
    PaymentCheckResponse,
    PlanResponse,
    SubscriptionCreateRequest,
    SubscriptionCreateResponse,
)
from services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

# 라우터 생성
router = APIRouter(prefix="/api/v1/subscriptions", tags=["subscriptions"])
security = HTTPBearer()


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """현재 사용자 정보를 가져오는 의존성"""
    auth_service = ServiceFactory.get_auth_service()
    return await auth_service.verify_auth(credentials)


def get_subscription_service() -> SubscriptionService:
    return ServiceFactory.get_subscription_service()


@router.get("/plans")
async def list_plans(service: SubscriptionService = Depends(get_subscription_service)):
    """구매 가능한 플랜 목록"""
    plans = [PlanResponse(**plan).model_dump() for plan in service.list_plans()]
    return success_response(data=plans, message="플랜 목록 조회 성공")


@router.post("")
async def create_subscription(
    request: SubscriptionCreateRequest,
    user=Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Xendit 인보이스를 만들고 pending 구독 생성"""
    result = await service.create_subscription(user, request.plan_id)
    body = SubscriptionCreateResponse(**result)
    return success_response(data=body.model_dump(mode="json"), message="인보이스가 생성되었습니다")


@router.get("/{subscription_id}/check-payment")
async def check_payment(
    subscription_id: str,
    user=Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """본인 구독의 결제 상태를 Xendit에 다시 확인"""
    result = await service.check_payment_status(subscription_id, auth_user=user)
    body = PaymentCheckResponse(**result)
    return success_response(data=body.model_dump(mode="json"), message=body.message)
