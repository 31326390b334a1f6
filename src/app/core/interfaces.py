"""
서비스 인터페이스 정의
"""
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List


class IAuthService(ABC):
    """인증 서비스 인터페이스"""

    @abstractmethod
    async def verify_auth(self, credentials) -> Any:
        """토큰 검증"""
        pass


class IDatabaseHelper(ABC):
    """구독/사용자 저장소 인터페이스

    행은 dict로 주고받는다. 유니크 제약(이메일, 인보이스 ID) 위반은
    ConflictException으로 알린다.
    """

    @abstractmethod
    async def get_user(self, user_id: Any) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def create_user(self, user_data: Dict[str, Any]) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def update_user(self, user_id: Any, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_subscription(self, subscription_id: Any) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_subscription_by_invoice_id(self, invoice_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def list_subscriptions_by_payment_status(self, payment_status: str) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def create_subscription(self, subscription_data: Dict[str, Any]) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def update_subscription(self, subscription_id: Any, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """무조건 덮어쓰기 (last-writer-wins)"""
        pass

    @abstractmethod
    async def mark_subscription_paid(self, invoice_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """payment_status가 아직 paid가 아닐 때만 갱신

        갱신된 행을 반환하고, 이미 paid였다면 None을 반환한다.
        """
        pass

    @abstractmethod
    async def log_system_event(self, event_type: str, event_data: Dict[str, Any], user_id: Any = None):
        """시스템 이벤트 로깅"""
        pass


class IMailService(ABC):
    """메일 발송 인터페이스"""

    @abstractmethod
    async def send_payment_confirmation(
        self,
        subscription: Dict[str, Any],
        user: Dict[str, Any],
        plan: Any,
    ) -> bool:
        """결제 완료 안내 메일"""
        pass

    @abstractmethod
    async def send_invoice(
        self,
        subscription: Dict[str, Any],
        user: Dict[str, Any],
        plan: Any,
        invoice_url: str,
    ) -> bool:
        """결제 요청(인보이스) 메일"""
        pass
