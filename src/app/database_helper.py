"""
데이터베이스 연결 및 CRUD 작업을 위한 헬퍼 모듈
테이블: users, subscriptions, system_logs
"""

from typing import Dict, List, Optional, Any
from datetime import datetime, timezone
from postgrest.exceptions import APIError
from supabase import Client
import logging

from core.interfaces import IDatabaseHelper
from core.responses import ConflictException

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class DatabaseHelper(IDatabaseHelper):
    def __init__(self, supabase_client: Client, admin_client: Client = None):
        self.supabase = supabase_client
        self.admin_client = admin_client or supabase_client

    def _get_client(self, use_admin: bool = False):
        """적절한 클라이언트 반환 - 일반적으로 admin client 사용"""
        return self.admin_client if use_admin or self.admin_client else self.supabase

    @staticmethod
    def _first(result) -> Optional[Dict[str, Any]]:
        return result.data[0] if result.data else None

    @staticmethod
    def _raise_conflict_or_reraise(e: APIError, what: str):
        if getattr(e, "code", None) == UNIQUE_VIOLATION:
            logger.info(f"{what} 유니크 제약 충돌: {e}")
            raise ConflictException(f"{what} already exists") from e
        logger.error(f"{what} 저장 실패: {e}")
        raise e

    # Users
    async def get_user(self, user_id: Any) -> Optional[Dict[str, Any]]:
        """사용자 조회"""
        try:
            client = self._get_client(use_admin=True)
            result = client.table('users').select('*').eq('id', user_id).limit(1).execute()
            return self._first(result)
        except Exception as e:
            logger.error(f"사용자 조회 실패: {e}")
            raise

    async def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """이메일로 사용자 조회 (소문자 기준)"""
        try:
            client = self._get_client(use_admin=True)
            result = client.table('users').select('*').eq('email', email.lower()).limit(1).execute()
            return self._first(result)
        except Exception as e:
            logger.error(f"이메일로 사용자 조회 실패: {e}")
            raise

    async def create_user(self, user_data: Dict[str, Any]) -> Dict[str, Any]:
        """사용자 생성 (이메일 중복이면 ConflictException)"""
        data = {**user_data, 'email': user_data['email'].lower()}
        try:
            client = self._get_client(use_admin=True)
            result = client.table('users').insert(data).execute()
            return self._first(result) or {}
        except APIError as e:
            self._raise_conflict_or_reraise(e, "user")

    async def update_user(self, user_id: Any, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """사용자 필드 갱신 (email은 변경하지 않음)"""
        data = {k: v for k, v in fields.items() if k != 'email'}
        if not data:
            return await self.get_user(user_id)
        data['updated_at'] = _now_iso()
        try:
            client = self._get_client(use_admin=True)
            result = client.table('users').update(data).eq('id', user_id).execute()
            return self._first(result)
        except Exception as e:
            logger.error(f"사용자 갱신 실패: {e}")
            raise

    # Subscriptions
    async def get_subscription(self, subscription_id: Any) -> Optional[Dict[str, Any]]:
        try:
            client = self._get_client(use_admin=True)
            result = client.table('subscriptions').select('*').eq('id', subscription_id).limit(1).execute()
            return self._first(result)
        except Exception as e:
            logger.error(f"구독 조회 실패: {e}")
            raise

    async def get_subscription_by_invoice_id(self, invoice_id: str) -> Optional[Dict[str, Any]]:
        """외부 인보이스 ID로 구독 조회"""
        try:
            client = self._get_client(use_admin=True)
            result = (
                client.table('subscriptions')
                .select('*')
                .eq('external_invoice_id', invoice_id)
                .limit(1)
                .execute()
            )
            return self._first(result)
        except Exception as e:
            logger.error(f"인보이스 ID로 구독 조회 실패: {e}")
            raise

    async def list_subscriptions_by_payment_status(self, payment_status: str) -> List[Dict[str, Any]]:
        try:
            client = self._get_client(use_admin=True)
            result = (
                client.table('subscriptions')
                .select('*')
                .eq('payment_status', payment_status)
                .order('created_at', desc=False)
                .execute()
            )
            return result.data or []
        except Exception as e:
            logger.error(f"구독 목록 조회 실패: {e}")
            raise

    async def create_subscription(self, subscription_data: Dict[str, Any]) -> Dict[str, Any]:
        """구독 생성 (인보이스 ID 중복이면 ConflictException)"""
        try:
            client = self._get_client(use_admin=True)
            result = client.table('subscriptions').insert(subscription_data).execute()
            return self._first(result) or {}
        except APIError as e:
            self._raise_conflict_or_reraise(e, "subscription")

    async def update_subscription(self, subscription_id: Any, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        data = {**fields}
        data.setdefault('updated_at', _now_iso())
        try:
            client = self._get_client(use_admin=True)
            result = client.table('subscriptions').update(data).eq('id', subscription_id).execute()
            return self._first(result)
        except Exception as e:
            logger.error(f"구독 갱신 실패: {e}")
            raise

    async def mark_subscription_paid(self, invoice_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """UPDATE ... WHERE external_invoice_id = ? AND payment_status <> 'paid'"""
        data = {**fields}
        data.setdefault('updated_at', _now_iso())
        try:
            client = self._get_client(use_admin=True)
            result = (
                client.table('subscriptions')
                .update(data)
                .eq('external_invoice_id', invoice_id)
                .neq('payment_status', 'paid')
                .execute()
            )
            return self._first(result)
        except Exception as e:
            logger.error(f"구독 결제 완료 처리 실패: {e}")
            raise

    async def log_system_event(self, event_type: str = 'info', event_data: Dict = None,
                               user_id: Any = None) -> bool:
        """시스템 이벤트 로그 기록"""
        try:
            log_data = {
                'user_id': user_id,
                'event_type': event_type,
                'event_data': event_data or {},
            }

            result = self.admin_client.table('system_logs').insert(log_data).execute()
            return len(result.data) > 0
        except Exception as e:
            logger.error(f"시스템 로그 기록 실패: {e}")
            return False
