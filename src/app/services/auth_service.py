from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from supabase import Client
import logging

# Core imports
from core.interfaces import IAuthService, IDatabaseHelper
from core.base_service import BaseService
from core.responses import AuthenticationException

logger = logging.getLogger(__name__)


class AuthService(BaseService, IAuthService):
    """Supabase 인증 토큰 검증 (로그인 자체는 Supabase Auth가 담당)"""

    def __init__(self, supabase_client: Client, db_helper: IDatabaseHelper):
        super().__init__(db_helper)
        self.supabase = supabase_client

    async def verify_auth(self, credentials: HTTPAuthorizationCredentials):
        """Bearer 토큰 검증 후 Supabase 사용자 반환"""
        if credentials is None or not credentials.credentials:
            raise HTTPException(status_code=401, detail="Missing bearer token")

        try:
            return await self._verify_token_internal(credentials)
        except AuthenticationException as e:
            raise HTTPException(status_code=401, detail=e.message)
        except Exception as e:
            self.logger.error(f"인증 실패: {e}")
            raise HTTPException(status_code=401, detail="Authentication failed")

    async def _verify_token_internal(self, credentials: HTTPAuthorizationCredentials):
        try:
            response = self.supabase.auth.get_user(credentials.credentials)
        except Exception as e:
            self.logger.error(f"토큰 검증 중 오류: {e}")
            raise AuthenticationException("Authentication failed")

        if response is None or response.user is None:
            raise AuthenticationException("Invalid token")
        return response.user
