"""
서비스 기본 클래스
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Any, Optional

from core.interfaces import IDatabaseHelper

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """기본 시계 (테스트에서는 고정 시계를 주입)"""
    return datetime.now(timezone.utc)


class BaseService:
    """모든 서비스의 기본 클래스"""

    def __init__(self, db_helper: IDatabaseHelper, clock: Optional[Clock] = None):
        self.db_helper = db_helper
        self.clock: Clock = clock or utc_now
        self.logger = logging.getLogger(self.__class__.__name__)

    def now(self) -> datetime:
        return self.clock()

    async def log_event(self, event_type: str, data: Dict[str, Any] = None, user_id: Any = None):
        """시스템 이벤트 기록 (실패해도 흐름을 막지 않음)"""
        try:
            await self.db_helper.log_system_event(
                event_type=event_type,
                event_data=data or {},
                user_id=user_id
            )
        except Exception as e:
            self.logger.warning(f"이벤트 로깅 실패 ({event_type}): {e}")
