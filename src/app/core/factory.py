"""
서비스 팩토리 - 의존성 설정 및 조회
"""
from typing import Any, Dict, Optional, Type, TypeVar
from supabase import create_client
import logging

from core.config import settings
from core.interfaces import IAuthService, IDatabaseHelper, IMailService
from database_helper import DatabaseHelper
from services.auth_service import AuthService
from services.mail_service import MailService
from services.reconciliation_service import ReconciliationService
from services.subscription_resolver import SubscriptionResolver
from services.subscription_service import SubscriptionService
from services.webhook_archive import InvoiceArchive, WebhookArchive
from services.webhook_auth import WebhookAuthenticator
from services.xendit_client import XenditClient

logger = logging.getLogger(__name__)

T = TypeVar('T')


class ServiceFactory:
    """서비스 의존성 등록 및 초기화"""

    _registry: Dict[Any, Any] = {}

    @classmethod
    def register(cls, key: Type[T], instance: Optional[T]) -> None:
        cls._registry[key] = instance

    @classmethod
    def get(cls, key: Type[T]) -> T:
        if key not in cls._registry:
            name = getattr(key, "__name__", repr(key))
            raise ValueError(f"Service {name} not registered")
        return cls._registry[key]

    @classmethod
    def reset(cls) -> None:
        """등록 정보 초기화 (테스트용)"""
        cls._registry.clear()

    @classmethod
    def is_configured(cls) -> bool:
        return IDatabaseHelper in cls._registry

    @classmethod
    def configure_dependencies(cls):
        """외부 클라이언트와 서비스 생성"""
        supabase_client = create_client(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY)
        supabase_admin = None
        if settings.SUPABASE_SERVICE_ROLE_KEY:
            supabase_admin = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
        else:
            logger.warning("SUPABASE_SERVICE_ROLE_KEY가 설정되지 않음")

        db_helper = DatabaseHelper(supabase_client, supabase_admin)
        cls.register(IDatabaseHelper, db_helper)
        cls.register(IAuthService, AuthService(supabase_client, db_helper))

        # Xendit API 클라이언트 (인보이스 생성/재확인에만 필요)
        xendit_client = None
        if settings.XENDIT_SECRET_KEY:
            xendit_client = XenditClient(
                secret_key=settings.XENDIT_SECRET_KEY,
                base_url=settings.XENDIT_API_BASE_URL,
                timeout=settings.XENDIT_API_TIMEOUT,
            )
        else:
            logger.warning("[XENDIT] XENDIT_SECRET_KEY가 설정되지 않아 XenditClient를 초기화하지 않습니다.")
        cls.register(XenditClient, xendit_client)

        mail_service: Optional[IMailService] = MailService.from_settings(settings)
        if not mail_service.enabled:
            logger.warning("[MAIL] MAIL_HOST/MAIL_FROM_ADDRESS가 설정되지 않아 메일 발송을 비활성화합니다.")
            mail_service = None
        cls.register(IMailService, mail_service)

        cls.register(
            WebhookAuthenticator,
            WebhookAuthenticator(settings.XENDIT_CALLBACK_TOKEN, settings.XENDIT_WEBHOOK_SECRET),
        )
        cls.register(
            WebhookArchive,
            WebhookArchive(settings.WEBHOOK_ARCHIVE_DIR, enabled=settings.WEBHOOK_ARCHIVE_ENABLED),
        )

        resolver = SubscriptionResolver(db_helper, default_currency=settings.DEFAULT_CURRENCY)
        reconciliation_service = ReconciliationService(db_helper, resolver=resolver, mail_service=mail_service)
        cls.register(ReconciliationService, reconciliation_service)

        cls.register(
            SubscriptionService,
            SubscriptionService(
                db_helper,
                reconciliation_service,
                xendit_client=xendit_client,
                mail_service=mail_service,
                invoice_archive=InvoiceArchive(
                    settings.INVOICE_ARCHIVE_DIR, enabled=settings.WEBHOOK_ARCHIVE_ENABLED
                ),
                currency=settings.DEFAULT_CURRENCY,
                invoice_duration=settings.XENDIT_INVOICE_DURATION,
                success_redirect_url=settings.success_redirect_url,
                failure_redirect_url=settings.failure_redirect_url,
            ),
        )

    @classmethod
    def get_db_helper(cls) -> IDatabaseHelper:
        return cls.get(IDatabaseHelper)

    @classmethod
    def get_auth_service(cls) -> IAuthService:
        return cls.get(IAuthService)

    @classmethod
    def get_webhook_authenticator(cls) -> WebhookAuthenticator:
        return cls.get(WebhookAuthenticator)

    @classmethod
    def get_webhook_archive(cls) -> WebhookArchive:
        return cls.get(WebhookArchive)

    @classmethod
    def get_reconciliation_service(cls) -> ReconciliationService:
        return cls.get(ReconciliationService)

    @classmethod
    def get_subscription_service(cls) -> SubscriptionService:
        return cls.get(SubscriptionService)

    @classmethod
    def get_xendit_client(cls) -> XenditClient | None:
        return cls._registry.get(XenditClient)
