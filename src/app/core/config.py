"""
애플리케이션 설정 관리
"""
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import validator
from pydantic_settings import BaseSettings


_FILE_PATH = Path(__file__).resolve()


def _collect_env_files(file_path: Path) -> tuple[Path, ...]:
    """환경 파일 후보를 가까운 디렉터리부터 수집"""

    collected: list[Path] = []
    seen: set[Path] = set()

    for directory in file_path.parents:
        for name in (".env", ".env.local"):
            candidate = directory / name
            if candidate.exists() and candidate not in seen:
                collected.append(candidate)
                seen.add(candidate)

    return tuple(collected)


_ENV_FILES = _collect_env_files(_FILE_PATH)


def _load_dotenv_files() -> None:
    """프로젝트 전체에서 활용할 .env 파일들을 순차적으로 로드"""

    for dotenv_path in _ENV_FILES:
        load_dotenv(dotenv_path, override=False)


_load_dotenv_files()

class Settings(BaseSettings):
    """애플리케이션 설정"""

    # 서버 설정
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    SERVER_BASE_URL: str = "http://localhost:8000"

    # Supabase 설정
    SUPABASE_URL: str
    SUPABASE_ANON_KEY: str
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None

    # Xendit 설정
    XENDIT_SECRET_KEY: Optional[str] = None
    XENDIT_API_BASE_URL: str = "https://api.xendit.co"
    XENDIT_CALLBACK_TOKEN: str
    # 값이 있으면 본문 HMAC-SHA256 서명을 검증 (없으면 경고 후 통과)
    XENDIT_WEBHOOK_SECRET: Optional[str] = None
    XENDIT_API_TIMEOUT: float = 30.0
    XENDIT_INVOICE_DURATION: int = 86400
    DEFAULT_CURRENCY: str = "PHP"

    # 결제 완료/실패 후 이동할 주소 (비어 있으면 SERVER_BASE_URL 기준)
    SUCCESS_REDIRECT_URL: Optional[str] = None
    FAILURE_REDIRECT_URL: Optional[str] = None

    # 웹훅/인보이스 원본 보관 (디버깅 용도)
    WEBHOOK_ARCHIVE_ENABLED: bool = True
    WEBHOOK_ARCHIVE_DIR: str = "storage/webhooks"
    INVOICE_ARCHIVE_DIR: str = "storage/invoices"

    # 메일 설정
    MAIL_ENABLED: bool = True
    MAIL_HOST: Optional[str] = None
    MAIL_PORT: int = 587
    MAIL_USERNAME: Optional[str] = None
    MAIL_PASSWORD: Optional[str] = None
    MAIL_USE_TLS: bool = True
    MAIL_FROM_ADDRESS: Optional[str] = None
    MAIL_FROM_NAME: str = "Subscriptions"

    # 로깅 설정
    LOG_LEVEL: str = "INFO"

    @validator('SUPABASE_URL')
    def validate_supabase_url(cls, v):
        if not v:
            raise ValueError('SUPABASE_URL은 필수입니다')
        return v

    @validator('SUPABASE_ANON_KEY')
    def validate_supabase_anon_key(cls, v):
        if not v:
            raise ValueError('SUPABASE_ANON_KEY는 필수입니다')
        return v

    @validator('XENDIT_CALLBACK_TOKEN')
    def validate_callback_token(cls, v):
        if not v or not v.strip():
            raise ValueError('XENDIT_CALLBACK_TOKEN은 필수입니다')
        return v.strip()

    @property
    def success_redirect_url(self) -> str:
        return self.SUCCESS_REDIRECT_URL or f"{self.SERVER_BASE_URL.rstrip('/')}/subscription/success"

    @property
    def failure_redirect_url(self) -> str:
        return self.FAILURE_REDIRECT_URL or f"{self.SERVER_BASE_URL.rstrip('/')}/subscription/failure"

    class Config:
        env_file = tuple(str(path) for path in _ENV_FILES) if _ENV_FILES else None
        case_sensitive = True
        extra = "allow"  # 추가 환경변수 허용

# 전역 설정 인스턴스
settings = Settings()
