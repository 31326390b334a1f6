"""
Xendit 구독 결제 서버
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import uvicorn
import logging
from datetime import datetime

# Core imports
from core.config import settings
from core.factory import ServiceFactory
from core.middleware import setup_exception_handlers
from core.responses import success_response

# Router imports
from routers import subscription_router, xendit_router

# 로깅 설정
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """애플리케이션 라이프사이클 관리"""
    if not ServiceFactory.is_configured():
        ServiceFactory.configure_dependencies()
        logger.info("의존성 설정 완료")

    db_helper = ServiceFactory.get_db_helper()
    await db_helper.log_system_event(
        event_type='server_start',
        event_data={'status': 'success', 'timestamp': datetime.now().isoformat()}
    )

    yield

    await db_helper.log_system_event(
        event_type='server_stop',
        event_data={'status': 'success', 'timestamp': datetime.now().isoformat()}
    )


app = FastAPI(
    title="Xendit Subscription Server",
    description="Subscription purchase and Xendit payment webhook reconciliation",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.DEBUG
)

# 예외 처리 미들웨어 설정
setup_exception_handlers(app)

# CORS 미들웨어 추가
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    return success_response(
        data={
            "timestamp": datetime.now().isoformat(),
            "version": "1.0.0",
            "environment": "development" if settings.DEBUG else "production"
        },
        message="헬스 체크"
    )


# 라우터 등록
app.include_router(xendit_router.router)  # Xendit 웹훅
app.include_router(subscription_router.router)  # 구독 구매/재확인

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
