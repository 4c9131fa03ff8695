"""
API 서버 메인 애플리케이션
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from marketplace import __version__
from marketplace.config import settings
from marketplace.errors import MarketplaceError
from marketplace.monitoring import get_logger, global_metrics, setup_logging
from marketplace.storage import BaseStorage, create_storage

from .middleware import TimingMiddleware
from .routers import products, reports, shipping, subscriptions

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 생명주기 관리"""
    setup_logging(
        log_level=settings.log_level,
        log_file=settings.log_file,
        json_logs=settings.is_production(),
    )
    logger.info("API 서버 시작")

    # 테스트 등에서 미리 주입한 저장소가 있으면 그대로 사용
    if getattr(app.state, "storage", None) is None:
        app.state.storage = create_storage(settings)
    logger.info(f"저장소: {type(app.state.storage).__name__}")

    yield

    logger.info("API 서버 종료")


async def marketplace_exception_handler(request: Request, exc: MarketplaceError):
    """도메인 예외 처리 (404/403/400, 그 외 500)"""

    if exc.status_code >= 500:
        logger.exception(f"도메인 처리 실패: {exc.message}")
        message = "Internal Server Error"
    else:
        message = exc.message

    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": {"code": exc.status_code, "message": message}},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """HTTP 예외 처리"""

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": {"code": exc.status_code, "message": exc.detail, "path": str(request.url.path)},
        },
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """요청 형식 오류 처리"""

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "error": {"code": 422, "message": "Validation Error", "details": exc.errors()},
        },
    )


async def general_exception_handler(request: Request, exc: Exception):
    """일반 예외 처리"""
    logger.exception(f"처리되지 않은 예외: {exc}")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": {"code": 500, "message": "Internal Server Error"}},
    )


def create_app(storage: Optional[BaseStorage] = None) -> FastAPI:
    """
    FastAPI 앱 생성

    Args:
        storage: 사용할 저장소 (None이면 시작 시 설정에 따라 생성)
    """
    app = FastAPI(
        title="멀티 벤더 마켓플레이스 API",
        description="상품 가격 정규화, 배송비 산정, 구독 한도, 벤더 정산",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.storage = storage

    # 미들웨어 설정
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(TimingMiddleware)

    # 라우터 등록
    app.include_router(products.router, prefix="/api/v1/products", tags=["products"])
    app.include_router(shipping.router, prefix="/api/v1/shipping", tags=["shipping"])
    app.include_router(
        subscriptions.router, prefix="/api/v1/subscriptions", tags=["subscriptions"]
    )
    app.include_router(reports.router, prefix="/api/v1/reports", tags=["reports"])

    # 예외 처리
    app.add_exception_handler(MarketplaceError, marketplace_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    @app.get("/")
    async def root():
        """API 상태 확인"""
        return {
            "name": "멀티 벤더 마켓플레이스 API",
            "version": __version__,
            "status": "running",
            "environment": settings.env,
            "docs": "/docs",
        }

    @app.get("/health")
    async def health_check():
        """헬스 체크 및 메트릭 요약"""
        return {"status": "healthy", "metrics": global_metrics.get_summary()}

    return app


app = create_app()


# CLI 실행을 위한 메인 함수
def run():
    """API 서버 실행"""
    import uvicorn

    logger.info(f"API 서버 시작: http://{settings.api_host}:{settings.api_port}")

    uvicorn.run(
        "marketplace.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development(),
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
