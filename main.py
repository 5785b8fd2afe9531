import uvicorn
import uuid
import logging
import sys
from pathlib import Path

import certifi
import httpx

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.middleware.base import BaseHTTPMiddleware

from src.routers.api import register_api_routes
from src.routers.utility import register_utility_routes
from src.services.configuration import config
from src.services.transaction_service import TransactionService

# --- 로깅 설정 ---
log_level_str = config.LOG_LEVEL
log_level = getattr(logging, log_level_str, logging.INFO)

logging.basicConfig(
    level=log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True
)

httpx_logger = logging.getLogger("httpx")
httpx_logger.setLevel(logging.WARNING)
httpx_logger.propagate = True

for logger_name in ["uvicorn", "uvicorn.access", "uvicorn.error", "src", "main"]:
    logger_instance = logging.getLogger(logger_name)
    logger_instance.setLevel(log_level)
    logger_instance.propagate = True
    logger_instance.handlers.clear()

logger = logging.getLogger(__name__)
logger.info(f"로깅 시스템 초기화 완료 - 레벨: {log_level_str}")

config.validate()


class RequestIdMiddleware(BaseHTTPMiddleware):
    """요청마다 UUID4 요청 ID를 부여하고 X-Request-ID 헤더로 돌려준다"""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


# --- FastAPI 앱 초기화 ---
app = FastAPI(title="Multi-Chain Transaction Tracer", version="1.0.0")

app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


# --- Startup Event ---
@app.on_event("startup")
async def startup_event():
    """공용 HTTP 클라이언트와 트랜잭션 서비스 생성"""
    logger.info(f"애플리케이션 시작 중... 환경: {config.ENVIRONMENT.upper()}, 디버그: {config.DEBUG_MODE}")
    client = httpx.AsyncClient(verify=certifi.where(), timeout=config.RPC_TIMEOUT_SECONDS)
    app.state.http_client = client
    app.state.transaction_service = TransactionService.from_config(client)
    logger.info(f"MEV 탐지: {config.MEV_DETECTION_ENABLED}, 시그니처 조회: {config.SIGNATURE_LOOKUP_ENABLED}")


@app.on_event("shutdown")
async def shutdown_event():
    """HTTP 클라이언트 종료"""
    logger.info("애플리케이션 종료 중...")
    client = getattr(app.state, "http_client", None)
    if client is not None:
        await client.aclose()
    logger.info("HTTP 클라이언트 종료 완료")


# --- 라우터 등록 ---
frontend_dir = Path(config.FRONTEND_DIST_DIR) if config.FRONTEND_DIST_DIR else Path(__file__).parent / "frontend" / "dist"

register_api_routes(app)
register_utility_routes(app)

# --- 프론트엔드 정적 파일 (API 라우트 뒤에 마운트) ---
if frontend_dir.exists():
    try:
        app.mount("/", StaticFiles(directory=str(frontend_dir), html=True), name="frontend")
        logger.info(f"프론트엔드 디렉토리 마운트 성공: {frontend_dir}")
    except Exception as e:
        logger.error(f"프론트엔드 디렉토리 마운트 실패: {e}", exc_info=True)
else:
    logger.debug(f"프론트엔드 빌드 디렉토리가 없습니다: {frontend_dir}")


if __name__ == "__main__":
    uvicorn_log_config = {
        "version": 1, "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s", "datefmt": "%Y-%m-%d %H:%M:%S"},
        },
        "handlers": {
            "default": {"formatter": "default", "class": "logging.StreamHandler", "stream": "ext://sys.stdout"},
        },
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": log_level_str, "propagate": False},
            "uvicorn.error": {"handlers": ["default"], "level": log_level_str, "propagate": False},
            "uvicorn.access": {"handlers": ["default"], "level": log_level_str, "propagate": False},
        },
    }

    host = "127.0.0.1" if config.DEBUG_MODE else "0.0.0.0"
    logger.info(f"서버 시작 (포트 {config.PORT}, 호스트: {host})")
    uvicorn.run(
        "main:app",
        host=host,
        port=config.PORT,
        log_level=log_level_str.lower(),
        log_config=uvicorn_log_config,
        use_colors=False,
        access_log=True,
        reload=config.RELOAD_ENABLED,
    )
