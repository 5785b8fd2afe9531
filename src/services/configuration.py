"""
서비스 설정 관리
"""
import os
import logging
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class AppConfiguration:
    """트랜잭션 조회 서비스 설정 클래스"""

    # ========== 실행 환경 ==========
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "production").lower()
    DEBUG_MODE: bool = ENVIRONMENT == "development"
    RELOAD_ENABLED: bool = DEBUG_MODE and _env_bool("RELOAD", "false")
    PORT: int = int(os.getenv("PORT", "3000"))

    # 로깅 레벨 (개발 환경에서는 DEBUG)
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG_MODE else "INFO").upper()

    # ========== RPC 설정 ==========
    RPC_TIMEOUT_SECONDS: float = float(os.getenv("RPC_TIMEOUT_SECONDS", "15"))

    # ========== 토큰 메타데이터 캐시 ==========
    TOKEN_CACHE_TTL_SECONDS: int = int(os.getenv("TOKEN_CACHE_TTL_SECONDS", "300"))  # 5분
    TOKEN_CACHE_MAX_ENTRIES: int = int(os.getenv("TOKEN_CACHE_MAX_ENTRIES", "10000"))

    # ========== 부가 분석 ==========
    MEV_DETECTION_ENABLED: bool = _env_bool("MEV_DETECTION_ENABLED", "true")
    SIGNATURE_LOOKUP_ENABLED: bool = _env_bool("SIGNATURE_LOOKUP_ENABLED", "true")
    SIGNATURE_API_URL: str = os.getenv(
        "SIGNATURE_API_URL", "https://www.4byte.directory/api/v1/signatures/"
    )
    SIGNATURE_TIMEOUT_SECONDS: float = float(os.getenv("SIGNATURE_TIMEOUT_SECONDS", "5"))

    # ========== HTTP ==========
    CORS_ORIGINS: list = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    FRONTEND_DIST_DIR: Optional[str] = os.getenv("FRONTEND_DIST_DIR")

    @classmethod
    def validate(cls) -> bool:
        """설정 유효성 검사"""
        if cls.TOKEN_CACHE_TTL_SECONDS <= 0:
            raise ValueError("TOKEN_CACHE_TTL_SECONDS는 0보다 커야 합니다.")
        if cls.RPC_TIMEOUT_SECONDS <= 0:
            raise ValueError("RPC_TIMEOUT_SECONDS는 0보다 커야 합니다.")
        if cls.TOKEN_CACHE_MAX_ENTRIES <= 0:
            logger.warning("TOKEN_CACHE_MAX_ENTRIES가 0 이하입니다. 토큰 캐시 크기 제한이 비활성화됩니다.")
        return True


# 전역 설정 인스턴스
config = AppConfiguration()
