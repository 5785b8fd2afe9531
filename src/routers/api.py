"""
API 라우터 (트랜잭션 조회, 체인 목록)

v1/v2 모두 같은 응답 형식을 사용한다.
  성공: {"success": true, "data": ..., "requestId": ...}
  실패: {"success": false, "error": {"code", "message"}, "requestId": ...}
"""
import logging
import uuid
from typing import Any, Optional

from fastapi import Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.services.errors import TxLookupError
from src.services.transaction_service import TransactionService

logger = logging.getLogger(__name__)

LEGACY_CHAIN = "bsc"


def get_transaction_service(request: Request) -> Optional[TransactionService]:
    """startup 이벤트에서 생성한 서비스 (테스트에서는 dependency_overrides로 교체)"""
    return getattr(request.app.state, "transaction_service", None)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def success_response(request: Request, data: Any) -> JSONResponse:
    return JSONResponse(content={"success": True, "data": data, "requestId": _request_id(request)})


def error_response(request: Request, status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"code": code, "message": message}, "requestId": _request_id(request)},
    )


async def _lookup(request: Request, service: Optional[TransactionService], tx_hash: str, chain: str, trace: bool = False):
    if service is None:
        return error_response(request, 500, "UPSTREAM_FAILURE", "服务尚未初始化，请稍后再试")
    try:
        data = await service.lookup(tx_hash, chain, include_trace=trace)
    except TxLookupError as e:
        if e.status_code >= 500:
            logger.error(f"[{chain}] 트랜잭션 조회 실패 {tx_hash}: {e.message}")
        else:
            logger.info(f"[{chain}] 요청 거부 {tx_hash}: {e.code}")
        return error_response(request, e.status_code, e.code, e.message)
    except Exception as e:
        logger.error(f"[{chain}] 트랜잭션 조회 중 알 수 없는 오류 {tx_hash}: {e}", exc_info=True)
        return error_response(request, 500, "UPSTREAM_FAILURE", f"服务器内部错误: {e}")
    return success_response(request, data)


def register_api_routes(app):
    """API 라우트를 FastAPI 앱에 등록"""

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """쿼리/경로 파라미터 검증 실패도 같은 응답 형식으로 400 반환"""
        fields = ", ".join(".".join(str(part) for part in err.get("loc", ())) for err in exc.errors())
        logger.debug(f"요청 파라미터 검증 실패: {exc.errors()}")
        return error_response(request, 400, "INVALID_INPUT", f"请求参数无效: {fields}")

    @app.get("/api/v1/tx/{tx_hash}")
    async def get_transaction_v1(
        request: Request, tx_hash: str, service: Optional[TransactionService] = Depends(get_transaction_service)
    ):
        """BSC 전용 (구버전 호환)"""
        return await _lookup(request, service, tx_hash, LEGACY_CHAIN)

    @app.get("/api/v2/tx/{tx_hash}")
    async def get_transaction_v2(
        request: Request,
        tx_hash: str,
        chain: str = Query(LEGACY_CHAIN),
        trace: bool = Query(False),
        service: Optional[TransactionService] = Depends(get_transaction_service),
    ):
        """멀티체인 트랜잭션 조회"""
        return await _lookup(request, service, tx_hash, chain, trace)

    @app.get("/api/chains")
    async def get_chains(request: Request, service: Optional[TransactionService] = Depends(get_transaction_service)):
        """지원하는 체인 목록 조회 API"""
        if service is None:
            return error_response(request, 500, "UPSTREAM_FAILURE", "服务尚未初始化，请稍后再试")
        return success_response(request, service.supported_chains())
