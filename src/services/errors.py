"""
트랜잭션 조회 오류 정의

요청 처리 중 사용자에게 노출되는 오류만 여기서 정의한다.
디코딩/분류/추출 단계의 오류는 각 모듈이 자체적으로 흡수한다.
"""
from typing import Any, Optional


class TxLookupError(Exception):
    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidTxHashError(TxLookupError):
    code = "INVALID_TX_HASH"
    status_code = 400


class UnsupportedChainError(TxLookupError):
    code = "UNSUPPORTED_CHAIN"
    status_code = 400


class TxNotFoundError(TxLookupError):
    code = "TX_NOT_FOUND"
    status_code = 404


class UpstreamError(TxLookupError):
    code = "UPSTREAM_FAILURE"
    status_code = 500


class RpcError(UpstreamError):
    """노드가 JSON-RPC error 객체로 응답한 경우 (eth_call revert 포함)"""

    def __init__(self, message: str, rpc_code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.rpc_code = rpc_code
        self.data = data

    def __repr__(self):
        return f"RpcError(code={self.rpc_code}, message={self.message!r}, data={self.data!r})"
