"""
JSON-RPC 체인 리더

체인별 primary/fallback 엔드포인트로 이더리움 표준 JSON-RPC를 호출한다.
네트워크/HTTP 오류는 fallback으로 한 번 더 시도하고,
노드가 error 객체로 응답한 경우(revert 등)는 RpcError로 그대로 올린다.
"""
import logging
from itertools import count
from typing import Any, Dict, Optional, Union

import httpx

from .chain_configs import ChainConfig
from .errors import RpcError, UpstreamError
from .models import RawBlock, RawReceipt, RawTransaction, parse_quantity

logger = logging.getLogger(__name__)

BlockTag = Union[int, str, None]


def _block_tag(block: BlockTag) -> str:
    if block is None:
        return "latest"
    if isinstance(block, int):
        return hex(block)
    return block


def _hexify(call_object: Dict[str, Any]) -> Dict[str, Any]:
    """eth_call 파라미터의 정수 값을 hex quantity로 변환 (None 값은 제외)"""
    result = {}
    for key, value in call_object.items():
        if value is None:
            continue
        result[key] = hex(value) if isinstance(value, int) and not isinstance(value, bool) else value
    return result


class ChainReader:
    """체인 하나에 대한 JSON-RPC 읽기 전용 클라이언트"""

    def __init__(self, chain: ChainConfig, client: httpx.AsyncClient, timeout: float = 15.0):
        self.chain = chain
        self.client = client
        self.timeout = timeout
        self._ids = count(1)

    @property
    def endpoints(self):
        return [url for url in (self.chain.rpc_primary, self.chain.rpc_fallback) if url]

    async def request(self, method: str, params: list) -> Any:
        payload = {"jsonrpc": "2.0", "method": method, "params": params, "id": next(self._ids)}
        last_error: Optional[Exception] = None

        for url in self.endpoints:
            try:
                res = await self.client.post(
                    url, json=payload, headers={"Content-Type": "application/json"}, timeout=self.timeout
                )
                res.raise_for_status()
                body = res.json()
            except httpx.HTTPStatusError as e:
                logger.warning(f"[{self.chain.id}] HTTP 오류 (상태코드: {e.response.status_code}) → {method} @ {url}")
                last_error = e
                continue
            except httpx.RequestError as e:
                logger.warning(f"[{self.chain.id}] 요청 오류 → {e}. {method} @ {url}")
                last_error = e
                continue
            except ValueError as e:
                logger.warning(f"[{self.chain.id}] JSON 파싱 실패 → {e}. {method} @ {url}")
                last_error = e
                continue

            if isinstance(body, dict) and body.get("error"):
                err = body["error"]
                if not isinstance(err, dict):
                    raise RpcError(str(err))
                raise RpcError(err.get("message") or "JSON-RPC error", rpc_code=err.get("code"), data=err.get("data"))
            if not isinstance(body, dict):
                last_error = ValueError(f"unexpected JSON-RPC body: {body!r}")
                continue
            return body.get("result")

        raise UpstreamError(f"[{self.chain.id}] RPC 요청 실패 ({method}): {last_error}")

    # ========== 표준 조회 ==========

    async def get_transaction(self, tx_hash: str) -> Optional[RawTransaction]:
        result = await self.request("eth_getTransactionByHash", [tx_hash])
        return RawTransaction.from_rpc(result) if result else None

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[RawReceipt]:
        result = await self.request("eth_getTransactionReceipt", [tx_hash])
        return RawReceipt.from_rpc(result) if result else None

    async def get_block_number(self) -> int:
        return parse_quantity(await self.request("eth_blockNumber", []))

    async def get_block(self, block: BlockTag, full_transactions: bool = False) -> Optional[RawBlock]:
        result = await self.request("eth_getBlockByNumber", [_block_tag(block), full_transactions])
        return RawBlock.from_rpc(result) if result else None

    async def call(self, call_object: Dict[str, Any], block: BlockTag = None) -> str:
        return await self.request("eth_call", [_hexify(call_object), _block_tag(block)])

    async def call_contract(self, to: str, data: str, block: BlockTag = None) -> str:
        """컨트랙트 view 함수 호출 (symbol(), token0() 등)"""
        return await self.call({"to": to, "data": data}, block)

    async def trace_transaction(self, tx_hash: str) -> Dict[str, Any]:
        return await self.request("debug_traceTransaction", [tx_hash, {"tracer": "callTracer"}])
