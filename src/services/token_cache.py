"""
토큰 메타데이터(symbol, decimals) 캐시

조회 실패는 캐시하지 않고 이번 호출에만 UNKNOWN/18을 돌려준다.
같은 주소에 대한 동시 조회는 각자 RPC를 호출한다 (읽기 전용이라 결과는 동일).
"""
import asyncio
import logging
import time
from typing import Callable, Optional

from eth_abi import decode as abi_decode

from .abi_decoder import function_selector, hex_to_bytes
from .cache import SimpleCache
from .models import TokenInfo

logger = logging.getLogger(__name__)

SYMBOL_SELECTOR = function_selector("symbol()")  # 0x95d89b41
DECIMALS_SELECTOR = function_selector("decimals()")  # 0x313ce567

TOKEN_CACHE_TTL_SECONDS = 300  # 5분
FALLBACK_TOKEN_INFO = TokenInfo(symbol="UNKNOWN", decimals=18)


def decode_symbol(raw: bytes) -> str:
    """string 반환 우선, 구형 토큰(MKR 등)의 bytes32 반환도 허용"""
    try:
        (symbol,) = abi_decode(["string"], raw)
        return symbol
    except Exception:
        if len(raw) != 32:
            raise
        return raw.rstrip(b"\x00").decode("utf-8", errors="ignore")


def decode_decimals(raw: bytes) -> int:
    (decimals,) = abi_decode(["uint256"], raw)
    if decimals > 255:
        raise ValueError(f"decimals 값이 uint8 범위를 벗어났습니다: {decimals}")
    return decimals


class TokenMetadataCache:
    def __init__(
        self,
        reader,
        ttl_seconds: int = TOKEN_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        max_entries: Optional[int] = None,
    ):
        self.reader = reader
        self.cache = SimpleCache(ttl_seconds=ttl_seconds, clock=clock, max_entries=max_entries)

    async def _fetch(self, address: str) -> TokenInfo:
        symbol_raw, decimals_raw = await asyncio.gather(
            self.reader.call_contract(address, SYMBOL_SELECTOR),
            self.reader.call_contract(address, DECIMALS_SELECTOR),
            return_exceptions=True,
        )
        for result in (symbol_raw, decimals_raw):
            if isinstance(result, BaseException):
                raise result
        return TokenInfo(
            symbol=decode_symbol(hex_to_bytes(symbol_raw)),
            decimals=decode_decimals(hex_to_bytes(decimals_raw)),
        )

    async def get(self, address: str) -> TokenInfo:
        key = address.lower()
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            info = await self._fetch(address)
        except Exception as e:
            logger.debug(f"토큰 메타데이터 조회 실패 ({address}): {e}")
            return FALLBACK_TOKEN_INFO

        self.cache.set(key, info)
        return info
