"""
ABI 디코더

- revert 데이터(Error(string), Panic(uint256)) 해석
- 로그 topic/data 워드 해석 헬퍼
- 4byte 시그니처 DB를 이용한 메서드 시그니처 조회 (부가 정보)
"""
import logging
import re
from typing import Any, Dict, List, Optional

import httpx
from eth_abi import decode as abi_decode
from eth_utils import keccak, to_checksum_address

from .cache import SimpleCache
from .models import ErrorCategory, FailureInfo
from .suggestions import SuggestionRules, default_rules

logger = logging.getLogger(__name__)


def event_topic(signature: str) -> str:
    return "0x" + keccak(text=signature).hex()


def function_selector(signature: str) -> str:
    return "0x" + keccak(text=signature)[:4].hex()


ERROR_STRING_SELECTOR = "0x08c379a0"  # Error(string)
PANIC_SELECTOR = "0x4e487b71"  # Panic(uint256)

PANIC_CODES = {
    0: "断言失败 (Assert Failed)",
    1: "算术溢出/下溢 (Arithmetic overflow/underflow)",
    17: "数组越界访问 (Array out-of-bounds)",
    18: "除以零 (Division by zero)",
    32: "枚举值越界 (Enum value out of range)",
    33: "错误的存储字节数组编码 (Invalid storage byte array encoding)",
    34: "空数组弹出 (Empty array pop)",
    49: "无效跳转目标 (Invalid jump destination)",
    50: "调用无效合约 (Call to invalid contract)",
    65: "内存分配失败 (Memory allocation failed)",
    81: "访问未初始化变量 (Access to uninitialized variable)",
}

CONTRACT_REVERT_DESC = "合约执行回滚"
PANIC_DESC = "Solidity Panic 错误"
UNKNOWN_DESC = "未知错误"

REVERT_DECODE_FAILED = "无法解码回滚原因"
PANIC_DECODE_FAILED = "无法解码 Panic 错误码"
NO_REVERT_DATA = "无法获取回滚数据"


def strip_0x(value: str) -> str:
    return value[2:] if value[:2].lower() == "0x" else value


def hex_to_bytes(value: str) -> bytes:
    return bytes.fromhex(strip_0x(value))


# ========== revert 데이터 ==========

def decode_revert(data: Optional[str], rules: SuggestionRules = default_rules) -> FailureInfo:
    """revert 바이트를 FailureInfo로 변환한다. 디코딩 실패 시에도 예외를 던지지 않는다."""
    data = data or "0x"
    lowered = data.lower()

    if lowered.startswith(ERROR_STRING_SELECTOR):
        try:
            (reason,) = abi_decode(["string"], hex_to_bytes(data)[4:])
        except Exception as e:
            logger.debug(f"Error(string) 디코딩 실패: {e}")
            return FailureInfo(
                error_category=ErrorCategory.CONTRACT_REVERT,
                error_category_desc=CONTRACT_REVERT_DESC,
                revert_reason=REVERT_DECODE_FAILED,
                revert_reason_raw=data,
                suggestion="请联系合约开发者获取更多信息。",
            )
        return FailureInfo(
            error_category=ErrorCategory.CONTRACT_REVERT,
            error_category_desc=CONTRACT_REVERT_DESC,
            revert_reason=reason,
            revert_reason_raw=data,
            suggestion=rules.for_revert(reason),
        )

    if lowered.startswith(PANIC_SELECTOR):
        try:
            (code,) = abi_decode(["uint256"], hex_to_bytes(data)[4:])
        except Exception as e:
            logger.debug(f"Panic(uint256) 디코딩 실패: {e}")
            return FailureInfo(
                error_category=ErrorCategory.PANIC,
                error_category_desc=PANIC_DESC,
                revert_reason=PANIC_DECODE_FAILED,
                revert_reason_raw=data,
                suggestion="合约存在严重逻辑错误，请联系合约开发者。",
            )
        return FailureInfo(
            error_category=ErrorCategory.PANIC,
            error_category_desc=PANIC_DESC,
            revert_reason=PANIC_CODES.get(code, f"未知Panic错误码({code})"),
            revert_reason_raw=data,
            suggestion=rules.for_panic(code),
        )

    return FailureInfo(
        error_category=ErrorCategory.UNKNOWN,
        error_category_desc=UNKNOWN_DESC,
        revert_reason=data if lowered != "0x" else NO_REVERT_DATA,
        revert_reason_raw=data,
        suggestion="请检查交易参数是否正确，或联系合约开发者获取支持。",
    )


# ========== 로그 워드 ==========

def topic_to_address(topic: str) -> str:
    """32바이트 topic의 하위 20바이트를 주소로 해석"""
    raw = strip_0x(topic)
    if len(raw) != 64:
        raise ValueError(f"topic 길이가 32바이트가 아닙니다: {topic}")
    return to_checksum_address("0x" + raw[-40:])


def word_to_int(word: str) -> int:
    raw = strip_0x(word)
    return int(raw, 16) if raw else 0


def word_to_address(data: bytes) -> str:
    """eth_call 반환값(32바이트 이상)의 마지막 20바이트를 주소로 해석"""
    if len(data) < 32:
        raise ValueError("주소 반환값이 32바이트보다 짧습니다")
    return to_checksum_address("0x" + data[12:32].hex())


# ========== 메서드 시그니처 ==========

def split_param_types(signature: str) -> List[str]:
    """'foo(address,(uint256,bytes)[],bool)' → ['address', '(uint256,bytes)[]', 'bool']"""
    start = signature.index("(")
    body = signature[start + 1:signature.rindex(")")]
    types, depth, current = [], 0, ""
    for ch in body:
        if ch == "," and depth == 0:
            types.append(current)
            current = ""
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        current += ch
    if current:
        types.append(current)
    return types


def _jsonable(value: Any) -> Any:
    if isinstance(value, bytes):
        return "0x" + value.hex()
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def not_decoded(selector: str) -> Dict[str, Any]:
    return {"selector": selector, "decoded": False, "name": None, "signature": None, "params": []}


_SIGNATURE_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*\(.*\)$")


class SignatureResolver:
    """4byte.directory 조회 결과를 프로세스 수명 동안 캐시한다"""

    def __init__(self, client: httpx.AsyncClient, api_url: str, timeout: float = 5.0, cache_ttl_seconds: int = 86400):
        self.client = client
        self.api_url = api_url
        self.timeout = timeout
        self.cache = SimpleCache(ttl_seconds=cache_ttl_seconds)

    async def _lookup(self, selector: str) -> Optional[List[str]]:
        cached = self.cache.get(selector)
        if cached is not None:
            return cached
        try:
            res = await self.client.get(self.api_url, params={"hex_signature": selector}, timeout=self.timeout)
            res.raise_for_status()
            results = res.json().get("results") or []
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"시그니처 조회 실패 ({selector}): {e}")
            return None
        # id가 작은(먼저 등록된) 시그니처를 우선한다
        results.sort(key=lambda r: r.get("id") or 0)
        signatures = [r["text_signature"] for r in results if _SIGNATURE_RE.match(r.get("text_signature") or "")]
        self.cache.set(selector, signatures)
        return signatures

    async def decode_method_signature(self, input_data: Optional[str]) -> Optional[Dict[str, Any]]:
        """input 데이터의 selector를 시그니처로 변환. 4바이트 미만이면 None."""
        if not input_data or len(strip_0x(input_data)) < 8:
            return None
        selector = "0x" + strip_0x(input_data)[:8].lower()

        try:
            signatures = await self._lookup(selector)
        except Exception as e:
            logger.warning(f"시그니처 조회 중 알 수 없는 오류 ({selector}): {e}")
            return not_decoded(selector)
        if not signatures:
            return not_decoded(selector)

        try:
            args = hex_to_bytes(input_data)[4:]
        except ValueError:
            args = b""
        for signature in signatures:
            try:
                types = split_param_types(signature)
                values = abi_decode(types, args) if types else ()
            except Exception:
                continue
            return {
                "selector": selector,
                "decoded": True,
                "name": signature[:signature.index("(")],
                "signature": signature,
                "params": [{"type": t, "value": _jsonable(v)} for t, v in zip(types, values)],
            }

        # 파라미터 디코딩은 실패했지만 이름은 알 수 있는 경우
        signature = signatures[0]
        return {
            "selector": selector,
            "decoded": True,
            "name": signature[:signature.index("(")],
            "signature": signature,
            "params": [],
        }
