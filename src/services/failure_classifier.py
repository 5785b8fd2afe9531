"""
실패 트랜잭션 원인 분류

1. gasUsed >= gasLimit 이면 재실행 없이 OUT_OF_GAS
2. 아니면 해당 블록 기준으로 eth_call 재실행 후 revert 데이터를 추출해 디코딩
어떤 경우에도 예외를 던지지 않는다 (결과가 그대로 HTTP 응답에 들어감).
"""
import logging
import re
from typing import Any

from .abi_decoder import decode_revert
from .models import ErrorCategory, FailureInfo, RawReceipt, RawTransaction
from .suggestions import SuggestionRules, default_rules

logger = logging.getLogger(__name__)

_HEX_RUN_RE = re.compile(r"0x[0-9a-fA-F]+")
_HEX_FULL_RE = re.compile(r"^0x[0-9a-fA-F]*$")


def _is_hex(value: Any) -> bool:
    return isinstance(value, str) and bool(_HEX_FULL_RE.match(value))


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def extract_revert_data(err: Any) -> str:
    """
    eth_call 오류에서 revert 바이트 추출
    순서: data → error.data → 메시지 안의 0x hex 문자열. 없으면 "0x".
    """
    data = _field(err, "data")
    if _is_hex(data):
        return data
    # 일부 노드는 data를 한 번 더 감싸서 준다: {"data": {"data": "0x..."}}
    if isinstance(data, dict) and _is_hex(data.get("data")):
        return data["data"]

    inner = _field(err, "error")
    if inner is not None and _is_hex(_field(inner, "data")):
        return _field(inner, "data")

    message = _field(err, "message")
    if not isinstance(message, str):
        message = str(err) if not isinstance(err, dict) else ""
    match = _HEX_RUN_RE.search(message or "")
    if match:
        return match.group(0)
    return "0x"


def out_of_gas_info(gas_limit: int) -> FailureInfo:
    return FailureInfo(
        error_category=ErrorCategory.OUT_OF_GAS,
        error_category_desc="Gas 耗尽",
        revert_reason=None,
        revert_reason_raw=None,
        suggestion=f"交易Gas耗尽。当前gasLimit为 {gas_limit}，请将 gasLimit 提高至少 {gas_limit * 2} 再重试。",
    )


def build_replay_call(tx: RawTransaction) -> dict:
    return {
        "from": tx.from_address,
        "to": tx.to_address,
        "data": tx.input,
        "value": tx.value,
        "gas": tx.gas_limit,
        "gasPrice": tx.gas_price,
        "nonce": tx.nonce,
    }


async def classify_failure(
    reader, tx: RawTransaction, receipt: RawReceipt, rules: SuggestionRules = default_rules
) -> FailureInfo:
    if receipt.gas_used >= tx.gas_limit:
        return out_of_gas_info(tx.gas_limit)

    revert_data = "0x"
    block = tx.block_number if tx.block_number is not None else receipt.block_number
    try:
        await reader.call(build_replay_call(tx), block)
        # 실패한 트랜잭션인데 재실행이 성공하는 경우 (상태 차이 등) → UNKNOWN
        logger.debug(f"재실행이 revert 없이 성공했습니다: {tx.hash}")
    except Exception as err:
        try:
            revert_data = extract_revert_data(err)
        except Exception as e:
            logger.warning(f"revert 데이터 추출 실패 ({tx.hash}): {e}")

    return decode_revert(revert_data, rules)
