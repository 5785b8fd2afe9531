"""
MEV 샌드위치 공격 휴리스틱 탐지

같은 블록에서 대상 트랜잭션 앞(front-run)과 뒤(back-run)에
동일 주소가 같은 라우터로 보낸 스왑이 있으면 샌드위치로 본다.
오탐 가능성이 있으므로 결과는 참고용이다.
"""
import logging
from typing import Optional

from .models import MevInfo, RawReceipt, RawTransaction
from .token_transfers import SWAP_V2_TOPIC, SWAP_V3_TOPIC, hex_to_bytes, topic0

logger = logging.getLogger(__name__)

# Uniswap V2/V3, PancakeSwap 등 라우터의 스왑 함수 selector
SWAP_SELECTORS = frozenset({
    "0x38ed1739",  # swapExactTokensForTokens
    "0x8803dbee",  # swapTokensForExactTokens
    "0x7ff36ab5",  # swapExactETHForTokens
    "0x4a25d94a",  # swapTokensForExactETH
    "0x18cbafe5",  # swapExactTokensForETH
    "0xfb3bdb41",  # swapETHForExactTokens
    "0x5c11d795",  # swapExactTokensForTokensSupportingFeeOnTransferTokens
    "0xb6f9de95",  # swapExactETHForTokensSupportingFeeOnTransferTokens
    "0x791ac947",  # swapExactTokensForETHSupportingFeeOnTransferTokens
    "0x414bf389",  # exactInputSingle (V3)
    "0xdb3e2198",  # exactOutputSingle (V3)
    "0xc04b8d59",  # exactInput (V3)
    "0xf28c0498",  # exactOutput (V3)
})

SWAP_EVENT_TOPICS = (SWAP_V2_TOPIC, SWAP_V3_TOPIC)


def is_swap_transaction(tx: Optional[RawTransaction]) -> bool:
    if tx is None or not tx.input or len(tx.input) < 10:
        return False
    return tx.input[:10].lower() in SWAP_SELECTORS


def extract_swap_pair(receipt: Optional[RawReceipt]) -> Optional[str]:
    """Swap 이벤트를 발생시킨 풀 주소 (소문자). 없으면 None."""
    if receipt is None:
        return None
    for log in receipt.logs:
        if topic0(log) in SWAP_EVENT_TOPICS:
            return log.address.lower() if log.address else None
    return None


def extract_swap_direction(receipt: Optional[RawReceipt]) -> Optional[str]:
    """
    첫 번째 V2 Swap 이벤트 기준 'token0in' / 'token1in'
    응답 필드에는 넣지 않고 샌드위치 의심 로그에만 남긴다.
    """
    if receipt is None:
        return None
    for log in receipt.logs:
        if topic0(log) != SWAP_V2_TOPIC:
            continue
        try:
            data = hex_to_bytes(log.data)
        except ValueError:
            return None
        if len(data) < 128:
            return None
        amount0_in = int.from_bytes(data[0:32], "big")
        amount1_in = int.from_bytes(data[32:64], "big")
        if amount0_in > 0:
            return "token0in"
        if amount1_in > 0:
            return "token1in"
        return None
    return None


def _not_suspicious() -> MevInfo:
    return MevInfo(is_suspicious=False, confidence="low")


async def detect_sandwich(reader, tx: RawTransaction, receipt: RawReceipt) -> Optional[dict]:
    if not is_swap_transaction(tx):
        return None

    target_pair = extract_swap_pair(receipt)

    block = await reader.get_block(receipt.block_number, full_transactions=True)
    if block is None or not block.transactions:
        return _not_suspicious().to_dict()

    txs = block.transactions
    target_hash = tx.hash.lower()
    target_index = next(
        (i for i, t in enumerate(txs) if (t if isinstance(t, str) else t.hash).lower() == target_hash),
        -1,
    )
    if target_index == -1:
        return _not_suspicious().to_dict()

    # 같은 라우터(to)로 보낸 다른 스왑 트랜잭션만 후보
    candidates = []
    for i, t in enumerate(txs):
        if i == target_index or isinstance(t, str):
            continue
        if not is_swap_transaction(t):
            continue
        if not t.to_address or not tx.to_address or t.to_address.lower() != tx.to_address.lower():
            continue
        candidates.append((i, t))

    before = [t for i, t in candidates if i < target_index]
    after = [t for i, t in candidates if i > target_index]

    for front in before:
        sender = front.from_address.lower()
        back = next((a for a in after if a.from_address.lower() == sender), None)
        if back is None:
            continue
        confidence = "medium"
        if sender != tx.from_address.lower() or target_pair:
            confidence = "high"
        logger.info(
            f"[MEV] 샌드위치 의심: {tx.hash} (front={front.hash}, back={back.hash}, "
            f"pool={target_pair}, direction={extract_swap_direction(receipt)}, confidence={confidence})"
        )
        return MevInfo(
            is_suspicious=True,
            attack_type="sandwich",
            front_run_tx=front.hash,
            back_run_tx=back.hash,
            confidence=confidence,
        ).to_dict()

    if before:
        return MevInfo(
            is_suspicious=True,
            attack_type="frontrun",
            front_run_tx=before[-1].hash,
            confidence="low",
        ).to_dict()

    return _not_suspicious().to_dict()


async def detect_sandwich_safe(reader, tx: RawTransaction, receipt: RawReceipt) -> Optional[dict]:
    """탐지 실패 시 None (예외를 던지지 않음)"""
    try:
        return await detect_sandwich(reader, tx, receipt)
    except Exception as e:
        logger.warning(f"[MEV] 탐지 실패, 생략합니다: {e}")
        return None
