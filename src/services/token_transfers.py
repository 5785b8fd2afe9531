"""
영수증 로그에서 토큰 전송 / NFT 전송 / DEX 스왑 추출

로그 하나의 디코딩 또는 컨트랙트 조회가 실패하면 그 로그만 건너뛴다.
"""
import asyncio
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from eth_abi import decode as abi_decode

from .abi_decoder import event_topic, function_selector, hex_to_bytes, topic_to_address, word_to_address, word_to_int
from .models import NftTransferEntry, RawLog, SwapEntry, SwapLeg, TransferEntry

logger = logging.getLogger(__name__)

# ERC-20과 ERC-721 Transfer는 시그니처가 같고 topic 개수(3 vs 4)로만 구분된다
TRANSFER_TOPIC = event_topic("Transfer(address,address,uint256)")
TRANSFER_SINGLE_TOPIC = event_topic("TransferSingle(address,address,address,uint256,uint256)")
TRANSFER_BATCH_TOPIC = event_topic("TransferBatch(address,address,address,uint256[],uint256[])")
SWAP_V2_TOPIC = event_topic("Swap(address,uint256,uint256,uint256,uint256,address)")
SWAP_V3_TOPIC = event_topic("Swap(address,address,int256,int256,uint160,uint128,int24)")

TOKEN0_SELECTOR = function_selector("token0()")
TOKEN1_SELECTOR = function_selector("token1()")


def topic0(log: RawLog) -> Optional[str]:
    return log.topics[0].lower() if log.topics else None


def format_token_amount(raw: int, decimals: int) -> str:
    """소수점 이하 최소 2자리, 그 이상의 끝자리 0은 제거 (예: 100.00, 1.2345)"""
    sign = "-" if raw < 0 else ""
    digits = str(abs(raw))
    if decimals > 0:
        digits = digits.rjust(decimals + 1, "0")
        whole, frac = digits[:-decimals], digits[-decimals:]
    else:
        whole, frac = digits, ""
    frac = frac.rstrip("0").ljust(2, "0")
    return f"{sign}{whole}.{frac}"


# ========== ERC-20 ==========

def is_erc20_transfer(log: RawLog) -> bool:
    return topic0(log) == TRANSFER_TOPIC and len(log.topics) == 3


def _decode_erc20_value(log: RawLog) -> int:
    data = hex_to_bytes(log.data)
    if len(data) < 32:
        raise ValueError(f"Transfer data가 32바이트보다 짧습니다: {log.data}")
    return int.from_bytes(data[:32], "big")


async def parse_token_transfers(logs: Optional[Sequence[RawLog]], token_cache) -> List[dict]:
    if not logs:
        return []

    async def _entry(log: RawLog) -> Optional[TransferEntry]:
        try:
            sender = topic_to_address(log.topics[1])
            recipient = topic_to_address(log.topics[2])
            value = _decode_erc20_value(log)
        except Exception as e:
            logger.debug(f"ERC-20 Transfer 로그 디코딩 실패 ({log.address}): {e}")
            return None
        token = await token_cache.get(log.address)
        return TransferEntry(
            contract_address=log.address,
            from_address=sender,
            to_address=recipient,
            value=format_token_amount(value, token.decimals),
            value_raw=str(value),
            symbol=token.symbol,
            decimals=token.decimals,
        )

    entries = await asyncio.gather(*[_entry(log) for log in logs if is_erc20_transfer(log)])
    return [e.to_dict() for e in entries if e is not None]


# ========== NFT (ERC-721 / ERC-1155) ==========

def _nft_entries(log: RawLog) -> List[NftTransferEntry]:
    t0 = topic0(log)

    if t0 == TRANSFER_TOPIC and len(log.topics) == 4:
        return [NftTransferEntry(
            contract_address=log.address,
            standard="ERC-721",
            from_address=topic_to_address(log.topics[1]),
            to_address=topic_to_address(log.topics[2]),
            token_id=str(word_to_int(log.topics[3])),
            amount="1",
        )]

    if t0 == TRANSFER_SINGLE_TOPIC and len(log.topics) == 4:
        token_id, amount = abi_decode(["uint256", "uint256"], hex_to_bytes(log.data))
        return [NftTransferEntry(
            contract_address=log.address,
            standard="ERC-1155",
            from_address=topic_to_address(log.topics[2]),
            to_address=topic_to_address(log.topics[3]),
            token_id=str(token_id),
            amount=str(amount),
        )]

    if t0 == TRANSFER_BATCH_TOPIC and len(log.topics) == 4:
        ids, values = abi_decode(["uint256[]", "uint256[]"], hex_to_bytes(log.data))
        if len(ids) != len(values):
            logger.debug(f"TransferBatch 배열 길이 불일치 ({log.address}): ids={len(ids)}, values={len(values)}")
        sender = topic_to_address(log.topics[2])
        recipient = topic_to_address(log.topics[3])
        # 길이가 다르면 짧은 쪽에 맞춘다
        return [
            NftTransferEntry(
                contract_address=log.address,
                standard="ERC-1155",
                from_address=sender,
                to_address=recipient,
                token_id=str(token_id),
                amount=str(amount),
            )
            for token_id, amount in zip(ids, values)
        ]

    return []


def parse_nft_transfers(logs: Optional[Sequence[RawLog]]) -> List[dict]:
    results = []
    for log in logs or []:
        try:
            results.extend(e.to_dict() for e in _nft_entries(log))
        except Exception as e:
            logger.debug(f"NFT 전송 로그 디코딩 실패 ({log.address}): {e}")
    return results


# ========== DEX 스왑 ==========

def is_swap_log(log: RawLog) -> bool:
    return topic0(log) in (SWAP_V2_TOPIC, SWAP_V3_TOPIC)


def swap_direction(log: RawLog) -> Optional[Tuple[str, int, int, int]]:
    """
    (dex 버전, tokenIn 인덱스, amountIn, amountOut) 반환. 방향을 알 수 없으면 None.
    V2: amountXIn이 0이 아닌 쪽이 tokenIn
    V3: 양수 델타가 풀로 들어간 토큰(tokenIn), 반대쪽 음수 델타의 부호를 뒤집은 값이 amountOut
    """
    t0 = topic0(log)
    data = hex_to_bytes(log.data)

    if t0 == SWAP_V2_TOPIC:
        amount0_in, amount1_in, amount0_out, amount1_out = abi_decode(["uint256"] * 4, data[:128])
        if amount0_in > 0:
            return "v2", 0, amount0_in, amount1_out
        if amount1_in > 0:
            return "v2", 1, amount1_in, amount0_out
        return None

    if t0 == SWAP_V3_TOPIC:
        amount0, amount1, _, _, _ = abi_decode(["int256", "int256", "uint160", "uint128", "int24"], data)
        # 두 델타가 모두 양수인 비정상 로그는 방향을 정할 수 없음
        if amount0 > 0 and amount1 <= 0:
            return "v3", 0, amount0, -amount1
        if amount1 > 0 and amount0 <= 0:
            return "v3", 1, amount1, -amount0
        return None

    return None


async def get_pool_tokens(reader, pool_address: str) -> Tuple[str, str]:
    token0_raw, token1_raw = await asyncio.gather(
        reader.call_contract(pool_address, TOKEN0_SELECTOR),
        reader.call_contract(pool_address, TOKEN1_SELECTOR),
    )
    return word_to_address(hex_to_bytes(token0_raw)), word_to_address(hex_to_bytes(token1_raw))


async def parse_swaps(
    logs: Optional[Sequence[RawLog]], reader, token_cache, dex_names: Optional[Dict[str, str]] = None
) -> List[dict]:
    if not logs:
        return []
    dex_names = dex_names or {"v2": "Uniswap V2", "v3": "Uniswap V3"}

    async def _entry(log: RawLog) -> Optional[SwapEntry]:
        try:
            direction = swap_direction(log)
            if direction is None:
                return None
            version, in_index, amount_in, amount_out = direction
            tokens = await get_pool_tokens(reader, log.address)
            token_in_addr, token_out_addr = tokens[in_index], tokens[1 - in_index]
            token_in, token_out = await asyncio.gather(
                token_cache.get(token_in_addr), token_cache.get(token_out_addr)
            )
        except Exception as e:
            logger.debug(f"스왑 로그 처리 실패 ({log.address}): {e}")
            return None
        return SwapEntry(
            dex=dex_names.get(version, version),
            pool_address=log.address,
            token_in=SwapLeg(
                symbol=token_in.symbol,
                amount=format_token_amount(amount_in, token_in.decimals),
                contract_address=token_in_addr,
            ),
            token_out=SwapLeg(
                symbol=token_out.symbol,
                amount=format_token_amount(amount_out, token_out.decimals),
                contract_address=token_out_addr,
            ),
        )

    entries = await asyncio.gather(*[_entry(log) for log in logs if is_swap_log(log)])
    return [e.to_dict() for e in entries if e is not None]
