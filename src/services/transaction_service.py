"""
트랜잭션 조회 서비스 (응답 조립)

요청 (txHash, chain) → tx / receipt / 현재 블록 번호 동시 조회 → 상태 판정
  - 트랜잭션 없음  → TxNotFoundError
  - receipt 없음   → PENDING (블록/수수료 필드 제외)
  - status == 0    → FAILED (failureInfo 포함)
  - 그 외          → SUCCESS
채굴된 트랜잭션은 블록, L1 수수료, 토큰/NFT 전송, 스왑, MEV 탐지를 동시에 조회해 합친다.
필수 조회(tx, receipt, 블록 번호) 외의 단계는 실패해도 null/빈 값으로 대체된다.
"""
import asyncio
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx
from eth_abi import encode as abi_encode
from eth_utils import to_checksum_address

from .abi_decoder import SignatureResolver, function_selector, hex_to_bytes, word_to_int
from .chain_configs import ChainConfig, get_chain_configs
from .configuration import config
from .errors import InvalidTxHashError, TxNotFoundError, UnsupportedChainError, UpstreamError
from .failure_classifier import classify_failure
from .mev_detector import detect_sandwich_safe
from .models import RawBlock, RawReceipt, RawTransaction, parse_quantity
from .rpc_client import ChainReader
from .token_cache import TokenMetadataCache
from .token_transfers import parse_nft_transfers, parse_swaps, parse_token_transfers

logger = logging.getLogger(__name__)

TX_HASH_PATTERN = re.compile(r"0x[0-9a-fA-F]{64}")

# OP Stack GasPriceOracle predeploy
GAS_PRICE_ORACLE_ADDRESS = "0x420000000000000000000000000000000000000F"
GET_L1_FEE_SELECTOR = function_selector("getL1Fee(bytes)")
GET_L1_GAS_USED_SELECTOR = function_selector("getL1GasUsed(bytes)")

GWEI_DECIMALS = 9
UTC8 = timezone(timedelta(hours=8))


def validate_tx_hash(tx_hash: str) -> str:
    if not isinstance(tx_hash, str) or not TX_HASH_PATTERN.fullmatch(tx_hash):
        raise InvalidTxHashError("无效的交易哈希格式，请输入 0x 开头的 64 位十六进制字符串")
    return tx_hash


def format_units(value: Optional[int], decimals: int) -> Optional[str]:
    """정수 값을 소수 문자열로 (예: 10**18, 18 → "1.0")"""
    if value is None:
        return None
    sign = "-" if value < 0 else ""
    digits = str(abs(value)).rjust(decimals + 1, "0")
    whole, frac = (digits[:-decimals], digits[-decimals:]) if decimals > 0 else (digits, "")
    return f"{sign}{whole}.{frac.rstrip('0') or '0'}"


def format_gwei(value: Optional[int]) -> Optional[str]:
    return format_units(value, GWEI_DECIMALS)


def format_datetime(timestamp: Optional[int]) -> Optional[str]:
    """블록 타임스탬프 → UTC+8 'YYYY-MM-DD HH:MM:SS'"""
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, UTC8).strftime("%Y-%m-%d %H:%M:%S")


async def _nothing(value: Any = None) -> Any:
    return value


def _checksum(address: Optional[str]) -> Optional[str]:
    return to_checksum_address(address) if address else None


# ========== 체인별 부가 필드 ==========

def _empty_l1_fee() -> Dict[str, Any]:
    return {"l1Fee": None, "l1FeeRaw": None, "l1GasUsed": None}


async def fetch_l1_fee(reader, chain: ChainConfig, tx: RawTransaction, receipt: RawReceipt) -> Dict[str, Any]:
    """롤업 L1 데이터 수수료. 조회 실패 시 모든 필드 None."""
    try:
        if chain.l1_fee_source == "oracle":
            args = abi_encode(["bytes"], [hex_to_bytes(tx.input)]).hex()
            fee_raw, gas_raw = await asyncio.gather(
                reader.call_contract(GAS_PRICE_ORACLE_ADDRESS, GET_L1_FEE_SELECTOR + args),
                reader.call_contract(GAS_PRICE_ORACLE_ADDRESS, GET_L1_GAS_USED_SELECTOR + args),
            )
            fee, l1_gas_used = word_to_int(fee_raw), word_to_int(gas_raw)
        elif chain.l1_fee_source == "receipt":
            extra = receipt.extra
            fee = parse_quantity(extra.get("l1Fee"))
            gas_for_l1 = parse_quantity(extra.get("gasUsedForL1"))
            if fee is None and gas_for_l1 is not None and receipt.effective_gas_price is not None:
                fee = gas_for_l1 * receipt.effective_gas_price
            l1_gas_used = parse_quantity(extra.get("l1GasUsed"))
            if l1_gas_used is None:
                l1_gas_used = gas_for_l1
            if fee is None:
                logger.debug(f"[{chain.id}] receipt에 L1 수수료 필드가 없습니다: {tx.hash}")
                return _empty_l1_fee()
        else:
            return _empty_l1_fee()
    except Exception as e:
        logger.warning(f"[{chain.id}] L1 수수료 조회 실패: {e}")
        return _empty_l1_fee()

    return {
        "l1Fee": format_units(fee, chain.native_decimals),
        "l1FeeRaw": str(fee),
        "l1GasUsed": str(l1_gas_used) if l1_gas_used is not None else None,
    }


def eip1559_fields(chain: ChainConfig, tx: RawTransaction, receipt: RawReceipt, block: Optional[RawBlock]) -> Dict[str, Any]:
    if not chain.supports_eip1559 or tx.type != 2:
        return {}
    base_fee = block.base_fee_per_gas if block else None
    priority_fee = None
    if base_fee is not None:
        if receipt.effective_gas_price is not None:
            priority_fee = max(0, receipt.effective_gas_price - base_fee)
        elif tx.max_fee_per_gas is not None and tx.max_priority_fee_per_gas is not None:
            priority_fee = max(0, min(tx.max_priority_fee_per_gas, tx.max_fee_per_gas - base_fee))
    return {
        "maxFeePerGas": format_gwei(tx.max_fee_per_gas),
        "maxPriorityFeePerGas": format_gwei(tx.max_priority_fee_per_gas),
        "baseFeePerGas": format_gwei(base_fee),
        "effectivePriorityFee": format_gwei(priority_fee),
    }


# ========== 내부 호출 (debug_traceTransaction) ==========

def flatten_calls(frame: Dict[str, Any], depth: int = 0) -> List[Dict[str, Any]]:
    """callTracer 결과 트리를 깊이 우선 순서의 평탄한 목록으로 변환 (최상위 호출 제외)"""
    calls = []
    for child in frame.get("calls") or []:
        calls.append({
            "type": child.get("type"),
            "from": child.get("from"),
            "to": child.get("to"),
            "value": str(parse_quantity(child.get("value")) or 0),
            "gasUsed": str(parse_quantity(child.get("gasUsed")) or 0),
            "input": child.get("input"),
            "error": child.get("error"),
            "depth": depth + 1,
        })
        calls.extend(flatten_calls(child, depth + 1))
    return calls


async def fetch_internal_calls(reader, tx_hash: str) -> Dict[str, Any]:
    try:
        trace = await reader.trace_transaction(tx_hash)
    except Exception as e:
        # debug 네임스페이스를 열지 않은 노드가 대부분
        logger.debug(f"[{reader.chain.id}] debug_traceTransaction 미지원: {e}")
        return {"supported": False, "calls": []}
    return {"supported": True, "calls": flatten_calls(trace or {})}


# ========== 서비스 ==========

class TransactionService:
    def __init__(
        self,
        chains: Dict[str, ChainConfig],
        readers: Dict[str, Any],
        token_caches: Optional[Dict[str, TokenMetadataCache]] = None,
        signature_resolver: Optional[SignatureResolver] = None,
        mev_enabled: bool = True,
        token_cache_ttl_seconds: int = 300,
        token_cache_max_entries: Optional[int] = None,
    ):
        self.chains = chains
        self.readers = readers
        # 체인마다 별도 캐시 (같은 주소라도 체인이 다르면 다른 토큰)
        self.token_caches = token_caches or {
            chain_id: TokenMetadataCache(
                reader, ttl_seconds=token_cache_ttl_seconds, max_entries=token_cache_max_entries
            )
            for chain_id, reader in readers.items()
        }
        self.signature_resolver = signature_resolver
        self.mev_enabled = mev_enabled

    @classmethod
    def from_config(cls, client: httpx.AsyncClient) -> "TransactionService":
        chains = get_chain_configs()
        readers = {
            chain_id: ChainReader(chain, client, timeout=config.RPC_TIMEOUT_SECONDS)
            for chain_id, chain in chains.items()
        }
        resolver = None
        if config.SIGNATURE_LOOKUP_ENABLED:
            resolver = SignatureResolver(
                client, config.SIGNATURE_API_URL, timeout=config.SIGNATURE_TIMEOUT_SECONDS
            )
        logger.info(f"지원 체인: {', '.join(chains)}")
        return cls(
            chains,
            readers,
            signature_resolver=resolver,
            mev_enabled=config.MEV_DETECTION_ENABLED,
            token_cache_ttl_seconds=config.TOKEN_CACHE_TTL_SECONDS,
            token_cache_max_entries=config.TOKEN_CACHE_MAX_ENTRIES,
        )

    def supported_chains(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": chain.id,
                "name": chain.display_name,
                "symbol": chain.native_symbol,
                "explorer": chain.explorer_url_template.replace("{tx_hash}", ""),
                "supportsL1Fee": chain.supports_l1_fee,
                "supportsEip1559": chain.supports_eip1559,
            }
            for chain in self.chains.values()
        ]

    def get_chain(self, chain_id: Optional[str]) -> ChainConfig:
        key = (chain_id or "").lower()
        if key not in self.chains:
            raise UnsupportedChainError(f"不支持的链: {chain_id}，当前支持: {', '.join(self.chains)}")
        return self.chains[key]

    async def _method_signature(self, tx: RawTransaction) -> Optional[Dict[str, Any]]:
        if self.signature_resolver is None:
            return None
        return await self.signature_resolver.decode_method_signature(tx.input)

    async def _block(self, reader, block_number: int) -> Optional[RawBlock]:
        try:
            return await reader.get_block(block_number)
        except Exception as e:
            logger.warning(f"[{reader.chain.id}] 블록 {block_number} 조회 실패, 타임스탬프 생략: {e}")
            return None

    async def _confirmations(self, reader, current_block: int, receipt_block: int) -> int:
        # 블록 번호를 receipt보다 먼저 읽어 뒤처진 경우 한 번 더 읽는다
        if current_block < receipt_block:
            try:
                current_block = await reader.get_block_number()
            except Exception as e:
                logger.debug(f"[{reader.chain.id}] 블록 번호 재조회 실패: {e}")
        return max(0, current_block - receipt_block)

    async def _fetch_required(self, reader, tx_hash: str):
        try:
            return await asyncio.gather(
                reader.get_transaction(tx_hash),
                reader.get_transaction_receipt(tx_hash),
                reader.get_block_number(),
            )
        except UpstreamError:
            raise
        except Exception as e:
            # 응답 파싱 오류 등
            raise UpstreamError(f"[{reader.chain.id}] 트랜잭션 조회 실패: {e}") from e

    def _base_fields(self, chain: ChainConfig, tx_hash: str, tx: RawTransaction) -> Dict[str, Any]:
        return {
            "txHash": tx_hash,
            "chain": chain.id,
            "chainName": chain.display_name,
            "from": _checksum(tx.from_address),
            "to": _checksum(tx.to_address),
            "value": format_units(tx.value, chain.native_decimals),
            "valueSymbol": chain.native_symbol,
            "valueRaw": str(tx.value),
            "gasLimit": str(tx.gas_limit),
            "nonce": tx.nonce,
            "inputData": tx.input,
            "explorerUrl": chain.explorer_url(tx_hash),
        }

    async def lookup(self, tx_hash: str, chain_id: str = "bsc", include_trace: bool = False) -> Dict[str, Any]:
        chain = self.get_chain(chain_id)
        validate_tx_hash(tx_hash)
        reader = self.readers[chain.id]
        token_cache = self.token_caches[chain.id]

        tx, receipt, current_block = await self._fetch_required(reader, tx_hash)
        if tx is None:
            raise TxNotFoundError("未找到该交易，请确认哈希是否正确或交易是否已广播")

        record = self._base_fields(chain, tx_hash, tx)

        if receipt is None:
            logger.debug(f"[{chain.id}] 미채굴 트랜잭션: {tx_hash}")
            record.update({
                "status": "PENDING",
                "gasPrice": format_gwei(tx.gas_price if tx.gas_price is not None else tx.max_fee_per_gas),
                "gasPriceUnit": "Gwei",
                "methodSignature": await self._method_signature(tx),
            })
            return record

        failed = receipt.status == 0
        (
            block,
            confirmations,
            l1_fee,
            token_transfers,
            swaps,
            mev_info,
            failure_info,
            method_signature,
            internal_calls,
        ) = await asyncio.gather(
            self._block(reader, receipt.block_number),
            self._confirmations(reader, current_block, receipt.block_number),
            fetch_l1_fee(reader, chain, tx, receipt) if chain.supports_l1_fee else _nothing({}),
            parse_token_transfers(receipt.logs, token_cache),
            parse_swaps(receipt.logs, reader, token_cache, chain.dex_names),
            detect_sandwich_safe(reader, tx, receipt) if self.mev_enabled else _nothing(),
            classify_failure(reader, tx, receipt) if failed else _nothing(),
            self._method_signature(tx),
            fetch_internal_calls(reader, tx_hash) if include_trace else _nothing(),
        )

        gas_price = receipt.effective_gas_price if receipt.effective_gas_price is not None else (tx.gas_price or 0)
        timestamp = block.timestamp if block else None

        record.update({
            "status": "FAILED" if failed else "SUCCESS",
            "blockNumber": receipt.block_number,
            "blockHash": receipt.block_hash,
            "timestamp": timestamp,
            "datetime": format_datetime(timestamp),
            "gasUsed": str(receipt.gas_used),
            "gasPrice": format_gwei(gas_price),
            "gasPriceUnit": "Gwei",
            "gasFee": format_units(receipt.gas_used * gas_price, chain.native_decimals),
            "gasFeeSymbol": chain.native_symbol,
            "confirmations": confirmations,
        })
        record.update(l1_fee)
        record.update(eip1559_fields(chain, tx, receipt, block))
        record.update({
            "tokenTransfers": token_transfers,
            "nftTransfers": parse_nft_transfers(receipt.logs),
            "swaps": swaps,
            "mevInfo": mev_info,
            "methodSignature": method_signature,
        })
        if failed:
            record["failureInfo"] = failure_info.to_dict()
        if include_trace:
            record["internalCalls"] = internal_calls
        return record
