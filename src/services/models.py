"""
트랜잭션 조회에서 사용하는 타입 정의

Raw* 모델은 JSON-RPC 응답(hex quantity)을 파싱한 결과이고,
나머지 모델은 응답 레코드에 들어가는 파생 데이터이다.
"""
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def parse_quantity(value: Any) -> Optional[int]:
    """JSON-RPC quantity("0x1a") 또는 정수를 int로 변환"""
    if value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 16) if value.startswith(("0x", "0X")) else int(value)
    raise ValueError(f"quantity 형식이 아닙니다: {value!r}")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


# ========== Raw 체인 데이터 ==========

class RawLog(CamelModel):
    address: str
    topics: List[str] = Field(default_factory=list)
    data: str = "0x"


class RawTransaction(CamelModel):
    hash: str
    from_address: str = Field(alias="from")
    to_address: Optional[str] = Field(default=None, alias="to")  # None이면 컨트랙트 생성
    value: int = 0
    gas_limit: int = Field(default=0, alias="gas")
    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    nonce: int = 0
    input: str = "0x"
    block_number: Optional[int] = None
    transaction_index: Optional[int] = None
    type: int = 0

    @classmethod
    def from_rpc(cls, raw: Dict[str, Any]) -> "RawTransaction":
        return cls(
            hash=raw["hash"],
            from_address=raw["from"],
            to_address=raw.get("to"),
            value=parse_quantity(raw.get("value")) or 0,
            gas_limit=parse_quantity(raw.get("gas")) or 0,
            gas_price=parse_quantity(raw.get("gasPrice")),
            max_fee_per_gas=parse_quantity(raw.get("maxFeePerGas")),
            max_priority_fee_per_gas=parse_quantity(raw.get("maxPriorityFeePerGas")),
            nonce=parse_quantity(raw.get("nonce")) or 0,
            input=raw.get("input") or raw.get("data") or "0x",
            block_number=parse_quantity(raw.get("blockNumber")),
            transaction_index=parse_quantity(raw.get("transactionIndex")),
            type=parse_quantity(raw.get("type")) or 0,
        )


_RECEIPT_FIELDS = {
    "status", "gasUsed", "effectiveGasPrice", "blockNumber", "blockHash", "logs",
    "transactionHash", "transactionIndex", "from", "to", "contractAddress",
    "cumulativeGasUsed", "logsBloom", "type",
}


class RawReceipt(CamelModel):
    status: Optional[int] = None
    gas_used: int = 0
    effective_gas_price: Optional[int] = None
    block_number: int
    block_hash: Optional[str] = None
    logs: List[RawLog] = Field(default_factory=list)
    # 체인별 추가 필드 (예: l1Fee, l1GasUsed, gasUsedForL1)
    extra: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_rpc(cls, raw: Dict[str, Any]) -> "RawReceipt":
        return cls(
            status=parse_quantity(raw.get("status")),
            gas_used=parse_quantity(raw.get("gasUsed")) or 0,
            effective_gas_price=parse_quantity(raw.get("effectiveGasPrice")),
            block_number=parse_quantity(raw["blockNumber"]),
            block_hash=raw.get("blockHash"),
            logs=[RawLog(**log) for log in raw.get("logs") or []],
            extra={k: v for k, v in raw.items() if k not in _RECEIPT_FIELDS},
        )


class RawBlock(CamelModel):
    number: int
    hash: Optional[str] = None
    timestamp: Optional[int] = None
    base_fee_per_gas: Optional[int] = None
    # full_transactions=False로 조회하면 해시 문자열만 들어온다
    transactions: List[Union[RawTransaction, str]] = Field(default_factory=list)

    @classmethod
    def from_rpc(cls, raw: Dict[str, Any]) -> "RawBlock":
        return cls(
            number=parse_quantity(raw.get("number")),
            hash=raw.get("hash"),
            timestamp=parse_quantity(raw.get("timestamp")),
            base_fee_per_gas=parse_quantity(raw.get("baseFeePerGas")),
            transactions=[
                t if isinstance(t, str) else RawTransaction.from_rpc(t)
                for t in raw.get("transactions") or []
            ],
        )


# ========== 파생 데이터 ==========

class ErrorCategory(str, Enum):
    """실패 트랜잭션 분류"""
    OUT_OF_GAS = "OUT_OF_GAS"
    CONTRACT_REVERT = "CONTRACT_REVERT"
    PANIC = "PANIC"
    UNKNOWN = "UNKNOWN"


class FailureInfo(CamelModel):
    error_category: ErrorCategory
    error_category_desc: str
    revert_reason: Optional[str] = None
    revert_reason_raw: Optional[str] = None
    suggestion: str

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class TokenInfo(CamelModel):
    symbol: str
    decimals: int


class TransferEntry(CamelModel):
    contract_address: str
    from_address: str = Field(alias="from")
    to_address: str = Field(alias="to")
    value: str
    value_raw: str
    symbol: str
    decimals: int


class NftTransferEntry(CamelModel):
    contract_address: str
    standard: str  # "ERC-721" | "ERC-1155"
    from_address: str = Field(alias="from")
    to_address: str = Field(alias="to")
    token_id: str
    amount: str


class SwapLeg(CamelModel):
    symbol: str
    amount: str
    contract_address: str


class SwapEntry(CamelModel):
    dex: str
    pool_address: str
    token_in: SwapLeg
    token_out: SwapLeg


class MevInfo(CamelModel):
    is_suspicious: bool
    attack_type: Optional[str] = None  # "sandwich" | "frontrun"
    front_run_tx: Optional[str] = None
    back_run_tx: Optional[str] = None
    estimated_loss: Optional[str] = None  # 가격 오라클 연동 전까지 항상 None
    confidence: str = "low"
