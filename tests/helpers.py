"""
테스트용 가짜 체인 리더와 로그/트랜잭션 생성 헬퍼
"""
from eth_abi import encode as abi_encode

from src.services.chain_configs import get_chain_configs
from src.services.errors import RpcError
from src.services.models import RawBlock, RawLog, RawReceipt, RawTransaction
from src.services.token_cache import DECIMALS_SELECTOR, SYMBOL_SELECTOR
from src.services.token_transfers import TOKEN0_SELECTOR, TOKEN1_SELECTOR

TX_HASH = "0x" + "ab" * 32
USER = "0x1111111111111111111111111111111111111111"
ROUTER = "0x10ED43C718714eb63d5aA57B78B54704E256024E"
TOKEN_A = "0xaAaAaAaaAaAaAaaAaAAAAAAAAaaaAaAaAaaAaaAa"
TOKEN_B = "0xbBbBBBBbbBBBbbbBbbBbbbbBBbBbbbbBbBbbBBbB"
POOL = "0x5555555555555555555555555555555555555555"


def hex_of(types, values) -> str:
    return "0x" + abi_encode(types, values).hex()


def address_topic(address: str) -> str:
    return "0x" + "0" * 24 + address[2:].lower()


def int_topic(value: int) -> str:
    return "0x" + value.to_bytes(32, "big").hex()


def make_tx(**overrides) -> RawTransaction:
    fields = dict(
        hash=TX_HASH,
        from_address=USER,
        to_address=ROUTER,
        value=10**18,
        gas_limit=200000,
        gas_price=5 * 10**9,
        nonce=7,
        input="0xa9059cbb" + "00" * 64,
        block_number=100,
        transaction_index=1,
        type=0,
    )
    fields.update(overrides)
    return RawTransaction(**fields)


def make_receipt(**overrides) -> RawReceipt:
    fields = dict(
        status=1,
        gas_used=50000,
        effective_gas_price=5 * 10**9,
        block_number=100,
        block_hash="0x" + "cd" * 32,
        logs=[],
    )
    fields.update(overrides)
    return RawReceipt(**fields)


def make_log(address: str, topics, data: str = "0x") -> RawLog:
    return RawLog(address=address, topics=list(topics), data=data)


class FakeReader:
    """ChainReader와 같은 메서드를 가진 메모리 기반 리더. 호출 내역을 기록한다."""

    def __init__(self, chain_id: str = "bsc"):
        self.chain = get_chain_configs()[chain_id]
        self.transactions = {}
        self.receipts = {}
        self.blocks = {}
        self.block_numbers = [100]
        self.contracts = {}
        self.call_result = "0x"
        self.call_error = None
        self.trace = None
        self.trace_error = None
        self.fail_required = None
        self.calls = []

    # ---- 준비 ----
    def add_tx(self, tx: RawTransaction, receipt: RawReceipt = None, block: RawBlock = None):
        self.transactions[tx.hash.lower()] = tx
        if receipt is not None:
            self.receipts[tx.hash.lower()] = receipt
        if block is not None:
            self.blocks[block.number] = block

    def add_token(self, address: str, symbol: str, decimals: int):
        self.contracts[(address.lower(), SYMBOL_SELECTOR)] = hex_of(["string"], [symbol])
        self.contracts[(address.lower(), DECIMALS_SELECTOR)] = hex_of(["uint8"], [decimals])

    def add_pool(self, pool: str, token0: str, token1: str):
        self.contracts[(pool.lower(), TOKEN0_SELECTOR)] = hex_of(["address"], [token0.lower()])
        self.contracts[(pool.lower(), TOKEN1_SELECTOR)] = hex_of(["address"], [token1.lower()])

    def count(self, name: str) -> int:
        return sum(1 for c in self.calls if c[0] == name)

    # ---- ChainReader 인터페이스 ----
    async def get_transaction(self, tx_hash):
        self.calls.append(("get_transaction", tx_hash))
        if self.fail_required:
            raise self.fail_required
        return self.transactions.get(tx_hash.lower())

    async def get_transaction_receipt(self, tx_hash):
        self.calls.append(("get_transaction_receipt", tx_hash))
        return self.receipts.get(tx_hash.lower())

    async def get_block_number(self):
        self.calls.append(("get_block_number",))
        # 여러 번 호출되면 준비된 값을 차례로 돌려준다
        if len(self.block_numbers) > 1:
            return self.block_numbers.pop(0)
        return self.block_numbers[0]

    async def get_block(self, block, full_transactions=False):
        self.calls.append(("get_block", block, full_transactions))
        result = self.blocks.get(block)
        if isinstance(result, Exception):
            raise result
        return result

    async def call(self, call_object, block=None):
        self.calls.append(("call", call_object, block))
        if self.call_error is not None:
            raise self.call_error
        return self.call_result

    async def call_contract(self, to, data, block=None):
        self.calls.append(("call_contract", to, data))
        result = self.contracts.get((to.lower(), data[:10].lower()))
        if result is None:
            raise RpcError("execution reverted")
        if isinstance(result, Exception):
            raise result
        return result

    async def trace_transaction(self, tx_hash):
        self.calls.append(("trace_transaction", tx_hash))
        if self.trace_error is not None:
            raise self.trace_error
        return self.trace
