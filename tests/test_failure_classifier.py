"""
실패 트랜잭션 분류 테스트
"""
from src.services.abi_decoder import NO_REVERT_DATA, REVERT_DECODE_FAILED
from src.services.errors import RpcError
from src.services.failure_classifier import build_replay_call, classify_failure, extract_revert_data
from src.services.models import ErrorCategory

from helpers import FakeReader, hex_of, make_receipt, make_tx

REVERT_BALANCE = "0x08c379a0" + hex_of(["string"], ["BEP20: transfer amount exceeds balance"])[2:]
PANIC_DIV_ZERO = "0x4e487b71" + hex_of(["uint256"], [18])[2:]


async def test_out_of_gas_skips_replay():
    reader = FakeReader()
    reader.call_error = RpcError("execution reverted", data=REVERT_BALANCE)
    tx = make_tx(gas_limit=21000)
    receipt = make_receipt(status=0, gas_used=21000)

    info = await classify_failure(reader, tx, receipt)

    assert info.error_category == ErrorCategory.OUT_OF_GAS
    assert info.revert_reason is None
    assert "42000" in info.suggestion
    assert reader.count("call") == 0


async def test_contract_revert_from_error_data():
    reader = FakeReader()
    reader.call_error = RpcError("execution reverted", rpc_code=3, data=REVERT_BALANCE)

    info = await classify_failure(reader, make_tx(), make_receipt(status=0))

    assert info.error_category == ErrorCategory.CONTRACT_REVERT
    assert info.error_category_desc == "合约执行回滚"
    assert info.revert_reason == "BEP20: transfer amount exceeds balance"
    assert info.suggestion == "请检查您的代币余额是否充足。"


async def test_replay_uses_tx_fields_at_tx_block():
    reader = FakeReader()
    tx = make_tx(block_number=123)
    await classify_failure(reader, tx, make_receipt(status=0, block_number=123))

    _, call_object, block = next(c for c in reader.calls if c[0] == "call")
    assert block == 123
    assert call_object == build_replay_call(tx)
    assert call_object["from"] == tx.from_address
    assert call_object["gas"] == tx.gas_limit
    assert call_object["nonce"] == tx.nonce


async def test_panic_from_message_text():
    reader = FakeReader()
    reader.call_error = RpcError(f"execution reverted: {PANIC_DIV_ZERO}")

    info = await classify_failure(reader, make_tx(), make_receipt(status=0))

    assert info.error_category == ErrorCategory.PANIC
    assert info.revert_reason == "除以零 (Division by zero)"
    assert info.suggestion == "发生除以零错误，请确保分母不为零。"


async def test_malformed_revert_falls_back():
    reader = FakeReader()
    reader.call_error = RpcError("execution reverted", data="0x08c379a0deadbeef")

    info = await classify_failure(reader, make_tx(), make_receipt(status=0))

    assert info.error_category == ErrorCategory.CONTRACT_REVERT
    assert info.revert_reason == REVERT_DECODE_FAILED


async def test_successful_replay_is_unknown():
    reader = FakeReader()
    reader.call_result = "0x"

    info = await classify_failure(reader, make_tx(), make_receipt(status=0))

    assert info.error_category == ErrorCategory.UNKNOWN
    assert info.revert_reason == NO_REVERT_DATA


async def test_plain_exception_has_no_revert_data():
    reader = FakeReader()
    reader.call_error = RuntimeError("socket closed")

    info = await classify_failure(reader, make_tx(), make_receipt(status=0))

    assert info.error_category == ErrorCategory.UNKNOWN
    assert info.revert_reason == NO_REVERT_DATA


def test_extract_revert_data_order():
    assert extract_revert_data({"data": "0xaaaa", "error": {"data": "0xbbbb"}}) == "0xaaaa"
    assert extract_revert_data({"data": {"data": "0xcccc"}}) == "0xcccc"
    assert extract_revert_data({"error": {"data": "0xbbbb"}, "message": "reverted 0xdddd"}) == "0xbbbb"
    assert extract_revert_data({"message": "execution reverted: 0xdeadbeef01"}) == "0xdeadbeef01"
    assert extract_revert_data({"message": "no hex here"}) == "0x"
    assert extract_revert_data(RpcError("execution reverted", data="0x1234")) == "0x1234"
    assert extract_revert_data(ValueError("boom")) == "0x"
