"""
revert 데이터 디코딩 / 로그 워드 / 메서드 시그니처 조회 테스트
"""
import httpx
import pytest
from eth_utils import to_checksum_address

from src.services.abi_decoder import (
    ERROR_STRING_SELECTOR,
    NO_REVERT_DATA,
    PANIC_CODES,
    PANIC_DECODE_FAILED,
    PANIC_SELECTOR,
    REVERT_DECODE_FAILED,
    SignatureResolver,
    decode_revert,
    event_topic,
    function_selector,
    split_param_types,
    topic_to_address,
)
from src.services.models import ErrorCategory
from src.services.suggestions import SuggestionRules

from helpers import TOKEN_A, USER, address_topic, hex_of


def error_string(reason: str) -> str:
    return ERROR_STRING_SELECTOR + hex_of(["string"], [reason])[2:]


def panic(code: int) -> str:
    return PANIC_SELECTOR + hex_of(["uint256"], [code])[2:]


def test_selectors_match_known_values():
    assert function_selector("Error(string)") == ERROR_STRING_SELECTOR
    assert function_selector("Panic(uint256)") == PANIC_SELECTOR
    assert event_topic("Transfer(address,address,uint256)") == (
        "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
    )


@pytest.mark.parametrize("reason", ["Insufficient balance", "", "中文原因 with ünïcode", "x" * 300])
def test_error_string_round_trip(reason):
    info = decode_revert(error_string(reason))
    assert info.error_category == ErrorCategory.CONTRACT_REVERT
    assert info.revert_reason == reason
    assert info.revert_reason_raw == error_string(reason)


@pytest.mark.parametrize("code", sorted(PANIC_CODES))
def test_known_panic_codes(code):
    info = decode_revert(panic(code))
    assert info.error_category == ErrorCategory.PANIC
    assert info.revert_reason == PANIC_CODES[code]


def test_unknown_panic_code_mentions_number():
    info = decode_revert(panic(999))
    assert info.error_category == ErrorCategory.PANIC
    assert "999" in info.revert_reason
    assert info.suggestion == "合约发生 Panic 错误，请联系合约开发者。"


def test_malformed_error_string_does_not_raise():
    info = decode_revert("0x08c379a0deadbeef")
    assert info.error_category == ErrorCategory.CONTRACT_REVERT
    assert info.revert_reason == REVERT_DECODE_FAILED
    assert info.revert_reason_raw == "0x08c379a0deadbeef"


def test_malformed_panic_does_not_raise():
    info = decode_revert("0x4e487b7100")
    assert info.error_category == ErrorCategory.PANIC
    assert info.revert_reason == PANIC_DECODE_FAILED


def test_selector_match_is_case_insensitive():
    data = error_string("Paused").upper().replace("0X", "0x")
    assert decode_revert(data).revert_reason == "Paused"


def test_empty_revert_data():
    for data in ("0x", None, ""):
        info = decode_revert(data)
        assert info.error_category == ErrorCategory.UNKNOWN
        assert info.revert_reason == NO_REVERT_DATA


def test_custom_error_data_is_reported_raw():
    info = decode_revert("0xdeadbeef0000")
    assert info.error_category == ErrorCategory.UNKNOWN
    assert info.revert_reason == "0xdeadbeef0000"


def test_suggestion_rules_are_ordered():
    # "insufficient allowance"는 balance 규칙(첫 번째)에 먼저 걸린다
    assert decode_revert(error_string("ERC20: insufficient allowance")).suggestion == "请检查您的代币余额是否充足。"
    assert decode_revert(error_string("ERC20: transfer amount exceeds allowance")).suggestion == (
        "请先调用 approve() 授权足够的代币额度。"
    )
    assert decode_revert(error_string("Ownable: caller is not the owner")).suggestion == (
        "您没有执行此操作的权限，请确认调用者地址是否正确。"
    )
    assert decode_revert(error_string("Something odd")).suggestion == (
        "合约回滚原因：Something odd。请根据错误信息检查您的操作是否符合合约要求。"
    )


def test_suggestion_rules_can_be_swapped():
    rules = SuggestionRules([(("odd",), "custom")], panic_suggestions={1: "overflow!"})
    assert decode_revert(error_string("Something odd"), rules).suggestion == "custom"
    assert decode_revert(panic(1), rules).suggestion == "overflow!"
    assert decode_revert(panic(17), rules).suggestion == "合约发生 Panic 错误，请联系合约开发者。"


def test_topic_to_address():
    assert topic_to_address(address_topic(TOKEN_A)) == to_checksum_address(TOKEN_A)
    with pytest.raises(ValueError):
        topic_to_address("0x1234")


def test_split_param_types_handles_tuples():
    assert split_param_types("foo(address,(uint256,bytes)[],bool)") == ["address", "(uint256,bytes)[]", "bool"]
    assert split_param_types("bar()") == []


# ========== SignatureResolver ==========

def resolver_with(handler) -> SignatureResolver:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SignatureResolver(client, "https://sig.test/api/v1/signatures/")


async def test_decode_method_signature_found():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"results": [
            {"id": 9, "text_signature": "collision_xyz(uint8)"},
            {"id": 2, "text_signature": "transfer(address,uint256)"},
        ]})

    resolver = resolver_with(handler)
    input_data = "0xa9059cbb" + hex_of(["address", "uint256"], [USER, 100])[2:]
    result = await resolver.decode_method_signature(input_data)

    assert result["decoded"] is True
    assert result["name"] == "transfer"
    assert result["signature"] == "transfer(address,uint256)"
    assert result["params"][0]["type"] == "address"
    assert result["params"][0]["value"].lower() == USER.lower()
    assert result["params"][1] == {"type": "uint256", "value": "100"}
    assert requests[0].url.params["hex_signature"] == "0xa9059cbb"

    # 두 번째 조회는 캐시
    await resolver.decode_method_signature(input_data)
    assert len(requests) == 1


async def test_decode_method_signature_no_match():
    resolver = resolver_with(lambda request: httpx.Response(200, json={"results": []}))
    result = await resolver.decode_method_signature("0x12345678")
    assert result == {"selector": "0x12345678", "decoded": False, "name": None, "signature": None, "params": []}


async def test_decode_method_signature_network_failure():
    def handler(request):
        raise httpx.ConnectError("down", request=request)

    resolver = resolver_with(handler)
    result = await resolver.decode_method_signature("0xA9059CBB")
    assert result["decoded"] is False
    assert result["selector"] == "0xa9059cbb"
    # 실패는 캐시하지 않는다
    assert len(resolver.cache) == 0


async def test_decode_method_signature_short_input():
    resolver = resolver_with(lambda request: httpx.Response(500))
    assert await resolver.decode_method_signature("0x") is None
    assert await resolver.decode_method_signature("0x1234") is None
