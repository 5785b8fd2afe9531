"""
실패 원인별 사용자 안내 문구

revert reason 키워드 규칙은 순서가 곧 우선순위이다 (첫 번째로 일치한 규칙 사용).
규칙표를 바꾸거나 확장하려면 SuggestionRules 구현을 새로 주입하면 된다.
"""
from typing import Iterable, Optional, Sequence, Tuple

# (키워드 목록, 안내 문구)
DEFAULT_REVERT_RULES: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("balance", "insufficient"), "请检查您的代币余额是否充足。"),
    (("allowance", "approved"), "请先调用 approve() 授权足够的代币额度。"),
    (("owner", "not owner", "caller"), "您没有执行此操作的权限，请确认调用者地址是否正确。"),
    (("deadline", "expired"), "交易已过期，请重新发起并使用更新的截止时间。"),
    (("slippage", "price impact"), "价格滑点超出容忍范围，请调高滑点设置或减少交易金额。"),
    (("pause", "paused"), "合约当前处于暂停状态，请稍后再试。"),
    (("zero", "invalid amount"), "请确保交易金额大于零且参数合法。"),
)

PANIC_SUGGESTIONS = {
    0: "断言失败，合约内部状态异常，请联系开发者。",
    1: "发生算术溢出或下溢，请检查计算参数是否超出范围。",
    17: "数组访问越界，请检查索引参数是否在有效范围内。",
    18: "发生除以零错误，请确保分母不为零。",
    32: "枚举值越界，请检查传入参数是否合法。",
    34: "对空数组执行了 pop() 操作，合约逻辑错误。",
    49: "无效的跳转目标，合约编译或部署存在问题。",
    50: "调用了无效合约（可能是地址为零或非合约地址）。",
    65: "内存分配失败，交易消耗 gas 可能过多。",
    81: "访问了未初始化的存储变量，合约存在逻辑缺陷。",
}

DEFAULT_PANIC_SUGGESTION = "合约发生 Panic 错误，请联系合约开发者。"
EMPTY_REASON_SUGGESTION = "请检查交易参数是否正确。"


class SuggestionRules:
    """revert reason / panic code → 안내 문구"""

    def __init__(
        self,
        revert_rules: Iterable[Tuple[Tuple[str, ...], str]] = DEFAULT_REVERT_RULES,
        panic_suggestions: Optional[dict] = None,
    ):
        self.revert_rules = [(tuple(k.lower() for k in keywords), text) for keywords, text in revert_rules]
        self.panic_suggestions = dict(PANIC_SUGGESTIONS if panic_suggestions is None else panic_suggestions)

    def for_revert(self, reason: Optional[str]) -> str:
        if not reason:
            return EMPTY_REASON_SUGGESTION
        r = reason.lower()
        for keywords, text in self.revert_rules:
            if any(k in r for k in keywords):
                return text
        return f"合约回滚原因：{reason}。请根据错误信息检查您的操作是否符合合约要求。"

    def for_panic(self, code: int) -> str:
        return self.panic_suggestions.get(code, DEFAULT_PANIC_SUGGESTION)


default_rules = SuggestionRules()
