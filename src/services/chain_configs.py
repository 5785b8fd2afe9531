#chain_configs.py

import os
from typing import Dict, Optional

from dotenv import load_dotenv
from pydantic import ConfigDict, Field

from .models import CamelModel

load_dotenv()


class ChainConfig(CamelModel):
    """체인별 정적 설정 (프로세스 시작 시 1회 생성, 불변)"""
    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    native_symbol: str
    native_decimals: int = 18
    explorer_url_template: str
    rpc_primary: str
    rpc_fallback: Optional[str] = None
    supports_l1_fee: bool = False
    supports_eip1559: bool = True
    # "oracle": GasPriceOracle 컨트랙트 조회, "receipt": 영수증 필드 사용
    l1_fee_source: Optional[str] = None
    dex_names: Dict[str, str] = Field(default_factory=lambda: {"v2": "Uniswap V2", "v3": "Uniswap V3"})

    def explorer_url(self, tx_hash: str) -> str:
        return self.explorer_url_template.format(tx_hash=tx_hash)


def _rpc_env(prefix: str, default_primary: str, default_fallback: str):
    # 환경 변수로 커스텀 RPC URL 설정 가능
    return (
        os.getenv(f"{prefix}_RPC_PRIMARY", default_primary),
        os.getenv(f"{prefix}_RPC_FALLBACK", default_fallback),
    )


def get_chain_configs() -> Dict[str, ChainConfig]:
    bsc_primary, bsc_fallback = _rpc_env(
        "BSC", "https://bsc-dataseed1.binance.org", "https://bsc-dataseed2.binance.org"
    )
    eth_primary, eth_fallback = _rpc_env(
        "ETH", "https://eth.llamarpc.com", "https://rpc.ankr.com/eth"
    )
    op_primary, op_fallback = _rpc_env(
        "OP", "https://mainnet.optimism.io", "https://rpc.ankr.com/optimism"
    )
    arb_primary, arb_fallback = _rpc_env(
        "ARB", "https://arb1.arbitrum.io/rpc", "https://rpc.ankr.com/arbitrum"
    )
    polygon_primary, polygon_fallback = _rpc_env(
        "POLYGON", "https://polygon-rpc.com", "https://rpc.ankr.com/polygon"
    )

    return {
        "bsc": ChainConfig(
            id="bsc",
            display_name="BSC",
            native_symbol="BNB",
            explorer_url_template="https://bscscan.com/tx/{tx_hash}",
            rpc_primary=bsc_primary,
            rpc_fallback=bsc_fallback,
            dex_names={"v2": "PancakeSwap V2", "v3": "PancakeSwap V3"},
        ),
        "eth": ChainConfig(
            id="eth",
            display_name="Ethereum",
            native_symbol="ETH",
            explorer_url_template="https://etherscan.io/tx/{tx_hash}",
            rpc_primary=eth_primary,
            rpc_fallback=eth_fallback,
        ),
        "op": ChainConfig(
            id="op",
            display_name="Optimism",
            native_symbol="ETH",
            explorer_url_template="https://optimistic.etherscan.io/tx/{tx_hash}",
            rpc_primary=op_primary,
            rpc_fallback=op_fallback,
            supports_l1_fee=True,
            l1_fee_source="oracle",
            dex_names={"v2": "Velodrome/Uniswap V2", "v3": "Uniswap V3"},
        ),
        "arb": ChainConfig(
            id="arb",
            display_name="Arbitrum One",
            native_symbol="ETH",
            explorer_url_template="https://arbiscan.io/tx/{tx_hash}",
            rpc_primary=arb_primary,
            rpc_fallback=arb_fallback,
            supports_l1_fee=True,
            l1_fee_source="receipt",
            dex_names={"v2": "Camelot/Sushi V2", "v3": "Uniswap V3"},
        ),
        "polygon": ChainConfig(
            id="polygon",
            display_name="Polygon",
            native_symbol="POL",
            explorer_url_template="https://polygonscan.com/tx/{tx_hash}",
            rpc_primary=polygon_primary,
            rpc_fallback=polygon_fallback,
            dex_names={"v2": "QuickSwap V2", "v3": "Uniswap V3"},
        ),
    }
