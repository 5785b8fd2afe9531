# Services package
from .cache import SimpleCache
from .chain_configs import ChainConfig, get_chain_configs
from .errors import TxLookupError
from .rpc_client import ChainReader
from .transaction_service import TransactionService, validate_tx_hash

__all__ = [
    "SimpleCache",
    "ChainConfig",
    "get_chain_configs",
    "TxLookupError",
    "ChainReader",
    "TransactionService",
    "validate_tx_hash",
]
