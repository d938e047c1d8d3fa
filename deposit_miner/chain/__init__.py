"""Chain collaborators: contract encoding, web3 client, event source and transaction lifecycle."""

from .client import ChainClient, Web3ChainClient
from .contract import CLAIM, DEPOSIT_NATIVE_TOKEN, WITHDRAW, ContractFunction
from .events import DepositEventSource, EventPage
from .lifecycle import TransactionManager
from .types import TransactionIntent, TransactionReceipt, TransactionRecord, TxState

__all__ = [
    "CLAIM",
    "ChainClient",
    "ContractFunction",
    "DEPOSIT_NATIVE_TOKEN",
    "DepositEventSource",
    "EventPage",
    "TransactionIntent",
    "TransactionManager",
    "TransactionReceipt",
    "TransactionRecord",
    "TxState",
    "WITHDRAW",
    "Web3ChainClient",
]
