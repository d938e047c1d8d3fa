"""Error taxonomy shared by the deposit miner components."""

from __future__ import annotations

from typing import Optional


class MinerError(RuntimeError):
    """Base class for deposit miner failures.

    ``fatal`` tells the orchestrator whether the failure aborts the whole run
    or only the cycle that raised it.
    """

    fatal: bool = True


class ConfigurationError(MinerError):
    """Raised when required settings are missing or inconsistent."""


class InvalidSecret(MinerError):
    """Raised when a secret is not a valid secp256k1 private scalar."""


class TreeFull(MinerError):
    """Raised when the deposit tree has no free leaf positions left."""

    def __init__(self, capacity: int) -> None:
        super().__init__(f"Deposit tree is full ({capacity} leaves)")
        self.capacity = capacity


class IndexOutOfRange(MinerError):
    """Raised when a proof is requested for a position that holds no leaf."""

    def __init__(self, index: int, size: int) -> None:
        super().__init__(f"Leaf index {index} out of range for tree of size {size}")
        self.index = index
        self.size = size


class TreeInvariantError(MinerError):
    """Raised when the tree structure would diverge from its reverse index."""


class DepositNotIndexed(MinerError):
    """Raised when a witness is requested for a deposit that was never ingested."""

    def __init__(self, deposit_id: int, leaf_hash: str) -> None:
        super().__init__(f"Deposit {deposit_id} ({leaf_hash}) is not in the local deposit tree")
        self.deposit_id = deposit_id
        self.leaf_hash = leaf_hash


class DepositOwnershipError(MinerError):
    """Raised when re-derived secrets do not reproduce a deposit's commitment."""


class ConfirmationTimeout(MinerError):
    """Raised when a broadcast transaction could not be confirmed.

    Either no receipt showed up within the polling budget or polling itself
    failed (``reason``). The transaction may still be mined later; the hash is
    kept for manual reconciliation.
    """

    def __init__(self, tx_hash: str, attempts: int, *, label: str = "", reason: str = "") -> None:
        message = f"Transaction {tx_hash} ({label or 'unlabelled'}) not confirmed after {attempts} polls"
        super().__init__(f"{message}: {reason}" if reason else message)
        self.tx_hash = tx_hash
        self.attempts = attempts
        self.label = label
        self.reason = reason


class TransactionReverted(MinerError):
    """Raised when a transaction reverts on-chain or during gas estimation."""

    fatal = False

    def __init__(self, message: str, *, tx_hash: Optional[str] = None, label: str = "") -> None:
        super().__init__(message)
        self.tx_hash = tx_hash
        self.label = label


class NetworkError(MinerError):
    """Raised on RPC or HTTP transport failures."""

    fatal = False


class InsufficientBalance(MinerError):
    """Raised when a deposit account cannot cover the deposit and gas."""

    fatal = False

    def __init__(self, address: str, balance: int, required: int) -> None:
        super().__init__(f"Balance of {address} is {balance} wei, {required} wei required")
        self.address = address
        self.balance = balance
        self.required = required


class ProverError(MinerError):
    """Raised when the proof engine rejects a witness."""

    fatal = False

    def __init__(self, message: str, *, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.code = code


class StateStoreError(MinerError):
    """Raised when the persisted miner snapshot cannot be read or written."""


__all__ = [
    "ConfigurationError",
    "ConfirmationTimeout",
    "DepositNotIndexed",
    "DepositOwnershipError",
    "IndexOutOfRange",
    "InsufficientBalance",
    "InvalidSecret",
    "MinerError",
    "NetworkError",
    "ProverError",
    "StateStoreError",
    "TransactionReverted",
    "TreeFull",
    "TreeInvariantError",
]
