"""Transaction intents and receipts exchanged with the chain collaborator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple

from .contract import ContractFunction


@dataclass(frozen=True)
class TransactionIntent:
    """One pending contract call, fully specified including its nonce."""

    label: str
    to: str
    function: ContractFunction
    args: Tuple[Any, ...]
    nonce: int
    sender: str
    private_key: bytes = field(repr=False)
    value: int = 0

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError("value must be non-negative")
        if self.value and not self.function.payable:
            raise ValueError(f"{self.function.signature} is not payable but {self.label} sends {self.value} wei")

    def calldata(self) -> bytes:
        return self.function.encode(self.args)


@dataclass(frozen=True)
class TransactionReceipt:
    tx_hash: str
    status: int
    block_number: int
    gas_used: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == 1


class TxState(str, Enum):
    BUILT = "built"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass
class TransactionRecord:
    """Lifecycle bookkeeping for a single intent."""

    intent: TransactionIntent
    state: TxState = TxState.BUILT
    tx_hash: Optional[str] = None
    receipt: Optional[TransactionReceipt] = None
    error: Optional[BaseException] = None
    polls: int = 0

    @property
    def label(self) -> str:
        return self.intent.label


__all__ = ["TransactionIntent", "TransactionReceipt", "TransactionRecord", "TxState"]
