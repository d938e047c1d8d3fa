"""INT1 contract surface: call encoding and ``Deposited`` log decoding."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence, Tuple

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_utils import function_signature_to_4byte_selector, keccak, to_checksum_address

from ..hashing import from_hex, to_hex


@dataclass(frozen=True)
class ContractFunction:
    name: str
    inputs: Tuple[str, ...]
    payable: bool = False

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> bytes:
        return function_signature_to_4byte_selector(self.signature)

    def encode(self, args: Sequence[Any]) -> bytes:
        if len(args) != len(self.inputs):
            raise ValueError(f"{self.signature} expects {len(self.inputs)} arguments, got {len(args)}")
        return self.selector + abi_encode(list(self.inputs), list(args))


DEPOSIT_NATIVE_TOKEN = ContractFunction("depositNativeToken", ("bytes32",), payable=True)
WITHDRAW = ContractFunction("withdraw", ("bytes", "bytes"))
CLAIM = ContractFunction("claim", ("bytes", "bytes"))

DEPOSITED_SIGNATURE = "Deposited(uint256,address,bytes32,uint32,uint256,uint256)"
DEPOSITED_TOPIC = keccak(text=DEPOSITED_SIGNATURE)
_DEPOSITED_DATA_TYPES = ["uint32", "uint256", "uint256"]


@dataclass(frozen=True)
class DepositedLog:
    """Fields of a ``Deposited`` log; the issuing nonce needs a separate lookup."""

    deposit_id: int
    sender: str
    recipient_salt_hash: str
    token_index: int
    amount: int
    deposited_at: int
    tx_hash: str
    block_number: int
    log_index: int


def _as_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return from_hex(value)
    raise TypeError(f"cannot interpret {type(value).__name__} as bytes")


def _as_int(value: Any) -> int:
    if isinstance(value, str):
        return int(value, 0)
    return int(value)


def decode_deposited_log(log: Mapping[str, Any]) -> DepositedLog:
    topics = [_as_bytes(topic) for topic in log["topics"]]
    if len(topics) != 4 or topics[0] != DEPOSITED_TOPIC:
        raise ValueError("log is not a Deposited event")
    token_index, amount, deposited_at = abi_decode(_DEPOSITED_DATA_TYPES, _as_bytes(log["data"]))
    return DepositedLog(
        deposit_id=int.from_bytes(topics[1], "big"),
        sender=to_checksum_address(topics[2][-20:]),
        recipient_salt_hash=to_hex(topics[3]),
        token_index=int(token_index),
        amount=int(amount),
        deposited_at=int(deposited_at),
        tx_hash=to_hex(_as_bytes(log["transactionHash"])),
        block_number=_as_int(log["blockNumber"]),
        log_index=_as_int(log["logIndex"]),
    )


__all__ = [
    "CLAIM",
    "DEPOSITED_SIGNATURE",
    "DEPOSITED_TOPIC",
    "DEPOSIT_NATIVE_TOKEN",
    "ContractFunction",
    "DepositedLog",
    "WITHDRAW",
    "decode_deposited_log",
]
