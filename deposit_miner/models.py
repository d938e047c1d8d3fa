"""Value types shared by the tree, ingestion and witness layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

from eth_utils import is_address, to_checksum_address
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .hashing import from_hex, keccak256, to_hex, uint_be

NATIVE_TOKEN_INDEX = 0


@dataclass(frozen=True)
class DepositLeaf:
    """Deposit commitment as mirrored into the deposit tree."""

    depositor: str
    pubkey_salt_hash: bytes
    amount: int
    token_index: int = NATIVE_TOKEN_INDEX

    def encode(self) -> bytes:
        return b"".join(
            (
                from_hex(self.depositor, length=20),
                self.pubkey_salt_hash,
                uint_be(self.amount, 32),
                uint_be(self.token_index, 4),
            )
        )

    def hash(self) -> bytes:
        return keccak256(self.encode())

    def to_payload(self) -> Dict[str, Any]:
        return {
            "depositor": self.depositor,
            "pubkeySaltHash": to_hex(self.pubkey_salt_hash),
            "amount": str(self.amount),
            "tokenIndex": self.token_index,
        }


class DepositEvent(BaseModel):
    """A decoded ``Deposited`` log together with its issuing transaction nonce."""

    model_config = ConfigDict(frozen=True)

    deposit_id: int = Field(..., ge=0)
    sender: str
    recipient_salt_hash: str
    amount: int = Field(..., ge=0)
    token_index: int = Field(default=NATIVE_TOKEN_INDEX, ge=0)
    deposited_at: int = Field(default=0, ge=0)
    tx_hash: str
    tx_nonce: int = Field(..., ge=0)
    block_number: int = Field(default=0, ge=0)
    log_index: int = Field(default=0, ge=0)

    @field_validator("sender")
    @classmethod
    def _checksum_sender(cls, value: str) -> str:
        if not is_address(value):
            raise ValueError("sender must be a 20-byte address")
        return to_checksum_address(value)

    @field_validator("recipient_salt_hash", "tx_hash")
    @classmethod
    def _normalise_bytes32(cls, value: str) -> str:
        return to_hex(from_hex(value, length=32))

    def deposit(self) -> DepositLeaf:
        return DepositLeaf(
            depositor=self.sender,
            pubkey_salt_hash=from_hex(self.recipient_salt_hash, length=32),
            amount=self.amount,
            token_index=self.token_index,
        )

    def leaf_hash(self) -> bytes:
        return self.deposit().hash()

    @property
    def order_key(self) -> Tuple[int, int]:
        return (self.block_number, self.log_index)


def hash_pair(left: bytes, right: bytes) -> bytes:
    return keccak256(left, right)


@dataclass(frozen=True)
class MerkleProof:
    """Sibling path from a leaf up to (but excluding) the root."""

    siblings: Tuple[bytes, ...]

    @property
    def height(self) -> int:
        return len(self.siblings)

    def compute_root(self, leaf: bytes, index: int) -> bytes:
        node = leaf
        position = index
        for sibling in self.siblings:
            if position & 1:
                node = hash_pair(sibling, node)
            else:
                node = hash_pair(node, sibling)
            position >>= 1
        return node

    def verify(self, leaf: bytes, index: int, root: bytes) -> bool:
        if index < 0 or index >> self.height:
            return False
        return self.compute_root(leaf, index) == root

    def to_payload(self) -> list[str]:
        return [to_hex(sibling) for sibling in self.siblings]


@dataclass(frozen=True)
class WithdrawalWitness:
    """Input handed to the proof engine for a single claim or exit."""

    deposit_root: bytes
    deposit_index: int
    deposit_leaf: DepositLeaf
    merkle_proof: MerkleProof
    recipient: str
    pubkey: bytes
    salt: bytes = field(repr=False)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "depositRoot": to_hex(self.deposit_root),
            "depositIndex": self.deposit_index,
            "deposit": self.deposit_leaf.to_payload(),
            "depositMerkleProof": self.merkle_proof.to_payload(),
            "recipient": self.recipient,
            "pubkey": to_hex(self.pubkey),
            "salt": to_hex(self.salt),
        }


@dataclass(frozen=True)
class WithdrawalProof:
    """Output of the proof engine, submitted on-chain as-is."""

    public_inputs: bytes
    proof: bytes


__all__ = [
    "DepositEvent",
    "DepositLeaf",
    "MerkleProof",
    "NATIVE_TOKEN_INDEX",
    "WithdrawalProof",
    "WithdrawalWitness",
    "hash_pair",
]
