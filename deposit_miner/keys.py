"""Deterministic key, public key and salt derivation.

Nothing here touches a random source: every value is a pure function of the
withdrawal secret, a key index and a deposit nonce, so a restarted miner can
recover all of its deposit accounts and salts from the withdrawal key alone.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from eth_keys import keys as eth_keys
from eth_keys.exceptions import ValidationError as EthKeysValidationError

from .errors import InvalidSecret
from .hashing import keccak256, uint_be

SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

_DEPOSIT_KEY_TAG = b"deposit-miner/deposit-key"
_SALT_TAG = b"deposit-miner/salt"


def _private_key(secret: bytes) -> eth_keys.PrivateKey:
    if not isinstance(secret, (bytes, bytearray)) or len(secret) != 32:
        raise InvalidSecret("secret must be exactly 32 bytes")
    scalar = int.from_bytes(secret, "big")
    if not 0 < scalar < SECP256K1_N:
        raise InvalidSecret("secret is not a valid secp256k1 scalar")
    try:
        return eth_keys.PrivateKey(bytes(secret))
    except EthKeysValidationError as exc:  # pragma: no cover - range checked above
        raise InvalidSecret(str(exc)) from exc


def validate_secret(secret: bytes) -> bytes:
    """Return ``secret`` unchanged if it is a usable private scalar."""

    _private_key(secret)
    return bytes(secret)


def public_key(secret: bytes) -> bytes:
    """Return the 64-byte uncompressed public key (x || y) of ``secret``."""

    return _private_key(secret).public_key.to_bytes()


def address_of(secret: bytes) -> str:
    """Return the checksummed Ethereum address controlled by ``secret``."""

    return _private_key(secret).public_key.to_checksum_address()


def derive_salt(secret: bytes, nonce: int) -> bytes:
    """Return the 32-byte salt bound to ``nonce`` for deposits made with ``secret``."""

    validate_secret(secret)
    return keccak256(_SALT_TAG, bytes(secret), uint_be(nonce, 8))


def pubkey_salt_hash(pubkey: bytes, salt: bytes) -> bytes:
    """Return the recipient commitment submitted with a deposit."""

    return keccak256(pubkey, salt)


@dataclass(frozen=True)
class DerivedDepositSecrets:
    pubkey: bytes
    salt: bytes
    pubkey_salt_hash: bytes


def derive(secret: bytes, nonce: int) -> DerivedDepositSecrets:
    """Derive the public key, salt and commitment for one deposit."""

    pubkey = public_key(secret)
    salt = derive_salt(secret, nonce)
    return DerivedDepositSecrets(pubkey=pubkey, salt=salt, pubkey_salt_hash=pubkey_salt_hash(pubkey, salt))


def derive_deposit_private_key(withdrawal_secret: bytes, index: int) -> bytes:
    """Derive the private key of deposit account ``index``."""

    validate_secret(withdrawal_secret)
    candidate = keccak256(_DEPOSIT_KEY_TAG, bytes(withdrawal_secret), uint_be(index, 8))
    return validate_secret(candidate)


@dataclass(frozen=True)
class AccountKey:
    """Deposit account used for one mining cycle."""

    index: int
    deposit_private_key: bytes = field(repr=False)
    deposit_address: str
    withdrawal_address: Optional[str] = None


def account_key(withdrawal_secret: bytes, index: int, *, withdrawal_address: Optional[str] = None) -> AccountKey:
    deposit_secret = derive_deposit_private_key(withdrawal_secret, index)
    return AccountKey(
        index=index,
        deposit_private_key=deposit_secret,
        deposit_address=address_of(deposit_secret),
        withdrawal_address=withdrawal_address or address_of(withdrawal_secret),
    )


def derive_account_keys(
    withdrawal_secret: bytes,
    count: int,
    *,
    withdrawal_address: Optional[str] = None,
) -> List[AccountKey]:
    """Return deposit accounts ``0 .. count - 1`` of a withdrawal key."""

    if count < 0:
        raise ValueError("count must be non-negative")
    return [account_key(withdrawal_secret, index, withdrawal_address=withdrawal_address) for index in range(count)]


__all__ = [
    "AccountKey",
    "DerivedDepositSecrets",
    "SECP256K1_N",
    "account_key",
    "address_of",
    "derive",
    "derive_account_keys",
    "derive_deposit_private_key",
    "derive_salt",
    "pubkey_salt_hash",
    "public_key",
    "validate_secret",
]
