import pytest

from deposit_miner.errors import InvalidSecret
from deposit_miner.hashing import keccak256
from deposit_miner.keys import (
    SECP256K1_N,
    account_key,
    address_of,
    derive,
    derive_account_keys,
    derive_salt,
    public_key,
    validate_secret,
)


def test_derive_is_deterministic(withdrawal_secret):
    first = derive(withdrawal_secret, 3)
    second = derive(withdrawal_secret, 3)

    assert first == second
    assert len(first.pubkey) == 64
    assert len(first.salt) == 32
    assert first.pubkey_salt_hash == keccak256(first.pubkey, first.salt)


def test_salt_depends_on_nonce_but_pubkey_does_not(withdrawal_secret):
    zero = derive(withdrawal_secret, 0)
    one = derive(withdrawal_secret, 1)

    assert zero.pubkey == one.pubkey
    assert zero.salt != one.salt
    assert zero.pubkey_salt_hash != one.pubkey_salt_hash
    assert derive_salt(withdrawal_secret, 1) == one.salt


def test_public_key_matches_address(withdrawal_secret):
    pubkey = public_key(withdrawal_secret)
    expected = "0x" + keccak256(pubkey)[-20:].hex()

    assert address_of(withdrawal_secret).lower() == expected


@pytest.mark.parametrize(
    "secret",
    [
        b"\x00" * 32,
        SECP256K1_N.to_bytes(32, "big"),
        b"\xff" * 32,
        b"\x01" * 31,
    ],
)
def test_invalid_secrets_are_rejected(secret):
    with pytest.raises(InvalidSecret):
        validate_secret(secret)
    with pytest.raises(InvalidSecret):
        derive(secret, 0)


def test_account_keys_are_distinct_and_reproducible(withdrawal_secret):
    keys = derive_account_keys(withdrawal_secret, 4)

    assert [key.index for key in keys] == [0, 1, 2, 3]
    assert len({key.deposit_address for key in keys}) == 4
    assert keys == derive_account_keys(withdrawal_secret, 4)
    assert all(key.withdrawal_address == address_of(withdrawal_secret) for key in keys)
    assert all(key.deposit_address == address_of(key.deposit_private_key) for key in keys)


def test_account_key_repr_hides_private_key(withdrawal_secret):
    key = account_key(withdrawal_secret, 0)

    assert key.deposit_private_key.hex() not in repr(key)
    assert key.deposit_address in repr(key)
