"""Assemble withdrawal witnesses from the deposit tree and re-derived secrets."""

from __future__ import annotations

import logging

from .errors import ConfigurationError, DepositNotIndexed, DepositOwnershipError
from .hashing import to_hex
from .keys import AccountKey, derive
from .models import DepositEvent, WithdrawalWitness
from .tree import DepositTree

_LOGGER = logging.getLogger(__name__)


def build_withdrawal_witness(tree: DepositTree, key: AccountKey, event: DepositEvent) -> WithdrawalWitness:
    """Return the witness proving ``event``'s deposit belongs to ``key``.

    The public key and salt are derived again from the deposit secret and the
    nonce of the transaction that made the deposit rather than read from a
    cache, so a derivation change shows up as a commitment mismatch here.
    Root and proof come from one tree snapshot.
    """

    if key.withdrawal_address is None:
        raise ConfigurationError(f"deposit account {key.deposit_address} has no withdrawal address")
    leaf = event.deposit()
    leaf_hash = leaf.hash()
    index = tree.index_of(leaf_hash)
    if index is None:
        raise DepositNotIndexed(event.deposit_id, to_hex(leaf_hash))

    secrets = derive(key.deposit_private_key, event.tx_nonce)
    if secrets.pubkey_salt_hash != leaf.pubkey_salt_hash:
        raise DepositOwnershipError(
            f"deposit {event.deposit_id} commitment {event.recipient_salt_hash} was not made by "
            f"{key.deposit_address} with nonce {event.tx_nonce}"
        )

    snapshot = tree.snapshot(index)
    _LOGGER.debug("Witness for deposit %d at index %d against root %s", event.deposit_id, index, to_hex(snapshot.root))
    return WithdrawalWitness(
        deposit_root=snapshot.root,
        deposit_index=index,
        deposit_leaf=leaf,
        merkle_proof=snapshot.proof,
        recipient=key.withdrawal_address,
        pubkey=secrets.pubkey,
        salt=secrets.salt,
    )


__all__ = ["build_withdrawal_witness"]
