"""Transaction lifecycle: nonce assignment, submission and receipt polling.

Each call moves one intent through ``built -> submitted -> confirmed`` or
ends in ``failed``. Nonces are read and consumed under a per-account lock so
two cycles sharing a deposit key can never build intents with the same
nonce. Receipt polling only re-reads the receipt; a transaction is never
broadcast twice.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Dict, Optional, Union

from ..errors import ConfirmationTimeout, NetworkError, TransactionReverted
from ..retry import RetryPolicy, poll
from .client import ChainClient
from .types import TransactionIntent, TransactionReceipt, TransactionRecord, TxState

_LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIRMATION_POLICY = RetryPolicy(attempts=20, interval=10.0)

IntentBuilder = Callable[[int], Union[TransactionIntent, Awaitable[TransactionIntent]]]


class TransactionManager:
    """Single owner of nonce state for every account it sends from."""

    def __init__(
        self,
        chain: ChainClient,
        *,
        confirmation: RetryPolicy | None = None,
    ) -> None:
        self._chain = chain
        self._confirmation = confirmation or DEFAULT_CONFIRMATION_POLICY
        self._account_locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, address: str) -> asyncio.Lock:
        key = address.lower()
        lock = self._account_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._account_locks[key] = lock
        return lock

    async def send(self, sender: str, build: IntentBuilder) -> TransactionRecord:
        """Fetch ``sender``'s nonce, build the intent from it, submit and confirm.

        ``build`` receives the freshly read nonce so values bound to it (such
        as deposit salts) are derived from the nonce the transaction will
        actually carry.
        """

        async with self._lock_for(sender):
            nonce = await self._chain.get_nonce(sender)
            intent = build(nonce)
            if inspect.isawaitable(intent):
                intent = await intent
            if intent.nonce != nonce:
                raise ValueError(f"intent {intent.label} carries nonce {intent.nonce}, expected {nonce}")
            record = TransactionRecord(intent=intent)
            _LOGGER.info("Built %s from %s (nonce %d)", intent.label, sender, nonce)
            try:
                record.tx_hash = await self._chain.submit(intent)
            except Exception as exc:
                self._fail(record, exc)
                raise
            record.state = TxState.SUBMITTED
            _LOGGER.info("Submitted %s: %s", intent.label, record.tx_hash)
        return await self.confirm(record)

    async def confirm(self, record: TransactionRecord) -> TransactionRecord:
        """Poll for ``record``'s receipt within the confirmation budget."""

        if record.tx_hash is None:
            raise ValueError("cannot confirm a transaction that was never submitted")
        tx_hash = record.tx_hash

        async def fetch() -> Optional[TransactionReceipt]:
            record.polls += 1
            return await self._chain.poll_receipt(tx_hash)

        try:
            receipt = await poll(fetch, self._confirmation, label=f"receipt {record.label}")
        except NetworkError as exc:
            error = ConfirmationTimeout(tx_hash, record.polls, label=record.label, reason=str(exc))
            self._fail(record, error)
            _LOGGER.error("Lost track of %s while polling (%s); check %s manually", record.label, exc, tx_hash)
            raise error from exc
        if receipt is None:
            error = ConfirmationTimeout(tx_hash, record.polls, label=record.label)
            self._fail(record, error)
            _LOGGER.error("%s not mined after %d polls; check %s manually", record.label, record.polls, tx_hash)
            raise error
        record.receipt = receipt
        if not receipt.succeeded:
            error = TransactionReverted(
                f"{record.label} reverted in block {receipt.block_number}",
                tx_hash=tx_hash,
                label=record.label,
            )
            self._fail(record, error)
            _LOGGER.error("%s reverted: %s", record.label, tx_hash)
            raise error
        record.state = TxState.CONFIRMED
        _LOGGER.info("Confirmed %s in block %d", record.label, receipt.block_number)
        return record

    @staticmethod
    def _fail(record: TransactionRecord, error: BaseException) -> None:
        record.state = TxState.FAILED
        record.error = error


__all__ = ["DEFAULT_CONFIRMATION_POLICY", "IntentBuilder", "TransactionManager"]
