"""Paged ``Deposited`` log scanner acting as the deposit event source."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional

from eth_utils import to_checksum_address

from ..hashing import to_hex
from ..models import DepositEvent
from .client import rpc_call
from .contract import DEPOSITED_TOPIC, decode_deposited_log

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventPage:
    """Events found in ``[from_block, next_block)`` in on-chain order."""

    events: List[DepositEvent]
    from_block: int
    next_block: int


class DepositEventSource:
    """Scan the contract's ``Deposited`` logs block range by block range.

    Iteration is restartable: calling :meth:`pages` again with the last
    ``next_block`` resumes exactly where the previous scan stopped.
    """

    def __init__(self, w3: Any, contract_address: str, *, page_size: int = 10_000) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self._w3 = w3
        self._address = to_checksum_address(contract_address)
        self._page_size = page_size

    async def latest_block(self) -> int:
        return int(await rpc_call(lambda: self._w3.eth.block_number))

    async def fetch(self, from_block: int, to_block: int) -> List[DepositEvent]:
        """Return decoded deposits in the inclusive block range."""

        logs = await rpc_call(
            self._w3.eth.get_logs,
            {
                "address": self._address,
                "topics": [to_hex(DEPOSITED_TOPIC)],
                "fromBlock": from_block,
                "toBlock": to_block,
            },
        )
        decoded = sorted(
            (decode_deposited_log(log) for log in logs),
            key=lambda item: (item.block_number, item.log_index),
        )
        nonces: Dict[str, int] = {}
        events: List[DepositEvent] = []
        for entry in decoded:
            if entry.tx_hash not in nonces:
                nonces[entry.tx_hash] = await self._tx_nonce(entry.tx_hash)
            events.append(
                DepositEvent(
                    deposit_id=entry.deposit_id,
                    sender=entry.sender,
                    recipient_salt_hash=entry.recipient_salt_hash,
                    amount=entry.amount,
                    token_index=entry.token_index,
                    deposited_at=entry.deposited_at,
                    tx_hash=entry.tx_hash,
                    tx_nonce=nonces[entry.tx_hash],
                    block_number=entry.block_number,
                    log_index=entry.log_index,
                )
            )
        return events

    async def _tx_nonce(self, tx_hash: str) -> int:
        tx = await rpc_call(self._w3.eth.get_transaction, tx_hash)
        return int(tx["nonce"])

    async def pages(self, from_block: int, *, to_block: Optional[int] = None) -> AsyncIterator[EventPage]:
        """Yield one :class:`EventPage` per block range up to ``to_block`` (default: latest)."""

        last = await self.latest_block() if to_block is None else to_block
        start = from_block
        while start <= last:
            end = min(start + self._page_size - 1, last)
            events = await self.fetch(start, end)
            _LOGGER.debug("Scanned blocks %d-%d: %d deposits", start, end, len(events))
            yield EventPage(events=events, from_block=start, next_block=end + 1)
            start = end + 1


__all__ = ["DepositEventSource", "EventPage"]
