"""Mirror on-chain deposit events into the local deposit tree."""

from __future__ import annotations

import logging
from typing import AsyncIterator, Dict, Iterable, List, Optional, Protocol, Tuple

from .chain.events import EventPage
from .errors import TreeInvariantError
from .models import DepositEvent
from .tree import DepositTree

_LOGGER = logging.getLogger(__name__)


class EventSource(Protocol):
    def pages(self, from_block: int) -> AsyncIterator[EventPage]:  # pragma: no cover - protocol
        """Yield pages of deposit events in on-chain order starting at ``from_block``."""


class DepositIngestor:
    """Append deposit leaves in event order and index them per (sender, nonce)."""

    def __init__(self, tree: DepositTree) -> None:
        self._tree = tree
        self._events: List[DepositEvent] = []
        self._by_sender_nonce: Dict[Tuple[str, int], int] = {}
        self._by_deposit_id: Dict[int, int] = {}

    @property
    def tree(self) -> DepositTree:
        return self._tree

    @property
    def events(self) -> List[DepositEvent]:
        return list(self._events)

    def ingest(self, event: DepositEvent) -> int:
        """Insert ``event``'s leaf unless the same deposit was ingested before; return its tree index.

        A redelivered deposit (same ``deposit_id`` and leaf) returns its existing
        index. A different deposit whose leaf is already in the tree raises
        :class:`TreeInvariantError`.
        """

        leaf = event.leaf_hash()
        known = self._by_deposit_id.get(event.deposit_id)
        if known is not None:
            if self._tree.get_leaf(known) != leaf:
                raise TreeInvariantError(
                    f"deposit {event.deposit_id} redelivered with a different leaf than the one at index {known}"
                )
            _LOGGER.debug("Deposit %d already ingested at index %d", event.deposit_id, known)
            return known
        existing = self._tree.index_of(leaf)
        if existing is not None:
            raise TreeInvariantError(
                f"deposit {event.deposit_id} has the same leaf as the deposit at index {existing}"
            )
        if self._events and event.order_key < self._events[-1].order_key:
            raise TreeInvariantError(
                f"deposit {event.deposit_id} at {event.order_key} arrived after {self._events[-1].order_key}"
            )
        index = self._tree.insert(leaf)
        self._events.append(event)
        self._by_sender_nonce[(event.sender.lower(), event.tx_nonce)] = index
        self._by_deposit_id[event.deposit_id] = index
        _LOGGER.info("Ingested deposit %d from %s at index %d", event.deposit_id, event.sender, index)
        return index

    def ingest_many(self, events: Iterable[DepositEvent]) -> List[int]:
        return [self.ingest(event) for event in events]

    async def sync(self, source: EventSource, from_block: int) -> int:
        """Ingest everything ``source`` has from ``from_block`` on; return the next block to scan."""

        next_block = from_block
        async for page in source.pages(from_block):
            self.ingest_many(page.events)
            next_block = page.next_block
        return next_block

    def index_for(self, sender: str, nonce: int) -> Optional[int]:
        return self._by_sender_nonce.get((sender.lower(), nonce))

    def deposits_for(self, address: str) -> List[DepositEvent]:
        wanted = address.lower()
        return [event for event in self._events if event.sender.lower() == wanted]


__all__ = ["DepositIngestor", "EventSource"]
