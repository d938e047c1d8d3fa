"""Explicitly owned runtime context shared by the miner components."""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Set

from .chain.client import ChainClient, Web3ChainClient
from .chain.events import DepositEventSource
from .chain.lifecycle import TransactionManager
from .config import MinerSettings
from .errors import ConfigurationError
from .hashing import to_hex
from .ingest import DepositIngestor, EventSource
from .prover import HttpProverClient, ProofEngine
from .state import FileSnapshotStore, MinerSnapshot
from .tree import DepositTree

_LOGGER = logging.getLogger(__name__)


class MinerContext:
    """Holds the deposit tree, collaborators and progress for one process.

    Create it with :meth:`init` at start-up and release it with
    :meth:`teardown` (or use it as an async context manager). Components get
    the context passed in; nothing reads it from module state.
    """

    def __init__(
        self,
        settings: MinerSettings,
        *,
        chain: ChainClient,
        event_source: EventSource,
        prover: Optional[ProofEngine] = None,
        store: Optional[FileSnapshotStore] = None,
        ingestor: Optional[DepositIngestor] = None,
        next_block: Optional[int] = None,
        exited: Iterable[int] = (),
        claimed: Iterable[int] = (),
    ) -> None:
        self.settings = settings
        self.chain = chain
        self.event_source = event_source
        self.prover = prover
        self.store = store
        self.ingestor = ingestor or DepositIngestor(DepositTree(settings.tree_height))
        self.transactions = TransactionManager(chain, confirmation=settings.confirmation_policy)
        self.next_block = settings.start_block if next_block is None else next_block
        self.exited: Set[int] = set(exited)
        self.claimed: Set[int] = set(claimed)
        self._closed = False

    @property
    def tree(self) -> DepositTree:
        return self.ingestor.tree

    @classmethod
    async def init(
        cls,
        settings: MinerSettings,
        *,
        chain: Optional[ChainClient] = None,
        event_source: Optional[EventSource] = None,
        prover: Optional[ProofEngine] = None,
        store: Optional[FileSnapshotStore] = None,
    ) -> "MinerContext":
        """Build collaborators from ``settings`` where not supplied and rehydrate saved state."""

        if chain is None:
            chain = Web3ChainClient.from_url(settings.rpc_url, chain_id=settings.chain_id, gas_limit=settings.gas_limit)
        if event_source is None:
            if not isinstance(chain, Web3ChainClient):
                raise ConfigurationError("an event source is required when a custom chain client is used")
            event_source = DepositEventSource(chain.w3, settings.contract_address, page_size=settings.log_page_size)
        if prover is None and settings.prover_url:
            prover = HttpProverClient(
                settings.prover_url,
                api_key=settings.prover_api_key,
                timeout=settings.prover_timeout,
            )
        store = store or FileSnapshotStore(settings.state_path)

        snapshot = store.load()
        if snapshot is None:
            _LOGGER.info("No saved miner state at %s; starting from block %d", store.path, settings.start_block)
            return cls(settings, chain=chain, event_source=event_source, prover=prover, store=store)
        if snapshot.tree_height != settings.tree_height:
            raise ConfigurationError(
                f"saved state uses tree height {snapshot.tree_height}, settings ask for {settings.tree_height}"
            )
        ingestor = snapshot.rebuild()
        _LOGGER.info(
            "Restored %d deposits (root %s), resuming at block %d",
            len(snapshot.events),
            snapshot.root,
            snapshot.next_block,
        )
        return cls(
            settings,
            chain=chain,
            event_source=event_source,
            prover=prover,
            store=store,
            ingestor=ingestor,
            next_block=max(snapshot.next_block, settings.start_block),
            exited=snapshot.exited_deposit_ids,
            claimed=snapshot.claimed_deposit_ids,
        )

    def snapshot(self) -> MinerSnapshot:
        return MinerSnapshot(
            tree_height=self.tree.height,
            events=self.ingestor.events,
            root=to_hex(self.tree.root()),
            next_block=self.next_block,
            exited_deposit_ids=sorted(self.exited),
            claimed_deposit_ids=sorted(self.claimed),
        )

    def save(self) -> None:
        if self.store is not None:
            self.store.save(self.snapshot())

    async def teardown(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.save()
        finally:
            if self.prover is not None:
                await self.prover.close()

    async def __aenter__(self) -> "MinerContext":
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.teardown()


__all__ = ["MinerContext"]
