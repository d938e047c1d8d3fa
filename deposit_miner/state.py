"""Persistence for the ingested deposit history and miner progress."""

from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError

from .errors import StateStoreError, TreeInvariantError
from .hashing import to_hex
from .ingest import DepositIngestor
from .models import DepositEvent
from .tree import DEPOSIT_TREE_HEIGHT, DepositTree

_LOGGER = logging.getLogger(__name__)

SNAPSHOT_VERSION = "deposit-miner.snapshot.v1"


class MinerSnapshot(BaseModel):
    """Everything needed to rebuild the deposit tree without rescanning the chain."""

    version: str = Field(default=SNAPSHOT_VERSION)
    tree_height: int = DEPOSIT_TREE_HEIGHT
    events: List[DepositEvent] = Field(default_factory=list)
    root: str
    next_block: int = 0
    exited_deposit_ids: List[int] = Field(default_factory=list)
    claimed_deposit_ids: List[int] = Field(default_factory=list)
    saved_at: float = Field(default_factory=lambda: float(time.time()))

    def rebuild(self) -> DepositIngestor:
        """Replay the stored events into a fresh tree and check the root."""

        ingestor = DepositIngestor(DepositTree(self.tree_height))
        ingestor.ingest_many(self.events)
        replayed = to_hex(ingestor.tree.root())
        if replayed != self.root:
            raise TreeInvariantError(f"replayed deposit root {replayed} does not match persisted root {self.root}")
        return ingestor


class FileSnapshotStore:
    """Store the snapshot as a JSON document, replacing it atomically."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def save(self, snapshot: MinerSnapshot) -> None:
        payload = snapshot.model_dump(mode="json")
        with self._lock:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
                with tmp_path.open("w", encoding="utf-8") as handle:
                    json.dump(payload, handle, ensure_ascii=False, sort_keys=True)
                tmp_path.replace(self._path)
            except OSError as exc:
                raise StateStoreError(f"Failed to write miner state to {self._path}: {exc}") from exc
        _LOGGER.debug("Saved %d deposit events to %s", len(snapshot.events), self._path)

    def load(self) -> Optional[MinerSnapshot]:
        if not self._path.exists():
            return None
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
            snapshot = MinerSnapshot.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            raise StateStoreError(f"Failed to load miner state from {self._path}: {exc}") from exc
        if snapshot.version != SNAPSHOT_VERSION:
            raise StateStoreError(f"Unsupported miner state version {snapshot.version!r} in {self._path}")
        return snapshot


__all__ = ["FileSnapshotStore", "MinerSnapshot", "SNAPSHOT_VERSION"]
