"""Append-only deposit commitment tree with a reverse leaf index."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import IndexOutOfRange, TreeFull, TreeInvariantError
from .hashing import BYTES32_ZERO
from .models import MerkleProof, hash_pair

DEPOSIT_TREE_HEIGHT = 32


def zero_hashes(height: int) -> Tuple[bytes, ...]:
    """Roots of empty subtrees for levels ``0 .. height``."""

    hashes = [BYTES32_ZERO]
    for _ in range(height):
        hashes.append(hash_pair(hashes[-1], hashes[-1]))
    return tuple(hashes)


@dataclass(frozen=True)
class TreeSnapshot:
    """Root, size and optional membership proof read under a single lock."""

    root: bytes
    size: int
    index: Optional[int] = None
    leaf: Optional[bytes] = None
    proof: Optional[MerkleProof] = None


class DepositTree:
    """Sparse fixed-height binary Merkle tree over deposit leaf hashes.

    Leaves live in an ordered list; interior nodes are stored per level only
    where they differ from the empty-subtree hash. ``_positions`` maps each
    leaf hash to its index and only ever stores positions, so it can never
    outlive the leaf it points at. Inserts update the list, the map and the
    cached path together under one lock.
    """

    def __init__(self, height: int = DEPOSIT_TREE_HEIGHT) -> None:
        if height <= 0:
            raise ValueError("tree height must be positive")
        self._height = height
        self._zeros = zero_hashes(height)
        self._leaves: List[bytes] = []
        self._positions: Dict[bytes, int] = {}
        # _nodes[level][position] for level 1..height; level 0 is _leaves.
        self._nodes: List[Dict[int, bytes]] = [dict() for _ in range(height + 1)]
        self._lock = threading.Lock()

    @classmethod
    def from_leaves(cls, leaves: Iterable[bytes], *, height: int = DEPOSIT_TREE_HEIGHT) -> "DepositTree":
        tree = cls(height)
        for leaf in leaves:
            tree.insert(leaf)
        return tree

    @property
    def height(self) -> int:
        return self._height

    @property
    def capacity(self) -> int:
        return 1 << self._height

    def __len__(self) -> int:
        return len(self._leaves)

    def insert(self, leaf: bytes) -> int:
        """Append ``leaf`` and return its index."""

        if len(leaf) != 32:
            raise ValueError("leaf must be a 32-byte hash")
        leaf = bytes(leaf)
        with self._lock:
            index = len(self._leaves)
            if index >= self.capacity:
                raise TreeFull(self.capacity)
            if leaf in self._positions:
                raise TreeInvariantError(
                    f"leaf 0x{leaf.hex()} already stored at index {self._positions[leaf]}"
                )
            updates = self._path_updates(index, leaf)
            self._leaves.append(leaf)
            self._positions[leaf] = index
            for level, position, node in updates:
                self._nodes[level][position] = node
            return index

    def root(self) -> bytes:
        with self._lock:
            return self._root_locked()

    def index_of(self, leaf: bytes) -> Optional[int]:
        with self._lock:
            return self._positions.get(bytes(leaf))

    def get_leaf(self, index: int) -> bytes:
        with self._lock:
            self._check_index(index)
            return self._leaves[index]

    def leaves(self) -> List[bytes]:
        with self._lock:
            return list(self._leaves)

    def prove(self, index: int) -> MerkleProof:
        with self._lock:
            self._check_index(index)
            return self._prove_locked(index)

    def snapshot(self, index: Optional[int] = None) -> TreeSnapshot:
        """Return the root, and a proof for ``index`` if given, as one consistent read."""

        with self._lock:
            root = self._root_locked()
            size = len(self._leaves)
            if index is None:
                return TreeSnapshot(root=root, size=size)
            self._check_index(index)
            return TreeSnapshot(
                root=root,
                size=size,
                index=index,
                leaf=self._leaves[index],
                proof=self._prove_locked(index),
            )

    def _check_index(self, index: int) -> None:
        if index < 0 or index >= len(self._leaves):
            raise IndexOutOfRange(index, len(self._leaves))

    def _node(self, level: int, position: int) -> bytes:
        if level == 0:
            if position < len(self._leaves):
                return self._leaves[position]
            return self._zeros[0]
        return self._nodes[level].get(position, self._zeros[level])

    def _root_locked(self) -> bytes:
        return self._node(self._height, 0)

    def _prove_locked(self, index: int) -> MerkleProof:
        siblings = []
        position = index
        for level in range(self._height):
            siblings.append(self._node(level, position ^ 1))
            position >>= 1
        return MerkleProof(siblings=tuple(siblings))

    def _path_updates(self, index: int, leaf: bytes) -> List[Tuple[int, int, bytes]]:
        updates: List[Tuple[int, int, bytes]] = []
        node = leaf
        position = index
        for level in range(self._height):
            sibling = self._node(level, position ^ 1)
            node = hash_pair(sibling, node) if position & 1 else hash_pair(node, sibling)
            position >>= 1
            updates.append((level + 1, position, node))
        return updates


__all__ = ["DEPOSIT_TREE_HEIGHT", "DepositTree", "TreeSnapshot", "zero_hashes"]
