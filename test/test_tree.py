import threading

import pytest

from deposit_miner.errors import IndexOutOfRange, TreeFull, TreeInvariantError
from deposit_miner.hashing import BYTES32_ZERO, keccak256
from deposit_miner.models import hash_pair
from deposit_miner.tree import DEPOSIT_TREE_HEIGHT, DepositTree, zero_hashes


def _leaf(tag: int) -> bytes:
    return keccak256(b"leaf", tag.to_bytes(4, "big"))


def test_empty_tree_root_is_zero_subtree_root():
    tree = DepositTree()

    assert tree.height == DEPOSIT_TREE_HEIGHT
    assert len(tree) == 0
    assert tree.root() == zero_hashes(DEPOSIT_TREE_HEIGHT)[-1]


def test_root_matches_manual_computation():
    tree = DepositTree(height=2)
    a, b, c = _leaf(1), _leaf(2), _leaf(3)
    tree.insert(a)
    tree.insert(b)

    assert tree.root() == hash_pair(hash_pair(a, b), hash_pair(BYTES32_ZERO, BYTES32_ZERO))

    tree.insert(c)
    assert tree.root() == hash_pair(hash_pair(a, b), hash_pair(c, BYTES32_ZERO))


def test_root_is_deterministic_for_the_same_sequence():
    leaves = [_leaf(i) for i in range(7)]

    assert DepositTree.from_leaves(leaves).root() == DepositTree.from_leaves(leaves).root()
    assert DepositTree.from_leaves(leaves).root() != DepositTree.from_leaves(list(reversed(leaves))).root()


def test_insert_returns_sequential_indices_and_reverse_lookup():
    tree = DepositTree()
    leaves = [_leaf(i) for i in range(5)]

    assert [tree.insert(leaf) for leaf in leaves] == [0, 1, 2, 3, 4]
    for index, leaf in enumerate(leaves):
        assert tree.index_of(leaf) == index
        assert tree.get_leaf(index) == leaf
    assert tree.index_of(_leaf(99)) is None
    assert tree.leaves() == leaves


def test_every_proof_verifies_against_current_root():
    tree = DepositTree.from_leaves([_leaf(i) for i in range(9)])
    root = tree.root()

    for index in range(len(tree)):
        proof = tree.prove(index)
        assert proof.height == DEPOSIT_TREE_HEIGHT
        assert proof.verify(tree.get_leaf(index), index, root)
        assert not proof.verify(_leaf(100), index, root)


def test_proof_for_later_tree_does_not_verify_against_earlier_root():
    tree = DepositTree()
    a, b, c = _leaf(1), _leaf(2), _leaf(3)
    assert tree.index_of(a) is None
    tree.insert(a)
    one_leaf_root = tree.root()
    tree.insert(b)
    two_leaf_root = tree.root()
    tree.insert(c)

    assert len({one_leaf_root, two_leaf_root, tree.root()}) == 3
    proof = tree.prove(1)
    assert proof.verify(b, 1, tree.root())
    assert not proof.verify(b, 1, two_leaf_root)


def test_snapshot_proof_stays_valid_for_its_root():
    tree = DepositTree()
    tree.insert(_leaf(1))
    tree.insert(_leaf(2))
    snapshot = tree.snapshot(0)

    tree.insert(_leaf(3))

    assert snapshot.size == 2
    assert snapshot.leaf == _leaf(1)
    assert snapshot.proof.verify(_leaf(1), 0, snapshot.root)
    assert tree.prove(0).verify(_leaf(1), 0, tree.root())
    assert snapshot.root != tree.root()


def test_prove_out_of_range_raises():
    tree = DepositTree()
    tree.insert(_leaf(1))
    tree.insert(_leaf(2))

    with pytest.raises(IndexOutOfRange) as excinfo:
        tree.prove(2)
    assert excinfo.value.size == 2
    with pytest.raises(IndexOutOfRange):
        tree.prove(-1)
    with pytest.raises(IndexOutOfRange):
        DepositTree().snapshot(0)


def test_tree_full_at_capacity():
    tree = DepositTree(height=2)
    for i in range(4):
        tree.insert(_leaf(i))

    with pytest.raises(TreeFull):
        tree.insert(_leaf(4))
    assert len(tree) == 4


def test_duplicate_leaf_is_rejected_without_changing_root():
    tree = DepositTree()
    tree.insert(_leaf(1))
    root = tree.root()

    with pytest.raises(TreeInvariantError):
        tree.insert(_leaf(1))
    assert tree.root() == root
    assert len(tree) == 1


def test_leaf_must_be_32_bytes():
    with pytest.raises(ValueError):
        DepositTree().insert(b"short")


def test_concurrent_inserts_keep_index_consistent():
    tree = DepositTree()
    leaves = [_leaf(i) for i in range(64)]

    def worker(chunk):
        for leaf in chunk:
            tree.insert(leaf)

    threads = [threading.Thread(target=worker, args=(leaves[i::4],)) for i in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(tree) == 64
    assert sorted(tree.index_of(leaf) for leaf in leaves) == list(range(64))
    assert tree.root() == DepositTree.from_leaves(tree.leaves()).root()
