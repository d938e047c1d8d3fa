"""Deposit miner: mirrors the deposit tree, cycles deposits and builds withdrawal witnesses."""

from .config import MinerSettings, load_settings
from .context import MinerContext
from .errors import MinerError
from .ingest import DepositIngestor
from .keys import AccountKey, derive, derive_account_keys
from .models import DepositEvent, DepositLeaf, MerkleProof, WithdrawalWitness
from .orchestrator import MiningOrchestrator
from .tree import DEPOSIT_TREE_HEIGHT, DepositTree
from .witness import build_withdrawal_witness

__all__ = [
    "AccountKey",
    "DEPOSIT_TREE_HEIGHT",
    "DepositEvent",
    "DepositIngestor",
    "DepositLeaf",
    "DepositTree",
    "MerkleProof",
    "MinerContext",
    "MinerError",
    "MinerSettings",
    "MiningOrchestrator",
    "WithdrawalWitness",
    "build_withdrawal_witness",
    "derive",
    "derive_account_keys",
    "load_settings",
]
