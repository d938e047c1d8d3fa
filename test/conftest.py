"""Shared fixtures: a deterministic withdrawal key and in-memory chain and prover stubs."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("PYTHONPATH", str(ROOT))

from deposit_miner.chain.contract import DEPOSIT_NATIVE_TOKEN  # noqa: E402
from deposit_miner.chain.events import EventPage  # noqa: E402
from deposit_miner.chain.types import TransactionIntent, TransactionReceipt  # noqa: E402
from deposit_miner.config import MinerSettings  # noqa: E402
from deposit_miner.hashing import keccak256, to_hex, uint_be  # noqa: E402
from deposit_miner.models import DepositEvent, WithdrawalProof, WithdrawalWitness  # noqa: E402

WITHDRAWAL_SECRET = bytes.fromhex("4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318")
CONTRACT_ADDRESS = "0x" + "11" * 20


class FakeChain:
    """Chain and event source in one: deposits submitted here show up as events."""

    def __init__(self, *, balance: int = 10**19) -> None:
        self.default_balance = balance
        self.balances: Dict[str, int] = {}
        self.nonces: Dict[str, int] = {}
        self.submitted: List[TransactionIntent] = []
        self.polls: Dict[str, int] = {}
        self.events: List[DepositEvent] = []
        self.block = 100
        self.receipt_status = 1
        self.pending = False
        self.submit_error: Optional[BaseException] = None
        self.poll_error: Optional[BaseException] = None
        self.page_requests: List[int] = []

    async def get_nonce(self, address: str) -> int:
        return self.nonces.get(address.lower(), 0)

    async def get_balance(self, address: str) -> int:
        return self.balances.get(address.lower(), self.default_balance)

    async def submit(self, intent: TransactionIntent) -> str:
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append(intent)
        self.nonces[intent.sender.lower()] = intent.nonce + 1
        self.block += 1
        tx_hash = to_hex(keccak256(b"tx", intent.sender.encode(), uint_be(intent.nonce, 8)))
        self.polls[tx_hash] = 0
        if intent.function == DEPOSIT_NATIVE_TOKEN and self.receipt_status == 1 and not self.pending:
            self.events.append(
                DepositEvent(
                    deposit_id=len(self.events),
                    sender=intent.sender,
                    recipient_salt_hash=to_hex(intent.args[0]),
                    amount=intent.value,
                    tx_hash=tx_hash,
                    tx_nonce=intent.nonce,
                    block_number=self.block,
                    log_index=0,
                )
            )
        return tx_hash

    async def poll_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        self.polls[tx_hash] = self.polls.get(tx_hash, 0) + 1
        if self.poll_error is not None:
            raise self.poll_error
        if self.pending:
            return None
        return TransactionReceipt(tx_hash=tx_hash, status=self.receipt_status, block_number=self.block)

    async def pages(self, from_block: int) -> AsyncIterator[EventPage]:
        self.page_requests.append(from_block)
        if from_block > self.block:
            return
        events = [event for event in self.events if event.block_number >= from_block]
        yield EventPage(events=events, from_block=from_block, next_block=self.block + 1)


class FakeProver:
    def __init__(self) -> None:
        self.witnesses: List[WithdrawalWitness] = []
        self.closed = False

    async def prove(self, witness: WithdrawalWitness) -> WithdrawalProof:
        self.witnesses.append(witness)
        return WithdrawalProof(public_inputs=b"\x01" * 32, proof=b"\x02" * 64)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def withdrawal_secret() -> bytes:
    return WITHDRAWAL_SECRET


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def prover() -> FakeProver:
    return FakeProver()


@pytest.fixture
def settings(tmp_path: Path) -> MinerSettings:
    return MinerSettings(
        rpc_url="http://localhost:8545",
        chain_id=1337,
        contract_address=CONTRACT_ADDRESS,
        withdrawal_private_key="0x" + WITHDRAWAL_SECRET.hex(),
        mining_times=2,
        confirmation_attempts=3,
        confirmation_interval=0.0,
        network_attempts=2,
        network_backoff=0.0,
        state_path=str(tmp_path / "state.json"),
    )


@pytest.fixture
def make_event():
    """Build a ``DepositEvent`` with hash-shaped defaults."""

    def factory(
        deposit_id: int,
        *,
        sender: str = "0x" + "22" * 20,
        salt_hash: Optional[bytes] = None,
        amount: int = 10**17,
        tx_nonce: int = 0,
        block_number: Optional[int] = None,
        log_index: int = 0,
    ) -> DepositEvent:
        return DepositEvent(
            deposit_id=deposit_id,
            sender=sender,
            recipient_salt_hash=to_hex(salt_hash or keccak256(b"salt-hash", uint_be(deposit_id, 8))),
            amount=amount,
            tx_hash=to_hex(keccak256(b"tx", uint_be(deposit_id, 8))),
            tx_nonce=tx_nonce,
            block_number=deposit_id + 1 if block_number is None else block_number,
            log_index=log_index,
        )

    return factory
