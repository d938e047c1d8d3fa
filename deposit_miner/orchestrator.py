"""Mining loop: deposit cycles, exits, claims and account reporting."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Set

from .chain.contract import CLAIM, DEPOSIT_NATIVE_TOKEN, WITHDRAW, ContractFunction
from .chain.types import TransactionIntent, TransactionRecord
from .context import MinerContext
from .errors import ConfigurationError, InsufficientBalance, MinerError
from .keys import AccountKey, derive, derive_account_keys
from .models import DepositEvent
from .retry import call_with_retry
from .witness import build_withdrawal_witness

_LOGGER = logging.getLogger(__name__)


@dataclass
class CycleOutcome:
    """Result of one deposit, exit or claim attempt."""

    key_index: int
    address: str
    action: str
    status: str
    tx_hash: Optional[str] = None
    deposit_id: Optional[int] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "confirmed"


@dataclass
class AccountStatus:
    index: int
    deposit_address: str
    balance: int
    deposits: int
    exited: int
    claimed: int


@dataclass(frozen=True)
class ExportedAccount:
    index: int
    deposit_address: str
    private_key: str


class MiningOrchestrator:
    """Drives the deposit accounts derived from the configured withdrawal key."""

    def __init__(self, context: MinerContext) -> None:
        self._ctx = context
        self._settings = context.settings

    @property
    def context(self) -> MinerContext:
        return self._ctx

    def keys(self, count: Optional[int] = None) -> List[AccountKey]:
        return derive_account_keys(
            self._settings.withdrawal_secret,
            self._settings.mining_times if count is None else count,
            withdrawal_address=self._settings.withdrawal_address,
        )

    async def sync_deposits(self) -> int:
        """Bring the local deposit tree up to the chain head and persist progress."""

        ctx = self._ctx
        next_block = await call_with_retry(
            lambda: ctx.ingestor.sync(ctx.event_source, ctx.next_block),
            self._settings.network_policy,
            label="deposit sync",
        )
        if next_block != ctx.next_block:
            _LOGGER.info("Deposit tree synced to block %d (%d leaves)", next_block - 1, len(ctx.tree))
        ctx.next_block = next_block
        ctx.save()
        return next_block

    async def deposit(self, key: AccountKey) -> TransactionRecord:
        """Send ``mining_unit`` from ``key``'s deposit address into the contract."""

        settings = self._settings
        balance = await call_with_retry(
            lambda: self._ctx.chain.get_balance(key.deposit_address),
            settings.network_policy,
            label=f"balance of {key.deposit_address}",
        )
        required = settings.mining_unit + settings.gas_reserve
        if balance < required:
            raise InsufficientBalance(key.deposit_address, balance, required)

        def build(nonce: int) -> TransactionIntent:
            secrets = derive(key.deposit_private_key, nonce)
            return TransactionIntent(
                label=f"deposit #{key.index}",
                to=settings.contract_address,
                function=DEPOSIT_NATIVE_TOKEN,
                args=(secrets.pubkey_salt_hash,),
                nonce=nonce,
                sender=key.deposit_address,
                private_key=key.deposit_private_key,
                value=settings.mining_unit,
            )

        return await self._ctx.transactions.send(key.deposit_address, build)

    async def withdraw(
        self,
        key: AccountKey,
        event: DepositEvent,
        *,
        function: ContractFunction = WITHDRAW,
    ) -> TransactionRecord:
        """Prove ownership of ``event``'s deposit and submit it through ``function``."""

        prover = self._ctx.prover
        if prover is None:
            raise ConfigurationError("a prover is required for exits and claims")
        witness = build_withdrawal_witness(self._ctx.tree, key, event)
        proof = await prover.prove(witness)

        def build(nonce: int) -> TransactionIntent:
            return TransactionIntent(
                label=f"{function.name} deposit {event.deposit_id}",
                to=self._settings.contract_address,
                function=function,
                args=(proof.public_inputs, proof.proof),
                nonce=nonce,
                sender=key.deposit_address,
                private_key=key.deposit_private_key,
            )

        return await self._ctx.transactions.send(key.deposit_address, build)

    async def _run_cycle(
        self,
        key: AccountKey,
        action: str,
        operation: Callable[[], Awaitable[TransactionRecord]],
        *,
        deposit_id: Optional[int] = None,
    ) -> CycleOutcome:
        try:
            record = await operation()
        except MinerError as exc:
            if exc.fatal:
                _LOGGER.error("%s for account #%d aborted the run: %s", action, key.index, exc)
                raise
            _LOGGER.warning("%s for account #%d skipped: %s", action, key.index, exc)
            return CycleOutcome(
                key_index=key.index,
                address=key.deposit_address,
                action=action,
                status="failed",
                tx_hash=getattr(exc, "tx_hash", None),
                deposit_id=deposit_id,
                error=str(exc),
            )
        return CycleOutcome(
            key_index=key.index,
            address=key.deposit_address,
            action=action,
            status="confirmed",
            tx_hash=record.tx_hash,
            deposit_id=deposit_id,
        )

    async def mining_loop(self, times: Optional[int] = None) -> List[CycleOutcome]:
        """Deposit once from every derived account that has no deposit yet."""

        await self.sync_deposits()
        keys = self.keys(times)
        outcomes: List[CycleOutcome] = []
        for position, key in enumerate(keys):
            if self._ctx.ingestor.deposits_for(key.deposit_address):
                _LOGGER.info("Account #%d already deposited; skipping", key.index)
                outcomes.append(
                    CycleOutcome(key_index=key.index, address=key.deposit_address, action="deposit", status="skipped")
                )
                continue
            outcome = await self._run_cycle(key, "deposit", lambda key=key: self.deposit(key))
            outcomes.append(outcome)
            if outcome.succeeded:
                await self.sync_deposits()
            if self._settings.mining_interval > 0 and position < len(keys) - 1:
                await asyncio.sleep(self._settings.mining_interval)
        return outcomes

    async def exit_loop(self) -> List[CycleOutcome]:
        return await self._proof_loop("exit", WITHDRAW, self._ctx.exited)

    async def claim_loop(self) -> List[CycleOutcome]:
        return await self._proof_loop("claim", CLAIM, self._ctx.claimed)

    async def _proof_loop(self, action: str, function: ContractFunction, done: Set[int]) -> List[CycleOutcome]:
        await self.sync_deposits()
        outcomes: List[CycleOutcome] = []
        for key in self.keys():
            for event in self._ctx.ingestor.deposits_for(key.deposit_address):
                if event.deposit_id in done:
                    continue
                outcome = await self._run_cycle(
                    key,
                    action,
                    lambda key=key, event=event: self.withdraw(key, event, function=function),
                    deposit_id=event.deposit_id,
                )
                outcomes.append(outcome)
                if outcome.succeeded:
                    done.add(event.deposit_id)
                    self._ctx.save()
        return outcomes

    async def account_status(self) -> List[AccountStatus]:
        statuses: List[AccountStatus] = []
        for key in self.keys():
            balance = await call_with_retry(
                lambda key=key: self._ctx.chain.get_balance(key.deposit_address),
                self._settings.network_policy,
                label=f"balance of {key.deposit_address}",
            )
            deposits = self._ctx.ingestor.deposits_for(key.deposit_address)
            statuses.append(
                AccountStatus(
                    index=key.index,
                    deposit_address=key.deposit_address,
                    balance=balance,
                    deposits=len(deposits),
                    exited=sum(1 for event in deposits if event.deposit_id in self._ctx.exited),
                    claimed=sum(1 for event in deposits if event.deposit_id in self._ctx.claimed),
                )
            )
        return statuses

    def export_accounts(self) -> List[ExportedAccount]:
        return [
            ExportedAccount(
                index=key.index,
                deposit_address=key.deposit_address,
                private_key="0x" + key.deposit_private_key.hex(),
            )
            for key in self.keys()
        ]


__all__ = ["AccountStatus", "CycleOutcome", "ExportedAccount", "MiningOrchestrator"]
