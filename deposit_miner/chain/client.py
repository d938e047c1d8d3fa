"""Blockchain submission collaborator backed by web3.py."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional, Protocol

from eth_account import Account
from eth_utils import to_checksum_address
from web3 import Web3
from web3.exceptions import ContractLogicError, TransactionNotFound, Web3Exception

from ..errors import NetworkError, TransactionReverted
from ..hashing import to_hex
from .types import TransactionIntent, TransactionReceipt

_LOGGER = logging.getLogger(__name__)


class ChainClient(Protocol):
    """Operations the miner needs from an Ethereum node."""

    async def submit(self, intent: TransactionIntent) -> str:  # pragma: no cover - protocol
        """Sign and broadcast ``intent`` and return its transaction hash."""

    async def poll_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:  # pragma: no cover - protocol
        """Return the receipt of ``tx_hash`` or ``None`` while it is pending."""

    async def get_nonce(self, address: str) -> int:  # pragma: no cover - protocol
        """Return the next nonce for ``address``."""

    async def get_balance(self, address: str) -> int:  # pragma: no cover - protocol
        """Return the balance of ``address`` in wei."""


def _hash_text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return to_hex(bytes(value))
    text = str(value)
    return text if text.startswith("0x") else "0x" + text


async def rpc_call(func: Callable[..., Any], *args: Any) -> Any:
    """Run a blocking web3 call in a thread, mapping transport failures to :class:`NetworkError`."""

    try:
        return await asyncio.to_thread(func, *args)
    except (ContractLogicError, TransactionNotFound):
        raise
    except (Web3Exception, OSError) as exc:
        raise NetworkError(f"RPC call {getattr(func, '__name__', func)} failed: {exc}") from exc


class Web3ChainClient:
    """:class:`ChainClient` running blocking web3 calls in worker threads."""

    def __init__(self, w3: Any, *, chain_id: int, gas_limit: Optional[int] = None) -> None:
        self._w3 = w3
        self._chain_id = chain_id
        self._gas_limit = gas_limit

    @classmethod
    def from_url(
        cls,
        rpc_url: str,
        *,
        chain_id: int,
        timeout: float = 30.0,
        gas_limit: Optional[int] = None,
    ) -> "Web3ChainClient":
        w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        return cls(w3, chain_id=chain_id, gas_limit=gas_limit)

    @property
    def w3(self) -> Any:
        return self._w3

    async def _call(self, func: Callable[..., Any], *args: Any) -> Any:
        return await rpc_call(func, *args)

    async def get_nonce(self, address: str) -> int:
        nonce = await self._call(self._w3.eth.get_transaction_count, to_checksum_address(address), "pending")
        return int(nonce)

    async def get_balance(self, address: str) -> int:
        balance = await self._call(self._w3.eth.get_balance, to_checksum_address(address))
        return int(balance)

    async def _build_transaction(self, intent: TransactionIntent) -> dict[str, Any]:
        tx: dict[str, Any] = {
            "to": to_checksum_address(intent.to),
            "data": to_hex(intent.calldata()),
            "value": intent.value,
            "nonce": intent.nonce,
            "chainId": self._chain_id,
        }
        if self._gas_limit:
            tx["gas"] = self._gas_limit
        else:
            try:
                estimate = await self._call(
                    self._w3.eth.estimate_gas,
                    {**tx, "from": to_checksum_address(intent.sender)},
                )
            except ContractLogicError as exc:
                raise TransactionReverted(
                    f"{intent.label} would revert: {exc}",
                    label=intent.label,
                ) from exc
            tx["gas"] = int(estimate)
        tx["gasPrice"] = int(await self._call(lambda: self._w3.eth.gas_price))
        return tx

    async def submit(self, intent: TransactionIntent) -> str:
        tx = await self._build_transaction(intent)
        signed = Account.sign_transaction(tx, intent.private_key)
        raw_hash = await self._call(self._w3.eth.send_raw_transaction, signed.raw_transaction)
        tx_hash = _hash_text(raw_hash)
        _LOGGER.debug("Broadcast %s from %s with nonce %d: %s", intent.label, intent.sender, intent.nonce, tx_hash)
        return tx_hash

    async def poll_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        try:
            receipt = await self._call(self._w3.eth.get_transaction_receipt, tx_hash)
        except TransactionNotFound:
            return None
        if receipt is None:
            return None
        return TransactionReceipt(
            tx_hash=_hash_text(receipt.get("transactionHash") or tx_hash),
            status=int(receipt.get("status", 0)),
            block_number=int(receipt.get("blockNumber") or 0),
            gas_used=int(receipt.get("gasUsed") or 0),
        )


__all__ = ["ChainClient", "Web3ChainClient", "rpc_call"]
