"""Miner settings loaded from an optional YAML file and ``MINER_*`` environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from eth_utils import is_address, to_checksum_address

from .errors import ConfigurationError, InvalidSecret
from .hashing import from_hex
from .keys import address_of, validate_secret
from .retry import RetryPolicy
from .tree import DEPOSIT_TREE_HEIGHT

_LOGGER = logging.getLogger(__name__)

ENV_PREFIX = "MINER_"

# camelCase aliases accepted in YAML files next to the snake_case field names
_ALIASES: Dict[str, tuple[str, ...]] = {
    "rpc_url": ("rpcUrl",),
    "chain_id": ("chainId",),
    "contract_address": ("contractAddress", "int1Address"),
    "start_block": ("startBlock",),
    "log_page_size": ("logPageSize",),
    "prover_url": ("proverUrl",),
    "prover_api_key": ("proverApiKey",),
    "prover_timeout": ("proverTimeout",),
    "withdrawal_private_key": ("withdrawalPrivateKey",),
    "withdrawal_address": ("withdrawalAddress",),
    "mining_unit": ("miningUnit",),
    "mining_times": ("miningTimes",),
    "mining_interval": ("miningInterval",),
    "gas_reserve": ("gasReserve",),
    "gas_limit": ("gasLimit",),
    "confirmation_attempts": ("confirmationAttempts",),
    "confirmation_interval": ("confirmationInterval",),
    "network_attempts": ("networkAttempts",),
    "network_backoff": ("networkBackoff",),
    "state_path": ("statePath",),
    "tree_height": ("treeHeight",),
}

_INT_FIELDS = {
    "chain_id",
    "start_block",
    "log_page_size",
    "mining_unit",
    "mining_times",
    "gas_reserve",
    "gas_limit",
    "confirmation_attempts",
    "network_attempts",
    "tree_height",
}
_FLOAT_FIELDS = {"mining_interval", "confirmation_interval", "network_backoff", "prover_timeout"}
_HEX_WIDTHS = {"contract_address": 20, "withdrawal_address": 20, "withdrawal_private_key": 32}


def _parse_int(name: str, raw: Any) -> Optional[int]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, bool):
        raise ConfigurationError(f"{name} must be an integer")
    if isinstance(raw, int):
        return raw
    try:
        return int(str(raw).strip(), 0)
    except ValueError:
        _LOGGER.warning("Invalid integer for %s: %s", name, raw)
        return None


def _parse_float(name: str, raw: Any) -> Optional[float]:
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        _LOGGER.warning("Invalid number for %s: %s", name, raw)
        return None


@dataclass
class MinerSettings:
    """Validated runtime configuration."""

    rpc_url: str
    chain_id: int
    contract_address: str
    withdrawal_private_key: str = field(repr=False)
    withdrawal_address: Optional[str] = None
    start_block: int = 0
    log_page_size: int = 10_000
    prover_url: Optional[str] = None
    prover_api_key: Optional[str] = field(default=None, repr=False)
    prover_timeout: float = 300.0
    mining_unit: int = 100_000_000_000_000_000
    mining_times: int = 10
    mining_interval: float = 0.0
    gas_reserve: int = 10_000_000_000_000_000
    gas_limit: Optional[int] = None
    confirmation_attempts: int = 20
    confirmation_interval: float = 10.0
    network_attempts: int = 3
    network_backoff: float = 1.0
    state_path: str = "storage/miner/state.json"
    tree_height: int = DEPOSIT_TREE_HEIGHT

    def __post_init__(self) -> None:
        if not self.rpc_url:
            raise ConfigurationError("rpc_url is required")
        if not isinstance(self.chain_id, int) or self.chain_id <= 0:
            raise ConfigurationError("chain_id must be a positive integer")
        if not is_address(self.contract_address):
            raise ConfigurationError("contract_address must be a 0x-prefixed 20-byte address")
        self.contract_address = to_checksum_address(self.contract_address)
        try:
            validate_secret(self.withdrawal_secret)
        except (InvalidSecret, ValueError) as exc:
            raise ConfigurationError(f"withdrawal_private_key is invalid: {exc}") from exc
        derived = address_of(self.withdrawal_secret)
        if self.withdrawal_address:
            if not is_address(self.withdrawal_address):
                raise ConfigurationError("withdrawal_address must be a 0x-prefixed 20-byte address")
            if to_checksum_address(self.withdrawal_address) != derived:
                raise ConfigurationError("withdrawal_address does not match the address derived from the private key")
        self.withdrawal_address = derived
        for name in ("start_block", "mining_unit", "gas_reserve"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be non-negative")
        for name in ("log_page_size", "mining_times", "confirmation_attempts", "network_attempts", "tree_height"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")
        if self.mining_interval < 0 or self.confirmation_interval < 0 or self.network_backoff < 0:
            raise ConfigurationError("intervals must be non-negative")

    @property
    def withdrawal_secret(self) -> bytes:
        try:
            return from_hex(self.withdrawal_private_key, length=32)
        except ValueError as exc:
            raise ConfigurationError("withdrawal_private_key must be 32 hex-encoded bytes") from exc

    @property
    def confirmation_policy(self) -> RetryPolicy:
        return RetryPolicy(attempts=self.confirmation_attempts, interval=self.confirmation_interval)

    @property
    def network_policy(self) -> RetryPolicy:
        return RetryPolicy(attempts=self.network_attempts, interval=self.network_backoff, linear=True)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "MinerSettings":
        def _resolve(name: str) -> Any:
            for key in (name, *_ALIASES.get(name, ())):
                if key in data:
                    return data[key]
            return None

        kwargs: Dict[str, Any] = {}
        for item in fields(cls):
            raw = _resolve(item.name)
            if item.name in _INT_FIELDS:
                value = _parse_int(item.name, raw)
            elif item.name in _FLOAT_FIELDS:
                value = _parse_float(item.name, raw)
            elif item.name in _HEX_WIDTHS and isinstance(raw, int) and not isinstance(raw, bool):
                # unquoted 0x literals come back from YAML as integers
                value = "0x" + format(raw, f"0{_HEX_WIDTHS[item.name] * 2}x")
            else:
                value = str(raw) if raw not in (None, "") else None
            if value is not None:
                kwargs[item.name] = value
        required = ("rpc_url", "chain_id", "contract_address", "withdrawal_private_key")
        missing = [name for name in required if name not in kwargs]
        if missing:
            raise ConfigurationError(f"missing required settings: {', '.join(missing)}")
        return cls(**kwargs)


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, str]:
    overrides: Dict[str, str] = {}
    for item in fields(MinerSettings):
        raw = environ.get(ENV_PREFIX + item.name.upper())
        if raw not in (None, ""):
            overrides[item.name] = raw
    return overrides


def load_settings(path: str | Path | None = None, *, environ: Optional[Mapping[str, str]] = None) -> MinerSettings:
    """Load settings from ``path`` (YAML) with ``MINER_*`` environment overrides."""

    data: Dict[str, Any] = {}
    if path is not None:
        try:
            loaded = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        except OSError as exc:
            raise ConfigurationError(f"cannot read miner configuration {path}: {exc.strerror or exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"invalid YAML in miner configuration {path}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigurationError("miner configuration must be a mapping")
        data.update(loaded)
    data.update(_env_overrides(os.environ if environ is None else environ))
    return MinerSettings.from_mapping(data)


__all__ = ["ENV_PREFIX", "MinerSettings", "load_settings"]
