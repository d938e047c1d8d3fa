"""Operator CLI for the deposit miner."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Iterable, Optional

from rich.console import Console
from rich.table import Table

from .config import MinerSettings, load_settings
from .context import MinerContext
from .errors import MinerError
from .orchestrator import AccountStatus, CycleOutcome, ExportedAccount, MiningOrchestrator

LOGGER = logging.getLogger("deposit_miner.cli")

MODES = ("mining", "exit", "claim", "status", "export")


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _format_eth(wei: int) -> str:
    return f"{wei / 10**18:,.6f}"


def render_outcomes(console: Console, title: str, outcomes: Iterable[CycleOutcome]) -> None:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Account")
    table.add_column("Address")
    table.add_column("Deposit")
    table.add_column("Status")
    table.add_column("Tx / error")
    for outcome in outcomes:
        table.add_row(
            str(outcome.key_index),
            outcome.address,
            "-" if outcome.deposit_id is None else str(outcome.deposit_id),
            outcome.status,
            outcome.error or outcome.tx_hash or "",
        )
    console.print(table)


def render_status(console: Console, statuses: Iterable[AccountStatus]) -> None:
    table = Table(title="Deposit accounts", show_header=True, header_style="bold magenta")
    table.add_column("Account")
    table.add_column("Address")
    table.add_column("Balance (ETH)", justify="right")
    table.add_column("Deposits", justify="right")
    table.add_column("Exited", justify="right")
    table.add_column("Claimed", justify="right")
    for status in statuses:
        table.add_row(
            str(status.index),
            status.deposit_address,
            _format_eth(status.balance),
            str(status.deposits),
            str(status.exited),
            str(status.claimed),
        )
    console.print(table)


def render_export(console: Console, accounts: Iterable[ExportedAccount]) -> None:
    table = Table(title="Deposit account keys")
    table.add_column("Account")
    table.add_column("Address")
    table.add_column("Private key")
    for account in accounts:
        table.add_row(str(account.index), account.deposit_address, account.private_key)
    console.print(table)


async def run_mode(mode: str, settings: MinerSettings, *, console: Console, times: Optional[int] = None) -> int:
    """Run one CLI mode and return the process exit code."""

    async with await MinerContext.init(settings) as context:
        orchestrator = MiningOrchestrator(context)
        if mode == "mining":
            outcomes = await orchestrator.mining_loop(times)
            render_outcomes(console, "Mining cycles", outcomes)
        elif mode == "exit":
            outcomes = await orchestrator.exit_loop()
            render_outcomes(console, "Exits", outcomes)
        elif mode == "claim":
            outcomes = await orchestrator.claim_loop()
            render_outcomes(console, "Claims", outcomes)
        elif mode == "status":
            await orchestrator.sync_deposits()
            render_status(console, await orchestrator.account_status())
            return 0
        elif mode == "export":
            render_export(console, orchestrator.export_accounts())
            return 0
        else:
            raise ValueError(f"Unsupported mode {mode}")
    return 1 if any(outcome.status == "failed" for outcome in outcomes) else 0


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Deposit miner operator toolkit")
    parser.add_argument("mode", choices=MODES, help="What to run")
    parser.add_argument("--config", help="Path to a YAML settings file (MINER_* variables override it)")
    parser.add_argument("--times", type=_positive_int, help="Number of deposit accounts to cycle in mining mode")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    console = Console()

    try:
        settings = load_settings(args.config)
        return asyncio.run(run_mode(args.mode, settings, console=console, times=args.times))
    except MinerError as exc:
        LOGGER.error("%s: %s", type(exc).__name__, exc)
        console.print(f"[bold red]{type(exc).__name__}[/]: {exc}")
        return 2


if __name__ == "__main__":  # pragma: no cover - manual execution
    sys.exit(main())
