"""
aligned-submit CLI entry point.

Usage:
    aligned-submit [OPTIONS] COMMAND [ARGS]...
"""
from __future__ import annotations

import asyncio
import os

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from web3 import Web3

from .batcher import ContractNonceCoordinator
from .config import DEFAULT_CHAIN, SUPPORTED_CHAINS, load_settings
from .exceptions import NonceError
from .logging_config import setup_logging
from .models import Cancelled, Failed, ProvingSystemId, Success
from .orchestrator import SubmitProofRequest, build_workflow
from .prompts import ConsolePromptProvider

console = Console()


class CLIPromptProvider(ConsolePromptProvider):
    """Console prompts that --yes / --password-env can answer up front."""

    def __init__(self, password: str | None = None, assume_yes: bool = False):
        self._password = password
        self._assume_yes = assume_yes

    def password(self, message: str) -> str:
        if self._password is not None:
            return self._password
        return super().password(message)

    def confirm(self, message: str) -> bool:
        if self._assume_yes:
            console.print(f"[dim]{escape(message)} (auto-confirmed)[/dim]")
            return True
        return super().confirm(message)


def _proving_system(ctx, param, value: str) -> ProvingSystemId:
    try:
        return ProvingSystemId.parse(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


@click.group()
@click.version_option(package_name="aligned-submit", message="%(prog)s %(version)s")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit structured JSON logs")
@click.pass_context
def cli(ctx, verbose: bool, json_logs: bool):
    """Submit zero-knowledge proofs to Aligned for verification."""
    ctx.ensure_object(dict)

    settings = load_settings()
    level = "DEBUG" if verbose else settings.log_level
    setup_logging(level=level, json_format=json_logs or settings.log_json)

    ctx.obj["settings"] = settings
    ctx.obj["verbose"] = verbose


@cli.command()
@click.option("--keystore", "keystore_path", required=True,
              type=click.Path(dir_okay=False), help="Encrypted keystore file")
@click.option("--proof", "proof_path", required=True,
              type=click.Path(dir_okay=False), help="Proof file")
@click.option("--elf", "--program", "program_path", required=True,
              type=click.Path(dir_okay=False), help="Program binary (ELF)")
@click.option("--public-input", "public_input_path",
              type=click.Path(dir_okay=False), help="Public input file")
@click.option("--rpc-url", envvar="ALIGNED_RPC_URL", required=True, help="Chain RPC URL")
@click.option("--chain-id", default=DEFAULT_CHAIN.chain_id, show_default=True, type=int,
              help="Chain id (unrecognised ids submit to the default testnet)")
@click.option("--max-fee", type=int, help="Max batcher fee in wei")
@click.option("--proving-system", default="sp1", show_default=True,
              callback=_proving_system, help="sp1, risc0 or another proving system name")
@click.option("--yes", is_flag=True, help="Do not ask before paying the batcher")
@click.option("--password-env", help="Read the keystore password from this env var")
@click.pass_context
def submit(
    ctx,
    keystore_path: str,
    proof_path: str,
    program_path: str,
    public_input_path: str | None,
    rpc_url: str,
    chain_id: int,
    max_fee: int | None,
    proving_system: ProvingSystemId,
    yes: bool,
    password_env: str | None,
):
    """Pay the batcher and submit a proof for verification."""
    settings = ctx.obj["settings"]

    password = None
    if password_env:
        password = os.environ.get(password_env)
        if password is None:
            raise click.UsageError(f"Environment variable {password_env} is not set")
    prompts = CLIPromptProvider(password=password, assume_yes=yes)

    request = SubmitProofRequest(
        keystore_path=keystore_path,
        proof_path=proof_path,
        program_binary_path=program_path,
        public_input_path=public_input_path,
        rpc_url=rpc_url,
        chain_id=chain_id,
        max_fee=max_fee if max_fee is not None else settings.default_max_fee_wei,
        proving_system=proving_system,
    )

    workflow = build_workflow(settings=settings, prompts=prompts)
    outcome = asyncio.run(workflow.run(request))

    if isinstance(outcome, Success):
        console.print("\n[green]✓ Proof submitted to Aligned[/green]")
        console.print(f"  Payment TX: [cyan]{outcome.payment.tx_hash}[/cyan]")
        console.print(f"  Batch root: [cyan]{outcome.batch_merkle_root}[/cyan]")
        console.print(f"  Explorer: [cyan]{outcome.explorer_url}[/cyan]\n")
    elif isinstance(outcome, Cancelled):
        console.print(f"[yellow]{outcome.reason}. No funds were moved.[/yellow]")
    elif isinstance(outcome, Failed):
        console.print(f"[red]Error ({outcome.stage.value}): {escape(outcome.cause)}[/red]")
        if outcome.payment_spent:
            console.print(
                f"[red]The batcher payment {outcome.payment.tx_hash} was already "
                f"confirmed; those funds are spent.[/red]"
            )
        elif outcome.payment_unconfirmed:
            console.print(
                f"[yellow]The batcher payment {outcome.payment_tx_hash} was broadcast "
                f"but not confirmed. Check its status before paying again.[/yellow]"
            )
        else:
            console.print("[dim]No payment was made.[/dim]")

    ctx.exit(outcome.exit_code)


@cli.command()
@click.argument("address")
@click.option("--rpc-url", envvar="ALIGNED_RPC_URL", required=True, help="Chain RPC URL")
@click.pass_context
def nonce(ctx, address: str, rpc_url: str):
    """Show the next batcher nonce for ADDRESS."""
    settings = ctx.obj["settings"]

    if not Web3.is_address(address):
        raise click.BadParameter(f"Invalid address: {address}", param_hint="ADDRESS")

    coordinator = ContractNonceCoordinator(timeout_seconds=settings.rpc_timeout_seconds)
    try:
        next_nonce = asyncio.run(coordinator.get_next_nonce(
            rpc_url, address, settings.payment_contract_address
        ))
    except NonceError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        ctx.exit(1)

    console.print(f"Next nonce for [cyan]{Web3.to_checksum_address(address)}[/cyan]: {next_nonce}")


@cli.command()
def chains():
    """List the chains submissions can target."""
    table = Table(title="Supported Chains")
    table.add_column("Name", style="cyan")
    table.add_column("Chain ID", justify="right")
    table.add_column("Default")

    for name, chain in SUPPORTED_CHAINS.items():
        table.add_row(name, str(chain.chain_id), "✓" if chain is DEFAULT_CHAIN else "")

    console.print(table)
    console.print(f"[dim]Other chain ids fall back to {DEFAULT_CHAIN.value}.[/dim]")


@cli.command("config")
@click.pass_context
def show_config(ctx):
    """Show the effective configuration."""
    settings = ctx.obj["settings"]

    console.print("\n[bold blue]aligned-submit configuration[/bold blue]\n")
    console.print(f"Batcher URL: [cyan]{settings.batcher_url}[/cyan]")
    console.print(f"Payment contract: [cyan]{settings.payment_contract_address}[/cyan]")
    console.print(
        f"Payment amount: {settings.payment_amount_wei} wei "
        f"({Web3.from_wei(settings.payment_amount_wei, 'ether')} ETH)"
    )
    console.print(f"Default max fee: {settings.default_max_fee_wei} wei")
    console.print(f"Explorer: [cyan]{settings.explorer_url}[/cyan]")
    console.print(f"Default chain: [cyan]{DEFAULT_CHAIN.value}[/cyan]")
    console.print()


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
