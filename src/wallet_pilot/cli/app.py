"""CLI for Wallet Pilot - propose, inspect and run agent wallet plans."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from wallet_pilot.config import (
    CONFIG_FILENAME,
    LLMProviderConfig,
    PilotConfig,
    get_config_dir,
    get_wallet_dir,
    load_config,
    save_config,
)
from wallet_pilot.core.actions import Action, NoopAction, Plan, SwapAction, TransferAction
from wallet_pilot.core.agent import WalletAgent
from wallet_pilot.core.policy import PolicyViolation
from wallet_pilot.errors import ActionExecutionError, PolicyRejectedError, WalletPilotError

app = typer.Typer(
    name="wallet-pilot",
    help="Let an LLM propose wallet actions, checked by policy and confirmed by you.",
    no_args_is_help=True,
)
console = Console()

PRIVATE_KEY_ENV = "WALLET_PILOT_PRIVATE_KEY"

# Provider presets: name -> (config provider, base_url, default model, env var)
PROVIDER_PRESETS = {
    "anthropic": ("anthropic", None, "claude-sonnet-4-5", "ANTHROPIC_API_KEY"),
    "openai": ("openai", None, "gpt-4o", "OPENAI_API_KEY"),
    "ollama": ("openai", "http://localhost:11434/v1", "llama3.1", None),
    "groq": ("openai", "https://api.groq.com/openai/v1", "llama-3.3-70b-versatile", "GROQ_API_KEY"),
}

_base_dir: Path = Path.cwd()


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        console.print(f"wallet-pilot {version('wallet-pilot')}")
        raise typer.Exit()


@app.callback()
def main(
    directory: Path = typer.Option(
        Path("."),
        "--dir",
        "-d",
        help="Directory containing .wallet-pilot/",
        envvar="WALLET_PILOT_DIR",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show pipeline logs"),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """Let an LLM propose wallet actions, checked by policy and confirmed by you."""
    global _base_dir
    _base_dir = directory.resolve()
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )


def _config_path() -> Path:
    return get_config_dir(_base_dir) / CONFIG_FILENAME


def _load() -> PilotConfig:
    path = _config_path()
    if not path.exists():
        console.print("[red]No configuration found.[/red] Run 'wallet-pilot init' first.")
        raise typer.Exit(1)
    return load_config(path)


def describe_action(action: Action) -> str:
    """One-line human description of an action."""
    if isinstance(action, NoopAction):
        return f"noop ({action.reason})" if action.reason else "noop"
    if isinstance(action, TransferAction):
        return f"transfer {action.amount} to {action.to}"
    if isinstance(action, SwapAction):
        extras = []
        if action.slippage_bps is not None:
            extras.append(f"{action.slippage_bps} bps")
        if action.swap_mode is not None:
            extras.append(action.swap_mode.value)
        suffix = f" ({', '.join(extras)})" if extras else ""
        return f"swap {action.amount} {action.input_asset} -> {action.output_asset}{suffix}"
    return repr(action)


def _print_plan(plan: Plan, violations: list[PolicyViolation]) -> None:
    table = Table(title=f"Plan: {plan.goal}", caption=plan.summary or None)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Action")
    table.add_column("Policy")

    for index, action in enumerate(plan.actions):
        prefix = f"actions[{index}]"
        problems = [v.message for v in violations if v.path == prefix or v.path.startswith(prefix + ".")]
        status = "[red]" + "; ".join(problems) + "[/red]" if problems else "[green]OK[/green]"
        table.add_row(str(index), describe_action(action), status)
    console.print(table)


def _parse_context(context: str | None) -> dict:
    if not context:
        return {}
    try:
        parsed = json.loads(context)
    except json.JSONDecodeError as exc:
        console.print(f"[red]--context is not valid JSON: {exc}[/red]")
        raise typer.Exit(1)
    if not isinstance(parsed, dict):
        console.print("[red]--context must be a JSON object.[/red]")
        raise typer.Exit(1)
    return parsed


@app.command()
def init(
    provider: str = typer.Option("anthropic", "--provider", "-p", help=f"LLM provider ({', '.join(PROVIDER_PRESETS)})"),
    model: str = typer.Option(None, "--model", "-m", help="Model name (defaults per provider)"),
    chain: str = typer.Option("ethereum", "--chain", "-c", help="Chain to transact on"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing configuration"),
):
    """Write a starter configuration with a deny-everything policy."""
    from wallet_pilot.wallet.chains import get_chain

    path = _config_path()
    if path.exists() and not force:
        console.print(f"[yellow]Configuration already exists at {path}.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    if provider not in PROVIDER_PRESETS:
        console.print(f"[red]Unknown provider '{provider}'.[/red] Choose from: {', '.join(PROVIDER_PRESETS)}")
        raise typer.Exit(1)
    try:
        chain = get_chain(chain).name
    except KeyError as exc:
        console.print(f"[red]{exc.args[0]}[/red]")
        raise typer.Exit(1)

    config_provider, base_url, default_model, env_var = PROVIDER_PRESETS[provider]
    config = PilotConfig()
    config.llm.default_provider = config_provider
    setattr(
        config.llm,
        config_provider,
        LLMProviderConfig(
            api_key=f"${{{env_var}}}" if env_var else "none",
            model=model or default_model,
            base_url=base_url,
        ),
    )
    config.ledger.chain = chain
    save_config(config, path)

    console.print(Panel(
        f"[bold green]Configuration written[/bold green] to {path}\n\n"
        f"Provider: {provider} ({model or default_model})\n"
        f"Chain:    {chain}\n\n"
        f"[dim]The policy denies every transfer and swap until you add\n"
        f"allowed_recipients / allowed_mints under 'policy:'.[/dim]",
        title="Wallet Pilot",
    ))


# ------------------------------------------------------------------
# plan / run
# ------------------------------------------------------------------


@app.command()
def plan(
    goal: str = typer.Argument(help="What the agent should try to achieve"),
    context: str = typer.Option(None, "--context", help="Extra context for the model (JSON object)"),
    max_actions: int = typer.Option(None, "--max-actions", "-n", min=1, help="Cap on proposed actions"),
    as_json: bool = typer.Option(False, "--json", help="Print the plan as JSON"),
):
    """Propose a plan for GOAL and show policy violations. Nothing is executed."""
    config = _load()
    agent = WalletAgent.from_config(config)

    try:
        proposed = asyncio.run(agent.propose_plan(goal, _parse_context(context), max_actions))
    except WalletPilotError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    violations = agent.validate(proposed)

    if as_json:
        console.print_json(json.dumps({
            "plan": proposed.to_wire(),
            "violations": [{"path": v.path, "message": v.message} for v in violations],
        }))
    else:
        _print_plan(proposed, violations)
    if violations:
        raise typer.Exit(2)


def _load_signer():
    from wallet_pilot.wallet.keystore import load_signer, unlock_signer

    raw_key = os.environ.get(PRIVATE_KEY_ENV)
    if raw_key:
        return load_signer(raw_key)
    wallet_dir = get_wallet_dir(_base_dir)
    password = console.input("[bold]Wallet password: [/bold]", password=True)
    try:
        return unlock_signer(wallet_dir, password)
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)


@app.command()
def run(
    goal: str = typer.Argument(help="What the agent should try to achieve"),
    context: str = typer.Option(None, "--context", help="Extra context for the model (JSON object)"),
    max_actions: int = typer.Option(None, "--max-actions", "-n", min=1, help="Cap on proposed actions"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Execute every accepted action without asking"),
):
    """Propose a plan for GOAL, then confirm and execute it action by action."""
    from wallet_pilot.wallet.chains import get_chain

    config = _load()

    def _confirm(action: Action) -> bool:
        if yes:
            return True
        return typer.confirm(f"Execute: {describe_action(action)}?", default=False)

    agent = WalletAgent.from_config(config, confirm=_confirm)

    try:
        proposed = asyncio.run(agent.propose_plan(goal, _parse_context(context), max_actions))
    except WalletPilotError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    violations = agent.validate(proposed)
    _print_plan(proposed, violations)
    if violations:
        console.print("[red]Plan rejected by policy; nothing executed.[/red]")
        raise typer.Exit(2)

    signer = _load_signer()
    chain = get_chain(config.ledger.chain)

    try:
        signatures = asyncio.run(agent.execute(proposed, signer))
    except PolicyRejectedError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(2)
    except ActionExecutionError as exc:
        console.print(f"[red]{exc}[/red]")
        for sig in exc.signatures:
            console.print(f"  already sent: [cyan]{chain.tx_url(sig)}[/cyan]")
        raise typer.Exit(1)
    except WalletPilotError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    if not signatures:
        console.print("[dim]No transactions were sent.[/dim]")
        return
    console.print(Panel(
        "\n".join(f"[cyan]{chain.tx_url(sig)}[/cyan]" for sig in signatures),
        title=f"{len(signatures)} transaction(s) sent",
    ))


@app.command()
def policy():
    """Show the active policy."""
    config = _load()
    active = config.policy

    def _fmt(value) -> str:
        return "-" if value is None else str(value)

    table = Table(title="Policy", show_header=False)
    table.add_column("Rule", style="cyan")
    table.add_column("Value")
    table.add_row("allow_all_transfers", str(active.allow_all_transfers))
    table.add_row("allowed_recipients", "\n".join(sorted(active.allowed_recipients)) or "[red]none[/red]")
    table.add_row("max_transfer_lamports", _fmt(active.max_transfer_lamports))
    table.add_row("allow_all_swaps", str(active.allow_all_swaps))
    table.add_row("allowed_mints", "\n".join(sorted(active.allowed_mints)) or "[red]none[/red]")
    table.add_row("max_swap_amount", _fmt(active.max_swap_amount))
    table.add_row("max_slippage_bps", _fmt(active.max_slippage_bps))
    console.print(table)


# ------------------------------------------------------------------
# wallet sub-commands
# ------------------------------------------------------------------

wallet_app = typer.Typer(
    name="wallet",
    help="Manage the local wallet keystore.",
    no_args_is_help=True,
)
app.add_typer(wallet_app, name="wallet")


@wallet_app.command("create")
def wallet_create(
    import_key: bool = typer.Option(
        False,
        "--import",
        help=f"Encrypt an existing key (from ${PRIVATE_KEY_ENV} or a prompt) instead of generating one",
    ),
):
    """Create the encrypted wallet keystore."""
    from wallet_pilot.wallet.keystore import create_wallet

    key = None
    if import_key:
        key = os.environ.get(PRIVATE_KEY_ENV) or console.input("[bold]Private key: [/bold]", password=True)

    password = console.input("[bold]Set wallet password: [/bold]", password=True)
    confirm = console.input("[bold]Confirm password: [/bold]", password=True)
    if password != confirm:
        console.print("[red]Passwords do not match.[/red]")
        raise typer.Exit(1)

    try:
        addr = create_wallet(get_wallet_dir(_base_dir), password, key)
    except FileExistsError as exc:
        console.print(f"[yellow]{exc}[/yellow]")
        raise typer.Exit(1)
    except (ValueError, TypeError) as exc:
        console.print(f"[red]Invalid private key: {exc}[/red]")
        raise typer.Exit(1)

    console.print(Panel(
        f"[bold green]Wallet {'imported' if import_key else 'created'}![/bold green]\n\n"
        f"Address: [cyan]{addr}[/cyan]\n\n"
        f"[dim]Your keystore is encrypted with your password.\n"
        f"Fund it before running plans.[/dim]",
        title="Wallet",
    ))


@wallet_app.command("address")
def wallet_address():
    """Show the wallet address."""
    from wallet_pilot.wallet.keystore import load_address

    addr = load_address(get_wallet_dir(_base_dir))
    if addr is None:
        console.print("[yellow]No wallet found.[/yellow] Run 'wallet-pilot wallet create' first.")
        raise typer.Exit(1)
    console.print(f"[cyan]{addr}[/cyan]")


@wallet_app.command("balance")
def wallet_balance(
    address: str = typer.Option(None, "--address", "-a", help="Address to query (default: the local wallet)"),
    token: str = typer.Option(None, "--token", "-t", help="ERC-20 contract address; shows that token instead"),
):
    """Show the native (or an ERC-20 token) balance on the configured chain."""
    from wallet_pilot.wallet.chains import get_chain
    from wallet_pilot.wallet.keystore import load_address

    config = _load()
    addr = address or load_address(get_wallet_dir(_base_dir))
    if addr is None:
        console.print("[yellow]No wallet found.[/yellow] Pass --address or create a wallet.")
        raise typer.Exit(1)

    agent = WalletAgent.from_config(config)
    chain = get_chain(config.ledger.chain)
    try:
        if token:
            holding = asyncio.run(agent.get_token_balance(addr, token))
        else:
            balance = asyncio.run(agent.get_balance(addr))
    except WalletPilotError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    if token:
        console.print(
            f"[bold]{chain.name}:[/bold] {holding.ui_amount:f} of {holding.token} "
            f"[dim]({holding.amount} raw, {holding.decimals} decimals)[/dim]"
        )
        return
    console.print(
        f"[bold]{chain.name}:[/bold] {chain.format_native(balance)} "
        f"[dim]({balance} wei)[/dim]"
    )


if __name__ == "__main__":
    app()
