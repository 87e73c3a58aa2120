"""CLI entry point for Merkle Ledger."""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich import print as rprint
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from merkle_ledger.config import LedgerConfig, load_config
from merkle_ledger.config.loader import DEFAULT_CONFIG_TEMPLATE, resolve_hmac_key
from merkle_ledger.merkle import (
    ChainIntegrityError,
    MerkleChain,
    MerkleError,
    MerkleFileProcessor,
    MerkleTree,
)

app = typer.Typer(
    name="merkle-ledger",
    help="Merkle roots for files, directories and batches of records.",
)

config_app = typer.Typer(help="Manage merkle-ledger configuration.")
app.add_typer(config_app, name="config")

chain_app = typer.Typer(help="Append-only chain of batch roots.")
app.add_typer(chain_app, name="chain")

# Global state
_config: LedgerConfig | None = None

_LOG_LEVELS = {"debug": "DEBUG", "info": "INFO", "warn": "WARNING", "error": "ERROR"}


class _JsonLogFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(
            {
                "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            }
        )


def setup_logging(level: str = "info", log_format: str = "text") -> None:
    """Configure root logging for the CLI."""
    handler = logging.StreamHandler(sys.stderr)
    if log_format == "json":
        handler.setFormatter(_JsonLogFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    logging.basicConfig(
        level=getattr(logging, _LOG_LEVELS.get(level, "INFO")),
        handlers=[handler],
        force=True,
    )


def _get_config() -> LedgerConfig:
    if _config is None:
        return load_config()
    return _config


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to merkle-ledger.yaml")
    ] = None,
) -> None:
    """Global options."""
    global _config
    try:
        _config = load_config(config)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    setup_logging(_config.log_level, _config.log_format)


def _algorithm(override: str | None) -> str:
    return override or _get_config().merkle.algorithm


def _key() -> bytes | None:
    try:
        return resolve_hmac_key(_get_config().merkle)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)


def _processor(algorithm: str | None) -> MerkleFileProcessor:
    merkle_cfg = _get_config().merkle
    if algorithm:
        merkle_cfg = merkle_cfg.model_copy(update={"algorithm": algorithm})
    return MerkleFileProcessor(merkle_cfg, key=_key())


def _display_levels(tree: MerkleTree) -> None:
    """Show every tier of a tree, leaf tier first."""
    table = Table(title=f"Levels ({tree.depth})")
    table.add_column("Tier", justify="right")
    table.add_column("Digests", style="cyan")
    for i, level in enumerate(tree.levels):
        table.add_row(str(i), "\n".join(level))
    rprint(table)


# ---------------------------------------------------------------------------
# Tree commands
# ---------------------------------------------------------------------------


@app.command()
def root(
    values: Annotated[list[str], typer.Argument(help="Leaf values, in order")],
    algorithm: Annotated[
        str | None, typer.Option("--algorithm", "-a", help="sha256 | sha512 | sha1 | md5")
    ] = None,
    levels: Annotated[bool, typer.Option("--levels", help="Show every tier")] = False,
    plain: Annotated[bool, typer.Option("--plain", help="Print only the root")] = False,
) -> None:
    """Compute the Merkle root of the given values."""
    try:
        tree = MerkleTree(values, algorithm=_algorithm(algorithm), key=_key())
    except MerkleError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if plain:
        typer.echo(tree.root)
        return
    if levels:
        _display_levels(tree)
    rprint(f"[dim]Leaves:[/dim] {len(tree)}  [dim]Depth:[/dim] {tree.depth}")
    rprint(f"[bold]Root:[/bold] {tree.root}")


@app.command("file")
def file_cmd(
    path: Annotated[Path, typer.Argument(help="File to hash")],
    whole: Annotated[
        bool, typer.Option("--whole", help="Digest the raw file instead of its lines")
    ] = False,
    algorithm: Annotated[
        str | None, typer.Option("--algorithm", "-a", help="sha256 | sha512 | sha1 | md5")
    ] = None,
    plain: Annotated[bool, typer.Option("--plain", help="Print only the digest")] = False,
) -> None:
    """Merkle root of a file's lines, or its whole-file digest."""
    processor = _processor(algorithm)
    try:
        digest = processor.hash_file(path) if whole else processor.process_file(path)
    except MerkleError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if plain:
        typer.echo(digest)
        return
    label = "Digest" if whole else "Merkle root"
    rprint(f"[bold]{label}[/bold] for {path}: {digest}")


@app.command("dir")
def dir_cmd(
    path: Annotated[Path, typer.Argument(help="Directory to hash")] = Path("."),
    entries: Annotated[
        bool, typer.Option("--entries", help="Show the root of every entry")
    ] = False,
    algorithm: Annotated[
        str | None, typer.Option("--algorithm", "-a", help="sha256 | sha512 | sha1 | md5")
    ] = None,
    plain: Annotated[bool, typer.Option("--plain", help="Print only the root")] = False,
) -> None:
    """Merkle root of a directory tree."""
    processor = _processor(algorithm)
    try:
        result = processor.scan(path)
    except MerkleError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if plain:
        typer.echo(result.root)
        return
    if entries:
        table = Table(title=f"Entries ({len(result.entries)})")
        table.add_column("Path", style="cyan")
        table.add_column("Root", style="dim")
        for rel, entry_root in sorted(result.entries.items()):
            table.add_row(rel, entry_root)
        rprint(table)
    rprint(f"[bold]Merkle root[/bold] for {path}/: {result.root}")


# ---------------------------------------------------------------------------
# Chain commands
# ---------------------------------------------------------------------------


def _ledger_path(ledger: str | None) -> Path:
    return Path(ledger or _get_config().chain.ledger_path)


def _load_chain(path: Path) -> MerkleChain:
    if not path.is_file():
        rprint(f"[red]No chain found at {path}.[/red] Run 'merkle-ledger chain init' first.")
        raise typer.Exit(1)
    try:
        return MerkleChain.load(path, key=_key())
    except (ChainIntegrityError, ValueError) as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)


LedgerOption = Annotated[
    str | None, typer.Option("--ledger", help="Chain ledger file (default from config)")
]


@chain_app.command("init")
def chain_init(
    values: Annotated[list[str] | None, typer.Argument(help="First batch")] = None,
    ledger: LedgerOption = None,
    force: bool = typer.Option(False, "--force", help="Overwrite an existing ledger"),
) -> None:
    """Start a new chain with an optional first batch."""
    path = _ledger_path(ledger)
    if path.exists() and not force:
        rprint(f"[yellow]Ledger already exists:[/yellow] {path}. Use --force to overwrite.")
        raise typer.Exit(1)
    chain = MerkleChain(values or [], algorithm=_get_config().merkle.algorithm, key=_key())
    chain.save(path)
    rprint(f"[green]Created[/green] {path}")
    rprint(f"[dim]Chain root:[/dim] {chain.chain_root}")


@chain_app.command("append")
def chain_append(
    values: Annotated[list[str], typer.Argument(help="Batch values, in order")],
    ledger: LedgerOption = None,
) -> None:
    """Append a batch to the chain."""
    path = _ledger_path(ledger)
    chain = _load_chain(path)
    node = chain.append_batch(values)
    chain.save(path)
    rprint(f"[green]Appended[/green] batch {node.index}: {node.root}")
    rprint(f"[dim]Chain root:[/dim] {chain.chain_root}")


@chain_app.command("show")
def chain_show(ledger: LedgerOption = None) -> None:
    """List every batch in the chain."""
    chain = _load_chain(_ledger_path(ledger))
    table = Table(title=f"Chain ({len(chain)} batches)")
    table.add_column("#", justify="right")
    table.add_column("Leaves", justify="right")
    table.add_column("Root", style="cyan")
    table.add_column("Prev", style="dim")
    for node in chain:
        table.add_row(
            str(node.index),
            str(len(node.leaves)),
            node.root,
            node.prev_root[:12] or "-",
        )
    rprint(table)
    rprint(
        Panel(
            f"[dim]Genesis:[/dim]    {chain.genesis_at}\n"
            f"[dim]Algorithm:[/dim]  {chain.algorithm}{' (HMAC)' if chain.keyed else ''}\n"
            f"[dim]Chain root:[/dim] {chain.chain_root}",
            title="Merkle Chain",
            border_style="blue",
        )
    )


@chain_app.command("verify")
def chain_verify(ledger: LedgerOption = None) -> None:
    """Replay the chain and check every root and link."""
    chain = _load_chain(_ledger_path(ledger))
    if not chain.verify():
        rprint("[red]Chain verification failed.[/red]")
        raise typer.Exit(1)
    rprint(f"[green]Chain OK[/green] ({len(chain)} batches) root={chain.chain_root}")


# ---------------------------------------------------------------------------
# Config commands
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show() -> None:
    """Show current resolved configuration."""
    cfg = _get_config()
    rprint(Syntax(yaml.dump(cfg.model_dump(), default_flow_style=False), "yaml"))
    env = cfg.merkle.hmac_key_env
    if env:
        state = "set" if os.environ.get(env) else "[red]not set[/red]"
        rprint(f"[dim]HMAC key:[/dim] ${env} ({state})")
    else:
        rprint("[dim]HMAC key:[/dim] none (plain digests)")


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config"),
) -> None:
    """Create default merkle-ledger.yaml in current directory."""
    target = Path("merkle-ledger.yaml")
    if target.exists() and not force:
        rprint("[yellow]merkle-ledger.yaml already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    target.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Created[/green] {target}")


if __name__ == "__main__":
    app()
