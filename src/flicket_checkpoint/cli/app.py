"""Administrative CLI for inspecting and deleting checkpoint history."""

import asyncio
import logging
import sys
from typing import Any, Dict, List, Optional, Tuple

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..checkpoint.errors import CheckpointStoreError
from ..config.storage_config import StorageConfig
from ..services.checkpoint_service import CheckpointerProvider

logger = logging.getLogger(__name__)

console = Console()


def _build_provider(backend: Optional[str]) -> CheckpointerProvider:
    config = StorageConfig()
    if backend:
        config = config.model_copy(update={"backend": backend})
    return CheckpointerProvider(config)


async def _collect(
    provider: CheckpointerProvider,
    thread_ids: Tuple[str, ...],
    namespace: Optional[str],
    limit: Optional[int],
) -> List[Any]:
    configurable: Dict[str, Any] = {}
    if thread_ids:
        configurable["thread_id"] = list(thread_ids)
    if namespace is not None:
        configurable["checkpoint_ns"] = namespace

    try:
        return [
            t
            async for t in provider.instance.alist(
                {"configurable": configurable}, limit=limit
            )
        ]
    finally:
        await provider.close()


@click.group()
@click.option(
    "--backend",
    type=click.Choice(["memory", "redis"]),
    help="Override CHECKPOINT_BACKEND",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable verbose logging",
)
@click.pass_context
def main(ctx: click.Context, backend: Optional[str], verbose: bool) -> None:
    """Inspect and clean up stored conversation checkpoints."""
    log_level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.ensure_object(dict)
    provider = _build_provider(backend)
    ctx.obj["provider"] = provider

    if provider.config.backend == "memory":
        click.echo(
            "Warning: the memory backend is process-local and starts empty. "
            "Use --backend redis or set CHECKPOINT_BACKEND=redis.",
            err=True,
        )


@main.command("list")
@click.option("--thread", "-t", "thread_ids", multiple=True, help="Thread id (repeatable)")
@click.option("--namespace", "-n", default=None, help="Checkpoint namespace")
@click.option("--limit", "-l", type=int, default=20, show_default=True)
@click.pass_context
def list_command(
    ctx: click.Context,
    thread_ids: Tuple[str, ...],
    namespace: Optional[str],
    limit: int,
) -> None:
    """List checkpoints, newest first. Without --thread the whole table is scanned."""
    provider: CheckpointerProvider = ctx.obj["provider"]
    tuples = asyncio.run(_collect(provider, thread_ids, namespace, limit))

    table = Table(title="Checkpoints")
    table.add_column("Thread", style="cyan")
    table.add_column("Namespace")
    table.add_column("Checkpoint")
    table.add_column("Parent", style="dim")
    table.add_column("Step", justify="right")
    table.add_column("Writes", justify="right")

    for t in tuples:
        configurable = t.config["configurable"]
        parent = t.parent_config["configurable"]["checkpoint_id"] if t.parent_config else "-"
        table.add_row(
            configurable["thread_id"],
            configurable["checkpoint_ns"] or "(root)",
            configurable["checkpoint_id"],
            parent,
            str((t.metadata or {}).get("step", "")),
            str(len(t.pending_writes or [])),
        )

    console.print(table)


@main.command("show")
@click.argument("thread_id")
@click.option("--namespace", "-n", default="", help="Checkpoint namespace")
@click.option("--checkpoint-id", "-c", default=None, help="Checkpoint id (default: latest)")
@click.option("--merged", is_flag=True, help="Merge channel values from ancestors")
@click.pass_context
def show_command(
    ctx: click.Context,
    thread_id: str,
    namespace: str,
    checkpoint_id: Optional[str],
    merged: bool,
) -> None:
    """Show one checkpoint with its pending writes."""
    provider: CheckpointerProvider = ctx.obj["provider"]

    configurable = {"thread_id": thread_id, "checkpoint_ns": namespace}
    if checkpoint_id:
        configurable["checkpoint_id"] = checkpoint_id

    async def _fetch():
        try:
            saver = provider.instance
            if merged:
                return await saver.aget_merged_tuple({"configurable": configurable})
            return await saver.aget_tuple({"configurable": configurable})
        finally:
            await provider.close()

    checkpoint_tuple = asyncio.run(_fetch())
    if checkpoint_tuple is None:
        console.print(f"[yellow]No checkpoint found for thread {thread_id}[/yellow]")
        sys.exit(1)

    checkpoint = checkpoint_tuple.checkpoint
    values = Table(title="Channel values", show_header=True)
    values.add_column("Channel", style="cyan")
    values.add_column("Version", style="dim")
    values.add_column("Value")
    versions = checkpoint.get("channel_versions", {})
    for channel, value in checkpoint.get("channel_values", {}).items():
        values.add_row(channel, str(versions.get(channel, "")), repr(value))

    writes = Table(title="Pending writes", show_header=True)
    writes.add_column("Task", style="cyan")
    writes.add_column("Channel")
    writes.add_column("Value")
    for task_id, channel, value in checkpoint_tuple.pending_writes or []:
        writes.add_row(task_id, channel, repr(value))

    console.print(
        Panel(
            f"id: {checkpoint['id']}\n"
            f"ts: {checkpoint.get('ts', '')}\n"
            f"v: {checkpoint.get('v', '')}\n"
            f"metadata: {checkpoint_tuple.metadata}",
            title=f"Checkpoint ({thread_id})",
        )
    )
    console.print(values)
    console.print(writes)


@main.command("delete-thread")
@click.argument("thread_id")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_thread_command(ctx: click.Context, thread_id: str, yes: bool) -> None:
    """Delete every checkpoint and write of a thread."""
    if not yes:
        click.confirm(f"Delete all checkpoints of thread {thread_id}?", abort=True)

    provider: CheckpointerProvider = ctx.obj["provider"]

    async def _delete():
        try:
            await provider.instance.adelete_thread(thread_id)
        finally:
            await provider.close()

    try:
        asyncio.run(_delete())
    except CheckpointStoreError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    console.print(f"[green]Deleted thread {thread_id}[/green]")


if __name__ == "__main__":
    main()
