import logging
from pathlib import Path

import typer
from sqlalchemy.exc import SQLAlchemyError

from dirsummary.classify.file_types import FileTypeClassifier
from dirsummary.errors import DirSummaryError
from dirsummary.settings import SummarySettings
from dirsummary.sources.git_source import GitSnapshotSource
from dirsummary.sources.index_source import DEFAULT_REFERENCE, IndexSnapshotSource
from dirsummary.stages.dir_summary import dir_summary
from dirsummary.stages.gather import ingest_filesystem
from dirsummary.storage.manager import StorageManager
from dirsummary.storage.summary_store import SummaryStore
from dirsummary.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="dirsummary",
    help="Per-directory file type summaries of file tree snapshots",
    no_args_is_help=True,
)

STORAGE_OPTION_HELP = (
    "Storage directory (contains index.db and work.db). "
    "If not specified, uses DIRSUMMARY_STORAGE_PATH or ./data."
)


def _storage(storage_path: Path | None, settings: SummarySettings) -> StorageManager:
    try:
        return StorageManager(storage_path or settings.storage_path)
    except (RuntimeError, SQLAlchemyError, OSError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output."),
):
    settings = SummarySettings()
    setup_logging(
        settings.log_file_prefix,
        log_dir=settings.log_dir,
        level=logging.DEBUG if verbose else logging.INFO,
    )
    ctx.obj = settings


@app.command()
def summary(
    ctx: typer.Context,
    reference: str = typer.Argument(
        DEFAULT_REFERENCE,
        help="Snapshot to summarize: HEAD, HEAD~N, a snapshot id, uid or label, "
        "or any git revision with --git.",
    ),
    no_cache: bool = typer.Option(
        False,
        "--no-cache",
        help="Do not read nor write cached summaries.",
    ),
    recursive: bool = typer.Option(
        False,
        "--recursive",
        "-r",
        help="Include the files of all subdirectories in each directory's counts.",
    ),
    storage_path: Path = typer.Option(
        None, "--storage", "-s", help=STORAGE_OPTION_HELP
    ),
    git_repo: Path = typer.Option(
        None,
        "--git",
        "-g",
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
        help="Summarize commits of this git repository, caching in git notes.",
    ),
    workers: int = typer.Option(
        None, "--workers", "-w", min=1, help="Threads used to classify files."
    ),
):
    """
    Print per-directory file type counts of a snapshot as JSON.
    """
    settings: SummarySettings = ctx.obj
    if git_repo is not None:
        source = GitSnapshotSource(git_repo)
    else:
        source = IndexSnapshotSource(_storage(storage_path, settings))

    try:
        outcome = dir_summary(
            reference,
            source=source,
            store=source.store_for(recursive),
            classify=FileTypeClassifier(),
            recursive=recursive,
            no_cache=no_cache,
            workers=workers or settings.workers,
        )
    except DirSummaryError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(outcome.payload)


@app.command()
def gather(
    ctx: typer.Context,
    base_path: Path = typer.Argument(
        ...,
        exists=True,
        file_okay=False,
        dir_okay=True,
        readable=True,
        resolve_path=True,
    ),
    storage_path: Path = typer.Option(
        None, "--storage", "-s", help=STORAGE_OPTION_HELP
    ),
    label: str = typer.Option(
        None, "--label", "-l", help="Unique name to refer to this snapshot by."
    ),
):
    """
    Scan filesystem and create immutable snapshot in index.db.
    """
    typer.echo(f"Gathering from: {base_path}", err=True)
    storage = _storage(storage_path, ctx.obj)
    try:
        snapshot_id = ingest_filesystem(storage, base_path, label=label)
    except (SQLAlchemyError, OSError) as e:
        typer.echo(f"Error: Failed to gather {base_path}: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(f"✓ Created snapshot ID: {snapshot_id}", err=True)


@app.command()
def snapshots(
    ctx: typer.Context,
    storage_path: Path = typer.Option(
        None, "--storage", "-s", help=STORAGE_OPTION_HELP
    ),
):
    """
    List captured snapshots, newest first.
    """
    source = IndexSnapshotSource(_storage(storage_path, ctx.obj))
    rows = source.list_snapshots()
    if not rows:
        typer.echo("No snapshots found.", err=True)
        return
    for snapshot in rows:
        label = f" [{snapshot.label}]" if snapshot.label else ""
        typer.echo(
            f"{snapshot.snapshot_id}{label}\t{snapshot.snapshot_uid}\t"
            f"{snapshot.created_at}\t{snapshot.root_abs_path}"
        )


@app.command("clear-cache")
def clear_cache(
    ctx: typer.Context,
    storage_path: Path = typer.Option(
        None, "--storage", "-s", help=STORAGE_OPTION_HELP
    ),
    reference: str = typer.Option(
        None,
        "--snapshot",
        help="Only clear summaries of this snapshot (default: all snapshots).",
    ),
):
    """
    Remove cached summaries from work.db.
    """
    storage = _storage(storage_path, ctx.obj)
    identity = None
    if reference is not None:
        try:
            identity = IndexSnapshotSource(storage).resolve(reference)
        except DirSummaryError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)

    try:
        removed = sum(
            SummaryStore(storage, recursive=recursive).clear(identity)
            for recursive in (False, True)
        )
    except DirSummaryError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(f"✓ Removed {removed} cached summaries", err=True)
