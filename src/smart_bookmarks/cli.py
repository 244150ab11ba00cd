"""CLI for smart-bookmarks (import, export, folders, classify, MCP server)."""

import asyncio
import json
import sqlite3
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from smart_bookmarks.config import DATABASE_FILENAME, resolve_data_directory
from smart_bookmarks.core.classify.classifier import make_classifier
from smart_bookmarks.core.database.schema import migrate_schema, set_metadata
from smart_bookmarks.core.importer.loader import import_bookmarks_file
from smart_bookmarks.core.session.drag import DragController
from smart_bookmarks.core.session.session import ClassificationSession
from smart_bookmarks.core.store.sqlite_store import SqliteBookmarkStore, SqliteFolderStore
from smart_bookmarks.core.tree.export import export_html, export_json
from smart_bookmarks.core.tree.folder_tree import (
    build_folder_tree,
    flatten_with_indent,
    render_indented,
)
from smart_bookmarks.errors import ClassifierFailure, CommitFailure
from smart_bookmarks.logging_config import configure_logging
from smart_bookmarks.models.classification import DragItemType

app = typer.Typer(help="Smart bookmarks: classify saved bookmarks into folders.")

DataDirOption = Annotated[
    Path | None,
    typer.Option("--data-dir", "-d", help="Directory holding the bookmark database"),
]


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose=verbose)


def _open_db(data_dir: Path | None) -> sqlite3.Connection:
    """Open (creating if needed) the bookmark database."""
    dst = data_dir or resolve_data_directory()
    dst.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(dst / DATABASE_FILENAME))
    migrate_schema(conn)
    return conn


@app.command(name="import")
def import_cmd(
    file: Path = typer.Argument(..., help="JSON bookmarks, JSON export or browser HTML export"),
    data_dir: DataDirOption = None,
) -> None:
    """Import bookmarks from a JSON file or a browser's HTML bookmark export."""
    if not file.exists():
        logger.error("File not found: {}", file)
        raise typer.Exit(1)

    conn = _open_db(data_dir)
    try:
        stats = asyncio.run(import_bookmarks_file(conn, file))
    except (ValueError, sqlite3.DatabaseError) as e:
        logger.error("Cannot import {}: {}", file, e)
        raise typer.Exit(1) from e
    finally:
        conn.close()
    typer.echo(
        f"Imported {stats.bookmarks_imported} bookmarks, skipped {stats.bookmarks_skipped}, "
        f"created {stats.folders_created} folders"
    )


class ExportFormat(StrEnum):
    JSON = "json"
    HTML = "html"


@app.command(name="export")
def export_cmd(
    data_dir: DataDirOption = None,
    fmt: ExportFormat = typer.Option(ExportFormat.JSON, "--format", "-f", help="Output format"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write here, not stdout"),
) -> None:
    """Export all folders and bookmarks as JSON or a browser HTML bookmark file."""
    conn = _open_db(data_dir)
    try:
        render = export_html if fmt is ExportFormat.HTML else export_json
        text = asyncio.run(render(conn))
    finally:
        conn.close()

    if output is None:
        typer.echo(text)
        return
    output.write_text(text, encoding="utf-8")
    logger.info("Wrote {} export to {}", fmt.value, output)


@app.command()
def folders(
    data_dir: DataDirOption = None,
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Show the folder tree with bookmark counts."""
    conn = _open_db(data_dir)
    try:
        all_folders = asyncio.run(SqliteFolderStore(conn).get_all())
        counts = asyncio.run(SqliteBookmarkStore(conn).count_by_folder())
    finally:
        conn.close()

    entries = flatten_with_indent(build_folder_tree(all_folders, counts))
    if output_json:
        data = [
            {"id": e.folder.id, "name": e.folder.name, "level": e.level, "count": e.count}
            for e in entries
        ]
        typer.echo(json.dumps(data, indent=2))
    else:
        typer.echo(render_indented(entries))


def _split_pair(value: str, sep: str, option: str) -> tuple[str, str]:
    left, found, right = value.partition(sep)
    if not found or not left.strip() or not right.strip():
        logger.error("{} expects LEFT{}RIGHT, got {!r}", option, sep, value)
        raise typer.Exit(1)
    return left.strip(), right.strip()


def _apply_edits(
    session: ClassificationSession,
    *,
    add: list[str],
    rename: list[str],
    move: list[str],
    delete: list[str],
) -> None:
    """Apply command-line edits in order: adds, renames, moves, deletes."""
    for name in add:
        session.add_folder(name, editing=False)

    for value in rename:
        ref, new_name = _split_pair(value, "=", "--rename")
        target = session.find_folder(ref)
        if target is None:
            logger.warning("No folder {!r} to rename", ref)
        elif not session.rename_folder(target.id, new_name):
            logger.warning("Rename of {!r} left it unchanged", ref)

    drag = DragController(session)
    for value in move:
        bookmark_id, ref = _split_pair(value, ":", "--move")
        result = session.result
        source = result.owner_of(bookmark_id) if result else None
        target = session.find_folder(ref)
        if source is None or target is None:
            logger.warning("Cannot move {!r} to {!r}", bookmark_id, ref)
            continue
        drag.start(DragItemType.BOOKMARK, bookmark_id, source.id)
        drag.over(target.id)
        if not drag.drop(target.id):
            logger.warning("Move of {!r} to {!r} changed nothing", bookmark_id, ref)

    for ref in delete:
        target = session.find_folder(ref)
        if target is None or not session.delete_folder(target.id):
            logger.warning("Folder {!r} was not deleted", ref)


def _echo_proposal(session: ClassificationSession) -> None:
    snapshot = session.snapshot()
    for folder in snapshot["folders"]:
        marker = " (new)" if folder["is_new"] else ""
        typer.echo(f"{folder['name']}{marker}  [id={folder['id']}, {folder['count']} bookmarks]")
        for b in folder["bookmarks"]:
            typer.echo(f"    {b['title'][:70]}  [{b['id']}]")
        typer.echo()


@app.command()
def classify(
    data_dir: DataDirOption = None,
    offline: bool = typer.Option(False, "--offline", help="Group by domain, no LLM call"),
    cache: bool = typer.Option(False, "--cache", "-C", help="Cache LLM responses on disk"),
    add: Annotated[list[str] | None, typer.Option("--add", help="Add a folder")] = None,
    rename: Annotated[
        list[str] | None, typer.Option("--rename", help="Rename: FOLDER=NEW_NAME")
    ] = None,
    move: Annotated[
        list[str] | None, typer.Option("--move", help="Move: BOOKMARK_ID:FOLDER")
    ] = None,
    delete: Annotated[list[str] | None, typer.Option("--delete", help="Delete a folder")] = None,
    apply: bool = typer.Option(False, "--apply", help="Save the proposal as the folder structure"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Classify all bookmarks into folders, edit the proposal, optionally save it."""
    conn = _open_db(data_dir)
    try:
        bookmark_store = SqliteBookmarkStore(conn)
        bookmarks = asyncio.run(bookmark_store.get_all())
        if not bookmarks:
            logger.error("No bookmarks to classify. Run 'import' first.")
            raise typer.Exit(1)

        try:
            classifier = make_classifier(offline=offline, cache=cache)
        except (RuntimeError, ValueError) as e:
            logger.error("Cannot start classifier: {}", e)
            raise typer.Exit(1) from e

        session = ClassificationSession(bookmarks)
        try:
            asyncio.run(
                session.classify(
                    classifier,
                    on_progress=lambda cur, total: logger.info("Classifying {}/{}", cur, total),
                )
            )
        except ClassifierFailure as e:
            logger.error("Classification failed: {}", e)
            raise typer.Exit(1) from e

        _apply_edits(
            session, add=add or [], rename=rename or [], move=move or [], delete=delete or []
        )

        if output_json:
            typer.echo(json.dumps(session.snapshot(), indent=2))
        else:
            _echo_proposal(session)

        if not apply:
            return

        try:
            report = asyncio.run(session.commit(SqliteFolderStore(conn), bookmark_store))
        except CommitFailure as e:
            logger.error("{} ({} folders already written)", e, e.report.folders_written)
            raise typer.Exit(1) from e
        set_metadata(conn, "last_commit_at", datetime.now(UTC).isoformat())
        typer.echo(
            f"Saved {report.folders_written} folders, moved {report.bookmarks_updated} bookmarks"
        )
    finally:
        conn.close()


@app.command()
def serve() -> None:
    """Start the MCP server (stdio transport)."""
    from smart_bookmarks.mcp.server import run_mcp_server

    run_mcp_server()
