"""MCP server exposing bookmark classification and folder editing tools."""

import asyncio
import sqlite3
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from smart_bookmarks.config import DATABASE_FILENAME, resolve_data_directory
from smart_bookmarks.core.classify.classifier import make_classifier
from smart_bookmarks.core.database.schema import get_metadata, migrate_schema, set_metadata
from smart_bookmarks.core.session.drag import DragController
from smart_bookmarks.core.session.session import ClassificationSession, SessionState
from smart_bookmarks.core.store.sqlite_store import SqliteBookmarkStore, SqliteFolderStore
from smart_bookmarks.core.tree.folder_tree import build_folder_tree, flatten_with_indent
from smart_bookmarks.errors import ClassifierFailure, CommitFailure
from smart_bookmarks.models.classification import DragItemType
from smart_bookmarks.protocols import ClassifierProtocol

ClassifierFactory = Callable[[bool], ClassifierProtocol]


def _default_classifier(offline: bool) -> ClassifierProtocol:
    return make_classifier(offline=offline)


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime.

    Holds at most one classification session; starting a new one replaces it.
    """

    conn: sqlite3.Connection
    session: ClassificationSession | None = None
    classifier_factory: ClassifierFactory = _default_classifier
    session_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


def _open_session(ctx: ServerContext) -> ClassificationSession | None:
    session = ctx.session
    if session is None or session.state != SessionState.PROPOSED:
        return None
    return session


_NO_SESSION = {"error": "No open proposal. Call start_classification first."}


# --- Core functions (testable without MCP context) ---


async def list_folders(conn: sqlite3.Connection) -> dict[str, Any]:
    """List the saved folder tree in display order with bookmark counts."""
    all_folders = await SqliteFolderStore(conn).get_all()
    counts = await SqliteBookmarkStore(conn).count_by_folder()
    entries = flatten_with_indent(build_folder_tree(all_folders, counts))
    return {
        "folders": [
            {
                "id": e.folder.id,
                "name": e.folder.name,
                "icon": e.folder.icon,
                "level": e.level,
                "count": e.count or 0,
            }
            for e in entries
        ],
        "count": len(entries),
        "last_commit_at": get_metadata(conn, "last_commit_at"),
    }


async def start_classification(ctx: ServerContext, *, offline: bool = False) -> dict[str, Any]:
    """Classify every stored bookmark and open a new proposal.

    Args:
        offline: Group by domain instead of calling the LLM.
    """
    bookmarks = await SqliteBookmarkStore(ctx.conn).get_all()
    if not bookmarks:
        return {"error": "No bookmarks to classify. Import some first."}

    try:
        classifier = ctx.classifier_factory(offline)
    except (RuntimeError, ValueError) as e:
        return {"error": f"Cannot start classifier: {e}"}

    session = ClassificationSession(bookmarks)
    try:
        await session.classify(classifier)
    except ClassifierFailure as e:
        return {"error": f"Classification failed: {e}"}

    if ctx.session is not None and ctx.session.state == SessionState.PROPOSED:
        logger.info("Replacing open proposal (version {})", ctx.session.version)
        ctx.session.discard()
    ctx.session = session
    return session.snapshot()


def get_proposal(ctx: ServerContext) -> dict[str, Any]:
    """Return the open proposal: folders, their bookmarks and the version."""
    session = _open_session(ctx)
    if session is None:
        return dict(_NO_SESSION)
    return session.snapshot()


def _resolve(session: ClassificationSession, ref: str) -> str | None:
    folder = session.find_folder(ref)
    return folder.id if folder else None


def add_folder(ctx: ServerContext, *, name: str) -> dict[str, Any]:
    """Add an empty folder to the proposal.

    Args:
        name: Name of the new folder.
    """
    session = _open_session(ctx)
    if session is None:
        return dict(_NO_SESSION)
    if not name.strip():
        return {"error": "Folder name must not be blank."}
    folder = session.add_folder(name.strip(), editing=False)
    return {"folder_id": folder.id, "name": name.strip(), "version": session.version}


def rename_folder(ctx: ServerContext, *, folder: str, name: str) -> dict[str, Any]:
    """Rename a proposed folder.

    Args:
        folder: Folder id or current name.
        name: New name. Blank names are ignored.
    """
    session = _open_session(ctx)
    if session is None:
        return dict(_NO_SESSION)
    folder_id = _resolve(session, folder)
    if folder_id is None:
        return {"error": f"Folder '{folder}' not found."}
    changed = session.rename_folder(folder_id, name)
    return {"folder_id": folder_id, "changed": changed, "version": session.version}


def delete_folder(ctx: ServerContext, *, folder: str) -> dict[str, Any]:
    """Delete a proposed folder; its bookmarks move to the uncategorized folder.

    Args:
        folder: Folder id or name.
    """
    session = _open_session(ctx)
    if session is None:
        return dict(_NO_SESSION)
    folder_id = _resolve(session, folder)
    if folder_id is None:
        return {"error": f"Folder '{folder}' not found."}
    changed = session.delete_folder(folder_id)
    return {"folder_id": folder_id, "changed": changed, "version": session.version}


def move_bookmark(ctx: ServerContext, *, bookmark_id: str, target_folder: str) -> dict[str, Any]:
    """Move a bookmark to another proposed folder.

    Args:
        bookmark_id: Bookmark to move.
        target_folder: Destination folder id or name.
    """
    session = _open_session(ctx)
    if session is None:
        return dict(_NO_SESSION)
    source = session.result.owner_of(bookmark_id) if session.result else None
    if source is None:
        return {"error": f"Bookmark '{bookmark_id}' is not in the proposal."}
    target_id = _resolve(session, target_folder)
    if target_id is None:
        return {"error": f"Folder '{target_folder}' not found."}

    drag = DragController(session)
    drag.start(DragItemType.BOOKMARK, bookmark_id, source.id)
    drag.over(target_id)
    changed = drag.drop(target_id)
    return {
        "bookmark_id": bookmark_id,
        "from": source.id,
        "to": target_id,
        "changed": changed,
        "version": session.version,
    }


async def commit_proposal(ctx: ServerContext) -> dict[str, Any]:
    """Save the open proposal as the folder structure and close it."""
    session = _open_session(ctx)
    if session is None:
        return dict(_NO_SESSION)
    try:
        report = await session.commit(
            SqliteFolderStore(ctx.conn), SqliteBookmarkStore(ctx.conn)
        )
    except CommitFailure as e:
        return {
            "error": str(e),
            "step": e.step,
            "item_id": e.item_id,
            "folders_deleted": e.report.folders_deleted,
            "folders_written": e.report.folders_written,
            "bookmarks_updated": e.report.bookmarks_updated,
        }
    set_metadata(ctx.conn, "last_commit_at", datetime.now(UTC).isoformat())
    return {
        "folders_deleted": report.folders_deleted,
        "folders_written": report.folders_written,
        "bookmarks_updated": report.bookmarks_updated,
        "folder_ids": report.folder_ids,
    }


def discard_proposal(ctx: ServerContext) -> dict[str, Any]:
    """Throw the open proposal away without saving."""
    session = _open_session(ctx)
    if session is None:
        return dict(_NO_SESSION)
    session.discard()
    return {"discarded": True}


# --- MCP Server Setup ---


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Open database on startup, close on shutdown."""
    data_dir = resolve_data_directory()
    data_dir.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(data_dir / DATABASE_FILENAME))
    migrate_schema(conn)
    try:
        yield ServerContext(conn=conn)
    finally:
        conn.close()


mcp_server = FastMCP(
    "smart-bookmarks",
    instructions="""\
Organizes saved bookmarks into folders. Nothing is saved until you commit.

## Workflow

1. Call list_folders_tool to see the current folder tree.
2. Call start_classification_tool to get a proposed grouping of all bookmarks.
3. Edit the proposal with add_folder_tool, rename_folder_tool, delete_folder_tool
   and move_bookmark_tool. Folders can be referenced by id or by name.
4. Call commit_proposal_tool to replace the saved folders with the proposal,
   or discard_proposal_tool to throw it away.

Committing replaces every folder except "All Bookmarks".
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def list_folders_tool(ctx: Context) -> dict[str, Any]:
    """List saved folders in display order with bookmark counts."""
    return await list_folders(_ctx(ctx).conn)


@mcp_server.tool()
async def start_classification_tool(ctx: Context, offline: bool = False) -> dict[str, Any]:
    """Classify all bookmarks into a new folder proposal.

    Replaces any open proposal. Classification may take a while for large
    collections since bookmarks are sent to the LLM in batches.

    Args:
        offline: Group by domain instead of calling the LLM.
    """
    server_ctx = _ctx(ctx)
    async with server_ctx.session_lock:
        return await start_classification(server_ctx, offline=offline)


@mcp_server.tool()
async def get_proposal_tool(ctx: Context) -> dict[str, Any]:
    """Show the open proposal with each folder's bookmarks."""
    return get_proposal(_ctx(ctx))


@mcp_server.tool()
async def add_folder_tool(ctx: Context, name: str) -> dict[str, Any]:
    """Add an empty folder to the proposal.

    Args:
        name: Name of the new folder.
    """
    return add_folder(_ctx(ctx), name=name)


@mcp_server.tool()
async def rename_folder_tool(ctx: Context, folder: str, name: str) -> dict[str, Any]:
    """Rename a proposed folder.

    Args:
        folder: Folder id or current name.
        name: New name.
    """
    return rename_folder(_ctx(ctx), folder=folder, name=name)


@mcp_server.tool()
async def delete_folder_tool(ctx: Context, folder: str) -> dict[str, Any]:
    """Delete a proposed folder. Its bookmarks move to "Uncategorized".

    Args:
        folder: Folder id or name.
    """
    return delete_folder(_ctx(ctx), folder=folder)


@mcp_server.tool()
async def move_bookmark_tool(ctx: Context, bookmark_id: str, target_folder: str) -> dict[str, Any]:
    """Move a bookmark into another proposed folder.

    Args:
        bookmark_id: Bookmark id from get_proposal_tool.
        target_folder: Destination folder id or name.
    """
    return move_bookmark(_ctx(ctx), bookmark_id=bookmark_id, target_folder=target_folder)


@mcp_server.tool()
async def commit_proposal_tool(ctx: Context) -> dict[str, Any]:
    """Save the proposal, replacing all saved folders except "All Bookmarks"."""
    server_ctx = _ctx(ctx)
    async with server_ctx.session_lock:
        return await commit_proposal(server_ctx)


@mcp_server.tool()
async def discard_proposal_tool(ctx: Context) -> dict[str, Any]:
    """Throw away the open proposal."""
    return discard_proposal(_ctx(ctx))


def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    from smart_bookmarks.logging_config import configure_logging

    configure_logging(verbose=False)
    mcp_server.run(transport="stdio")
