"""Folder tree construction: nesting, sibling order, indented flattening."""

from collections.abc import Iterable, Mapping

from smart_bookmarks.models.folder import SYSTEM_FOLDER_ID, Folder, FolderEntry, FolderWithChildren


def _sibling_key(folder: Folder) -> tuple[bool, int]:
    # False sorts first, so the system folder leads its siblings.
    return (folder.id != SYSTEM_FOLDER_ID, folder.order)


def _cycle_members(parent_of: dict[str, str | None]) -> set[str]:
    """Return the ids of folders that sit on a parent cycle."""
    members: set[str] = set()
    settled: set[str] = set()
    for start in parent_of:
        path: list[str] = []
        on_path: set[str] = set()
        current: str | None = start
        while current is not None and current not in settled and current not in on_path:
            path.append(current)
            on_path.add(current)
            current = parent_of.get(current)
        if current is not None and current in on_path:
            members.update(path[path.index(current) :])
        settled.update(path)
    return members


def resolve_parents(folders: Iterable[Folder]) -> dict[str, str | None]:
    """Map each folder id to the parent it will be nested under.

    A parent that does not resolve to a known folder becomes None, and so
    does the parent of every folder on a cycle: those folders surface as roots.
    """
    by_id = {f.id: f for f in folders}
    parent_of: dict[str, str | None] = {
        fid: (f.parent_id if f.parent_id in by_id else None) for fid, f in by_id.items()
    }
    for fid in _cycle_members(parent_of):
        parent_of[fid] = None
    return parent_of


def build_folder_tree(
    folders: Iterable[Folder],
    counts: Mapping[str, int] | None = None,
) -> list[FolderWithChildren]:
    """Nest a flat folder set into an ordered forest.

    Args:
        folders: Every known folder, in store order.
        counts: Optional bookmark count per folder id, attached to each node.

    Returns:
        Root nodes. At every level the system folder comes first, the rest
        follow by ascending ``order``; equal orders keep their input order.
    """
    folder_list = list(folders)
    parent_of = resolve_parents(folder_list)

    children_of: dict[str | None, list[Folder]] = {}
    for folder in folder_list:
        if folder.id not in parent_of:
            # Duplicate id, already placed.
            continue
        children_of.setdefault(parent_of.pop(folder.id), []).append(folder)

    def build(folder: Folder) -> FolderWithChildren:
        kids = sorted(children_of.get(folder.id, []), key=_sibling_key)
        return FolderWithChildren(
            folder=folder,
            children=tuple(build(k) for k in kids),
            count=counts.get(folder.id, 0) if counts is not None else None,
        )

    return [build(f) for f in sorted(children_of.get(None, []), key=_sibling_key)]


def flatten_with_indent(tree: Iterable[FolderWithChildren], level: int = 0) -> list[FolderEntry]:
    """Depth-first, pre-order list of folders with their nesting level."""
    result: list[FolderEntry] = []
    for node in tree:
        result.append(FolderEntry(folder=node.folder, level=level, count=node.count))
        result.extend(flatten_with_indent(node.children, level + 1))
    return result


def render_indented(entries: Iterable[FolderEntry]) -> str:
    """Render flattened entries as text, one folder per line."""
    lines = []
    for entry in entries:
        prefix = "  " * entry.level + "└ " if entry.level > 0 else ""
        suffix = f" ({entry.count})" if entry.count is not None else ""
        lines.append(f"{prefix}{entry.folder.name}{suffix}")
    return "\n".join(lines)
