"""Folder tree reconstruction from cached location keys.

The cache holds one entry list per location key (``office/Plans_f3a9``,
``project_42/drawings/site_2024``, ...). The sidebar hierarchy is never stored;
it is rebuilt on demand from the set of keys sharing a base prefix.

Segment naming convention: a segment is ``<name>_<token>`` where the final
``_``-separated token disambiguates folders with equal names. The display name
drops only that last token, so ``site_photos_17`` displays as ``site_photos``.
A segment without ``_`` is shown as-is.
"""

from collections.abc import Iterable

from docspace.components.workspace.models import GALLERY_KEY, TRASH_KEY, FolderTreeNode

PSEUDO_LOCATION_KEYS = frozenset({TRASH_KEY, GALLERY_KEY})


def display_name(segment: str) -> str:
    """Display name of a key segment: everything before the final ``_`` token."""
    parts = segment.split("_")
    if len(parts) > 1:
        return "_".join(parts[:-1])
    return segment


def build_folder_tree(base_path: str, location_keys: Iterable[str]) -> list[FolderTreeNode]:
    """Build the folder forest below ``base_path``.

    Args:
        base_path: Location key prefix, e.g. ``office`` or ``project_42``
        location_keys: Every cached location key

    Returns:
        Root nodes, sorted case-insensitively by name at every level. A key
        equal to ``base_path`` contributes no node; keys outside the prefix
        are ignored.
    """
    base_path = base_path.strip("/")
    roots: list[FolderTreeNode] = []
    nodes: dict[str, FolderTreeNode] = {}

    for key in location_keys:
        if key in PSEUDO_LOCATION_KEYS:
            continue
        if key == base_path:
            continue
        if not key.startswith(base_path + "/"):
            continue

        segments = [s for s in key[len(base_path) + 1:].split("/") if s]
        current_path = base_path
        parent: FolderTreeNode | None = None

        for level, segment in enumerate(segments, start=1):
            current_path = f"{current_path}/{segment}"
            node = nodes.get(current_path)
            if node is None:
                node = FolderTreeNode(
                    id=current_path,
                    name=display_name(segment),
                    path=current_path,
                    level=level,
                )
                nodes[current_path] = node
                if parent is None:
                    roots.append(node)
                else:
                    parent.children.append(node)
            parent = node

    return _sort_tree(roots)


def _sort_tree(nodes: list[FolderTreeNode]) -> list[FolderTreeNode]:
    ordered = sorted(nodes, key=lambda n: (n.name.casefold(), n.path))
    for node in ordered:
        node.children = _sort_tree(node.children)
    return ordered


def iter_tree(nodes: list[FolderTreeNode]) -> Iterable[FolderTreeNode]:
    """Depth-first walk over a forest."""
    for node in nodes:
        yield node
        yield from iter_tree(node.children)
