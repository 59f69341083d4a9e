"""Recursive leaf enumeration shared by the filesystem and store listings."""
from typing import Callable, Iterable, List, Tuple

# list_children(path) -> iterable of (name, is_dir)
ListChildren = Callable[[str], Iterable[Tuple[str, bool]]]


def walk_leaves(root: str, list_children: ListChildren, separator: str = "/") -> List[str]:
    """
    Enumerate every leaf below root.

    Args:
        root: Directory to start from
        list_children: Returns the direct children of a directory as
            (name, is_dir) pairs
        separator: Separator used to build child paths from root

    Returns:
        Sorted leaf paths relative to root, '/'-separated
    """
    leaves: List[str] = []
    pending = [""]
    while pending:
        relative = pending.pop()
        if not relative:
            directory = root
        elif root:
            directory = f"{root}{separator}{relative}"
        else:
            directory = relative
        for name, is_dir in list_children(directory):
            child = f"{relative}/{name}" if relative else name
            if is_dir:
                pending.append(child)
            else:
                leaves.append(child)
    return sorted(leaves)
