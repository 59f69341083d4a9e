"""Fetch secret subtrees from the store and merge them into one sorted tree."""
import logging
from collections import Counter
from typing import Iterable, List

from ..domains.models import SecretRecord
from ..domains.store import SecretStore

logger = logging.getLogger(__name__)


class DuplicateSecretPathError(ValueError):
    """The same secret path was collected more than once."""

    def __init__(self, paths: List[str]):
        self.paths = paths
        super().__init__(f"Secret paths collected more than once: {','.join(paths)}")


def fetch_tree(store: SecretStore, root_path: str) -> List[SecretRecord]:
    """Read every secret at or below root_path, in listing order."""
    return [store.read(leaf) for leaf in store.list(root_path)]


def fetch_and_merge(store: SecretStore, root_paths: Iterable[str]) -> List[SecretRecord]:
    """
    Collect every secret under each root path into one tree sorted by path.

    Any store failure aborts the whole fetch; there is no partial result.

    Args:
        store: Authenticated secret store
        root_paths: Roots to enumerate, e.g. ['/secret/handshake']

    Returns:
        Records sorted by path

    Raises:
        StoreAccessError: If a root can't be listed or a leaf can't be read
        DuplicateSecretPathError: If roots overlap and a path repeats
    """
    merged: List[SecretRecord] = []
    for root_path in root_paths:
        records = fetch_tree(store, root_path)
        logger.debug(f"Fetched {len(records)} secrets under {root_path}")
        merged.extend(records)

    duplicates = sorted(path for path, count in Counter(r.path for r in merged).items() if count > 1)
    if duplicates:
        raise DuplicateSecretPathError(duplicates)

    merged.sort(key=lambda record: record.path)
    return merged
