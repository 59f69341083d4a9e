"""Fold existing destination keys into a secret before it is written."""
import logging

from ..domains.models import SecretRecord
from ..domains.store import SecretStore, StoreAccessError

logger = logging.getLogger(__name__)


def merge_with_existing(store: SecretStore, dest_path: str, new_record: SecretRecord) -> SecretRecord:
    """
    Add keys that already exist at dest_path but are absent from new_record.

    Keys present in both keep new_record's value. If nothing can be read at
    dest_path (usually because it doesn't exist yet) new_record's fields are
    used as they are.

    Returns:
        New record at dest_path; new_record is not modified
    """
    merged = new_record.copy(path=dest_path)
    try:
        existing = store.read(dest_path)
    except StoreAccessError as e:
        logger.debug(f"No existing secret at {dest_path}: {e}")
        return merged

    for name in existing.field_names():
        if not merged.has(name):
            merged.set(name, existing.get(name))
    return merged
