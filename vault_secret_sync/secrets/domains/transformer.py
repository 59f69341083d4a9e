"""Validate and apply key maps to secrets."""
import logging
from collections import Counter
from typing import Dict, List, Optional

from .models import SecretRecord

logger = logging.getLogger(__name__)


class TransformValidationError(Exception):
    """One or more key map defects for a single secret."""

    def __init__(
        self,
        secret_name: str,
        duplicate_destinations: List[str],
        missing_keys: List[str],
        circular_keys: List[str],
    ):
        self.secret_name = secret_name
        self.duplicate_destinations = duplicate_destinations
        self.missing_keys = missing_keys
        self.circular_keys = circular_keys

        messages = []
        if duplicate_destinations:
            messages.append(
                f"Reused destination keys when copying secret `{secret_name}': "
                f"{','.join(duplicate_destinations)}"
            )
        if missing_keys:
            messages.append(
                f"Specified keys not found in input for secret `{secret_name}': "
                f"{','.join(missing_keys)}"
            )
        if circular_keys:
            messages.append(
                f"Circular key renames when copying secret `{secret_name}': "
                f"{','.join(circular_keys)}"
            )
        super().__init__("\n".join(messages))


def _duplicate_destinations(key_map: Dict[str, str]) -> List[str]:
    counts = Counter(key_map.values())
    return sorted(dest for dest, count in counts.items() if count > 1)


def _missing_keys(secret: SecretRecord, key_map: Dict[str, str]) -> List[str]:
    return sorted(source for source in key_map if not secret.has(source))


def _circular_keys(key_map: Dict[str, str]) -> List[str]:
    # Only entries that actually rename take part.
    renames = {source: dest for source, dest in key_map.items() if source != dest}
    return sorted({dest for dest in renames.values() if dest in renames})


def validate(secret: SecretRecord, key_map: Dict[str, str], name: Optional[str] = None) -> None:
    """
    Check a key map against a secret.

    All checks run and every violation is reported together.

    Args:
        secret: Secret the key map will be applied to
        key_map: Source key -> destination key mapping
        name: Name used in error messages (defaults to the secret path)

    Raises:
        TransformValidationError: If any destination key is reused, any source
            key is missing from the secret, or a renamed key feeds another rename
    """
    if not key_map:
        return

    duplicates = _duplicate_destinations(key_map)
    missing = _missing_keys(secret, key_map)
    circular = _circular_keys(key_map)

    if duplicates or missing or circular:
        raise TransformValidationError(name or secret.path, duplicates, missing, circular)


def apply(secret: SecretRecord, key_map: Dict[str, str]) -> SecretRecord:
    """
    Filter and rename the fields of a secret.

    Call validate() first. An empty key map returns the secret unchanged;
    otherwise only mapped fields are kept, under their destination names.
    """
    if not key_map:
        return secret

    result = SecretRecord(secret.path)
    for field_name in secret.field_names():
        if field_name in key_map:
            result.set(key_map[field_name], secret.get(field_name))
    logger.debug(f"Kept {len(result.field_names())} of {len(secret.field_names())} keys from {secret.path}")
    return result
