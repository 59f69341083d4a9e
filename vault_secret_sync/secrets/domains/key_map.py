"""Resolve secret map key lists into a source -> destination key map."""
import logging
from typing import Any, Dict, Iterable, Optional

from .models import IdentityKey, KeySpec, RenameKey

logger = logging.getLogger(__name__)


class KeySpecError(ValueError):
    """Key list entry has an unsupported shape."""
    pass


class MultiKeyRenameError(KeySpecError):
    """Rename entry contains more than one key/value pair."""
    pass


class InvalidKeySpecError(KeySpecError):
    """Key list entry is neither a field name nor a single-pair rename."""
    pass


def decode_key_spec(raw: Any) -> KeySpec:
    """
    Decode one entry of a user supplied key list.

    Accepted shapes:
        "name"            -> IdentityKey("name")
        {"from": "to"}    -> RenameKey("from", "to")

    Args:
        raw: Entry as parsed from YAML/JSON configuration

    Returns:
        IdentityKey or RenameKey

    Raises:
        MultiKeyRenameError: If a rename mapping has more than one pair
        InvalidKeySpecError: For any other shape
    """
    if isinstance(raw, (IdentityKey, RenameKey)):
        return raw

    if isinstance(raw, str):
        if not raw:
            raise InvalidKeySpecError("Key names in the keys list cannot be empty")
        return IdentityKey(raw)

    if isinstance(raw, dict):
        if len(raw) > 1:
            raise MultiKeyRenameError(
                f"Only one key/value pair can be specified in {raw}"
            )
        if not raw:
            raise InvalidKeySpecError("Empty key/value pair in the keys list")
        ((source, dest),) = raw.items()
        if not isinstance(source, str) or not source:
            raise InvalidKeySpecError(f"Key to rename in {raw} should be a non-empty string")
        if not isinstance(dest, str) or not dest:
            raise InvalidKeySpecError(
                f"Value in key map for key `{source}' should be a non-empty string"
            )
        return RenameKey(source, dest)

    raise InvalidKeySpecError(
        "The secret_map keys field can contain combinations of strings and "
        f"key/value pairs. It cannot contain {type(raw).__name__}"
    )


def resolve_key_map(key_specs: Optional[Iterable[Any]]) -> Dict[str, str]:
    """
    Turn a key list into a mapping of source field -> destination field.

    An empty result means "copy every field unchanged". Field existence is
    not checked here; see transformer.validate().

    Args:
        key_specs: Decoded KeySpec values or their raw literal shapes

    Returns:
        Dict of source key to destination key
    """
    key_map: Dict[str, str] = {}
    for raw in key_specs or ():
        spec = decode_key_spec(raw)
        if isinstance(spec, IdentityKey):
            source, dest = spec.name, spec.name
        else:
            source, dest = spec.source, spec.dest

        if source in key_map:
            logger.debug(f"Key '{source}' listed more than once, using last mapping '{dest}'")
        key_map[source] = dest
    return key_map
