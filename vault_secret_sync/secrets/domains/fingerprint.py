"""Content fingerprint of a merged secret tree, used for change detection."""
import json
import hashlib
import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence

from .models import SecretRecord, SerializationError

logger = logging.getLogger(__name__)

# HTML-safe escapes of the canonical form; json.dumps leaves these characters raw
HTML_SAFE_ESCAPES = str.maketrans({
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
})


@dataclass(frozen=True)
class VersionFingerprint:
    """Digest of a secret tree plus the store it was read from."""
    secret_sha1: str
    url: str

    def to_version(self) -> Dict[str, str]:
        """Flat version mapping reported to the pipeline."""
        return {"secret_sha1": self.secret_sha1, "url": self.url}

    @classmethod
    def from_version(cls, version: Optional[Mapping[str, str]]) -> Optional["VersionFingerprint"]:
        """Parse a version mapping; an empty or absent version gives None."""
        if not version:
            return None
        return cls(
            secret_sha1=str(version.get("secret_sha1", "")),
            url=str(version.get("url", "")),
        )


def canonical_bytes(tree: Sequence[SecretRecord]) -> bytes:
    """
    Serialize a tree as {path: {field: value}} JSON.

    Keys are sorted at every level and separators are compact, so the output
    depends only on the set of (path, fields) pairs. Non-ASCII text stays
    UTF-8, except that <, >, &, U+2028 and U+2029 are written as \\u escapes.

    Raises:
        SerializationError: If a field value can't be represented as text
    """
    export = {}
    for record in tree:
        # First record wins; the merge step rejects duplicate paths.
        if record.path not in export:
            export[record.path] = json.loads(record.to_json())
    try:
        raw = json.dumps(export, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Failed to serialize secret tree: {e}") from e
    return raw.translate(HTML_SAFE_ESCAPES).encode("utf-8")


def compute_fingerprint(tree: Sequence[SecretRecord], origin_url: str) -> VersionFingerprint:
    """
    Hash a merged secret tree.

    Args:
        tree: Records as returned by fetch_and_merge()
        origin_url: URL of the store the tree was read from

    Returns:
        VersionFingerprint with the hex SHA-1 of the canonical serialization
    """
    digest = hashlib.sha1(canonical_bytes(tree)).hexdigest()
    logger.debug(f"Computed fingerprint {digest} over {len(tree)} secrets from {origin_url}")
    return VersionFingerprint(secret_sha1=digest, url=origin_url)


def fingerprints_equal(a: Optional[VersionFingerprint], b: Optional[VersionFingerprint]) -> bool:
    if a is None or b is None:
        return a is b
    return a.secret_sha1 == b.secret_sha1 and a.url == b.url
