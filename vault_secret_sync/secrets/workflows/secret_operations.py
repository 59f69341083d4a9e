"""Workflows for checking, exporting and importing secret trees."""
import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple, Union

from ..domains.config_loader import ConfigError, ImportParams, SourceConfig
from ..domains.gcp_client import GCPSecretStore
from ..domains.fingerprint import VersionFingerprint, compute_fingerprint, fingerprints_equal
from ..domains.key_map import resolve_key_map
from ..domains.local_files import list_relative_paths, read_secret_file, write_secret_file
from ..domains.models import SecretMap, join_path
from ..domains.store import SecretStore
from ..domains.vault_client import VaultSecretStore
from ..domains import transformer
from .destination_merger import merge_with_existing
from .tree_fetcher import fetch_and_merge

logger = logging.getLogger(__name__)


def build_store(source: SourceConfig) -> SecretStore:
    """
    Create and authenticate the store client for a source.

    Raises:
        ConfigError: If the backend is unknown
        StoreAccessError: If authentication fails
    """
    if source.backend == "vault":
        store = VaultSecretStore(source)
    elif source.backend == "gcp":
        store = GCPSecretStore(source)
    else:
        raise ConfigError(f"Unsupported backend: {source.backend}")

    store.authenticate()
    return store


def current_version(store: SecretStore, source: SourceConfig) -> VersionFingerprint:
    """Fingerprint of everything under source.paths right now."""
    tree = fetch_and_merge(store, source.paths)
    fingerprint = compute_fingerprint(tree, source.url)
    logger.info(f"Computed version {fingerprint.secret_sha1} over {len(tree)} secrets")
    return fingerprint


def check_version(
    store: SecretStore,
    source: SourceConfig,
    previous: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """
    Report the version of the tracked secrets.

    Args:
        store: Authenticated secret store
        source: Parsed source configuration
        previous: Version mapping reported by the last check, if any

    Returns:
        {} when nothing changed since previous, else the new version mapping
    """
    fingerprint = current_version(store, source)
    if fingerprints_equal(VersionFingerprint.from_version(previous), fingerprint):
        logger.info("Secrets unchanged since last check")
        return {}
    return fingerprint.to_version()


def export_secrets(store: SecretStore, source: SourceConfig, output_dir: Union[str, Path]) -> List[Path]:
    """
    Write every tracked secret as a JSON file under output_dir.

    Each file mirrors the secret path, e.g. secret/handshake ->
    <output_dir>/secret/handshake.

    Returns:
        Written file paths in path order
    """
    tree = fetch_and_merge(store, source.paths)
    written = [write_secret_file(output_dir, record) for record in tree]
    logger.info(f"Exported {len(written)} secrets to {output_dir}")
    return written


def _expand_secret_map(root: Path, secret_map: SecretMap) -> List[Tuple[str, str]]:
    """(source file, destination path) pairs covered by a secret map."""
    source_path = root / secret_map.source.lstrip("/")
    if source_path.is_dir():
        return [
            (join_path(secret_map.source, relative), join_path(secret_map.destination, relative))
            for relative in list_relative_paths(source_path)
        ]
    return [(secret_map.source, secret_map.destination)]


def import_secrets(
    store: SecretStore,
    source: SourceConfig,
    params: ImportParams,
    input_dir: Union[str, Path],
) -> Dict[str, str]:
    """
    Copy secrets from JSON files under input_dir/params.path into the store.

    Each secret map is processed fully before the next one. All files of a
    map are read, validated and transformed first, then each is merged with
    its existing destination and written. The first failure aborts the
    remaining maps; maps already written stay written.

    Returns:
        Version mapping of source.paths after the import

    Raises:
        ConfigError: If a secret map has no source
        KeySpecError: If a key list can't be resolved
        TransformValidationError: If a key map doesn't fit its secret
        StoreAccessError: If a write (or the final fetch) fails
    """
    root = Path(input_dir) / params.path.lstrip("/")

    secret_maps = params.secret_maps
    if not secret_maps:
        secret_maps = [SecretMap(source=relative) for relative in list_relative_paths(root)]

    imported = 0
    for secret_map in secret_maps:
        if not secret_map.source:
            raise ConfigError("Missing source field in secret map")

        key_map = resolve_key_map(secret_map.keys)

        # Every file of a directory entry is validated before any is written.
        transformed = []
        for source_file, dest in _expand_secret_map(root, secret_map):
            secret = read_secret_file(root, source_file)
            transformer.validate(secret, key_map, name=source_file)
            transformed.append((source_file, dest, transformer.apply(secret, key_map)))

        for source_file, dest, record in transformed:
            dest_path = join_path(params.prefix, dest)
            to_write = merge_with_existing(store, dest_path, record)
            store.write(dest_path, to_write)
            logger.debug(f"Copied {source_file} to {dest_path}")
            imported += 1

    logger.info(f"Imported {imported} secrets from {root}")
    return current_version(store, source).to_version()
