"""Read and write secret payloads as JSON files under a root directory."""
import os
import logging
from pathlib import Path
from typing import List, Union

from .models import SecretRecord
from .tree import walk_leaves

logger = logging.getLogger(__name__)

DIR_MODE = 0o775
FILE_MODE = 0o644


def _scan_directory(directory: str):
    with os.scandir(directory) as entries:
        for entry in entries:
            yield entry.name, entry.is_dir(follow_symlinks=False)


def list_relative_paths(root: Union[str, Path]) -> List[str]:
    """
    List every file below root.

    Returns:
        Sorted '/'-separated paths relative to root

    Raises:
        FileNotFoundError: If root doesn't exist
    """
    root = str(root)
    if not os.path.isdir(root):
        raise FileNotFoundError(f"Input directory not found: {root}")
    return walk_leaves(root, _scan_directory, separator=os.sep)


def read_secret_file(root: Union[str, Path], relative_path: str) -> SecretRecord:
    """
    Decode the secret stored at root/relative_path.

    The record path is relative_path, so it mirrors the file tree.

    Raises:
        FileNotFoundError: If the file doesn't exist
        SerializationError: If the file is not a JSON object of strings
    """
    secret_file = Path(root) / relative_path.lstrip("/")
    if not secret_file.is_file():
        raise FileNotFoundError(f"Error reading source file '{secret_file}': no such file")

    with open(secret_file, "rb") as f:
        raw = f.read()
    logger.debug(f"Read secret file {secret_file}")
    return SecretRecord.from_json(relative_path, raw)


def write_secret_file(root: Union[str, Path], record: SecretRecord) -> Path:
    """
    Write a secret as compact JSON to root/<record.path>.

    Returns:
        Path of the written file
    """
    target = Path(root) / record.path
    os.makedirs(target.parent, mode=DIR_MODE, exist_ok=True)
    payload = record.to_json().encode("utf-8")
    with open(target, "wb") as f:
        f.write(payload)
    os.chmod(target, FILE_MODE)
    logger.debug(f"Wrote secret {record.path} to {target}")
    return target
