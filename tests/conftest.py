"""Shared fixtures: an in-memory secret store and seeded input trees."""
import json

import pytest

from vault_secret_sync.secrets.domains.config_loader import SourceConfig
from vault_secret_sync.secrets.domains.models import SecretRecord, normalize_path
from vault_secret_sync.secrets.domains.store import StoreAccessError

SECRET_VALUES = {"ping": "pong", "this": "that", "ying": "yang"}


class InMemorySecretStore:
    """Dict-backed SecretStore test double."""

    def __init__(self, url="http://127.0.0.1:8201", secrets=None):
        self.url = url
        self.secrets = {}
        self.writes = []
        self.authenticated = False
        self.fail_writes_at = None
        for path, fields in (secrets or {}).items():
            self.secrets[normalize_path(path)] = dict(fields)

    def authenticate(self):
        self.authenticated = True

    def list(self, path):
        path = normalize_path(path)
        leaves = [
            p for p in self.secrets
            if p == path or p.startswith(path + "/")
        ]
        if not leaves:
            raise StoreAccessError("list", path, KeyError(path))
        # Deliberately unsorted to catch order-dependent callers
        return list(reversed(sorted(leaves)))

    def read(self, path):
        path = normalize_path(path)
        if path not in self.secrets:
            raise StoreAccessError("read", path, KeyError(path))
        return SecretRecord(path, self.secrets[path])

    def write(self, path, record):
        path = normalize_path(path)
        if self.fail_writes_at == path:
            raise StoreAccessError("write", path, RuntimeError("permission denied"))
        self.secrets[path] = record.fields
        self.writes.append(path)


@pytest.fixture
def secret_values():
    """Fields of every seeded input file."""
    return dict(SECRET_VALUES)


@pytest.fixture
def memory_store():
    """Factory building InMemorySecretStore instances."""
    return InMemorySecretStore


@pytest.fixture
def store(memory_store):
    return memory_store(secrets={
        "secret/handshake": {"knock": "knock"},
    })


@pytest.fixture
def source_config():
    return SourceConfig(
        url="http://127.0.0.1:8201",
        token="test-token",
        paths=["/secret/handshake"],
    )


@pytest.fixture
def input_dir(tmp_path):
    """Input directory with secrets at some/place and other/place."""
    root = tmp_path / "in" / "resource_root_path"
    for relative in ("some/place", "other/place"):
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(SECRET_VALUES))
    return tmp_path / "in"
