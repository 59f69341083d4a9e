"""HashiCorp Vault KV store client wrapper."""
import json
import logging
from typing import Iterable, List, Tuple

import hvac
from hvac.exceptions import InvalidPath

from .config_loader import SourceConfig
from .models import SecretRecord, join_path, normalize_path
from .store import StoreAccessError
from .tree import walk_leaves

logger = logging.getLogger(__name__)


def split_mount(path: str) -> Tuple[str, str]:
    """
    Split a logical path into KV mount point and path inside the mount.

    'secret/some/place' -> ('secret', 'some/place')
    """
    mount, _, rest = normalize_path(path).partition("/")
    if not mount:
        raise ValueError(f"Secret path '{path}' has no mount point")
    return mount, rest


class VaultSecretStore:
    """Wrapper around an hvac client exposing list/read/write on KV paths."""

    def __init__(self, config: SourceConfig):
        self.config = config
        self.url = config.url
        self._client = None

    @property
    def client(self) -> hvac.Client:
        """Lazy-initialize client."""
        if self._client is None:
            self._client = hvac.Client(
                url=self.config.url,
                token=self.config.token or None,
                namespace=self.config.namespace or None,
                verify=self.config.ca_cert if self.config.ca_cert else not self.config.skip_verify,
            )
        return self._client

    def authenticate(self) -> None:
        """
        Log in once before any list/read/write call.

        AppRole login is used when role_id is configured, otherwise the token.

        Raises:
            StoreAccessError: If login fails or the token is not accepted
        """
        try:
            if self.config.role_id:
                self.client.auth.approle.login(
                    role_id=self.config.role_id,
                    secret_id=self.config.secret_id,
                )
                logger.info(f"Authenticated to {self.url} using AppRole")
            authenticated = self.client.is_authenticated()
        except Exception as e:
            logger.error(f"Vault login failed for {self.url}: {e}")
            raise StoreAccessError("authenticate to", self.url, e) from e

        if not authenticated:
            raise StoreAccessError("authenticate to", self.url, RuntimeError("token was rejected"))

    @property
    def _kv(self):
        if self.config.kv_version == 2:
            return self.client.secrets.kv.v2
        return self.client.secrets.kv.v1

    def _list_keys(self, mount: str, path: str) -> List[str]:
        response = self._kv.list_secrets(path=path, mount_point=mount)
        return response["data"]["keys"]

    def list(self, path: str) -> List[str]:
        """
        Leaf secret paths at or below path.

        A path that cannot be listed is taken to be a secret itself.

        Raises:
            StoreAccessError: If a listing fails for any other reason
        """
        path = normalize_path(path)
        mount, root = split_mount(path)

        try:
            top_keys = self._list_keys(mount, root)
        except InvalidPath as e:
            if not root:
                raise StoreAccessError("list", path, e) from e
            logger.debug(f"{path} has no children, treating it as a secret")
            return [path]
        except Exception as e:
            logger.error(f"Failed to list {path}: {e}")
            raise StoreAccessError("list", path, e) from e

        def list_children(directory: str) -> Iterable[Tuple[str, bool]]:
            keys = top_keys if directory == root else self._list_keys(mount, directory)
            for key in keys:
                yield key.rstrip("/"), key.endswith("/")

        try:
            relative = walk_leaves(root, list_children)
        except Exception as e:
            logger.error(f"Failed to list {path}: {e}")
            raise StoreAccessError("list", path, e) from e

        return [join_path(path, leaf) for leaf in relative]

    def read(self, path: str) -> SecretRecord:
        """
        Read the latest version of a secret.

        Raises:
            StoreAccessError: If the secret doesn't exist or can't be read
        """
        path = normalize_path(path)
        mount, secret_path = split_mount(path)
        try:
            if self.config.kv_version == 2:
                response = self._kv.read_secret_version(
                    path=secret_path,
                    mount_point=mount,
                    raise_on_deleted_version=True,
                )
                data = response["data"]["data"]
            else:
                response = self._kv.read_secret(path=secret_path, mount_point=mount)
                data = response["data"]
        except Exception as e:
            logger.debug(f"Failed to read secret {path}: {e}")
            raise StoreAccessError("read", path, e) from e

        return SecretRecord(path, data)

    def write(self, path: str, record: SecretRecord) -> None:
        """
        Replace the secret at path with the record's fields.

        Raises:
            StoreAccessError: If the write fails
        """
        path = normalize_path(path)
        mount, secret_path = split_mount(path)
        data = json.loads(record.to_json())
        try:
            self._kv.create_or_update_secret(path=secret_path, secret=data, mount_point=mount)
        except Exception as e:
            logger.error(f"Failed to write secret {path}: {e}")
            raise StoreAccessError("write", path, e) from e
        logger.info(f"Stored secret at {path}")
