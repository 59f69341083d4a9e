"""GCP Secret Manager client wrapper."""
import os
import re
import logging
from typing import List

from google.api_core.exceptions import NotFound
from google.cloud import secretmanager

from .config_loader import SourceConfig
from .models import SecretRecord, normalize_path
from .store import StoreAccessError

logger = logging.getLogger(__name__)

# Secret Manager IDs allow only [a-zA-Z0-9_-]; path segments are joined
# with a double underscore, so segments may not contain one themselves.
SEGMENT_SEPARATOR = "__"
SEGMENT_PATTERN = re.compile(r'^[a-zA-Z0-9-]+(_[a-zA-Z0-9-]+)*$')
MAX_SECRET_ID_LENGTH = 255


def path_to_secret_id(path: str) -> str:
    """
    Encode a logical path as a Secret Manager secret ID.

    'secret/some/place' -> 'secret__some__place'

    Raises:
        ValueError: If a segment can't be represented in a secret ID
    """
    segments = normalize_path(path).split("/")
    for segment in segments:
        if not SEGMENT_PATTERN.match(segment):
            raise ValueError(
                f"Invalid path segment '{segment}' in '{path}'. "
                "Allowed characters: letters, numbers, hyphens (-) and single underscores (_)"
            )
    secret_id = SEGMENT_SEPARATOR.join(segments)
    if len(secret_id) > MAX_SECRET_ID_LENGTH:
        raise ValueError(f"Path '{path}' is too long for a Secret Manager secret ID")
    return secret_id


def secret_id_to_path(secret_id: str) -> str:
    return "/".join(secret_id.split(SEGMENT_SEPARATOR))


class GCPSecretStore:
    """Secret Manager backed store: one secret per path, JSON payload."""

    def __init__(self, config: SourceConfig):
        self.config = config
        self.url = config.url
        self.project_id = config.project_id
        self._client = None

    @property
    def client(self) -> secretmanager.SecretManagerServiceClient:
        """Lazy-initialize client."""
        if self._client is None:
            self._client = secretmanager.SecretManagerServiceClient()
        return self._client

    def authenticate(self) -> None:
        """
        Resolve credentials and create the client.

        Raises:
            StoreAccessError: If no usable credentials are found
        """
        if self.config.credentials_path:
            os.environ['GOOGLE_APPLICATION_CREDENTIALS'] = self.config.credentials_path
            logger.info(f"Set GOOGLE_APPLICATION_CREDENTIALS from config: {self.config.credentials_path}")
        try:
            self.client
        except Exception as e:
            logger.error(f"Failed to create Secret Manager client: {e}")
            raise StoreAccessError("authenticate to", self.url, e) from e
        logger.info(f"Using Secret Manager project {self.project_id}")

    def list(self, path: str) -> List[str]:
        """
        Leaf secret paths at or below path.

        Raises:
            StoreAccessError: If the project's secrets can't be listed
        """
        prefix = path_to_secret_id(path)
        leaves = []
        try:
            for secret in self.client.list_secrets(request={"parent": f"projects/{self.project_id}"}):
                secret_id = secret.name.rsplit("/", 1)[-1]
                if secret_id == prefix or secret_id.startswith(prefix + SEGMENT_SEPARATOR):
                    leaves.append(secret_id_to_path(secret_id))
        except Exception as e:
            logger.error(f"Failed to list secrets under {path}: {e}")
            raise StoreAccessError("list", path, e) from e
        return sorted(leaves)

    def read(self, path: str) -> SecretRecord:
        """
        Read the latest version of a secret.

        Raises:
            StoreAccessError: If the secret doesn't exist or can't be read
            SerializationError: If the payload is not a JSON object of strings
        """
        secret_id = path_to_secret_id(path)
        name = f"projects/{self.project_id}/secrets/{secret_id}/versions/latest"
        try:
            response = self.client.access_secret_version(request={"name": name})
        except Exception as e:
            logger.debug(f"Failed to read secret {path}: {e}")
            raise StoreAccessError("read", path, e) from e
        return SecretRecord.from_json(path, response.payload.data)

    def write(self, path: str, record: SecretRecord) -> None:
        """
        Add a new version holding the record's fields, creating the secret if needed.

        Raises:
            StoreAccessError: If the secret can't be created or written
        """
        secret_id = path_to_secret_id(path)
        parent = f"projects/{self.project_id}"
        request = {
            "parent": f"{parent}/secrets/{secret_id}",
            "payload": {"data": record.to_json().encode("UTF-8")},
        }
        try:
            try:
                self.client.add_secret_version(request=request)
            except NotFound:
                logger.info(f"Creating secret {secret_id} in project {self.project_id}")
                self.client.create_secret(
                    request={
                        "parent": parent,
                        "secret_id": secret_id,
                        "secret": {"replication": {"automatic": {}}},
                    }
                )
                self.client.add_secret_version(request=request)
        except Exception as e:
            logger.error(f"Failed to write secret {path}: {e}")
            raise StoreAccessError("write", path, e) from e
        logger.info(f"Stored secret at {path}")
