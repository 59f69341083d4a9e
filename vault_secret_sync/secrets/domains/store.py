"""Secret store interface shared by the Vault and GCP backends."""
from typing import List, Protocol

from .models import SecretRecord


class StoreAccessError(Exception):
    """A list, read, write or login call against the secret store failed."""

    def __init__(self, operation: str, path: str, cause: Exception):
        self.operation = operation
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to {operation} '{path}': {cause}")


class SecretStore(Protocol):
    """Store collaborator the workflows are given."""

    url: str

    def authenticate(self) -> None:
        ...

    def list(self, path: str) -> List[str]:
        """Leaf paths at or below path."""
        ...

    def read(self, path: str) -> SecretRecord:
        ...

    def write(self, path: str, record: SecretRecord) -> None:
        ...
