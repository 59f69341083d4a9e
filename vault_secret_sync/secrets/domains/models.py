"""Domain models for secret synchronization."""
import json
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

FieldValue = Union[str, bytes]


class SerializationError(Exception):
    """Secret payload could not be decoded or encoded."""
    pass


def normalize_path(path: str) -> str:
    """
    Normalize a logical secret path.

    Leading/trailing slashes and empty segments are dropped, so
    '/secret//some/place/' becomes 'secret/some/place'.
    """
    return "/".join(segment for segment in path.split("/") if segment)


def join_path(*parts: str) -> str:
    """Join logical path parts, ignoring empty ones."""
    return normalize_path("/".join(part for part in parts if part))


class SecretRecord:
    """A single secret: a path plus its field/value pairs."""

    def __init__(self, path: str, fields: Optional[Dict[str, FieldValue]] = None):
        self.path = normalize_path(path)
        self._fields: Dict[str, FieldValue] = dict(fields or {})

    def has(self, name: str) -> bool:
        return name in self._fields

    def get(self, name: str) -> Optional[FieldValue]:
        return self._fields.get(name)

    def set(self, name: str, value: FieldValue) -> None:
        self._fields[name] = value

    def delete(self, name: str) -> None:
        self._fields.pop(name, None)

    def field_names(self) -> List[str]:
        """Field names in sorted order."""
        return sorted(self._fields)

    @property
    def fields(self) -> Dict[str, FieldValue]:
        """Read-only view of the fields (a copy)."""
        return dict(self._fields)

    def copy(self, path: Optional[str] = None) -> "SecretRecord":
        return SecretRecord(self.path if path is None else path, self._fields)

    def to_dict(self) -> Dict[str, FieldValue]:
        """Fields keyed in sorted order."""
        return {name: self._fields[name] for name in self.field_names()}

    def to_json(self) -> str:
        """Compact JSON object of the fields, keys sorted."""
        payload = {}
        for name in self.field_names():
            value = self._fields[name]
            if isinstance(value, bytes):
                try:
                    value = value.decode("utf-8")
                except UnicodeDecodeError as e:
                    raise SerializationError(
                        f"Field '{name}' of secret '{self.path}' is not valid UTF-8: {e}"
                    ) from e
            payload[name] = value
        return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_json(cls, path: str, raw: Union[str, bytes]) -> "SecretRecord":
        """
        Decode a secret from a JSON object payload.

        Raises:
            SerializationError: If the payload is not a JSON object of string values
        """
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise SerializationError(f"Malformed JSON for secret '{path}': {e}") from e

        if not isinstance(data, dict):
            raise SerializationError(
                f"Secret '{path}' must be a JSON object, got {type(data).__name__}"
            )
        for name, value in data.items():
            if not isinstance(value, str):
                raise SerializationError(
                    f"Value of field '{name}' in secret '{path}' must be a string"
                )
        return cls(path, data)

    def __eq__(self, other) -> bool:
        if not isinstance(other, SecretRecord):
            return NotImplemented
        return self.path == other.path and self._fields == other._fields

    def __repr__(self) -> str:
        # Values are secrets; only names are shown.
        return f"SecretRecord(path={self.path!r}, fields={self.field_names()!r})"


@dataclass(frozen=True)
class IdentityKey:
    """Key spec that copies a field under its own name."""
    name: str


@dataclass(frozen=True)
class RenameKey:
    """Key spec that copies a field under a new name."""
    source: str
    dest: str


KeySpec = Union[IdentityKey, RenameKey]


@dataclass
class SecretMap:
    """Transfer directive: which fields of which source secret go where."""
    source: str
    dest: str = ""
    keys: List[KeySpec] = field(default_factory=list)

    @property
    def destination(self) -> str:
        """Destination path, falling back to the source path."""
        return self.dest or self.source
