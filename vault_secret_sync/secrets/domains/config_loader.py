"""Configuration loader for vault-secret-sync."""
import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .key_map import decode_key_spec
from .models import SecretMap

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "VAULT_SECRET_SYNC_CONFIG"
SUPPORTED_BACKENDS = ("vault", "gcp")


class ConfigError(Exception):
    """Configuration error exception."""
    pass


@dataclass
class SourceConfig:
    """Where the secrets live and which subtrees are tracked."""
    url: str
    paths: List[str]
    token: str = ""
    role_id: str = ""
    secret_id: str = ""
    ca_cert: str = ""
    skip_verify: bool = False
    namespace: str = ""
    kv_version: int = 2
    backend: str = "vault"
    project_id: str = ""
    credentials_path: str = ""


@dataclass
class ImportParams:
    """What to copy from the input directory into the store."""
    path: str
    prefix: str = ""
    secret_maps: List[SecretMap] = field(default_factory=list)


def _require(mapping: Dict[str, Any], name: str) -> Any:
    value = mapping.get(name)
    if value is None or value == "" or value == []:
        raise ConfigError(f"Missing {name} field")
    return value


def _parse_flag(value: Any, name: str) -> bool:
    """Accept YAML booleans and their common string spellings."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1"):
            return True
        if lowered in ("false", "no", "0", ""):
            return False
    raise ConfigError(f"Invalid {name}: {value!r} (expected true or false)")


def parse_source(source: Optional[Dict[str, Any]]) -> SourceConfig:
    """
    Validate an already-parsed source mapping.

    Required: url, paths, and either token or role_id + secret_id
    (vault backend) or project_id (gcp backend).

    Raises:
        ConfigError: If a required field is missing or malformed
    """
    if not source:
        raise ConfigError("Missing source configuration")

    backend = source.get("backend") or "vault"
    if backend not in SUPPORTED_BACKENDS:
        raise ConfigError(
            f"Unsupported backend: {backend}\n"
            f"Supported backends: {', '.join(SUPPORTED_BACKENDS)}"
        )

    url = _require(source, "url")
    paths = _require(source, "paths")
    if isinstance(paths, str):
        paths = [paths]
    if not isinstance(paths, list) or not all(isinstance(p, str) and p for p in paths):
        raise ConfigError("The paths field must be a list of non-empty strings")

    config = SourceConfig(
        url=str(url),
        paths=list(paths),
        token=source.get("token") or "",
        role_id=source.get("role_id") or "",
        secret_id=source.get("secret_id") or "",
        ca_cert=source.get("ca_cert") or "",
        skip_verify=_parse_flag(source.get("skip_verify", False), "skip_verify"),
        namespace=source.get("namespace") or "",
        backend=backend,
        project_id=source.get("project_id") or "",
        credentials_path=source.get("credentials_path") or "",
    )

    try:
        config.kv_version = int(source.get("kv_version", 2))
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid kv_version: {source.get('kv_version')}")
    if config.kv_version not in (1, 2):
        raise ConfigError(f"Unsupported kv_version: {config.kv_version}")

    if backend == "gcp":
        _require(source, "project_id")
    elif config.role_id or config.secret_id:
        _require(source, "role_id")
        _require(source, "secret_id")
    else:
        _require(source, "token")

    return config


def parse_secret_map(entry: Any) -> SecretMap:
    """
    Decode one secret_maps entry.

    Raises:
        ConfigError: If the entry is not a mapping or has no source
        KeySpecError: If the keys list contains an unsupported entry
    """
    if not isinstance(entry, dict):
        raise ConfigError(f"Each secret_maps entry must be a mapping, got {type(entry).__name__}")

    source = _require(entry, "source")
    keys = entry.get("keys") or []
    if not isinstance(keys, list):
        raise ConfigError(f"The keys field of secret map '{source}' must be a list")

    return SecretMap(
        source=str(source),
        dest=str(entry.get("dest") or ""),
        keys=[decode_key_spec(key) for key in keys],
    )


def parse_import_params(params: Optional[Dict[str, Any]]) -> ImportParams:
    """
    Validate an already-parsed import params mapping.

    Raises:
        ConfigError: If path is missing or secret_maps is malformed
    """
    params = params or {}
    path = _require(params, "path")

    raw_maps = params.get("secret_maps") or []
    if not isinstance(raw_maps, list):
        raise ConfigError("The secret_maps field must be a list")

    return ImportParams(
        path=str(path),
        prefix=str(params.get("prefix") or ""),
        secret_maps=[parse_secret_map(entry) for entry in raw_maps],
    )


def _get_config_path(config_path: Optional[str] = None) -> str:
    """
    Get config file path.

    Priority order:
    1. Explicit argument
    2. VAULT_SECRET_SYNC_CONFIG environment variable
    3. Default location: ~/.config/vault-secret-sync/config.yml

    Returns:
        Absolute path to config file

    Raises:
        FileNotFoundError: If config file doesn't exist in any location
    """
    if config_path:
        return str(Path(config_path))

    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        if Path(env_path).exists():
            logger.info(f"Using config from {CONFIG_ENV_VAR}: {env_path}")
            return env_path
        logger.warning(f"Config path from {CONFIG_ENV_VAR} doesn't exist: {env_path}")

    default_config = Path.home() / ".config" / "vault-secret-sync" / "config.yml"
    if default_config.exists():
        logger.info(f"Using default config location: {default_config}")
        return str(default_config)

    raise FileNotFoundError(
        "Configuration file not found. Please set up your config file using one of these methods:\n\n"
        "1. Use the default location:\n"
        f"   mkdir -p {default_config.parent}\n"
        f"   cp /path/to/your/config.yml {default_config}\n\n"
        "2. Point to an existing config file:\n"
        f"   export {CONFIG_ENV_VAR}=/path/to/your/config.yml\n"
    )


def _apply_env_overrides(source: Dict[str, Any]) -> Dict[str, Any]:
    """VAULT_ADDR, VAULT_TOKEN and VAULT_NAMESPACE override the file."""
    overrides = {
        "url": os.getenv("VAULT_ADDR"),
        "token": os.getenv("VAULT_TOKEN"),
        "namespace": os.getenv("VAULT_NAMESPACE"),
    }
    for name, value in overrides.items():
        if value:
            logger.debug(f"Using {name} from environment")
            source[name] = value
    return source


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load and validate configuration from YAML file.

    Returns:
        Dict with keys:
        - source: SourceConfig
        - params: ImportParams, or None when the file has no params section

    Raises:
        ConfigError: If config file is missing, invalid, or lacks required fields
    """
    # Resolved on every call, never cached at module level
    config_path = _get_config_path(config_path)

    if not os.path.exists(config_path):
        raise ConfigError(
            f"Configuration file not found at: {config_path}\n"
            f"Please create the config file with a source section."
        )

    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML config at {config_path}: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read config file at {config_path}: {e}")

    if not config:
        raise ConfigError(f"Config file at {config_path} is empty")

    if not isinstance(config, dict) or 'source' not in config:
        raise ConfigError(
            f"Missing 'source' section in config at {config_path}\n"
            f"Required format:\n"
            f"source:\n"
            f"  url: https://vault.example.com:8200\n"
            f"  token: <token>\n"
            f"  paths: [/secret/some/place]"
        )

    source = parse_source(_apply_env_overrides(dict(config['source'] or {})))
    params = parse_import_params(config['params']) if config.get('params') else None

    logger.info(f"Configuration loaded successfully from {config_path}")
    logger.debug(f"Using {source.backend} store at {source.url}")

    return {"source": source, "params": params}
