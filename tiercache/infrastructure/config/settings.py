"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a YAML
configuration file (e.g., ~/.tiercache/config.yaml), and derives the
effective ``CacheSettings`` used to build the cache tiers.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".tiercache"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "TIERCACHE_"

DEFAULT_LOCAL_MAX_ENTRIES = 1024
DEFAULT_AVERAGE_ENTRY_BYTES = 1024
DEFAULT_MAX_WORKERS = 4
DEFAULT_DISK_DIRECTORY = DEFAULT_CONFIG_DIR / "disk"
DEFAULT_DISK_TIMEOUT_SECONDS = 1.0

# Bounds on the share of memory a local tier may be sized for.
MIN_MEMORY_FRACTION = 0.20
MAX_MEMORY_FRACTION = 0.50

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def _flatten(mapping: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Turns nested YAML mappings into dotted keys ('cache.local.max_entries')."""
    flat: Dict[str, Any] = {}
    for key, value in mapping.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, prefix=f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None, reload: bool = False) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values passed to ``get_config``

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
        reload: Discard previously loaded values and load again.
    """
    global _config, _loaded
    if _loaded and not reload:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. YAML file (lowest priority)
    config_file = Path(config_file)
    if config_file.is_file():
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. .env file; override=False keeps real environment variables on top
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("Skipping .env file loading (no file found).")

    # 3. Environment variables are read by get_config on every lookup
    _loaded = True
    logger.info("Configuration loading process completed.")


def env_var_name(key: str) -> str:
    """Environment variable consulted for a dotted key."""
    return ENV_PREFIX + key.upper().replace(".", "_")


_TRUE_STRINGS = frozenset({"true", "yes", "on"})
_FALSE_STRINGS = frozenset({"false", "no", "off"})


def _coerce(value: str) -> Any:
    if value.lower() in _TRUE_STRINGS:
        return True
    if value.lower() in _FALSE_STRINGS:
        return False
    try:
        if "." in value:
            return float(value)
        return int(value)
    except (ValueError, TypeError):
        return value


def _as_bool(value: Any) -> bool:
    """Reads a flag that may still be a string (set_config, quoted YAML)."""
    if isinstance(value, str):
        coerced = _coerce(value.strip())
        if not isinstance(coerced, bool):
            raise ValueError(f"Not a boolean setting: {value!r}")
        return coerced
    return bool(value)


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable (TIERCACHE_ prefix, dots as underscores)
    3. YAML config
    4. Default value

    Args:
        key: The configuration key, e.g. 'cache.local.max_entries'
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = env_var_name(key)
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _config:
        return _config[key]

    return default


def set_config(key: str, value: Any) -> None:
    """Sets a configuration value by key for the rest of the process.

    Args:
        key: Configuration key (e.g., 'logging.level')
        value: Value to set
    """
    logger.debug(f"Setting config: {key} = {value}")
    _config[key] = value


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")


# --- Cache Sizing ---

def total_memory_bytes() -> Optional[int]:
    """Physical memory of the host, or None where sysconf cannot tell."""
    try:
        return os.sysconf("SC_PAGE_SIZE") * os.sysconf("SC_PHYS_PAGES")
    except (AttributeError, ValueError, OSError):
        return None


def entries_for_memory_fraction(
    fraction: float,
    average_entry_bytes: int = DEFAULT_AVERAGE_ENTRY_BYTES,
    total_memory: Optional[int] = None,
) -> int:
    """Converts a share of host memory into a local-tier entry count.

    The fraction is clamped to [0.20, 0.50]. The result is only a sizing
    heuristic: the cache itself compares entry counts, never bytes.

    Args:
        fraction: Desired share of total memory.
        average_entry_bytes: Estimated size of one key/value pair.
        total_memory: Memory to size against; detected when None.

    Returns:
        The entry count, at least 1.

    Raises:
        ValueError: If ``average_entry_bytes`` is not positive or the
            host memory cannot be determined.
    """
    if average_entry_bytes <= 0:
        raise ValueError(f"average_entry_bytes must be positive, got {average_entry_bytes}")
    if total_memory is None:
        total_memory = total_memory_bytes()
        if total_memory is None:
            raise ValueError("Total memory could not be determined on this platform")
    clamped = min(max(fraction, MIN_MEMORY_FRACTION), MAX_MEMORY_FRACTION)
    if clamped != fraction:
        logger.debug(f"Memory fraction {fraction} clamped to {clamped}")
    return max(1, int(clamped * total_memory) // average_entry_bytes)


@dataclass(frozen=True)
class CacheSettings:
    """Effective settings for building the cache tiers."""
    local_max_entries: int = DEFAULT_LOCAL_MAX_ENTRIES
    promote_on_read: bool = False
    write_back: bool = False
    max_workers: int = DEFAULT_MAX_WORKERS
    disk_directory: Path = DEFAULT_DISK_DIRECTORY
    disk_timeout: float = DEFAULT_DISK_TIMEOUT_SECONDS
    disk_ttl_seconds: Optional[float] = None


def _local_max_entries() -> int:
    configured = get_config("cache.local.max_entries")
    if configured is not None:
        return int(configured)

    fraction = get_config("cache.local.memory_fraction")
    if fraction is None:
        return DEFAULT_LOCAL_MAX_ENTRIES

    average = int(get_config("cache.local.average_entry_bytes", DEFAULT_AVERAGE_ENTRY_BYTES))
    try:
        return entries_for_memory_fraction(float(fraction), average)
    except ValueError as e:
        logger.warning(f"Cannot size local tier from memory fraction ({e}); using {DEFAULT_LOCAL_MAX_ENTRIES} entries.")
        return DEFAULT_LOCAL_MAX_ENTRIES


def load_cache_settings() -> CacheSettings:
    """Reads ``CacheSettings`` from the loaded configuration."""
    ttl = get_config("cache.disk.ttl_seconds")
    settings = CacheSettings(
        local_max_entries=_local_max_entries(),
        promote_on_read=_as_bool(get_config("cache.local.promote_on_read", False)),
        write_back=_as_bool(get_config("cache.write_back", False)),
        max_workers=int(get_config("cache.executor.max_workers", DEFAULT_MAX_WORKERS)),
        disk_directory=Path(get_config("cache.disk.directory", DEFAULT_DISK_DIRECTORY)).expanduser(),
        disk_timeout=float(get_config("cache.disk.timeout", DEFAULT_DISK_TIMEOUT_SECONDS)),
        disk_ttl_seconds=float(ttl) if ttl is not None else None,
    )
    logger.debug(f"Effective cache settings: {settings}")
    return settings
