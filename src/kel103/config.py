"""YAML connection settings for the KEL103 command-line tool.

Default search paths for the config file:
    1. KEL103_CONFIG_PATH environment variable (colon-separated directories)
    2. ~/.config/kel103/      (user)
    3. /etc/kel103/           (system-wide)

Each directory is checked for ``config.yaml`` then ``config.yml``.

Example YAML:

    kel103:
      port: "/dev/ttyACM0"
      baud_rate: 115200
      timeout: 1.0
      model: "KEL103"
      backend: "serial"
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from kel103.load import DEFAULT_MODEL
from kel103.transport import DEFAULT_BAUD_RATE, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = ("config.yaml", "config.yml")
BACKENDS = ("serial", "visa")


def _get_search_paths() -> list[Path]:
    """Get search paths for the config file, in priority order."""
    paths: list[Path] = []

    env_path = os.environ.get("KEL103_CONFIG_PATH")
    if env_path:
        for p in env_path.split(":"):
            if p:
                paths.append(Path(p))

    paths.append(Path.home() / ".config" / "kel103")
    paths.append(Path("/etc/kel103"))
    return paths


@dataclass(frozen=True)
class LoadConfig:
    """Connection settings for one electronic load.

    Attributes:
        port: Serial device or VISA resource string. Empty when unset.
        baud_rate: Serial bit rate (> 0).
        timeout: Read timeout in seconds (> 0).
        model: Model token required in the identification string.
        backend: ``"serial"`` (pyserial) or ``"visa"`` (PyVISA).
        source_path: Path of the YAML file this was loaded from, if any.
    """

    port: str = ""
    baud_rate: int = DEFAULT_BAUD_RATE
    timeout: float = DEFAULT_TIMEOUT
    model: str = DEFAULT_MODEL
    backend: str = "serial"
    source_path: Path | None = None

    def __post_init__(self) -> None:
        if self.baud_rate <= 0:
            raise ValueError("baud_rate must be > 0")
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if not self.model:
            raise ValueError("model must be non-empty")
        if self.backend not in BACKENDS:
            raise ValueError(f"backend must be one of {BACKENDS}, got {self.backend!r}")

    @classmethod
    def from_yaml(cls, path: str | Path) -> LoadConfig:
        """Load settings from a YAML file.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            yaml.YAMLError: If YAML parsing fails.
            ValueError: If a setting is invalid.
        """
        path = Path(path)
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls._parse(data, source_path=path)

    @classmethod
    def _parse(cls, data: dict[str, Any], source_path: Path | None) -> LoadConfig:
        if not isinstance(data, dict):
            raise ValueError("config file must contain a mapping")
        section = data.get("kel103", {}) or {}
        if not isinstance(section, dict):
            raise ValueError("'kel103' section must be a mapping")
        return cls(
            port=str(section.get("port", "")),
            baud_rate=int(section.get("baud_rate", DEFAULT_BAUD_RATE)),
            timeout=float(section.get("timeout", DEFAULT_TIMEOUT)),
            model=str(section.get("model", DEFAULT_MODEL)),
            backend=str(section.get("backend", "serial")),
            source_path=source_path,
        )


def find_config(search_paths: list[str | Path] | None = None) -> Path | None:
    """Find the first config file on the search path.

    Args:
        search_paths: Directories to search. If None, uses default paths.

    Returns:
        Path to the config file, or None if not found.
    """
    if search_paths is None:
        search_paths = list(_get_search_paths())

    for search_dir in search_paths:
        search_dir = Path(search_dir)
        if not search_dir.is_dir():
            continue
        for name in CONFIG_FILENAMES:
            candidate = search_dir / name
            if candidate.is_file():
                return candidate
    return None


def load_config(
    path: str | Path | None = None,
    search_paths: list[str | Path] | None = None,
) -> LoadConfig | None:
    """Load connection settings.

    Args:
        path: Explicit config file (overrides search). Must exist.
        search_paths: Directories to search if path not given.

    Returns:
        Loaded settings, or None when no file was found on the search path.
    """
    if path is not None:
        return LoadConfig.from_yaml(path)

    found = find_config(search_paths)
    if found is None:
        return None
    logger.debug("Using config file %s", found)
    return LoadConfig.from_yaml(found)
