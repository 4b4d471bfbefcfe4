from __future__ import annotations

import os
import tempfile
from pathlib import Path

_DEFAULT_BASE = "~/.wicprov"

# Locations inside the mounted partitions.
GROUP_FILE = "etc/group"
AZIOT_GROUP = "aziot"
IDENTITY_CONFIG_DIR = "upper/aziot"
IDENTITY_CONFIG_NAME = "config.toml"
HOSTNAME_FILE = "upper/hostname"
FIRST_BOOT_SCRIPT = "usr/bin/ics_dm_first_boot.sh"

# Partition label patterns, in mount order.
PARTITION_PATTERNS = ("etc", "data", "rootA")


def _expand(path: str) -> str:
    candidate = Path(path).expanduser()
    try:
        return str(candidate.resolve())
    except FileNotFoundError:
        return str(candidate)


def base_path() -> str:
    """Return the base directory for wicprov artifacts.

    The location can be overridden via the ``WICPROV_BASE_PATH`` environment
    variable.
    """

    override = os.environ.get("WICPROV_BASE_PATH")
    if override:
        return _expand(override)
    return _expand(_DEFAULT_BASE)


def logs_dir() -> str:
    return str(Path(base_path()) / "logs")


def make_work_dir() -> str:
    return tempfile.mkdtemp(prefix="wicprov-")
