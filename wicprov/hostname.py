from __future__ import annotations

import os
import tomllib
from typing import Optional

from .executil import trace
from .paths import HOSTNAME_FILE


def read_hostname(config: str) -> Optional[str]:
    try:
        with open(config, "rb") as fh:
            data = tomllib.load(fh)
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
        trace("hostname.parse_failed", config=config, error=str(exc))
        return None
    name = data.get("hostname")
    if not isinstance(name, str) or not name.strip():
        return None
    return name.strip()


def config_hostname(config: str, etc_mount: str) -> Optional[str]:
    """Write the ``hostname`` from ``config`` into the ``/etc/hostname`` overlay."""

    name = read_hostname(config)
    if name is None:
        trace("hostname.skip", config=config)
        return None
    path = os.path.join(etc_mount, HOSTNAME_FILE)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(name + "\n")
    trace("hostname.set", hostname=name, path=path)
    return name
