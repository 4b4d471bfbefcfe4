"""Identity config injection into the ``etc`` overlay partition."""

from __future__ import annotations

import os

from .errors import GroupNotFoundError
from .executil import run, trace
from .paths import AZIOT_GROUP, GROUP_FILE, IDENTITY_CONFIG_DIR, IDENTITY_CONFIG_NAME


def group_id(root: str, group: str) -> int:
    """Return the gid of ``group`` from the group database below ``root``."""

    path = os.path.join(root, GROUP_FILE)
    try:
        with open(path, "r", encoding="utf-8") as fh:
            for line in fh:
                fields = line.rstrip("\n").split(":")
                if fields[0] != group or len(fields) < 3:
                    continue
                try:
                    return int(fields[2])
                except ValueError as exc:
                    raise GroupNotFoundError(
                        f"group {group!r} has invalid gid {fields[2]!r} in {path}",
                        group=group,
                        path=path,
                    ) from exc
    except FileNotFoundError as exc:
        raise GroupNotFoundError(f"group file {path} not found", group=group, path=path) from exc
    raise GroupNotFoundError(f"group {group!r} not found in {path}", group=group, path=path)


def aziot_gid(root: str) -> int:
    gid = group_id(root, AZIOT_GROUP)
    trace("identity.aziot_gid", root=root, gid=gid)
    return gid


def config_destination(etc_mount: str) -> str:
    return os.path.join(etc_mount, IDENTITY_CONFIG_DIR, IDENTITY_CONFIG_NAME)


def inject_config(config: str, etc_mount: str, gid: int) -> str:
    """Copy ``config`` into the ``etc`` overlay and hand it to group ``gid``.

    The file ends up group-writable and world-readable; the owner bits are
    whatever ``cp`` preserved from the source.
    """

    dst = config_destination(etc_mount)
    os.makedirs(os.path.dirname(dst), exist_ok=True)
    trace("identity.copy", src=config, dst=dst)
    run(["cp", config, dst], check=True)
    run(["chgrp", str(gid), dst], check=True)
    run(["chmod", "a+r,g+w", dst], check=True)
    return dst
