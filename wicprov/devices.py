"""Partition discovery on an attached loop device."""
from __future__ import annotations

import json
import re

from .errors import PartitionNotFoundError
from .executil import run, trace, udev_settle
from .model import Partition


def list_partitions(device: str) -> list[Partition]:
    """Return the partitions ``lsblk`` reports below ``device``.

    Labels are read fresh on every call; a loop device attached with
    ``losetup -P`` may need a udev round-trip before its partition nodes and
    labels are visible, so settle first.
    """

    udev_settle()
    result = run([
        "lsblk",
        "-J",
        "-o",
        "NAME,PATH,TYPE,LABEL,PARTLABEL",
        device,
    ], check=True)

    try:
        payload = json.loads(result.out or "{}")
    except json.JSONDecodeError as exc:
        raise PartitionNotFoundError(f"failed to parse lsblk output for {device}: {exc}") from exc

    node = None
    for entry in payload.get("blockdevices") or []:
        if entry.get("path") == device or entry.get("name") == device.rsplit("/", 1)[-1]:
            node = entry
            break

    if node is None:
        raise PartitionNotFoundError(f"lsblk did not report device {device}", device=device)

    parts = []
    for child in node.get("children") or []:
        if child.get("type") != "part":
            continue
        path = child.get("path") or child.get("name") or ""
        if path and not path.startswith("/"):
            path = f"/dev/{path}"
        parts.append(Partition(path=path, label=child.get("label"), partlabel=child.get("partlabel")))
    parts.sort(key=lambda p: p.path)
    return parts


def _labels(part: Partition) -> list[str]:
    return [x for x in (part.label, part.partlabel) if x]


def find_partition(device: str, pattern: str) -> Partition:
    """Return the single partition of ``device`` whose label matches ``pattern``.

    An exact label (or GPT partition label) match wins.  Otherwise ``pattern``
    is searched as a regular expression and must match exactly one partition.
    """

    parts = list_partitions(device)
    exact = [p for p in parts if pattern in _labels(p)]
    if len(exact) == 1:
        trace("devices.find_partition", device=device, pattern=pattern, path=exact[0].path, match="exact")
        return exact[0]

    regex = re.compile(pattern)
    candidates = exact or [p for p in parts if any(regex.search(lbl) for lbl in _labels(p))]
    labels = [_labels(p) for p in parts]
    if not candidates:
        trace("devices.find_partition.missing", device=device, pattern=pattern, labels=labels)
        raise PartitionNotFoundError(
            f"no partition matching {pattern!r} on {device}",
            device=device,
            pattern=pattern,
            labels=labels,
        )
    if len(candidates) > 1:
        paths = [p.path for p in candidates]
        trace("devices.find_partition.ambiguous", device=device, pattern=pattern, paths=paths)
        raise PartitionNotFoundError(
            f"partition pattern {pattern!r} is ambiguous on {device}: {', '.join(paths)}",
            device=device,
            pattern=pattern,
            paths=paths,
        )
    trace("devices.find_partition", device=device, pattern=pattern, path=candidates[0].path, match="search")
    return candidates[0]
