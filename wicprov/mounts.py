"""Mount helpers for image partitions."""
from subprocess import SubprocessError
import contextlib
import os

from .model import Mounts, Partition
from .executil import run, trace
from .devices import find_partition
from .paths import PARTITION_PATTERNS


def mount_partition(part: Partition, target: str, opts: list[str] | None = None):
    os.makedirs(target, exist_ok=True)
    cmd = ["mount"]
    if opts: cmd += ["-o", ",".join(opts)]
    cmd += [part.path, target]
    run(cmd, check=True)
    trace("mounts.mount", device=part.path, target=target, label=part.label or part.partlabel)


def unmount(path: str) -> bool:
    try:
        run(["umount", path], check=True)
    except (SubprocessError, OSError) as exc:
        trace("mounts.umount_failed", path=path, error=str(exc))
        return False
    trace("mounts.umount", path=path)
    return True


def _remove_dir(path: str) -> None:
    # rmdir only: a directory that failed to unmount still holds image data.
    try:
        os.rmdir(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        trace("mounts.rmdir_failed", path=path, error=str(exc))


@contextlib.contextmanager
def mounted(part: Partition, target: str, opts: list[str] | None = None):
    mount_partition(part, target, opts=opts)
    try:
        yield target
    finally:
        unmount(target)


class MountSet:
    """Track mounts below ``work_dir`` and release them in reverse order."""

    def __init__(self, work_dir: str):
        self.work_dir = work_dir
        self.mounted_paths: list[str] = []
        self._stack = contextlib.ExitStack()

    def __enter__(self) -> "MountSet":
        self._stack.__enter__()
        self._stack.callback(_remove_dir, self.work_dir)
        return self

    def __exit__(self, exc_type, exc, tb):
        return self._stack.__exit__(exc_type, exc, tb)

    def mount(self, part: Partition, name: str) -> str:
        target = os.path.join(self.work_dir, name)
        os.makedirs(target, exist_ok=True)
        self._stack.callback(_remove_dir, target)
        self._stack.enter_context(mounted(part, target))
        self.mounted_paths.append(target)
        return target


def mount_targets(ms: MountSet, device: str) -> Mounts:
    """Mount the ``etc``, ``data`` and ``rootA`` partitions of ``device``."""

    paths = {}
    for pattern in PARTITION_PATTERNS:
        part = find_partition(device, pattern)
        paths[pattern] = ms.mount(part, pattern)
    return Mounts(work_dir=ms.work_dir, etc=paths["etc"], data=paths["data"], root=paths["rootA"])
