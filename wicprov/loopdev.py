"""Loop device attach/detach for disk images."""
from __future__ import annotations

import contextlib
from subprocess import SubprocessError

from .executil import run, trace, udev_settle
from .model import LoopDevice


def attach_image(image: str) -> LoopDevice:
    """Attach ``image`` to the first free loop device with partition scanning."""

    r = run(["losetup", "--show", "-f", "-P", image], check=True)
    lines = (r.out or "").strip().splitlines()
    device = lines[-1].strip() if lines else ""
    if not device.startswith("/dev/"):
        trace("loopdev.attach_unexpected", image=image, out=r.out, err=r.err)
        if device:
            run(["losetup", "-d", device], check=False)
        raise RuntimeError(f"losetup reported unexpected device {device!r} for {image}")
    udev_settle()
    trace("loopdev.attach", image=image, device=device)
    return LoopDevice(image=image, device=device)


def detach(loop: LoopDevice) -> bool:
    """Detach ``loop``; failures are traced and reported as ``False``."""

    try:
        run(["losetup", "-d", loop.device], check=True)
    except (SubprocessError, OSError) as exc:
        trace("loopdev.detach_failed", device=loop.device, image=loop.image, error=str(exc))
        return False
    trace("loopdev.detach", device=loop.device, image=loop.image)
    return True


@contextlib.contextmanager
def loop_device(image: str):
    loop = attach_image(image)
    try:
        yield loop
    finally:
        detach(loop)
