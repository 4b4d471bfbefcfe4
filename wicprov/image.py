"""Compressed image handling and block map generation."""

from __future__ import annotations

import bz2
import contextlib
import gzip
import lzma
import os
import shutil
from dataclasses import dataclass
from typing import Callable, Optional

from .executil import run, trace


def xz_preset() -> int:
    raw = os.environ.get("XZ_ENCODER_PRESET", "9")
    try:
        level = int(raw)
    except ValueError:
        return 9
    return level if 0 <= level <= 9 else 9


@dataclass(frozen=True)
class Compression:
    name: str
    magic: bytes
    extension: str
    opener: Callable[..., object]

    def open_read(self, path: str):
        return self.opener(path, "rb")

    def open_write(self, path: str):
        if self.name == "xz":
            return lzma.open(path, "wb", preset=xz_preset())
        return self.opener(path, "wb")


COMPRESSIONS = (
    Compression("xz", b"\xfd7zXZ\x00", "unxz.tmp", lzma.open),
    Compression("bzip2", b"BZh", "unbzip2.tmp", bz2.open),
    Compression("gzip", b"\x1f\x8b", "ungzip.tmp", gzip.open),
)


def detect_compression(path: str) -> Optional[Compression]:
    with open(path, "rb") as fh:
        head = fh.read(8)
    for comp in COMPRESSIONS:
        if head.startswith(comp.magic):
            return comp
    return None


def _working_path(path: str, comp: Compression) -> str:
    stem, _ext = os.path.splitext(path)
    return f"{stem}.{comp.extension}"


def decompress(path: str, comp: Compression) -> str:
    dst = _working_path(path, comp)
    with comp.open_read(path) as src, open(dst, "wb") as out:
        shutil.copyfileobj(src, out, length=1 << 20)
    trace("image.decompress", src=path, dst=dst, compression=comp.name)
    return dst


def compress(src: str, dst: str, comp: Compression) -> None:
    with open(src, "rb") as fh, comp.open_write(dst) as out:
        shutil.copyfileobj(fh, out, length=1 << 20)
    trace("image.compress", src=src, dst=dst, compression=comp.name)


@contextlib.contextmanager
def prepared_image(path: str):
    """Yield an uncompressed image path for ``path``.

    Compressed images are expanded next to the original, and the working copy
    is recompressed over the original once the body completes without error.
    The working copy is removed in every case.
    """

    comp = detect_compression(path)
    if comp is None:
        yield path
        return
    work = _working_path(path, comp)
    try:
        decompress(path, comp)
        yield work
        compress(work, path, comp)
    finally:
        try:
            os.remove(work)
        except FileNotFoundError:
            pass


def bmap_path(image: str) -> str:
    return f"{image}.bmap"


def generate_bmap(image: str, output: str) -> str:
    run(["bmaptool", "create", "-o", output, image], check=True, timeout=600.0)
    trace("image.bmap", image=image, output=output)
    return output
