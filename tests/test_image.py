import bz2
import gzip
import lzma

import pytest

from wicprov import image

RAW = b"\x00" * 4096 + b"wic image payload" + b"\xff" * 1024


@pytest.mark.parametrize(
    "writer,name",
    [(lzma.compress, "xz"), (bz2.compress, "bzip2"), (gzip.compress, "gzip")],
)
def test_detect_compression(tmp_path, writer, name):
    path = tmp_path / "dev.wic.z"
    path.write_bytes(writer(RAW))
    assert image.detect_compression(str(path)).name == name


def test_detect_compression_plain(tmp_path):
    path = tmp_path / "dev.wic"
    path.write_bytes(RAW)
    assert image.detect_compression(str(path)) is None


def test_prepared_image_plain_passthrough(tmp_path):
    path = tmp_path / "dev.wic"
    path.write_bytes(RAW)
    with image.prepared_image(str(path)) as work:
        assert work == str(path)
    assert path.read_bytes() == RAW


def test_prepared_image_recompresses_changes(tmp_path):
    path = tmp_path / "dev.wic.gz"
    path.write_bytes(gzip.compress(RAW))

    with image.prepared_image(str(path)) as work:
        assert work == str(tmp_path / "dev.wic.ungzip.tmp")
        with open(work, "r+b") as fh:
            assert fh.read() == RAW
            fh.write(b"injected")

    assert gzip.decompress(path.read_bytes()) == RAW + b"injected"
    assert not (tmp_path / "dev.wic.ungzip.tmp").exists()


def test_prepared_image_keeps_original_on_failure(tmp_path):
    path = tmp_path / "dev.wic.xz"
    original = lzma.compress(RAW)
    path.write_bytes(original)

    with pytest.raises(RuntimeError):
        with image.prepared_image(str(path)) as work:
            with open(work, "ab") as fh:
                fh.write(b"partial")
            raise RuntimeError("mount failed")

    assert path.read_bytes() == original
    assert not (tmp_path / "dev.wic.unxz.tmp").exists()


@pytest.mark.parametrize("raw,expected", [(None, 9), ("3", 3), ("0", 0), ("12", 9), ("-1", 9), ("fast", 9)])
def test_xz_preset(monkeypatch, raw, expected):
    if raw is None:
        monkeypatch.delenv("XZ_ENCODER_PRESET", raising=False)
    else:
        monkeypatch.setenv("XZ_ENCODER_PRESET", raw)
    assert image.xz_preset() == expected


def test_generate_bmap(monkeypatch):
    calls = []
    monkeypatch.setattr(image, "run", lambda cmd, check=True, timeout=60.0: calls.append(cmd))

    out = image.generate_bmap("/images/dev.wic", image.bmap_path("/images/dev.wic"))

    assert out == "/images/dev.wic.bmap"
    assert calls == [["bmaptool", "create", "-o", "/images/dev.wic.bmap", "/images/dev.wic"]]


def test_prepared_image_removes_partial_working_copy(tmp_path):
    path = tmp_path / "dev.wic.xz"
    path.write_bytes(lzma.compress(b"\x00" * 200000)[:-40])

    with pytest.raises((EOFError, lzma.LZMAError)):
        with image.prepared_image(str(path)):
            pytest.fail("body must not run for a truncated image")

    assert not (tmp_path / "dev.wic.unxz.tmp").exists()
