import pytest

from wicprov import firstboot
from wicprov.errors import NoProvisioningBinaryError


def _root(tmp_path, *binaries):
    root = tmp_path / "rootA"
    bindir = root / "usr" / "bin"
    bindir.mkdir(parents=True)
    (bindir / "ics_dm_first_boot.sh").write_text("#!/bin/sh\nset -e\n", encoding="utf-8")
    for name in binaries:
        (bindir / name).write_text("", encoding="utf-8")
    return root


def test_iotedge_takes_precedence(tmp_path):
    root = _root(tmp_path, "iotedge", "aziotctl")
    assert firstboot.detect_backend(str(root)) is firstboot.IOTEDGE


def test_aziotctl_fallback(tmp_path):
    root = _root(tmp_path, "aziotctl")
    assert firstboot.detect_backend(str(root)) is firstboot.AZIOTCTL


def test_dangling_symlink_counts_as_present(tmp_path):
    root = _root(tmp_path)
    (root / "usr" / "bin" / "aziotctl").symlink_to("/opt/aziot/bin/aziotctl")
    assert firstboot.detect_backend(str(root)).name == "aziotctl"


def test_no_binary_raises(tmp_path):
    root = _root(tmp_path)
    with pytest.raises(NoProvisioningBinaryError) as excinfo:
        firstboot.detect_backend(str(root))
    assert "no binary found" in str(excinfo.value)


@pytest.mark.parametrize("backend", firstboot.BACKENDS, ids=lambda b: b.name)
def test_append_activation_adds_one_line(tmp_path, backend):
    root = _root(tmp_path)
    script = firstboot.append_activation(str(root), backend)
    lines = (root / "usr" / "bin" / "ics_dm_first_boot.sh").read_text(encoding="utf-8").splitlines()
    assert script.endswith("usr/bin/ics_dm_first_boot.sh")
    assert lines == ["#!/bin/sh", "set -e", f"{backend.name} config apply"]
