"""First-boot activation of the injected identity config."""

from __future__ import annotations

import os

from .errors import NoProvisioningBinaryError
from .executil import trace
from .model import ProvisioningBackend
from .paths import FIRST_BOOT_SCRIPT

IOTEDGE = ProvisioningBackend(
    name="iotedge",
    binary="usr/bin/iotedge",
    activation="iotedge config apply",
)
AZIOTCTL = ProvisioningBackend(
    name="aziotctl",
    binary="usr/bin/aziotctl",
    activation="aziotctl config apply",
)

# Probe order: edge images ship both binaries, iotedge takes precedence.
BACKENDS = (IOTEDGE, AZIOTCTL)


def detect_backend(root: str) -> ProvisioningBackend:
    for backend in BACKENDS:
        if os.path.lexists(os.path.join(root, backend.binary)):
            trace("firstboot.backend", root=root, backend=backend.name)
            return backend
    trace("firstboot.backend_missing", root=root, probed=[b.binary for b in BACKENDS])
    raise NoProvisioningBinaryError(
        "no binary found to apply config.toml",
        probed=[b.binary for b in BACKENDS],
    )


def append_activation(root: str, backend: ProvisioningBackend) -> str:
    script = os.path.join(root, FIRST_BOOT_SCRIPT)
    with open(script, "a", encoding="utf-8") as fh:
        fh.write(backend.activation + "\n")
    trace("firstboot.append", script=script, line=backend.activation)
    return script
