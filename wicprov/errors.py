"""Domain errors raised by the injection workflow."""

from __future__ import annotations


class ProvisionError(RuntimeError):
    """Base class; ``result`` names the CLI result code the error maps to."""

    result = "FAIL_GENERIC"

    def __init__(self, message: str, **details) -> None:
        super().__init__(message)
        self.details = details


class PartitionNotFoundError(ProvisionError):
    result = "FAIL_PARTITION"


class GroupNotFoundError(ProvisionError):
    result = "FAIL_GROUP"


class NoProvisioningBinaryError(ProvisionError):
    result = "FAIL_NO_PROVISIONING_BINARY"
