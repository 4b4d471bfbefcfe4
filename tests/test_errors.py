from wicprov import errors


def test_custom_errors_are_distinct():
    excs = [
        errors.PartitionNotFoundError,
        errors.GroupNotFoundError,
        errors.NoProvisioningBinaryError,
    ]
    instances = [exc("message") for exc in excs]
    assert all(isinstance(inst, errors.ProvisionError) for inst in instances)
    assert all(isinstance(inst, RuntimeError) for inst in instances)
    assert len({inst.result for inst in instances}) == len(excs)


def test_error_keeps_details():
    exc = errors.PartitionNotFoundError("missing", pattern="etc", device="/dev/loop0")
    assert str(exc) == "missing"
    assert exc.details == {"pattern": "etc", "device": "/dev/loop0"}
    assert exc.result == "FAIL_PARTITION"
