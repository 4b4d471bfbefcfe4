"""CLI entrypoint for injecting an identity config into a wic image."""

from __future__ import annotations

import argparse
import json
import os
import signal
import subprocess
import sys
import time
from typing import Any, Dict, Optional

from .errors import ProvisionError
from .executil import append_jsonl, resolve_log_path, trace
from .firstboot import append_activation, detect_backend
from .hostname import config_hostname
from .identity import aziot_gid, inject_config
from .image import bmap_path, generate_bmap, prepared_image
from .loopdev import loop_device
from .model import InjectPlan
from .mounts import MountSet, mount_targets
from .paths import FIRST_BOOT_SCRIPT, IDENTITY_CONFIG_DIR, IDENTITY_CONFIG_NAME, logs_dir, make_work_dir

RESULT_CODES: Dict[str, int] = {
    "INJECT_OK": 0,
    "PLAN_OK": 0,
    "FAIL_USAGE": 1,
    "FAIL_INPUT_NOT_FOUND": 1,
    "FAIL_NO_PROVISIONING_BINARY": 1,
    "FAIL_PARTITION": 1,
    "FAIL_GROUP": 1,
    "FAIL_COMMAND": 1,
    "FAIL_GENERIC": 1,
    "FAIL_UNHANDLED": 1,
}

RESULT_LOG_PATH: Optional[str] = None
CLI_START_MONO = time.perf_counter()
JSON_OUTPUT_ENABLED = True


class _UsageParser(argparse.ArgumentParser):
    """Argument parser that reports usage errors with exit status 1."""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(RESULT_CODES["FAIL_USAGE"], f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _UsageParser(
        prog="wicprov-set-identity",
        description="Inject an identity config.toml into a wic image.",
    )
    parser.add_argument("-c", "--config", required=True, help="path to identity config.toml")
    parser.add_argument("-w", "--wic", dest="image", required=True, help="path to wic image file")
    parser.add_argument("-b", "--generate-bmap", action="store_true", help="generate <image>.bmap")
    parser.add_argument("--plan", action="store_true", help="print the planned steps and exit")
    parser.add_argument("--json", dest="json", action="store_true", default=True)
    parser.add_argument("--no-json", dest="json", action="store_false")
    return parser


def _result_log_path() -> str:
    global RESULT_LOG_PATH
    if RESULT_LOG_PATH:
        return RESULT_LOG_PATH
    path = resolve_log_path()
    if not path:
        path = os.path.join(logs_dir(), "wicprov.jsonl")
    RESULT_LOG_PATH = path
    return path


def _emit_result(
        kind: str,
        extra: Optional[Dict[str, Any]] = None,
        exit_code: Optional[int] = None,
) -> None:
    payload: Dict[str, Any] = {"result": kind, "ts": int(time.time())}
    if extra:
        payload.update(extra)
    payload.setdefault("log_path", _result_log_path())
    payload["timing_total_ms"] = int(max(0.0, (time.perf_counter() - CLI_START_MONO) * 1000))
    append_jsonl(_result_log_path(), payload)
    if JSON_OUTPUT_ENABLED:
        print(json.dumps(payload, sort_keys=True, separators=(",", ":")))
    code = RESULT_CODES.get(kind, 1) if exit_code is None else exit_code
    raise SystemExit(code)


def _planned_steps(plan: InjectPlan) -> list[str]:
    steps = [
        "prepared_image(image)",
        "losetup --show -f -P image",
        "mount etc, data, rootA",
        "aziot_gid(rootA)",
        "detect_backend(rootA)",
        f"inject_config(config) -> /etc/{IDENTITY_CONFIG_DIR}/{IDENTITY_CONFIG_NAME}",
        f"append_activation(rootA) -> /{FIRST_BOOT_SCRIPT}",
        "config_hostname(config)",
        "umount rootA, data, etc",
        "losetup -d",
    ]
    if plan.generate_bmap:
        steps.append(f"bmaptool create -o {bmap_path(plan.image)}")
    return steps


def _require_inputs(plan: InjectPlan) -> None:
    if not os.path.isfile(plan.image):
        print(f"error: input device image not found: {plan.image}", file=sys.stderr)
        _emit_result("FAIL_INPUT_NOT_FOUND", extra={"path": plan.image, "input": "image"})
    if not os.path.isfile(plan.config):
        print(f'error: input file "{plan.config}" not found', file=sys.stderr)
        _emit_result("FAIL_INPUT_NOT_FOUND", extra={"path": plan.config, "input": "config"})


def run_inject(plan: InjectPlan) -> Dict[str, Any]:
    """Inject ``plan.config`` into ``plan.image`` and arm first-boot activation.

    Mounts are released in reverse order and the loop device is detached on
    every path out of this function.  The provisioning backend is detected
    before the image is modified, so a missing binary leaves it untouched.
    """

    meta: Dict[str, Any] = {"config": plan.config, "image": plan.image}
    with prepared_image(plan.image) as image:
        if image != plan.image:
            meta["working_image"] = image
        with loop_device(image) as loop, MountSet(make_work_dir()) as ms:
            meta["loop_device"] = loop.device
            mounts = mount_targets(ms, loop.device)
            gid = aziot_gid(mounts.root)
            backend = detect_backend(mounts.root)
            inject_config(plan.config, mounts.etc, gid)
            append_activation(mounts.root, backend)
            hostname = config_hostname(plan.config, mounts.etc)
            meta.update({
                "aziot_gid": gid,
                "backend": backend.name,
                "activation": backend.activation,
                "hostname": hostname,
            })
        if plan.generate_bmap:
            meta["bmap"] = generate_bmap(image, bmap_path(plan.image))
    return meta


def _main_impl(argv: Optional[list[str]] = None) -> int:
    global JSON_OUTPUT_ENABLED
    args = build_parser().parse_args(argv)
    JSON_OUTPUT_ENABLED = args.json
    plan = InjectPlan(
        config=os.path.abspath(os.path.expanduser(args.config)),
        image=os.path.abspath(os.path.expanduser(args.image)),
        generate_bmap=args.generate_bmap,
        plan_only=args.plan,
    )
    trace("cli.args", config=plan.config, image=plan.image, generate_bmap=plan.generate_bmap)
    _require_inputs(plan)

    if plan.plan_only:
        _emit_result("PLAN_OK", extra={"steps": _planned_steps(plan), "image": plan.image})

    try:
        meta = run_inject(plan)
    except ProvisionError as exc:
        print(f"error: {exc}", file=sys.stderr)
        _emit_result(exc.result, extra={"error": str(exc), **exc.details})
    except subprocess.CalledProcessError as exc:
        cmd = exc.cmd if isinstance(exc.cmd, str) else list(exc.cmd)
        stderr = (exc.stderr or "").strip()
        print(f"error: command failed with exit status {exc.returncode}: {cmd}", file=sys.stderr)
        if stderr:
            print(stderr, file=sys.stderr)
        _emit_result(
            "FAIL_COMMAND",
            extra={"cmd": cmd, "rc": exc.returncode, "stderr": stderr},
            exit_code=exc.returncode if exc.returncode > 0 else 1,
        )
    except subprocess.TimeoutExpired as exc:
        print(f"error: command timed out after {exc.timeout}s: {exc.cmd}", file=sys.stderr)
        cmd = exc.cmd if isinstance(exc.cmd, str) else list(exc.cmd)
        _emit_result("FAIL_COMMAND", extra={"cmd": cmd, "timeout": exc.timeout})

    _emit_result("INJECT_OK", extra=meta)
    return 0


TERMINATING_SIGNALS = (signal.SIGTERM, signal.SIGHUP)


def _exit_on_signal(signum, _frame):
    trace("cli.signal", signal=signal.Signals(signum).name)
    raise SystemExit(128 + signum)


def main(argv: Optional[list[str]] = None) -> int:
    # Turn termination into SystemExit so mounts and the loop device unwind.
    previous = {sig: signal.signal(sig, _exit_on_signal) for sig in TERMINATING_SIGNALS}
    try:
        return _main_impl(argv)
    except SystemExit:
        raise
    except Exception as exc:  # noqa: BLE001
        print(f"error: {exc}", file=sys.stderr)
        _emit_result("FAIL_UNHANDLED", extra={"error": str(exc)})
    finally:
        for sig, handler in previous.items():
            if handler is not None:
                signal.signal(sig, handler)
    return 0


if __name__ == "__main__":
    sys.exit(main())
