"""Driver that shells out to a decompiler command line."""
from __future__ import annotations

import contextlib
import json
import logging
import os
import shlex
import signal
import subprocess
import time
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

from decomptest.core import (
    Architecture,
    DecompilationResult,
    Failure,
    ResolvedSample,
    Success,
    TestCase,
    Timeout,
)
from decomptest.errors import DriverSetupError

from .base import DecompilerDriver

logger = logging.getLogger(__name__)

RESULT_FILE = "result.json"
STDOUT_LOG = "stdout.log"
STDERR_LOG = "stderr.log"
_TAIL_LINES = 20


class CommandDriver(DecompilerDriver):
    """Runs the decompiler as a supervised child process per case.

    The child gets its own process group so a timeout can kill everything it
    spawned. stdout/stderr land in the case's scratch directory.
    """

    def __init__(
        self,
        command: Sequence[str],
        *,
        env: Optional[Mapping[str, str]] = None,
        workdir: Optional[Path] = None,
        name: str = "command",
        architectures: Optional[Iterable[str]] = None,
    ) -> None:
        if isinstance(command, str):
            command = shlex.split(command)
        if not command:
            raise ValueError("decompiler command cannot be empty")
        self.command = tuple(str(part) for part in command)
        self.env = dict(env or {})
        self.workdir = Path(workdir) if workdir else None
        self.name = name
        self.architectures = (
            frozenset(Architecture.parse(item) for item in architectures) if architectures else None
        )

    def supports(self, case: TestCase) -> bool:
        return self.architectures is None or case.architecture in self.architectures

    def run(
        self,
        case: TestCase,
        sample: ResolvedSample,
        scratch_dir: Path,
        timeout: float,
    ) -> DecompilationResult:
        try:
            scratch_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DriverSetupError(f"Scratch directory not writable: {scratch_dir}: {exc}") from exc
        output_path = scratch_dir / RESULT_FILE
        tokens = build_tokens(case, sample, scratch_dir, output_path, timeout)
        argv = [render_template(part, tokens) for part in self.command]
        env = os.environ.copy()
        env.update({render_template(k, tokens): render_template(v, tokens) for k, v in self.env.items()})
        cwd = self.workdir or scratch_dir
        logger.debug("case %s: running %s", case.name, argv)

        start = time.perf_counter()
        try:
            stdout_file = (scratch_dir / STDOUT_LOG).open("wb")
            stderr_file = (scratch_dir / STDERR_LOG).open("wb")
        except OSError as exc:
            raise DriverSetupError(f"Scratch directory not writable: {scratch_dir}: {exc}") from exc
        with stdout_file, stderr_file:
            try:
                process = subprocess.Popen(
                    argv,
                    cwd=str(cwd),
                    env=env,
                    stdin=subprocess.DEVNULL,
                    stdout=stdout_file,
                    stderr=stderr_file,
                    start_new_session=os.name == "posix",
                )
            except FileNotFoundError as exc:
                raise DriverSetupError(f"Decompiler executable not found: {argv[0]}") from exc
            except PermissionError as exc:
                raise DriverSetupError(f"Decompiler executable not runnable: {argv[0]}") from exc
            try:
                exit_code = process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                _kill_process_group(process)
                logger.warning("case %s: decompiler timed out after %ss", case.name, timeout)
                return Timeout(timeout_s=timeout, diagnostic=_tail(scratch_dir / STDERR_LOG))
            except BaseException:
                _kill_process_group(process)
                raise
        duration = time.perf_counter() - start
        stderr_tail = _tail(scratch_dir / STDERR_LOG)

        if exit_code != 0:
            if exit_code < 0:
                error = f"decompiler killed by signal {-exit_code}"
            else:
                error = f"decompiler exited with status {exit_code}"
            return Failure(error=error, diagnostic=stderr_tail, exit_code=exit_code, duration_s=duration)
        return _parse_payload(output_path, scratch_dir / STDOUT_LOG, stderr_tail, duration)


def build_tokens(
    case: TestCase,
    sample: ResolvedSample,
    scratch_dir: Path,
    output_path: Path,
    timeout: float,
) -> Dict[str, str]:
    return {
        "binary": str(sample.path),
        "arch": case.architecture.value,
        "format": case.object_format.value,
        "case": case.name,
        "scratch": str(scratch_dir),
        "output": str(output_path),
        "timeout": f"{timeout:g}",
    }


def render_template(value: str, tokens: Mapping[str, str]) -> str:
    if "{" not in value or "}" not in value:
        return value
    try:
        return value.format(**tokens)
    except KeyError as exc:
        available = ", ".join(sorted(tokens.keys()))
        raise ValueError(f"Unknown token {exc} in value '{value}'. Available tokens: {available}") from exc


def _parse_payload(output_path: Path, stdout_path: Path, stderr_tail: str, duration: float) -> DecompilationResult:
    source = output_path if output_path.exists() and output_path.stat().st_size else stdout_path
    text = source.read_text(encoding="utf-8", errors="replace")
    try:
        payload: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        return Failure(
            error=f"invalid decompiler output in {source.name}: {exc.msg}",
            diagnostic=stderr_tail,
            exit_code=0,
            duration_s=duration,
        )
    if not isinstance(payload, Mapping):
        return Failure(
            error=f"decompiler output must be a JSON object, got {type(payload).__name__}",
            diagnostic=stderr_tail,
            exit_code=0,
            duration_s=duration,
        )
    diagnostics = str(payload.get("diagnostics") or "")
    if not payload.get("success", False):
        return Failure(
            error="decompiler reported failure",
            diagnostic=diagnostics or stderr_tail,
            exit_code=0,
            duration_s=duration,
        )
    artifacts = payload.get("artifacts") or {}
    if not isinstance(artifacts, Mapping):
        return Failure(
            error="decompiler artifacts must be a JSON object",
            diagnostic=diagnostics or stderr_tail,
            exit_code=0,
            duration_s=duration,
        )
    return Success(artifacts=artifacts, diagnostics=diagnostics, duration_s=duration)


def _kill_process_group(process: subprocess.Popen) -> None:
    if process.poll() is not None:
        return
    if os.name == "posix":
        with contextlib.suppress(OSError):
            os.killpg(process.pid, signal.SIGKILL)
    else:
        with contextlib.suppress(OSError):
            process.kill()
    with contextlib.suppress(subprocess.TimeoutExpired):
        process.wait(timeout=5.0)


def _tail(path: Path, lines: int = _TAIL_LINES) -> str:
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return ""
    return "\n".join(text.strip().splitlines()[-lines:])
