"""
Sandbox for executing untrusted code snippets with resource limits.

Each run gets a fresh temporary directory holding exactly one source file,
removed on every exit path. Runs are bounded by wall-clock time and by the
amount of output captured per stream; exceeding either kills the process
group and is reported as a failed run, never raised.

Unix: Also applies CPU time and address-space limits via the resource module.
Windows: Wall-clock timeout and output bound only.

This protects the grading process against accidental resource exhaustion and
infinite loops. It is not a hardened jail for deliberately malicious code.

The rlimit hook runs in the forked child before exec while grading threads
are alive, so it must not import modules or take locks; `resource` is
imported here, at module load. A child that still hangs before exec is
killed by the wall-clock timeout and reported as "timeout".
"""

import logging
import os
import platform
import shutil
import signal
import subprocess
import sys
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from .errors import UnsupportedLanguage
from .models import GraderConfig

if platform.system() != "Windows":
    import resource
else:
    resource = None

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES = ("python",)
SOURCE_FILENAME = "solution.py"
TEMP_DIR_PREFIX = "exam-run-"
_READ_CHUNK = 64 * 1024


def get_python_executable() -> Tuple[str, List[str]]:
    """Get the Python executable path and isolation flags."""
    if getattr(sys, 'frozen', False):
        python_path = shutil.which('python3') or shutil.which('python')
        if not python_path:
            raise RuntimeError("Python executable not found on PATH.")
        return python_path, ['-I', '-B']
    return sys.executable, ['-I', '-B']


PYTHON_EXE, ISOLATION_FLAGS = get_python_executable()


@dataclass
class ExecutionResult:
    """
    Captured outcome of one sandboxed run.

    status is one of "success", "timeout", "output_limit", "memory_error"
    or "runtime_error". Only "success" counts as a succeeded run.
    """
    status: str
    stdout: str
    stderr: str
    exit_code: Optional[int] = None
    elapsed_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict:
        return {
            "success": self.succeeded,
            "stdout": self.stdout,
            "stderr": self.stderr,
        }


Executor = Callable[[str], ExecutionResult]


def _make_limits(timeout_sec: float, memory_limit_mb: int, max_output_bytes: int) -> Callable[[], None]:
    """Build the preexec hook that applies rlimits in the child."""
    def set_limits():
        cpu_seconds = int(timeout_sec) + 1
        memory_bytes = memory_limit_mb * 1024 * 1024
        for limit, value in (
            (resource.RLIMIT_CPU, cpu_seconds),
            (resource.RLIMIT_AS, memory_bytes),
            (resource.RLIMIT_FSIZE, max_output_bytes),
        ):
            try:
                resource.setrlimit(limit, (value, value))
            except (ValueError, OSError):
                pass

    return set_limits


def _kill_process_tree(proc: subprocess.Popen) -> None:
    """Hard-kill the child and anything it spawned."""
    if proc.poll() is not None:
        return
    try:
        if platform.system() != "Windows":
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except (ProcessLookupError, PermissionError):
        # Already exited between poll() and kill
        pass


class _BoundedReader(threading.Thread):
    """Drains one pipe, killing the process once the byte limit is crossed."""

    def __init__(self, stream, limit: int, proc: subprocess.Popen):
        super().__init__(daemon=True)
        self.stream = stream
        self.limit = limit
        self.proc = proc
        self.chunks: List[bytes] = []
        self.size = 0
        self.overflowed = False

    def run(self):
        try:
            while True:
                chunk = self.stream.read1(_READ_CHUNK)
                if not chunk:
                    break
                if self.size + len(chunk) > self.limit:
                    self.chunks.append(chunk[:self.limit - self.size])
                    self.size = self.limit
                    self.overflowed = True
                    _kill_process_tree(self.proc)
                    break
                self.chunks.append(chunk)
                self.size += len(chunk)
        finally:
            self.stream.close()

    def text(self) -> str:
        return b"".join(self.chunks).decode('utf-8', errors='replace')


def _classify(returncode: int, stderr: str) -> str:
    if returncode == 0:
        return "success"
    if platform.system() != "Windows" and returncode == -signal.SIGXCPU:
        return "timeout"
    if 'MemoryError' in stderr:
        return "memory_error"
    return "runtime_error"


def run_code(
    code: str,
    language: str = "python",
    timeout_sec: float = 5.0,
    max_output_bytes: int = 1024 * 1024,
    memory_limit_mb: int = 256,
) -> ExecutionResult:
    """
    Run a code snippet in sandbox mode and capture its output.

    Args:
        code: Full program source text
        language: Language tag, must be one of SUPPORTED_LANGUAGES
        timeout_sec: Wall-clock limit in seconds
        max_output_bytes: Limit on captured bytes per stream
        memory_limit_mb: Memory limit in MB (Unix only)

    Returns:
        ExecutionResult with status, stdout and stderr

    Raises:
        UnsupportedLanguage: Before anything is spawned, for unknown tags
    """
    if language.lower() not in SUPPORTED_LANGUAGES:
        raise UnsupportedLanguage(language)

    start_time = time.monotonic()

    with tempfile.TemporaryDirectory(prefix=TEMP_DIR_PREFIX) as temp_dir:
        source_path = Path(temp_dir) / SOURCE_FILENAME
        source_path.write_text(code, encoding='utf-8')

        command = [PYTHON_EXE, *ISOLATION_FLAGS, str(source_path)]
        popen_kwargs = {}
        if platform.system() != "Windows":
            popen_kwargs["preexec_fn"] = _make_limits(timeout_sec, memory_limit_mb, max_output_bytes)
            popen_kwargs["start_new_session"] = True

        try:
            proc = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=temp_dir,
                **popen_kwargs
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("SANDBOX_CRASH - could not start interpreter: %s", e)
            return ExecutionResult("runtime_error", "", f"Execution error: {e}")

        stdout_reader = _BoundedReader(proc.stdout, max_output_bytes, proc)
        stderr_reader = _BoundedReader(proc.stderr, max_output_bytes, proc)
        stdout_reader.start()
        stderr_reader.start()

        timed_out = False
        try:
            proc.wait(timeout=timeout_sec)
        except subprocess.TimeoutExpired:
            timed_out = True
            _kill_process_tree(proc)
            proc.wait()

        stdout_reader.join(timeout=1.0)
        stderr_reader.join(timeout=1.0)

        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        stdout = stdout_reader.text()
        stderr = stderr_reader.text()

        if stdout_reader.overflowed or stderr_reader.overflowed:
            logger.warning("SANDBOX_OVERFLOW - output exceeded %d bytes", max_output_bytes)
            return ExecutionResult("output_limit", stdout, "Output limit exceeded", proc.returncode, elapsed_ms)

        if timed_out:
            logger.info("SANDBOX_TIMEOUT - killed after %.1fs", timeout_sec)
            return ExecutionResult("timeout", stdout, "Process exceeded time limit", proc.returncode, elapsed_ms)

        status = _classify(proc.returncode, stderr)
        if status != "success":
            logger.info("SANDBOX_FAILED - status=%s exit_code=%s", status, proc.returncode)
        return ExecutionResult(status, stdout, stderr, proc.returncode, elapsed_ms)


class Sandbox:
    """Sandbox executor bound to a configuration's limits."""

    def __init__(self, config: GraderConfig):
        self.config = config

    def run(self, code: str, language: Optional[str] = None) -> ExecutionResult:
        return run_code(
            code,
            language=language or self.config.language,
            timeout_sec=self.config.timeout_sec,
            max_output_bytes=self.config.max_output_bytes,
            memory_limit_mb=self.config.memory_limit_mb,
        )

    def __call__(self, code: str) -> ExecutionResult:
        return self.run(code)
