"""Supervised execution of an external worker process.

The worker's stdout is drained while a timer runs. Whichever of "stdout
finished", "timer fired" or "read failed" happens first decides the outcome;
a :class:`Completion` gate makes every later attempt a no-op. Whatever wins,
the process group is reaped and both pipes are drained before returning.
"""

import asyncio
import logging
import os
import signal
from dataclasses import dataclass, field

from page_monitor.errors import ErrorCategory, FetchError
from page_monitor.logs import EngineLogger

logger = logging.getLogger(__name__)

STANDARD_PATH_DIRS = ("/usr/local/bin", "/usr/bin", "/bin", "/usr/sbin", "/sbin")
DEFAULT_TIMEOUT_MS = 60000

_DRAIN_GRACE_S = 2.0  # How long pipes may stay open after the process exits


@dataclass
class ProcessInvocation:
    """A command to run under supervision."""

    command: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    timeout_ms: int = DEFAULT_TIMEOUT_MS


@dataclass
class ProcessOutcome:
    """Output of a worker that ran to completion."""

    stdout: bytes
    stderr: str
    returncode: int | None
    pid: int


class ProcessError(FetchError):
    """Worker process failure, carrying the worker's stderr as context."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory | None = None,
        *,
        stderr: str = "",
        pid: int | None = None,
    ):
        super().__init__(message, category)
        self.stderr = stderr
        self.pid = pid


class ProcessTimeoutError(ProcessError):
    category = ErrorCategory.TIMEOUT


class ProcessReadError(ProcessError):
    category = ErrorCategory.NETWORK


class WorkerExitError(ProcessError):
    """Non-zero exit without any stdout; the message is classified from stderr."""


class Completion:
    """Single-assignment outcome: the first resolution wins."""

    def __init__(self) -> None:
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()

    @property
    def done(self) -> bool:
        return self._future.done()

    def resolve(self, value) -> bool:
        if self._future.done():
            return False
        self._future.set_result(value)
        return True

    def fail(self, error: BaseException) -> bool:
        if self._future.done():
            return False
        self._future.set_exception(error)
        return True

    async def wait(self):
        return await self._future


def build_environment(overrides: dict[str, str] | None = None) -> dict[str, str]:
    """Merge the current environment with overrides and standard PATH entries."""
    env = dict(os.environ)
    env.update(overrides or {})
    path_dirs = [d for d in env.get("PATH", "").split(os.pathsep) if d]
    for directory in STANDARD_PATH_DIRS:
        if directory not in path_dirs:
            path_dirs.append(directory)
    env["PATH"] = os.pathsep.join(path_dirs)
    return env


def is_running(pid: int) -> bool:
    """Check whether a process with ``pid`` still exists."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


async def run_process(
    invocation: ProcessInvocation, log: EngineLogger | None = None
) -> ProcessOutcome:
    """Run a worker to completion or timeout.

    Raises:
        ProcessTimeoutError: the timer fired before stdout was complete.
        ProcessReadError: reading stdout failed.
        WorkerExitError: non-zero exit with empty stdout.
        ProcessError: the command could not be started.
    """
    log = log or logger
    timeout_s = invocation.timeout_ms / 1000
    loop = asyncio.get_running_loop()

    try:
        proc = await asyncio.create_subprocess_exec(
            invocation.command,
            *invocation.args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=build_environment(invocation.env),
            start_new_session=True,
        )
    except OSError as e:
        log.error("Could not start worker %s: %s", invocation.command, e)
        raise ProcessError(f"Could not start worker process {invocation.command}: {e}") from e

    log.debug("Started worker pid=%d: %s %s", proc.pid, invocation.command, invocation.args)

    gate = Completion()
    stderr_chunks: list[bytes] = []

    async def drain_stdout() -> None:
        assert proc.stdout is not None
        try:
            data = await proc.stdout.read()
        except OSError as e:
            gate.fail(ProcessReadError(f"Error reading worker output: {e}", pid=proc.pid))
        else:
            gate.resolve(data)

    async def drain_stderr() -> None:
        assert proc.stderr is not None
        try:
            stderr_chunks.append(await proc.stderr.read())
        except OSError:
            log.debug("Error reading worker stderr", exc_info=True)

    def on_timeout() -> None:
        error = ProcessTimeoutError(
            f"Timed out after {timeout_s:g} seconds waiting for worker process",
            pid=proc.pid,
        )
        if gate.fail(error):
            log.warning("Worker pid=%d timed out after %gs", proc.pid, timeout_s)

    deadline = loop.time() + timeout_s
    timer = loop.call_later(timeout_s, on_timeout)
    tasks = [
        asyncio.create_task(drain_stdout()),
        asyncio.create_task(drain_stderr()),
    ]

    stdout = b""
    failure: ProcessError | None = None
    try:
        try:
            stdout = await gate.wait()
        except ProcessError as e:
            failure = e
        else:
            # stdout is complete; the process gets what is left of the timeout to exit
            try:
                await asyncio.wait_for(proc.wait(), timeout=max(deadline - loop.time(), 0))
            except asyncio.TimeoutError:
                log.warning("Worker pid=%d closed stdout but kept running", proc.pid)
    finally:
        timer.cancel()
        await _reap(proc, log)
        await _finish_drains(proc, tasks, log)

    stderr = b"".join(stderr_chunks).decode("utf-8", errors="replace")
    if stderr.strip():
        log.debug("STDERR output:\n%s", stderr.rstrip())

    if failure is not None:
        failure.stderr = stderr
        raise failure

    log.debug("Received %d bytes from worker pid=%d (exit %s)", len(stdout), proc.pid, proc.returncode)
    if proc.returncode != 0 and not stdout.strip():
        message = stderr.strip() or f"Worker exited with status {proc.returncode}"
        raise WorkerExitError(message, stderr=stderr, pid=proc.pid)

    return ProcessOutcome(stdout=stdout, stderr=stderr, returncode=proc.returncode, pid=proc.pid)


def _kill_group(proc: asyncio.subprocess.Process) -> None:
    try:
        if hasattr(os, "killpg"):
            # start_new_session made the worker its group leader
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except ProcessLookupError:
        pass


async def _reap(proc: asyncio.subprocess.Process, log: EngineLogger) -> None:
    if proc.returncode is None:
        _kill_group(proc)
        log.debug("Killed worker pid=%d", proc.pid)
    await proc.wait()


async def _finish_drains(
    proc: asyncio.subprocess.Process, tasks: list[asyncio.Task], log: EngineLogger
) -> None:
    _, pending = await asyncio.wait(tasks, timeout=_DRAIN_GRACE_S)
    if pending:
        # Stray children of the worker still hold the pipes open
        log.debug("Pipes still open after worker exit; killing its process group")
        _kill_group(proc)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
