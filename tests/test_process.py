"""Tests for supervised worker processes."""

from __future__ import annotations

import asyncio
import os
import sys
from unittest.mock import patch

import pytest

from page_monitor.errors import ErrorCategory
from page_monitor.process import (
    STANDARD_PATH_DIRS,
    Completion,
    ProcessError,
    ProcessInvocation,
    ProcessReadError,
    ProcessTimeoutError,
    WorkerExitError,
    build_environment,
    is_running,
    run_process,
)

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX process groups")


def _python(script: str, timeout_ms: int = 10000, **kwargs) -> ProcessInvocation:
    return ProcessInvocation(
        command=sys.executable, args=["-c", script], timeout_ms=timeout_ms, **kwargs
    )


# ---------------------------------------------------------------------------
# Completion gate
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestCompletion:
    async def test_first_resolution_wins(self) -> None:
        gate = Completion()
        assert gate.resolve(b"first")
        assert not gate.resolve(b"second")
        assert not gate.fail(RuntimeError("late"))
        assert await gate.wait() == b"first"

    async def test_failure_is_final(self) -> None:
        gate = Completion()
        assert gate.fail(ValueError("boom"))
        assert not gate.resolve(b"data")
        assert gate.done
        with pytest.raises(ValueError):
            await gate.wait()


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


class TestBuildEnvironment:
    def test_standard_dirs_are_appended(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PATH", "/opt/custom/bin")
        path = build_environment()["PATH"].split(os.pathsep)
        assert path[0] == "/opt/custom/bin"
        for directory in STANDARD_PATH_DIRS:
            assert directory in path

    def test_no_duplicates(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PATH", "/usr/bin")
        path = build_environment()["PATH"].split(os.pathsep)
        assert path.count("/usr/bin") == 1

    def test_overrides(self) -> None:
        env = build_environment({"PAGE_MONITOR_TEST": "1"})
        assert env["PAGE_MONITOR_TEST"] == "1"


# ---------------------------------------------------------------------------
# run_process
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestRunProcess:
    async def test_collects_stdout_and_stderr(self) -> None:
        script = "import sys\nprint('payload')\nprint('diagnostic', file=sys.stderr)\n"
        outcome = await run_process(_python(script))
        assert outcome.stdout.strip() == b"payload"
        assert outcome.stderr.strip() == "diagnostic"
        assert outcome.returncode == 0

    async def test_environment_is_passed(self) -> None:
        script = "import os\nprint(os.environ['PAGE_MONITOR_TEST'])\n"
        outcome = await run_process(_python(script, env={"PAGE_MONITOR_TEST": "hello"}))
        assert outcome.stdout.strip() == b"hello"

    async def test_timeout_kills_worker(self) -> None:
        script = "import time\ntime.sleep(30)\n"
        with pytest.raises(ProcessTimeoutError) as exc_info:
            await run_process(_python(script, timeout_ms=500))

        error = exc_info.value
        assert error.category is ErrorCategory.TIMEOUT
        assert error.message.startswith("Timed out after 0.5 seconds")
        assert error.pid is not None
        assert not is_running(error.pid)

    async def test_timeout_keeps_stderr(self) -> None:
        script = "import sys, time\nsys.stderr.write('loading page')\nsys.stderr.flush()\ntime.sleep(30)\n"
        with pytest.raises(ProcessTimeoutError) as exc_info:
            await run_process(_python(script, timeout_ms=1000))
        assert exc_info.value.stderr == "loading page"

    async def test_timeout_kills_grandchildren(self) -> None:
        script = (
            "import subprocess, sys\n"
            "child = subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(30)'])\n"
            "print(child.pid, flush=True)\n"
            "child.wait()\n"
        )
        started = asyncio.get_running_loop().time()
        with pytest.raises(ProcessTimeoutError):
            await run_process(_python(script, timeout_ms=1000))
        assert asyncio.get_running_loop().time() - started < 10

    async def test_stdout_read_error_resolves_outcome(self) -> None:
        real_spawn = asyncio.create_subprocess_exec

        async def spawn_with_broken_stdout(*args, **kwargs):
            proc = await real_spawn(*args, **kwargs)

            async def broken_read(n: int = -1) -> bytes:
                # Let the worker write its diagnostics first
                await asyncio.sleep(1.0)
                raise OSError("Bad file descriptor")

            proc.stdout.read = broken_read
            return proc

        script = "import sys, time\nsys.stderr.write('loading page')\nsys.stderr.flush()\ntime.sleep(30)\n"
        started = asyncio.get_running_loop().time()
        with patch(
            "page_monitor.process.asyncio.create_subprocess_exec", new=spawn_with_broken_stdout
        ):
            with pytest.raises(ProcessReadError) as exc_info:
                await run_process(_python(script, timeout_ms=5000))

        error = exc_info.value
        assert error.category is ErrorCategory.NETWORK
        assert "Bad file descriptor" in error.message
        assert error.stderr == "loading page"
        assert not is_running(error.pid)
        # Resolved by the read error, not by the timer
        assert asyncio.get_running_loop().time() - started < 5

    async def test_nonzero_exit_promotes_stderr(self) -> None:
        script = "import sys\nsys.stderr.write('Authentication failed')\nsys.exit(3)\n"
        with pytest.raises(WorkerExitError) as exc_info:
            await run_process(_python(script))
        assert exc_info.value.message == "Authentication failed"
        assert exc_info.value.classify().category is ErrorCategory.AUTH

    async def test_nonzero_exit_without_stderr(self) -> None:
        with pytest.raises(WorkerExitError) as exc_info:
            await run_process(_python("import sys\nsys.exit(4)\n"))
        assert exc_info.value.message == "Worker exited with status 4"

    async def test_nonzero_exit_with_stdout_is_not_an_error(self) -> None:
        script = "import sys\nprint('{\"content\": \"partial\"}')\nsys.exit(1)\n"
        outcome = await run_process(_python(script))
        assert outcome.returncode == 1
        assert b"partial" in outcome.stdout

    async def test_worker_that_closes_stdout_but_keeps_running(self) -> None:
        script = (
            "import os, sys, time\n"
            "sys.stdout.write('done')\n"
            "sys.stdout.flush()\n"
            "os.close(1)\n"
            "time.sleep(30)\n"
        )
        outcome = await run_process(_python(script, timeout_ms=1000))
        assert outcome.stdout == b"done"
        assert not is_running(outcome.pid)

    async def test_missing_command(self) -> None:
        invocation = ProcessInvocation(command="/nonexistent/page-monitor-worker")
        with pytest.raises(ProcessError) as exc_info:
            await run_process(invocation)
        assert "Could not start worker process" in exc_info.value.message
