"""Runtime helpers for invoking external tools (scanner, go toolchain)."""

import asyncio
import logging
import shlex
import shutil
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from scanledger.errors import CommandError, ScanTimeoutError

logger = logging.getLogger(__name__)

# Seconds between SIGTERM and SIGKILL for a process past its deadline.
TERMINATE_GRACE = 3.0

# Seconds between peak-memory samples of a running process.
SAMPLE_INTERVAL = 0.05


@dataclass
class CommandResult:
    """Captured subprocess result. stdout stays raw for stream decoding."""

    command: list[str]
    returncode: int
    stdout: bytes
    stderr: str
    elapsed: float = 0.0

    def stdout_text(self) -> str:
        return self.stdout.decode(errors="replace")


@dataclass
class ProcessUsage:
    """Resource usage of one child process, filled in while it runs."""

    max_rss: int = 0  # kB


def resolve_binary(name: str) -> str | None:
    """Return absolute path for a binary name when available."""
    return shutil.which(name)


async def _sample_peak_memory(
    pid: int, memory_probe: Callable[[int], int], usage: ProcessUsage
) -> None:
    while True:
        usage.max_rss = max(usage.max_rss, memory_probe(pid))
        await asyncio.sleep(SAMPLE_INTERVAL)


async def run_command(
    command: list[str],
    timeout: float | None = None,
    allowed_exit_codes: Iterable[int] = (0,),
    cwd: Path | str | None = None,
    error_class: type[CommandError] = CommandError,
    memory_probe: Callable[[int], int] | None = None,
    usage: ProcessUsage | None = None,
) -> CommandResult:
    """Run a subprocess command and capture its output.

    A process still running after ``timeout`` seconds is terminated, then
    killed, and ScanTimeoutError is raised. An exit code outside
    ``allowed_exit_codes`` raises ``error_class`` carrying stderr.

    When both ``memory_probe`` and ``usage`` are given, the probe is called
    with the child's pid until it exits and ``usage.max_rss`` keeps the
    largest value seen. Only this child is measured.
    """
    cmd_preview = " ".join(shlex.quote(part) for part in command)
    logger.debug("running: %s", cmd_preview)
    started = time.perf_counter()
    process = await asyncio.create_subprocess_exec(
        *command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=str(cwd) if cwd is not None else None,
    )
    sampler = None
    if memory_probe is not None and usage is not None:
        sampler = asyncio.create_task(_sample_peak_memory(process.pid, memory_probe, usage))
    try:
        if timeout is None:
            stdout, stderr = await process.communicate()
        else:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except TimeoutError:
        process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=TERMINATE_GRACE)
        except TimeoutError:
            process.kill()
            await process.wait()
        logger.warning("command timed out after %ss: %s", timeout, cmd_preview)
        raise ScanTimeoutError(f"command timed out after {timeout}s: {cmd_preview}") from None
    finally:
        if sampler is not None:
            sampler.cancel()

    result = CommandResult(
        command=list(command),
        returncode=process.returncode,
        stdout=stdout,
        stderr=stderr.decode(errors="replace"),
        elapsed=time.perf_counter() - started,
    )
    logger.debug("done (%.2fs): exit=%s", result.elapsed, result.returncode)
    if result.returncode not in set(allowed_exit_codes):
        raise error_class(result.stderr, result.returncode)
    return result
