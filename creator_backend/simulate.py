"""
Workflow simulation via the CRE CLI.

Runs `cre workflow simulate workflows --target=<target>` inside the
orchestrator directory and folds stdout/stderr into a single transcript.
Every failure mode (non-zero exit, timeout, oversized output, launch
error) comes back as a SimulationResult with succeeded=False.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import signal
import sys
from dataclasses import dataclass

from .runtime import OrchestratorConfig

logger = logging.getLogger(__name__)

_READ_SIZE = 64 * 1024


@dataclass
class SimulationResult:
    """Outcome of a single simulation run."""

    succeeded: bool
    output: str

    def to_dict(self) -> dict:
        return {"success": self.succeeded, "output": self.output}


def build_simulation_command(
    config: OrchestratorConfig,
    platform: str | None = None,
) -> list[str]:
    """
    Build the interpreter argv that runs the simulation.

    PowerShell on Windows, /bin/sh everywhere else. On POSIX the CLI is
    exec'd in place of the shell.
    """
    platform = sys.platform if platform is None else platform
    root = str(config.orchestrator_root)
    args = f"workflow simulate workflows --target={config.simulation_target}"

    if platform.startswith("win"):
        script = f'cd "{root}"; & "{config.cre_cli}" {args}'
        return ["powershell.exe", "-NoProfile", "-Command", script]

    script = f"cd {shlex.quote(root)} && exec {shlex.quote(config.cre_cli)} {args}"
    return ["/bin/sh", "-c", script]


def _kill(proc: asyncio.subprocess.Process) -> None:
    """Kill the simulator along with anything it spawned."""
    try:
        if os.name == "posix":
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except (ProcessLookupError, PermissionError):
        pass


async def _drain(
    proc: asyncio.subprocess.Process,
    stream: asyncio.StreamReader,
    buf: bytearray,
    limit: int,
) -> bool:
    """Read `stream` into `buf`. Returns True if `limit` was exceeded."""
    while True:
        chunk = await stream.read(_READ_SIZE)
        if not chunk:
            return False
        room = limit - len(buf)
        if len(chunk) > room:
            buf.extend(chunk[:room])
            _kill(proc)
            return True
        buf.extend(chunk)


def _decode(data: bytearray) -> str:
    return bytes(data).decode("utf-8", errors="replace")


def _failure(stdout: str, stderr: str, message: str) -> SimulationResult:
    return SimulationResult(succeeded=False, output=f"{stdout}\n{stderr}\n{message}")


async def run_simulation(config: OrchestratorConfig) -> SimulationResult:
    """
    Run one workflow simulation.

    Never raises for process-level problems; they are reported through
    the returned SimulationResult.
    """
    argv = build_simulation_command(config)
    command = argv[-1]
    logger.info("[simulate] %s", command)

    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=os.name == "posix",
        )
    except OSError as e:
        logger.error("[simulate] failed to launch %s: %s", argv[0], e)
        return _failure("", "", str(e))

    stdout_buf = bytearray()
    stderr_buf = bytearray()

    async def collect() -> tuple[bool, bool]:
        overflow = await asyncio.gather(
            _drain(proc, proc.stdout, stdout_buf, config.max_output_bytes),
            _drain(proc, proc.stderr, stderr_buf, config.max_output_bytes),
        )
        await proc.wait()
        return overflow[0], overflow[1]

    try:
        stdout_over, stderr_over = await asyncio.wait_for(
            collect(), timeout=config.simulation_timeout
        )
    except asyncio.TimeoutError:
        _kill(proc)
        await proc.wait()
        logger.warning("[simulate] timed out after %ss", config.simulation_timeout)
        return _failure(
            _decode(stdout_buf),
            _decode(stderr_buf),
            f"Command timed out after {config.simulation_timeout:g}s: {command}",
        )

    stdout = _decode(stdout_buf)
    stderr = _decode(stderr_buf)

    if stdout_over or stderr_over:
        stream = "stdout" if stdout_over else "stderr"
        logger.warning("[simulate] %s exceeded %d bytes", stream, config.max_output_bytes)
        return _failure(stdout, stderr, f"{stream} maxBuffer length exceeded")

    if proc.returncode != 0:
        logger.warning("[simulate] exited with code %s", proc.returncode)
        return _failure(
            stdout,
            stderr,
            f"Command failed with exit code {proc.returncode}: {command}",
        )

    output = stdout + ("\n" + stderr if stderr else "")
    return SimulationResult(succeeded=True, output=output)


class SimulationRunner:
    """
    Runs simulations for the web app.

    With `serialize_simulations` set, concurrent requests wait for the
    running simulation to finish; otherwise each request gets its own
    independent subprocess.
    """

    def __init__(self, config: OrchestratorConfig):
        self.config = config
        self._lock = asyncio.Lock() if config.serialize_simulations else None

    async def run(self) -> SimulationResult:
        if self._lock is None:
            return await run_simulation(self.config)
        async with self._lock:
            return await run_simulation(self.config)
