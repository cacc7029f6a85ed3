"""Asynchronous brew execution with timeout and JSON parsing."""

from __future__ import annotations

import asyncio
import json
import os
import shlex
import time
from pathlib import Path
from typing import Any, Optional, Sequence

from brewpy.core import config
from brewpy.core.command import BrewCommand
from brewpy.core.errors import (
    BrewCommandError,
    BrewExecutionError,
    BrewNotInstalledError,
    BrewParseError,
    BrewTimeoutError,
    retry_on_transient,
)
from brewpy.core.logging import get_logger

log = get_logger(__name__)


async def run_capture(
    command: BrewCommand, timeout: Optional[int] = None, executable: Optional[str] = None
) -> tuple[str, str, int]:
    """Run a brew command asynchronously with optional timeout.

    Args:
        command: The brew invocation to run.
        timeout: Timeout in seconds. Defaults to the configured timeout.
        executable: brew executable to use instead of the configured one.

    Returns:
        A tuple of (stdout, stderr, returncode).

    Raises:
        BrewNotInstalledError: If the brew executable does not exist.
        BrewExecutionError: If brew could not be started.
        BrewTimeoutError: If the command times out.
    """
    env = config.Brewpy
    brew = executable or env.brew
    timeout = env.timeout if timeout is None else timeout
    argv = command.argv(brew)
    start = time.perf_counter()
    log.debug("command_start", command=str(command), timeout=timeout)

    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=command.environ(),
        )
    except FileNotFoundError as e:
        log.error("brew_not_found", executable=brew)
        raise BrewNotInstalledError(executable=brew) from e
    except OSError as e:
        log.error("command_spawn_failed", command=str(command), error=str(e))
        raise BrewExecutionError(
            f"Could not run {brew}",
            context={"command": str(command), "error": str(e)}
        ) from e

    try:
        out, err = await asyncio.wait_for(process.communicate(), timeout)
    except asyncio.TimeoutError as e:
        duration_ms = int((time.perf_counter() - start) * 1000)
        log.error(
            "command_timeout",
            command=str(command),
            timeout=timeout,
            duration_ms=duration_ms
        )
        try:
            process.kill()
            await process.wait()
        except ProcessLookupError:
            pass
        raise BrewTimeoutError(
            command=str(command),
            timeout=timeout,
            context={"duration_ms": duration_ms}
        ) from e

    duration_ms = int((time.perf_counter() - start) * 1000)
    log.info(
        "command_complete",
        command=str(command),
        returncode=process.returncode,
        duration_ms=duration_ms
    )

    return (
        out.decode(errors="replace").strip(),
        err.decode(errors="replace").strip(),
        process.returncode,
    )


async def run_checked(command: BrewCommand, timeout: Optional[int] = None) -> str:
    """Run a brew command and return stdout, raising on a non-zero exit.

    Raises:
        BrewCommandError: If brew exits with a non-zero status.
    """
    out, err, code = await run_capture(command, timeout=timeout)

    if code != 0:
        log.error(
            "command_failed",
            command=str(command),
            error=err or out,
            returncode=code
        )
        raise BrewCommandError(command=str(command), returncode=code, error=err or out)

    return out


@retry_on_transient(max_retries=3, base_delay=1.0)
async def run_json(command: BrewCommand, timeout: Optional[int] = None) -> Any:
    """Run a brew query and parse its JSON output.

    Automatically retries on transient errors.

    Args:
        command: The brew invocation to run.
        timeout: Timeout in seconds. Defaults to the configured query timeout.

    Returns:
        Parsed JSON output.

    Raises:
        BrewCommandError: If the command fails (retried automatically).
        BrewTimeoutError: If the command times out (retried automatically).
        BrewParseError: If stdout is not valid JSON.
    """
    if timeout is None:
        timeout = config.Brewpy.query_timeout
    out = await run_checked(command, timeout=timeout)
    return decode_json(command, out)


def decode_json(command: BrewCommand, out: str) -> Any:
    """Decode the JSON stdout of ``command``.

    Raises:
        BrewParseError: If ``out`` is not valid JSON.
    """
    try:
        result = json.loads(out)
    except json.JSONDecodeError as e:
        log.error(
            "json_parse_failed",
            command=str(command),
            error=str(e),
            exc_info=True
        )
        raise BrewParseError(
            "Failed to parse JSON output",
            command=str(command),
            error=str(e),
            context={"output_preview": out[:200]}
        ) from e

    log.debug("json_parsed", command=str(command))
    return result


async def _kill(processes: list[asyncio.subprocess.Process]) -> None:
    """Kill the still running processes and reap all of them."""
    for process in processes:
        if process.returncode is None:
            process.kill()
    await asyncio.gather(*(p.wait() for p in processes), return_exceptions=True)


async def run_pipeline(
    *commands: Sequence[str],
    cwd: Path | None = None,
    timeout: Optional[int] = None,
) -> str:
    """Run external programs connected stdout to stdin, like a shell pipe.

    Args:
        *commands: Argument vectors, first to last.
        cwd: Working directory for every stage.
        timeout: Timeout in seconds for the whole pipeline.

    Returns:
        The stdout of the last stage.

    Raises:
        BrewExecutionError: If a stage could not be started.
        BrewTimeoutError: If the pipeline does not finish in time.
        BrewCommandError: If any stage exits with a non-zero status.
    """
    if not commands:
        raise ValueError("run_pipeline needs at least one command")

    timeout = config.Brewpy.timeout if timeout is None else timeout
    rendered = " | ".join(shlex.join(c) for c in commands)
    start = time.perf_counter()
    log.debug("pipeline_start", command=rendered, timeout=timeout)

    processes: list[asyncio.subprocess.Process] = []
    stdin: int | None = asyncio.subprocess.DEVNULL
    try:
        for i, argv in enumerate(commands):
            last = i == len(commands) - 1
            if last:
                read_fd, write_fd = None, asyncio.subprocess.PIPE
            else:
                read_fd, write_fd = os.pipe()
            try:
                process = await asyncio.create_subprocess_exec(
                    *argv,
                    stdin=stdin,
                    stdout=write_fd,
                    stderr=asyncio.subprocess.PIPE,
                    cwd=cwd,
                )
            except OSError as e:
                if read_fd is not None:
                    os.close(read_fd)
                    os.close(write_fd)
                raise BrewExecutionError(
                    f"Could not run {argv[0]}",
                    context={"command": rendered, "error": str(e)}
                ) from e
            finally:
                if isinstance(stdin, int) and stdin >= 0:
                    os.close(stdin)
            if read_fd is not None:
                os.close(write_fd)
            stdin = read_fd
            processes.append(process)
    except BaseException:
        await _kill(processes)
        raise

    async def finish(process: asyncio.subprocess.Process) -> tuple[bytes, bytes]:
        out, err = await process.communicate()
        return out or b"", err or b""

    try:
        results = await asyncio.wait_for(
            asyncio.gather(*(finish(p) for p in processes)), timeout
        )
    except asyncio.TimeoutError as e:
        await _kill(processes)
        log.error("pipeline_timeout", command=rendered, timeout=timeout)
        raise BrewTimeoutError(command=rendered, timeout=timeout) from e

    duration_ms = int((time.perf_counter() - start) * 1000)
    for argv, process, (_, err) in zip(commands, processes, results):
        if process.returncode != 0:
            log.error(
                "pipeline_failed",
                command=rendered,
                stage=argv[0],
                returncode=process.returncode,
                duration_ms=duration_ms
            )
            raise BrewCommandError(
                command=rendered,
                returncode=process.returncode,
                error=err.decode(errors="replace").strip(),
                context={"stage": argv[0]}
            )

    log.info("pipeline_complete", command=rendered, duration_ms=duration_ms)
    return results[-1][0].decode(errors="replace").strip()
