"""Operations on the Homebrew installation itself."""

from __future__ import annotations

import re
import shutil
import time
from pathlib import Path

from brewpy.core.command import BrewCommand
from brewpy.core.errors import (
    BrewCommandError,
    BrewError,
    BrewExecutionError,
    BrewNotInstalledError,
    BrewParseError,
)
from brewpy.core.logging import get_logger
from brewpy.core.models import Version
from brewpy.core.shell import run_capture, run_pipeline

log = get_logger(__name__)

TARBALL_URL = "https://github.com/Homebrew/brew/tarball/master"
DEFAULT_PREFIX = Path("/usr/local")

_VERSION_RE = re.compile(r"^Homebrew\s+(\S+)")


async def check_installed(executable: str | None = None) -> None:
    """Make sure brew exists and runs.

    Args:
        executable: brew executable to check instead of the configured one.

    Raises:
        BrewNotInstalledError: If ``brew --version`` cannot be run or fails.
    """
    _, err, code = await run_capture(BrewCommand("--version"), timeout=30, executable=executable)
    if code != 0:
        log.error("brew_check_failed", returncode=code, error=err)
        raise BrewNotInstalledError(
            "Homebrew is installed but does not run",
            executable=executable,
            context={"returncode": code, "error": err},
        )


async def version() -> Version:
    """The version of the installed Homebrew.

    Raises:
        BrewNotInstalledError: If brew is missing.
        BrewParseError: If the version banner is unrecognised.
    """
    out, err, code = await run_capture(BrewCommand("--version"), timeout=30)
    if code != 0:
        raise BrewNotInstalledError(
            "Homebrew is installed but does not run",
            context={"returncode": code, "error": err},
        )

    first_line = out.splitlines()[0] if out else ""
    if not (match := _VERSION_RE.match(first_line)):
        raise BrewParseError(
            "Unrecognised brew --version output",
            command="brew --version",
            context={"output_preview": first_line[:200]},
        )
    return Version(match.group(1))


async def update() -> None:
    """Fetch the newest Homebrew and formula definitions with ``brew update``.

    Raises:
        BrewNotInstalledError: If brew is missing.
        BrewCommandError: If the update fails.
    """
    start = time.perf_counter()
    command = BrewCommand("update")
    out, err, code = await run_capture(command)

    if code != 0:
        await check_installed()
        log.error("brew_update_failed", returncode=code, error=err or out)
        raise BrewCommandError(command=str(command), returncode=code, error=err or out)

    duration_ms = int((time.perf_counter() - start) * 1000)
    log.info("brew_update_complete", duration_ms=duration_ms)


async def install_homebrew(prefix: Path | str = DEFAULT_PREFIX) -> Path:
    """Install Homebrew from the upstream tarball into ``<prefix>/homebrew``.

    This is the "untar anywhere" installation: the tarball is downloaded
    with curl and unpacked with tar, nothing else is configured. A failed download or a brew that
    does not run leaves no partial checkout behind.

    Args:
        prefix: Directory that will contain the ``homebrew`` checkout.

    Returns:
        Path of the new brew executable.

    Raises:
        BrewCommandError: If the download or extraction fails.
        BrewNotInstalledError: If the unpacked brew does not run.
    """
    prefix = Path(prefix)
    target = prefix / "homebrew"
    start = time.perf_counter()
    log.info("homebrew_install_start", path=str(target))

    try:
        target.mkdir(parents=True)
    except OSError as e:
        log.error("homebrew_install_failed", path=str(target), error=str(e))
        raise BrewExecutionError(
            f"Cannot create {target}",
            context={"path": str(target), "error": str(e)}
        ) from e

    brew = target / "bin" / "brew"
    try:
        await run_pipeline(
            ["curl", "-fsSL", TARBALL_URL],
            ["tar", "xz", "--strip", "1", "-C", "homebrew"],
            cwd=prefix,
        )
        await check_installed(str(brew))
    except BrewError as e:
        log.error("homebrew_install_failed", path=str(target), error=str(e))
        shutil.rmtree(target, ignore_errors=True)
        raise

    duration_ms = int((time.perf_counter() - start) * 1000)
    log.info("homebrew_install_complete", path=str(target), duration_ms=duration_ms)
    return brew
