"""Homebrew Cask provider."""

from __future__ import annotations

import time
from typing import Any, List

from brewpy.core import config
from brewpy.core.command import BrewCommand
from brewpy.core.errors import BrewParseError, PackageNotFoundError
from brewpy.core.logging import get_logger
from brewpy.core.models import Cask
from brewpy.core.shell import decode_json, run_capture, run_checked, run_json
from brewpy.providers.homebrew import check_installed

log = get_logger(__name__)

BATCH_SIZE = 30


def casks_from_json(data: Any, command: BrewCommand) -> List[Cask]:
    if not isinstance(data, dict) or not isinstance(data.get("casks", []), list):
        raise BrewParseError("Expected a 'casks' list", command=str(command))

    try:
        return [Cask.from_dict(c) for c in data.get("casks", [])]
    except BrewParseError as e:
        raise e.with_context(command=str(command))


async def list_installed() -> List[Cask]:
    """List installed Homebrew casks.

    Returns:
        A list of installed Cask instances.
    """
    start = time.perf_counter()
    log.debug("cask_list_start")

    out = await run_checked(BrewCommand("list", "--cask", "-1"), timeout=config.Brewpy.query_timeout)
    names = [name.strip() for name in out.split("\n") if name.strip()]
    pkgs: List[Cask] = []
    log.debug("cask_list_names", count=len(names))

    for i in range(0, len(names), BATCH_SIZE):
        batch = names[i : i + BATCH_SIZE]
        command = BrewCommand("info", "--json=v2", "--cask", *batch)
        pkgs.extend(casks_from_json(await run_json(command), command))

    duration_ms = int((time.perf_counter() - start) * 1000)
    log.info(
        "cask_list_complete",
        count=len(pkgs),
        duration_ms=duration_ms
    )

    return pkgs


async def info(token: str) -> Cask:
    """Get cask info by token.

    Args:
        token: Token of the cask, e.g. ``firefox``.

    Returns:
        The parsed Cask.

    Raises:
        BrewNotInstalledError: If brew is missing.
        PackageNotFoundError: If Homebrew does not know the cask.
    """
    start = time.perf_counter()
    log.debug("cask_info_start", package=token)

    command = BrewCommand("info", "--json=v2", "--cask", token)
    out, err, code = await run_capture(command, timeout=config.Brewpy.query_timeout)
    if code != 0:
        await check_installed()
        log.error("cask_not_found", package=token, error=err)
        raise PackageNotFoundError(package=token, kind="cask", context={"error": err})

    casks = casks_from_json(decode_json(command, out), command)
    if not casks:
        log.error("cask_not_found", package=token)
        raise PackageNotFoundError(package=token, kind="cask")

    duration_ms = int((time.perf_counter() - start) * 1000)
    log.info(
        "cask_info_complete",
        package=token,
        duration_ms=duration_ms
    )

    return casks[0]
