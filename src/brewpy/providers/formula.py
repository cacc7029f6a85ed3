"""Homebrew formula provider."""

from __future__ import annotations

import time
from typing import Any, Iterable, List

from brewpy.core import config
from brewpy.core.command import BrewCommand
from brewpy.core.errors import (
    BrewCommandError,
    BrewParseError,
    InstallFailedError,
    PackageNotFoundError,
)
from brewpy.core.logging import get_logger
from brewpy.core.models import Formula, OutdatedPackage, PackageKind
from brewpy.core.shell import decode_json, run_capture, run_json
from brewpy.providers.homebrew import check_installed

log = get_logger(__name__)

INSTALLED = "--installed"
EVERYTHING = "--eval-all"


def formulae_from_json(data: Any, command: BrewCommand) -> List[Formula]:
    """Parse the ``formulae`` list of ``brew info --json=v2`` output.

    Raises:
        BrewParseError: If the document or any formula is malformed.
    """
    if not isinstance(data, dict) or not isinstance(data.get("formulae", []), list):
        raise BrewParseError("Expected a 'formulae' list", command=str(command))

    try:
        return [Formula.from_dict(f) for f in data.get("formulae", [])]
    except BrewParseError as e:
        raise e.with_context(command=str(command))


async def info(name: str) -> Formula:
    """Get Homebrew formula info by name, including analytics.

    Args:
        name: Name, alias or full tap name of the formula.

    Returns:
        The parsed Formula.

    Raises:
        BrewNotInstalledError: If brew is missing.
        PackageNotFoundError: If Homebrew does not know the formula.
        BrewParseError: If the output does not match the schema.
    """
    start = time.perf_counter()
    log.debug("formula_info_start", package=name)

    command = BrewCommand("info", "--json=v2", "--analytics", "--formula", name)
    out, err, code = await run_capture(command, timeout=config.Brewpy.query_timeout)
    if code != 0:
        await check_installed()
        log.error("formula_not_found", package=name, error=err)
        raise PackageNotFoundError(package=name, kind="formula", context={"error": err})

    formulae = formulae_from_json(decode_json(command, out), command)
    if not formulae:
        log.error("formula_not_found", package=name)
        raise PackageNotFoundError(package=name, kind="formula")

    duration_ms = int((time.perf_counter() - start) * 1000)
    log.info("formula_info_complete", package=name, duration_ms=duration_ms)

    return formulae[0]


def _selection(selector: str) -> BrewCommand:
    return BrewCommand("info", "--json=v2", selector, "--analytics")


async def query_json(selector: str) -> Any:
    """Raw ``brew info --json=v2`` output for ``--installed`` or ``--eval-all``."""
    return await run_json(_selection(selector), timeout=config.Brewpy.timeout)


def formulae_by_name(data: Any, selector: str) -> dict[str, Formula]:
    return {f.name: f for f in formulae_from_json(data, _selection(selector))}


async def _formulae(selector: str) -> dict[str, Formula]:
    start = time.perf_counter()
    pkgs = formulae_by_name(await query_json(selector), selector)

    duration_ms = int((time.perf_counter() - start) * 1000)
    log.info(
        "formula_list_complete",
        selector=selector,
        count=len(pkgs),
        duration_ms=duration_ms
    )

    return pkgs


async def all_installed() -> dict[str, Formula]:
    """All installed formulae keyed by name."""
    return await _formulae(INSTALLED)


async def all_packages() -> dict[str, Formula]:
    """Every formula of every tapped repository keyed by name."""
    return await _formulae(EVERYTHING)


async def outdated() -> List[OutdatedPackage]:
    """Installed formulae and casks with a newer version available."""
    command = BrewCommand("outdated", "--json=v2")
    data = await run_json(command)
    if not isinstance(data, dict):
        raise BrewParseError("Expected an object", command=str(command))

    try:
        return [
            OutdatedPackage.from_dict(entry, kind)
            for key, kind in (("formulae", PackageKind.FORMULA), ("casks", PackageKind.CASK))
            for entry in data.get(key, [])
        ]
    except BrewParseError as e:
        raise e.with_context(command=str(command))


async def install(formula: Formula, options: Iterable[str] = (), force: bool = False) -> Formula:
    """Install a formula, or reinstall it with different options.

    An installed formula is left alone when every requested option was
    already used for the installed keg, unless ``force`` is set.

    Args:
        formula: The formula to install.
        options: Extra ``brew install`` options, e.g. ``--HEAD``. A single
            option may be passed as a plain string.
        force: Reinstall even if already installed with those options.

    Returns:
        The formula as Homebrew reports it after the install.

    Raises:
        BrewNotInstalledError: If brew is missing.
        InstallFailedError: If brew fails to install the formula.
    """
    options = [options] if isinstance(options, str) else list(options)

    if formula.is_installed and not force:
        used = set(formula.install_options() or [])
        if used.issuperset(options):
            log.info("formula_install_skipped", package=formula.name, options=options)
            return await info(formula.full_name)

    subcommand = "reinstall" if formula.is_installed else "install"
    command = BrewCommand(subcommand, formula.full_name).args(options)
    start = time.perf_counter()
    log.info("formula_install_start", package=formula.name, command=str(command))

    out, err, code = await run_capture(command)
    if code != 0:
        await check_installed()
        log.error("formula_install_failed", package=formula.name, returncode=code, error=err)
        raise InstallFailedError(
            package=formula.name,
            command=str(command),
            returncode=code,
            error=err or out,
        )

    duration_ms = int((time.perf_counter() - start) * 1000)
    log.info("formula_install_complete", package=formula.name, duration_ms=duration_ms)

    return await info(formula.full_name)


async def _change(subcommand: str, formula: Formula) -> Formula:
    """Run ``brew <subcommand> <formula>`` and return the refreshed formula."""
    command = BrewCommand(subcommand, formula.full_name)
    start = time.perf_counter()

    out, err, code = await run_capture(command)
    if code != 0:
        await check_installed()
        log.error(
            f"formula_{subcommand}_failed", package=formula.name, returncode=code, error=err
        )
        raise BrewCommandError(
            command=str(command),
            returncode=code,
            error=err or out,
            context={"package": formula.name},
        )

    duration_ms = int((time.perf_counter() - start) * 1000)
    log.info(f"formula_{subcommand}_complete", package=formula.name, duration_ms=duration_ms)

    return await info(formula.full_name)


async def uninstall(formula: Formula) -> Formula:
    """Uninstall a formula; the returned formula is no longer installed."""
    return await _change("uninstall", formula)


async def pin(formula: Formula) -> Formula:
    """Pin a formula so ``brew upgrade`` leaves it alone."""
    return await _change("pin", formula)


async def unpin(formula: Formula) -> Formula:
    return await _change("unpin", formula)


async def upgrade(formula: Formula | None = None) -> Formula | None:
    """Upgrade one formula, or everything outdated when none is given.

    Returns:
        The refreshed formula, or None when upgrading everything.
    """
    if formula is not None:
        return await _change("upgrade", formula)

    command = BrewCommand("upgrade")
    out, err, code = await run_capture(command)
    if code != 0:
        await check_installed()
        log.error("formula_upgrade_failed", returncode=code, error=err)
        raise BrewCommandError(command=str(command), returncode=code, error=err or out)

    log.info("formula_upgrade_complete")
    return None
