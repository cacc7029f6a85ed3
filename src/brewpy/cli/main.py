"""CLI entry point for brewpy."""

from __future__ import annotations

import asyncio
import sys
from typing import List, Optional

import typer

from brewpy.cli.renderers import console, outdated_table, package_details, package_table
from brewpy.core.errors import (
    EXIT_SYSTEM_ERROR,
    EXIT_TRANSIENT_ERROR,
    EXIT_USER_ERROR,
    BrewError,
    PackageNotFoundError,
    SystemError,
    TransientError,
    UserError,
    format_error_message,
    suggest_search,
)
from brewpy.core.logging import configure_logging, get_logger
from brewpy.core.models import PackageKind
from brewpy.core.repo import Repository, package_name
from brewpy.providers import homebrew

app = typer.Typer(help="brewpy: typed access to the Homebrew package manager.")

log = get_logger(__name__)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to stderr")) -> None:
    configure_logging(level="DEBUG" if verbose else None, enable_console=verbose, force=True)


def handle_error(error: Exception) -> int:
    """Report an error and return the matching exit code.

    Args:
        error: The exception to handle.

    Returns:
        An integer exit code.
    """
    if isinstance(error, BrewError):
        log.error(
            "cli_error",
            error_type=type(error).__name__,
            message=error.message,
            context=error.context,
        )
        console.print(f"\n{format_error_message(error)}\n", style="bold red")

        if isinstance(error, PackageNotFoundError):
            package = error.context.get("package", "")
            console.print(suggest_search(package), style="dim")

        if isinstance(error, TransientError):
            return EXIT_TRANSIENT_ERROR
        elif isinstance(error, UserError):
            return EXIT_USER_ERROR
        elif isinstance(error, SystemError):
            return EXIT_SYSTEM_ERROR
        else:
            return EXIT_USER_ERROR
    else:
        log.error(
            "unexpected_error",
            error=str(error),
            exc_info=True
        )
        console.print(
            f"\n⚠️ Unexpected error occurred: {error}\n",
            style="bold red"
        )
        return EXIT_SYSTEM_ERROR


@app.command("list")
def list_packages(
    kind: Optional[PackageKind] = typer.Option(
        None, "--kind", "-k", help="formula | cask (default: both)"
    ),
    outdated: bool = typer.Option(False, help="Only outdated"),
    search: Optional[str] = typer.Option(
        None, "--search", "-s", help="Filter by text"
    )
) -> None:
    """List installed packages."""
    try:
        repo = Repository()
        pkgs = asyncio.run(repo.get_all_installed(kind_filter=kind))
        if outdated:
            pkgs = [p for p in pkgs if p.outdated]
        if search:
            q = search.lower()
            pkgs = [p for p in pkgs if q in package_name(p).lower() or (p.desc and q in p.desc.lower())]

        console.print(package_table(pkgs))
    except Exception as e:
        sys.exit(handle_error(e))


@app.command()
def info(name: str, kind: PackageKind = typer.Option(PackageKind.FORMULA, "--kind", "-k")) -> None:
    """Show detailed information about a package."""
    try:
        repo = Repository()
        pkg = asyncio.run(repo.get_details(name, kind))

        console.print(package_details(pkg))
    except Exception as e:
        sys.exit(handle_error(e))


@app.command()
def search(
    term: str,
    refresh: bool = typer.Option(False, "--refresh", help="Ignore the cached formula list"),
) -> None:
    """Search all formulae by name or description."""
    try:
        repo = Repository()
        pkgs = asyncio.run(repo.search(term, refresh=refresh))

        console.print(package_table(pkgs))
    except Exception as e:
        sys.exit(handle_error(e))


@app.command()
def outdated() -> None:
    """List installed packages with newer versions available."""
    try:
        entries = asyncio.run(Repository().outdated())

        console.print(outdated_table(entries))
    except Exception as e:
        sys.exit(handle_error(e))


@app.command()
def install(
    name: str,
    options: Optional[List[str]] = typer.Argument(None, help="Extra brew install options, given after --"),
    force: bool = typer.Option(False, "--force", "-f", help="Reinstall even if installed"),
) -> None:
    """Install a formula, reinstalling when the options differ."""
    try:
        pkg = asyncio.run(Repository().install(name, list(options or []), force=force))

        console.print(f"✅ {pkg.name} {', '.join(pkg.installed_versions)} installed", style="green")
    except Exception as e:
        sys.exit(handle_error(e))


@app.command()
def uninstall(name: str) -> None:
    """Uninstall a formula."""
    try:
        pkg = asyncio.run(Repository().uninstall(name))

        console.print(f"✅ {pkg.name} uninstalled", style="green")
    except Exception as e:
        sys.exit(handle_error(e))


@app.command()
def upgrade(name: Optional[str] = typer.Argument(None, help="Formula to upgrade (default: all)")) -> None:
    """Upgrade one formula or everything outdated."""
    try:
        pkg = asyncio.run(Repository().upgrade(name))

        target = pkg.name if pkg else "all packages"
        console.print(f"✅ {target} upgraded", style="green")
    except Exception as e:
        sys.exit(handle_error(e))


@app.command()
def pin(name: str) -> None:
    """Pin a formula at its installed version."""
    try:
        pkg = asyncio.run(Repository().pin(name))

        console.print(f"📌 {pkg.name} pinned", style="green")
    except Exception as e:
        sys.exit(handle_error(e))


@app.command()
def unpin(name: str) -> None:
    """Allow a pinned formula to be upgraded again."""
    try:
        pkg = asyncio.run(Repository().unpin(name))

        console.print(f"✅ {pkg.name} unpinned", style="green")
    except Exception as e:
        sys.exit(handle_error(e))


@app.command()
def update() -> None:
    """Fetch the newest Homebrew and formula definitions."""
    try:
        asyncio.run(Repository().update())

        console.print("✅ Homebrew updated", style="green")
    except Exception as e:
        sys.exit(handle_error(e))


@app.command()
def doctor() -> None:
    """Check that Homebrew is installed and report its version."""
    try:
        version = asyncio.run(homebrew.version())

        console.print(f"✅ Homebrew {version} is installed", style="green")
    except Exception as e:
        sys.exit(handle_error(e))


if __name__ == "__main__":
    app()
