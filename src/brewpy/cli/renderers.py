"""Renderers for displaying package information in the CLI using Rich."""

from typing import Iterable

from rich import box
from rich.console import Console
from rich.table import Table

from brewpy.core.models import Cask, Formula, OutdatedPackage, PackageStatus
from brewpy.core.repo import Package, package_name

console = Console()

STATUS_LABELS = {
    PackageStatus.OUTDATED: "[red]Outdated[/red]",
    PackageStatus.PINNED: "[yellow]Pinned[/yellow]",
    PackageStatus.NOT_LINKED: "[blue]Not Linked[/blue]",
    PackageStatus.KEG_ONLY: "[magenta]Keg-Only[/magenta]",
    PackageStatus.HEAD: "[cyan]HEAD[/cyan]",
    PackageStatus.DEPRECATED: "[red]Deprecated[/red]",
}


def status_to_str(status: PackageStatus) -> str:
    """Convert PackageStatus to a human-readable string with color coding.

    Args:
        status: The PackageStatus to convert.

    Returns:
        A human-readable string representation of the PackageStatus.
    """
    if status == PackageStatus.NONE:
        return "[green]Up-to-date[/green]"
    bits = [label for flag, label in STATUS_LABELS.items() if flag in status]
    return ", ".join(bits)


def package_table(pkgs: Iterable[Package]) -> Table:
    """Create a Rich Table listing packages.

    Args:
        pkgs: Formulae and casks to display.

    Returns:
        A Rich Table with one row per package.
    """
    table = Table(box=box.MINIMAL_HEAVY_HEAD)
    table.add_column("Kind", style="bold")
    table.add_column("Name", style="bold")
    table.add_column("Installed")
    table.add_column("Latest")
    table.add_column("Status")
    table.add_column("Description", style="dim")

    for p in pkgs:
        table.add_row(
            p.kind.value,
            package_name(p),
            ", ".join(p.installed_versions),
            p.latest_version or "",
            status_to_str(p.status),
            p.desc or "",
        )

    return table


def outdated_table(entries: Iterable[OutdatedPackage]) -> Table:
    table = Table(box=box.MINIMAL_HEAVY_HEAD)
    table.add_column("Kind", style="bold")
    table.add_column("Name", style="bold")
    table.add_column("Installed")
    table.add_column("Current")
    table.add_column("Pinned")

    for entry in entries:
        table.add_row(
            entry.kind.value,
            entry.name,
            ", ".join(entry.installed_versions),
            entry.current_version or "",
            entry.pinned_version or ("yes" if entry.pinned else ""),
        )

    return table


def package_details(pkg: Package) -> Table:
    """Display detailed information about a formula or cask.

    Args:
        pkg: The package to display information for.

    Returns:
        A Rich Table of field/value rows.
    """
    t = Table(box=box.MINIMAL_HEAVY_HEAD)
    t.add_column("Field", style="bold")
    t.add_column("Value")
    t.add_row("Name", package_name(pkg))
    t.add_row("Kind", pkg.kind.value)
    t.add_row("Description", pkg.desc or "")
    t.add_row("Homepage", pkg.homepage or "")
    t.add_row("Installed Versions", ", ".join(pkg.installed_versions))
    t.add_row("Latest", pkg.latest_version or "")
    t.add_row("Status", status_to_str(pkg.status))
    if pkg.tap:
        t.add_row("Tap", pkg.tap)

    if isinstance(pkg, Formula):
        _formula_rows(t, pkg)
    elif isinstance(pkg, Cask) and pkg.name:
        t.add_row("App Name", ", ".join(pkg.name))

    if pkg.caveats:
        t.add_row("Caveats", pkg.caveats.strip())

    return t


def _formula_rows(t: Table, pkg: Formula) -> None:
    if pkg.license:
        t.add_row("License", pkg.license)
    if pkg.dependencies:
        t.add_row("Depends on", ", ".join(pkg.dependencies))
    if pkg.build_dependencies:
        t.add_row("Build deps", ", ".join(pkg.build_dependencies))
    if options := pkg.install_options():
        t.add_row("Built with", " ".join(options))
    if pkg.linked_keg:
        t.add_row("Linked keg", pkg.linked_keg)
    if pkg.bottle:
        platforms = sorted({tag for b in pkg.bottle.values() for tag in b.files})
        t.add_row("Bottles", ", ".join(platforms))
    if pkg.analytics:
        t.add_row(
            "Installs (30/90/365d)",
            " / ".join(str(pkg.analytics.install.total(w)) for w in ("30d", "90d", "365d")),
        )
