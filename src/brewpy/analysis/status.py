"""Derive package status flags from parsed package records."""

from __future__ import annotations

from typing import TYPE_CHECKING

from brewpy.core.models import PackageStatus

if TYPE_CHECKING:
    from brewpy.core.models import Cask, Formula


def derive_status(pkg: Formula | Cask) -> PackageStatus:
    """Derive the PackageStatus of a formula or cask."""
    status = PackageStatus.NONE

    if pkg.outdated:
        status |= PackageStatus.OUTDATED
    if pkg.deprecated or pkg.disabled:
        status |= PackageStatus.DEPRECATED

    if pkg.kind.value == "cask":
        return status

    if pkg.pinned:
        status |= PackageStatus.PINNED
    if pkg.keg_only:
        status |= PackageStatus.KEG_ONLY
    # keg-only formulae are never linked, so only flag the rest
    elif pkg.installed and not pkg.linked_keg:
        status |= PackageStatus.NOT_LINKED
    if any(str(keg.version).startswith("HEAD") for keg in pkg.installed):
        status |= PackageStatus.HEAD

    return status
