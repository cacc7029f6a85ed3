"""Repository facade over the formula, cask and Homebrew providers."""

from __future__ import annotations

import time
from typing import Iterable, List, Optional

from brewpy.core.cache import Cache
from brewpy.core.logging import get_logger
from brewpy.core.models import Cask, Formula, OutdatedPackage, PackageKind
from brewpy.providers import cask, formula, homebrew

log = get_logger(__name__)

Package = Formula | Cask

SEARCH_TTL = 6 * 60 * 60


class Repository:
    """Repository for querying and changing Homebrew packages."""

    def __init__(self, cache: Cache | None = None) -> None:
        self._cache = cache

    @property
    def cache(self) -> Cache:
        if self._cache is None:
            self._cache = Cache("formulae")
        return self._cache

    async def get_all_installed(self, kind_filter: Optional[PackageKind] = None) -> List[Package]:
        """Get all installed packages, optionally filtered by kind.

        Args:
            kind_filter: Optional filter for package kind (formula or cask).

        Returns:
            Installed packages sorted by kind, then name.
        """
        start = time.perf_counter()
        log.info("fetch_packages_start", kind_filter=kind_filter.value if kind_filter else "all")

        pkgs: List[Package] = []

        if kind_filter in (None, PackageKind.FORMULA):
            pkgs.extend((await formula.all_installed()).values())
        if kind_filter in (None, PackageKind.CASK):
            pkgs.extend(await cask.list_installed())

        pkgs.sort(key=lambda p: (p.kind.value, package_name(p).lower()))
        duration_ms = int((time.perf_counter() - start) * 1000)
        log.info(
            "fetch_packages_complete",
            kind_filter=kind_filter.value if kind_filter else "all",
            count=len(pkgs),
            duration_ms=duration_ms,
        )

        return pkgs

    async def get_details(self, name: str, kind: PackageKind = PackageKind.FORMULA) -> Package:
        """Get package details by name and kind."""
        start = time.perf_counter()
        log.info("fetch_package_details_start", package=name, kind=kind.value)

        if kind is PackageKind.FORMULA:
            pkg: Package = await formula.info(name)
        else:
            pkg = await cask.info(name)

        duration_ms = int((time.perf_counter() - start) * 1000)
        log.info(
            "fetch_package_details_complete", package=name, kind=kind.value, duration_ms=duration_ms
        )

        return pkg

    async def search(self, term: str, refresh: bool = False) -> List[Formula]:
        """Find formulae whose name or description contains ``term``.

        The full formula list is expensive to produce, so it is cached.

        Args:
            term: Case-insensitive search text.
            refresh: Drop the cached formula list first.
        """
        if refresh:
            self.cache.clear()

        data = await self.cache.get_or_set(
            "all",
            SEARCH_TTL,
            lambda: formula.query_json(formula.EVERYTHING),
            allow_stale=True,
        )
        q = term.lower()
        matches = [
            f for f in formula.formulae_by_name(data, formula.EVERYTHING).values()
            if q in f.name.lower() or (f.desc and q in f.desc.lower())
        ]
        matches.sort(key=lambda f: f.name)
        log.info("search_complete", term=term, count=len(matches))

        return matches

    async def outdated(self) -> List[OutdatedPackage]:
        return await formula.outdated()

    async def install(self, name: str, options: Iterable[str] = (), force: bool = False) -> Formula:
        return await formula.install(await formula.info(name), options=options, force=force)

    async def uninstall(self, name: str) -> Formula:
        return await formula.uninstall(await formula.info(name))

    async def upgrade(self, name: str | None = None) -> Formula | None:
        if name is None:
            return await formula.upgrade()
        return await formula.upgrade(await formula.info(name))

    async def pin(self, name: str) -> Formula:
        return await formula.pin(await formula.info(name))

    async def unpin(self, name: str) -> Formula:
        return await formula.unpin(await formula.info(name))

    async def update(self) -> None:
        await homebrew.update()


def package_name(pkg: Package) -> str:
    return pkg.name if isinstance(pkg, Formula) else pkg.token
