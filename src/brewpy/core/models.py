"""Typed records mirroring Homebrew's ``brew info --json=v2`` schema."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, Flag, auto
from typing import Any, Mapping, Self, TypeVar

from packaging.version import InvalidVersion
from packaging.version import Version as PackagingVersion

from brewpy.core.errors import BrewParseError

T = TypeVar("T")


class PackageKind(Enum):
    """Enumeration of package kinds."""

    FORMULA = "formula"
    CASK = "cask"


class PackageStatus(Flag):
    """Enumeration of package statuses."""

    NONE = 0
    OUTDATED = auto()
    PINNED = auto()
    NOT_LINKED = auto()
    KEG_ONLY = auto()
    HEAD = auto()
    DEPRECATED = auto()


def _require(data: Mapping[str, Any], key: str, kind: type | tuple[type, ...], record: str) -> Any:
    if key not in data:
        raise BrewParseError(f"Missing '{key}' in {record}", context={"record": record, "key": key})
    return _check(data[key], key, kind, record)


def _optional(
    data: Mapping[str, Any], key: str, kind: type | tuple[type, ...], record: str, default: Any = None
) -> Any:
    value = data.get(key)
    if value is None:
        return default
    return _check(value, key, kind, record)


def _check(value: Any, key: str, kind: type | tuple[type, ...], record: str) -> Any:
    if not isinstance(value, kind):
        raise BrewParseError(
            f"Unexpected type for '{key}' in {record}",
            context={"record": record, "key": key, "found": type(value).__name__},
        )
    return value


def _strings(data: Mapping[str, Any], key: str, record: str) -> list[str]:
    values = _optional(data, key, list, record, default=[])
    return [_check(v, key, str, record) for v in values]


def _records(data: Mapping[str, Any], key: str, cls: type[T], record: str) -> list[T]:
    values = _optional(data, key, list, record, default=[])
    return [cls.from_dict(_check(v, key, dict, record)) for v in values]  # type: ignore[attr-defined]


def _record_map(data: Mapping[str, Any], key: str, cls: type[T], record: str) -> dict[str, T]:
    values = _optional(data, key, dict, record, default={})
    return {
        name: cls.from_dict(_check(v, key, dict, record))  # type: ignore[attr-defined]
        for name, v in values.items()
    }


def _as_version(value: Any, key: str, record: str) -> Version | None:
    if value is None:
        return None
    return Version(str(_check(value, key, (str, int, float), record)))


@dataclass(frozen=True)
class Version:
    """A version string exactly as Homebrew reports it.

    Homebrew versions are free-form, so comparison is only possible after
    ``parse()`` succeeds.
    """

    original: str

    def parse(self) -> PackagingVersion | None:
        """Parse into a comparable version, or ``None`` if not PEP 440 shaped."""
        try:
            return PackagingVersion(self.original)
        except InvalidVersion:
            return None

    def __str__(self) -> str:
        return self.original


@dataclass
class Versions:
    """Available versions of a formula."""

    stable: Version | None = None
    head: str | None = None
    devel: Version | None = None
    bottle: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            stable=_as_version(data.get("stable"), "stable", "versions"),
            head=_optional(data, "head", str, "versions"),
            devel=_as_version(data.get("devel"), "devel", "versions"),
            bottle=bool(data.get("bottle", False)),
        )


@dataclass
class SourceUrl:
    """Download location of a formula's source."""

    url: str
    tag: str | None = None
    revision: int | str | None = None
    branch: str | None = None
    using: str | None = None
    checksum: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            url=_require(data, "url", str, "url"),
            tag=_optional(data, "tag", str, "url"),
            revision=_optional(data, "revision", (int, str), "url"),
            branch=_optional(data, "branch", str, "url"),
            using=_optional(data, "using", str, "url"),
            checksum=_optional(data, "checksum", str, "url"),
        )


@dataclass
class BottleFile:
    """One platform's bottle archive."""

    url: str
    sha256: str
    cellar: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            url=_require(data, "url", str, "bottle file"),
            sha256=_require(data, "sha256", str, "bottle file"),
            cellar=_optional(data, "cellar", str, "bottle file"),
        )


@dataclass
class Bottle:
    """Bottle metadata for one channel, with files keyed by platform tag."""

    rebuild: int = 0
    root_url: str | None = None
    files: dict[str, BottleFile] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            rebuild=_optional(data, "rebuild", int, "bottle", default=0),
            root_url=_optional(data, "root_url", str, "bottle"),
            files=_record_map(data, "files", BottleFile, "bottle"),
        )


@dataclass
class BrewOption:
    """A build option such as ``--with-foo``."""

    option: str
    description: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            option=_require(data, "option", str, "option"),
            description=_optional(data, "description", str, "option", default=""),
        )


@dataclass
class Requirement:
    """A non-formula requirement, e.g. a minimum macOS or Xcode."""

    name: str
    cask: str | None = None
    download: str | None = None
    version: Version | None = None
    contexts: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            name=_require(data, "name", str, "requirement"),
            cask=_optional(data, "cask", str, "requirement"),
            download=_optional(data, "download", str, "requirement"),
            version=_as_version(data.get("version"), "version", "requirement"),
            contexts=_strings(data, "contexts", "requirement"),
        )


@dataclass
class RuntimeDependency:
    """A dependency recorded in an installed keg's receipt."""

    full_name: str
    version: Version | None = None
    declared_directly: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            full_name=_require(data, "full_name", str, "runtime dependency"),
            version=_as_version(data.get("version"), "version", "runtime dependency"),
            declared_directly=bool(data.get("declared_directly", False)),
        )


@dataclass
class Installed:
    """One installed keg of a formula."""

    version: Version
    used_options: list[str] = field(default_factory=list)
    built_as_bottle: bool = False
    poured_from_bottle: bool = False
    time: datetime | None = None
    runtime_dependencies: list[RuntimeDependency] = field(default_factory=list)
    installed_as_dependency: bool = False
    installed_on_request: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        timestamp = _optional(data, "time", (int, float), "installed")
        return cls(
            version=_as_version(_require(data, "version", (str, int, float), "installed"), "version", "installed"),
            used_options=_strings(data, "used_options", "installed"),
            built_as_bottle=bool(data.get("built_as_bottle", False)),
            poured_from_bottle=bool(data.get("poured_from_bottle", False)),
            time=datetime.fromtimestamp(timestamp) if timestamp else None,
            runtime_dependencies=_records(data, "runtime_dependencies", RuntimeDependency, "installed"),
            installed_as_dependency=bool(data.get("installed_as_dependency", False)),
            installed_on_request=bool(data.get("installed_on_request", False)),
        )


ANALYTIC_WINDOWS = ("30d", "90d", "365d")


@dataclass
class Analytic:
    """Install counts per package name for each reporting window."""

    d30: dict[str, int] | None = None
    d90: dict[str, int] | None = None
    d365: dict[str, int] | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        windows = {
            window: _optional(data, window, dict, "analytics") for window in ANALYTIC_WINDOWS
        }
        return cls(d30=windows["30d"], d90=windows["90d"], d365=windows["365d"])

    def window(self, name: str) -> dict[str, int] | None:
        if name not in ANALYTIC_WINDOWS:
            raise ValueError(f"Unknown analytics window {name!r}")
        return getattr(self, f"d{name[:-1]}")

    def total(self, name: str = "30d") -> int:
        return sum((self.window(name) or {}).values())


@dataclass
class Analytics:
    """Install analytics, present when queried with ``--analytics``."""

    install: Analytic = field(default_factory=Analytic)
    install_on_request: Analytic = field(default_factory=Analytic)
    build_error: Analytic = field(default_factory=Analytic)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        def section(key: str) -> Analytic:
            return Analytic.from_dict(_optional(data, key, dict, "analytics", default={}))

        return cls(
            install=section("install"),
            install_on_request=section("install_on_request"),
            build_error=section("build_error"),
        )


@dataclass
class Formula:
    """A Homebrew formula together with its local install state."""

    name: str
    full_name: str
    tap: str | None = None
    aliases: list[str] = field(default_factory=list)
    oldnames: list[str] = field(default_factory=list)
    desc: str | None = None
    license: str | None = None
    homepage: str | None = None
    versions: Versions = field(default_factory=Versions)
    urls: dict[str, SourceUrl] = field(default_factory=dict)
    revision: int = 0
    version_scheme: int = 0
    bottle: dict[str, Bottle] = field(default_factory=dict)
    keg_only: bool = False
    bottle_disabled: bool = False
    options: list[BrewOption] = field(default_factory=list)
    build_dependencies: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    test_dependencies: list[str] = field(default_factory=list)
    recommended_dependencies: list[str] = field(default_factory=list)
    optional_dependencies: list[str] = field(default_factory=list)
    uses_from_macos: list[str | dict[str, Any]] = field(default_factory=list)
    requirements: list[Requirement] = field(default_factory=list)
    conflicts_with: list[str] = field(default_factory=list)
    caveats: str | None = None
    installed: list[Installed] = field(default_factory=list)
    linked_keg: str | None = None
    pinned: bool = False
    outdated: bool = False
    deprecated: bool = False
    disabled: bool = False
    analytics: Analytics | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Build a Formula from one entry of ``brew info --json`` output.

        Raises:
            BrewParseError: If a required field is missing or mistyped.
        """
        record = "formula"
        _check(data, "formula", dict, record)
        name = _require(data, "name", str, record)

        # Homebrew replaced the single "oldname" with an "oldnames" list.
        oldnames = _strings(data, "oldnames", record)
        if not oldnames and (oldname := _optional(data, "oldname", str, record)):
            oldnames = [oldname]

        uses_from_macos = [
            _check(entry, "uses_from_macos", (str, dict), record)
            for entry in _optional(data, "uses_from_macos", list, record, default=[])
        ]
        analytics = _optional(data, "analytics", dict, record)

        return cls(
            name=name,
            full_name=_optional(data, "full_name", str, record, default=name),
            tap=_optional(data, "tap", str, record),
            aliases=_strings(data, "aliases", record),
            oldnames=oldnames,
            desc=_optional(data, "desc", str, record),
            license=_optional(data, "license", str, record),
            homepage=_optional(data, "homepage", str, record),
            versions=Versions.from_dict(_optional(data, "versions", dict, record, default={})),
            urls=_record_map(data, "urls", SourceUrl, record),
            revision=_optional(data, "revision", int, record, default=0),
            version_scheme=_optional(data, "version_scheme", int, record, default=0),
            bottle=_record_map(data, "bottle", Bottle, record),
            keg_only=bool(data.get("keg_only", False)),
            bottle_disabled=bool(data.get("bottle_disabled", False)),
            options=_records(data, "options", BrewOption, record),
            build_dependencies=_strings(data, "build_dependencies", record),
            dependencies=_strings(data, "dependencies", record),
            test_dependencies=_strings(data, "test_dependencies", record),
            recommended_dependencies=_strings(data, "recommended_dependencies", record),
            optional_dependencies=_strings(data, "optional_dependencies", record),
            uses_from_macos=uses_from_macos,
            requirements=_records(data, "requirements", Requirement, record),
            conflicts_with=_strings(data, "conflicts_with", record),
            caveats=_optional(data, "caveats", str, record),
            installed=_records(data, "installed", Installed, record),
            linked_keg=_optional(data, "linked_keg", str, record),
            pinned=bool(data.get("pinned", False)),
            outdated=bool(data.get("outdated", False)),
            deprecated=bool(data.get("deprecated", False)),
            disabled=bool(data.get("disabled", False)),
            analytics=Analytics.from_dict(analytics) if analytics is not None else None,
        )

    @property
    def kind(self) -> PackageKind:
        return PackageKind.FORMULA

    @property
    def is_installed(self) -> bool:
        return bool(self.installed)

    def install_options(self) -> list[str] | None:
        """Options the first installed keg was built with, or None."""
        if not self.installed:
            return None
        return self.installed[0].used_options

    @property
    def installed_versions(self) -> list[str]:
        return [str(keg.version) for keg in self.installed]

    @property
    def latest_version(self) -> str | None:
        if self.versions.stable is not None:
            return str(self.versions.stable)
        return self.versions.head

    @property
    def status(self) -> PackageStatus:
        from brewpy.analysis.status import derive_status

        return derive_status(self)


@dataclass
class Cask:
    """A Homebrew cask together with its local install state."""

    token: str
    full_token: str
    tap: str | None = None
    name: list[str] = field(default_factory=list)
    desc: str | None = None
    homepage: str | None = None
    url: str | None = None
    version: str | None = None
    installed: str | None = None
    installed_time: datetime | None = None
    outdated: bool = False
    auto_updates: bool = False
    deprecated: bool = False
    disabled: bool = False
    caveats: str | None = None
    depends_on: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Build a Cask from one entry of ``brew info --json=v2 --cask`` output.

        Raises:
            BrewParseError: If a required field is missing or mistyped.
        """
        record = "cask"
        _check(data, "cask", dict, record)
        token = _require(data, "token", str, record)
        timestamp = _optional(data, "installed_time", (int, float), record)
        version = _optional(data, "version", (str, int, float), record)

        return cls(
            token=token,
            full_token=_optional(data, "full_token", str, record, default=token),
            tap=_optional(data, "tap", str, record),
            name=_strings(data, "name", record),
            desc=_optional(data, "desc", str, record),
            homepage=_optional(data, "homepage", str, record),
            url=_optional(data, "url", str, record),
            version=str(version) if version is not None else None,
            installed=_optional(data, "installed", str, record),
            installed_time=datetime.fromtimestamp(timestamp) if timestamp else None,
            outdated=bool(data.get("outdated", False)),
            auto_updates=bool(data.get("auto_updates", False)),
            deprecated=bool(data.get("deprecated", False)),
            disabled=bool(data.get("disabled", False)),
            caveats=_optional(data, "caveats", str, record),
            depends_on=_optional(data, "depends_on", dict, record, default={}),
        )

    @property
    def kind(self) -> PackageKind:
        return PackageKind.CASK

    @property
    def is_installed(self) -> bool:
        return self.installed is not None

    @property
    def installed_versions(self) -> list[str]:
        return [self.installed] if self.installed is not None else []

    @property
    def latest_version(self) -> str | None:
        return self.version

    @property
    def status(self) -> PackageStatus:
        from brewpy.analysis.status import derive_status

        return derive_status(self)


@dataclass
class OutdatedPackage:
    """An entry of ``brew outdated --json=v2``."""

    name: str
    kind: PackageKind
    installed_versions: list[str] = field(default_factory=list)
    current_version: str | None = None
    pinned: bool = False
    pinned_version: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], kind: PackageKind) -> Self:
        record = "outdated"
        _check(data, "outdated", dict, record)
        return cls(
            name=_require(data, "name", str, record),
            kind=kind,
            installed_versions=_strings(data, "installed_versions", record),
            current_version=_optional(data, "current_version", str, record),
            pinned=bool(data.get("pinned", False)),
            pinned_version=_optional(data, "pinned_version", str, record),
        )
