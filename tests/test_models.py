"""Tests for parsing Homebrew JSON into typed records."""

from __future__ import annotations

from datetime import datetime

import pytest
from packaging.version import Version as PackagingVersion

from brewpy.core.errors import BrewParseError
from brewpy.core.models import (
    Analytic,
    Cask,
    Formula,
    OutdatedPackage,
    PackageKind,
    PackageStatus,
    Version,
)


@pytest.fixture
def wget(load_fixture) -> Formula:
    return Formula.from_dict(load_fixture("wget.json")["formulae"][0])


def test_formula_basic_fields(wget: Formula) -> None:
    assert wget.name == "wget"
    assert wget.full_name == "wget"
    assert wget.tap == "homebrew/core"
    assert wget.desc == "Internet file retriever"
    assert wget.license == "GPL-3.0-or-later"
    assert wget.kind is PackageKind.FORMULA


def test_formula_versions(wget: Formula) -> None:
    assert str(wget.versions.stable) == "1.24.5"
    assert wget.versions.stable.parse() >= PackagingVersion("1.9")
    assert wget.versions.head == "HEAD"
    assert wget.versions.bottle is True
    assert wget.latest_version == "1.24.5"


def test_formula_urls_and_bottles(wget: Formula) -> None:
    assert wget.urls["stable"].url.endswith("wget-1.24.5.tar.gz")
    assert wget.urls["stable"].revision is None
    assert wget.urls["head"].checksum is None

    bottle = wget.bottle["stable"]
    assert bottle.rebuild == 0
    assert set(bottle.files) == {"arm64_sonoma", "x86_64_linux"}
    assert bottle.files["arm64_sonoma"].cellar == "/opt/homebrew/Cellar"


def test_formula_dependencies(wget: Formula) -> None:
    assert wget.build_dependencies == ["pkg-config"]
    assert "openssl@3" in wget.dependencies
    assert wget.uses_from_macos == ["zlib", {"perl": "build"}]


def test_formula_installed_kegs(wget: Formula) -> None:
    assert wget.is_installed
    assert wget.installed_versions == ["1.24.5"]
    assert wget.install_options() == []

    keg = wget.installed[0]
    assert keg.poured_from_bottle
    assert keg.installed_on_request
    assert keg.time == datetime.fromtimestamp(1710000000)
    names = [d.full_name for d in keg.runtime_dependencies]
    assert names == ["libunistring", "openssl@3", "ca-certificates"]
    assert keg.runtime_dependencies[2].declared_directly is False


def test_formula_analytics(wget: Formula) -> None:
    assert wget.analytics is not None
    assert wget.analytics.install.total("30d") == 41012
    assert wget.analytics.install_on_request.d365 == {"wget": 470000}
    assert wget.analytics.build_error.d90 is None
    assert wget.analytics.build_error.total("90d") == 0


def test_analytic_rejects_unknown_window() -> None:
    with pytest.raises(ValueError):
        Analytic().window("7d")


def test_minimal_formula_uses_defaults() -> None:
    f = Formula.from_dict({"name": "tree"})

    assert f.full_name == "tree"
    assert not f.is_installed
    assert f.install_options() is None
    assert f.analytics is None
    assert f.versions.stable is None
    assert f.status == PackageStatus.NONE


def test_legacy_oldname_is_kept() -> None:
    f = Formula.from_dict({"name": "bat", "oldname": "bat-cat"})

    assert f.oldnames == ["bat-cat"]


def test_install_options_come_from_first_keg() -> None:
    f = Formula.from_dict({
        "name": "vim",
        "installed": [
            {"version": "9.1.0", "used_options": ["--with-lua"]},
            {"version": "9.1.1", "used_options": []},
        ],
    })

    assert f.install_options() == ["--with-lua"]


@pytest.mark.parametrize(
    "data",
    [
        {"full_name": "no-name"},
        {"name": 5},
        {"name": "x", "dependencies": "not-a-list"},
        {"name": "x", "installed": [{"used_options": []}]},
        {"name": "x", "bottle": {"stable": {"files": {"arm64": {"url": "u"}}}}},
    ],
)
def test_malformed_formula_raises_parse_error(data: dict) -> None:
    with pytest.raises(BrewParseError):
        Formula.from_dict(data)


def test_parse_error_names_the_key() -> None:
    with pytest.raises(BrewParseError) as excinfo:
        Formula.from_dict({"name": "x", "desc": ["wrong"]})

    assert excinfo.value.context["key"] == "desc"
    assert excinfo.value.context["found"] == "list"


def test_version_parse() -> None:
    assert Version("3.2.1").parse() == PackagingVersion("3.2.1")
    assert Version("HEAD-4d1c5c7").parse() is None
    assert str(Version("1.2_1")) == "1.2_1"


def test_cask(load_fixture) -> None:
    cask = Cask.from_dict(load_fixture("firefox.json")["casks"][0])

    assert cask.token == "firefox"
    assert cask.name == ["Mozilla Firefox"]
    assert cask.kind is PackageKind.CASK
    assert cask.is_installed
    assert cask.installed_versions == ["123.0"]
    assert cask.latest_version == "124.0.1"
    assert cask.auto_updates
    assert cask.status == PackageStatus.OUTDATED


def test_cask_requires_token() -> None:
    with pytest.raises(BrewParseError):
        Cask.from_dict({"name": ["Nameless"]})


def test_outdated_entry(load_fixture) -> None:
    entry = OutdatedPackage.from_dict(load_fixture("outdated.json")["formulae"][1], PackageKind.FORMULA)

    assert entry.name == "node"
    assert entry.installed_versions == ["20.11.0", "21.6.1"]
    assert entry.pinned
    assert entry.pinned_version == "21.6.1"
