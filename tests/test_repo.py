"""Tests for the Repository facade."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from brewpy.core.cache import Cache
from brewpy.core.errors import PackageNotFoundError
from brewpy.core.models import Cask, Formula, OutdatedPackage, PackageKind
from brewpy.core.repo import Repository, package_name


@pytest.fixture
def repo(brew_env) -> Repository:
    return Repository(cache=Cache("formulae", env=brew_env))


def test_get_all_installed_sorts_by_kind_then_name(repo: Repository) -> None:
    formulae = {
        "zsh": Formula.from_dict({"name": "zsh"}),
        "Bash": Formula.from_dict({"name": "Bash"}),
    }
    casks = [Cask.from_dict({"token": "alacritty"})]

    with (
        patch("brewpy.core.repo.formula.all_installed", new=AsyncMock(return_value=formulae)),
        patch("brewpy.core.repo.cask.list_installed", new=AsyncMock(return_value=casks)),
    ):
        pkgs = asyncio.run(repo.get_all_installed())

    assert [package_name(p) for p in pkgs] == ["alacritty", "Bash", "zsh"]


def test_get_all_installed_filters_kind(repo: Repository) -> None:
    with (
        patch("brewpy.core.repo.formula.all_installed", new=AsyncMock(return_value={})),
        patch("brewpy.core.repo.cask.list_installed", new=AsyncMock()) as casks,
    ):
        asyncio.run(repo.get_all_installed(PackageKind.FORMULA))

    casks.assert_not_awaited()


def test_search_caches_the_formula_list(repo: Repository) -> None:
    data = {
        "formulae": [
            {"name": "ripgrep", "desc": "Search tool like grep and The Silver Searcher"},
            {"name": "grep", "desc": "GNU grep, egrep and fgrep"},
            {"name": "jq", "desc": "Lightweight and flexible command-line JSON processor"},
        ]
    }

    with patch("brewpy.core.repo.formula.query_json", new=AsyncMock(return_value=data)) as query:
        first = asyncio.run(repo.search("GREP"))
        second = asyncio.run(repo.search("json"))

    assert [f.name for f in first] == ["grep", "ripgrep"]
    assert [f.name for f in second] == ["jq"]
    query.assert_awaited_once_with("--eval-all")


def test_search_refresh_reloads(repo: Repository) -> None:
    data = {"formulae": [{"name": "jq"}]}

    with patch("brewpy.core.repo.formula.query_json", new=AsyncMock(return_value=data)) as query:
        asyncio.run(repo.search("jq"))
        asyncio.run(repo.search("jq", refresh=True))

    assert query.await_count == 2


def test_install_resolves_name_first(repo: Repository) -> None:
    jq = Formula.from_dict({"name": "jq"})

    with (
        patch("brewpy.core.repo.formula.info", new=AsyncMock(return_value=jq)),
        patch("brewpy.core.repo.formula.install", new=AsyncMock(return_value=jq)) as install,
    ):
        asyncio.run(repo.install("jq", ["--HEAD"], force=True))

    install.assert_awaited_once_with(jq, options=["--HEAD"], force=True)


def test_upgrade_all_skips_lookup(repo: Repository) -> None:
    with (
        patch("brewpy.core.repo.formula.info", new=AsyncMock()) as info,
        patch("brewpy.core.repo.formula.upgrade", new=AsyncMock(return_value=None)),
    ):
        assert asyncio.run(repo.upgrade()) is None

    info.assert_not_awaited()


@pytest.mark.parametrize("operation", ["uninstall", "pin", "unpin", "upgrade"])
def test_changes_resolve_name_first(repo: Repository, operation: str) -> None:
    jq = Formula.from_dict({"name": "jq"})

    with (
        patch("brewpy.core.repo.formula.info", new=AsyncMock(return_value=jq)) as info,
        patch(f"brewpy.core.repo.formula.{operation}", new=AsyncMock(return_value=jq)) as change,
    ):
        assert asyncio.run(getattr(repo, operation)("jq")) is jq

    info.assert_awaited_once_with("jq")
    change.assert_awaited_once_with(jq)


def test_change_on_unknown_name_is_not_attempted(repo: Repository) -> None:
    error = PackageNotFoundError(package="jqq", kind="formula")

    with (
        patch("brewpy.core.repo.formula.info", new=AsyncMock(side_effect=error)),
        patch("brewpy.core.repo.formula.pin", new=AsyncMock()) as pin,
    ):
        with pytest.raises(PackageNotFoundError):
            asyncio.run(repo.pin("jqq"))

    pin.assert_not_awaited()


def test_get_details_by_kind(repo: Repository) -> None:
    jq = Formula.from_dict({"name": "jq"})
    firefox = Cask.from_dict({"token": "firefox"})

    with (
        patch("brewpy.core.repo.formula.info", new=AsyncMock(return_value=jq)) as formula_info,
        patch("brewpy.core.repo.cask.info", new=AsyncMock(return_value=firefox)) as cask_info,
    ):
        assert asyncio.run(repo.get_details("jq")) is jq
        assert asyncio.run(repo.get_details("firefox", PackageKind.CASK)) is firefox

    formula_info.assert_awaited_once_with("jq")
    cask_info.assert_awaited_once_with("firefox")


def test_outdated(repo: Repository) -> None:
    entries = [OutdatedPackage(name="jq", kind=PackageKind.FORMULA, installed_versions=["1.6"], current_version="1.7.1")]

    with patch("brewpy.core.repo.formula.outdated", new=AsyncMock(return_value=entries)):
        assert asyncio.run(repo.outdated()) == entries


def test_update(repo: Repository) -> None:
    with patch("brewpy.core.repo.homebrew.update", new=AsyncMock()) as update:
        asyncio.run(repo.update())

    update.assert_awaited_once_with()
