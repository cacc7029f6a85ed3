"""Tests for the cask provider."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from brewpy.core.errors import PackageNotFoundError
from brewpy.providers import cask


def test_info(fake_brew, fixture_text) -> None:
    fake_brew.respond("info", stdout=fixture_text("firefox.json"))

    pkg = asyncio.run(cask.info("firefox"))

    assert pkg.token == "firefox"
    assert "--cask" in fake_brew.calls[0].arguments


def test_info_unknown_cask(fake_brew) -> None:
    fake_brew.respond("info", stderr="Error: Cask 'firefux' is unavailable", code=1)
    fake_brew.respond("--version", stdout="Homebrew 4.2.14")

    with pytest.raises(PackageNotFoundError) as excinfo:
        asyncio.run(cask.info("firefux"))

    assert excinfo.value.context["kind"] == "cask"


def test_list_installed_batches_info_queries() -> None:
    names = [f"app{i}" for i in range(cask.BATCH_SIZE + 5)]

    async def fake_json(command, timeout=None):
        tokens = command.arguments[3:]
        return {"formulae": [], "casks": [{"token": t} for t in tokens]}

    with (
        patch("brewpy.providers.cask.run_checked", new=AsyncMock(return_value="\n".join(names))),
        patch("brewpy.providers.cask.run_json", new=AsyncMock(side_effect=fake_json)) as run_json,
    ):
        pkgs = asyncio.run(cask.list_installed())

    assert [p.token for p in pkgs] == names
    assert run_json.await_count == 2


def test_list_installed_with_no_casks() -> None:
    with (
        patch("brewpy.providers.cask.run_checked", new=AsyncMock(return_value="")),
        patch("brewpy.providers.cask.run_json", new=AsyncMock()) as run_json,
    ):
        assert asyncio.run(cask.list_installed()) == []

    run_json.assert_not_awaited()
