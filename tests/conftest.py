"""Configuration for pytest fixtures used in brewpy tests."""

from __future__ import annotations

import json
import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Callable
from unittest.mock import patch

# Keep logs and cache out of the home directory; must run before brewpy imports.
_SCRATCH = Path(tempfile.mkdtemp(prefix="brewpy-tests-"))
os.environ["BREWPY_LOG_DIR"] = str(_SCRATCH / "logs")
os.environ["BREWPY_CACHE_DIR"] = str(_SCRATCH / "cache")

import pytest  # noqa: E402

from brewpy.core import config  # noqa: E402
from brewpy.core.command import BrewCommand  # noqa: E402

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def load_fixture() -> Callable[[str], Any]:
    """Return a function loading a JSON document from tests/fixtures."""

    def _load(name: str) -> Any:
        return json.loads((FIXTURES / name).read_text())

    return _load


@pytest.fixture
def fixture_text() -> Callable[[str], str]:
    def _text(name: str) -> str:
        return (FIXTURES / name).read_text()

    return _text


@pytest.fixture
def brew_env(tmp_path: Path) -> config.BrewpyEnv:
    """A BrewpyEnv whose brew is the running Python interpreter.

    Commands like ``BrewCommand("-c", "print(1)")`` therefore run real
    subprocesses without needing Homebrew.
    """
    env = config.BrewpyEnv(
        brew=sys.executable,
        timeout=30,
        query_timeout=30,
        cache_dir=tmp_path / "cache",
    )
    env.prefix = tmp_path / "prefix"
    (env.prefix / "Cellar").mkdir(parents=True)
    (env.prefix / "Caskroom").mkdir(parents=True)

    with patch.object(config, "Brewpy", env):
        yield env


class FakeBrew:
    """Scripted stand-in for ``run_capture``.

    Responses are matched on the brew subcommand and recorded commands are
    kept in ``calls`` for assertions.
    """

    def __init__(self) -> None:
        self.responses: dict[str, list[tuple[str, str, int]]] = {}
        self.calls: list[BrewCommand] = []

    def respond(self, subcommand: str, stdout: str = "", stderr: str = "", code: int = 0) -> None:
        self.responses.setdefault(subcommand, []).append((stdout, stderr, code))

    async def __call__(self, command: BrewCommand, timeout: int | None = None, executable: str | None = None):
        self.calls.append(command)
        queue = self.responses.get(command.subcommand)
        if not queue:
            raise AssertionError(f"unexpected brew call: {command}")
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def subcommands(self) -> list[str]:
        return [c.subcommand for c in self.calls]


@pytest.fixture
def fake_brew() -> FakeBrew:
    """Patch run_capture in every provider with a FakeBrew."""
    fake = FakeBrew()
    with (
        patch("brewpy.providers.formula.run_capture", new=fake),
        patch("brewpy.providers.cask.run_capture", new=fake),
        patch("brewpy.providers.homebrew.run_capture", new=fake),
    ):
        yield fake


@pytest.fixture
def no_retry_delay():
    """Make retry_on_transient back off instantly."""

    async def _no_sleep(delay: float) -> None:
        return None

    with (
        patch("brewpy.core.errors.asyncio.sleep", new=_no_sleep),
        patch("brewpy.core.errors.time.sleep", return_value=None) as sync_sleep,
    ):
        yield sync_sleep
