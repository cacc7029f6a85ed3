"""Configuration for the brewpy environment."""

from __future__ import annotations

import functools
import os
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

KNOWN_BREW_PATHS = (
    Path("/opt/homebrew/bin/brew"),
    Path("/usr/local/bin/brew"),
    Path("/home/linuxbrew/.linuxbrew/bin/brew"),
)

DEFAULT_TIMEOUT = 300
QUERY_TIMEOUT = 60

_DEF_CACHE = Path.home() / ".brewpy" / "cache"


def find_brew() -> str:
    """Locate the brew executable.

    Returns:
        ``$BREWPY_BREW`` if set, else the brew on PATH, else the first
        existing well-known install location, else plain ``"brew"``.
    """
    if explicit := os.environ.get("BREWPY_BREW"):
        return explicit
    if on_path := shutil.which("brew"):
        return on_path
    for candidate in KNOWN_BREW_PATHS:
        if candidate.exists():
            return str(candidate)
    return "brew"


@dataclass
class BrewpyEnv:
    """Configuration for the brewpy environment."""

    brew: str
    timeout: int = DEFAULT_TIMEOUT
    query_timeout: int = QUERY_TIMEOUT
    cache_dir: Path = field(default_factory=lambda: _DEF_CACHE)

    @functools.cached_property
    def prefix(self) -> Path:
        """Homebrew prefix as reported by ``brew --prefix``."""
        try:
            output = subprocess.check_output(
                [self.brew, "--prefix"],
                text=True,
                env={**os.environ, "HOMEBREW_NO_AUTO_UPDATE": "1"},
            ).strip()
            return Path(output)
        except (subprocess.CalledProcessError, FileNotFoundError, PermissionError):
            return Path(self.brew).resolve().parent.parent

    @property
    def cellar(self) -> Path:
        return self.prefix / "Cellar"

    @property
    def caskroom(self) -> Path:
        return self.prefix / "Caskroom"


def discover_env() -> BrewpyEnv:
    """Discover the brewpy environment from process environment variables."""
    cache_dir = Path(os.environ.get("BREWPY_CACHE_DIR") or _DEF_CACHE)

    return BrewpyEnv(
        brew=find_brew(),
        timeout=int(os.environ.get("BREWPY_TIMEOUT") or DEFAULT_TIMEOUT),
        query_timeout=int(os.environ.get("BREWPY_QUERY_TIMEOUT") or QUERY_TIMEOUT),
        cache_dir=cache_dir,
    )


Brewpy = discover_env()
