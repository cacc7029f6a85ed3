"""Builder for brew command-line invocations."""

from __future__ import annotations

import os
import shlex
from typing import Iterable, Self

# Applied to every invocation; per-command env() calls override these.
ENV_OVERRIDES = {
    "LANG": "C",
    "HOMEBREW_NO_AUTO_UPDATE": "1",
    "HOMEBREW_NO_COLOR": "1",
    "HOMEBREW_NO_EMOJI": "1",
}


class BrewCommand:
    """A single ``brew <subcommand> ...`` invocation.

    Example:
        cmd = BrewCommand("info").arg("wget").args(["--json=v2", "--analytics"])
        cmd.argv("/opt/homebrew/bin/brew")
        # ['/opt/homebrew/bin/brew', 'info', 'wget', '--json=v2', '--analytics']
    """

    def __init__(self, *arguments: str) -> None:
        self.arguments: list[str] = list(arguments)
        self.overrides: dict[str, str] = {}

    def arg(self, value: str) -> Self:
        self.arguments.append(value)
        return self

    def args(self, values: Iterable[str]) -> Self:
        self.arguments.extend(values)
        return self

    def env(self, key: str, value: str) -> Self:
        self.overrides[key] = value
        return self

    @property
    def subcommand(self) -> str:
        return self.arguments[0] if self.arguments else ""

    def argv(self, executable: str) -> list[str]:
        """Full argument vector with the brew executable first."""
        return [executable, *self.arguments]

    def environ(self, base: dict[str, str] | None = None) -> dict[str, str]:
        """Process environment for this invocation.

        Args:
            base: Environment to start from, ``os.environ`` by default.
        """
        env = dict(os.environ if base is None else base)
        env.update(ENV_OVERRIDES)
        env.update(self.overrides)
        return env

    def __str__(self) -> str:
        return shlex.join(["brew", *self.arguments])

    def __repr__(self) -> str:
        return f"BrewCommand({', '.join(repr(a) for a in self.arguments)})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BrewCommand):
            return NotImplemented
        return self.arguments == other.arguments and self.overrides == other.overrides
