"""A simple file-based cache with expiration."""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Awaitable, Callable

from brewpy.core import config
from brewpy.core.errors import CacheError, TransientError
from brewpy.core.logging import get_logger

log = get_logger(__name__)


def _is_envelope(data: Any) -> bool:
    ts = data.get("_ts") if isinstance(data, dict) else None
    return isinstance(ts, (int, float)) and not isinstance(ts, bool)


class Cache:
    """A simple file-based cache with expiration.

    Entries are also invalidated when the Cellar or Caskroom changes, so an
    install or uninstall made outside brewpy is picked up immediately.
    """

    def __init__(self, namespace: str, env: config.BrewpyEnv | None = None):
        self.env = env or config.Brewpy
        self.namespace = namespace
        self.cache_path = self.env.cache_dir / namespace
        try:
            self.cache_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(
                namespace=namespace,
                path=str(self.cache_path),
                operation="init",
                context={"error": str(e)}
            ) from e
        log.debug(
            "cache_initialized",
            namespace=namespace,
            path=str(self.cache_path)
        )

    def _file(self, key: str) -> Path:
        return self.cache_path / f"{key}.json"

    def _update_token(self) -> str:
        """Token that changes whenever packages are installed or removed."""
        def mtime(p: Path) -> int:
            try:
                return int(p.stat().st_mtime)
            except FileNotFoundError:
                return 0

        return f"{mtime(self.env.cellar)}-{mtime(self.env.caskroom)}"

    async def get_or_set(
        self,
        key: str,
        ttl: int,
        loader: Callable[[], Awaitable[Any]],
        allow_stale: bool = False,
    ) -> Any:
        """Get a cached value or set it using the loader coroutine.

        Args:
            key: The cache key.
            ttl: Time-to-live in seconds.
            loader: Async callable producing a JSON-serialisable value.
            allow_stale: Return an expired value if the loader fails transiently.

        Returns:
            Cached or fresh value.

        Raises:
            CacheError: If the cache file cannot be read or written.
        """
        f = self._file(key)
        now = int(time.time())
        token = self._update_token()
        start = time.perf_counter()
        stale: dict[str, Any] | None = None

        if f.exists():
            try:
                data = json.loads(f.read_text())
            except json.JSONDecodeError:
                log.warning(
                    "cache_corrupted",
                    key=key,
                    namespace=self.namespace,
                    exc_info=True
                )
                data = None
            except OSError as e:
                log.error(
                    "cache_read_error",
                    key=key,
                    namespace=self.namespace,
                    exc_info=True
                )
                raise CacheError(
                    "Failed to read cache entry",
                    key=key,
                    namespace=self.namespace,
                    path=str(f),
                    operation="read",
                    context={"error": str(e)}
                ) from e

            if data is not None and not _is_envelope(data):
                log.warning(
                    "cache_corrupted",
                    key=key,
                    namespace=self.namespace,
                    reason="bad_envelope"
                )
                data = None

            if data is not None:
                age_seconds = now - data["_ts"]
                if age_seconds < ttl and data.get("_token") == token:
                    duration_ms = int((time.perf_counter() - start) * 1000)
                    log.info(
                        "cache_hit",
                        key=key,
                        namespace=self.namespace,
                        age_seconds=age_seconds,
                        duration_ms=duration_ms
                    )
                    return data.get("value")

                log.debug(
                    "cache_invalid",
                    key=key,
                    namespace=self.namespace,
                    reason="expired" if age_seconds >= ttl else "token_mismatch"
                )
                if allow_stale:
                    stale = data

        log.info("cache_miss", key=key, namespace=self.namespace)

        try:
            value = await loader()
        except TransientError as e:
            if stale is None:
                raise
            log.warning(
                "cache_fallback_stale",
                key=key,
                namespace=self.namespace,
                age_seconds=now - stale.get("_ts", now),
                error=str(e)
            )
            return stale.get("value")

        try:
            f.write_text(json.dumps({"_ts": now, "_token": token, "value": value}))
        except (OSError, TypeError) as e:
            log.error(
                "cache_write_error",
                key=key,
                namespace=self.namespace,
                error=str(e),
                exc_info=True
            )
            raise CacheError(
                "Failed to write cache entry",
                key=key,
                namespace=self.namespace,
                path=str(f),
                operation="write",
                context={"error": str(e)}
            ) from e

        duration_ms = int((time.perf_counter() - start) * 1000)
        log.info(
            "cache_set",
            key=key,
            namespace=self.namespace,
            duration_ms=duration_ms
        )

        return value

    def clear(self) -> int:
        """Delete every entry in this namespace.

        Returns:
            The number of entries removed.
        """
        removed = 0
        for f in self.cache_path.glob("*.json"):
            try:
                f.unlink()
            except OSError as e:
                raise CacheError(
                    "Failed to clear cache entry",
                    namespace=self.namespace,
                    path=str(f),
                    operation="clear",
                    context={"error": str(e)}
                ) from e
            removed += 1

        log.info("cache_cleared", namespace=self.namespace, count=removed)
        return removed
