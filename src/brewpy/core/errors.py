"""Exceptions raised by brewpy and helpers for reporting them."""

from __future__ import annotations

import asyncio
import functools
import time
from typing import Any, Callable, Self, TypeVar

from brewpy.core.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")

# Exit Codes
EXIT_SUCCESS = 0
EXIT_USER_ERROR = 1
EXIT_SYSTEM_ERROR = 2
EXIT_TRANSIENT_ERROR = 3


class BrewError(Exception):
    """Base exception class with context propagation.

    Every exception raised by brewpy inherits from this class. Context is
    a dictionary that accumulates relevant information as the exception
    propagates up the call stack.

    Example:
        raise BrewError("An error occurred", context={"package": "wget"})

        # Or with context propagation
        try:
            ...
        except BrewError as e:
            raise e.with_context(operation="install")
    """
    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def with_context(self, **new_context: Any) -> Self:
        """Merge extra context into the exception and return it.

        Args:
            **new_context: Additional context to add to the exception.

        Returns:
            The same exception instance with merged context.
        """
        self.context.update(new_context)
        return self

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{context_str}]"
        return self.message


class TransientError(BrewError):
    """Errors that may succeed when retried.

    Operations raising this exception should be idempotent.
    """
    pass


class UserError(BrewError):
    """Errors caused by user input, such as an unknown package name.

    These should not be retried without correction.
    """
    pass


class SystemError(BrewError):
    """Errors due to the local environment.

    Missing or broken Homebrew, unreadable output, file system problems.
    """
    pass


## Specific Exceptions ##

class BrewCommandError(TransientError):
    """brew exited with a non-zero status.

    Typically indicates:
        - Network issues while fetching bottles or taps
        - GitHub API rate limiting
        - A locked or corrupted Homebrew installation
    """
    def __init__(
        self,
        message: str | None = None,
        command: str | None = None,
        returncode: int | None = None,
        error: str | None = None,
        context: dict[str, Any] | None = None
    ) -> None:
        """Initialise BrewCommandError with detailed context.

        Args:
            message: Optional custom error message.
            command: The brew command that was executed.
            returncode: The exit code returned by the command.
            error: The stderr output from the command.
            context: Additional context information.
        """
        ctx = context or {}
        if command:
            ctx["command"] = command
        if returncode is not None:
            ctx["returncode"] = returncode
        if error is not None:
            ctx["error"] = error

        if message is None:
            message = f"Brew command failed with exit code {returncode if returncode is not None else 'unknown'}"

        super().__init__(message, context=ctx)

    @property
    def returncode(self) -> int | None:
        return self.context.get("returncode")

    @property
    def stderr(self) -> str:
        return self.context.get("error", "")


class BrewTimeoutError(TransientError):
    """brew did not finish within the allotted time.

    Typically indicates slow networks or very large source builds.
    """
    def __init__(
        self,
        message: str | None = None,
        command: str | None = None,
        timeout: int | None = None,
        context: dict[str, Any] | None = None
    ) -> None:
        ctx = context or {}
        if command:
            ctx["command"] = command
        if timeout is not None:
            ctx["timeout"] = timeout

        if message is None:
            message = f"Brew command timed out after {timeout or 'unknown'}s"

        super().__init__(message, context=ctx)


class PackageNotFoundError(UserError):
    """Requested formula or cask is not known to Homebrew.

    This is a UserError - do not retry without changing the package name.
    """
    def __init__(
        self,
        message: str | None = None,
        package: str | None = None,
        kind: str | None = None,
        context: dict[str, Any] | None = None
    ) -> None:
        """Initialise PackageNotFoundError with detailed context.

        Args:
            message: Optional custom error message.
            package: The name of the package that was not found.
            kind: The kind of package (formula or cask).
            context: Additional context information.
        """
        ctx = context or {}
        if package:
            ctx["package"] = package
        if kind:
            ctx["kind"] = kind

        if message is None:
            kind_str = f" {kind}" if kind else ""
            message = f"Package{kind_str} '{package or 'unknown'}' not found"

        super().__init__(message, context=ctx)


class InstallFailedError(UserError):
    """``brew install`` or ``brew reinstall`` exited with a non-zero status.

    The stderr text from brew is kept under the ``error`` context key.
    """
    def __init__(
        self,
        message: str | None = None,
        package: str | None = None,
        command: str | None = None,
        returncode: int | None = None,
        error: str | None = None,
        context: dict[str, Any] | None = None
    ) -> None:
        ctx = context or {}
        if package:
            ctx["package"] = package
        if command:
            ctx["command"] = command
        if returncode is not None:
            ctx["returncode"] = returncode
        if error is not None:
            ctx["error"] = error

        if message is None:
            message = f"Installing '{package or 'unknown'}' failed"

        super().__init__(message, context=ctx)

    @property
    def stderr(self) -> str:
        return self.context.get("error", "")


class BrewNotInstalledError(SystemError):
    """The brew executable is missing or does not run."""
    def __init__(
        self,
        message: str | None = None,
        executable: str | None = None,
        context: dict[str, Any] | None = None
    ) -> None:
        ctx = context or {}
        if executable:
            ctx["executable"] = executable

        if message is None:
            message = "Homebrew is not installed or not runnable"

        super().__init__(message, context=ctx)


class BrewExecutionError(SystemError):
    """brew could not be spawned for a reason other than being missing."""
    pass


class BrewParseError(SystemError):
    """brew output could not be decoded into the expected records.

    Raised both for invalid JSON and for JSON that does not match the
    Homebrew package-info schema.
    """
    def __init__(
        self,
        message: str | None = None,
        command: str | None = None,
        error: str | None = None,
        context: dict[str, Any] | None = None
    ) -> None:
        ctx = context or {}
        if command:
            ctx["command"] = command
        if error:
            ctx["error"] = error

        if message is None:
            message = "Failed to parse brew output"

        super().__init__(message, context=ctx)


class CacheError(SystemError):
    """Errors related to cache access or corruption.

    Typically indicates:
        - File system permission issues
        - Disk space exhaustion
        - Read-only file system
    """
    def __init__(
        self,
        message: str | None = None,
        key: str | None = None,
        namespace: str | None = None,
        path: str | None = None,
        operation: str | None = None,
        context: dict[str, Any] | None = None
    ) -> None:
        ctx = context or {}
        if key:
            ctx["key"] = key
        if namespace:
            ctx["namespace"] = namespace
        if path:
            ctx["path"] = path
        if operation:
            ctx["operation"] = operation

        if message is None:
            op_str = f" {operation}" if operation else ""
            message = f"Cache{op_str} operation failed"

        super().__init__(message, context=ctx)


def retry_on_transient(
    max_retries: int = 3,
    base_delay: float = 1.0,
    backoff: float = 2.0
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Retry sync or async functions on transient errors with exponential backoff.

    Args:
        max_retries: Maximum number of attempts before giving up.
        base_delay: Initial delay between attempts in seconds.
        backoff: Multiplier applied to the delay after each attempt.

    Returns:
        A decorator that applies the retry logic to the decorated function.

    Example:
        @retry_on_transient(max_retries=5, base_delay=2.0)
        async def fetch_data():
            ...

    Note:
        - Only TransientError is retried, everything else propagates at once.
        - Delays: 1s, 2s, 4s with default settings.
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        def on_failure(e: TransientError, attempt: int) -> float:
            if attempt == max_retries:
                log.error(
                    "retry_exhausted",
                    function=func.__name__,
                    attempts=max_retries,
                    error=str(e),
                    context=e.context
                )
                raise e

            delay = base_delay * (backoff ** (attempt - 1))
            log.warning(
                "retry_attempt",
                function=func.__name__,
                attempt=attempt,
                max_attempts=max_retries,
                delay_seconds=delay,
                error=str(e),
                context=e.context
            )
            return delay

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(1, max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except TransientError as e:
                    await asyncio.sleep(on_failure(e, attempt))
            raise AssertionError("unreachable")

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(1, max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except TransientError as e:
                    time.sleep(on_failure(e, attempt))
            raise AssertionError("unreachable")

        if asyncio.iscoroutinefunction(func):
            return async_wrapper  # type: ignore
        else:
            return sync_wrapper  # type: ignore

    return decorator


# CLI Error Message Templates

ERROR_TEMPLATES = {
    PackageNotFoundError: (
        "❌ Package Not Found: {package}\n"
        "   Suggestion: Try 'brewpy search {package}' to find similar packages"
    ),
    InstallFailedError: (
        "❌ Install failed: {package}\n"
        "   Exit Code: {returncode}\n"
        "   Error: {error}"
    ),
    BrewNotInstalledError: (
        "⚠️ Homebrew not found: {executable}\n"
        "   Fix: Install Homebrew from https://brew.sh or set BREWPY_BREW"
    ),
    BrewParseError: (
        "⚠️ Could not parse brew output: {error}\n"
        "   Command: {command}"
    ),
    BrewTimeoutError: (
        "⚠️ Command timed out after {timeout}s: {command}\n"
        "   The operation took too long - this may be due to network issues"
    ),
    BrewCommandError: (
        "⚠️ Brew command failed: {command}\n"
        "   Exit Code: {returncode}\n"
        "   Error: {error}"
    ),
    CacheError: (
        "⚠️ Cache error: {error}\n"
        "   Location: {path}\n"
        "   Fix: Check file permissions or clear the cache with 'brewpy search --refresh'"
    ),
    TransientError: (
        "⚠️ Temporary failure: {message}\n"
        "   This may resolve itself - try again in a moment"
    ),
    UserError: (
        "❌ {message}"
    ),
    SystemError: (
        "⚠️ System error: {message}\n"
        "   Please check your system configuration and try again"
    ),
    BrewError: (
        "❌ {message}"
    ),
}


def format_error_message(error: BrewError) -> str:
    """Format an error message for CLI display based on the error type.

    The template of the nearest class in the error's MRO is used; if the
    template needs context the error lacks, the bare message is shown.

    Args:
        error: The BrewError instance to format.

    Returns:
        A formatted string message for CLI display.
    """
    template = next(
        (ERROR_TEMPLATES[cls] for cls in type(error).__mro__ if cls in ERROR_TEMPLATES),
        ERROR_TEMPLATES[BrewError],
    )
    try:
        return template.format(**{**error.context, "message": error.message})
    except KeyError:
        return f"❌ {error.message}"


def suggest_search(package_name: str) -> str:
    """Suggest a search command for a missing package.

    Args:
        package_name: The name of the missing package.

    Returns:
        Formatted search suggestion string.
    """
    return (
        f"\n💡 Suggestions:\n"
        f"   • Try 'brewpy search {package_name}'\n"
        "   • Check for spelling and try again\n"
        "   • Visit https://formulae.brew.sh/ to browse available packages\n"
    )
