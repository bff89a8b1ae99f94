"""Context-aware logger wrapper that delegates to a replaceable base logger."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Protocol


class BasicLogger(Protocol):
    """Anything that can log at the usual levels, then be flushed and closed."""

    def tracef(self, format: str, *args: Any) -> None: ...

    def debugf(self, format: str, *args: Any) -> None: ...

    def infof(self, format: str, *args: Any) -> None: ...

    def warnf(self, format: str, *args: Any) -> Any: ...

    def errorf(self, format: str, *args: Any) -> Any: ...

    def criticalf(self, format: str, *args: Any) -> Any: ...

    def trace(self, *args: Any) -> None: ...

    def debug(self, *args: Any) -> None: ...

    def info(self, *args: Any) -> None: ...

    def warn(self, *args: Any) -> Any: ...

    def error(self, *args: Any) -> Any: ...

    def critical(self, *args: Any) -> Any: ...

    def flush(self) -> None: ...

    def close(self) -> None: ...


# Serialises every call made through any wrapper that shares it.
_PACKAGE_LOCK = threading.Lock()


@dataclass(frozen=True)
class ContextFormatFilter:
    """Adds a context to the parameters or the format of a log message."""

    context: tuple[str, ...] = ()

    def filter(self, *args: Any) -> list[Any]:
        """Return the context items, each followed by a space, then the arguments."""
        return [f"{item} " for item in self.context] + list(args)

    def filterf(self, format: str, *args: Any) -> tuple[str, list[Any]]:
        """Return the format with the context in front of it, and the arguments."""
        prefix = "".join(f"{item} " for item in self.context)
        return prefix + format, list(args)


@dataclass
class DelegateLogger:
    """Holds the base logger that wrappers write to."""

    base_logger: BasicLogger | None = None


@dataclass
class Wrapper:
    """A logger that rewrites each message through a filter before delegating it."""

    delegate: DelegateLogger
    format_filter: ContextFormatFilter = field(default_factory=ContextFormatFilter)
    lock: Any = field(default_factory=lambda: _PACKAGE_LOCK, repr=False, compare=False)

    def with_context(self, *args: str) -> Wrapper:
        """Return a wrapper with the given context sharing this one's delegate and lock."""
        return Wrapper(
            delegate=self.delegate,
            format_filter=ContextFormatFilter(tuple(args)),
            lock=self.lock,
        )

    def _formatted(self, level: str, format: str, args: tuple[Any, ...]) -> Any:
        new_format, params = self.format_filter.filterf(format, *args)
        with self.lock:
            return getattr(self.delegate.base_logger, level)(new_format, *params)

    def _plain(self, level: str, args: tuple[Any, ...]) -> Any:
        params = self.format_filter.filter(*args)
        with self.lock:
            return getattr(self.delegate.base_logger, level)(*params)

    def tracef(self, format: str, *args: Any) -> None:
        """Log a formatted message at trace level."""
        self._formatted("tracef", format, args)

    def debugf(self, format: str, *args: Any) -> None:
        """Log a formatted message at debug level."""
        self._formatted("debugf", format, args)

    def infof(self, format: str, *args: Any) -> None:
        """Log a formatted message at info level."""
        self._formatted("infof", format, args)

    def warnf(self, format: str, *args: Any) -> Any:
        """Log a formatted message at warn level."""
        return self._formatted("warnf", format, args)

    def errorf(self, format: str, *args: Any) -> Any:
        """Log a formatted message at error level."""
        return self._formatted("errorf", format, args)

    def criticalf(self, format: str, *args: Any) -> Any:
        """Log a formatted message at critical level."""
        return self._formatted("criticalf", format, args)

    def trace(self, *args: Any) -> None:
        """Log the operands at trace level."""
        self._plain("trace", args)

    def debug(self, *args: Any) -> None:
        """Log the operands at debug level."""
        self._plain("debug", args)

    def info(self, *args: Any) -> None:
        """Log the operands at info level."""
        self._plain("info", args)

    def warn(self, *args: Any) -> Any:
        """Log the operands at warn level."""
        return self._plain("warn", args)

    def error(self, *args: Any) -> Any:
        """Log the operands at error level."""
        return self._plain("error", args)

    def critical(self, *args: Any) -> Any:
        """Log the operands at critical level."""
        return self._plain("critical", args)

    def flush(self) -> None:
        """Flush all messages in the base logger."""
        with self.lock:
            self.delegate.base_logger.flush()

    def close(self) -> None:
        """Flush and close the base logger; it cannot be used afterwards."""
        with self.lock:
            self.delegate.base_logger.close()

    def replace_delegate(self, new_logger: BasicLogger) -> None:
        """Flush the current base logger and switch every sharing wrapper to a new one."""
        with self.lock:
            self.delegate.base_logger.flush()
            self.delegate.base_logger = new_logger
            new_logger.info("Logger Replaced. New Logger Used to log the message")