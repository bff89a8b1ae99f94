"""Logger construction from XML logging configurations, with a cached default logger."""

from __future__ import annotations

import fnmatch
import logging
import os
import re
import sys
import threading
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, NamedTuple

from ecstoolkit import logger as _logger_module
from ecstoolkit.config_watcher import FileWatcher
from ecstoolkit.logger import ContextFormatFilter, DelegateLogger, Wrapper

LOG_FILE_EXTENSION = ".log"
SEELOG_CONFIG_FILE_NAME = "seelog.xml"
ERROR_LOG_FILE_SUFFIX = "errors"

if os.name == "nt":
    INSTALL_LOCATION_PREFIX = os.path.join(os.environ.get("ProgramFiles", ""), "Amazon")
    LOGS_DIRECTORY = "Logs"
    _APPLICATION_NAMES = {"ssmcli": "SSMCLI", "session-manager-plugin": "SessionManagerPlugin"}
else:
    INSTALL_LOCATION_PREFIX = "/usr/local"
    LOGS_DIRECTORY = "logs"
    _APPLICATION_NAMES = {"ssmcli": "SSMCLI", "session-manager-plugin": "sessionmanagerplugin"}

_LEVELS = ("trace", "debug", "info", "warn", "error", "critical")
_RANK = {name: rank for rank, name in enumerate(_LEVELS)}

_SKIPPED_FILES = frozenset(
    os.path.normcase(os.path.abspath(path)) for path in (__file__, _logger_module.__file__)
)


# --------------------------------------------------------------------------- formatting


class _Caller(NamedTuple):
    func: str
    func_short: str
    file: str
    line: int


class _Record(NamedTuple):
    level: str
    message: str
    when: datetime
    caller: _Caller | None


def _find_caller() -> _Caller:
    frame = sys._getframe(1)
    while frame is not None:
        code_file = frame.f_code.co_filename
        filename = os.path.normcase(os.path.abspath(code_file))
        if filename not in _SKIPPED_FILES:
            base_name = os.path.basename(code_file)
            module = os.path.splitext(base_name)[0]
            name = frame.f_code.co_name
            return _Caller(f"{module}.{name}", name, base_name, frame.f_lineno)
        frame = frame.f_back
    return _Caller("", "", "", 0)


def _sprintf(format: str, args: tuple[Any, ...]) -> str:
    if not args:
        return format
    try:
        return format % args
    except (TypeError, ValueError):
        return " ".join([format, *map(str, args)])


def _sprint(args: tuple[Any, ...]) -> str:
    """Join operands, adding a space between two neighbours when neither is a string."""
    parts: list[str] = []
    previous_is_str = True
    for position, arg in enumerate(args):
        is_str = isinstance(arg, str)
        if position and not is_str and not previous_is_str:
            parts.append(" ")
        parts.append(str(arg))
        previous_is_str = is_str
    return "".join(parts)


_VERB = re.compile(r"%(FuncShort|Func|File|Line|Date|Time|LEVEL|Level|Msg|n|t|%)")
_CALLER_VERBS = frozenset({"FuncShort", "Func", "File", "Line"})


class _Formatter:
    def __init__(self, pattern: str) -> None:
        self._parts: list[tuple[bool, str]] = []
        position = 0
        for match in _VERB.finditer(pattern):
            self._add_literal(pattern, pattern[position : match.start()])
            self._parts.append((True, match.group(1)))
            position = match.end()
        self._add_literal(pattern, pattern[position:])
        self.needs_caller = any(is_verb and text in _CALLER_VERBS for is_verb, text in self._parts)

    def _add_literal(self, pattern: str, literal: str) -> None:
        if "%" in literal:
            raise ValueError(f"unknown format verb in {pattern!r}")
        if literal:
            self._parts.append((False, literal))

    def render(self, record: _Record) -> str:
        return "".join(self._verb(text, record) if is_verb else text for is_verb, text in self._parts)

    @staticmethod
    def _verb(verb: str, record: _Record) -> str:
        caller = record.caller or _Caller("", "", "", 0)
        values = {
            "Date": lambda: record.when.strftime("%Y-%m-%d"),
            "Time": lambda: record.when.strftime("%H:%M:%S"),
            "LEVEL": lambda: record.level.upper(),
            "Level": lambda: record.level.capitalize(),
            "Msg": lambda: record.message,
            "FuncShort": lambda: caller.func_short,
            "Func": lambda: caller.func,
            "File": lambda: caller.file,
            "Line": lambda: str(caller.line),
            "n": lambda: "\n",
            "t": lambda: "\t",
            "%": lambda: "%",
        }
        return values[verb]()


_DEFAULT_FORMAT = "%Date %Time [%LEVEL] %Msg%n"


# --------------------------------------------------------------------------- outputs


class _ConsoleWriter:
    def write(self, text: str) -> None:
        sys.stdout.write(text)

    def flush(self) -> None:
        sys.stdout.flush()

    def close(self) -> None:
        self.flush()


class _FileWriter:
    def __init__(self, path: str, max_size: int = 0, max_rolls: int = 0) -> None:
        self.path = path
        self._max_size = max_size
        self._max_rolls = max_rolls
        self._handler: RotatingFileHandler | None = None
        self._lock = threading.Lock()

    def write(self, text: str) -> None:
        with self._lock:
            if self._handler is None:
                directory = os.path.dirname(self.path)
                if directory:
                    os.makedirs(directory, exist_ok=True)
                self._handler = RotatingFileHandler(
                    self.path,
                    maxBytes=self._max_size,
                    backupCount=self._max_rolls,
                    encoding="utf-8",
                    delay=True,
                )
                self._handler.terminator = ""
            self._handler.emit(logging.makeLogRecord({"msg": text}))

    def flush(self) -> None:
        with self._lock:
            if self._handler is not None:
                self._handler.flush()

    def close(self) -> None:
        with self._lock:
            if self._handler is not None:
                self._handler.close()
                self._handler = None


@dataclass
class _Sink:
    writer: Any
    formatter: _Formatter

    def dispatch(self, record: _Record) -> None:
        self.writer.write(self.formatter.render(record))

    def writers(self) -> list[Any]:
        return [self.writer]


@dataclass
class _Filter:
    levels: frozenset[str]
    children: list[Any]

    def dispatch(self, record: _Record) -> None:
        if record.level in self.levels:
            for child in self.children:
                child.dispatch(record)

    def writers(self) -> list[Any]:
        return [writer for child in self.children for writer in child.writers()]


@dataclass(frozen=True)
class _Exception:
    file_pattern: str
    func_pattern: str
    levels: frozenset[str]


def _check_level(name: str) -> str:
    if name != "off" and name not in _RANK:
        raise ValueError(f"unknown log level {name!r}")
    return name


def _allowed_levels(element: ET.Element) -> frozenset[str]:
    levels = element.get("levels")
    if levels is not None:
        names = {_check_level(name.strip()) for name in levels.split(",") if name.strip()}
        return frozenset(names - {"off"})
    low = _check_level(element.get("minlevel", "trace"))
    high = _check_level(element.get("maxlevel", "critical"))
    if low == "off":
        return frozenset()
    top = _RANK["critical"] if high == "off" else _RANK[high]
    return frozenset(name for name in _LEVELS if _RANK[low] <= _RANK[name] <= top)


def _int_attribute(element: ET.Element, name: str, default: int) -> int:
    value = element.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"attribute {name} of <{element.tag}> is not an integer: {value!r}") from exc


class BaseLogger:
    """A logger configured from an XML document of the seelog form; raises ValueError if invalid."""

    def __init__(self, config: bytes | str) -> None:
        try:
            root = ET.fromstring(config)
        except ET.ParseError as exc:
            raise ValueError(f"invalid logging configuration: {exc}") from exc
        if root.tag != "seelog":
            raise ValueError(f"root element must be <seelog>, found <{root.tag}>")

        self._levels = _allowed_levels(root)
        self._exceptions = [
            _Exception(
                element.get("filepattern", "*"),
                element.get("funcpattern", "*"),
                _allowed_levels(element),
            )
            for element in root.findall("exceptions/exception")
        ]

        formats: dict[str, _Formatter] = {}
        for element in root.findall("formats/format"):
            format_id = element.get("id")
            if not format_id:
                raise ValueError("<format> needs an id")
            formats[format_id] = _Formatter(element.get("format", ""))
        self._formats = formats

        outputs = root.find("outputs")
        self._receivers = [] if outputs is None else self._parse_receivers(outputs, outputs.get("formatid"))
        self._writers = [writer for node in self._receivers for writer in node.writers()]
        self._needs_caller = bool(self._exceptions) or any(
            formatter.needs_caller for formatter in formats.values()
        )
        self._closed = False

    def _formatter(self, format_id: str | None) -> _Formatter:
        if format_id is None:
            return _Formatter(_DEFAULT_FORMAT)
        try:
            return self._formats[format_id]
        except KeyError:
            raise ValueError(f"unknown format id {format_id!r}") from None

    def _parse_receivers(self, element: ET.Element, format_id: str | None) -> list[Any]:
        nodes: list[Any] = []
        for child in element:
            if child.tag == "filter":
                nested = self._parse_receivers(child, child.get("formatid", format_id))
                nodes.append(_Filter(_allowed_levels(child), nested))
                continue
            formatter = self._formatter(child.get("formatid", format_id))
            if child.tag == "console":
                writer: Any = _ConsoleWriter()
            elif child.tag == "file":
                writer = _FileWriter(child.get("path", ""))
            elif child.tag == "rollingfile":
                if child.get("type", "size") != "size":
                    raise ValueError(f"unsupported rolling type {child.get('type')!r}")
                writer = _FileWriter(
                    child.get("filename", ""),
                    _int_attribute(child, "maxsize", 0),
                    _int_attribute(child, "maxrolls", 0),
                )
            else:
                raise ValueError(f"unknown output <{child.tag}>")
            nodes.append(_Sink(writer, formatter))
        return nodes

    def _enabled(self, level: str, caller: _Caller | None) -> bool:
        if caller is not None:
            for exception in self._exceptions:
                if fnmatch.fnmatchcase(caller.file, exception.file_pattern) and fnmatch.fnmatchcase(
                    caller.func_short, exception.func_pattern
                ):
                    return level in exception.levels
        return level in self._levels

    def _log(self, level: str, message: str) -> Exception:
        if not self._closed:
            caller = _find_caller() if self._needs_caller else None
            if self._enabled(level, caller):
                record = _Record(level, message, datetime.now(), caller)
                for node in self._receivers:
                    node.dispatch(record)
        return Exception(message)

    def tracef(self, format: str, *args: Any) -> None:
        """Log a formatted message at trace level."""
        self._log("trace", _sprintf(format, args))

    def debugf(self, format: str, *args: Any) -> None:
        """Log a formatted message at debug level."""
        self._log("debug", _sprintf(format, args))

    def infof(self, format: str, *args: Any) -> None:
        """Log a formatted message at info level."""
        self._log("info", _sprintf(format, args))

    def warnf(self, format: str, *args: Any) -> Exception:
        """Log a formatted message at warn level and return it as an error."""
        return self._log("warn", _sprintf(format, args))

    def errorf(self, format: str, *args: Any) -> Exception:
        """Log a formatted message at error level and return it as an error."""
        return self._log("error", _sprintf(format, args))

    def criticalf(self, format: str, *args: Any) -> Exception:
        """Log a formatted message at critical level and return it as an error."""
        return self._log("critical", _sprintf(format, args))

    def trace(self, *args: Any) -> None:
        """Log the operands at trace level."""
        self._log("trace", _sprint(args))

    def debug(self, *args: Any) -> None:
        """Log the operands at debug level."""
        self._log("debug", _sprint(args))

    def info(self, *args: Any) -> None:
        """Log the operands at info level."""
        self._log("info", _sprint(args))

    def warn(self, *args: Any) -> Exception:
        """Log the operands at warn level and return the message as an error."""
        return self._log("warn", _sprint(args))

    def error(self, *args: Any) -> Exception:
        """Log the operands at error level and return the message as an error."""
        return self._log("error", _sprint(args))

    def critical(self, *args: Any) -> Exception:
        """Log the operands at critical level and return the message as an error."""
        return self._log("critical", _sprint(args))

    def flush(self) -> None:
        """Flush every output."""
        for writer in self._writers:
            writer.flush()

    def close(self) -> None:
        """Flush and close every output; later messages are dropped."""
        self._closed = True
        for writer in self._writers:
            writer.close()


# --------------------------------------------------------------------------- configuration


@dataclass(frozen=True)
class _LogPaths:
    config_file: str = ""
    log_dir: str = ""
    application_log_file: str = ""
    error_log_file: str = ""


_paths = _LogPaths()


def load_log(default_log_dir: str, log_file: str, error_file: str) -> bytes:
    """Return the default logging configuration writing into the given directory."""
    log_file_path = os.path.join(default_log_dir, log_file)
    error_file_path = os.path.join(default_log_dir, error_file)
    config = (
        "\n"
        '<seelog type="adaptive" mininterval="2000000" maxinterval="100000000" '
        'critmsgcount="500" minlevel="off">\n'
        "    <exceptions>\n"
        '        <exception filepattern="test*" minlevel="error"/>\n'
        "    </exceptions>\n"
        '    <outputs formatid="fmtinfo">\n'
        "        "
        f'<rollingfile type="size" filename="{log_file_path}" maxsize="30000000" maxrolls="5"/>'
        "\n"
        '\t\t<filter levels="error,critical" formatid="fmterror">\n'
        "\t\t"
        f'<rollingfile type="size" filename="{error_file_path}" maxsize="10000000" maxrolls="5"/>'
        "\n"
        "        </filter>\n"
        "    </outputs>\n"
        "    <formats>\n"
        '        <format id="fmterror" format="%Date %Time %LEVEL [%FuncShort @ %File.%Line] %Msg%n"/>\n'
        '        <format id="fmtdebug" format="%Date %Time %LEVEL [%FuncShort @ %File.%Line] %Msg%n"/>\n'
        '        <format id="fmtinfo" format="%Date %Time %LEVEL %Msg%n"/>\n'
        "    </formats>\n"
        "</seelog>\n"
    )
    return config.encode("utf-8")


def default_config() -> bytes:
    """Return the default configuration for the most recently resolved log locations."""
    paths = _paths
    return load_log(paths.log_dir, paths.application_log_file, paths.error_log_file)


def get_application_name(client_name: str) -> str:
    """Return the installation folder name for a client, or an empty string."""
    return _APPLICATION_NAMES.get(client_name, "")


def get_log_config_bytes(client_name: str) -> bytes:
    """Resolve log locations for a client and return its configuration file, or the default."""
    global _paths
    root = os.path.join(INSTALL_LOCATION_PREFIX, get_application_name(client_name))
    _paths = _LogPaths(
        config_file=os.path.join(root, SEELOG_CONFIG_FILE_NAME),
        log_dir=os.path.join(root, LOGS_DIRECTORY),
        application_log_file=f"{client_name}{LOG_FILE_EXTENSION}",
        error_log_file=f"{ERROR_LOG_FILE_SUFFIX}{LOG_FILE_EXTENSION}",
    )
    try:
        return Path(_paths.config_file).read_bytes()
    except OSError:
        return default_config()


def init_base_logger_from_bytes(seelog_config: bytes | str) -> BaseLogger:
    """Build a base logger from a configuration, falling back to the default one."""
    try:
        return BaseLogger(seelog_config)
    except ValueError:
        return BaseLogger(default_config())


# --------------------------------------------------------------------------- cached logger

_DELEGATE = DelegateLogger()
_cache_lock = threading.RLock()
_cached: Wrapper | None = None


def _get_cached() -> Wrapper | None:
    with _cache_lock:
        return _cached


def _with_context(base_logger: BaseLogger, *context: str) -> Wrapper:
    _DELEGATE.base_logger = base_logger
    return Wrapper(delegate=_DELEGATE, format_filter=ContextFormatFilter(tuple(context)))


@dataclass
class LogConfig:
    """Builds loggers for one client."""

    client_name: str = ""

    def get_log_config_bytes(self) -> bytes:
        """Return the configuration for this client."""
        return get_log_config_bytes(self.client_name)

    def init_logger(self, use_watcher: bool) -> Wrapper:
        """Create a wrapper logger from the current configuration, optionally watching it."""
        base_logger = init_base_logger_from_bytes(self.get_log_config_bytes())
        wrapper = _with_context(base_logger)
        if use_watcher:
            self._start_watcher(wrapper)
        return wrapper

    def _start_watcher(self, wrapper: Wrapper) -> None:
        try:
            FileWatcher(wrapper, _paths.config_file, self._replace_logger).start()
        except Exception as exc:
            wrapper.errorf(
                "Seelog File Watcher Initilization Failed. Any updates on config file will be "
                "ignored unless agent is restarted: %s",
                exc,
            )

    def _replace_logger(self) -> None:
        current = _get_cached()
        if current is None:
            return
        try:
            base_logger = BaseLogger(self.get_log_config_bytes())
        except ValueError:
            current.error("New logger creation failed")
            return
        base_logger.debug("New Logger Successfully Created")
        if not isinstance(current, Wrapper):
            current.errorf("Logger replace failed. The logger is not a wrapper")
            return
        current.replace_delegate(base_logger)


def logger(use_watcher: bool, client_name: str) -> Wrapper:
    """Return the process-wide logger, creating it for the client on first use."""
    global _cached
    with _cache_lock:
        if _cached is None:
            _cached = LogConfig(client_name).init_logger(use_watcher)
        return _cached