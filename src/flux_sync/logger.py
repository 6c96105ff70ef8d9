import json
import logging
import os
import sys

DEFAULT_LOG_FILE = "/tmp/flux-sync.log"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Libraries that are chatty at INFO and below
_NOISY_LOGGERS = ("urllib3", "requests", "watchdog", "charset_normalizer")


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON line (ts, level, logger, msg, exc).
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _make_formatter(
    debug_format: str, with_name: bool = False
) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=_DATEFMT)
    fmt = "[%(asctime)s] [%(levelname)s] "
    if with_name:
        fmt += "%(name)s "
    return logging.Formatter(fmt + "%(message)s", datefmt=_DATEFMT)


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    level: str | None = None,
) -> None:
    """Install the root handlers for the given host.

    Args:
        mode: "mcp" writes to a file only, since stdout carries the
            protocol; "cli" writes to stderr and optionally a file.
        debug: Force DEBUG regardless of LOG_LEVEL.
        log_file: Log file path, taking precedence over LOG_FILE.
        debug_format: "text" or "json".
        level: Level name from the config file, used when LOG_LEVEL is
            unset.

    LOG_LEVEL defaults to WARNING under MCP and INFO for the CLI. LOG_FILE
    defaults to /tmp/flux-sync.log in MCP mode.
    """
    default_level = "WARNING" if mode == "mcp" else "INFO"
    env_level = os.getenv("LOG_LEVEL", level or default_level).upper()

    if debug:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, env_level, logging.INFO)

    if mode == "mcp":
        # stdio transport owns stdout, so the server only ever logs to a file
        final_log_file = log_file or os.getenv(
            "LOG_FILE", DEFAULT_LOG_FILE
        )
        logging.basicConfig(
            level=log_level,
            format="[%(asctime)s] [%(levelname)s] %(message)s",
            datefmt=_DATEFMT,
            filename=final_log_file,
            filemode="a",
        )
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(_make_formatter(debug_format))
        handlers: list[logging.Handler] = [stderr_handler]

        if log_file:
            file_handler = logging.FileHandler(log_file, mode="a")
            file_handler.setFormatter(
                _make_formatter(debug_format, with_name=True)
            )
            handlers.append(file_handler)

        logging.basicConfig(level=log_level, handlers=handlers)

    if log_level != logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
