import json
import logging
import os
import sys

_DATEFMT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """One JSON object per record, for log shippers and ``jq``.

    Keys: ``ts``, ``level``, ``logger``, ``msg``, plus ``exc`` with the
    formatted traceback when the record carries one.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _formatter(debug_format: str, with_name: bool) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=_DATEFMT)
    fmt = "[%(asctime)s] [%(levelname)s] "
    fmt += "%(name)s %(message)s" if with_name else "%(message)s"
    return logging.Formatter(fmt, datefmt=_DATEFMT)


def _resolve_level(debug: bool, level: str | None) -> int:
    if debug:
        return logging.DEBUG
    name = (os.getenv("LOG_LEVEL") or level or "INFO").upper()
    return getattr(logging, name, logging.INFO)


def setup_logging(
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    level: str | None = None,
) -> None:
    """
    Configure logging for the command line.

    Logs go to stderr so report output on stdout stays machine-readable.
    When *log_file* is given, records are also appended to that file.

    Args:
        debug: Force DEBUG, whatever LOG_LEVEL or *level* say.
        log_file: Optional log file path.
        debug_format: "text" (default) or "json" for structured output.
        level: Level name from the ``logging`` config section.

    Environment variables:
        LOG_LEVEL: Overrides *level*. Default: INFO.
    """
    log_level = _resolve_level(debug, level)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_formatter(debug_format, with_name=False))
    handlers: list[logging.Handler] = [console]

    if log_file:
        to_file = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        to_file.setFormatter(_formatter(debug_format, with_name=True))
        handlers.append(to_file)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    # asyncio is chatty at DEBUG; keep it quiet otherwise
    if log_level > logging.DEBUG:
        logging.getLogger("asyncio").setLevel(logging.WARNING)
