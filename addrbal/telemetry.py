# addrbal/telemetry.py
import logging
import sys

from pythonjsonlogger import jsonlogger

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

TEXT_FORMAT = "%(levelname)s: %(asctime)s %(filename)s:%(lineno)d: %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(filename)s %(lineno)d %(message)s"


class _BelowError(logging.Filter):
    def filter(self, record):
        return record.levelno < logging.ERROR


def resolve_level(level) -> int:
    if isinstance(level, int):
        return level
    name = str(level).strip().upper()
    if name == "TRACE":
        return TRACE
    value = logging.getLevelName(name)
    if not isinstance(value, int):
        raise ValueError(f"unknown log level: {level!r}")
    return value


def configure_logging(level="INFO", json_format: bool = False):
    """
    Route TRACE/INFO/WARNING to stdout and ERROR to stderr.
    TRACE output is only emitted when `level` is TRACE.
    """
    level = resolve_level(level)
    if json_format:
        fmt = jsonlogger.JsonFormatter(fmt=JSON_FORMAT)
    else:
        fmt = logging.Formatter(TEXT_FORMAT)

    out_handler = logging.StreamHandler(sys.stdout)
    out_handler.addFilter(_BelowError())
    out_handler.setFormatter(fmt)
    err_handler = logging.StreamHandler(sys.stderr)
    err_handler.setLevel(logging.ERROR)
    err_handler.setFormatter(fmt)

    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(out_handler)
    root.addHandler(err_handler)
    logger = logging.getLogger("addrbal")
    logger.setLevel(level)
    return logger
