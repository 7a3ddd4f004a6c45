"""Log setup for harvest runs: readable stderr plus JSON-lines files."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from pythonjsonlogger import jsonlogger

from harvester.config import settings

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
JSON_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"

RUN_LOG = "harvester.log"
ERROR_LOG = "error.log"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON record with UTC time, level, logger and the emitting code location."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.now(timezone.utc).isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['source'] = f"{record.filename}:{record.lineno}"

        if record.funcName:
            log_record['function'] = record.funcName


def _file_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.FileHandler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(base_dir: str | Path | None = None, log_level: str | None = None):
    """Route all harvester logging to stderr and to logs/ under base_dir.

    stdout stays free for the CLI's JSON dump. The run log gets every record
    as a JSON line; error.log gets only ERROR and above, for quick triage
    after a long crawl.

    Args:
        base_dir: Where logs/ is created; defaults to the working directory.
        log_level: Root level name, e.g. "DEBUG"; defaults to LOG_LEVEL.
    """
    logs_dir = (Path(base_dir) if base_dir else Path.cwd()) / "logs"
    logs_dir.mkdir(exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, (log_level or settings.log_level).upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root_logger.addHandler(console_handler)

    json_formatter = CustomJsonFormatter(JSON_FORMAT)
    root_logger.addHandler(_file_handler(logs_dir / RUN_LOG, logging.DEBUG, json_formatter))
    root_logger.addHandler(_file_handler(logs_dir / ERROR_LOG, logging.ERROR, json_formatter))

    return root_logger


class LoggerAdapter(logging.LoggerAdapter):
    """Merges the adapter's fields (brand slug and the like) into every record's extra."""

    def process(self, msg, kwargs):
        kwargs['extra'] = {**kwargs.get('extra', {}), **self.extra}
        return msg, kwargs


def get_logger(name: str, **context) -> LoggerAdapter:
    """
    Logger whose records carry fixed context fields.

    get_logger(__name__, brand="dogma") tags each line of a brand's crawl so
    the JSON log can be filtered per brand.
    """
    return LoggerAdapter(logging.getLogger(name), context)
