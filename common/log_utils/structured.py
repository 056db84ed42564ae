"""
Structured logging for the API and the workers.

One JSON object per line (or a coloured line in development), tagged with
the correlation id of the delivery being processed. Stages set the
correlation id to the job id so every line of a job can be grepped together.
"""
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

_correlation_id: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)


def set_correlation_id(correlation_id: Optional[str]):
    _correlation_id.set(correlation_id)


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def _utc_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JSONFormatter(logging.Formatter):
    """Log record as a single JSON object"""

    # Attributes copied from ``extra=`` when present
    EXTRA_FIELDS = ('job_id', 'topic', 'stage', 'service', 'duration_ms')

    def to_dict(self, record: logging.LogRecord) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            'timestamp': _utc_time(record).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'location': f"{record.module}.{record.funcName}:{record.lineno}",
        }

        correlation_id = get_correlation_id()
        if correlation_id:
            entry['correlation_id'] = correlation_id

        entry.update({
            name: getattr(record, name)
            for name in self.EXTRA_FIELDS
            if getattr(record, name, None) is not None
        })

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            entry['exception'] = {
                'type': exc_type.__name__,
                'message': str(exc_value),
                'traceback': self.formatException(record.exc_info),
            }
        return entry

    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(self.to_dict(record), ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """Short coloured lines for local development"""

    LEVEL_COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, self.RESET)
        tags = "".join(
            f" [{value}]"
            for value in (get_correlation_id(), getattr(record, 'stage', None))
            if value
        )
        line = (
            f"[{_utc_time(record):%H:%M:%S}]{tags} "
            f"{color}{record.levelname:8}{self.RESET} {record.name} - {record.getMessage()}"
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _file_handler(service_name: str, log_dir: str, json_format: bool) -> Optional[logging.Handler]:
    """Rotating file handler, or None when the directory is not writable"""
    try:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            directory / f"{service_name}.{'json' if json_format else 'log'}",
            maxBytes=50 * 1024 * 1024,
            backupCount=5,
            encoding='utf-8',
        )
    except OSError as e:
        print(f"⚠️  Could not open a log file in {log_dir}: {e}", file=sys.stderr)
        return None

    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        JSONFormatter() if json_format
        else logging.Formatter('%(asctime)s %(levelname)s %(name)s [%(filename)s:%(lineno)d] %(message)s')
    )
    return handler


def setup_structured_logging(
    service_name: str,
    log_level: str = "INFO",
    log_dir: str = "./logs",
    enable_console: bool = True,
    enable_file: bool = True,
    json_format: bool = True,
):
    """
    Replace the root handlers with stdout and a rotating file.

    Args:
        service_name: Log file name stem, also tagged on the first line
        log_level: Console threshold; the file always gets DEBUG
        log_dir: Directory for the log file (best effort)
        enable_console: Log to stdout
        enable_file: Log to ``{log_dir}/{service_name}.json``
        json_format: JSON lines, otherwise human-readable text

    Examples:
        >>> setup_structured_logging("title-improver", "INFO")
        >>> get_logger(__name__).info("Service started")
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.DEBUG)

    if enable_console:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(getattr(logging, log_level.upper(), logging.INFO))
        console.setFormatter(JSONFormatter() if json_format else ConsoleFormatter())
        root.addHandler(console)

    if enable_file:
        file_handler = _file_handler(service_name, log_dir, json_format)
        if file_handler is not None:
            root.addHandler(file_handler)

    root.info("Structured logging initialized", extra={'service': service_name})


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
