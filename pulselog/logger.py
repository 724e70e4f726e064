"""
pulselog: JSON log lines for the hostpulse agent.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Optional

LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']

PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class JSONFormatter(logging.Formatter):
    """
    Formats each record as one JSON object.

    Output format:
    {
        "timestamp": "2026-10-17T06:00:00.123456Z",
        "level": "ERROR",
        "logger": "hostpulse.collectors",
        "message": "memory stat read error",
        "context": {"error": "..."}  # Optional extra fields
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%fZ'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        # logger.error(..., extra={'context': {...}})
        context = getattr(record, 'context', None)
        if context:
            log_data['context'] = context

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': self.formatException(record.exc_info)
            }

        if record.levelno <= logging.DEBUG:
            log_data['source'] = {
                'file': record.pathname,
                'line': record.lineno,
                'function': record.funcName
            }

        return json.dumps(log_data, default=str)


def parse_level(name: str) -> int:
    """Map a level name such as 'info' to its logging constant."""
    upper = name.upper()
    if upper == 'FATAL':
        upper = 'CRITICAL'
    if upper not in LEVELS:
        raise ValueError(f"Unknown log level: {name}")
    return getattr(logging, upper)


def get_logger(
    name: str,
    level: int = logging.INFO,
    use_json: bool = True,
    stream: Optional[IO[str]] = None
) -> logging.Logger:
    """
    Get a logger that writes to stderr (or the given stream).

    Args:
        name: Logger name (typically __name__ or the agent name)
        level: Logging level (default: INFO)
        use_json: Use JSON formatter (default: True)
        stream: Target stream (default: sys.stderr)

    Returns:
        Configured logger instance

    Example:
        logger = get_logger('hostpulse')
        logger.error("local ip read error", extra={'context': {'error': str(e)}})
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    formatter = JSONFormatter() if use_json else logging.Formatter(PLAIN_FORMAT)

    # Reconfigure the existing console handler instead of stacking a new one
    handler = next(
        (h for h in logger.handlers if isinstance(h, logging.StreamHandler)),
        None
    )
    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
        logger.addHandler(handler)
    elif stream is not None:
        handler.setStream(stream)

    handler.setLevel(level)
    handler.setFormatter(formatter)

    return logger


def validate_log_format(log_line: str) -> bool:
    """
    Validate that a log line is properly formatted JSON.

    Args:
        log_line: Log line to validate

    Returns:
        True if valid JSON with required fields, False otherwise
    """
    try:
        data = json.loads(log_line)

        required_fields = ['timestamp', 'level', 'logger', 'message']
        if not all(field in data for field in required_fields):
            return False

        if data['level'] not in LEVELS:
            return False

        return True

    except (json.JSONDecodeError, TypeError):
        return False
