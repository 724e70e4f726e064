"""
pulselog: structured JSON logging for the hostpulse agent

One JSON object per line on stderr, with optional structured context,
so agent output can be shipped to any line-oriented log collector.
"""

from pulselog.logger import JSONFormatter, get_logger, parse_level, validate_log_format

__all__ = ['JSONFormatter', 'get_logger', 'parse_level', 'validate_log_format']
__version__ = '1.0.0'
