"""
Metric record written once per collection cycle.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict

# Out-of-band values used when a reading fails. They are written to the
# store as-is, so every document has every field.
ERROR_TEXT = 'error'
ERROR_UPTIME = 0
ERROR_NUMBER = -1.0

FIELDS = (
    'timestamp', 'hostname', 'uptime', 'cpu_load',
    'local_ip', 'public_ip', 'memory_usage'
)


@dataclass
class Metric:
    """Host telemetry snapshot"""
    timestamp: datetime
    hostname: str = ERROR_TEXT
    uptime: int = ERROR_UPTIME
    cpu_load: float = ERROR_NUMBER
    local_ip: str = ERROR_TEXT
    public_ip: str = ERROR_TEXT
    memory_usage: float = ERROR_NUMBER

    @property
    def unix_time(self) -> int:
        """Capture instant in whole Unix seconds"""
        return int(self.timestamp.timestamp())

    def to_document(self) -> Dict[str, Any]:
        """Flat mapping with the snake_case keys stored remotely"""
        return asdict(self)
