"""
Collectors for host stats and the two IP lookups.

Every reading is independently fallible: a failed reading is logged and
replaced by its sentinel, and collection always completes.
"""

import socket
import time
from datetime import datetime, timezone

import psutil
import requests

from hostpulse.config import AgentContext
from hostpulse.metrics import Metric, ERROR_TEXT, ERROR_UPTIME, ERROR_NUMBER


def resolve_hostname() -> str:
    """OS hostname; raises OSError when it cannot be read"""
    hostname = socket.gethostname()
    if not hostname:
        raise OSError("empty hostname")
    return hostname


class PublicIPResolver:
    """Asks an IP-echo service for this host's public address"""

    def __init__(self, context: AgentContext):
        self.url = context.config.ip_echo_url
        self.timeout = context.config.timeout
        self.logger = context.logger

    def resolve(self) -> str:
        try:
            response = requests.get(self.url, timeout=self.timeout)
            response.raise_for_status()
            ip = response.text.strip()
        except requests.exceptions.Timeout:
            self.logger.error(
                "public ip api request timed out",
                extra={'context': {'url': self.url, 'timeout': self.timeout}}
            )
            return ERROR_TEXT
        except requests.exceptions.RequestException as e:
            self.logger.error(
                "public ip api request error",
                extra={'context': {'url': self.url, 'error': str(e)}}
            )
            return ERROR_TEXT

        if not ip:
            self.logger.error("public ip api returned an empty body", extra={'context': {'url': self.url}})
            return ERROR_TEXT
        return ip


class LocalIPResolver:
    """
    Finds the address of the outbound interface.

    Connecting a UDP socket sends nothing; it only makes the OS pick a route
    and bind a local address, which is then read back.
    """

    def __init__(self, context: AgentContext):
        self.address = (context.config.rendezvous_host, context.config.rendezvous_port)
        self.logger = context.logger

    def resolve(self) -> str:
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
                sock.connect(self.address)
                return sock.getsockname()[0]
        except OSError as e:
            self.logger.error("local ip read error", extra={'context': {'error': str(e)}})
            return ERROR_TEXT


class MetricSampler:
    """Fills one Metric per cycle"""

    def __init__(self, context: AgentContext):
        self.context = context
        self.logger = context.logger
        self.public_ip = PublicIPResolver(context)
        self.local_ip = LocalIPResolver(context)

    def collect(self) -> Metric:
        """Collect a complete snapshot, sentinels standing in for failed reads"""
        metric = Metric(timestamp=datetime.now(timezone.utc))
        metric.public_ip = self.public_ip.resolve()
        metric.local_ip = self.local_ip.resolve()
        metric.hostname, metric.uptime = self._read_host()
        metric.memory_usage = self._read_memory()
        metric.cpu_load = self._read_load()
        return metric

    def _read_host(self):
        config = self.context.config
        # An externally supplied hostname is never re-read
        refresh = config.refresh_hostname and not config.hostname
        try:
            uptime = max(0, int(time.time() - psutil.boot_time()))
            hostname = resolve_hostname() if refresh else self.context.hostname
        except (psutil.Error, OSError) as e:
            self.logger.error("host stat read error", extra={'context': {'error': str(e)}})
            return (ERROR_TEXT if refresh else self.context.hostname), ERROR_UPTIME
        return hostname, uptime

    def _read_memory(self) -> float:
        try:
            return float(psutil.virtual_memory().percent)
        except (psutil.Error, OSError) as e:
            self.logger.error("memory stat read error", extra={'context': {'error': str(e)}})
            return ERROR_NUMBER

    def _read_load(self) -> float:
        try:
            # 15-minute load average
            return float(psutil.getloadavg()[2])
        except (psutil.Error, OSError) as e:
            self.logger.error("cpu stat read error", extra={'context': {'error': str(e)}})
            return ERROR_NUMBER
