"""
Shared fixtures for hostpulse tests.
"""

import logging
import signal
from datetime import datetime, timezone

import pytest

from hostpulse.config import AgentConfig, AgentContext
from hostpulse.metrics import Metric


@pytest.fixture
def make_context():
    """Build an AgentContext whose logger propagates to caplog"""
    def _make(hostname='test-host', **settings):
        config = AgentConfig(**settings)
        logger = logging.getLogger('hostpulse.tests')
        logger.setLevel(logging.DEBUG)
        return AgentContext(config=config, logger=logger, hostname=hostname)
    return _make


@pytest.fixture
def context(make_context):
    return make_context()


@pytest.fixture
def make_metric():
    def _make(unix_time=1_700_000_000, hostname='test-host', **fields):
        values = dict(
            hostname=hostname,
            uptime=86400,
            cpu_load=0.42,
            local_ip='192.168.1.20',
            public_ip='203.0.113.5',
            memory_usage=37.5,
        )
        values.update(fields)
        return Metric(timestamp=datetime.fromtimestamp(unix_time, tz=timezone.utc), **values)
    return _make


@pytest.fixture(autouse=True)
def restore_signal_handlers():
    """HostAgent installs SIGTERM/SIGINT handlers; put pytest's back"""
    saved = {sig: signal.getsignal(sig) for sig in (signal.SIGTERM, signal.SIGINT)}
    yield
    for sig, handler in saved.items():
        signal.signal(sig, handler)
