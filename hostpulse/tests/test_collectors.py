"""
Unit tests for the metric sampler and IP resolvers.
"""

import ipaddress
import logging
from datetime import datetime
from unittest.mock import MagicMock, Mock, patch

import pytest
import requests

from hostpulse.collectors import (
    LocalIPResolver,
    MetricSampler,
    PublicIPResolver,
    resolve_hostname
)
from hostpulse.metrics import FIELDS, Metric


def _echo_response(body='203.0.113.5'):
    response = Mock()
    response.status_code = 200
    response.text = body
    return response


@pytest.fixture
def offline_sampler(context):
    """Sampler with both network lookups stubbed out"""
    sampler = MetricSampler(context)
    sampler.public_ip = Mock(resolve=Mock(return_value='203.0.113.5'))
    sampler.local_ip = Mock(resolve=Mock(return_value='192.168.1.20'))
    return sampler


class TestMetricSampler:
    """Test MetricSampler collector"""

    def test_collect_returns_complete_metric(self, offline_sampler):
        """Should fill every field from the host"""
        metric = offline_sampler.collect()

        assert isinstance(metric, Metric)
        assert isinstance(metric.timestamp, datetime)
        assert metric.timestamp.tzinfo is not None
        assert metric.hostname == 'test-host'
        assert metric.uptime > 0
        assert metric.cpu_load >= 0
        assert 0 <= metric.memory_usage <= 100
        assert metric.public_ip == '203.0.113.5'
        assert metric.local_ip == '192.168.1.20'

    def test_document_has_all_fields(self, offline_sampler):
        """Serialized record should carry exactly the seven stored keys"""
        document = offline_sampler.collect().to_document()

        assert tuple(document) == FIELDS
        assert all(value is not None for value in document.values())

    def test_memory_failure_uses_sentinel(self, offline_sampler, caplog):
        """Memory read failure should give -1 and log one error"""
        with patch('hostpulse.collectors.psutil.virtual_memory', side_effect=OSError('meminfo unreadable')):
            with caplog.at_level(logging.ERROR):
                metric = offline_sampler.collect()

        assert metric.memory_usage == -1
        assert metric.cpu_load >= 0
        assert [r.getMessage() for r in caplog.records] == ['memory stat read error']
        assert caplog.records[0].context == {'error': 'meminfo unreadable'}

    def test_load_failure_uses_sentinel(self, offline_sampler, caplog):
        """Load average read failure should give -1"""
        with patch('hostpulse.collectors.psutil.getloadavg', side_effect=OSError('no loadavg')):
            with caplog.at_level(logging.ERROR):
                metric = offline_sampler.collect()

        assert metric.cpu_load == -1
        assert 'cpu stat read error' in caplog.text

    def test_host_failure_keeps_cached_hostname(self, offline_sampler, caplog):
        """Uptime falls back to 0; the startup hostname is kept"""
        with patch('hostpulse.collectors.psutil.boot_time', side_effect=OSError('no boot time')):
            with caplog.at_level(logging.ERROR):
                metric = offline_sampler.collect()

        assert metric.uptime == 0
        assert metric.hostname == 'test-host'
        assert 'host stat read error' in caplog.text

    def test_host_failure_in_refresh_mode(self, make_context):
        """Refresh mode should report the hostname sentinel"""
        sampler = MetricSampler(make_context(refresh_hostname=True))
        sampler.public_ip = Mock(resolve=Mock(return_value='203.0.113.5'))
        sampler.local_ip = Mock(resolve=Mock(return_value='192.168.1.20'))

        with patch('hostpulse.collectors.socket.gethostname', side_effect=OSError('uname failed')):
            metric = sampler.collect()

        assert metric.hostname == 'error'
        assert metric.uptime == 0

    def test_refresh_mode_rereads_hostname(self, make_context):
        """Refresh mode should pick up a renamed host"""
        sampler = MetricSampler(make_context(hostname='old-name', refresh_hostname=True))
        sampler.public_ip = Mock(resolve=Mock(return_value='203.0.113.5'))
        sampler.local_ip = Mock(resolve=Mock(return_value='192.168.1.20'))

        with patch('hostpulse.collectors.socket.gethostname', return_value='new-name'):
            metric = sampler.collect()

        assert metric.hostname == 'new-name'

    def test_supplied_hostname_is_not_reread(self, make_context):
        """An externally supplied hostname wins even in refresh mode"""
        context = make_context(hostname='given', refresh_hostname=True)
        context.config.hostname = 'given'
        sampler = MetricSampler(context)
        sampler.public_ip = Mock(resolve=Mock(return_value='203.0.113.5'))
        sampler.local_ip = Mock(resolve=Mock(return_value='192.168.1.20'))

        with patch('hostpulse.collectors.socket.gethostname', return_value='os-name'):
            metric = sampler.collect()

        assert metric.hostname == 'given'

    def test_every_reading_failing(self, context):
        """All sentinels at once; the record is still complete"""
        sampler = MetricSampler(context)
        with patch('hostpulse.collectors.psutil.virtual_memory', side_effect=OSError), \
             patch('hostpulse.collectors.psutil.getloadavg', side_effect=OSError), \
             patch('hostpulse.collectors.psutil.boot_time', side_effect=OSError), \
             patch('hostpulse.collectors.requests.get', side_effect=requests.exceptions.ConnectionError), \
             patch('hostpulse.collectors.socket.socket', side_effect=OSError('no sockets')):
            metric = sampler.collect()

        assert metric.memory_usage == -1
        assert metric.cpu_load == -1
        assert metric.uptime == 0
        assert metric.public_ip == 'error'
        assert metric.local_ip == 'error'
        assert metric.hostname == 'test-host'


class TestPublicIPResolver:
    """Test PublicIPResolver"""

    def test_returns_body(self, context):
        """Should return the echoed address"""
        with patch('hostpulse.collectors.requests.get', return_value=_echo_response()) as mock_get:
            ip = PublicIPResolver(context).resolve()

        assert ip == '203.0.113.5'
        mock_get.assert_called_once_with('https://api.ipify.org', timeout=30.0)

    def test_strips_whitespace(self, context):
        """Trailing newline should not reach the record"""
        with patch('hostpulse.collectors.requests.get', return_value=_echo_response('203.0.113.5\n')):
            assert PublicIPResolver(context).resolve() == '203.0.113.5'

    def test_uses_configured_timeout(self, make_context):
        with patch('hostpulse.collectors.requests.get', return_value=_echo_response()) as mock_get:
            PublicIPResolver(make_context(timeout=2.5)).resolve()

        assert mock_get.call_args.kwargs['timeout'] == 2.5

    def test_connection_error(self, context, caplog):
        """Should return the sentinel and log the cause"""
        with patch('hostpulse.collectors.requests.get',
                   side_effect=requests.exceptions.ConnectionError('Connection refused')):
            with caplog.at_level(logging.ERROR):
                ip = PublicIPResolver(context).resolve()

        assert ip == 'error'
        assert 'public ip api request error' in caplog.text
        assert 'Connection refused' in caplog.records[0].context['error']

    def test_timeout(self, context, caplog):
        """Timeout is one more recoverable failure"""
        with patch('hostpulse.collectors.requests.get', side_effect=requests.exceptions.Timeout):
            with caplog.at_level(logging.ERROR):
                ip = PublicIPResolver(context).resolve()

        assert ip == 'error'
        assert 'timed out' in caplog.text

    def test_http_error_status(self, context):
        """A 5xx page is not an address"""
        response = _echo_response('<html>Service Unavailable</html>')
        response.status_code = 503
        response.raise_for_status.side_effect = requests.exceptions.HTTPError('503 Server Error')

        with patch('hostpulse.collectors.requests.get', return_value=response):
            assert PublicIPResolver(context).resolve() == 'error'

    def test_empty_body(self, context):
        with patch('hostpulse.collectors.requests.get', return_value=_echo_response('')):
            assert PublicIPResolver(context).resolve() == 'error'


class TestLocalIPResolver:
    """Test LocalIPResolver"""

    def test_reads_bound_address(self, context):
        """Should return the address the OS bound for the route"""
        with patch('hostpulse.collectors.socket.socket') as mock_socket:
            sock = mock_socket.return_value.__enter__.return_value
            sock.getsockname.return_value = ('192.168.1.20', 54321)

            ip = LocalIPResolver(context).resolve()

        assert ip == '192.168.1.20'
        sock.connect.assert_called_once_with(('8.8.8.8', 80))
        sock.send.assert_not_called()
        sock.sendto.assert_not_called()

    def test_no_route(self, context, caplog):
        """Unreachable network gives the sentinel and still releases the socket"""
        with patch('hostpulse.collectors.socket.socket') as mock_socket:
            sock = mock_socket.return_value.__enter__.return_value
            sock.connect.side_effect = OSError(101, 'Network is unreachable')

            with caplog.at_level(logging.ERROR):
                ip = LocalIPResolver(context).resolve()

        assert ip == 'error'
        assert mock_socket.return_value.__exit__.called
        assert 'local ip read error' in caplog.text

    def test_custom_rendezvous(self, make_context):
        context = make_context(rendezvous_host='1.1.1.1', rendezvous_port=53)
        with patch('hostpulse.collectors.socket.socket') as mock_socket:
            sock = mock_socket.return_value.__enter__.return_value
            sock.getsockname.return_value = ('10.0.0.5', 40000)
            LocalIPResolver(context).resolve()

        sock.connect.assert_called_once_with(('1.1.1.1', 53))

    def test_real_socket_never_raises(self, context):
        """Either a real IPv4 address or the sentinel, whatever the sandbox allows"""
        ip = LocalIPResolver(context).resolve()

        if ip != 'error':
            assert ipaddress.ip_address(ip).version == 4


def test_resolve_hostname():
    with patch('hostpulse.collectors.socket.gethostname', return_value='box-1'):
        assert resolve_hostname() == 'box-1'


def test_resolve_hostname_empty():
    with patch('hostpulse.collectors.socket.gethostname', return_value=''):
        with pytest.raises(OSError):
            resolve_hostname()
