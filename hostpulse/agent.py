#!/usr/bin/env python3
"""
Host agent daemon - sample, write one document, sleep, repeat.
"""

import signal
import sys
import threading
from typing import Callable, Optional

import click
from click.core import ParameterSource

from pulselog import get_logger, parse_level
from hostpulse.collectors import MetricSampler, resolve_hostname
from hostpulse.config import (
    AgentConfig, AgentContext, ConfigError, load_config, OUTPUTS, WRITE_MODES
)
from hostpulse.metrics import ERROR_TEXT
from hostpulse.store import DocumentAddress, build_writer, resolve_address


class HostAgent:
    """Main telemetry agent daemon"""

    def __init__(
        self,
        context: AgentContext,
        writer,  # FirestoreWriter, PostgreSQLWriter or FileWriter
        sampler: Optional[MetricSampler] = None,
        sleep: Optional[Callable[[float], None]] = None
    ):
        self.context = context
        self.config: AgentConfig = context.config
        self.logger = context.logger
        self.writer = writer
        self.sampler = sampler or MetricSampler(context)
        self.running = False

        self._stop = threading.Event()
        self._sleep = sleep or self._stop.wait

        signal.signal(signal.SIGTERM, self._handle_shutdown)
        signal.signal(signal.SIGINT, self._handle_shutdown)

    def _handle_shutdown(self, signum, frame):
        """Stop after the current step"""
        self.logger.info("shutdown signal received", extra={'context': {'signal': signum}})
        self.stop()

    def stop(self):
        self.running = False
        self._stop.set()

    def run(self):
        """Main daemon loop"""
        self.running = True
        self.logger.info(
            "starting host agent",
            extra={'context': {
                'hostname': self.context.hostname,
                'interval_hours': self.config.interval_hours,
                'output': self.config.output,
                'history': self.config.history,
                'write_mode': self.config.write_mode,
            }}
        )

        try:
            while self.running:
                try:
                    self.run_cycle()
                except Exception:
                    self.logger.error("error in collection cycle", exc_info=True)
                if self.running:
                    self._sleep(self.config.interval_seconds)
        finally:
            self._cleanup()

    def run_cycle(self) -> Optional[DocumentAddress]:
        """Single collection cycle; returns the written address or None"""
        metric = self.sampler.collect()
        address = resolve_address(metric, history=self.config.history)

        try:
            result = self.writer.write_metric(address, metric, mode=self.config.write_mode)
        except Exception as e:
            self.logger.error(
                "fail to create record",
                extra={'context': {'path': address.path, 'error': str(e)}}
            )
            return None

        self.logger.info(
            "metric created",
            extra={'context': {'path': address.path, 'result': result}}
        )
        return address

    def _cleanup(self):
        try:
            self.writer.close()
        except Exception as e:
            self.logger.error("error closing writer", extra={'context': {'error': str(e)}})
        self.logger.info("agent stopped")


def fatal(logger, message: str, error: Exception):
    logger.critical(message, extra={'context': {'error': str(error)}})
    sys.exit(1)


# Options that map straight onto AgentConfig fields
CONFIG_OPTIONS = (
    'project_id', 'key_path', 'interval_hours', 'hostname', 'history',
    'refresh_hostname', 'write_mode', 'output', 'timeout'
)


@click.command()
@click.option('-proj', '--project', 'project_id', default='', help='Firestore project id')
@click.option('-key', '--key', 'key_path', default='', help='GCP service account JSON key file path')
@click.option('-i', '--interval', 'interval_hours', type=int, default=6, show_default=True,
              help='Record interval in hours')
@click.option('--config', 'config_path', type=click.Path(exists=True), default=None,
              help='Path to config.yml')
@click.option('--hostname', default=None, help='Hostname to report (default: OS hostname)')
@click.option('--history/--latest-only', default=True,
              help='One document per cycle, or a single latest document per host')
@click.option('--refresh-hostname/--cache-hostname', default=False,
              help='Re-read the hostname every cycle')
@click.option('--write-mode', type=click.Choice(WRITE_MODES), default='create', show_default=True,
              help='create fails on an existing document, upsert overwrites it')
@click.option('--output', type=click.Choice(OUTPUTS), default='firestore', show_default=True,
              help='Document store backend')
@click.option('--timeout', type=float, default=30.0, show_default=True,
              help='Seconds allowed for the IP lookup and the document write')
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              default='INFO', show_default=True)
@click.option('--plain-logs', is_flag=True, help='Plain text log lines instead of JSON')
def main(config_path, log_level, plain_logs, **options):
    """Run the host telemetry agent"""
    logger = get_logger('hostpulse', level=parse_level(log_level), use_json=not plain_logs)

    # Command-line values override the config file only when given explicitly
    ctx = click.get_current_context()
    overrides = {
        name: options[name]
        for name in CONFIG_OPTIONS
        if ctx.get_parameter_source(name) is not ParameterSource.DEFAULT
    }

    try:
        config = load_config(config_path, overrides)
    except ConfigError as e:
        fatal(logger, "invalid configuration", e)

    hostname = config.hostname
    if not hostname:
        try:
            hostname = resolve_hostname()
        except OSError as e:
            if not config.refresh_hostname:
                fatal(logger, "fail to retrieve host name", e)
            logger.error("fail to retrieve host name", extra={'context': {'error': str(e)}})
            hostname = ERROR_TEXT

    try:
        writer = build_writer(config)
    except Exception as e:
        fatal(logger, f"fail to init {config.output} client", e)

    context = AgentContext(config=config, logger=logger, hostname=hostname)
    agent = HostAgent(context, writer)
    agent.run()


if __name__ == '__main__':
    main()
