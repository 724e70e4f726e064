"""
hostpulse: periodic host telemetry agent

Samples uptime, memory usage, 15-minute load and local/public IP address on
a fixed interval and writes each sample as one document to Firestore (or
PostgreSQL, or local JSON files).
"""

from hostpulse.agent import HostAgent
from hostpulse.collectors import MetricSampler, PublicIPResolver, LocalIPResolver
from hostpulse.metrics import Metric

__all__ = ['HostAgent', 'MetricSampler', 'PublicIPResolver', 'LocalIPResolver', 'Metric']
__version__ = '1.0.0'
