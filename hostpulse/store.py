"""
Document addressing shared by the store backends.

History mode keeps one document per cycle under a per-host collection:

    Metric/Host/<hostname>/<unix seconds>

Latest-only mode keeps a single document per host:

    Metric/Latest/Host/<hostname>
"""

from dataclasses import dataclass

from hostpulse.config import AgentConfig
from hostpulse.metrics import Metric

HISTORY_ROOT = 'Metric/Host'
LATEST_COLLECTION = 'Metric/Latest/Host'

CREATE = 'create'
UPSERT = 'upsert'


class DocumentExistsError(Exception):
    """Create-mode write against a path that already holds a document"""

    def __init__(self, address: 'DocumentAddress'):
        super().__init__(f"Document already exists: {address.path}")
        self.address = address


@dataclass(frozen=True)
class DocumentAddress:
    collection: str
    doc_id: str

    @property
    def path(self) -> str:
        return f"{self.collection}/{self.doc_id}"


def resolve_address(metric: Metric, history: bool = True) -> DocumentAddress:
    """Where this metric is written"""
    if history:
        return DocumentAddress(f"{HISTORY_ROOT}/{metric.hostname}", str(metric.unix_time))
    return DocumentAddress(LATEST_COLLECTION, metric.hostname)


def build_writer(config: AgentConfig):
    """
    Construct the backend selected by `config.output`.

    Client construction errors (bad credentials, unreachable database)
    propagate to the caller, which treats them as fatal.
    """
    if config.output == 'file':
        from hostpulse.file_writer import FileWriter
        return FileWriter(config.output_dir)

    if config.output == 'postgres':
        from hostpulse.db import PostgreSQLWriter
        return PostgreSQLWriter(config.postgres_url, timeout=config.timeout)

    from hostpulse.firestore_writer import FirestoreWriter
    return FirestoreWriter(config.project_id, config.key_path, timeout=config.timeout)
