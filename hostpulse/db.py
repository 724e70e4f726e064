"""
PostgreSQL writer for host metrics.

Documents are rows of `host_metrics` keyed by (collection, doc_id), so the
same addressing and create/upsert semantics apply as for Firestore.
"""

from contextlib import contextmanager

from psycopg2 import errors
from psycopg2.pool import SimpleConnectionPool

from hostpulse.metrics import Metric
from hostpulse.store import DocumentAddress, DocumentExistsError, CREATE

SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS host_metrics (
        collection TEXT NOT NULL,
        doc_id TEXT NOT NULL,
        timestamp TIMESTAMPTZ NOT NULL,
        hostname TEXT NOT NULL,
        uptime BIGINT NOT NULL,
        cpu_load DOUBLE PRECISION NOT NULL,
        local_ip TEXT NOT NULL,
        public_ip TEXT NOT NULL,
        memory_usage DOUBLE PRECISION NOT NULL,
        PRIMARY KEY (collection, doc_id)
    )
"""

INSERT_SQL = """
    INSERT INTO host_metrics (
        collection, doc_id, timestamp, hostname, uptime,
        cpu_load, local_ip, public_ip, memory_usage
    ) VALUES (
        %s, %s, %s, %s, %s, %s, %s, %s, %s
    )
"""

UPSERT_SQL = INSERT_SQL + """
    ON CONFLICT (collection, doc_id) DO UPDATE SET
        timestamp = EXCLUDED.timestamp,
        hostname = EXCLUDED.hostname,
        uptime = EXCLUDED.uptime,
        cpu_load = EXCLUDED.cpu_load,
        local_ip = EXCLUDED.local_ip,
        public_ip = EXCLUDED.public_ip,
        memory_usage = EXCLUDED.memory_usage
"""


class PostgreSQLWriter:
    """Writes host metrics to PostgreSQL with connection pooling"""

    def __init__(self, database_url: str, timeout: float = 30.0,
                 min_connections: int = 1, max_connections: int = 2):
        self.pool = SimpleConnectionPool(
            min_connections,
            max_connections,
            database_url,
            connect_timeout=max(1, int(timeout)),
            options=f"-c statement_timeout={int(timeout * 1000)}"
        )
        self.ensure_schema()

    @contextmanager
    def get_connection(self):
        """Get a connection from the pool"""
        conn = self.pool.getconn()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self.pool.putconn(conn)

    def ensure_schema(self) -> None:
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)

    def write_metric(self, address: DocumentAddress, metric: Metric, mode: str = CREATE) -> str:
        """Insert the metric row; `create` fails on an existing key"""
        m = metric
        values = (
            address.collection, address.doc_id, m.timestamp, m.hostname, m.uptime,
            m.cpu_load, m.local_ip, m.public_ip, m.memory_usage
        )
        sql = INSERT_SQL if mode == CREATE else UPSERT_SQL

        try:
            with self.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, values)
        except errors.UniqueViolation:
            raise DocumentExistsError(address)

        return address.path

    def close(self):
        """Close all connections in the pool"""
        self.pool.closeall()
