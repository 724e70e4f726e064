"""
JSON file writer for host metrics.

Each document becomes `<output_dir>/<collection>/<doc_id>.json`, which
mirrors the remote layout for hosts without store credentials.
"""

import json
from pathlib import Path

from hostpulse.metrics import Metric
from hostpulse.store import DocumentAddress, DocumentExistsError, CREATE


class FileWriter:
    """Writes one JSON file per document."""

    def __init__(self, output_dir: str):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def _get_path(self, address: DocumentAddress) -> Path:
        return self.output_dir / address.collection / f"{address.doc_id}.json"

    def write_metric(self, address: DocumentAddress, metric: Metric, mode: str = CREATE) -> str:
        path = self._get_path(address)
        path.parent.mkdir(parents=True, exist_ok=True)

        # 'x' refuses to replace an existing document
        file_mode = 'x' if mode == CREATE else 'w'
        try:
            with open(path, file_mode) as f:
                json.dump(metric.to_document(), f, default=str)
                f.write("\n")
        except FileExistsError:
            raise DocumentExistsError(address)

        return str(path)

    def close(self):
        """No-op; files are opened/closed per write."""
        pass
