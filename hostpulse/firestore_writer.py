"""
Firestore writer for host metrics.
"""

from google.api_core.exceptions import AlreadyExists
from google.cloud import firestore

from hostpulse.metrics import Metric
from hostpulse.store import DocumentAddress, DocumentExistsError, CREATE


class FirestoreWriter:
    """Writes one document per metric through a Firestore client"""

    def __init__(self, project_id: str, key_path: str = '', timeout: float = 30.0):
        self.timeout = timeout
        if key_path:
            self.client = firestore.Client.from_service_account_json(
                key_path, project=project_id or None
            )
        else:
            # Application default credentials
            self.client = firestore.Client(project=project_id or None)

    def write_metric(self, address: DocumentAddress, metric: Metric, mode: str = CREATE) -> str:
        """
        Write the metric at `address`.

        `create` fails if the document exists; `upsert` overwrites it.
        Returns the server update time.
        """
        doc = self.client.collection(address.collection).document(address.doc_id)
        data = metric.to_document()

        if mode == CREATE:
            try:
                result = doc.create(data, timeout=self.timeout)
            except AlreadyExists:
                raise DocumentExistsError(address)
        else:
            result = doc.set(data, timeout=self.timeout)

        return str(result.update_time)

    def close(self):
        self.client.close()
