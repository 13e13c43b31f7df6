"""
Certificate repository implementation using MongoDB.

Certificates are keyed by project ID, so the storage layer itself refuses
a second certificate for the same project.
"""
from typing import Optional

from pymongo.errors import DuplicateKeyError

from blue_carbon.interfaces.providers.data_storage import DataStorageProvider
from blue_carbon.interfaces.repositories import CertificateRepository
from blue_carbon.domains.certificates import Certificate


class MongoCertificateRepository(CertificateRepository):
    """MongoDB implementation of the CertificateRepository interface."""

    def __init__(self, db_adapter: DataStorageProvider, collection_name: str = "certificates"):
        self.db_adapter = db_adapter
        self.collection = collection_name

        if not self.db_adapter.collection_exists(self.collection):
            self.db_adapter.create_collection(self.collection)
        self.db_adapter.create_index(self.collection, [("certificate_id", 1)], unique=True)

    def create(self, certificate: Certificate) -> bool:
        document = certificate.model_dump(mode="json")
        document["_id"] = certificate.project_id
        try:
            self.db_adapter.insert_one(self.collection, document)
        except DuplicateKeyError:
            return False
        return True

    def get_by_project(self, project_id: str) -> Optional[Certificate]:
        document = self.db_adapter.find_one(self.collection, {"_id": project_id})
        return Certificate.model_validate(document) if document else None

    def get(self, certificate_id: str) -> Optional[Certificate]:
        document = self.db_adapter.find_one(self.collection, {"certificate_id": certificate_id})
        return Certificate.model_validate(document) if document else None
