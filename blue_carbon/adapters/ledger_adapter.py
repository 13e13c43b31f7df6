"""
Ledger adapters.

Both adapters simulate an append-only issuance ledger. Records are
content-addressed by the hash of their payload, so rewriting an identical
payload is a no-op that returns the original hash. A second, different
payload for a project that already has a record is rejected.
"""
import logging
from typing import Dict, List, Optional

from pymongo.errors import DuplicateKeyError

from blue_carbon.domains.certificates import IssuancePayload
from blue_carbon.domains.projects import utc_now
from blue_carbon.exceptions import (
    LedgerRejectedError,
    LedgerUnavailableError,
    PersistenceUnavailableError,
)
from blue_carbon.interfaces.providers.data_storage import DataStorageProvider
from blue_carbon.interfaces.providers.ledger import LedgerProvider

logger = logging.getLogger(__name__)

GENESIS_HASH = "0x0"


class InMemoryLedgerAdapter(LedgerProvider):
    """Process-local hash chain."""

    def __init__(self, hash_algorithm: str = "sha256"):
        self.hash_algorithm = hash_algorithm
        self.blocks: List[Dict] = []
        self._by_hash: Dict[str, Dict] = {}
        self._by_project: Dict[str, str] = {}

    async def write_record(self, payload: IssuancePayload) -> str:
        record_hash = payload.content_hash(self.hash_algorithm)
        if record_hash in self._by_hash:
            return record_hash

        existing = self._by_project.get(payload.project_id)
        if existing is not None:
            raise LedgerRejectedError(
                f"Project {payload.project_id} already has ledger record {existing}"
            )

        block = {
            "index": len(self.blocks),
            "hash": record_hash,
            "previous_hash": self.blocks[-1]["hash"] if self.blocks else GENESIS_HASH,
            "payload": payload.model_dump(mode="json"),
            "recorded_at": utc_now().isoformat(),
        }
        self.blocks.append(block)
        self._by_hash[record_hash] = block
        self._by_project[payload.project_id] = record_hash
        logger.info(f"Ledger record {record_hash} appended for project {payload.project_id}")
        return record_hash

    async def get_record(self, record_hash: str) -> Optional[Dict]:
        return self._by_hash.get(record_hash)


class MongoLedgerAdapter(LedgerProvider):
    """Append-only ledger collection keyed by record hash."""

    def __init__(
        self,
        db_adapter: DataStorageProvider,
        collection_name: str = "ledger",
        hash_algorithm: str = "sha256",
    ):
        self.db_adapter = db_adapter
        self.collection = collection_name
        self.hash_algorithm = hash_algorithm

        if not self.db_adapter.collection_exists(self.collection):
            self.db_adapter.create_collection(self.collection)
        self.db_adapter.create_index(self.collection, [("project_id", 1)], unique=True)

    async def write_record(self, payload: IssuancePayload) -> str:
        record_hash = payload.content_hash(self.hash_algorithm)
        try:
            if self.db_adapter.find_one(self.collection, {"_id": record_hash}):
                return record_hash
            self.db_adapter.insert_one(
                self.collection,
                {
                    "_id": record_hash,
                    "project_id": payload.project_id,
                    "payload": payload.model_dump(mode="json"),
                    "recorded_at": utc_now().isoformat(),
                },
            )
        except PersistenceUnavailableError as e:
            raise LedgerUnavailableError(str(e)) from e
        except DuplicateKeyError as e:
            # Either a concurrent identical write or a conflicting payload
            if self.db_adapter.find_one(self.collection, {"_id": record_hash}):
                return record_hash
            raise LedgerRejectedError(
                f"Project {payload.project_id} already has a different ledger record"
            ) from e

        logger.info(f"Ledger record {record_hash} appended for project {payload.project_id}")
        return record_hash

    async def get_record(self, record_hash: str) -> Optional[Dict]:
        try:
            return self.db_adapter.find_one(self.collection, {"_id": record_hash})
        except PersistenceUnavailableError as e:
            raise LedgerUnavailableError(str(e)) from e
