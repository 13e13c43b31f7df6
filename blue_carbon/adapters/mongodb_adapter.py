"""
MongoDB adapter for the Blue Carbon MRV core.

This adapter implements the DataStorageProvider interface for MongoDB.
"""
import uuid
from contextlib import contextmanager
from typing import Dict, List, Tuple, Optional

from pymongo import MongoClient
from pymongo.errors import ConnectionFailure

from blue_carbon.exceptions import PersistenceUnavailableError
from blue_carbon.interfaces.providers.data_storage import DataStorageProvider


@contextmanager
def _unavailable_on_connection_failure():
    try:
        yield
    except ConnectionFailure as e:
        raise PersistenceUnavailableError(str(e)) from e


class MongoDBAdapter(DataStorageProvider):
    """MongoDB implementation of DataStorageProvider."""

    def __init__(self, connection_string: str, database_name: str, client: Optional[MongoClient] = None):
        self.client = client if client is not None else MongoClient(connection_string)
        self.db = self.client[database_name]

    def create_collection(self, name: str) -> None:
        with _unavailable_on_connection_failure():
            if name not in self.db.list_collection_names():
                self.db.create_collection(name)

    def collection_exists(self, name: str) -> bool:
        with _unavailable_on_connection_failure():
            return name in self.db.list_collection_names()

    def insert_one(self, collection: str, document: Dict) -> str:
        if "_id" not in document:
            document["_id"] = str(uuid.uuid4())
        with _unavailable_on_connection_failure():
            self.db[collection].insert_one(document)
        return document["_id"]

    def find_one(self, collection: str, query: Dict) -> Optional[Dict]:
        with _unavailable_on_connection_failure():
            return self.db[collection].find_one(query)

    def find(
        self,
        collection: str,
        query: Dict,
        sort: Optional[List[Tuple]] = None,
        limit: int = 0,
        skip: int = 0
    ) -> List[Dict]:
        with _unavailable_on_connection_failure():
            cursor = self.db[collection].find(query)
            if sort:
                cursor = cursor.sort(sort)
            if skip > 0:
                cursor = cursor.skip(skip)
            if limit > 0:
                cursor = cursor.limit(limit)
            return list(cursor)

    def update_one(self, collection: str, query: Dict, update: Dict, upsert: bool = False) -> bool:
        with _unavailable_on_connection_failure():
            result = self.db[collection].update_one(query, update, upsert=upsert)
        return result.matched_count > 0 or (upsert and result.upserted_id is not None)

    def create_index(self, collection: str, keys: List[Tuple], **kwargs) -> None:
        with _unavailable_on_connection_failure():
            self.db[collection].create_index(keys, **kwargs)
