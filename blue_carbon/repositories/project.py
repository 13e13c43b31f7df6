"""
Project repository implementation using MongoDB.

This module provides data access for projects. Updates are optimistic:
a write only lands if the stored revision is the one the caller loaded.
"""
from typing import List, Optional
import uuid

from blue_carbon.interfaces.providers.data_storage import DataStorageProvider
from blue_carbon.interfaces.repositories import ProjectRepository
from blue_carbon.domains.projects import Project, ProjectStatus


class MongoProjectRepository(ProjectRepository):
    """MongoDB implementation of the ProjectRepository interface."""

    def __init__(self, db_adapter: DataStorageProvider, collection_name: str = "projects"):
        """Initialize with a MongoDB adapter.

        Args:
            db_adapter: MongoDB adapter
            collection_name: Name of the collection to use
        """
        self.db_adapter = db_adapter
        self.collection = collection_name

        if not self.db_adapter.collection_exists(self.collection):
            self.db_adapter.create_collection(self.collection)
        self.db_adapter.create_index(self.collection, [("status", 1)])

    def create(self, project: Project) -> str:
        """Create a new project.

        Args:
            project: Project to create

        Returns:
            ID of the created project
        """
        if not project.id:
            project.id = str(uuid.uuid4())

        document = project.model_dump(mode="json")
        document["_id"] = project.id
        self.db_adapter.insert_one(self.collection, document)

        return project.id

    def get(self, project_id: str) -> Optional[Project]:
        """Get a project by ID.

        Args:
            project_id: ID of the project to retrieve

        Returns:
            Project or None if not found
        """
        document = self.db_adapter.find_one(self.collection, {"_id": project_id})
        if not document:
            return None

        return Project.model_validate(document)

    def update(self, project: Project, expected_revision: int) -> bool:
        """Replace a project if nobody else has written it since it was loaded.

        Args:
            project: Project to store
            expected_revision: Revision the caller loaded

        Returns:
            True if the stored revision matched and the project was written
        """
        document = project.model_dump(mode="json")
        return self.db_adapter.update_one(
            self.collection,
            {"_id": project.id, "revision": expected_revision},
            {"$set": document},
        )

    def find_by_status(self, status: ProjectStatus) -> List[Project]:
        """Find projects by status, oldest first.

        Args:
            status: Project status

        Returns:
            List of matching projects
        """
        status_value = ProjectStatus(status).value
        documents = self.db_adapter.find(
            self.collection, {"status": status_value}, sort=[("created_at", 1)]
        )
        return [Project.model_validate(document) for document in documents]
