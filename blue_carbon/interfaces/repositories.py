"""
Repository interfaces for data access.

These interfaces define the persistence contracts used by the services,
allowing different storage implementations without changing the
business logic.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from blue_carbon.domains.certificates import Certificate
from blue_carbon.domains.projects import Project, ProjectStatus


class ProjectRepository(ABC):
    """Interface for project data access."""

    @abstractmethod
    def create(self, project: Project) -> str:
        """Store a new project and return its ID."""
        pass

    @abstractmethod
    def get(self, project_id: str) -> Optional[Project]:
        """Get a project by ID."""
        pass

    @abstractmethod
    def update(self, project: Project, expected_revision: int) -> bool:
        """Replace a stored project if its revision is still ``expected_revision``.

        Args:
            project: Project to store, already carrying its new revision
            expected_revision: Revision the caller loaded

        Returns:
            False if the stored revision no longer matches
        """
        pass

    @abstractmethod
    def find_by_status(self, status: ProjectStatus) -> List[Project]:
        """Find projects in a given status."""
        pass


class CertificateRepository(ABC):
    """Interface for certificate data access."""

    @abstractmethod
    def create(self, certificate: Certificate) -> bool:
        """Store a certificate.

        Returns:
            False if a certificate already exists for the project
        """
        pass

    @abstractmethod
    def get_by_project(self, project_id: str) -> Optional[Certificate]:
        """Get the certificate issued for a project."""
        pass

    @abstractmethod
    def get(self, certificate_id: str) -> Optional[Certificate]:
        """Get a certificate by its ID."""
        pass
