"""
Service interfaces for business logic components.

These interfaces define the contracts for the lifecycle, issuance and
worker services, ensuring proper separation of concerns and testability.
"""
from abc import ABC, abstractmethod
from typing import AsyncGenerator, List, Optional

from blue_carbon.domains.certificates import Certificate, CreditView, IssuanceEvent, ReadyForCredits
from blue_carbon.domains.projects import (
    Actor,
    MediaEvidence,
    Project,
    ProjectStatus,
    Worker,
    WorkerStatus,
)


class ProjectLifecycleService(ABC):
    """Interface for driving projects through the approval workflow."""

    @abstractmethod
    async def submit_project(self, project: Project, actor: Actor) -> Project:
        """Submit a new project."""
        pass

    @abstractmethod
    async def get_project(self, project_id: str) -> Project:
        """Load a project."""
        pass

    @abstractmethod
    async def transition(
        self, project: Project, new_status: ProjectStatus, actor: Actor, comment: Optional[str] = None
    ) -> Project:
        """Apply a user-triggered status transition."""
        pass

    @abstractmethod
    async def finalize_issuance(self, project: Project, certificate: Certificate, actor: Actor) -> Project:
        """Move a project to credits-issued. Reserved for the issuance pipeline."""
        pass

    @abstractmethod
    async def attach_media(self, project: Project, evidence: MediaEvidence, actor: Actor) -> Project:
        """Attach media evidence to a project."""
        pass

    @abstractmethod
    async def update_progress(self, project: Project, percent: float, actor: Actor) -> Project:
        """Record advisory progress."""
        pass


class CertificateIssuanceService(ABC):
    """Interface for issuing certificates."""

    @abstractmethod
    def stream_issuance(self, project_id: str, actor: Actor) -> AsyncGenerator[IssuanceEvent, None]:
        """Run issuance, yielding a progress event per stage."""
        pass

    @abstractmethod
    async def issue_certificate(self, project_id: str, actor: Actor) -> Certificate:
        """Run issuance to completion and return the certificate."""
        pass

    @abstractmethod
    async def get_credit_view(self, project_id: str) -> CreditView:
        """Get the ready or issued view of a project."""
        pass

    @abstractmethod
    async def list_ready_for_credits(self) -> List[ReadyForCredits]:
        """List projects awaiting issuance."""
        pass


class WorkerRosterService(ABC):
    """Interface for managing the workers on a project."""

    @abstractmethod
    async def add_worker(self, project: Project, worker: Worker, actor: Actor) -> Project:
        """Assign a worker to a project."""
        pass

    @abstractmethod
    async def set_worker_status(
        self, project: Project, worker_id: str, status: WorkerStatus, actor: Actor
    ) -> Project:
        """Activate or deactivate a worker."""
        pass

    @abstractmethod
    async def award_credits(self, project: Project, worker_id: str, credits: float, actor: Actor) -> Project:
        """Credit a worker with part of the project's credits."""
        pass
