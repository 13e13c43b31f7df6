"""
Project lifecycle service implementation.

This service drives restoration projects through the approval workflow:

    submitted -> under-review -> {corrections-requested -> under-review}*
      -> approved -> in-progress -> final-verification -> credits-issued

Permitted edges and their guards live in a single table. Every accepted
transition appends one timeline entry and is written optimistically
against the revision the caller loaded.
"""
import logging
from datetime import datetime, timedelta
from numbers import Real
from typing import Callable, Dict, List, Optional, Tuple

from blue_carbon.domains.certificates import Certificate
from blue_carbon.domains.config import LifecyclePolicy
from blue_carbon.domains.projects import (
    Actor,
    ActorRole,
    MediaEvidence,
    Project,
    ProjectStatus,
    TimelineEntry,
    utc_now,
)
from blue_carbon.exceptions import (
    ConcurrentModificationError,
    ImmutableProjectError,
    InvalidInputError,
    InvalidTransitionError,
    ProjectNotFoundError,
    TransitionGuardError,
)
from blue_carbon.interfaces.repositories import ProjectRepository
from blue_carbon.interfaces.services import ProjectLifecycleService as ProjectLifecycleServiceInterface

logger = logging.getLogger(__name__)

ProgressGate = Callable[[Project], bool]


class ThresholdProgressGate:
    """Passes once advisory progress reaches a fixed percentage."""

    def __init__(self, threshold: float = 90.0):
        self.threshold = threshold

    def __call__(self, project: Project) -> bool:
        return project.progress_percent >= self.threshold


# A guard returns None when it passes, or the reason it failed.
Guard = Callable[["ProjectLifecycleService", Project, Actor], Optional[str]]


def _reviewer_only(service, project: Project, actor: Actor) -> Optional[str]:
    if actor.role != ActorRole.NCCR_REVIEWER:
        return f"requires an NCCR reviewer, got {actor.role.value}"
    return None


def _original_submitter(service, project: Project, actor: Actor) -> Optional[str]:
    if actor.id != project.submitter_id:
        return "resubmission must come from the original submitter"
    return None


def _has_media(service, project: Project, actor: Actor) -> Optional[str]:
    if not project.media:
        return "at least one media evidence entry is required"
    return None


def _progress_gate(service, project: Project, actor: Actor) -> Optional[str]:
    if not service.progress_gate(project):
        return f"progress {project.progress_percent:g}% has not reached the verification gate"
    return None


def _pipeline_only(service, project: Project, actor: Actor) -> Optional[str]:
    return "credits are issued only through the certificate issuance pipeline"


TRANSITIONS: Dict[ProjectStatus, Dict[ProjectStatus, Tuple[Guard, ...]]] = {
    ProjectStatus.SUBMITTED: {
        ProjectStatus.UNDER_REVIEW: (_reviewer_only,),
    },
    ProjectStatus.UNDER_REVIEW: {
        ProjectStatus.CORRECTIONS_REQUESTED: (_reviewer_only,),
        ProjectStatus.APPROVED: (_reviewer_only,),
    },
    ProjectStatus.CORRECTIONS_REQUESTED: {
        ProjectStatus.UNDER_REVIEW: (_original_submitter,),
    },
    ProjectStatus.APPROVED: {
        ProjectStatus.IN_PROGRESS: (_has_media,),
    },
    ProjectStatus.IN_PROGRESS: {
        ProjectStatus.FINAL_VERIFICATION: (_progress_gate,),
    },
    ProjectStatus.FINAL_VERIFICATION: {
        ProjectStatus.CREDITS_ISSUED: (_pipeline_only,),
    },
    ProjectStatus.CREDITS_ISSUED: {},
}


class ProjectLifecycleService(ProjectLifecycleServiceInterface):
    """Service for moving projects through the approval workflow."""

    def __init__(
        self,
        project_repository: ProjectRepository,
        policy: Optional[LifecyclePolicy] = None,
        progress_gate: Optional[ProgressGate] = None,
    ):
        """Initialize the lifecycle service.

        Args:
            project_repository: Repository for project data
            policy: Lifecycle policy, used to build the default progress gate
            progress_gate: Optional predicate overriding the threshold gate
        """
        self.repository = project_repository
        self.policy = policy or LifecyclePolicy()
        self.progress_gate = progress_gate or ThresholdProgressGate(
            self.policy.final_verification_threshold)

    async def submit_project(self, project: Project, actor: Actor) -> Project:
        """Submit a project, recording the initial timeline entry.

        Args:
            project: Project to submit
            actor: Submitting Panchayat or NGO

        Returns:
            The stored project
        """
        submitted = project.model_copy(deep=True)
        now = utc_now()
        submitted.status = ProjectStatus.SUBMITTED
        submitted.submitter_id = actor.id
        submitted.created_at = now
        submitted.updated_at = now
        submitted.revision = 0
        submitted.certificate_id = None
        submitted.timeline.entries = [
            TimelineEntry(
                status=ProjectStatus.SUBMITTED,
                timestamp=now,
                actor_id=actor.id,
                actor_role=actor.role,
                cycle=1,
                active=True,
            )
        ]

        self.repository.create(submitted)
        logger.info(f"Project {submitted.id} submitted by {actor.id}")
        return submitted

    async def get_project(self, project_id: str) -> Project:
        """Load a project.

        Raises:
            ProjectNotFoundError: If no project has this ID
        """
        project = self.repository.get(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    async def list_by_status(self, status: ProjectStatus) -> List[Project]:
        """List projects in a status, oldest first."""
        return self.repository.find_by_status(status)

    def allowed_transitions(self, project: Project) -> List[ProjectStatus]:
        """Next statuses an actor may request, ignoring guards."""
        return [
            status for status in TRANSITIONS.get(project.status, {})
            if status != ProjectStatus.CREDITS_ISSUED
        ]

    async def transition(
        self, project: Project, new_status: ProjectStatus, actor: Actor, comment: Optional[str] = None
    ) -> Project:
        """Apply a user-triggered transition.

        Args:
            project: Project as loaded by the caller
            new_status: Requested status
            actor: Actor requesting the change
            comment: Optional comment recorded on the timeline

        Returns:
            Updated copy of the project. The argument is left untouched.

        Raises:
            InvalidTransitionError: If the edge is not in the graph
            ImmutableProjectError: If credits have already been issued
            TransitionGuardError: If the edge exists but its guard fails
            ConcurrentModificationError: If the project changed since it was loaded
        """
        try:
            new_status = ProjectStatus(new_status)
        except ValueError:
            raise InvalidInputError(f"Unknown project status: {new_status!r}") from None

        self.ensure_mutable(project)
        edges = TRANSITIONS.get(project.status, {})
        if new_status not in edges:
            raise InvalidTransitionError(project.status, new_status)

        for guard in edges[new_status]:
            reason = guard(self, project, actor)
            if reason:
                raise TransitionGuardError(project.status, new_status, reason)

        updated = self._record(project, new_status, actor, comment)
        self._save(project, updated)
        logger.info(
            f"Project {project.id}: {project.status.value} -> {new_status.value} by {actor.id}"
        )
        return updated

    async def finalize_issuance(self, project: Project, certificate: Certificate, actor: Actor) -> Project:
        """Move a project to credits-issued, attaching the certificate.

        Only the issuance pipeline calls this. Re-finalizing with the same
        certificate returns the project unchanged.
        """
        if certificate.project_id != project.id:
            raise InvalidInputError(
                f"Certificate {certificate.certificate_id} belongs to project {certificate.project_id}"
            )
        if project.is_issued and project.certificate_id == certificate.certificate_id:
            return project
        if project.status != ProjectStatus.FINAL_VERIFICATION:
            raise InvalidTransitionError(project.status, ProjectStatus.CREDITS_ISSUED)

        updated = self._record(
            project, ProjectStatus.CREDITS_ISSUED, actor,
            comment=f"Certificate {certificate.certificate_id} issued",
            certificate_id=certificate.certificate_id,
        )
        updated.certificate_id = certificate.certificate_id
        self._save(project, updated)
        logger.info(f"Project {project.id} credits issued under {certificate.certificate_id}")
        return updated

    async def attach_media(self, project: Project, evidence: MediaEvidence, actor: Actor) -> Project:
        """Attach geotagged evidence."""
        self.ensure_mutable(project)
        updated = project.model_copy(deep=True)
        updated.media.append(evidence)
        self.commit_update(project, updated)
        logger.info(f"Project {project.id}: media attached by {actor.id}")
        return updated

    async def update_progress(self, project: Project, percent: float, actor: Actor) -> Project:
        """Record advisory progress between 0 and 100."""
        self.ensure_mutable(project)
        if isinstance(percent, bool) or not isinstance(percent, Real) or not 0 <= percent <= 100:
            raise InvalidInputError(f"Progress must be between 0 and 100, got {percent!r}")

        updated = project.model_copy(deep=True)
        updated.progress_percent = float(percent)
        self.commit_update(project, updated)
        return updated

    def ensure_mutable(self, project: Project) -> None:
        """Raise ImmutableProjectError once credits have been issued."""
        if project.is_issued:
            raise ImmutableProjectError(project.id)

    def commit_update(self, original: Project, updated: Project) -> None:
        """Stamp and optimistically store a non-transition change to a project."""
        updated.updated_at = self._tick(original)
        self._save(original, updated)

    def _tick(self, project: Project) -> datetime:
        """Current time, forced strictly past the project's last recorded time."""
        latest = project.updated_at
        if project.timeline.entries:
            latest = max(latest, project.timeline.entries[-1].timestamp)
        now = utc_now()
        return now if now > latest else latest + timedelta(microseconds=1)

    def _record(
        self,
        project: Project,
        status: ProjectStatus,
        actor: Actor,
        comment: Optional[str] = None,
        certificate_id: Optional[str] = None,
    ) -> Project:
        updated = project.model_copy(deep=True)
        timestamp = self._tick(project)

        cycle = updated.timeline.current_cycle
        if project.status == ProjectStatus.CORRECTIONS_REQUESTED and status == ProjectStatus.UNDER_REVIEW:
            cycle += 1

        for entry in updated.timeline.entries:
            entry.active = False
        updated.timeline.entries.append(
            TimelineEntry(
                status=status,
                timestamp=timestamp,
                actor_id=actor.id,
                actor_role=actor.role,
                comment=comment,
                cycle=cycle,
                active=True,
                certificate_id=certificate_id,
            )
        )
        updated.status = status
        updated.updated_at = timestamp
        return updated

    def _save(self, original: Project, updated: Project) -> None:
        updated.revision = original.revision + 1
        if not self.repository.update(updated, original.revision):
            logger.warning(
                f"Project {original.id}: stale write rejected at revision {original.revision}"
            )
            raise ConcurrentModificationError(original.id, original.revision)
