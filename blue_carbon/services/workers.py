"""
Worker roster service implementation.

Manages the field workers assigned to a project and the credits they
earn. The total awarded to a project's workers never exceeds the credits
the project is estimated to generate.
"""
import logging
import math
from numbers import Real

from blue_carbon.domains.projects import Actor, Project, Worker, WorkerStatus
from blue_carbon.exceptions import InvalidInputError, WorkerNotFoundError
from blue_carbon.interfaces.services import WorkerRosterService as WorkerRosterServiceInterface
from blue_carbon.services.lifecycle import ProjectLifecycleService
from blue_carbon.services.sequestration import SequestrationCalculator

logger = logging.getLogger(__name__)


class WorkerRosterService(WorkerRosterServiceInterface):
    """Service for assigning workers and awarding their credits."""

    def __init__(self, lifecycle: ProjectLifecycleService, calculator: SequestrationCalculator):
        """Initialize the worker roster service.

        Args:
            lifecycle: Lifecycle service, used for its optimistic project writes
            calculator: Credit estimator bounding worker awards
        """
        self.lifecycle = lifecycle
        self.calculator = calculator

    async def add_worker(self, project: Project, worker: Worker, actor: Actor) -> Project:
        """Assign a worker to a project."""
        self.lifecycle.ensure_mutable(project)
        if project.find_worker(worker.id):
            raise InvalidInputError(f"Worker {worker.id} is already assigned to project {project.id}")

        self._check_cap(project, project_total=self._awarded(project) + worker.earned_credits)

        updated = project.model_copy(deep=True)
        updated.workers.append(worker)
        self.lifecycle.commit_update(project, updated)
        logger.info(f"Project {project.id}: worker {worker.id} added by {actor.id}")
        return updated

    async def set_worker_status(
        self, project: Project, worker_id: str, status: WorkerStatus, actor: Actor
    ) -> Project:
        """Activate or deactivate a worker."""
        try:
            status = WorkerStatus(status)
        except ValueError:
            raise InvalidInputError(f"Unknown worker status: {status!r}") from None

        self.lifecycle.ensure_mutable(project)
        updated = project.model_copy(deep=True)
        worker = updated.find_worker(worker_id)
        if worker is None:
            raise WorkerNotFoundError(project.id, worker_id)

        worker.status = status
        self.lifecycle.commit_update(project, updated)
        return updated

    async def award_credits(self, project: Project, worker_id: str, credits: float, actor: Actor) -> Project:
        """Add earned credits to a worker.

        Raises:
            InvalidInputError: If credits is negative or the project cap would be exceeded
            WorkerNotFoundError: If the worker is not on the project
        """
        self.lifecycle.ensure_mutable(project)
        if isinstance(credits, bool) or not isinstance(credits, Real) or not math.isfinite(credits) or credits < 0:
            raise InvalidInputError(f"Credits must be a finite non-negative number, got {credits!r}")

        updated = project.model_copy(deep=True)
        worker = updated.find_worker(worker_id)
        if worker is None:
            raise WorkerNotFoundError(project.id, worker_id)

        self._check_cap(project, project_total=self._awarded(project) + credits)

        worker.earned_credits += credits
        self.lifecycle.commit_update(project, updated)
        logger.info(f"Project {project.id}: {credits:g} credits awarded to worker {worker_id}")
        return updated

    def _awarded(self, project: Project) -> float:
        return sum(worker.earned_credits for worker in project.workers)

    def _check_cap(self, project: Project, project_total: float) -> None:
        cap = self.calculator.estimate_credits(project.ecosystem_type, project.hectares_restored)
        if project_total > cap:
            raise InvalidInputError(
                f"Worker credits {project_total:g} would exceed project {project.id} credits {cap}"
            )
