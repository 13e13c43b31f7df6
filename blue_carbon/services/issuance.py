"""
Certificate issuance service implementation.

Issuance runs in four stages, each reported as progress events:

1. validate  - re-check the project and look for an existing certificate
2. ledger    - write the issuance payload to the ledger
3. generate  - build and persist the certificate
4. finalize  - move the project to credits-issued

The ledger payload is derived from the project alone (credits and the
time it entered final verification), so every retry and every later
invocation writes the same record and gets the same hash. A certificate
that was persisted before finalization failed is picked up and finalized
by the next invocation instead of being issued again.
"""
import asyncio
import logging
import weakref
from typing import AsyncGenerator, Awaitable, Callable, Dict, List, Optional, Tuple, Type, Union

from pydantic import TypeAdapter

from blue_carbon.domains.certificates import (
    Certificate,
    CreditView,
    IssuanceEvent,
    IssuanceEventType,
    IssuancePayload,
    IssuanceStage,
    ReadyForCredits,
)
from blue_carbon.domains.config import IssuanceSettings
from blue_carbon.domains.projects import Actor, Project, ProjectStatus
from blue_carbon.exceptions import (
    ConcurrentModificationError,
    InvalidInputError,
    InvalidTransitionError,
    IssuanceFailedError,
    LedgerUnavailableError,
    PersistenceUnavailableError,
    ProjectNotFoundError,
)
from blue_carbon.interfaces.providers.ledger import LedgerProvider
from blue_carbon.interfaces.repositories import CertificateRepository, ProjectRepository
from blue_carbon.interfaces.services import CertificateIssuanceService as CertificateIssuanceServiceInterface
from blue_carbon.services.lifecycle import ProjectLifecycleService
from blue_carbon.services.sequestration import SequestrationCalculator

logger = logging.getLogger(__name__)

_credit_view_adapter = TypeAdapter(CreditView)

_RETRYABLE: Tuple[Type[Exception], ...] = (LedgerUnavailableError, PersistenceUnavailableError)
_RETRYABLE_FINALIZE: Tuple[Type[Exception], ...] = (PersistenceUnavailableError, ConcurrentModificationError)


class CertificateIssuanceService(CertificateIssuanceServiceInterface):
    """Service for issuing carbon credit certificates."""

    def __init__(
        self,
        project_repository: ProjectRepository,
        certificate_repository: CertificateRepository,
        ledger: LedgerProvider,
        calculator: SequestrationCalculator,
        lifecycle: ProjectLifecycleService,
        settings: Optional[IssuanceSettings] = None,
    ):
        """Initialize the issuance service.

        Args:
            project_repository: Repository for project data
            certificate_repository: Repository for certificates
            ledger: Ledger collaborator
            calculator: Credit estimator
            lifecycle: Lifecycle service used for the final transition
            settings: Retry budget and certificate defaults
        """
        self.project_repository = project_repository
        self.certificate_repository = certificate_repository
        self.ledger = ledger
        self.calculator = calculator
        self.lifecycle = lifecycle
        self.settings = settings or IssuanceSettings()
        # Held only while an issuance runs or waits on it
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, project_id: str) -> asyncio.Lock:
        lock = self._locks.get(project_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[project_id] = lock
        return lock

    async def issue_certificate(self, project: Union[Project, str], actor: Actor) -> Certificate:
        """Issue the certificate for a project in final verification.

        Calling this again after success returns the same certificate.

        Args:
            project: Project or project ID
            actor: Actor requesting issuance

        Returns:
            The issued certificate

        Raises:
            IssuanceFailedError: If the retry budget is exhausted or finalization failed
            LedgerRejectedError: If the ledger permanently refused the record
        """
        certificate = None
        async for event in self.stream_issuance(project, actor):
            if event.type == IssuanceEventType.ISSUED:
                certificate = event.certificate
        return certificate

    async def stream_issuance(
        self, project: Union[Project, str], actor: Actor
    ) -> AsyncGenerator[IssuanceEvent, None]:
        """Run issuance, yielding an event as each stage starts, retries and completes.

        At most one issuance runs at a time for a given project.
        """
        project_id = project.id if isinstance(project, Project) else project
        lock = self._lock_for(project_id)
        async with lock:
            async for event in self._run(project_id, actor):
                yield event

    async def _run(self, project_id: str, actor: Actor) -> AsyncGenerator[IssuanceEvent, None]:
        yield self._event(project_id, IssuanceStage.VALIDATE, IssuanceEventType.STARTED)
        try:
            project = self.project_repository.get(project_id)
            if project is None:
                raise ProjectNotFoundError(project_id)
            existing = self.certificate_repository.get_by_project(project_id)
            if existing is None:
                payload = self._validate(project)
        except Exception as e:
            yield self._event(project_id, IssuanceStage.VALIDATE, IssuanceEventType.FAILED, detail=str(e))
            raise

        if existing is not None and project.is_issued:
            yield self._event(project_id, IssuanceStage.VALIDATE, IssuanceEventType.COMPLETED,
                              detail="Certificate already issued")
            for stage in (IssuanceStage.LEDGER, IssuanceStage.GENERATE, IssuanceStage.FINALIZE):
                yield self._event(project_id, stage, IssuanceEventType.SKIPPED)
            yield self._issued(existing)
            return

        if existing is not None:
            if project.status != ProjectStatus.FINAL_VERIFICATION:
                error = InvalidTransitionError(project.status, ProjectStatus.CREDITS_ISSUED,
                                               f"certificate {existing.certificate_id} exists")
                yield self._event(project_id, IssuanceStage.VALIDATE, IssuanceEventType.FAILED, detail=str(error))
                raise error
            logger.warning(
                f"Project {project_id}: reconciling persisted certificate {existing.certificate_id}"
            )
            yield self._event(project_id, IssuanceStage.VALIDATE, IssuanceEventType.COMPLETED,
                              detail=f"Reconciling certificate {existing.certificate_id}")
            yield self._event(project_id, IssuanceStage.LEDGER, IssuanceEventType.SKIPPED)
            yield self._event(project_id, IssuanceStage.GENERATE, IssuanceEventType.SKIPPED)
            certificate = existing
        else:
            yield self._event(project_id, IssuanceStage.VALIDATE, IssuanceEventType.COMPLETED,
                              detail=f"{payload.credits} credits")

            outcome: Dict[str, object] = {}
            async for event in self._with_retries(
                project_id, IssuanceStage.LEDGER, lambda: self.ledger.write_record(payload),
                _RETRYABLE, IssuanceStage.VALIDATE, outcome,
            ):
                yield event
            record_hash = outcome["result"]

            async for event in self._with_retries(
                project_id, IssuanceStage.GENERATE, lambda: self._generate(project, payload, record_hash),
                _RETRYABLE, IssuanceStage.LEDGER, outcome,
            ):
                yield event
            certificate = outcome["result"]

        async for event in self._with_retries(
            project_id, IssuanceStage.FINALIZE, lambda: self._finalize(project_id, certificate, actor),
            _RETRYABLE_FINALIZE, IssuanceStage.GENERATE, {}, wrap_fatal=True,
        ):
            yield event

        logger.info(
            f"Project {project_id}: certificate {certificate.certificate_id} issued "
            f"for {certificate.credits_generated} tCO2e"
        )
        yield self._issued(certificate)

    def _validate(self, project: Project) -> IssuancePayload:
        if project.status != ProjectStatus.FINAL_VERIFICATION:
            raise InvalidTransitionError(project.status, ProjectStatus.CREDITS_ISSUED,
                                         "issuance requires final verification")
        if project.hectares_restored <= 0:
            raise InvalidInputError(f"Project {project.id} has no restored area")

        credits = self.calculator.estimate_credits(project.ecosystem_type, project.hectares_restored)
        if credits <= 0:
            raise InvalidInputError(f"Project {project.id} would generate no credits")

        verified_at = project.timeline.entered_at(ProjectStatus.FINAL_VERIFICATION) or project.updated_at
        return IssuancePayload(project_id=project.id, credits=credits, timestamp=verified_at)

    async def _generate(self, project: Project, payload: IssuancePayload, record_hash: str) -> Certificate:
        vintage_year = payload.timestamp.year
        certificate = Certificate(
            certificate_id=Certificate.make_id(vintage_year, record_hash),
            project_id=project.id,
            credits_generated=payload.credits,
            blockchain_hash=record_hash,
            vintage_year=vintage_year,
            methodology=self.settings.methodology,
            ecosystem_type=project.ecosystem_type,
            hectares_restored=project.hectares_restored,
        )
        if self.certificate_repository.create(certificate):
            return certificate

        stored = self.certificate_repository.get_by_project(project.id)
        if stored is None:
            raise PersistenceUnavailableError(
                f"Certificate for project {project.id} was rejected as a duplicate but cannot be read"
            )
        logger.warning(f"Project {project.id}: adopting concurrently stored certificate {stored.certificate_id}")
        return stored

    async def _finalize(self, project_id: str, certificate: Certificate, actor: Actor) -> Project:
        project = self.project_repository.get(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return await self.lifecycle.finalize_issuance(project, certificate, actor)

    async def _with_retries(
        self,
        project_id: str,
        stage: IssuanceStage,
        operation: Callable[[], Awaitable],
        retryable: Tuple[Type[Exception], ...],
        last_completed: IssuanceStage,
        outcome: Dict[str, object],
        wrap_fatal: bool = False,
    ) -> AsyncGenerator[IssuanceEvent, None]:
        """Run one stage with bounded exponential backoff, storing its result in ``outcome``.

        Non-retryable errors propagate unchanged unless ``wrap_fatal`` is set, in
        which case they are reported as IssuanceFailedError like an exhausted budget.
        """
        max_attempts = self.settings.max_attempts
        for attempt in range(1, max_attempts + 1):
            yield self._event(project_id, stage, IssuanceEventType.STARTED, attempt=attempt)
            try:
                outcome["result"] = await operation()
            except retryable as e:
                if attempt == max_attempts:
                    logger.error(
                        f"Project {project_id}: {stage.value} failed after {attempt} attempts: {e}"
                    )
                    yield self._event(project_id, stage, IssuanceEventType.FAILED, attempt=attempt, detail=str(e))
                    raise IssuanceFailedError(project_id, last_completed, e) from e
                delay = self.settings.delay_for(attempt)
                logger.warning(
                    f"Project {project_id}: {stage.value} attempt {attempt} failed ({e}), retrying in {delay:g}s"
                )
                yield self._event(project_id, stage, IssuanceEventType.RETRYING, attempt=attempt, detail=str(e))
                await asyncio.sleep(delay)
                continue
            except Exception as e:
                logger.error(f"Project {project_id}: {stage.value} failed: {e}")
                yield self._event(project_id, stage, IssuanceEventType.FAILED, attempt=attempt, detail=str(e))
                if wrap_fatal:
                    raise IssuanceFailedError(project_id, last_completed, e) from e
                raise
            yield self._event(project_id, stage, IssuanceEventType.COMPLETED, attempt=attempt)
            return

    def _event(
        self,
        project_id: str,
        stage: IssuanceStage,
        event_type: IssuanceEventType,
        attempt: int = 1,
        detail: str = "",
    ) -> IssuanceEvent:
        return IssuanceEvent(project_id=project_id, stage=stage, type=event_type, attempt=attempt, detail=detail)

    def _issued(self, certificate: Certificate) -> IssuanceEvent:
        return IssuanceEvent(
            project_id=certificate.project_id,
            stage=IssuanceStage.FINALIZE,
            type=IssuanceEventType.ISSUED,
            detail=certificate.certificate_id,
            certificate=certificate,
        )

    async def get_certificate(self, project_id: str) -> Optional[Certificate]:
        """Get the certificate issued for a project, if any."""
        return self.certificate_repository.get_by_project(project_id)

    async def get_credit_view(self, project_id: str) -> CreditView:
        """Build the ready or issued view of a project.

        Raises:
            ProjectNotFoundError: If the project does not exist
            InvalidTransitionError: If the project is neither in final verification nor issued
        """
        project = self.project_repository.get(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)

        base = {
            "project_id": project.id,
            "title": project.title,
            "panchayat_id": project.panchayat_id,
            "ecosystem_type": project.ecosystem_type,
            "hectares_restored": project.hectares_restored,
        }
        if project.is_issued:
            certificate = self.certificate_repository.get_by_project(project_id)
            if certificate is None:
                raise ProjectNotFoundError(project_id)
            return _credit_view_adapter.validate_python({
                **base,
                "kind": "issued",
                **certificate.model_dump(
                    include={"certificate_id", "credits_generated", "date_issued", "blockchain_hash",
                             "vintage_year", "methodology", "status"}),
            })
        if project.status == ProjectStatus.FINAL_VERIFICATION:
            estimated = self.calculator.estimate_credits(project.ecosystem_type, project.hectares_restored)
            return _credit_view_adapter.validate_python({**base, "kind": "ready", "estimated_credits": estimated})

        raise InvalidTransitionError(project.status, ProjectStatus.CREDITS_ISSUED, "not ready for credits")

    async def list_ready_for_credits(self) -> List[ReadyForCredits]:
        """Projects in final verification, oldest first."""
        views = []
        for project in self.project_repository.find_by_status(ProjectStatus.FINAL_VERIFICATION):
            views.append(ReadyForCredits(
                project_id=project.id,
                title=project.title,
                panchayat_id=project.panchayat_id,
                ecosystem_type=project.ecosystem_type,
                hectares_restored=project.hectares_restored,
                estimated_credits=self.calculator.estimate_credits(
                    project.ecosystem_type, project.hectares_restored),
            ))
        return views
