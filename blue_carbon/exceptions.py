"""
Error taxonomy for the Blue Carbon MRV core.

Local validation errors fail fast with no partial state. Collaborator
failures (ledger, persistence) are surfaced as typed errors so a wrapping
service can map them to its own transport format.
"""
from typing import Optional


class BlueCarbonError(Exception):
    """Base class for all domain errors."""


class InvalidInputError(BlueCarbonError, ValueError):
    """Malformed numeric or enum input. Always the caller's fault."""


class UnknownEcosystemError(BlueCarbonError, ValueError):
    """Ecosystem type has no configured sequestration rate."""

    def __init__(self, ecosystem_type):
        self.ecosystem_type = ecosystem_type
        super().__init__(f"Unknown ecosystem type: {ecosystem_type!r}")


class InvalidTransitionError(BlueCarbonError):
    """Illegal state-machine edge."""

    def __init__(self, from_state, to_state, reason: Optional[str] = None):
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason
        message = f"Invalid transition: {_value(from_state)} -> {_value(to_state)}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class TransitionGuardError(InvalidTransitionError):
    """Edge exists but its guard rejected the actor or the project."""


class ImmutableProjectError(BlueCarbonError):
    """Project has been issued credits and is read-only."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project {project_id} has credits issued and is read-only")


class ConcurrentModificationError(BlueCarbonError):
    """Stored project changed since the caller loaded it. Reload and retry."""

    def __init__(self, project_id: str, expected_revision: int):
        self.project_id = project_id
        self.expected_revision = expected_revision
        super().__init__(
            f"Project {project_id} was modified concurrently "
            f"(expected revision {expected_revision})"
        )


class ProjectNotFoundError(BlueCarbonError, LookupError):
    """No project stored under the given id."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")


class WorkerNotFoundError(BlueCarbonError, LookupError):
    """No worker with the given id is assigned to the project."""

    def __init__(self, project_id: str, worker_id: str):
        self.project_id = project_id
        self.worker_id = worker_id
        super().__init__(f"Worker {worker_id} not found on project {project_id}")


class LedgerUnavailableError(BlueCarbonError):
    """Transient ledger outage. Safe to retry with the same payload."""


class LedgerRejectedError(BlueCarbonError):
    """Ledger permanently refused the record. Not retryable."""


class PersistenceUnavailableError(BlueCarbonError):
    """Transient storage outage. Safe to retry."""


class IssuanceFailedError(BlueCarbonError):
    """Issuance retry budget exhausted or finalization failed."""

    def __init__(self, project_id: str, last_completed_stage=None, cause: Optional[BaseException] = None):
        self.project_id = project_id
        self.last_completed_stage = last_completed_stage
        self.cause = cause
        stage = _value(last_completed_stage) if last_completed_stage else "none"
        message = f"Certificate issuance failed for project {project_id} (last completed stage: {stage})"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


def _value(state) -> str:
    return getattr(state, "value", state)
