"""
Shared fixtures for the Blue Carbon MRV test suite.

Storage is backed by mongomock, so every test gets a fresh in-memory
database wired through the real adapter and repositories.
"""
from datetime import datetime, timezone

import mongomock
import pytest
import pytest_asyncio

from blue_carbon.adapters.ledger_adapter import InMemoryLedgerAdapter
from blue_carbon.adapters.mongodb_adapter import MongoDBAdapter
from blue_carbon.domains.config import IssuanceSettings
from blue_carbon.domains.projects import (
    Actor,
    ActorRole,
    EcosystemType,
    GeoPoint,
    MediaEvidence,
    Project,
    ProjectStatus,
    Worker,
)
from blue_carbon.repositories.certificate import MongoCertificateRepository
from blue_carbon.repositories.project import MongoProjectRepository
from blue_carbon.services.issuance import CertificateIssuanceService
from blue_carbon.services.lifecycle import ProjectLifecycleService
from blue_carbon.services.sequestration import SequestrationCalculator
from blue_carbon.services.workers import WorkerRosterService


@pytest.fixture
def mongodb_adapter():
    """MongoDB adapter over a mongomock client."""
    return MongoDBAdapter(
        connection_string="mongodb://localhost:27017/",
        database_name="test_db",
        client=mongomock.MongoClient(),
    )


@pytest.fixture
def project_repository(mongodb_adapter):
    return MongoProjectRepository(mongodb_adapter)


@pytest.fixture
def certificate_repository(mongodb_adapter):
    return MongoCertificateRepository(mongodb_adapter)


@pytest.fixture
def calculator():
    return SequestrationCalculator()


@pytest.fixture
def ledger():
    return InMemoryLedgerAdapter()


@pytest.fixture
def issuance_settings():
    """Retry budget without backoff delays."""
    return IssuanceSettings(max_attempts=3, base_delay=0)


@pytest.fixture
def lifecycle(project_repository):
    return ProjectLifecycleService(project_repository)


@pytest.fixture
def make_issuance(project_repository, certificate_repository, calculator, lifecycle, issuance_settings):
    """Build an issuance service, optionally around a custom ledger or calculator."""
    def _make(ledger=None, calculator_override=None, settings=None):
        return CertificateIssuanceService(
            project_repository=project_repository,
            certificate_repository=certificate_repository,
            ledger=ledger if ledger is not None else InMemoryLedgerAdapter(),
            calculator=calculator_override or calculator,
            lifecycle=lifecycle,
            settings=settings or issuance_settings,
        )
    return _make


@pytest.fixture
def issuance(make_issuance, ledger):
    return make_issuance(ledger=ledger)


@pytest.fixture
def workers(lifecycle, calculator):
    return WorkerRosterService(lifecycle=lifecycle, calculator=calculator)


@pytest.fixture
def panchayat():
    return Actor(id="panchayat-kochi", role=ActorRole.PANCHAYAT, name="Kochi Gram Panchayat")


@pytest.fixture
def ngo():
    return Actor(id="ngo-mangrove-trust", role=ActorRole.NGO, name="Mangrove Trust")


@pytest.fixture
def reviewer():
    return Actor(id="nccr-officer-1", role=ActorRole.NCCR_REVIEWER, name="NCCR Officer")


@pytest.fixture
def sample_project():
    """Unsubmitted 15 ha mangrove project."""
    return Project(
        title="Coastal Mangrove Restoration",
        panchayat_id="panchayat-kochi",
        submitter_id="panchayat-kochi",
        ecosystem_type=EcosystemType.MANGROVE,
        location="Vypin, Ernakulam",
        hectares_restored=15,
    )


@pytest.fixture
def sample_media():
    return MediaEvidence(
        url="https://media.example.org/vypin/plot-1.jpg",
        captured_at=datetime(2025, 3, 14, 6, 30, tzinfo=timezone.utc),
        location=GeoPoint(latitude=10.0833, longitude=76.2167),
        accuracy_m=4.5,
    )


@pytest.fixture
def sample_worker():
    return Worker(
        id="worker-1",
        name="Lakshmi",
        mobile="+919800000001",
        payment_id="lakshmi@upi",
        assigned_tasks={"planting", "monitoring"},
    )


@pytest.fixture
def make_verified_project(lifecycle, panchayat, reviewer, sample_project, sample_media):
    """Drive a new project through review and field work into final verification."""
    async def _make(**overrides):
        project = sample_project.model_copy(update=overrides)
        project = await lifecycle.submit_project(project, panchayat)
        project = await lifecycle.transition(project, ProjectStatus.UNDER_REVIEW, reviewer)
        project = await lifecycle.transition(project, ProjectStatus.APPROVED, reviewer, "Approved")
        project = await lifecycle.attach_media(project, sample_media, panchayat)
        project = await lifecycle.transition(project, ProjectStatus.IN_PROGRESS, panchayat)
        project = await lifecycle.update_progress(project, 95, panchayat)
        return await lifecycle.transition(project, ProjectStatus.FINAL_VERIFICATION, panchayat)
    return _make


@pytest_asyncio.fixture
async def submitted_project(lifecycle, sample_project, panchayat):
    return await lifecycle.submit_project(sample_project, panchayat)


@pytest_asyncio.fixture
async def verified_project(make_verified_project):
    return await make_verified_project()
