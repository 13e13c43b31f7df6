"""
Abstract interfaces for the Blue Carbon MRV core.

These interfaces define the contracts that concrete implementations
must adhere to, following the Dependency Inversion Principle.

This package contains:
- Repository interfaces for data access
- Provider interfaces for storage and ledger adapters
- Service interfaces for business logic components
"""
from blue_carbon.interfaces.providers import DataStorageProvider, LedgerProvider
from blue_carbon.interfaces.repositories import CertificateRepository, ProjectRepository
from blue_carbon.interfaces.services import (
    CertificateIssuanceService,
    ProjectLifecycleService,
    WorkerRosterService,
)
