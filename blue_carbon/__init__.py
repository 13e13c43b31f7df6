"""
Blue Carbon MRV - carbon credit issuance core for blue carbon restoration.

This package provides the credit estimator, the project approval state
machine, the certificate issuance pipeline and the revenue split used
by the Panchayat and NCCR applications.
"""

# Client interface (main entry point)
from blue_carbon.client.blue_carbon import BlueCarbonMRV

# Factory for wiring services
from blue_carbon.factories.mrv_factory import BlueCarbonFactory, MRVServices

# Core services
from blue_carbon.services.sequestration import SequestrationCalculator
from blue_carbon.services.revenue import RevenueDistributor
from blue_carbon.services.lifecycle import ProjectLifecycleService, ThresholdProgressGate
from blue_carbon.services.issuance import CertificateIssuanceService
from blue_carbon.services.workers import WorkerRosterService

# Package metadata
__all__ = [
    # Main client interface
    "BlueCarbonMRV",
    # Factories
    "BlueCarbonFactory",
    "MRVServices",
    # Services
    "SequestrationCalculator",
    "RevenueDistributor",
    "ProjectLifecycleService",
    "ThresholdProgressGate",
    "CertificateIssuanceService",
    "WorkerRosterService",
]
