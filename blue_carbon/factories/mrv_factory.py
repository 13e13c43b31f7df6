"""
Factory for creating and wiring components of the Blue Carbon MRV core.

This module handles the creation and dependency injection for the
adapters, repositories and services built from a configuration dict.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from blue_carbon.adapters.ledger_adapter import InMemoryLedgerAdapter, MongoLedgerAdapter
from blue_carbon.adapters.mongodb_adapter import MongoDBAdapter
from blue_carbon.domains.config import MRVConfig
from blue_carbon.interfaces.providers.data_storage import DataStorageProvider
from blue_carbon.interfaces.providers.ledger import LedgerProvider
from blue_carbon.repositories.certificate import MongoCertificateRepository
from blue_carbon.repositories.project import MongoProjectRepository
from blue_carbon.services.issuance import CertificateIssuanceService
from blue_carbon.services.lifecycle import ProjectLifecycleService
from blue_carbon.services.revenue import RevenueDistributor
from blue_carbon.services.sequestration import SequestrationCalculator
from blue_carbon.services.workers import WorkerRosterService

logger = logging.getLogger(__name__)


@dataclass
class MRVServices:
    """Wired services sharing one storage adapter and ledger."""
    config: MRVConfig
    calculator: SequestrationCalculator
    revenue: RevenueDistributor
    lifecycle: ProjectLifecycleService
    issuance: CertificateIssuanceService
    workers: WorkerRosterService
    ledger: LedgerProvider


class BlueCarbonFactory:
    """Factory for creating and wiring components of the MRV core."""

    @staticmethod
    def create_ledger(config: MRVConfig, db_adapter: DataStorageProvider) -> LedgerProvider:
        """Instantiate the configured ledger collaborator."""
        settings = config.ledger
        if settings.provider == "mongo":
            logger.info(f"Using MongoDB ledger collection '{settings.collection}'")
            return MongoLedgerAdapter(
                db_adapter=db_adapter,
                collection_name=settings.collection,
                hash_algorithm=settings.hash_algorithm,
            )
        logger.info("Using in-memory ledger")
        return InMemoryLedgerAdapter(hash_algorithm=settings.hash_algorithm)

    @staticmethod
    def create_from_config(
        config: Dict[str, Any], db_adapter: Optional[DataStorageProvider] = None
    ) -> MRVServices:
        """Create the MRV services from configuration.

        Args:
            config: Configuration dictionary
            db_adapter: Optional pre-built storage adapter, used instead of ``config["mongo"]``

        Returns:
            Wired MRVServices
        """
        mrv_config = MRVConfig.model_validate(config)

        if db_adapter is None:
            if mrv_config.mongo is None:
                raise ValueError("MongoDB configuration is required.")
            db_adapter = MongoDBAdapter(
                connection_string=mrv_config.mongo.connection_string,
                database_name=mrv_config.mongo.database,
            )

        project_repository = MongoProjectRepository(db_adapter)
        certificate_repository = MongoCertificateRepository(db_adapter)
        ledger = BlueCarbonFactory.create_ledger(mrv_config, db_adapter)

        calculator = SequestrationCalculator(mrv_config.sequestration)
        revenue = RevenueDistributor(mrv_config.revenue)
        lifecycle = ProjectLifecycleService(
            project_repository=project_repository,
            policy=mrv_config.lifecycle,
        )
        issuance = CertificateIssuanceService(
            project_repository=project_repository,
            certificate_repository=certificate_repository,
            ledger=ledger,
            calculator=calculator,
            lifecycle=lifecycle,
            settings=mrv_config.issuance,
        )
        workers = WorkerRosterService(lifecycle=lifecycle, calculator=calculator)

        logger.info(
            f"MRV services ready (verification gate {mrv_config.lifecycle.final_verification_threshold:g}%, "
            f"{mrv_config.issuance.max_attempts} issuance attempts)"
        )
        return MRVServices(
            config=mrv_config,
            calculator=calculator,
            revenue=revenue,
            lifecycle=lifecycle,
            issuance=issuance,
            workers=workers,
            ledger=ledger,
        )
