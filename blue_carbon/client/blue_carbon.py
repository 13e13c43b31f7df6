"""
Simplified client interface for the Blue Carbon MRV core.

This module provides a single entry point for the presentation layer
(Panchayat app, NCCR console) without dealing with wiring details.
"""
import json
import importlib.util
from typing import Any, AsyncGenerator, Dict, List, Optional, Union

from blue_carbon.domains.certificates import Certificate, CreditView, IssuanceEvent, ReadyForCredits
from blue_carbon.domains.projects import (
    Actor,
    EcosystemType,
    MediaEvidence,
    Project,
    ProjectStatus,
    Worker,
    WorkerStatus,
)
from blue_carbon.domains.revenue import RevenueSplit
from blue_carbon.factories.mrv_factory import BlueCarbonFactory
from blue_carbon.interfaces.providers.data_storage import DataStorageProvider


class BlueCarbonMRV:
    """Client facade over the lifecycle, issuance, revenue and worker services."""

    def __init__(
        self,
        config_path: str = None,
        config: Dict[str, Any] = None,
        db_adapter: Optional[DataStorageProvider] = None,
    ):
        """Initialize from a config file or dictionary.

        Args:
            config_path: Path to configuration file (JSON or Python)
            config: Configuration dictionary
            db_adapter: Optional storage adapter overriding the mongo config
        """
        if not config and not config_path:
            raise ValueError("Either config or config_path must be provided")

        if config_path:
            with open(config_path, "r") as f:
                if config_path.endswith(".json"):
                    config = json.load(f)
                else:
                    # Assume it's a Python file
                    spec = importlib.util.spec_from_file_location("config", config_path)
                    config_module = importlib.util.module_from_spec(spec)
                    spec.loader.exec_module(config_module)
                    config = config_module.config

        self.services = BlueCarbonFactory.create_from_config(config, db_adapter=db_adapter)

    def estimate_credits(self, ecosystem_type: Union[EcosystemType, str], hectares: float) -> int:
        return self.services.calculator.estimate_credits(ecosystem_type, hectares)

    def distribute(self, credit_quantity, market_rate_per_credit) -> RevenueSplit:
        return self.services.revenue.distribute(credit_quantity, market_rate_per_credit)

    async def submit_project(self, project: Project, actor: Actor) -> Project:
        return await self.services.lifecycle.submit_project(project, actor)

    async def get_project(self, project_id: str) -> Project:
        return await self.services.lifecycle.get_project(project_id)

    async def list_projects(self, status: ProjectStatus) -> List[Project]:
        return await self.services.lifecycle.list_by_status(status)

    async def transition(
        self, project: Project, new_status: ProjectStatus, actor: Actor, comment: Optional[str] = None
    ) -> Project:
        return await self.services.lifecycle.transition(project, new_status, actor, comment)

    async def attach_media(self, project: Project, evidence: MediaEvidence, actor: Actor) -> Project:
        return await self.services.lifecycle.attach_media(project, evidence, actor)

    async def update_progress(self, project: Project, percent: float, actor: Actor) -> Project:
        return await self.services.lifecycle.update_progress(project, percent, actor)

    async def add_worker(self, project: Project, worker: Worker, actor: Actor) -> Project:
        return await self.services.workers.add_worker(project, worker, actor)

    async def award_credits(self, project: Project, worker_id: str, credits: float, actor: Actor) -> Project:
        return await self.services.workers.award_credits(project, worker_id, credits, actor)

    async def set_worker_status(
        self, project: Project, worker_id: str, status: WorkerStatus, actor: Actor
    ) -> Project:
        return await self.services.workers.set_worker_status(project, worker_id, status, actor)

    async def issue_certificate(self, project: Union[Project, str], actor: Actor) -> Certificate:
        return await self.services.issuance.issue_certificate(project, actor)

    def stream_issuance(self, project: Union[Project, str], actor: Actor) -> AsyncGenerator[IssuanceEvent, None]:
        return self.services.issuance.stream_issuance(project, actor)

    async def get_credit_view(self, project_id: str) -> CreditView:
        return await self.services.issuance.get_credit_view(project_id)

    async def list_ready_for_credits(self) -> List[ReadyForCredits]:
        return await self.services.issuance.list_ready_for_credits()
