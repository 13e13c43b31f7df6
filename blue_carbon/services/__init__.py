from blue_carbon.services.sequestration import SequestrationCalculator
from blue_carbon.services.revenue import RevenueDistributor
from blue_carbon.services.lifecycle import ProjectLifecycleService, ThresholdProgressGate, TRANSITIONS
from blue_carbon.services.issuance import CertificateIssuanceService
from blue_carbon.services.workers import WorkerRosterService
