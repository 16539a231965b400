from ledgerly_recon.services.statement_parser import StatementParser
from ledgerly_recon.services.matching_service import MatchingService
from ledgerly_recon.services.allocation_service import AllocationService
from ledgerly_recon.services.batch_workflow import BatchWorkflow
from ledgerly_recon.services.batch_stat_service import BatchStatService
from ledgerly_recon.services.learned_defaults_service import LearnedDefaultsService
from ledgerly_recon.services.idempotency_service import IdempotencyService
from ledgerly_recon.services.explanation_service import ExplanationService
from ledgerly_recon.services.reconciliation_service import ReconciliationService

__all__ = [
    "StatementParser",
    "MatchingService",
    "AllocationService",
    "BatchWorkflow",
    "BatchStatService",
    "LearnedDefaultsService",
    "IdempotencyService",
    "ExplanationService",
    "ReconciliationService",
]
