from ledgerly_recon.schemas.bank_transaction import (
    Transaction,
    TransactionStatus,
    LinkRequest,
    AllocationUpdate,
    AllocationSuggestion,
)
from ledgerly_recon.schemas.document import ReceiptSummary, InvoiceSummary, DocumentFeed
from ledgerly_recon.schemas.match import MatchSuggestion, ScoreBreakdown, SuggestionsResponse
from ledgerly_recon.schemas.rule import CounterpartyRule, LearnedDefaults, RuleFeed
from ledgerly_recon.schemas.statement import ColumnMapping, StatementPreview, ParsedStatement
from ledgerly_recon.schemas.batch_stat import BatchStatCreate, BatchStatResponse, BatchPage

__all__ = [
    "Transaction",
    "TransactionStatus",
    "LinkRequest",
    "AllocationUpdate",
    "AllocationSuggestion",
    "ReceiptSummary",
    "InvoiceSummary",
    "DocumentFeed",
    "MatchSuggestion",
    "ScoreBreakdown",
    "SuggestionsResponse",
    "CounterpartyRule",
    "LearnedDefaults",
    "RuleFeed",
    "ColumnMapping",
    "StatementPreview",
    "ParsedStatement",
    "BatchStatCreate",
    "BatchStatResponse",
    "BatchPage",
]
