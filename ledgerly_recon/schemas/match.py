from pydantic import BaseModel, field_serializer
from decimal import Decimal
from typing import Dict, List, Optional

from ledgerly_recon.schemas.bank_transaction import DocumentKind, Transaction
from ledgerly_recon.schemas.document import DocumentFeed


class MatchSuggestion(BaseModel):
    kind: DocumentKind
    id: str
    label: str
    score: float

    @field_serializer('score')
    def serialize_score(self, value: float) -> float:
        """Serialize score to 4 decimal places"""
        return round(value, 4)


class ScoreBreakdown(BaseModel):
    amount_score: float
    date_score: float
    text_score: float
    score: float
    amount_delta_cents: int
    day_diff: Optional[int]


class SuggestionsResponse(BaseModel):
    suggestions: Dict[str, Optional[MatchSuggestion]]
    total_transactions: int
    suggested: int


class ReconciliationTotals(BaseModel):
    linked: int
    suggested: int
    missing_out: int
    missing_in: int


class ReconciliationSummary(BaseModel):
    """Counts plus the unmatched money-out and money-in rows still needing a document"""
    totals: ReconciliationTotals
    missing_out: List[Transaction]
    missing_in: List[Transaction]


class CandidateOption(BaseModel):
    kind: DocumentKind
    id: str
    name: str
    day_key: str
    status: str
    amount: Decimal
    score: float


class ExplainRequest(DocumentFeed):
    transaction_id: str
    kind: DocumentKind
    document_id: str


class ExplainResponse(BaseModel):
    transaction_id: str
    kind: DocumentKind
    document_id: str
    breakdown: ScoreBreakdown
    suggestible: bool
    explanation: str
