from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ledgerly_recon.api.rest.errors import to_http_exception
from ledgerly_recon.core.database import get_db
from ledgerly_recon.schemas.document import DocumentFeed
from ledgerly_recon.schemas.match import (
    ExplainRequest,
    ExplainResponse,
    ReconciliationSummary,
    SuggestionsResponse,
)
from ledgerly_recon.services.reconciliation_service import ReconciliationService

router = APIRouter(prefix="/companies/{company_id}/reconcile", tags=["reconciliation"])


@router.post("/suggestions", response_model=SuggestionsResponse)
def suggestions(company_id: str, feed: DocumentFeed, db: Session = Depends(get_db)):
    """Run a matching pass and return at most one suggestion per transaction"""
    return ReconciliationService.suggestions(db, company_id, feed)


@router.post("/summary", response_model=ReconciliationSummary)
def summary(company_id: str, feed: DocumentFeed, db: Session = Depends(get_db)):
    """Linked and suggested counts with the money-out and money-in rows still missing a document"""
    return ReconciliationService.summary(db, company_id, feed)


@router.post("/explain", response_model=ExplainResponse)
def explain(company_id: str, request: ExplainRequest, db: Session = Depends(get_db)):
    """Explain how a transaction scores against one document"""
    try:
        return ReconciliationService.explain(db, company_id, request)
    except ValueError as e:
        raise to_http_exception(e)
