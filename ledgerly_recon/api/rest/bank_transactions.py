from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session
from typing import List, Optional

from ledgerly_recon.api.rest.errors import to_http_exception
from ledgerly_recon.core.database import get_db
from ledgerly_recon.schemas.bank_transaction import (
    AllocationSuggestion,
    AllocationUpdate,
    LinkRequest,
    Transaction,
    TransactionStatus,
)
from ledgerly_recon.schemas.document import DocumentFeed
from ledgerly_recon.schemas.match import CandidateOption
from ledgerly_recon.schemas.rule import RuleFeed
from ledgerly_recon.services.reconciliation_service import ReconciliationService

router = APIRouter(prefix="/companies/{company_id}/bank-transactions", tags=["bank-transactions"])


@router.get("", response_model=List[Transaction])
def list_transactions(
    company_id: str,
    status: Optional[TransactionStatus] = Query(None),
    db: Session = Depends(get_db),
):
    """List bank transactions in statement order"""
    return ReconciliationService.list_transactions(db, company_id, status)


@router.delete("")
def clear_transactions(company_id: str, db: Session = Depends(get_db)):
    """Delete all bank transactions for a company"""
    deleted = ReconciliationService.clear_transactions(db, company_id)
    return {"deleted": deleted}


@router.get("/export/allocations")
def export_allocations(company_id: str, db: Session = Depends(get_db)):
    """Download allocated transactions without a matching document"""
    content = ReconciliationService.export_allocations(db, company_id)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="allocations.csv"'},
    )


@router.post("/{transaction_id}/link", response_model=Transaction)
def link_transaction(
    company_id: str,
    transaction_id: str,
    link_data: LinkRequest,
    db: Session = Depends(get_db),
):
    """Match a transaction to a receipt or invoice"""
    try:
        return ReconciliationService.link(db, company_id, transaction_id, link_data.kind, link_data.document_id)
    except ValueError as e:
        raise to_http_exception(e)


@router.post("/{transaction_id}/unlink", response_model=Transaction)
def unlink_transaction(company_id: str, transaction_id: str, db: Session = Depends(get_db)):
    try:
        return ReconciliationService.unlink(db, company_id, transaction_id)
    except ValueError as e:
        raise to_http_exception(e)


@router.post("/{transaction_id}/flip", response_model=Transaction)
def flip_transaction(company_id: str, transaction_id: str, db: Session = Depends(get_db)):
    """Reverse the sign of a transaction the bank exported the wrong way round"""
    try:
        return ReconciliationService.flip_direction(db, company_id, transaction_id)
    except ValueError as e:
        raise to_http_exception(e)


@router.post("/{transaction_id}/allocate", response_model=Transaction)
def allocate_transaction(
    company_id: str,
    transaction_id: str,
    allocation: AllocationUpdate,
    db: Session = Depends(get_db),
):
    """Allocate a transaction that has no matching document"""
    try:
        return ReconciliationService.allocate(db, company_id, transaction_id, allocation)
    except ValueError as e:
        raise to_http_exception(e)


@router.post("/{transaction_id}/unallocate", response_model=Transaction)
def unallocate_transaction(company_id: str, transaction_id: str, db: Session = Depends(get_db)):
    try:
        return ReconciliationService.unallocate(db, company_id, transaction_id)
    except ValueError as e:
        raise to_http_exception(e)


@router.post("/{transaction_id}/allocation-suggestion", response_model=AllocationSuggestion)
def suggest_allocation(
    company_id: str,
    transaction_id: str,
    feed: RuleFeed,
    db: Session = Depends(get_db),
):
    """Pre-fill allocation fields from counterparty rules and learned defaults"""
    try:
        return ReconciliationService.allocation_suggestion(db, company_id, transaction_id, feed.rules)
    except ValueError as e:
        raise to_http_exception(e)


@router.post("/{transaction_id}/candidates", response_model=List[CandidateOption])
def link_candidates(
    company_id: str,
    transaction_id: str,
    feed: DocumentFeed,
    db: Session = Depends(get_db),
):
    """Documents closest in amount on the transaction's side, for manual linking"""
    try:
        return ReconciliationService.candidates(db, company_id, transaction_id, feed)
    except ValueError as e:
        raise to_http_exception(e)
