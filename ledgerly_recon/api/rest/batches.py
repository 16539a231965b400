from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from ledgerly_recon.api.rest.errors import to_http_exception
from ledgerly_recon.core.config import settings
from ledgerly_recon.core.database import get_db
from ledgerly_recon.schemas.batch_stat import (
    AllocateSuggestedBatchRequest,
    BatchActionResponse,
    BatchPage,
    BatchStatResponse,
    MatchSuggestedBatchRequest,
)
from ledgerly_recon.services.batch_stat_service import BatchStatService
from ledgerly_recon.services.reconciliation_service import ReconciliationService

router = APIRouter(prefix="/companies/{company_id}", tags=["batches"])


@router.get("/batches/page", response_model=BatchPage)
def batch_page(
    company_id: str,
    batch_size: int = Query(settings.default_batch_size, ge=1, le=1000),
    page_index: int = Query(0, ge=0),
    include_all: bool = Query(False),
    db: Session = Depends(get_db),
):
    """One page of the batch working list"""
    return ReconciliationService.batch_page(db, company_id, batch_size, page_index, include_all)


@router.post("/batches/match-suggested", response_model=BatchActionResponse)
def match_suggested_batch(
    company_id: str,
    request: MatchSuggestedBatchRequest,
    db: Session = Depends(get_db),
):
    """Accept the current suggestion for every open row on the page"""
    try:
        stat = ReconciliationService.match_suggested_batch(db, company_id, request)
    except ValueError as e:
        raise to_http_exception(e)
    page = ReconciliationService.batch_page(db, company_id, request.batch_size, stat.page_index, request.include_all)
    return BatchActionResponse(stat=BatchStatResponse.model_validate(stat), page=page)


@router.post("/batches/allocate-suggested", response_model=BatchActionResponse)
def allocate_suggested_batch(
    company_id: str,
    request: AllocateSuggestedBatchRequest,
    db: Session = Depends(get_db),
):
    """Pre-fill allocation fields for every open row on the page"""
    try:
        stat = ReconciliationService.allocate_suggested_batch(db, company_id, request)
    except ValueError as e:
        raise to_http_exception(e)
    page = ReconciliationService.batch_page(db, company_id, request.batch_size, stat.page_index, request.include_all)
    return BatchActionResponse(stat=BatchStatResponse.model_validate(stat), page=page)


@router.get("/batch-stats", response_model=List[BatchStatResponse])
def list_batch_stats(company_id: str, db: Session = Depends(get_db)):
    """Batch history, newest first"""
    return BatchStatService.list_batch_stats(db, company_id)
