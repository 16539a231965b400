from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional

from ledgerly_recon.core.config import settings
from ledgerly_recon.models.batch_stat import BatchAction, BatchSource
from ledgerly_recon.schemas.bank_transaction import Transaction
from ledgerly_recon.schemas.document import DocumentFeed
from ledgerly_recon.schemas.rule import CounterpartyRule


class BatchStatCreate(BaseModel):
    source: BatchSource
    action: BatchAction
    batch_size: int = Field(..., ge=1)
    page_index: int = Field(..., ge=0)
    applied: int = Field(0, ge=0)
    succeeded: int = Field(0, ge=0)
    failed: int = Field(0, ge=0)
    notes: Optional[str] = None


class BatchStatResponse(BaseModel):
    id: int
    company_id: str
    created_at: datetime
    source: BatchSource
    action: BatchAction
    batch_size: int
    page_index: int
    applied: int
    succeeded: int
    failed: int
    notes: Optional[str]

    class Config:
        from_attributes = True


class BatchPage(BaseModel):
    items: List[Transaction]
    batch_size: int
    page_index: int
    page_count: int
    total: int


class BatchOutcome(BaseModel):
    """Result of a pure batch operation: the full updated collection plus its stat"""
    transactions: List[Transaction]
    stat: BatchStatCreate


class MatchSuggestedBatchRequest(DocumentFeed):
    batch_size: int = Field(settings.default_batch_size, ge=1, le=1000)
    page_index: int = Field(0, ge=0)
    include_all: bool = False
    source: BatchSource = BatchSource.CATCH_UP


class AllocateSuggestedBatchRequest(BaseModel):
    batch_size: int = Field(settings.default_batch_size, ge=1, le=1000)
    page_index: int = Field(0, ge=0)
    include_all: bool = False
    mark_allocated: bool = False
    source: BatchSource = BatchSource.CATCH_UP
    rules: List[CounterpartyRule] = Field(default_factory=list)


class BatchActionResponse(BaseModel):
    stat: BatchStatResponse
    page: BatchPage


class PostResult(BaseModel):
    key: str
    ok: bool
    message: str


class PostBatchOutcome(BaseModel):
    results: List[PostResult]
    stat: BatchStatCreate
