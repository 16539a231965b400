from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal

from ledgerly_recon.core.config import settings


class ReceiptSummary(BaseModel):
    """Read-only receipt projection supplied by the document service"""
    id: str
    vendor: Optional[str] = None
    receipt_date: Optional[str] = None
    created_at: str
    currency: str = Field(default_factory=lambda: settings.default_currency)
    total_amount: Optional[Decimal] = None
    status: str = "unknown"


class InvoiceSummary(BaseModel):
    """Read-only invoice projection supplied by the document service"""
    id: str
    client_name: Optional[str] = None
    invoice_number: Optional[str] = None
    invoice_date: Optional[str] = None
    created_at: str
    currency: str = Field(default_factory=lambda: settings.default_currency)
    total_amount: Optional[Decimal] = None
    workflow_status: str = "unknown"


class DocumentFeed(BaseModel):
    receipts: List[ReceiptSummary] = Field(default_factory=list)
    invoices: List[InvoiceSummary] = Field(default_factory=list)
