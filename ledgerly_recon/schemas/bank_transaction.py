from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional
from decimal import Decimal
import enum

from ledgerly_recon.core.config import settings

DocumentKind = Literal["receipt", "invoice"]
Direction = Literal["money_in", "money_out"]


class TransactionStatus(str, enum.Enum):
    UNMATCHED = "unmatched"
    MATCHED = "matched"
    ALLOCATED = "allocated"


class Transaction(BaseModel):
    """One normalized bank statement line.

    A transaction is unmatched, matched (``matched_id`` set) or allocated
    (``allocated`` true); the workflow functions keep those states exclusive.
    """

    id: str
    # Primary date used for matching, as exported by the bank (not necessarily ISO).
    date: str
    description: str
    amount: Decimal
    currency: str = Field(default_factory=lambda: settings.default_currency)

    nr: Optional[str] = None
    account: Optional[str] = None
    posting_date: Optional[str] = None
    transaction_date: Optional[str] = None
    original_description: Optional[str] = None
    parent_category: Optional[str] = None
    statement_category: Optional[str] = None
    money_in: Optional[Decimal] = None
    money_out: Optional[Decimal] = None
    fee: Optional[Decimal] = None
    balance: Optional[Decimal] = None

    direction_override: Optional[Direction] = None

    matched_kind: Optional[DocumentKind] = None
    matched_id: Optional[str] = None

    allocated: bool = False
    allocation_direction: Optional[Direction] = None
    allocation_category: Optional[str] = None
    allocation_account_code: Optional[str] = None
    allocation_tax_treatment: Optional[str] = None
    allocation_notes: Optional[str] = None

    class Config:
        from_attributes = True

    @property
    def is_money_out(self) -> bool:
        return self.amount < 0

    @property
    def direction(self) -> Direction:
        return "money_out" if self.amount < 0 else "money_in"


class LinkRequest(BaseModel):
    kind: DocumentKind
    document_id: str = Field(..., min_length=1)

    @field_validator('document_id')
    @classmethod
    def validate_document_id(cls, v: str) -> str:
        """Validate document id is not just whitespace"""
        if not v.strip():
            raise ValueError("Document ID cannot be empty")
        return v.strip()


class AllocationUpdate(BaseModel):
    """Fields set on a transaction that has no matching document.

    Omitted fields keep their current value. ``allocated`` defaults to true;
    pass false to only pre-fill the fields.
    """

    allocated: bool = True
    allocation_direction: Optional[Direction] = None
    allocation_category: Optional[str] = Field(None, max_length=255)
    allocation_account_code: Optional[str] = Field(None, max_length=64)
    allocation_tax_treatment: Optional[str] = Field(None, max_length=64)
    allocation_notes: Optional[str] = Field(None, max_length=1000)


class AllocationSuggestion(BaseModel):
    allocation_direction: Direction
    allocation_category: Optional[str] = None
    allocation_account_code: Optional[str] = None
    allocation_tax_treatment: Optional[str] = None
    allocation_notes: Optional[str] = None
    rule_id: Optional[str] = None
    learned: bool = False
