from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from decimal import Decimal

AppliesTo = Literal["receipt", "invoice", "both"]
MatchType = Literal["contains", "equals", "regex"]


class CounterpartyRule(BaseModel):
    """User-defined rule keyed on the counterparty name (supplied by the caller)"""
    id: str
    enabled: bool = True
    applies_to: AppliesTo = "both"
    match_type: MatchType = "contains"
    match_value: str = ""
    set_category: str = ""
    set_tax_treatment: str = ""
    set_account_code: str = ""
    set_document_type: str = ""
    set_payment_method: str = ""
    auto_approve_max_total: Optional[Decimal] = None


class LearnedDefaults(BaseModel):
    category: Optional[str] = None
    tax_treatment: Optional[str] = None
    payment_method: Optional[str] = None
    document_type: Optional[str] = None

    class Config:
        from_attributes = True


class RuleFeed(BaseModel):
    rules: List[CounterpartyRule] = Field(default_factory=list)
