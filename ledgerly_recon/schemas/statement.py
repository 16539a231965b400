from pydantic import BaseModel, Field
from typing import Annotated, List, Literal, Optional, Union

from ledgerly_recon.schemas.bank_transaction import Transaction


class AmountColumn(BaseModel):
    """A single signed amount column"""
    strategy: Literal["amount"] = "amount"
    amount: str


class DebitCreditColumns(BaseModel):
    """amount = credit - debit"""
    strategy: Literal["debit_credit"] = "debit_credit"
    debit: str
    credit: str


class MoneyInOutColumns(BaseModel):
    """amount = money_in - money_out - fee"""
    strategy: Literal["money_in_out"] = "money_in_out"
    money_in: str
    money_out: str
    fee: Optional[str] = None


AmountMapping = Annotated[
    Union[AmountColumn, DebitCreditColumns, MoneyInOutColumns],
    Field(discriminator="strategy"),
]


class OptionalColumns(BaseModel):
    currency: Optional[str] = None
    posting_date: Optional[str] = None
    transaction_date: Optional[str] = None
    original_description: Optional[str] = None
    parent_category: Optional[str] = None
    statement_category: Optional[str] = None
    nr: Optional[str] = None
    account: Optional[str] = None
    balance: Optional[str] = None


class ColumnMapping(BaseModel):
    """Header name per logical field.

    Names are matched against the normalized header row, so ``"Transaction Date"``
    and ``"transaction_date"`` address the same column.
    """

    date: str
    description: str
    amount: AmountMapping
    optional: OptionalColumns = Field(default_factory=OptionalColumns)


class StatementPreview(BaseModel):
    encoding: str
    delimiter: str
    headers: List[str]
    normalized_headers: List[str]
    detected_mapping: Optional[ColumnMapping]
    sample_rows: List[List[str]]


class ParsedStatement(BaseModel):
    transactions: List[Transaction]
    mapping: ColumnMapping
    encoding: str
    delimiter: str
    skipped_rows: int


class StatementImportResponse(BaseModel):
    transactions: List[Transaction]
    mapping: ColumnMapping
    encoding: str
    delimiter: str
    imported_rows: int
    skipped_rows: int
    replayed: bool = False
