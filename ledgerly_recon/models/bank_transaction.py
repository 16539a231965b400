from sqlalchemy import Boolean, Column, Integer, String, Numeric, DateTime, Index
from sqlalchemy.sql import func

from ledgerly_recon.core.config import settings
from ledgerly_recon.core.database import Base


class BankTransaction(Base):
    __tablename__ = "bank_transactions"

    id = Column(String(36), primary_key=True)
    company_id = Column(String, nullable=False, index=True)
    # Row order within the imported statement
    position = Column(Integer, nullable=False, default=0)

    date = Column(String, nullable=False)
    posting_date = Column(String, nullable=True)
    transaction_date = Column(String, nullable=True)
    nr = Column(String, nullable=True)
    account = Column(String, nullable=True)
    description = Column(String, nullable=False)
    original_description = Column(String, nullable=True)
    parent_category = Column(String, nullable=True)
    statement_category = Column(String, nullable=True)

    amount = Column(Numeric(18, 4), nullable=False)
    currency = Column(String, default=lambda: settings.default_currency, nullable=False)
    money_in = Column(Numeric(18, 4), nullable=True)
    money_out = Column(Numeric(18, 4), nullable=True)
    fee = Column(Numeric(18, 4), nullable=True)
    balance = Column(Numeric(18, 4), nullable=True)

    direction_override = Column(String, nullable=True)
    matched_kind = Column(String, nullable=True)
    matched_id = Column(String, nullable=True)

    allocated = Column(Boolean, default=False, nullable=False)
    allocation_direction = Column(String, nullable=True)
    allocation_category = Column(String, nullable=True)
    allocation_account_code = Column(String, nullable=True)
    allocation_tax_treatment = Column(String, nullable=True)
    allocation_notes = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_company_position", "company_id", "position"),
        Index("ix_company_matched_document", "company_id", "matched_kind", "matched_id"),
    )
