from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint
from sqlalchemy.sql import func

from ledgerly_recon.core.database import Base


class LearnedDefault(Base):
    __tablename__ = "learned_defaults"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(String, nullable=False, index=True)
    # Normalized counterparty name: trimmed, lowercased, single-spaced
    counterparty = Column(String, nullable=False)
    category = Column(String, nullable=True)
    tax_treatment = Column(String, nullable=True)
    payment_method = Column(String, nullable=True)
    document_type = Column(String, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('company_id', 'counterparty', name='uq_company_counterparty'),
    )
