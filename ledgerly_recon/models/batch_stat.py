from sqlalchemy import Column, Integer, String, DateTime, Enum
from sqlalchemy.sql import func
import enum

from ledgerly_recon.core.database import Base


class BatchSource(str, enum.Enum):
    RECONCILIATION = "reconciliation"
    CATCH_UP = "catch_up"


class BatchAction(str, enum.Enum):
    MATCH_SUGGESTED_BATCH = "match_suggested_batch"
    ALLOCATE_SUGGESTED_BATCH = "allocate_suggested_batch"
    POST_BATCH = "post_batch"


class BatchStat(Base):
    __tablename__ = "batch_stats"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(String, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    source = Column(Enum(BatchSource), nullable=False)
    action = Column(Enum(BatchAction), nullable=False)
    batch_size = Column(Integer, nullable=False)
    page_index = Column(Integer, nullable=False)
    applied = Column(Integer, nullable=False, default=0)  # matches applied or items posted
    succeeded = Column(Integer, nullable=False, default=0)
    failed = Column(Integer, nullable=False, default=0)
    notes = Column(String, nullable=True)

    __table_args__ = (
        {"sqlite_autoincrement": True},
    )
