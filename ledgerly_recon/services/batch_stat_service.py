from sqlalchemy.orm import Session
from typing import List

from ledgerly_recon.core.config import settings
from ledgerly_recon.core.logging import get_logger
from ledgerly_recon.models.batch_stat import BatchStat
from ledgerly_recon.schemas.batch_stat import BatchStatCreate

logger = get_logger(__name__)


class BatchStatService:
    @staticmethod
    def add_batch_stat(db: Session, company_id: str, stat_data: BatchStatCreate) -> BatchStat:
        """Append a batch record and drop the company's oldest beyond the cap"""
        stat = BatchStat(company_id=company_id, **stat_data.model_dump())
        db.add(stat)
        db.flush()

        stale_ids = [
            row.id
            for row in db.query(BatchStat.id).filter(
                BatchStat.company_id == company_id
            ).order_by(BatchStat.id.desc()).offset(settings.batch_stats_cap).all()
        ]
        if stale_ids:
            db.query(BatchStat).filter(BatchStat.id.in_(stale_ids)).delete(synchronize_session=False)
            logger.info("batch_stats_pruned", company_id=company_id, pruned=len(stale_ids))

        db.commit()
        db.refresh(stat)
        return stat

    @staticmethod
    def list_batch_stats(db: Session, company_id: str) -> List[BatchStat]:
        """Batch history for a company, newest first"""
        return db.query(BatchStat).filter(
            BatchStat.company_id == company_id
        ).order_by(BatchStat.id.desc()).all()
