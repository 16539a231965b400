from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import Dict, Optional

from ledgerly_recon.models.learned_default import LearnedDefault
from ledgerly_recon.schemas.rule import LearnedDefaults
from ledgerly_recon.services.allocation_service import AllocationService


class LearnedDefaultsService:
    @staticmethod
    def load_map(db: Session, company_id: str) -> Dict[str, LearnedDefaults]:
        """All learned defaults for a company keyed by normalized counterparty"""
        rows = db.query(LearnedDefault).filter(LearnedDefault.company_id == company_id).all()
        return {row.counterparty: LearnedDefaults.model_validate(row) for row in rows}

    @staticmethod
    def upsert(
        db: Session,
        company_id: str,
        counterparty_name: str,
        defaults: LearnedDefaults,
    ) -> Optional[LearnedDefault]:
        """Remember the non-empty fields of ``defaults`` for a counterparty"""
        normalized = AllocationService.normalize_counterparty(counterparty_name)
        values = defaults.model_dump(exclude_none=True)
        if not normalized or not values:
            return None

        record = db.query(LearnedDefault).filter(
            LearnedDefault.company_id == company_id,
            LearnedDefault.counterparty == normalized,
        ).first()
        if record is None:
            record = LearnedDefault(company_id=company_id, counterparty=normalized)
            db.add(record)
        for field, value in values.items():
            setattr(record, field, value)

        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise ValueError(f"Learned defaults for '{normalized}' were updated concurrently") from e
        db.refresh(record)
        return record
