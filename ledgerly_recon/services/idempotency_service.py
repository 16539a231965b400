from sqlalchemy.orm import Session
from sqlalchemy import Column, Integer, String, DateTime, Text, UniqueConstraint
from sqlalchemy.sql import func
from typing import Optional, Dict, Any
import hashlib
import json

from ledgerly_recon.core.database import Base


class IdempotencyRecord(Base):
    __tablename__ = "idempotency_records"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(String, nullable=False, index=True)
    idempotency_key = Column(String, nullable=False, index=True)
    payload_hash = Column(String, nullable=False)
    result_data = Column(Text, nullable=True)  # JSON string
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('company_id', 'idempotency_key', name='uq_company_idempotency_key'),
        {"sqlite_autoincrement": True},
    )


class IdempotencyService:
    @staticmethod
    def hash_payload(data: bytes, mapping: Optional[Dict[str, Any]] = None) -> str:
        """Hash an uploaded file together with the column mapping it was imported with"""
        digest = hashlib.sha256(data)
        digest.update(json.dumps(mapping, sort_keys=True, default=str).encode())
        return digest.hexdigest()

    @staticmethod
    def _get_record(db: Session, company_id: str, idempotency_key: str) -> Optional[IdempotencyRecord]:
        return db.query(IdempotencyRecord).filter(
            IdempotencyRecord.company_id == company_id,
            IdempotencyRecord.idempotency_key == idempotency_key
        ).first()

    @staticmethod
    def get_result(db: Session, company_id: str, idempotency_key: str) -> Optional[Dict]:
        """Get stored result for an idempotency key"""
        record = IdempotencyService._get_record(db, company_id, idempotency_key)
        if record and record.result_data:
            result = json.loads(record.result_data)
            if isinstance(result, dict):
                return result
        return None

    @staticmethod
    def get_payload_hash(db: Session, company_id: str, idempotency_key: str) -> Optional[str]:
        """Get stored payload hash for an idempotency key"""
        record = IdempotencyService._get_record(db, company_id, idempotency_key)
        return record.payload_hash if record else None

    @staticmethod
    def store_result(
        db: Session,
        company_id: str,
        idempotency_key: str,
        payload_hash: str,
        result_data: Dict[str, Any],
    ) -> None:
        """Store the outcome of an import; the caller commits"""
        existing = IdempotencyService._get_record(db, company_id, idempotency_key)
        if existing:
            existing.payload_hash = payload_hash
            existing.result_data = json.dumps(result_data, default=str)
        else:
            db.add(IdempotencyRecord(
                company_id=company_id,
                idempotency_key=idempotency_key,
                payload_hash=payload_hash,
                result_data=json.dumps(result_data, default=str),
            ))
