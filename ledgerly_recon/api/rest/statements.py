from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, UploadFile
from pydantic import ValidationError
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import Optional

from ledgerly_recon.api.rest.errors import to_http_exception
from ledgerly_recon.core.database import get_db
from ledgerly_recon.core.logging import get_logger
from ledgerly_recon.schemas.statement import ColumnMapping, StatementImportResponse, StatementPreview
from ledgerly_recon.services.reconciliation_service import ReconciliationService

logger = get_logger(__name__)

router = APIRouter(prefix="/companies/{company_id}/statements", tags=["statements"])


def _parse_mapping(mapping: Optional[str]) -> Optional[ColumnMapping]:
    if not mapping:
        return None
    try:
        return ColumnMapping.model_validate_json(mapping)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False))


@router.post("/preview", response_model=StatementPreview)
def preview_statement(company_id: str, file: UploadFile = File(...)):
    """Sniff encoding, delimiter and columns of an uploaded statement"""
    data = file.file.read()
    try:
        return ReconciliationService.preview_statement(data)
    except ValueError as e:
        logger.warning("statement_preview_failed", company_id=company_id, filename=file.filename, error=str(e))
        raise to_http_exception(e)


@router.post("/import", response_model=StatementImportResponse, status_code=201)
def import_statement(
    company_id: str,
    file: UploadFile = File(...),
    mapping: Optional[str] = Form(None),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
):
    """Import a statement, replacing the company's bank transactions"""
    column_mapping = _parse_mapping(mapping)
    data = file.file.read()
    try:
        return ReconciliationService.import_statement(db, company_id, data, column_mapping, idempotency_key)
    except ValueError as e:
        logger.warning("statement_import_failed", company_id=company_id, filename=file.filename, error=str(e))
        raise to_http_exception(e)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("statement_import_failed", company_id=company_id, error=str(e))
        raise HTTPException(status_code=500, detail="Database error occurred while importing the statement")
