from fastapi import APIRouter
from ledgerly_recon.api.rest import statements, bank_transactions, reconciliation, batches

api_router = APIRouter()
api_router.include_router(statements.router)
api_router.include_router(bank_transactions.router)
api_router.include_router(reconciliation.router)
api_router.include_router(batches.router)
