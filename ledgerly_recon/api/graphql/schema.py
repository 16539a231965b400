import strawberry
from strawberry.types import Info
from typing import List, Optional
from decimal import Decimal
from datetime import datetime

from ledgerly_recon.schemas.bank_transaction import TransactionStatus
from ledgerly_recon.services.batch_stat_service import BatchStatService
from ledgerly_recon.services.batch_workflow import BatchWorkflow
from ledgerly_recon.services.reconciliation_service import ReconciliationService


# GraphQL Types
@strawberry.type
class BankTransaction:
    id: str
    date: str
    description: str
    amount: Decimal
    currency: str
    status: str
    direction: str
    matched_kind: Optional[str]
    matched_id: Optional[str]
    allocated: bool
    allocation_direction: Optional[str]
    allocation_category: Optional[str]
    allocation_account_code: Optional[str]
    allocation_tax_treatment: Optional[str]
    allocation_notes: Optional[str]

    @classmethod
    def from_model(cls, transaction):
        return cls(
            id=transaction.id,
            date=transaction.date,
            description=transaction.description,
            amount=transaction.amount,
            currency=transaction.currency,
            status=BatchWorkflow.transaction_status(transaction).value,
            direction=transaction.direction,
            matched_kind=transaction.matched_kind,
            matched_id=transaction.matched_id,
            allocated=transaction.allocated,
            allocation_direction=transaction.allocation_direction,
            allocation_category=transaction.allocation_category,
            allocation_account_code=transaction.allocation_account_code,
            allocation_tax_treatment=transaction.allocation_tax_treatment,
            allocation_notes=transaction.allocation_notes,
        )


@strawberry.type
class BatchStat:
    id: int
    company_id: str
    created_at: datetime
    source: str
    action: str
    batch_size: int
    page_index: int
    applied: int
    succeeded: int
    failed: int
    notes: Optional[str]

    @classmethod
    def from_model(cls, stat):
        return cls(
            id=stat.id,
            company_id=stat.company_id,
            created_at=stat.created_at,
            source=stat.source.value,
            action=stat.action.value,
            batch_size=stat.batch_size,
            page_index=stat.page_index,
            applied=stat.applied,
            succeeded=stat.succeeded,
            failed=stat.failed,
            notes=stat.notes,
        )


# Queries
@strawberry.type
class Query:
    @strawberry.field
    def transactions(
        self,
        info: Info,
        company_id: str,
        status: Optional[str] = None,
    ) -> List[BankTransaction]:
        status_filter = TransactionStatus(status) if status else None
        transactions = ReconciliationService.list_transactions(info.context["db"], company_id, status_filter)
        return [BankTransaction.from_model(t) for t in transactions]

    @strawberry.field
    def batch_stats(self, info: Info, company_id: str) -> List[BatchStat]:
        stats = BatchStatService.list_batch_stats(info.context["db"], company_id)
        return [BatchStat.from_model(s) for s in stats]


# Mutations
@strawberry.type
class Mutation:
    @strawberry.mutation
    def link(
        self,
        info: Info,
        company_id: str,
        transaction_id: str,
        kind: str,
        document_id: str,
    ) -> BankTransaction:
        if kind not in ("receipt", "invoice"):
            raise ValueError("Document kind must be 'receipt' or 'invoice'")
        if not document_id.strip():
            raise ValueError("Document ID cannot be empty")
        transaction = ReconciliationService.link(
            info.context["db"], company_id, transaction_id, kind, document_id.strip()
        )
        return BankTransaction.from_model(transaction)

    @strawberry.mutation
    def unlink(self, info: Info, company_id: str, transaction_id: str) -> BankTransaction:
        transaction = ReconciliationService.unlink(info.context["db"], company_id, transaction_id)
        return BankTransaction.from_model(transaction)

    @strawberry.mutation
    def flip_direction(self, info: Info, company_id: str, transaction_id: str) -> BankTransaction:
        transaction = ReconciliationService.flip_direction(info.context["db"], company_id, transaction_id)
        return BankTransaction.from_model(transaction)

    @strawberry.mutation
    def unallocate(self, info: Info, company_id: str, transaction_id: str) -> BankTransaction:
        transaction = ReconciliationService.unallocate(info.context["db"], company_id, transaction_id)
        return BankTransaction.from_model(transaction)


# Create schema
schema = strawberry.Schema(query=Query, mutation=Mutation)
