from sqlalchemy.orm import Session
from typing import Callable, List, Optional

from ledgerly_recon.core.exceptions import IdempotencyConflictError
from ledgerly_recon.core.logging import get_logger
from ledgerly_recon.models.batch_stat import BatchStat, BatchSource
from ledgerly_recon.schemas.bank_transaction import (
    AllocationSuggestion,
    AllocationUpdate,
    Transaction,
    TransactionStatus,
)
from ledgerly_recon.schemas.batch_stat import (
    AllocateSuggestedBatchRequest,
    BatchOutcome,
    BatchPage,
    MatchSuggestedBatchRequest,
    PostBatchOutcome,
)
from ledgerly_recon.schemas.document import DocumentFeed
from ledgerly_recon.schemas.match import (
    CandidateOption,
    ExplainRequest,
    ExplainResponse,
    ReconciliationSummary,
    SuggestionsResponse,
)
from ledgerly_recon.schemas.rule import CounterpartyRule, LearnedDefaults
from ledgerly_recon.schemas.statement import ColumnMapping, StatementImportResponse, StatementPreview
from ledgerly_recon.services.allocation_service import AllocationService
from ledgerly_recon.services.batch_stat_service import BatchStatService
from ledgerly_recon.services.batch_workflow import BatchWorkflow, DocumentPoster
from ledgerly_recon.services.explanation_service import ExplanationService
from ledgerly_recon.services.idempotency_service import IdempotencyService
from ledgerly_recon.services.learned_defaults_service import LearnedDefaultsService
from ledgerly_recon.services.matching_service import MatchingService
from ledgerly_recon.services.statement_parser import StatementParser
from ledgerly_recon.services.transaction_repository import SqlTransactionRepository, TransactionRepository

logger = get_logger(__name__)

PAYMENT_METHOD_PREFIX = "Payment method:"


class ReconciliationService:
    # Builds the storage for a request session; replace to use another backend
    repository_factory: Callable[[Session], TransactionRepository] = SqlTransactionRepository

    @staticmethod
    def _repository(db: Session) -> TransactionRepository:
        return ReconciliationService.repository_factory(db)

    @staticmethod
    def preview_statement(data: bytes) -> StatementPreview:
        return StatementParser.preview(data)

    @staticmethod
    def import_statement(
        db: Session,
        company_id: str,
        data: bytes,
        mapping: Optional[ColumnMapping] = None,
        idempotency_key: Optional[str] = None,
    ) -> StatementImportResponse:
        """Parse a statement and replace the company's transactions with it.

        A repeated ``idempotency_key`` with the same file and mapping returns the
        stored import without touching the collection.
        """
        payload_hash = IdempotencyService.hash_payload(
            data, mapping.model_dump(mode="json") if mapping else None
        )

        if idempotency_key:
            stored_hash = IdempotencyService.get_payload_hash(db, company_id, idempotency_key)
            if stored_hash and stored_hash != payload_hash:
                raise IdempotencyConflictError()
            stored = IdempotencyService.get_result(db, company_id, idempotency_key)
            if stored:
                logger.info("statement_import_replayed", company_id=company_id, idempotency_key=idempotency_key)
                response = StatementImportResponse.model_validate(stored)
                response.replayed = True
                return response

        parsed = StatementParser.parse(data, mapping)
        ReconciliationService._repository(db).save(company_id, parsed.transactions)

        response = StatementImportResponse(
            transactions=parsed.transactions,
            mapping=parsed.mapping,
            encoding=parsed.encoding,
            delimiter=parsed.delimiter,
            imported_rows=len(parsed.transactions),
            skipped_rows=parsed.skipped_rows,
        )
        if idempotency_key:
            IdempotencyService.store_result(
                db, company_id, idempotency_key, payload_hash, response.model_dump(mode="json")
            )
            db.commit()

        logger.info(
            "statement_imported",
            company_id=company_id,
            imported_rows=response.imported_rows,
            skipped_rows=response.skipped_rows,
        )
        return response

    @staticmethod
    def list_transactions(
        db: Session,
        company_id: str,
        status: Optional[TransactionStatus] = None,
    ) -> List[Transaction]:
        """List a company's transactions in statement order, optionally by status"""
        transactions = ReconciliationService._repository(db).load(company_id)
        if status is None:
            return transactions
        return [t for t in transactions if BatchWorkflow.transaction_status(t) == status]

    @staticmethod
    def clear_transactions(db: Session, company_id: str) -> int:
        deleted = ReconciliationService._repository(db).clear(company_id)
        logger.info("transactions_cleared", company_id=company_id, deleted=deleted)
        return deleted

    @staticmethod
    def _apply(db: Session, company_id: str, transaction_id: str, operation, *args) -> Transaction:
        repository = ReconciliationService._repository(db)
        updated = operation(repository.load(company_id), transaction_id, *args)
        repository.save(company_id, updated)
        return BatchWorkflow.get(updated, transaction_id)

    @staticmethod
    def link(db: Session, company_id: str, transaction_id: str, kind: str, document_id: str) -> Transaction:
        """Match a transaction to a receipt or invoice"""
        return ReconciliationService._apply(db, company_id, transaction_id, BatchWorkflow.link, kind, document_id)

    @staticmethod
    def unlink(db: Session, company_id: str, transaction_id: str) -> Transaction:
        return ReconciliationService._apply(db, company_id, transaction_id, BatchWorkflow.unlink)

    @staticmethod
    def flip_direction(db: Session, company_id: str, transaction_id: str) -> Transaction:
        return ReconciliationService._apply(db, company_id, transaction_id, BatchWorkflow.flip_direction)

    @staticmethod
    def allocate(db: Session, company_id: str, transaction_id: str, update: AllocationUpdate) -> Transaction:
        """Allocate a transaction and remember its fields for the counterparty"""
        transaction = ReconciliationService._apply(db, company_id, transaction_id, BatchWorkflow.allocate, update)
        if transaction.allocated:
            LearnedDefaultsService.upsert(
                db,
                company_id,
                AllocationService.counterparty_name(transaction),
                ReconciliationService._learned_from(transaction),
            )
        return transaction

    @staticmethod
    def _learned_from(transaction: Transaction) -> LearnedDefaults:
        payment_method = None
        notes = (transaction.allocation_notes or "").strip()
        if notes.startswith(PAYMENT_METHOD_PREFIX):
            payment_method = notes[len(PAYMENT_METHOD_PREFIX):].strip() or None
        return LearnedDefaults(
            category=transaction.allocation_category or None,
            tax_treatment=transaction.allocation_tax_treatment or None,
            payment_method=payment_method,
        )

    @staticmethod
    def unallocate(db: Session, company_id: str, transaction_id: str) -> Transaction:
        return ReconciliationService._apply(db, company_id, transaction_id, BatchWorkflow.unallocate)

    @staticmethod
    def allocation_suggestion(
        db: Session,
        company_id: str,
        transaction_id: str,
        rules: List[CounterpartyRule],
    ) -> AllocationSuggestion:
        transaction = BatchWorkflow.get(ReconciliationService._repository(db).load(company_id), transaction_id)
        return AllocationService.suggest_allocation(
            transaction, rules, LearnedDefaultsService.load_map(db, company_id)
        )

    @staticmethod
    def suggestions(db: Session, company_id: str, feed: DocumentFeed) -> SuggestionsResponse:
        """Run a matching pass against the supplied receipts and invoices"""
        transactions = ReconciliationService._repository(db).load(company_id)
        suggestions = MatchingService.build_suggestions(transactions, feed.receipts, feed.invoices)
        return SuggestionsResponse(
            suggestions=suggestions,
            total_transactions=len(transactions),
            suggested=sum(1 for s in suggestions.values() if s is not None),
        )

    @staticmethod
    def summary(db: Session, company_id: str, feed: DocumentFeed) -> ReconciliationSummary:
        transactions = ReconciliationService._repository(db).load(company_id)
        suggestions = MatchingService.build_suggestions(transactions, feed.receipts, feed.invoices)
        return MatchingService.summarize(transactions, suggestions)

    @staticmethod
    def candidates(
        db: Session,
        company_id: str,
        transaction_id: str,
        feed: DocumentFeed,
    ) -> List[CandidateOption]:
        """Shortlist documents a user can link to one transaction by hand"""
        transaction = BatchWorkflow.get(ReconciliationService._repository(db).load(company_id), transaction_id)
        return MatchingService.manual_candidates(transaction, feed.receipts, feed.invoices)

    @staticmethod
    def explain(db: Session, company_id: str, request: ExplainRequest) -> ExplainResponse:
        transactions = ReconciliationService._repository(db).load(company_id)
        transaction = BatchWorkflow.get(transactions, request.transaction_id)
        doc = MatchingService.find_document(request.receipts, request.invoices, request.kind, request.document_id)

        # The transaction's own match does not block explaining the same document.
        others = [t for t in transactions if t.id != transaction.id]
        breakdown, suggestible = MatchingService.explain(
            transaction, doc, MatchingService.build_used_document_keys(others)
        )
        return ExplainResponse(
            transaction_id=transaction.id,
            kind=request.kind,
            document_id=request.document_id,
            breakdown=breakdown,
            suggestible=suggestible,
            explanation=ExplanationService.explain_match(transaction, doc, breakdown, suggestible),
        )

    @staticmethod
    def batch_page(
        db: Session,
        company_id: str,
        batch_size: int,
        page_index: int,
        include_all: bool = False,
    ) -> BatchPage:
        return BatchWorkflow.paginate(ReconciliationService._repository(db).load(company_id), batch_size, page_index, include_all)

    @staticmethod
    def _commit_outcome(db: Session, company_id: str, outcome: BatchOutcome) -> BatchStat:
        ReconciliationService._repository(db).save(company_id, outcome.transactions)
        return BatchStatService.add_batch_stat(db, company_id, outcome.stat)

    @staticmethod
    def match_suggested_batch(
        db: Session,
        company_id: str,
        request: MatchSuggestedBatchRequest,
    ) -> BatchStat:
        """Accept the current suggestion for each open row of one batch page"""
        transactions = ReconciliationService._repository(db).load(company_id)
        suggestions = MatchingService.build_suggestions(transactions, request.receipts, request.invoices)
        outcome = BatchWorkflow.match_suggested_batch(
            transactions,
            suggestions,
            request.batch_size,
            request.page_index,
            include_all=request.include_all,
            source=request.source,
        )
        return ReconciliationService._commit_outcome(db, company_id, outcome)

    @staticmethod
    def allocate_suggested_batch(
        db: Session,
        company_id: str,
        request: AllocateSuggestedBatchRequest,
    ) -> BatchStat:
        """Pre-fill allocation fields for each open row of one batch page"""
        outcome = BatchWorkflow.allocate_suggested_batch(
            ReconciliationService._repository(db).load(company_id),
            request.rules,
            LearnedDefaultsService.load_map(db, company_id),
            request.batch_size,
            request.page_index,
            mark_allocated=request.mark_allocated,
            include_all=request.include_all,
            source=request.source,
        )
        return ReconciliationService._commit_outcome(db, company_id, outcome)

    @staticmethod
    def post_batch(
        db: Session,
        company_id: str,
        poster: DocumentPoster,
        batch_size: int,
        page_index: int = 0,
        selected: Optional[set] = None,
        source: BatchSource = BatchSource.CATCH_UP,
    ) -> PostBatchOutcome:
        """Post matched documents through ``poster`` and record the batch"""
        outcome = BatchWorkflow.post_batch(
            ReconciliationService._repository(db).load(company_id),
            poster,
            batch_size,
            page_index,
            selected=selected,
            source=source,
        )
        BatchStatService.add_batch_stat(db, company_id, outcome.stat)
        return outcome

    @staticmethod
    def export_allocations(db: Session, company_id: str) -> str:
        return BatchWorkflow.export_allocations(ReconciliationService._repository(db).load(company_id))
