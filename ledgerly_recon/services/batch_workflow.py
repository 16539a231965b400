"""Operator workflow over a company's full transaction collection.

Every function takes the full current list and returns a new full list (or a
BatchOutcome wrapping one); nothing here touches storage. Callers persist the
result and record the returned stat.
"""

import csv
import io
import math
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from ledgerly_recon.core.exceptions import DocumentAlreadyMatchedError, TransactionNotFoundError
from ledgerly_recon.core.logging import get_logger
from ledgerly_recon.models.batch_stat import BatchAction, BatchSource
from ledgerly_recon.schemas.bank_transaction import (
    AllocationUpdate,
    Transaction,
    TransactionStatus,
)
from ledgerly_recon.schemas.batch_stat import (
    BatchOutcome,
    BatchPage,
    BatchStatCreate,
    PostBatchOutcome,
    PostResult,
)
from ledgerly_recon.schemas.match import MatchSuggestion
from ledgerly_recon.schemas.rule import CounterpartyRule, LearnedDefaults
from ledgerly_recon.services.allocation_service import AllocationService
from ledgerly_recon.services.matching_service import MatchingService

logger = get_logger(__name__)

CLEARED_ALLOCATION = {
    "allocated": False,
    "allocation_direction": None,
    "allocation_category": None,
    "allocation_account_code": None,
    "allocation_tax_treatment": None,
    "allocation_notes": None,
}

ALLOCATION_FIELDS = (
    "allocation_category",
    "allocation_account_code",
    "allocation_tax_treatment",
    "allocation_notes",
)

EXPORT_HEADERS = [
    "date",
    "posting_date",
    "transaction_date",
    "description",
    "money_in",
    "money_out",
    "fee",
    "balance",
    "net_amount",
    "currency",
    "category",
    "account_code",
    "tax_treatment",
    "notes",
]

# Posts one matched document to the ledger; raises on failure.
DocumentPoster = Callable[[str, str], None]


def _replace(
    transactions: List[Transaction],
    transaction_id: str,
    update: Callable[[Transaction], Transaction],
) -> List[Transaction]:
    found = False
    result = []
    for t in transactions:
        if t.id == transaction_id:
            result.append(update(t))
            found = True
        else:
            result.append(t)
    if not found:
        raise TransactionNotFoundError(transaction_id)
    return result


def _plain(value: Optional[Decimal]) -> str:
    if value is None:
        return ""
    return format(value.normalize(), "f")


class BatchWorkflow:
    @staticmethod
    def transaction_status(transaction: Transaction) -> TransactionStatus:
        if transaction.matched_id:
            return TransactionStatus.MATCHED
        if transaction.allocated:
            return TransactionStatus.ALLOCATED
        return TransactionStatus.UNMATCHED

    @staticmethod
    def get(transactions: List[Transaction], transaction_id: str) -> Transaction:
        for t in transactions:
            if t.id == transaction_id:
                return t
        raise TransactionNotFoundError(transaction_id)

    @staticmethod
    def link(
        transactions: List[Transaction],
        transaction_id: str,
        kind: str,
        document_id: str,
    ) -> List[Transaction]:
        """Match a transaction to a document, clearing any allocation"""
        for t in transactions:
            if t.id != transaction_id and t.matched_kind == kind and t.matched_id == document_id:
                raise DocumentAlreadyMatchedError(kind, document_id, t.id)

        return _replace(
            transactions,
            transaction_id,
            lambda t: t.model_copy(update={"matched_kind": kind, "matched_id": document_id, **CLEARED_ALLOCATION}),
        )

    @staticmethod
    def unlink(transactions: List[Transaction], transaction_id: str) -> List[Transaction]:
        return _replace(
            transactions,
            transaction_id,
            lambda t: t.model_copy(update={"matched_kind": None, "matched_id": None}),
        )

    @staticmethod
    def flip_direction(transactions: List[Transaction], transaction_id: str) -> List[Transaction]:
        """Negate the amount and swap money in/out; the transaction becomes unmatched"""
        def flip(t: Transaction) -> Transaction:
            return t.model_copy(update={
                "amount": -t.amount,
                "money_in": t.money_out,
                "money_out": t.money_in,
                "direction_override": None,
                "matched_kind": None,
                "matched_id": None,
                "allocated": False,
                "allocation_direction": "money_in" if t.amount < 0 else "money_out",
            })

        return _replace(transactions, transaction_id, flip)

    @staticmethod
    def allocate(
        transactions: List[Transaction],
        transaction_id: str,
        update: AllocationUpdate,
    ) -> List[Transaction]:
        """Record a manual allocation; any document match is cleared"""
        fields = update.model_dump(exclude_unset=True, exclude={"allocated", "allocation_direction"})

        def apply(t: Transaction) -> Transaction:
            return t.model_copy(update={
                "matched_kind": None,
                "matched_id": None,
                **fields,
                "allocated": update.allocated,
                "allocation_direction": update.allocation_direction or t.allocation_direction or t.direction,
            })

        return _replace(transactions, transaction_id, apply)

    @staticmethod
    def unallocate(transactions: List[Transaction], transaction_id: str) -> List[Transaction]:
        return _replace(transactions, transaction_id, lambda t: t.model_copy(update=CLEARED_ALLOCATION))

    @staticmethod
    def batch_pool(transactions: List[Transaction], include_all: bool = False) -> List[Transaction]:
        if include_all:
            return list(transactions)
        return [t for t in transactions if not t.matched_id and not t.allocated]

    @staticmethod
    def paginate(
        transactions: List[Transaction],
        batch_size: int,
        page_index: int,
        include_all: bool = False,
    ) -> BatchPage:
        """Slice the working list into fixed-size pages; the page index is clamped"""
        if batch_size < 1:
            raise ValueError("Batch size must be at least 1")

        pool = BatchWorkflow.batch_pool(transactions, include_all)
        page_count = max(1, math.ceil(len(pool) / batch_size))
        clamped = min(max(page_index, 0), page_count - 1)
        start = clamped * batch_size
        return BatchPage(
            items=pool[start:start + batch_size],
            batch_size=batch_size,
            page_index=clamped,
            page_count=page_count,
            total=len(pool),
        )

    @staticmethod
    def match_suggested_batch(
        transactions: List[Transaction],
        suggestions: Dict[str, Optional[MatchSuggestion]],
        batch_size: int,
        page_index: int,
        include_all: bool = False,
        source: BatchSource = BatchSource.CATCH_UP,
    ) -> BatchOutcome:
        """Accept the current suggestion of every unmatched row on the page"""
        page = BatchWorkflow.paginate(transactions, batch_size, page_index, include_all)
        used: Set[str] = MatchingService.build_used_document_keys(transactions)
        positions = {t.id: i for i, t in enumerate(transactions)}
        result = list(transactions)

        applied = 0
        for t in page.items:
            if t.matched_id:
                continue
            suggestion = suggestions.get(t.id)
            if suggestion is None:
                continue
            key = f"{suggestion.kind}:{suggestion.id}"
            if key in used:
                continue
            result[positions[t.id]] = t.model_copy(update={
                "matched_kind": suggestion.kind,
                "matched_id": suggestion.id,
                **CLEARED_ALLOCATION,
            })
            used.add(key)
            applied += 1

        logger.info("match_suggested_batch", page_index=page.page_index, batch_size=batch_size, applied=applied)
        return BatchOutcome(
            transactions=result,
            stat=BatchStatCreate(
                source=source,
                action=BatchAction.MATCH_SUGGESTED_BATCH,
                batch_size=batch_size,
                page_index=page.page_index,
                applied=applied,
                succeeded=applied,
                failed=0,
            ),
        )

    @staticmethod
    def allocate_suggested_batch(
        transactions: List[Transaction],
        rules: List[CounterpartyRule],
        learned: Optional[Dict[str, LearnedDefaults]],
        batch_size: int,
        page_index: int,
        mark_allocated: bool = False,
        include_all: bool = False,
        source: BatchSource = BatchSource.CATCH_UP,
    ) -> BatchOutcome:
        """Pre-fill allocation fields for every open row on the page.

        With ``mark_allocated`` the rows are also marked allocated.
        """
        page = BatchWorkflow.paginate(transactions, batch_size, page_index, include_all)
        positions = {t.id: i for i, t in enumerate(transactions)}
        result = list(transactions)

        touched = 0
        for t in page.items:
            if t.matched_id or t.allocated:
                continue
            suggestion = AllocationService.suggest_allocation(t, rules, learned)
            changes = {
                field: getattr(suggestion, field)
                for field in ALLOCATION_FIELDS
                if getattr(suggestion, field)
            }
            result[positions[t.id]] = t.model_copy(update={
                **changes,
                "allocation_direction": suggestion.allocation_direction,
                "allocated": mark_allocated,
            })
            touched += 1

        logger.info(
            "allocate_suggested_batch",
            page_index=page.page_index,
            batch_size=batch_size,
            applied=touched,
            mark_allocated=mark_allocated,
        )
        return BatchOutcome(
            transactions=result,
            stat=BatchStatCreate(
                source=source,
                action=BatchAction.ALLOCATE_SUGGESTED_BATCH,
                batch_size=batch_size,
                page_index=page.page_index,
                applied=touched,
                succeeded=touched,
                failed=0,
                notes="marked allocated" if mark_allocated else "fields pre-filled",
            ),
        )

    @staticmethod
    def postable_documents(transactions: Iterable[Transaction]) -> List[Tuple[str, str]]:
        """Matched documents in transaction order, each listed once"""
        seen: Set[str] = set()
        documents = []
        for t in transactions:
            if not t.matched_id or not t.matched_kind:
                continue
            key = f"{t.matched_kind}:{t.matched_id}"
            if key in seen:
                continue
            seen.add(key)
            documents.append((t.matched_kind, t.matched_id))
        return documents

    @staticmethod
    def post_batch(
        transactions: List[Transaction],
        poster: DocumentPoster,
        batch_size: int,
        page_index: int,
        selected: Optional[Set[str]] = None,
        source: BatchSource = BatchSource.CATCH_UP,
    ) -> PostBatchOutcome:
        """Hand matched documents to the ledger poster, counting failures per document"""
        documents = BatchWorkflow.postable_documents(transactions)
        if selected is not None:
            documents = [(kind, doc_id) for kind, doc_id in documents if f"{kind}:{doc_id}" in selected]

        results: List[PostResult] = []
        for kind, doc_id in documents:
            key = f"{kind}:{doc_id}"
            try:
                poster(kind, doc_id)
            except Exception as e:
                logger.warning("post_document_failed", key=key, error=str(e))
                results.append(PostResult(key=key, ok=False, message=str(e) or "Post failed."))
                continue
            results.append(PostResult(key=key, ok=True, message="Posted"))

        succeeded = sum(1 for r in results if r.ok)
        return PostBatchOutcome(
            results=results,
            stat=BatchStatCreate(
                source=source,
                action=BatchAction.POST_BATCH,
                batch_size=batch_size,
                page_index=page_index,
                applied=len(documents),
                succeeded=succeeded,
                failed=len(documents) - succeeded,
            ),
        )

    @staticmethod
    def export_allocations(transactions: Iterable[Transaction]) -> str:
        """Delimited export of allocated transactions that have no document match.

        The header row is written bare; every data field is quoted. Lines are
        joined with a newline and there is no trailing terminator.
        """
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        for t in transactions:
            if not t.allocated or t.matched_id:
                continue
            writer.writerow([
                t.date or "",
                t.posting_date or "",
                t.transaction_date or "",
                t.description or "",
                _plain(t.money_in),
                _plain(t.money_out),
                _plain(t.fee),
                _plain(t.balance),
                _plain(t.amount),
                t.currency or "",
                t.allocation_category or t.statement_category or "",
                t.allocation_account_code or "",
                t.allocation_tax_treatment or "",
                t.allocation_notes or "",
            ])
        lines = [",".join(EXPORT_HEADERS)]
        body = buffer.getvalue()
        if body:
            lines.append(body[:-1])
        return "\n".join(lines)
