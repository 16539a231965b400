import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from ledgerly_recon.core.config import settings
from ledgerly_recon.core.exceptions import DocumentNotFoundError
from ledgerly_recon.core.logging import get_logger
from ledgerly_recon.schemas.bank_transaction import Transaction
from ledgerly_recon.schemas.document import InvoiceSummary, ReceiptSummary
from ledgerly_recon.schemas.match import (
    CandidateOption,
    MatchSuggestion,
    ReconciliationSummary,
    ReconciliationTotals,
    ScoreBreakdown,
)

logger = get_logger(__name__)

_ISO_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")
_DAY_MONTH_YEAR = re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{2,4})")
_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")

FALLBACK_DATE_FORMATS = (
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
    "%Y/%m/%d",
    "%d.%m.%Y",
    "%Y%m%d",
)


@dataclass(frozen=True)
class CandidateDocument:
    """A receipt or invoice reduced to what the matcher scores on"""

    kind: str
    id: str
    name: str
    day_key: str
    amount: Decimal
    status: str

    @property
    def key(self) -> str:
        return f"{self.kind}:{self.id}"


DocumentIndex = Dict[int, List[CandidateDocument]]


class MatchingService:
    @staticmethod
    def cents(amount: Union[Decimal, float, int]) -> int:
        """Round an amount to integer cents, half away from zero"""
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
        return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    @staticmethod
    def normalize_text(text: Optional[str]) -> str:
        lowered = _NON_ALPHANUMERIC.sub(" ", (text or "").lower())
        return _WHITESPACE.sub(" ", lowered).strip()

    @staticmethod
    def day_key_from_doc_date(document_date: Optional[str], fallback: Optional[str]) -> str:
        return (document_date or fallback or "")[:10]

    @staticmethod
    def day_key_from_bank_date(raw: Optional[str]) -> Optional[str]:
        """Normalize a bank-exported date string to YYYY-MM-DD, or None"""
        s = (raw or "").strip()
        if not s:
            return None
        if _ISO_PREFIX.match(s):
            return s[:10]

        m = _DAY_MONTH_YEAR.match(s)
        if m:
            day, month, year = m.group(1), m.group(2), m.group(3)
            if len(year) == 2:
                year = f"20{year}"
            return f"{year}-{month.zfill(2)}-{day.zfill(2)}"

        for fmt in FALLBACK_DATE_FORMATS:
            try:
                return datetime.strptime(s, fmt).date().isoformat()
            except ValueError:
                continue
        try:
            return datetime.fromisoformat(s).date().isoformat()
        except ValueError:
            return None

    @staticmethod
    def day_diff(a: Optional[str], b: Optional[str]) -> Optional[int]:
        """Signed number of days from b to a, None if either key is not a valid date"""
        if not a or not b:
            return None
        try:
            return (date.fromisoformat(a) - date.fromisoformat(b)).days
        except ValueError:
            return None

    @staticmethod
    def build_used_document_keys(transactions: Iterable[Transaction]) -> Set[str]:
        """Documents already backing a live match, as ``kind:id`` keys"""
        return {
            f"{t.matched_kind}:{t.matched_id}"
            for t in transactions
            if t.matched_id
        }

    @staticmethod
    def receipt_candidates(receipts: Iterable[ReceiptSummary]) -> List[CandidateDocument]:
        return [
            CandidateDocument(
                kind="receipt",
                id=r.id,
                name=r.vendor or "Unknown vendor",
                day_key=MatchingService.day_key_from_doc_date(r.receipt_date, r.created_at),
                amount=r.total_amount,
                status=r.status,
            )
            for r in receipts
            if r.total_amount is not None
        ]

    @staticmethod
    def invoice_candidates(invoices: Iterable[InvoiceSummary]) -> List[CandidateDocument]:
        return [
            CandidateDocument(
                kind="invoice",
                id=i.id,
                name=(i.client_name or "Unknown client") + (f" • {i.invoice_number}" if i.invoice_number else ""),
                day_key=MatchingService.day_key_from_doc_date(i.invoice_date, i.created_at),
                amount=i.total_amount,
                status=i.workflow_status,
            )
            for i in invoices
            if i.total_amount is not None
        ]

    @staticmethod
    def index_documents(documents: Iterable[CandidateDocument]) -> DocumentIndex:
        """Bucket documents by their amount in integer cents"""
        index: DocumentIndex = {}
        for doc in documents:
            index.setdefault(MatchingService.cents(doc.amount), []).append(doc)
        return index

    @staticmethod
    def text_score(description: str, name: str) -> float:
        """Both arguments must already be normalized"""
        if not name:
            return 0.0
        if name in description or description in name:
            return 1.0
        if name.split(" ")[0] in description:
            return 0.5
        return 0.0

    @staticmethod
    def score_candidate(
        offset_cents: int,
        day_diff: Optional[int],
        description: str,
        name: str,
    ) -> ScoreBreakdown:
        """Composite score of one candidate; description and name must be normalized"""
        window = settings.match_amount_window_cents
        max_days = settings.match_max_day_diff

        amount_score = 1 - min(1, abs(offset_cents) / window)
        date_score = 0.0 if day_diff is None else 1 - min(1, abs(day_diff) / max_days)
        text_score = MatchingService.text_score(description, name)

        # Rounded so that float noise cannot push a score across the threshold
        score = round(
            settings.match_amount_weight * amount_score
            + settings.match_date_weight * date_score
            + settings.match_text_weight * text_score,
            6,
        )
        return ScoreBreakdown(
            amount_score=amount_score,
            date_score=date_score,
            text_score=text_score,
            score=score,
            amount_delta_cents=offset_cents,
            day_diff=day_diff,
        )

    @staticmethod
    def meets_threshold(score: float) -> bool:
        return score >= settings.match_min_score

    @staticmethod
    def format_amount(amount: Decimal) -> str:
        return f"{settings.label_currency_symbol}{amount:,.2f}"

    @staticmethod
    def label(doc: CandidateDocument) -> str:
        return f"{doc.name} • {doc.day_key} • {MatchingService.format_amount(doc.amount)}"

    @staticmethod
    def best_suggestion(
        index: DocumentIndex,
        target_amount: Decimal,
        bank_day_key: Optional[str],
        description: str,
        used_document_keys: Set[str],
    ) -> Optional[MatchSuggestion]:
        """Scan the cent window around the target and keep the best-scoring document"""
        target = MatchingService.cents(target_amount)
        desc = MatchingService.normalize_text(description)
        window = settings.match_amount_window_cents
        step = settings.match_amount_step_cents

        best: Optional[Tuple[CandidateDocument, float]] = None
        for offset in range(-window, window + 1, step):
            bucket = index.get(target + offset)
            if not bucket:
                continue
            for doc in bucket:
                if doc.key in used_document_keys:
                    continue
                diff = MatchingService.day_diff(doc.day_key, bank_day_key)
                if diff is None or abs(diff) > settings.match_max_day_diff:
                    continue
                breakdown = MatchingService.score_candidate(
                    offset, diff, desc, MatchingService.normalize_text(doc.name)
                )
                if best is None or breakdown.score > best[1]:
                    best = (doc, breakdown.score)

        if best is None or not MatchingService.meets_threshold(best[1]):
            return None
        doc, score = best
        return MatchSuggestion(kind=doc.kind, id=doc.id, label=MatchingService.label(doc), score=score)

    @staticmethod
    def matching_description(transaction: Transaction) -> str:
        return (transaction.original_description or transaction.description or "").strip()

    @staticmethod
    def build_suggestions(
        transactions: List[Transaction],
        receipts: List[ReceiptSummary],
        invoices: List[InvoiceSummary],
    ) -> Dict[str, Optional[MatchSuggestion]]:
        """Propose at most one document per unmatched transaction.

        Money out is searched against receipts, money in against invoices.
        The used-document set is rebuilt on every call so a document never
        backs two live matches.
        """
        used = MatchingService.build_used_document_keys(transactions)
        receipt_index = MatchingService.index_documents(MatchingService.receipt_candidates(receipts))
        invoice_index = MatchingService.index_documents(MatchingService.invoice_candidates(invoices))

        suggestions: Dict[str, Optional[MatchSuggestion]] = {}
        for t in transactions:
            if t.matched_id:
                suggestions[t.id] = None
                continue
            suggestions[t.id] = MatchingService.best_suggestion(
                receipt_index if t.is_money_out else invoice_index,
                abs(t.amount),
                MatchingService.day_key_from_bank_date(t.date),
                MatchingService.matching_description(t),
                used,
            )

        logger.info(
            "matching_pass",
            transactions=len(transactions),
            receipts=len(receipts),
            invoices=len(invoices),
            suggested=sum(1 for s in suggestions.values() if s is not None),
        )
        return suggestions

    @staticmethod
    def find_document(
        receipts: List[ReceiptSummary],
        invoices: List[InvoiceSummary],
        kind: str,
        document_id: str,
    ) -> CandidateDocument:
        candidates = (
            MatchingService.receipt_candidates(receipts)
            if kind == "receipt"
            else MatchingService.invoice_candidates(invoices)
        )
        for doc in candidates:
            if doc.id == document_id:
                return doc
        raise DocumentNotFoundError(kind, document_id)

    @staticmethod
    def explain(
        transaction: Transaction,
        doc: CandidateDocument,
        used_document_keys: Set[str],
    ) -> Tuple[ScoreBreakdown, bool]:
        """Score one transaction/document pair outside the window scan.

        Returns the breakdown and whether a matching pass could surface it.
        """
        offset = MatchingService.cents(doc.amount) - MatchingService.cents(abs(transaction.amount))
        diff = MatchingService.day_diff(doc.day_key, MatchingService.day_key_from_bank_date(transaction.date))
        breakdown = MatchingService.score_candidate(
            offset,
            diff,
            MatchingService.normalize_text(MatchingService.matching_description(transaction)),
            MatchingService.normalize_text(doc.name),
        )
        expected_kind = "receipt" if transaction.is_money_out else "invoice"
        suggestible = (
            doc.kind == expected_kind
            and doc.key not in used_document_keys
            and abs(offset) <= settings.match_amount_window_cents
            and offset % settings.match_amount_step_cents == 0
            and diff is not None
            and abs(diff) <= settings.match_max_day_diff
            and MatchingService.meets_threshold(breakdown.score)
        )
        return breakdown, suggestible

    @staticmethod
    def summarize(
        transactions: List[Transaction],
        suggestions: Dict[str, Optional[MatchSuggestion]],
    ) -> ReconciliationSummary:
        """Linked and suggested counts plus the unmatched rows on each side.

        Zero-amount rows are neither missing money out nor missing money in.
        """
        missing_out = [t for t in transactions if t.amount < 0 and not t.matched_id]
        missing_in = [t for t in transactions if t.amount > 0 and not t.matched_id]
        return ReconciliationSummary(
            totals=ReconciliationTotals(
                linked=sum(1 for t in transactions if t.matched_id),
                suggested=sum(1 for t in transactions if not t.matched_id and suggestions.get(t.id)),
                missing_out=len(missing_out),
                missing_in=len(missing_in),
            ),
            missing_out=missing_out,
            missing_in=missing_in,
        )

    @staticmethod
    def manual_candidates(
        transaction: Transaction,
        receipts: List[ReceiptSummary],
        invoices: List[InvoiceSummary],
    ) -> List[CandidateOption]:
        """Same-direction documents closest in amount, for picking a match by hand.

        No date or text filter applies. Documents already matched elsewhere are
        still listed; linking one of them is refused by the workflow.
        """
        target = abs(transaction.amount)
        docs = (
            MatchingService.receipt_candidates(receipts)
            if transaction.is_money_out
            else MatchingService.invoice_candidates(invoices)
        )
        tolerance = settings.candidate_amount_tolerance
        scored = [
            (doc, max(0.0, 1 - float(abs(abs(doc.amount) - target)) / tolerance))
            for doc in docs
        ]
        # Stable sort keeps feed order among equal scores
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return [
            CandidateOption(
                kind=doc.kind,
                id=doc.id,
                name=doc.name,
                day_key=doc.day_key,
                status=doc.status,
                amount=doc.amount,
                score=score,
            )
            for doc, score in scored[:settings.candidate_shortlist_size]
        ]
