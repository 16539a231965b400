from ledgerly_recon.core.config import settings
from ledgerly_recon.core.logging import get_logger
from ledgerly_recon.schemas.bank_transaction import Transaction
from ledgerly_recon.schemas.match import ScoreBreakdown
from ledgerly_recon.services.matching_service import CandidateDocument, MatchingService

logger = get_logger(__name__)


class ExplanationService:
    @staticmethod
    def explain_match(
        transaction: Transaction,
        doc: CandidateDocument,
        breakdown: ScoreBreakdown,
        suggestible: bool,
    ) -> str:
        """Explain a transaction/document score. Falls back to deterministic text if AI is unavailable"""
        if settings.ai_enabled and settings.openai_api_key:
            try:
                return ExplanationService._get_ai_explanation(transaction, doc, breakdown, suggestible)
            except Exception as e:
                logger.warning("ai_explanation_failed", error=str(e))
        return ExplanationService._get_deterministic_explanation(transaction, doc, breakdown, suggestible)

    @staticmethod
    def _get_ai_explanation(
        transaction: Transaction,
        doc: CandidateDocument,
        breakdown: ScoreBreakdown,
        suggestible: bool,
    ) -> str:
        from openai import OpenAI

        client = OpenAI(api_key=settings.openai_api_key)

        prompt = f"""You are reviewing an automatic match between a bank statement line and a {doc.kind} for a small business.

Bank transaction:
- Amount: {transaction.amount} {transaction.currency}
- Date: {transaction.date}
- Description: {MatchingService.matching_description(transaction) or 'Not provided'}

{doc.kind.capitalize()}:
- Counterparty: {doc.name}
- Date: {doc.day_key or 'Not provided'}
- Total: {MatchingService.format_amount(doc.amount)}

Scores (0 to 1): amount {breakdown.amount_score:.2f}, date {breakdown.date_score:.2f}, text {breakdown.text_score:.2f}, overall {breakdown.score:.2f}.
The match {'would' if suggestible else 'would not'} be suggested automatically.

Explain in 2-3 sentences why, focusing on the factors that decided it."""

        response = client.chat.completions.create(
            model=settings.openai_model,
            messages=[
                {"role": "system", "content": "You are a bookkeeping reconciliation assistant."},
                {"role": "user", "content": prompt},
            ],
            max_tokens=150,
            temperature=0.3,
        )
        return response.choices[0].message.content.strip()

    @staticmethod
    def _get_deterministic_explanation(
        transaction: Transaction,
        doc: CandidateDocument,
        breakdown: ScoreBreakdown,
        suggestible: bool,
    ) -> str:
        factors = []

        delta = abs(breakdown.amount_delta_cents)
        if delta == 0:
            factors.append("the amounts match exactly")
        elif delta <= settings.match_amount_window_cents:
            factors.append(f"the amounts differ by {delta} cents")
        else:
            factors.append(f"the amounts differ by {delta} cents, outside the matching window")

        if breakdown.day_diff is None:
            factors.append("one of the dates could not be read")
        elif breakdown.day_diff == 0:
            factors.append("the dates match")
        elif abs(breakdown.day_diff) <= settings.match_max_day_diff:
            factors.append(f"the dates are {abs(breakdown.day_diff)} day(s) apart")
        else:
            factors.append(f"the dates are {abs(breakdown.day_diff)} days apart, too far to match")

        if breakdown.text_score == 1:
            factors.append(f"the description names {doc.name}")
        elif breakdown.text_score > 0:
            factors.append("the description partly names the counterparty")
        else:
            factors.append("the description does not mention the counterparty")

        expected = "receipt" if transaction.is_money_out else "invoice"
        if doc.kind != expected:
            factors.append(f"money {'out' if transaction.is_money_out else 'in'} is only matched against {expected}s")

        verdict = "Would be suggested" if suggestible else "Would not be suggested"
        return f"Match score: {breakdown.score:.2f}. {verdict}: " + "; ".join(factors) + "."
