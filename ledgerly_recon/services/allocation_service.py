import re
from typing import Dict, Iterable, Optional

from ledgerly_recon.core.logging import get_logger
from ledgerly_recon.schemas.bank_transaction import AllocationSuggestion, Transaction
from ledgerly_recon.schemas.rule import CounterpartyRule, LearnedDefaults

logger = get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")


class AllocationService:
    @staticmethod
    def counterparty_name(transaction: Transaction) -> str:
        return (transaction.original_description or transaction.description or "").strip()

    @staticmethod
    def normalize_counterparty(name: Optional[str]) -> str:
        return _WHITESPACE.sub(" ", (name or "").strip().lower())

    @staticmethod
    def _compile(rule: CounterpartyRule, pattern: str) -> Optional[re.Pattern]:
        try:
            return re.compile(pattern, re.IGNORECASE)
        except re.error as e:
            logger.warning("rule_regex_invalid", rule_id=rule.id, pattern=pattern, error=str(e))
            return None

    @staticmethod
    def first_matching_rule(
        rules: Iterable[CounterpartyRule],
        applies_to: str,
        counterparty_name: str,
    ) -> Optional[CounterpartyRule]:
        """Return the first enabled rule whose match value fits the counterparty"""
        name = (counterparty_name or "").strip()
        if not name:
            return None

        for rule in rules:
            if not rule.enabled:
                continue
            if rule.applies_to != "both" and rule.applies_to != applies_to:
                continue
            needle = (rule.match_value or "").strip()
            if not needle:
                continue

            if rule.match_type == "contains":
                if needle.lower() in name.lower():
                    return rule
            elif rule.match_type == "equals":
                if name.lower() == needle.lower():
                    return rule
            elif rule.match_type == "regex":
                pattern = AllocationService._compile(rule, needle)
                if pattern is not None and pattern.search(name):
                    return rule
        return None

    @staticmethod
    def find_learned_defaults(
        learned: Dict[str, LearnedDefaults],
        counterparty_name: str,
    ) -> Optional[LearnedDefaults]:
        """Exact normalized key first, else the longest stored key contained in the name"""
        name = AllocationService.normalize_counterparty(counterparty_name)
        if not name:
            return None
        if name in learned:
            return learned[name]

        best_key = None
        for key in learned:
            if key and key in name and (best_key is None or len(key) > len(best_key)):
                best_key = key
        return learned[best_key] if best_key else None

    @staticmethod
    def suggest_allocation(
        transaction: Transaction,
        rules: Iterable[CounterpartyRule],
        learned: Optional[Dict[str, LearnedDefaults]] = None,
    ) -> AllocationSuggestion:
        """Pre-fill allocation fields from rules, learned defaults and the bank category"""
        direction = transaction.direction
        applies_to = "receipt" if direction == "money_out" else "invoice"
        name = AllocationService.counterparty_name(transaction)

        suggestion = AllocationSuggestion(allocation_direction=direction)

        rule = AllocationService.first_matching_rule(rules, applies_to, name)
        if rule:
            suggestion.rule_id = rule.id
            if rule.set_category:
                suggestion.allocation_category = rule.set_category
            if rule.set_account_code:
                suggestion.allocation_account_code = rule.set_account_code
            if rule.set_tax_treatment:
                suggestion.allocation_tax_treatment = rule.set_tax_treatment
            if rule.set_payment_method:
                suggestion.allocation_notes = f"Payment method: {rule.set_payment_method}"

        defaults = AllocationService.find_learned_defaults(learned or {}, name)
        if defaults:
            if not suggestion.allocation_category and defaults.category:
                suggestion.allocation_category = defaults.category
                suggestion.learned = True
            if not suggestion.allocation_tax_treatment and defaults.tax_treatment:
                suggestion.allocation_tax_treatment = defaults.tax_treatment
                suggestion.learned = True
            if not suggestion.allocation_notes and defaults.payment_method:
                suggestion.allocation_notes = f"Payment method: {defaults.payment_method}"
                suggestion.learned = True

        if not suggestion.allocation_category and transaction.statement_category:
            suggestion.allocation_category = transaction.statement_category

        return suggestion
