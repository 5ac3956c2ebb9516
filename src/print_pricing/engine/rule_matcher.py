"""
Rule Matcher - Applies conditional pricing rules to an operation's rate.

Used by the pricing engine after volume tiers have set the unit rate.
Of all matching rules, only the one with the highest discount is applied;
discounts never stack.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..rules.pricing_rules import MalformedRule, PricingRule, QuantityDiscountRule, UnknownRule

logger = logging.getLogger(__name__)


@dataclass
class MatchedRule:
    """A rule that matched with context."""
    rule_id: int
    name: str
    rule_type: str
    discount_percent: float
    match_reason: str


@dataclass
class RuleEvaluation:
    """Outcome of running an operation's rules against one context."""
    base_rate: float
    adjusted_rate: float
    applied: Optional[MatchedRule] = None
    matched: list[MatchedRule] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    traces: list[str] = field(default_factory=list)


class OperationPricingRuleEngine:
    """
    Matches an operation's active rules against a quantity context.

    Malformed and unknown rules are skipped with a warning; they never abort
    the evaluation.
    """

    def __init__(self, rules: Iterable[PricingRule] = ()):
        self.rules = [r for r in rules if r.is_active]

    def find_matching_rules(self, quantity: int, parameters: Optional[dict] = None) -> tuple[list[MatchedRule], list[str]]:
        """
        Find all rules that match the given context.

        Returns (matched rules sorted best discount first, skip messages).
        """
        matched = []
        skipped = []

        for rule in self.rules:
            if isinstance(rule, MalformedRule):
                msg = f"Rule {rule.rule_id} ({rule.name}) skipped: {rule.reason}"
                logger.warning(msg)
                skipped.append(msg)
                continue

            if isinstance(rule, UnknownRule):
                msg = f"Rule {rule.rule_id} ({rule.name}) skipped: unsupported rule type '{rule.rule_type}'"
                logger.warning(msg)
                skipped.append(msg)
                continue

            if isinstance(rule, QuantityDiscountRule) and rule.matches(quantity):
                matched.append(MatchedRule(
                    rule_id=rule.rule_id,
                    name=rule.name,
                    rule_type=rule.rule_type,
                    discount_percent=rule.discount_percent,
                    match_reason=rule.match_reason(),
                ))

        # Highest discount first, lowest id breaks ties
        matched.sort(key=lambda r: (-r.discount_percent, r.rule_id))
        return matched, skipped

    def apply_rule_to_rate(self, rule: MatchedRule, base_rate: float) -> tuple[float, list[str]]:
        """
        Apply a single matched rule to a rate.

        Returns (new_rate, trace_messages).
        """
        new_rate = base_rate * (1 - rule.discount_percent / 100.0)
        traces = [
            f"Rule {rule.rule_id} applied {rule.discount_percent:g}% discount: "
            f"{base_rate:.4f} → {new_rate:.4f}"
        ]
        return new_rate, traces

    def evaluate(self, base_rate: float, quantity: int, parameters: Optional[dict] = None) -> RuleEvaluation:
        """Run all rules and apply the single best match."""
        matched, skipped = self.find_matching_rules(quantity, parameters)
        evaluation = RuleEvaluation(
            base_rate=base_rate,
            adjusted_rate=base_rate,
            matched=matched,
            skipped=skipped,
        )

        if not matched:
            return evaluation

        best = matched[0]
        evaluation.adjusted_rate, evaluation.traces = self.apply_rule_to_rate(best, base_rate)
        evaluation.applied = best
        for other in matched[1:]:
            evaluation.traces.append(
                f"Rule {other.rule_id} also matched ({other.discount_percent:g}%) but was not applied"
            )
        return evaluation
