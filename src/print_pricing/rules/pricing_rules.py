"""
Pricing Rules - Parses raw rule rows into typed rule variants.

Rules are stored with free-form JSON `conditions` and `pricing_data` columns.
They are parsed once, when reference data is loaded, into one of:

- QuantityDiscountRule: {min_quantity} condition, {discount_percent} payload
- UnknownRule: a rule_type this engine does not price (kept for forward
  compatibility, never applied)
- MalformedRule: a recognised rule_type missing required keys
"""
import json
from dataclasses import dataclass, field
from typing import Any, Optional, Union

QUANTITY_DISCOUNT = 'quantity_discount'

VALID_RULE_TYPES = {QUANTITY_DISCOUNT}


@dataclass(frozen=True)
class QuantityDiscountRule:
    """Percent discount once quantity reaches a threshold."""
    rule_id: int
    service_id: int
    name: str
    min_quantity: int
    discount_percent: float
    is_active: bool = True
    rule_type: str = QUANTITY_DISCOUNT

    def matches(self, quantity: int) -> bool:
        return quantity >= self.min_quantity

    def match_reason(self) -> str:
        return f"qty>={self.min_quantity}"


@dataclass(frozen=True)
class UnknownRule:
    """A rule of a type this engine does not understand."""
    rule_id: int
    service_id: int
    name: str
    rule_type: str
    conditions: dict = field(default_factory=dict, hash=False, compare=False)
    pricing_data: dict = field(default_factory=dict, hash=False, compare=False)
    is_active: bool = True


@dataclass(frozen=True)
class MalformedRule:
    """A recognised rule whose payload could not be parsed."""
    rule_id: int
    service_id: int
    name: str
    rule_type: str
    reason: str
    is_active: bool = True


PricingRule = Union[QuantityDiscountRule, UnknownRule, MalformedRule]


def parse_bool(value: Any) -> bool:
    """Parse a boolean from a CSV cell."""
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('true', '1', 'yes', 'on', '1.0')


def parse_json_object(value: Any) -> dict:
    """Decode a JSON object column; empty cells become {}."""
    if isinstance(value, dict):
        return value
    if value is None:
        return {}
    text = str(value).strip()
    if not text or text.lower() == 'nan':
        return {}
    decoded = json.loads(text)
    if not isinstance(decoded, dict):
        raise ValueError(f"expected a JSON object, got {type(decoded).__name__}")
    return decoded


def _number(payload: dict, key: str) -> Optional[float]:
    raw = payload.get(key)
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


def parse_rule(row: dict) -> PricingRule:
    """
    Build a typed rule from a raw row.

    Never raises for bad content: problems become a MalformedRule carrying
    the reason, so one broken rule cannot fail a whole calculation.
    """
    rule_id = int(row['id'])
    service_id = int(row['service_id'])
    rule_type = str(row.get('rule_type') or '').strip()
    name = str(row.get('rule_name') or row.get('name') or f"rule-{rule_id}").strip()
    raw_active = row.get('is_active')
    active = True if raw_active is None or str(raw_active).strip() == '' else parse_bool(raw_active)

    try:
        conditions = parse_json_object(row.get('conditions'))
        pricing_data = parse_json_object(row.get('pricing_data'))
    except ValueError as e:
        return MalformedRule(rule_id, service_id, name, rule_type, f"invalid JSON: {e}", active)

    if rule_type not in VALID_RULE_TYPES:
        return UnknownRule(rule_id, service_id, name, rule_type, conditions, pricing_data, active)

    min_quantity = _number(conditions, 'min_quantity')
    if min_quantity is None:
        return MalformedRule(rule_id, service_id, name, rule_type,
                             "conditions.min_quantity is required", active)
    discount = _number(pricing_data, 'discount_percent')
    if discount is None:
        return MalformedRule(rule_id, service_id, name, rule_type,
                             "pricing_data.discount_percent is required", active)
    if not 0 <= discount <= 100:
        return MalformedRule(rule_id, service_id, name, rule_type,
                             f"discount_percent must be between 0 and 100 (got {discount:g})", active)

    return QuantityDiscountRule(
        rule_id=rule_id,
        service_id=service_id,
        name=name,
        min_quantity=int(min_quantity),
        discount_percent=discount,
        is_active=active,
    )


def rule_to_row(rule: PricingRule) -> dict:
    """Serialise a rule back to its storage columns."""
    if isinstance(rule, QuantityDiscountRule):
        conditions = {"min_quantity": rule.min_quantity}
        pricing_data = {"discount_percent": rule.discount_percent}
    elif isinstance(rule, UnknownRule):
        conditions = rule.conditions
        pricing_data = rule.pricing_data
    else:
        raise ValueError(f"Rule {rule.rule_id} is malformed and cannot be saved: {rule.reason}")
    return {
        'id': rule.rule_id,
        'service_id': rule.service_id,
        'rule_name': rule.name,
        'rule_type': rule.rule_type,
        'conditions': json.dumps(conditions),
        'pricing_data': json.dumps(pricing_data),
        'is_active': 'true' if rule.is_active else 'false',
    }
