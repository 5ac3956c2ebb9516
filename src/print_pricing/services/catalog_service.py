"""
Catalog Service - Admin CRUD for services, tiers, rules and settings.

Reads go through the reference cache; every write goes to the store and then
invalidates the cache so the next pricing request sees it.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Optional

from ..engine.errors import InvalidArgument, NotFound
from ..engine.models import (
    MarkupSetting,
    PrintPriceSheet,
    Product,
    QuantityDiscountTier,
    Service,
    VolumeTier,
)
from ..engine.snapshot import ReferenceSnapshot
from ..rules.pricing_rules import MalformedRule, PricingRule, parse_rule, rule_to_row
from ..data.cache import ReferenceDataCache
from ..data.reference_store import CsvReferenceStore, service_from_row, tier_from_row

logger = logging.getLogger(__name__)

PRICE_UNITS = ('', 'per_item', 'per_unit', 'per_sheet', 'per_cut', 'per_m2', 'per_sqm', 'fixed', 'per_order')


@dataclass
class ValidationResult:
    """Result of validating an admin write."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def raise_if_invalid(self):
        if not self.valid:
            raise InvalidArgument("; ".join(self.errors))


def _as_float(value) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class CatalogService:
    """Service for managing pricing reference data."""

    def __init__(self, store: CsvReferenceStore, cache: ReferenceDataCache):
        self.store = store
        self.cache = cache

    def _snapshot(self) -> ReferenceSnapshot:
        return self.cache.snapshot()

    def _written(self, what: str):
        self.cache.invalidate()
        logger.info("Reference data changed: %s", what)

    # Services ---------------------------------------------------------------

    def list_services(self, include_inactive: bool = True) -> list[Service]:
        services = self._snapshot().services
        return [s for s in services if include_inactive or s.is_active]

    def get_service(self, service_id: int) -> Service:
        try:
            return self._snapshot().service(service_id)
        except KeyError:
            raise NotFound(f"Service {service_id} not found", field='service_id')

    def validate_service(self, values: dict, partial: bool = False) -> ValidationResult:
        """Validate service fields before saving."""
        result = ValidationResult(valid=True)

        if not partial or 'name' in values:
            if not str(values.get('name') or '').strip():
                result.errors.append("Name is required")
        if not partial or 'rate' in values:
            rate = _as_float(values.get('rate'))
            if rate is None or rate < 0:
                result.errors.append("Rate must be a number >= 0")
        if 'setup_cost' in values and values['setup_cost'] is not None:
            setup = _as_float(values['setup_cost'])
            if setup is None or setup < 0:
                result.errors.append("Setup cost must be a number >= 0")
        if 'price_unit' in values:
            unit = str(values.get('price_unit') or '').strip().lower()
            if unit not in PRICE_UNITS:
                result.errors.append(f"Unknown price unit '{values['price_unit']}'")

        if not partial and not values.get('service_type'):
            result.warnings.append("No service type given; priced per item")

        result.valid = not result.errors
        return result

    def create_service(self, values: dict) -> Service:
        self.validate_service(values).raise_if_invalid()
        values = {'is_active': True, 'service_type': 'generic', **values}
        row = self.store.insert('services', values)
        self._written(f"service {row['id']} created")
        return service_from_row(row)

    def update_service(self, service_id: int, updates: dict) -> Service:
        self.get_service(service_id)
        updates = {k: v for k, v in updates.items() if k != 'id' and v is not None}
        self.validate_service(updates, partial=True).raise_if_invalid()
        row = self.store.update('services', {'id': service_id}, updates)
        self._written(f"service {service_id} updated")
        return service_from_row(row)

    def deactivate_service(self, service_id: int) -> Service:
        self.get_service(service_id)
        row = self.store.deactivate('services', {'id': service_id})
        self._written(f"service {service_id} deactivated")
        return service_from_row(row)

    # Volume tiers -----------------------------------------------------------

    def list_tiers(self, service_id: int, variant_id: Optional[int] = None,
                   include_inactive: bool = False) -> list[VolumeTier]:
        """Tiers of a service (or of one variant), ascending by threshold."""
        self._check_scope(service_id, variant_id)
        tiers = self._snapshot().tiers_for(service_id, variant_id)
        if not include_inactive:
            tiers = [t for t in tiers if t.is_active]
        return sorted(tiers, key=lambda t: (t.min_quantity, t.id))

    def _check_scope(self, service_id: int, variant_id: Optional[int]):
        self.get_service(service_id)
        if variant_id is not None:
            try:
                self._snapshot().variant(service_id, variant_id)
            except KeyError:
                raise NotFound(f"Variant {variant_id} of service {service_id} not found", field='variant_id')

    def _get_tier(self, service_id: int, tier_id: int) -> VolumeTier:
        for tier in self._snapshot().tiers:
            if tier.id == tier_id and tier.service_id == service_id:
                return tier
        raise NotFound(f"Tier {tier_id} of service {service_id} not found", field='tier_id')

    def validate_tier(self, service_id: int, min_quantity, rate, variant_id: Optional[int] = None,
                      is_percent: bool = False, tier_id: Optional[int] = None) -> ValidationResult:
        """Thresholds must be unique within a (service, variant) schedule."""
        result = ValidationResult(valid=True)

        try:
            threshold = int(min_quantity)
        except (TypeError, ValueError):
            threshold = None
        if threshold is None or threshold < 1:
            result.errors.append("min_quantity must be an integer >= 1")

        value = _as_float(rate)
        if value is None or value < 0:
            result.errors.append("rate must be a number >= 0")
        elif is_percent and value > 100:
            result.errors.append("percent rate must be between 0 and 100")

        if threshold is not None:
            for tier in self._snapshot().tiers_for(service_id, variant_id):
                if tier.is_active and tier.min_quantity == threshold and tier.id != tier_id:
                    result.errors.append(
                        f"A tier from {threshold} already exists for this schedule (tier {tier.id})"
                    )

        result.valid = not result.errors
        return result

    def create_tier(self, service_id: int, min_quantity: int, rate: float,
                    variant_id: Optional[int] = None, is_percent: bool = False) -> VolumeTier:
        self._check_scope(service_id, variant_id)
        self.validate_tier(service_id, min_quantity, rate, variant_id, is_percent).raise_if_invalid()
        row = self.store.insert('volume_tiers', {
            'service_id': service_id,
            'variant_id': variant_id,
            'min_quantity': int(min_quantity),
            'rate': float(rate),
            'is_percent': is_percent,
            'is_active': True,
        })
        self._written(f"tier {row['id']} created for service {service_id}")
        return tier_from_row(row)

    def update_tier(self, service_id: int, tier_id: int, updates: dict) -> VolumeTier:
        tier = self._get_tier(service_id, tier_id)
        updates = {k: v for k, v in updates.items() if v is not None}
        min_quantity = updates.get('min_quantity', tier.min_quantity)
        rate = updates.get('rate', tier.rate)
        is_percent = updates.get('is_percent', tier.is_percent)
        self.validate_tier(service_id, min_quantity, rate, tier.variant_id, is_percent, tier_id).raise_if_invalid()

        allowed = {k: v for k, v in updates.items() if k in ('min_quantity', 'rate', 'is_percent', 'is_active')}
        row = self.store.update('volume_tiers', {'id': tier_id, 'service_id': service_id}, allowed)
        self._written(f"tier {tier_id} of service {service_id} updated")
        return tier_from_row(row)

    def delete_tier(self, service_id: int, tier_id: int) -> VolumeTier:
        self._get_tier(service_id, tier_id)
        row = self.store.deactivate('volume_tiers', {'id': tier_id, 'service_id': service_id})
        self._written(f"tier {tier_id} of service {service_id} deactivated")
        return tier_from_row(row)

    # Rules ------------------------------------------------------------------

    def list_rules(self, service_id: int) -> list[PricingRule]:
        self.get_service(service_id)
        return self._snapshot().rules_for(service_id)

    def create_rule(self, service_id: int, rule_name: str, rule_type: str,
                    conditions: dict, pricing_data: dict) -> PricingRule:
        """Add a rule; rules that would load as malformed are rejected."""
        self.get_service(service_id)
        values = {
            'service_id': service_id,
            'rule_name': rule_name,
            'rule_type': rule_type,
            'conditions': json.dumps(conditions or {}),
            'pricing_data': json.dumps(pricing_data or {}),
            'is_active': True,
        }
        candidate = parse_rule({**values, 'id': 0})
        if isinstance(candidate, MalformedRule):
            raise InvalidArgument(f"Invalid rule: {candidate.reason}", field='pricing_data')

        # id 0 is a placeholder; the store assigns the next one
        row = self.store.insert('pricing_rules', {**rule_to_row(candidate), 'id': None})
        self._written(f"rule {row['id']} created for service {service_id}")
        return parse_rule(row)

    def deactivate_rule(self, service_id: int, rule_id: int) -> PricingRule:
        try:
            row = self.store.deactivate('pricing_rules', {'id': rule_id, 'service_id': service_id})
        except KeyError:
            raise NotFound(f"Rule {rule_id} of service {service_id} not found", field='rule_id')
        self._written(f"rule {rule_id} deactivated")
        return parse_rule(row)

    # Read-only tables -------------------------------------------------------

    def list_print_prices(self) -> list[PrintPriceSheet]:
        return list(self._snapshot().print_prices)

    def get_print_price(self, print_price_id: int) -> PrintPriceSheet:
        try:
            return self._snapshot().print_price_by_id(print_price_id)
        except KeyError:
            raise NotFound(f"Print price {print_price_id} not found", field='id')

    def list_products(self) -> list[Product]:
        return [p for p in self._snapshot().products if p.is_active]

    def list_quantity_discounts(self) -> list[QuantityDiscountTier]:
        discounts = [d for d in self._snapshot().quantity_discounts if d.is_active]
        return sorted(discounts, key=lambda d: d.min_quantity)

    def list_markup_settings(self) -> list[MarkupSetting]:
        return [m for m in self._snapshot().markup_settings if m.is_active]

    def update_markup_setting(self, setting_name: str, value: float) -> MarkupSetting:
        number = _as_float(value)
        if number is None:
            raise InvalidArgument("setting_value must be a number", field='setting_value')
        try:
            row = self.store.update('markup_settings', {'setting_name': setting_name}, {'setting_value': number})
        except KeyError:
            raise NotFound(f"Markup setting '{setting_name}' not found", field='setting_name')
        self._written(f"markup setting {setting_name} = {number:g}")
        return MarkupSetting(
            id=int(row['id']),
            setting_name=row['setting_name'],
            setting_value=number,
            description=row.get('description') or None,
        )

    def get_stats(self) -> dict:
        """Counts of the loaded reference tables."""
        snapshot = self._snapshot()
        services = snapshot.services
        return {
            'services': len(services),
            'active_services': sum(1 for s in services if s.is_active),
            'tiers': sum(1 for t in snapshot.tiers if t.is_active),
            'rules': len(snapshot.rules),
            'malformed_rules': sum(1 for r in snapshot.rules if isinstance(r, MalformedRule)),
            'binding_types': len(snapshot.binding_types),
            'print_prices': len(snapshot.print_prices),
            'products': len(snapshot.products),
            'loaded_at': snapshot.loaded_at.isoformat(),
            'cache_version': self.cache.version,
        }
