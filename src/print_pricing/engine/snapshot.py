"""
Reference Snapshot - Immutable view of all pricing reference data.

One snapshot is taken per request; lookups raise KeyError for unknown ids so
the orchestrators can turn them into NotFound / Unprocessable errors.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .models import (
    BindingType,
    LaminationRate,
    MarkupSetting,
    PaperRate,
    PrintPriceSheet,
    PrintTypeRate,
    Product,
    ProductOperationLink,
    QuantityDiscountTier,
    Service,
    ServiceVariant,
    VolumeTier,
)
from ..rules.pricing_rules import PricingRule


@dataclass(frozen=True)
class ReferenceSnapshot:
    """All reference tables at one point in time."""
    services: tuple[Service, ...] = ()
    variants: tuple[ServiceVariant, ...] = ()
    tiers: tuple[VolumeTier, ...] = ()
    rules: tuple[PricingRule, ...] = ()
    binding_types: tuple[BindingType, ...] = ()
    print_prices: tuple[PrintPriceSheet, ...] = ()
    products: tuple[Product, ...] = ()
    product_operations: tuple[ProductOperationLink, ...] = ()
    quantity_discounts: tuple[QuantityDiscountTier, ...] = ()
    markup_settings: tuple[MarkupSetting, ...] = ()
    print_types: tuple[PrintTypeRate, ...] = ()
    paper_rates: tuple[PaperRate, ...] = ()
    lamination_rates: tuple[LaminationRate, ...] = ()
    loaded_at: datetime = field(default_factory=datetime.now, compare=False)

    # Services ---------------------------------------------------------------

    def service(self, service_id: int) -> Service:
        for s in self.services:
            if s.id == service_id:
                return s
        raise KeyError(f"service {service_id}")

    def variant(self, service_id: int, variant_id: int) -> ServiceVariant:
        for v in self.variants:
            if v.id == variant_id and v.service_id == service_id:
                return v
        raise KeyError(f"variant {variant_id} of service {service_id}")

    def tiers_for(self, service_id: int, variant_id: Optional[int] = None) -> list[VolumeTier]:
        return [t for t in self.tiers if t.service_id == service_id and t.variant_id == variant_id]

    def rules_for(self, service_id: int) -> list[PricingRule]:
        return [r for r in self.rules if r.service_id == service_id]

    # Multi-page catalog -----------------------------------------------------

    def binding_type(self, value: str) -> BindingType:
        for b in self.binding_types:
            if b.value == value and b.is_active:
                return b
        raise KeyError(f"binding type {value}")

    def print_type(self, code: str) -> PrintTypeRate:
        for p in self.print_types:
            if p.code == code:
                return p
        raise KeyError(f"print type {code}")

    def lamination_rate(self, code: str) -> LaminationRate:
        for lam in self.lamination_rates:
            if lam.code == code:
                return lam
        raise KeyError(f"lamination {code}")

    def paper_rates_for(self, paper_type: str) -> list[PaperRate]:
        return [p for p in self.paper_rates if p.paper_type == paper_type]

    # Print prices -----------------------------------------------------------

    def print_price_sheet(self, technology_code: str, counter_unit: str = 'sheets') -> PrintPriceSheet:
        """Newest active sheet for a technology and counter unit."""
        matches = [
            p for p in self.print_prices
            if p.technology_code == technology_code and p.counter_unit == counter_unit and p.is_active
        ]
        if not matches:
            raise KeyError(f"print prices for {technology_code}/{counter_unit}")
        return max(matches, key=lambda p: p.id)

    def print_price_by_id(self, print_price_id: int) -> PrintPriceSheet:
        for p in self.print_prices:
            if p.id == print_price_id:
                return p
        raise KeyError(f"print price {print_price_id}")

    # Products ---------------------------------------------------------------

    def product(self, key: str) -> Product:
        for p in self.products:
            if p.key == key and p.is_active:
                return p
        raise KeyError(f"product {key}")

    def operations_for(self, product_key: str) -> list[ProductOperationLink]:
        links = [link for link in self.product_operations if link.product_key == product_key]
        return sorted(links, key=lambda link: link.sequence)

    def operation_link(self, product_key: str, service_id: int) -> ProductOperationLink:
        for link in self.product_operations:
            if link.product_key == product_key and link.service_id == service_id:
                return link
        raise KeyError(f"service {service_id} is not linked to product {product_key}")

    # Settings ---------------------------------------------------------------

    def markup_value(self, name: str, default: float) -> float:
        for m in self.markup_settings:
            if m.setting_name == name and m.is_active:
                return m.setting_value
        return default
