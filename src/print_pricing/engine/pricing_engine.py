"""
Pricing Engine - Entry point tying reference data to the calculators.

Every call takes one snapshot from the reference cache and builds its
collaborators (packer, tier resolver, rule engine...) over it, so a request
never sees a half-applied admin write.

Operation quote resolution order:
1. Service base rate
2. Volume tier for the quantity (variant schedule first, then the service's)
3. Product link price_multiplier x operation_price_multiplier markup
4. Best matching quantity rule
5. Units by pricing strategy, plus the one-time setup cost
"""
import logging
from typing import Optional

from ..config.settings import Settings, get_settings
from .errors import InvalidArgument, NotFound, Unprocessable, require_positive
from .layout import (
    PRODUCT_SIZE_CONSTRAINTS,
    SHEET_SIZES,
    RectanglePacker,
    validate_product_size,
)
from .models import (
    DerivationResult,
    LayoutResult,
    MultiPageRequest,
    MultiPageResult,
    OperationQuote,
    PricingStrategy,
    QuantityDiscountTier,
)
from .multipage import MIN_PAGES, MultiPageCostCalculator
from .print_price_derivation import PrintPriceDerivationService
from .rule_matcher import OperationPricingRuleEngine
from .snapshot import ReferenceSnapshot
from .tiers import TierScheduleResolver, resolve_quantity_discount

logger = logging.getLogger(__name__)

OPERATION_MULTIPLIER_SETTING = 'operation_price_multiplier'
MULTIPAGE_FORMATS = ('A6', 'A5', 'A4', 'A3', 'SRA3')


class PricingEngine:
    """
    Facade over the pricing components.

    `cache` is anything with a snapshot() method returning a
    ReferenceSnapshot and an invalidate() method.
    """

    def __init__(self, cache, settings: Optional[Settings] = None):
        self.cache = cache
        self.settings = settings or get_settings()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> 'PricingEngine':
        """Build an engine over the CSV reference store named by settings."""
        from ..data.cache import ReferenceDataCache
        from ..data.reference_store import CsvReferenceStore

        settings = settings or get_settings()
        store = CsvReferenceStore(settings.data_dir, persist=settings.persist_writes)
        engine = cls(ReferenceDataCache(store.load_snapshot), settings)
        engine.store = store
        return engine

    def reload_data(self):
        """Drop the cached snapshot; the next call reloads reference data."""
        self.cache.invalidate()

    def snapshot(self) -> ReferenceSnapshot:
        return self.cache.snapshot()

    def packer(self) -> RectanglePacker:
        return RectanglePacker(self.settings.layout_margin_mm, self.settings.layout_gap_mm)

    # Layout -----------------------------------------------------------------

    def layout(self, width_mm: float, height_mm: float,
               sheet_width_mm: Optional[float] = None,
               sheet_height_mm: Optional[float] = None) -> LayoutResult:
        """Layout on the given sheet, or on the best standard sheet when none is given."""
        width = require_positive(width_mm, 'width_mm')
        height = require_positive(height_mm, 'height_mm')
        packer = self.packer()

        if sheet_width_mm is None and sheet_height_mm is None:
            best = packer.find_optimal_sheet(width, height)
            if best is not None:
                return best
            return packer.calculate_layout(
                width, height, self.settings.default_sheet_width_mm, self.settings.default_sheet_height_mm
            )

        sheet_width = require_positive(sheet_width_mm, 'sheet_width_mm')
        sheet_height = require_positive(sheet_height_mm, 'sheet_height_mm')
        return packer.calculate_layout(width, height, sheet_width, sheet_height)

    # Print prices -----------------------------------------------------------

    def derive_print_prices(self, technology_code: str, width_mm: float, height_mm: float,
                            color_mode: str = 'color', sides_mode: str = 'single') -> DerivationResult:
        service = PrintPriceDerivationService(self.snapshot(), self.packer())
        return service.derive(technology_code, width_mm, height_mm, color_mode, sides_mode)

    # Multi-page -------------------------------------------------------------

    def calculate_multipage(self, request: MultiPageRequest) -> MultiPageResult:
        return MultiPageCostCalculator(self.snapshot()).calculate(request)

    def multipage_schema(self) -> dict:
        """Options a multi-page calculator form offers."""
        snapshot = self.snapshot()
        return {
            "min_pages": MIN_PAGES,
            "formats": list(MULTIPAGE_FORMATS),
            "binding_types": [
                {
                    "value": b.value,
                    "label": b.label,
                    "min_pages": b.min_pages,
                    "max_pages": b.max_pages,
                    "duplex_default": b.duplex_default,
                    "unit_price": b.unit_price,
                }
                for b in snapshot.binding_types if b.is_active
            ],
            "print_types": [
                {"value": p.code, "label": p.label, "rate_per_sheet": p.rate_per_sheet, "setup_cost": p.setup_cost}
                for p in snapshot.print_types
            ],
            "paper_types": [
                {"value": p.paper_type, "label": p.label or p.paper_type, "density": p.density,
                 "price_per_sheet": p.price_per_sheet}
                for p in snapshot.paper_rates
            ],
            "lamination": [
                {"value": lam.code, "label": lam.label or lam.code, "rate": lam.rate}
                for lam in snapshot.lamination_rates
            ],
        }

    # Discounts --------------------------------------------------------------

    def resolve_quantity_discount(self, quantity: int) -> Optional[QuantityDiscountTier]:
        if quantity is None or quantity < 1:
            raise InvalidArgument("quantity must be at least 1", field='quantity')
        return resolve_quantity_discount(self.snapshot().quantity_discounts, quantity)

    # Products ---------------------------------------------------------------

    def product_schema(self, key: str) -> dict:
        """Parameters and ordered operations of a product."""
        snapshot = self.snapshot()
        try:
            product = snapshot.product(key)
        except KeyError:
            raise NotFound(f"Product '{key}' not found", field='product_key')

        operations = []
        for link in snapshot.operations_for(key):
            try:
                service = snapshot.service(link.service_id)
            except KeyError:
                raise Unprocessable(
                    f"Product '{key}' is linked to unknown service {link.service_id}"
                )
            operations.append({
                "service_id": service.id,
                "name": service.name,
                "sequence": link.sequence,
                "strategy": service.strategy.value,
                "unit": service.unit,
                "rate": service.rate,
                "setup_cost": service.setup_cost,
                "price_multiplier": link.price_multiplier,
                "is_required": link.is_required,
                "is_default": link.is_default,
                "is_active": service.is_active,
                "default_params": dict(link.default_params),
                "conditions": dict(link.conditions),
            })

        parameters = [
            {"name": "quantity", "type": "integer", "min": 1, "required": True},
            {"name": "width_mm", "type": "number", "min": 0, "required": True},
            {"name": "height_mm", "type": "number", "min": 0, "required": True},
        ]
        size = PRODUCT_SIZE_CONSTRAINTS.get(key)
        if size is not None:
            min_w, max_w, min_h, max_h, recommended = size
            parameters[1].update({"min": min_w, "max": max_w, "default": recommended[0]})
            parameters[2].update({"min": min_h, "max": max_h, "default": recommended[1]})

        return {
            "key": product.key,
            "name": product.name,
            "category": product.category,
            "parameters": parameters,
            "operations": operations,
            "sheet_sizes": {name: {"width": w, "height": h} for name, (w, h) in SHEET_SIZES.items()},
        }

    def validate_product_size(self, product_key: str, width_mm: float, height_mm: float) -> dict:
        return validate_product_size(product_key, width_mm, height_mm)

    # Operation quotes -------------------------------------------------------

    def quote_operation(self, service_id: int, quantity: int,
                        variant_id: Optional[int] = None,
                        product_key: Optional[str] = None,
                        parameters: Optional[dict] = None,
                        sheets: Optional[int] = None,
                        cuts: Optional[int] = None,
                        area_m2: Optional[float] = None) -> OperationQuote:
        """Price one operation for a quantity, recording each step in the trace."""
        if quantity is None or quantity < 1:
            raise InvalidArgument("quantity must be at least 1", field='quantity')
        if sheets is not None:
            require_positive(sheets, 'sheets')
        if cuts is not None:
            require_positive(cuts, 'cuts')

        snapshot = self.snapshot()
        try:
            service = snapshot.service(service_id)
        except KeyError:
            raise NotFound(f"Service {service_id} not found", field='service_id')
        if not service.is_active:
            raise InvalidArgument(f"Service {service_id} ({service.name}) is inactive", field='service_id')

        quote = OperationQuote(
            service_id=service.id,
            service_name=service.name,
            strategy=service.strategy,
            quantity=quantity,
            base_rate=service.rate,
            unit_rate=service.rate,
            units=0,
            setup_cost=service.setup_cost,
            total=0.0,
        )
        quote.add_trace("Service", f"{service.name} ({service.strategy.value})", f"{service.rate:g}")

        # Step 2: volume tier
        resolver = TierScheduleResolver(snapshot.tiers)
        rate, tier = service.rate, None
        if variant_id is not None:
            try:
                variant = snapshot.variant(service.id, variant_id)
            except KeyError:
                raise NotFound(f"Variant {variant_id} of service {service.id} not found", field='variant_id')
            if resolver.schedule(service.id, variant.id):
                rate, tier = resolver.resolve_rate(service.id, service.rate, quantity, variant.id)
            else:
                quote.add_trace("Variant", f"No tiers for variant '{variant.name}'; using service tiers")
                rate, tier = resolver.resolve_rate(service.id, service.rate, quantity)
        else:
            rate, tier = resolver.resolve_rate(service.id, service.rate, quantity)

        if tier is not None:
            quote.tier_id = tier.id
            kind = f"{tier.rate:g}% off" if tier.is_percent else "absolute rate"
            quote.add_trace("Volume tier", f"qty {quantity} >= {tier.min_quantity} ({kind})", f"{rate:.4f}")
        else:
            quote.add_trace("Volume tier", f"No tier applies at qty {quantity}; base rate", f"{rate:.4f}")

        # Step 3: multipliers
        multiplier = snapshot.markup_value(OPERATION_MULTIPLIER_SETTING, 1.0)
        if product_key:
            try:
                snapshot.product(product_key)
            except KeyError:
                raise NotFound(f"Product '{product_key}' not found", field='product_key')
            try:
                link = snapshot.operation_link(product_key, service.id)
            except KeyError:
                raise InvalidArgument(
                    f"Service {service.id} is not an operation of product '{product_key}'",
                    field='product_key',
                )
            multiplier *= link.price_multiplier
        if multiplier != 1.0:
            rate *= multiplier
            quote.add_trace("Multiplier", f"× {multiplier:g}", f"{rate:.4f}")

        # Step 4: rules
        evaluation = OperationPricingRuleEngine(snapshot.rules_for(service.id)).evaluate(rate, quantity, parameters)
        for msg in evaluation.skipped:
            quote.add_warning(msg)
        if evaluation.applied is not None:
            rate = evaluation.adjusted_rate
            quote.rules_applied.append(
                f"{evaluation.applied.name} ({evaluation.applied.match_reason})"
            )
        for msg in evaluation.traces:
            quote.add_trace("Rule", msg)

        # Step 5: units and total
        quote.unit_rate = rate
        quote.units = self._units(service.strategy, quantity, sheets, cuts, area_m2)
        quote.total = rate * quote.units + service.setup_cost
        quote.add_trace("Units", f"{quote.units:g} {service.strategy.value}", None)
        quote.add_trace("Total", f"{quote.units:g} × {rate:.4f} + setup {service.setup_cost:g}",
                        f"{quote.total:.2f}")

        logger.info(
            "Quoted service %s x %s: rate=%.4f units=%s total=%.2f rules=%s",
            service.id, quantity, rate, quote.units, quote.total, len(quote.rules_applied),
        )
        return quote

    @staticmethod
    def _units(strategy: PricingStrategy, quantity: int, sheets: Optional[int],
               cuts: Optional[int], area_m2: Optional[float]) -> float:
        """How many priced units a strategy bills for."""
        if strategy == PricingStrategy.FIXED:
            return 1
        if strategy == PricingStrategy.PER_SHEET:
            return sheets if sheets is not None else quantity
        if strategy == PricingStrategy.PER_CUT:
            return cuts if cuts is not None else quantity
        if strategy == PricingStrategy.PER_SQUARE_METER:
            return require_positive(area_m2, 'area_m2') * quantity
        return quantity
