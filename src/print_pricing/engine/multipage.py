"""
Multi-Page Cost Calculator - Prices booklets, brochures and other bound jobs.

Composes the binding validator, volume tiers for binding services and the
multi-page rate card (print types, paper, lamination, trim) into a total
cost with a per-component breakdown.

Binding page limits are advisory: violations are returned as warnings and
the job is still priced.
"""
import logging
import math

from .binding import BindingConstraintValidator
from .errors import InvalidArgument, Unprocessable
from .models import BindingType, CostBreakdown, MultiPageRequest, MultiPageResult
from .snapshot import ReferenceSnapshot
from .tiers import TierScheduleResolver

logger = logging.getLogger(__name__)

MIN_PAGES = 4
NO_LAMINATION = 'none'

# Fallback paper cost per sheet by density band (g/m2)
DENSITY_BANDS = ((100, 0.05), (170, 0.10))
HEAVY_PAPER_RATE = 0.20

TRIM_PRICE_SETTING = 'trim_price'
SETUP_FEE_SETTING = 'multipage_setup_fee'
DEFAULT_TRIM_PRICE = 2.0


def estimate_paper_rate(density: int) -> float:
    """Per-sheet paper estimate when no rate is configured for a density."""
    for upper, rate in DENSITY_BANDS:
        if density <= upper:
            return rate
    return HEAVY_PAPER_RATE


class MultiPageCostCalculator:
    """Computes the cost of a multi-page job from one reference snapshot."""

    def __init__(self, snapshot: ReferenceSnapshot,
                 tier_resolver: TierScheduleResolver = None,
                 binding_validator: BindingConstraintValidator = None):
        self.snapshot = snapshot
        self.tier_resolver = tier_resolver or TierScheduleResolver(snapshot.tiers)
        self.binding_validator = binding_validator or BindingConstraintValidator()

    # Lookups ----------------------------------------------------------------

    def _lookup(self, getter, code: str, field: str):
        try:
            return getter(code)
        except KeyError:
            raise InvalidArgument(f"Unknown {field} '{code}'", field=field)

    def binding_unit_price(self, binding: BindingType, quantity: int) -> tuple[float, str]:
        """
        Unit price for a binding: the linked service's volume tier when one
        applies, else the service's base rate, else the catalog price.
        """
        if binding.service_id is None:
            return binding.unit_price, 'catalog'

        try:
            service = self.snapshot.service(binding.service_id)
        except KeyError:
            raise Unprocessable(
                f"Binding '{binding.value}' is linked to unknown service {binding.service_id}"
            )
        if not service.is_active:
            return binding.unit_price, 'catalog'

        rate, tier = self.tier_resolver.resolve_rate(service.id, service.rate, quantity)
        if tier is not None:
            return rate, f"service {service.id} tier from {tier.min_quantity}"
        return service.rate, f"service {service.id} base rate"

    def paper_unit_cost(self, paper_type: str, density: int) -> tuple[float, list[str]]:
        """
        Per-sheet paper cost: exact (type, density) rate, else the type's
        density-less rate, else a density-band estimate.
        """
        rates = self.snapshot.paper_rates_for(paper_type)
        if not rates:
            raise InvalidArgument(f"Unknown paper_type '{paper_type}'", field='paper_type')

        for rate in rates:
            if rate.density == density:
                return rate.price_per_sheet, []
        for rate in rates:
            if rate.density is None:
                return rate.price_per_sheet, []

        estimate = estimate_paper_rate(density)
        return estimate, [
            f"No paper rate for '{paper_type}' at {density} g/m2; estimated {estimate:.2f} per sheet"
        ]

    # Calculation ------------------------------------------------------------

    def calculate(self, request: MultiPageRequest) -> MultiPageResult:
        if request.pages is None or request.pages < MIN_PAGES:
            raise InvalidArgument(f"pages must be at least {MIN_PAGES} (got {request.pages})", field='pages')
        if request.quantity is None or request.quantity < 1:
            raise InvalidArgument(f"quantity must be at least 1 (got {request.quantity})", field='quantity')
        if request.paper_density is None or request.paper_density <= 0:
            raise InvalidArgument("paper_density must be greater than 0", field='paper_density')

        print_type = self._lookup(self.snapshot.print_type, request.print_type, 'print_type')
        binding = self._lookup(self.snapshot.binding_type, request.binding_type, 'binding_type')
        lamination = None
        if request.lamination != NO_LAMINATION:
            lamination = self._lookup(self.snapshot.lamination_rate, request.lamination, 'lamination')

        warnings = []
        validation = self.binding_validator.validate(binding, request.pages)
        warnings.extend(validation.warnings)

        duplex = validation.suggested_duplex if request.duplex is None else request.duplex
        pages, quantity = request.pages, request.quantity
        sheets = math.ceil(pages / 2) if duplex else pages

        breakdown = CostBreakdown()
        breakdown.print_cost = sheets * quantity * print_type.rate_per_sheet

        binding_price, binding_source = self.binding_unit_price(binding, quantity)
        breakdown.binding_cost = quantity * binding_price

        paper_rate, paper_warnings = self.paper_unit_cost(request.paper_type, request.paper_density)
        warnings.extend(paper_warnings)
        breakdown.paper_cost = sheets * quantity * paper_rate

        if lamination is not None:
            breakdown.lamination_cost = quantity * lamination.rate

        if request.trim_margins:
            trim_rate = self.snapshot.markup_value(TRIM_PRICE_SETTING, DEFAULT_TRIM_PRICE)
            breakdown.trim_cost = quantity * trim_rate

        breakdown.setup_cost = print_type.setup_cost + self.snapshot.markup_value(SETUP_FEE_SETTING, 0.0)

        total = breakdown.total
        result = MultiPageResult(
            total_cost=total,
            price_per_item=total / quantity,
            breakdown=breakdown,
            sheets=sheets,
            duplex=duplex,
            warnings=warnings,
        )
        result.add_trace("Sheets", f"{pages} pages, {'duplex' if duplex else 'simplex'}", str(sheets))
        result.add_trace("Print", f"{sheets} × {quantity} × {print_type.rate_per_sheet:g} ({print_type.code})",
                         f"{breakdown.print_cost:.2f}")
        result.add_trace("Binding", f"{quantity} × {binding_price:g} ({binding_source})",
                         f"{breakdown.binding_cost:.2f}")
        result.add_trace("Paper", f"{sheets} × {quantity} × {paper_rate:g} ({request.paper_type} "
                                  f"{request.paper_density} g/m2)", f"{breakdown.paper_cost:.2f}")
        if lamination is not None:
            result.add_trace("Lamination", f"{quantity} × {lamination.rate:g} ({lamination.code})",
                             f"{breakdown.lamination_cost:.2f}")
        if request.trim_margins:
            result.add_trace("Trim", f"{quantity} × {trim_rate:g}", f"{breakdown.trim_cost:.2f}")
        result.add_trace("Setup", "One-time setup fees", f"{breakdown.setup_cost:.2f}")

        logger.info(
            "Multipage calculation completed: %s pages x %s, binding=%s, total=%.2f, warnings=%s",
            pages, quantity, binding.value, total, len(warnings),
        )
        return result
