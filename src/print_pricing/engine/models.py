"""
Data models for the pricing engine.

Reference data (services, tiers, bindings, print prices...) is held in frozen
dataclasses so a loaded snapshot cannot be mutated mid-calculation.
Result types carry a trace of every resolution step.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional


def round2(value: float) -> float:
    """Round a money amount to 2 places, half-up."""
    return float(Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


class PricingStrategy(str, Enum):
    """How an operation's rate turns into a cost (what one 'unit' is)."""
    PER_ITEM = 'per_item'
    PER_SHEET = 'per_sheet'
    PER_CUT = 'per_cut'
    PER_SQUARE_METER = 'per_m2'
    FIXED = 'fixed'

    @classmethod
    def from_legacy(cls, operation_type: Optional[str], price_unit: Optional[str]) -> 'PricingStrategy':
        """
        Collapse the legacy operation_type / price_unit pair into one strategy.

        price_unit wins when it is recognised; print operations without a
        usable price_unit are priced per sheet.
        """
        unit = (price_unit or '').strip().lower()
        aliases = {
            'per_item': cls.PER_ITEM,
            'per_unit': cls.PER_ITEM,
            'per_sheet': cls.PER_SHEET,
            'per_cut': cls.PER_CUT,
            'per_m2': cls.PER_SQUARE_METER,
            'per_sqm': cls.PER_SQUARE_METER,
            'fixed': cls.FIXED,
            'per_order': cls.FIXED,
        }
        if unit in aliases:
            return aliases[unit]

        op_type = (operation_type or '').strip().lower()
        if op_type in ('print', 'printing'):
            return cls.PER_SHEET
        if op_type == 'cut':
            return cls.PER_CUT
        return cls.PER_ITEM


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Service:
    """A priced operation (lamination, cutting, binding, printing...)."""
    id: int
    name: str
    service_type: str
    unit: str
    rate: float
    is_active: bool = True
    operator_percent: Optional[float] = None
    setup_cost: float = 0.0
    strategy: PricingStrategy = PricingStrategy.PER_ITEM


@dataclass(frozen=True)
class ServiceVariant:
    """A named variant of a service; tiers may be scoped to it."""
    id: int
    service_id: int
    name: str
    is_active: bool = True


@dataclass(frozen=True)
class VolumeTier:
    """
    A (threshold, rate) pair for volume pricing.

    When is_percent is set, rate is a percent discount off the base rate;
    otherwise it replaces the base rate.
    """
    id: int
    service_id: int
    min_quantity: int
    rate: float
    variant_id: Optional[int] = None
    is_percent: bool = False
    is_active: bool = True

    def apply(self, base_rate: float) -> float:
        if self.is_percent:
            return base_rate * (1 - self.rate / 100.0)
        return self.rate


@dataclass(frozen=True)
class BindingType:
    """Binding catalog entry with page-count limits."""
    value: str
    label: str
    unit_price: float
    min_pages: Optional[int] = None
    max_pages: Optional[int] = None
    duplex_default: bool = False
    service_id: Optional[int] = None
    is_active: bool = True


@dataclass(frozen=True)
class PrintPriceTier:
    """Price per sheet for a sheet-count range and a colour/sides mode."""
    price_mode: str
    min_sheets: int
    price_per_sheet: float
    max_sheets: Optional[int] = None


@dataclass(frozen=True)
class PrintPriceSheet:
    """Sheet-denominated print prices for one technology."""
    id: int
    technology_code: str
    counter_unit: str
    sheet_width_mm: float
    sheet_height_mm: float
    tiers: tuple[PrintPriceTier, ...] = ()
    is_active: bool = True

    def tiers_for_mode(self, price_mode: str) -> list[PrintPriceTier]:
        return sorted(
            (t for t in self.tiers if t.price_mode == price_mode),
            key=lambda t: t.min_sheets,
        )


@dataclass(frozen=True)
class Product:
    """A sellable product type (flyers, business cards, booklets...)."""
    key: str
    name: str
    category: str = 'printing'
    is_active: bool = True


@dataclass(frozen=True)
class ProductOperationLink:
    """Ordered link between a product and one of its services."""
    product_key: str
    service_id: int
    sequence: int
    is_required: bool = False
    is_default: bool = True
    price_multiplier: float = 1.0
    default_params: dict = field(default_factory=dict, hash=False, compare=False)
    conditions: dict = field(default_factory=dict, hash=False, compare=False)


@dataclass(frozen=True)
class QuantityDiscountTier:
    """Order-level discount for a quantity range (max inclusive)."""
    id: int
    min_quantity: int
    discount_percent: float
    max_quantity: Optional[int] = None
    is_active: bool = True


@dataclass(frozen=True)
class MarkupSetting:
    """A named numeric knob (multipliers, trim price, setup fee)."""
    id: int
    setting_name: str
    setting_value: float
    description: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class PrintTypeRate:
    """Per-sheet print rate for multi-page products."""
    code: str
    label: str
    rate_per_sheet: float
    setup_cost: float = 0.0


@dataclass(frozen=True)
class PaperRate:
    """Per-sheet paper cost; density None means any density of that paper."""
    paper_type: str
    price_per_sheet: float
    density: Optional[int] = None
    label: Optional[str] = None


@dataclass(frozen=True)
class LaminationRate:
    """Per-copy lamination rate."""
    code: str
    rate: float
    label: Optional[str] = None


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class TraceStep:
    """A single step in the pricing resolution trace."""
    step: str
    description: str
    value: Optional[str] = None


@dataclass
class LayoutResult:
    """Full sheet layout for one item footprint."""
    items_per_sheet: int
    rows: int
    cols: int
    rotated: bool
    fits_on_sheet: bool
    waste_percentage: float
    cuts_per_sheet: int
    sheet_width_mm: float
    sheet_height_mm: float
    sheet_name: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "items_per_sheet": self.items_per_sheet,
            "rows": self.rows,
            "cols": self.cols,
            "rotated": self.rotated,
            "fits_on_sheet": self.fits_on_sheet,
            "waste_percentage": self.waste_percentage,
            "cuts_per_sheet": self.cuts_per_sheet,
            "sheet_size": {"width": self.sheet_width_mm, "height": self.sheet_height_mm},
            "sheet_name": self.sheet_name,
        }


@dataclass
class DerivedTier:
    """An item-denominated tier derived from a sheet tier."""
    min_quantity: int
    max_quantity: Optional[int]
    unit_price: float
    min_sheets: int
    max_sheets: Optional[int]
    price_per_sheet: float


@dataclass
class DerivationResult:
    """Item-priced schedule for one footprint on one technology."""
    technology_code: str
    price_mode: str
    items_per_sheet: int
    sheet_width_mm: float
    sheet_height_mm: float
    layout: LayoutResult
    derived_tiers: list[DerivedTier] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "technology_code": self.technology_code,
            "price_mode": self.price_mode,
            "items_per_sheet": self.items_per_sheet,
            "sheet_size": {"width": self.sheet_width_mm, "height": self.sheet_height_mm},
            "layout": self.layout.to_dict(),
            "derived_tiers": [
                {
                    "min_quantity": t.min_quantity,
                    "max_quantity": t.max_quantity,
                    "unit_price": t.unit_price,
                    "min_sheets": t.min_sheets,
                    "max_sheets": t.max_sheets,
                    "price_per_sheet": round2(t.price_per_sheet),
                }
                for t in self.derived_tiers
            ],
            "notes": list(self.notes),
        }


@dataclass
class BindingValidation:
    """Advisory outcome of a page-count check."""
    is_valid: bool
    warnings: list[str] = field(default_factory=list)
    suggested_duplex: bool = False


@dataclass
class CostBreakdown:
    """Per-component costs of a multi-page job (unrounded)."""
    print_cost: float = 0.0
    binding_cost: float = 0.0
    paper_cost: float = 0.0
    lamination_cost: float = 0.0
    trim_cost: float = 0.0
    setup_cost: float = 0.0

    @property
    def total(self) -> float:
        return (
            self.print_cost + self.binding_cost + self.paper_cost
            + self.lamination_cost + self.trim_cost + self.setup_cost
        )


@dataclass
class MultiPageRequest:
    """Parameters of a multi-page (booklet, brochure) calculation."""
    pages: int
    quantity: int
    print_type: str
    binding_type: str
    paper_type: str
    paper_density: int
    format: str = 'A4'
    duplex: Optional[bool] = None  # None → binding's duplex default
    lamination: str = 'none'
    trim_margins: bool = False


@dataclass
class MultiPageResult:
    """Complete result of a multi-page calculation."""
    total_cost: float
    price_per_item: float
    breakdown: CostBreakdown
    sheets: int
    duplex: bool
    warnings: list[str] = field(default_factory=list)
    trace: list[TraceStep] = field(default_factory=list)

    def add_trace(self, step: str, description: str, value: str = None):
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def to_response(self) -> dict:
        """Response body; money rounded here and nowhere earlier."""
        return {
            "totalCost": round2(self.total_cost),
            "pricePerItem": round2(self.price_per_item),
            "breakdown": {
                "printCost": round2(self.breakdown.print_cost),
                "bindingCost": round2(self.breakdown.binding_cost),
                "paperCost": round2(self.breakdown.paper_cost),
                "laminationCost": round2(self.breakdown.lamination_cost),
                "trimCost": round2(self.breakdown.trim_cost),
                "setupCost": round2(self.breakdown.setup_cost),
            },
            "sheets": self.sheets,
            "duplex": self.duplex,
            "warnings": list(self.warnings),
        }


@dataclass
class OperationQuote:
    """Price of a single operation for a quantity, with its trace."""
    service_id: int
    service_name: str
    strategy: PricingStrategy
    quantity: int
    base_rate: float
    unit_rate: float
    units: float
    setup_cost: float
    total: float
    tier_id: Optional[int] = None
    rules_applied: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    trace: list[TraceStep] = field(default_factory=list)

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the trace for this quote."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def add_warning(self, warning: str):
        self.warnings.append(warning)

    def get_trace_text(self) -> str:
        """Get human-readable trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"→ {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"→ {t.step}: {t.description}")
        return "\n".join(lines)

    def to_response(self) -> dict:
        return {
            "service_id": self.service_id,
            "service_name": self.service_name,
            "strategy": self.strategy.value,
            "quantity": self.quantity,
            "base_rate": round2(self.base_rate),
            "unit_rate": round2(self.unit_rate),
            "units": self.units,
            "setup_cost": round2(self.setup_cost),
            "total": round2(self.total),
            "tier_id": self.tier_id,
            "rules_applied": list(self.rules_applied),
            "warnings": list(self.warnings),
            "trace": [
                {"step": t.step, "description": t.description, "value": t.value}
                for t in self.trace
            ],
        }
