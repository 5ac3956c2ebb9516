"""
Print Price Derivation - Converts sheet-priced tiers into item-priced tiers.

Print prices are configured per press sheet (e.g. SRA3) and sheet-count
range. For one finished footprint the packer tells how many items share a
sheet, which turns every sheet tier into an item-count tier with a unit price.
"""
import logging

from .snapshot import ReferenceSnapshot
from .errors import InvalidArgument, NotFound, Unprocessable, require_positive
from .layout import RectanglePacker
from .models import DerivationResult, DerivedTier, round2

logger = logging.getLogger(__name__)

COLOR_MODES = {'bw': 'bw', 'mono': 'bw', 'color': 'color', 'colour': 'color'}
SIDES_MODES = {'single': 'single', '1': 'single', 'duplex': 'duplex', '2': 'duplex'}


def resolve_price_mode(color_mode: str, sides_mode: str) -> str:
    """Map (color_mode, sides_mode) to a tier price_mode such as 'color_duplex'."""
    color = COLOR_MODES.get(str(color_mode or '').strip().lower())
    if color is None:
        raise InvalidArgument(
            f"color_mode must be one of bw, color (got '{color_mode}')", field='color_mode'
        )
    sides = SIDES_MODES.get(str(sides_mode or '').strip().lower())
    if sides is None:
        raise InvalidArgument(
            f"sides_mode must be one of single, duplex (got '{sides_mode}')", field='sides_mode'
        )
    return f"{color}_{sides}"


class PrintPriceDerivationService:
    """Derives an item-priced schedule for one footprint and technology."""

    COUNTER_UNIT = 'sheets'

    def __init__(self, snapshot: ReferenceSnapshot, packer: RectanglePacker):
        self.snapshot = snapshot
        self.packer = packer

    def derive(self, technology_code: str, width_mm: float, height_mm: float,
               color_mode: str = 'color', sides_mode: str = 'single') -> DerivationResult:
        if not technology_code or not str(technology_code).strip():
            raise InvalidArgument("technology_code is required", field='technology_code')
        technology_code = str(technology_code).strip()
        width = require_positive(width_mm, 'width_mm')
        height = require_positive(height_mm, 'height_mm')
        price_mode = resolve_price_mode(color_mode, sides_mode)

        try:
            sheet = self.snapshot.print_price_sheet(technology_code, self.COUNTER_UNIT)
        except KeyError:
            raise NotFound(
                f"No sheet print prices for technology '{technology_code}'", field='technology_code'
            )

        if sheet.sheet_width_mm <= 0 or sheet.sheet_height_mm <= 0:
            raise Unprocessable(
                f"Print price {sheet.id} has an invalid sheet size "
                f"{sheet.sheet_width_mm:g}x{sheet.sheet_height_mm:g}"
            )

        layout = self.packer.calculate_layout(width, height, sheet.sheet_width_mm, sheet.sheet_height_mm)
        items_per_sheet = layout.items_per_sheet

        result = DerivationResult(
            technology_code=technology_code,
            price_mode=price_mode,
            items_per_sheet=items_per_sheet,
            sheet_width_mm=sheet.sheet_width_mm,
            sheet_height_mm=sheet.sheet_height_mm,
            layout=layout,
        )

        if not layout.fits_on_sheet:
            result.notes.append(
                f"Item {width:g}x{height:g} mm does not fit on a "
                f"{sheet.sheet_width_mm:g}x{sheet.sheet_height_mm:g} mm sheet; priced as 1 per sheet"
            )

        sheet_tiers = sheet.tiers_for_mode(price_mode)
        if not sheet_tiers:
            result.notes.append(f"No {price_mode} price tiers configured for '{technology_code}'")
            return result

        for tier in sheet_tiers:
            if tier.price_per_sheet <= 0:
                raise Unprocessable(
                    f"Tier from {tier.min_sheets} sheets of '{technology_code}' ({price_mode}) "
                    f"has a non-positive price per sheet"
                )
            if tier.min_sheets < 0 or (tier.max_sheets is not None and tier.max_sheets < tier.min_sheets):
                raise Unprocessable(
                    f"Tier {tier.min_sheets}-{tier.max_sheets} sheets of '{technology_code}' "
                    f"({price_mode}) has an invalid range"
                )

            max_quantity = None
            if tier.max_sheets is not None:
                max_quantity = (tier.max_sheets + 1) * items_per_sheet - 1

            result.derived_tiers.append(DerivedTier(
                min_quantity=tier.min_sheets * items_per_sheet,
                max_quantity=max_quantity,
                unit_price=round2(tier.price_per_sheet / items_per_sheet),
                min_sheets=tier.min_sheets,
                max_sheets=tier.max_sheets,
                price_per_sheet=tier.price_per_sheet,
            ))

        logger.info(
            "Derived %s item tiers for %s %s (%sx%s mm, %s per sheet)",
            len(result.derived_tiers), technology_code, price_mode, width, height, items_per_sheet,
        )
        return result
