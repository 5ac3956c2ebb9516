"""
Rectangle Packer - How many finished items fit on one print sheet.

Items are laid out in a grid inside the printable area (sheet minus a fixed
margin on every side) with a fixed gap between items. Both orientations of the
item are tried and the better one wins.
"""
import logging
import math
from typing import Optional

from .errors import InvalidArgument, require_positive
from .models import LayoutResult, round2

logger = logging.getLogger(__name__)

DEFAULT_MARGIN_MM = 5.0
DEFAULT_GAP_MM = 2.0

# Standard press sheets, width x height in mm
SHEET_SIZES: dict[str, tuple[float, float]] = {
    'SRA3': (320.0, 450.0),
    'A3': (297.0, 420.0),
    'A4': (210.0, 297.0),
}

# Allowed finished sizes per product type: (min_w, max_w, min_h, max_h, recommended)
PRODUCT_SIZE_CONSTRAINTS: dict[str, tuple[float, float, float, float, tuple[float, float]]] = {
    'business_cards': (85, 95, 45, 55, (90, 50)),
    'flyers': (100, 210, 140, 297, (105, 148)),
    'posters': (200, 1000, 300, 1500, (297, 420)),
}


def _grid(item_w: float, item_h: float, usable_w: float, usable_h: float, gap: float) -> tuple[int, int]:
    """Return (cols, rows) for one orientation."""
    cols = max(0, math.floor(usable_w / (item_w + gap)))
    rows = max(0, math.floor(usable_h / (item_h + gap)))
    return cols, rows


class RectanglePacker:
    """
    Grid packer for a rectangular item footprint on a rectangular sheet.

    Always reports at least one item per sheet, even when the item cannot
    physically fit; `calculate_layout` exposes `fits_on_sheet` for callers
    that need to tell the two apart.
    """

    def __init__(self, margin_mm: float = DEFAULT_MARGIN_MM, gap_mm: float = DEFAULT_GAP_MM):
        if margin_mm is None or margin_mm < 0:
            raise InvalidArgument("margin_mm must be >= 0", field='margin_mm')
        if gap_mm is None or gap_mm < 0:
            raise InvalidArgument("gap_mm must be >= 0", field='gap_mm')
        self.margin_mm = float(margin_mm)
        self.gap_mm = float(gap_mm)

    def items_per_sheet(self, item_width: float, item_height: float,
                        sheet_width: float, sheet_height: float) -> int:
        """Number of items per sheet, never less than 1."""
        return self.calculate_layout(item_width, item_height, sheet_width, sheet_height).items_per_sheet

    def calculate_layout(self, item_width: float, item_height: float,
                         sheet_width: float, sheet_height: float,
                         sheet_name: Optional[str] = None) -> LayoutResult:
        """Evaluate both orientations and return the one holding more items."""
        item_w = require_positive(item_width, 'width_mm')
        item_h = require_positive(item_height, 'height_mm')
        sheet_w = require_positive(sheet_width, 'sheet_width_mm')
        sheet_h = require_positive(sheet_height, 'sheet_height_mm')

        usable_w = sheet_w - 2 * self.margin_mm
        usable_h = sheet_h - 2 * self.margin_mm

        as_is = _grid(item_w, item_h, usable_w, usable_h, self.gap_mm)
        swapped = _grid(item_h, item_w, usable_w, usable_h, self.gap_mm)

        as_is_count = as_is[0] * as_is[1]
        swapped_count = swapped[0] * swapped[1]

        rotated = swapped_count > as_is_count
        cols, rows = swapped if rotated else as_is
        placed_w, placed_h = (item_h, item_w) if rotated else (item_w, item_h)
        fitted = cols * rows

        if fitted > 0 and usable_w > 0 and usable_h > 0:
            used_w = cols * (placed_w + self.gap_mm) - self.gap_mm
            used_h = rows * (placed_h + self.gap_mm) - self.gap_mm
            waste = (usable_w * usable_h - used_w * used_h) / (usable_w * usable_h) * 100
            cuts = cols + rows + 2
        else:
            waste = 100.0
            cuts = 0
            logger.warning(
                "Item %sx%s does not fit on sheet %sx%s; pricing as 1 per sheet",
                item_w, item_h, sheet_w, sheet_h,
            )

        return LayoutResult(
            items_per_sheet=max(1, fitted),
            rows=rows,
            cols=cols,
            rotated=rotated,
            fits_on_sheet=fitted > 0,
            waste_percentage=round2(waste),
            cuts_per_sheet=cuts,
            sheet_width_mm=sheet_w,
            sheet_height_mm=sheet_h,
            sheet_name=sheet_name,
        )

    def find_optimal_sheet(self, item_width: float, item_height: float,
                           sheet_sizes: Optional[dict[str, tuple[float, float]]] = None) -> Optional[LayoutResult]:
        """
        Pick the standard sheet with the best items / (waste% + 1) ratio.

        Returns None when the item fits on none of them.
        """
        best = None
        best_efficiency = 0.0
        for name, (width, height) in (sheet_sizes or SHEET_SIZES).items():
            layout = self.calculate_layout(item_width, item_height, width, height, sheet_name=name)
            if not layout.fits_on_sheet:
                continue
            efficiency = layout.items_per_sheet / (layout.waste_percentage + 1)
            if efficiency > best_efficiency:
                best_efficiency = efficiency
                best = layout
        return best


def validate_product_size(product_type: str, width: float, height: float) -> dict:
    """
    Check a finished size against the allowed range for a product type.

    Products without constraints are always valid.
    """
    constraint = PRODUCT_SIZE_CONSTRAINTS.get(product_type)
    if constraint is None:
        return {"is_valid": True}

    min_w, max_w, min_h, max_h, recommended = constraint
    if min_w <= width <= max_w and min_h <= height <= max_h:
        return {"is_valid": True}

    return {
        "is_valid": False,
        "message": f"Size must be between {min_w:g}x{min_h:g} and {max_w:g}x{max_h:g} mm",
        "recommended_size": {"width": recommended[0], "height": recommended[1]},
    }
