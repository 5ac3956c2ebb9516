import pytest

from print_pricing.engine.errors import InvalidArgument, NotFound, Unprocessable
from print_pricing.engine.layout import RectanglePacker
from print_pricing.engine.models import PrintPriceSheet, PrintPriceTier
from print_pricing.engine.print_price_derivation import PrintPriceDerivationService, resolve_price_mode
from print_pricing.engine.snapshot import ReferenceSnapshot


def test_business_cards_on_laser(engine):
    """90x50 fits 24 per SRA3 sheet; 12.00 per sheet is 0.50 per card."""
    result = engine.derive_print_prices('laser_prof', 90, 50, 'color', 'single')

    assert result.items_per_sheet == 24
    assert result.price_mode == 'color_single'
    assert [(t.min_quantity, t.max_quantity) for t in result.derived_tiers] == [
        (24, 2399),
        (2400, 11999),
        (12000, None),
    ]
    assert [t.unit_price for t in result.derived_tiers] == [0.50, 0.40, 0.30]
    assert result.notes == []


def test_unit_price_times_items_gives_sheet_price(engine):
    result = engine.derive_print_prices('laser_prof', 90, 50, 'bw', 'duplex')
    for tier in result.derived_tiers:
        assert abs(tier.unit_price * result.items_per_sheet - tier.price_per_sheet) <= 0.01


def test_response_shape(engine):
    body = engine.derive_print_prices('laser_prof', 90, 50).to_dict()
    assert body['sheet_size'] == {"width": 320.0, "height": 450.0}
    assert body['layout']['items_per_sheet'] == 24
    assert body['derived_tiers'][0]['price_per_sheet'] == 12.0


def test_mode_without_tiers_returns_note(engine):
    result = engine.derive_print_prices('digital_color', 90, 50, 'bw', 'single')
    assert result.derived_tiers == []
    assert "No bw_single price tiers" in result.notes[0]


def test_oversized_item_noted(engine):
    result = engine.derive_print_prices('laser_prof', 500, 700)
    assert result.items_per_sheet == 1
    assert any("does not fit" in n for n in result.notes)


def test_unknown_technology_is_not_found(engine):
    with pytest.raises(NotFound):
        engine.derive_print_prices('letterpress', 90, 50)


def test_non_sheet_counter_unit_is_not_found(engine):
    with pytest.raises(NotFound):
        engine.derive_print_prices('inkjet_wide', 90, 50)


@pytest.mark.parametrize("width,height,field", [
    (None, 50, 'width_mm'),
    (0, 50, 'width_mm'),
    (90, -1, 'height_mm'),
])
def test_bad_dimensions(engine, width, height, field):
    with pytest.raises(InvalidArgument) as exc:
        engine.derive_print_prices('laser_prof', width, height)
    assert exc.value.field == field


def test_missing_technology(engine):
    with pytest.raises(InvalidArgument) as exc:
        engine.derive_print_prices('', 90, 50)
    assert exc.value.field == 'technology_code'


def test_price_mode_aliases():
    assert resolve_price_mode('mono', '2') == 'bw_duplex'
    assert resolve_price_mode('Color', 'single') == 'color_single'
    with pytest.raises(InvalidArgument) as exc:
        resolve_price_mode('rainbow', 'single')
    assert exc.value.field == 'color_mode'


def _service(*tiers, width=320.0, height=450.0):
    sheet = PrintPriceSheet(id=1, technology_code='t', counter_unit='sheets',
                            sheet_width_mm=width, sheet_height_mm=height, tiers=tiers)
    return PrintPriceDerivationService(ReferenceSnapshot(print_prices=(sheet,)), RectanglePacker())


def test_zero_price_is_unprocessable():
    service = _service(PrintPriceTier('color_single', 1, 0.0))
    with pytest.raises(Unprocessable):
        service.derive('t', 90, 50)


def test_inverted_range_is_unprocessable():
    service = _service(PrintPriceTier('color_single', 100, 5.0, max_sheets=10))
    with pytest.raises(Unprocessable):
        service.derive('t', 90, 50)


def test_bad_sheet_size_is_unprocessable():
    service = _service(PrintPriceTier('color_single', 1, 5.0), width=0)
    with pytest.raises(Unprocessable):
        service.derive('t', 90, 50)
