import pytest

from print_pricing.engine.errors import InvalidArgument
from print_pricing.engine.layout import RectanglePacker, validate_product_size


@pytest.fixture
def packer():
    return RectanglePacker(margin_mm=5, gap_mm=2)


def test_rotation_wins_when_it_fits_more(packer):
    """
    10x15 on SRA3: as-is 25 x 25 = 625, rotated 18 x 36 = 648.
    """
    layout = packer.calculate_layout(10, 15, 320, 450)
    assert layout.items_per_sheet == 648
    assert layout.rotated is True
    assert (layout.cols, layout.rows) == (18, 36)
    assert packer.items_per_sheet(10, 15, 320, 450) == 648


def test_business_card_on_sra3(packer):
    layout = packer.calculate_layout(90, 50, 320, 450)
    assert layout.items_per_sheet == 24
    assert layout.rotated is False
    assert layout.fits_on_sheet is True
    assert layout.cuts_per_sheet == layout.cols + layout.rows + 2
    assert 0 <= layout.waste_percentage < 100


def test_oversized_item_still_reports_one(packer):
    layout = packer.calculate_layout(500, 600, 320, 450)
    assert layout.items_per_sheet == 1
    assert layout.fits_on_sheet is False
    assert layout.cuts_per_sheet == 0
    assert layout.waste_percentage == 100.0


@pytest.mark.parametrize("size", [(1, 1), (0.5, 300), (320, 450), (1000, 1), (37, 91)])
def test_items_per_sheet_is_at_least_one(packer, size):
    assert packer.items_per_sheet(size[0], size[1], 320, 450) >= 1


def test_orientation_of_sheet_does_not_matter(packer):
    assert packer.items_per_sheet(90, 50, 320, 450) == packer.items_per_sheet(90, 50, 450, 320)


@pytest.mark.parametrize("bad", [0, -5, None])
def test_non_positive_dimensions_rejected(packer, bad):
    with pytest.raises(InvalidArgument) as exc:
        packer.calculate_layout(bad, 50, 320, 450)
    assert exc.value.field == 'width_mm'


def test_negative_margin_rejected():
    with pytest.raises(InvalidArgument):
        RectanglePacker(margin_mm=-1)


def test_zero_margin_and_gap_allowed():
    packer = RectanglePacker(margin_mm=0, gap_mm=0)
    assert packer.items_per_sheet(100, 100, 300, 300) == 9


def test_find_optimal_sheet_picks_a_fitting_sheet(packer):
    best = packer.find_optimal_sheet(90, 50)
    assert best is not None
    assert best.sheet_name in ('SRA3', 'A3', 'A4')
    assert best.fits_on_sheet


def test_find_optimal_sheet_none_when_too_big(packer):
    assert packer.find_optimal_sheet(2000, 2000) is None


def test_validate_product_size():
    assert validate_product_size('business_cards', 90, 50)['is_valid'] is True
    result = validate_product_size('business_cards', 120, 50)
    assert result['is_valid'] is False
    assert result['recommended_size'] == {"width": 90, "height": 50}
    assert validate_product_size('stickers', 1, 1)['is_valid'] is True
