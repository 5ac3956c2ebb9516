import pytest

from print_pricing.engine.errors import InvalidArgument
from print_pricing.engine.models import BindingType, MultiPageRequest, PaperRate, PrintTypeRate
from print_pricing.engine.multipage import MultiPageCostCalculator, estimate_paper_rate
from print_pricing.engine.snapshot import ReferenceSnapshot


def booklet(**overrides):
    values = dict(
        pages=20,
        quantity=100,
        print_type='laser_bw',
        binding_type='staple',
        paper_type='office_premium',
        paper_density=80,
    )
    values.update(overrides)
    return MultiPageRequest(**values)


def test_stapled_booklet_end_to_end(engine):
    """
    20 pages duplex (staple default) = 10 sheets.
    print 10 x 100 x 0.5 = 500, paper 10 x 100 x 0.1 = 100, binding 100 x 1 = 100.
    """
    result = engine.calculate_multipage(booklet())
    body = result.to_response()

    assert result.duplex is True
    assert body['sheets'] == 10
    assert body['breakdown']['printCost'] == 500.0
    assert body['breakdown']['paperCost'] == 100.0
    assert body['breakdown']['bindingCost'] == 100.0
    assert body['breakdown']['setupCost'] == 0.0
    assert body['totalCost'] == 700.0
    assert body['pricePerItem'] == 7.00
    assert body['warnings'] == []


def test_duplex_halves_sheets_rounding_up(engine):
    assert engine.calculate_multipage(booklet(pages=21)).sheets == 11
    assert engine.calculate_multipage(booklet(pages=21, duplex=False)).sheets == 21


def test_explicit_simplex_overrides_binding_default(engine):
    result = engine.calculate_multipage(booklet(duplex=False))
    assert result.duplex is False
    assert result.sheets == 20


def test_binding_limit_is_a_warning(engine):
    result = engine.calculate_multipage(booklet(pages=80))
    assert result.total_cost > 0
    assert len(result.warnings) == 1
    assert "60" in result.warnings[0]


def test_binding_uses_service_volume_tier(engine):
    result = engine.calculate_multipage(booklet(quantity=500))
    assert result.breakdown.binding_cost == pytest.approx(400.0)


def test_lamination_and_trim_per_copy(engine):
    result = engine.calculate_multipage(booklet(lamination='matte', trim_margins=True))
    assert result.breakdown.lamination_cost == pytest.approx(150.0)
    assert result.breakdown.trim_cost == pytest.approx(200.0)
    assert result.total_cost == pytest.approx(1050.0)


def test_print_type_setup_counted_once(engine):
    result = engine.calculate_multipage(booklet(print_type='offset'))
    assert result.breakdown.setup_cost == 50.0
    assert result.breakdown.print_cost == pytest.approx(200.0)
    assert result.total_cost == pytest.approx(200 + 100 + 100 + 50)


def test_paper_density_fallbacks(engine):
    estimated = engine.calculate_multipage(booklet(paper_density=100))
    assert estimated.breakdown.paper_cost == pytest.approx(10 * 100 * 0.05)
    assert any("estimated" in w for w in estimated.warnings)

    any_density = engine.calculate_multipage(booklet(paper_type='kraft', paper_density=90))
    assert any_density.breakdown.paper_cost == pytest.approx(10 * 100 * 0.12)
    assert any_density.warnings == []


@pytest.mark.parametrize("density,rate", [(80, 0.05), (100, 0.05), (150, 0.10), (170, 0.10), (250, 0.20)])
def test_estimate_paper_rate(density, rate):
    assert estimate_paper_rate(density) == rate


@pytest.mark.parametrize("overrides,field", [
    ({'pages': 2}, 'pages'),
    ({'quantity': 0}, 'quantity'),
    ({'print_type': 'risograph'}, 'print_type'),
    ({'binding_type': 'glue'}, 'binding_type'),
    ({'paper_type': 'papyrus'}, 'paper_type'),
    ({'lamination': 'velvet'}, 'lamination'),
])
def test_invalid_requests_name_the_field(engine, overrides, field):
    with pytest.raises(InvalidArgument) as exc:
        engine.calculate_multipage(booklet(**overrides))
    assert exc.value.field == field


def test_trace_lists_components(engine):
    result = engine.calculate_multipage(booklet())
    steps = [t.step for t in result.trace]
    assert steps[:4] == ["Sheets", "Print", "Binding", "Paper"]


def test_schema_lists_catalogs(engine):
    schema = engine.multipage_schema()
    staple = next(b for b in schema['binding_types'] if b['value'] == 'staple')
    assert staple['max_pages'] == 60
    assert staple['duplex_default'] is True
    assert 'A4' in schema['formats']
    assert {p['value'] for p in schema['print_types']} >= {'laser_bw', 'offset'}


def test_no_lamination_needs_no_lamination_rates():
    """'none' is never looked up, so a rate card without lamination rows still prices."""
    snapshot = ReferenceSnapshot(
        binding_types=(BindingType('staple', 'Staple', 1.0, 4, 60, True),),
        print_types=(PrintTypeRate('laser_bw', 'Laser B/W', 0.5),),
        paper_rates=(PaperRate('office_premium', 0.10, 80),),
    )
    result = MultiPageCostCalculator(snapshot).calculate(booklet())
    assert result.breakdown.lamination_cost == 0.0
    assert result.total_cost == pytest.approx(700.0)
    assert "Lamination" not in [t.step for t in result.trace]


def test_trace_lists_lamination_and_trim(engine):
    result = engine.calculate_multipage(booklet(lamination='matte', trim_margins=True))
    steps = [t.step for t in result.trace]
    assert steps == ["Sheets", "Print", "Binding", "Paper", "Lamination", "Trim", "Setup"]
    lamination = next(t for t in result.trace if t.step == "Lamination")
    assert "matte" in lamination.description
    assert lamination.value == "150.00"
