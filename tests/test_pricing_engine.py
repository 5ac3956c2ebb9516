"""
Operation quotes and product schemas against the shipped reference tables.

Service 1 (lamination, 1.50 per item) has absolute tiers at 100/500/1000,
glossy-variant tiers at 100/500, 5% and 10% quantity rules at 500 and 1000
and one rule of an unsupported type.
"""
import pytest

from print_pricing.engine.errors import InvalidArgument, NotFound
from print_pricing.engine.models import PricingStrategy


def test_base_rate_below_first_tier(engine):
    quote = engine.quote_operation(1, 50)
    assert quote.tier_id is None
    assert quote.unit_rate == 1.5
    assert quote.total == pytest.approx(75.0)


def test_tier_then_rule(engine):
    quote = engine.quote_operation(1, 500)
    assert quote.tier_id == 2
    assert quote.unit_rate == pytest.approx(1.1 * 0.95)
    assert quote.total == pytest.approx(522.5)
    assert quote.rules_applied == ["Bulk lamination 500+ (qty>=500)"]
    assert any("unsupported rule type" in w for w in quote.warnings)


def test_rules_do_not_stack(engine):
    quote = engine.quote_operation(1, 1000)
    assert quote.unit_rate == pytest.approx(0.9 * 0.90)
    assert len(quote.rules_applied) == 1


def test_variant_schedule(engine):
    quote = engine.quote_operation(1, 500, variant_id=2)
    assert quote.tier_id == 5
    assert quote.total == pytest.approx(1.2 * 0.95 * 500)


def test_variant_without_tiers_uses_service_schedule(engine):
    quote = engine.quote_operation(1, 500, variant_id=1)
    assert quote.tier_id == 2
    assert "using service tiers" in quote.get_trace_text()


def test_unknown_variant(engine):
    with pytest.raises(NotFound):
        engine.quote_operation(1, 10, variant_id=99)


def test_product_link_multiplier(engine):
    quote = engine.quote_operation(1, 50, product_key='business_cards')
    assert quote.unit_rate == pytest.approx(1.8)
    assert quote.total == pytest.approx(90.0)


def test_service_not_on_product(engine):
    with pytest.raises(InvalidArgument) as exc:
        engine.quote_operation(3, 10, product_key='flyers')
    assert exc.value.field == 'product_key'


def test_percent_tier_per_cut(engine):
    quote = engine.quote_operation(2, 100, cuts=10)
    assert quote.strategy == PricingStrategy.PER_CUT
    assert quote.units == 10
    assert quote.total == pytest.approx(0.5 * 0.95 * 10)
    # the cutting service carries a rule without a discount
    assert any("discount_percent is required" in w for w in quote.warnings)


def test_per_sheet_adds_setup(engine):
    quote = engine.quote_operation(5, 100, sheets=20)
    assert quote.total == pytest.approx(1.2 * 20 + 5)
    assert quote.to_response()['setup_cost'] == 5.0


def test_fixed_price(engine):
    assert engine.quote_operation(7, 400).total == pytest.approx(15.0)


def test_per_square_meter_needs_area(engine):
    with pytest.raises(InvalidArgument) as exc:
        engine.quote_operation(8, 3)
    assert exc.value.field == 'area_m2'
    assert engine.quote_operation(8, 3, area_m2=2.0).total == pytest.approx(150.0)


def test_inactive_and_unknown_services(engine):
    with pytest.raises(InvalidArgument):
        engine.quote_operation(9, 1)
    with pytest.raises(NotFound):
        engine.quote_operation(404, 1)


def test_quantity_must_be_positive(engine):
    with pytest.raises(InvalidArgument):
        engine.quote_operation(1, 0)


def test_product_schema_orders_operations(engine):
    schema = engine.product_schema('booklets')
    assert [op['service_id'] for op in schema['operations']] == [5, 3, 6]
    assert schema['operations'][0]['strategy'] == 'per_sheet'


def test_product_schema_size_defaults(engine):
    schema = engine.product_schema('business_cards')
    width = next(p for p in schema['parameters'] if p['name'] == 'width_mm')
    assert width['default'] == 90


def test_unknown_product(engine):
    with pytest.raises(NotFound):
        engine.product_schema('calendars')


def test_quantity_discount(engine):
    assert engine.resolve_quantity_discount(50) is None
    assert engine.resolve_quantity_discount(600).discount_percent == 10


def test_layout_on_best_standard_sheet(engine):
    layout = engine.layout(90, 50)
    assert layout.sheet_name is not None
    assert engine.layout(90, 50, 320, 450).items_per_sheet == 24


@pytest.mark.parametrize("kwargs,field", [
    ({'service_id': 5, 'sheets': -10}, 'sheets'),
    ({'service_id': 5, 'sheets': 0}, 'sheets'),
    ({'service_id': 2, 'cuts': -3}, 'cuts'),
])
def test_sheets_and_cuts_must_be_positive(engine, kwargs, field):
    """A negative unit count would otherwise produce a negative total."""
    service_id = kwargs.pop('service_id')
    with pytest.raises(InvalidArgument) as exc:
        engine.quote_operation(service_id, 10, **kwargs)
    assert exc.value.field == field
