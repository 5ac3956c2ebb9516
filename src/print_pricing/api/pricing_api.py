"""
Pricing API - FastAPI router for pricing reference data and calculations.
"""
from dataclasses import asdict
from typing import Any, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ..engine.models import MultiPageRequest, PrintPriceSheet, Service, VolumeTier
from ..rules.pricing_rules import MalformedRule, PricingRule, QuantityDiscountRule
from . import state

router = APIRouter(prefix="/pricing", tags=["pricing"])


# Pydantic models for API

class ServiceCreate(BaseModel):
    """Request model for creating a service."""
    name: str
    service_type: str = "generic"
    unit: str = "pcs"
    price_unit: Optional[str] = None
    rate: float = Field(ge=0)
    setup_cost: float = 0.0
    operator_percent: Optional[float] = None
    is_active: bool = True


class ServiceUpdate(BaseModel):
    """Request model for updating a service."""
    name: Optional[str] = None
    service_type: Optional[str] = None
    unit: Optional[str] = None
    price_unit: Optional[str] = None
    rate: Optional[float] = None
    setup_cost: Optional[float] = None
    operator_percent: Optional[float] = None
    is_active: Optional[bool] = None


class TierCreate(BaseModel):
    """Request model for a volume tier."""
    min_quantity: int
    rate: float
    is_percent: bool = False


class TierUpdate(BaseModel):
    min_quantity: Optional[int] = None
    rate: Optional[float] = None
    is_percent: Optional[bool] = None
    is_active: Optional[bool] = None


class RuleCreate(BaseModel):
    rule_name: str
    rule_type: str = "quantity_discount"
    conditions: dict = Field(default_factory=dict)
    pricing_data: dict = Field(default_factory=dict)


class QuoteRequest(BaseModel):
    """Request model for quoting one operation."""
    quantity: int
    variant_id: Optional[int] = None
    product_key: Optional[str] = None
    parameters: dict = Field(default_factory=dict)
    sheets: Optional[int] = None
    cuts: Optional[int] = None
    area_m2: Optional[float] = None


class MarkupUpdate(BaseModel):
    setting_value: float


class MultiPageCalcRequest(BaseModel):
    """Request model for the multi-page calculator (camelCase like the form)."""
    pages: int
    quantity: int
    printType: str
    bindingType: str
    paperType: str
    paperDensity: int = 80
    format: str = "A4"
    duplex: Optional[bool] = None
    lamination: str = "none"
    trimMargins: bool = False

    def to_request(self) -> MultiPageRequest:
        return MultiPageRequest(
            pages=self.pages,
            quantity=self.quantity,
            print_type=self.printType,
            binding_type=self.bindingType,
            paper_type=self.paperType,
            paper_density=self.paperDensity,
            format=self.format,
            duplex=self.duplex,
            lamination=self.lamination,
            trim_margins=self.trimMargins,
        )


# Serialisation

def service_to_dict(service: Service) -> dict:
    data = asdict(service)
    data["strategy"] = service.strategy.value
    return data


def tier_to_dict(tier: VolumeTier) -> dict:
    return asdict(tier)


def print_price_to_dict(sheet: PrintPriceSheet) -> dict:
    return {
        "id": sheet.id,
        "technology_code": sheet.technology_code,
        "counter_unit": sheet.counter_unit,
        "sheet_width_mm": sheet.sheet_width_mm,
        "sheet_height_mm": sheet.sheet_height_mm,
        "is_active": sheet.is_active,
        "tiers": [asdict(t) for t in sorted(sheet.tiers, key=lambda t: (t.price_mode, t.min_sheets))],
    }


def rule_to_dict(rule: PricingRule) -> dict[str, Any]:
    data = {
        "id": rule.rule_id,
        "service_id": rule.service_id,
        "rule_name": rule.name,
        "rule_type": rule.rule_type,
        "is_active": rule.is_active,
    }
    if isinstance(rule, QuantityDiscountRule):
        data["conditions"] = {"min_quantity": rule.min_quantity}
        data["pricing_data"] = {"discount_percent": rule.discount_percent}
    elif isinstance(rule, MalformedRule):
        data["error"] = rule.reason
    else:
        data["conditions"] = rule.conditions
        data["pricing_data"] = rule.pricing_data
    return data


# Services

@router.get("/services")
async def list_services(include_inactive: bool = True):
    """List all services."""
    return [service_to_dict(s) for s in state.get_catalog().list_services(include_inactive)]


@router.post("/services", status_code=201)
async def create_service(req: ServiceCreate):
    return service_to_dict(state.get_catalog().create_service(req.model_dump()))


@router.get("/services/{service_id}")
async def get_service(service_id: int):
    return service_to_dict(state.get_catalog().get_service(service_id))


@router.put("/services/{service_id}")
async def update_service(service_id: int, req: ServiceUpdate):
    updates = req.model_dump(exclude_unset=True)
    return service_to_dict(state.get_catalog().update_service(service_id, updates))


@router.delete("/services/{service_id}")
async def delete_service(service_id: int):
    """Soft delete: the service is deactivated, not removed."""
    return service_to_dict(state.get_catalog().deactivate_service(service_id))


@router.post("/services/{service_id}/quote")
async def quote_service(service_id: int, req: QuoteRequest):
    quote = state.get_engine().quote_operation(
        service_id,
        req.quantity,
        variant_id=req.variant_id,
        product_key=req.product_key,
        parameters=req.parameters,
        sheets=req.sheets,
        cuts=req.cuts,
        area_m2=req.area_m2,
    )
    return quote.to_response()


# Tiers

@router.get("/services/{service_id}/tiers")
async def list_tiers(service_id: int, include_inactive: bool = False):
    tiers = state.get_catalog().list_tiers(service_id, include_inactive=include_inactive)
    return [tier_to_dict(t) for t in tiers]


@router.post("/services/{service_id}/tiers", status_code=201)
async def create_tier(service_id: int, req: TierCreate):
    tier = state.get_catalog().create_tier(service_id, req.min_quantity, req.rate, is_percent=req.is_percent)
    return tier_to_dict(tier)


@router.put("/services/{service_id}/tiers/{tier_id}")
async def update_tier(service_id: int, tier_id: int, req: TierUpdate):
    tier = state.get_catalog().update_tier(service_id, tier_id, req.model_dump(exclude_unset=True))
    return tier_to_dict(tier)


@router.delete("/services/{service_id}/tiers/{tier_id}")
async def delete_tier(service_id: int, tier_id: int):
    return tier_to_dict(state.get_catalog().delete_tier(service_id, tier_id))


@router.get("/services/{service_id}/variants/{variant_id}/tiers")
async def list_variant_tiers(service_id: int, variant_id: int, include_inactive: bool = False):
    tiers = state.get_catalog().list_tiers(service_id, variant_id, include_inactive=include_inactive)
    return [tier_to_dict(t) for t in tiers]


@router.post("/services/{service_id}/variants/{variant_id}/tiers", status_code=201)
async def create_variant_tier(service_id: int, variant_id: int, req: TierCreate):
    tier = state.get_catalog().create_tier(
        service_id, req.min_quantity, req.rate, variant_id=variant_id, is_percent=req.is_percent
    )
    return tier_to_dict(tier)


# Rules

@router.get("/services/{service_id}/rules")
async def list_rules(service_id: int):
    return [rule_to_dict(r) for r in state.get_catalog().list_rules(service_id)]


@router.post("/services/{service_id}/rules", status_code=201)
async def create_rule(service_id: int, req: RuleCreate):
    rule = state.get_catalog().create_rule(
        service_id, req.rule_name, req.rule_type, req.conditions, req.pricing_data
    )
    return rule_to_dict(rule)


@router.delete("/services/{service_id}/rules/{rule_id}")
async def delete_rule(service_id: int, rule_id: int):
    return rule_to_dict(state.get_catalog().deactivate_rule(service_id, rule_id))


# Products

@router.get("/product-types")
async def list_product_types():
    return [asdict(p) for p in state.get_catalog().list_products()]


@router.get("/product-types/{key}/schema")
async def get_product_schema(key: str):
    return state.get_engine().product_schema(key)


# Print prices (derive must be declared before /{print_price_id})

@router.get("/print-prices")
async def list_print_prices():
    return [print_price_to_dict(p) for p in state.get_catalog().list_print_prices()]


@router.get("/print-prices/derive")
async def derive_print_prices(technology_code: Optional[str] = None,
                              width_mm: Optional[float] = None,
                              height_mm: Optional[float] = None,
                              color_mode: str = "color",
                              sides_mode: str = "single"):
    """Item-priced tiers for a finished size on one technology."""
    result = state.get_engine().derive_print_prices(
        technology_code, width_mm, height_mm, color_mode, sides_mode
    )
    return result.to_dict()


@router.get("/print-prices/{print_price_id}")
async def get_print_price(print_price_id: int):
    return print_price_to_dict(state.get_catalog().get_print_price(print_price_id))


# Discounts and settings

@router.get("/quantity-discounts")
async def list_quantity_discounts(quantity: Optional[int] = None):
    """All active discounts, or the one that applies to `quantity`."""
    if quantity is None:
        return [asdict(d) for d in state.get_catalog().list_quantity_discounts()]
    discount = state.get_engine().resolve_quantity_discount(quantity)
    return {"quantity": quantity, "discount": asdict(discount) if discount else None}


@router.get("/markup-settings")
async def list_markup_settings():
    return [asdict(m) for m in state.get_catalog().list_markup_settings()]


@router.put("/markup-settings/{setting_name}")
async def update_markup_setting(setting_name: str, req: MarkupUpdate):
    return asdict(state.get_catalog().update_markup_setting(setting_name, req.setting_value))


# Layout

@router.get("/layout")
async def get_layout(width_mm: Optional[float] = None,
                     height_mm: Optional[float] = None,
                     sheet_width_mm: Optional[float] = None,
                     sheet_height_mm: Optional[float] = None,
                     product_type: Optional[str] = None):
    engine = state.get_engine()
    layout = engine.layout(width_mm, height_mm, sheet_width_mm, sheet_height_mm)
    body = layout.to_dict()
    if product_type:
        body["size_check"] = engine.validate_product_size(product_type, width_mm, height_mm)
    return body


# Multi-page

@router.get("/multipage/schema")
async def get_multipage_schema():
    return state.get_engine().multipage_schema()


@router.post("/multipage/calculate")
async def calculate_multipage(req: MultiPageCalcRequest):
    result = state.get_engine().calculate_multipage(req.to_request())
    body = result.to_response()
    body["trace"] = [asdict(t) for t in result.trace]
    return body
