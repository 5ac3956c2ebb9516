"""Engine subpackage - layout, tiers, rules and cost calculation."""
from .pricing_engine import PricingEngine
from .errors import InvalidArgument, NotFound, PricingError, Unprocessable
from .models import MultiPageRequest, MultiPageResult, OperationQuote

__all__ = [
    'PricingEngine',
    'PricingError',
    'InvalidArgument',
    'NotFound',
    'Unprocessable',
    'MultiPageRequest',
    'MultiPageResult',
    'OperationQuote',
]
