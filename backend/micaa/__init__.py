"""MICAA construction pricing engine.

Usage::

    from micaa import create_default_engine
    from micaa.data.seed import SEED_COMPOSITIONS

    engine = create_default_engine()
    breakdown = engine.compute_unit_price(2, SEED_COMPOSITIONS[2])
"""

from micaa.engine import ApuEngine
from micaa.factory import create_default_engine, create_pricing_service
from micaa.geographic import apply_geographic_adjustment
from micaa.models.composition import (
    Activity,
    CostComponent,
    DirectLineItem,
    PercentageMarkup,
)
from micaa.models.enums import ComponentKind, PriceSource, WarningCode
from micaa.models.pricing import (
    CityPriceFactor,
    CostBreakdown,
    IndirectCostRates,
    Material,
    PriceSettings,
    PricingContext,
    PricingWarning,
    UserPriceOverride,
)
from micaa.resolver import PriceResolver
from micaa.service import PricingService

__all__ = [
    "Activity",
    "ApuEngine",
    "CityPriceFactor",
    "ComponentKind",
    "CostBreakdown",
    "CostComponent",
    "DirectLineItem",
    "IndirectCostRates",
    "Material",
    "PercentageMarkup",
    "PriceResolver",
    "PriceSettings",
    "PriceSource",
    "PricingContext",
    "PricingService",
    "PricingWarning",
    "UserPriceOverride",
    "WarningCode",
    "apply_geographic_adjustment",
    "create_default_engine",
    "create_pricing_service",
]
