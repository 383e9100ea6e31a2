"""Domain models for the MICAA pricing engine."""

from micaa.models.budget import BudgetLine, BudgetLineRequest, BudgetSummary
from micaa.models.composition import (
    Activity,
    CostComponent,
    DirectLineItem,
    PercentageMarkup,
    parse_composition,
)
from micaa.models.enums import (
    ComponentKind,
    EquipmentRateSource,
    PriceSource,
    UserRole,
    WarningCode,
)
from micaa.models.pricing import (
    CityAdjustment,
    CityPriceFactor,
    CostBreakdown,
    IndirectCostRates,
    LineCost,
    Material,
    PriceAdjustmentResult,
    PriceSettings,
    PricingContext,
    PricingWarning,
    ResolvedCost,
    UserPriceOverride,
)

__all__ = [
    "Activity",
    "BudgetLine",
    "BudgetLineRequest",
    "BudgetSummary",
    "CityAdjustment",
    "CityPriceFactor",
    "ComponentKind",
    "CostBreakdown",
    "CostComponent",
    "DirectLineItem",
    "EquipmentRateSource",
    "IndirectCostRates",
    "LineCost",
    "Material",
    "PercentageMarkup",
    "PriceAdjustmentResult",
    "PriceSettings",
    "PriceSource",
    "PricingContext",
    "PricingWarning",
    "ResolvedCost",
    "UserPriceOverride",
    "UserRole",
    "WarningCode",
    "parse_composition",
]
