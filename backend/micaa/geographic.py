"""Regional adjustment of an APU breakdown.

Each direct category is scaled by its own city factor (materials, labor,
equipment). The indirect markups are then recomputed from the adjusted
subtotal with the same percentage chain as the engine, not scaled.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from micaa.engine import compute_markup_chain
from micaa.models.enums import ComponentKind, WarningCode
from micaa.models.pricing import CityAdjustment, PricingWarning

if TYPE_CHECKING:
    from decimal import Decimal

    from micaa.models.pricing import CityPriceFactor, CostBreakdown, LineCost

logger = logging.getLogger(__name__)


def apply_geographic_adjustment(
    breakdown: CostBreakdown,
    city: str,
    country: str,
    city_factor: CityPriceFactor | None,
) -> CostBreakdown:
    """Adjust a breakdown to a city's price level.

    Args:
        breakdown: The unadjusted breakdown from the engine.
        city: City the price is requested for.
        country: Country of ``city``.
        city_factor: The configured factors, or None when the city has none.

    Returns:
        A new breakdown. With no factor configured the costs are returned
        unchanged and a ``missing_city_factor`` warning is attached.
    """
    base_total = breakdown.total_unit_price

    if city_factor is None:
        logger.warning("No price factor configured for %s, %s; using base prices", city, country)
        warning = PricingWarning(
            code=WarningCode.MISSING_CITY_FACTOR,
            message=f"No price factor configured for {city}, {country}; base prices used",
            activity_id=breakdown.activity_id,
        )
        return breakdown.model_copy(
            update={
                "warnings": [*breakdown.warnings, warning],
                "city_adjustment": CityAdjustment(
                    city=city,
                    country=country,
                    applied=False,
                    base_total_unit_price=base_total,
                ),
            }
        )

    materials = breakdown.materials_cost * city_factor.materials_factor
    labor = breakdown.labor_cost * city_factor.labor_factor
    direct = materials + labor
    equipment = breakdown.equipment_cost * city_factor.equipment_factor
    chain = compute_markup_chain(direct, equipment, breakdown.rates)

    return breakdown.model_copy(
        update={
            "materials_cost": materials,
            "labor_cost": labor,
            "direct_cost": direct,
            "equipment_cost": equipment,
            "subtotal_with_equipment": chain.subtotal_with_equipment,
            "administrative_cost": chain.administrative_cost,
            "subtotal_with_administrative": chain.subtotal_with_administrative,
            "utility_cost": chain.utility_cost,
            "subtotal_with_utility": chain.subtotal_with_utility,
            "tax_cost": chain.tax_cost,
            "total_unit_price": chain.total_unit_price,
            "lines": [_scale_line(line, city_factor) for line in breakdown.lines],
            "city_adjustment": CityAdjustment(
                city=city,
                country=country,
                applied=True,
                factor=city_factor,
                base_total_unit_price=base_total,
            ),
        }
    )


def _factor_for(kind: ComponentKind, city_factor: CityPriceFactor) -> Decimal:
    if kind == ComponentKind.LABOR:
        return city_factor.labor_factor
    if kind == ComponentKind.MATERIAL:
        return city_factor.materials_factor
    return city_factor.equipment_factor


def _scale_line(line: LineCost, city_factor: CityPriceFactor) -> LineCost:
    factor = _factor_for(line.kind, city_factor)
    return line.model_copy(
        update={
            "unit_cost": line.unit_cost * factor,
            "extended_cost": line.extended_cost * factor,
        }
    )
