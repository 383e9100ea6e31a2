"""APU aggregation engine for the MICAA pricing library.

The ApuEngine turns an activity's composition into one unit price:

1. **Partition** — split the composition into material lines, labor lines
   and equipment markups.
2. **Direct cost** — sum ``quantity * resolved unit cost`` per kind; the
   resolver applies user overrides and catalog prices.
3. **Equipment markup** — a percentage of the direct cost, taken from the
   composition's markup line when present, otherwise from the project rates.
4. **Indirect chain** — administrative, then utility, then tax, each applied
   to the running subtotal that includes the previous markups.
5. **Rounding** — only the final total is rounded to cents (half-up).

The engine is stateless: the same composition, rates and context always give
the same breakdown, whatever the order of the lines.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from micaa.exceptions import ValidationError
from micaa.models.composition import DirectLineItem, PercentageMarkup
from micaa.models.enums import ComponentKind, EquipmentRateSource, WarningCode
from micaa.models.pricing import (
    CostBreakdown,
    LineCost,
    PricingContext,
    PricingWarning,
)
from micaa.money import ZERO, percent_of, round_money
from micaa.resolver import PriceResolver

if TYPE_CHECKING:
    from collections.abc import Iterable

    from micaa.data.repository import MaterialCatalog
    from micaa.models.composition import CostComponent
    from micaa.models.pricing import IndirectCostRates

logger = logging.getLogger(__name__)

ENGINE_VERSION = "0.1.0"


@dataclass(frozen=True)
class MarkupChain:
    """Running subtotals of the indirect-cost chain."""

    subtotal_with_equipment: Decimal
    administrative_cost: Decimal
    subtotal_with_administrative: Decimal
    utility_cost: Decimal
    subtotal_with_utility: Decimal
    tax_cost: Decimal
    total_unit_price: Decimal


def compute_markup_chain(
    direct_cost: Decimal,
    equipment_cost: Decimal,
    rates: IndirectCostRates,
) -> MarkupChain:
    """Apply administrative, utility and tax markups in that order.

    Each markup is a percentage of the subtotal that already includes the
    markups before it. Only the returned total is rounded.
    """
    subtotal1 = direct_cost + equipment_cost
    administrative = percent_of(subtotal1, rates.administrative_percentage)
    subtotal2 = subtotal1 + administrative
    utility = percent_of(subtotal2, rates.utility_percentage)
    subtotal3 = subtotal2 + utility
    tax = percent_of(subtotal3, rates.tax_percentage)
    return MarkupChain(
        subtotal_with_equipment=subtotal1,
        administrative_cost=administrative,
        subtotal_with_administrative=subtotal2,
        utility_cost=utility,
        subtotal_with_utility=subtotal3,
        tax_cost=tax,
        total_unit_price=round_money(subtotal3 + tax),
    )


class ApuEngine:
    """Core engine that converts a composition into a CostBreakdown.

    Args:
        catalog: Material catalog used to resolve ``material_ref`` lines.

    Example::

        from micaa.data.repository import ReferenceDataRepository
        from micaa.data.seed import SEED_COMPOSITIONS, SEED_MATERIALS

        engine = ApuEngine(ReferenceDataRepository(SEED_MATERIALS))
        breakdown = engine.compute_unit_price(2, SEED_COMPOSITIONS[2])
    """

    def __init__(self, catalog: MaterialCatalog) -> None:
        self._resolver = PriceResolver(catalog)

    @property
    def resolver(self) -> PriceResolver:
        return self._resolver

    def compute_unit_price(
        self,
        activity_id: int,
        components: Iterable[CostComponent],
        rates: IndirectCostRates | None = None,
        context: PricingContext | None = None,
    ) -> CostBreakdown:
        """Price one unit of an activity.

        Args:
            activity_id: The activity the composition belongs to.
            components: The full composition, in any order.
            rates: Indirect-cost percentages. Defaults to ``context.rates``.
            context: Acting user, settings snapshot and overrides. Defaults to
                an anonymous context with default settings.

        Returns:
            The cost breakdown. An empty composition yields all zeros.

        Raises:
            ValidationError: If a line belongs to another activity or a rate
                is negative.
        """
        context = context or PricingContext()
        rates = rates or context.rates
        components = list(components)
        self._validate(activity_id, components, rates)

        # 1. Partition
        direct_lines = [c for c in components if isinstance(c, DirectLineItem)]
        markups = [c for c in components if isinstance(c, PercentageMarkup)]

        # 2. Direct cost
        warnings: list[PricingWarning] = []
        lines: list[LineCost] = []
        materials_cost = ZERO
        labor_cost = ZERO
        for component in direct_lines:
            resolved = self._resolver.resolve_unit_cost(component, context)
            if resolved.warning is not None:
                warnings.append(resolved.warning)
            extended = component.quantity * resolved.unit_cost
            if component.is_labor:
                labor_cost += extended
            else:
                materials_cost += extended
            lines.append(
                LineCost(
                    kind=ComponentKind(component.kind),
                    description=component.description,
                    unit=component.unit,
                    quantity=component.quantity,
                    unit_cost=resolved.unit_cost,
                    extended_cost=extended,
                    price_source=resolved.source,
                    material_ref=component.material_ref,
                )
            )
        direct_cost = materials_cost + labor_cost

        # 3. Equipment markup
        if markups:
            equipment_percentage = sum((m.percentage for m in markups), ZERO)
            rate_source = EquipmentRateSource.COMPOSITION
            if len(markups) > 1:
                warnings.append(
                    PricingWarning(
                        code=WarningCode.MULTIPLE_EQUIPMENT_MARKUPS,
                        message=(
                            f"{len(markups)} equipment markups found; "
                            f"combined percentage {equipment_percentage} applied"
                        ),
                        activity_id=activity_id,
                    )
                )
        else:
            equipment_percentage = rates.equipment_percentage
            rate_source = EquipmentRateSource.PROJECT_RATES
        equipment_cost = percent_of(direct_cost, equipment_percentage)

        # 4-5. Indirect chain and rounding
        chain = compute_markup_chain(direct_cost, equipment_cost, rates)

        return CostBreakdown(
            activity_id=activity_id,
            component_count=len(components),
            materials_cost=materials_cost,
            labor_cost=labor_cost,
            direct_cost=direct_cost,
            equipment_percentage=equipment_percentage,
            equipment_rate_source=rate_source,
            equipment_cost=equipment_cost,
            subtotal_with_equipment=chain.subtotal_with_equipment,
            administrative_cost=chain.administrative_cost,
            subtotal_with_administrative=chain.subtotal_with_administrative,
            utility_cost=chain.utility_cost,
            subtotal_with_utility=chain.subtotal_with_utility,
            tax_cost=chain.tax_cost,
            total_unit_price=chain.total_unit_price,
            rates=rates,
            lines=sorted(lines, key=_line_sort_key),
            warnings=sorted(warnings, key=_warning_sort_key),
        )

    @staticmethod
    def _validate(
        activity_id: int,
        components: list[CostComponent],
        rates: IndirectCostRates,
    ) -> None:
        if not isinstance(activity_id, int) or activity_id <= 0:
            msg = f"activity_id must be a positive integer, got {activity_id!r}"
            raise ValidationError(msg)
        for component in components:
            if component.activity_id != activity_id:
                msg = (
                    f"Component '{component.description}' belongs to activity "
                    f"{component.activity_id}, not {activity_id}"
                )
                raise ValidationError(msg)
        # IndirectCostRates enforces ge=0 itself; only model_construct input reaches here
        for name, value in rates.model_dump().items():
            if value < 0:
                msg = f"{name} must not be negative, got {value}"
                raise ValidationError(msg)


def _line_sort_key(line: LineCost) -> tuple[str, str, str, Decimal, Decimal, int, str]:
    """Canonical line order so permuted compositions give equal breakdowns."""
    return (
        line.kind.value,
        line.description,
        line.unit,
        line.quantity,
        line.unit_cost,
        line.material_ref if line.material_ref is not None else -1,
        line.price_source.value,
    )


def _warning_sort_key(warning: PricingWarning) -> tuple[str, int, str]:
    return (
        warning.code.value,
        warning.material_ref if warning.material_ref is not None else -1,
        warning.description or "",
    )
