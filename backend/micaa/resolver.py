"""Price resolver: the effective unit cost of one composition line.

Precedence for a line that references a catalog material:

1. The acting user's personal override for that material (by name + unit).
2. The catalog price, scaled by the settings' inflation factor.
3. The line's own literal ``unit_cost`` when the reference does not resolve,
   annotated as unresolved.

Labor lines and lines without a reference always use their literal cost.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from micaa.models.enums import PriceSource, WarningCode
from micaa.models.pricing import PricingWarning, ResolvedCost

if TYPE_CHECKING:
    from micaa.data.repository import MaterialCatalog
    from micaa.models.composition import DirectLineItem
    from micaa.models.pricing import Material, PricingContext

logger = logging.getLogger(__name__)


class PriceResolver:
    """Resolves line costs against a material catalog. Read-only."""

    def __init__(self, catalog: MaterialCatalog) -> None:
        self._catalog = catalog

    def resolve_unit_cost(
        self,
        component: DirectLineItem,
        context: PricingContext,
        material: Material | None = None,
    ) -> ResolvedCost:
        """Return the effective unit cost of ``component`` for ``context``.

        Args:
            component: A material or labor line.
            context: Acting user, settings snapshot and overrides.
            material: Pre-fetched catalog row for ``component.material_ref``.
                When omitted the catalog is queried.

        Never raises for a missing material.
        """
        if component.is_labor or component.material_ref is None:
            return ResolvedCost(unit_cost=component.unit_cost, source=PriceSource.LITERAL)

        if material is None:
            material = self._catalog.get_material(component.material_ref)

        if material is None:
            logger.warning(
                "Material %s referenced by activity %s not found; using literal cost",
                component.material_ref,
                component.activity_id,
            )
            return ResolvedCost(
                unit_cost=component.unit_cost,
                source=PriceSource.UNRESOLVED_FALLBACK,
                warning=PricingWarning(
                    code=WarningCode.UNRESOLVED_REFERENCE,
                    message=(
                        f"Material #{component.material_ref} ('{component.description}') "
                        f"is not in the catalog; literal cost {component.unit_cost} used"
                    ),
                    activity_id=component.activity_id,
                    material_ref=component.material_ref,
                    description=component.description,
                ),
            )

        override = context.override_for(material.name, material.unit)
        if override is not None:
            return ResolvedCost(unit_cost=override.price, source=PriceSource.USER_OVERRIDE)

        return ResolvedCost(
            unit_cost=material.price * context.settings.inflation_factor,
            source=PriceSource.CATALOG,
        )
