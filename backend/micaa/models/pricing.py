"""Pricing models: catalog, settings, factors, overrides and results."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from micaa.models.enums import (
    ComponentKind,
    EquipmentRateSource,
    PriceSource,
    WarningCode,
)

_ONE = Decimal("1.0000")


def override_key(name: str, unit: str) -> tuple[str, str]:
    """Normalize a ``(material name, unit)`` pair for override matching."""
    return name.strip().lower(), unit.strip().lower()


class Material(BaseModel):
    """A catalog material with its canonical price."""

    id: int
    name: str
    unit: str
    price: Decimal = Field(ge=0)
    category: str | None = None
    description: str | None = None


class IndirectCostRates(BaseModel):
    """Per-project percentages applied on top of the direct cost.

    Values are percentages (``15`` means 15%). The defaults follow common
    Bolivian APU practice.
    """

    equipment_percentage: Decimal = Field(default=Decimal("5.00"), ge=0, le=100)
    administrative_percentage: Decimal = Field(default=Decimal("8.00"), ge=0, le=100)
    utility_percentage: Decimal = Field(default=Decimal("15.00"), ge=0, le=100)
    tax_percentage: Decimal = Field(default=Decimal("3.09"), ge=0, le=100)
    social_charges_percentage: Decimal = Field(default=Decimal("71.18"), ge=0, le=100)


class PriceSettings(BaseModel):
    """Snapshot of the process-wide price settings row.

    Passed explicitly into every pricing call instead of being read from
    global state.
    """

    usd_exchange_rate: Decimal = Field(default=Decimal("6.96"), gt=0)
    inflation_factor: Decimal = Field(default=_ONE, gt=0)
    global_adjustment_factor: Decimal = Field(
        default=_ONE, gt=0, description="Last applied global adjustment, not a running product"
    )
    updated_by: str | None = None
    last_updated: datetime | None = None


class CityPriceFactor(BaseModel):
    """Multiplicative regional factors for one ``(city, country)``."""

    city: str
    country: str
    materials_factor: Decimal = Field(default=_ONE, gt=0)
    labor_factor: Decimal = Field(default=_ONE, gt=0)
    equipment_factor: Decimal = Field(default=_ONE, gt=0)
    transport_factor: Decimal = Field(default=_ONE, gt=0)

    @property
    def is_identity(self) -> bool:
        return (
            self.materials_factor == 1
            and self.labor_factor == 1
            and self.equipment_factor == 1
            and self.transport_factor == 1
        )


class UserPriceOverride(BaseModel):
    """A user's personal price for a material, keyed by name and unit."""

    user_id: int
    material_name: str = Field(min_length=1)
    unit: str
    price: Decimal = Field(gt=0)

    @property
    def key(self) -> tuple[str, str]:
        return override_key(self.material_name, self.unit)


class PricingContext(BaseModel):
    """Everything a price computation reads besides the composition itself."""

    user_id: int | None = None
    settings: PriceSettings = Field(default_factory=PriceSettings)
    overrides: list[UserPriceOverride] = Field(default_factory=list)
    rates: IndirectCostRates = Field(default_factory=IndirectCostRates)

    def override_for(self, name: str, unit: str) -> UserPriceOverride | None:
        """Return the acting user's override for a material, if any.

        Overrides recorded by other users are never returned.
        """
        if self.user_id is None:
            return None
        key = override_key(name, unit)
        for override in self.overrides:
            if override.user_id == self.user_id and override.key == key:
                return override
        return None


class PricingWarning(BaseModel):
    """A recoverable condition that makes a price an estimate."""

    code: WarningCode
    message: str
    activity_id: int | None = None
    material_ref: int | None = None
    description: str | None = None


class ResolvedCost(BaseModel):
    """Effective unit cost of one composition line."""

    unit_cost: Decimal
    source: PriceSource
    warning: PricingWarning | None = None

    @property
    def unresolved(self) -> bool:
        return self.source == PriceSource.UNRESOLVED_FALLBACK


class LineCost(BaseModel):
    """A priced composition line as shown in an APU sheet."""

    kind: ComponentKind
    description: str
    unit: str
    quantity: Decimal
    unit_cost: Decimal
    extended_cost: Decimal
    price_source: PriceSource
    material_ref: int | None = None


class CityAdjustment(BaseModel):
    """Record of the regional adjustment applied to a breakdown."""

    city: str
    country: str
    applied: bool
    factor: CityPriceFactor | None = None
    base_total_unit_price: Decimal


class CostBreakdown(BaseModel):
    """Result of pricing one unit of an activity.

    Intermediate values keep full precision; only ``total_unit_price`` is
    rounded to cents.
    """

    activity_id: int
    component_count: int
    materials_cost: Decimal
    labor_cost: Decimal
    direct_cost: Decimal
    equipment_percentage: Decimal
    equipment_rate_source: EquipmentRateSource
    equipment_cost: Decimal
    subtotal_with_equipment: Decimal
    administrative_cost: Decimal
    subtotal_with_administrative: Decimal
    utility_cost: Decimal
    subtotal_with_utility: Decimal
    tax_cost: Decimal
    total_unit_price: Decimal
    rates: IndirectCostRates
    lines: list[LineCost] = Field(default_factory=list)
    warnings: list[PricingWarning] = Field(default_factory=list)
    city_adjustment: CityAdjustment | None = None

    @property
    def has_composition(self) -> bool:
        """False when the activity has no composition at all.

        Distinguishes "nothing to price" from "priced at zero".
        """
        return self.component_count > 0

    @property
    def needs_review(self) -> bool:
        return bool(self.warnings)

    @property
    def unresolved_refs(self) -> list[int]:
        return [
            w.material_ref
            for w in self.warnings
            if w.code == WarningCode.UNRESOLVED_REFERENCE and w.material_ref is not None
        ]

    def to_summary_dict(self, settings: PriceSettings | None = None) -> dict[str, Any]:
        """Produce a flat, display-ready dict for the APU sheet.

        The USD equivalent uses the stored exchange rate from ``settings``.
        """
        from micaa.formatting import format_bs, format_percentage, format_usd

        settings = settings or PriceSettings()
        return {
            "activity_id": self.activity_id,
            "has_composition": self.has_composition,
            "materials_formatted": format_bs(self.materials_cost),
            "labor_formatted": format_bs(self.labor_cost),
            "equipment_formatted": format_bs(self.equipment_cost),
            "equipment_percentage_formatted": format_percentage(self.equipment_percentage),
            "administrative_formatted": format_bs(self.administrative_cost),
            "utility_formatted": format_bs(self.utility_cost),
            "tax_formatted": format_bs(self.tax_cost),
            "total_unit_price_formatted": format_bs(self.total_unit_price),
            "total_unit_price_usd_formatted": format_usd(
                self.total_unit_price, settings.usd_exchange_rate
            ),
            "needs_review": self.needs_review,
            "warnings": [w.message for w in self.warnings],
            "location": (
                f"{self.city_adjustment.city}, {self.city_adjustment.country}"
                if self.city_adjustment is not None
                else None
            ),
        }


class PriceAdjustmentResult(BaseModel):
    """Outcome of a bulk catalog price adjustment."""

    affected_materials: int
    factor: Decimal
    applied_by: str | None = None
    applied_at: datetime
