"""Tests for the city price adjustment."""

from __future__ import annotations

from decimal import Decimal

import pytest

from micaa.data.repository import ReferenceDataRepository
from micaa.engine import ApuEngine
from micaa.geographic import apply_geographic_adjustment
from micaa.models.composition import DirectLineItem
from micaa.models.enums import WarningCode
from micaa.models.pricing import CityPriceFactor, CostBreakdown


@pytest.fixture()
def base() -> CostBreakdown:
    """Materials 100 + labor 50 with the default markup chain (total 201.66)."""
    engine = ApuEngine(ReferenceDataRepository([]))
    return engine.compute_unit_price(10, [
        DirectLineItem(kind="material", activity_id=10, description="Arena", unit="m3",
                       quantity=Decimal("1"), unit_cost=Decimal("100")),
        DirectLineItem(kind="labor", activity_id=10, description="Ayudante", unit="hr",
                       quantity=Decimal("2"), unit_cost=Decimal("25")),
    ])


class TestIdentity:
    def test_identity_factors_leave_price_unchanged(self, base: CostBreakdown) -> None:
        factor = CityPriceFactor(city="La Paz", country="Bolivia")
        adjusted = apply_geographic_adjustment(base, "La Paz", "Bolivia", factor)
        assert factor.is_identity
        assert adjusted.total_unit_price == base.total_unit_price == Decimal("201.66")
        assert adjusted.city_adjustment is not None
        assert adjusted.city_adjustment.applied is True


class TestMissingFactor:
    def test_missing_city_returns_base_price_with_warning(self, base: CostBreakdown) -> None:
        adjusted = apply_geographic_adjustment(base, "Lima", "Peru", None)
        assert adjusted.total_unit_price == base.total_unit_price
        assert adjusted.materials_cost == base.materials_cost
        assert [w.code for w in adjusted.warnings] == [WarningCode.MISSING_CITY_FACTOR]
        assert adjusted.city_adjustment is not None
        assert adjusted.city_adjustment.applied is False
        assert adjusted.city_adjustment.factor is None

    def test_input_breakdown_not_mutated(self, base: CostBreakdown) -> None:
        apply_geographic_adjustment(base, "Lima", "Peru", None)
        assert base.warnings == []
        assert base.city_adjustment is None


class TestScaling:
    def test_materials_factor_recomputes_chain(self, base: CostBreakdown) -> None:
        factor = CityPriceFactor(city="X", country="Bolivia", materials_factor=Decimal("1.10"))
        adjusted = apply_geographic_adjustment(base, "X", "Bolivia", factor)

        assert adjusted.materials_cost == Decimal("110")
        assert adjusted.labor_cost == Decimal("50")
        assert adjusted.direct_cost == Decimal("160")
        assert adjusted.equipment_cost == Decimal("7.5")
        assert adjusted.subtotal_with_equipment == Decimal("167.5")
        assert adjusted.administrative_cost == Decimal("13.4")
        assert adjusted.utility_cost == Decimal("27.135")
        assert adjusted.tax_cost == Decimal("6.4282815")
        assert adjusted.total_unit_price == Decimal("214.46")
        assert adjusted.city_adjustment is not None
        assert adjusted.city_adjustment.base_total_unit_price == Decimal("201.66")

    def test_each_category_uses_its_own_factor(self, base: CostBreakdown) -> None:
        factor = CityPriceFactor(
            city="Y",
            country="Bolivia",
            materials_factor=Decimal("1"),
            labor_factor=Decimal("2"),
            equipment_factor=Decimal("0.5"),
        )
        adjusted = apply_geographic_adjustment(base, "Y", "Bolivia", factor)
        assert adjusted.materials_cost == Decimal("100")
        assert adjusted.labor_cost == Decimal("100")
        assert adjusted.equipment_cost == Decimal("3.75")

    def test_transport_factor_not_applied(self, base: CostBreakdown) -> None:
        factor = CityPriceFactor(city="Z", country="Bolivia", transport_factor=Decimal("1.5"))
        adjusted = apply_geographic_adjustment(base, "Z", "Bolivia", factor)
        assert adjusted.total_unit_price == base.total_unit_price

    def test_lines_scaled(self, base: CostBreakdown) -> None:
        factor = CityPriceFactor(city="X", country="Bolivia", labor_factor=Decimal("1.10"))
        adjusted = apply_geographic_adjustment(base, "X", "Bolivia", factor)
        labor = next(line for line in adjusted.lines if line.description == "Ayudante")
        assert labor.unit_cost == Decimal("27.5")
        assert labor.extended_cost == Decimal("55")
