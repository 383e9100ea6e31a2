"""Tests for the pydantic models: composition variants, rates, settings."""

from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from micaa.models.composition import (
    DirectLineItem,
    PercentageMarkup,
    parse_composition,
)
from micaa.models.pricing import (
    CityPriceFactor,
    IndirectCostRates,
    PriceSettings,
    PricingContext,
    UserPriceOverride,
    override_key,
)


class TestCompositionVariants:
    def test_parse_dispatches_on_kind(self) -> None:
        parsed = parse_composition([
            {"kind": "material", "activity_id": 1, "quantity": "2", "unit_cost": "3",
             "material_ref": 5},
            {"kind": "labor", "activity_id": 1, "quantity": "1", "unit_cost": "12.5"},
            {"kind": "equipment", "activity_id": 1, "percentage": "5"},
        ])
        assert isinstance(parsed[0], DirectLineItem)
        assert isinstance(parsed[1], DirectLineItem)
        assert parsed[1].is_labor
        assert isinstance(parsed[2], PercentageMarkup)
        assert parsed[2].percentage == Decimal("5")

    def test_markup_has_no_quantity_or_cost(self) -> None:
        markup = PercentageMarkup(activity_id=1, percentage=Decimal("5"))
        assert not hasattr(markup, "unit_cost")
        assert markup.unit == "%"

    def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(ValidationError):
            parse_composition([{"kind": "transport", "activity_id": 1}])

    @pytest.mark.parametrize("field", ["quantity", "unit_cost"])
    def test_negative_values_rejected(self, field: str) -> None:
        values = {"quantity": Decimal("1"), "unit_cost": Decimal("1"), field: Decimal("-0.01")}
        with pytest.raises(ValidationError):
            DirectLineItem(kind="material", activity_id=1, **values)

    def test_percentage_above_hundred_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PercentageMarkup(activity_id=1, percentage=Decimal("100.5"))

    def test_activity_id_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            PercentageMarkup(activity_id=0, percentage=Decimal("5"))


class TestRatesAndSettings:
    def test_default_rates(self) -> None:
        rates = IndirectCostRates()
        assert rates.equipment_percentage == Decimal("5")
        assert rates.administrative_percentage == Decimal("8")
        assert rates.utility_percentage == Decimal("15")
        assert rates.tax_percentage == Decimal("3.09")
        assert rates.social_charges_percentage == Decimal("71.18")

    def test_negative_rate_rejected(self) -> None:
        with pytest.raises(ValidationError):
            IndirectCostRates(tax_percentage=Decimal("-1"))

    def test_default_settings(self) -> None:
        settings = PriceSettings()
        assert settings.usd_exchange_rate == Decimal("6.96")
        assert settings.inflation_factor == Decimal("1")

    def test_zero_exchange_rate_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PriceSettings(usd_exchange_rate=Decimal("0"))


class TestCityPriceFactor:
    def test_defaults_are_identity(self) -> None:
        assert CityPriceFactor(city="La Paz", country="Bolivia").is_identity

    def test_non_positive_factor_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CityPriceFactor(city="X", country="Y", labor_factor=Decimal("0"))


class TestOverrides:
    def test_key_normalizes_name_and_unit(self) -> None:
        assert override_key("  Arena Fina ", "M3") == ("arena fina", "m3")

    def test_context_returns_only_own_override(self) -> None:
        own = UserPriceOverride(user_id=1, material_name="Agua", unit="lt", price=Decimal("0.1"))
        other = UserPriceOverride(user_id=2, material_name="Arena", unit="m3", price=Decimal("75"))
        context = PricingContext(user_id=1, overrides=[own, other])
        assert context.override_for("agua", "LT") == own
        assert context.override_for("Arena", "m3") is None
