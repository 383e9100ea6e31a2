"""Seed data for the MICAA pricing engine.

Sample APUs and catalog prices in bolivianos, based on publicly available
unit-price analyses for residential construction in La Paz.
"""

from __future__ import annotations

from decimal import Decimal

from micaa.models.composition import (
    Activity,
    CostComponent,
    DirectLineItem,
    PercentageMarkup,
)
from micaa.models.pricing import IndirectCostRates, Material

DEFAULT_INDIRECT_RATES = IndirectCostRates()

SEED_MATERIALS: list[Material] = [
    Material(id=1, name="Cemento portland IP-30", unit="kg", price=Decimal("1.20"), category="Aglomerantes"),
    Material(id=2, name="Arena fina", unit="m3", price=Decimal("70.00"), category="Áridos"),
    Material(id=3, name="Ladrillo adobito", unit="pza", price=Decimal("0.65"), category="Cerámica"),
    Material(id=4, name="Agua", unit="lt", price=Decimal("0.06"), category="Varios"),
    Material(id=5, name="Grava común", unit="m3", price=Decimal("90.00"), category="Áridos"),
    Material(id=6, name="Fierro corrugado", unit="kg", price=Decimal("9.50"), category="Acero"),
    Material(id=7, name="Madera de construcción", unit="p2", price=Decimal("8.00"), category="Maderas"),
    Material(id=8, name="Clavos", unit="kg", price=Decimal("15.00"), category="Ferretería"),
]

SEED_ACTIVITIES: list[Activity] = [
    Activity(id=1, name="EXCAVACION MANUAL", unit="m3", phase="Movimiento de tierras"),
    Activity(id=2, name="CIMIENTO DE LADRILLO ADOBITO", unit="m3", phase="Obra gruesa"),
]

SEED_COMPOSITIONS: dict[int, list[CostComponent]] = {
    1: [
        DirectLineItem(kind="labor", activity_id=1, description="Ayudante", unit="hr",
                       quantity=Decimal("2.20"), unit_cost=Decimal("12.50")),
        DirectLineItem(kind="labor", activity_id=1, description="Maestro albañil", unit="hr",
                       quantity=Decimal("0.20"), unit_cost=Decimal("18.75")),
        PercentageMarkup(activity_id=1, description="Herramientas y equipos",
                         percentage=Decimal("5.00")),
    ],
    2: [
        DirectLineItem(kind="material", activity_id=2, description="Cemento portland IP-30", unit="kg",
                       quantity=Decimal("60.00"), unit_cost=Decimal("1.20"), material_ref=1),
        DirectLineItem(kind="material", activity_id=2, description="Arena fina", unit="m3",
                       quantity=Decimal("0.35"), unit_cost=Decimal("70.00"), material_ref=2),
        DirectLineItem(kind="material", activity_id=2, description="Ladrillo adobito", unit="pza",
                       quantity=Decimal("515.00"), unit_cost=Decimal("0.65"), material_ref=3),
        DirectLineItem(kind="material", activity_id=2, description="Agua", unit="lt",
                       quantity=Decimal("350.00"), unit_cost=Decimal("0.06"), material_ref=4),
        DirectLineItem(kind="labor", activity_id=2, description="Ayudante", unit="hr",
                       quantity=Decimal("5.70"), unit_cost=Decimal("12.50")),
        DirectLineItem(kind="labor", activity_id=2, description="Maestro albañil", unit="hr",
                       quantity=Decimal("7.12"), unit_cost=Decimal("18.75")),
        PercentageMarkup(activity_id=2, description="Herramientas y equipos",
                         percentage=Decimal("5.00")),
    ],
}
