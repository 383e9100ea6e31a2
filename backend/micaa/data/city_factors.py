"""Regional price factors for Bolivian cities.

Factors are relative to La Paz (1.0000). A city missing from this table gets
no adjustment at all; there is no departmental or national fallback.
"""

from __future__ import annotations

from decimal import Decimal

from micaa.models.pricing import CityPriceFactor

# (city, country, materials, labor, equipment, transport)
_FACTOR_ROWS: list[tuple[str, str, str, str, str, str]] = [
    ("La Paz", "Bolivia", "1.0000", "1.0000", "1.0000", "1.0000"),
    ("El Alto", "Bolivia", "0.9800", "0.9500", "1.0000", "0.9800"),
    ("Santa Cruz", "Bolivia", "1.0500", "1.1000", "1.0200", "1.0800"),
    ("Cochabamba", "Bolivia", "0.9700", "1.0200", "0.9800", "1.0300"),
    ("Sucre", "Bolivia", "1.0200", "0.9300", "1.0000", "1.0600"),
    ("Oruro", "Bolivia", "0.9900", "0.9000", "1.0000", "1.0200"),
    ("Potosí", "Bolivia", "1.0600", "0.8800", "1.0300", "1.1000"),
    ("Tarija", "Bolivia", "1.0400", "0.9600", "1.0100", "1.1200"),
    ("Trinidad", "Bolivia", "1.1500", "1.0000", "1.0800", "1.2500"),
    ("Cobija", "Bolivia", "1.2200", "1.0500", "1.1000", "1.3500"),
]

CITY_PRICE_FACTORS: list[CityPriceFactor] = [
    CityPriceFactor(
        city=city,
        country=country,
        materials_factor=Decimal(materials),
        labor_factor=Decimal(labor),
        equipment_factor=Decimal(equipment),
        transport_factor=Decimal(transport),
    )
    for city, country, materials, labor, equipment, transport in _FACTOR_ROWS
]
