"""Reference data layer for the MICAA pricing engine."""

from micaa.data.city_factors import CITY_PRICE_FACTORS
from micaa.data.repository import MaterialCatalog, ReferenceDataRepository

__all__ = [
    "CITY_PRICE_FACTORS",
    "MaterialCatalog",
    "ReferenceDataRepository",
]
