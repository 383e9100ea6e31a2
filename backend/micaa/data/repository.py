"""In-memory reference data: material catalog and city price factors."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterable

    from micaa.models.pricing import CityPriceFactor, Material


def city_key(city: str, country: str) -> tuple[str, str]:
    return city.strip().lower(), country.strip().lower()


class MaterialCatalog(Protocol):
    """What the price resolver needs from a material catalog."""

    def get_material(self, material_id: int) -> Material | None: ...

    def search_materials(self, query: str) -> list[Material]: ...


class ReferenceDataRepository:
    """Repository for looking up catalog materials and city factors.

    Wraps in-memory data. Satisfies ``MaterialCatalog`` so the engine can run
    without a database (tests, seed-data estimates).
    """

    def __init__(
        self,
        materials: Iterable[Material],
        city_factors: Iterable[CityPriceFactor] = (),
    ) -> None:
        self._materials = {m.id: m for m in materials}
        self._city_factors = {
            city_key(f.city, f.country): f for f in city_factors
        }

    def get_material(self, material_id: int) -> Material | None:
        return self._materials.get(material_id)

    def search_materials(self, query: str) -> list[Material]:
        """Case-insensitive substring search on material names."""
        needle = query.strip().lower()
        matches = [m for m in self._materials.values() if needle in m.name.lower()]
        return sorted(matches, key=lambda m: m.name)

    def get_city_factor(self, city: str, country: str) -> CityPriceFactor | None:
        """Exact ``(city, country)`` match, case-insensitive.

        Returns None when the city is not configured; callers treat that as
        "no adjustment".
        """
        return self._city_factors.get(city_key(city, country))
