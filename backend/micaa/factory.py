"""Factory functions for creating pre-configured engines and services."""

from __future__ import annotations

from typing import TYPE_CHECKING

from micaa.data.city_factors import CITY_PRICE_FACTORS
from micaa.data.repository import ReferenceDataRepository
from micaa.data.seed import SEED_ACTIVITIES, SEED_COMPOSITIONS, SEED_MATERIALS
from micaa.db.store import PricingStore
from micaa.engine import ApuEngine
from micaa.service import PricingService

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def create_default_engine() -> ApuEngine:
    """Create an ApuEngine wired up with the built-in seed catalog.

    This is the recommended way to price compositions without a database.

    Example::

        from micaa import create_default_engine
        from micaa.data.seed import SEED_COMPOSITIONS

        engine = create_default_engine()
        breakdown = engine.compute_unit_price(2, SEED_COMPOSITIONS[2])
    """
    repository = ReferenceDataRepository(SEED_MATERIALS, CITY_PRICE_FACTORS)
    return ApuEngine(repository)


def create_pricing_service(session: Session) -> PricingService:
    """Create a PricingService bound to ``session``."""
    return PricingService(PricingStore(session))


def load_seed_data(store: PricingStore) -> dict[str, int]:
    """Load seed materials, activities, compositions and city factors.

    Meant for an empty database; ids in the seed compositions are remapped to
    the ids the store assigns.
    """
    with store.transaction("load seed data"):
        material_ids: dict[int, int] = {}
        for material in SEED_MATERIALS:
            created = store.create_material(
                material.name, material.unit, material.price, category=material.category
            )
            material_ids[material.id] = created.id

        for seed_activity in SEED_ACTIVITIES:
            activity = store.create_activity(
                seed_activity.name, seed_activity.unit, phase=seed_activity.phase
            )
            components = []
            for component in SEED_COMPOSITIONS.get(seed_activity.id, []):
                update: dict[str, object] = {"activity_id": activity.id}
                material_ref = getattr(component, "material_ref", None)
                if material_ref is not None:
                    update["material_ref"] = material_ids[material_ref]
                components.append(component.model_copy(update=update))
            store.save_composition(activity.id, components)

        for factor in CITY_PRICE_FACTORS:
            store.upsert_city_factor(factor)

    return {
        "materials": len(SEED_MATERIALS),
        "activities": len(SEED_ACTIVITIES),
        "city_factors": len(CITY_PRICE_FACTORS),
    }
