"""SQLAlchemy-backed store for compositions, catalog and price settings.

Every public write runs inside ``transaction()``: either the whole operation
commits or nothing does. Transactions nest; only the outermost one commits.
Driver errors are re-raised as ``PersistenceError`` after rollback.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import delete, select, text
from sqlalchemy.exc import SQLAlchemyError

from micaa.data.repository import ReferenceDataRepository, city_key
from micaa.db.tables import (
    ActivityCompositionRow,
    ActivityRow,
    CityPriceFactorRow,
    MaterialRow,
    PriceAdjustmentLogRow,
    PriceSettingsRow,
    ProjectRow,
    UserMaterialPriceRow,
)
from micaa.exceptions import (
    NotFoundError,
    OperationTimeoutError,
    PersistenceError,
    ValidationError,
)
from micaa.models.composition import Activity, DirectLineItem, PercentageMarkup
from micaa.models.enums import ComponentKind
from micaa.models.pricing import (
    CityPriceFactor,
    IndirectCostRates,
    Material,
    PriceAdjustmentResult,
    PriceSettings,
    UserPriceOverride,
)
from micaa.money import round_factor, round_money, to_decimal

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.orm import Session

    from micaa.models.composition import CostComponent

logger = logging.getLogger(__name__)


class Deadline:
    """Operation-level deadline for bulk work. ``None`` means no limit."""

    def __init__(self, timeout_seconds: float | None) -> None:
        self.timeout_seconds = timeout_seconds
        self._expires_at = (
            time.monotonic() + timeout_seconds if timeout_seconds is not None else None
        )

    def check(self, operation: str) -> None:
        if self._expires_at is not None and time.monotonic() > self._expires_at:
            msg = f"{operation} exceeded its {self.timeout_seconds}s deadline"
            raise OperationTimeoutError(msg)


@dataclass
class ActivitySnapshot:
    """An activity's composition and referenced materials, read together."""

    activity: Activity
    components: list[CostComponent]
    materials: dict[int, Material] = field(default_factory=dict)

    def catalog(self) -> ReferenceDataRepository:
        return ReferenceDataRepository(self.materials.values())


def adjusted_price(price: Decimal, factor: Decimal) -> Decimal:
    """New catalog price after a global adjustment, in cents."""
    return round_money(price * factor)


def stored_factor(name: str, value: Decimal | float | str) -> Decimal:
    """Quantize a multiplicative factor to its column precision (4 places).

    The factor must still be positive after quantizing; ``0.00001`` would be
    stored as ``0.0000`` and could not be read back.
    """
    try:
        factor = to_decimal(value)
    except (ArithmeticError, TypeError) as exc:
        msg = f"{name} must be a number, got {value!r}"
        raise ValidationError(msg) from exc
    if not factor.is_finite():
        msg = f"{name} must be a finite number, got {value}"
        raise ValidationError(msg)
    factor = round_factor(factor)
    if factor <= 0:
        msg = f"{name} must be positive at 4 decimal places, got {value}"
        raise ValidationError(msg)
    return factor


class PricingStore:
    """Persistence operations the pricing core needs.

    Also satisfies ``MaterialCatalog`` (``get_material``/``search_materials``).
    """

    def __init__(self, session: Session) -> None:
        self._session = session
        self._depth = 0

    @property
    def session(self) -> Session:
        return self._session

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self, operation: str) -> Iterator[Session]:
        """Run a unit of work atomically.

        Nested calls join the outer transaction.
        """
        self._depth += 1
        outermost = self._depth == 1
        try:
            yield self._session
            if outermost:
                self._session.commit()
        except SQLAlchemyError as exc:
            if outermost:
                self._session.rollback()
            logger.exception("%s failed; rolled back", operation)
            msg = f"{operation} failed: {exc}"
            raise PersistenceError(msg) from exc
        except Exception:
            if outermost:
                self._session.rollback()
                logger.warning("%s aborted; rolled back", operation)
            raise
        finally:
            self._depth -= 1

    @contextmanager
    def _reading(self, operation: str) -> Iterator[Session]:
        try:
            yield self._session
        except SQLAlchemyError as exc:
            msg = f"{operation} failed: {exc}"
            raise PersistenceError(msg) from exc

    def _set_statement_timeout(self, timeout_seconds: float | None) -> None:
        if timeout_seconds is None:
            return
        bind = self._session.get_bind()
        if bind.dialect.name == "postgresql":
            ms = int(timeout_seconds * 1000)
            self._session.execute(text(f"SET LOCAL statement_timeout = {ms}"))

    # ------------------------------------------------------------------
    # Activities and compositions
    # ------------------------------------------------------------------

    def create_activity(
        self,
        name: str,
        unit: str,
        phase: str | None = None,
        description: str | None = None,
    ) -> Activity:
        with self.transaction("create activity"):
            row = ActivityRow(name=name, unit=unit, phase=phase, description=description)
            self._session.add(row)
            self._session.flush()
            activity = _activity_from_row(row)
        return activity

    def get_activity(self, activity_id: int) -> Activity:
        with self._reading("get activity"):
            row = self._session.get(ActivityRow, activity_id)
        if row is None:
            msg = f"Activity {activity_id} not found"
            raise NotFoundError(msg)
        return _activity_from_row(row)

    def list_activity_ids(self) -> list[int]:
        with self._reading("list activities"):
            return list(
                self._session.execute(select(ActivityRow.id).order_by(ActivityRow.id)).scalars()
            )

    def delete_activity(self, activity_id: int) -> None:
        """Delete an activity together with its whole composition."""
        with self.transaction("delete activity"):
            row = self._session.get(ActivityRow, activity_id)
            if row is None:
                msg = f"Activity {activity_id} not found"
                raise NotFoundError(msg)
            self._session.delete(row)

    def save_composition(
        self, activity_id: int, components: Iterable[CostComponent]
    ) -> list[CostComponent]:
        """Replace an activity's composition with ``components``.

        The previous lines are deleted and the new set inserted in one
        transaction; there is no partial patch.
        """
        components = list(components)
        for component in components:
            if component.activity_id != activity_id:
                msg = (
                    f"Component '{component.description}' belongs to activity "
                    f"{component.activity_id}, not {activity_id}"
                )
                raise ValidationError(msg)

        with self.transaction("save composition"):
            if self._session.get(ActivityRow, activity_id) is None:
                msg = f"Activity {activity_id} not found"
                raise NotFoundError(msg)
            self._session.execute(
                delete(ActivityCompositionRow).where(
                    ActivityCompositionRow.activity_id == activity_id
                )
            )
            self._session.add_all(_component_to_row(c) for c in components)
        logger.info("Saved %d composition lines for activity %s", len(components), activity_id)
        return components

    def get_composition(self, activity_id: int) -> list[CostComponent]:
        with self._reading("get composition"):
            rows = self._session.execute(
                select(ActivityCompositionRow)
                .where(ActivityCompositionRow.activity_id == activity_id)
                .order_by(ActivityCompositionRow.id)
            ).scalars()
            return [_component_from_row(row) for row in rows]

    def load_activity_snapshot(self, activity_id: int) -> ActivitySnapshot:
        """Read the composition and its catalog materials in one statement."""
        activity = self.get_activity(activity_id)
        with self._reading("load activity snapshot"):
            result = self._session.execute(
                select(ActivityCompositionRow, MaterialRow)
                .outerjoin(MaterialRow, MaterialRow.id == ActivityCompositionRow.material_id)
                .where(ActivityCompositionRow.activity_id == activity_id)
                .order_by(ActivityCompositionRow.id)
            ).all()
        components: list[CostComponent] = []
        materials: dict[int, Material] = {}
        for comp_row, material_row in result:
            components.append(_component_from_row(comp_row))
            if material_row is not None:
                materials[material_row.id] = _material_from_row(material_row)
        return ActivitySnapshot(activity=activity, components=components, materials=materials)

    def update_activity_price(self, activity_id: int, price: Decimal) -> Decimal:
        """Store the cached unit price of an activity (last writer wins)."""
        price = round_money(to_decimal(price))
        with self.transaction("update activity price"):
            row = self._session.get(ActivityRow, activity_id)
            if row is None:
                msg = f"Activity {activity_id} not found"
                raise NotFoundError(msg)
            row.unit_price = price
            row.price_computed_at = datetime.now()
        return price

    # ------------------------------------------------------------------
    # Material catalog
    # ------------------------------------------------------------------

    def create_material(
        self,
        name: str,
        unit: str,
        price: Decimal,
        category: str | None = None,
        description: str | None = None,
    ) -> Material:
        price = to_decimal(price)
        if price < 0:
            msg = f"Material price must not be negative, got {price}"
            raise ValidationError(msg)
        with self.transaction("create material"):
            row = MaterialRow(
                name=name,
                unit=unit,
                price=round_money(price),
                category=category,
                description=description,
                last_updated=datetime.now(),
            )
            self._session.add(row)
            self._session.flush()
            material = _material_from_row(row)
        return material

    def get_material(self, material_id: int) -> Material | None:
        with self._reading("get material"):
            row = self._session.get(MaterialRow, material_id)
        return _material_from_row(row) if row is not None else None

    def list_materials(self) -> list[Material]:
        with self._reading("list materials"):
            rows = self._session.execute(select(MaterialRow).order_by(MaterialRow.id)).scalars()
            return [_material_from_row(row) for row in rows]

    def search_materials(self, query: str) -> list[Material]:
        """Case-insensitive substring search on material names."""
        with self._reading("search materials"):
            rows = self._session.execute(
                select(MaterialRow)
                .where(MaterialRow.name.ilike(f"%{query.strip()}%"))
                .order_by(MaterialRow.name)
            ).scalars()
            return [_material_from_row(row) for row in rows]

    # ------------------------------------------------------------------
    # City factors
    # ------------------------------------------------------------------

    def get_city_factor(self, city: str, country: str) -> CityPriceFactor | None:
        c_key, k_key = city_key(city, country)
        with self._reading("get city factor"):
            row = self._session.execute(
                select(CityPriceFactorRow).where(
                    CityPriceFactorRow.city_key == c_key,
                    CityPriceFactorRow.country_key == k_key,
                )
            ).scalar_one_or_none()
        return _city_factor_from_row(row) if row is not None else None

    def upsert_city_factor(self, factor: CityPriceFactor) -> CityPriceFactor:
        """Insert or replace the factors of one city; returns the stored values."""
        factor = factor.model_copy(
            update={
                name: stored_factor(name, getattr(factor, name))
                for name in (
                    "materials_factor",
                    "labor_factor",
                    "equipment_factor",
                    "transport_factor",
                )
            }
        )
        c_key, k_key = city_key(factor.city, factor.country)
        with self.transaction("upsert city factor"):
            row = self._session.execute(
                select(CityPriceFactorRow).where(
                    CityPriceFactorRow.city_key == c_key,
                    CityPriceFactorRow.country_key == k_key,
                )
            ).scalar_one_or_none()
            if row is None:
                row = CityPriceFactorRow(city_key=c_key, country_key=k_key)
                self._session.add(row)
            row.city = factor.city
            row.country = factor.country
            row.materials_factor = factor.materials_factor
            row.labor_factor = factor.labor_factor
            row.equipment_factor = factor.equipment_factor
            row.transport_factor = factor.transport_factor
        return factor

    # ------------------------------------------------------------------
    # Price settings and global adjustment
    # ------------------------------------------------------------------

    def _settings_row(self) -> PriceSettingsRow:
        row = self._session.execute(
            select(PriceSettingsRow).order_by(PriceSettingsRow.id).limit(1)
        ).scalar_one_or_none()
        if row is None:
            row = PriceSettingsRow(
                usd_exchange_rate=Decimal("6.9600"),
                inflation_factor=Decimal("1.0000"),
                global_adjustment_factor=Decimal("1.0000"),
                last_updated=datetime.now(),
            )
            self._session.add(row)
            self._session.flush()
        return row

    def get_price_settings(self) -> PriceSettings:
        """Return the settings singleton, creating it with defaults once."""
        with self.transaction("get price settings"):
            settings = _settings_from_row(self._settings_row())
        return settings

    def update_price_settings(
        self,
        updated_by: str,
        usd_exchange_rate: Decimal | None = None,
        inflation_factor: Decimal | None = None,
    ) -> PriceSettings:
        if usd_exchange_rate is not None:
            usd_exchange_rate = stored_factor("usd_exchange_rate", usd_exchange_rate)
        if inflation_factor is not None:
            inflation_factor = stored_factor("inflation_factor", inflation_factor)

        with self.transaction("update price settings"):
            row = self._settings_row()
            if usd_exchange_rate is not None:
                row.usd_exchange_rate = usd_exchange_rate
            if inflation_factor is not None:
                row.inflation_factor = inflation_factor
            row.updated_by = updated_by
            row.last_updated = datetime.now()
            self._session.flush()
            settings = _settings_from_row(row)
        return settings

    def apply_global_price_adjustment(
        self,
        factor: Decimal | float | str,
        applied_by: str | None = None,
        timeout_seconds: float | None = None,
    ) -> PriceAdjustmentResult:
        """Multiply every catalog price by ``factor`` in place.

        All rows are rewritten in a single transaction together with the
        settings stamp and the audit log entry. Any failure, including the
        deadline, rolls everything back.

        Raises:
            ValidationError: If ``factor`` is not positive at 4 decimal places.
            OperationTimeoutError: If the deadline passes before commit.
            PersistenceError: If the store fails.
        """
        factor = stored_factor("Adjustment factor", factor)

        deadline = Deadline(timeout_seconds)
        applied_at = datetime.now()
        with self.transaction("global price adjustment"):
            self._set_statement_timeout(timeout_seconds)
            rows = self._session.execute(
                select(MaterialRow).order_by(MaterialRow.id).with_for_update()
            ).scalars().all()
            for row in rows:
                deadline.check("global price adjustment")
                row.price = adjusted_price(to_decimal(row.price), factor)
                row.last_updated = applied_at

            settings_row = self._settings_row()
            # the settings row keeps the last applied factor; the log keeps the history
            settings_row.global_adjustment_factor = factor
            settings_row.updated_by = applied_by
            settings_row.last_updated = applied_at
            self._session.add(
                PriceAdjustmentLogRow(
                    factor=factor,
                    affected_materials=len(rows),
                    applied_by=applied_by,
                    applied_at=applied_at,
                )
            )
            self._session.flush()
            deadline.check("global price adjustment")

        logger.info(
            "Applied global price adjustment x%s to %d materials (by %s)",
            factor,
            len(rows),
            applied_by,
        )
        return PriceAdjustmentResult(
            affected_materials=len(rows),
            factor=factor,
            applied_by=applied_by,
            applied_at=applied_at,
        )

    def list_price_adjustments(self) -> list[PriceAdjustmentResult]:
        with self._reading("list price adjustments"):
            rows = self._session.execute(
                select(PriceAdjustmentLogRow).order_by(PriceAdjustmentLogRow.id)
            ).scalars()
            return [
                PriceAdjustmentResult(
                    affected_materials=row.affected_materials,
                    factor=to_decimal(row.factor),
                    applied_by=row.applied_by,
                    applied_at=row.applied_at,
                )
                for row in rows
            ]

    # ------------------------------------------------------------------
    # User overrides
    # ------------------------------------------------------------------

    def save_user_price_override(
        self,
        user_id: int,
        material_name: str,
        unit: str,
        price: Decimal,
    ) -> UserPriceOverride:
        """Record (or replace) a user's personal price for a material.

        The price is stored in cents and must stay positive after rounding.
        Returns the override as stored.
        """
        try:
            stored_price = round_money(to_decimal(price))
        except (ArithmeticError, TypeError) as exc:
            msg = f"Override price must be a number, got {price!r}"
            raise ValidationError(msg) from exc
        if not stored_price.is_finite() or stored_price <= 0:
            msg = f"Override price must be at least 0.01, got {price}"
            raise ValidationError(msg)
        override = UserPriceOverride(
            user_id=user_id, material_name=material_name, unit=unit, price=stored_price
        )
        name_key, unit_key = override.key
        with self.transaction("save user price override"):
            row = self._session.execute(
                select(UserMaterialPriceRow).where(
                    UserMaterialPriceRow.user_id == user_id,
                    UserMaterialPriceRow.name_key == name_key,
                    UserMaterialPriceRow.unit_key == unit_key,
                )
            ).scalar_one_or_none()
            if row is None:
                row = UserMaterialPriceRow(user_id=user_id, name_key=name_key, unit_key=unit_key)
                self._session.add(row)
            row.material_name = material_name
            row.unit = unit
            row.price = override.price
            row.updated_at = datetime.now()
        return override

    def get_user_overrides(self, user_id: int) -> list[UserPriceOverride]:
        with self._reading("get user overrides"):
            rows = self._session.execute(
                select(UserMaterialPriceRow)
                .where(UserMaterialPriceRow.user_id == user_id)
                .order_by(UserMaterialPriceRow.id)
            ).scalars()
            return [
                UserPriceOverride(
                    user_id=row.user_id,
                    material_name=row.material_name,
                    unit=row.unit,
                    price=to_decimal(row.price),
                )
                for row in rows
            ]

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create_project(
        self,
        name: str,
        rates: IndirectCostRates | None = None,
        client: str | None = None,
        location: str | None = None,
    ) -> int:
        rates = rates or IndirectCostRates()
        with self.transaction("create project"):
            row = ProjectRow(name=name, client=client, location=location, **rates.model_dump())
            self._session.add(row)
            self._session.flush()
            project_id = row.id
        return project_id

    def get_project_rates(self, project_id: int) -> IndirectCostRates:
        with self._reading("get project rates"):
            row = self._session.get(ProjectRow, project_id)
        if row is None:
            msg = f"Project {project_id} not found"
            raise NotFoundError(msg)
        return IndirectCostRates(
            equipment_percentage=to_decimal(row.equipment_percentage),
            administrative_percentage=to_decimal(row.administrative_percentage),
            utility_percentage=to_decimal(row.utility_percentage),
            tax_percentage=to_decimal(row.tax_percentage),
            social_charges_percentage=to_decimal(row.social_charges_percentage),
        )


# ---------------------------------------------------------------------------
# Row <-> model conversion
# ---------------------------------------------------------------------------


def _activity_from_row(row: ActivityRow) -> Activity:
    return Activity(
        id=row.id,
        name=row.name,
        unit=row.unit,
        phase=row.phase,
        description=row.description,
        unit_price=to_decimal(row.unit_price if row.unit_price is not None else 0),
    )


def _material_from_row(row: MaterialRow) -> Material:
    return Material(
        id=row.id,
        name=row.name,
        unit=row.unit,
        price=to_decimal(row.price),
        category=row.category,
        description=row.description,
    )


def _city_factor_from_row(row: CityPriceFactorRow) -> CityPriceFactor:
    return CityPriceFactor(
        city=row.city,
        country=row.country,
        materials_factor=to_decimal(row.materials_factor),
        labor_factor=to_decimal(row.labor_factor),
        equipment_factor=to_decimal(row.equipment_factor),
        transport_factor=to_decimal(row.transport_factor),
    )


def _settings_from_row(row: PriceSettingsRow) -> PriceSettings:
    return PriceSettings(
        usd_exchange_rate=to_decimal(row.usd_exchange_rate),
        inflation_factor=to_decimal(row.inflation_factor),
        global_adjustment_factor=to_decimal(row.global_adjustment_factor),
        updated_by=row.updated_by,
        last_updated=row.last_updated,
    )


def _component_from_row(row: ActivityCompositionRow) -> CostComponent:
    if row.kind == ComponentKind.EQUIPMENT:
        return PercentageMarkup(
            activity_id=row.activity_id,
            description=row.description,
            unit=row.unit,
            percentage=to_decimal(row.quantity),
        )
    return DirectLineItem(
        kind=row.kind,
        activity_id=row.activity_id,
        description=row.description,
        unit=row.unit,
        quantity=to_decimal(row.quantity),
        unit_cost=to_decimal(row.unit_cost),
        material_ref=row.material_id,
    )


def _component_to_row(component: CostComponent) -> ActivityCompositionRow:
    if isinstance(component, PercentageMarkup):
        return ActivityCompositionRow(
            activity_id=component.activity_id,
            material_id=None,
            kind=ComponentKind.EQUIPMENT.value,
            description=component.description,
            unit=component.unit,
            quantity=component.percentage,
            unit_cost=Decimal("0"),
        )
    return ActivityCompositionRow(
        activity_id=component.activity_id,
        material_id=component.material_ref,
        kind=component.kind,
        description=component.description,
        unit=component.unit,
        quantity=component.quantity,
        unit_cost=component.unit_cost,
    )


__all__ = [
    "ActivitySnapshot",
    "Deadline",
    "PricingStore",
    "adjusted_price",
    "stored_factor",
]
