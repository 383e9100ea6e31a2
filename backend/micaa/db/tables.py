from decimal import Decimal

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from micaa.db.base import Base


class ActivityRow(Base):
    __tablename__ = "activities"

    id = Column(Integer, primary_key=True)
    name = Column(String(256), nullable=False)
    unit = Column(String(16), nullable=False)
    phase = Column(String(128))
    description = Column(Text)
    unit_price = Column(Numeric(10, 2), nullable=False, default=0)
    price_computed_at = Column(DateTime)

    compositions = relationship(
        "ActivityCompositionRow",
        back_populates="activity",
        cascade="all, delete-orphan",
    )


class MaterialRow(Base):
    __tablename__ = "materials"

    id = Column(Integer, primary_key=True)
    name = Column(String(256), nullable=False)
    unit = Column(String(16), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    category = Column(String(128))
    description = Column(Text)
    last_updated = Column(DateTime, server_default=func.now())


class ActivityCompositionRow(Base):
    __tablename__ = "activity_compositions"

    id = Column(Integer, primary_key=True)
    activity_id = Column(
        Integer, ForeignKey("activities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # no FK: a dangling reference is an expected state, resolved at pricing time
    material_id = Column(Integer)
    kind = Column(String(16), nullable=False)
    description = Column(String(256), nullable=False, default="")
    unit = Column(String(16), nullable=False, default="")
    # for kind == "equipment" this column holds the markup percentage
    quantity = Column(Numeric(10, 4), nullable=False)
    unit_cost = Column(Numeric(10, 2), nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())

    activity = relationship("ActivityRow", back_populates="compositions")


class PriceSettingsRow(Base):
    __tablename__ = "price_settings"

    id = Column(Integer, primary_key=True)
    usd_exchange_rate = Column(Numeric(10, 4), nullable=False, default=Decimal("6.9600"))
    inflation_factor = Column(Numeric(10, 4), nullable=False, default=1)
    global_adjustment_factor = Column(Numeric(10, 4), nullable=False, default=1)
    last_updated = Column(DateTime, server_default=func.now())
    updated_by = Column(String(64))


class PriceAdjustmentLogRow(Base):
    __tablename__ = "price_adjustment_log"

    id = Column(Integer, primary_key=True)
    factor = Column(Numeric(10, 4), nullable=False)
    affected_materials = Column(Integer, nullable=False)
    applied_by = Column(String(64))
    applied_at = Column(DateTime, nullable=False)


class CityPriceFactorRow(Base):
    __tablename__ = "city_price_factors"
    __table_args__ = (UniqueConstraint("city_key", "country_key"),)

    id = Column(Integer, primary_key=True)
    city = Column(String(128), nullable=False)
    country = Column(String(128), nullable=False)
    city_key = Column(String(128), nullable=False)
    country_key = Column(String(128), nullable=False)
    materials_factor = Column(Numeric(10, 4), nullable=False, default=1)
    labor_factor = Column(Numeric(10, 4), nullable=False, default=1)
    equipment_factor = Column(Numeric(10, 4), nullable=False, default=1)
    transport_factor = Column(Numeric(10, 4), nullable=False, default=1)


class UserMaterialPriceRow(Base):
    __tablename__ = "user_material_prices"
    __table_args__ = (UniqueConstraint("user_id", "name_key", "unit_key"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    material_name = Column(String(256), nullable=False)
    unit = Column(String(16), nullable=False)
    name_key = Column(String(256), nullable=False)
    unit_key = Column(String(16), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    updated_at = Column(DateTime)


class ProjectRow(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True)
    name = Column(String(256), nullable=False)
    client = Column(String(256))
    location = Column(String(256))
    equipment_percentage = Column(Numeric(5, 2), nullable=False, default=5)
    administrative_percentage = Column(Numeric(5, 2), nullable=False, default=8)
    utility_percentage = Column(Numeric(5, 2), nullable=False, default=15)
    tax_percentage = Column(Numeric(5, 2), nullable=False, default=Decimal("3.09"))
    social_charges_percentage = Column(Numeric(5, 2), nullable=False, default=Decimal("71.18"))
