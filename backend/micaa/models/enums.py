"""Enums for the MICAA domain models."""

from enum import StrEnum


class ComponentKind(StrEnum):
    """Kind of a line in an activity's composition."""

    MATERIAL = "material"
    LABOR = "labor"
    EQUIPMENT = "equipment"


class PriceSource(StrEnum):
    """Where a component's effective unit cost came from."""

    LITERAL = "literal"
    CATALOG = "catalog"
    USER_OVERRIDE = "user_override"
    UNRESOLVED_FALLBACK = "unresolved_fallback"


class WarningCode(StrEnum):
    """Non-fatal conditions attached to a computed price."""

    UNRESOLVED_REFERENCE = "unresolved_reference"
    MISSING_CITY_FACTOR = "missing_city_factor"
    MULTIPLE_EQUIPMENT_MARKUPS = "multiple_equipment_markups"


class EquipmentRateSource(StrEnum):
    """Which rate fed the equipment markup."""

    COMPOSITION = "composition"
    PROJECT_RATES = "project_rates"


class UserRole(StrEnum):
    ADMIN = "admin"
    USER = "user"
