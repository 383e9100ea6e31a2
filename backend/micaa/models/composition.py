"""Composition models: the lines that make up one activity's APU.

A composition mixes two different things, so they are two different types:

- ``DirectLineItem`` — a material or labor line priced as
  ``quantity * unit cost``.
- ``PercentageMarkup`` — an equipment/tools markup expressed as a percentage
  of the direct cost.

``CostComponent`` is the discriminated union of both, keyed on ``kind``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Literal

from pydantic import BaseModel, Field, TypeAdapter

from micaa.models.enums import ComponentKind


class DirectLineItem(BaseModel):
    """A material or labor line: consumption per unit of activity times cost."""

    kind: Literal["material", "labor"]
    activity_id: int = Field(gt=0)
    description: str = ""
    unit: str = ""
    quantity: Decimal = Field(ge=0, description="Yield per one unit of the activity")
    unit_cost: Decimal = Field(ge=0, description="Literal cost per unit of quantity")
    material_ref: int | None = None

    @property
    def is_labor(self) -> bool:
        return self.kind == ComponentKind.LABOR


class PercentageMarkup(BaseModel):
    """Equipment/tools markup applied to the direct cost of the activity."""

    kind: Literal["equipment"] = "equipment"
    activity_id: int = Field(gt=0)
    description: str = "Tools and equipment"
    unit: str = "%"
    percentage: Decimal = Field(ge=0, le=100)


CostComponent = Annotated[
    DirectLineItem | PercentageMarkup,
    Field(discriminator="kind"),
]

COMPOSITION_ADAPTER: TypeAdapter[list[CostComponent]] = TypeAdapter(
    list[CostComponent]
)


def parse_composition(data: list[dict[str, object]]) -> list[CostComponent]:
    """Validate raw dicts (e.g. from JSON) into typed composition lines."""
    return COMPOSITION_ADAPTER.validate_python(data)


class Activity(BaseModel):
    """A unit of construction work priced through its composition.

    ``unit_price`` is a cached value: it is only as fresh as the last explicit
    recompute of the activity.
    """

    id: int
    name: str
    unit: str
    phase: str | None = None
    description: str | None = None
    unit_price: Decimal = Decimal("0")
