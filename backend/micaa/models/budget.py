"""Budget assembly models: activity unit prices times quantities."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from micaa.models.pricing import PricingWarning


class BudgetLineRequest(BaseModel):
    """One requested budget line: an activity and how many units of it."""

    activity_id: int = Field(gt=0)
    quantity: Decimal = Field(gt=0)


class BudgetLine(BaseModel):
    activity_id: int
    activity_name: str
    unit: str
    quantity: Decimal
    unit_price: Decimal
    subtotal: Decimal
    warnings: list[PricingWarning] = Field(default_factory=list)


class BudgetSummary(BaseModel):
    """A priced budget. ``total`` is the sum of the rounded line subtotals."""

    lines: list[BudgetLine]
    total: Decimal
    city: str | None = None
    country: str | None = None
    generated_at: datetime = Field(default_factory=datetime.now)

    @property
    def needs_review(self) -> bool:
        return any(line.warnings for line in self.lines)

    def to_summary_dict(self) -> dict[str, Any]:
        from micaa.formatting import format_bs

        return {
            "num_lines": len(self.lines),
            "total_formatted": format_bs(self.total),
            "needs_review": self.needs_review,
            "location": f"{self.city}, {self.country}" if self.city else None,
            "lines": [
                {
                    "activity_name": line.activity_name,
                    "quantity": f"{line.quantity} {line.unit}",
                    "unit_price_formatted": format_bs(line.unit_price),
                    "subtotal_formatted": format_bs(line.subtotal),
                }
                for line in self.lines
            ],
            "generated_at_formatted": self.generated_at.strftime("%Y-%m-%d %H:%M"),
        }
