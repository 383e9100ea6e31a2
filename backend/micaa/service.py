"""Pricing service: the entry points budget assembly and the API call.

Wraps the store, the engine and the geographic layer:

- ``get_unit_price`` prices an activity for an acting user and optionally a
  city, without writing anything.
- ``recompute_and_persist`` is the single place that refreshes the cached
  ``Activity.unit_price``. The cached price is the catalog view: no user
  overrides and no city adjustment.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from micaa.db.store import Deadline
from micaa.engine import ApuEngine
from micaa.exceptions import ValidationError
from micaa.geographic import apply_geographic_adjustment
from micaa.models.budget import BudgetLine, BudgetSummary
from micaa.models.pricing import IndirectCostRates, PricingContext
from micaa.money import ZERO, round_money

if TYPE_CHECKING:
    from collections.abc import Iterable
    from decimal import Decimal

    from micaa.db.store import PricingStore
    from micaa.models.budget import BudgetLineRequest
    from micaa.models.pricing import CostBreakdown

logger = logging.getLogger(__name__)


class PricingService:
    """Prices activities and budgets against the persistent store.

    Args:
        store: The store bound to the current request's session.
    """

    def __init__(self, store: PricingStore) -> None:
        self._store = store

    def build_context(
        self,
        user_id: int | None = None,
        project_id: int | None = None,
    ) -> PricingContext:
        """Snapshot settings, the user's overrides and the project's rates."""
        settings = self._store.get_price_settings()
        overrides = self._store.get_user_overrides(user_id) if user_id is not None else []
        rates = (
            self._store.get_project_rates(project_id)
            if project_id is not None
            else IndirectCostRates()
        )
        return PricingContext(user_id=user_id, settings=settings, overrides=overrides, rates=rates)

    def get_unit_price(
        self,
        activity_id: int,
        context: PricingContext,
        city: str | None = None,
        country: str | None = None,
    ) -> CostBreakdown:
        """Price one unit of an activity for ``context``.

        When ``city`` is given the breakdown is adjusted to that city; an
        unconfigured city yields the base price with a warning.
        """
        snapshot = self._store.load_activity_snapshot(activity_id)
        engine = ApuEngine(snapshot.catalog())
        breakdown = engine.compute_unit_price(
            activity_id, snapshot.components, context.rates, context
        )
        if city is None:
            return breakdown
        if not country:
            msg = "country is required when a city is given"
            raise ValidationError(msg)
        city_factor = self._store.get_city_factor(city, country)
        return apply_geographic_adjustment(breakdown, city, country, city_factor)

    def recompute_and_persist(
        self,
        activity_id: int,
        rates: IndirectCostRates | None = None,
    ) -> Decimal:
        """Recompute an activity's unit price and store it as the cached price.

        Idempotent: with unchanged inputs the stored value does not change.
        """
        context = PricingContext(
            settings=self._store.get_price_settings(),
            rates=rates or IndirectCostRates(),
        )
        breakdown = self.get_unit_price(activity_id, context)
        price = self._store.update_activity_price(activity_id, breakdown.total_unit_price)
        logger.info("Recomputed activity %s unit price: %s", activity_id, price)
        return price

    def recompute_all(self, timeout_seconds: float | None = None) -> int:
        """Refresh every activity's cached price in one transaction.

        Returns the number of activities refreshed. If the deadline passes,
        nothing is written.
        """
        deadline = Deadline(timeout_seconds)
        with self._store.transaction("mass recompute"):
            context = PricingContext(settings=self._store.get_price_settings())
            activity_ids = self._store.list_activity_ids()
            for activity_id in activity_ids:
                deadline.check("mass recompute")
                breakdown = self.get_unit_price(activity_id, context)
                self._store.update_activity_price(activity_id, breakdown.total_unit_price)
            deadline.check("mass recompute")
        logger.info("Recomputed unit prices for %d activities", len(activity_ids))
        return len(activity_ids)

    def estimate_budget(
        self,
        lines: Iterable[BudgetLineRequest],
        context: PricingContext,
        city: str | None = None,
        country: str | None = None,
    ) -> BudgetSummary:
        """Price a list of ``(activity, quantity)`` lines.

        Each subtotal is rounded to cents; the total is their sum.
        """
        budget_lines: list[BudgetLine] = []
        total = ZERO
        for request in lines:
            activity = self._store.get_activity(request.activity_id)
            breakdown = self.get_unit_price(request.activity_id, context, city, country)
            subtotal = round_money(request.quantity * breakdown.total_unit_price)
            total += subtotal
            budget_lines.append(
                BudgetLine(
                    activity_id=activity.id,
                    activity_name=activity.name,
                    unit=activity.unit,
                    quantity=request.quantity,
                    unit_price=breakdown.total_unit_price,
                    subtotal=subtotal,
                    warnings=breakdown.warnings,
                )
            )
        return BudgetSummary(lines=budget_lines, total=total, city=city, country=country)
