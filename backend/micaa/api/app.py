"""FastAPI application — create_app factory with /api endpoints."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from micaa.api.deps import (
    Actor,
    get_optional_actor,
    get_service,
    get_store,
    require_actor,
    require_admin,
)
from micaa.core.config import settings
from micaa.db.store import PricingStore  # noqa: TCH001 (FastAPI resolves at runtime)
from micaa.exceptions import NotFoundError, PersistenceError, ValidationError
from micaa.models.budget import BudgetLineRequest
from micaa.models.composition import CostComponent  # noqa: TCH001
from micaa.models.pricing import CityPriceFactor
from micaa.service import PricingService  # noqa: TCH001

if TYPE_CHECKING:
    from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY = "Bolivia"


class PriceSettingsUpdate(BaseModel):
    usd_exchange_rate: Decimal | None = None
    inflation_factor: Decimal | None = None


class PriceAdjustmentRequest(BaseModel):
    factor: Decimal


class UserMaterialPriceRequest(BaseModel):
    material_name: str = Field(min_length=1)
    unit: str
    price: Decimal = Field(gt=0)


class BudgetEstimateRequest(BaseModel):
    lines: list[BudgetLineRequest] = Field(min_length=1)
    city: str | None = None
    country: str = DEFAULT_COUNTRY
    project_id: int | None = None


def create_app(
    *,
    session_factory: sessionmaker[Session] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    session_factory
        Optional session factory for dependency injection (e.g. tests with an
        in-memory database). Defaults to the configured ``SessionLocal``.
    """
    app = FastAPI(title="MICAA Pricing", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if session_factory is None:
        from micaa.db.session import SessionLocal, init_db

        init_db()
        session_factory = SessionLocal
    app.state.session_factory = session_factory

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(PersistenceError)
    async def _persistence_error(request: Request, exc: PersistenceError) -> JSONResponse:
        logger.error("Store error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    # ------------------------------------------------------------------
    # GET /api/health
    # ------------------------------------------------------------------

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": "0.1.0"}

    # ------------------------------------------------------------------
    # Activities
    # ------------------------------------------------------------------

    @app.get("/api/activities/{activity_id}/composition")
    def get_composition(
        activity_id: int,
        store: PricingStore = Depends(get_store),
    ) -> dict[str, Any]:
        activity = store.get_activity(activity_id)
        components = store.get_composition(activity_id)
        return {
            "activity": activity.model_dump(mode="json"),
            "components": [c.model_dump(mode="json") for c in components],
        }

    @app.put("/api/activities/{activity_id}/composition")
    def save_composition(
        activity_id: int,
        components: list[CostComponent],
        store: PricingStore = Depends(get_store),
        actor: Actor = Depends(require_actor),
    ) -> dict[str, Any]:
        saved = store.save_composition(activity_id, components)
        logger.info("User %s replaced composition of activity %s", actor.user_id, activity_id)
        # the cached unit price stays stale until the next explicit recompute
        return {"activity_id": activity_id, "saved": len(saved)}

    @app.get("/api/activities/{activity_id}/price")
    def get_price(
        activity_id: int,
        city: str | None = Query(default=None),
        country: str = Query(default=DEFAULT_COUNTRY),
        project_id: int | None = Query(default=None),
        service: PricingService = Depends(get_service),
        actor: Actor | None = Depends(get_optional_actor),
    ) -> dict[str, Any]:
        context = service.build_context(
            user_id=actor.user_id if actor else None, project_id=project_id
        )
        breakdown = service.get_unit_price(activity_id, context, city=city, country=country)
        return {
            "breakdown": breakdown.model_dump(mode="json"),
            "summary_dict": breakdown.to_summary_dict(context.settings),
        }

    @app.post("/api/activities/{activity_id}/recompute")
    def recompute(
        activity_id: int,
        service: PricingService = Depends(get_service),
        actor: Actor = Depends(require_actor),
    ) -> dict[str, Any]:
        price = service.recompute_and_persist(activity_id)
        return {"activity_id": activity_id, "unit_price": str(price)}

    @app.post("/api/activities/recompute-all")
    def recompute_all(
        service: PricingService = Depends(get_service),
        actor: Actor = Depends(require_admin),
    ) -> dict[str, int]:
        count = service.recompute_all(timeout_seconds=settings.BULK_OPERATION_TIMEOUT_SECONDS)
        return {"recomputed": count}

    # ------------------------------------------------------------------
    # Materials and overrides
    # ------------------------------------------------------------------

    @app.get("/api/materials/search")
    def search_materials(
        q: str = Query(min_length=1),
        store: PricingStore = Depends(get_store),
    ) -> list[dict[str, Any]]:
        return [m.model_dump(mode="json") for m in store.search_materials(q)]

    @app.post("/api/user-material-prices")
    def save_user_material_price(
        body: UserMaterialPriceRequest,
        store: PricingStore = Depends(get_store),
        actor: Actor = Depends(require_actor),
    ) -> dict[str, Any]:
        override = store.save_user_price_override(
            actor.user_id, body.material_name, body.unit, body.price
        )
        return override.model_dump(mode="json")

    # ------------------------------------------------------------------
    # Price settings (admin)
    # ------------------------------------------------------------------

    @app.get("/api/price-settings")
    def get_price_settings(
        store: PricingStore = Depends(get_store),
        actor: Actor = Depends(require_actor),
    ) -> dict[str, Any]:
        return store.get_price_settings().model_dump(mode="json")

    @app.put("/api/price-settings")
    def update_price_settings(
        body: PriceSettingsUpdate,
        store: PricingStore = Depends(get_store),
        actor: Actor = Depends(require_admin),
    ) -> dict[str, Any]:
        updated = store.update_price_settings(
            actor.label,
            usd_exchange_rate=body.usd_exchange_rate,
            inflation_factor=body.inflation_factor,
        )
        return updated.model_dump(mode="json")

    @app.post("/api/apply-price-adjustment")
    def apply_price_adjustment(
        body: PriceAdjustmentRequest,
        store: PricingStore = Depends(get_store),
        actor: Actor = Depends(require_admin),
    ) -> dict[str, Any]:
        result = store.apply_global_price_adjustment(
            body.factor,
            applied_by=actor.label,
            timeout_seconds=settings.BULK_OPERATION_TIMEOUT_SECONDS,
        )
        return result.model_dump(mode="json")

    # ------------------------------------------------------------------
    # City factors
    # ------------------------------------------------------------------

    @app.get("/api/city-factors/{country}/{city}")
    def get_city_factor(
        country: str,
        city: str,
        store: PricingStore = Depends(get_store),
    ) -> dict[str, Any]:
        factor = store.get_city_factor(city, country)
        return {
            "configured": factor is not None,
            "factor": (factor or CityPriceFactor(city=city, country=country)).model_dump(
                mode="json"
            ),
        }

    # ------------------------------------------------------------------
    # POST /api/budgets/estimate
    # ------------------------------------------------------------------

    @app.post("/api/budgets/estimate")
    def estimate_budget(
        body: BudgetEstimateRequest,
        service: PricingService = Depends(get_service),
        actor: Actor | None = Depends(get_optional_actor),
    ) -> dict[str, Any]:
        context = service.build_context(
            user_id=actor.user_id if actor else None, project_id=body.project_id
        )
        summary = service.estimate_budget(
            body.lines,
            context,
            city=body.city,
            country=body.country if body.city else None,
        )
        return {
            "budget": summary.model_dump(mode="json"),
            "summary_dict": summary.to_summary_dict(),
        }

    return app
