"""Dependency injection for FastAPI endpoints."""

from __future__ import annotations

import logging
from collections.abc import Iterator

from fastapi import Depends, Header, HTTPException, Request
from pydantic import BaseModel

from micaa.db.store import PricingStore
from micaa.models.enums import UserRole
from micaa.service import PricingService

logger = logging.getLogger(__name__)


class Actor(BaseModel):
    """The user on whose behalf a request runs."""

    user_id: int
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def label(self) -> str:
        return f"user:{self.user_id}"


def get_store(request: Request) -> Iterator[PricingStore]:
    """Yield a store bound to a fresh session; close it after the request."""
    session = request.app.state.session_factory()
    try:
        yield PricingStore(session)
    finally:
        session.close()


def get_service(store: PricingStore = Depends(get_store)) -> PricingService:
    return PricingService(store)


def get_optional_actor(
    x_user_id: int | None = Header(default=None),
    x_user_role: UserRole = Header(default=UserRole.USER),
) -> Actor | None:
    if x_user_id is None:
        return None
    return Actor(user_id=x_user_id, role=x_user_role)


def require_actor(actor: Actor | None = Depends(get_optional_actor)) -> Actor:
    if actor is None:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    return actor


def require_admin(actor: Actor = Depends(require_actor)) -> Actor:
    if not actor.is_admin:
        logger.warning("User %s denied access to an admin action", actor.user_id)
        raise HTTPException(status_code=403, detail="Administrator role required")
    return actor
