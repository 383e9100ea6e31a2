"""Shared fixtures: an in-memory SQLite store, empty or seeded."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import micaa.db.tables  # noqa: F401 (registers tables on Base)
from micaa.db.base import Base
from micaa.db.store import PricingStore
from micaa.factory import load_seed_data


@pytest.fixture()
def session_factory() -> Iterator[sessionmaker[Session]]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture()
def session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    with session_factory() as s:
        yield s


@pytest.fixture()
def store(session: Session) -> PricingStore:
    return PricingStore(session)


@pytest.fixture()
def seeded_store(store: PricingStore) -> PricingStore:
    """Store loaded with the seed catalog, two APUs and city factors.

    On a fresh database the assigned ids match the seed ids: materials 1-8,
    activity 1 (manual excavation) and activity 2 (adobe brick foundation).
    """
    load_seed_data(store)
    return store
