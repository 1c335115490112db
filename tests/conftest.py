from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from cargolink.adapters.sqlalchemy import configure_sqlite, create_all_tables, start_mappers
from cargolink.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyIngestUnitOfWork,
    shutdown,
    startup,
)
from cargolink.config import IngestConfig

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = configure_sqlite(create_engine("sqlite+pysqlite:///:memory:", future=True))
    start_mappers()
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True, expire_on_commit=False)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyIngestUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    # small chunks so multi-chunk paths run in every test
    config = IngestConfig(upsert_chunk_size=2, link_chunk_size=2)

    def factory() -> SqlAlchemyIngestUnitOfWork:
        return SqlAlchemyIngestUnitOfWork(config=config)

    try:
        yield factory
    finally:
        shutdown()
