"""SQLAlchemy-backed unit of work for the ingest pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from sqlalchemy.orm import Session, sessionmaker

from cargolink.adapters.sqlalchemy.engine import create_database_engine
from cargolink.adapters.sqlalchemy.mappings import create_all_tables, start_mappers
from cargolink.adapters.sqlalchemy.repositories import (
    SqlAlchemyBookingRepository,
    SqlAlchemyContainerRepository,
    SqlAlchemyInvoiceRepository,
    SqlAlchemyOrderContainerRepository,
    SqlAlchemyOrderRepository,
)
from cargolink.config.queue import IngestConfig
from cargolink.config.storage import get_database_uri
from cargolink.domain.model import LinkUpdatePolicy
from cargolink.domain.ports.unit_of_work import IngestRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine


class StartupError(RuntimeError):
    """Raised when ingest storage is used before ``startup()`` or after ``shutdown()``."""


@dataclass(slots=True)
class _StorageState:
    engine: Engine | None = None
    session_factory: sessionmaker[Session] | None = None

    def bind(self, engine: Engine | None) -> None:
        self.engine = engine
        self.session_factory = (
            None if engine is None else sessionmaker(bind=engine, expire_on_commit=False)
        )

    def require_session_factory(self) -> sessionmaker[Session]:
        if self.session_factory is None:
            raise StartupError(
                "Ingest storage is not started. Call "
                "cargolink.adapters.sqlalchemy.unit_of_work.startup() first."
            )
        return self.session_factory


_STATE = _StorageState()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Map the entities, create missing tables and bind new sessions to ``engine``.

    Without an explicit engine one is built from ``database_uri`` or, failing
    that, from the configured ``DATABASE_URI``.
    """

    if _STATE.engine is not None and not force:
        raise StartupError("Ingest storage already started. Pass force=True to rebind.")

    resolved_engine = engine or create_database_engine(database_uri or get_database_uri())
    start_mappers()
    create_all_tables(resolved_engine)
    _STATE.bind(resolved_engine)


def is_started() -> bool:
    return _STATE.engine is not None


def shutdown() -> None:
    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.bind(None)


class SqlAlchemyIngestUnitOfWork:
    """One session around the upserts and links of a single ingest message.

    Leaving the block with an exception rolls back whatever was not committed;
    the session is closed either way.
    """

    def __init__(
        self,
        *,
        config: IngestConfig | None = None,
        link_policy: LinkUpdatePolicy = LinkUpdatePolicy.LAST_WRITE_WINS,
    ) -> None:
        self._session_factory = _STATE.require_session_factory()
        self.config = config or IngestConfig()
        self.link_policy = link_policy
        self._session: Session | None = None
        self._repositories: IngestRepositories | None = None

    def __enter__(self) -> SqlAlchemyIngestUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work is already open")
        self._session = self._session_factory()
        self._repositories = self._build_repositories(self._session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        if exc_type is not None:
            session.rollback()
        session.close()
        self._session = None
        self._repositories = None
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work is not open")
        return self._session

    @property
    def repositories(self) -> IngestRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work is not open")
        return self._repositories

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def _build_repositories(self, session: Session) -> IngestRepositories:
        chunk_size = self.config.upsert_chunk_size
        return IngestRepositories(
            bookings=SqlAlchemyBookingRepository(session, chunk_size=chunk_size),
            orders=SqlAlchemyOrderRepository(session, chunk_size=chunk_size),
            containers=SqlAlchemyContainerRepository(session, chunk_size=chunk_size),
            invoices=SqlAlchemyInvoiceRepository(session, chunk_size=chunk_size),
            links=SqlAlchemyOrderContainerRepository(
                session,
                policy=self.link_policy,
                chunk_size=self.config.link_chunk_size,
            ),
        )
