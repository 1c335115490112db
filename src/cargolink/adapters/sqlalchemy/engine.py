"""Engine construction helpers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine, event

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection, Engine


def configure_sqlite(engine: Engine) -> Engine:
    """Enable foreign keys and real SAVEPOINT support on a pysqlite engine.

    pysqlite defers BEGIN until the first DML statement, which turns a leading
    SAVEPOINT into the outer transaction. Taking over BEGIN makes nested
    transactions behave as on other backends.
    """

    if engine.dialect.name != "sqlite":
        return engine

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        _ = connection_record
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def on_begin(connection: Connection) -> None:
        connection.exec_driver_sql("BEGIN")

    return engine


def create_database_engine(database_uri: str) -> Engine:
    return configure_sqlite(create_engine(database_uri, future=True))
