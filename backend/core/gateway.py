"""
Query gateway: one SQLAlchemy engine per statement.
Opens a connection, executes a single statement, releases everything.
No pooling, no retries, no transaction state shared between checks.
"""
import logging
from decimal import Decimal
from typing import Any, Optional
from sqlalchemy import create_engine
from sqlalchemy.exc import NoSuchModuleError, SQLAlchemyError
from sqlalchemy.pool import NullPool

from core.errors import FatalEnvironmentError, QueryConnectionError
from core.results import EmptyResult, QueryResult, TabularResult
from models.precheck import Target

logger = logging.getLogger(__name__)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace").strip()
    if isinstance(value, Decimal) and value == value.to_integral_value():
        return str(int(value))
    return str(value).strip()


class QueryGateway:
    """Executes statements against a Target and returns tagged results."""

    def __init__(self, dialect: str = "db2+ibm_db", url_override: Optional[str] = None):
        self.dialect = dialect
        self.url_override = url_override or None

    def _create_engine(self, target: Target):
        url = make_target_url(target, self.dialect, self.url_override)
        try:
            return create_engine(url, poolclass=NullPool)
        except (NoSuchModuleError, ImportError) as e:
            raise FatalEnvironmentError(
                f"Database driver for '{url.drivername}' is not installed: {e}"
            ) from e

    def execute(self, target: Target, statement: str, with_headers: bool = False) -> QueryResult:
        engine = self._create_engine(target)
        try:
            with engine.connect() as conn:
                result = conn.exec_driver_sql(statement)
                if not result.returns_rows:
                    return EmptyResult()
                columns = tuple(str(k).upper() for k in result.keys()) if with_headers else ()
                rows = tuple(tuple(_cell(v) for v in row) for row in result)
        except SQLAlchemyError as e:
            logger.debug("Statement failed on %s: %s", target.database, e)
            raise QueryConnectionError(target.database, statement, e) from e
        finally:
            engine.dispose()
        if not rows:
            return EmptyResult(columns)
        return TabularResult(columns, rows)

    def call(self, target: Target, procedure: str, params: tuple) -> QueryResult:
        """Call a stored procedure through the DBAPI cursor and return its parameters as one row.

        OUT parameters only come back from `callproc`; `exec_driver_sql` sees no rows for them.
        """
        engine = self._create_engine(target)
        dbapi_error = engine.dialect.loaded_dbapi.Error
        try:
            with engine.connect() as conn:
                cursor = conn.connection.driver_connection.cursor()
                try:
                    values = cursor.callproc(procedure, params)
                finally:
                    cursor.close()
        except (SQLAlchemyError, dbapi_error) as e:
            logger.debug("Call to %s failed on %s: %s", procedure, target.database, e)
            raise QueryConnectionError(target.database, f"CALL {procedure}", e) from e
        finally:
            engine.dispose()
        if not values:
            return EmptyResult()
        return TabularResult((), (tuple(_cell(v) for v in values),))

    def check_driver(self, target: Target) -> None:
        """Raise FatalEnvironmentError if the SQLAlchemy dialect cannot be loaded."""
        self._create_engine(target).dispose()


def make_target_url(target: Target, dialect: str, url_override: Optional[str] = None):
    if url_override and not target.url:
        target = target.model_copy(update={"url": url_override})
    return target.get_sqlalchemy_url(dialect)
