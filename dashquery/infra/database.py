"""
Query executor over tenant databases - PostgreSQL and MySQL.

Thin adapter over SQLAlchemy: the guard owns safety, this module owns
timeouts, the fetch cap, error classification and in-flight cancellation.
"""

from typing import Any, Callable, Dict, List, Optional

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from dashquery.config.settings import ConnectionConfig, settings
from dashquery.sql.guard import apply_execution_hint
from dashquery.utils.cancellation import CancellationToken
from dashquery.utils.errors import ExecutionError, QueryTimeoutError, RequestCancelled

_DRIVERS = {
    "postgresql": "postgresql+psycopg2",
    "mysql": "mysql+pymysql",
}

# Lower-cased fragments of driver messages that mean "took too long"
_TIMEOUT_MARKERS = (
    "canceling statement due to statement timeout",
    "maximum statement execution time exceeded",
    "max_execution_time",
    "timeout expired",
    "timed out",
    "lost connection to mysql server during query",
)


def build_engine_url(config: ConnectionConfig) -> URL:
    """SQLAlchemy URL for a resolved connection."""
    return URL.create(
        drivername=_DRIVERS[config.dialect],
        username=config.username,
        password=config.password,
        host=config.host,
        port=config.port,
        database=config.database,
    )


def build_connect_args(config: ConnectionConfig, connect_timeout_s: int, statement_timeout_ms: int) -> Dict[str, Any]:
    """
    Driver-level connect arguments.

    The statement timeout here is a connection-wide ceiling; each attempt
    also sets its own (possibly shorter) timeout before running.
    """
    if config.dialect == "postgresql":
        args: Dict[str, Any] = {
            "connect_timeout": int(connect_timeout_s),
            "options": f"-c statement_timeout={int(statement_timeout_ms)}",
        }
        if config.ssl:
            args["sslmode"] = "require"
        return args

    # pymysql: read_timeout bounds a hung socket read (seconds)
    args = {
        "connect_timeout": int(connect_timeout_s),
        "read_timeout": int(statement_timeout_ms / 1000) + 5,
        "charset": "utf8mb4",
    }
    if config.ssl:
        # No CA given: encrypted, certificate not verified
        args["ssl"] = {"check_hostname": False}
    return args


def is_timeout_error(message: str) -> bool:
    low = (message or "").lower()
    return any(marker in low for marker in _TIMEOUT_MARKERS)


class QueryExecutor:
    """
    Runs guarded statements against one tenant database.

    Use one executor per widget. The engine uses NullPool, so every attempt
    opens and closes its own connection and nothing is shared across widgets.
    """

    def __init__(
        self,
        config: ConnectionConfig,
        max_rows: Optional[int] = None,
        statement_timeout_ms: Optional[int] = None,
        connect_timeout_s: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        self.config = config
        self.max_rows = int(max_rows or settings.sql_max_rows)
        self.statement_timeout_ms = int(statement_timeout_ms or settings.sql_statement_timeout_ms)
        self.cancel_token = cancel_token
        self.engine: Engine = create_engine(
            build_engine_url(config),
            poolclass=NullPool,
            connect_args=build_connect_args(
                config,
                connect_timeout_s or settings.sql_connect_timeout_s,
                self.statement_timeout_ms,
            ),
        )
        logger.debug(f"Executor ready for {config.describe()}")

    def execute(self, sql: str, timeout_ms: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Execute a guarded statement and return at most ``max_rows`` rows as dicts.

        Raises:
            QueryTimeoutError: statement or connect timeout
            ExecutionError: any other driver/network/syntax failure
            RequestCancelled: the request was cancelled before or during the call
        """
        timeout = min(int(timeout_ms or self.statement_timeout_ms), self.statement_timeout_ms)
        statement = apply_execution_hint(sql, self.config.dialect, timeout)

        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()

        try:
            with self.engine.connect() as conn:
                self._prepare(conn, timeout)
                unregister = self._watch_for_cancel(conn)
                try:
                    result = conn.execution_options(no_parameters=True).exec_driver_sql(statement)
                    rows = [dict(row._mapping) for row in result.fetchmany(self.max_rows)]
                finally:
                    unregister()
        except SQLAlchemyError as e:
            message = str(getattr(e, "orig", None) or e).strip()
            if self.cancel_token is not None and self.cancel_token.cancelled:
                raise RequestCancelled("Request was cancelled.") from e
            if is_timeout_error(message):
                logger.warning(f"Query timed out after {timeout} ms: {sql[:200]}")
                raise QueryTimeoutError(f"Query timed out after {timeout} ms: {message}") from e
            logger.error(f"Query execution failed: {message}")
            logger.error(f"Failed query: {sql[:200]}")
            raise ExecutionError(message) from e

        logger.success(f"Query executed successfully, returned {len(rows)} rows")
        return rows

    def _prepare(self, conn: Connection, timeout_ms: int) -> None:
        """Per-attempt session settings: read-only where supported, attempt timeout."""
        if self.config.dialect == "postgresql":
            conn.execution_options(postgresql_readonly=True)
            conn.exec_driver_sql(f"SET statement_timeout = {int(timeout_ms)}")
        else:
            conn.exec_driver_sql(f"SET SESSION MAX_EXECUTION_TIME = {int(timeout_ms)}")

    def _watch_for_cancel(self, conn: Connection) -> Callable[[], None]:
        if self.cancel_token is None:
            return lambda: None

        dbapi_conn = conn.connection.dbapi_connection
        if self.config.dialect == "postgresql":
            return self.cancel_token.register(dbapi_conn.cancel)

        thread_id = dbapi_conn.thread_id()
        return self.cancel_token.register(lambda: self._kill_mysql_query(thread_id))

    def _kill_mysql_query(self, thread_id: int) -> None:
        """Interrupt a running MySQL statement from a side connection."""
        with self.engine.connect() as side:
            side.exec_driver_sql(f"KILL QUERY {int(thread_id)}")
        logger.info(f"Sent KILL QUERY for MySQL thread {thread_id}")

    def dispose(self) -> None:
        self.engine.dispose()

    def __repr__(self) -> str:
        return f"<QueryExecutor target={self.config.describe()} max_rows={self.max_rows}>"
