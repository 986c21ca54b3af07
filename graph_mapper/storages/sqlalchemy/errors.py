import logging
import typing

from sqlalchemy.exc import DBAPIError

from graph_mapper.errors import ErrorKind, StoreError, kind_for_sql_state


log = logging.getLogger(__name__)


def sql_state_of(error: DBAPIError) -> typing.Optional[str]:
    # psycopg2 exposes pgcode, psycopg 3 sqlstate
    original = error.orig
    return getattr(original, "pgcode", None) or getattr(original, "sqlstate", None)


def classify(error: DBAPIError) -> StoreError:
    sql_state = sql_state_of(error)
    if error.connection_invalidated:
        kind = ErrorKind.CONNECTION_UNAVAILABLE
    else:
        kind = kind_for_sql_state(sql_state)
    classified = StoreError(kind, sql_state, str(error.orig))
    classified.__cause__ = error
    log.debug("Classified %s (SQLSTATE %s) as %s", type(error).__name__, sql_state, kind.value)
    return classified
