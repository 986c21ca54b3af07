import logging

from sqlalchemy import text
from sqlalchemy.engine import Connection


log = logging.getLogger(__name__)

RELAX_CONSTRAINTS = {
    "postgresql": "SET CONSTRAINTS ALL DEFERRED",
    "sqlite": "PRAGMA defer_foreign_keys = ON",
}


def relax_constraints(connection: Connection) -> None:
    """Defer foreign key checks to commit so statements may run in any order within the transaction."""
    statement = RELAX_CONSTRAINTS.get(connection.dialect.name)
    if statement is None:
        log.warning("Do not know how to defer constraints on %s", connection.dialect.name)
        return
    connection.execute(text(statement))
