import threading
import typing

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from graph_mapper.schema import Schema
from graph_mapper.storages.sqlalchemy.constructing_tables.visitor import TableConstructingVisitor
from graph_mapper.storages.sqlalchemy.registry import SaRegistry


Rows = typing.List[typing.Dict[str, typing.Any]]
Responder = typing.Callable[[typing.Any, typing.Any], Rows]


def compile_sql(statement: typing.Any) -> str:
    return str(statement.compile(dialect=postgresql.dialect()))


class FakePgError(Exception):
    def __init__(self, pgcode: str, message: str = "") -> None:
        super().__init__(message or pgcode)
        self.pgcode = pgcode


def database_error(pgcode: str, message: str = "") -> OperationalError:
    return OperationalError("COMMIT", {}, FakePgError(pgcode, message))


class FakeResult:
    def __init__(self, rows: Rows) -> None:
        self._rows = rows

    def mappings(self) -> Rows:
        return list(self._rows)


class FakeTransaction:
    def __init__(self, connection: "FakeConnection") -> None:
        self._connection = connection

    def __enter__(self) -> "FakeTransaction":
        self._connection.engine.events.append("begin")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self._connection.engine.commit(self._connection)
        else:
            self._connection.engine.events.append("rollback")


class FakeConnection:
    def __init__(self, engine: "FakeEngine") -> None:
        self.engine = engine
        self.dialect = engine.dialect
        self.options: typing.Dict[str, typing.Any] = {}

    def __enter__(self) -> "FakeConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.engine.events.append("close")

    def execution_options(self, **options: typing.Any) -> "FakeConnection":
        self.options.update(options)
        return self

    def begin(self) -> FakeTransaction:
        return FakeTransaction(self)

    def execute(self, statement: typing.Any, parameters: typing.Any = None) -> FakeResult:
        self.engine.executed.append((statement, parameters))
        self.engine.events.append(compile_sql(statement))
        return FakeResult(self.engine.responder(statement, parameters))


class FakeEngine:
    """Records what would have been sent to PostgreSQL and answers with canned rows."""

    def __init__(self, responder: typing.Optional[Responder] = None) -> None:
        self.dialect = postgresql.dialect()
        self.responder: Responder = responder or (lambda statement, parameters: [])
        self.executed: typing.List[typing.Tuple[typing.Any, typing.Any]] = []
        self.events: typing.List[str] = []
        self.connections: typing.List[FakeConnection] = []
        self._lock = threading.Lock()

    def connect(self) -> FakeConnection:
        connection = FakeConnection(self)
        with self._lock:
            self.connections.append(connection)
        return connection

    def begin(self) -> "FakeEngineTransaction":
        return FakeEngineTransaction(self.connect())

    def commit(self, connection: FakeConnection) -> None:
        self.events.append("commit")

    @property
    def statements(self) -> typing.List[str]:
        return [compile_sql(statement) for statement, _ in self.executed]


class FakeEngineTransaction:
    def __init__(self, connection: FakeConnection) -> None:
        self._connection = connection
        self._transaction = connection.begin()

    def __enter__(self) -> FakeConnection:
        self._transaction.__enter__()
        return self._connection

    def __exit__(self, exc_type, exc, tb) -> None:
        self._transaction.__exit__(exc_type, exc, tb)
        self._connection.__exit__(exc_type, exc, tb)


@pytest.fixture()
def registry(schema: Schema) -> SaRegistry:
    registry = SaRegistry()
    registry.register(schema)
    for identity in schema.identities:
        TableConstructingVisitor(schema, registry).traverse_from(registry.identities_to_trees[identity.key].root)
    return registry


@pytest.fixture()
def fake_engine() -> typing.Type[FakeEngine]:
    return FakeEngine


@pytest.fixture()
def make_database_error() -> typing.Callable[..., OperationalError]:
    return database_error
