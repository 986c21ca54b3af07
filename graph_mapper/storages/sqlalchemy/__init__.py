import logging
import time
import typing
import uuid

from sqlalchemy.engine import Engine

from graph_mapper.config import Settings
from graph_mapper.delta import Delta
from graph_mapper.errors import MissingPartitionPool
from graph_mapper.identity import TempId
from graph_mapper.repository import Repository
from graph_mapper.schema import Schema
from graph_mapper.storages.sqlalchemy.constructing_tables.visitor import TableConstructingVisitor
from graph_mapper.storages.sqlalchemy.querying.reader import GraphReader, Redact, Shape
from graph_mapper.storages.sqlalchemy.querying.visitor import generate_resolvers
from graph_mapper.storages.sqlalchemy.registry import SaRegistry
from graph_mapper.storages.sqlalchemy.writing import execution


log = logging.getLogger(__name__)


class SqlAlchemyRepo(Repository):
    """Reads and writes the entity graph described by ``schema``, one engine per partition."""

    def __init__(
        self,
        schema: Schema,
        engines: typing.Mapping[str, Engine],
        settings: typing.Optional[Settings] = None,
        redact: typing.Optional[Redact] = None,
        id_factory: typing.Callable[[], typing.Any] = uuid.uuid4,
        sleep: typing.Callable[[float], None] = time.sleep,
    ) -> None:
        self.schema = schema
        self.engines = engines
        self.settings = settings or Settings()
        self._id_factory = id_factory
        self._sleep = sleep

        self.registry = SaRegistry()
        self.registry.register(schema)
        for identity in schema.identities:
            TableConstructingVisitor(schema, self.registry).traverse_from(
                self.registry.identities_to_trees[identity.key].root
            )

        self.resolvers = generate_resolvers(schema, self.registry)
        self.reader = GraphReader(
            engines,
            schema,
            self.resolvers,
            redact=redact,
            max_workers=self.settings.read_concurrency,
            slow_query_ms=self.settings.slow_query_ms,
        )

    def create_all(self) -> None:
        for partition, metadata in sorted(self.registry.partitions_metadata.items()):
            try:
                engine = self.engines[partition]
            except KeyError:
                raise MissingPartitionPool(f"No engine for partition - {partition}")
            log.info("Creating %d tables in partition %s", len(metadata.tables), partition)
            metadata.create_all(engine)

    def get(
        self, identity_key: str, ids: typing.Iterable[typing.Any], shape: Shape
    ) -> typing.List[typing.Optional[dict]]:
        return self.reader.read(identity_key, ids, shape)

    def save(self, delta: Delta) -> typing.Dict[TempId, typing.Any]:
        result = execution.save(
            self.engines,
            self.schema,
            self.registry,
            delta,
            policy=self.settings.retry_policy(),
            id_factory=self._id_factory,
            sleep=self._sleep,
            slow_query_ms=self.settings.slow_query_ms,
        )
        return result.tempids
