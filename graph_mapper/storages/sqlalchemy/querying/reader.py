"""Reads nested shapes of the entity graph level by level.

A shape is a list of attribute keys, where a reference may be given a sub-shape
as ``{reference_key: sub_shape}``::

    ["account.id", "account.name", {"account.addresses": ["address.street"]}]

Each level costs one id lookup for the whole batch plus one query per requested
reference, never one query per entity.
"""
import logging
import typing
from concurrent.futures import ThreadPoolExecutor

from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError

from graph_mapper.attribute import Attribute, Cardinality
from graph_mapper.errors import InvalidAttribute, MissingPartitionPool
from graph_mapper.identity import Ident
from graph_mapper.schema import Schema
from graph_mapper.storages.sqlalchemy.errors import classify
from graph_mapper.storages.sqlalchemy.querying.resolvers import ForeignKeyToOneResolver, Resolver
from graph_mapper.storages.sqlalchemy.querying.visitor import Resolvers
from graph_mapper.storages.sqlalchemy.timing import timer


log = logging.getLogger(__name__)

Shape = typing.List[typing.Union[str, typing.Dict[str, "Shape"]]]
Entity = typing.Dict[str, typing.Any]
Redact = typing.Callable[[str, typing.Dict[typing.Any, Entity]], typing.Dict[typing.Any, Entity]]


def no_redaction(identity_key: str, entities: typing.Dict[typing.Any, Entity]) -> typing.Dict[typing.Any, Entity]:
    return entities


def parse_shape(shape: Shape) -> typing.List[typing.Tuple[str, typing.Optional[Shape]]]:
    parsed = []
    for item in shape:
        if isinstance(item, dict):
            parsed.extend(item.items())
        else:
            parsed.append((item, None))
    return parsed


class GraphReader:
    def __init__(
        self,
        engines: typing.Mapping[str, Engine],
        schema: Schema,
        resolvers: Resolvers,
        redact: typing.Optional[Redact] = None,
        max_workers: int = 1,
        slow_query_ms: float = 1000,
    ) -> None:
        self._engines = engines
        self._schema = schema
        self._resolvers = resolvers
        self._redact = redact or no_redaction
        self._max_workers = max_workers
        self._slow_query_ms = slow_query_ms

    def read(
        self, identity_key: str, ids: typing.Iterable[typing.Any], shape: Shape
    ) -> typing.List[typing.Optional[Entity]]:
        """Return one entity per id, in the order given, with ``None`` for ids that do not exist."""
        identity = self._schema.identity_of_key(identity_key)
        ids = [self._normalize(identity, id_) for id_ in ids]
        entities = self._read_level(identity, ids, shape)
        return [entities.get(id_) for id_ in ids]

    def _normalize(self, identity: Attribute, id_: typing.Any) -> typing.Any:
        if isinstance(id_, Ident):
            id_ = id_.id
        return self._schema.decode(identity, self._schema.encode(identity, id_))

    def _engine_for(self, partition: str) -> Engine:
        try:
            return self._engines[partition]
        except KeyError:
            raise MissingPartitionPool(f"No engine for partition - {partition}")

    def _resolve(self, resolver: Resolver, partition: str, ids: typing.List[typing.Any]) -> typing.Dict:
        if not ids:
            return {}
        engine = self._engine_for(partition)
        description = f"{type(resolver).__name__} of {len(ids)} ids in {partition}"
        try:
            with engine.connect() as connection, timer(description, self._slow_query_ms):
                return resolver(connection, ids)
        except DBAPIError as e:
            raise classify(e) from e

    def _attribute(self, identity: Attribute, key: str) -> Attribute:
        attribute = self._schema[key]
        if attribute.identity:
            if attribute.key != identity.key:
                raise InvalidAttribute(f"{key} is not an attribute of {identity.key}")
            return attribute
        if identity.key not in attribute.identities or not attribute.is_stored:
            raise InvalidAttribute(f"{key} is not stored on {identity.key}")
        return attribute

    def _read_level(
        self,
        identity: Attribute,
        ids: typing.List[typing.Any],
        shape: Shape,
        resolver: typing.Optional[Resolver] = None,
        rows: typing.Optional[typing.Dict[typing.Any, Entity]] = None,
    ) -> typing.Dict[typing.Any, Entity]:
        if rows is None:
            resolver = resolver or self._resolvers.id_resolvers[identity.key]
            rows = self._resolve(resolver, identity.partition, ids)
        if not rows:
            return {}

        requested = [(self._attribute(identity, key), sub_shape) for key, sub_shape in parse_shape(shape)]
        references = [(attribute, sub_shape) for attribute, sub_shape in requested if attribute.is_ref]

        if self._max_workers > 1 and len(references) > 1:
            with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
                futures = [
                    executor.submit(self._read_reference, attribute, sub_shape, rows)
                    for attribute, sub_shape in references
                ]
                values = [future.result() for future in futures]
        else:
            values = [self._read_reference(attribute, sub_shape, rows) for attribute, sub_shape in references]
        resolved = {attribute.key: value for (attribute, _), value in zip(references, values)}

        entities = {}
        for id_, row in rows.items():
            entity = {identity.key: id_}
            for attribute, _ in requested:
                if attribute.is_ref:
                    entity[attribute.key] = resolved[attribute.key][id_]
                else:
                    entity[attribute.key] = row[attribute.key]
            entities[id_] = entity
        return self._redact(identity.key, entities)

    def _read_reference(
        self, attribute: Attribute, sub_shape: typing.Optional[Shape], rows: typing.Dict[typing.Any, Entity]
    ) -> typing.Dict[typing.Any, typing.Any]:
        """Value of ``attribute`` for every row, keyed by the row's id."""
        target = self._schema.identity_of_key(attribute.target)
        resolver = self._resolvers.attribute_resolvers[attribute.key]
        # row id -> ids of the referenced entities
        targets_of: typing.Dict[typing.Any, typing.List[typing.Any]]
        # whole target rows, when the resolver already returned them
        target_rows: typing.Optional[typing.Dict[typing.Any, Entity]] = None

        if attribute.cardinality is Cardinality.MANY:
            children = self._resolve(resolver, target.partition, list(rows))
            targets_of = {id_: children.get(id_, []) for id_ in rows}
        elif attribute.mirror:
            found = self._resolve(resolver, target.partition, list(rows))
            targets_of = {id_: [found[id_][target.key]] if id_ in found else [] for id_ in rows}
            target_rows = {row[target.key]: row for row in found.values()}
        else:
            targets_of = {}
            for id_, row in rows.items():
                reference = row[attribute.key]
                targets_of[id_] = [] if reference is None else [reference.id]

        if sub_shape is None:
            nested = {target_id: {target.key: target_id} for ids in targets_of.values() for target_id in ids}
        elif target_rows is not None:
            nested = self._read_level(target, list(target_rows), sub_shape, rows=target_rows)
        else:
            target_ids = list(dict.fromkeys(target_id for ids in targets_of.values() for target_id in ids))
            # owned foreign keys resolve through their own resolver, the rest by id
            level_resolver = resolver if isinstance(resolver, ForeignKeyToOneResolver) else None
            nested = self._read_level(target, target_ids, sub_shape, level_resolver)

        if attribute.cardinality is Cardinality.MANY:
            return {
                id_: [nested[target_id] for target_id in ids if target_id in nested] for id_, ids in targets_of.items()
            }
        return {id_: nested.get(ids[0]) if ids else None for id_, ids in targets_of.items()}
