"""Batched resolvers over the tables of one partition.

Every resolver builds its statement once, when generated, and afterwards issues
exactly one query per call whatever the number of ids; an empty batch issues none.
"""
import logging
import typing

from sqlalchemy import Column, Table, any_, bindparam, cast, select
from sqlalchemy.dialects.postgresql import ARRAY, aggregate_order_by, array_agg
from sqlalchemy.engine import Connection

from graph_mapper.attribute import Attribute
from graph_mapper.schema import Schema
from graph_mapper.storages.sqlalchemy.registry import SaRegistry


log = logging.getLogger(__name__)

Row = typing.Dict[str, typing.Any]


def _in_ids(column: Column) -> typing.Any:
    array_type = ARRAY(column.type)
    return column == any_(cast(bindparam("ids", type_=array_type), array_type))


def _unique(ids: typing.Iterable[typing.Any]) -> typing.List[typing.Any]:
    return list(dict.fromkeys(ids))


class IdResolver:
    def __init__(self, schema: Schema, registry: SaRegistry, identity_key: str) -> None:
        self._schema = schema
        self.identity = schema.identity_of_key(identity_key)
        self.table: Table = registry.table_for(identity_key)
        self.attributes: typing.List[Attribute] = [self.identity] + [
            attribute for attribute in schema.attributes_of(identity_key) if attribute.is_table_local
        ]
        self.columns: typing.List[Column] = [
            self.table.c[schema.column_name(attribute)] for attribute in self.attributes
        ]
        self.statement = select(*self.columns).where(_in_ids(self.columns[0]))
        log.debug("Generated id resolver for %s: %s", identity_key, self.statement)

    def row_to_entity(self, row: typing.Mapping[str, typing.Any]) -> Row:
        return {
            attribute.key: self._schema.decode(attribute, row[column.name])
            for attribute, column in zip(self.attributes, self.columns)
        }

    def __call__(self, connection: Connection, ids: typing.Iterable[typing.Any]) -> typing.Dict[typing.Any, Row]:
        ids = _unique(ids)
        if not ids:
            return {}
        encoded = [self._schema.encode(self.identity, id_) for id_ in ids]
        entities = {}
        for row in connection.execute(self.statement, {"ids": encoded}).mappings():
            entity = self.row_to_entity(row)
            entities[entity[self.identity.key]] = entity
        return entities


class ForeignKeyToOneResolver:
    """The foreign key is already a column of the source row, so resolving the target is an id lookup."""

    def __init__(self, attribute: Attribute, target: IdResolver) -> None:
        self.attribute = attribute
        self.target = target

    def __call__(self, connection: Connection, ids: typing.Iterable[typing.Any]) -> typing.Dict[typing.Any, Row]:
        return self.target(connection, ids)


class MirroredToOneResolver:
    def __init__(self, schema: Schema, registry: SaRegistry, attribute: Attribute, target: IdResolver) -> None:
        self._schema = schema
        self.attribute = attribute
        self.source = schema.identity_of_key(schema[attribute.mirror].target)
        self.target = target
        self.foreign_key = target.table.c[schema.column_name(schema[attribute.mirror])]
        self.statement = select(self.foreign_key.label("k"), *target.columns).where(_in_ids(self.foreign_key))
        log.debug("Generated to-one resolver for %s: %s", attribute.key, self.statement)

    def __call__(self, connection: Connection, ids: typing.Iterable[typing.Any]) -> typing.Dict[typing.Any, Row]:
        ids = _unique(ids)
        if not ids:
            return {}
        encoded = [self._schema.encode(self.source, id_) for id_ in ids]
        targets = {}
        for row in connection.execute(self.statement, {"ids": encoded}).mappings():
            targets[self._schema.decode(self.source, row["k"])] = self.target.row_to_entity(row)
        return targets


class ToManyResolver:
    def __init__(self, schema: Schema, registry: SaRegistry, attribute: Attribute) -> None:
        self._schema = schema
        self.attribute = attribute
        mirror = schema[attribute.mirror]
        self.source = schema.identity_of_key(mirror.target)
        self.target = schema.identity_of_key(attribute.target)

        table = registry.table_for(attribute.target)
        foreign_key = table.c[schema.column_name(mirror)]
        target_id = table.c[schema.column_name(self.target)]
        order = table.c[schema.column_name(schema[attribute.order_by])] if attribute.order_by else target_id
        self.statement = (
            select(foreign_key.label("k"), array_agg(aggregate_order_by(target_id, order)).label("v"))
            .where(_in_ids(foreign_key))
            .group_by(foreign_key)
        )
        log.debug("Generated to-many resolver for %s: %s", attribute.key, self.statement)

    def __call__(
        self, connection: Connection, ids: typing.Iterable[typing.Any]
    ) -> typing.Dict[typing.Any, typing.List[typing.Any]]:
        ids = _unique(ids)
        if not ids:
            return {}
        children: typing.Dict[typing.Any, typing.List[typing.Any]] = {id_: [] for id_ in ids}
        encoded = [self._schema.encode(self.source, id_) for id_ in ids]
        for row in connection.execute(self.statement, {"ids": encoded}).mappings():
            children[self._schema.decode(self.source, row["k"])] = [
                self._schema.decode(self.target, value) for value in row["v"]
            ]
        return children


Resolver = typing.Union[IdResolver, ForeignKeyToOneResolver, MirroredToOneResolver, ToManyResolver]
