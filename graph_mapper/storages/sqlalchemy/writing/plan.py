"""Turns a delta into the INSERT, UPDATE and DELETE statements of one partition.

Nothing here touches a connection; the generated statements carry every value
as a bound parameter and are executed by ``writing.execution``.
"""
import typing

import attr
from sqlalchemy.sql import Executable

from graph_mapper.attribute import Attribute
from graph_mapper.delta import DELETE, Delta, EntityChanges
from graph_mapper.identity import Ident, TempId
from graph_mapper.schema import Schema
from graph_mapper.storages.sqlalchemy.registry import SaRegistry
from graph_mapper.tempids import TempIds, idents_in_value, resolve_tempid, resolve_tempid_in_value


@attr.s(auto_attribs=True, frozen=True)
class SqlPlan:
    updates: typing.Tuple[Executable, ...] = ()
    inserts: typing.Tuple[Executable, ...] = ()

    @property
    def statements(self) -> typing.Iterator[Executable]:
        # updates and deletes first, so rows unlinked in this delta are free before new ones claim them
        yield from self.updates
        yield from self.inserts

    def __bool__(self) -> bool:
        return bool(self.updates or self.inserts)


def table_local_attributes(
    schema: Schema, partition: str, identity: Attribute, changes: EntityChanges
) -> typing.List[Attribute]:
    attributes = []
    for key in changes:
        attribute = schema[key]
        if attribute.partition == partition and identity.key in attribute.identities and attribute.is_table_local:
            attributes.append(attribute)
    return attributes


def generate_insert(
    schema: Schema, registry: SaRegistry, partition: str, tempids: TempIds, ident: Ident, changes: EntityChanges
) -> typing.Optional[Executable]:
    identity = schema.identity_of(ident)
    if not ident.is_temporary or identity.partition != partition or changes is DELETE:
        return None

    attributes = table_local_attributes(schema, partition, identity, changes)
    if any(changes[attribute.key].after is DELETE for attribute in attributes):
        # created and orphaned within the same delta
        return None

    values = {schema.column_name(identity): schema.encode(identity, resolve_tempid(tempids, ident.id))}
    for attribute in attributes:
        value = resolve_tempid_in_value(tempids, changes[attribute.key].after)
        value = schema.encode(attribute, value)
        if value is not None:
            values[schema.column_name(attribute)] = value

    return registry.table_for(identity.key).insert().values(values)


def generate_update(
    schema: Schema, registry: SaRegistry, partition: str, tempids: TempIds, ident: Ident, changes: EntityChanges
) -> typing.Optional[Executable]:
    identity = schema.identity_of(ident)
    if ident.is_temporary or identity.partition != partition:
        return None

    table = registry.table_for(identity.key)
    where = table.c[schema.column_name(identity)] == schema.encode(identity, ident.id)

    if changes is DELETE:
        return table.delete().where(where)

    values: typing.Dict[str, typing.Any] = {}
    for attribute in table_local_attributes(schema, partition, identity, changes):
        change = changes[attribute.key]
        if change.after is DELETE:
            return table.delete().where(where)
        if change.is_noop:
            continue
        after = schema.encode(attribute, resolve_tempid_in_value(tempids, change.after))
        if after is not None:
            values[schema.column_name(attribute)] = after
        elif change.before is not None:
            values[schema.column_name(attribute)] = None

    if not values:
        return None
    return table.update().where(where).values(values)


def delta_to_sql_plan(
    schema: Schema, registry: SaRegistry, partition: str, tempids: TempIds, delta: Delta
) -> SqlPlan:
    inserts = []
    updates = []
    for ident, changes in delta.items():
        insert = generate_insert(schema, registry, partition, tempids, ident, changes)
        if insert is not None:
            inserts.append(insert)
        update = generate_update(schema, registry, partition, tempids, ident, changes)
        if update is not None:
            updates.append(update)
    return SqlPlan(updates=tuple(updates), inserts=tuple(inserts))


def referenced_tempids(schema: Schema, partition: str, delta: Delta) -> typing.Set[TempId]:
    referenced = set()
    for ident, changes in delta.items():
        identity = schema.identity_of(ident)
        if identity.partition != partition or changes is DELETE:
            continue
        if ident.is_temporary:
            referenced.add(ident.id)
        for attribute in table_local_attributes(schema, partition, identity, changes):
            for value in idents_in_value(changes[attribute.key].after):
                if value.is_temporary:
                    referenced.add(value.id)
    return referenced
