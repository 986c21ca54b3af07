import typing
import uuid

import attr

from graph_mapper.attribute import SEQUENCE_BACKED_TYPES
from graph_mapper.delta import DELETE, Delta
from graph_mapper.errors import UnresolvedTempId
from graph_mapper.identity import Ident, TempId
from graph_mapper.schema import Schema


TempIds = typing.Dict[TempId, typing.Any]


@attr.s(auto_attribs=True, frozen=True)
class SequenceAllocation:
    partition: str
    sequence: str


@attr.s(auto_attribs=True)
class TempIdPlan:
    sequence_ids: typing.Dict[TempId, SequenceAllocation] = attr.Factory(dict)
    # tempid -> partition, ids for these are generated without touching the store
    local_ids: typing.Dict[TempId, str] = attr.Factory(dict)

    def __contains__(self, tempid: TempId) -> bool:
        return tempid in self.sequence_ids or tempid in self.local_ids

    def partition_of(self, tempid: TempId) -> typing.Optional[str]:
        if tempid in self.sequence_ids:
            return self.sequence_ids[tempid].partition
        return self.local_ids.get(tempid)

    def for_partition(self, partition: str) -> "TempIdPlan":
        return TempIdPlan(
            sequence_ids={
                tempid: allocation
                for tempid, allocation in self.sequence_ids.items()
                if allocation.partition == partition
            },
            local_ids={tempid: owner for tempid, owner in self.local_ids.items() if owner == partition},
        )


def idents_in_value(value: typing.Any) -> typing.Iterator[Ident]:
    if isinstance(value, Ident):
        yield value
    elif isinstance(value, (list, tuple, set, frozenset)):
        for item in value:
            if isinstance(item, Ident):
                yield item


def idents_in_delta(delta: Delta) -> typing.Iterator[Ident]:
    yield from delta
    for changes in delta.values():
        if changes is DELETE:
            continue
        for change in changes.values():
            yield from idents_in_value(change.before)
            yield from idents_in_value(change.after)


def plan_tempids(schema: Schema, delta: Delta) -> TempIdPlan:
    plan = TempIdPlan()
    for ident in idents_in_delta(delta):
        if not ident.is_temporary or ident.id in plan:
            continue
        identity = schema.identity_of(ident)
        if identity.type in SEQUENCE_BACKED_TYPES:
            plan.sequence_ids[ident.id] = SequenceAllocation(identity.partition, schema.sequence_name(identity))
        else:
            plan.local_ids[ident.id] = identity.partition
    return plan


def resolve_local_tempids(
    local_ids: typing.Iterable[TempId], id_factory: typing.Callable[[], typing.Any] = uuid.uuid4
) -> TempIds:
    return {tempid: id_factory() for tempid in local_ids}


def resolve_tempid(tempids: TempIds, tempid: TempId) -> typing.Any:
    try:
        return tempids[tempid]
    except KeyError:
        raise UnresolvedTempId(f"{tempid} has no resolved id")


def resolve_tempid_in_value(tempids: TempIds, value: typing.Any) -> typing.Any:
    if isinstance(value, TempId):
        return resolve_tempid(tempids, value)
    if isinstance(value, Ident):
        if value.is_temporary:
            return Ident(value.key, resolve_tempid(tempids, value.id))
        return value
    if isinstance(value, list):
        return [resolve_tempid_in_value(tempids, item) for item in value]
    return value
