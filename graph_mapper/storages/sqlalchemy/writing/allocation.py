import logging
import typing
from collections import OrderedDict

from sqlalchemy import Integer, Sequence, func, literal, select, union_all
from sqlalchemy.engine import Connection

from graph_mapper.identity import TempId
from graph_mapper.tempids import SequenceAllocation, TempIds


log = logging.getLogger(__name__)


def group_by_sequence(
    sequence_ids: typing.Mapping[TempId, SequenceAllocation]
) -> typing.Dict[str, typing.List[TempId]]:
    grouped: typing.Dict[str, typing.List[TempId]] = OrderedDict()
    for tempid, allocation in sequence_ids.items():
        grouped.setdefault(allocation.sequence, []).append(tempid)
    return grouped


def allocation_statement(grouped: typing.Mapping[str, typing.List[TempId]]):
    selects = []
    for batch, (sequence, tempids) in enumerate(grouped.items()):
        series = func.generate_series(1, len(tempids)).table_valued("n")
        selects.append(
            select(literal(batch, Integer).label("batch"), Sequence(sequence).next_value().label("id")).select_from(
                series
            )
        )
    if len(selects) == 1:
        return selects[0]
    return union_all(*selects)


def allocate_sequence_ids(connection: Connection, sequence_ids: typing.Mapping[TempId, SequenceAllocation]) -> TempIds:
    """Allocate store ids for every tempid in one round trip, whatever the number of sequences."""
    if not sequence_ids:
        return {}

    grouped = group_by_sequence(sequence_ids)
    allocated: typing.Dict[int, typing.List[typing.Any]] = {batch: [] for batch in range(len(grouped))}
    for row in connection.execute(allocation_statement(grouped)).mappings():
        allocated[row["batch"]].append(row["id"])

    tempids: TempIds = {}
    for batch, (sequence, batch_tempids) in enumerate(grouped.items()):
        ids = allocated[batch]
        if len(ids) != len(batch_tempids):
            raise RuntimeError(f"Sequence {sequence} returned {len(ids)} ids for {len(batch_tempids)} tempids")
        tempids.update(zip(batch_tempids, ids))
        log.debug("Allocated %d ids from %s", len(ids), sequence)
    return tempids
