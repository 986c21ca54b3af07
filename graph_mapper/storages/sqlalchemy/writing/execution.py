import logging
import time
import typing
import uuid

import attr
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.sql import Executable

from graph_mapper.delta import Delta, expand_references, partitions_for_delta
from graph_mapper.errors import MissingPartitionPool, UnresolvedTempId
from graph_mapper.result import Fatal, Ok, Outcome, Retryable, RetryPolicy, with_retry
from graph_mapper.schema import Schema
from graph_mapper.storages.sqlalchemy import vendor
from graph_mapper.storages.sqlalchemy.errors import classify
from graph_mapper.storages.sqlalchemy.registry import SaRegistry
from graph_mapper.storages.sqlalchemy.timing import timer
from graph_mapper.storages.sqlalchemy.writing.allocation import allocate_sequence_ids
from graph_mapper.storages.sqlalchemy.writing.plan import SqlPlan, delta_to_sql_plan, referenced_tempids
from graph_mapper.tempids import TempIdPlan, TempIds, plan_tempids, resolve_local_tempids


log = logging.getLogger(__name__)


@attr.s(auto_attribs=True, frozen=True)
class SaveResult:
    tempids: TempIds = attr.Factory(dict)


def describe(statement: Executable) -> str:
    # e.g. "UPDATE accounts", without compiling the statement
    return f"{type(statement).__name__.upper()} {statement.table.name}"


def execute_plan(engine: Engine, plan: SqlPlan, slow_query_ms: float = 1000) -> None:
    """Run ``plan`` in one serializable transaction with foreign key checks deferred to commit."""
    if not plan:
        return

    with engine.connect() as connection:
        connection.execution_options(isolation_level="SERIALIZABLE")
        with connection.begin():
            vendor.relax_constraints(connection)
            for statement in plan.statements:
                log.debug("Executing %s", statement)
                with timer(describe(statement), slow_query_ms):
                    connection.execute(statement)


def _attempt(operation: typing.Callable[[], typing.Any]) -> Outcome:
    try:
        return Ok(operation())
    except DBAPIError as e:
        error = classify(e)
        if error.is_serialization_conflict:
            return Retryable(error)
        return Fatal(error)


def order_partitions(
    schema: Schema, partitions: typing.Iterable[str], plan: TempIdPlan, delta: Delta
) -> typing.List[str]:
    """Partitions in the order they have to be written so every tempid is resolved before it is referenced."""
    needs = {
        partition: {plan.partition_of(tempid) for tempid in referenced_tempids(schema, partition, delta)} - {partition}
        for partition in partitions
    }
    ordered: typing.List[str] = []
    remaining = sorted(needs)
    while remaining:
        ready = [partition for partition in remaining if needs[partition].issubset(ordered)]
        if not ready:
            raise UnresolvedTempId(f"Tempids needed by partitions {remaining} are never resolved before them")
        ordered.append(ready[0])
        remaining.remove(ready[0])
    return ordered


def _save_partition(
    engine: Engine,
    schema: Schema,
    registry: SaRegistry,
    partition: str,
    delta: Delta,
    plan: TempIdPlan,
    resolved: TempIds,
    id_factory: typing.Callable[[], typing.Any],
    slow_query_ms: float,
) -> TempIds:
    tempids = dict(resolved)
    if plan.sequence_ids:
        with engine.begin() as connection:
            tempids.update(allocate_sequence_ids(connection, plan.sequence_ids))
    tempids.update(resolve_local_tempids(plan.local_ids, id_factory))

    sql_plan = delta_to_sql_plan(schema, registry, partition, tempids, delta)
    execute_plan(engine, sql_plan, slow_query_ms)
    return tempids


def save(
    engines: typing.Mapping[str, Engine],
    schema: Schema,
    registry: SaRegistry,
    delta: Delta,
    policy: RetryPolicy = RetryPolicy(),
    id_factory: typing.Callable[[], typing.Any] = uuid.uuid4,
    sleep: typing.Callable[[float], None] = time.sleep,
    slow_query_ms: float = 1000,
) -> SaveResult:
    """Write ``delta`` partition by partition and return the ids given to its tempids.

    Every partition commits on its own; a failure in a later partition leaves earlier ones written.
    """
    expanded = expand_references(schema, delta)
    touched = partitions_for_delta(schema, expanded)
    for partition in sorted(touched):
        if partition not in engines:
            raise MissingPartitionPool(f"No engine for partition - {partition}")
    tempid_plan = plan_tempids(schema, expanded)
    partitions = order_partitions(schema, touched, tempid_plan, expanded)

    tempids: TempIds = {}
    for partition in partitions:
        partition_plan = tempid_plan.for_partition(partition)
        log.info("Saving %d entities into partition %s", len(expanded), partition)

        def operation(partition=partition, partition_plan=partition_plan, resolved=dict(tempids)) -> TempIds:
            return _save_partition(
                engines[partition],
                schema,
                registry,
                partition,
                expanded,
                partition_plan,
                resolved,
                id_factory,
                slow_query_ms,
            )

        tempids = with_retry(lambda: _attempt(operation), policy, sleep)

    return SaveResult(tempids)
