import decimal
import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy.dialects import postgresql

from graph_mapper.identity import Ident
from graph_mapper.schema import Schema
from graph_mapper.storages.sqlalchemy.querying.resolvers import (
    ForeignKeyToOneResolver,
    IdResolver,
    MirroredToOneResolver,
    ToManyResolver,
)
from graph_mapper.storages.sqlalchemy.querying.visitor import Resolvers, generate_resolvers
from graph_mapper.storages.sqlalchemy.registry import SaRegistry


ALICE = uuid.UUID("3f0b8b4e-2b6a-4d8e-8c1e-000000000001")
BOB = uuid.UUID("3f0b8b4e-2b6a-4d8e-8c1e-000000000002")
HOME = uuid.UUID("3f0b8b4e-2b6a-4d8e-8c1e-000000000011")
WORK = uuid.UUID("3f0b8b4e-2b6a-4d8e-8c1e-000000000012")
PROFILE = uuid.UUID("3f0b8b4e-2b6a-4d8e-8c1e-000000000021")


def sql(statement) -> str:
    return str(statement.compile(dialect=postgresql.dialect()))


@pytest.fixture()
def resolvers(schema: Schema, registry: SaRegistry) -> Resolvers:
    return generate_resolvers(schema, registry)


def test_generates_resolvers_for_schema(resolvers: Resolvers) -> None:
    assert sorted(resolvers.id_resolvers) == [
        "account.id",
        "address.id",
        "category.id",
        "event.id",
        "product.id",
        "profile.id",
    ]
    assert isinstance(resolvers.attribute_resolvers["account.addresses"], ToManyResolver)
    assert isinstance(resolvers.attribute_resolvers["account.profile"], MirroredToOneResolver)
    assert isinstance(resolvers.attribute_resolvers["address.account"], ForeignKeyToOneResolver)
    # the same resolver that reads accounts by id
    assert resolvers.attribute_resolvers["address.account"].target is resolvers.id_resolvers["account.id"]
    assert resolvers.attribute_resolvers["event.account"].target is resolvers.id_resolvers["account.id"]


def test_id_resolver_reads_batch_in_one_query(fake_engine, resolvers: Resolvers) -> None:
    created_at = datetime(2021, 3, 1, 12, 0, tzinfo=timezone.utc)
    engine = fake_engine(
        lambda statement, parameters: [
            {
                "id": ALICE,
                "name": "Alice",
                "active": True,
                "balance": decimal.Decimal("10.50"),
                "created_at": created_at,
                "primary_address": HOME,
            },
            {"id": BOB, "name": "Bob", "active": False, "balance": None, "created_at": None, "primary_address": None},
        ]
    )
    resolver: IdResolver = resolvers.id_resolvers["account.id"]

    with engine.connect() as connection:
        accounts = resolver(connection, [ALICE, BOB, uuid.uuid4()])

    assert len(engine.executed) == 1
    assert "WHERE accounts.id = ANY (CAST(" in engine.statements[0]
    assert len(engine.executed[0][1]["ids"]) == 3
    assert accounts[ALICE] == {
        "account.id": ALICE,
        "account.name": "Alice",
        "account.active": True,
        "account.balance": decimal.Decimal("10.50"),
        "account.created_at": created_at,
        "account.primary_address": Ident("address.id", HOME),
    }
    assert accounts[BOB]["account.primary_address"] is None
    assert len(accounts) == 2


@pytest.mark.parametrize("key", ["account.id", "account.addresses", "account.profile", "address.account"])
def test_empty_batch_does_no_query(fake_engine, resolvers: Resolvers, key: str) -> None:
    engine = fake_engine()
    resolver = resolvers.id_resolvers.get(key) or resolvers.attribute_resolvers[key]

    with engine.connect() as connection:
        assert resolver(connection, []) == {}

    assert engine.executed == []


def test_to_many_resolver_defaults_to_empty_collections(fake_engine, resolvers: Resolvers) -> None:
    engine = fake_engine(lambda statement, parameters: [{"k": ALICE, "v": [WORK, HOME]}])
    resolver: ToManyResolver = resolvers.attribute_resolvers["account.addresses"]

    with engine.connect() as connection:
        addresses = resolver(connection, [ALICE, BOB])

    assert len(engine.executed) == 1
    assert addresses == {ALICE: [WORK, HOME], BOB: []}


def test_to_many_resolver_orders_and_groups(resolvers: Resolvers) -> None:
    statement = sql(resolvers.attribute_resolvers["account.addresses"].statement)

    assert "array_agg(addresses.id ORDER BY addresses.street) AS v" in statement
    assert "GROUP BY addresses.account" in statement
    assert "addresses.account = ANY (CAST(" in statement


def test_unordered_to_many_is_ordered_by_id(resolvers: Resolvers) -> None:
    statement = sql(resolvers.attribute_resolvers["category.products"].statement)

    assert "array_agg(products.id ORDER BY products.id) AS v" in statement


def test_mirrored_to_one_resolver_keys_by_source(fake_engine, resolvers: Resolvers) -> None:
    engine = fake_engine(lambda statement, parameters: [{"k": ALICE, "id": PROFILE, "bio": "hi", "owner": ALICE}])
    resolver: MirroredToOneResolver = resolvers.attribute_resolvers["account.profile"]

    with engine.connect() as connection:
        profiles = resolver(connection, [ALICE, BOB])

    assert "WHERE profiles.owner = ANY (CAST(" in engine.statements[0]
    assert profiles == {
        ALICE: {"profile.id": PROFILE, "profile.bio": "hi", "profile.owner": Ident("account.id", ALICE)}
    }


def test_statements_are_built_once(fake_engine, resolvers: Resolvers) -> None:
    engine = fake_engine()
    resolver: IdResolver = resolvers.id_resolvers["product.id"]

    with engine.connect() as connection:
        resolver(connection, [1])
        resolver(connection, [2, 3])

    assert [statement for statement, _ in engine.executed] == [resolver.statement, resolver.statement]
    assert [parameters for _, parameters in engine.executed] == [{"ids": [1]}, {"ids": [2, 3]}]
