import enum
import typing

import pytest
from _pytest.config.argparsing import Parser

from graph_mapper.attribute import Attribute, AttributeType, Cardinality
from graph_mapper.schema import Schema


def pytest_addoption(parser: Parser) -> None:
    parser.addoption("--sqlalchemy-postgres-url", action="store", default=None)


class Status(enum.Enum):
    DRAFT = 1
    PUBLISHED = 2


def account_attributes() -> typing.List[Attribute]:
    return [
        Attribute("account.id", AttributeType.UUID, "main", identity=True),
        Attribute("account.name", AttributeType.STRING, "main", identities={"account.id"}, max_length=40),
        Attribute("account.active", AttributeType.BOOLEAN, "main", identities={"account.id"}),
        Attribute("account.balance", AttributeType.DECIMAL, "main", identities={"account.id"}),
        Attribute("account.created_at", AttributeType.INSTANT, "main", identities={"account.id"}),
        Attribute(
            "account.addresses",
            AttributeType.REF,
            "main",
            Cardinality.MANY,
            identities={"account.id"},
            target="address.id",
            mirror="address.account",
            order_by="address.street",
            delete_orphan=True,
        ),
        Attribute(
            "account.primary_address",
            AttributeType.REF,
            "main",
            Cardinality.ONE,
            identities={"account.id"},
            target="address.id",
        ),
        Attribute(
            "account.profile",
            AttributeType.REF,
            "main",
            Cardinality.ONE,
            identities={"account.id"},
            target="profile.id",
            mirror="profile.owner",
            delete_orphan=True,
        ),
        Attribute("address.id", AttributeType.UUID, "main", identity=True),
        Attribute("address.street", AttributeType.STRING, "main", identities={"address.id"}),
        Attribute(
            "address.account",
            AttributeType.REF,
            "main",
            Cardinality.ONE,
            identities={"address.id"},
            target="account.id",
        ),
        Attribute("profile.id", AttributeType.UUID, "main", identity=True),
        Attribute("profile.bio", AttributeType.STRING, "main", identities={"profile.id"}),
        Attribute(
            "profile.owner", AttributeType.REF, "main", Cardinality.ONE, identities={"profile.id"}, target="account.id"
        ),
    ]


def catalog_attributes() -> typing.List[Attribute]:
    return [
        Attribute("category.id", AttributeType.LONG, "main", identity=True),
        Attribute("category.label", AttributeType.KEYWORD, "main", identities={"category.id"}),
        Attribute(
            "category.products",
            AttributeType.REF,
            "main",
            Cardinality.MANY,
            identities={"category.id"},
            target="product.id",
            mirror="product.category",
        ),
        Attribute("product.id", AttributeType.INT, "main", identity=True),
        Attribute("product.name", AttributeType.STRING, "main", identities={"product.id"}),
        Attribute(
            "product.status", AttributeType.ENUM, "main", identities={"product.id"}, enumeration=Status
        ),
        Attribute(
            "product.category",
            AttributeType.REF,
            "main",
            Cardinality.ONE,
            identities={"product.id"},
            target="category.id",
        ),
    ]


def event_attributes() -> typing.List[Attribute]:
    return [
        Attribute("event.id", AttributeType.LONG, "events", identity=True, table="audit_events"),
        Attribute("event.name", AttributeType.SYMBOL, "events", identities={"event.id"}, column="event_name"),
        Attribute(
            "event.account", AttributeType.REF, "events", Cardinality.ONE, identities={"event.id"}, target="account.id"
        ),
        # derived, never stored
        Attribute("event.summary", AttributeType.STRING),
    ]


@pytest.fixture()
def attributes() -> typing.List[Attribute]:
    return account_attributes() + catalog_attributes() + event_attributes()


@pytest.fixture()
def schema(attributes: typing.List[Attribute]) -> Schema:
    return Schema(attributes)
