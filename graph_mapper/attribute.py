import enum
import typing

import attr


class AttributeType(enum.Enum):
    UUID = "uuid"
    INT = "int"
    LONG = "long"
    STRING = "string"
    PASSWORD = "password"
    BOOLEAN = "boolean"
    DECIMAL = "decimal"
    INSTANT = "instant"
    ENUM = "enum"
    KEYWORD = "keyword"
    SYMBOL = "symbol"
    REF = "ref"


# identities of these types get their ids from a store sequence, the rest are generated locally
SEQUENCE_BACKED_TYPES = frozenset({AttributeType.INT, AttributeType.LONG})


class Cardinality(enum.Enum):
    SCALAR = "scalar"
    ONE = "one"
    MANY = "many"


TypeTag = typing.Union[AttributeType, str]
ValueFunction = typing.Callable[[typing.Any], typing.Any]


@attr.s(auto_attribs=True, frozen=True)
class Attribute:
    key: str
    type: TypeTag
    partition: typing.Optional[str] = None
    cardinality: Cardinality = Cardinality.SCALAR
    identity: bool = False
    identities: typing.FrozenSet[str] = attr.ib(factory=frozenset, converter=frozenset)
    table: typing.Optional[str] = None
    column: typing.Optional[str] = None
    target: typing.Optional[str] = None
    mirror: typing.Optional[str] = None
    delete_orphan: bool = False
    order_by: typing.Optional[str] = None
    max_length: typing.Optional[int] = None
    enumeration: typing.Optional[typing.Type[enum.Enum]] = None
    encode: typing.Optional[ValueFunction] = attr.ib(default=None, eq=False, repr=False)
    decode: typing.Optional[ValueFunction] = attr.ib(default=None, eq=False, repr=False)

    @property
    def entity(self) -> str:
        return self.key.rpartition(".")[0]

    @property
    def name(self) -> str:
        return self.key.rpartition(".")[2]

    @property
    def is_ref(self) -> bool:
        return self.type is AttributeType.REF

    @property
    def is_stored(self) -> bool:
        # attributes without a partition are derived and never persisted
        return self.partition is not None

    @property
    def is_table_local(self) -> bool:
        """True when the value lives in a column of the entity's own table."""
        if not self.is_ref:
            return True
        return self.cardinality is Cardinality.ONE and self.mirror is None
