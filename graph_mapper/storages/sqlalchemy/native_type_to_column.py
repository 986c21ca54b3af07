import typing

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, Numeric, String
from sqlalchemy.dialects import postgresql as postgresql_dialect

from graph_mapper.attribute import Attribute, AttributeType
from graph_mapper.errors import UnsupportedType
from graph_mapper.transform import Codec


DEFAULT_STRING_LENGTH = 200

STRING_TYPES = frozenset(
    {AttributeType.STRING, AttributeType.PASSWORD, AttributeType.ENUM, AttributeType.KEYWORD, AttributeType.SYMBOL}
)

# TODO: Support other dialects, not only PostgreSQL
mapping = {
    AttributeType.UUID: postgresql_dialect.UUID(as_uuid=True),
    AttributeType.INT: Integer,
    AttributeType.LONG: BigInteger,
    AttributeType.BOOLEAN: Boolean,
    AttributeType.DECIMAL: Numeric(20, 2),
    AttributeType.INSTANT: DateTime(timezone=True),
}


def convert(attribute: Attribute, codec: typing.Optional[Codec] = None) -> typing.Any:
    if attribute.type in STRING_TYPES:
        return String(attribute.max_length or DEFAULT_STRING_LENGTH)
    if codec is not None and codec.column_type is not None:
        return codec.column_type
    try:
        return mapping[attribute.type]
    except KeyError:
        raise UnsupportedType(f"Unsupported type - {attribute.type}")
