"""Value transform layer.

Every attribute type has a ``Codec`` turning domain values into values a
SQLAlchemy column accepts (``encode``) and back (``decode``). Codecs live in an
explicit ``CodecRegistry`` handed to the ``Schema``; the schema resolves one
codec per attribute when it is built so no per-value type dispatch happens
afterwards.
"""
import decimal
import enum
import typing
import uuid
from datetime import datetime, timezone
from functools import singledispatch

import attr

from graph_mapper.attribute import Attribute, AttributeType, TypeTag, ValueFunction
from graph_mapper.errors import UnsupportedType


def _identity(value: typing.Any) -> typing.Any:
    return value


@singledispatch
def to_uuid(value: typing.Any) -> uuid.UUID:
    raise TypeError(f"Can not convert {value!r} to UUID")


@to_uuid.register(uuid.UUID)
def _(value: uuid.UUID) -> uuid.UUID:
    return value


@to_uuid.register(str)
def _(value: str) -> uuid.UUID:
    return uuid.UUID(value)


@singledispatch
def to_bool(value: typing.Any) -> bool:
    raise TypeError(f"Can not convert {value!r} to bool")


@to_bool.register(bool)
def _(value: bool) -> bool:
    return value


@singledispatch
def to_decimal(value: typing.Any) -> decimal.Decimal:
    raise TypeError(f"Can not convert {value!r} to Decimal")


@to_decimal.register(decimal.Decimal)
def _(value: decimal.Decimal) -> decimal.Decimal:
    return value


@to_decimal.register(int)
@to_decimal.register(float)
@to_decimal.register(str)
def _(value: typing.Union[int, float, str]) -> decimal.Decimal:
    return decimal.Decimal(str(value))


def to_utc(value: datetime) -> datetime:
    # naive timestamps coming back from the store are UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@attr.s(auto_attribs=True, frozen=True)
class Codec:
    encode: ValueFunction = _identity
    decode: ValueFunction = _identity
    # SQLAlchemy column type for caller-registered types
    column_type: typing.Any = None


def _skipping_none(function: ValueFunction) -> ValueFunction:
    if function is _identity:
        return function

    def wrapper(value: typing.Any) -> typing.Any:
        if value is None:
            return None
        return function(value)

    return wrapper


def enumeration_codec(enumeration: typing.Type[enum.Enum]) -> Codec:
    def encode(value: typing.Union[enum.Enum, str]) -> str:
        if isinstance(value, enumeration):
            return value.name
        return enumeration[value].name

    def decode(value: str) -> enum.Enum:
        return enumeration[value]

    return Codec(encode=encode, decode=decode)


DEFAULT_CODECS: typing.Dict[TypeTag, Codec] = {
    AttributeType.UUID: Codec(encode=to_uuid, decode=to_uuid),
    AttributeType.INT: Codec(),
    AttributeType.LONG: Codec(),
    AttributeType.STRING: Codec(),
    AttributeType.PASSWORD: Codec(),
    AttributeType.BOOLEAN: Codec(encode=to_bool, decode=to_bool),
    AttributeType.DECIMAL: Codec(encode=to_decimal, decode=to_decimal),
    AttributeType.INSTANT: Codec(encode=to_utc, decode=to_utc),
    AttributeType.ENUM: Codec(),
    AttributeType.KEYWORD: Codec(),
    AttributeType.SYMBOL: Codec(),
    # references are compiled against their target identity by the schema
    AttributeType.REF: Codec(),
}


@attr.s(auto_attribs=True, frozen=True)
class CodecRegistry:
    codecs: typing.Mapping[TypeTag, Codec] = attr.Factory(lambda: dict(DEFAULT_CODECS))

    def __contains__(self, type_tag: TypeTag) -> bool:
        return type_tag in self.codecs

    def register(self, type_tag: TypeTag, codec: Codec) -> "CodecRegistry":
        return attr.evolve(self, codecs={**self.codecs, type_tag: codec})

    def codec_for_type(self, type_tag: TypeTag) -> Codec:
        try:
            return self.codecs[type_tag]
        except KeyError:
            raise UnsupportedType(f"No codec registered for type - {type_tag}")

    def compile(self, attribute: Attribute) -> Codec:
        base = self.codec_for_type(attribute.type)
        if attribute.type is AttributeType.ENUM and attribute.enumeration:
            base = enumeration_codec(attribute.enumeration)
        return Codec(
            encode=_skipping_none(attribute.encode or base.encode),
            decode=_skipping_none(attribute.decode or base.decode),
            column_type=base.column_type,
        )
