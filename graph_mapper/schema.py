import logging
import typing
from collections import OrderedDict

import inflection

from graph_mapper.attribute import Attribute, AttributeType, Cardinality
from graph_mapper.errors import InvalidAttribute, UnknownAttribute
from graph_mapper.identity import Ident
from graph_mapper.transform import Codec, CodecRegistry


log = logging.getLogger(__name__)


class Schema:
    """Validated, indexed view over the attribute descriptors of an application.

    Built once at startup and never mutated, so it can be shared between threads.
    """

    def __init__(self, attributes: typing.Iterable[Attribute], registry: typing.Optional[CodecRegistry] = None) -> None:
        self.attributes: typing.Tuple[Attribute, ...] = tuple(attributes)
        self.registry = registry or CodecRegistry()
        self.key_to_attribute: typing.Dict[str, Attribute] = {}
        self.identity_to_attributes: typing.Dict[str, typing.List[Attribute]] = OrderedDict()

        for attribute in self.attributes:
            if attribute.key in self.key_to_attribute:
                raise InvalidAttribute(f"Duplicate attribute key - {attribute.key}")
            self.key_to_attribute[attribute.key] = attribute
            if attribute.identity:
                self.identity_to_attributes.setdefault(attribute.key, [])

        for attribute in self.attributes:
            if attribute.identity or not attribute.is_stored:
                continue
            for identity_key in sorted(attribute.identities):
                self.identity_to_attributes.setdefault(identity_key, []).append(attribute)

        for attribute in self.attributes:
            self._validate(attribute)

        self._codecs: typing.Dict[str, Codec] = {}
        for attribute in self.attributes:
            if not attribute.is_ref:
                self._codecs[attribute.key] = self.registry.compile(attribute)
        for attribute in self.attributes:
            if attribute.is_ref:
                self._codecs[attribute.key] = self._compile_reference(attribute)

    def __getitem__(self, key: str) -> Attribute:
        try:
            return self.key_to_attribute[key]
        except KeyError:
            raise UnknownAttribute(f"Unknown attribute - {key}")

    def __contains__(self, key: str) -> bool:
        return key in self.key_to_attribute

    def get(self, key: str) -> typing.Optional[Attribute]:
        return self.key_to_attribute.get(key)

    @property
    def identities(self) -> typing.List[Attribute]:
        return [self.key_to_attribute[key] for key in self.identity_to_attributes]

    @property
    def partitions(self) -> typing.Set[str]:
        return {attribute.partition for attribute in self.attributes if attribute.is_stored}

    def attributes_of(self, identity_key: str) -> typing.List[Attribute]:
        return list(self.identity_to_attributes.get(identity_key, []))

    def identity_of_key(self, identity_key: str) -> Attribute:
        identity = self[identity_key]
        if not identity.identity:
            raise InvalidAttribute(f"{identity_key} is not an identity attribute")
        return identity

    def identity_of(self, ident: Ident) -> Attribute:
        return self.identity_of_key(ident.key)

    # storage names

    def table_name(self, attribute: Attribute) -> str:
        if attribute.identity:
            return attribute.table or inflection.pluralize(inflection.underscore(attribute.entity))
        if not attribute.identities:
            raise InvalidAttribute(f"{attribute.key} is not stored against any identity")
        return self.table_name(self[sorted(attribute.identities)[0]])

    def column_name(self, attribute: Attribute) -> str:
        return attribute.column or inflection.underscore(attribute.name)

    def sequence_name(self, identity: Attribute) -> str:
        return f"{self.table_name(identity)}_{self.column_name(identity)}_seq"

    # value transformation

    def codec(self, key: str) -> Codec:
        try:
            return self._codecs[key]
        except KeyError:
            raise UnknownAttribute(f"Unknown attribute - {key}")

    def encode(self, attribute: Attribute, value: typing.Any) -> typing.Any:
        return self._codecs[attribute.key].encode(value)

    def decode(self, attribute: Attribute, value: typing.Any) -> typing.Any:
        return self._codecs[attribute.key].decode(value)

    def _compile_reference(self, attribute: Attribute) -> Codec:
        target = self._codecs[attribute.target]
        target_key = attribute.target

        def encode(value: typing.Any) -> typing.Any:
            if value is None:
                return None
            if isinstance(value, Ident):
                value = value.id
            return target.encode(value)

        def decode(value: typing.Any) -> typing.Optional[Ident]:
            if value is None:
                return None
            return Ident(target_key, target.decode(value))

        return Codec(encode=attribute.encode or encode, decode=attribute.decode or decode)

    def _validate(self, attribute: Attribute) -> None:
        self.registry.codec_for_type(attribute.type)

        if attribute.identity:
            if not attribute.is_stored:
                raise InvalidAttribute(f"Identity {attribute.key} must declare a partition")
            if attribute.is_ref:
                raise InvalidAttribute(f"Identity {attribute.key} can not be a reference")
        elif attribute.is_stored and not attribute.identities:
            raise InvalidAttribute(f"{attribute.key} is stored but declares no identities")

        for identity_key in attribute.identities:
            owner = self.get(identity_key)
            if owner is None or not owner.identity:
                raise InvalidAttribute(f"{attribute.key} names {identity_key} which is not an identity attribute")
            if attribute.is_stored and owner.partition != attribute.partition:
                raise InvalidAttribute(f"{attribute.key} is not stored in the partition of {identity_key}")

        if not attribute.is_ref:
            return

        if attribute.cardinality is Cardinality.SCALAR:
            raise InvalidAttribute(f"Reference {attribute.key} must have cardinality one or many")
        target = self.get(attribute.target) if attribute.target else None
        if target is None or not target.identity:
            raise InvalidAttribute(f"Reference {attribute.key} must target an identity attribute")

        if attribute.cardinality is Cardinality.MANY and not attribute.mirror:
            raise InvalidAttribute(f"To-many reference {attribute.key} must declare its mirror")

        if attribute.mirror:
            mirror = self.get(attribute.mirror)
            if (
                mirror is None
                or mirror.type is not AttributeType.REF
                or mirror.cardinality is not Cardinality.ONE
                or mirror.mirror is not None
            ):
                raise InvalidAttribute(f"Mirror of {attribute.key} must be a to-one reference storing its own FK")
            if attribute.target not in mirror.identities:
                raise InvalidAttribute(f"Mirror {mirror.key} is not stored on {attribute.target}")

        if attribute.order_by and attribute.order_by not in self.key_to_attribute:
            raise InvalidAttribute(f"{attribute.key} is ordered by unknown attribute {attribute.order_by}")
