import logging
import typing
from collections import Counter

import attr

from graph_mapper.abstract_schema_tree import CollectionNode, EntityNode, ReferenceNode, Visitor
from graph_mapper.attribute import Attribute
from graph_mapper.schema import Schema
from graph_mapper.storages.sqlalchemy.querying.resolvers import (
    ForeignKeyToOneResolver,
    IdResolver,
    MirroredToOneResolver,
    Resolver,
    ToManyResolver,
)
from graph_mapper.storages.sqlalchemy.registry import SaRegistry


log = logging.getLogger(__name__)


@attr.s(auto_attribs=True, frozen=True)
class Resolvers:
    # identity key -> resolver of whole rows by id
    id_resolvers: typing.Mapping[str, IdResolver]
    # attribute key -> resolver of a reference
    attribute_resolvers: typing.Mapping[str, Resolver]


class ResolverGeneratingVisitor(Visitor):
    def __init__(self, schema: Schema, registry: SaRegistry) -> None:
        self._schema = schema
        self._registry = registry
        self._id_resolvers: typing.Dict[str, IdResolver] = {}
        self._attribute_resolvers: typing.Dict[str, Resolver] = {}
        self._foreign_keys: typing.List[Attribute] = []
        self._mirrored: typing.List[Attribute] = []

    def visit_entity(self, entity: EntityNode) -> None:
        identity_key = entity.attribute.key
        self._id_resolvers[identity_key] = IdResolver(self._schema, self._registry, identity_key)

    def visit_reference(self, reference: ReferenceNode) -> None:
        # both kinds need the target's id resolver, which may not be generated yet
        if reference.attribute.mirror:
            self._mirrored.append(reference.attribute)
        else:
            self._foreign_keys.append(reference.attribute)

    def visit_collection(self, collection: CollectionNode) -> None:
        attribute = collection.attribute
        self._attribute_resolvers[attribute.key] = ToManyResolver(self._schema, self._registry, attribute)

    @property
    def resolvers(self) -> Resolvers:
        for attribute in self._foreign_keys:
            self._attribute_resolvers[attribute.key] = ForeignKeyToOneResolver(
                attribute, self._id_resolvers[attribute.target]
            )
        for attribute in self._mirrored:
            self._attribute_resolvers[attribute.key] = MirroredToOneResolver(
                self._schema, self._registry, attribute, self._id_resolvers[attribute.target]
            )
        self._foreign_keys = []
        self._mirrored = []
        return Resolvers(dict(self._id_resolvers), dict(self._attribute_resolvers))


def generate_resolvers(schema: Schema, registry: SaRegistry) -> Resolvers:
    visitor = ResolverGeneratingVisitor(schema, registry)
    for identity in schema.identities:
        visitor.traverse_from(registry.identities_to_trees[identity.key].root)
    resolvers = visitor.resolvers

    per_partition = Counter(schema[key].partition for key in resolvers.id_resolvers)
    per_partition.update(schema[key].partition for key in resolvers.attribute_resolvers)
    for partition, count in sorted(per_partition.items()):
        log.info("Generated %d resolvers for partition %s", count, partition)
    return resolvers
