import logging
from typing import List, Optional

from sqlalchemy import Column, ForeignKey, Sequence, Table

from graph_mapper.abstract_schema_tree import CollectionNode, EntityNode, FieldNode, ReferenceNode, Visitor
from graph_mapper.attribute import SEQUENCE_BACKED_TYPES, Attribute
from graph_mapper.schema import Schema
from graph_mapper.storages.sqlalchemy import native_type_to_column
from graph_mapper.storages.sqlalchemy.registry import SaRegistry


log = logging.getLogger(__name__)


class TableConstructingVisitor(Visitor):
    def __init__(self, schema: Schema, registry: SaRegistry) -> None:
        self._schema = schema
        self._registry = registry
        self._entity: Optional[EntityNode] = None
        self._columns: List[Column] = []

    def _column_type(self, attribute: Attribute):
        return native_type_to_column.convert(attribute, self._schema.codec(attribute.key))

    def visit_entity(self, entity: EntityNode) -> None:
        if entity.attribute.key in self._registry.identities_tables:
            raise NotImplementedError(f"Table for {entity.attribute.key} already constructed")
        self._entity = entity
        self._columns = []

    def leave_entity(self, entity: EntityNode) -> None:
        identity = entity.attribute
        table = Table(
            self._schema.table_name(identity), self._registry.metadata_for(identity.partition), *self._columns
        )
        self._registry.identities_tables[identity.key] = table
        log.debug("Constructed table %s for %s in partition %s", table.name, identity.key, identity.partition)
        self._entity = None
        self._columns = []

    def visit_field(self, field: FieldNode) -> None:
        attribute = field.attribute
        name = self._schema.column_name(attribute)
        column_type = self._column_type(attribute)

        if not field.is_identity:
            self._columns.append(Column(name, column_type, nullable=True))
            return

        if attribute.type in SEQUENCE_BACKED_TYPES:
            sequence = Sequence(
                self._schema.sequence_name(attribute), metadata=self._registry.metadata_for(attribute.partition)
            )
            self._registry.identities_sequences[attribute.key] = sequence
            self._columns.append(Column(name, column_type, sequence, primary_key=True))
        else:
            self._columns.append(Column(name, column_type, primary_key=True))

    def visit_reference(self, reference: ReferenceNode) -> None:
        attribute = reference.attribute
        if attribute.mirror:
            # the foreign key lives on the target's table
            return

        target = self._schema.identity_of_key(attribute.target)
        name = self._schema.column_name(attribute)
        args = []
        if target.partition == self._entity.attribute.partition:
            args.append(
                ForeignKey(
                    f"{self._schema.table_name(target)}.{self._schema.column_name(target)}",
                    # named so tables referencing each other can still be dropped
                    name=f"{self._schema.table_name(self._entity.attribute)}_{name}_fkey",
                    deferrable=True,
                    initially="DEFERRED",
                )
            )
        self._columns.append(Column(name, self._column_type(target), *args, nullable=True, index=True))

    def visit_collection(self, collection: CollectionNode) -> None:
        # stored as the mirror's foreign key on the target's table
        pass
