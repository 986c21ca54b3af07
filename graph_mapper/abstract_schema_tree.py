import abc
import inspect
import typing
from collections import deque

import attr

from graph_mapper.attribute import Attribute, Cardinality
from graph_mapper.schema import Schema


class Visitor:
    def traverse_from(self, node: "Node") -> None:
        node.accept(self)
        for child in node.children:
            self.traverse_from(child)
        node.farewell(self)

    def visit_field(self, field: "FieldNode") -> None:
        pass

    def leave_field(self, field: "FieldNode") -> None:
        pass

    def visit_entity(self, entity: "EntityNode") -> None:
        pass

    def leave_entity(self, entity: "EntityNode") -> None:
        pass

    def visit_reference(self, reference: "ReferenceNode") -> None:
        pass

    def leave_reference(self, reference: "ReferenceNode") -> None:
        pass

    def visit_collection(self, collection: "CollectionNode") -> None:
        pass

    def leave_collection(self, collection: "CollectionNode") -> None:
        pass


class NodeMeta(type):
    def __new__(mcs, name: str, bases: tuple, namespace: dict) -> typing.Type:
        cls = super().__new__(mcs, name, bases, namespace)
        if inspect.isabstract(cls):
            return cls
        return attr.s(auto_attribs=True)(cls)


class Node(metaclass=NodeMeta):
    name: str
    attribute: Attribute
    children: typing.List["Node"] = attr.Factory(list)

    @abc.abstractmethod
    def accept(self, visitor: Visitor) -> None:
        pass

    @abc.abstractmethod
    def farewell(self, visitor: Visitor) -> None:
        pass


class FieldNode(Node):
    is_identity: bool = False

    def accept(self, visitor: Visitor) -> None:
        visitor.visit_field(self)

    def farewell(self, visitor: Visitor) -> None:
        visitor.leave_field(self)


class EntityNode(Node):
    def accept(self, visitor: Visitor) -> None:
        visitor.visit_entity(self)

    def farewell(self, visitor: Visitor) -> None:
        visitor.leave_entity(self)


class ReferenceNode(Node):
    """To-one reference. Stores its own foreign key unless ``attribute.mirror`` is set."""

    def accept(self, visitor: Visitor) -> None:
        visitor.visit_reference(self)

    def farewell(self, visitor: Visitor) -> None:
        visitor.leave_reference(self)


class CollectionNode(Node):
    def accept(self, visitor: Visitor) -> None:
        visitor.visit_collection(self)

    def farewell(self, visitor: Visitor) -> None:
        visitor.leave_collection(self)


@attr.s(auto_attribs=True)
class AbstractSchemaTree:
    root: EntityNode

    def __iter__(self) -> typing.Generator[Node, None, None]:
        def iterate_dfs() -> typing.Generator[Node, None, None]:
            nodes_left: typing.Deque[Node] = deque([self.root])

            while nodes_left:
                current = nodes_left.pop()
                yield current
                nodes_left.extend(current.children[::-1])

        return iterate_dfs()


def build(schema: Schema, identity_key: str) -> AbstractSchemaTree:
    # references are leaves: the graph may be cyclic, targets get trees of their own
    identity = schema.identity_of_key(identity_key)
    children: typing.List[Node] = [FieldNode(identity.name, identity, [], True)]

    for attribute in schema.attributes_of(identity_key):
        if not attribute.is_ref:
            children.append(FieldNode(attribute.name, attribute))
        elif attribute.cardinality is Cardinality.MANY:
            children.append(CollectionNode(attribute.name, attribute))
        else:
            children.append(ReferenceNode(attribute.name, attribute))

    return AbstractSchemaTree(EntityNode(identity.entity, identity, children))
