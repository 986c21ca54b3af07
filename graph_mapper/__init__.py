from graph_mapper.attribute import Attribute, AttributeType, Cardinality
from graph_mapper.config import Settings
from graph_mapper.delta import DELETE, Change
from graph_mapper.identity import Ident, TempId
from graph_mapper.repository import Repository
from graph_mapper.schema import Schema
from graph_mapper.transform import Codec, CodecRegistry


__all__ = [
    "Attribute",
    "AttributeType",
    "Cardinality",
    "Change",
    "Codec",
    "CodecRegistry",
    "DELETE",
    "Ident",
    "Repository",
    "Schema",
    "Settings",
    "TempId",
]
