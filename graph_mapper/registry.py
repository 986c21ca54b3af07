from typing import Dict

import attr

from graph_mapper.abstract_schema_tree import AbstractSchemaTree, build
from graph_mapper.schema import Schema


@attr.s(auto_attribs=True)
class Registry:
    identities_to_trees: Dict[str, AbstractSchemaTree] = attr.Factory(dict)

    def register(self, schema: Schema) -> None:
        for identity in schema.identities:
            if identity.key not in self.identities_to_trees:
                self.identities_to_trees[identity.key] = build(schema, identity.key)
