from typing import Dict

import attr
from sqlalchemy import MetaData, Sequence, Table

from graph_mapper.errors import UnknownAttribute
from graph_mapper.registry import Registry


@attr.s(auto_attribs=True)
class SaRegistry(Registry):
    partitions_metadata: Dict[str, MetaData] = attr.Factory(dict)
    identities_tables: Dict[str, Table] = attr.Factory(dict)
    identities_sequences: Dict[str, Sequence] = attr.Factory(dict)

    def metadata_for(self, partition: str) -> MetaData:
        if partition not in self.partitions_metadata:
            self.partitions_metadata[partition] = MetaData()
        return self.partitions_metadata[partition]

    def table_for(self, identity_key: str) -> Table:
        try:
            return self.identities_tables[identity_key]
        except KeyError:
            raise UnknownAttribute(f"No table constructed for - {identity_key}")
