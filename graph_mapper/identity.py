import typing
import uuid

import attr


@attr.s(auto_attribs=True, frozen=True)
class TempId:
    """Placeholder id for an entity the store has not assigned an id to yet."""

    value: uuid.UUID = attr.Factory(uuid.uuid4)

    def __repr__(self) -> str:
        return f"TempId({self.value})"


@attr.s(auto_attribs=True, frozen=True)
class Ident:
    # key of the identity attribute, e.g. "account.id"
    key: str
    id: typing.Any

    @property
    def is_temporary(self) -> bool:
        return isinstance(self.id, TempId)


def is_tempid(value: typing.Any) -> bool:
    return isinstance(value, TempId)
