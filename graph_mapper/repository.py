import abc
import typing

from graph_mapper.delta import Delta
from graph_mapper.identity import TempId


class Repository(abc.ABC):
    @abc.abstractmethod
    def get(
        self, identity_key: str, ids: typing.Iterable[typing.Any], shape: typing.List[typing.Any]
    ) -> typing.List[typing.Optional[dict]]:
        pass

    @abc.abstractmethod
    def save(self, delta: Delta) -> typing.Dict[TempId, typing.Any]:
        pass
