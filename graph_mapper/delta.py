"""Delta types and the pure delta analysis done before any SQL is generated."""
import logging
import typing

import attr

from graph_mapper.attribute import Attribute, Cardinality
from graph_mapper.identity import Ident
from graph_mapper.schema import Schema


log = logging.getLogger(__name__)


class _Delete:
    _instance: typing.Optional["_Delete"] = None

    def __new__(cls) -> "_Delete":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DELETE"

    def __reduce__(self) -> str:
        return "DELETE"


# marks a whole entity (delta value) or a mirror change (``Change.after``) as a row deletion
DELETE = _Delete()


@attr.s(auto_attribs=True, frozen=True)
class Change:
    before: typing.Any = None
    after: typing.Any = None

    @property
    def is_noop(self) -> bool:
        return self.before == self.after


EntityChanges = typing.Dict[str, Change]
Delta = typing.Dict[Ident, typing.Union[EntityChanges, _Delete]]


@attr.s(auto_attribs=True, frozen=True)
class ScalarChange:
    before: typing.Any
    after: typing.Any


@attr.s(auto_attribs=True, frozen=True)
class RefOneChange:
    before: typing.Optional[Ident]
    after: typing.Optional[Ident]


@attr.s(auto_attribs=True, frozen=True)
class RefManyChange:
    added: typing.List[Ident]
    removed: typing.List[Ident]


ChangeVariant = typing.Union[ScalarChange, RefOneChange, RefManyChange]


def _ordered_difference(left: typing.Iterable[Ident], right: typing.Iterable[Ident]) -> typing.List[Ident]:
    excluded = set(right)
    return [ident for ident in dict.fromkeys(left) if ident not in excluded]


def classify(attribute: Attribute, change: Change) -> ChangeVariant:
    if not attribute.is_ref:
        return ScalarChange(change.before, change.after)
    if attribute.cardinality is Cardinality.MANY:
        before = change.before or []
        after = change.after or []
        return RefManyChange(added=_ordered_difference(after, before), removed=_ordered_difference(before, after))
    return RefOneChange(change.before, change.after)


def keys_in_delta(delta: Delta) -> typing.Set[str]:
    keys = {ident.key for ident in delta}
    for changes in delta.values():
        if changes is not DELETE:
            keys.update(changes)
    return keys


def partitions_for_delta(schema: Schema, delta: Delta) -> typing.Set[str]:
    partitions = set()
    for key in keys_in_delta(delta):
        attribute = schema[key]
        if attribute.is_stored:
            partitions.add(attribute.partition)
    return partitions


def _existing_after(delta: Delta, ident: Ident, key: str) -> typing.Any:
    changes = delta.get(ident)
    if not changes or changes is DELETE or key not in changes:
        return None
    return changes[key].after


def _assoc_mirror(delta: Delta, ident: Ident, key: str, change: Change) -> None:
    changes = delta.setdefault(ident, {})
    if changes is DELETE:
        # the referent is being deleted outright, there is no column left to update
        return
    previous = changes.get(key)
    if previous is not None and isinstance(previous.after, Ident) and previous.after != change.after:
        # two links for one row in a single delta; the later one wins
        log.warning("Conflicting mirror updates for %s %s: %r replaced by %r", ident, key, previous, change)
    changes[key] = change


def expand_references(schema: Schema, delta: Delta) -> Delta:
    """Return a copy of ``delta`` where every change of a mirrored reference is also
    expressed as a change of the mirror attribute on the referenced entity, which is
    the side whose table stores the foreign key."""
    expanded: Delta = {
        ident: changes if changes is DELETE else dict(changes) for ident, changes in delta.items()
    }

    for ident, changes in delta.items():
        if changes is DELETE:
            continue
        for key, change in changes.items():
            attribute = schema[key]
            if not attribute.mirror or (change.before is None and change.after is None):
                continue

            mirror = attribute.mirror
            unlinked = DELETE if attribute.delete_orphan else None
            variant = classify(attribute, change)

            if isinstance(variant, RefOneChange):
                if variant.after is not None:
                    _assoc_mirror(expanded, variant.after, mirror, Change(after=ident))
                if variant.before is not None and variant.before != variant.after:
                    existing = _existing_after(expanded, variant.before, mirror)
                    after = existing if existing is not None else unlinked
                    _assoc_mirror(expanded, variant.before, mirror, Change(before=ident, after=after))
            else:
                for added in variant.added:
                    _assoc_mirror(expanded, added, mirror, Change(after=ident))
                for removed in variant.removed:
                    existing = _existing_after(expanded, removed, mirror)
                    after = existing if existing is not None else unlinked
                    _assoc_mirror(expanded, removed, mirror, Change(before=ident, after=after))

    return expanded
