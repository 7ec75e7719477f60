import functools
import re
from collections.abc import Sequence, Mapping, Set
from contextlib import contextmanager
from types import MappingProxyType
from typing import final


@final
class UnsetType:
    """
    sentinel type for parameters the caller did not pass.

    None is a meaningful value for most clipline fields (no short form, no
    help, no base scope), so "omitted" needs its own marker.

    - falsy, singleton, shown as "Unset".
    - usable in isinstance() unions: isinstance(x, str | Unset).
    """

    def __or__(self, other, /):
        try:
            return type(self) | other
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __init_subclass__(cls):
        raise TypeError("type 'UnsetType' is not an acceptable base type")


Unset = UnsetType()


def nullify(object, default=None, /):
    """
    `default` when `object` is Unset, `object` otherwise.
    """
    return default if object is Unset else object


coalesce = nullify


def rename(x, /, name=None):
    """
    give a callable a fixed __name__/__qualname__; with a string, return a decorator doing so.
    """
    if isinstance(x, str):
        return functools.partial(rename, name=x)
    if not isinstance(name, str):
        raise TypeError("callable name must be a string")
    x.__qualname__ = name
    x.__name__ = name
    return x


class StorageGuard:
    """
    base for the immutable records (options, scopes, registries, contexts).

    fields live under backing names starting with '-', which no attribute
    access can reach. they are writable only while the instance is being
    built inside the guarded constructor:

        with super().__new__(cls) as self:
            setattr(self, "-name", name)

    once the block exits every backing field is frozen.
    """
    __slots__ = ("__building",)

    @contextmanager
    def __new__(cls):
        self = super().__new__(cls)
        self.__building = True
        try:
            yield self
        finally:
            self.__building = False

    def __getattribute__(self, name, /):
        if isinstance(name, str) and name.startswith("-"):
            raise AttributeError("internal storage is not accessible")
        return object.__getattribute__(self, name)

    def __setattr__(self, name, value, /):
        if isinstance(name, str) and name.startswith("-"):
            if not self.__building:
                raise AttributeError("internal storage is read-only")
        return object.__setattr__(self, name, value)


def view(name):
    """
    read-only property over the backing field `-name`.

    containers come back frozen (tuple, mappingproxy, frozenset), so a caller
    holding an option list cannot reach into a registry and reorder it.
    """

    @rename(name)
    def getter(self):
        value = object.__getattribute__(self, "-" + name)
        if isinstance(value, Sequence) and not isinstance(value, str):
            return tuple(value)
        if isinstance(value, Mapping):
            return MappingProxyType(value)
        if isinstance(value, Set):
            return frozenset(value)
        return value

    return property(getter)


class ModelType(type):
    """
    Metaclass of the registry records and the parse context.

    - every name in __fields__ becomes a view() property.
    - __typename__ is the hyphenated lower-case class name ("option", "context"),
      used as the subject of construction errors.
    - __repr__ and __rich_repr__ are generated unless the class writes its own;
      __displayable__ narrows the fields they show.
    """
    __fields__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                field: view(field) for field in namespace.get("__fields__", ())
            },
            **options
        )

        if "__rich_repr__" not in namespace:
            @rename("__rich_repr__")
            def __rich_repr__(self):
                for field in coalesce(type(self).__displayable__, type(self).__fields__):
                    yield field, getattr(self, field)
            self.__rich_repr__ = __rich_repr__

        if "__repr__" not in namespace:
            @rename("__repr__")
            def __repr__(self):
                fields = ", ".join(f"{field}={object!r}" for field, object in self.__rich_repr__())
                return f"{type(self).__typename__}({fields})"
            self.__repr__ = __repr__

        return self


_ORDINALS = ("first", "second", "third", "fourth", "fifth", "sixth", "seventh", "eighth", "ninth", "tenth")


@functools.cache
def ordinal(number):
    """
    "first" … "tenth", then "11th", "22nd", "103rd", "112th" …
    """
    if 1 <= number <= len(_ORDINALS):
        return _ORDINALS[number - 1]
    if 10 < number % 100 < 20:
        return f"{number}th"
    return str(number) + {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")


__all__ = (
    "UnsetType",
    "Unset",
    "nullify",
    "coalesce",
    "rename",
    "StorageGuard",
    "view",
    "ModelType",
    "ordinal",
)
