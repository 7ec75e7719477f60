r"""
Clipline registry: option and scope models, lookup and verification.

Overview
- Models
  • Option: one declared flag. Identity (short char / long name), mode, value tag, help.
  • Scope: an ordered run of options, either named (a sub-command) or anonymous (the base).
  • Registry: the base scope plus the named scopes. Immutable once built.

- Factories
  • switch(short, name, help): presence-only option, dispatched with no value.
  • value(short, name, tag, help): option that must be paired with a value.
  • catchall(tag, help): the scope's sink for positional tokens.

- Resolution
  • Registry.lookup(key, live) walks the two-level scope chain (live, then base)
    and returns a Resolution(scope, option) pair, or None.
  • Registry.command(name) resolves a sub-command by exact name.

- Verification
  • verify(registry) reports every structural problem as a Violation instead of
    failing at construction time, so a host can list them all at once.

Metadata (sanitized on construction)
- short: Unset | None | str of exactly one character.
- name: Unset | None | str, non-empty, no whitespace and no '='.
- tag: Unset | None | str, non-empty after trimming.
- help: Unset | None | str | Text, non-empty after trimming.
- mode: Mode (ints are coerced).

Quick example:
    >>> from clipline.registry import Registry, Scope, switch, value, catchall
    >>> registry = Registry(
    ...     Scope(None, [switch("v", "verbose", "Give more output.")]),
    ...     [Scope("install", [value("e", "editable", "path/url", "Install in editable mode."),
    ...                        catchall("PACKAGE", "Packages to install.")])],
    ... )
    >>> registry.lookup("e", registry.command("install"))
    Resolution(scope=scope(name='install', ...), option=option(short='e', ...))
"""
import logging
import re
from collections import Counter
from collections.abc import Iterable
from enum import IntEnum
from typing import NamedTuple

from rich.text import Text

from .faults import FaultCode, Violation
from .utils import *

logger = logging.getLogger(__name__)


class Mode(IntEnum):
    """
    how an option consumes tokens.

    - SWITCH: presence only, dispatched with value None.
    - VALUE: must be paired with a value (inline, after '=', or the next token).
    - CATCHALL: absorbs positional tokens; has neither short nor long identity.
    """
    SWITCH = 0x00
    VALUE = 0x01
    CATCHALL = 0x02


def _sanitize_text(cls, metadata, key, /, *, rich=False):
    """
    Internal: validate an optional text field and store it trimmed (or None).

    Raises
    - TypeError: if the value is not a string (or Text when rich is set), None or Unset.
    - ValueError: if the string (or the plain text of a Text) is empty after trimming.
    """
    if not isinstance(text := metadata[key], (str | Text | None | Unset) if rich else (str | None | Unset)):
        raise TypeError(f"{cls.__typename__} {key!r} must be a string")
    elif isinstance(text, str) and not (text := text.strip()):
        raise ValueError(f"{cls.__typename__} {key!r} cannot be empty")
    elif isinstance(text, Text) and not text.plain.strip():
        raise ValueError(f"{cls.__typename__} {key!r} cannot be empty")
    metadata[key] = coalesce(text)


def _sanitize_identity(cls, metadata, /):
    """
    Internal: validate the short/long identity of an option.

    Only the shape of each spelling is checked here. Whether an option needs an
    identity at all depends on its mode and is reported by verify().
    """
    if not isinstance(short := metadata["short"], str | None | Unset):
        raise TypeError(f"{cls.__typename__} 'short' must be a string")
    elif isinstance(short, str) and len(short) != 1:
        raise ValueError(f"{cls.__typename__} 'short' must be a single character")
    elif isinstance(short, str) and (short.isspace() or short == "="):
        raise ValueError(f"{cls.__typename__} 'short' cannot be a blank or '='")
    metadata["short"] = coalesce(short)

    if not isinstance(name := metadata["name"], str | None | Unset):
        raise TypeError(f"{cls.__typename__} 'name' must be a string")
    elif isinstance(name, str) and not name:
        raise ValueError(f"{cls.__typename__} 'name' cannot be empty")
    elif isinstance(name, str) and not re.fullmatch(r"[^\s=]+", name):
        raise ValueError(f"{cls.__typename__} 'name' cannot contain blanks or '='")
    metadata["name"] = coalesce(name)


class Option(StorageGuard, metaclass=ModelType):
    """
    Static description of one declared option.

    An Option never parses anything by itself: the parser resolves tokens to
    it and hands the occurrence to the context callback.

    Properties
    - short: str | None, the single-character identity ("-x").
    - name: str | None, the long identity ("--name").
    - tag: str | None, display name of the value (value options and catch-alls).
    - mode: Mode.
    - help: str | Text | None, options without help are parseable but hidden from summaries.
    - spellings: the documented spellings, short first.
    """
    __fields__ = ("short", "name", "tag", "mode", "help")

    def __new__(cls, short=Unset, name=Unset, /, tag=Unset, mode=Mode.SWITCH, help=Unset):
        metadata = {
            "short": short,
            "name": name,
            "tag": tag,
            "mode": mode,
            "help": help,
        }
        _sanitize_identity(cls, metadata)
        _sanitize_text(cls, metadata, "tag")
        _sanitize_text(cls, metadata, "help", rich=True)

        if not isinstance(mode, int):
            raise TypeError(f"{cls.__typename__} 'mode' must be a mode")
        try:
            metadata["mode"] = Mode(mode)
        except ValueError:
            raise ValueError(f"{cls.__typename__} 'mode' must be one of {', '.join(Mode.__members__)}") from None

        with super().__new__(cls) as self:
            for field, object in metadata.items():
                setattr(self, "-" + field, object)
        return self

    @property
    def spellings(self):
        return tuple(
            marker + identity for marker, identity in (("-", self.short), ("--", self.name)) if identity is not None
        )

    @property
    def label(self):
        """
        the preferred spelling for messages: long name, else short, else the tag.
        """
        if self.name is not None:
            return "--" + self.name
        if self.short is not None:
            return "-" + self.short
        return self.tag

    def matches(self, key, /):
        """
        exact-match rule: a one-character key is a short identity, anything longer a long name.

        catch-alls never match.
        """
        if self.mode is Mode.CATCHALL or not key:
            return False
        if len(key) == 1:
            return key == self.short
        return key == self.name


class Scope(StorageGuard, metaclass=ModelType):
    """
    An ordered set of options. The base scope has no name.
    """
    __fields__ = ("name", "options")

    def __new__(cls, name=None, options=(), /):
        if not isinstance(name, str | None):
            raise TypeError(f"{cls.__typename__} 'name' must be a string")
        elif isinstance(name, str) and not name:
            raise ValueError(f"{cls.__typename__} 'name' cannot be empty")

        if not isinstance(options, Iterable):
            raise TypeError(f"{cls.__typename__} 'options' must be iterable")
        options = tuple(options)
        if not all(isinstance(option, Option) for option in options):
            raise TypeError(f"{cls.__typename__} 'options' must only contain options")

        with super().__new__(cls) as self:
            setattr(self, "-name", name)
            setattr(self, "-options", options)
        return self

    def __iter__(self):
        return iter(self.options)

    def __len__(self):
        return len(self.options)

    @property
    def catchall(self):
        for option in self.options:
            if option.mode is Mode.CATCHALL:
                return option
        return None

    def find(self, key, /):
        for option in self.options:
            if option.matches(key):
                return option
        return None


class Resolution(NamedTuple):
    scope: Scope
    option: Option


class Registry(StorageGuard, metaclass=ModelType):
    """
    The complete, immutable description of what a program accepts.

    Properties
    - base: Scope | None, options that resolve from every scope.
    - commands: tuple[Scope, ...], the named scopes (sub-commands), in declaration order.
    """
    __fields__ = ("base", "commands")

    def __new__(cls, base=None, commands=(), /):
        if not isinstance(base, Scope | None):
            raise TypeError(f"{cls.__typename__} 'base' must be a scope")

        if not isinstance(commands, Iterable):
            raise TypeError(f"{cls.__typename__} 'commands' must be iterable")
        commands = tuple(commands)
        if not all(isinstance(command, Scope) for command in commands):
            raise TypeError(f"{cls.__typename__} 'commands' must only contain scopes")

        with super().__new__(cls) as self:
            setattr(self, "-base", base)
            setattr(self, "-commands", commands)
        return self

    def command(self, name, /):
        """
        return the named scope whose name equals `name` exactly, or None.
        """
        for command in self.commands:
            if command.name == name:
                return command
        return None

    def lookup(self, key, live=None, /):
        """
        resolve `key` against the live scope, then the base scope if it differs.

        returns
        - Resolution(scope, option) naming the scope that resolved the key, or None.
        """
        for scope in (live, self.base) if live is not self.base else (live,):
            if scope is not None and (option := scope.find(key)) is not None:
                logger.debug("resolved %r to %r in %s", key, option.label, scope.name or "base scope")
                return Resolution(scope, option)
        return None


def switch(short=None, name=None, help=None, /):
    """
    declare a presence-only option.
    """
    return Option(short, name, mode=Mode.SWITCH, help=help)


def value(short=None, name=None, tag=None, help=None, /):
    """
    declare an option that must be paired with a value shown as `tag`.
    """
    return Option(short, name, tag=tag, mode=Mode.VALUE, help=help)


def catchall(tag=None, help=None, /):
    """
    declare the sink for positional tokens of a scope.
    """
    return Option(None, None, tag=tag, mode=Mode.CATCHALL, help=help)


def _verify_scope(scope, /):
    name = scope.name
    catchalls = 0
    seen = set()

    for option in scope.options:
        if option.mode is Mode.CATCHALL:
            catchalls += 1
            if option.short is not None or option.name is not None:
                yield Violation(FaultCode.NAMED_CATCHALL, name, option, "catch-all cannot have a short or long name")
            if option.tag is None:
                yield Violation(FaultCode.UNTAGGED_CATCHALL, name, option, "catch-all must have a tag")
            continue

        if option.short is None and option.name is None:
            yield Violation(FaultCode.NAMELESS_OPTION, name, option, "option must have a short or a long name")
        if option.mode is Mode.VALUE and option.tag is None:
            yield Violation(FaultCode.UNTAGGED_VALUE, name, option, "value option must have a tag")
        if option.mode is Mode.SWITCH and option.tag is not None:
            yield Violation(FaultCode.TAGGED_SWITCH, name, option, "switch cannot have a tag")
        if option.short is not None and not option.short.isalnum():
            yield Violation(
                FaultCode.UNREACHABLE_NAME, name, option,
                f"short name {option.short!r} is unreachable (must be a letter or digit)"
            )
        if option.name is not None and len(option.name) == 1:
            yield Violation(
                FaultCode.UNREACHABLE_NAME, name, option, f"long name {option.name!r} is unreachable (single character)"
            )
        elif option.name is not None and not option.name[0].isalnum():
            yield Violation(
                FaultCode.UNREACHABLE_NAME, name, option,
                f"long name {option.name!r} is unreachable (must start with a letter or digit)"
            )

        for spelling in option.spellings:
            if spelling in seen:
                yield Violation(FaultCode.DUPLICATED_SPELLING, name, option, f"spelling {spelling!r} is declared twice")
            seen.add(spelling)

    if catchalls > 1:
        yield Violation(FaultCode.MULTIPLE_CATCHALLS, name, None, "scope cannot have more than one catch-all")


def verify(registry, /):
    """
    Collect every structural problem of a registry.

    Returns
    - list[Violation], empty when the registry is sound.

    Raises
    - TypeError: if `registry` is not a Registry.

    Notes
    - Violations are reported in declaration order: base scope first, then each
      named scope, then registry-wide rules.
    """
    if not isinstance(registry, Registry):
        raise TypeError("verify() argument must be a registry")

    violations = []
    if registry.base is not None:
        if registry.base.name is not None:
            violations.append(Violation(FaultCode.NAMED_BASE, registry.base.name, None, "base scope cannot have a name"))
        violations.extend(_verify_scope(registry.base))

    for command in registry.commands:
        if command.name is None:
            violations.append(Violation(FaultCode.UNNAMED_COMMAND, None, None, "sub-command scope must have a name"))
        elif not command.name[0].isalnum():
            violations.append(Violation(
                FaultCode.UNREACHABLE_COMMAND, command.name, None,
                f"sub-command {command.name!r} is unreachable (must start with a letter or digit)"
            ))
        violations.extend(_verify_scope(command))

    for name, count in Counter(command.name for command in registry.commands if command.name is not None).items():
        if count > 1:
            violations.append(Violation(FaultCode.DUPLICATED_COMMAND, name, None, f"sub-command {name!r} is declared twice"))

    if not registry.commands and (registry.base is None or not registry.base.options):
        violations.append(Violation(FaultCode.EMPTY_REGISTRY, None, None, "registry must declare an option or a sub-command"))

    return violations


__all__ = (
    "Mode",
    "Option",
    "Scope",
    "Resolution",
    "Registry",
    "switch",
    "value",
    "catchall",
    "verify",
)
