"""
Clipline parse context and callback dispatch.

A Context bundles everything a parse needs that does not change between runs:
the registry, the callback, program metadata, behavior flags and the output
sink. It stores no cursor and no live scope, so one Context may be parsed any
number of times, from any thread.

Callback contract
- callback(context, scope, option, value) -> status
  • switch occurrence: value is None.
  • value occurrence: value is the acquired string (possibly empty).
  • positional occurrence: option is the catch-all (or None), value is the token.
- a falsy status (0 or None) continues; anything else aborts the parse.
"""
import logging
import os
import sys
from enum import IntFlag

from rich.console import Console

from .faults import CallbackFailedError, FaultCode, InvalidRegistryError, Violation
from .registry import Registry, verify
from .utils import *

logger = logging.getLogger(__name__)


class ClipFlag(IntFlag):
    """
    behavior flags of a context.

    - HELP: intercept -h/--help and render the summary.
    - VERSION: intercept -v/--version and print the version line.
    - ANSI: decorate summaries and messages with terminal styles.
    """
    HELP = 0x01
    VERSION = 0x02
    ANSI = 0x04


def _sanitize_text(cls, metadata, key, /):
    if not isinstance(text := metadata[key], str | None | Unset):
        raise TypeError(f"{cls.__typename__} {key!r} must be a string")
    elif isinstance(text, str) and not (text := text.strip()):
        raise ValueError(f"{cls.__typename__} {key!r} cannot be empty")
    metadata[key] = coalesce(text)


def _console(flags, /, file=None, stderr=False):
    return Console(
        file=file,
        stderr=stderr,
        color_system="standard" if ClipFlag.ANSI in flags else None,
        highlight=False,
        markup=False,
        emoji=False,
    )


class Context(StorageGuard, metaclass=ModelType):
    """
    Immutable configuration of a parse.

    Properties
    - registry: Registry.
    - callback: the occurrence handler (see module docstring).
    - progname: str, defaults to the basename of sys.argv[0].
    - header/footer/version: str | None.
    - flags: ClipFlag, defaults to HELP, plus VERSION when a version is given.
    - out: the sink given at construction (None means standard output).
    - user: opaque object handed through to callbacks.
    - truncate: bool, silently cut overlong argument-file lines instead of failing.
    - console: rich Console bound to `out` (standard output when None), styled according to ClipFlag.ANSI.
    - errors: Console for faults and the version line; standard error when `out` is None,
      the same sink as `console` otherwise.

    Notes
    - `callback` is not checked at construction; verify()/ensure() report a
      non-callable one and parse() refuses to run with it.
    """
    __fields__ = ("registry", "callback", "progname", "header", "footer", "version", "flags", "out", "truncate")
    __displayable__ = ("progname", "version", "flags", "registry")

    def __new__(
            cls,
            registry,
            callback,
            /,
            progname=Unset,
            header=Unset,
            footer=Unset,
            version=Unset,
            flags=Unset,
            *,
            out=None,
            user=None,
            truncate=False
    ):
        if not isinstance(registry, Registry):
            raise TypeError(f"{cls.__typename__} 'registry' must be a registry")

        metadata = {
            "registry": registry,
            "callback": callback,
            "progname": coalesce(progname, os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "prog"),
            "header": header,
            "footer": footer,
            "version": version,
            "flags": flags,
            "out": out,
            "user": user,
            "truncate": bool(truncate),
        }
        for key in ("progname", "header", "footer", "version"):
            _sanitize_text(cls, metadata, key)

        if metadata["flags"] is Unset:
            metadata["flags"] = ClipFlag.HELP | (ClipFlag.VERSION if metadata["version"] is not None else 0)
        elif not isinstance(metadata["flags"], int):
            raise TypeError(f"{cls.__typename__} 'flags' must be clip flags")
        metadata["flags"] = ClipFlag(metadata["flags"])

        if not isinstance(out, Console) and out is not None and not callable(getattr(out, "write", None)):
            raise TypeError(f"{cls.__typename__} 'out' must be a text stream or a console")

        with super().__new__(cls) as self:
            for field, object in metadata.items():
                setattr(self, "-" + field, object)
            if isinstance(out, Console):
                setattr(self, "-console", out)
                setattr(self, "-errors", out)
            else:
                setattr(self, "-console", _console(metadata["flags"], file=out))
                # without a sink, faults and the version line go to standard error
                setattr(self, "-errors", _console(metadata["flags"], file=out, stderr=out is None))
        return self

    @property
    def user(self):
        return object.__getattribute__(self, "-user")

    @property
    def console(self):
        return object.__getattribute__(self, "-console")

    @property
    def errors(self):
        return object.__getattribute__(self, "-errors")

    @property
    def colorful(self):
        return ClipFlag.ANSI in self.flags

    def verify(self):
        """
        verify the registry plus the context-level rules.

        returns
        - list[Violation], empty when the context is sound.
        """
        violations = verify(self.registry)
        if not callable(self.callback):
            violations.append(Violation(FaultCode.MISSING_CALLBACK, None, None, "callback must be callable"))
        if ClipFlag.VERSION in self.flags and self.version is None:
            violations.append(Violation(FaultCode.MISSING_VERSION, None, None, "version flag requires a version string"))
        return violations


def ensure(context, /):
    """
    raise InvalidRegistryError when `context` (or a bare registry) has violations.

    returns the argument unchanged otherwise, so it can wrap a construction:
        context = ensure(Context(registry, callback))
    """
    if isinstance(context, Context):
        violations = context.verify()
    elif isinstance(context, Registry):
        violations = verify(context)
    else:
        raise TypeError("ensure() argument must be a context or a registry")
    if violations:
        raise InvalidRegistryError(violations)
    return context


def dispatch(context, scope, option, value=None, /, *, token=Unset):
    """
    hand one resolved occurrence to the context callback.

    raises
    - CallbackFailedError: the callback raised (rendered, exception attached) or
      returned a non-zero status (silent, the callback reported it already).
    """
    token = coalesce(token, value if option is None else option.label)
    logger.debug("dispatching %r (value=%r) from %s", token, value, getattr(scope, "name", None) or "base scope")
    try:
        status = context.callback(context, scope, option, value)
    except Exception as exception:
        raise CallbackFailedError(
            "Call-back failed for", token=token, where=f"({type(exception).__name__}: {exception})", exception=exception
        ) from exception
    if status:
        raise CallbackFailedError("Call-back rejected", token=token, result=status, quiet=True)


__all__ = (
    "ClipFlag",
    "Context",
    "ensure",
)
