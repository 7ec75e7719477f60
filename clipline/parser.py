"""
Clipline parser: command resolution, auto-flag pre-scan and the token scanner.

Flow
1) resolve_command(): the first token may name a sub-command; it becomes the live scope.
2) prescan(): -h/--help and -v/--version anywhere short-circuit the parse,
   unless the scope chain declares those spellings itself.
3) step(): classify and dispatch one token at a time until exhaustion or `--`.

Token classes (in order)
- "--"              → stop, nothing after it is inspected.
- "-X..."           → short cluster (X alphanumeric).
- "--name[=value]"  → long option (name starts alphanumeric).
- "@path"           → argument-file inclusion.
- anything else     → positional, handed to the live scope catch-all.

Run state is an explicit State(index, live) pair threaded through every step;
the Context itself is never mutated.

Errors
- Every failure is raised as a ParseFault, caught once in parse(), surfaced via
  trigger() on the context error console and returned as its Status.
"""
import logging
import shlex
import sys
from collections.abc import Iterable
from typing import NamedTuple

from rich.text import Text

from .argfile import expand
from .context import ClipFlag, Context, dispatch
from .faults import (
    InvalidContextError,
    InvalidOptionError,
    MissingValueError,
    ParseFault,
    Status,
    SwitchAssignmentError,
    UnrecognisedOptionError,
    trigger,
)
from .registry import Mode, Scope
from .summary import render_summary
from .utils import *

logger = logging.getLogger(__name__)


class State(NamedTuple):
    """
    cursor into the argument vector plus the live scope (None when the registry has no base).
    """
    index: int
    live: Scope | None


def _where(index, /):
    return f"at {ordinal(index + 1)} position"


def _tokenize(args, /):
    if args is Unset:
        return tuple(sys.argv[1:])
    if isinstance(args, str):
        try:
            return tuple(shlex.split(args))
        except ValueError as exception:
            raise InvalidContextError("Arguments could not be split:", token=str(exception)) from exception
    if not isinstance(args, Iterable):
        raise InvalidContextError("Arguments must be", token="strings")
    args = tuple(args)
    if not all(isinstance(arg, str) for arg in args):
        raise InvalidContextError("Arguments must be", token="strings")
    return args


def resolve_command(registry, tokens, /):
    """
    select the live scope from the first token.

    an unmatched first token is left in place and the base scope is live.
    """
    if tokens and registry.commands and tokens[0][:1].isalnum():
        if (command := registry.command(tokens[0])) is not None:
            logger.debug("resolved sub-command %r", command.name)
            return State(1, command)
    return State(0, registry.base)


def prescan(context, tokens, state, /):
    """
    look for automatic -h/--help and -v/--version among the remaining tokens.

    returns
    - Status.HELP when one fired (summary or version already printed), None otherwise.
    """
    automatic = (("h", "help", ClipFlag.HELP), ("v", "version", ClipFlag.VERSION))
    for token in tokens[state.index:]:
        for short, name, flag in automatic:
            if flag not in context.flags or (flag is ClipFlag.VERSION and context.version is None):
                continue
            for spelling, key in (("-" + short, short), ("--" + name, name)):
                if token != spelling or context.registry.lookup(key, state.live) is not None:
                    continue
                logger.debug("automatic %s requested by %r", name, token)
                if flag is ClipFlag.HELP:
                    render_summary(context, state.live)
                else:
                    context.errors.print(
                        Text.assemble(
                            (context.progname, "bold" if context.colorful else ""), " ", context.version
                        ),
                        soft_wrap=True,
                    )
                return Status.HELP
    return None


def acquire(tokens, index, inline, /, *, token, where):
    """
    fetch the value of a value option.

    - an inline value (remainder of a short cluster, or after '=') wins, even when empty;
    - otherwise the next whole token is consumed.

    returns
    - (value, index) with index pointing past whatever was consumed.
    """
    if inline is not None:
        return inline, index
    if index < len(tokens):
        return tokens[index], index + 1
    raise MissingValueError("Missing required value for", token=token, where=where)


def _short_cluster(context, tokens, state, /):
    token = tokens[state.index]
    index = state.index + 1
    where = _where(state.index)

    for offset in range(1, len(token)):
        spelling = "-" + token[offset]
        if (resolution := context.registry.lookup(token[offset], state.live)) is None:
            raise InvalidOptionError("Invalid option:", token=spelling, where=where)
        scope, option = resolution

        if option.mode is Mode.SWITCH:
            dispatch(context, scope, option, None, token=spelling)
            continue

        value, index = acquire(tokens, index, token[offset + 1:] or None, token=spelling, where=where)
        dispatch(context, scope, option, value, token=spelling)
        break

    return index


def _long_option(context, tokens, state, /):
    token = tokens[state.index]
    index = state.index + 1
    where = _where(state.index)

    key, separator, inline = token[2:].partition("=")
    spelling = "--" + key
    if (resolution := context.registry.lookup(key, state.live)) is None:
        raise InvalidOptionError("Invalid option:", token=spelling, where=where)
    scope, option = resolution

    if option.mode is Mode.SWITCH:
        if separator:
            raise SwitchAssignmentError("Switch does not take a value:", token=spelling, where=where)
        dispatch(context, scope, option, None, token=spelling)
    else:
        value, index = acquire(tokens, index, inline if separator else None, token=spelling, where=where)
        dispatch(context, scope, option, value, token=spelling)

    return index


def _positional(context, tokens, state, /):
    token = tokens[state.index]
    if state.live is None or (option := state.live.catchall) is None:
        raise UnrecognisedOptionError("Unrecognised option:", token=token, where=_where(state.index))
    dispatch(context, state.live, option, token, token=token)
    return state.index + 1


def step(context, tokens, state, /):
    """
    classify and dispatch the token under the cursor.

    returns
    - the next State, or None when scanning is over (exhausted or `--`).
    """
    if state.index >= len(tokens):
        return None

    token = tokens[state.index]
    if token == "--":
        logger.debug("end of options at %s", _where(state.index))
        return None

    if token[:1] == "-" and token[1:2].isalnum():
        index = _short_cluster(context, tokens, state)
    elif token[:2] == "--" and token[2:3].isalnum():
        index = _long_option(context, tokens, state)
    elif token[:1] == "@":
        expand(context, state.live, token[1:])
        index = state.index + 1
    else:
        index = _positional(context, tokens, state)

    return state._replace(index=index)


def _hint(context, state, /):
    if ClipFlag.HELP not in context.flags:
        return None
    command = " ".join(filter(None, (context.progname, getattr(state.live, "name", None) if state else None)))
    return f"try '{command} --help' for more information"


def parse(context, args=Unset, /):
    """
    Walk `args` and report every recognised occurrence to the context callback.

    Parameters
    - context: Context.
    - args: Unset (reads sys.argv[1:]) | str (split with shlex) | Iterable[str].
      The program name is never part of `args`.

    Returns
    - Status.OK: all tokens consumed (or `--` reached).
    - Status.HELP: automatic help or version fired.
    - Status.BAD_ARGUMENT: a token could not be resolved; the fault was reported.
    - Status.CALLBACK_FAILED: the callback raised or returned a non-zero status.
    - Status.INVALID_CONTEXT: `context` is not a Context, its callback is not
      callable, or `args` are not strings.
    """
    if not isinstance(context, Context):
        return Status.INVALID_CONTEXT

    state = None
    try:
        tokens = _tokenize(args)
        if not callable(context.callback):
            raise InvalidContextError("Context callback is", token="not callable")

        state = resolve_command(context.registry, tokens)
        if (status := prescan(context, tokens, state)) is not None:
            return status

        while (following := step(context, tokens, state)) is not None:
            state = following
    except ParseFault as fault:
        logger.debug("parse aborted: %s (%s)", fault, fault.code.name)
        trigger(
            fault,
            console=context.errors,
            colorful=context.colorful,
            hint=_hint(context, state) if fault.status is Status.BAD_ARGUMENT else None,
        )
        return fault.status

    return Status.OK


__all__ = (
    "State",
    "parse",
)
