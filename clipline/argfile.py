"""
Argument files: `@path` tokens expanded into option occurrences.

File format
- UTF-8 text, one entry per line: `key=value`, `key value`, or a bare `key`.
- `key` is resolved exactly like a command-line spelling without its dashes:
  one character is a short identity, anything longer a long name.
- a line without a value dispatches a switch; a value option needs one (a file
  line has no "next token" to borrow from).

Lines are read through LineReader, which strips the platform line terminator
and enforces the BUFFER_SIZE bound on every line.
"""
import logging
import os
from contextlib import contextmanager

from .context import dispatch
from .faults import (
    ArgumentFileError,
    InvalidOptionError,
    MissingValueError,
    OverlongLineError,
    SwitchAssignmentError,
)
from .registry import Mode

logger = logging.getLogger(__name__)

BUFFER_SIZE = 1024
TERMINATORS = ("\r\n", "\r", "\n") if os.name == "nt" else ("\n",)


class LineReader:
    """
    Iterate over the lines of a text stream as (number, line) pairs.

    behavior
    - numbering starts at 1.
    - the first matching terminator of `terminators` is stripped from each line.
    - a line longer than `limit` characters (terminator excluded) raises
      OverlongLineError, or is cut down to `limit` when `truncate` is set.
    - decoding errors surface as ArgumentFileError.
    """

    def __init__(self, stream, path, /, limit=BUFFER_SIZE, terminators=TERMINATORS, *, truncate=False):
        self.stream = stream
        self.path = path
        self.limit = limit
        self.terminators = tuple(terminators)
        self.truncate = truncate

    @classmethod
    @contextmanager
    def open(cls, path, /, limit=BUFFER_SIZE, terminators=TERMINATORS, *, truncate=False):
        """
        open `path` for reading and yield a reader over it; the file is closed on every exit path.
        """
        try:
            stream = open(path, encoding="utf-8", newline="")
        except OSError as exception:
            raise ArgumentFileError(
                "Arguments file", token=repr(path), where="could not be opened.", exception=exception
            ) from exception
        with stream:
            yield cls(stream, path, limit, terminators, truncate=truncate)

    def __iter__(self):
        try:
            for number, line in enumerate(self.stream, 1):
                for terminator in self.terminators:
                    if line.endswith(terminator):
                        line = line[:-len(terminator)]
                        break
                if len(line) > self.limit:
                    if not self.truncate:
                        raise OverlongLineError(
                            "Line", token=f"{number} of {self.path!r}", where=f"exceeds {self.limit} characters"
                        )
                    logger.debug("truncating line %d of %r to %d characters", number, self.path, self.limit)
                    line = line[:self.limit]
                yield number, line
        except UnicodeDecodeError as exception:
            raise ArgumentFileError(
                "Arguments file", token=repr(self.path), where="could not be decoded.", exception=exception
            ) from exception


def split(line, /):
    """
    split a line at the first '=', or failing that the first space.

    returns
    - (key, value) where value is None when the line has no separator.
    """
    key, separator, value = line.partition("=")
    if not separator:
        key, separator, value = line.partition(" ")
    return key, value if separator else None


def expand(context, live, path, /):
    """
    feed every line of the arguments file at `path` through lookup and dispatch.

    the first unresolvable or malformed line aborts the remaining ones.
    """
    logger.debug("expanding arguments file %r", path)
    with LineReader.open(path, truncate=context.truncate) as reader:
        for number, line in reader:
            key, value = split(line)
            spelling = ("-" if len(key) == 1 else "--") + key
            where = f"in line {number} of {path!r}"

            if (resolution := context.registry.lookup(key, live)) is None:
                raise InvalidOptionError("Invalid option:", token=spelling, where=where)
            scope, option = resolution

            if option.mode is Mode.SWITCH:
                if value is not None:
                    raise SwitchAssignmentError("Switch does not take a value:", token=spelling, where=where)
            elif value is None:
                raise MissingValueError("Missing required value for", token=spelling, where=where)
            dispatch(context, scope, option, value, token=spelling)


__all__ = (
    "BUFFER_SIZE",
    "LineReader",
    "expand",
)
